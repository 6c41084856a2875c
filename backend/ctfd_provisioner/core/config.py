"""
CTFd Provisioner - Application Configuration
Pydantic Settings with environment variable support
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Provisioner settings loaded from environment variables."""
    
    model_config = SettingsConfigDict(
        env_prefix="CTFD_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )
    
    # ==========================================================================
    # Platform image
    # ==========================================================================
    image: str = "registry.sec-aau.dk/aau/ctfd"
    data_mount_target: str = "/opt/CTFd/CTFd/data"
    http_port: int = 8000
    
    # ==========================================================================
    # Setup container
    # ==========================================================================
    setup_bind_host: str = "127.0.0.1"
    setup_bind_port: int = 8000
    
    # ==========================================================================
    # Docker
    # ==========================================================================
    docker_url: Optional[str] = None
    bridge_network: str = "bridge"
    host_address_env: str = "ADMIN_HOST"
    host_address: Optional[str] = None  # skips the bridge gateway lookup
    stop_timeout: int = 10  # seconds
    
    # ==========================================================================
    # Data mount
    # ==========================================================================
    data_root: Optional[Path] = None
    data_dir_prefix: str = "ctfd"
    
    # ==========================================================================
    # HTTP
    # ==========================================================================
    readiness_timeout: float = Field(default=60.0, gt=0)
    readiness_interval: float = Field(default=1.0, ge=0)
    request_timeout: float = Field(default=10.0, gt=0)
    
    # ==========================================================================
    # Logging
    # ==========================================================================
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    log_format: Literal["json", "console"] = "console"
    
    @property
    def setup_base_url(self) -> str:
        """Base URL of the setup container as published on the host."""
        return f"http://{self.setup_bind_host}:{self.setup_bind_port}"
    
    @property
    def setup_port_binding(self) -> str:
        return f"{self.setup_bind_host}:{self.setup_bind_port}"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
