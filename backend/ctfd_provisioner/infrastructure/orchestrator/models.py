"""
Orchestrator Models - Instance configuration, container configuration and lifecycle states
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Tuple

from pydantic import BaseModel, ConfigDict, Field


# Routes every path to the platform's internal HTTP port; {{.Host}} is
# resolved by the reverse proxy to the container's reachable address.
PROXY_TEMPLATE = "location / { proxy_pass http://{{.Host}}:8000/; }"


class FlagDefinition(BaseModel):
    """A declared challenge: name, default secret value and point value."""
    
    model_config = ConfigDict(frozen=True)
    
    name: str
    default: str
    points: int = Field(ge=0)


class InstanceConfig(BaseModel):
    """
    Immutable description of one platform instance.
    
    Supplied once at instance creation and never mutated.
    """
    
    model_config = ConfigDict(frozen=True)
    
    name: str
    admin_user: str
    admin_email: str
    admin_pass: str
    flags: Tuple[FlagDefinition, ...] = ()


class InstanceState(str, Enum):
    """Instance lifecycle states."""
    NEW = "new"
    CONFIGURING = "configuring"  # setup container alive
    TRANSITIONING = "transitioning"  # setup container closed, serving not yet started
    SERVING = "serving"
    STOPPED = "stopped"
    CLOSED = "closed"


# Allowed lifecycle transitions
INSTANCE_TRANSITIONS: Dict[InstanceState, Tuple[InstanceState, ...]] = {
    InstanceState.NEW: (InstanceState.CONFIGURING,),
    InstanceState.CONFIGURING: (InstanceState.TRANSITIONING,),
    InstanceState.TRANSITIONING: (InstanceState.SERVING,),
    InstanceState.SERVING: (InstanceState.STOPPED, InstanceState.CLOSED),
    InstanceState.STOPPED: (InstanceState.SERVING, InstanceState.CLOSED),
    InstanceState.CLOSED: (),
}


@dataclass
class ContainerConfig:
    """Runtime-neutral container configuration."""
    image: str
    mounts: List[str] = field(default_factory=list)  # "host_path:container_path"
    env_vars: Dict[str, str] = field(default_factory=dict)
    port_bindings: Dict[str, str] = field(default_factory=dict)  # "8000/tcp" -> "127.0.0.1:8000"
    use_bridge: bool = True


@dataclass(frozen=True)
class ProxyRoute:
    """Identity and routing template consumed by the reverse proxy."""
    container_id: str
    template: str = PROXY_TEMPLATE
