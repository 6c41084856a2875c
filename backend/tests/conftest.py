"""
Pytest configuration and shared fixtures.
"""

from tests.fixtures.ctfd_fixtures import (
    demo_config,
    fake_ctfd,
    fake_runtime,
    provisioner_settings,
)

__all__ = [
    "demo_config",
    "fake_ctfd",
    "fake_runtime",
    "provisioner_settings",
]


def pytest_configure(config):
    """Configure pytest."""
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )
