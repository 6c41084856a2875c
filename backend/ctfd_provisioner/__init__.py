"""
CTFd Provisioner - bootstrap a pre-seeded CTFd instance inside a container
"""

__version__ = "1.0.0"
