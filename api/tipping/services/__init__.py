"""Domain services. Construct them once with ``build_services``."""

from .container import Services, build_services

__all__ = ["Services", "build_services"]
