"""Explicit service container.

This package provides the service container used to wire repositories and
services together: factories, classes with declared dependencies and
pre-built instances, registered against opaque tokens and resolved with
configurable lifetimes, cycle detection and child-container scoping.

Exports:
- `Container`: registry supporting factory/class/instance registration and resolution.
- `Lifetime`: Enum for controlling object lifetimes (singleton or transient).
- `Scope`: Child container that resolves within itself first, then falls back
  to its parent. Useful for per-request or per-test overrides.
- `ServiceToken`: Symbol-like token for naming services.
- `ServiceRegistry`: Application-lifetime owner of the root container, with
  request scoping through `scope()` / `with_services()`.
- `current_container`: Access point for the container of the active request scope.
- Errors: `ContainerError`, `ResolutionError`, `ServiceNotRegisteredError`,
  `CircularDependencyError`, `ContainerNotActiveError`.
"""

from ._application import ServiceProvider, ServiceRegistry, current_container
from ._container import Container, Lifetime, Scope
from ._errors import (
    CircularDependencyError,
    ContainerError,
    ContainerNotActiveError,
    ResolutionError,
    ServiceNotRegisteredError,
)
from ._tokens import ServiceToken, describe_token


__all__ = [
    "CircularDependencyError",
    "Container",
    "ContainerError",
    "ContainerNotActiveError",
    "Lifetime",
    "ResolutionError",
    "Scope",
    "ServiceNotRegisteredError",
    "ServiceProvider",
    "ServiceRegistry",
    "ServiceToken",
    "current_container",
    "describe_token",
]
