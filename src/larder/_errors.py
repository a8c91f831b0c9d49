from __future__ import annotations

from typing import TYPE_CHECKING, Any

from ._tokens import describe_token


if TYPE_CHECKING:
    from collections.abc import Sequence


class ContainerError(RuntimeError):
    """Base class for every error raised by the container itself."""


class ResolutionError(ContainerError):
    """Raised by `resolve` when the wiring cannot produce an instance."""


class ServiceNotRegisteredError(ResolutionError):
    def __init__(self, token: Any) -> None:
        self.token = token
        super().__init__(f"Service not registered: {describe_token(token)}")


class CircularDependencyError(ResolutionError):
    """A token was requested while its own construction was still in progress.

    `path` runs from the first occurrence of `token` on the resolution stack
    down to the repeated request, so `path[0] == path[-1] == token`.
    """

    def __init__(self, token: Any, path: Sequence[Any]) -> None:
        self.token = token
        self.path = tuple(path)
        cycle = " -> ".join(describe_token(t) for t in self.path)
        super().__init__(f"Circular dependency detected while resolving: {cycle}")


class ContainerNotActiveError(ContainerError):
    """The current container was requested outside of an active service scope."""
