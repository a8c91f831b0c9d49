from __future__ import annotations

import functools
import inspect
import logging
import threading
from contextlib import contextmanager
from contextvars import ContextVar
from typing import TYPE_CHECKING, Any, TypeVar

from ._container import Container
from ._errors import ContainerNotActiveError


logger = logging.getLogger(__name__)

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Iterator

    T = TypeVar("T")

    Installer = Callable[[Container], object]

_current_container: ContextVar[Container | None] = ContextVar("larder_current_container", default=None)


def current_container() -> Container:
    """Return the container bound by the innermost active `ServiceRegistry.scope()`."""
    container = _current_container.get()
    if container is None:
        msg = "No service scope is active; resolve inside ServiceRegistry.scope() or a with_services handler."
        raise ContainerNotActiveError(msg)
    return container


class ServiceProvider:
    """Request-facing view of a container: `get` and `has`, nothing else."""

    __slots__ = ("container",)

    def __init__(self, container: Container) -> None:
        self.container = container

    def get(self, token: Any) -> Any:
        return self.container.resolve(token)

    def has(self, token: Any) -> bool:
        return self.container.has(token)


class ServiceRegistry:
    """Owns the application's root container for the lifetime of the process.

    Installers are callables that register services on the root container.
    They run once, on the first `startup()` (or the first request scope).

    Example:
      registry = ServiceRegistry()

      @registry.install
      def repositories(c: Container) -> None:
          c.register_instance("db", connect())
          c.register_class(UserRepository, UserRepository, ["db"])

      @registry.with_services
      def get_user(services: ServiceProvider, user_id: str):
          return services.get(UserRepository).find(user_id)
    """

    def __init__(self, container: Container | None = None, *, installers: Iterable[Installer] = ()) -> None:
        self._container = container if container is not None else Container()
        self._installers: list[Installer] = list(installers)
        self._started = False
        self._lock = threading.RLock()

    @property
    def container(self) -> Container:
        return self._container

    @property
    def started(self) -> bool:
        return self._started

    def install(self, installer: Installer) -> Installer:
        """Add an installer. Applied immediately when the registry already started."""
        with self._lock:
            self._installers.append(installer)
            if self._started:
                self._run(installer)
        return installer

    def startup(self) -> Container:
        """Run pending installers exactly once and return the root container."""
        with self._lock:
            if not self._started:
                for installer in self._installers:
                    self._run(installer)
                self._started = True
                logger.debug("Service registry started with %d installer(s)", len(self._installers))
        return self._container

    def _run(self, installer: Installer) -> None:
        logger.debug("Running installer %s", getattr(installer, "__qualname__", repr(installer)))
        installer(self._container)

    @contextmanager
    def scope(self) -> Iterator[ServiceProvider]:
        """Bind a fresh child container for the duration of one request."""
        root = self.startup()
        child = root.create_child_container(name="request")
        token = _current_container.set(child)
        try:
            yield ServiceProvider(child)
        finally:
            _current_container.reset(token)

    def with_services(self, handler: Callable[..., T]) -> Callable[..., T]:
        """Decorate a handler so it receives a `ServiceProvider` as first argument."""
        if inspect.iscoroutinefunction(handler):

            @functools.wraps(handler)
            async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
                with self.scope() as services:
                    return await handler(services, *args, **kwargs)

            return async_wrapper  # type: ignore[return-value]

        @functools.wraps(handler)
        def wrapper(*args: Any, **kwargs: Any) -> T:
            with self.scope() as services:
                return handler(services, *args, **kwargs)

        return wrapper

    def reset(self) -> None:
        """Clear the root container and rerun installers on next start-up. Test isolation only."""
        with self._lock:
            self._container.reset()
            self._started = False
