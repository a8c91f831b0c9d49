from __future__ import annotations

import inspect
import logging
import threading
import typing
from contextvars import ContextVar
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import (
    TYPE_CHECKING,
    Any,
    TypeVar,
    get_type_hints,
    overload,
)

from ._errors import CircularDependencyError, ServiceNotRegisteredError
from ._tokens import describe_token


logger = logging.getLogger(__name__)

if TYPE_CHECKING:
    from collections.abc import Callable, Hashable, Iterable, Mapping

    T = TypeVar("T")

    Token = type[T] | Hashable

_MISSING = object()

# Tokens whose factories are currently running in this call chain.
_resolution_stack: ContextVar[tuple[Any, ...]] = ContextVar("larder_resolution_stack", default=())


class Lifetime(Enum):
    SINGLETON = "singleton"
    TRANSIENT = "transient"


@dataclass(frozen=True)
class Registration:
    factory: Callable[[Container], object] | None
    lifetime: Lifetime
    impl: Callable[..., object] | None = None
    dependencies: tuple[Any, ...] = ()


class Container:
    """Explicit service container.

    - register factories, classes with declared dependencies, or instances
    - resolve with lifetime caching and cycle detection
    - lifetimes: singleton / transient
    - child containers that override and fall back to their parent.
    """

    def __init__(self, *, name: str | None = None) -> None:
        self.name = name or "root"
        self._registrations: dict[Any, Registration] = {}
        self._instances: dict[Any, object] = {}
        self._parent: Container | None = None
        self._lock = threading.RLock()

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name!r} registrations={len(self._registrations)}>"

    def __contains__(self, token: object) -> bool:
        return self.has(token)

    @property
    def parent(self) -> Container | None:
        return self._parent

    def register(
        self,
        token: Token[T],
        factory: Callable[[Container], T],
        *,
        lifetime: Lifetime = Lifetime.SINGLETON,
    ) -> Container:
        """Register a factory for a token.

        Singleton factories are called with the container that owns the
        registration, transient factories with the container `resolve` was called
        on. Nothing is invoked until the token is first resolved.

        Example:
          container.register("db", create_db)
          container.register(IMailer, lambda c: SmtpMailer(c.resolve("settings")), lifetime=Lifetime.TRANSIENT)

        """
        if not callable(factory):
            msg = f"Factory for {describe_token(token)} must be callable, got {type(factory).__name__}."
            raise ValueError(msg)

        if not isinstance(lifetime, Lifetime):
            msg = f"Unsupported lifetime: {lifetime!r}"
            raise ValueError(msg)

        return self._add(token, Registration(factory=factory, lifetime=lifetime))

    def register_singleton(self, token: Token[T], factory: Callable[[Container], T]) -> Container:
        return self.register(token, factory, lifetime=Lifetime.SINGLETON)

    def register_transient(self, token: Token[T], factory: Callable[[Container], T]) -> Container:
        return self.register(token, factory, lifetime=Lifetime.TRANSIENT)

    def register_instance(self, token: Token[T], instance: object) -> Container:
        """Register a pre-built instance (always singleton)."""
        registration = Registration(factory=None, lifetime=Lifetime.SINGLETON)
        return self._add(token, registration, instance=instance)

    def register_class(
        self,
        token: Token[T],
        impl: Callable[..., T],
        dependencies: Iterable[Any] = (),
        *,
        lifetime: Lifetime = Lifetime.SINGLETON,
    ) -> Container:
        """Register a class built from explicitly declared dependencies.

        Each dependency token is resolved through the building container (see
        `register`) and passed positionally, in order, to `impl`.

        Example:
          container.register_class(UserService, UserService, ["user_repository", Mailer])

        The dependency count is bound against the constructor signature here, so a
        missing or extra token fails at registration rather than at first use.
        """
        if not callable(impl):
            msg = f"Implementation for {describe_token(token)} must be callable, got {type(impl).__name__}."
            raise ValueError(msg)

        if isinstance(dependencies, str):
            msg = "`dependencies` must be a sequence of tokens, not a single string."
            raise TypeError(msg)

        deps = tuple(dependencies)

        if inspect.isclass(token) and inspect.isclass(impl):
            _validate_impl(cls=token, impl=impl)

        _validate_arity(impl, deps)

        def build(container: Container) -> object:
            return impl(*[container.resolve(dep) for dep in deps])

        registration = Registration(factory=build, lifetime=lifetime, impl=impl, dependencies=deps)
        return self._add(token, registration)

    def _add(self, token: Any, registration: Registration, instance: object = _MISSING) -> Container:
        with self._lock:
            if token in self._registrations:
                logger.info("Replacing registration for %s in %s container", describe_token(token), self.name)
            self._registrations[token] = registration
            self._instances.pop(token, None)
            if instance is not _MISSING:
                self._instances[token] = instance

        logger.debug(
            "Registered %s as %s in %s container",
            describe_token(token),
            "instance" if instance is not _MISSING else registration.lifetime.value,
            self.name,
        )
        return self

    def has(self, token: Any) -> bool:
        """Whether `token` is registered here or in any ancestor. Never constructs."""
        return self._lookup(token) is not None

    @overload
    def resolve(self, token: type[T]) -> T: ...

    @overload
    def resolve(self, token: Hashable) -> Any: ...

    def resolve(self, token: Token[T]) -> object:
        """Resolve the token to an instance.

        - The nearest registration wins: this container first, then its ancestors.
        - Singletons are built and cached by the container owning the registration,
          so a child shares its parent's singletons.
        - Transients are built by this container, so they see its overrides.
        - Errors raised by factories propagate unchanged.
        """
        found = self._lookup(token)
        if found is None:
            raise ServiceNotRegisteredError(token)

        owner, registration = found
        if registration.lifetime is Lifetime.TRANSIENT:
            return self._construct(token, registration)
        return owner._activate(token, registration)  # noqa: SLF001

    def _lookup(self, token: Any) -> tuple[Container, Registration] | None:
        with self._lock:
            registration = self._registrations.get(token)

        if registration is not None:
            return self, registration

        if self._parent is not None:
            return self._parent._lookup(token)  # noqa: SLF001

        return None

    def _activate(self, token: Any, registration: Registration) -> object:
        # Built under the lock: at most one construction per cached token.
        with self._lock:
            instance = self._instances.get(token, _MISSING)
            if instance is not _MISSING:
                return instance

            instance = self._construct(token, registration)

            # Only cache when the registration was not replaced or reset meanwhile.
            if self._registrations.get(token) is registration:
                self._instances[token] = instance
            return instance

    def _construct(self, token: Any, registration: Registration) -> object:
        stack = _resolution_stack.get()
        if token in stack:
            path = (*stack[stack.index(token) :], token)
            raise CircularDependencyError(token, path)

        if registration.factory is None:
            # Instance registration whose value was dropped by a concurrent reset().
            raise ServiceNotRegisteredError(token)

        reset_token = _resolution_stack.set((*stack, token))
        try:
            logger.debug(
                "Constructing %s (%s) in %s container",
                describe_token(token),
                registration.lifetime.value,
                self.name,
            )
            return registration.factory(self)
        finally:
            _resolution_stack.reset(reset_token)

    def registrations(self) -> Mapping[Any, Registration]:
        """Read-only snapshot of this container's own registrations."""
        with self._lock:
            return MappingProxyType(dict(self._registrations))

    def create_child_container(self, *, name: str | None = None) -> Scope:
        """Create a child that prefers its own registrations and falls back to this container."""
        child = Scope(self, name=name, _from_parent=True)
        logger.debug("Created %s container from %s", child.name, self.name)
        return child

    def create_scope(self) -> Scope:
        """Create a scope that prefers its own registrations/instances, falls back to parent."""
        return self.create_child_container()

    def reset(self) -> None:
        """Drop every local registration and cached instance.

        Meant for test isolation. Parents and children keep their own state.
        """
        with self._lock:
            self._registrations.clear()
            self._instances.clear()
        logger.debug("Reset %s container", self.name)


class Scope(Container):
    """A child container that looks up in itself first, then falls back to a parent container.

    Useful for per-request/per-test lifetimes without altering root registrations.
    Later changes to the parent stay visible; nothing is copied at creation.
    """

    def __init__(self, parent: Container, *, name: str | None = None, _from_parent: bool = False) -> None:
        if not _from_parent:
            msg = "Scope instances must be created via Container.create_child_container()"
            raise RuntimeError(msg)
        super().__init__(name=name or f"{parent.name}/scope")
        self._parent = parent

    @property
    def parent(self) -> Container:
        return typing.cast("Container", self._parent)


def _validate_arity(impl: Callable[..., object], deps: tuple[Any, ...]) -> None:
    try:
        sig = inspect.signature(impl)
    except (TypeError, ValueError):
        logger.debug("No signature available for %s; dependency count not checked", describe_token(impl))
        return

    try:
        sig.bind(*deps)
    except TypeError as e:
        msg = f"{describe_token(impl)} cannot be constructed from {len(deps)} declared dependencies: {e}"
        raise TypeError(msg) from e


def _is_protocol(tp: type) -> bool:
    if hasattr(typing, "is_protocol"):
        # https://docs.python.org/3/library/typing.html#typing.is_protocol
        return typing.is_protocol(tp)
    return bool(getattr(tp, "_is_protocol", False))


def _validate_impl(cls: type, impl: type) -> None:
    """Validate that 'impl' can stand in for the class token 'cls'.

    - For normal classes/ABCs: require issubclass(impl, cls).
    - For Protocols: accept nominal subclasses, otherwise require every public
      protocol member and no fewer required positional parameters.
    """
    if not _is_protocol(cls):
        if not issubclass(impl, cls):
            msg = f"Implementation {impl.__name__} must be a subclass of {cls.__name__}"
            raise TypeError(msg)
        return

    if cls in getattr(impl, "__mro__", ()):
        return

    problems: list[str] = []

    try:
        annotated = list(get_type_hints(cls))
    except (NameError, TypeError):
        annotated = []

    problems.extend(
        f"missing member {name}" for name in annotated if not name.startswith("_") and not hasattr(impl, name)
    )

    for name, member in cls.__dict__.items():
        if name.startswith("_") or not inspect.isfunction(member):
            continue

        impl_member = getattr(impl, name, None)
        if impl_member is None:
            problems.append(f"missing member {name}")
        elif not callable(impl_member):
            problems.append(f"{name} is not callable on {impl.__name__}")
        elif not _accepts_calls_of(impl_member, member):
            problems.append(f"{name}: signature does not accept every call the protocol allows")

    if problems:
        msg = f"Implementation {impl.__name__} does not conform to protocol {cls.__name__}: {', '.join(problems)}"
        raise TypeError(msg)


def _accepts_calls_of(impl_func: Callable[..., object], proto_func: Callable[..., object]) -> bool:
    impl_required, impl_max = _positional_range(impl_func)
    proto_required, proto_max = _positional_range(proto_func)
    return impl_required <= proto_required and impl_max >= proto_max


def _positional_range(func: Callable[..., object]) -> tuple[int, float]:
    """(required, maximum) positional arguments, excluding `self`."""
    try:
        params = [p for p in inspect.signature(func).parameters.values() if p.name != "self"]
    except (TypeError, ValueError):
        return 0, float("inf")

    positional = [
        p for p in params if p.kind in (inspect.Parameter.POSITIONAL_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD)
    ]
    required = sum(1 for p in positional if p.default is inspect.Parameter.empty)
    if any(p.kind is inspect.Parameter.VAR_POSITIONAL for p in params):
        return required, float("inf")
    return required, len(positional)
