"""Helpers for wiring containers in tests."""

from __future__ import annotations

from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

from ._container import Container


if TYPE_CHECKING:
    from collections.abc import Callable, Iterator, Mapping

    from ._container import Scope


def create_test_container(*installers: Callable[[Container], object], parent: Container | None = None) -> Container:
    """Build a fresh container (or a child of `parent`) with `installers` applied in order."""
    container = parent.create_child_container(name="test") if parent is not None else Container(name="test")
    for installer in installers:
        installer(container)
    return container


def mock_service(container: Container, token: Any, replacement: object) -> Container:
    """Replace `token` in `container` with a ready-made object, typically a mock."""
    return container.register_instance(token, replacement)


@contextmanager
def overridden(container: Container, replacements: Mapping[Any, object]) -> Iterator[Scope]:
    """Yield a child of `container` where each token in `replacements` is swapped out.

    `container` is never modified. Transients registered on `container` and
    resolved through the yielded child see the replacements. Singletons owned by
    `container` are built with its own registrations and keep them, so a root
    singleton that was already built keeps its old dependencies.
    """
    child = container.create_child_container(name="override")
    for token, replacement in replacements.items():
        child.register_instance(token, replacement)
    try:
        yield child
    finally:
        child.reset()
