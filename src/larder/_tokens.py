from __future__ import annotations

import inspect
from typing import Any


class ServiceToken:
    """Opaque, symbol-like service key.

    Two tokens built from the same name are still different keys; equality is
    identity, so a token is only reachable through the object that created it.
    """

    __slots__ = ("description", "name")

    def __init__(self, name: str, description: str = "") -> None:
        if not name:
            msg = "ServiceToken requires a non-empty name."
            raise ValueError(msg)
        self.name = name
        self.description = description

    def __repr__(self) -> str:
        return f"ServiceToken({self.name!r})"

    def __str__(self) -> str:
        return self.name


def describe_token(token: Any) -> str:
    """Render a token for log and error messages."""
    if isinstance(token, ServiceToken):
        return token.name
    if inspect.isclass(token):
        return token.__qualname__
    if isinstance(token, str):
        return token
    return repr(token)
