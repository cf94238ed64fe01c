"""Resource key definition and matching."""

from collections.abc import Callable
from typing import Any

from sajilo_client.types import KeyPattern, ResourceKey

_ESCAPE_MAP = {"\\": "\\\\", ":": "\\:"}


def resource_key(kind: str, *parts: Any) -> ResourceKey:
    """Build a key from a resource kind and its identifiers/parameters."""
    if not kind:
        raise ValueError("Resource kind must be a non-empty string")
    return ResourceKey((kind, *parts))


def define_keys(
    definitions: dict[str, Callable[..., tuple[Any, ...]]],
) -> dict[str, Callable[..., ResourceKey]]:
    """
    Define resource keys in a centralized location.

    Example:
        keys = define_keys({
            "candidate": lambda id: ("candidate", id),
            "dashboard": lambda job_id, borderline=False: (
                "dashboard", job_id, borderline
            ),
        })

        keys["candidate"](7)      # ("candidate", 7)
        keys["dashboard"](3)      # ("dashboard", 3, False)
    """
    result: dict[str, Callable[..., ResourceKey]] = {}
    for name, fn in definitions.items():

        def make_key(
            *args: Any, _fn: Callable[..., tuple[Any, ...]] = fn, **kwargs: Any
        ) -> ResourceKey:
            return ResourceKey(_fn(*args, **kwargs))

        result[name] = make_key
    return result


def serialize_key(key: KeyPattern) -> str:
    """Serialize a key to a flat string for logs and diagnostics."""

    def escape(part: Any) -> str:
        result = str(part)
        for char, escaped in _ESCAPE_MAP.items():
            result = result.replace(char, escaped)
        return result

    return ":".join(escape(p) for p in key)


def matches(pattern: KeyPattern, key: ResourceKey) -> bool:
    """Check if pattern is a prefix of key (exact key or kind-level wildcard)."""
    if not pattern or len(pattern) > len(key):
        return False
    return tuple(key[: len(pattern)]) == tuple(pattern)
