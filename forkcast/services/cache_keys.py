"""Cache namespaces and deterministic cache key derivation."""

import hashlib
from enum import Enum
from typing import Iterable

KeyPart = str | int | float | bool | None

KEY_DELIMITER = ":"


class Namespace(str, Enum):
    """Key prefixes; each cache category owns a disjoint key space."""

    WEATHER = "w:"
    FOOD_RECOMMENDATIONS = "fr:"
    FOOD_DETAILS = "fd:"
    GEOLOCATION = "geo:"

    @property
    def label(self) -> str:
        return _LABELS[self]

    @classmethod
    def label_for_key(cls, key: str) -> str:
        """Name of the namespace a key belongs to, for metrics."""
        for namespace in cls:
            if key.startswith(namespace.value):
                return namespace.label
        return "other"


_LABELS = {
    Namespace.WEATHER: "weather",
    Namespace.FOOD_RECOMMENDATIONS: "food-recommendation",
    Namespace.FOOD_DETAILS: "food-details",
    Namespace.GEOLOCATION: "geolocation",
}


def _stringify(part: str | int | float | bool) -> str:
    if isinstance(part, bool):
        return "true" if part else "false"
    return str(part)


def generate_cache_key(namespace: Namespace | str, parts: Iterable[KeyPart]) -> str:
    """
    Build a short, fixed-length cache key.

    Absent parts are dropped, the rest are joined with ':' in the given order
    and hashed with MD5. With no parts left the key is '<namespace>default'.

    Args:
        namespace: Namespace prefix
        parts: Ordered key components; None entries are skipped

    Returns:
        Namespace prefix followed by a 32-character hex digest
    """
    prefix = namespace.value if isinstance(namespace, Namespace) else namespace
    valid_parts = [_stringify(part) for part in parts if part is not None]

    if not valid_parts:
        return f"{prefix}default"

    joined = KEY_DELIMITER.join(valid_parts)
    return f"{prefix}{hashlib.md5(joined.encode('utf-8')).hexdigest()}"
