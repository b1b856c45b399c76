"""Opaque envelope content: validation, normalization and kind tagging."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from enum import StrEnum
from typing import TypeAlias

from intermodal.errors import TypeMismatchError, describe

# Recursive content value. Sequences are stored as lists and mappings as dicts
# whose insertion order is the order reported by the parser or the producer.
Content: TypeAlias = (
    "dict[str, Content] | list[Content] | str | int | float | bool | None"
)

# Read-only view accepted on input: covariant Mapping/Sequence so tuples and
# other mapping types are accepted and copied into plain containers.
ContentInput: TypeAlias = (
    "Mapping[str, ContentInput]"
    " | Sequence[ContentInput]"
    " | str"
    " | int"
    " | float"
    " | bool"
    " | None"
)


class ContentKind(StrEnum):
    """Tagged variant of a content value."""

    NULL = "null"
    BOOL = "bool"
    NUMBER = "number"
    STRING = "string"
    SEQUENCE = "sequence"
    MAPPING = "mapping"


def content_kind(value: Content) -> ContentKind:
    """Classify a normalized content value.

    Args:
        value: Content value.

    Returns:
        Matching content kind.

    Raises:
        TypeMismatchError: If value is not a content value.
    """
    if value is None:
        return ContentKind.NULL
    # bool before int: bool is an int subclass.
    if isinstance(value, bool):
        return ContentKind.BOOL
    if isinstance(value, (int, float)):
        return ContentKind.NUMBER
    if isinstance(value, str):
        return ContentKind.STRING
    if isinstance(value, list):
        return ContentKind.SEQUENCE
    if isinstance(value, dict):
        return ContentKind.MAPPING
    raise TypeMismatchError(
        f"content: unsupported value {describe(value)}",
        field="content",
        value=value,
    )


def to_content(value: object, *, path: str = "content") -> Content:
    """Validate and deep-copy a value into normalized content.

    Args:
        value: Candidate content value.
        path: Field path used in error messages.

    Returns:
        Normalized copy built from dicts, lists and scalars.

    Raises:
        TypeMismatchError: On unsupported types, non-string mapping keys or
            containers that contain themselves.
    """
    return _normalize(value, path, set())


def _normalize(value: object, path: str, ancestors: set[int]) -> Content:
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if not isinstance(value, (Mapping, list, tuple)):
        raise TypeMismatchError(
            f"{path}: unsupported content value {describe(value)}",
            field=path,
            value=value,
        )
    # Aliased containers may repeat, but never inside themselves.
    if id(value) in ancestors:
        raise TypeMismatchError(
            f"{path}: recursive content value",
            field=path,
            value=value,
        )
    ancestors.add(id(value))
    try:
        if isinstance(value, Mapping):
            normalized: dict[str, Content] = {}
            for key, item in value.items():
                if not isinstance(key, str):
                    raise TypeMismatchError(
                        f"{path}: mapping keys must be strings, "
                        f"got {describe(key)}",
                        field=path,
                        value=key,
                    )
                normalized[key] = _normalize(item, f"{path}.{key}", ancestors)
            return normalized
        return [
            _normalize(item, f"{path}[{idx}]", ancestors)
            for idx, item in enumerate(value)
        ]
    finally:
        ancestors.discard(id(value))
