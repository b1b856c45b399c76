"""Manifest schema: identifying metadata carried by every envelope."""

from __future__ import annotations

import re
from collections.abc import Mapping
from datetime import datetime
from typing import Any

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationInfo,
    field_validator,
    model_validator,
)

from intermodal.errors import (
    EmptyFieldError,
    InvalidDomainError,
    TypeMismatchError,
    describe,
)
from intermodal.timestamps import ensure_utc, format_rfc3339_utc, parse_rfc3339

MAX_DOMAIN_LENGTH = 253
_DNS_LABEL_RE = re.compile(r"(?!-)[A-Za-z0-9-]{1,63}(?<!-)")

MANIFEST_FIELDS = ("domain", "scope", "kind", "version", "origin", "ctime", "labels")
REQUIRED_FIELDS = MANIFEST_FIELDS[:-1]


def validate_domain(domain: str) -> str:
    """Check DNS hostname syntax of a manifest domain.

    Args:
        domain: Candidate domain, e.g. ``example.org``.

    Returns:
        The domain unchanged.

    Raises:
        InvalidDomainError: If any label or the total length is invalid.
    """
    if len(domain) > MAX_DOMAIN_LENGTH:
        raise InvalidDomainError(
            (
                f"manifest.domain: exceeds {MAX_DOMAIN_LENGTH} characters "
                f"({len(domain)}), got {describe(domain)}"
            ),
            field="manifest.domain",
            value=domain,
        )
    for label in domain.split("."):
        if _DNS_LABEL_RE.fullmatch(label) is None:
            raise InvalidDomainError(
                f"manifest.domain: invalid DNS label {label!r} in {describe(domain)}",
                field="manifest.domain",
                value=domain,
            )
    return domain


def _require_text(name: str, value: object) -> str:
    """Return value when it is a non-blank string."""
    if not isinstance(value, str):
        raise TypeMismatchError(
            f"manifest.{name}: expected a string, got {describe(value)}",
            field=f"manifest.{name}",
            value=value,
        )
    if not value.strip():
        raise EmptyFieldError(
            f"manifest.{name}: must not be empty, got {describe(value)}",
            field=f"manifest.{name}",
            value=value,
        )
    return value


class Manifest(BaseModel):
    """Metadata describing an envelope's content.

    Identifies the schema of the content (``domain``/``scope``/``kind``/
    ``version``), where it came from (``origin``) and when the message was
    created (``ctime``, UTC). ``labels`` carry arbitrary informational
    key/value strings and are never interpreted here.
    """

    model_config = ConfigDict(frozen=True)

    domain: str
    scope: str
    kind: str
    version: int
    origin: str
    ctime: datetime
    labels: dict[str, str] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _check_fields(cls, data: Any) -> Any:
        if not isinstance(data, Mapping):
            raise TypeMismatchError(
                f"manifest: expected a mapping, got {describe(data)}",
                field="manifest",
                value=data,
            )
        unknown = sorted(set(data) - set(MANIFEST_FIELDS))
        if unknown:
            raise TypeMismatchError(
                f"manifest: unknown fields {unknown}",
                field=f"manifest.{unknown[0]}",
                value=data[unknown[0]],
            )
        for name in REQUIRED_FIELDS:
            if name not in data:
                raise EmptyFieldError(
                    f"manifest.{name}: required field is missing",
                    field=f"manifest.{name}",
                )
        return data

    @field_validator("domain", mode="before")
    @classmethod
    def _check_domain(cls, value: object) -> str:
        return validate_domain(_require_text("domain", value))

    @field_validator("scope", "kind", "origin", mode="before")
    @classmethod
    def _check_text(cls, value: object, info: ValidationInfo) -> str:
        return _require_text(str(info.field_name), value)

    @field_validator("version", mode="before")
    @classmethod
    def _check_version(cls, value: object) -> int:
        if isinstance(value, bool) or not isinstance(value, int) or value < 0:
            raise TypeMismatchError(
                (
                    "manifest.version: expected a non-negative integer, "
                    f"got {describe(value)}"
                ),
                field="manifest.version",
                value=value,
            )
        return value

    @field_validator("ctime", mode="before")
    @classmethod
    def _check_ctime(cls, value: object) -> datetime:
        if isinstance(value, datetime):
            return ensure_utc(value)
        if isinstance(value, str):
            return parse_rfc3339(value)
        raise TypeMismatchError(
            f"manifest.ctime: expected an RFC 3339 timestamp, got {describe(value)}",
            field="manifest.ctime",
            value=value,
        )

    @field_validator("labels", mode="before")
    @classmethod
    def _check_labels(cls, value: object) -> dict[str, str]:
        if value is None:
            return {}
        if not isinstance(value, Mapping):
            raise TypeMismatchError(
                f"manifest.labels: expected a mapping, got {describe(value)}",
                field="manifest.labels",
                value=value,
            )
        labels: dict[str, str] = {}
        for key, item in value.items():
            if not isinstance(key, str) or not isinstance(item, str):
                raise TypeMismatchError(
                    (
                        "manifest.labels: keys and values must be strings, "
                        f"got {describe(key)}: {describe(item)}"
                    ),
                    field=f"manifest.labels.{key}",
                    value=item,
                )
            labels[key] = item
        return labels

    def __hash__(self) -> int:
        return hash(
            (
                self.domain,
                self.scope,
                self.kind,
                self.version,
                self.origin,
                self.ctime,
                frozenset(self.labels.items()),
            )
        )

    def label(self, key: str, default: str | None = None) -> str | None:
        """Return one label value, or ``default`` when the key is absent."""
        return self.labels.get(key, default)

    def to_wire(self) -> dict[str, Any]:
        """Serialize in wire order; empty labels are omitted.

        Returns:
            Ordered mapping with ``ctime`` rendered as RFC 3339 UTC text and
            labels sorted by key.
        """
        wire: dict[str, Any] = {
            "domain": self.domain,
            "scope": self.scope,
            "kind": self.kind,
            "version": self.version,
            "origin": self.origin,
            "ctime": format_rfc3339_utc(self.ctime),
        }
        if self.labels:
            wire["labels"] = {key: self.labels[key] for key in sorted(self.labels)}
        return wire
