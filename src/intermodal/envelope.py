"""Envelope and Header: manifest-wrapped content (pure data, no IO)."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, JsonValue, field_validator

from intermodal.content import Content, to_content
from intermodal.manifest import Manifest


class Header(BaseModel):
    """An envelope reduced to its manifest.

    Every block that decodes to an ``Envelope`` also decodes to a ``Header``.
    Generic handlers read headers first and use the manifest to pick a more
    precise interpretation of the content.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    manifest: Manifest

    @classmethod
    def from_envelope(cls, envelope: Envelope) -> Header:
        """Drop the content of an envelope."""
        return cls(manifest=envelope.manifest)


class Envelope(BaseModel):
    """Manifest plus opaque content. Equality is structural over both."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    manifest: Manifest
    content: JsonValue

    @field_validator("content", mode="before")
    @classmethod
    def _check_content(cls, value: Any) -> Content:
        return to_content(value)

    @property
    def header(self) -> Header:
        """Manifest-only view of this envelope."""
        return Header(manifest=self.manifest)

    @classmethod
    def from_header(cls, header: Header, content: object) -> Envelope:
        """Create an envelope from a decoded header and its content.

        Args:
            header: Previously decoded header.
            content: Content value to attach.

        Returns:
            Validated envelope.
        """
        return cls(manifest=header.manifest, content=content)
