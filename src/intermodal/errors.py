"""Deterministic envelope error contracts."""

from __future__ import annotations

from enum import StrEnum


class EnvelopeErrorCode(StrEnum):
    """Stable envelope validation and decode error codes."""

    EMPTY_FIELD = "empty_field"
    INVALID_DOMAIN = "invalid_domain"
    INVALID_TIMESTAMP = "invalid_timestamp"
    TYPE_MISMATCH = "type_mismatch"
    MALFORMED_BLOCK = "malformed_block"
    SYNTAX_ERROR = "syntax_error"


class EnvelopeError(RuntimeError):
    """Envelope failure with stable deterministic code.

    Deliberately not a ``ValueError``: pydantic re-raises anything else from a
    validator unchanged, so construction errors keep their concrete type.
    """

    code: EnvelopeErrorCode

    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
        value: object = None,
    ) -> None:
        """Create envelope failure.

        Args:
            message: Human-readable error message.
            field: Dotted path of the offending field, when known.
            value: Received value that failed validation.
        """
        super().__init__(message)
        self.field = field
        self.value = value


class EmptyFieldError(EnvelopeError):
    """Required manifest field is missing or empty."""

    code = EnvelopeErrorCode.EMPTY_FIELD


class InvalidDomainError(EnvelopeError):
    """Manifest domain is not a valid DNS name."""

    code = EnvelopeErrorCode.INVALID_DOMAIN


class InvalidTimestampError(EnvelopeError):
    """Manifest ctime is not a representable point in time."""

    code = EnvelopeErrorCode.INVALID_TIMESTAMP


class TypeMismatchError(EnvelopeError):
    """A field or content value has the wrong shape."""

    code = EnvelopeErrorCode.TYPE_MISMATCH


class MalformedBlockError(EnvelopeError):
    """Block lacks a manifest/content section or a section is not a mapping."""

    code = EnvelopeErrorCode.MALFORMED_BLOCK


class BlockSyntaxError(EnvelopeError):
    """Block text is not parseable structured data."""

    code = EnvelopeErrorCode.SYNTAX_ERROR


def describe(value: object) -> str:
    """Render a received value for error messages.

    Args:
        value: Offending value.

    Returns:
        ``repr`` of the value with its type name.
    """
    text = repr(value)
    if len(text) > 80:
        text = f"{text[:77]}..."
    return f"{text} ({type(value).__name__})"
