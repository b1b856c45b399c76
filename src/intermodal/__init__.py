"""Intermodal: self-describing data envelopes (manifest + content)."""

from intermodal.codec import (
    BOUNDARY,
    Block,
    decode,
    decode_header,
    decode_json,
    encode,
    encode_json,
)
from intermodal.config import (
    ConfigError,
    IntermodalConfig,
    RenderSettings,
    StreamSettings,
    load_config,
)
from intermodal.content import Content, ContentKind, content_kind, to_content
from intermodal.envelope import Envelope, Header
from intermodal.errors import (
    BlockSyntaxError,
    EmptyFieldError,
    EnvelopeError,
    EnvelopeErrorCode,
    InvalidDomainError,
    InvalidTimestampError,
    MalformedBlockError,
    TypeMismatchError,
)
from intermodal.manifest import Manifest, validate_domain
from intermodal.stream import (
    BlockReader,
    BlockWriter,
    DecodeResult,
    decode_stream,
    dump_stream,
    load_envelopes,
    split_blocks,
)
from intermodal.timestamps import format_rfc3339_utc, parse_rfc3339

__all__ = [
    "BOUNDARY",
    "Block",
    "BlockReader",
    "BlockSyntaxError",
    "BlockWriter",
    "ConfigError",
    "Content",
    "ContentKind",
    "DecodeResult",
    "EmptyFieldError",
    "Envelope",
    "EnvelopeError",
    "EnvelopeErrorCode",
    "Header",
    "IntermodalConfig",
    "InvalidDomainError",
    "InvalidTimestampError",
    "MalformedBlockError",
    "Manifest",
    "RenderSettings",
    "StreamSettings",
    "TypeMismatchError",
    "content_kind",
    "decode",
    "decode_header",
    "decode_json",
    "decode_stream",
    "dump_stream",
    "encode",
    "encode_json",
    "format_rfc3339_utc",
    "load_config",
    "load_envelopes",
    "parse_rfc3339",
    "split_blocks",
    "to_content",
    "validate_domain",
]
