"""Envelope block codec: YAML (wire) and JSON renderings of one envelope."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any

import yaml

from intermodal.config import RenderSettings
from intermodal.envelope import Envelope, Header
from intermodal.errors import (
    BlockSyntaxError,
    MalformedBlockError,
    TypeMismatchError,
    describe,
)
from intermodal.manifest import MANIFEST_FIELDS, Manifest

_LOGGER = logging.getLogger(__name__)

BOUNDARY = "---"
SECTIONS = ("manifest", "content")
_NULL_TAG = "tag:yaml.org,2002:null"
_TIMESTAMP_TAG = "tag:yaml.org,2002:timestamp"


@dataclass(frozen=True)
class Block:
    """One serialized manifest+content unit, prior to decoding.

    ``index`` is the 0-based position of the block in its stream and ``line``
    the 1-based source line the block starts on.
    """

    text: str
    index: int = 0
    line: int = 1


class _BlockLoader(yaml.SafeLoader):
    """Safe loader that keeps timestamp-looking scalars as strings."""


_BlockLoader.yaml_implicit_resolvers = {
    first: [(tag, regexp) for tag, regexp in resolvers if tag != _TIMESTAMP_TAG]
    for first, resolvers in yaml.SafeLoader.yaml_implicit_resolvers.items()
}


class _WireTimestamp(str):
    """Manifest ctime text, rendered as a plain YAML timestamp scalar."""


class _BlockDumper(yaml.SafeDumper):
    """Safe dumper emitting no anchors and plain ctime timestamps."""

    def ignore_aliases(self, data: Any) -> bool:
        del data
        return True


def _represent_timestamp(dumper: yaml.SafeDumper, data: _WireTimestamp) -> yaml.Node:
    return dumper.represent_scalar(_TIMESTAMP_TAG, str(data))


_BlockDumper.add_representer(_WireTimestamp, _represent_timestamp)


def _block_text(block: Block | str) -> str:
    return block.text if isinstance(block, Block) else block


def _check_decodable(text: str) -> None:
    """Reject text holding bytes the stream encoding could not decode.

    Readers decode with ``surrogateescape``, so undecodable bytes arrive as
    lone surrogates and fail here rather than aborting the whole stream.

    Raises:
        BlockSyntaxError: If text contains an escaped (undecodable) byte.
    """
    try:
        text.encode("utf-8")
    except UnicodeEncodeError as exc:
        raise BlockSyntaxError(
            f"block: undecodable input at character {exc.start}",
            field="block",
            value=text[exc.start : exc.end],
        ) from exc


def _load_yaml(text: str) -> tuple[Any, yaml.Node | None]:
    """Parse one YAML document, keeping the composed node tree.

    Args:
        text: Block text.

    Returns:
        Constructed data and the root node (``None`` for an empty document).

    Raises:
        BlockSyntaxError: If text is not a single well-formed YAML document.
    """
    _check_decodable(text)
    try:
        # The reader rejects non-printable characters on construction.
        loader = _BlockLoader(text)
    except yaml.YAMLError as exc:
        raise BlockSyntaxError(
            f"block: invalid YAML: {exc}", field="block", value=text
        ) from exc
    try:
        node = loader.get_single_node()
        data = loader.construct_document(node) if node is not None else None
    except yaml.YAMLError as exc:
        raise BlockSyntaxError(
            f"block: invalid YAML: {exc}", field="block", value=text
        ) from exc
    finally:
        loader.dispose()
    return data, node


def _mapping_child(node: yaml.Node | None, key: str) -> yaml.Node | None:
    """Return the value node stored under a scalar key (last one wins)."""
    if not isinstance(node, yaml.MappingNode):
        return None
    found = None
    for key_node, value_node in node.value:
        if isinstance(key_node, yaml.ScalarNode) and key_node.value == key:
            found = value_node
    return found


def _raw_labels(root: yaml.Node | None) -> dict[str, str] | None:
    """Read labels from raw scalar text so ``sequence: 0`` stays ``"0"``.

    Args:
        root: Root node of the block.

    Returns:
        Label mapping, or ``None`` when labels are absent or not a mapping.

    Raises:
        TypeMismatchError: If a label key or value is not a plain scalar.
    """
    labels_node = _mapping_child(_mapping_child(root, "manifest"), "labels")
    if not isinstance(labels_node, yaml.MappingNode):
        return None
    labels: dict[str, str] = {}
    for key_node, value_node in labels_node.value:
        if (
            not isinstance(key_node, yaml.ScalarNode)
            or not isinstance(value_node, yaml.ScalarNode)
            or value_node.tag == _NULL_TAG
        ):
            raise TypeMismatchError(
                (
                    "manifest.labels: keys and values must be strings, "
                    f"got {key_node.tag} -> {value_node.tag}"
                ),
                field="manifest.labels",
                value=getattr(value_node, "value", None),
            )
        labels[key_node.value] = value_node.value
    return labels


def _split_sections(data: Any, *, require_content: bool) -> dict[str, Any]:
    """Check block shape and return its top-level sections.

    Raises:
        MalformedBlockError: If a section is missing, unexpected keys exist,
            or the manifest section is not a mapping.
    """
    if not isinstance(data, dict):
        raise MalformedBlockError(
            (
                "block: expected a mapping of manifest and content, "
                f"got {describe(data)}"
            ),
            field="block",
            value=data,
        )
    required = SECTIONS if require_content else SECTIONS[:1]
    missing = [name for name in required if name not in data]
    if missing:
        raise MalformedBlockError(
            f"block: missing {' and '.join(missing)} section",
            field=missing[0],
            value=sorted(map(str, data)),
        )
    unexpected = [key for key in data if key not in SECTIONS]
    if unexpected:
        raise MalformedBlockError(
            f"block: unexpected top-level keys {unexpected}",
            field=str(unexpected[0]),
            value=data[unexpected[0]],
        )
    if not isinstance(data["manifest"], dict):
        raise MalformedBlockError(
            f"manifest: expected a mapping, got {describe(data['manifest'])}",
            field="manifest",
            value=data["manifest"],
        )
    return data


def _build_manifest(fields: dict[str, Any]) -> Manifest:
    """Validate a decoded manifest section, ignoring unknown keys."""
    ignored = [key for key in fields if key not in MANIFEST_FIELDS]
    if ignored:
        _LOGGER.debug("Ignoring unknown manifest keys: %s", ignored)
    return Manifest.model_validate(
        {key: value for key, value in fields.items() if key in MANIFEST_FIELDS}
    )


def _decode_manifest(text: str, *, require_content: bool) -> tuple[Manifest, Any]:
    data, root = _load_yaml(text)
    sections = _split_sections(data, require_content=require_content)
    fields = dict(sections["manifest"])
    labels = _raw_labels(root)
    if labels is not None:
        fields["labels"] = labels
    return _build_manifest(fields), sections.get("content")


def encode(envelope: Envelope, settings: RenderSettings | None = None) -> str:
    """Serialize one envelope to a YAML block.

    Output is deterministic: manifest keys follow the wire order, labels are
    sorted and omitted when empty, content keeps its own mapping order.

    Args:
        envelope: Envelope to serialize.
        settings: Optional render settings.

    Returns:
        Block text ending with a newline.
    """
    settings = settings or RenderSettings()
    manifest = envelope.manifest.to_wire()
    manifest["ctime"] = _WireTimestamp(manifest["ctime"])
    return yaml.dump(
        {"manifest": manifest, "content": envelope.content},
        Dumper=_BlockDumper,
        sort_keys=False,
        default_flow_style=False,
        allow_unicode=settings.allow_unicode,
        indent=settings.indent,
        width=settings.width,
    )


def decode(block: Block | str) -> Envelope:
    """Parse and validate one YAML block.

    Args:
        block: Block from a stream reader, or raw block text.

    Returns:
        Validated envelope.

    Raises:
        BlockSyntaxError: If the block is not parseable YAML.
        MalformedBlockError: If the manifest or content section is missing.
        EnvelopeError: Any manifest or content validation failure.
    """
    manifest, content = _decode_manifest(_block_text(block), require_content=True)
    return Envelope(manifest=manifest, content=content)


def decode_header(block: Block | str) -> Header:
    """Parse and validate only the manifest of one YAML block.

    The content section may be absent; when present it is not validated.

    Args:
        block: Block from a stream reader, or raw block text.

    Returns:
        Validated header.
    """
    manifest, _ = _decode_manifest(_block_text(block), require_content=False)
    return Header(manifest=manifest)


def encode_json(envelope: Envelope, settings: RenderSettings | None = None) -> str:
    """Serialize one envelope to JSON with the same key order as YAML.

    Args:
        envelope: Envelope to serialize.
        settings: Optional render settings (indent, unicode).

    Returns:
        JSON text ending with a newline.
    """
    settings = settings or RenderSettings()
    payload = {"manifest": envelope.manifest.to_wire(), "content": envelope.content}
    raw = json.dumps(
        payload,
        indent=settings.indent,
        ensure_ascii=not settings.allow_unicode,
    )
    return f"{raw}\n"


def decode_json(text: str) -> Envelope:
    """Parse and validate one JSON-rendered envelope.

    Args:
        text: JSON document.

    Returns:
        Validated envelope.

    Raises:
        BlockSyntaxError: If text is not valid JSON.
    """
    _check_decodable(text)
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise BlockSyntaxError(
            f"block: invalid JSON: {exc}", field="block", value=text
        ) from exc
    sections = _split_sections(data, require_content=True)
    manifest = _build_manifest(dict(sections["manifest"]))
    return Envelope(manifest=manifest, content=sections["content"])
