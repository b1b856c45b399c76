"""Manifest construction and field validation."""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime

import pytest

from intermodal.errors import (
    EmptyFieldError,
    EnvelopeErrorCode,
    InvalidDomainError,
    InvalidTimestampError,
    TypeMismatchError,
)
from intermodal.manifest import Manifest, validate_domain

MakeManifest = Callable[..., Manifest]


def test_manifest_fields(make_manifest: MakeManifest) -> None:
    """Valid manifest keeps every field as given."""
    manifest = make_manifest()
    assert manifest.domain == "example.org"
    assert manifest.scope == "metrics/applications/some-app"
    assert manifest.kind == "useractions"
    assert manifest.version == 2
    assert manifest.origin == "some-app-03.example.org"
    assert manifest.ctime == datetime(2020, 8, 25, 14, 41, 40, tzinfo=UTC)
    assert manifest.labels == {"app-version": "2.3.1"}


def test_manifest_accepts_ctime_text(make_manifest: MakeManifest) -> None:
    """ctime may be given as RFC 3339 text."""
    manifest = make_manifest(ctime="2020-08-25T16:02:20Z")
    assert manifest.ctime == datetime(2020, 8, 25, 16, 2, 20, tzinfo=UTC)


@pytest.mark.parametrize("domain", ["foo.org", "a", "x-1.example.org", "EXAMPLE.org"])
def test_domain_accepted(domain: str) -> None:
    """DNS-shaped names are accepted."""
    assert validate_domain(domain) == domain


@pytest.mark.parametrize(
    "domain",
    [
        "-bad.org",
        "bad-.org",
        "foo..org",
        ".foo.org",
        "foo.org.",
        "under_score.org",
        "sp ace.org",
        "example.org\n",
        "foo\n.org",
        f"{'a' * 64}.org",
        ".".join(["a" * 59] * 5),
    ],
)
def test_domain_rejected(make_manifest: MakeManifest, domain: str) -> None:
    """Bad labels, empty labels and over-long names raise InvalidDomain."""
    with pytest.raises(InvalidDomainError) as excinfo:
        make_manifest(domain=domain)
    assert excinfo.value.code == EnvelopeErrorCode.INVALID_DOMAIN
    assert excinfo.value.field == "manifest.domain"
    assert excinfo.value.value == domain


def test_domain_three_hundred_characters_rejected() -> None:
    """A 300-character name exceeds the total length limit."""
    with pytest.raises(InvalidDomainError, match="exceeds 253"):
        validate_domain("a" * 300)


@pytest.mark.parametrize("name", ["domain", "scope", "kind", "origin"])
@pytest.mark.parametrize("value", ["", "   "])
def test_empty_text_fields_rejected(
    make_manifest: MakeManifest, name: str, value: str
) -> None:
    """Empty required strings raise EmptyField naming the field."""
    with pytest.raises(EmptyFieldError) as excinfo:
        make_manifest(**{name: value})
    assert excinfo.value.field == f"manifest.{name}"
    assert repr(value) in str(excinfo.value)


def test_missing_field_rejected() -> None:
    """A missing required field is reported as empty."""
    with pytest.raises(EmptyFieldError, match="manifest.origin"):
        Manifest(
            domain="example.org",
            scope="s",
            kind="k",
            version=1,
            ctime="2020-08-25T16:02:20Z",
        )


def test_unknown_field_rejected(make_manifest: MakeManifest) -> None:
    """Construction rejects fields outside the manifest schema."""
    with pytest.raises(TypeMismatchError, match="unknown fields"):
        make_manifest(schema="nope")


@pytest.mark.parametrize("version", ["1", 1.0, -1, True, None])
def test_version_type_mismatch(make_manifest: MakeManifest, version: object) -> None:
    """Version must be a non-negative integer (bool excluded)."""
    with pytest.raises(TypeMismatchError) as excinfo:
        make_manifest(version=version)
    assert excinfo.value.field == "manifest.version"
    assert excinfo.value.value == version


def test_version_zero_and_large_accepted(make_manifest: MakeManifest) -> None:
    """Version zero is legal and there is no upper bound."""
    assert make_manifest(version=0).version == 0
    assert make_manifest(version=2**70).version == 2**70


@pytest.mark.parametrize("name", ["scope", "kind", "origin"])
def test_text_field_type_mismatch(make_manifest: MakeManifest, name: str) -> None:
    """Non-string text fields raise TypeMismatch."""
    with pytest.raises(TypeMismatchError, match=f"manifest.{name}"):
        make_manifest(**{name: 42})


def test_invalid_ctime(make_manifest: MakeManifest) -> None:
    """Unparseable or naive timestamps raise InvalidTimestamp."""
    with pytest.raises(InvalidTimestampError):
        make_manifest(ctime="not a time")
    with pytest.raises(InvalidTimestampError):
        make_manifest(ctime=datetime(2020, 8, 25, 16, 2, 20))
    with pytest.raises(TypeMismatchError):
        make_manifest(ctime=1598371340)


def test_labels_must_be_strings(make_manifest: MakeManifest) -> None:
    """Label keys and values must both be strings."""
    with pytest.raises(TypeMismatchError, match="manifest.labels"):
        make_manifest(labels={"sequence": 0})
    with pytest.raises(TypeMismatchError, match="manifest.labels"):
        make_manifest(labels=["a"])


def test_labels_default_empty_and_lookup(make_manifest: MakeManifest) -> None:
    """Missing labels default to empty; absent keys return the default."""
    manifest = make_manifest(labels=None)
    assert manifest.labels == {}
    assert manifest.label("missing") is None
    assert manifest.label("missing", "fallback") == "fallback"
    assert make_manifest().label("app-version") == "2.3.1"


def test_equality_and_hash_treat_labels_as_set(make_manifest: MakeManifest) -> None:
    """Label insertion order does not affect equality or hashing."""
    first = make_manifest(labels={"a": "1", "b": "2"})
    second = make_manifest(labels={"b": "2", "a": "1"})
    assert first == second
    assert hash(first) == hash(second)
    assert len({first, second}) == 1
    assert first != make_manifest(labels={"a": "1"})


def test_manifest_is_frozen(make_manifest: MakeManifest) -> None:
    """Manifests are immutable value objects."""
    manifest = make_manifest()
    with pytest.raises(ValueError, match="frozen"):
        manifest.kind = "other"  # type: ignore[misc]


def test_to_wire_order_and_label_omission(make_manifest: MakeManifest) -> None:
    """Wire form uses fixed key order and drops empty labels."""
    wire = make_manifest(labels={"z": "1", "a": "2"}).to_wire()
    assert list(wire) == [
        "domain",
        "scope",
        "kind",
        "version",
        "origin",
        "ctime",
        "labels",
    ]
    assert list(wire["labels"]) == ["a", "z"]
    assert wire["ctime"] == "2020-08-25T14:41:40Z"
    assert "labels" not in make_manifest(labels={}).to_wire()
