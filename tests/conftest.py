"""Pytest configuration and shared fixtures."""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import pytest

from intermodal.envelope import Envelope
from intermodal.manifest import Manifest

FIXTURES_DIR = Path(__file__).parent / "fixtures"


@pytest.fixture
def fixtures_dir() -> Path:
    """Directory holding sample wire files."""
    return FIXTURES_DIR


@pytest.fixture
def make_manifest() -> Callable[..., Manifest]:
    """Factory for valid manifests; keyword overrides replace single fields."""

    def _make(**overrides: Any) -> Manifest:
        fields: dict[str, Any] = {
            "domain": "example.org",
            "scope": "metrics/applications/some-app",
            "kind": "useractions",
            "version": 2,
            "origin": "some-app-03.example.org",
            "ctime": datetime(2020, 8, 25, 14, 41, 40, tzinfo=UTC),
            "labels": {"app-version": "2.3.1"},
        }
        fields.update(overrides)
        return Manifest(**fields)

    return _make


@pytest.fixture
def make_envelope(
    make_manifest: Callable[..., Manifest],
) -> Callable[..., Envelope]:
    """Factory for valid envelopes with optional content and manifest overrides."""

    def _make(content: Any = None, **manifest_overrides: Any) -> Envelope:
        if content is None:
            content = {"clicks": 3, "pages": ["home", "cart"]}
        return Envelope(manifest=make_manifest(**manifest_overrides), content=content)

    return _make
