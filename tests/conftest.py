"""
Test configuration and fixtures for the GenVR MCP server tests.

This file provides the sample catalog and schema cache on disk, settings
with credentials, a recording fake sleep and a scripted GenVR API served
through ``httpx.MockTransport``.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict

import httpx
import pytest

from genvr_mcp.config import get_settings
from genvr_mcp.mcp.dispatcher import get_dispatcher
from tests._helpers import TEST_ACCESS_TOKEN, TEST_API_BASE, TEST_USER_ID, GenVRStub, RecordingSleep

SAMPLE_CATALOG = {
    "curatedModels": [
        {"category": "imagegen", "subcategory": "flux_dev", "description": "FLUX dev text-to-image"},
        {"category": "imagegen", "subcategory": "sdxl"},
        {"category": "videogen", "subcategory": "kling_v1_6"},
        {"category": "audiogen", "subcategory": "musicgen", "description": "Music from text"},
    ]
}

SAMPLE_SCHEMAS = {
    "imagegen/flux_dev": {
        "schema": {
            "properties": {
                "category_genvr": {"type": "string"},
                "subcategory_genvr": {"type": "string"},
                "prompt": {"type": "string", "description": "Text prompt"},
                "aspect_ratio": {"type": "string", "enum": ["1:1", "16:9"], "default": "1:1"},
                "steps": {"type": "integer", "minimum": 1, "maximum": 50, "default": 28},
                "seed": {"type": "integer", "display": "hidden"},
            },
            "required": ["prompt"],
        },
        "description": "FLUX.1 dev",
    },
    "audiogen/musicgen": {
        "properties": {
            "prompt": {"type": "string"},
            "duration": {"type": "number", "minimum": 1, "maximum": 30},
            "uid": {"type": "string"},
            "token": {"type": "string"},
        },
        "required": ["prompt", "duration"],
    },
}


@pytest.fixture
def sample_catalog() -> Dict[str, Any]:
    return json.loads(json.dumps(SAMPLE_CATALOG))


@pytest.fixture
def sample_schemas() -> Dict[str, Any]:
    return json.loads(json.dumps(SAMPLE_SCHEMAS))


@pytest.fixture
def data_files(tmp_path: Path, sample_catalog, sample_schemas):
    catalog_path = tmp_path / "curated-models.json"
    schemas_path = tmp_path / "schemas-cache.json"
    catalog_path.write_text(json.dumps(sample_catalog), encoding="utf-8")
    schemas_path.write_text(json.dumps(sample_schemas), encoding="utf-8")
    return catalog_path, schemas_path


@pytest.fixture(autouse=True)
def test_settings(monkeypatch, data_files):
    """Fresh settings per test: credentials set, sample data, no .env pickup."""
    catalog_path, schemas_path = data_files
    monkeypatch.chdir(catalog_path.parent)
    monkeypatch.setenv("GENVR_API_BASE", TEST_API_BASE)
    monkeypatch.setenv("GENVR_USER_ID", TEST_USER_ID)
    monkeypatch.setenv("GENVR_ACCESS_TOKEN", TEST_ACCESS_TOKEN)
    monkeypatch.setenv("GENVR_CATALOG_PATH", str(catalog_path))
    monkeypatch.setenv("GENVR_SCHEMAS_PATH", str(schemas_path))
    monkeypatch.delenv("DEBUG", raising=False)
    get_settings.cache_clear()
    get_dispatcher.cache_clear()
    yield get_settings()
    get_settings.cache_clear()
    get_dispatcher.cache_clear()


@pytest.fixture
def fake_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def genvr_stub() -> GenVRStub:
    return GenVRStub()


@pytest.fixture
def mock_transport(genvr_stub) -> httpx.MockTransport:
    return httpx.MockTransport(genvr_stub)
