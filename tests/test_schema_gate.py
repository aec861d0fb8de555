"""Tests for manifest schema validation."""

import json
from datetime import datetime, timezone

import pytest

from conftest import SCHEMA_PATH
from divicatalog.models.catalog import Manifest, Page, Pack
from divicatalog.models.config import ConfigError
from divicatalog.services.publisher import build_manifest
from divicatalog.services.schema_gate import (
    SchemaValidationError,
    load_schema,
    validate_manifest,
    validate_manifest_file,
)


@pytest.fixture
def schema():
    return load_schema(SCHEMA_PATH)


def _manifest(config, thumbnail="https://cdn.example/thumbs/business/consulting-home-page.webp") -> dict:
    url = "https://site/layouts/business/consulting-home-page"
    pack = Pack(
        pack_id="consulting",
        pack_name="Consulting",
        category="business",
        pages=[
            Page(
                page_name="Home",
                layout_slug="consulting-home-page",
                demo_url=url + "/live-demo",
                layout_url=url,
                thumbnail=thumbnail,
            )
        ],
    )
    now = datetime(2026, 10, 19, tzinfo=timezone.utc)
    return build_manifest(Manifest(), [pack], config, now).to_json_dict()


class TestValidateManifest:
    def test_built_manifest_is_valid(self, config, schema):
        validate_manifest(_manifest(config), schema)

    def test_empty_catalog_is_valid(self, schema):
        validate_manifest({"schema": "1.2", "generated_at": "2026-10-19T00:00:00Z", "items": []}, schema)

    def test_relative_thumbnail_is_rejected(self, config, schema):
        data = _manifest(config)
        data["items"][0]["pages"][0]["thumbnail"] = "thumbs/business/consulting-home-page.webp"

        with pytest.raises(SchemaValidationError) as excinfo:
            validate_manifest(data, schema)

        assert excinfo.value.describe()[0].startswith("/items/0/pages/0/thumbnail:")

    def test_pack_without_pages_is_rejected(self, config, schema):
        data = _manifest(config)
        data["items"][0]["pages"] = []
        with pytest.raises(SchemaValidationError):
            validate_manifest(data, schema)

    def test_every_violation_is_reported(self, config, schema):
        data = _manifest(config)
        del data["generated_at"]
        del data["items"][0]["pack_name"]

        with pytest.raises(SchemaValidationError) as excinfo:
            validate_manifest(data, schema)

        assert len(excinfo.value.errors) == 2


class TestLoadSchema:
    def test_missing_schema(self, tmp_path):
        with pytest.raises(ConfigError):
            load_schema(tmp_path / "nope.json")

    def test_schema_that_is_not_json(self, tmp_path):
        path = tmp_path / "schema.json"
        path.write_text("not json")
        with pytest.raises(ConfigError):
            load_schema(path)

    def test_invalid_schema(self, tmp_path):
        path = tmp_path / "schema.json"
        path.write_text(json.dumps({"type": 12}))
        with pytest.raises(ConfigError):
            load_schema(path)


def test_validate_manifest_file(config, tmp_path):
    path = tmp_path / "manifest.json"
    path.write_text(json.dumps(_manifest(config)))
    validate_manifest_file(path, SCHEMA_PATH)
