"""Tests for the command-line entry point and its exit codes."""

import json

import pytest
from typer.testing import CliRunner

from conftest import SCHEMA_PATH
from divicatalog import main as cli
from divicatalog.models.catalog import Page, Pack
from divicatalog.services.artifacts import write_discovered

runner = CliRunner()


@pytest.fixture(autouse=True)
def _quiet_logging(monkeypatch):
    monkeypatch.setattr(cli, "configure_logging", lambda *args, **kwargs: None)


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(
        json.dumps(
            {
                "sitemapUrl": None,
                "paths": {
                    "dataDir": str(tmp_path / "data"),
                    "distDir": str(tmp_path / "dist"),
                    "cacheDir": str(tmp_path / "cache"),
                    "schemaPath": str(SCHEMA_PATH),
                },
            }
        )
    )
    return path


def _invoke(*args):
    return runner.invoke(cli.app, list(args))


def test_no_command_is_usage_error():
    result = _invoke()
    assert result.exit_code == 2
    assert "Usage" in result.output


def test_unknown_command_is_usage_error(config_file):
    assert _invoke("--config", str(config_file), "crawl-everything").exit_code == 2


def test_unreadable_config_fails(tmp_path):
    bad = tmp_path / "config.json"
    bad.write_text("{oops")
    assert _invoke("--config", str(bad), "enrich").exit_code == 1


def test_enrich_succeeds(config_file, tmp_path):
    result = _invoke("--config", str(config_file), "enrich")
    assert result.exit_code == 0
    assert (tmp_path / "data" / "work" / "discovered.json").is_file()


def test_validate_without_manifest_fails(config_file):
    assert _invoke("--config", str(config_file), "validate").exit_code == 1


def test_validate_rejects_invalid_manifest(config_file, tmp_path):
    dist = tmp_path / "dist"
    dist.mkdir()
    (dist / "manifest.json").write_text(json.dumps({"schema": "1.2", "items": []}))

    assert _invoke("--config", str(config_file), "validate").exit_code == 1


def test_validate_accepts_valid_manifest(config_file, tmp_path):
    dist = tmp_path / "dist"
    dist.mkdir()
    (dist / "manifest.json").write_text(
        json.dumps({"schema": "1.2", "generated_at": "2026-10-19T00:00:00Z", "items": []})
    )

    assert _invoke("--config", str(config_file), "validate").exit_code == 0


def test_publish_with_unrewritable_thumbnail_fails(config_file, tmp_path):
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
                thumbnail="thumbs/business/consulting-home-page.webp",
            )
        ],
    )
    write_discovered(tmp_path / "data" / "work" / "discovered.json", [pack])

    assert _invoke("--config", str(config_file), "publish").exit_code == 1
    assert not (tmp_path / "dist" / "manifest.json").exists()


def test_publish_with_nothing_discovered_writes_empty_manifest(config_file, tmp_path):
    assert _invoke("--config", str(config_file), "publish").exit_code == 0

    manifest = json.loads((tmp_path / "dist" / "manifest.json").read_text())
    assert manifest["items"] == []
    assert manifest["schema"] == "1.2"
