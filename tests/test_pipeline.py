"""Tests for the enrich stage and the re-running loop."""

import pytest

from divicatalog.models.catalog import Page, Pack
from divicatalog.services import pipeline
from divicatalog.services.artifacts import read_discovered, write_discovered
from divicatalog.services.enricher import PLACEHOLDER_FACETS, enrich_packs


def _pack(pack_id: str) -> Pack:
    url = f"https://site/layouts/business/{pack_id}-home-page"
    return Pack(
        pack_id=pack_id,
        pack_name=pack_id.title(),
        category="business",
        pages=[Page(page_name="Home", layout_slug=f"{pack_id}-home-page", demo_url=url + "/live-demo", layout_url=url)],
    )


class TestEnrich:
    def test_every_pack_gets_its_own_facets(self):
        packs = [_pack("consulting"), _pack("bakery")]

        assert enrich_packs(packs) == 2

        assert packs[0].facets == PLACEHOLDER_FACETS
        packs[0].facets["font_pair"]["heading"] = "Changed"
        assert packs[1].facets["font_pair"]["heading"] == "Unknown"

    @pytest.mark.asyncio
    async def test_run_enrich_rewrites_discovered(self, config):
        write_discovered(config.paths.discovered, [_pack("consulting")])

        assert await pipeline.run_enrich(config) == 1

        assert read_discovered(config.paths.discovered)[0].facets["complexity"] == 3

    @pytest.mark.asyncio
    async def test_run_enrich_without_discovered_items(self, config):
        assert await pipeline.run_enrich(config) == 0
        assert read_discovered(config.paths.discovered) == []


class _Stages:
    """Replaces the pipeline stages with recorders; *fail* maps stage names to failing call numbers."""

    def __init__(self, monkeypatch, fail=None):
        self.calls = []
        self.fail = fail or {}
        self.counts = {}
        for name in pipeline.STAGE_ORDER:
            monkeypatch.setattr(pipeline, f"run_{name}", self._stage(name))

    def _stage(self, name):
        async def stage(*args, **kwargs):
            self.counts[name] = self.counts.get(name, 0) + 1
            self.calls.append(name)
            if self.counts[name] in self.fail.get(name, ()):
                raise RuntimeError(f"{name} blew up")
        return stage


class TestRunLoop:
    @pytest.mark.asyncio
    async def test_stages_run_in_order(self, config, monkeypatch, recording_sleep):
        stages = _Stages(monkeypatch)

        completed = await pipeline.run_loop(config, interval_s=60, iterations=2, sleep=recording_sleep)

        assert completed == 2
        assert stages.calls == list(pipeline.STAGE_ORDER) * 2
        assert recording_sleep.delays == [60]

    @pytest.mark.asyncio
    async def test_failed_iteration_pauses_and_starts_over(self, config, monkeypatch, recording_sleep):
        stages = _Stages(monkeypatch, fail={"thumbs": {1}})

        completed = await pipeline.run_loop(config, interval_s=60, iterations=2, sleep=recording_sleep)

        assert completed == 1
        assert stages.calls == ["discover", "thumbs", "discover", "thumbs", "enrich", "publish"]
        assert recording_sleep.delays == [pipeline.LOOP_FAILURE_PAUSE_S]

    @pytest.mark.asyncio
    async def test_stage_duration_is_logged_on_failure(self, caplog):
        async def boom():
            raise RuntimeError("boom")

        with caplog.at_level("INFO", logger="divicatalog.services.pipeline"):
            with pytest.raises(RuntimeError):
                await pipeline.run_stage("thumbs", boom)

        assert any(record.getMessage().startswith("thumbs done in") for record in caplog.records)
