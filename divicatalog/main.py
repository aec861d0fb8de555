"""Command-line entry point: ``divicatalog <discover|thumbs|enrich|publish|validate|loop|download>``.

Exit codes: 0 on success, 1 when a stage raises or the manifest fails
schema validation, 2 for a missing or unknown command.
"""

import asyncio
import logging
import logging.config
from pathlib import Path
from typing import Awaitable, Callable, Optional

import typer

from divicatalog.models.config import CatalogConfig, load_config
from divicatalog.services.mirror import DEFAULT_MANIFEST_URL, mirror_catalog
from divicatalog.services.pipeline import (
    run_discover,
    run_enrich,
    run_loop,
    run_publish,
    run_stage,
    run_thumbs,
    run_validate,
)
from divicatalog.services.schema_gate import SchemaValidationError

EXIT_FAILURE = 1
EXIT_USAGE = 2

_JSON_FORMAT = '{"time": "%(asctime)s", "level": "%(levelname)s", "logger": "%(name)s", "message": "%(message)s"}'


def configure_logging(level: str = "INFO", log_file: Optional[Path] = None) -> None:
    handlers = {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "json",
        },
    }
    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers["file"] = {
            "class": "logging.FileHandler",
            "formatter": "json",
            "filename": str(log_file),
            "mode": "a",
            "encoding": "utf-8",
        }
    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {"json": {"format": _JSON_FORMAT}},
            "handlers": handlers,
            "root": {"level": level.upper(), "handlers": list(handlers)},
            # httpx logs every request at INFO
            "loggers": {"httpx": {"level": "WARNING"}},
        }
    )


logger = logging.getLogger(__name__)

app = typer.Typer(
    name="divicatalog",
    help="Crawl layout packs, capture thumbnails and publish the catalog manifest.",
    add_completion=False,
)


class _State:
    config: Optional[CatalogConfig] = None


state = _State()


@app.callback(invoke_without_command=True)
def main_callback(
    ctx: typer.Context,
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="Path to config.json."),
    log_level: str = typer.Option("INFO", "--log-level", help="Root log level."),
) -> None:
    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_usage())
        raise typer.Exit(code=EXIT_USAGE)

    log_file = None
    cfg = _load_or_exit(config)
    if ctx.invoked_subcommand == "loop":
        log_file = cfg.paths.loop_log
    configure_logging(log_level, log_file)
    state.config = cfg


def _load_or_exit(path: Optional[Path]) -> CatalogConfig:
    try:
        return load_config(path)
    except Exception as exc:
        typer.echo(f"error: {exc}", err=True)
        raise typer.Exit(code=EXIT_FAILURE)


def _run(name: str, stage: Callable[[], Awaitable[object]]) -> None:
    try:
        asyncio.run(run_stage(name, stage))
    except SchemaValidationError as exc:
        logger.error("Schema validation failed")
        for line in exc.describe():
            logger.error(line)
        raise typer.Exit(code=EXIT_FAILURE)
    except Exception:
        logger.exception("%s failed", name)
        raise typer.Exit(code=EXIT_FAILURE)


@app.command()
def discover(
    max_links: int = typer.Option(100, "--max", min=0, help="Layout pages to visit (0 = all)."),
) -> None:
    """Find layout packs via the hub page and the sitemap."""
    _run("discover", lambda: run_discover(state.config, max_links))


@app.command()
def thumbs() -> None:
    """Acquire a thumbnail for every discovered page."""
    _run("thumbs", lambda: run_thumbs(state.config))


@app.command()
def enrich() -> None:
    """Attach facets to discovered packs."""
    _run("enrich", lambda: run_enrich(state.config))


@app.command()
def publish() -> None:
    """Merge discovered packs into the published manifest."""
    _run("publish", lambda: run_publish(state.config))


@app.command()
def validate() -> None:
    """Validate dist/manifest.json against the manifest schema."""
    _run("validate", lambda: run_validate(state.config))


@app.command()
def loop(
    interval: int = typer.Option(60, "--interval", min=1, help="Seconds between iterations."),
    max_links: int = typer.Option(0, "--max", min=0, help="Layout pages per discover (0 = all)."),
    iterations: int = typer.Option(0, "--iterations", min=0, help="Stop after N iterations (0 = forever)."),
) -> None:
    """Run discover, thumbs, enrich and publish repeatedly."""
    _run("loop", lambda: run_loop(state.config, interval, max_links, iterations))


@app.command()
def download(
    out_dir: Path = typer.Argument(Path("catalog_local"), help="Destination directory."),
    manifest_url: str = typer.Option(DEFAULT_MANIFEST_URL, "--manifest-url", help="Published manifest URL."),
) -> None:
    """Mirror a published manifest and its thumbnails locally."""
    _run("download", lambda: mirror_catalog(out_dir, manifest_url))


def main() -> None:
    app()


if __name__ == "__main__":
    main()
