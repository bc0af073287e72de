# ABOUTME: Main CLI application entry point using asyncclick for native async support
# ABOUTME: Provides commands to import link dumps, re-run enrichment and inspect stored links

import fnmatch
import json as jsonlib
from pathlib import Path

import asyncclick as click
from rich.console import Console

from linkdump.config import get_config
from linkdump.core.errors import StoreError
from linkdump.core.service import LinkImportService
from linkdump.persistence import BlobCache, LinkStore
from linkdump.pipeline import ExternalCacheStage, PipelineBuilder
from linkdump.utils.files import find_markdown_files
from linkdump.utils.logging import (
    LoggingMode,
    configure_logging,
    get_logger,
    get_logging_status,
    with_pipeline_context,
)
from linkdump.utils.rich_tables import (
    create_batch_report_table,
    create_import_report_table,
    create_link_metadata_table,
    create_logging_status_table,
    create_mapping_table,
    print_rich_table,
)

console = Console()

SHOW_MODES = ["list", "text", "raw", "metadata", "attributions"]


async def _open_store(ctx) -> LinkStore:
    """Open the link store, exiting with a message if it cannot be opened."""
    database_url = ctx.obj.get("database_url") or get_config().database_url
    store = LinkStore(database_url)
    try:
        await store.create_tables()
    except StoreError as e:
        await store.close()
        raise click.ClickException(str(e)) from e
    return store


def _open_cache(ctx) -> BlobCache:
    return BlobCache(ctx.obj.get("cache_dir") or get_config().cache_dir)


async def _open_service(ctx) -> LinkImportService:
    store = await _open_store(ctx)
    return LinkImportService(store=store, cache=_open_cache(ctx))


@click.command(name="import")
@click.argument("files", nargs=-1, required=True, type=click.Path(path_type=Path))
@click.option("--display-links", is_flag=True, help="Print every stored link after importing")
@click.pass_context
async def import_links(ctx, files: tuple[Path, ...], display_links: bool):
    """
    📥 Import links from markdown link dumps.

    Top-level list items become links, written either as a markdown anchor or
    as "title: url". Nested lists add metadata:

    \b
    - some link: https://foo.bar/baz
      - tags: a, b
      - via: @friend
      - notes:
        - some more text

    Directories are searched for *.md files.
    """
    json_output = ctx.obj["json_output"]
    paths = find_markdown_files(files)
    if not paths:
        raise click.UsageError("no markdown files found")

    service = await _open_service(ctx)
    try:
        report = await service.import_files(paths)

        if json_output:
            click.echo(report.model_dump_json())
        else:
            print_rich_table(console, create_import_report_table(report))

        if display_links:
            async for link in service.store.values():
                click.echo(link.model_dump_json(exclude={"src", "extracted_text"}))
    finally:
        await service.close()


@click.command()
@click.pass_context
async def rebuild(ctx):
    """
    🔁 Re-run HTML and PDF extraction for every link without refetching.
    """
    service = await _open_service(ctx)
    try:
        report = await service.rebuild()
        if ctx.obj["json_output"]:
            click.echo(report.model_dump_json())
        else:
            print_rich_table(console, create_batch_report_table(report))
    finally:
        await service.close()


@click.command()
@click.option("--all", "all_links", is_flag=True, help="Refetch links that already have a cached body too")
@click.pass_context
async def refetch(ctx, all_links: bool):
    """
    🌐 Fetch links again, clearing their fetch and extraction markers.

    By default only links without a cached body are refetched.
    """
    service = await _open_service(ctx)
    try:
        report = await service.refetch(all_links=all_links)
        if ctx.obj["json_output"]:
            click.echo(report.model_dump_json())
        else:
            print_rich_table(console, create_batch_report_table(report))
    finally:
        await service.close()


@click.command()
@click.argument("pattern", default="*")
@click.option("--mode", "-m", type=click.Choice(SHOW_MODES), default="list", help="What to print for each link")
@click.option("--tag", "-t", help="Only links with a tag matching this glob")
@click.pass_context
async def show(ctx, pattern: str, mode: str, tag: str | None):
    """
    🔎 Show stored links whose URL matches a glob PATTERN (quote it!).
    """
    json_output = ctx.obj["json_output"]
    store = await _open_store(ctx)
    pipeline = PipelineBuilder(store).add(ExternalCacheStage(_open_cache(ctx))).build()

    try:
        with with_pipeline_context("show", pattern=pattern, mode=mode) as logger:
            shown = 0
            async for link in pipeline.glob(pattern):
                if tag and not any(fnmatch.fnmatchcase(t, tag) for t in link.tags):
                    continue
                shown += 1

                if mode == "list":
                    click.echo(link.model_dump_json(exclude={"src", "extracted_text"}) if json_output else link.url)
                elif mode == "attributions":
                    click.echo(f"[{link.slug()}]: {link.url}")
                elif mode == "text":
                    if link.extracted_text:
                        click.echo(link.extracted_text)
                elif mode == "raw":
                    if link.src:
                        click.get_binary_stream("stdout").write(link.src)
                elif json_output:
                    click.echo(link.model_dump_json(exclude={"src", "extracted_text"}))
                else:
                    print_rich_table(console, create_link_metadata_table(link))
                    if link.meta:
                        print_rich_table(console, create_mapping_table("🏷️ Meta", link.meta))
                    if link.http_headers:
                        print_rich_table(console, create_mapping_table("📨 Headers", link.http_headers))

            logger.debug("Show completed", shown=shown)
    finally:
        await store.close()


@click.command()
@click.pass_context
async def tags(ctx):
    """
    🏷️ List every distinct tag, sorted.
    """
    store = await _open_store(ctx)
    try:
        all_tags = await store.all_tags()
    finally:
        await store.close()

    if ctx.obj["json_output"]:
        click.echo(jsonlib.dumps(all_tags))
    else:
        for tag in all_tags:
            click.echo(tag)


def _initialize_logging(json_output: bool, log_level: str | None = None, log_file: str | None = None) -> None:
    """Initialize logging configuration."""
    try:
        config = get_config()
        mode = LoggingMode.PRODUCTION if json_output else LoggingMode.INTERACTIVE

        # Use config defaults when CLI parameters are not provided
        final_log_level = log_level or config.log_level
        final_log_file = log_file or (str(config.log_file) if config.log_file else None)

        configure_logging(mode=mode, log_level=final_log_level, log_file=final_log_file)
    except (FileNotFoundError, PermissionError, OSError):
        # Log directory unavailable: fall back to stdout logging
        configure_logging(mode=LoggingMode.PRODUCTION, log_level=log_level or "INFO", log_file=None)
        get_logger(__name__).warning("File logging unavailable, logging to stdout")


@click.command(name="logging-status")
def logging_status():
    """
    📊 Show current logging configuration and status.
    """
    status = get_logging_status()
    logging_table = create_logging_status_table(status)
    print_rich_table(console, logging_table)


@click.group(invoke_without_command=True)
@click.option("--json", is_flag=True, help="Output JSON instead of rich tables and log JSON to stdout")
@click.option("--log-level", default=None, help="Logging level (DEBUG, INFO, WARNING, ERROR)")
@click.option("--log-file", help="Custom log file path")
@click.option("--database-url", help="SQLAlchemy database URL (defaults to the per-user data directory)")
@click.option("--cache-dir", type=click.Path(path_type=Path), help="Blob cache directory")
@click.pass_context
def app(ctx, json: bool, log_level: str | None, log_file: str | None, database_url: str | None, cache_dir):
    """
    🔗 linkdump - turn markdown link dumps into an enriched link database.

    Links are fetched once, their HTML/PDF/text content extracted, and large
    bodies kept in a content-addressed cache beside the SQLite database.
    """
    ctx.ensure_object(dict)
    ctx.obj["json_output"] = json
    ctx.obj["database_url"] = database_url
    ctx.obj["cache_dir"] = cache_dir

    _initialize_logging(json, log_level, log_file)

    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


app.add_command(import_links)
app.add_command(rebuild)
app.add_command(refetch)
app.add_command(show)
app.add_command(tags)
app.add_command(logging_status)


if __name__ == "__main__":
    app()
