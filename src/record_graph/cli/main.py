"""record-graph CLI main entry point."""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from collections.abc import Coroutine
from typing import Annotated, Any, Optional, TypeVar

import typer

from record_graph.config import SyncConfig
from record_graph.core.link import LinkView
from record_graph.core.predicate import canonicalize
from record_graph.core.record import Record, RecordType
from record_graph.core.run import IntegrationRun, RunKind
from record_graph.engine.ledger import IntegrationLedger
from record_graph.engine.links import LinkGraph
from record_graph.engine.merge import MergeEngine
from record_graph.engine.orchestrator import SyncOrchestrator
from record_graph.errors import RecordGraphError
from record_graph.integration.models import SourceType
from record_graph.storage.sqlite_store import open_store

T = TypeVar("T")

# Main app
app = typer.Typer(
    name="rgraph",
    help="record-graph - pull external sources into one curated record graph",
    no_args_is_help=True,
)

sync_app = typer.Typer(help="Run source integrations")
records_app = typer.Typer(help="Inspect, add and merge records")
links_app = typer.Typer(help="Manage typed links between records")
db_app = typer.Typer(help="Database maintenance")
app.add_typer(sync_app, name="sync")
app.add_typer(records_app, name="records")
app.add_typer(links_app, name="links")
app.add_typer(db_app, name="db")

JsonOption = Annotated[bool, typer.Option("--json", "-j", help="Output as JSON")]


@app.callback()
def main_callback(
    verbose: Annotated[
        bool, typer.Option("--verbose", "-v", help="Log debug output to stderr")
    ] = False,
) -> None:
    """record-graph command line."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def get_config() -> SyncConfig:
    """Get CLI configuration."""
    return SyncConfig.load()


def run_async(coro: Coroutine[Any, Any, T]) -> T:
    """Run a command coroutine, turning caller errors into exit code 1."""
    try:
        return asyncio.run(coro)
    except (RecordGraphError, ValueError) as e:
        typer.secho(f"Error: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(1) from None


def output_result(data: dict[str, Any], as_json: bool = False) -> None:
    """Output result in appropriate format."""
    if as_json:
        typer.echo(json.dumps(data, indent=2, default=str))
    elif "message" in data:
        typer.secho(data["message"], fg=typer.colors.GREEN)
    else:
        typer.echo(str(data))


def format_record(record: Record) -> str:
    title = record.title or "(untitled)"
    line = f"[{record.id}] {record.type.value:<8} {title}"
    if record.url:
        line += f"  <{record.url}>"
    return line


def format_run(run: IntegrationRun) -> str:
    started = run.started_at.strftime("%Y-%m-%d %H:%M")
    line = (
        f"run {run.id:<5} {run.source_type:<9} {run.run_kind.value:<11} "
        f"{run.status.value:<11} {started}  entries={run.entries_created}"
    )
    if run.duration_seconds is not None:
        line += f"  {run.duration_seconds:.1f}s"
    if run.message:
        line += f"  ({run.message})"
    return line


def format_link_view(view: LinkView) -> str:
    notes = f"  # {view.link.notes}" if view.link.notes else ""
    return f"  link {view.link.id:<5} {view.label} -> [{view.other_id}]{notes}"


# =============================================================================
# Sync Commands
# =============================================================================


@sync_app.command("run")
def sync_run(
    source: Annotated[
        str, typer.Argument(help="Source to sync: " + ", ".join(s.value for s in SourceType))
    ],
    full: Annotated[
        bool, typer.Option("--full", "-f", help="Ignore the cursor and backfill everything")
    ] = False,
    json_output: JsonOption = False,
) -> None:
    """Sync one source.

    Examples:
        rgraph sync run raindrop
        rgraph sync run github --full
    """

    async def _sync() -> IntegrationRun:
        config = get_config()
        async with open_store(config.db_path) as store:
            orchestrator = SyncOrchestrator(store, config)
            return await orchestrator.sync(source, RunKind.FULL if full else RunKind.INCREMENTAL)

    run = run_async(_sync())
    if json_output:
        output_result(run.to_dict(), as_json=True)
    else:
        typer.secho(
            f"Synced {run.source_type}: {run.entries_created} entries (run {run.id})",
            fg=typer.colors.GREEN,
        )


@sync_app.command("daily")
def sync_daily(
    sources: Annotated[
        Optional[list[str]],
        typer.Option("--source", "-s", help="Sources to run (defaults to daily_sources)"),
    ] = None,
    json_output: JsonOption = False,
) -> None:
    """Sync every daily source in order. Exits 1 if any source failed.

    Examples:
        rgraph sync daily
        rgraph sync daily -s browsing -s github
    """

    async def _daily() -> list[dict[str, Any]]:
        config = get_config()
        async with open_store(config.db_path) as store:
            orchestrator = SyncOrchestrator(store, config)
            outcomes = await orchestrator.sync_daily(sources or None)
            return [outcome.to_dict() for outcome in outcomes]

    outcomes = run_async(_daily())

    if json_output:
        typer.echo(json.dumps({"outcomes": outcomes}, indent=2, default=str))
    else:
        for outcome in outcomes:
            if outcome["success"]:
                typer.secho(
                    f"[ok]   {outcome['source']}: {outcome['entries_created']} entries",
                    fg=typer.colors.GREEN,
                )
            else:
                typer.secho(
                    f"[fail] {outcome['source']}: {outcome['error']}", fg=typer.colors.RED
                )

    if any(not outcome["success"] for outcome in outcomes):
        raise typer.Exit(1)


# =============================================================================
# Record Commands
# =============================================================================


@records_app.command("add")
def records_add(
    title: Annotated[str, typer.Argument(help="Record title")],
    record_type: Annotated[
        str, typer.Option("--type", "-T", help="Record type: entity, concept, artifact")
    ] = RecordType.ARTIFACT.value,
    url: Annotated[Optional[str], typer.Option("--url", "-u", help="Canonical URL")] = None,
    notes: Annotated[Optional[str], typer.Option("--notes", "-n", help="Curator notes")] = None,
    json_output: JsonOption = False,
) -> None:
    """Add a curated record by hand.

    Examples:
        rgraph records add "Ada Lovelace" --type entity
        rgraph records add "Notes on the Analytical Engine" --url https://example.org/notes
    """
    try:
        parsed_type = RecordType(record_type.lower())
    except ValueError:
        valid_types = ", ".join(t.value for t in RecordType)
        typer.secho(f"Invalid record type. Valid types: {valid_types}", fg=typer.colors.RED)
        raise typer.Exit(1) from None

    async def _add() -> Record:
        config = get_config()
        async with open_store(config.db_path) as store:
            return await store.add_record(
                type=parsed_type, title=title, url=url, notes=notes, is_curated=True
            )

    record = run_async(_add())
    if json_output:
        output_result(record.to_dict(), as_json=True)
    else:
        typer.secho(f"Added record {record.id}: {title}", fg=typer.colors.GREEN)


@records_app.command("list")
def records_list(
    record_type: Annotated[
        Optional[str], typer.Option("--type", "-T", help="Filter by record type")
    ] = None,
    search: Annotated[
        Optional[str], typer.Option("--search", "-q", help="Title substring to match")
    ] = None,
    include_private: Annotated[
        bool, typer.Option("--private/--no-private", help="Include private records")
    ] = True,
    limit: Annotated[int, typer.Option("--limit", "-l", help="Maximum records to show")] = 20,
    json_output: JsonOption = False,
) -> None:
    """List active records, newest first.

    Examples:
        rgraph records list
        rgraph records list --type concept --search python
    """

    async def _list() -> list[Record]:
        parsed_type = RecordType(record_type.lower()) if record_type else None
        config = get_config()
        async with open_store(config.db_path) as store:
            return await store.list_records(
                type=parsed_type,
                title_contains=search,
                include_private=include_private,
                limit=limit,
            )

    records = run_async(_list())

    if json_output:
        typer.echo(json.dumps({"records": [r.to_dict() for r in records]}, indent=2, default=str))
        return

    if not records:
        typer.echo("No records found.")
        return
    for record in records:
        typer.echo(format_record(record))


@records_app.command("show")
def records_show(
    record_id: Annotated[int, typer.Argument(help="Record ID")],
    json_output: JsonOption = False,
) -> None:
    """Show a record with its links and media."""

    async def _show() -> dict[str, Any]:
        config = get_config()
        async with open_store(config.db_path) as store:
            record = await store.get_record(record_id)
            if record is None:
                return {"error": f"Record {record_id} not found"}
            links = (await LinkGraph(store).links_map([record_id]))[record_id]
            media = await store.get_media_for_record(record_id)
            return {"record": record, "links": links, "media": media}

    result = run_async(_show())

    if "error" in result:
        typer.secho(f"Error: {result['error']}", fg=typer.colors.RED, err=True)
        raise typer.Exit(1)

    record: Record = result["record"]
    if json_output:
        output_result(
            {
                "record": record.to_dict(),
                **result["links"].to_dict(),
                "media": [m.to_dict() for m in result["media"]],
            },
            as_json=True,
        )
        return

    typer.echo(format_record(record))
    if not record.is_active:
        typer.secho(f"  merged into [{record.merged_into_id}]", fg=typer.colors.YELLOW)
    for field_name in ("summary", "content", "notes"):
        value = getattr(record, field_name)
        if value:
            typer.echo(f"  {field_name}: {value}")
    meta = f"rating: {record.rating}, sources: {', '.join(record.sources) or '-'}"
    typer.secho(f"  [{meta}]", fg=typer.colors.BRIGHT_BLACK)

    for view in (*result["links"].outgoing, *result["links"].incoming):
        typer.echo(format_link_view(view))
    for media in result["media"]:
        typer.echo(f"  media {media.id:<5} {media.kind} {media.url}")


@records_app.command("merge")
def records_merge(
    source_id: Annotated[int, typer.Argument(help="Duplicate record to fold away")],
    target_id: Annotated[int, typer.Argument(help="Record that survives")],
    json_output: JsonOption = False,
) -> None:
    """Merge a duplicate record into the one that survives.

    The merge is journaled; reverse it with ``rgraph records undo-merge``.
    """

    async def _merge() -> dict[str, Any]:
        config = get_config()
        async with open_store(config.db_path) as store:
            result = await MergeEngine(store).merge(source_id, target_id)
            return {
                "message": f"Merged record {source_id} into {target_id}",
                "merge_id": result.merge_id,
                "record": result.updated_record.to_dict(),
                "deleted_record_id": result.deleted_record_id,
                "touched_ids": list(result.touched_ids),
            }

    output_result(run_async(_merge()), json_output)


@records_app.command("undo-merge")
def records_undo_merge(
    source_id: Annotated[int, typer.Argument(help="Record that was merged away")],
    json_output: JsonOption = False,
) -> None:
    """Undo the latest merge that removed a record."""

    async def _undo() -> dict[str, Any]:
        config = get_config()
        async with open_store(config.db_path) as store:
            source, target = await MergeEngine(store).undo_latest(source_id)
            return {
                "message": f"Restored record {source.id} (was merged into {target.id})",
                "source": source.to_dict(),
                "target": target.to_dict(),
            }

    output_result(run_async(_undo()), json_output)


# =============================================================================
# Link Commands
# =============================================================================


@links_app.command("create")
def links_create(
    source_id: Annotated[int, typer.Argument(help="Source record ID")],
    predicate: Annotated[str, typer.Argument(help="Predicate slug, e.g. created_by")],
    target_id: Annotated[int, typer.Argument(help="Target record ID")],
    notes: Annotated[Optional[str], typer.Option("--notes", "-n", help="Link notes")] = None,
    json_output: JsonOption = False,
) -> None:
    """Create or update a link.

    Inverse predicates are accepted here and stored in canonical direction.

    Examples:
        rgraph links create 12 created_by 7
        rgraph links create 7 creator_of 12   # stored as 12 created_by 7
    """

    async def _create() -> dict[str, Any]:
        stored_source, stored_target, stored_predicate = canonicalize(
            source_id, target_id, predicate
        )
        config = get_config()
        async with open_store(config.db_path) as store:
            link = await LinkGraph(store).upsert_link(
                stored_source, stored_target, stored_predicate, notes
            )
            return {
                "message": (
                    f"Link {link.id}: [{link.source_id}] {link.predicate} [{link.target_id}]"
                ),
                "link": link.to_dict(),
            }

    output_result(run_async(_create()), json_output)


@links_app.command("delete")
def links_delete(
    link_ids: Annotated[list[int], typer.Argument(help="Link IDs to delete")],
    json_output: JsonOption = False,
) -> None:
    """Delete links by ID."""

    async def _delete() -> dict[str, Any]:
        config = get_config()
        async with open_store(config.db_path) as store:
            deleted = await LinkGraph(store).delete_links(link_ids)
            return {
                "message": f"Deleted {len(deleted)} link(s)",
                "deleted": [link.id for link in deleted],
            }

    output_result(run_async(_delete()), json_output)


@links_app.command("list")
def links_list(
    record_id: Annotated[int, typer.Argument(help="Record ID")],
    json_output: JsonOption = False,
) -> None:
    """List a record's links, labeled from its side."""

    async def _list() -> dict[str, Any]:
        config = get_config()
        async with open_store(config.db_path) as store:
            links = (await LinkGraph(store).links_map([record_id]))[record_id]
            return links.to_dict() if json_output else {"views": [*links.outgoing, *links.incoming]}

    result = run_async(_list())

    if json_output:
        output_result(result, as_json=True)
        return
    if not result["views"]:
        typer.echo(f"Record {record_id} has no links.")
        return
    for view in result["views"]:
        typer.echo(format_link_view(view))


@links_app.command("predicates")
def links_predicates(
    canonical_only: Annotated[
        bool, typer.Option("--canonical", "-c", help="Only show stored directions")
    ] = False,
    json_output: JsonOption = False,
) -> None:
    """Show the predicate vocabulary."""

    async def _predicates() -> list[dict[str, Any]]:
        config = get_config()
        async with open_store(config.db_path) as store:
            predicates = await LinkGraph(store).list_predicates(canonical_only=canonical_only)
            return [
                {
                    "slug": p.slug,
                    "name": p.name,
                    "type": p.type.value,
                    "inverse_slug": p.inverse_slug,
                    "canonical": p.canonical,
                    "role": p.role,
                }
                for p in predicates
            ]

    predicates = run_async(_predicates())

    if json_output:
        typer.echo(json.dumps({"predicates": predicates}, indent=2))
        return

    current_type = None
    for p in predicates:
        if p["type"] != current_type:
            current_type = p["type"]
            typer.secho(f"{current_type}:", bold=True)
        marker = "*" if p["canonical"] else " "
        typer.echo(f"  {marker} {p['slug']:<15} inverse: {p['inverse_slug']}")


# =============================================================================
# Database Commands
# =============================================================================


@db_app.command("init")
def db_init() -> None:
    """Create the database and seed the predicate vocabulary."""

    async def _init() -> str:
        config = get_config()
        async with open_store(config.db_path) as store:
            return str(store.db_path)

    typer.secho(f"Initialized {run_async(_init())}", fg=typer.colors.GREEN)


@db_app.command("status")
def db_status(json_output: JsonOption = False) -> None:
    """Show record counts and the latest run of every source."""

    async def _status() -> dict[str, Any]:
        config = get_config()
        async with open_store(config.db_path) as store:
            return {
                "db_path": str(store.db_path),
                "schema_version": await store.get_schema_version(),
                "records": await store.count_records(),
                "merged_records": await store.count_records(include_merged=True)
                - await store.count_records(),
                "latest_runs": await IntegrationLedger(store, config).latest_runs(),
            }

    status = run_async(_status())
    runs: list[IntegrationRun] = status.pop("latest_runs")

    if json_output:
        status["latest_runs"] = [run.to_dict() for run in runs]
        output_result(status, as_json=True)
        return

    typer.echo(f"Database: {status['db_path']} (schema v{status['schema_version']})")
    typer.echo(f"Records: {status['records']} active, {status['merged_records']} merged")
    if not runs:
        typer.echo("No integration runs yet.")
        return
    typer.echo("\nLatest runs:")
    for run in runs:
        typer.echo(f"  {format_run(run)}")


@db_app.command("sweep")
def db_sweep(json_output: JsonOption = False) -> None:
    """Mark abandoned in-progress runs as failed."""

    async def _sweep() -> list[IntegrationRun]:
        config = get_config()
        async with open_store(config.db_path) as store:
            return await IntegrationLedger(store, config).sweep_stale()

    swept = run_async(_sweep())
    output_result(
        {
            "message": f"Marked {len(swept)} stale run(s) as failed",
            "runs": [run.id for run in swept],
        },
        json_output,
    )


# =============================================================================
# Utility Commands
# =============================================================================


@app.command()
def version() -> None:
    """Show version information."""
    from record_graph import __version__

    typer.echo(f"record-graph v{__version__}")


def main() -> None:
    """Main entry point."""
    app()


if __name__ == "__main__":
    main()
