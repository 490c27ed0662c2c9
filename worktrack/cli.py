"""
CLI for consolidating similar work items.

Usage:
    consolidate analyze
    consolidate interactive
    consolidate merge <id1> <id2>
"""

import json
import logging
import os
import shutil
import sys
from contextlib import contextmanager
from pathlib import Path
from typing import Optional

import typer
from typing_extensions import Annotated

from .config import StoreConfig, get_work_dir, load_or_default_config, save_config
from .consolidation import ConsolidationEngine
from .errors import ConsolidationError, LoadFailure
from .logging_config import configure_ops_log, configure_quiet_mode, enable_debug_mode
from .markdown_store import MarkdownStore
from .types import ConsolidationCandidate, WorkItem, value_of


# Quiet by default; WORKTRACK_VERBOSE=1 enables debug output via environment
if os.environ.get("WORKTRACK_VERBOSE") == "1":
    enable_debug_mode()
else:
    configure_quiet_mode(quiet=True)


def _version_callback(value: bool):
    if value:
        from importlib.metadata import version
        print(f"worktrack {version('worktrack')}")
        raise typer.Exit()


def _verbose_callback(value: bool):
    if value:
        enable_debug_mode()


# Global state for CLI options
_json_output = False
_work_dir_override: Optional[Path] = None


def _json_callback(value: bool):
    global _json_output
    _json_output = value


def _get_json_output() -> bool:
    return _json_output


def _work_dir_callback(value: Optional[Path]):
    global _work_dir_override
    _work_dir_override = value


def _get_work_dir() -> Path:
    return get_work_dir(_work_dir_override)


app = typer.Typer(
    name="consolidate",
    help="Find and merge similar work items.",
    no_args_is_help=True,
    rich_markup_mode=None,
)


@app.callback()
def main_callback(
    verbose: Annotated[bool, typer.Option(
        "--verbose", "-v",
        help="Enable debug-level logging to stderr",
        callback=_verbose_callback,
        is_eager=True,
    )] = False,
    output_json: Annotated[bool, typer.Option(
        "--json", "-j",
        help="Output as JSON",
        callback=_json_callback,
        is_eager=True,
    )] = False,
    work_dir: Annotated[Optional[Path], typer.Option(
        "--work-dir", "-w",
        envvar="WORK_DIR",
        help="Path to the work directory (default: .claude-work)",
        callback=_work_dir_callback,
        is_eager=True,
    )] = None,
    version: Annotated[Optional[bool], typer.Option(
        "--version",
        help="Show version and exit",
        callback=_version_callback,
        is_eager=True,
    )] = None,
):
    """Find and merge similar work items."""


# -----------------------------------------------------------------------------
# Output Formatting
# -----------------------------------------------------------------------------

def _output_width() -> int:
    """Terminal width for summary truncation. Use generous default when not a TTY."""
    if not sys.stdout.isatty():
        return 200
    return shutil.get_terminal_size((120, 24)).columns


def _format_item_line(label: str, item: WorkItem) -> str:
    line = f"   {label}: [{value_of(item.type)}/{value_of(item.schedule)}] {item.summary}"
    width = _output_width()
    if len(line) > width:
        line = line[:width - 3] + "..."
    return line


def _format_candidate(index: int, candidate: ConsolidationCandidate) -> str:
    reason = candidate.reason or "no single dimension stands out"
    return "\n".join([
        f"{index}. Similarity: {candidate.similarity_score * 100:.1f}% ({reason})",
        _format_item_line("Item 1", candidate.item1),
        _format_item_line("Item 2", candidate.item2),
        f"   Strategy: {candidate.merge_strategy.value}",
    ])


def _format_written(items: list[WorkItem]) -> str:
    return "\n".join(f"  {item.id} -> {item.filepath}" for item in items)


# -----------------------------------------------------------------------------
# Engine setup
# -----------------------------------------------------------------------------

def _load_config(work_dir: Path) -> StoreConfig:
    try:
        return load_or_default_config(work_dir)
    except (OSError, ValueError) as e:
        typer.echo(f"Error: invalid config in {work_dir}: {e}", err=True)
        raise typer.Exit(1)


def _get_engine() -> ConsolidationEngine:
    """Build an engine over the work directory."""
    work_dir = _get_work_dir()
    config = _load_config(work_dir)
    return ConsolidationEngine(MarkdownStore(work_dir), config.consolidation)


@contextmanager
def _ops_log():
    """Record file mutations in the work directory's operations log."""
    handler = configure_ops_log(_get_work_dir())
    try:
        yield
    finally:
        logging.getLogger("worktrack").removeHandler(handler)
        handler.close()


def _find_candidates(engine: ConsolidationEngine) -> list[ConsolidationCandidate]:
    try:
        return engine.find_candidates()
    except LoadFailure as e:
        typer.echo(f"Failed to find candidates: {e}", err=True)
        raise typer.Exit(1)


# -----------------------------------------------------------------------------
# Commands
# -----------------------------------------------------------------------------

@app.command()
def analyze(
    limit: Annotated[Optional[int], typer.Option(
        "--limit", "-n",
        help="Show at most this many candidates",
    )] = None,
):
    """
    Report consolidation candidates, most similar first.

    Nothing is modified.
    """
    engine = _get_engine()
    candidates = _find_candidates(engine)
    if limit is not None:
        candidates = candidates[:limit]

    if _get_json_output():
        typer.echo(json.dumps([c.to_dict() for c in candidates], indent=2))
        return

    if not candidates:
        typer.echo("No consolidation candidates found")
        typer.echo("   All work items appear to be sufficiently distinct")
        return

    typer.echo(f"Found {len(candidates)} consolidation candidates:\n")
    for i, candidate in enumerate(candidates, 1):
        typer.echo(_format_candidate(i, candidate))
        typer.echo("")
    typer.echo("Use 'consolidate interactive' to review and merge items")


@app.command()
def interactive():
    """
    Review candidates one at a time and consolidate the approved ones.

    Answer y to consolidate, N (default) to skip, s to stop reviewing.
    A failed consolidation is reported and the review continues.
    """
    engine = _get_engine()
    candidates = _find_candidates(engine)

    if not candidates:
        typer.echo("No consolidation candidates found")
        return

    typer.echo(f"Found {len(candidates)} consolidation candidates\n")
    with _ops_log():
        merged, failed = _review(engine, candidates)
    typer.echo(f"{merged} consolidated, {failed} failed")


def _review(engine: ConsolidationEngine, candidates: list[ConsolidationCandidate]) -> tuple[int, int]:
    """Prompt for each candidate in turn. Returns (consolidated, failed) counts."""
    merged = failed = 0

    for i, candidate in enumerate(candidates, 1):
        typer.echo(f"Candidate {i}/{len(candidates)}: {candidate.similarity_score * 100:.1f}% similarity")
        typer.echo(f"Reason: {candidate.reason}")
        typer.echo(f"Strategy: {candidate.merge_strategy.value}\n")
        typer.echo(_format_item_line("Item 1", candidate.item1))
        typer.echo(_format_item_line("Item 2", candidate.item2))
        typer.echo("")

        response = typer.prompt(
            "Consolidate these items? [y/N/s(kip all)]",
            default="",
            show_default=False,
        ).strip().lower()

        if response in ("y", "yes"):
            try:
                written = engine.perform_consolidation(candidate, approved=True)
            except ConsolidationError as e:
                failed += 1
                typer.echo(f"Failed to consolidate: {e}", err=True)
            else:
                merged += 1
                typer.echo("Consolidated successfully")
                typer.echo(_format_written(written))
        elif response in ("s", "skip"):
            typer.echo("Skipping remaining candidates")
            break
        else:
            typer.echo("Skipped")
        typer.echo("")

    return merged, failed


@app.command()
def merge(
    id1: Annotated[str, typer.Argument(help="ID of the item to keep (primary)")],
    id2: Annotated[str, typer.Argument(help="ID of the item to consolidate into it")],
    yes: Annotated[bool, typer.Option(
        "--yes", "-y",
        help="Consolidate without asking for confirmation",
    )] = False,
):
    """
    Consolidate two specific items.

    The pair is scored like any candidate, so the strategy follows from
    the similarity: very similar items are merged and the second one is
    archived; less similar items are cross-referenced.

    \b
    Examples:
        consolidate merge plan-123 plan-456
        consolidate merge plan-123 plan-456 --yes
    """
    engine = _get_engine()
    try:
        candidate = engine.merge_pair(id1, id2)
    except LoadFailure as e:
        typer.echo(f"Failed to load work items: {e}", err=True)
        raise typer.Exit(1)
    except (ConsolidationError, ValueError) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)

    if _get_json_output() and not yes:
        typer.echo("Error: --json requires --yes for merge", err=True)
        raise typer.Exit(1)

    if not _get_json_output():
        typer.echo(_format_candidate(1, candidate))
    if not yes and not typer.confirm("Consolidate these items?", default=False):
        typer.echo("Not consolidated")
        raise typer.Exit(1)

    try:
        with _ops_log():
            written = engine.perform_consolidation(candidate, approved=True)
    except ConsolidationError as e:
        typer.echo(f"Failed to consolidate: {e}", err=True)
        raise typer.Exit(1)

    if _get_json_output():
        typer.echo(json.dumps({
            **candidate.to_dict(),
            "written": [{"id": w.id, "path": str(w.filepath)} for w in written],
        }, indent=2))
    else:
        typer.echo("Consolidated successfully")
        typer.echo(_format_written(written))


@app.command()
def search(
    query: Annotated[str, typer.Argument(help="Text to look for in summaries, content and tags")],
):
    """List work items matching a query (case-insensitive)."""
    work_dir = _get_work_dir()
    try:
        items = MarkdownStore(work_dir).search_work_items(query)
    except LoadFailure as e:
        typer.echo(f"Failed to search work items: {e}", err=True)
        raise typer.Exit(1)

    if _get_json_output():
        typer.echo(json.dumps([
            {
                "id": item.id,
                "type": value_of(item.type),
                "schedule": value_of(item.schedule),
                "summary": item.summary,
                "path": str(item.filepath),
            }
            for item in items
        ], indent=2))
        return

    for item in items:
        typer.echo(f"{item.id}  {item}")


@app.command()
def config(
    init: Annotated[bool, typer.Option(
        "--init",
        help="Write the effective configuration to the work directory",
    )] = False,
):
    """Show the effective consolidation configuration."""
    work_dir = _get_work_dir()
    cfg = _load_config(work_dir)
    c = cfg.consolidation

    if init:
        save_config(cfg)
        typer.echo(f"Wrote {cfg.config_path}")
        return

    data = {
        "work_dir": str(work_dir),
        "config_file": str(cfg.config_path) if cfg.exists() else None,
        "weights": {
            "summary": c.weights.summary,
            "tags": c.weights.tags,
            "content": c.weights.content,
            "schedule": c.weights.schedule,
        },
        "disclosure": {
            "summary": c.summary_disclosure,
            "tags": c.tags_disclosure,
            "content": c.content_disclosure,
            "schedule": c.schedule_disclosure,
        },
        "acceptance_threshold": c.acceptance_threshold,
        "strategy_thresholds": {
            "merge_content": c.merge_content_threshold,
            "combine_detailed": c.combine_detailed_threshold,
            "combine_summary": c.combine_summary_threshold,
        },
        "min_token_length": c.min_token_length,
        "stop_words": len(c.stop_words),
    }
    if _get_json_output():
        typer.echo(json.dumps(data, indent=2))
        return
    for key, value in data.items():
        typer.echo(f"{key}: {value}")


# -----------------------------------------------------------------------------

def main():
    try:
        app()
    except SystemExit:
        raise  # Let typer handle exit codes
    except KeyboardInterrupt:
        raise SystemExit(130)  # Standard exit code for Ctrl+C
    except Exception as e:
        # Log full traceback to file, show clean message to user
        from .errors import log_exception
        log_path = log_exception(e, context="consolidate CLI", work_dir=_get_work_dir())
        typer.echo(f"Error: {e}", err=True)
        typer.echo(f"Details logged to {log_path}", err=True)
        raise SystemExit(1)


if __name__ == "__main__":
    main()
