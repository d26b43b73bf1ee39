"""
MBS Code Selector — CLI entry point.

All commands follow this pattern:
  1. Load ``AppConfig`` via ``load_config()``.
  2. Configure logging.
  3. Execute action (DB init, analysis, store listing).
  4. Report result to stdout.

Install and run::

    pip install -e .
    mbs-selector --help
    mbs-selector validate-config
    mbs-selector init-db
    mbs-selector health
    mbs-selector analyze --note notes/visit.txt --auto-select high --export out/claim.csv
    mbs-selector presets
    mbs-selector history --action select --limit 20
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Optional

import typer

app = typer.Typer(
    name="mbs-selector",
    help="MBS billing-code selection: analysis, conflict-checked selection and presets.",
    add_completion=False,
)


# ── Helpers ───────────────────────────────────────────────────────────────────

def _load_config_or_exit(config_path: Optional[str] = None):
    """Load AppConfig, printing a friendly error and exiting on failure."""
    from mbs_selector.config import load_config

    try:
        cfg_path = Path(config_path) if config_path else None
        return load_config(cfg_path)
    except FileNotFoundError as exc:
        typer.echo(f"[ERROR] {exc}", err=True)
        raise typer.Exit(code=1)
    except ValueError as exc:
        typer.echo(f"[ERROR] Config validation failed: {exc}", err=True)
        raise typer.Exit(code=1)


def _configure_logging(config):
    """Set up logging from config."""
    from mbs_selector.utils.logging import configure_logging
    configure_logging(config.logging)


def _kv_store(config):
    """Open the SQLite key-value store, or an in-memory one if the DB is unusable."""
    import sqlite3

    from mbs_selector.db.kv_store import InMemoryKeyValueStore, SqliteKeyValueStore

    try:
        Path(config.storage.db_path).parent.mkdir(parents=True, exist_ok=True)
        return SqliteKeyValueStore(
            config.storage.db_path,
            wal_mode=config.storage.wal_mode,
            busy_timeout_ms=config.storage.busy_timeout_ms,
        )
    except (sqlite3.Error, OSError) as exc:
        typer.echo(
            f"[WARN] Storage at {config.storage.db_path} unavailable ({exc}); "
            "presets and history will not be saved this run.",
            err=True,
        )
        return InMemoryKeyValueStore()


def _echo_store_warnings(store) -> None:
    for warning in store.warnings:
        typer.echo(f"[WARN] {warning}", err=True)


# ── Commands ──────────────────────────────────────────────────────────────────

@app.command("init-db")
def init_db(
    db_path: Optional[str] = typer.Option(
        None,
        "--db-path",
        help="Override DB path from config (e.g. data/db/test.db).",
    ),
    config_path: Optional[str] = typer.Option(
        None,
        "--config",
        help="Path to TOML config file.",
    ),
) -> None:
    """Initialize the SQLite preset/history store.

    Safe to run multiple times — all DDL uses IF NOT EXISTS.
    """
    from mbs_selector.db.connection import open_kv_connection
    from mbs_selector.db.schema import ALL_TABLE_NAMES, apply_schema

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    target_path = db_path or config.storage.db_path
    typer.echo(f"Initializing database at: {target_path}")
    Path(target_path).parent.mkdir(parents=True, exist_ok=True)

    with open_kv_connection(
        target_path,
        wal_mode=config.storage.wal_mode,
        busy_timeout_ms=config.storage.busy_timeout_ms,
    ) as conn:
        apply_schema(conn)

    typer.echo(f"  Tables: {len(ALL_TABLE_NAMES)} created/verified.")
    typer.echo("[OK] Database ready.")


@app.command("validate-config")
def validate_config(
    config_path: Optional[str] = typer.Option(
        None,
        "--config",
        help="Path to TOML config file (default: config/default.toml).",
    ),
    show_full: bool = typer.Option(
        False,
        "--full",
        help="Print full config including all fields.",
    ),
) -> None:
    """Validate the configuration file and print parsed values.

    Exits with code 1 if the config fails validation.
    """
    config = _load_config_or_exit(config_path)

    typer.echo("Configuration validated successfully.")
    typer.echo("")
    typer.echo(f"  API base URL:     {config.api.base_url}")
    typer.echo(f"  API timeout:      {config.api.timeout_seconds:.0f}s")
    typer.echo(f"  Max codes:        {config.selection.max_codes or 'unlimited'}")
    typer.echo(
        f"  Tier thresholds:  high>={config.selection.high_confidence_threshold}, "
        f"medium>={config.selection.medium_confidence_threshold}"
    )
    typer.echo(f"  Database path:    {config.storage.db_path}")
    typer.echo(f"  Log level:        {config.logging.level}")
    typer.echo(f"  Debug mode:       {config.debug}")

    if show_full:
        typer.echo("")
        typer.echo("Full config (JSON):")
        typer.echo(json.dumps(config.model_dump(), indent=2, default=str))

    typer.echo("")
    typer.echo("[OK] Config valid.")


@app.command("health")
def health(
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to TOML config file."),
) -> None:
    """Probe the analysis service (health, readiness, liveness)."""
    from mbs_selector.api.analysis_client import AnalysisClient
    from mbs_selector.exceptions import AnalysisError

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    typer.echo(f"Analysis service: {config.api.base_url}")
    with AnalysisClient.from_config(config.api) as client:
        try:
            report = client.health()
        except AnalysisError as exc:
            typer.echo(f"[ERROR] Health check failed: {exc.message}", err=True)
            raise typer.Exit(code=1)
        ready = client.ready()
        live = client.live()

    typer.echo(f"  Status:  {report.status} (version {report.version or '?'})")
    for name, check in report.checks.items():
        mark = "OK " if check.healthy else "ERR"
        typer.echo(f"  [{mark}] {name:<16} {check.message or ''}")
    typer.echo(f"  Ready:   {ready.get('ready', False)}")
    typer.echo(f"  Alive:   {live.get('alive', False)}")

    if not report.is_healthy:
        raise typer.Exit(code=1)


@app.command("analyze")
def analyze(
    note_file: str = typer.Option(
        ..., "--note", "-n", help="Path to a UTF-8 text file with the consultation note."
    ),
    context: str = typer.Option(
        "general_practice", "--context", help="Consultation context (e.g. mental_health)."
    ),
    max_codes: int = typer.Option(5, "--max-codes", help="Recommendations to request (1-10)."),
    min_confidence: float = typer.Option(
        0.6, "--min-confidence", help="Minimum recommendation confidence (0-1)."
    ),
    auto_select: Optional[str] = typer.Option(
        None,
        "--auto-select",
        help="Greedily select 'all' recommendations or one tier: high | medium | low.",
    ),
    suggest: bool = typer.Option(
        False, "--suggest", help="Print optimisation suggestions for the selection."
    ),
    export_path: Optional[str] = typer.Option(
        None, "--export", help="Write the selection to a .csv or .json file."
    ),
    save_preset: Optional[str] = typer.Option(
        None, "--save-preset", help="Save the resulting selection as a named preset."
    ),
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to TOML config file."),
) -> None:
    """Analyse a consultation note and print ranked MBS recommendations.

    With ``--auto-select`` the recommendations are run through the
    conflict-checked selection engine; skipped codes are reported.
    """
    from pydantic import ValidationError

    from mbs_selector.api.analysis_client import AnalysisClient
    from mbs_selector.api.session import AnalysisSession
    from mbs_selector.exceptions import AnalysisError
    from mbs_selector.models.analysis import AnalysisOptions, AnalysisRequest
    from mbs_selector.models.preset import PresetDraft
    from mbs_selector.reporting.export import (
        SELECTION_EXPORT_FIELDS,
        export_to_csv,
        export_to_json,
        flatten_selection_for_export,
        selection_export_document,
    )
    from mbs_selector.reporting.formatters import (
        format_recommendations_table,
        format_selection_summary,
        format_suggestions,
    )
    from mbs_selector.selection.bulk import BulkOperations
    from mbs_selector.selection.engine import SelectionEngine
    from mbs_selector.selection.optimiser import OptimisationAdvisor
    from mbs_selector.stores.history import HistoryStore
    from mbs_selector.stores.presets import PresetStore

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    path = Path(note_file)
    if not path.exists():
        typer.echo(f"[ERROR] Note file not found: {path}", err=True)
        raise typer.Exit(code=1)

    try:
        request = AnalysisRequest(
            consultation_note=path.read_text(encoding="utf-8"),
            context=context,
            options=AnalysisOptions(max_codes=max_codes, min_confidence=min_confidence),
        )
    except ValidationError as exc:
        typer.echo(f"[ERROR] Invalid request: {exc}", err=True)
        raise typer.Exit(code=1)

    kv = _kv_store(config)
    history = HistoryStore(
        kv, max_entries=config.selection.history_max_entries, key=config.storage.history_key
    )
    engine = SelectionEngine(
        [],
        max_codes=config.selection.max_codes,
        history_store=history,
        undo_limit=config.selection.undo_limit,
    )

    typer.echo(f"Analysing {path} ({len(request.consultation_note)} chars) ...")
    with AnalysisClient.from_config(config.api) as client:
        session = AnalysisSession(client, on_recommendations=engine.replace_recommendations)
        try:
            response = session.submit(request)
        except AnalysisError as exc:
            if not session.can_retry:
                typer.echo(f"[ERROR] {exc.message}", err=True)
                raise typer.Exit(code=1)
            typer.echo(f"[WARN] {exc.message} Retrying once ...", err=True)
            try:
                response = session.retry()
            except AnalysisError as retry_exc:
                typer.echo(f"[ERROR] {retry_exc.message}", err=True)
                raise typer.Exit(code=1)

    if auto_select:
        bulk = BulkOperations(
            engine,
            high_threshold=config.selection.high_confidence_threshold,
            medium_threshold=config.selection.medium_confidence_threshold,
        )
        if auto_select == "all":
            result = bulk.select_all()
        else:
            try:
                result = bulk.select_by_confidence_tier(auto_select)
            except ValueError:
                typer.echo(f"[ERROR] Unknown tier '{auto_select}'.", err=True)
                raise typer.Exit(code=1)
        if result.skipped:
            typer.echo(f"  Skipped (conflict or limit): {', '.join(result.skipped)}")

    typer.echo(format_recommendations_table(response.recommendations, engine.selected_codes))
    typer.echo(f"  Processed in {response.metadata.processing_time_ms:.0f} ms.")

    if engine.selected_codes:
        typer.echo(format_selection_summary(engine.selection_summary))

    if suggest:
        advisor = OptimisationAdvisor(engine.recommendations, max_codes=config.selection.max_codes)
        typer.echo(format_suggestions(advisor.suggest_all(engine.selected_codes)))

    if export_path:
        target = Path(export_path)
        snapshot = engine.snapshot()
        if target.suffix.lower() == ".json":
            export_to_json(selection_export_document(snapshot, engine.recommendations), target)
        else:
            export_to_csv(
                flatten_selection_for_export(snapshot, engine.recommendations),
                target,
                fieldnames=SELECTION_EXPORT_FIELDS,
            )
        typer.echo(f"  Exported {len(snapshot.selected_codes)} code(s) to {target}")

    if save_preset:
        presets = PresetStore(kv, key=config.storage.presets_key)
        preset = presets.save(PresetDraft(name=save_preset, selected_codes=engine.selected_codes))
        _echo_store_warnings(presets)
        typer.echo(f"  Saved preset '{preset.name}' ({preset.id}).")

    _echo_store_warnings(history)
    typer.echo("[OK] Analysis complete.")


@app.command("presets")
def presets(
    delete: Optional[str] = typer.Option(None, "--delete", help="Delete the preset with this id."),
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to TOML config file."),
) -> None:
    """List saved selection presets."""
    from mbs_selector.exceptions import PresetNotFoundError
    from mbs_selector.reporting.formatters import format_presets_table
    from mbs_selector.stores.presets import PresetStore

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    store = PresetStore(_kv_store(config), key=config.storage.presets_key)
    if delete:
        try:
            removed = store.delete(delete)
        except PresetNotFoundError as exc:
            typer.echo(f"[ERROR] {exc}", err=True)
            raise typer.Exit(code=1)
        typer.echo(f"Deleted preset '{removed.name}'.")

    typer.echo(format_presets_table(store.presets))
    _echo_store_warnings(store)


@app.command("history")
def history(
    action: Optional[str] = typer.Option(
        None, "--action", help="Only show entries with this action (e.g. select, undo)."
    ),
    limit: int = typer.Option(50, "--limit", help="Maximum rows to print."),
    clear: bool = typer.Option(False, "--clear", help="Delete all history entries."),
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to TOML config file."),
) -> None:
    """List recorded selection history, newest first."""
    from mbs_selector.reporting.formatters import format_history_table
    from mbs_selector.stores.history import HistoryStore

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    store = HistoryStore(
        _kv_store(config),
        max_entries=config.selection.history_max_entries,
        key=config.storage.history_key,
    )
    if clear:
        store.clear_history()
        typer.echo("[OK] History cleared.")
        return

    if action:
        try:
            entries = store.get_history_by_action(action)
        except ValueError:
            typer.echo(f"[ERROR] Unknown action '{action}'.", err=True)
            raise typer.Exit(code=1)
    else:
        entries = store.entries

    typer.echo(format_history_table(entries, limit=limit))
    _echo_store_warnings(store)


if __name__ == "__main__":
    app()
