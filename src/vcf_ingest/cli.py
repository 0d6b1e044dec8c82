"""vcf-ingest: VCF variant ingestion CLI."""

import asyncio
import json
import logging
import os
import time
from pathlib import Path
from typing import Annotated
from urllib.parse import urlparse, urlunparse

import asyncpg
import typer
from rich.console import Console
from rich.progress import BarColumn, Progress, SpinnerColumn, TaskProgressColumn, TextColumn

from . import __version__
from .audit import InMemoryAuditSink, PostgresAuditSink
from .config import ConfigValidationError, load_config
from .errors import (
    ImportCancelledError,
    ImportParseError,
    ImportStorageError,
    StorageUnavailableError,
    VCFParseError,
)
from .importer import ImportConfig, VCFImporter, new_job_id
from .models import ImportResult
from .secrets import (
    PASSWORD_ENV_VAR,
    CredentialValidationError,
    get_database_password,
    mask_password_in_url,
    validate_no_password_in_url,
)
from .storage import CachedVariantStore, InMemoryVariantStore, PostgresVariantStore, SchemaManager
from .vcf_parser import VCFParser

MAX_ERRORS_SHOWN = 10


def version_callback(value: bool) -> None:
    if value:
        print(__version__)
        raise typer.Exit()


app = typer.Typer(
    name="vcf-ingest",
    help="Import VCF variants with gene resolution and duplicate detection",
)
console = Console()


@app.callback()
def main_callback(
    version: Annotated[
        bool | None,
        typer.Option(
            "--version", callback=version_callback, is_eager=True, help="Show version and exit"
        ),
    ] = None,
) -> None:
    pass


def setup_logging(log_level: str = "INFO", log_file: Path | None = None) -> None:
    """Configure logging at the given level name (DEBUG, INFO, WARNING, ...)."""
    level = getattr(logging, log_level.upper())

    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%H:%M:%S",
    )
    package_logger = logging.getLogger("vcf_ingest")
    package_logger.setLevel(level)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(
            logging.Formatter(
                "%(asctime)s - %(name)s - %(levelname)s - %(message)s", datefmt="%Y-%m-%d %H:%M:%S"
            )
        )
        package_logger.addHandler(file_handler)


def _with_password(url: str, password: str) -> str:
    parsed = urlparse(url)
    user_part = parsed.username or "postgres"
    netloc = f"{user_part}:{password}@{parsed.hostname}"
    if parsed.port:
        netloc += f":{parsed.port}"
    return urlunparse(
        (parsed.scheme, netloc, parsed.path, parsed.params, parsed.query, parsed.fragment)
    )


def _build_database_url(password_env_var: str = PASSWORD_ENV_VAR) -> str | None:
    """Build a database URL from the environment.

    POSTGRES_URL wins over the PG* variables. Returns None when neither
    POSTGRES_URL nor PGHOST is set.

    Raises:
        CredentialValidationError: If POSTGRES_URL embeds a password.
    """
    if url := os.environ.get("POSTGRES_URL"):
        validate_no_password_in_url(url)
        base_url = url
    elif host := os.environ.get("PGHOST"):
        port = os.environ.get("PGPORT", "5432")
        user = os.environ.get("PGUSER", "postgres")
        database = os.environ.get("PGDATABASE", "variants")
        base_url = f"postgresql://{user}@{host}:{port}/{database}"
    else:
        return None

    password = get_database_password(password_env_var=password_env_var)
    return _with_password(base_url, password) if password else base_url


def _resolve_database_url(
    db_url: str | None, password_env_var: str = PASSWORD_ENV_VAR
) -> str | None:
    """Resolve the database URL from --db or the environment.

    Raises:
        CredentialValidationError: If a password is embedded in the URL.
    """
    logger = logging.getLogger(__name__)

    if db_url is not None:
        validate_no_password_in_url(db_url)
        password = get_database_password(password_env_var=password_env_var)
        if password:
            logger.info("Using --db URL with password from environment")
            return _with_password(db_url, password)
        return db_url

    return _build_database_url(password_env_var)


def _build_import_config(
    config_file: Path | None,
    batch_size: int | None,
    padding: int | None,
    verbose: bool,
    quiet: bool,
) -> ImportConfig:
    overrides = {"batch_size": batch_size, "gene_padding_bp": padding}
    if config_file:
        config = load_config(config_file, overrides=overrides)
    else:
        config = ImportConfig(**{k: v for k, v in overrides.items() if v is not None})

    if verbose:
        config.log_level = "DEBUG"
    elif quiet:
        config.log_level = "WARNING"
    return config


def _print_result(result: ImportResult, job_id: str) -> None:
    console.print(f"[green]✓[/green] Imported {result.successful:,} of {result.total:,} records")
    console.print(f"  Job ID: {job_id}")
    console.print(f"  Batches committed: {result.batches_committed}")
    if result.warnings:
        console.print(f"  [yellow]Skipped {len(result.warnings):,} existing variants[/yellow]")
    if result.failed:
        console.print(f"  [red]Failed: {result.failed:,}[/red]")
        for issue in result.errors[:MAX_ERRORS_SHOWN]:
            console.print(f"    {issue.record}: {issue.message}")
        if len(result.errors) > MAX_ERRORS_SHOWN:
            console.print(f"    ... and {len(result.errors) - MAX_ERRORS_SHOWN} more")


def _write_report(
    report: Path, status: str, job_id: str, vcf_path: Path, result: ImportResult | None
) -> None:
    report_data = {
        "status": status,
        "job_id": job_id,
        "vcf_file": str(vcf_path),
        "timestamp": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
        "result": result.to_dict() if result is not None else None,
    }
    with open(report, "w") as f:
        json.dump(report_data, f, indent=2)
        f.write("\n")


@app.command("import")
def import_command(
    vcf_path: Path = typer.Argument(..., help="Path to VCF file (.vcf, .vcf.gz)"),
    db_url: Annotated[
        str | None,
        typer.Option("--db", "-d", help="PostgreSQL URL (omit to use POSTGRES_URL or PG* vars)"),
    ] = None,
    db_password_env: Annotated[
        str,
        typer.Option("--db-password-env", help="Environment variable for database password"),
    ] = PASSWORD_ENV_VAR,
    batch_size: Annotated[
        int | None, typer.Option("--batch", "-b", help="Records per transaction", min=1)
    ] = None,
    padding: Annotated[
        int | None,
        typer.Option("--padding", help="Placeholder gene padding in base pairs", min=0),
    ] = None,
    config_file: Annotated[
        Path | None, typer.Option("--config", "-c", help="TOML configuration file")
    ] = None,
    job_id: Annotated[str | None, typer.Option("--job-id", help="Import job identifier")] = None,
    dry_run: bool = typer.Option(
        False, "--dry-run", help="Run against an in-memory store without touching the database"
    ),
    report: Annotated[
        Path | None, typer.Option("--report", "-r", help="Write JSON report to file")
    ] = None,
    log_file: Annotated[Path | None, typer.Option("--log", help="Write log to file")] = None,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Suppress non-error output"),
    progress: bool = typer.Option(True, "--progress/--no-progress", help="Show progress bar"),
) -> None:
    """Import a VCF file.

    Each batch commits in its own transaction. Records that fail are listed
    in the result; variants that already exist are skipped with a warning.
    """
    if not vcf_path.exists():
        console.print(f"[red]Error: VCF file not found: {vcf_path}[/red]")
        raise typer.Exit(1)

    try:
        config = _build_import_config(config_file, batch_size, padding, verbose, quiet)
    except (ConfigValidationError, FileNotFoundError) as e:
        console.print(f"[red]Configuration Error: {e}[/red]")
        raise typer.Exit(1) from None

    setup_logging(config.log_level, log_file)

    resolved_db_url = None
    if not dry_run:
        try:
            resolved_db_url = _resolve_database_url(db_url, db_password_env)
        except CredentialValidationError as e:
            console.print(f"[red]Security Error: {e}[/red]")
            raise typer.Exit(1) from None
        if resolved_db_url is None:
            console.print(
                "[red]Error: No database configured. Use --db, POSTGRES_URL, or PGHOST "
                "(or --dry-run).[/red]"
            )
            raise typer.Exit(1)

    job_id = job_id or new_job_id()

    async def run_import() -> ImportResult:
        if resolved_db_url is None:
            importer = VCFImporter(InMemoryVariantStore(), config, InMemoryAuditSink())
            return await importer.import_file(vcf_path, job_id=job_id)

        async with PostgresVariantStore(resolved_db_url) as store:
            importer = VCFImporter(
                CachedVariantStore(store), config, PostgresAuditSink(store.pool)
            )
            return await importer.import_file(vcf_path, job_id=job_id)

    if not quiet:
        target = "in-memory store (dry run)" if dry_run else mask_password_in_url(resolved_db_url)
        console.print(f"Importing {vcf_path.name} into {target}...")

    try:
        if progress and not quiet:
            with Progress(
                SpinnerColumn(),
                TextColumn("[progress.description]{task.description}"),
                BarColumn(),
                TaskProgressColumn(),
                console=console,
            ) as progress_bar:
                task = progress_bar.add_task("Importing variants...", total=None)

                def update_progress(batch_num: int, batch_len: int, processed: int) -> None:
                    progress_bar.update(
                        task, completed=processed, description=f"Processed {processed:,} records"
                    )

                config.progress_callback = update_progress
                result = asyncio.run(run_import())
        else:
            result = asyncio.run(run_import())

    except ImportParseError as e:
        console.print(f"[red]Parse Error: {e}[/red]")
        if report:
            _write_report(report, "parse_failed", job_id, vcf_path, None)
        raise typer.Exit(1) from None
    except (ImportStorageError, ImportCancelledError) as e:
        console.print(f"[red]Error: {e}[/red]")
        if report:
            _write_report(report, "aborted", job_id, vcf_path, e.result)
        raise typer.Exit(1) from None
    except StorageUnavailableError as e:
        console.print(f"[red]Error: Database connection failed: {e}[/red]")
        raise typer.Exit(1) from None
    except Exception as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1) from None

    if not quiet:
        _print_result(result, job_id)
    if report:
        _write_report(report, "completed", job_id, vcf_path, result)
        if not quiet:
            console.print(f"  Report: {report}")


@app.command()
def parse(
    vcf_path: Path = typer.Argument(..., help="Path to VCF file (.vcf, .vcf.gz)"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
) -> None:
    """Parse a VCF file and print header and record statistics."""
    setup_logging("DEBUG" if verbose else "WARNING")

    if not vcf_path.exists():
        console.print(f"[red]Error: VCF file not found: {vcf_path}[/red]")
        raise typer.Exit(1)

    try:
        parsed = VCFParser().parse_file(vcf_path)
    except VCFParseError as e:
        console.print(f"[red]Parse Error: {e}[/red]")
        raise typer.Exit(1) from None

    header = parsed.header
    stats = parsed.stats
    console.print(f"[bold]{vcf_path.name}[/bold]")
    console.print(f"  Format: {header.fileformat or 'unknown'}")
    console.print(f"  Reference: {header.reference or 'unknown'}")
    console.print(f"  Samples: {len(header.samples)}")
    console.print(f"  Records: {stats.total_records:,}")
    console.print(f"  Chromosomes: {', '.join(stats.chromosomes) or '-'}")
    for variant_type, count in sorted(stats.variant_types.items()):
        console.print(f"    {variant_type}: {count:,}")
    if parsed.skipped_lines:
        console.print(f"  [yellow]Skipped lines: {len(parsed.skipped_lines)}[/yellow]")
        for skipped in parsed.skipped_lines[:MAX_ERRORS_SHOWN]:
            console.print(f"    line {skipped.line_number}: {skipped.reason}")


@app.command()
def history(
    db_url: Annotated[
        str | None,
        typer.Option("--db", "-d", help="PostgreSQL URL (omit to use POSTGRES_URL or PG* vars)"),
    ] = None,
    db_password_env: Annotated[
        str,
        typer.Option("--db-password-env", help="Environment variable for database password"),
    ] = PASSWORD_ENV_VAR,
    job_id: Annotated[
        str | None, typer.Option("--job-id", help="Show a single import by job ID")
    ] = None,
    limit: Annotated[int, typer.Option("--limit", "-n", help="Number of imports", min=1)] = 10,
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """Show recent imports with gene and variant totals."""
    try:
        resolved_db_url = _resolve_database_url(db_url, db_password_env)
    except CredentialValidationError as e:
        console.print(f"[red]Security Error: {e}[/red]")
        raise typer.Exit(1) from None
    if resolved_db_url is None:
        console.print("[red]Error: No database configured. Use --db, POSTGRES_URL, or PGHOST.[/red]")
        raise typer.Exit(1)

    async def run_history() -> tuple[list[dict], dict[str, int]]:
        async with PostgresVariantStore(resolved_db_url) as store:
            sink = PostgresAuditSink(store.pool)
            if job_id:
                entry = await sink.get_entry(job_id)
                entries = [entry] if entry is not None else []
            else:
                entries = await sink.recent_entries(limit)
            totals = await store.count_rows()
        return entries, totals

    try:
        entries, totals = asyncio.run(run_history())
    except StorageUnavailableError as e:
        console.print(f"[red]Error: Database connection failed: {e}[/red]")
        raise typer.Exit(1) from None
    except Exception as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1) from None

    if job_id and not entries:
        console.print(f"[red]Error: No import found with job ID {job_id}[/red]")
        raise typer.Exit(1)

    if json_output:
        console.print_json(data={"imports": entries, "totals": totals})
        return

    console.print("[bold]Import History[/bold]")
    console.print(f"  Genes: {totals['genes']:,}")
    console.print(f"  Variants: {totals['variants']:,}")
    if not entries:
        console.print("  No imports recorded")
    for entry in entries:
        result = entry.get("result") or {}
        console.print(
            f"  [cyan]{entry['job_id']}[/cyan] {entry['status']} "
            f"{entry.get('source_name') or '-'}: "
            f"{result.get('successful', 0):,}/{result.get('total', 0):,} imported, "
            f"{result.get('failed', 0):,} failed, "
            f"{len(result.get('warnings', [])):,} skipped"
        )
        if entry.get("completed_at"):
            console.print(f"    [dim]Completed: {entry['completed_at']}[/dim]")


@app.command("init-db")
def init_db(
    db_url: Annotated[
        str | None,
        typer.Option("--db", "-d", help="PostgreSQL URL (omit to use POSTGRES_URL or PG* vars)"),
    ] = None,
    db_password_env: Annotated[
        str,
        typer.Option("--db-password-env", help="Environment variable for database password"),
    ] = PASSWORD_ENV_VAR,
) -> None:
    """Create the genes, variants, and import audit tables."""
    try:
        resolved_db_url = _resolve_database_url(db_url, db_password_env)
    except CredentialValidationError as e:
        console.print(f"[red]Security Error: {e}[/red]")
        raise typer.Exit(1) from None
    if resolved_db_url is None:
        console.print("[red]Error: No database configured. Use --db, POSTGRES_URL, or PGHOST.[/red]")
        raise typer.Exit(1)

    async def run_init() -> None:
        conn = await asyncpg.connect(resolved_db_url)
        try:
            schema_manager = SchemaManager()
            await schema_manager.create_schema(conn)
            await schema_manager.create_indexes(conn)
        finally:
            await conn.close()

    try:
        asyncio.run(run_init())
    except Exception as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1) from None

    console.print("[green]✓[/green] Database schema initialized")


if __name__ == "__main__":
    app()
