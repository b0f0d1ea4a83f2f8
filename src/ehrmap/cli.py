"""Command-line interface for ehrmap."""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path
from typing import Any

import click

from ehrmap import __version__
from ehrmap.audit import InMemoryAuditSink, JsonLinesAuditSink
from ehrmap.backends import BACKENDS
from ehrmap.config import Settings
from ehrmap.conversion.engine import ConversionEngine
from ehrmap.conversion.mapper import FieldMapper
from ehrmap.core.errors import EHRMapError
from ehrmap.core.types import Actor, ErrorPolicy, MissingRequiredPolicy, Role, to_camel
from ehrmap.registry.loader import RegistryLoader

logger = logging.getLogger(__name__)

# Actor recorded in audit entries for command-line operations
CLI_ACTOR = Actor(id="cli", role=Role.ADMIN)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.WARNING),
        format="%(levelname)s | %(name)s | %(message)s",
        force=True,
    )


def build_engine(settings: Settings) -> ConversionEngine:
    """Create a conversion engine from settings."""
    logger.debug("Using registry directory %s", settings.registry_dir)
    registry = RegistryLoader(settings.registry_dir).load_all()
    audit = JsonLinesAuditSink(settings.audit_log) if settings.audit_log else InMemoryAuditSink()
    return ConversionEngine(registry, audit=audit, options=settings.transform_options())


def _engine(ctx: click.Context) -> ConversionEngine:
    if "engine" not in ctx.obj:
        try:
            ctx.obj["engine"] = build_engine(ctx.obj["settings"])
        except (EHRMapError, FileNotFoundError) as e:
            raise click.ClickException(str(e)) from e
    engine: ConversionEngine = ctx.obj["engine"]
    return engine


def _read_json(input_file: Path) -> Any:
    try:
        return json.loads(input_file.read_text())
    except json.JSONDecodeError as e:
        raise click.ClickException(f"Invalid JSON in {input_file}: {e}") from e


def _emit(data: Any, output: Path | None, pretty: bool) -> None:
    output_json = json.dumps(data, indent=2 if pretty else None, default=str)
    if output:
        output.write_text(output_json)
        click.echo(f"Output written to {output}")
    else:
        click.echo(output_json)


@click.group()
@click.version_option(version=__version__)
@click.option(
    "--registry-dir",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=None,
    help="Directory of EHR system registry files",
)
@click.option(
    "--config",
    "config_file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="YAML settings file",
)
@click.option(
    "--missing-required",
    type=click.Choice([p.value for p in MissingRequiredPolicy]),
    default=None,
    help="Default or fail on required fields without a value",
)
@click.option(
    "--on-error",
    type=click.Choice([p.value for p in ErrorPolicy]),
    default=None,
    help="Raise on or skip values that cannot be coerced",
)
@click.option("--strict/--lenient", default=None, help="Reject mappings to unknown fields")
@click.option("--log-level", default=None, help="Logging level (default: WARNING)")
@click.pass_context
def cli(
    ctx: click.Context,
    registry_dir: Path | None,
    config_file: Path | None,
    missing_required: str | None,
    on_error: str | None,
    strict: bool | None,
    log_level: str | None,
) -> None:
    """ehrmap - Map patient records to and from EHR vendor formats."""
    ctx.ensure_object(dict)
    settings = Settings.from_env()
    if config_file:
        try:
            settings = settings.overlay(config_file)
        except ValueError as e:
            raise click.ClickException(str(e)) from e
    if registry_dir:
        settings.registry_dir = registry_dir
    if missing_required:
        settings.missing_required = MissingRequiredPolicy(missing_required)
    if on_error:
        settings.on_error = ErrorPolicy(on_error)
    if strict is not None:
        settings.strict = strict
    if log_level:
        settings.log_level = log_level.upper()

    configure_logging(settings.log_level)
    ctx.obj["settings"] = settings


@cli.command()
@click.argument("input_file", type=click.Path(exists=True, path_type=Path))
@click.option("--system", "-s", required=True, help="Target EHR system id (e.g., epic)")
@click.option(
    "--output",
    "-o",
    type=click.Path(path_type=Path),
    default=None,
    help="Output file (default: stdout)",
)
@click.option("--full", is_flag=True, help="Emit the full export result, not just the document")
@click.option("--pretty/--compact", default=True, help="Pretty print JSON output")
@click.pass_context
def transform(
    ctx: click.Context,
    input_file: Path,
    system: str,
    output: Path | None,
    full: bool,
    pretty: bool,
) -> None:
    """Transform a patient record (JSON) into an EHR document.

    Example:

        ehrmap transform -s epic patient.json
    """
    engine = _engine(ctx)
    data = _read_json(input_file)
    records = data if isinstance(data, list) else [data]

    try:
        results = [engine.export_patient(system, CLI_ACTOR, record=r) for r in records]
    except EHRMapError as e:
        raise click.ClickException(str(e)) from e

    for i, result in enumerate(results):
        for error in result.errors:
            click.echo(f"Warning: record {i}: {error}", err=True)

    payload = [r.to_dict() if full else r.transformed_data for r in results]
    _emit(payload if isinstance(data, list) else payload[0], output, pretty)


@cli.command()
@click.argument("input_file", type=click.Path(exists=True, path_type=Path))
@click.option("--system", "-s", required=True, help="Source EHR system id (e.g., epic)")
@click.option(
    "--output",
    "-o",
    type=click.Path(path_type=Path),
    default=None,
    help="Output file (default: stdout)",
)
@click.option("--pretty/--compact", default=True, help="Pretty print JSON output")
@click.pass_context
def reverse(
    ctx: click.Context,
    input_file: Path,
    system: str,
    output: Path | None,
    pretty: bool,
) -> None:
    """Transform an EHR document (JSON) back into patient record fields.

    Example:

        ehrmap reverse -s athena athena_export.json
    """
    engine = _engine(ctx)
    document = _read_json(input_file)
    if not isinstance(document, dict):
        raise click.ClickException("EHR document must be a JSON object")

    try:
        mapper = FieldMapper(engine.get_field_mappings(system), engine.options)
        partial, errors = mapper.map_document(document)
    except EHRMapError as e:
        raise click.ClickException(str(e)) from e

    for error in errors:
        click.echo(f"Warning: {error}", err=True)

    _emit({to_camel(k): v for k, v in partial.items()}, output, pretty)


@cli.command()
@click.argument("input_file", type=click.Path(exists=True, path_type=Path))
@click.option("--system", "-s", required=True, help="EHR system id to validate against")
@click.pass_context
def validate(ctx: click.Context, input_file: Path, system: str) -> None:
    """Check a patient record (JSON) for an EHR system's required fields.

    Example:

        ehrmap validate -s allscripts patient.json
    """
    engine = _engine(ctx)
    record = _read_json(input_file)
    if not isinstance(record, dict):
        raise click.ClickException("Patient record must be a JSON object")

    try:
        result = engine.validate_patient(system, CLI_ACTOR, record=record)
    except EHRMapError as e:
        raise click.ClickException(str(e)) from e

    if result.is_valid:
        click.echo("Validation PASSED: All required fields present")
    else:
        click.echo(f"Validation FAILED: Missing required fields: {result.missing_fields}", err=True)
        sys.exit(1)


@cli.command("list-systems")
@click.pass_context
def list_systems(ctx: click.Context) -> None:
    """List active EHR systems."""
    engine = _engine(ctx)

    click.echo("Available EHR systems:")
    click.echo()
    for system in engine.list_systems():
        version = f" {system.version}" if system.version else ""
        click.echo(
            f"  - {system.id}: {system.name}{version} ({len(system.field_mappings)} mappings)"
        )


@cli.command("show-mappings")
@click.argument("system")
@click.pass_context
def show_mappings(ctx: click.Context, system: str) -> None:
    """Show the field mappings of an EHR system.

    Example:

        ehrmap show-mappings epic
    """
    engine = _engine(ctx)
    try:
        mappings = engine.get_field_mappings(system)
    except EHRMapError as e:
        raise click.ClickException(str(e)) from e

    if not mappings:
        click.echo(f"No mappings found for {system}")
        return

    click.echo(f"Mappings for {system}:")
    click.echo()
    for m in mappings:
        required = " (required)" if m.is_required else ""
        click.echo(f"  {m.standard_field} -> {m.ehr_field} [{m.data_type.value}]{required}")


@cli.command("export-batch")
@click.argument("input_file", type=click.Path(exists=True, path_type=Path))
@click.option("--system", "-s", required=True, help="Target EHR system id")
@click.option(
    "--output",
    "-o",
    type=click.Path(path_type=Path),
    required=True,
    help="Parquet output file",
)
@click.option(
    "--backend",
    "-b",
    type=click.Choice(sorted(BACKENDS)),
    default="arrow",
    help="Data processing backend (default: arrow)",
)
@click.pass_context
def export_batch(
    ctx: click.Context,
    input_file: Path,
    system: str,
    output: Path,
    backend: str,
) -> None:
    """Export a CSV or Parquet file of patient records to Parquet.

    Example:

        ehrmap export-batch -s epic -o epic.parquet patients.csv
    """
    engine = _engine(ctx)
    try:
        result = engine.export_dataset(BACKENDS[backend](), input_file, system, CLI_ACTOR, output)
    except (EHRMapError, ValueError) as e:
        raise click.ClickException(str(e)) from e

    for row_index, errors in result.conversion_errors:
        for error in errors:
            click.echo(f"Warning: row {row_index}: {error}", err=True)

    click.echo(
        f"Exported {result.rows_converted}/{result.rows_processed} records to {output}"
    )


def main() -> None:
    """Entry point for CLI."""
    cli()


if __name__ == "__main__":
    main()
