#!/usr/bin/env python3
"""
Command-line interface for schemaforge.

Provides commands to validate JSON documents, export derived schemas and
inspect schema documents.
"""

from __future__ import annotations

import importlib
import json
import traceback
from pathlib import Path
from typing import Any

import typer

from schemaforge.cli.logger import CLILogger
from schemaforge.derivation.engine import SchemaDeriver
from schemaforge.exceptions import DerivationError, SchemaDefinitionError
from schemaforge.json_values import parse_pointer
from schemaforge.registry import Registry
from schemaforge.schemas.nodes import SchemaNode
from schemaforge.schemas.parser import parse_schema
from schemaforge.schemas.serialize import dumps_schema
from schemaforge.validation.context import ValidationOptions
from schemaforge.validation.engine import SchemaValidator
from schemaforge.validation.report import build_report, format_error

app = typer.Typer(
    name='schemaforge',
    help='Derive, export and validate JSON Schema 2020-12 documents',
    add_completion=False,
)

# Exit codes for validate
EXIT_VALID = 0
EXIT_INVALID = 1
EXIT_BAD_INPUT = 2


def _read_json(path: Path, what: str) -> Any:
    """Load a JSON file, exiting with EXIT_BAD_INPUT when it cannot be read or parsed."""
    try:
        return json.loads(path.read_text(encoding='utf-8'))
    except OSError as e:
        typer.secho(f'Error: Cannot read {what} {path}: {e.strerror or e}', fg=typer.colors.RED, err=True)
        raise typer.Exit(EXIT_BAD_INPUT)
    except json.JSONDecodeError as e:
        typer.secho(f'Error: {what.capitalize()} {path} is not valid JSON: {e}', fg=typer.colors.RED, err=True)
        raise typer.Exit(EXIT_BAD_INPUT)


def _load_schema(path: Path) -> SchemaNode:
    document = _read_json(path, 'schema')
    try:
        return parse_schema(document)
    except SchemaDefinitionError as e:
        typer.secho(f'Error: Invalid schema {path}: {e}', fg=typer.colors.RED, err=True)
        raise typer.Exit(EXIT_BAD_INPUT)


def _parse_ref_option(value: str) -> tuple[str, Path]:
    uri, separator, file = value.partition('=')
    if not separator or not uri or not file:
        raise typer.BadParameter(f"Expected URI=FILE, got '{value}'")
    return uri, Path(file)


def _import_type(target: str) -> Any:
    """Resolve 'package.module:TypeName' (dotted attribute paths allowed after the colon)."""
    module_name, separator, attribute = target.partition(':')
    if not separator or not module_name or not attribute:
        raise typer.BadParameter(f"Expected MODULE:TYPE, got '{target}'")
    try:
        obj: Any = importlib.import_module(module_name)
    except ImportError as e:
        raise typer.BadParameter(f"Cannot import module '{module_name}': {e}") from e
    for part in attribute.split('.'):
        try:
            obj = getattr(obj, part)
        except AttributeError as e:
            raise typer.BadParameter(f"'{module_name}' has no attribute '{attribute}'") from e
    return obj


@app.command()
def validate(
    schema: Path = typer.Argument(..., help='Schema document (JSON)'),
    instance: Path = typer.Argument(..., help='Instance document to validate (JSON)'),
    json_output: bool = typer.Option(False, '--json', help='Print a JSON validation report'),
    no_formats: bool = typer.Option(False, '--no-formats', help="Treat 'format' as an annotation only"),
    refs: list[str] = typer.Option([], '--ref', help='Pre-register an external schema: URI=FILE (repeatable)'),
    verbose: bool = typer.Option(False, '--verbose', '-v', help='Verbose output'),
) -> None:
    """Validate a JSON document against a schema.

    Exit code 0 when the document is valid, 1 when it is not, and 2 when the
    schema or the document cannot be read.
    """
    logger = CLILogger(verbose=verbose)

    root = _load_schema(schema)
    externals: dict[str, SchemaNode] = {}
    for value in refs:
        uri, file = _parse_ref_option(value)
        externals[uri] = _load_schema(file)
        logger.info(f'Registered {file} as {uri}')
    value_to_check = _read_json(instance, 'instance')

    base_options = ValidationOptions.from_settings()
    options = ValidationOptions(
        format_assertion=base_options.format_assertion and not no_formats,
        dynamic_scope_order=base_options.dynamic_scope_order,
    )

    try:
        validator = SchemaValidator.for_schema(root, externals=externals, options=options, logger=logger)
    except SchemaDefinitionError as e:
        typer.secho(f'Error: Invalid schema {schema}: {e}', fg=typer.colors.RED, err=True)
        raise typer.Exit(EXIT_BAD_INPUT)

    errors = validator.validate(value_to_check)

    if json_output:
        typer.echo(build_report(errors).to_json())
    elif errors:
        typer.secho(f'✗ {instance} is invalid ({len(errors)} error(s)):', fg=typer.colors.RED)
        for error in errors:
            typer.echo(format_error(error, indent=1))
    else:
        typer.secho(f'✓ {instance} is valid', fg=typer.colors.GREEN)

    raise typer.Exit(EXIT_INVALID if errors else EXIT_VALID)


@app.command()
def export(
    target: str = typer.Argument(..., help='Type to derive, as package.module:TypeName'),
    output: Path | None = typer.Option(None, '--output', '-o', help='Write to file instead of stdout'),
    no_schema_uri: bool = typer.Option(False, '--no-schema-uri', help='Omit the $schema keyword'),
    discriminator: str | None = typer.Option(
        None, '--discriminator', help='Discriminator property for unions of record types'
    ),
    verbose: bool = typer.Option(False, '--verbose', '-v', help='Verbose output'),
) -> None:
    """Derive the JSON Schema of a Python type and print or write it."""
    logger = CLILogger(verbose=verbose)
    tp = _import_type(target)

    deriver = SchemaDeriver(logger=logger) if discriminator is None else SchemaDeriver(discriminator, logger)
    try:
        node = deriver.derive(tp)
    except DerivationError as e:
        typer.secho(f'Error: {e}', fg=typer.colors.RED, err=True)
        if verbose:
            traceback.print_exc()
        raise typer.Exit(1)

    text = dumps_schema(node, include_schema_uri=not no_schema_uri)
    if output is None:
        typer.echo(text)
        return

    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(text + '\n', encoding='utf-8')
    typer.secho(f'✓ Schema written to {output}', fg=typer.colors.GREEN)


@app.command()
def inspect(
    schema: Path = typer.Argument(..., help='Schema document (JSON)'),
) -> None:
    """Show the resources, $defs locations and anchors of a schema document."""
    root = _load_schema(schema)
    try:
        registry = Registry.build(root)
    except SchemaDefinitionError as e:
        typer.secho(f'Error: Invalid schema {schema}: {e}', fg=typer.colors.RED, err=True)
        raise typer.Exit(EXIT_BAD_INPUT)

    typer.secho('Resources:', bold=True)
    for base in sorted(registry.resources):
        typer.echo(f'  {base or "<root>"}')
    typer.echo()

    definitions = sorted((base, pointer) for base, pointer in registry.pointers if _is_definition(pointer))
    typer.secho('Definitions:', bold=True)
    if not definitions:
        typer.echo('  (none)')
    for base, pointer in definitions:
        typer.echo(f'  {base}#{pointer}')
    typer.echo()

    typer.secho('Anchors:', bold=True)
    if not registry.anchors:
        typer.echo('  (none)')
    for base, name in sorted(registry.anchors):
        suffix = ' (dynamic)' if (base, name) in registry.dynamic_anchors else ''
        typer.echo(f'  {base}#{name}{suffix}')


def _is_definition(pointer: str) -> bool:
    """True for pointers naming a $defs entry, e.g. '/$defs/User' or '/properties/a/$defs/B'."""
    if not pointer:
        return False
    segments = parse_pointer(pointer)
    return len(segments) >= 2 and segments[-2] == '$defs'


def main() -> None:
    """Entry point for CLI."""
    app()


if __name__ == '__main__':
    main()
