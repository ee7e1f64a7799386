#!/usr/bin/env python3
"""
Data Alchemist CLI - Validate and export CSV/XLSX files without the API.

Usage:
    # Print a validation report
    python scripts/data_alchemist_cli.py validate --file clients.csv

    # Map source columns and add a custom rule
    python scripts/data_alchemist_cli.py validate --file clients.xlsx \\
        --map ClientID=client_id --map PriorityLevel=prio \\
        --rule "ClientID|contains|C-|ClientID must use the C- prefix"

    # Write the valid rows
    python scripts/data_alchemist_cli.py export --file clients.csv --format zip --output out/valid-data.zip
"""

import os
import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

import logging
from typing import Dict, List, Tuple

import click
from dotenv import load_dotenv

from services.exceptions import DataAlchemistError
from services.export_service import EXPORT_FORMATS, export_rows
from services.file_parser_service import parse_upload
from services.mapping_service import ERRORS_KEY, ROW_ID_KEY, default_mapping, map_rows, validate_mapping
from services.session_service import DATASET_TYPES
from services.validation_service import CONDITIONS, DEFAULT_RULE_MESSAGE, Rule, ValidationService, summarize

# Load environment variables
load_dotenv()

# Configure logging
LOG_LEVEL = os.getenv('LOG_LEVEL', 'WARNING')
LOG_FILE = os.getenv('LOG_FILE', 'cli.log')

logging.basicConfig(
    level=getattr(logging, LOG_LEVEL),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.FileHandler(LOG_FILE),
        logging.StreamHandler(sys.stderr)
    ]
)

logger = logging.getLogger('data_alchemist_cli')


def parse_map_options(values: Tuple[str, ...]) -> Dict[str, str]:
    """Parse repeated --map Target=Source options."""
    mapping = {}
    for value in values:
        target, sep, source = value.partition('=')
        if not sep or not target or not source:
            raise click.BadParameter(f"'{value}' is not Target=Source", param_hint='--map')
        mapping[target.strip()] = source.strip()
    return mapping


def parse_rule_options(values: Tuple[str, ...]) -> List[Rule]:
    """Parse repeated --rule field|condition|value[|message] options."""
    rules = []
    for value in values:
        parts = value.split('|', 3)
        if len(parts) < 3:
            raise click.BadParameter(f"'{value}' is not field|condition|value[|message]", param_hint='--rule')
        field, condition, rule_value = parts[0], parts[1], parts[2]
        message = parts[3] if len(parts) == 4 else DEFAULT_RULE_MESSAGE
        if condition not in CONDITIONS:
            raise click.BadParameter(
                f"Unknown condition '{condition}'. Choose one of: {', '.join(CONDITIONS)}",
                param_hint='--rule'
            )
        if not field or not rule_value:
            raise click.BadParameter(f"'{value}' needs a field and a value", param_hint='--rule')
        rules.append(Rule(field=field, condition=condition, value=rule_value, message=message))
    return rules


def load_and_validate(file_path: str, map_options: Tuple[str, ...], rule_options: Tuple[str, ...]):
    """Parse, map and validate a file; returns validated rows."""
    path = Path(file_path)
    table = parse_upload(path.name, path.read_bytes())

    mapping = default_mapping(table.headers)
    mapping.update(parse_map_options(map_options))
    mapping = validate_mapping(mapping, table.headers)

    def on_progress(stage: str, percent: float, message: str):
        bar_length = 40
        filled = int(bar_length * percent / 100)
        bar = '█' * filled + '░' * (bar_length - filled)
        click.echo(f"\r[{bar}] {percent:.1f}% - {stage}: {message}", nl=False, err=True)

    validator = ValidationService(rules=parse_rule_options(rule_options), progress_callback=on_progress)
    rows = validator.validate_rows(map_rows(table.rows, mapping))
    click.echo('', err=True)

    logger.info(f"Validated {file_path} with mapping {mapping}")
    return rows, mapping


def common_options(func):
    """Options shared by validate and export."""
    func = click.option('--rule', '-r', 'rules', multiple=True,
                        help='Custom rule as field|condition|value[|message] (repeatable)')(func)
    func = click.option('--map', '-m', 'mappings', multiple=True,
                        help='Column mapping as Target=Source (repeatable)')(func)
    func = click.option('--dataset', '-d', type=click.Choice(DATASET_TYPES), default='clients',
                        show_default=True, help='Dataset kind')(func)
    func = click.option('--file', '-f', 'file_path', required=True, type=click.Path(exists=True, dir_okay=False),
                        help='CSV or XLSX file to validate')(func)
    return func


@click.group()
def cli():
    """Data Alchemist - map, validate and export tabular client data"""


@cli.command('validate')
@common_options
@click.option('--show-errors/--no-show-errors', default=True, help='List invalid rows')
def validate_cmd(file_path: str, dataset: str, mappings, rules, show_errors: bool):
    """Validate a file and print a report."""
    try:
        rows, mapping = load_and_validate(file_path, mappings, rules)
    except DataAlchemistError as e:
        raise click.ClickException(str(e))

    report = summarize(rows)

    click.echo(f"\n📁 File: {file_path} ({dataset})")
    click.echo("🗺️  Mapping:")
    for target, source in mapping.items():
        click.echo(f"   {target:<16} <- {source}")

    click.echo("\n📊 Results:")
    click.echo(f"   Rows:    {report['total']}")
    click.echo(f"   Valid:   {report['valid']}")
    click.echo(f"   Invalid: {report['invalid']}")

    if report['error_counts']:
        click.echo("\n⚠️  Errors:")
        for message, count in sorted(report['error_counts'].items(), key=lambda item: -item[1]):
            click.echo(f"   {count:>5} × {message}")

    if show_errors and report['invalid']:
        click.echo("\n❌ Invalid rows:")
        for row in rows:
            if row[ERRORS_KEY]:
                click.echo(f"   row {row[ROW_ID_KEY]}: {'; '.join(row[ERRORS_KEY])}")

    if report['invalid']:
        sys.exit(1)


@cli.command('export')
@common_options
@click.option('--format', 'fmt', type=click.Choice(sorted(EXPORT_FORMATS)), default='csv',
              show_default=True, help='Export format')
@click.option('--output', '-o', type=click.Path(dir_okay=False, writable=True),
              help='Output file (default: standard download name in the current directory)')
def export_cmd(file_path: str, dataset: str, mappings, rules, fmt: str, output):
    """Write the valid rows of a file as CSV, JSON or ZIP."""
    try:
        rows, _ = load_and_validate(file_path, mappings, rules)
    except DataAlchemistError as e:
        raise click.ClickException(str(e))

    payload, filename, _ = export_rows(rows, fmt)
    destination = Path(output or filename)
    destination.parent.mkdir(parents=True, exist_ok=True)
    destination.write_bytes(payload)

    report = summarize(rows)
    click.echo(f"✅ Wrote {report['valid']}/{report['total']} valid rows to {destination}")


if __name__ == '__main__':
    cli()
