#!/usr/bin/env python3
"""
LaLA audit CLI - inspect relation graphs, pseudonymize related data and
review model versions.
"""

import sys
import click
from sqlalchemy.orm import Session

from cli.core.context import Context
from cli.core.utils import EXIT_ERROR
from cli.evidence.commands import (
    RelatedTablesCommand,
    CollectRelatedCommand,
    ShowVersionCommand,
)
from lala.config import LalaConfig
from lala.logging_utils import setup_logging


pass_context = click.make_pass_decorator(Context, ensure=True)
CONTEXT_SETTINGS = dict(help_option_names=['-h', '--help'])


@click.group(context_settings=CONTEXT_SETTINGS)
@click.option('--config', 'config_file', type=click.Path(dir_okay=False),
              help='YAML configuration file')
@click.option('--verbose', '-v', is_flag=True, help='Show detailed information and debug logging')
@pass_context
def cli(ctx: Context, config_file, verbose: bool):
    """Audit learning analytics evidence and related LMS data"""
    try:
        ctx.config = LalaConfig(config_file)
    except Exception as e:
        ctx.stderr_console.print(f"Error loading configuration: {e}", style="bold red")
        sys.exit(EXIT_ERROR)

    ctx.verbose = verbose or ctx.config.verbose
    if ctx.verbose or ctx.config.log_file:
        setup_logging(ctx.config, verbose=ctx.verbose)

    # Initialize database connection
    try:
        from lala.session import create_lala_engine
        ctx.engine, _ = create_lala_engine(ctx.config.database_url)
        ctx.session = Session(ctx.engine)
    except Exception as e:
        ctx.stderr_console.print(f"Error connecting to database: {e}", style="bold red")
        sys.exit(EXIT_ERROR)


# ========================================================================
# Relation Commands
# ========================================================================

@cli.command('related-tables')
@click.argument('table')
@click.argument('ids', nargs=-1, required=True, type=int)
@pass_context
def related_tables(ctx: Context, table, ids):
    """
    List the tables related to TABLE rows with the given IDS.

    \b
    Examples:
        lala-audit related-tables user_enrolments 3 4 5
        lala-audit --verbose related-tables user 2
    """
    command = RelatedTablesCommand(ctx)
    sys.exit(command.execute(table, list(ids)))


@cli.command('collect-related')
@click.argument('table')
@click.argument('ids', nargs=-1, required=True, type=int)
@click.option('--output-dir', '-o', type=click.Path(file_okay=False),
              help='Directory for the CSV files (default: evidence directory from the config)')
@click.option('--seed', type=int, default=None, help='Seed for pseudonyms and row order')
@pass_context
def collect_related(ctx: Context, table, ids, output_dir, seed):
    """
    Write pseudonymized copies of every table related to TABLE rows with the given IDS.

    Aborts without writing anything when user data would cover fewer
    distinct users than the configured anonymity threshold.
    """
    command = CollectRelatedCommand(ctx)
    sys.exit(command.execute(table, list(ids), output_dir=output_dir, seed=seed))


# ========================================================================
# Model Version Commands
# ========================================================================

@cli.command('show-version')
@click.argument('version_id', type=int)
@click.option('--json', 'as_json', is_flag=True, help='Print the version as JSON')
@pass_context
def show_version(ctx: Context, version_id, as_json):
    """Show a model version and its evidence items."""
    command = ShowVersionCommand(ctx)
    sys.exit(command.execute(version_id, as_json=as_json))


if __name__ == '__main__':
    cli()
