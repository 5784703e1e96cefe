"""
Configuration Management Commands for the Diploma Registry CLI

Commands for generating, showing and validating CLI configuration.
"""

import copy
import json
import sys
from pathlib import Path
from typing import Optional

import click
import yaml

from ..config import DEFAULT_CONFIG, ENV_PREFIX, PROFILES
from ..context import CLIContext, handle_cli_error, pass_context


@click.group()
@pass_context
def config(ctx: CLIContext):
    """
    Configuration management commands.

    Manage CLI configuration, environment profiles, and settings.
    """
    ctx.logger.debug("Config command group invoked")


@config.command('init')
@click.option('--profile', 'base_profile', type=click.Choice(list(PROFILES)),
              help='Configuration profile to use as base')
@click.option('--output', type=click.Path(dir_okay=False), help='Output file path')
@click.option('--format', 'file_format', type=click.Choice(['yaml', 'json']),
              default='yaml', help='Configuration file format')
@click.option('--force', is_flag=True, help='Overwrite existing configuration')
@pass_context
@handle_cli_error
def init_config(ctx: CLIContext, base_profile: Optional[str], output: Optional[str],
                file_format: str, force: bool):
    """
    Generate a default configuration file.

    Examples:
        dipreg config init
        dipreg config init --profile production --output production.yml
    """
    if not output:
        output = '.dipreg.yml' if file_format == 'yaml' else '.dipreg.json'

    output_path = Path(output)
    if output_path.exists() and not force:
        raise click.ClickException(f"Configuration file already exists: {output}. Use --force to overwrite.")

    config_data = copy.deepcopy(DEFAULT_CONFIG)
    if base_profile:
        for section, values in PROFILES[base_profile].items():
            config_data.setdefault(section, {}).update(values)
        ctx.logger.info(f"Applied profile: {base_profile}")

    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, 'w') as f:
        if file_format == 'yaml':
            yaml.safe_dump(config_data, f, default_flow_style=False, sort_keys=False)
        else:
            json.dump(config_data, f, indent=2)

    click.echo(f"Configuration file created: {output_path}")
    click.echo(f"Override settings with {ENV_PREFIX}<SECTION>_<KEY> environment variables.")


@config.command('show')
@click.option('--key', help='Specific configuration key to show (dot notation)')
@click.option('--export-env', is_flag=True, help='Export as environment variables')
@pass_context
@handle_cli_error
def show_config(ctx: CLIContext, key: Optional[str], export_env: bool):
    """
    Display current configuration settings.

    Examples:
        dipreg config show
        dipreg config show --key registry.data_dir
        dipreg config show --export-env > .env
    """
    manager = ctx.config_manager

    if export_env:
        for name, value in manager.export_environment().items():
            click.echo(f"export {name}=\"{value}\"")
        return

    if key:
        value = manager.get(key)
        if value is None:
            click.echo(f"Configuration key not found: {key}", err=True)
            sys.exit(1)
        ctx.output({key: value} if not isinstance(value, dict) else value)
        return

    # Nested sections read better as YAML than as a key-value table
    fmt = 'yaml' if ctx.output_format == 'table' else ctx.output_format
    ctx.output(manager.load(), fmt)


@config.command('sources')
@pass_context
@handle_cli_error
def show_sources(ctx: CLIContext):
    """List configuration sources in the order they were applied."""
    for i, source in enumerate(ctx.config_manager.get_sources(), 1):
        click.echo(f"{i}. {source}")


@config.command('validate')
@pass_context
@handle_cli_error
def validate_config(ctx: CLIContext):
    """
    Validate configuration for errors and inconsistencies.

    Exits with status 1 when problems are found.
    """
    ctx.logger.info("Validating configuration")

    errors = ctx.config_manager.validate()
    if errors:
        click.echo("Configuration validation failed:")
        for error in errors:
            click.echo(f"  - {error}")
        sys.exit(1)

    click.echo("Configuration is valid")
    click.echo(f"  Data directory: {ctx.get_config('registry.data_dir')}")
    click.echo(f"  Output format: {ctx.get_config('cli.output_format')}")
