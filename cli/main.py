#!/usr/bin/env python3
"""
Diploma Registry - Command Line Interface

Operator CLI for the diploma credential registry: initialize the registry, manage the
issuer allowlist, issue, revoke and verify credentials, and inspect the audit log.
"""

import sys
from typing import Optional

import click

from . import __version__
from .commands.config import config
from .commands.credential import credential
from .commands.issuer import issuer
from .commands.registry import registry
from .context import CLIContext, pass_context


@click.group(context_settings={'help_option_names': ['-h', '--help']})
@click.option('--config-file', '-c',
              type=click.Path(dir_okay=False),
              help='Path to configuration file')
@click.option('--profile',
              type=click.Choice(['development', 'production']),
              help='Configuration profile')
@click.option('--data-dir', '-d',
              type=click.Path(file_okay=False),
              help='Registry data directory (overrides configuration)')
@click.option('--output-format', '-o',
              type=click.Choice(['table', 'json', 'yaml']),
              help='Output format')
@click.option('--verbose', '-v',
              count=True,
              help='Increase verbosity (-v for INFO, -vv for DEBUG)')
@click.version_option(__version__, prog_name='dipreg')
@pass_context
def cli(ctx: CLIContext, config_file: Optional[str], profile: Optional[str],
        data_dir: Optional[str], output_format: Optional[str], verbose: int):
    """
    Diploma Credential Registry Command Line Interface

    Authorize issuers, issue and revoke credentials, and verify them against the
    registry. Verification needs no caller identity.

    Examples:
        dipreg registry init --admin 0x1111111111111111111111111111111111111111
        dipreg issuer authorize "Acme University" 0x2222222222222222222222222222222222222222
        dipreg credential issue "Acme University" --content cert-1 --category BACHELOR
        dipreg credential verify 0x... "Acme University"
    """
    ctx.config_file = config_file
    ctx.profile = profile
    ctx.data_dir = data_dir
    ctx.output_format = output_format
    ctx.verbose = verbose

    ctx.setup_logging()
    ctx.load_config()

    ctx.logger.debug("CLI initialized with context")


cli.add_command(registry)
cli.add_command(issuer)
cli.add_command(credential)
cli.add_command(config)


def main():
    """Console script entry point."""
    cli(prog_name='dipreg')


if __name__ == '__main__':
    sys.exit(main())
