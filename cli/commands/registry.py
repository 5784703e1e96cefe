"""
Registry Administration and Audit Commands for the Diploma Registry CLI

Commands for initializing the registry, inspecting its state and audit log, and
managing backups.
"""

from typing import Optional

import click

from registry.events import EventType

from ..context import CLIContext, handle_cli_error, pass_context


@click.group()
@pass_context
def registry(ctx: CLIContext):
    """
    Registry administration and audit commands.

    Initialize the registry, view statistics and the audit event log, and manage
    backups.
    """
    ctx.logger.debug("Registry command group invoked")


@registry.command('init')
@click.option('--admin', help='Administrator identity (defaults to identity.default_caller)')
@pass_context
@handle_cli_error
def init_registry(ctx: CLIContext, admin: Optional[str]):
    """
    Initialize the registry and bind the Administrator role.

    This can be done exactly once per registry.

    Examples:
        dipreg registry init --admin 0x1111111111111111111111111111111111111111
    """
    admin = ctx.resolve_caller(admin)
    manager = ctx.get_manager()

    manager.initialize(admin)
    ctx.logger.info(f"Registry initialized by {admin}")

    ctx.output({
        'status': 'initialized',
        'administrator': manager.administrators[0],
        'storage': manager.storage.get_storage_info().get('file_path'),
    })


@registry.command('info')
@pass_context
@handle_cli_error
def registry_info(ctx: CLIContext):
    """
    Show registry statistics.

    Examples:
        dipreg registry info
        dipreg -o json registry info
    """
    stats = ctx.get_manager().get_registry_stats()

    if ctx.output_format == 'table':
        # Nested sections are only useful in structured formats
        stats = {k: v for k, v in stats.items() if not isinstance(v, dict)}

    ctx.output(stats)


@registry.command('events')
@click.option('--type', 'event_type', type=click.Choice([t.value for t in EventType]),
              help='Only events of this type')
@click.option('--key', help='Only events mentioning this issuer or credential key')
@click.option('--since', 'since_sequence', type=int, default=0,
              help='Only events after this sequence number')
@pass_context
@handle_cli_error
def list_events(ctx: CLIContext, event_type: Optional[str], key: Optional[str], since_sequence: int):
    """
    Show the audit event log.

    Examples:
        dipreg registry events
        dipreg registry events --type CredentialIssued --since 10
    """
    records = ctx.get_manager().get_events(event_type, key, since_sequence)
    ctx.output(ctx.event_rows(records))


@registry.command('backup')
@pass_context
@handle_cli_error
def create_backup(ctx: CLIContext):
    """Create a backup of the registry file."""
    manager = ctx.get_manager()
    if not manager.backup_registry():
        raise click.ClickException("Backup failed")

    ctx.output({'status': 'backed up', 'latest': manager.list_backups()[0]})


@registry.command('backups')
@pass_context
@handle_cli_error
def list_backups(ctx: CLIContext):
    """List available backups, newest first."""
    backups = ctx.get_manager().list_backups()
    ctx.output([{'timestamp': timestamp} for timestamp in backups])


@registry.command('restore')
@click.argument('timestamp')
@click.option('--yes', '-y', is_flag=True, help='Do not ask for confirmation')
@pass_context
@handle_cli_error
def restore_backup(ctx: CLIContext, timestamp: str, yes: bool):
    """
    Restore the registry from a backup.

    The current state is backed up before it is replaced.
    """
    ctx.confirm(f"Replace the registry with backup {timestamp}?", yes)

    if not ctx.get_manager().restore_backup(timestamp):
        raise click.ClickException(f"Backup not found: {timestamp}")

    ctx.output({'status': 'restored', 'timestamp': timestamp})
