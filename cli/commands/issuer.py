"""
Issuer Management Commands for the Diploma Registry CLI

Commands for authorizing and revoking issuers and for looking up the issuer
directory.
"""

from typing import Optional, Tuple

import click

from registry.keys import ZERO_HASH

from ..context import CLIContext, handle_cli_error, pass_context


@click.group()
@pass_context
def issuer(ctx: CLIContext):
    """
    Issuer allowlist commands.

    Authorize and revoke issuers (administrator only) and query the directory.
    """
    ctx.logger.debug("Issuer command group invoked")


@issuer.command('authorize')
@click.argument('name')
@click.argument('identity')
@click.option('--as', 'caller', help='Caller identity (must hold Administrator)')
@pass_context
@handle_cli_error
def authorize_issuer(ctx: CLIContext, name: str, identity: str, caller: Optional[str]):
    """
    Authorize NAME and bind it to IDENTITY.

    Examples:
        dipreg issuer authorize "Acme University" 0x2222222222222222222222222222222222222222
    """
    caller = ctx.resolve_caller(caller)
    event = ctx.get_manager().authorize_issuer(caller, name, identity)

    ctx.output({'event': 'IssuerAuthorized', **event.model_dump()})


@issuer.command('revoke')
@click.argument('name')
@click.option('--as', 'caller', help='Caller identity (must hold Administrator)')
@click.option('--yes', '-y', is_flag=True, help='Do not ask for confirmation')
@pass_context
@handle_cli_error
def revoke_issuer(ctx: CLIContext, name: str, caller: Optional[str], yes: bool):
    """
    Revoke the authorization of NAME.

    Credentials already issued under the name stay in the registry unchanged.
    """
    caller = ctx.resolve_caller(caller)
    ctx.confirm(f"Revoke issuer {name!r}?", yes)

    event = ctx.get_manager().revoke_issuer_authorization(caller, name)
    ctx.output({'event': 'IssuerRevoked', **event.model_dump()})


@issuer.command('status')
@click.argument('names', nargs=-1, required=True)
@pass_context
@handle_cli_error
def issuer_status(ctx: CLIContext, names: Tuple[str, ...]):
    """
    Show authorization status for one or more issuer NAMES.

    Examples:
        dipreg issuer status "Acme University" "Globex Institute"
    """
    ctx.output(ctx.get_manager().issuer_status(names))


@issuer.command('whois')
@click.argument('identity')
@pass_context
@handle_cli_error
def whois(ctx: CLIContext, identity: str):
    """Show the issuer key currently bound to IDENTITY."""
    manager = ctx.get_manager()
    key = manager.get_issuer_key_by_identity(identity)

    names = {entry['issuer_key']: entry['name'] for entry in manager.list_issuers()}
    ctx.output({
        'identity': identity,
        'bound': key != ZERO_HASH,
        'issuer_key': key,
        'name': names.get(key),
    })


@issuer.command('list')
@click.option('--all', 'include_revoked', is_flag=True, help='Include revoked issuers')
@pass_context
@handle_cli_error
def list_issuers(ctx: CLIContext, include_revoked: bool):
    """List issuer directory entries."""
    ctx.output(ctx.get_manager().list_issuers(include_revoked=include_revoked))


@issuer.command('history')
@click.argument('name')
@pass_context
@handle_cli_error
def issuer_history(ctx: CLIContext, name: str):
    """Show authorization and revocation events for NAME."""
    ctx.output(ctx.event_rows(ctx.get_manager().get_issuer_history(name)))
