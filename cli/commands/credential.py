"""
Credential Commands for the Diploma Registry CLI

Commands for issuing, revoking, verifying and inspecting credential records, and for
computing registry keys off-line.
"""

from typing import Optional

import click

from registry.keys import category_key, credential_key, issuer_key

from ..context import CLIContext, handle_cli_error, pass_context
from ..output import StatusIndicator


@click.group()
@pass_context
def credential(ctx: CLIContext):
    """
    Credential lifecycle and verification commands.

    Issue and revoke credentials (bound issuer identity only) and verify them
    (anyone).
    """
    ctx.logger.debug("Credential command group invoked")


@credential.command('issue')
@click.argument('issuer_name')
@click.option('--key', 'key', help='Credential key (0x-prefixed 32-byte hex)')
@click.option('--content', help='Credential content to hash into the key')
@click.option('--category', help='Degree/category tag, e.g. BACHELOR')
@click.option('--category-hash', help='Degree/category as a precomputed hash')
@click.option('--as', 'caller', help='Caller identity (bound identity of the issuer)')
@pass_context
@handle_cli_error
def issue_credential(ctx: CLIContext, issuer_name: str, key: Optional[str], content: Optional[str],
                     category: Optional[str], category_hash: Optional[str], caller: Optional[str]):
    """
    Issue a credential under ISSUER_NAME.

    Give the credential either as --key or as --content, and the category either as
    a --category tag or a --category-hash.

    Examples:
        dipreg credential issue "Acme University" --content cert-1 --category BACHELOR
        dipreg credential issue "Acme University" --key 0xabc... --category-hash 0xdef...
    """
    if (key is None) == (content is None):
        raise click.UsageError("Give exactly one of --key or --content")
    if (category is None) == (category_hash is None):
        raise click.UsageError("Give exactly one of --category or --category-hash")

    caller = ctx.resolve_caller(caller)
    if content is not None:
        key = credential_key(content)
    if category is not None:
        category_hash = category_key(category)

    event = ctx.get_manager().issue_credential(caller, key, issuer_name, category_hash)
    ctx.output({'event': 'CredentialIssued', **event.model_dump()})


@credential.command('revoke')
@click.argument('key')
@click.argument('issuer_name')
@click.option('--as', 'caller', help='Caller identity (original issuing identity)')
@click.option('--yes', '-y', is_flag=True, help='Do not ask for confirmation')
@pass_context
@handle_cli_error
def revoke_credential(ctx: CLIContext, key: str, issuer_name: str, caller: Optional[str], yes: bool):
    """
    Revoke credential KEY issued under ISSUER_NAME.

    Revocation cannot be undone.
    """
    caller = ctx.resolve_caller(caller)
    ctx.confirm(f"Permanently revoke credential {key}?", yes)

    event = ctx.get_manager().revoke_credential(caller, key, issuer_name)
    ctx.output({'event': 'CredentialRevoked', **event.model_dump()})


@credential.command('verify')
@click.argument('key')
@click.argument('issuer_name')
@pass_context
@handle_cli_error
def verify_credential(ctx: CLIContext, key: str, issuer_name: str):
    """
    Verify credential KEY against ISSUER_NAME.

    Examples:
        dipreg credential verify 0xabc... "Acme University"
    """
    result = ctx.get_manager().verify_credential(key, issuer_name)

    if ctx.output_format == 'table':
        if result.is_valid:
            click.echo(StatusIndicator.format_status('success', 'Credential is valid'))
        elif result.revoked:
            click.echo(StatusIndicator.format_status('error', 'Credential has been revoked'))
        elif result.exists:
            click.echo(StatusIndicator.format_status('error', 'Credential was not issued under this name'))
        else:
            click.echo(StatusIndicator.format_status('error', 'Credential not found'))

    ctx.output(result._asdict())


@credential.command('show')
@click.argument('key')
@pass_context
@handle_cli_error
def show_credential(ctx: CLIContext, key: str):
    """Show the full record for credential KEY."""
    record = ctx.get_manager().get_credential_record(key)
    ctx.output(record.model_dump(mode='json'))


@credential.command('history')
@click.argument('key')
@pass_context
@handle_cli_error
def credential_history(ctx: CLIContext, key: str):
    """Show the audit events for credential KEY."""
    ctx.output(ctx.event_rows(ctx.get_manager().get_credential_history(key)))


@credential.command('hash')
@click.argument('content')
@click.option('--kind', type=click.Choice(['credential', 'issuer', 'category']),
              default='credential', help='Which key to derive')
@pass_context
@handle_cli_error
def hash_content(ctx: CLIContext, content: str, kind: str):
    """
    Compute a registry key for CONTENT without touching the registry.

    Examples:
        dipreg credential hash cert-1
        dipreg credential hash "Acme University" --kind issuer
    """
    derive = {'credential': credential_key, 'issuer': issuer_key, 'category': category_key}[kind]
    ctx.output({'kind': kind, 'input': content, 'hash': derive(content)})
