"""Flask CLI commands for operator-side principal management."""

from __future__ import annotations

import logging

import click
from flask.cli import with_appcontext

from authcore.core.extensions import get_auth_components
from authcore.services._shared.errors import ServiceError
from authcore.services.auth.dto import SignupIn

LOGGER = logging.getLogger(__name__)


@click.group("principals")
def principals_cli() -> None:
    """Create principals and revoke their sessions."""


@principals_cli.command("create")
@click.argument("username")
@click.argument("email")
@click.password_option("--password", help="Password for the new principal.")
@with_appcontext
def create_principal(username: str, email: str, password: str) -> None:
    """Register USERNAME with EMAIL (prompts for the password)."""
    service = get_auth_components()["service"]
    try:
        principal = service.signup(SignupIn(username=username, email=email, password=password))
    except ServiceError as exc:
        raise click.ClickException(str(exc)) from exc
    LOGGER.info("cli.principal.created", extra={"principal_id": principal.id})
    click.echo(f"Created principal {principal.username} ({principal.id})")


@principals_cli.command("revoke")
@click.argument("username")
@with_appcontext
def revoke_sessions(username: str) -> None:
    """Sign USERNAME out by clearing its active refresh token."""
    service = get_auth_components()["service"]
    try:
        cleared = service.revoke_sessions(username)
    except ServiceError as exc:
        raise click.ClickException(str(exc)) from exc
    if cleared:
        click.echo(f"Revoked active session of {username}")
    else:
        click.echo(f"{username} has no active session")
