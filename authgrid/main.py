"""authgrid CLI: run the server or drive the client flow."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

import click

from authgrid import __version__
from authgrid.client import ApiError, AuthClient, ClientAgent, FileKeyStore, KeyringKeyStore
from authgrid.config import AuthgridSettings, load_config_or_default
from authgrid.core.logging import setup_logging
from authgrid.errors import AuthgridError
from authgrid.models.identity import KeyAlgorithm
from authgrid.protocols.keystore import KeyStore

logger = logging.getLogger(__name__)

_DEFAULT_CONFIG = "config/authgrid.yaml"
_TOKEN_PREVIEW_CHARS = 40


def _load_settings(ctx: click.Context) -> AuthgridSettings:
    settings = ctx.obj.get("settings")
    if settings is None:
        settings = load_config_or_default(ctx.obj["config_path"])
        overrides = ctx.obj.get("client_overrides", {})
        if overrides:
            client = settings.client.model_copy(update=overrides)
            settings = settings.model_copy(update={"client": client})
        ctx.obj["settings"] = settings
    return settings


def _build_keystore(settings: AuthgridSettings) -> KeyStore:
    if settings.client.keystore == "keyring":
        return KeyringKeyStore()
    return FileKeyStore(settings.client.resolved_keystore_dir)


def _build_agent(settings: AuthgridSettings) -> ClientAgent:
    client = AuthClient(settings.client.api_url, timeout_s=settings.client.timeout_s)
    return ClientAgent(
        client,
        _build_keystore(settings),
        allow_fallback=settings.client.allow_fallback,
    )


@click.group()
@click.option("--config", "config_path", default=_DEFAULT_CONFIG, show_default=True)
@click.option("--api", "api_url", default=None, help="authgrid API URL.")
@click.option(
    "--keystore",
    "keystore_dir",
    default=None,
    type=click.Path(path_type=Path, file_okay=False),
    help="Keystore directory.",
)
@click.pass_context
def cli(ctx: click.Context, config_path: str, api_url: str | None, keystore_dir: Path | None) -> None:
    """Passwordless public-key authentication."""
    overrides: dict[str, object] = {}
    if api_url is not None:
        overrides["api_url"] = api_url
    if keystore_dir is not None:
        overrides["keystore_dir"] = keystore_dir
    ctx.ensure_object(dict)
    ctx.obj.update({"config_path": config_path, "client_overrides": overrides})
    settings = _load_settings(ctx)
    setup_logging(settings.log_level, json_output=settings.log_json)


@cli.command("serve")
@click.pass_context
def serve_command(ctx: click.Context) -> None:
    """Start the authentication API server."""
    from authgrid.api.web import AuthWebApp
    from authgrid.factory import create_services

    settings = _load_settings(ctx)

    async def _run() -> None:
        services = await create_services(settings)
        web = AuthWebApp(services, settings)
        logger.info("authgrid API server starting on %s:%d", settings.server.host, settings.server.port)
        await web.serve(log_level=settings.log_level.lower())

    try:
        asyncio.run(_run())
    except KeyboardInterrupt:
        click.echo("Shutting down.")


@cli.command("register")
@click.option(
    "--key-type",
    type=click.Choice([a.value for a in KeyAlgorithm], case_sensitive=False),
    default=None,
    help="Force a key algorithm (default: ed25519, ecdsa if unavailable).",
)
@click.pass_context
def register_command(ctx: click.Context, key_type: str | None) -> None:
    """Generate a keypair and register it for a new handle."""
    settings = _load_settings(ctx)
    agent = _build_agent(settings)
    click.echo("Registering new user...")
    try:
        registration = agent.register(KeyAlgorithm(key_type.lower()) if key_type else None)
    except AuthgridError as exc:
        raise click.ClickException(f"Error registering: {exc.message}") from exc

    click.echo("Registration successful!")
    click.echo(f"   Handle: {registration.handle}")
    click.echo(f"   Key type: {registration.algorithm.value}")
    click.echo(f"   Keystore: {settings.client.resolved_keystore_dir}")
    click.echo(f"To login: authgrid login --handle {registration.handle}")


@cli.command("login")
@click.option("--handle", required=True, help="Handle to authenticate with.")
@click.pass_context
def login_command(ctx: click.Context, handle: str) -> None:
    """Sign a fresh challenge and obtain a session token."""
    agent = _build_agent(_load_settings(ctx))
    click.echo(f"Logging in as {handle}...")
    try:
        result = agent.login(handle)
    except KeyError as exc:
        raise click.ClickException(
            f"No keypair stored for {handle}. Have you registered this handle? Try: authgrid register",
        ) from exc
    except ApiError as exc:
        raise click.ClickException(f"Authentication failed: {exc.message}") from exc
    except AuthgridError as exc:
        raise click.ClickException(exc.message) from exc

    click.echo("Login successful!")
    click.echo(f"   Handle: {result.handle}")
    click.echo(f"   Token: {result.token[:_TOKEN_PREVIEW_CHARS]}...")
    if result.expires_at is not None:
        click.echo(f"   Expires: {result.expires_at.isoformat()}")


@cli.command("logout")
@click.option("--token", required=True, help="Session token to revoke.")
@click.pass_context
def logout_command(ctx: click.Context, token: str) -> None:
    """Revoke a session token."""
    agent = _build_agent(_load_settings(ctx))
    try:
        agent.logout(token)
    except AuthgridError as exc:
        raise click.ClickException(exc.message) from exc
    click.echo("Logged out.")


@cli.command("list")
@click.pass_context
def list_command(ctx: click.Context) -> None:
    """List handles with a stored keypair."""
    handles = _build_keystore(_load_settings(ctx)).list_handles()
    if not handles:
        click.echo("No handles registered yet.")
        click.echo("Try: authgrid register")
        return

    click.echo(f"Stored handles ({len(handles)}):")
    for handle in handles:
        click.echo(f"  - {handle}")


@cli.command("remove")
@click.option("--handle", required=True)
@click.confirmation_option(prompt="This deletes the private key permanently. Continue?")
@click.pass_context
def remove_command(ctx: click.Context, handle: str) -> None:
    """Delete the stored keypair for a handle."""
    if not _build_keystore(_load_settings(ctx)).remove(handle):
        raise click.ClickException(f"No keypair stored for {handle}")
    click.echo(f"Removed {handle}.")


@cli.command("version")
def version_command() -> None:
    click.echo(f"authgrid version {__version__}")


if __name__ == "__main__":
    cli()
