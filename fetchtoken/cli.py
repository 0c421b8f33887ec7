"""Command line interface for managing fetchtoken access tokens."""

from __future__ import annotations

import asyncio
from typing import Optional

import typer

from fetchtoken import get_repository, issue_token, reap_expired_tokens, validate_token
from fetchtoken.config import load_config
from fetchtoken.errors import StorageError
from fetchtoken.models import Denied, Identity
from fetchtoken.tokens import ExpiryReaper

app = typer.Typer(help="CLI for fetchtoken access tokens")

# Command groups
token_app = typer.Typer(help="Commands for issuing and redeeming tokens")
reaper_app = typer.Typer(help="Commands for purging expired tokens")

app.add_typer(token_app, name="token")
app.add_typer(reaper_app, name="reaper")


@app.callback()
def main() -> None:
    """fetchtoken CLI entry point."""
    pass


@token_app.command("issue")
def token_issue(
    resource_id: str,
    sub_resource_id: str,
    user_id: str = typer.Option(..., help="Id of the principal the token acts for"),
    name: str = typer.Option(..., help="Display name of the principal"),
    credential: Optional[str] = typer.Option(
        None, help="Opaque credential forwarded to the fetching service"
    ),
    uses: int = typer.Option(1, min=1, help="Number of redemptions allowed"),
) -> None:
    """
    Issue a token granting access to one resource part.

    Prints only the token so the output can be captured by scripts.

    Example:
        fetchtoken token issue obj:1 thumb --user-id 7 --name alice
        fetchtoken token issue obj:1 OBJ --user-id 7 --name alice --uses 3
    """
    identity = Identity(id=user_id, name=name, credential=credential)
    try:
        token = asyncio.run(
            issue_token(resource_id, sub_resource_id, identity, uses, repository=get_repository())
        )
    except StorageError as exc:
        typer.secho(f"Token not issued: {exc}", fg=typer.colors.RED)
        raise typer.Exit(code=2)
    typer.echo(token)


@token_app.command("validate")
def token_validate(resource_id: str, sub_resource_id: str, token: str) -> None:
    """
    Redeem a token for one resource part.

    Consumes one use of the token. Exits with code 1 when the token is denied.

    Example:
        fetchtoken token validate obj:1 thumb 3f9c...e1
        # Output: Granted: 7 (alice)
    """
    verdict = asyncio.run(
        validate_token(resource_id, sub_resource_id, token, repository=get_repository())
    )
    if isinstance(verdict, Denied):
        typer.echo(f"Denied: {verdict.reason}")
        raise typer.Exit(code=1)
    typer.echo(f"Granted: {verdict.id} ({verdict.name})")


@reaper_app.command("sweep")
def reaper_sweep() -> None:
    """Delete every token older than the configured lifetime once."""
    removed = asyncio.run(reap_expired_tokens())
    typer.echo(f"Removed {removed} expired token(s)")


@reaper_app.command("run")
def reaper_run(
    interval: float = typer.Option(60.0, help="Seconds between sweeps"),
    lifespan: Optional[float] = typer.Option(
        None, help="Stop after this many seconds (default: run indefinitely)"
    ),
) -> None:
    """
    Run the expiry reaper periodically.

    Example:
        fetchtoken reaper run --interval 30
        fetchtoken reaper run --interval 10 --lifespan 300
    """
    config = load_config()
    try:
        repository = get_repository()
    except StorageError as exc:
        typer.secho(f"Token store unavailable: {exc}", fg=typer.colors.RED)
        raise typer.Exit(code=2)
    reaper = ExpiryReaper(repository, timeout=config.token_timeout)
    typer.echo(f"Starting reaper (interval={interval}s)")
    removed = asyncio.run(reaper.run(interval=interval, lifespan=lifespan))
    typer.echo(f"Reaper stopped after removing {removed} expired token(s)")


@app.command("status")
def status() -> None:
    """Show the number of outstanding tokens and the configured lifetime."""
    config = load_config()
    try:
        outstanding = asyncio.run(get_repository().count())
    except StorageError as exc:
        typer.secho(f"Token store unavailable: {exc}", fg=typer.colors.RED)
        raise typer.Exit(code=2)
    typer.echo(f"Outstanding tokens: {outstanding}")
    typer.echo(f"Token lifetime: {config.token_timeout}s")


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    app()
