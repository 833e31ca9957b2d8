"""
mini-cloudinary CLI

Usage:
    mini-cloudinary create-user NAME   - Provision a user and print its API key
    mini-cloudinary serve              - Start the API server
"""
import asyncio

import click

from mini_cloudinary.core.config import get_settings
from mini_cloudinary.core.errors import PersistenceError, ValidationError
from mini_cloudinary.services.catalog import CatalogStore


@click.group()
def cli():
    """mini-cloudinary administration."""


@cli.command("create-user")
@click.argument("username")
@click.password_option()
@click.option("--api-key", default=None, help="Use this API key instead of generating one.")
def create_user(username: str, password: str, api_key: str | None):
    """Add a user to the catalog. Run it while the server is stopped."""
    settings = get_settings()

    async def _run():
        catalog = CatalogStore(settings.catalog_path)
        await catalog.load()
        return await catalog.add_user(username, password, api_key)

    try:
        user = asyncio.run(_run())
    except (ValidationError, PersistenceError) as exc:
        raise click.ClickException(str(exc))
    click.echo(f"Created user {user.username} (id={user.id})")
    click.echo(f"API key: {user.api_key}")


@cli.command()
@click.option("--host", default="127.0.0.1", show_default=True)
@click.option("--port", default=3000, show_default=True, type=int)
@click.option("--reload", is_flag=True, help="Auto-reload on code changes.")
def serve(host: str, port: int, reload: bool):
    """Start the API server."""
    import uvicorn

    uvicorn.run("mini_cloudinary.main:app", host=host, port=port, reload=reload)


if __name__ == "__main__":
    cli()
