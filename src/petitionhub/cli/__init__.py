"""CLI commands for PetitionHub.

Provides command-line interface using Typer:
- petitionhub serve: Run the API server
- petitionhub cache: Inspect and invalidate the response cache

Usage:
    petitionhub --help
    petitionhub serve --port 8080
    petitionhub cache invalidate "petitions:"
"""

import typer

from petitionhub.cli.cache_cmd import app as cache_app
from petitionhub.cli.serve import app as serve_app

app = typer.Typer(
    name="petitionhub",
    help="PetitionHub: petition platform API",
    no_args_is_help=True,
)

app.add_typer(serve_app, name="serve")
app.add_typer(cache_app, name="cache")


@app.callback()
def callback() -> None:
    """PetitionHub: petition platform API."""
    pass


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
