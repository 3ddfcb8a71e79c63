"""Main entry point for `python -m starrynight`."""

from starrynight.cli.main import cli

if __name__ == "__main__":
    cli()
