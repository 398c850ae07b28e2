"""Entry point for running homespeak as a module."""

from .cli import app


def main() -> None:
    """Main entry point for the homespeak CLI application."""
    app()


if __name__ == "__main__":
    main()
