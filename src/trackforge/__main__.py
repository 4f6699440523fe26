"""Entry point for running trackforge as a module."""

from .cli import app


def main() -> None:
    """Main entry point for the trackforge CLI application."""
    app()


if __name__ == "__main__":
    main()
