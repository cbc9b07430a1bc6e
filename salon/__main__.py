"""Entry point for running salon as a module."""

from salon.cli import app


def main() -> None:
    """Main entry point."""
    app()


if __name__ == "__main__":
    main()
