"""CLI entry point for the copy-trading bot.

All command logic lives in the cli subpackage.
"""

from mirror_trader.apps.copy_bot.cli import app

__all__ = ["app", "main"]


def main() -> None:
    """Run the copy-trading CLI application."""
    app()


if __name__ == "__main__":
    main()
