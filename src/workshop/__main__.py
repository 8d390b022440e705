"""Allow ``python -m workshop`` alongside the ``workshop`` console script."""

from __future__ import annotations

from workshop.cli import create_app


def main() -> None:
    """Build the Typer app and hand control to it."""

    create_app()(prog_name="workshop")


if __name__ == "__main__":  # pragma: no cover - exercised via console script
    main()


__all__ = ["main"]
