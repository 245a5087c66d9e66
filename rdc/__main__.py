"""Allow ``python -m rdc``; delegates to rdc.main.cli()."""

from __future__ import annotations


def main() -> None:
    from rdc.main import cli
    cli()


if __name__ == "__main__":
    main()
