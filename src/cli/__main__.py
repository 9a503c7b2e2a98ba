"""Entry point so ``python -m cli`` runs the archivist command."""

from __future__ import annotations

from cli.main import main


if __name__ == "__main__":
    raise SystemExit(main())
