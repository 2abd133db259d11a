from __future__ import annotations

from deskforms.cli import cli

if __name__ == "__main__":
    cli()
