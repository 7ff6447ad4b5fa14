"""
Entry point for running copper_sync as a module.

Usage:
    python -m copper_sync --help
    python -m copper_sync tags
    python -m copper_sync sync --tag VIP
"""

from copper_sync.cli import cli

if __name__ == "__main__":
    cli()
