"""
Entry point for running the CLI as a module.

Usage:
    python -m rollscan <command>
"""

from rollscan.cli.commands import cli

if __name__ == "__main__":
    cli()
