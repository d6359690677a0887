"""Entry point for running lanston as a module."""

from lanston.cli import cli_entry

if __name__ == "__main__":
    cli_entry()
