"""Main entry point for tsk.

``tsk`` with no arguments opens the interactive board; see ``tsk --help``
for the non-interactive commands.
"""
from cli import cli


def main():
    cli(prog_name="tsk")

if __name__ == "__main__":
    main()
