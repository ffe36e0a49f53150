"""Main entry point when executing pincho as a package.

This allows running the package using python -m pincho.
"""

from pincho.main import cli_entry_point

if __name__ == "__main__":
    cli_entry_point()
