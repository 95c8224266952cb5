"""Main entry point when executing econfetch as a package.

This allows running the package using python -m econfetch.
"""

from econfetch.main import cli_entry_point

if __name__ == "__main__":
    cli_entry_point()
