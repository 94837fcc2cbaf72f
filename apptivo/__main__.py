"""Main entry point when executing apptivo as a package.

This allows running the package using python -m apptivo.
"""

from apptivo.main import cli_entry_point

if __name__ == "__main__":
    cli_entry_point()
