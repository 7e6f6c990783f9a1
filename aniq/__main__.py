"""Main entry point when executing aniq as a package.

This allows running the package using python -m aniq.
"""

from aniq.main import cli_entry_point

if __name__ == "__main__":
    cli_entry_point()
