# ==============================================================================
# Path Utilities
# ==============================================================================
"""
Project root detection and schema path helpers.
"""

from pathlib import Path


def get_project_root() -> Path:
    """
    Get the project root directory.

    Walks up from this file until a directory containing pyproject.toml is
    found. Falls back to the current working directory.
    """
    current = Path(__file__).resolve().parent
    for parent in [current, *current.parents]:
        if (parent / "pyproject.toml").exists():
            return parent
    return Path.cwd()


def get_init_sql_path() -> Path:
    """Get the path to the schema init SQL template."""
    return get_project_root() / "schema" / "init.sql"
