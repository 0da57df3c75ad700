"""
binary.py - Locate the engine executable.

The LEDGERDB_BIN environment variable wins when set. Otherwise the
executable is expected in the package's bin/ directory; how it gets
there is not this module's concern.
"""

import os
import sys
from pathlib import Path

from ledgerdb.config import BINARY_ENV_VAR, BINARY_NAME, BINARY_NAME_WINDOWS


def bundled_binary_path() -> str:
    """Path of the executable shipped inside the package."""
    name = BINARY_NAME_WINDOWS if sys.platform == "win32" else BINARY_NAME
    return str(Path(__file__).resolve().parent / "bin" / name)


def resolve_binary_path(environ: dict[str, str] | None = None) -> str:
    """
    Resolve the engine executable path.

    Args:
        environ: Environment to consult (defaults to os.environ)

    Returns:
        The override from LEDGERDB_BIN when non-blank, else the bundled path
    """
    env = os.environ if environ is None else environ
    override = env.get(BINARY_ENV_VAR, "")
    if override.strip():
        return override
    return bundled_binary_path()
