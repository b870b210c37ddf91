"""Platform-specific executable naming."""

import os
import shutil
import sys
from typing import Optional


def resolve_executable(name: str, platform: Optional[str] = None) -> str:
    """Return the name to launch for ``name`` on ``platform``.

    Windows needs the ``.exe`` suffix; explicit paths and names that already
    carry a suffix are returned unchanged.
    """
    platform = platform or sys.platform
    if not platform.startswith("win"):
        return name

    has_directory = os.sep in name or (os.altsep is not None and os.altsep in name) or "/" in name
    if has_directory or os.path.splitext(name)[1]:
        return name
    return f"{name}.exe"


def is_available(name: str) -> bool:
    """Check whether ``name`` can be found on PATH (or exists as a path)."""
    return shutil.which(resolve_executable(name)) is not None
