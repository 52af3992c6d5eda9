# src/pathclip/utils/paths.py
import os
import re
from pathlib import Path
from typing import List, Optional, Union

from pathclip.config import REPOSITORY_MARKER

_SEPARATORS = re.compile(r"[\\/]+")


def split_path(path: str) -> List[str]:
    """Splits on either separator, dropping empty and "." segments."""
    return [part for part in _SEPARATORS.split(path) if part and part != "."]


def find_repository_root(start_dir: Union[str, Path]) -> Optional[Path]:
    """Walks upward from start_dir looking for a repository marker."""
    current = Path(os.path.abspath(start_dir))
    for candidate in (current, *current.parents):
        if (candidate / REPOSITORY_MARKER).exists():
            return candidate
    return None
