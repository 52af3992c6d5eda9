# src/pathclip/core/scanner.py
import logging
import os
from pathlib import Path
from typing import List, Optional, Union

from pathclip.config import DEPENDENCY_CACHE_DIRECTORIES
from pathclip.core.ignore import IgnoreRuleSet
from pathclip.models import SkipEvent, SkipObserver, SkipReason

logger = logging.getLogger(__name__)


class DirectoryWalker:
    """
    Recursively collects candidate file paths under one directory,
    pruning directories the rule set rejects before descending into them.
    """

    def __init__(self, rules: IgnoreRuleSet, on_skip: Optional[SkipObserver] = None):
        self.rules = rules
        self.on_skip = on_skip

    def _skip(self, path: str, reason: SkipReason) -> None:
        logger.debug("Skipping %s (%s)", path, reason.value)
        if self.on_skip is not None:
            self.on_skip(SkipEvent(path, reason))

    def walk(self, root: Union[str, Path]) -> List[str]:
        files: List[str] = []
        self._walk_dir(os.path.abspath(root), files)
        return files

    def _walk_dir(self, directory: str, files: List[str]) -> None:
        try:
            with os.scandir(directory) as it:
                entries = sorted(it, key=lambda e: e.name)
        except OSError as e:
            logger.warning("Cannot read directory %s: %s", directory, e)
            self._skip(directory, SkipReason.UNREADABLE_DIRECTORY)
            return

        for entry in entries:
            path = entry.path
            try:
                # Symlinked directories are not followed
                is_dir = entry.is_dir(follow_symlinks=False)
            except OSError:
                is_dir = False

            if is_dir:
                # Circuit breaker: huge dependency caches are never entered blindly
                if entry.name in DEPENDENCY_CACHE_DIRECTORIES and not self.rules.targets_inside(path):
                    self._skip(path, SkipReason.DENYLISTED_DIRECTORY)
                    continue

                decision = self.rules.should_skip(path, is_dir=True)
                if decision.skip and not self.rules.targets_inside(path):
                    self._skip(path, decision.reason)
                    continue

                self._walk_dir(path, files)
                continue

            try:
                is_file = entry.is_file()
            except OSError:
                is_file = False
            if not is_file:
                continue

            decision = self.rules.should_skip(path, is_dir=False)
            if decision.skip:
                self._skip(path, decision.reason)
                continue

            files.append(path)


def walk(root: Union[str, Path], rules: IgnoreRuleSet, on_skip: Optional[SkipObserver] = None) -> List[str]:
    """Absolute paths of every kept file under root, in pre-order."""
    return DirectoryWalker(rules, on_skip).walk(root)
