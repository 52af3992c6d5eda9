# src/pathclip/core/ignore.py
import fnmatch
import logging
import os
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Union

import pathspec

from pathclip.config import (
    DEPENDENCY_CACHE_DIRECTORIES,
    IGNORE_FILE_NAME,
    OS_METADATA_PATTERNS,
    VCS_DIRECTORIES,
    VCS_METADATA_FILES,
    Configuration,
)
from pathclip.models import KEEP, SkipDecision, SkipReason
from pathclip.utils.paths import split_path

logger = logging.getLogger(__name__)

DENYLISTED_DIRECTORIES = VCS_DIRECTORIES | DEPENDENCY_CACHE_DIRECTORIES


def is_os_metadata(name: str) -> bool:
    return any(fnmatch.fnmatchcase(name, pattern) for pattern in OS_METADATA_PATTERNS)


def load_ignore_spec(ignore_file: Path) -> pathspec.GitIgnoreSpec:
    """
    Loads rules from an ignore file into a GitIgnoreSpec.
    A missing or unreadable file yields an empty spec.
    """
    lines: List[str] = []

    if ignore_file.is_file():
        try:
            with open(ignore_file, "r", encoding="utf-8") as f:
                lines = f.readlines()
        except (OSError, UnicodeDecodeError) as e:
            logger.warning("Could not read %s: %s", ignore_file, e)

    try:
        return pathspec.GitIgnoreSpec.from_lines(lines)
    except Exception as e:
        logger.warning("Error parsing ignore rules in %s: %s", ignore_file, e)
        return pathspec.GitIgnoreSpec.from_lines([])


def build_pattern_spec(patterns: Iterable[str]) -> pathspec.PathSpec:
    return pathspec.PathSpec.from_lines("gitwildmatch", list(patterns))


class IgnoreRuleSet:
    """
    Layered skip/keep rules bound to one root directory.

    Layers, highest precedence first: forced includes, the built-in denylist,
    the root's ignore file, caller excludes. Anything unmatched is kept.
    """

    def __init__(
        self,
        root: Union[str, Path],
        exclude_patterns: Iterable[str] = (),
        include_patterns: Iterable[str] = (),
        respect_ignore_file: bool = True,
        include_overrides_denylist: bool = True,
    ):
        self.root = os.path.abspath(root)
        self.include_patterns = [p.strip() for p in include_patterns if p.strip()]
        self.include_overrides_denylist = include_overrides_denylist

        if respect_ignore_file:
            self.ignore_spec = load_ignore_spec(Path(self.root) / IGNORE_FILE_NAME)
        else:
            self.ignore_spec = pathspec.GitIgnoreSpec.from_lines([])
        self.exclude_spec = build_pattern_spec(exclude_patterns)
        self.include_spec = build_pattern_spec(self.include_patterns)

    @classmethod
    def from_config(cls, root: Union[str, Path], config: Configuration) -> "IgnoreRuleSet":
        return cls(
            root,
            exclude_patterns=config.exclude_patterns,
            include_patterns=config.include_patterns,
            respect_ignore_file=config.respect_ignore_file,
            include_overrides_denylist=config.include_overrides_denylist,
        )

    def relative_to_root(self, path: Union[str, Path]) -> Optional[str]:
        """Returns the '/'-joined path relative to the root, or None if it escapes the root."""
        try:
            rel = os.path.relpath(os.path.abspath(path), self.root)
        except ValueError:
            # Different drive on Windows
            return None
        if rel == os.curdir:
            return ""
        if rel == os.pardir or rel.startswith(os.pardir + os.sep) or os.path.isabs(rel):
            return None
        return rel.replace(os.sep, "/")

    def _denylist_decision(self, segments: List[str], is_dir: bool) -> SkipDecision:
        dir_segments = segments if is_dir else segments[:-1]
        if any(segment in DENYLISTED_DIRECTORIES for segment in dir_segments):
            return SkipDecision(True, SkipReason.DENYLISTED_DIRECTORY)
        if not is_dir and segments and (segments[-1] in VCS_METADATA_FILES or is_os_metadata(segments[-1])):
            return SkipDecision(True, SkipReason.IGNORED_BY_RULE)
        return KEEP

    def should_skip(self, path: Union[str, Path], is_dir: Optional[bool] = None) -> SkipDecision:
        if is_dir is None:
            is_dir = os.path.isdir(path)

        rel = self.relative_to_root(path)
        if rel is None:
            # Outside the root, so only the name-based denylist applies
            name = os.path.basename(os.path.normpath(str(path)))
            return self._denylist_decision([name], is_dir)
        if not rel:
            return KEEP

        segments = rel.split("/")
        # Directory-only patterns ("build/") need the trailing slash to match
        candidate = rel + "/" if is_dir else rel

        if self.include_spec.match_file(candidate):
            if self.include_overrides_denylist:
                return KEEP
            return self._denylist_decision(segments, is_dir)

        decision = self._denylist_decision(segments, is_dir)
        if decision.skip:
            return decision

        if self.ignore_spec.match_file(candidate):
            return SkipDecision(True, SkipReason.IGNORED_BY_RULE)

        if self.exclude_spec.match_file(candidate):
            return SkipDecision(True, SkipReason.EXCLUDED_BY_PATTERN)

        return KEEP

    @staticmethod
    def _prefix_matches(dir_parts: List[str], parts: List[str]) -> bool:
        """True if an anchored pattern can still match something below dir_parts."""
        for d, p in zip(dir_parts, parts):
            if p == "**":
                return True
            if not fnmatch.fnmatchcase(d, p):
                return False
        return len(parts) > len(dir_parts)

    def targets_inside(self, directory: Union[str, Path]) -> bool:
        """
        True if some forced-include pattern may match a path beneath directory:
        unanchored patterns, literal segment names, or anchored patterns whose
        leading segments (up to a "**") match the directory.
        """
        if not self.include_patterns:
            return False

        rel = self.relative_to_root(directory)
        if not rel:
            return False
        dir_parts = rel.split("/")

        if not self.include_overrides_denylist and self._denylist_decision(dir_parts, True).skip:
            return False

        for pattern in self.include_patterns:
            if pattern.startswith(("#", "!")):
                continue
            # Without a slash (trailing one aside) gitignore matches at any depth
            if "/" not in pattern.rstrip("/"):
                return True
            parts = split_path(pattern)
            if dir_parts[-1] in parts[:-1]:
                return True
            if self._prefix_matches(dir_parts, parts):
                return True
        return False


class IgnoreRuleRegistry:
    """Hands out one IgnoreRuleSet per distinct root for the lifetime of one invocation."""

    def __init__(self, config: Configuration):
        self.config = config
        self._rule_sets: Dict[str, IgnoreRuleSet] = {}

    def for_root(self, root: Union[str, Path]) -> IgnoreRuleSet:
        key = os.path.abspath(root)
        rule_set = self._rule_sets.get(key)
        if rule_set is None:
            logger.debug("Loading ignore rules for %s", key)
            rule_set = IgnoreRuleSet.from_config(key, self.config)
            self._rule_sets[key] = rule_set
        return rule_set

    def __len__(self) -> int:
        return len(self._rule_sets)
