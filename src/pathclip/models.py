# src/pathclip/models.py
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional


class SkipReason(str, Enum):
    """Machine-readable reason attached to every skipped path."""
    IGNORED_BY_RULE = "ignored-by-rule"
    EXCLUDED_BY_PATTERN = "excluded-by-pattern"
    DENYLISTED_DIRECTORY = "denylisted-directory"
    UNREADABLE_DIRECTORY = "unreadable-directory"
    PATH_NOT_FOUND = "path-not-found"
    UNREADABLE_FILE = "unreadable-file"
    OVERSIZE_FILE = "oversize-file"
    BINARY_FILE = "binary-file"
    METADATA_FILE = "metadata-file"


@dataclass(frozen=True)
class SkipEvent:
    path: str
    reason: SkipReason


SkipObserver = Callable[[SkipEvent], None]


@dataclass(frozen=True)
class SkipDecision:
    skip: bool
    reason: Optional[SkipReason] = None


KEEP = SkipDecision(skip=False)


@dataclass(frozen=True)
class Classification:
    """Outcome of probing one file: whether it is text and how to tag it."""
    processable: bool
    format_tag: Optional[str] = None
    reason: Optional[SkipReason] = None


@dataclass(frozen=True)
class FileRecord:
    """Immutable data class holding one file's paths and (optionally) content."""
    absolute_path: str
    selection_relative_path: str
    repository_relative_path: str
    file_name: str
    format_tag: Optional[str] = None
    content: Optional[str] = None
