# src/pathclip/core/classifier.py
import logging
import mimetypes
from collections import OrderedDict
from pathlib import Path
from typing import Optional, Union

from pathclip.config import DEFAULT_SIZE_LIMIT
from pathclip.core.ignore import is_os_metadata
from pathclip.core.languages import EXTENSION_TAGS, FILENAME_TAGS
from pathclip.models import Classification, SkipReason

logger = logging.getLogger(__name__)

SAMPLE_SIZE = 8 * 1024
BINARY_THRESHOLD = 0.10
GENERIC_TAG = "plaintext"

# TAB, LF, FF, CR
_ALLOWED_CONTROL_BYTES = frozenset({0x09, 0x0A, 0x0C, 0x0D})
# Top five bits set: never valid in UTF-8
_INVALID_LEAD_BYTE = 0xF8

TEXTUAL_APPLICATION_SUBTYPES = frozenset({
    "json",
    "ld+json",
    "xml",
    "xhtml+xml",
    "javascript",
    "x-javascript",
    "ecmascript",
    "typescript",
    "x-sh",
    "x-shellscript",
    "x-csh",
    "x-python",
    "x-python-code",
    "x-perl",
    "x-ruby",
    "x-php",
    "x-httpd-php",
    "x-yaml",
    "yaml",
    "toml",
    "x-toml",
    "sql",
    "graphql",
    "x-tex",
    "x-latex",
    "rtf",
})


def is_binary_sample(sample: bytes) -> bool:
    """
    Byte heuristic over a leading sample of a file.
    Binary if more than 10% NULs, more than 10% disallowed control bytes,
    or any byte that cannot start a UTF-8 sequence.
    """
    if not sample:
        return False

    total = len(sample)
    if sample.count(0) / total > BINARY_THRESHOLD:
        return True

    control = sum(1 for b in sample if b < 0x20 and b not in _ALLOWED_CONTROL_BYTES)
    if control / total > BINARY_THRESHOLD:
        return True

    return max(sample) >= _INVALID_LEAD_BYTE


def is_textual_mime(file_name: str) -> bool:
    mime_type, _ = mimetypes.guess_type(file_name, strict=False)
    if not mime_type:
        return False
    major, _, minor = mime_type.partition("/")
    if major == "text":
        return True
    return major == "application" and minor in TEXTUAL_APPLICATION_SUBTYPES


def table_tag(path: Path) -> Optional[str]:
    return FILENAME_TAGS.get(path.name) or EXTENSION_TAGS.get(path.suffix.lower())


def extension_tag(path: Path) -> str:
    suffix = path.suffix.lower()
    return suffix[1:] if suffix else GENERIC_TAG


class ClassificationCache:
    """
    Per-path binary-detection results, bounded for long-lived sessions.
    Once the ceiling is exceeded the oldest block of entries is dropped.
    """

    def __init__(self, max_entries: int = 10_000, eviction_batch: int = 1_000):
        self.max_entries = max_entries
        self.eviction_batch = eviction_batch
        self._entries: "OrderedDict[str, bool]" = OrderedDict()

    def get(self, key: str) -> Optional[bool]:
        return self._entries.get(key)

    def put(self, key: str, is_binary: bool) -> None:
        self._entries[key] = is_binary
        if len(self._entries) > self.max_entries:
            for _ in range(min(self.eviction_batch, len(self._entries))):
                self._entries.popitem(last=False)

    def clear(self) -> None:
        self._entries.clear()

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)


class FileClassifier:
    def __init__(self, size_limit_bytes: int = DEFAULT_SIZE_LIMIT, cache: Optional[ClassificationCache] = None):
        self.size_limit_bytes = size_limit_bytes
        self.cache = cache if cache is not None else ClassificationCache()

    def _is_binary_file(self, path: Path) -> bool:
        """Reads the first 8 KiB and applies the byte heuristic. Cached per path."""
        key = str(path.resolve())
        cached = self.cache.get(key)
        if cached is not None:
            return cached

        with path.open("rb") as f:
            result = is_binary_sample(f.read(SAMPLE_SIZE))
        self.cache.put(key, result)
        return result

    def classify(self, path: Union[str, Path]) -> Classification:
        path = Path(path)

        if is_os_metadata(path.name):
            return Classification(False, reason=SkipReason.METADATA_FILE)

        try:
            size = path.stat().st_size
        except OSError as e:
            logger.debug("Cannot stat %s: %s", path, e)
            return Classification(False, reason=SkipReason.UNREADABLE_FILE)

        if size > self.size_limit_bytes:
            return Classification(False, reason=SkipReason.OVERSIZE_FILE)

        tag = table_tag(path)
        if tag:
            return Classification(True, format_tag=tag)

        fallback = extension_tag(path)
        if is_textual_mime(path.name):
            return Classification(True, format_tag=fallback)

        try:
            binary = self._is_binary_file(path)
        except OSError as e:
            logger.debug("Cannot read %s: %s", path, e)
            return Classification(False, reason=SkipReason.UNREADABLE_FILE)

        if binary:
            return Classification(False, reason=SkipReason.BINARY_FILE)
        return Classification(True, format_tag=fallback)
