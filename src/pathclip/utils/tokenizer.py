# src/pathclip/utils/tokenizer.py
import logging
from typing import Dict, Iterable, List, Tuple

import tiktoken

from pathclip.models import FileRecord

logger = logging.getLogger(__name__)

ENCODINGS = ("cl100k_base", "p50k_base")


class TokenCounter:
    """
    Token estimates for the run summary. Each record is encoded once;
    later lookups for the same file reuse the stored count.
    """

    def __init__(self, encodings: Tuple[str, ...] = ENCODINGS):
        self.encodings = encodings
        self._encoding = None
        self._record_counts: Dict[str, int] = {}

    def get_encoding(self):
        if self._encoding is None:
            last_error = None
            for name in self.encodings:
                try:
                    self._encoding = tiktoken.get_encoding(name)
                    break
                except Exception as e:
                    # Encodings are downloaded on first use and may be unreachable offline
                    logger.debug("Encoding %s unavailable: %s", name, e)
                    last_error = e
            else:
                raise RuntimeError(f"No tiktoken encoding available: {last_error}")
        return self._encoding

    def count(self, text: str) -> int:
        try:
            return len(self.get_encoding().encode(text, disallowed_special=()))
        except Exception:
            # Rough four-characters-per-token estimate
            return len(text) // 4

    def count_record(self, record: FileRecord) -> int:
        key = record.absolute_path
        if key not in self._record_counts:
            self._record_counts[key] = self.count(record.content or "")
        return self._record_counts[key]

    def rank(self, records: Iterable[FileRecord]) -> List[Tuple[FileRecord, int]]:
        """Records paired with their counts, largest first."""
        counted = [(record, self.count_record(record)) for record in records]
        counted.sort(key=lambda pair: pair[1], reverse=True)
        return counted

    def total(self, records: Iterable[FileRecord]) -> int:
        return sum(self.count_record(record) for record in records)
