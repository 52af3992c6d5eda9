# src/pathclip/core/composer.py
import logging
import os
import re
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Set, Union

from pathclip.config import Configuration, StructureFormat
from pathclip.core.classifier import ClassificationCache, FileClassifier
from pathclip.core.ignore import IgnoreRuleRegistry
from pathclip.core.scanner import walk
from pathclip.core.tree import build_tree, render_tree
from pathclip.models import FileRecord, SkipEvent, SkipObserver, SkipReason
from pathclip.utils.paths import find_repository_root

logger = logging.getLogger(__name__)

TOKEN_PATTERN = re.compile(r"\{\{(\w+)\}\}")

PathLike = Union[str, Path]


def fill_template(template: str, values: Dict[str, str]) -> str:
    """Replaces known {{tokens}} in one pass; unknown tokens stay as written."""
    return TOKEN_PATTERN.sub(lambda m: values.get(m.group(1), m.group(0)), template)


def format_file(record: FileRecord, template: str) -> str:
    return fill_template(template, {
        "fileName": record.file_name,
        "relativePath": record.selection_relative_path,
        "path": record.selection_relative_path,
        "repoPath": record.repository_relative_path,
        "absolutePath": record.absolute_path,
        "content": record.content or "",
        "language": record.format_tag or "",
    })


def format_tree(tree_body: str, template: str) -> str:
    return fill_template(template, {"tree": tree_body})


def project_path(record: FileRecord, structure_format: StructureFormat) -> str:
    if structure_format is StructureFormat.ABSOLUTE:
        return record.absolute_path
    if structure_format is StructureFormat.SELECTION_RELATIVE:
        return record.selection_relative_path
    return record.repository_relative_path


def selection_base(targets: Iterable[PathLike]) -> str:
    """Parent of the deepest directory shared by every selected path."""
    paths = [os.path.abspath(t) for t in targets]
    if not paths:
        return os.getcwd()
    try:
        common = os.path.commonpath(paths)
    except ValueError:
        # Paths on different drives share nothing
        return os.getcwd()
    return os.path.dirname(common) or common


def render_output(records: List[FileRecord], config: Configuration) -> str:
    """Tree block first (tree-bearing modes), then one block per record."""
    if not records:
        return ""

    blocks = []
    if config.mode.includes_tree:
        tree = build_tree(project_path(r, config.structure_format) for r in records)
        blocks.append(format_tree(render_tree(tree), config.tree_template))

    if config.mode.includes_content:
        blocks.extend(format_file(r, config.file_template) for r in records)

    return "".join(blocks)


class PathResolver:
    """Computes the selection- and repository-relative forms of a file path."""

    def __init__(self, base: str):
        self.base = base
        self._repo_roots: Dict[str, Optional[Path]] = {}

    def repository_root(self, directory: str) -> Optional[Path]:
        if directory not in self._repo_roots:
            self._repo_roots[directory] = find_repository_root(directory)
        return self._repo_roots[directory]

    def relative(self, path: str) -> str:
        try:
            return os.path.relpath(path, self.base)
        except ValueError:
            return path

    def repository_relative(self, path: str) -> str:
        repo_root = self.repository_root(os.path.dirname(path))
        if repo_root is None:
            return self.relative(path)
        return os.path.join(repo_root.name, os.path.relpath(path, repo_root))


class Invocation:
    """State for one collect run: rule sets per root, seen paths, diagnostics."""

    def __init__(
        self,
        config: Configuration,
        classifier: FileClassifier,
        base: str,
        on_skip: Optional[SkipObserver] = None,
    ):
        self.config = config
        self.classifier = classifier
        self.resolver = PathResolver(base)
        self.registry = IgnoreRuleRegistry(config)
        self.on_skip = on_skip
        self._seen: Set[str] = set()

    def _skip(self, path: str, reason: SkipReason) -> None:
        logger.debug("Skipping %s (%s)", path, reason.value)
        if self.on_skip is not None:
            self.on_skip(SkipEvent(path, reason))

    def rule_root(self, directory: str) -> str:
        """The repository enclosing directory, else directory itself."""
        repo_root = self.resolver.repository_root(directory)
        return str(repo_root) if repo_root is not None else directory

    def candidates(self, target: str) -> List[str]:
        if not os.path.isdir(target):
            # Explicitly selected files bypass the ignore rules
            return [target]
        rules = self.registry.for_root(self.rule_root(target))
        return walk(target, rules, self.on_skip)

    def make_record(self, path: str) -> Optional[FileRecord]:
        format_tag = None
        content = None

        if self.config.mode.includes_content:
            classification = self.classifier.classify(path)
            if not classification.processable:
                self._skip(path, classification.reason)
                return None
            try:
                content = Path(path).read_text(encoding="utf-8", errors="replace")
            except OSError as e:
                logger.warning("Could not read %s: %s", path, e)
                self._skip(path, SkipReason.UNREADABLE_FILE)
                return None
            format_tag = classification.format_tag

        return FileRecord(
            absolute_path=path,
            selection_relative_path=self.resolver.relative(path),
            repository_relative_path=self.resolver.repository_relative(path),
            file_name=os.path.basename(path),
            format_tag=format_tag,
            content=content,
        )

    def collect(self, targets: Iterable[PathLike], is_cancelled: Optional[Callable[[], bool]] = None) -> List[FileRecord]:
        records: List[FileRecord] = []

        for target in targets:
            # Cancellation is honoured between roots only
            if is_cancelled is not None and is_cancelled():
                logger.info("Cancelled after %d files", len(records))
                break

            path = os.path.abspath(target)
            if not os.path.exists(path):
                logger.info("Path not found: %s", path)
                self._skip(path, SkipReason.PATH_NOT_FOUND)
                continue

            for candidate in self.candidates(path):
                if candidate in self._seen:
                    continue
                self._seen.add(candidate)
                record = self.make_record(candidate)
                if record is not None:
                    records.append(record)

        return records


class ClipSession:
    """
    Long-lived owner of the classification cache. Each collect/compose call
    is an independent invocation sharing only that cache.
    """

    def __init__(self, cache: Optional[ClassificationCache] = None):
        self.cache = cache if cache is not None else ClassificationCache()

    def collect(
        self,
        targets: Iterable[PathLike],
        config: Configuration,
        on_skip: Optional[SkipObserver] = None,
        is_cancelled: Optional[Callable[[], bool]] = None,
        base: Optional[PathLike] = None,
    ) -> List[FileRecord]:
        # Validation happens before anything touches the filesystem
        config = config.validate()
        targets = list(targets)
        base = os.path.abspath(base) if base is not None else selection_base(targets)

        classifier = FileClassifier(config.size_limit_bytes, self.cache)
        invocation = Invocation(config, classifier, base, on_skip)
        return invocation.collect(targets, is_cancelled)

    def compose(
        self,
        targets: Iterable[PathLike],
        config: Configuration,
        on_skip: Optional[SkipObserver] = None,
        is_cancelled: Optional[Callable[[], bool]] = None,
        base: Optional[PathLike] = None,
    ) -> str:
        config = config.validate()
        records = self.collect(targets, config, on_skip, is_cancelled, base)
        if not records:
            logger.warning("No processable files found.")
        return render_output(records, config)


def compose(
    targets: Iterable[PathLike],
    config: Optional[Configuration] = None,
    on_skip: Optional[SkipObserver] = None,
    base: Optional[PathLike] = None,
) -> str:
    """One-shot composition with a throwaway session."""
    return ClipSession().compose(targets, config or Configuration(), on_skip=on_skip, base=base)
