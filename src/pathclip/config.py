# src/pathclip/config.py
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Tuple

from pathclip.errors import InvalidConfigurationError

DEFAULT_SIZE_LIMIT = 3 * 1024 * 1024  # 3 MiB

IGNORE_FILE_NAME = ".gitignore"
REPOSITORY_MARKER = ".git"

# Built-in denylist, applied even when the ignore file is disabled
VCS_DIRECTORIES = frozenset({".git", ".svn", ".hg"})
VCS_METADATA_FILES = frozenset({".gitignore", ".gitattributes", ".gitmodules"})
DEPENDENCY_CACHE_DIRECTORIES = frozenset({
    "node_modules",
    "bower_components",
    "__pycache__",
    ".venv",
    ".tox",
})
OS_METADATA_PATTERNS = (
    ".DS_Store",
    "Thumbs.db",
    "desktop.ini",
    "._*",
)

DEFAULT_FILE_TEMPLATE = "### `{{relativePath}}`\n\n```{{language}}\n{{content}}\n```\n\n"
DEFAULT_TREE_TEMPLATE = "## File Structure\n```\n{{tree}}\n```\n\n"


class StructureFormat(str, Enum):
    REPO_ROOT = "repo"
    SELECTION_RELATIVE = "relative"
    ABSOLUTE = "absolute"


class Mode(str, Enum):
    CONTENT_ONLY = "content"
    TREE_ONLY = "tree"
    FULL = "full"

    @property
    def includes_content(self) -> bool:
        return self in (Mode.CONTENT_ONLY, Mode.FULL)

    @property
    def includes_tree(self) -> bool:
        return self in (Mode.TREE_ONLY, Mode.FULL)


def _coerce_enum(enum_cls, value: Any, field_name: str):
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        choices = ", ".join(member.value for member in enum_cls)
        raise InvalidConfigurationError(
            f"Invalid {field_name} {value!r}. Use one of: {choices}"
        ) from None


@dataclass(frozen=True)
class Configuration:
    """Resolved, read-only settings for one invocation."""
    size_limit_bytes: int = DEFAULT_SIZE_LIMIT
    exclude_patterns: Tuple[str, ...] = field(default_factory=tuple)
    include_patterns: Tuple[str, ...] = field(default_factory=tuple)
    respect_ignore_file: bool = True
    file_template: str = DEFAULT_FILE_TEMPLATE
    tree_template: str = DEFAULT_TREE_TEMPLATE
    structure_format: StructureFormat = StructureFormat.REPO_ROOT
    mode: Mode = Mode.FULL
    include_overrides_denylist: bool = True

    def validate(self) -> "Configuration":
        """
        Returns a copy with enum fields coerced from their string values.
        Raises InvalidConfigurationError on anything that cannot be used.
        """
        structure_format = _coerce_enum(StructureFormat, self.structure_format, "structure format")
        mode = _coerce_enum(Mode, self.mode, "mode")

        if isinstance(self.size_limit_bytes, bool) or not isinstance(self.size_limit_bytes, int):
            raise InvalidConfigurationError(f"Size limit must be an integer, got {self.size_limit_bytes!r}")
        if self.size_limit_bytes <= 0:
            raise InvalidConfigurationError(f"Size limit must be positive, got {self.size_limit_bytes}")

        for name in ("file_template", "tree_template"):
            if not isinstance(getattr(self, name), str):
                raise InvalidConfigurationError(f"{name} must be a string")

        for name in ("exclude_patterns", "include_patterns"):
            patterns = getattr(self, name)
            if not isinstance(patterns, (list, tuple)) or not all(isinstance(p, str) for p in patterns):
                raise InvalidConfigurationError(f"{name} must be a sequence of strings")

        return Configuration(
            size_limit_bytes=self.size_limit_bytes,
            exclude_patterns=tuple(self.exclude_patterns),
            include_patterns=tuple(self.include_patterns),
            respect_ignore_file=bool(self.respect_ignore_file),
            file_template=self.file_template,
            tree_template=self.tree_template,
            structure_format=structure_format,
            mode=mode,
            include_overrides_denylist=bool(self.include_overrides_denylist),
        )
