# src/pathclip/core/tree.py
import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, List

from pathclip.utils.paths import split_path

# Name shown for the root when the selection has several top-level entries
PLACEHOLDER_ROOT = "."

BRANCH = "├── "
CORNER = "└── "
PIPE = "│   "
BLANK = "    "

_TREE_LINE = re.compile(r"^((?:│   |    )*)(?:├── |└── )(.+)$")


@dataclass
class TreeNode:
    name: str
    path: str = ""
    children: Dict[str, "TreeNode"] = field(default_factory=dict)

    @property
    def is_directory(self) -> bool:
        return bool(self.children)

    def child(self, name: str) -> "TreeNode":
        """Returns the child called name, creating it on first use."""
        node = self.children.get(name)
        if node is None:
            node = TreeNode(name, f"{self.path}/{name}" if self.path else name)
            self.children[name] = node
        return node

    def sorted_children(self) -> List["TreeNode"]:
        # Directories first, then case-sensitive by name
        return sorted(self.children.values(), key=lambda n: (not n.is_directory, n.name))


def build_tree(paths: Iterable[str]) -> TreeNode:
    """Merges path strings into one tree, splitting on '/' and '\\'."""
    root = TreeNode(PLACEHOLDER_ROOT)
    for path in paths:
        node = root
        for part in split_path(path):
            node = node.child(part)

    if len(root.children) == 1:
        return next(iter(root.children.values()))
    return root


def render_tree(node: TreeNode) -> str:
    """Generates the ASCII drawing of a tree, without a trailing newline."""
    lines = [f"{node.name}/" if node.is_directory else node.name]

    def _generate_lines_recursive(parent: TreeNode, prefix: str):
        entries = parent.sorted_children()
        for i, child in enumerate(entries):
            is_last = (i == len(entries) - 1)
            connector = CORNER if is_last else BRANCH
            lines.append(f"{prefix}{connector}{child.name}")

            if child.children:
                new_prefix = prefix + (BLANK if is_last else PIPE)
                _generate_lines_recursive(child, new_prefix)

    _generate_lines_recursive(node, "")
    return "\n".join(lines)


def leaf_paths(rendered: str) -> List[str]:
    """
    Parses a drawing produced by render_tree back into its leaf paths.
    Feeding the result to build_tree reproduces the drawn tree.
    """
    lines = [line for line in rendered.splitlines() if line]
    if not lines:
        return []

    header = lines[0]
    root_name = header[:-1] if header.endswith("/") else header
    stack: List[str] = [] if root_name == PLACEHOLDER_ROOT else [root_name]
    base = len(stack)

    parsed = []
    for line in lines[1:]:
        match = _TREE_LINE.match(line)
        if match is None:
            raise ValueError(f"Not a tree line: {line!r}")
        depth = len(match.group(1)) // len(PIPE)
        del stack[base + depth:]
        stack.append(match.group(2))
        parsed.append((depth, "/".join(stack)))

    if not parsed:
        return [root_name] if root_name != PLACEHOLDER_ROOT else []

    leaves = []
    for i, (depth, path) in enumerate(parsed):
        next_depth = parsed[i + 1][0] if i + 1 < len(parsed) else -1
        if next_depth <= depth:
            leaves.append(path)
    return leaves
