# tests/test_composer.py
import os

import pytest

from pathclip.config import Configuration, Mode, StructureFormat
from pathclip.core import ignore as ignore_module
from pathclip.core.classifier import ClassificationCache
from pathclip.core.composer import (
    ClipSession,
    compose,
    fill_template,
    format_file,
    selection_base,
)
from pathclip.errors import InvalidConfigurationError
from pathclip.models import FileRecord, SkipReason

PNG_HEADER = b"\x89PNG\r\n\x1a\n\x00\x00\x00\rIHDR"
PATH_TEMPLATE = "[{{relativePath}}]\n"


@pytest.fixture
def scenario(tmp_path):
    root = tmp_path / "proj"
    root.mkdir()
    (root / "a.py").write_text("# a small module\nVALUE = 42\nprint(VALUE + 1)\n\n\n", encoding="utf-8")
    (root / "b").mkdir()
    (root / "b" / "c.png").write_bytes(PNG_HEADER)
    (root / ".gitignore").write_text("b/\n", encoding="utf-8")
    return root


@pytest.fixture
def repo(tmp_path):
    """A repository with a marker directory and a nested package."""
    root = tmp_path / "myrepo"
    (root / ".git").mkdir(parents=True)
    (root / "pkg").mkdir()
    (root / "pkg" / "mod.py").write_text("x = 1\n", encoding="utf-8")
    (root / "pkg" / "util.py").write_text("y = 2\n", encoding="utf-8")
    return root


# --- Templates ---

def test_unknown_tokens_are_left_verbatim():
    assert fill_template("{{tree}} and {{mystery}}", {"tree": "T"}) == "T and {{mystery}}"

def test_substituted_values_are_not_rescanned():
    record = FileRecord(
        absolute_path="/p/a.py",
        selection_relative_path="a.py",
        repository_relative_path="a.py",
        file_name="a.py",
        format_tag="python",
        content="print('{{fileName}}')",
    )
    assert format_file(record, "{{content}}") == "print('{{fileName}}')"

def test_all_file_tokens():
    record = FileRecord(
        absolute_path="/work/repo/src/a.py",
        selection_relative_path="src/a.py",
        repository_relative_path="repo/src/a.py",
        file_name="a.py",
        format_tag="python",
        content="x = 1",
    )
    template = "{{fileName}}|{{relativePath}}|{{path}}|{{repoPath}}|{{absolutePath}}|{{language}}|{{content}}"
    assert format_file(record, template) == "a.py|src/a.py|src/a.py|repo/src/a.py|/work/repo/src/a.py|python|x = 1"


# --- Selection base ---

def test_selection_base_of_sibling_files(tmp_path):
    assert selection_base([tmp_path / "src" / "x.ts", tmp_path / "src" / "y.ts"]) == str(tmp_path)

def test_selection_base_of_single_directory(tmp_path):
    assert selection_base([tmp_path / "proj"]) == str(tmp_path)


# --- Modes ---

def test_content_mode_excludes_binary_files(scenario):
    config = Configuration(mode=Mode.CONTENT_ONLY, respect_ignore_file=False)
    events = []
    output = ClipSession().compose([scenario], config, on_skip=events.append)

    assert output.startswith("### `proj/a.py`\n\n```python\n# a small module")
    assert "c.png" not in output
    assert "File Structure" not in output
    assert (str(scenario / "b" / "c.png"), SkipReason.BINARY_FILE) in [(e.path, e.reason) for e in events]

def test_tree_only_scenario(tmp_path):
    src = tmp_path / "src"
    src.mkdir()
    (src / "x.ts").write_text("export const x = 1;", encoding="utf-8")
    (src / "y.ts").write_text("export const y = 2;", encoding="utf-8")

    config = Configuration(mode="tree", structure_format="relative", tree_template="{{tree}}")
    output = ClipSession().compose([src / "x.ts", src / "y.ts"], config)
    assert output == (
        "src/\n"
        "├── x.ts\n"
        "└── y.ts"
    )

def test_full_mode_puts_tree_first(scenario):
    config = Configuration(structure_format=StructureFormat.SELECTION_RELATIVE)
    output = ClipSession().compose([scenario], config)
    assert output == (
        "## File Structure\n```\nproj/\n└── a.py\n```\n\n"
        "### `proj/a.py`\n\n```python\n"
        "# a small module\nVALUE = 42\nprint(VALUE + 1)\n\n\n"
        "\n```\n\n"
    )

def test_blocks_follow_collection_order(tmp_path):
    for name in ["b.py", "a.py", "c.py"]:
        (tmp_path / name).write_text(name, encoding="utf-8")
    config = Configuration(mode="content", file_template=PATH_TEMPLATE)
    targets = [tmp_path / "c.py", tmp_path / "a.py", tmp_path / "b.py"]
    assert ClipSession().compose(targets, config, base=tmp_path) == "[c.py]\n[a.py]\n[b.py]\n"

def test_duplicate_selections_emitted_once(scenario):
    config = Configuration(mode="content", file_template=PATH_TEMPLATE)
    output = ClipSession().compose([scenario, scenario / "a.py"], config, base=scenario.parent)
    assert output == "[proj/a.py]\n"


# --- Size policy ---

@pytest.fixture
def sized(tmp_path):
    (tmp_path / "small.txt").write_text("tiny", encoding="utf-8")
    (tmp_path / "big.txt").write_text("x" * 64, encoding="utf-8")
    return tmp_path

def test_oversize_file_excluded_from_content(sized):
    events = []
    config = Configuration(mode="content", size_limit_bytes=16, file_template=PATH_TEMPLATE)
    output = ClipSession().compose([sized], config, on_skip=events.append)
    assert output == f"[{sized.name}/small.txt]\n"
    assert [e.reason for e in events] == [SkipReason.OVERSIZE_FILE]

def test_oversize_file_listed_in_tree_only(sized):
    config = Configuration(mode="tree", size_limit_bytes=16, structure_format="relative", tree_template="{{tree}}")
    output = ClipSession().compose([sized], config)
    assert output == f"{sized.name}/\n├── big.txt\n└── small.txt"

def test_full_mode_tree_lists_processed_files_only(sized):
    config = Configuration(size_limit_bytes=16, structure_format="relative", tree_template="{{tree}}\n", file_template="")
    output = ClipSession().compose([sized], config)
    assert output == f"{sized.name}/\n└── small.txt\n"


# --- Empty results and failures ---

def test_empty_selection_yields_empty_string(tmp_path):
    (tmp_path / "only.png").write_bytes(PNG_HEADER)
    assert ClipSession().compose([tmp_path], Configuration(mode="content")) == ""
    assert ClipSession().compose([], Configuration()) == ""

def test_missing_root_is_skipped(scenario, tmp_path):
    events = []
    config = Configuration(mode="content", file_template=PATH_TEMPLATE)
    output = ClipSession().compose([tmp_path / "nope", scenario / "a.py"], config, on_skip=events.append, base=tmp_path)
    assert output == "[proj/a.py]\n"
    assert [(os.path.basename(e.path), e.reason) for e in events] == [("nope", SkipReason.PATH_NOT_FOUND)]

@pytest.mark.parametrize("bad", [
    {"mode": "everything"},
    {"structure_format": "sideways"},
    {"size_limit_bytes": 0},
    {"size_limit_bytes": "3M"},
    {"file_template": None},
    {"exclude_patterns": "*.log"},
])
def test_invalid_configuration_fails_before_filesystem_access(tmp_path, monkeypatch, bad):
    def forbidden(*args, **kwargs):
        raise AssertionError("filesystem touched")

    monkeypatch.setattr("pathclip.core.composer.walk", forbidden)
    monkeypatch.setattr("pathclip.core.composer.find_repository_root", forbidden)
    events = []
    with pytest.raises(InvalidConfigurationError):
        ClipSession().compose([tmp_path / "missing"], Configuration(**bad), on_skip=events.append)
    assert events == []

def test_cancellation_between_roots(tmp_path):
    for name in ["one", "two"]:
        (tmp_path / name).mkdir()
        (tmp_path / name / f"{name}.py").write_text("pass", encoding="utf-8")

    checks = []

    def is_cancelled():
        checks.append(True)
        return len(checks) > 1

    config = Configuration(mode="content", file_template=PATH_TEMPLATE)
    records = ClipSession().collect([tmp_path / "one", tmp_path / "two"], config, is_cancelled=is_cancelled)
    assert [r.file_name for r in records] == ["one.py"]
    assert len(checks) == 2


# --- Repository-relative paths ---

def test_repository_relative_paths(repo):
    config = Configuration(mode="content", file_template="{{repoPath}}|{{relativePath}}\n")
    output = ClipSession().compose([repo / "pkg" / "mod.py"], config)
    assert output == f"{os.path.join('myrepo', 'pkg', 'mod.py')}|mod.py\n"

def test_repo_structure_tree(repo):
    config = Configuration(mode="tree", tree_template="{{tree}}")
    output = ClipSession().compose([repo / "pkg"], config)
    assert output == "myrepo/\n└── pkg\n    ├── mod.py\n    └── util.py"

def test_selection_relative_falls_back_without_repository(scenario):
    config = Configuration(mode="content", file_template="{{repoPath}}\n")
    output = ClipSession().compose([scenario / "a.py"], config)
    assert output == "a.py\n"

def test_absolute_structure_tree(scenario):
    config = Configuration(mode="tree", structure_format="absolute", tree_template="{{tree}}")
    output = ClipSession().compose([scenario / "a.py"], config)
    assert output.splitlines()[-1].endswith("└── a.py")
    assert "proj" in output

def test_ignore_file_read_once_per_root(repo, monkeypatch):
    (repo / ".gitignore").write_text("util.py\n", encoding="utf-8")
    (repo / "docs").mkdir()
    (repo / "docs" / "guide.md").write_text("# guide", encoding="utf-8")

    calls = []
    real_loader = ignore_module.load_ignore_spec

    def counting_loader(path):
        calls.append(path)
        return real_loader(path)

    monkeypatch.setattr(ignore_module, "load_ignore_spec", counting_loader)

    config = Configuration(mode="content", file_template="{{repoPath}}\n")
    output = ClipSession().compose([repo / "pkg", repo / "docs"], config)

    assert len(calls) == 1
    assert "util.py" not in output
    assert os.path.join("myrepo", "pkg", "mod.py") in output
    assert os.path.join("myrepo", "docs", "guide.md") in output


# --- Session ---

def test_session_cache_survives_invocations(tmp_path):
    (tmp_path / "data.zzq").write_text("plain words", encoding="utf-8")
    session = ClipSession()
    session.compose([tmp_path], Configuration(mode="content"))
    assert len(session.cache) == 1
    session.compose([tmp_path], Configuration(mode="content"))
    assert len(session.cache) == 1

def test_sessions_do_not_share_caches():
    assert ClipSession().cache is not ClipSession().cache
    shared = ClassificationCache()
    assert ClipSession(shared).cache is shared

def test_module_level_compose(scenario):
    output = compose([scenario / "a.py"], Configuration(mode="content", file_template="{{fileName}}"))
    assert output == "a.py"
