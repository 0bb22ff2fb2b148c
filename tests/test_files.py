"""Tests for target resolution, exclusion, and binary sniffing."""

from pathlib import Path

import pytest

from safeedit.errors import InputError
from safeedit.files.resolver import detect_binary, is_excluded, resolve_targets, suggest_path


@pytest.fixture
def tree(tmp_path: Path) -> Path:
    (tmp_path / "src").mkdir()
    (tmp_path / "src" / "a.py").write_text("a = 1\n")
    (tmp_path / "src" / "b.txt").write_text("b\n")
    (tmp_path / "src" / ".hidden.py").write_text("h\n")
    (tmp_path / ".git").mkdir()
    (tmp_path / ".git" / "config").write_text("[core]\n")
    (tmp_path / "blob.bin").write_bytes(b"\x00\x01\x02")
    return tmp_path


class TestResolveTargets:
    def test_directory_walk_skips_hidden(self, tree: Path):
        entries = resolve_targets([tree])
        paths = [e.path for e in entries]
        assert paths == sorted(paths)
        names = [p.name for p in paths]
        assert "a.py" in names and "b.txt" in names and "blob.bin" in names
        assert ".hidden.py" not in names
        assert "config" not in names

    def test_include_hidden(self, tree: Path):
        names = {e.path.name for e in resolve_targets([tree], include_hidden=True)}
        assert {".hidden.py", "config"} <= names

    def test_exclude_globs(self, tree: Path):
        names = {e.path.name for e in resolve_targets([tree], exclude=["*.txt", "*/blob.bin"])}
        assert names == {"a.py"}

    def test_globs_and_dedup(self, tree: Path, monkeypatch):
        monkeypatch.chdir(tree)
        entries = resolve_targets([Path("src/a.py")], globs=["src/*.py", "**/*.py"])
        assert [e.path.name for e in entries] == ["a.py"]

    def test_binary_flagged(self, tree: Path):
        (entry,) = resolve_targets([tree / "blob.bin"])
        assert entry.is_binary is True
        assert entry.metadata.len == 3

    def test_hidden_explicit_file_skipped(self, tree: Path, monkeypatch):
        monkeypatch.chdir(tree)
        with pytest.raises(InputError, match="no files matched"):
            resolve_targets([Path("src/.hidden.py")])

    def test_missing_path_hint(self, tree: Path, monkeypatch):
        monkeypatch.chdir(tree)
        with pytest.raises(InputError, match="did you mean"):
            resolve_targets([Path("a.py")])

    def test_nothing_matched(self, tmp_path: Path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        with pytest.raises(InputError, match="provide a target path or --glob"):
            resolve_targets([], globs=["*.nope"])


class TestHelpers:
    def test_detect_binary(self, tree: Path):
        assert detect_binary(tree / "blob.bin") is True
        assert detect_binary(tree / "src" / "a.py") is False

    def test_is_excluded(self):
        assert is_excluded(Path("pkg/build/out.js"), ["pkg/build/*"])
        assert is_excluded(Path("deep/dir/x.lock"), ["*.lock"])
        assert not is_excluded(Path("keep.py"), ["*.lock"])

    def test_suggest_path_finds_sibling_dir(self, tree: Path):
        assert suggest_path(Path("a.py"), base=tree) == tree.resolve() / "src" / "a.py"

    def test_suggest_path_none(self, tree: Path):
        assert suggest_path(Path("zzz-not-here.qq"), base=tree) is None
