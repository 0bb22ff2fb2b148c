"""Tests for config loading, validation, and env var overrides."""

from pathlib import Path

import pytest

from safeedit.config.defaults import DEFAULT_TOML
from safeedit.config.loader import load_config
from safeedit.config.schema import SafeEditConfig
from safeedit.errors import ConfigError


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in (
        "SAFEEDIT_CONTEXT",
        "SAFEEDIT_PAGER",
        "SAFEEDIT_NO_BACKUP",
        "SAFEEDIT_UNDO_LOG",
        "SAFEEDIT_LOG_PATH",
        "SAFEEDIT_ENCODING",
    ):
        monkeypatch.delenv(name, raising=False)


class TestConfigLoading:
    def test_default_config(self, tmp_path: Path):
        cfg = load_config(tmp_path)
        assert cfg == SafeEditConfig()
        assert cfg.diff.context == 3
        assert cfg.apply.backups is True
        assert cfg.log.path == ".safeedit/change_log.jsonl"
        assert cfg.encoding.default is None

    def test_custom_toml(self, tmp_path: Path):
        (tmp_path / ".safeedit.toml").write_text(
            'version = "1.0"\n'
            "[diff]\n"
            "context = 5\n"
            'pager = "never"\n'
            "[apply]\n"
            "backups = false\n"
            'undo_log = "undo"\n'
            "[log]\n"
            "max_entries = 10\n"
        )
        cfg = load_config(tmp_path)
        assert cfg.diff.context == 5
        assert cfg.diff.pager == "never"
        assert cfg.apply.backups is False
        assert cfg.apply.undo_log == "undo"
        assert cfg.log.max_entries == 10

    def test_unknown_keys_ignored(self, tmp_path: Path):
        (tmp_path / ".safeedit.toml").write_text("[diff]\nfancy = true\ncontext = 1\n")
        assert load_config(tmp_path).diff.context == 1

    def test_starter_template_parses(self, tmp_path: Path):
        (tmp_path / ".safeedit.toml").write_text(DEFAULT_TOML)
        assert load_config(tmp_path) == SafeEditConfig()

    def test_config_override_path(self, tmp_path: Path):
        custom = tmp_path / "custom.toml"
        custom.write_text("[diff]\ncontext = 0\n")
        cfg = load_config(tmp_path, config_override=str(custom))
        assert cfg.diff.context == 0

    def test_missing_override_raises(self, tmp_path: Path):
        with pytest.raises(ConfigError):
            load_config(tmp_path, config_override="/nonexistent/config.toml")

    def test_invalid_toml_raises(self, tmp_path: Path):
        (tmp_path / ".safeedit.toml").write_text("this is not valid [toml")
        with pytest.raises(ConfigError):
            load_config(tmp_path)

    def test_section_must_be_table(self, tmp_path: Path):
        (tmp_path / ".safeedit.toml").write_text('diff = "nope"\n')
        with pytest.raises(ConfigError, match=r"\[diff\] must be a table"):
            load_config(tmp_path)

    @pytest.mark.parametrize(
        "body",
        [
            '[diff]\npager = "sometimes"\n',
            '[diff]\ncolor = "purple"\n',
            "[diff]\ncontext = -1\n",
            "[log]\nmax_entries = 0\n",
        ],
    )
    def test_invalid_values(self, tmp_path: Path, body: str):
        (tmp_path / ".safeedit.toml").write_text(body)
        with pytest.raises(ConfigError):
            load_config(tmp_path)


class TestEnvOverrides:
    def test_env_values_applied(self, tmp_path: Path, monkeypatch):
        monkeypatch.setenv("SAFEEDIT_CONTEXT", "7")
        monkeypatch.setenv("SAFEEDIT_PAGER", "always")
        monkeypatch.setenv("SAFEEDIT_NO_BACKUP", "1")
        monkeypatch.setenv("SAFEEDIT_UNDO_LOG", "/tmp/undo")
        monkeypatch.setenv("SAFEEDIT_LOG_PATH", "log.jsonl")
        monkeypatch.setenv("SAFEEDIT_ENCODING", "latin-1")
        cfg = load_config(tmp_path)
        assert cfg.diff.context == 7
        assert cfg.diff.pager == "always"
        assert cfg.apply.backups is False
        assert cfg.apply.undo_log == "/tmp/undo"
        assert cfg.log.path == "log.jsonl"
        assert cfg.encoding.default == "latin-1"

    def test_env_overrides_file(self, tmp_path: Path, monkeypatch):
        (tmp_path / ".safeedit.toml").write_text("[diff]\ncontext = 1\n")
        monkeypatch.setenv("SAFEEDIT_CONTEXT", "9")
        assert load_config(tmp_path).diff.context == 9

    def test_invalid_env_values_ignored(self, tmp_path: Path, monkeypatch):
        monkeypatch.setenv("SAFEEDIT_CONTEXT", "lots")
        monkeypatch.setenv("SAFEEDIT_PAGER", "sometimes")
        monkeypatch.setenv("SAFEEDIT_NO_BACKUP", "yes")
        cfg = load_config(tmp_path)
        assert cfg.diff.context == 3
        assert cfg.diff.pager == "auto"
        assert cfg.apply.backups is True
