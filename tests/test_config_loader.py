"""Tests for notes_mcp_server.config_loader: hierarchical config loading."""

import textwrap

import pytest
import yaml

from notes_mcp_server.config_loader import (
    _interpolate_recursive,
    discover_config_files,
    ensure_config,
    interpolate_env_vars,
    load_hierarchical_config,
    load_yaml_file,
    merge_sections,
)


@pytest.fixture
def isolated(tmp_path, monkeypatch):
    """Empty CWD and HOME, no NOTES_MCP_CONFIG."""
    root = tmp_path.resolve()
    monkeypatch.delenv("NOTES_MCP_CONFIG", raising=False)
    monkeypatch.chdir(root)
    monkeypatch.setenv("HOME", str(root))
    return root


def _write(path, text):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(textwrap.dedent(text))
    return path


# -------------------------------------------------------------------------
# Env var interpolation
# -------------------------------------------------------------------------


class TestInterpolateEnvVars:
    """Tests for ${VAR} and ${VAR:-default} substitution."""

    def test_replaces_set_var(self, monkeypatch):
        monkeypatch.setenv("MY_HOST", "localhost")
        assert interpolate_env_vars("${MY_HOST}") == "localhost"

    def test_unset_var_replaced_with_empty(self, monkeypatch):
        monkeypatch.delenv("UNSET_VAR_XYZ", raising=False)
        assert interpolate_env_vars("${UNSET_VAR_XYZ}") == ""

    def test_default_used_when_unset(self, monkeypatch):
        monkeypatch.delenv("UNSET_VAR_XYZ", raising=False)
        assert (
            interpolate_env_vars("${UNSET_VAR_XYZ:-fallback}")
            == "fallback"
        )

    def test_empty_env_var_uses_default(self, monkeypatch):
        monkeypatch.setenv("EMPTY_VAR", "")
        assert interpolate_env_vars("${EMPTY_VAR:-dflt}") == "dflt"

    def test_multiple_vars_in_one_string(self, monkeypatch):
        monkeypatch.setenv("HOST_A", "notes.local")
        monkeypatch.setenv("PORT_A", "8443")
        assert (
            interpolate_env_vars("https://${HOST_A}:${PORT_A}/api")
            == "https://notes.local:8443/api"
        )

    def test_literal_dollar_brace_no_closing(self):
        assert interpolate_env_vars("${UNCLOSED") == "${UNCLOSED"

    def test_recursive(self, monkeypatch):
        monkeypatch.setenv("TOKEN_X", "abc")
        data = {"remote": {"token": "${TOKEN_X}", "timeout": 5}, "l": ["${TOKEN_X}"]}
        assert _interpolate_recursive(data) == {
            "remote": {"token": "abc", "timeout": 5},
            "l": ["abc"],
        }


# -------------------------------------------------------------------------
# !include
# -------------------------------------------------------------------------


class TestIncludeDirective:
    """Tests for !include YAML loading via ConfigLoader subclass."""

    def test_include_relative_file(self, tmp_path):
        _write(tmp_path / "secrets.yml", "token: secret123\n")
        main = _write(tmp_path / "config.yml", "remote: !include secrets.yml\n")

        assert load_yaml_file(main) == {"remote": {"token": "secret123"}}

    def test_include_absolute_path(self, tmp_path):
        secrets = _write(tmp_path / "sub" / "abs.yml", "token: abc\n")
        main = _write(tmp_path / "config.yml", f"remote: !include {secrets}\n")

        assert load_yaml_file(main) == {"remote": {"token": "abc"}}

    def test_include_nonexistent_raises(self, tmp_path):
        main = _write(tmp_path / "config.yml", "data: !include missing.yml\n")
        with pytest.raises(FileNotFoundError, match="missing.yml"):
            load_yaml_file(main)

    def test_circular_include_raises(self, tmp_path):
        a = _write(tmp_path / "a.yml", "x: !include b.yml\n")
        _write(tmp_path / "b.yml", "y: !include a.yml\n")
        with pytest.raises(ValueError, match="Circular include"):
            load_yaml_file(a)

    def test_self_include_raises(self, tmp_path):
        a = _write(tmp_path / "a.yml", "x: !include a.yml\n")
        with pytest.raises(ValueError, match="Circular include"):
            load_yaml_file(a)

    def test_same_file_included_twice_is_fine(self, tmp_path):
        _write(tmp_path / "shared.yml", "v: 1\n")
        main = _write(
            tmp_path / "config.yml",
            """\
            a: !include shared.yml
            b: !include shared.yml
            """,
        )
        assert load_yaml_file(main) == {"a": {"v": 1}, "b": {"v": 1}}

    def test_global_safe_loader_not_polluted(self, tmp_path):
        with pytest.raises(yaml.constructor.ConstructorError):
            yaml.safe_load("x: !include other.yml\n")


# -------------------------------------------------------------------------
# Discovery
# -------------------------------------------------------------------------


class TestDiscoverConfigFiles:
    """Tests for discover_config_files() precedence and filtering."""

    def test_env_var_takes_highest_precedence(self, isolated, monkeypatch):
        custom = _write(isolated / "custom.yml", "remote: {}\n")
        _write(isolated / ".notes_mcp" / "config.yml", "store: {}\n")
        monkeypatch.setenv("NOTES_MCP_CONFIG", str(custom))

        result = discover_config_files()
        assert result[0] == custom.resolve()
        assert len(result) == 2

    def test_project_before_global(self, isolated):
        proj = _write(isolated / ".notes_mcp" / "config.yml", "a: 1\n")
        glob = _write(
            isolated / ".config" / "notes_mcp" / "config.yml", "b: 1\n"
        )

        result = discover_config_files()
        assert result.index(proj) < result.index(glob)

    def test_yaml_extension_discovered(self, isolated):
        alt = _write(isolated / ".notes_mcp" / "config.yaml", "a: 1\n")
        assert discover_config_files() == [alt]

    def test_empty_filesystem_returns_empty(self, isolated):
        assert discover_config_files() == []


# -------------------------------------------------------------------------
# Merge and load
# -------------------------------------------------------------------------


class TestMergeSections:
    def test_sections_merged_key_by_key(self):
        base = {"remote": {"url": "g", "token": "t"}, "store": {"path": "p"}}
        override = {"remote": {"url": "p"}}
        assert merge_sections(base, override) == {
            "remote": {"url": "p", "token": "t"},
            "store": {"path": "p"},
        }

    def test_non_mapping_replaces(self):
        assert merge_sections({"a": {"x": 1}}, {"a": 3}) == {"a": 3}


class TestLoadHierarchicalConfig:
    """Tests for load_hierarchical_config() merge and interpolation."""

    def test_zero_config_returns_empty_dict(self, isolated):
        assert load_hierarchical_config() == {}

    def test_project_overrides_single_key(self, isolated):
        _write(
            isolated / ".config" / "notes_mcp" / "config.yml",
            """\
            remote:
              url: https://global.example.com
              token: global-token
            sync:
              auto_sync_interval: 600
            """,
        )
        _write(
            isolated / ".notes_mcp" / "config.yml",
            """\
            remote:
              url: https://project.example.com
            """,
        )

        result = load_hierarchical_config()
        assert result["remote"] == {
            "url": "https://project.example.com",
            "token": "global-token",
        }
        assert result["sync"]["auto_sync_interval"] == 600

    def test_env_var_interpolation_after_merge(self, isolated, monkeypatch):
        monkeypatch.setenv("MY_NOTES_TOKEN", "from-env")
        _write(
            isolated / ".notes_mcp" / "config.yml",
            "remote:\n  token: ${MY_NOTES_TOKEN}\n",
        )
        assert load_hierarchical_config()["remote"]["token"] == "from-env"

    def test_non_dict_root_skipped(self, isolated):
        _write(isolated / ".notes_mcp" / "config.yml", "- just\n- a list\n")
        assert load_hierarchical_config() == {}

    def test_broken_yaml_raises(self, isolated):
        _write(isolated / ".notes_mcp" / "config.yml", "remote: [unclosed\n")
        with pytest.raises(yaml.YAMLError):
            load_hierarchical_config()


# -------------------------------------------------------------------------
# ensure_config()
# -------------------------------------------------------------------------


class TestEnsureConfig:
    def test_creates_starter_file(self, isolated):
        path = ensure_config()
        assert path == isolated / ".notes_mcp" / "config.yml"
        text = path.read_text()
        assert "auto_sync_interval" in text
        # Starter file is all comments, so it loads as zero-config
        assert load_hierarchical_config() == {}

    def test_returns_existing(self, isolated):
        existing = _write(isolated / ".notes_mcp" / "config.yml", "a: 1\n")
        assert ensure_config() == existing
        assert existing.read_text() == "a: 1\n"

    def test_explicit_target(self, isolated):
        target = isolated / "elsewhere" / "notes.yml"
        assert ensure_config(target) == target
        assert target.exists()
