"""Tests for config.py — defaults, YAML file, env vars, KEY=VALUE parsing."""

import dataclasses

import pytest

from bashpipe.config import DEFAULT_INTERPRETER, Config, ConfigError, load_config, parse_env_pairs


@pytest.fixture(autouse=True)
def _isolated_cwd(tmp_path, monkeypatch):
    # Keep a stray .bashpipe.yml in the repo from leaking into tests.
    monkeypatch.chdir(tmp_path)


def _write(tmp_path, text, name="bashpipe.yml"):
    path = tmp_path / name
    path.write_text(text)
    return str(path)


def test_defaults():
    cfg = Config()
    assert cfg.interpreter == ("/bin/bash", "-c")
    assert dict(cfg.env) == {}
    assert cfg.trace is False


def test_config_is_frozen():
    cfg = Config()
    with pytest.raises(dataclasses.FrozenInstanceError):
        cfg.trace = True


def test_env_is_read_only():
    cfg = Config(env={"A": "1"})
    with pytest.raises(TypeError):
        cfg.env["A"] = "2"


def test_env_values_coerced_to_str():
    cfg = Config(env={"N": 5})
    assert cfg.env["N"] == "5"


def test_empty_interpreter_rejected():
    with pytest.raises(ConfigError):
        Config(interpreter=())


def test_with_env_merges_without_mutating():
    base = Config(env={"A": "1", "B": "2"})
    merged = base.with_env({"B": "3", "C": "4"})
    assert dict(merged.env) == {"A": "1", "B": "3", "C": "4"}
    assert dict(base.env) == {"A": "1", "B": "2"}
    assert base.with_env(None) is base


def test_parse_env_pairs():
    assert parse_env_pairs(["A=1", "B=x=y", "C="]) == {"A": "1", "B": "x=y", "C": ""}


@pytest.mark.parametrize("item", ["NOEQUALS", "=value"])
def test_parse_env_pairs_invalid(item):
    with pytest.raises(ConfigError, match="KEY=VALUE"):
        parse_env_pairs([item])


def test_load_defaults_without_file():
    cfg = load_config(environ={})
    assert cfg.interpreter == DEFAULT_INTERPRETER
    assert cfg.trace is False


def test_load_yaml_file(tmp_path):
    path = _write(
        tmp_path,
        "interpreter: /bin/sh -c\n"
        "env:\n"
        "  GREETING: hello\n"
        "  COUNT: 3\n"
        "trace: true\n",
    )
    cfg = load_config(path, environ={})
    assert cfg.interpreter == ("/bin/sh", "-c")
    assert dict(cfg.env) == {"GREETING": "hello", "COUNT": "3"}
    assert cfg.trace is True


def test_load_yaml_list_forms(tmp_path):
    path = _write(tmp_path, "interpreter: [/usr/bin/env, bash, -c]\nenv:\n  - A=1\n  - B=2\n")
    cfg = load_config(path, environ={})
    assert cfg.interpreter == ("/usr/bin/env", "bash", "-c")
    assert dict(cfg.env) == {"A": "1", "B": "2"}


def test_default_file_in_cwd(tmp_path):
    _write(tmp_path, "trace: yes\n", name=".bashpipe.yml")
    assert load_config(environ={}).trace is True


def test_config_path_from_env(tmp_path):
    path = _write(tmp_path, "interpreter: /bin/zsh -c\n", name="other.yml")
    cfg = load_config(environ={"BASHPIPE_CONFIG": path})
    assert cfg.interpreter == ("/bin/zsh", "-c")


def test_env_vars_override_file(tmp_path):
    path = _write(tmp_path, "interpreter: /bin/zsh -c\ntrace: true\n")
    cfg = load_config(path, environ={"BASHPIPE_SHELL": "/bin/sh -e -c", "BASHPIPE_TRACE": "0"})
    assert cfg.interpreter == ("/bin/sh", "-e", "-c")
    assert cfg.trace is False


def test_trace_env_values():
    assert load_config(environ={"BASHPIPE_TRACE": "on"}).trace is True
    assert load_config(environ={"BASHPIPE_TRACE": "off"}).trace is False


def test_empty_file_is_defaults(tmp_path):
    path = _write(tmp_path, "")
    assert load_config(path, environ={}) == Config()


def test_missing_file(tmp_path):
    with pytest.raises(ConfigError, match="not found"):
        load_config(str(tmp_path / "nope.yml"), environ={})


def test_invalid_yaml(tmp_path):
    path = _write(tmp_path, "interpreter: [unclosed\n")
    with pytest.raises(ConfigError, match="invalid YAML"):
        load_config(path, environ={})


def test_non_mapping_document(tmp_path):
    path = _write(tmp_path, "- just\n- a list\n")
    with pytest.raises(ConfigError, match="mapping"):
        load_config(path, environ={})


def test_bad_interpreter_type(tmp_path):
    path = _write(tmp_path, "interpreter: 42\n")
    with pytest.raises(ConfigError, match="interpreter"):
        load_config(path, environ={})


def test_empty_interpreter_in_file(tmp_path):
    path = _write(tmp_path, "interpreter: ''\n")
    with pytest.raises(ConfigError):
        load_config(path, environ={})


def test_bad_env_type(tmp_path):
    path = _write(tmp_path, "env: 7\n")
    with pytest.raises(ConfigError, match="env"):
        load_config(path, environ={})


def test_to_dict():
    cfg = Config(interpreter=("/bin/sh", "-c"), env={"A": "1"}, trace=True)
    assert cfg.to_dict() == {"interpreter": ["/bin/sh", "-c"], "env": {"A": "1"}, "trace": True}


@pytest.mark.parametrize("key", ["A=B", "", "NUL\0KEY"])
def test_invalid_env_name_rejected(key):
    with pytest.raises(ConfigError, match="invalid environment variable name"):
        Config(env={key: "1"})


def test_nul_in_env_value_rejected():
    with pytest.raises(ConfigError, match="NUL"):
        Config(env={"A": "x\0y"})


def test_with_env_validates_overrides():
    with pytest.raises(ConfigError):
        Config().with_env({"A=B": "1"})
