"""Tests for the config module."""

import argparse

import pytest
import yaml

from logparser.config import (
    LOG_LEVELS,
    SAMPLE_CONFIG,
    Config,
    GrokConfig,
    OutputConfig,
    _parse_bool,
    load_config,
    load_yaml_config,
)
from logparser.errors import ConfigError

ENV_VARS = (
    "LOGPARSER_FILES", "LOGPARSER_FROM_BEGINNING", "LOGPARSER_POLL_INTERVAL",
    "LOGPARSER_OUTPUT_DIR", "LOGPARSER_BATCH_SIZE", "LOGPARSER_FLUSH_INTERVAL",
    "LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def _cli(**overrides):
    ns = argparse.Namespace(files=None, from_beginning=False, output_dir=None, log_level=None)
    for key, value in overrides.items():
        setattr(ns, key, value)
    return ns


class TestParseBool:
    def test_true_values(self):
        for val in ("true", "True", "1", "yes", " YES ", True):
            assert _parse_bool(val) is True

    def test_false_values(self):
        for val in ("false", "0", "no", "", "random", False):
            assert _parse_bool(val) is False


class TestDefaults:
    def test_config_defaults(self):
        cfg = Config()
        assert cfg.files == []
        assert cfg.from_beginning is False
        assert cfg.grok == []
        assert cfg.output == OutputConfig()
        assert cfg.log_level == "INFO"

    def test_frozen(self):
        cfg = Config()
        with pytest.raises(AttributeError):
            cfg.from_beginning = True

    def test_log_levels(self):
        assert LOG_LEVELS == ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class TestGrokConfig:
    def test_from_dict(self):
        g = GrokConfig.from_dict({
            "pattern": "%{COMMON_LOG_FORMAT}",
            "tag_keys": ["verb"],
            "int_fields": "response",
            "measurement": "apache",
        })
        assert g.pattern == "%{COMMON_LOG_FORMAT}"
        assert g.tag_keys == ["verb"]
        assert g.int_fields == ["response"]
        assert g.float_fields == []
        assert g.measurement == "apache"

    def test_default_measurement(self):
        assert GrokConfig.from_dict({"pattern": "%{WORD:w}"}).measurement == "grok"

    def test_missing_pattern(self):
        with pytest.raises(ConfigError, match="requires a pattern"):
            GrokConfig.from_dict({"tag_keys": ["verb"]})

    def test_bad_key_list(self):
        with pytest.raises(ConfigError, match="tag_keys"):
            GrokConfig.from_dict({"pattern": "x", "tag_keys": {"a": 1}})

    def test_unknown_options_warn(self, caplog):
        GrokConfig.from_dict({"pattern": "x", "named_patterns": ["y"]})
        assert "named_patterns" in caplog.text


class TestLoadYamlConfig:
    def test_no_path(self):
        assert load_yaml_config(None) == {}

    def test_missing_file(self, tmp_path):
        assert load_yaml_config(str(tmp_path / "absent.yaml")) == {}

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("files: [unclosed\n")
        with pytest.raises(ConfigError, match="invalid YAML"):
            load_yaml_config(str(path))

    def test_top_level_not_mapping(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ConfigError, match="mapping"):
            load_yaml_config(str(path))

    def test_sample_config_loads(self, tmp_path):
        path = tmp_path / "sample.yaml"
        path.write_text(SAMPLE_CONFIG)
        cfg = load_config(yaml_data=load_yaml_config(str(path)))
        assert cfg.files == ["/var/log/apache.log"]
        assert len(cfg.grok) == 1
        assert cfg.grok[0].pattern == "%{NGINXACCESS}"
        assert "NGINXACCESS" in cfg.grok[0].custom_patterns
        assert cfg.grok[0].int_fields == ["response", "bytes"]


class TestLoadConfig:
    def test_defaults(self):
        assert load_config() == Config()

    def test_yaml_values(self):
        cfg = load_config(yaml_data=yaml.safe_load("""
files: /var/log/a.log
from_beginning: yes
poll_interval: 0.5
log_level: debug
grok:
  - pattern: "%{WORD:a}"
  - pattern: "%{WORD:b}"
    measurement: second
output:
  dir: out/
  batch_size: 10
"""))
        assert cfg.files == ["/var/log/a.log"]
        assert cfg.from_beginning is True
        assert cfg.poll_interval == 0.5
        assert cfg.log_level == "DEBUG"
        assert [g.measurement for g in cfg.grok] == ["grok", "second"]
        assert cfg.output == OutputConfig(dir="out/", batch_size=10, flush_interval=5.0)

    def test_single_grok_mapping(self):
        cfg = load_config(yaml_data={"grok": {"pattern": "%{WORD:a}"}})
        assert len(cfg.grok) == 1

    def test_env_overrides_yaml(self, monkeypatch):
        monkeypatch.setenv("LOGPARSER_FILES", "/a.log, /b/*.log")
        monkeypatch.setenv("LOGPARSER_FROM_BEGINNING", "true")
        monkeypatch.setenv("LOGPARSER_OUTPUT_DIR", "/tmp/out")
        monkeypatch.setenv("LOGPARSER_BATCH_SIZE", "7")
        monkeypatch.setenv("LOG_LEVEL", "warning")
        cfg = load_config(yaml_data={"files": ["/ignored.log"], "output": {"batch_size": 3}})
        assert cfg.files == ["/a.log", "/b/*.log"]
        assert cfg.from_beginning is True
        assert cfg.output.dir == "/tmp/out"
        assert cfg.output.batch_size == 7
        assert cfg.log_level == "WARNING"

    def test_cli_overrides_env(self, monkeypatch):
        monkeypatch.setenv("LOGPARSER_FILES", "/env.log")
        monkeypatch.setenv("LOGPARSER_OUTPUT_DIR", "/tmp/env")
        cfg = load_config(_cli(files=["/cli.log"], from_beginning=True,
                               output_dir="/tmp/cli", log_level="error"))
        assert cfg.files == ["/cli.log"]
        assert cfg.from_beginning is True
        assert cfg.output.dir == "/tmp/cli"
        assert cfg.log_level == "ERROR"

    def test_invalid_number(self, monkeypatch):
        monkeypatch.setenv("LOGPARSER_BATCH_SIZE", "lots")
        with pytest.raises(ConfigError, match="invalid configuration value"):
            load_config()

    def test_invalid_log_level(self):
        with pytest.raises(ConfigError, match="log_level"):
            load_config(yaml_data={"log_level": "verbose"})
