"""Tests for the command-line entry point."""

import pytest

from logparser.main import build_cli_parser, main


class TestCliParser:
    def test_defaults(self):
        args = build_cli_parser().parse_args([])
        assert args.config is None
        assert args.files is None
        assert args.from_beginning is False
        assert args.log_level is None

    def test_flags(self):
        args = build_cli_parser().parse_args([
            "--files", "a.log", "b/*.log", "--from-beginning",
            "--output-dir", "out", "--log-level", "debug",
        ])
        assert args.files == ["a.log", "b/*.log"]
        assert args.from_beginning is True
        assert args.output_dir == "out"
        assert args.log_level == "DEBUG"

    def test_bad_log_level(self):
        with pytest.raises(SystemExit):
            build_cli_parser().parse_args(["--log-level", "loud"])


class TestMain:
    def test_sample_config(self, capsys):
        assert main(["--sample-config"]) == 0
        assert "grok:" in capsys.readouterr().out

    def test_invalid_config_file(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("grok:\n  tag_keys: [verb]\n")
        assert main(["--config", str(path), "--output-dir", str(tmp_path / "out")]) == 2

    def test_no_parsers_fails_to_start(self, tmp_path):
        log = tmp_path / "a.log"
        log.write_text("")
        path = tmp_path / "cfg.yaml"
        path.write_text(f"files: [{log}]\n")
        assert main(["--config", str(path), "--output-dir", str(tmp_path / "out")]) == 1
