"""Configuration loading from a YAML file, env vars, and CLI args.

Precedence, lowest first: defaults, YAML file, environment, CLI flags.
"""

import logging
import os
from dataclasses import dataclass, field, replace

import yaml

from logparser.errors import ConfigError
from logparser.parser import DEFAULT_MEASUREMENT
from logparser.tail import DEFAULT_POLL_INTERVAL

logger = logging.getLogger(__name__)

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

SAMPLE_CONFIG = r"""## Files to tail.
## These accept standard unix glob matching rules, but with the addition of
## ** as a "super asterisk". ie:
##   "/var/log/**.log"     -> recursively find all .log files in /var/log
##   "/var/log/*/*.log"    -> find all .log files with a parent dir in /var/log
##   "/var/log/apache.log" -> just tail the apache log file
files:
  - /var/log/apache.log
## Read files from the beginning instead of only new lines.
from_beginning: false

## For parsing logstash-style "grok" patterns. May also be a list of
## parser sections; every line is offered to each of them.
grok:
  pattern: "%{NGINXACCESS}"
  custom_patterns: |
    NGUSERNAME [a-zA-Z\.\@\-\+_%]+
    NGUSER %{NGUSERNAME}
    NGINXACCESS %{IPORHOST:clientip} %{NGUSER:ident} %{NGUSER:auth} \[%{HTTPDATE:timestamp}\] "%{WORD:verb} %{URIPATHPARAM:request} HTTP/%{NUMBER:httpversion}" %{NUMBER:response} (?:%{NUMBER:bytes}|-) (?:"(?:%{URI:referrer}|-)"|%{QS:referrer}) %{QS:agent}
  tag_keys: ["verb"]
  int_fields: ["response", "bytes"]
  float_fields: ["httpversion"]

output:
  dir: collected_metrics/
  batch_size: 50
  flush_interval: 5.0
"""


def _parse_bool(value) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("true", "1", "yes")


def _str_list(value, key: str) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, (list, tuple)) and all(isinstance(v, str) for v in value):
        return list(value)
    raise ConfigError(f"{key} must be a string or a list of strings")


@dataclass(frozen=True)
class GrokConfig:
    pattern: str
    custom_patterns: str = ""
    custom_pattern_file: str = ""
    tag_keys: list[str] = field(default_factory=list)
    string_fields: list[str] = field(default_factory=list)
    int_fields: list[str] = field(default_factory=list)
    float_fields: list[str] = field(default_factory=list)
    measurement: str = DEFAULT_MEASUREMENT
    timestamp_key: str = ""
    timestamp_format: str = ""

    @classmethod
    def from_dict(cls, d: dict) -> "GrokConfig":
        if not isinstance(d, dict):
            raise ConfigError("grok section must be a mapping")
        unknown = set(d) - set(cls.__dataclass_fields__)
        if unknown:
            logger.warning("Ignoring unknown grok options: %s", ", ".join(sorted(unknown)))
        if not d.get("pattern"):
            raise ConfigError("grok section requires a pattern")
        return cls(
            pattern=str(d["pattern"]),
            custom_patterns=d.get("custom_patterns") or "",
            custom_pattern_file=d.get("custom_pattern_file") or "",
            tag_keys=_str_list(d.get("tag_keys"), "tag_keys"),
            string_fields=_str_list(d.get("string_fields"), "string_fields"),
            int_fields=_str_list(d.get("int_fields"), "int_fields"),
            float_fields=_str_list(d.get("float_fields"), "float_fields"),
            measurement=d.get("measurement") or DEFAULT_MEASUREMENT,
            timestamp_key=d.get("timestamp_key") or "",
            timestamp_format=d.get("timestamp_format") or "",
        )


@dataclass(frozen=True)
class OutputConfig:
    dir: str = "collected_metrics/"
    batch_size: int = 50
    flush_interval: float = 5.0


@dataclass(frozen=True)
class Config:
    files: list[str] = field(default_factory=list)
    from_beginning: bool = False
    poll_interval: float = DEFAULT_POLL_INTERVAL
    grok: list[GrokConfig] = field(default_factory=list)
    output: OutputConfig = field(default_factory=OutputConfig)
    log_level: str = "INFO"


def load_yaml_config(path: str | None) -> dict:
    """Load the YAML config file. Returns empty dict if no path or file missing."""
    if not path:
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except FileNotFoundError:
        logger.warning("Config file %s not found, using defaults", path)
        return {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid YAML in {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"{path}: top level must be a mapping")
    logger.info("Loaded YAML config from %s", path)
    return data


def load_config(cli_args=None, yaml_data: dict | None = None) -> Config:
    """Build Config from parsed YAML data, env vars, and CLI args."""
    data = yaml_data or {}

    grok_section = data.get("grok") or []
    if isinstance(grok_section, dict):
        grok_section = [grok_section]
    grok = [GrokConfig.from_dict(d) for d in grok_section]

    out = data.get("output") or {}
    files = _str_list(data.get("files"), "files")
    if os.environ.get("LOGPARSER_FILES"):
        files = [f.strip() for f in os.environ["LOGPARSER_FILES"].split(",") if f.strip()]

    try:
        kwargs = {
            "files": files,
            "from_beginning": _parse_bool(
                os.environ.get("LOGPARSER_FROM_BEGINNING", data.get("from_beginning", False))),
            "poll_interval": float(
                os.environ.get("LOGPARSER_POLL_INTERVAL", data.get("poll_interval", DEFAULT_POLL_INTERVAL))),
            "log_level": str(os.environ.get("LOG_LEVEL", data.get("log_level", "INFO"))).upper(),
        }
        output = OutputConfig(
            dir=os.environ.get("LOGPARSER_OUTPUT_DIR", out.get("dir", OutputConfig.dir)),
            batch_size=int(os.environ.get("LOGPARSER_BATCH_SIZE", out.get("batch_size", OutputConfig.batch_size))),
            flush_interval=float(
                os.environ.get("LOGPARSER_FLUSH_INTERVAL", out.get("flush_interval", OutputConfig.flush_interval))),
        )
    except (TypeError, ValueError) as e:
        raise ConfigError(f"invalid configuration value: {e}") from e

    if cli_args is not None:
        if getattr(cli_args, "files", None):
            kwargs["files"] = list(cli_args.files)
        if getattr(cli_args, "from_beginning", False):
            kwargs["from_beginning"] = True
        if getattr(cli_args, "output_dir", None):
            output = replace(output, dir=cli_args.output_dir)
        if getattr(cli_args, "log_level", None):
            kwargs["log_level"] = cli_args.log_level.upper()

    if kwargs["log_level"] not in LOG_LEVELS:
        raise ConfigError(f"log_level must be one of {', '.join(LOG_LEVELS)}")

    return Config(grok=grok, output=output, **kwargs)
