"""Line parsers: turn one raw log line into a Measurement."""

import logging
from datetime import datetime, timezone
from typing import Protocol

from logparser.errors import ParseError
from logparser.filters import Category, FieldClassifier
from logparser.grok import Grammar, compile_grammar
from logparser.models import Measurement

logger = logging.getLogger(__name__)

DEFAULT_MEASUREMENT = "grok"


class LogParser(Protocol):
    def compile(self) -> None: ...

    def parse_line(self, line: str) -> Measurement: ...


class GrokParser:
    """Parses lines with a grok pattern and classifies captures by key.

    ``compile()`` must be called once before ``parse_line``. After that the
    parser is read-only and may be shared by any number of threads.
    """

    def __init__(self, pattern: str, custom_patterns: str = "",
                 custom_pattern_file: str = "", tag_keys=None, string_fields=None,
                 int_fields=None, float_fields=None,
                 measurement: str = DEFAULT_MEASUREMENT,
                 timestamp_key: str = "", timestamp_format: str = ""):
        self.pattern = pattern
        self.custom_patterns = custom_patterns
        self.custom_pattern_file = custom_pattern_file
        self.tag_keys = list(tag_keys or [])
        self.string_fields = list(string_fields or [])
        self.int_fields = list(int_fields or [])
        self.float_fields = list(float_fields or [])
        self.measurement = measurement
        self.timestamp_key = timestamp_key
        self.timestamp_format = timestamp_format

        self._grammar: Grammar | None = None
        self._classifier: FieldClassifier | None = None

    @classmethod
    def from_config(cls, cfg) -> "GrokParser":
        return cls(
            pattern=cfg.pattern,
            custom_patterns=cfg.custom_patterns,
            custom_pattern_file=cfg.custom_pattern_file,
            tag_keys=cfg.tag_keys,
            string_fields=cfg.string_fields,
            int_fields=cfg.int_fields,
            float_fields=cfg.float_fields,
            measurement=cfg.measurement,
            timestamp_key=cfg.timestamp_key,
            timestamp_format=cfg.timestamp_format,
        )

    @property
    def grammar(self) -> Grammar | None:
        return self._grammar

    @property
    def classifier(self) -> FieldClassifier | None:
        return self._classifier

    def compile(self) -> None:
        grammar = compile_grammar(self.pattern, self.custom_patterns, self.custom_pattern_file)
        classifier = FieldClassifier.compile(
            tag_keys=self.tag_keys,
            string_fields=self.string_fields,
            int_fields=self.int_fields,
            float_fields=self.float_fields,
        )
        self._grammar, self._classifier = grammar, classifier
        logger.debug("Compiled grok pattern %r (captures: %s)",
                     self.pattern, ", ".join(grammar.capture_names))

    def _parse_timestamp(self, value: str) -> datetime | None:
        try:
            ts = datetime.strptime(value, self.timestamp_format)
        except ValueError as e:
            logger.warning("Cannot parse timestamp %r with format %r: %s",
                           value, self.timestamp_format, e)
            return None
        if ts.tzinfo is None:
            return ts.replace(tzinfo=timezone.utc)
        return ts.astimezone(timezone.utc)

    def parse_line(self, line: str) -> Measurement:
        if self._grammar is None or self._classifier is None:
            raise ParseError("parser has not been compiled")

        values = self._grammar.match(line)
        if values is None:
            raise ParseError(f"line does not match pattern {self.pattern!r}")

        tags: dict[str, str] = {}
        fields: dict = {}
        timestamp = None
        for key, value in values.items():
            if not key or not value:
                continue

            if self.timestamp_key and self.timestamp_format and key == self.timestamp_key:
                timestamp = self._parse_timestamp(value)
                if timestamp is not None:
                    continue

            category = self._classifier.classify(key)
            if category is Category.TAG:
                tags[key] = value
            elif category is Category.INT_FIELD:
                try:
                    fields[key] = int(value)
                except ValueError:
                    logger.warning("Error parsing %s=%r to int, dropping field", key, value)
            elif category is Category.FLOAT_FIELD:
                try:
                    fields[key] = float(value)
                except ValueError:
                    logger.warning("Error parsing %s=%r to float, dropping field", key, value)
            else:
                fields[key] = value

        return Measurement(
            name=self.measurement,
            tags=tags,
            fields=fields,
            timestamp=timestamp or datetime.now(timezone.utc),
        )

    def __repr__(self):
        return f"GrokParser(pattern={self.pattern!r}, measurement={self.measurement!r})"
