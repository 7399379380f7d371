"""Grok pattern compiler.

A grok pattern is a regular expression that may reference named
definitions from a pattern library:

    %{NAME}           substitute the definition of NAME
    %{NAME:capture}   substitute it inside a group reported as ``capture``

Only named captures are reported; plain ``(...)`` groups inside definitions
never show up in the parse result.
"""

import logging
import os
import re
from types import MappingProxyType

from logparser.errors import CompileError
from logparser.patterns import BASE_PATTERNS_TEXT

logger = logging.getLogger(__name__)

_REFERENCE_RE = re.compile(
    r"%\{(?P<name>[A-Za-z0-9_]+)(?::(?P<capture>[^}:]+))?(?::(?P<extra>[^}]*))?\}"
)
# Named group written in a fragment, Oniguruma "(?<n>" or Python "(?P<n>" style
_NAMED_GROUP_RE = re.compile(r"(?<!\\)\(\?P?<(?P<name>[A-Za-z_][A-Za-z0-9_]*)>")
_GROUP_PREFIX = "_grok"


def parse_pattern_text(text: str, source: str = "custom_patterns") -> dict[str, str]:
    """Parse ``NAME regex`` definitions, one per line.

    The name ends at the first space and everything after it, leading spaces
    included, is the regex. Blank lines and lines starting with ``#`` are
    skipped. A line with a name but no regex raises CompileError.
    """
    patterns: dict[str, str] = {}
    for lineno, raw in enumerate(text.splitlines(), start=1):
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        parts = line.split(" ", 1)
        if len(parts) < 2:
            raise CompileError(f"{source}:{lineno}: pattern {parts[0]!r} has no definition")
        patterns[parts[0]] = parts[1]
    return patterns


def load_pattern_path(path: str) -> dict[str, str]:
    """Load definitions from a pattern file, or from every file in a directory."""
    if os.path.isdir(path):
        files = sorted(
            os.path.join(path, name) for name in os.listdir(path)
            if os.path.isfile(os.path.join(path, name))
        )
    else:
        files = [path]

    patterns: dict[str, str] = {}
    for filepath in files:
        try:
            with open(filepath, "r", encoding="utf-8") as f:
                text = f.read()
        except (OSError, UnicodeDecodeError) as e:
            raise CompileError(f"cannot read pattern file {filepath}: {e}") from e
        patterns.update(parse_pattern_text(text, source=filepath))
        logger.debug("Loaded patterns from %s", filepath)
    return patterns


BASE_PATTERNS = MappingProxyType(parse_pattern_text(BASE_PATTERNS_TEXT, source="base"))


def _expand(pattern: str, patterns) -> tuple[str, list[tuple[str, str]]]:
    """Inline every %{...} reference. Returns the regex and its capture groups."""
    groups: list[tuple[str, str]] = []

    def new_group(capture: str) -> str:
        group = f"{_GROUP_PREFIX}{len(groups)}"
        groups.append((group, capture))
        return group

    def rename_groups(text: str) -> str:
        # Fragments may be inlined more than once; every copy needs its own group
        return _NAMED_GROUP_RE.sub(lambda m: f"(?P<{new_group(m.group('name'))}>", text)

    def expand(text: str, stack: tuple[str, ...]) -> str:
        text = rename_groups(text)

        def replace(m: re.Match) -> str:
            name, capture, extra = m.group("name", "capture", "extra")
            if extra is not None:
                raise CompileError(
                    f"{m.group(0)}: type suffixes are not supported, "
                    "use int_fields/float_fields instead"
                )
            if name not in patterns:
                raise CompileError(f"no pattern named {name!r}")
            if name in stack:
                raise CompileError("recursive pattern reference: " + " -> ".join(stack + (name,)))

            if capture is None:
                return f"(?:{expand(patterns[name], stack + (name,))})"
            group = new_group(capture)
            return f"(?P<{group}>{expand(patterns[name], stack + (name,))})"

        return _REFERENCE_RE.sub(replace, text)

    return expand(pattern, ()), groups


class Grammar:
    """A compiled grok pattern and the definitions it was built from.

    Instances are immutable after construction and safe to share between
    threads.
    """

    __slots__ = ("_patterns", "_pattern", "_regex", "_groups")

    def __init__(self, patterns, pattern: str):
        if not pattern:
            raise CompileError("no pattern configured")
        definitions = dict(patterns)
        expanded, groups = _expand(pattern, definitions)
        try:
            regex = re.compile(expanded)
        except re.error as e:
            raise CompileError(f"invalid pattern {pattern!r}: {e}") from e

        groups.sort(key=lambda g: regex.groupindex[g[0]])

        self._patterns = MappingProxyType(definitions)
        self._pattern = pattern
        self._regex = regex
        self._groups = tuple(groups)

    @property
    def patterns(self):
        return self._patterns

    @property
    def pattern(self) -> str:
        return self._pattern

    @property
    def regex(self) -> re.Pattern:
        return self._regex

    @property
    def capture_names(self) -> tuple[str, ...]:
        return tuple(dict.fromkeys(name for _, name in self._groups))

    def match(self, line: str) -> dict[str, str] | None:
        """Search *line*; return capture name -> value, or None on no match.

        Unmatched groups yield "". A capture name used more than once keeps
        its first non-empty value.
        """
        m = self._regex.search(line)
        if m is None:
            return None
        captures: dict[str, str] = {}
        for group, name in self._groups:
            if captures.get(name):
                continue
            captures[name] = m.group(group) or ""
        return captures


def compile_grammar(pattern: str, custom_patterns: str = "",
                    custom_pattern_file: str = "") -> Grammar:
    """Build a Grammar from the base library plus custom definitions.

    Pattern file definitions override the base library, inline definitions
    override both.
    """
    definitions = dict(BASE_PATTERNS)
    if custom_pattern_file:
        definitions.update(load_pattern_path(custom_pattern_file))
    if custom_patterns:
        definitions.update(parse_pattern_text(custom_patterns))
    return Grammar(definitions, pattern)
