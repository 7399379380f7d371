"""File glob expansion.

Standard unix glob rules apply, with ``**`` as a "super asterisk" that also
crosses directory separators:

    /var/log/**.log     every .log file below /var/log, at any depth
    /var/log/*/*.log    .log files one directory below /var/log
    /var/log/app.log    just that file
"""

import glob
import os
import re

from logparser.errors import CompileError

_META_CHARS = ("*", "?", "[")


def has_meta(path: str) -> bool:
    return any(c in path for c in _META_CHARS)


def _class_end(pattern: str, start: int) -> int:
    """Index of the ``]`` closing the character class opened at *start*, or -1."""
    i = start + 1
    if i < len(pattern) and pattern[i] == "!":
        i += 1
    if i < len(pattern) and pattern[i] == "]":
        i += 1
    return pattern.find("]", i)


def validate_glob(pattern: str) -> None:
    """Raise CompileError if *pattern* is empty or has an unterminated ``[``."""
    if not pattern:
        raise CompileError("empty glob")
    i = 0
    while i < len(pattern):
        if pattern[i] == "[":
            end = _class_end(pattern, i)
            if end == -1:
                raise CompileError(f"invalid glob {pattern!r}: unterminated character class")
            i = end
        i += 1


def _translate(pattern: str) -> re.Pattern:
    sep = re.escape(os.sep)
    out = []
    i, n = 0, len(pattern)
    while i < n:
        c = pattern[i]
        if pattern.startswith("**", i):
            i += 2
            if i < n and pattern[i] == os.sep:
                # "**/" may also match zero directories
                out.append(f"(?:.*{sep})?")
                i += 1
            else:
                out.append(".*")
            continue
        if c == "*":
            out.append(f"[^{sep}]*")
        elif c == "?":
            out.append(f"[^{sep}]")
        elif c == "[":
            end = _class_end(pattern, i)
            body = pattern[i + 1:end]
            if body.startswith("!"):
                body = "^" + body[1:]
            out.append("[" + body.replace("\\", "\\\\") + "]")
            i = end + 1
            continue
        else:
            out.append(re.escape(c))
        i += 1
    return re.compile("".join(out) + r"\Z", re.DOTALL)


class GlobPath:
    def __init__(self, pattern: str):
        validate_glob(pattern)
        self.pattern = pattern
        self._recursive = "**" in pattern
        self._regex = _translate(pattern) if self._recursive else None

    def _root(self) -> str:
        first_meta = min(self.pattern.index(c) for c in _META_CHARS if c in self.pattern)
        return os.path.dirname(self.pattern[:first_meta]) or os.curdir

    def _names_hidden(self, root: str) -> bool:
        """True if the pattern below *root* spells out a dot-prefixed component."""
        rest = self.pattern[len(root):] if self.pattern.startswith(root) else self.pattern
        return any(
            part.startswith(".") and part not in (os.curdir, os.pardir)
            for part in rest.split(os.sep)
        )

    def match(self) -> list[str]:
        """Return every existing file matching the pattern, sorted.

        Wildcards skip hidden entries the way ``glob.glob`` does; a pattern
        that names a dot-prefixed component matches them.
        """
        if not has_meta(self.pattern):
            return [self.pattern] if os.path.exists(self.pattern) else []
        if not self._recursive:
            return sorted(p for p in glob.glob(self.pattern) if os.path.isfile(p))

        root = self._root()
        hidden = self._names_hidden(root)
        # os.walk(".") yields "./name" paths the pattern never spelled out
        strip = len(os.curdir + os.sep) if not self.pattern.startswith(root) else 0
        matches = []
        for dirpath, dirnames, filenames in os.walk(root):
            if not hidden:
                dirnames[:] = [d for d in dirnames if not d.startswith(".")]
            for name in filenames:
                if name.startswith(".") and not hidden:
                    continue
                path = os.path.join(dirpath, name)[strip:]
                if self._regex.match(path) and os.path.isfile(path):
                    matches.append(path)
        return sorted(matches)
