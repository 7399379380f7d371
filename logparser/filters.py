"""Key filters: route capture names to tags or typed fields by glob.

Each capture name is checked against the configured filters in PRIORITY
order and lands in the first category whose filter matches. Names no filter
matches become string fields.
"""

import fnmatch
import re
from enum import Enum

from logparser.errors import CompileError
from logparser.globpath import validate_glob


class Category(Enum):
    TAG = "tag"
    INT_FIELD = "int"
    FLOAT_FIELD = "float"
    STRING_FIELD = "string"


PRIORITY = (Category.TAG, Category.INT_FIELD, Category.FLOAT_FIELD, Category.STRING_FIELD)

DEFAULT_CATEGORY = Category.STRING_FIELD


class Filter:
    """A compiled list of key globs; matches if any glob matches the whole key."""

    def __init__(self, globs: list[str]):
        for g in globs:
            try:
                validate_glob(g)
            except CompileError as e:
                raise CompileError(f"invalid key filter: {e}") from e
        self.globs = tuple(globs)
        self._regex = re.compile("|".join(f"(?:{fnmatch.translate(g)})" for g in globs))

    def match(self, key: str) -> bool:
        return self._regex.match(key) is not None

    def __repr__(self):
        return f"Filter({list(self.globs)!r})"


def compile_filter(globs) -> Filter | None:
    """Compile *globs* into a Filter, or return None for an empty list."""
    if not globs:
        return None
    return Filter(list(globs))


class FieldClassifier:
    def __init__(self, rules: list[tuple[Category, Filter]]):
        order = [category for category, _ in rules]
        if order != sorted(order, key=PRIORITY.index):
            raise ValueError(f"classifier rules out of priority order: {order}")
        self._rules = tuple(rules)

    @classmethod
    def compile(cls, tag_keys=None, string_fields=None, int_fields=None,
                float_fields=None) -> "FieldClassifier":
        slots = {
            Category.TAG: tag_keys,
            Category.INT_FIELD: int_fields,
            Category.FLOAT_FIELD: float_fields,
            Category.STRING_FIELD: string_fields,
        }
        rules = []
        for category in PRIORITY:
            matcher = compile_filter(slots[category])
            if matcher is not None:
                rules.append((category, matcher))
        return cls(rules)

    @property
    def rules(self) -> tuple[tuple[Category, Filter], ...]:
        return self._rules

    def classify(self, key: str) -> Category:
        for category, matcher in self._rules:
            if matcher.match(key):
                return category
        return DEFAULT_CATEGORY
