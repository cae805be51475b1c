"""The definition and rule database: creation order, dense ids, name lookup."""

from __future__ import annotations

from utf8lex.cat import CATEGORY_NAMES
from utf8lex.definitions import CategoryDefinition, Definition
from utf8lex.errors import ErrorKind, Utf8LexError
from utf8lex.rules import Rule


class Database:
    """Definitions and rules, each numbered 1..N in the order they were added.

    Name lookups return the newest definition with a given name, so a
    later definition shadows an earlier one (including the predefined
    categories).
    """

    def __init__(self) -> None:
        self.definitions: list[Definition] = []
        self.rules: list[Rule] = []

    @classmethod
    def with_categories(cls) -> Database:
        db = cls()
        db.add_categories()
        return db

    def add_categories(self) -> None:
        """Add one single-grapheme definition per category name, e.g. LETTER or NEWLINE."""
        for name, cat in CATEGORY_NAMES.items():
            self.add_definition(CategoryDefinition(name, cat, 1, 1))

    def add_definition(self, definition: Definition) -> Definition:
        definition.id = len(self.definitions) + 1
        self.definitions.append(definition)
        return definition

    def add_rule(self, rule: Rule) -> Rule:
        rule.id = len(self.rules) + 1
        self.rules.append(rule)
        return rule

    def find(self, name: str) -> Definition:
        for definition in reversed(self.definitions):
            if definition.name == name:
                return definition
        raise Utf8LexError(ErrorKind.NOT_FOUND, f"no definition named {name!r}")

    def find_rule(self, name: str) -> Rule:
        for rule in reversed(self.rules):
            if rule.name == name:
                return rule
        raise Utf8LexError(ErrorKind.NOT_FOUND, f"no rule named {name!r}")

    def clear(self) -> None:
        for rule in self.rules:
            rule.clear()
        for definition in self.definitions:
            definition.clear()
        self.rules.clear()
        self.definitions.clear()
