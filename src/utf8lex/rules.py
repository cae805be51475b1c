"""Rules: a definition plus the action code run when it matches."""

from __future__ import annotations

from dataclasses import dataclass

from utf8lex.definitions import Definition


@dataclass(eq=False, slots=True)
class Rule:
    name: str
    definition: Definition
    code: str = ""
    id: int = 0

    def clear(self) -> None:
        self.id = 0
