"""Definition variants: category, literal, regex and composite."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import TYPE_CHECKING

import regex

from utf8lex.cat import CAT_MAX, NONE, format_cat
from utf8lex.errors import ErrorKind, Utf8LexError
from utf8lex.location import Location, extend_locations, new_locations
from utf8lex.read import read_all

if TYPE_CHECKING:
    from utf8lex.database import Database

REFERENCES_MAX = 256
CHILDREN_DEPTH_MAX = 256
UNBOUNDED = -1


class Combinator(Enum):
    SEQUENCE = auto()
    ALTERNATION = auto()


# ---------------------------------------------------------------------------
# Category
# ---------------------------------------------------------------------------


@dataclass(eq=False, slots=True)
class CategoryDefinition:
    """Between ``min`` and ``max`` consecutive graphemes whose category intersects ``cat``."""

    name: str
    cat: int
    min: int = 1
    max: int = 1
    id: int = 0

    def __post_init__(self) -> None:
        if self.min < 1:
            raise Utf8LexError(ErrorKind.BAD_MIN, f"{self.name}: min {self.min} is below 1")
        if self.max != UNBOUNDED and self.max < self.min:
            raise Utf8LexError(
                ErrorKind.BAD_MAX, f"{self.name}: max {self.max} is below min {self.min}"
            )
        if self.cat <= NONE or self.cat >= CAT_MAX:
            raise Utf8LexError(ErrorKind.CAT, f"{self.name}: bad category 0x{self.cat:x}")

    def clear(self) -> None:
        self.id = 0


# ---------------------------------------------------------------------------
# Literal
# ---------------------------------------------------------------------------


@dataclass(eq=False, slots=True)
class LiteralDefinition:
    """An exact string, with its per-unit lengths worked out up front."""

    name: str
    text: str
    id: int = 0
    data: bytes = field(init=False, repr=False)
    loc: list[Location] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        if not self.text:
            raise Utf8LexError(ErrorKind.EMPTY_DEFINITION, f"{self.name}: empty literal")
        self.data = self.text.encode("utf-8")
        self.loc = measure(self.data)

    def clear(self) -> None:
        self.id = 0


def measure(data: bytes) -> list[Location]:
    """Per-unit lengths, resets and hashes of a complete run of bytes."""
    loc = new_locations()
    for grapheme in read_all(data):
        extend_locations(loc, grapheme.loc)
    return loc


# ---------------------------------------------------------------------------
# Regex
# ---------------------------------------------------------------------------


def translate_pattern(pattern: str) -> str:
    """Rewrite PCRE's ``\\h`` (horizontal space), which ``regex`` lacks."""
    out: list[str] = []
    in_class = False
    i = 0
    while i < len(pattern):
        ch = pattern[i]
        if ch == "\\" and i + 1 < len(pattern):
            nxt = pattern[i + 1]
            if nxt == "h":
                out.append(r"\t\p{Zs}" if in_class else r"[\t\p{Zs}]")
            else:
                out.append(pattern[i : i + 2])
            i += 2
            continue
        if ch == "[" and not in_class:
            in_class = True
            out.append(ch)
            # A leading ] (or ^]) is a literal member, not the end of the class.
            if pattern.startswith("^]", i + 1):
                out.append("^]")
                i += 3
                continue
            if pattern.startswith("]", i + 1):
                out.append("]")
                i += 2
                continue
        elif ch == "]" and in_class:
            in_class = False
            out.append(ch)
        else:
            out.append(ch)
        i += 1
    return "".join(out)


@dataclass(eq=False, slots=True)
class RegexDefinition:
    """A pattern matched anchored at the current position."""

    name: str
    pattern: str
    id: int = 0
    compiled: regex.Pattern = field(init=False, repr=False)

    def __post_init__(self) -> None:
        if not self.pattern:
            raise Utf8LexError(ErrorKind.EMPTY_DEFINITION, f"{self.name}: empty regex")
        try:
            self.compiled = regex.compile(translate_pattern(self.pattern))
        except regex.error as exc:
            raise Utf8LexError(
                ErrorKind.BAD_REGEX, f"{self.name}: bad regex {self.pattern!r}: {exc}"
            ) from exc

    def clear(self) -> None:
        self.id = 0


# ---------------------------------------------------------------------------
# Composite
# ---------------------------------------------------------------------------


@dataclass(eq=False, slots=True)
class Reference:
    """A use of a named definition inside a composite."""

    name: str
    min: int = 1
    max: int = 1
    parent: CompositeDefinition | None = None
    definition: Definition | None = None

    def __post_init__(self) -> None:
        if self.min < 0:
            raise Utf8LexError(ErrorKind.BAD_MIN, f"{self.name}: min {self.min} is below 0")
        if self.max != UNBOUNDED and (self.max < self.min or self.max == 0):
            raise Utf8LexError(
                ErrorKind.BAD_MAX, f"{self.name}: bad max {self.max} for min {self.min}"
            )

    def format(self) -> str:
        match (self.min, self.max):
            case (1, 1):
                return self.name
            case (0, -1):
                return f"{self.name}*"
            case (1, -1):
                return f"{self.name}+"
            case (lo, hi):
                return f"{self.name}{{{lo},{'' if hi == UNBOUNDED else hi}}}"


@dataclass(eq=False, slots=True)
class CompositeDefinition:
    """A sequence or alternation of references to other definitions."""

    name: str
    combinator: Combinator = Combinator.SEQUENCE
    references: list[Reference] = field(default_factory=list)
    children: list[Definition] = field(default_factory=list)
    parent: CompositeDefinition | None = None
    id: int = 0

    def add_reference(self, name: str, min: int = 1, max: int = 1) -> Reference:
        if len(self.references) >= REFERENCES_MAX:
            raise Utf8LexError(
                ErrorKind.MAX_LENGTH,
                f"{self.name}: more than {REFERENCES_MAX} references",
            )
        reference = Reference(name, min, max, parent=self)
        self.references.append(reference)
        return reference

    def add_child(self, child: Definition) -> Definition:
        """Nest *child* inside this composite; references search children first."""
        if self.depth + 1 > CHILDREN_DEPTH_MAX:
            raise Utf8LexError(
                ErrorKind.MAX_LENGTH,
                f"{self.name}: children nested more than {CHILDREN_DEPTH_MAX} deep",
            )
        if isinstance(child, CompositeDefinition):
            child.parent = self
        self.children.append(child)
        return child

    @property
    def depth(self) -> int:
        depth = 0
        ancestor = self.parent
        while ancestor is not None:
            depth += 1
            ancestor = ancestor.parent
        return depth

    @property
    def is_resolved(self) -> bool:
        return all(reference.definition is not None for reference in self.references)

    def clear(self) -> None:
        for reference in self.references:
            reference.definition = None
        for child in self.children:
            child.clear()
        self.id = 0


Definition = CategoryDefinition | LiteralDefinition | RegexDefinition | CompositeDefinition


# ---------------------------------------------------------------------------
# Resolution
# ---------------------------------------------------------------------------


def resolve(composite: CompositeDefinition, db: Database) -> None:
    """Point every reference in *composite* (and composites it reaches) at its target.

    Each name is looked up in the children of the composite and its
    ancestors, nearest first, then in *db*.  Resolving twice is a no-op.
    """
    _resolve(composite, db, set())


def _resolve(composite: CompositeDefinition, db: Database, in_progress: set[int]) -> None:
    if not composite.references:
        raise Utf8LexError(
            ErrorKind.EMPTY_DEFINITION, f"{composite.name}: composite without references"
        )
    in_progress.add(id(composite))
    try:
        for reference in composite.references:
            if reference.definition is None:
                reference.definition = _find(composite, reference.name, db)
            target = reference.definition
            if isinstance(target, CompositeDefinition):
                if id(target) in in_progress:
                    raise Utf8LexError(
                        ErrorKind.INFINITE_LOOP,
                        f"{composite.name}: {reference.name} refers back to itself",
                    )
                _resolve(target, db, in_progress)
    finally:
        in_progress.discard(id(composite))


def _find(composite: CompositeDefinition, name: str, db: Database) -> Definition:
    scope: CompositeDefinition | None = composite
    while scope is not None:
        for child in reversed(scope.children):
            if child.name == name:
                return child
        scope = scope.parent
    try:
        return db.find(name)
    except Utf8LexError as exc:
        if exc.kind != ErrorKind.NOT_FOUND:
            raise
        raise Utf8LexError(
            ErrorKind.UNRESOLVED_DEFINITION,
            f"{composite.name}: unresolved reference {name!r}",
        ) from exc


# ---------------------------------------------------------------------------
# Formatting
# ---------------------------------------------------------------------------


def format_definition(definition: Definition) -> str:
    """One-line description, as shown in traces and database dumps."""
    match definition:
        case CategoryDefinition(name=name, cat=cat, min=lo, max=hi):
            bound = "unbounded" if hi == UNBOUNDED else str(hi)
            return f"{name} [cat] {format_cat(cat)} {{{lo},{bound}}}"
        case LiteralDefinition(name=name, text=text):
            return f"{name} [literal] {text!r}"
        case RegexDefinition(name=name, pattern=pattern):
            return f"{name} [regex] /{pattern}/"
        case CompositeDefinition(name=name, combinator=combinator, references=references):
            joiner = " | " if combinator is Combinator.ALTERNATION else " "
            body = joiner.join(reference.format() for reference in references)
            return f"{name} [{combinator.name.lower()}] {body}"
        case _:
            raise Utf8LexError(
                ErrorKind.DEFINITION_TYPE, f"not a definition: {type(definition).__name__}"
            )
