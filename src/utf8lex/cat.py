"""Unicode general categories as a bitmask, plus the extended line separators."""

from __future__ import annotations

import unicodedata

from utf8lex.errors import ErrorKind, Utf8LexError

NONE = 0x00000000
OTHER_NA = 0x00000001  # Cn
LETTER_UPPER = 0x00000002  # Lu
LETTER_LOWER = 0x00000004  # Ll
LETTER_TITLE = 0x00000008  # Lt
LETTER_MODIFIER = 0x00000010  # Lm
LETTER_OTHER = 0x00000020  # Lo
MARK_NON_SPACING = 0x00000040  # Mn
MARK_SPACING_COMBINING = 0x00000080  # Mc
MARK_ENCLOSING = 0x00000100  # Me
NUM_DECIMAL = 0x00000200  # Nd
NUM_LETTER = 0x00000400  # Nl
NUM_OTHER = 0x00000800  # No
PUNCT_CONNECTOR = 0x00001000  # Pc
PUNCT_DASH = 0x00002000  # Pd
PUNCT_OPEN = 0x00004000  # Ps
PUNCT_CLOSE = 0x00008000  # Pe
PUNCT_QUOTE_OPEN = 0x00010000  # Pi
PUNCT_QUOTE_CLOSE = 0x00020000  # Pf
PUNCT_OTHER = 0x00040000  # Po
SYM_MATH = 0x00080000  # Sm
SYM_CURRENCY = 0x00100000  # Sc
SYM_MODIFIER = 0x00200000  # Sk
SYM_OTHER = 0x00400000  # So
SEP_SPACE = 0x00800000  # Zs
SEP_LINE = 0x01000000  # Zl
SEP_PARAGRAPH = 0x02000000  # Zp
OTHER_CONTROL = 0x04000000  # Cc
OTHER_FORMAT = 0x08000000  # Cf
OTHER_SURROGATE = 0x10000000  # Cs
OTHER_PRIVATE = 0x20000000  # Co

# LF, VT, FF, CR, NEL, LINE SEPARATOR, PARAGRAPH SEPARATOR
EXT_SEP_LINE = 0x40000000

CAT_MAX = 0x80000000

EXT_SEP_LINE_CODEPOINTS = frozenset({0x000A, 0x000B, 0x000C, 0x000D, 0x0085, 0x2028, 0x2029})

GROUP_ALL = CAT_MAX - 1

GROUP_OTHER = OTHER_NA | OTHER_CONTROL | OTHER_FORMAT | OTHER_SURROGATE | OTHER_PRIVATE
GROUP_LETTER = LETTER_UPPER | LETTER_LOWER | LETTER_TITLE | LETTER_MODIFIER | LETTER_OTHER
GROUP_MARK = MARK_NON_SPACING | MARK_SPACING_COMBINING | MARK_ENCLOSING
GROUP_NUM = NUM_DECIMAL | NUM_LETTER | NUM_OTHER
GROUP_PUNCT = (
    PUNCT_CONNECTOR
    | PUNCT_DASH
    | PUNCT_OPEN
    | PUNCT_CLOSE
    | PUNCT_QUOTE_OPEN
    | PUNCT_QUOTE_CLOSE
    | PUNCT_OTHER
)
GROUP_SYM = SYM_MATH | SYM_CURRENCY | SYM_MODIFIER | SYM_OTHER
GROUP_HSPACE = SEP_SPACE
GROUP_VSPACE = SEP_LINE | SEP_PARAGRAPH | EXT_SEP_LINE
GROUP_WHITESPACE = GROUP_HSPACE | GROUP_VSPACE

GROUP_NOT_OTHER = GROUP_ALL & ~GROUP_OTHER
GROUP_NOT_LETTER = GROUP_ALL & ~GROUP_LETTER
GROUP_NOT_MARK = GROUP_ALL & ~GROUP_MARK
GROUP_NOT_NUM = GROUP_ALL & ~GROUP_NUM
GROUP_NOT_PUNCT = GROUP_ALL & ~GROUP_PUNCT
GROUP_NOT_SYM = GROUP_ALL & ~GROUP_SYM
GROUP_NOT_HSPACE = GROUP_ALL & ~GROUP_HSPACE
# LF, CR and friends are also Cc, so matching by intersection needs Cc removed too.
GROUP_NOT_VSPACE = GROUP_ALL & ~GROUP_VSPACE & ~OTHER_CONTROL
GROUP_NOT_WHITESPACE = GROUP_ALL & ~GROUP_WHITESPACE & ~OTHER_CONTROL

_UNICODE_CATEGORIES: dict[str, int] = {
    "Cn": OTHER_NA,
    "Lu": LETTER_UPPER,
    "Ll": LETTER_LOWER,
    "Lt": LETTER_TITLE,
    "Lm": LETTER_MODIFIER,
    "Lo": LETTER_OTHER,
    "Mn": MARK_NON_SPACING,
    "Mc": MARK_SPACING_COMBINING,
    "Me": MARK_ENCLOSING,
    "Nd": NUM_DECIMAL,
    "Nl": NUM_LETTER,
    "No": NUM_OTHER,
    "Pc": PUNCT_CONNECTOR,
    "Pd": PUNCT_DASH,
    "Ps": PUNCT_OPEN,
    "Pe": PUNCT_CLOSE,
    "Pi": PUNCT_QUOTE_OPEN,
    "Pf": PUNCT_QUOTE_CLOSE,
    "Po": PUNCT_OTHER,
    "Sm": SYM_MATH,
    "Sc": SYM_CURRENCY,
    "Sk": SYM_MODIFIER,
    "So": SYM_OTHER,
    "Zs": SEP_SPACE,
    "Zl": SEP_LINE,
    "Zp": SEP_PARAGRAPH,
    "Cc": OTHER_CONTROL,
    "Cf": OTHER_FORMAT,
    "Cs": OTHER_SURROGATE,
    "Co": OTHER_PRIVATE,
}

# Formatting order: groups first, so that a mask covering a whole group
# is rendered with the group's name rather than its constituents.
_GROUP_NAMES: tuple[tuple[str, int], ...] = (
    ("OTHER", GROUP_OTHER),
    ("LETTER", GROUP_LETTER),
    ("MARK", GROUP_MARK),
    ("NUM", GROUP_NUM),
    ("PUNCT", GROUP_PUNCT),
    ("SYM", GROUP_SYM),
    ("WHITESPACE", GROUP_WHITESPACE),
    ("HSPACE", GROUP_HSPACE),
    ("VSPACE", GROUP_VSPACE),
)

_ATOM_NAMES: tuple[tuple[str, int], ...] = (
    ("NA", OTHER_NA),
    ("UPPER", LETTER_UPPER),
    ("LOWER", LETTER_LOWER),
    ("TITLE", LETTER_TITLE),
    ("MODIFIER", LETTER_MODIFIER),
    ("LETTER_OTHER", LETTER_OTHER),
    ("MARK_NS", MARK_NON_SPACING),
    ("MARK_SC", MARK_SPACING_COMBINING),
    ("MARK_E", MARK_ENCLOSING),
    ("DECIMAL", NUM_DECIMAL),
    ("NUM_LETTER", NUM_LETTER),
    ("NUM_OTHER", NUM_OTHER),
    ("CONNECTOR", PUNCT_CONNECTOR),
    ("DASH", PUNCT_DASH),
    ("PUNCT_OPEN", PUNCT_OPEN),
    ("PUNCT_CLOSE", PUNCT_CLOSE),
    ("QUOTE_OPEN", PUNCT_QUOTE_OPEN),
    ("QUOTE_CLOSE", PUNCT_QUOTE_CLOSE),
    ("PUNCT_OTHER", PUNCT_OTHER),
    ("MATH", SYM_MATH),
    ("CURRENCY", SYM_CURRENCY),
    ("SYM_MODIFIER", SYM_MODIFIER),
    ("SYM_OTHER", SYM_OTHER),
    ("SPACE", SEP_SPACE),
    ("LINE", SEP_LINE),
    ("PARAGRAPH", SEP_PARAGRAPH),
    ("CONTROL", OTHER_CONTROL),
    ("FORMAT", OTHER_FORMAT),
    ("SURROGATE", OTHER_SURROGATE),
    ("PRIVATE", OTHER_PRIVATE),
    ("NEWLINE", EXT_SEP_LINE),
)

# Every name parse_cat() accepts, in formatting order.
CATEGORY_NAMES: dict[str, int] = dict(_GROUP_NAMES + _ATOM_NAMES)

# Longest first, so that NUM_LETTER is tried before NUM.
_PARSE_ORDER = sorted(CATEGORY_NAMES, key=len, reverse=True)


def classify(codepoint: int) -> int:
    """Return the category bit for *codepoint*, plus EXT_SEP_LINE for line separators."""
    cat = _UNICODE_CATEGORIES.get(unicodedata.category(chr(codepoint)), OTHER_NA)
    if codepoint in EXT_SEP_LINE_CODEPOINTS:
        cat |= EXT_SEP_LINE
    return cat


def format_cat(cat: int) -> str:
    """Render *cat* as ``NAME | NAME ...``, preferring group names."""
    if cat < NONE or cat >= CAT_MAX:
        raise Utf8LexError(ErrorKind.CAT, f"bad category 0x{cat:x}")
    if cat == NONE:
        return "NONE"

    names: list[str] = []
    remaining = cat
    for name, mask in _GROUP_NAMES + _ATOM_NAMES:
        if remaining & mask == mask:
            names.append(name)
            remaining &= ~mask
    return " | ".join(names)


def parse_cat(text: str) -> int:
    """Parse ``NAME | NAME ...`` back into a category mask."""
    cat = NONE
    pos = 0
    seen = False
    while pos < len(text):
        ch = text[pos]
        if ch in " \t|":
            pos += 1
            continue
        for name in _PARSE_ORDER:
            end = pos + len(name)
            if text.startswith(name, pos) and (end == len(text) or text[end] in " \t|"):
                cat |= CATEGORY_NAMES[name]
                pos = end
                seen = True
                break
        else:
            if text.startswith("NONE", pos):
                pos += 4
                seen = True
                continue
            raise Utf8LexError(ErrorKind.CAT, f"bad category {text[pos:]!r}")
    if not seen:
        raise Utf8LexError(ErrorKind.CAT, f"bad category {text!r}")
    return cat
