"""Default prologue and epilogue wrapped around every generated lexer module."""

DEFAULT_HEAD = '''\
# Generated by utf8lex from a lexicon file; edit the lexicon, not this module.

import sys

from utf8lex.buffer import Buffer
from utf8lex.cat import parse_cat
from utf8lex.database import Database
from utf8lex.definitions import (
    CategoryDefinition,
    Combinator,
    CompositeDefinition,
    LiteralDefinition,
    RegexDefinition,
    resolve,
)
from utf8lex.errors import ErrorKind, Utf8LexError
from utf8lex.rules import Rule
from utf8lex.runtime import YYEOF, YYERROR, Session
from utf8lex.token import TokenLocation

'''

DEFAULT_TAIL = '''\

YY_SESSION = None
yylloc = TokenLocation()
yytext = ""


def yylex_start(path=None, *, data=None, settings=None):
    """Build the rules and open the input: *data* bytes, the file at *path*, or stdin."""
    global YY_SESSION
    yylex_end()
    yy_rules_init()
    if data is not None:
        buffer = Buffer(data, eof=True)
        filename = "<data>"
    elif path is not None:
        buffer = Buffer.from_path(path)
        filename = str(path)
    else:
        buffer = Buffer.from_stream(sys.stdin.buffer)
        filename = "<stdin>"
    YY_SESSION = Session(
        YY_DATABASE.rules, yy_rule_callback, buffer, settings, filename=filename
    )
    return YY_SESSION


def yyutf8lex(location=None):
    """Return the next token code, YYEOF at the end of the input, or YYERROR."""
    global yytext
    if YY_SESSION is None:
        raise Utf8LexError(ErrorKind.STATE, "yylex_start() has not been called")
    code = YY_SESSION.next(location)
    yytext = YY_SESSION.token.text if YY_SESSION.token is not None else ""
    return code


def yylex():
    return yyutf8lex(yylloc)


def yylex_end():
    global YY_SESSION
    if YY_SESSION is not None:
        YY_SESSION.close()
        YY_SESSION = None
    YY_DATABASE.clear()
'''
