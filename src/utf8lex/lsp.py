"""Minimal LSP server for lexicon files: diagnostics only."""

from __future__ import annotations

from lsprotocol.types import (
    TEXT_DOCUMENT_DID_CHANGE,
    TEXT_DOCUMENT_DID_OPEN,
    Diagnostic,
    DiagnosticSeverity,
    DidChangeTextDocumentParams,
    DidOpenTextDocumentParams,
    Position,
    PublishDiagnosticsParams,
    Range,
    TextDocumentSyncKind,
)
from pygls.lsp.server import LanguageServer

from utf8lex.definitions import CompositeDefinition
from utf8lex.errors import Utf8LexError
from utf8lex.grammar_parser import Lexicon, parse_lexicon

server = LanguageServer("utf8lex-lsp", "0.1.0", text_document_sync_kind=TextDocumentSyncKind.Full)


def _unused_definitions(lexicon: Lexicon) -> list[Diagnostic]:
    used: set[int] = {id(rule.definition) for rule in lexicon.rules}
    for definition in lexicon.definitions:
        if isinstance(definition, CompositeDefinition):
            used.update(id(reference.definition) for reference in definition.references)

    diagnostics: list[Diagnostic] = []
    for definition in lexicon.definitions:
        if id(definition) in used:
            continue
        position = lexicon.position_of(definition)
        if position is None:
            continue
        end = position.char + len(definition.name)
        diagnostics.append(
            Diagnostic(
                range=Range(
                    start=Position(line=position.line, character=position.char),
                    end=Position(line=position.line, character=end),
                ),
                message=f"definition {definition.name!r} is never used",
                severity=DiagnosticSeverity.Warning,
                source="utf8lex",
            )
        )
    return diagnostics


def _validate(ls: LanguageServer, uri: str) -> None:
    """Compile the lexicon and publish diagnostics."""
    doc = ls.workspace.get_text_document(uri)
    source = doc.source
    diagnostics: list[Diagnostic] = []

    try:
        lexicon = parse_lexicon(source)
    except Utf8LexError as exc:
        line = exc.position.line if exc.position is not None else 0
        col = exc.position.char if exc.position is not None else 0
        diagnostics.append(
            Diagnostic(
                range=Range(
                    start=Position(line=line, character=col),
                    end=Position(line=line, character=col + 1),
                ),
                message=exc.message,
                severity=DiagnosticSeverity.Error,
                source="utf8lex",
            )
        )
    else:
        diagnostics.extend(_unused_definitions(lexicon))

    ls.text_document_publish_diagnostics(
        PublishDiagnosticsParams(uri=uri, diagnostics=diagnostics)
    )


@server.feature(TEXT_DOCUMENT_DID_OPEN)
def did_open(ls: LanguageServer, params: DidOpenTextDocumentParams) -> None:
    _validate(ls, params.text_document.uri)


@server.feature(TEXT_DOCUMENT_DID_CHANGE)
def did_change(ls: LanguageServer, params: DidChangeTextDocumentParams) -> None:
    _validate(ls, params.text_document.uri)


def main() -> None:
    server.start_io()
