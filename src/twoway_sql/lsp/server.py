"""2-way SQL language server: diagnostics, completion and hover via pygls."""

from __future__ import annotations

from lsprotocol import types
from pygls.lsp.server import LanguageServer

from twoway_sql.errors import ParseError
from twoway_sql.evaluator import BUILTIN_FUNCTIONS
from twoway_sql.template import TemplateEngine

# ---------------------------------------------------------------------------
# Static data
# ---------------------------------------------------------------------------

DIRECTIVES: dict[str, str] = {
    "IF": "Start a conditional block: /*IF condition*/ ... /*END*/",
    "ELIF": "Alternative branch of the enclosing IF, tried in order",
    "ELSEIF": "Same as ELIF",
    "ELSE": "Branch taken when no IF/ELIF condition of the chain holds",
    "END": "Close the innermost IF or BEGIN",
    "BEGIN": "Optional block, dropped unless a parameter inside it is present",
}

FUNCTIONS: dict[str, str] = {
    "is_empty": "True when the value is null or an empty string/collection",
    "is_not_empty": "Negation of is_empty",
    "is_blank": "True when the value is null or a whitespace-only string",
    "is_not_blank": "Negation of is_blank",
    "length": "Length of a string or collection (0 for null)",
    "contains": "True when the value contains the given part",
    "starts_with": "String prefix test",
    "ends_with": "String suffix test",
    "trim": "String without surrounding whitespace",
    "upper": "Upper-cased string",
    "lower": "Lower-cased string",
}

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def lexpos_to_position(source: str, lexpos: int) -> types.Position:
    """Convert a character offset into an LSP ``Position(line, character)``."""
    line = source.count("\n", 0, lexpos)
    last_nl = source.rfind("\n", 0, lexpos)
    character = lexpos if last_nl == -1 else lexpos - last_nl - 1
    return types.Position(line=line, character=character)


def diagnose(engine: TemplateEngine, source: str) -> list[types.Diagnostic]:
    """Parse *source* and return a diagnostic for the first error, if any."""
    try:
        engine.parse(source)
    except ParseError as exc:
        if exc.pos is not None:
            start = lexpos_to_position(source, exc.pos)
        else:
            lines = source.split("\n")
            start = types.Position(line=max(len(lines) - 1, 0), character=0)
        end = types.Position(line=start.line, character=start.character + 2)
        return [
            types.Diagnostic(
                range=types.Range(start=start, end=end),
                severity=types.DiagnosticSeverity.Error,
                source="twoway-sql",
                message=exc.message,
            )
        ]
    return []


def _in_directive(prefix: str) -> bool:
    """True when the cursor sits inside an unclosed ``/*`` comment."""
    opened = prefix.rfind("/*")
    return opened != -1 and prefix.rfind("*/") < opened


def _word_at_position(line_text: str, character: int) -> str:
    """Return the identifier-like word (dots included) surrounding *character*."""
    if character < 0 or character >= len(line_text):
        return ""

    def is_word(ch: str) -> bool:
        return ch.isalnum() or ch in "_."

    if not is_word(line_text[character]):
        return ""
    left = character
    while left > 0 and is_word(line_text[left - 1]):
        left -= 1
    right = character
    while right < len(line_text) and is_word(line_text[right]):
        right += 1
    return line_text[left:right].strip(".")


def completion_items(prefix: str) -> list[types.CompletionItem]:
    """Directive keywords right after ``/*``, functions elsewhere inside a directive."""
    if not _in_directive(prefix):
        return []
    items: list[types.CompletionItem] = []
    if prefix.endswith("/*"):
        for name, desc in DIRECTIVES.items():
            items.append(types.CompletionItem(label=name, kind=types.CompletionItemKind.Keyword, detail=desc))
        return items
    for name in sorted(BUILTIN_FUNCTIONS):
        items.append(
            types.CompletionItem(
                label=name,
                kind=types.CompletionItemKind.Function,
                detail=FUNCTIONS.get(name.split(".")[-1], "String function"),
            )
        )
    return items


def hover_text(word: str) -> str | None:
    if word in DIRECTIVES:
        return f"**{word}**: {DIRECTIVES[word]}"
    if word in FUNCTIONS:
        return f"**{word}()**: {FUNCTIONS[word]}"
    if word in BUILTIN_FUNCTIONS:
        return f"**{word}()**: string function"
    return None


# ---------------------------------------------------------------------------
# Server
# ---------------------------------------------------------------------------

server = LanguageServer("twoway-sql-language-server", "0.1.0")
_engine = TemplateEngine()


@server.feature(types.TEXT_DOCUMENT_DID_OPEN)
def did_open(params: types.DidOpenTextDocumentParams) -> None:
    _validate_document(params.text_document.uri)


@server.feature(types.TEXT_DOCUMENT_DID_CHANGE)
def did_change(params: types.DidChangeTextDocumentParams) -> None:
    _validate_document(params.text_document.uri)


def _validate_document(uri: str) -> None:
    doc = server.workspace.get_text_document(uri)
    server.text_document_publish_diagnostics(
        types.PublishDiagnosticsParams(uri=uri, diagnostics=diagnose(_engine, doc.source))
    )


@server.feature(
    types.TEXT_DOCUMENT_COMPLETION,
    types.CompletionOptions(trigger_characters=["*", " ", "."]),
)
def completions(params: types.CompletionParams) -> types.CompletionList:
    doc = server.workspace.get_text_document(params.text_document.uri)
    line_text = doc.lines[params.position.line] if params.position.line < len(doc.lines) else ""
    prefix = line_text[: params.position.character]
    return types.CompletionList(is_incomplete=False, items=completion_items(prefix))


@server.feature(types.TEXT_DOCUMENT_HOVER)
def hover(params: types.HoverParams) -> types.Hover | None:
    doc = server.workspace.get_text_document(params.text_document.uri)
    if params.position.line >= len(doc.lines):
        return None
    word = _word_at_position(doc.lines[params.position.line], params.position.character)
    content = hover_text(word) if word else None
    if content is None:
        return None
    return types.Hover(
        contents=types.MarkupContent(
            kind=types.MarkupKind.Markdown,
            value=content,
        )
    )


def main() -> None:
    server.start_io()


if __name__ == "__main__":
    main()
