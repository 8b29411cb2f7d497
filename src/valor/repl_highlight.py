"""prompt_toolkit lexer for live Valor syntax highlighting in the REPL."""

from __future__ import annotations

from typing import Callable, Dict, List

from prompt_toolkit.document import Document
from prompt_toolkit.formatted_text import StyleAndTextTuples
from prompt_toolkit.lexers import Lexer

from .lexer_rd import Lexer as VlrLexer
from .token_types import FIELD_KEYWORDS, KEYWORDS, TT, Tok

# Map highlight groups → prompt_toolkit style strings.
GROUP_STYLE = {
    "keyword": "bold ansicyan",
    "field": "ansiblue",
    "target": "bold ansimagenta",
    "constant": "ansicyan",
    "number": "ansimagenta",
    "string": "ansigreen",
    "function": "bold ansiyellow",
    "operator": "",
    "comment": "italic ansigray",
}

_TARGETS = {TT.SELF, TT.TARGET, TT.CASTER}
_CONSTANTS = {TT.TRUE, TT.FALSE, TT.NIL}
_NUMBERS = {TT.NUMBER, TT.PERCENTAGE, TT.DURATION}
_KEYWORD_TYPES = frozenset(KEYWORDS.values())


def _group(tokens: List[Tok], i: int) -> str:
    tok = tokens[i]
    t = tok.type

    if t in _NUMBERS:
        return "number"
    if t == TT.STRING:
        return "string"
    if t in _CONSTANTS:
        return "constant"
    if t in _TARGETS:
        return "target"
    if t in FIELD_KEYWORDS:
        return "field"
    if t in _KEYWORD_TYPES:
        return "keyword"
    if t == TT.IDENT and i + 1 < len(tokens) and tokens[i + 1].type == TT.LPAR:
        return "function"

    return ""


def _gap(text: str) -> StyleAndTextTuples:
    """Unstyled text between tokens; comments are the only thing that lands here."""
    for marker in ("//", "/*"):
        idx = text.find(marker)
        if idx >= 0:
            spans: StyleAndTextTuples = []
            if idx:
                spans.append(("", text[:idx]))
            spans.append((GROUP_STYLE["comment"], text[idx:]))
            return spans

    return [("", text)]


def highlight_line(text: str, tokens: List[Tok]) -> StyleAndTextTuples:
    """Style one source line given the tokens the lexer produced for it."""
    result: StyleAndTextTuples = []
    pos = 0

    for i, tok in enumerate(tokens):
        if not tok.lexeme:
            continue

        idx = text.find(tok.lexeme, pos)
        if idx < 0:
            continue

        if idx > pos:
            result.extend(_gap(text[pos:idx]))

        result.append((GROUP_STYLE.get(_group(tokens, i), ""), tok.lexeme))
        pos = idx + len(tok.lexeme)

    if pos < len(text):
        result.extend(_gap(text[pos:]))

    return result if result else [("", text)]


class ValorLexer(Lexer):
    """prompt_toolkit Lexer that highlights Valor source using the RD lexer."""

    def lex_document(self, document: Document) -> Callable[[int], StyleAndTextTuples]:
        lines = document.lines
        by_line: Dict[int, List[Tok]] = {}

        # Lex the whole buffer at once: block comment state carries across lines.
        for tok in VlrLexer(lines).tokenize():
            if tok.type != TT.EOF:
                by_line.setdefault(tok.line - 1, []).append(tok)

        cache: dict[int, StyleAndTextTuples] = {}

        def get_line(lineno: int) -> StyleAndTextTuples:
            if lineno not in cache:
                if lineno < len(lines):
                    cache[lineno] = highlight_line(lines[lineno], by_line.get(lineno, []))
                else:
                    cache[lineno] = [("", "")]

            return cache[lineno]

        return get_line
