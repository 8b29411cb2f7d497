"""
Lexer for Valor - Recursive Descent Parser

Tokenizes Valor source code into a stream of tokens.

Features:
- Line-at-a-time scanning with a 1-based line counter
- Block comments that may span lines
- Number literals with percentage (`50%`) and duration (`3s`) suffixes
- Error tolerant: bad input is reported and skipped, never raised
"""

from __future__ import annotations

from typing import Iterable, List, Optional

from .token_types import (
    OPERATORS,
    PUNCTUATION,
    TT,
    Tok,
    classify_lexeme,
    extract_literal,
    is_digit,
    is_ident_char,
    is_ident_start,
)

# ============================================================================
# Lexer Implementation
# ============================================================================

class LexError(Exception):
    """Lexical diagnostic with the line it was found on"""

    def __init__(self, message: str, line: int):
        self.message = message
        self.line = line
        super().__init__(message)

    def __str__(self) -> str:
        return f"[line {self.line}] Error: {self.message}"


class Lexer:
    """
    Valor lexer.

    Lines are scanned independently except for block comments, whose open
    state carries over from one line to the next. Problems are collected in
    `errors` and the offending characters are skipped.
    """

    def __init__(self, lines: Iterable[str]):
        self.lines = list(lines)
        self.source = ''
        self.pos = 0
        self.line = 0
        self.tokens: List[Tok] = []
        self.errors: List[LexError] = []

        self.in_block_comment = False
        self.comment_start_line = 0

    # ========================================================================
    # Main Tokenization
    # ========================================================================

    def tokenize(self) -> List[Tok]:
        """Tokenize all lines, return token list ending with EOF"""
        for number, text in enumerate(self.lines, start=1):
            self.line = number
            self.source = text.rstrip('\r\n')
            self.pos = 0

            while self.pos < len(self.source):
                self.scan_token()

        if self.in_block_comment:
            self.error("Unterminated block comment.", self.comment_start_line)

        self.line = max(len(self.lines), 1)
        self.emit(TT.EOF, '')
        return self.tokens

    def scan_token(self):
        """Scan next token on the current line"""
        if self.in_block_comment:
            self.skip_block_comment()
            return

        ch = self.peek()

        if ch in (' ', '\t', '\r', '\f'):
            self.advance()
            return

        if ch == '"':
            self.scan_string()
            return

        # Comments
        if self.source.startswith('//', self.pos):
            self.pos = len(self.source)
            return
        if self.source.startswith('/*', self.pos):
            self.advance(2)
            self.in_block_comment = True
            self.comment_start_line = self.line
            return

        if is_digit(ch) or (ch == '.' and is_digit(self.peek(1))):
            self.scan_number()
            return

        if is_ident_start(ch):
            self.scan_identifier()
            return

        self.scan_operator()

    # ========================================================================
    # Token Scanners
    # ========================================================================

    def skip_block_comment(self):
        end = self.source.find('*/', self.pos)
        if end == -1:
            self.pos = len(self.source)
            return

        self.pos = end + 2
        self.in_block_comment = False

    def scan_string(self):
        """Scan string literal: "...", escapes kept as-is"""
        start = self.pos
        self.advance()  # opening quote

        while self.pos < len(self.source) and self.peek() != '"':
            if self.peek() == '\\':
                self.advance()
            self.advance()

        if self.pos >= len(self.source):
            self.error("Unterminated string.")
            self.pos = len(self.source)
            return

        self.advance()  # closing quote
        self.emit_lexeme(self.source[start:self.pos])

    def scan_number(self):
        """Scan number literal with optional % or s suffix"""
        start = self.pos

        while is_digit(self.peek()):
            self.advance()

        if self.peek() == '.' and is_digit(self.peek(1)):
            self.advance()
            while is_digit(self.peek()):
                self.advance()

        if self.peek() == '%':
            self.advance()
        elif self.peek() == 's' and not is_ident_char(self.peek(1)):
            self.advance()

        self.emit_lexeme(self.source[start:self.pos])

    def scan_identifier(self):
        """Scan identifier or keyword"""
        start = self.pos

        while is_ident_char(self.peek()):
            self.advance()

        self.emit_lexeme(self.source[start:self.pos])

    def scan_operator(self):
        """Scan operators and punctuation"""
        for op_str, op_type in OPERATORS:
            if self.source.startswith(op_str, self.pos):
                self.advance(len(op_str))
                self.emit(op_type, op_str)
                return

        ch = self.advance()
        kind = PUNCTUATION.get(ch)
        if kind is None:
            self.error(f"Unexpected character '{ch}'.")
            return

        self.emit(kind, ch)

    # ========================================================================
    # Utilities
    # ========================================================================

    def peek(self, offset: int = 0) -> str:
        """Look ahead at character"""
        idx = self.pos + offset
        if idx < len(self.source):
            return self.source[idx]
        return '\0'

    def advance(self, n: int = 1) -> str:
        """Consume n characters and return them as a string"""
        result = self.source[self.pos:self.pos + n]
        self.pos += n
        return result

    def emit_lexeme(self, lexeme: str):
        kind = classify_lexeme(lexeme)
        self.emit(kind, lexeme, extract_literal(kind, lexeme))

    def emit(self, token_type: TT, lexeme: str, literal=None):
        """Emit a token"""
        self.tokens.append(Tok(type=token_type, lexeme=lexeme, literal=literal, line=self.line))

    def error(self, message: str, line: Optional[int] = None):
        self.errors.append(LexError(message, self.line if line is None else line))


# ============================================================================
# Convenience
# ============================================================================

def scan(lines: Iterable[str], errors: Optional[List[LexError]] = None) -> List[Tok]:
    """Tokenize a sequence of lines; diagnostics are appended to `errors`"""
    lexer = Lexer(lines)
    tokens = lexer.tokenize()

    if errors is not None:
        errors.extend(lexer.errors)

    return tokens


def tokenize(source: str, errors: Optional[List[LexError]] = None) -> List[Tok]:
    """Convenience function to tokenize a whole source string"""
    return scan(source.splitlines(), errors)
