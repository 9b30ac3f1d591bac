"""Lox tokenizer: lexes source into a flat token list."""

from __future__ import annotations

from .errors import LoxError


# Token type constants. Keywords use the keyword itself as their type.
TK_NUMBER = "NUMBER"
TK_STRING = "STRING"
TK_IDENT = "IDENT"
TK_OP = "OP"

KEYWORDS: set[str] = {
    "and",
    "class",
    "else",
    "false",
    "for",
    "fun",
    "if",
    "nil",
    "or",
    "print",
    "return",
    "super",
    "this",
    "true",
    "var",
    "while",
}

# Tried before the one-character set so "<=" is never split
TWO_CHAR_OPS: tuple[str, ...] = ("!=", "==", "<=", ">=")

ONE_CHAR_OPS: str = "(){},.;+-*/!=<>"

DIGITS: str = "0123456789"

ESCAPES: dict[str, str] = {
    "n": "\n",
    "r": "\r",
    "t": "\t",
    "\\": "\\",
    '"': '"',
}


class ScanError(LoxError):
    """Error during tokenization. Fatal: nothing is parsed."""


class Token:
    """A token with type, semantic value, raw text, and position."""

    def __init__(self, type_: str, value: str, line: int, col: int, text: str = ""):
        self.type: str = type_
        self.value: str = value
        self.text: str = text if text != "" else value
        self.line: int = line
        self.col: int = col

    def __repr__(self) -> str:
        return "Token(%s, %r, %d, %d)" % (self.type, self.value, self.line, self.col)


def _word_start(c: str) -> bool:
    return c == "_" or (c.isascii() and c.isalpha())


def _word_part(c: str) -> bool:
    return c in DIGITS or _word_start(c)


class _Cursor:
    """Walks the source one character at a time, tracking line and column."""

    def __init__(self, source: str):
        self.src = source
        self.pos = 0
        self.line = 1
        self.col = 1

    def done(self) -> bool:
        return self.pos >= len(self.src)

    def peek(self, ahead: int = 0) -> str:
        i = self.pos + ahead
        if i >= len(self.src):
            return ""
        return self.src[i]

    def bump(self) -> str:
        c = self.src[self.pos]
        self.pos += 1
        if c == "\n":
            self.line += 1
            self.col = 1
        else:
            self.col += 1
        return c

    def bump_while(self, pred) -> str:
        start = self.pos
        while not self.done() and pred(self.peek()):
            self.bump()
        return self.src[start : self.pos]


def _scan_number(cur: _Cursor) -> str:
    """digits ( '.' digits )?  A dot without digits after it is left alone."""
    text = cur.bump_while(lambda c: c in DIGITS)
    if cur.peek() == "." and cur.peek(1) != "" and cur.peek(1) in DIGITS:
        cur.bump()
        text += "." + cur.bump_while(lambda c: c in DIGITS)
    return text


def _scan_string(cur: _Cursor, line: int, col: int) -> tuple[str, str]:
    """Scan a string body after the opening quote. Returns (value, raw text)."""
    start = cur.pos - 1
    chars: list[str] = []
    while True:
        c = cur.peek()
        if c == "" or c == "\n":
            raise ScanError("Unterminated string.", line, col)
        cur.bump()
        if c == '"':
            break
        if c != "\\":
            chars.append(c)
            continue
        esc = cur.peek()
        if esc == "" or esc == "\n":
            raise ScanError("Unterminated string.", line, col)
        if esc not in ESCAPES:
            raise ScanError("Invalid escape: \\" + esc, cur.line, cur.col)
        cur.bump()
        chars.append(ESCAPES[esc])
    return "".join(chars), cur.src[start : cur.pos]


def tokenize(source: str) -> list[Token]:
    """Tokenize Lox source into a flat list. There is no end-of-stream token."""
    cur = _Cursor(source)
    tokens: list[Token] = []

    while not cur.done():
        c = cur.peek()

        if c in " \t\r\n":
            cur.bump()
            continue

        # Line comment
        if c == "/" and cur.peek(1) == "/":
            cur.bump_while(lambda ch: ch != "\n")
            continue

        line, col = cur.line, cur.col

        if c in DIGITS:
            tokens.append(Token(TK_NUMBER, _scan_number(cur), line, col))
            continue

        if c == '"':
            cur.bump()
            value, raw = _scan_string(cur, line, col)
            tokens.append(Token(TK_STRING, value, line, col, raw))
            continue

        if _word_start(c):
            word = cur.bump_while(_word_part)
            kind = word if word in KEYWORDS else TK_IDENT
            tokens.append(Token(kind, word, line, col))
            continue

        pair = c + cur.peek(1)
        if pair in TWO_CHAR_OPS:
            cur.bump()
            cur.bump()
            tokens.append(Token(TK_OP, pair, line, col))
            continue

        if c in ONE_CHAR_OPS:
            cur.bump()
            tokens.append(Token(TK_OP, c, line, col))
            continue

        raise ScanError("Unexpected character: " + repr(c), line, col)

    return tokens
