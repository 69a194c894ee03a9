# =============================================================================
# Sentinel Smart Contract Analyzer - Static Security Analysis for Solana Programs
# =============================================================================
#
# Author: Keith Pachulski
# Company: Red Cell Security, LLC
# Email: keith@redcellsecurity.org
# Website: www.redcellsecurity.org
#
# Copyright (c) 2025 Keith Pachulski. All rights reserved.
#
# License: This software is licensed under the MIT License.
#          You are free to use, modify, and distribute this software
#          in accordance with the terms of the license.
#
# Purpose: This script is part of the Sentinel Smart Contract Analyzer, which provides
#          static security and quality analysis of Rust smart contracts. The tool builds a
#          control-flow graph and data-flow facts for each program and runs reentrancy,
#          arithmetic, access control and validation detectors over them, producing scored
#          reports with metrics and remediation guidance.
#
# DISCLAIMER: This software is provided "as-is," without warranty of any kind,
#             express or implied, including but not limited to the warranties
#             of merchantability, fitness for a particular purpose, and non-infringement.
#             In no event shall the authors or copyright holders be liable for any claim,
#             damages, or other liability, whether in an action of contract, tort, or otherwise,
#             arising from, out of, or in connection with the software or the use or other dealings
#             in the software.
#
# =============================================================================

import re
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Iterator, List, Iterable

logger = logging.getLogger(__name__)

class TokenType(Enum):
    """Lexical token classes."""
    IDENTIFIER = "identifier"
    LITERAL = "literal"
    OPERATOR = "operator"
    BRACE_OPEN = "brace_open"
    BRACE_CLOSE = "brace_close"
    PAREN_OPEN = "paren_open"
    PAREN_CLOSE = "paren_close"
    COMMENT_START = "comment_start"
    COMMENT_END = "comment_end"
    NEWLINE = "newline"
    KEYWORD = "keyword"

@dataclass(frozen=True)
class Token:
    """A single lexical token with its 1-based source position."""
    type: TokenType
    value: str
    line: int
    column: int

    @property
    def end_column(self) -> int:
        return self.column + len(self.value)

RUST_KEYWORDS = frozenset({
    'fn', 'let', 'mut', 'if', 'else', 'match', 'while', 'for', 'loop', 'return',
    'pub', 'struct', 'enum', 'impl', 'use', 'mod', 'trait', 'const', 'static',
    'unsafe', 'in', 'as', 'break', 'continue', 'self', 'Self', 'crate', 'super',
    'true', 'false', 'type', 'move', 'ref', 'dyn', 'async', 'await', 'where', 'extern'
})

# Longest first
MULTI_CHAR_OPERATORS = (
    '..=', '<<=', '>>=', '...',
    '==', '!=', '>=', '<=', '=>', '->', '+=', '-=', '*=', '/=', '%=',
    '&=', '|=', '^=', '&&', '||', '::', '..', '<<', '>>'
)

SINGLE_CHAR_OPERATORS = set('+-*/%=<>!&|^~?:.,;[]#@$')

_IDENT_RE = re.compile(r'[A-Za-z_][A-Za-z0-9_]*')
_NUMBER_RE = re.compile(r'[0-9][0-9A-Za-z_]*(?:\.[0-9][0-9A-Za-z_]*)?')
_CHAR_RE = re.compile(r"'(?:\\(?:x[0-9a-fA-F]{2}|u\{[0-9a-fA-F]+\}|.)|[^\\'\n])'")
_LIFETIME_RE = re.compile(r"'[A-Za-z_][A-Za-z0-9_]*")
_RAW_STRING_RE = re.compile(r'b?r(#*)"')

class TokenStream:
    """
    Restartable lazy view over the tokens of one source text.

    Every iteration re-runs the scanner from the start of the text, so the
    stream can be consumed any number of times and always yields the same
    sequence.
    """

    def __init__(self, tokenizer: 'Tokenizer', source: str):
        self._tokenizer = tokenizer
        self.source = source

    def __iter__(self) -> Iterator[Token]:
        return self._tokenizer._scan(self.source)

    def to_list(self) -> List[Token]:
        return list(self)

    def code_tokens(self) -> List[Token]:
        """Tokens with comment and newline markers removed."""
        return [token for token in self if token.type not in NON_CODE_TYPES]

NON_CODE_TYPES = frozenset({TokenType.COMMENT_START, TokenType.COMMENT_END, TokenType.NEWLINE})

class Tokenizer:
    """Converts Rust contract source into a stream of tokens."""

    def tokenize(self, source: str) -> TokenStream:
        """
        Tokenize source text.

        Args:
            source (str): Contract source code

        Returns:
            TokenStream: Restartable token sequence covering the whole input
        """
        return TokenStream(self, source or "")

    def _scan(self, source: str) -> Iterator[Token]:
        pos = 0
        line = 1
        line_start = 0
        length = len(source)

        while pos < length:
            char = source[pos]
            column = pos - line_start + 1

            if char == '\n':
                yield Token(TokenType.NEWLINE, '\n', line, column)
                pos += 1
                line += 1
                line_start = pos
                continue

            if char.isspace():
                pos += 1
                continue

            # Line comments, including /// and //! doc comments
            if source.startswith('//', pos):
                marker = '//'
                if source.startswith('///', pos) and not source.startswith('////', pos):
                    marker = '///'
                elif source.startswith('//!', pos):
                    marker = '//!'
                yield Token(TokenType.COMMENT_START, marker, line, column)
                end = source.find('\n', pos)
                if end == -1:
                    end = length
                yield Token(TokenType.COMMENT_END, '', line, end - line_start + 1)
                pos = end
                continue

            # Block comments nest in Rust
            if source.startswith('/*', pos):
                yield Token(TokenType.COMMENT_START, '/*', line, column)
                depth = 1
                pos += 2
                while pos < length and depth > 0:
                    if source.startswith('/*', pos):
                        depth += 1
                        pos += 2
                    elif source.startswith('*/', pos):
                        depth -= 1
                        pos += 2
                    else:
                        if source[pos] == '\n':
                            line += 1
                            line_start = pos + 1
                        pos += 1
                if depth == 0:
                    yield Token(TokenType.COMMENT_END, '*/', line, pos - line_start - 1)
                continue

            raw_match = _RAW_STRING_RE.match(source, pos) if char in 'br' else None
            if raw_match:
                terminator = '"' + raw_match.group(1)
                end = source.find(terminator, raw_match.end())
                end = length if end == -1 else end + len(terminator)
                value = source[pos:end]
                yield Token(TokenType.LITERAL, value, line, column)
                line, line_start = self._advance_lines(source, pos, end, line, line_start)
                pos = end
                continue

            if char == '"' or (char == 'b' and source.startswith('b"', pos)):
                end = self._scan_string(source, pos + (2 if char == 'b' else 1))
                value = source[pos:end]
                yield Token(TokenType.LITERAL, value, line, column)
                line, line_start = self._advance_lines(source, pos, end, line, line_start)
                pos = end
                continue

            if char == "'":
                char_match = _CHAR_RE.match(source, pos)
                if char_match:
                    yield Token(TokenType.LITERAL, char_match.group(0), line, column)
                    pos = char_match.end()
                    continue
                lifetime = _LIFETIME_RE.match(source, pos)
                if lifetime:
                    yield Token(TokenType.IDENTIFIER, lifetime.group(0), line, column)
                    pos = lifetime.end()
                    continue
                yield Token(TokenType.OPERATOR, char, line, column)
                pos += 1
                continue

            if '0' <= char <= '9':
                number = _NUMBER_RE.match(source, pos)
                yield Token(TokenType.LITERAL, number.group(0), line, column)
                pos = number.end()
                continue

            ident = _IDENT_RE.match(source, pos)
            if ident:
                value = ident.group(0)
                end = ident.end()
                # Macro invocations keep their bang: require!, msg!, declare_id!
                if (end < length and source[end] == '!' and not source.startswith('!=', end)
                        and value not in RUST_KEYWORDS):
                    value += '!'
                    end += 1
                token_type = TokenType.KEYWORD if value in RUST_KEYWORDS else TokenType.IDENTIFIER
                yield Token(token_type, value, line, column)
                pos = end
                continue

            if char == '{':
                yield Token(TokenType.BRACE_OPEN, char, line, column)
                pos += 1
                continue
            if char == '}':
                yield Token(TokenType.BRACE_CLOSE, char, line, column)
                pos += 1
                continue
            if char == '(':
                yield Token(TokenType.PAREN_OPEN, char, line, column)
                pos += 1
                continue
            if char == ')':
                yield Token(TokenType.PAREN_CLOSE, char, line, column)
                pos += 1
                continue

            operator = next((op for op in MULTI_CHAR_OPERATORS if source.startswith(op, pos)), None)
            if operator:
                yield Token(TokenType.OPERATOR, operator, line, column)
                pos += len(operator)
                continue

            if char in SINGLE_CHAR_OPERATORS:
                yield Token(TokenType.OPERATOR, char, line, column)
                pos += 1
                continue

            # Characters outside the Rust grammar are skipped
            logger.debug(f"Skipping unexpected character {char!r} at {line}:{column}")
            pos += 1

    @staticmethod
    def _scan_string(source: str, pos: int) -> int:
        """Return the index just past the closing quote, or the end of input."""
        length = len(source)
        while pos < length:
            char = source[pos]
            if char == '\\':
                pos += 2
                continue
            if char == '"':
                return pos + 1
            pos += 1
        return length

    @staticmethod
    def _advance_lines(source: str, start: int, end: int, line: int, line_start: int):
        newlines = source.count('\n', start, end)
        if newlines:
            line += newlines
            line_start = source.rfind('\n', start, end) + 1
        return line, line_start

def is_unterminated_string(token: Token) -> bool:
    """Check whether a string literal token runs to end of input without closing."""
    if token.type != TokenType.LITERAL:
        return False
    value = token.value
    raw = _RAW_STRING_RE.match(value)
    if raw:
        return not value[raw.end():].endswith('"' + raw.group(1))
    if value.startswith('b"'):
        value = value[1:]
    if not value.startswith('"'):
        return False
    if len(value) < 2 or not value.endswith('"'):
        return True
    trailing_backslashes = len(value[1:-1]) - len(value[1:-1].rstrip('\\'))
    return trailing_backslashes % 2 == 1

def mask_comments(source: str, tokens: Iterable[Token]) -> str:
    """
    Blank out comment text while preserving line and column positions.

    Args:
        source (str): Original source
        tokens: Token sequence for the same source

    Returns:
        str: Source with comment characters replaced by spaces
    """
    lines = source.split('\n')
    offsets = []
    total = 0
    for text in lines:
        offsets.append(total)
        total += len(text) + 1

    chars = list(source)
    start = None
    for token in tokens:
        if token.type == TokenType.COMMENT_START:
            start = offsets[token.line - 1] + token.column - 1
        elif token.type == TokenType.COMMENT_END and start is not None:
            end = offsets[token.line - 1] + token.column - 1 + len(token.value)
            _blank(chars, start, end)
            start = None
    if start is not None:
        _blank(chars, start, len(chars))
    return ''.join(chars)

def _blank(chars: List[str], start: int, end: int) -> None:
    for index in range(start, min(end, len(chars))):
        if chars[index] != '\n':
            chars[index] = ' '
