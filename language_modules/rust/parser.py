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

"""
Light statement-level parser for Rust contract source.

The parser never raises on malformed input. Running out of tokens inside a
block closes the block, and stray closing braces at item level are skipped,
so callers always get a best-effort program over the well-formed prefix.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Union

from language_modules.rust.tokenizer import Token, TokenType, NON_CODE_TYPES

logger = logging.getLogger(__name__)

OPENERS = {'(', '[', '{'}
CLOSERS = {')', ']', '}'}

ITEM_MODIFIERS = {'pub', 'async', 'unsafe', 'extern', 'default', 'const'}

# Blocks, modules and `else if` links deeper than this are skipped unparsed
MAX_NESTING_DEPTH = 64

def render_tokens(tokens: Sequence[Token]) -> str:
    """Join tokens back into text, keeping a space only where the source had one."""
    parts = []
    previous = None
    for token in tokens:
        if previous is not None and (token.line != previous.line or token.column > previous.end_column):
            parts.append(' ')
        parts.append(token.value)
        previous = token
    return ''.join(parts)

def statement_kind(tokens: Sequence[Token]) -> str:
    if not tokens:
        return 'empty'
    first = tokens[0].value
    if first in ('let', 'return', 'break', 'continue'):
        return first
    return 'simple'

@dataclass
class Statement:
    """A flat statement, condition or pattern together with its tokens."""
    tokens: List[Token]
    kind: str = 'simple'
    text: str = field(init=False)

    def __post_init__(self):
        self.text = render_tokens(self.tokens)

    @property
    def line(self) -> int:
        return self.tokens[0].line if self.tokens else 0

    @property
    def column(self) -> int:
        return self.tokens[0].column if self.tokens else 0

    @property
    def values(self) -> List[str]:
        return [token.value for token in self.tokens]

@dataclass
class Block:
    statements: List['BlockItem'] = field(default_factory=list)

@dataclass
class NestedBlock:
    block: Block

@dataclass
class IfStmt:
    condition: Statement
    then_block: Block
    else_branch: Optional[Union[Block, 'IfStmt']] = None

    @property
    def line(self) -> int:
        return self.condition.line

@dataclass
class MatchArm:
    pattern: Statement
    body: Block

@dataclass
class MatchStmt:
    scrutinee: Statement
    arms: List[MatchArm] = field(default_factory=list)

@dataclass
class LoopStmt:
    kind: str
    header: Statement
    body: Block

BlockItem = Union[Statement, NestedBlock, IfStmt, MatchStmt, LoopStmt]

@dataclass
class Param:
    name: str
    type_text: str
    line: int
    column: int

@dataclass
class FunctionDecl:
    name: str
    line: int
    column: int
    end_line: int = 0
    params: List[Param] = field(default_factory=list)
    attributes: List[str] = field(default_factory=list)
    is_public: bool = False
    return_type: str = ""
    body: Block = field(default_factory=Block)

    @property
    def context_type(self) -> Optional[str]:
        """Accounts struct named by a `Context<T>` parameter, if any."""
        for param in self.params:
            text = param.type_text.replace(' ', '')
            if text.startswith('Context<'):
                inner = text[len('Context<'):].rstrip('>')
                name = inner.split(',')[-1].split('<')[0]
                return name or None
        return None

@dataclass
class StructDecl:
    name: str
    line: int
    column: int
    body_text: str = ""
    attributes: List[str] = field(default_factory=list)

@dataclass
class ParsedProgram:
    functions: List[FunctionDecl] = field(default_factory=list)
    structs: List[StructDecl] = field(default_factory=list)
    module_attributes: List[str] = field(default_factory=list)
    # First token of each construct skipped for exceeding MAX_NESTING_DEPTH
    too_deep: List[Token] = field(default_factory=list)

class StatementParser:
    """Recursive-descent parser producing functions, structs and nested statements."""

    def __init__(self, tokens: Sequence[Token]):
        self.tokens = [token for token in tokens if token.type not in NON_CODE_TYPES]
        self.pos = 0
        self.depth = 0
        self.program = ParsedProgram()

    def parse(self) -> ParsedProgram:
        self._parse_items(until_brace=False)
        logger.debug(f"Parsed {len(self.program.functions)} functions and "
                     f"{len(self.program.structs)} structs")
        return self.program

    # -------------------------------------------------------------------------
    # Token helpers
    # -------------------------------------------------------------------------

    def _eof(self) -> bool:
        return self.pos >= len(self.tokens)

    def _peek(self, offset: int = 0) -> Optional[Token]:
        index = self.pos + offset
        return self.tokens[index] if index < len(self.tokens) else None

    def _peek_value(self, offset: int = 0) -> Optional[str]:
        token = self._peek(offset)
        return token.value if token else None

    def _advance(self) -> Token:
        token = self.tokens[self.pos]
        self.pos += 1
        return token

    def _skip_balanced(self) -> List[Token]:
        """Consume an opener and everything up to its matching closer."""
        collected = [self._advance()]
        depth = 1
        while not self._eof() and depth > 0:
            token = self._advance()
            collected.append(token)
            if token.value in OPENERS:
                depth += 1
            elif token.value in CLOSERS:
                depth -= 1
        return collected

    def _skip_angle_brackets(self) -> None:
        depth = 0
        while not self._eof():
            value = self._peek_value()
            if value == '<':
                depth += 1
            elif value == '>':
                depth -= 1
            elif value == '>>':
                depth -= 2
            elif value in ('{', ';') or (depth <= 0 and value == '('):
                return
            self._advance()
            if depth <= 0:
                return

    def _collect_until(self, stop_values: set, stop_on_block: bool = False) -> List[Token]:
        """Collect tokens until a stop value at nesting depth zero (not consumed)."""
        collected = []
        depth = 0
        while not self._eof():
            token = self._peek()
            value = token.value
            if depth == 0:
                if value in stop_values:
                    break
                if (stop_on_block and value == '{') or value == '}':
                    break
            if value in OPENERS:
                depth += 1
            elif value in CLOSERS:
                depth = max(0, depth - 1)
            collected.append(self._advance())
        return collected

    # -------------------------------------------------------------------------
    # Items
    # -------------------------------------------------------------------------

    def _parse_items(self, until_brace: bool) -> None:
        pending_attributes: List[str] = []
        while not self._eof():
            token = self._peek()

            if token.value == '}':
                self._advance()
                if until_brace:
                    return
                continue

            if token.value == '#':
                attribute = self._parse_attribute()
                if attribute is not None:
                    pending_attributes.append(attribute)
                continue

            is_public = False
            while self._peek_value() in ITEM_MODIFIERS and self._is_modifier():
                modifier = self._advance()
                if modifier.value == 'pub':
                    is_public = True
                    if self._peek_value() == '(':
                        self._skip_balanced()
                elif modifier.value == 'extern' and self._peek() and self._peek().type == TokenType.LITERAL:
                    self._advance()

            value = self._peek_value()
            if value is None:
                break
            if value == 'fn':
                self._parse_function(is_public, pending_attributes)
            elif value in ('impl', 'trait', 'mod'):
                self._parse_container(pending_attributes)
            elif value == 'struct':
                self._parse_struct(pending_attributes)
            else:
                self._skip_item()
            pending_attributes = []

    def _is_modifier(self) -> bool:
        value = self._peek_value()
        following = self._peek_value(1)
        if value == 'const':
            return following in ('fn', 'unsafe', 'async')
        if value == 'unsafe':
            return following in ('fn', 'impl', 'trait', 'extern')
        if value == 'extern':
            return following != 'crate'
        if value == 'default':
            return following in ('fn', 'unsafe', 'async', 'const')
        return True

    def _parse_attribute(self) -> Optional[str]:
        self._advance()
        inner = False
        if self._peek_value() == '!':
            self._advance()
            inner = True
        if self._peek_value() != '[':
            return None
        tokens = self._skip_balanced()
        text = render_tokens(tokens[1:-1] if tokens[-1].value == ']' else tokens[1:])
        if inner:
            self.program.module_attributes.append(text)
            return None
        return text

    def _parse_container(self, attributes: List[str]) -> None:
        keyword = self._advance()
        if keyword.value == 'mod':
            self.program.module_attributes.extend(attributes)
        self._collect_until({';'}, stop_on_block=True)
        value = self._peek_value()
        if value == ';':
            self._advance()
        elif value == '{':
            if self.depth >= MAX_NESTING_DEPTH:
                self.program.too_deep.append(self._peek())
                self._skip_balanced()
                return
            self._advance()
            self.depth += 1
            self._parse_items(until_brace=True)
            self.depth -= 1

    def _parse_struct(self, attributes: List[str]) -> None:
        keyword = self._advance()
        name_token = self._peek()
        name = name_token.value if name_token and name_token.type == TokenType.IDENTIFIER else 'anonymous'
        if name_token and name_token.type == TokenType.IDENTIFIER:
            self._advance()
        self._collect_until({';'}, stop_on_block=True)
        body_text = ""
        if self._peek_value() == '{':
            body = self._skip_balanced()
            body_text = render_tokens(body)
        elif self._peek_value() == ';':
            self._advance()
        self.program.structs.append(StructDecl(
            name=name, line=keyword.line, column=keyword.column,
            body_text=body_text, attributes=list(attributes)
        ))

    def _skip_item(self) -> None:
        tokens = self._collect_until({';'}, stop_on_block=True)
        value = self._peek_value()
        if value == ';':
            self._advance()
        elif value == '{':
            self._skip_balanced()
            if self._peek_value() == ';':
                self._advance()
        elif not tokens and not self._eof():
            self._advance()

    def _parse_function(self, is_public: bool, attributes: List[str]) -> None:
        fn_token = self._advance()
        name = 'anonymous'
        if self._peek() and self._peek().type == TokenType.IDENTIFIER:
            name = self._advance().value
        decl = FunctionDecl(name=name, line=fn_token.line, column=fn_token.column,
                            attributes=list(attributes), is_public=is_public)
        # Reserve the slot so nested functions keep source order
        self.program.functions.append(decl)

        if self._peek_value() == '<':
            self._skip_angle_brackets()
        if self._peek_value() == '(':
            param_tokens = self._skip_balanced()
            decl.params = self._parse_params(param_tokens[1:-1] if param_tokens[-1].value == ')' else param_tokens[1:])

        signature = self._collect_until({';'}, stop_on_block=True)
        if signature and signature[0].value == '->':
            decl.return_type = render_tokens(signature[1:])

        if self._peek_value() == '{':
            decl.body = self._parse_block()
        else:
            if self._peek_value() == ';':
                self._advance()
            self.program.functions.remove(decl)
            return
        decl.end_line = self.tokens[self.pos - 1].line

    @staticmethod
    def _parse_params(tokens: List[Token]) -> List[Param]:
        params = []
        groups: List[List[Token]] = [[]]
        depth = 0
        for token in tokens:
            value = token.value
            if value in OPENERS or value == '<':
                depth += 1
            elif value in CLOSERS or value == '>':
                depth -= 1
            elif value == '>>':
                depth -= 2
            if value == ',' and depth == 0:
                groups.append([])
                continue
            groups[-1].append(token)

        for group in groups:
            if not group:
                continue
            values = [token.value for token in group]
            if 'self' in values[:3] and ':' not in values[:values.index('self') + 1]:
                continue
            if ':' not in values:
                continue
            colon = values.index(':')
            names = [token for token in group[:colon] if token.type == TokenType.IDENTIFIER]
            if not names:
                continue
            params.append(Param(
                name=names[0].value,
                type_text=render_tokens(group[colon + 1:]),
                line=names[0].line,
                column=names[0].column
            ))
        return params

    # -------------------------------------------------------------------------
    # Statements
    # -------------------------------------------------------------------------

    def _parse_block(self) -> Block:
        """
        Parse `{ ... }`; running out of input closes the block implicitly.

        A block opened past MAX_NESTING_DEPTH is consumed without parsing and
        comes back empty, with its opening brace recorded in `too_deep`.
        """
        if self.depth >= MAX_NESTING_DEPTH:
            self.program.too_deep.append(self._peek())
            self._skip_balanced()
            return Block()
        self._advance()
        self.depth += 1
        block = Block()
        while not self._eof():
            if self._peek_value() == '}':
                self._advance()
                break
            item = self._parse_statement()
            if item is not None:
                block.statements.append(item)
        self.depth -= 1
        return block

    def _parse_statement(self) -> Optional[BlockItem]:
        token = self._peek()
        value = token.value

        if value == ';':
            self._advance()
            return None
        if value == '#':
            self._parse_attribute()
            return None
        # Loop labels: 'outer: loop { ... }
        if value.startswith("'") and self._peek_value(1) == ':':
            self._advance()
            self._advance()
            return None

        if value == 'if':
            return self._parse_if()
        if value == 'match':
            return self._parse_match()
        if value in ('while', 'for', 'loop'):
            return self._parse_loop()
        if value == '{':
            return NestedBlock(self._parse_block())
        if value == 'unsafe' and self._peek_value(1) == '{':
            self._advance()
            return NestedBlock(self._parse_block())
        if value == 'fn' or (value == 'pub' and self._peek_value(1) == 'fn'):
            is_public = value == 'pub'
            if is_public:
                self._advance()
            self._parse_function(is_public, [])
            return None

        tokens = self._collect_until({';'})
        if self._peek_value() == ';':
            self._advance()
        if not tokens:
            if not self._eof() and self._peek_value() != '}':
                self._advance()
            return None
        return Statement(tokens, kind=statement_kind(tokens))

    def _parse_if(self) -> IfStmt:
        condition = self._collect_until({';'}, stop_on_block=True)
        then_block = self._parse_block() if self._peek_value() == '{' else Block()
        statement = IfStmt(condition=Statement(condition, kind='condition'), then_block=then_block)

        if self._peek_value() == 'else':
            self._advance()
            if self._peek_value() == 'if':
                if self.depth >= MAX_NESTING_DEPTH:
                    self._skip_else_chain()
                else:
                    self.depth += 1
                    statement.else_branch = self._parse_if()
                    self.depth -= 1
            elif self._peek_value() == '{':
                statement.else_branch = self._parse_block()
        return statement

    def _skip_else_chain(self) -> None:
        """Consume the rest of an `else if` chain without building it."""
        self.program.too_deep.append(self._peek())
        while not self._eof():
            self._collect_until({';'}, stop_on_block=True)
            if self._peek_value() == '{':
                self._skip_balanced()
            if self._peek_value() != 'else':
                return
            self._advance()

    def _parse_match(self) -> MatchStmt:
        scrutinee = self._collect_until({';'}, stop_on_block=True)
        statement = MatchStmt(scrutinee=Statement(scrutinee, kind='condition'))
        if self._peek_value() != '{':
            return statement
        self._advance()

        while not self._eof():
            value = self._peek_value()
            if value == '}':
                self._advance()
                break
            if value == ',':
                self._advance()
                continue
            if value == '#':
                self._parse_attribute()
                continue

            pattern = self._collect_until({'=>'})
            if self._peek_value() != '=>':
                # Malformed arm: resynchronise on the closing brace
                if not pattern and not self._eof() and self._peek_value() != '}':
                    self._advance()
                continue
            self._advance()

            if self._peek_value() == '{':
                body = self._parse_block()
            else:
                expression = self._collect_until({','})
                body = Block([Statement(expression, kind=statement_kind(expression))] if expression else [])
            if self._peek_value() == ',':
                self._advance()
            statement.arms.append(MatchArm(pattern=Statement(pattern, kind='pattern'), body=body))
        return statement

    def _parse_loop(self) -> LoopStmt:
        keyword = self._peek_value()
        header = self._collect_until({';'}, stop_on_block=True)
        body = self._parse_block() if self._peek_value() == '{' else Block()
        kind = 'for' if keyword == 'for' else ('loop' if keyword == 'loop' else 'condition')
        return LoopStmt(kind=keyword, header=Statement(header, kind=kind), body=body)
