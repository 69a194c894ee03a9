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
Control-flow graph construction for Rust contracts.

The graph is stored in a networkx MultiDiGraph whose nodes are basic-block
ids; block contents live in `ControlFlowGraph.nodes`. Each function gets an
entry/exit pair and functions are chained in source order between the
program entry and exit, so a well-formed program is one component.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, List, Optional, Set, Tuple

import networkx as nx

from core import Vulnerability
from language_modules.rust.parser import (
    MAX_NESTING_DEPTH, Block, FunctionDecl, IfStmt, LoopStmt, MatchStmt, NestedBlock,
    ParsedProgram, Statement, StatementParser, StructDecl
)
from language_modules.rust.tokenizer import Token, TokenType
from rules.contract_rules import get_contract_pattern

logger = logging.getLogger(__name__)

# Calls into another program or account
EXTERNAL_CALL_NAMES = frozenset({
    'invoke', 'invoke_signed', 'invoke_unchecked', 'transfer', 'transfer_checked',
    'send', 'call', 'cpi'
})

class NodeKind(Enum):
    ENTRY = "entry"
    EXIT = "exit"
    SEQUENTIAL = "sequential"
    BRANCH = "branch"
    LOOP_HEADER = "loop-header"
    CALL_SITE = "call-site"
    JOIN = "join"

class EdgeLabel(Enum):
    TRUE = "true"
    FALSE = "false"
    UNCONDITIONAL = "unconditional"
    EXCEPTION = "exception"

@dataclass
class CFGNode:
    """A basic block."""
    id: int
    kind: NodeKind
    statements: List[Statement] = field(default_factory=list)
    function: Optional[str] = None
    depth: int = 0
    dead: bool = False
    line: int = 0
    column: int = 0
    external_calls: List[str] = field(default_factory=list)
    defines: List[str] = field(default_factory=list)

    @property
    def text(self) -> str:
        return '\n'.join(statement.text for statement in self.statements)

@dataclass(frozen=True)
class CFGEdge:
    source: int
    target: int
    label: EdgeLabel

@dataclass
class FunctionInfo:
    name: str
    line: int
    column: int
    end_line: int
    entry_id: int
    exit_id: int
    decl: FunctionDecl
    node_ids: List[int] = field(default_factory=list)

    @property
    def params(self):
        return self.decl.params

    @property
    def attributes(self) -> List[str]:
        return self.decl.attributes

    @property
    def is_public(self) -> bool:
        return self.decl.is_public

class ControlFlowGraph:
    """Basic blocks and labelled edges of one contract."""

    def __init__(self):
        self.graph = nx.MultiDiGraph()
        self.nodes: Dict[int, CFGNode] = {}
        self.entry_id: Optional[int] = None
        self.exit_id: Optional[int] = None
        self.functions: List[FunctionInfo] = []
        self.structs: List[StructDecl] = []
        self.program: ParsedProgram = ParsedProgram()
        self.structural_errors: List[Vulnerability] = []
        self._function_of: Dict[int, FunctionInfo] = {}

    def add_node(self, kind: NodeKind, function: Optional[str] = None, depth: int = 0,
                 line: int = 0, column: int = 0) -> CFGNode:
        node = CFGNode(id=len(self.nodes), kind=kind, function=function, depth=depth,
                       line=line, column=column)
        self.nodes[node.id] = node
        self.graph.add_node(node.id)
        return node

    def add_edge(self, source: int, target: int, label: EdgeLabel = EdgeLabel.UNCONDITIONAL, **attrs) -> None:
        self.graph.add_edge(source, target, label=label, **attrs)

    @property
    def edges(self) -> List[CFGEdge]:
        return [CFGEdge(u, v, data['label']) for u, v, data in self.graph.edges(data=True)]

    def node_count(self) -> int:
        return self.graph.number_of_nodes()

    def edge_count(self) -> int:
        return self.graph.number_of_edges()

    def successors(self, node_id: int) -> List[int]:
        return sorted(set(self.graph.successors(node_id)))

    def predecessors(self, node_id: int) -> List[int]:
        return sorted(set(self.graph.predecessors(node_id)))

    def connected_components(self) -> int:
        if self.node_count() == 0:
            return 0
        return nx.number_weakly_connected_components(self.graph)

    def reachable_from(self, node_id: int) -> Set[int]:
        return nx.descendants(self.graph, node_id) | {node_id}

    def mark_dead_code(self) -> List[CFGNode]:
        """
        Flag every node not reachable from the entry; nodes are retained.

        Function entries count as roots too, since a function that never
        returns must not hide the functions chained after it.
        """
        if self.entry_id is None:
            return []
        reachable = self.reachable_from(self.entry_id)
        for info in self.functions:
            reachable |= self.reachable_from(info.entry_id)
        dead = []
        for node_id, node in self.nodes.items():
            node.dead = node_id not in reachable
            if node.dead:
                dead.append(node)
        if dead:
            logger.debug(f"Marked {len(dead)} unreachable nodes")
        return dead

    def iter_nodes(self, kind: Optional[NodeKind] = None) -> Iterable[CFGNode]:
        for node_id in sorted(self.nodes):
            node = self.nodes[node_id]
            if kind is None or node.kind == kind:
                yield node

    def register_function(self, info: FunctionInfo) -> None:
        self.functions.append(info)
        for node_id in info.node_ids:
            self._function_of[node_id] = info

    def function_for(self, node_id: int) -> Optional[FunctionInfo]:
        return self._function_of.get(node_id)

    def get_function(self, name: str) -> Optional[FunctionInfo]:
        return next((info for info in self.functions if info.name == name), None)

    def function_subgraph(self, info: FunctionInfo) -> nx.MultiDiGraph:
        return self.graph.subgraph(info.node_ids)

class _LoopContext:
    def __init__(self, header_id: int):
        self.header_id = header_id
        self.breaks: List[Tuple[int, EdgeLabel]] = []

class _FunctionGraphBuilder:
    """Builds the nodes of one function using a frontier of dangling edges."""

    def __init__(self, cfg: ControlFlowGraph, decl: FunctionDecl, local_names: Set[str]):
        self.cfg = cfg
        self.decl = decl
        self.local_names = local_names
        self.node_ids: List[int] = []
        self.frontier: List[Tuple[int, EdgeLabel]] = []
        self.open: Optional[CFGNode] = None
        self.loops: List[_LoopContext] = []
        self.exit: Optional[CFGNode] = None

    def build(self) -> FunctionInfo:
        decl = self.decl
        entry = self._new(NodeKind.ENTRY, 0, decl.line, decl.column)
        entry.defines = [param.name for param in decl.params]
        self.exit = self._new(NodeKind.EXIT, 0, decl.end_line or decl.line, decl.column)

        self.frontier = [(entry.id, EdgeLabel.UNCONDITIONAL)]
        self._block(decl.body, 0)
        self._connect(self.exit.id)

        return FunctionInfo(
            name=decl.name, line=decl.line, column=decl.column,
            end_line=decl.end_line or decl.line, entry_id=entry.id, exit_id=self.exit.id,
            decl=decl, node_ids=sorted(self.node_ids)
        )

    def _new(self, kind: NodeKind, depth: int, line: int = 0, column: int = 0) -> CFGNode:
        node = self.cfg.add_node(kind, function=self.decl.name, depth=depth, line=line, column=column)
        self.node_ids.append(node.id)
        return node

    def _connect(self, target: int) -> None:
        for source, label in self.frontier:
            self.cfg.add_edge(source, target, label)
        self.frontier = []

    def _start(self, kind: NodeKind, depth: int, statement: Statement) -> CFGNode:
        node = self._new(kind, depth, statement.line, statement.column)
        node.statements.append(statement)
        self._connect(node.id)
        self.frontier = [(node.id, EdgeLabel.UNCONDITIONAL)]
        self.open = None
        return node

    def _block(self, block: Block, depth: int) -> None:
        for item in block.statements:
            if isinstance(item, IfStmt):
                self._if(item, depth)
            elif isinstance(item, MatchStmt):
                self._match(item, depth)
            elif isinstance(item, LoopStmt):
                self._loop(item, depth)
            elif isinstance(item, NestedBlock):
                self._block(item.block, depth)
            else:
                self._statement(item, depth)

    def _body(self, block: Block, depth: int, line: int) -> None:
        """Branch and loop bodies always start a node of their own."""
        self.open = None
        if not block.statements:
            node = self._new(NodeKind.SEQUENTIAL, depth, line)
            self._connect(node.id)
            self.frontier = [(node.id, EdgeLabel.UNCONDITIONAL)]
            return
        self._block(block, depth)

    def _statement(self, statement: Statement, depth: int) -> None:
        calls = external_calls(statement, self.local_names)
        if calls:
            node = self._start(NodeKind.CALL_SITE, depth, statement)
            node.external_calls = calls
            if '?' in statement.values:
                self.cfg.add_edge(node.id, self.exit.id, EdgeLabel.EXCEPTION)
        elif self.open is not None and self.frontier == [(self.open.id, EdgeLabel.UNCONDITIONAL)]:
            self.open.statements.append(statement)
            node = self.open
        else:
            node = self._start(NodeKind.SEQUENTIAL, depth, statement)
            self.open = node

        if statement.kind == 'return':
            self.cfg.add_edge(node.id, self.exit.id, EdgeLabel.UNCONDITIONAL)
            self._close()
        elif statement.kind == 'break' and self.loops:
            self.loops[-1].breaks.append((node.id, EdgeLabel.UNCONDITIONAL))
            self._close()
        elif statement.kind == 'continue' and self.loops:
            self.cfg.add_edge(node.id, self.loops[-1].header_id, EdgeLabel.UNCONDITIONAL)
            self._close()

    def _close(self) -> None:
        # Code after a jump has no predecessor
        self.frontier = []
        self.open = None

    def _if(self, statement: IfStmt, depth: int) -> None:
        branch = self._start(NodeKind.BRANCH, depth, statement.condition)
        exits: List[Tuple[int, EdgeLabel]] = []

        self.frontier = [(branch.id, EdgeLabel.TRUE)]
        self._body(statement.then_block, depth + 1, statement.line)
        exits.extend(self.frontier)

        self.frontier = [(branch.id, EdgeLabel.FALSE)]
        self.open = None
        if isinstance(statement.else_branch, IfStmt):
            self._if(statement.else_branch, depth)
        elif isinstance(statement.else_branch, Block):
            self._body(statement.else_branch, depth + 1, statement.line)
        exits.extend(self.frontier)

        self._join(exits, depth, statement.line)

    def _match(self, statement: MatchStmt, depth: int) -> None:
        branch = self._start(NodeKind.BRANCH, depth, statement.scrutinee)
        exits: List[Tuple[int, EdgeLabel]] = []

        for index, arm in enumerate(statement.arms):
            arm_node = self._new(NodeKind.SEQUENTIAL, depth + 1, arm.pattern.line, arm.pattern.column)
            arm_node.statements.append(arm.pattern)
            self.cfg.add_edge(branch.id, arm_node.id, EdgeLabel.TRUE, arm=index)
            self.frontier = [(arm_node.id, EdgeLabel.UNCONDITIONAL)]
            self.open = arm_node
            self._block(arm.body, depth + 1)
            exits.extend(self.frontier)

        if not statement.arms:
            exits.append((branch.id, EdgeLabel.FALSE))
        self._join(exits, depth, statement.scrutinee.line)

    def _loop(self, statement: LoopStmt, depth: int) -> None:
        header = self._start(NodeKind.LOOP_HEADER, depth, statement.header)
        context = _LoopContext(header.id)
        self.loops.append(context)

        body_label = EdgeLabel.UNCONDITIONAL if statement.kind == 'loop' else EdgeLabel.TRUE
        self.frontier = [(header.id, body_label)]
        self._body(statement.body, depth + 1, statement.header.line)
        self._connect(header.id)
        self.loops.pop()

        # `loop` only exits through break
        self.frontier = list(context.breaks)
        if statement.kind != 'loop':
            self.frontier.append((header.id, EdgeLabel.FALSE))
        self.open = None

    def _join(self, exits: List[Tuple[int, EdgeLabel]], depth: int, line: int) -> None:
        self.open = None
        if not exits:
            self.frontier = []
            return
        join = self._new(NodeKind.JOIN, depth, line)
        self.frontier = exits
        self._connect(join.id)
        self.frontier = [(join.id, EdgeLabel.UNCONDITIONAL)]

def external_calls(statement: Statement, local_names: Set[str]) -> List[str]:
    """Names of cross-program calls made by a statement."""
    values = statement.values
    calls = []
    for index, value in enumerate(values):
        if value not in EXTERNAL_CALL_NAMES or index + 1 >= len(values) or values[index + 1] != '(':
            continue
        previous = values[index - 1] if index > 0 else None
        if value in local_names:
            bare = previous not in ('::', '.')
            on_self = previous == '.' and index >= 2 and values[index - 2] == 'self'
            if bare or on_self:
                continue
        calls.append(value)
    return calls

def check_delimiters(tokens: Iterable[Token]) -> List[Vulnerability]:
    """
    Report unbalanced braces and parentheses.

    Unclosed delimiters are reported once per kind with their count, located
    at the outermost opener left unclosed.
    """
    errors = []
    braces: List[Token] = []
    parens: List[Token] = []

    for token in tokens:
        if token.type == TokenType.BRACE_OPEN:
            braces.append(token)
        elif token.type == TokenType.PAREN_OPEN:
            parens.append(token)
        elif token.type == TokenType.BRACE_CLOSE:
            if braces:
                braces.pop()
            else:
                errors.append(_structural_error('UNEXPECTED_CLOSING_BRACE', "Unexpected closing brace", token))
        elif token.type == TokenType.PAREN_CLOSE:
            if parens:
                parens.pop()
            else:
                errors.append(_structural_error('UNEXPECTED_CLOSING_PAREN', "Unexpected closing parenthesis", token))

    if braces:
        errors.append(_structural_error('UNCLOSED_BRACE', f"Unclosed braces: {len(braces)}", braces[0]))
    if parens:
        errors.append(_structural_error('UNCLOSED_PAREN', f"Unclosed parentheses: {len(parens)}", parens[0]))
    return errors

def _structural_error(code: str, message: str, token: Token) -> Vulnerability:
    error = Vulnerability(code=code, message=message, severity='error',
                          line_number=token.line, column_number=token.column, length=1)
    error.enrich_with_pattern(get_contract_pattern(code))
    return error

class ControlFlowGraphBuilder:
    """Builds a ControlFlowGraph from a token sequence."""

    def build(self, tokens: Iterable[Token]) -> ControlFlowGraph:
        """
        Build the graph over the best-effort parse of the tokens.

        Args:
            tokens: Token sequence (a TokenStream or list)

        Returns:
            ControlFlowGraph: Graph with dead nodes marked and structural errors recorded
        """
        tokens = list(tokens)
        cfg = ControlFlowGraph()
        cfg.structural_errors = check_delimiters(tokens)

        program = StatementParser(tokens).parse()
        for token in program.too_deep:
            cfg.structural_errors.append(_structural_error(
                'NESTING_TOO_DEEP', f"Nesting deeper than {MAX_NESTING_DEPTH} levels is not analyzed", token))
        cfg.program = program
        cfg.structs = program.structs
        local_names = {decl.name for decl in program.functions}

        entry = cfg.add_node(NodeKind.ENTRY, line=1, column=1)
        cfg.entry_id = entry.id
        previous = entry.id
        for decl in program.functions:
            info = _FunctionGraphBuilder(cfg, decl, local_names).build()
            cfg.register_function(info)
            cfg.add_edge(previous, info.entry_id)
            previous = info.exit_id

        program_exit = cfg.add_node(NodeKind.EXIT)
        cfg.exit_id = program_exit.id
        cfg.add_edge(previous, program_exit.id)

        cfg.mark_dead_code()
        logger.debug(f"Built CFG with {cfg.node_count()} nodes, {cfg.edge_count()} edges, "
                     f"{len(cfg.functions)} functions")
        return cfg
