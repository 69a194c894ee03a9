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
Reaching-definitions analysis over a ControlFlowGraph.

Facts are computed with a worklist in node order using
`out[n] = gen[n] | (in[n] - kill[n])` and `in[n] = union of out[p]`.
A function entry kills every definition, so facts never cross functions.
Variables and state are dotted paths such as `ctx.accounts.vault.balance`.
"""

import re
import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, List, Optional, Sequence, Set, Tuple

import networkx as nx

from language_modules.rust.cfg_builder import ControlFlowGraph, NodeKind
from language_modules.rust.parser import Statement
from language_modules.rust.tokenizer import Token, TokenType

logger = logging.getLogger(__name__)

ASSIGNMENT_OPERATORS = frozenset({'=', '+=', '-=', '*=', '/=', '%=', '&=', '|=', '^=', '<<=', '>>='})
BINDING_EXCLUDES = frozenset({'mut', 'ref', '_'})
OPENERS = {'(', '[', '{'}
CLOSERS = {')', ']', '}'}

_FORMAT_ARG_RE = re.compile(r'\{([a-z_][A-Za-z0-9_]*)')

@dataclass(frozen=True)
class Definition:
    """A variable definition site."""
    variable: str
    node_id: int
    line: int

@dataclass(frozen=True)
class Binding:
    """A `let` binding, kept for unused-assignment reporting."""
    name: str
    node_id: int
    statement_index: int
    line: int
    column: int

@dataclass
class StatementEffects:
    defines: List[Tuple[str, Token]] = field(default_factory=list)
    uses: Set[str] = field(default_factory=set)
    state_writes: List[str] = field(default_factory=list)
    is_let: bool = False

@dataclass
class DataFlowFact:
    """Per-node facts."""
    node_id: int
    gen: FrozenSet[Definition] = frozenset()
    defined: FrozenSet[str] = frozenset()
    uses: Set[str] = field(default_factory=set)
    state_writes: List[str] = field(default_factory=list)
    statement_uses: List[Set[str]] = field(default_factory=list)
    statement_defines: List[Set[str]] = field(default_factory=list)
    bindings: List[Binding] = field(default_factory=list)
    reach_in: FrozenSet[Definition] = frozenset()
    reach_out: FrozenSet[Definition] = frozenset()

    @property
    def definitions(self) -> FrozenSet[Definition]:
        return self.reach_in

    @property
    def live_uses(self) -> Set[str]:
        return self.uses

# -----------------------------------------------------------------------------
# Statement effects
# -----------------------------------------------------------------------------

def write_matches_read(written: str, read: str) -> bool:
    """
    A state write matches a read of the same path or of a field below it.

    Reading a shorter prefix such as `ctx` or a whole account does not
    count as reading every field under it.
    """
    return read == written or read.startswith(written + '.')

def root_of(path: str) -> str:
    return path.split('.', 1)[0]

def read_paths(tokens: Sequence[Token]) -> List[str]:
    """
    Maximal dotted paths read by a token sequence.

    Method names are stripped (`vault.balance.checked_add(x)` reads
    `vault.balance`); function and macro names, `::` paths, struct field
    labels and capitalized names are not reads.
    """
    paths = []
    count = len(tokens)
    index = 0
    while index < count:
        token = tokens[index]
        value = token.value
        if token.type == TokenType.LITERAL:
            if value.startswith('"') or value.startswith('r'):
                paths.extend(_FORMAT_ARG_RE.findall(value))
            index += 1
            continue
        if not _is_path_start(tokens, index):
            index += 1
            continue

        parts = [value]
        index += 1
        while (index + 1 < count and tokens[index].value == '.'
               and tokens[index + 1].type == TokenType.IDENTIFIER
               and not _is_call(tokens, index + 1)):
            parts.append(tokens[index + 1].value)
            index += 2
        paths.append('.'.join(parts))
    return paths

def _is_path_start(tokens: Sequence[Token], index: int) -> bool:
    token = tokens[index]
    value = token.value
    if not (token.type == TokenType.IDENTIFIER or value == 'self'):
        return False
    if value.endswith('!') or value.startswith("'") or value[0].isupper():
        return False
    previous = tokens[index - 1].value if index > 0 else None
    following = tokens[index + 1].value if index + 1 < len(tokens) else None
    if previous in ('.', '::') or following == '::':
        return False
    if following == ':' and value != 'self':
        return False
    return not _is_call(tokens, index)

def _is_call(tokens: Sequence[Token], index: int) -> bool:
    following = tokens[index + 1].value if index + 1 < len(tokens) else None
    return following == '(' or following == '::'

def binding_names(tokens: Sequence[Token]) -> List[Token]:
    """Names bound by a pattern such as `(a, mut b)` or `Some(x)`."""
    names = []
    for index, token in enumerate(tokens):
        if token.type != TokenType.IDENTIFIER or token.value in BINDING_EXCLUDES:
            continue
        value = token.value
        if value.endswith('!') or value.startswith("'") or value[0].isupper():
            continue
        previous = tokens[index - 1].value if index > 0 else None
        following = tokens[index + 1].value if index + 1 < len(tokens) else None
        if previous in ('::', '.', '@') or following in ('(', '::', '{'):
            continue
        if following == ':' and index + 2 < len(tokens) and tokens[index + 2].value != ':':
            # Struct pattern field label `Point { x: px }`
            if previous in ('{', ','):
                continue
        names.append(token)
    return names

def _split_at_depth_zero(tokens: Sequence[Token], values: Set[str]) -> Tuple[List[Token], Optional[Token], List[Token]]:
    depth = 0
    for index, token in enumerate(tokens):
        if token.value in OPENERS:
            depth += 1
        elif token.value in CLOSERS:
            depth = max(0, depth - 1)
        elif depth == 0 and token.value in values:
            return list(tokens[:index]), token, list(tokens[index + 1:])
    return list(tokens), None, []

def statement_effects(statement: Statement) -> StatementEffects:
    """Definitions, uses and state writes of one statement."""
    tokens = statement.tokens
    effects = StatementEffects()
    if not tokens:
        return effects

    kind = statement.kind
    first = tokens[0].value

    if kind == 'let':
        pattern, _, initializer = _split_at_depth_zero(tokens[1:], {'='})
        pattern, _, _ = _split_at_depth_zero(pattern, {':'})
        effects.is_let = True
        effects.defines = [(token.value, token) for token in binding_names(pattern)]
        effects.uses.update(read_paths(initializer))
        return effects

    if kind == 'for':
        pattern, _, iterable = _split_at_depth_zero(tokens[1:], {'in'})
        effects.defines = [(token.value, token) for token in binding_names(pattern)]
        effects.uses.update(read_paths(iterable))
        return effects

    if kind == 'pattern':
        pattern, _, guard = _split_at_depth_zero(tokens, {'if'})
        effects.defines = [(token.value, token) for token in binding_names(pattern)]
        effects.uses.update(read_paths(guard))
        return effects

    if kind in ('condition', 'loop'):
        body = tokens[1:] if first in ('if', 'while', 'match', 'loop') else tokens
        if body and body[0].value == 'let':
            pattern, _, scrutinee = _split_at_depth_zero(body[1:], {'='})
            effects.defines = [(token.value, token) for token in binding_names(pattern)]
            effects.uses.update(read_paths(scrutinee))
        else:
            effects.uses.update(read_paths(body))
        return effects

    if first in ('return', 'break', 'continue'):
        effects.uses.update(read_paths(tokens[1:]))
        return effects

    target, operator, value = _split_at_depth_zero(tokens, ASSIGNMENT_OPERATORS)
    if operator is None:
        effects.uses.update(read_paths(tokens))
        return effects

    dereferenced = False
    while target and target[0].value == '*':
        dereferenced = True
        target = target[1:]
    target_paths = read_paths(target)
    if target_paths:
        written = target_paths[0]
        effects.defines = [(written, target[0])]
        # Index expressions and the rest of the l-value are reads
        effects.uses.update(target_paths[1:])
        if operator.value != '=':
            effects.uses.add(written)
        if '.' in written or dereferenced:
            effects.state_writes.append(written)
    effects.uses.update(read_paths(value))
    return effects

# -----------------------------------------------------------------------------
# Solver
# -----------------------------------------------------------------------------

class DataFlowResult:
    """Reaching-definition facts for every node of one graph."""

    def __init__(self, cfg: ControlFlowGraph, facts: Dict[int, DataFlowFact],
                 converged: bool, iterations: int):
        self.cfg = cfg
        self.facts = facts
        self.converged = converged
        self.iterations = iterations

    def reaching(self, node_id: int) -> FrozenSet[Definition]:
        """Definitions reaching the start of a node."""
        return self.facts[node_id].reach_in

    def uses(self, node_id: int) -> Set[str]:
        return self.facts[node_id].uses

    def _scope(self, node_id: int) -> nx.MultiDiGraph:
        info = self.cfg.function_for(node_id)
        return self.cfg.function_subgraph(info) if info else self.cfg.graph

    def reads_before(self, call_id: int) -> Set[str]:
        """State paths read on some path from the function entry up to and including the call."""
        scope = self._scope(call_id)
        reads = set(self.facts[call_id].uses)
        for node_id in nx.ancestors(scope, call_id):
            reads.update(self.facts[node_id].uses)
        return reads

    def writes_after(self, call_id: int) -> List[Tuple[int, str]]:
        """(node id, path) state writes in nodes reachable from the call, in node order."""
        scope = self._scope(call_id)
        writes = []
        for node_id in sorted(nx.descendants(scope, call_id)):
            if node_id == call_id:
                continue
            for path in self.facts[node_id].state_writes:
                writes.append((node_id, path))
        return writes

    def unused_bindings(self) -> List[Binding]:
        """`let` bindings that no later statement in their function reads."""
        unused = []
        for fact in self.facts.values():
            for binding in fact.bindings:
                if binding.name.startswith('_') or self._binding_is_read(fact, binding):
                    continue
                unused.append(binding)
        return sorted(unused, key=lambda b: (b.line, b.column, b.name))

    def _binding_is_read(self, fact: DataFlowFact, binding: Binding) -> bool:
        name = binding.name
        later = binding.statement_index + 1
        for uses, defined in zip(fact.statement_uses[later:], fact.statement_defines[later:]):
            if any(root_of(path) == name for path in uses):
                return True
            if name in defined:
                return False

        def is_this_binding(definition: Definition) -> bool:
            return (definition.variable == name and definition.node_id == fact.node_id
                    and definition.line == binding.line)

        # Shadowed again later in the same node
        if not any(is_this_binding(d) for d in fact.reach_out):
            return False

        if self._loops_back(fact.node_id):
            for uses in fact.statement_uses[:binding.statement_index + 1]:
                if any(root_of(path) == name for path in uses):
                    return True

        for node_id in nx.descendants(self._scope(fact.node_id), fact.node_id):
            other = self.facts[node_id]
            if (any(is_this_binding(d) for d in other.reach_in)
                    and any(root_of(path) == name for path in other.uses)):
                return True
        return False

    def _loops_back(self, node_id: int) -> bool:
        scope = self._scope(node_id)
        return any(nx.has_path(scope, successor, node_id) for successor in scope.successors(node_id))

class DataFlowAnalyzer:
    """Computes reaching definitions with a capped worklist."""

    def __init__(self, iteration_factor: int = 50):
        self.iteration_factor = iteration_factor

    def analyze(self, cfg: ControlFlowGraph) -> DataFlowResult:
        """
        Run the fixed-point iteration.

        Args:
            cfg (ControlFlowGraph): Graph to analyze; it is not modified

        Returns:
            DataFlowResult: Facts per node; `converged` is False when the cap was hit
        """
        facts = {node.id: self._node_facts(node) for node in cfg.iter_nodes()}

        cap = self.iteration_factor * max(1, cfg.node_count())
        worklist = deque(sorted(facts))
        queued = set(worklist)
        iterations = 0
        converged = True

        for fact in facts.values():
            fact.reach_out = fact.gen

        while worklist:
            if iterations >= cap:
                converged = False
                logger.warning(f"Data-flow analysis stopped after {iterations} iterations without converging")
                break
            node_id = worklist.popleft()
            queued.discard(node_id)
            iterations += 1

            fact = facts[node_id]
            if cfg.nodes[node_id].kind == NodeKind.ENTRY:
                reach_in = frozenset()
            else:
                reach_in = frozenset().union(*(facts[p].reach_out for p in cfg.predecessors(node_id)))
            reach_out = fact.gen | frozenset(d for d in reach_in if d.variable not in fact.defined)

            fact.reach_in = reach_in
            if reach_out != fact.reach_out:
                fact.reach_out = reach_out
                for successor in cfg.successors(node_id):
                    if successor not in queued:
                        worklist.append(successor)
                        queued.add(successor)

        logger.debug(f"Data-flow analysis finished in {iterations} iterations (converged={converged})")
        return DataFlowResult(cfg, facts, converged, iterations)

    @staticmethod
    def _node_facts(node) -> DataFlowFact:
        fact = DataFlowFact(node_id=node.id)
        last_definition: Dict[str, Definition] = {}

        for name in node.defines:
            last_definition[name] = Definition(name, node.id, node.line)

        for index, statement in enumerate(node.statements):
            effects = statement_effects(statement)
            fact.uses.update(effects.uses)
            fact.statement_uses.append(set(effects.uses))
            fact.statement_defines.append({name for name, _ in effects.defines})
            fact.state_writes.extend(effects.state_writes)
            for name, token in effects.defines:
                last_definition[name] = Definition(name, node.id, token.line)
                if effects.is_let:
                    fact.bindings.append(Binding(name, node.id, index, token.line, token.column))

        fact.gen = frozenset(last_definition.values())
        fact.defined = frozenset(last_definition)
        return fact
