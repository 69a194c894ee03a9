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
from abc import abstractmethod
from pathlib import Path
from typing import List, Dict, Any, Iterator, Optional

import networkx as nx

from core import Config, LanguageAnalyzer, CodeMetrics, Vulnerability
from language_modules.base_analyzer import (
    BaseSecurityRule, RegexSecurityRule, RuleMatch, RuleCategory, Severity, Confidence
)
from language_modules.rust.tokenizer import (
    Token, TokenType, TokenStream, Tokenizer, is_unterminated_string, mask_comments
)
from language_modules.rust.parser import Block, IfStmt, LoopStmt, MatchStmt, NestedBlock, Statement
from language_modules.rust.cfg_builder import (
    CFGNode, ControlFlowGraph, ControlFlowGraphBuilder, FunctionInfo, NodeKind
)
from language_modules.rust.dataflow import DataFlowAnalyzer, DataFlowResult, root_of, write_matches_read
from language_modules.rust.metrics import MetricsCalculator
from rules.contract_rules import get_contract_pattern
from rules.rule_engine import RuleEngine, RuleExecutionContext, RuleManager
from utils.file_utils import extract_code_snippet

logger = logging.getLogger(__name__)

GUARD_RE = re.compile(
    r'\b(?:lock|unlock|is_locked|reentrancy_guard|non_reentrant|ReentrancyGuard)\b|\blocked\s*=\s*true\b'
)
ACCESS_CHECK_RE = re.compile(
    r'\b(?:is_signer|Signer|signer|has_one|require_keys_eq!|require_keys_neq!|owner|authority)\b'
)
VALIDATION_MACROS = frozenset({
    'require!', 'require_eq!', 'require_neq!', 'require_gt!', 'require_gte!',
    'require_keys_eq!', 'require_keys_neq!', 'assert!', 'assert_eq!', 'assert_ne!'
})
VALIDATED_TYPE_RE = re.compile(
    r'^&?(?:mut\s*)?(?:u8|u16|u32|u64|u128|usize|i8|i16|i32|i64|i128|isize|String|str|'
    r'Vec<u8>|\[u8(?:;[^\]]*)?\])$'
)
SAFE_MATH_PREFIXES = ('checked_', 'saturating_', 'wrapping_', 'overflowing_')
ARITHMETIC_OPERATORS = frozenset({'+', '-', '*'})
COMPOUND_ARITHMETIC = frozenset({'+=', '-=', '*='})
EXPENSIVE_LOOP_CALLS = frozenset({'clone', 'to_string', 'serialize', 'deserialize', 'allocate', 'to_vec'})
ENTRY_POINT_RE = re.compile(r'#\[program\]|\bentrypoint!|\bprocess_instruction\b')

# -----------------------------------------------------------------------------
# Program structure helpers
# -----------------------------------------------------------------------------

def iter_statements(block: Block) -> Iterator[Statement]:
    """Every statement, condition, header and pattern in a block, in source order."""
    for item in block.statements:
        if isinstance(item, Statement):
            yield item
        elif isinstance(item, NestedBlock):
            yield from iter_statements(item.block)
        elif isinstance(item, IfStmt):
            yield item.condition
            yield from iter_statements(item.then_block)
            if isinstance(item.else_branch, IfStmt):
                yield from iter_statements(Block([item.else_branch]))
            elif isinstance(item.else_branch, Block):
                yield from iter_statements(item.else_branch)
        elif isinstance(item, MatchStmt):
            yield item.scrutinee
            for arm in item.arms:
                yield arm.pattern
                yield from iter_statements(arm.body)
        elif isinstance(item, LoopStmt):
            yield item.header
            yield from iter_statements(item.body)

def iter_loops(block: Block) -> Iterator[LoopStmt]:
    for item in block.statements:
        if isinstance(item, LoopStmt):
            yield item
            yield from iter_loops(item.body)
        elif isinstance(item, NestedBlock):
            yield from iter_loops(item.block)
        elif isinstance(item, IfStmt):
            yield from iter_loops(item.then_block)
            if item.else_branch is not None:
                yield from iter_loops(Block([item.else_branch]) if isinstance(item.else_branch, IfStmt)
                                      else item.else_branch)
        elif isinstance(item, MatchStmt):
            for arm in item.arms:
                yield from iter_loops(arm.body)

def _loop_can_exit(block: Block) -> bool:
    """Whether a `loop` body contains a break of its own or a return."""
    for item in block.statements:
        if isinstance(item, Statement):
            if item.kind in ('break', 'return') or 'return' in item.values:
                return True
        elif isinstance(item, LoopStmt):
            # A nested break only leaves the nested loop
            if any(s.kind == 'return' or 'return' in s.values for s in iter_statements(item.body)):
                return True
        elif isinstance(item, NestedBlock):
            if _loop_can_exit(item.block):
                return True
        elif isinstance(item, IfStmt):
            branches = [item.then_block]
            if isinstance(item.else_branch, IfStmt):
                branches.append(Block([item.else_branch]))
            elif isinstance(item.else_branch, Block):
                branches.append(item.else_branch)
            if any(_loop_can_exit(branch) for branch in branches):
                return True
        elif isinstance(item, MatchStmt):
            if any(_loop_can_exit(arm.body) for arm in item.arms):
                return True
    return False

def function_text(info: FunctionInfo) -> str:
    return '\n'.join(statement.text for statement in iter_statements(info.decl.body))

def is_guard(node: CFGNode) -> bool:
    return any(GUARD_RE.search(statement.text) for statement in node.statements)

# -----------------------------------------------------------------------------
# Rule base classes
# -----------------------------------------------------------------------------

class GraphSecurityRule(BaseSecurityRule):
    """
    Rule evaluated over the control-flow graph and data-flow facts.
    """

    uses_graph = True

    def check(self, content: str, **kwargs) -> List[RuleMatch]:
        cfg = kwargs.pop('cfg', None)
        dataflow = kwargs.pop('dataflow', None)
        if cfg is None:
            return []
        return self.check_graph(cfg, dataflow, content, **kwargs)

    @abstractmethod
    def check_graph(self, cfg: ControlFlowGraph, dataflow: Optional[DataFlowResult],
                    content: str, **kwargs) -> List[RuleMatch]:
        pass

class TokenSecurityRule(BaseSecurityRule):
    """Rule evaluated over the token list."""

    def check(self, content: str, **kwargs) -> List[RuleMatch]:
        return self.check_tokens(kwargs.get('tokens') or [], content)

    @abstractmethod
    def check_tokens(self, tokens: List[Token], content: str) -> List[RuleMatch]:
        pass

class LineRegexRule(RegexSecurityRule):
    """Regex rule reporting at most one match per line."""

    def check(self, content: str, **kwargs) -> List[RuleMatch]:
        matches = []
        seen_lines = set()
        for match in sorted(super().check(content, **kwargs), key=lambda m: (m.line_number, m.column_number)):
            if match.line_number in seen_lines:
                continue
            seen_lines.add(match.line_number)
            matches.append(match)
        return matches

# -----------------------------------------------------------------------------
# Syntax rules
# -----------------------------------------------------------------------------

class UnterminatedCommentRule(TokenSecurityRule):
    def __init__(self):
        super().__init__("UNTERMINATED_COMMENT", "Unterminated Block Comment",
                         "Unterminated block comment", Severity.ERROR, RuleCategory.SYNTAX)
        self.confidence = Confidence.HIGH

    def check_tokens(self, tokens: List[Token], content: str) -> List[RuleMatch]:
        pending = None
        for token in tokens:
            if token.type == TokenType.COMMENT_START and token.value == '/*':
                pending = token
            elif token.type == TokenType.COMMENT_END:
                pending = None
        if pending is None:
            return []
        return [self.create_match(pending.line, pending.column, length=2, matched_text='/*')]

class UnterminatedStringRule(TokenSecurityRule):
    def __init__(self):
        super().__init__("UNTERMINATED_STRING", "Unterminated String Literal",
                         "Unterminated string literal", Severity.ERROR, RuleCategory.SYNTAX)
        self.confidence = Confidence.HIGH

    def check_tokens(self, tokens: List[Token], content: str) -> List[RuleMatch]:
        return [
            self.create_match(token.line, token.column, length=len(token.value.split('\n')[0]))
            for token in tokens if is_unterminated_string(token)
        ]

class MismatchedDelimiterRule(TokenSecurityRule):
    PAIRS = {')': '(', ']': '[', '}': '{'}

    def __init__(self):
        super().__init__("MISMATCHED_DELIMITER", "Mismatched Delimiter",
                         "Mismatched delimiter", Severity.ERROR, RuleCategory.SYNTAX)
        self.confidence = Confidence.HIGH

    def check_tokens(self, tokens: List[Token], content: str) -> List[RuleMatch]:
        matches = []
        stack: List[Token] = []
        for token in tokens:
            if token.value in ('(', '[', '{') and token.type != TokenType.LITERAL:
                stack.append(token)
            elif token.value in self.PAIRS and token.type != TokenType.LITERAL and stack:
                opener = stack.pop()
                if opener.value != self.PAIRS[token.value]:
                    matches.append(self.create_match(
                        token.line, token.column, length=1, matched_text=token.value,
                        description=f"Mismatched delimiter: '{opener.value}' at line {opener.line} "
                                    f"closed by '{token.value}'"
                    ))
        return matches

class UnclosedBracketRule(TokenSecurityRule):
    def __init__(self):
        super().__init__("UNCLOSED_BRACKET", "Unclosed Square Bracket",
                         "Unclosed square bracket", Severity.ERROR, RuleCategory.SYNTAX)
        self.confidence = Confidence.HIGH

    def check_tokens(self, tokens: List[Token], content: str) -> List[RuleMatch]:
        open_brackets: List[Token] = []
        for token in tokens:
            if token.type != TokenType.OPERATOR:
                continue
            if token.value == '[':
                open_brackets.append(token)
            elif token.value == ']' and open_brackets:
                open_brackets.pop()
        if not open_brackets:
            return []
        first = open_brackets[0]
        return [self.create_match(first.line, first.column, length=1, matched_text='[',
                                  description=f"Unclosed square brackets: {len(open_brackets)}")]

class MissingEntryPointRule(BaseSecurityRule):
    def __init__(self):
        super().__init__("MISSING_ENTRY_POINT", "Missing Program Entry Point",
                         "No program entry point found (#[program], entrypoint! or process_instruction)",
                         Severity.WARNING, RuleCategory.SYNTAX)

    def check(self, content: str, **kwargs) -> List[RuleMatch]:
        text = kwargs.get('masked_content') or content
        if ENTRY_POINT_RE.search(text):
            return []
        return [self.create_match(1, 1)]

# -----------------------------------------------------------------------------
# Security rules
# -----------------------------------------------------------------------------

class UncheckedMathRule(GraphSecurityRule):
    """Arithmetic on non-literal operands without checked_/saturating_ helpers."""

    def __init__(self):
        super().__init__("UNCHECKED_MATH", "Unchecked Arithmetic",
                         "Unchecked arithmetic operation", Severity.WARNING, RuleCategory.SECURITY)

    def check_graph(self, cfg, dataflow, content, **kwargs) -> List[RuleMatch]:
        matches = []
        for node in cfg.iter_nodes():
            for statement in node.statements:
                match = self._check_statement(statement)
                if match:
                    matches.append(match)
        return matches

    def _check_statement(self, statement: Statement) -> Optional[RuleMatch]:
        tokens = statement.tokens
        values = statement.values
        if any(value.startswith(SAFE_MATH_PREFIXES) for value in values):
            return None

        for index, token in enumerate(tokens):
            if token.type != TokenType.OPERATOR:
                continue
            if token.value in COMPOUND_ARITHMETIC and index > 0:
                # Dotted or dereferenced targets live in account state
                to_state = tokens[0].value == '*' or any(t.value == '.' for t in tokens[:index])
                severity = Severity.ERROR if to_state else Severity.WARNING
                lhs = ''.join(t.value for t in tokens[:index])
                return self.create_match(
                    token.line, token.column, length=len(token.value), matched_text=token.value,
                    severity=severity,
                    description=f"Unchecked arithmetic '{token.value}' on '{lhs}'"
                )
            if token.value in ARITHMETIC_OPERATORS and self._is_binary(tokens, index):
                left, right = tokens[index - 1], tokens[index + 1]
                if left.type == TokenType.LITERAL and right.type == TokenType.LITERAL:
                    continue
                return self.create_match(
                    token.line, token.column, length=1, matched_text=token.value,
                    description=f"Unchecked arithmetic operation '{left.value} {token.value} {right.value}'"
                )
        return None

    @staticmethod
    def _is_binary(tokens: List[Token], index: int) -> bool:
        if index == 0 or index + 1 >= len(tokens):
            return False
        left = tokens[index - 1]
        right = tokens[index + 1]
        left_operand = (left.type in (TokenType.IDENTIFIER, TokenType.LITERAL)
                        or left.value in (')', ']', 'self'))
        right_operand = (right.type in (TokenType.IDENTIFIER, TokenType.LITERAL)
                         or right.value in ('(', 'self', '*', '&'))
        return left_operand and right_operand

class MissingAccessControlRule(GraphSecurityRule):
    """Public functions that write state or call out without any signer/owner check."""

    def __init__(self):
        super().__init__("MISSING_ACCESS_CONTROL", "Missing Access Control",
                         "Public function modifies state without access control",
                         Severity.ERROR, RuleCategory.SECURITY)

    def check_graph(self, cfg, dataflow, content, **kwargs) -> List[RuleMatch]:
        matches = []
        structs = {struct.name: struct for struct in cfg.structs}

        for info in cfg.functions:
            if not info.is_public:
                continue
            writes_state = dataflow is not None and any(dataflow.facts[n].state_writes for n in info.node_ids)
            calls_out = any(cfg.nodes[n].external_calls for n in info.node_ids)
            if not (writes_state or calls_out):
                continue
            if self._has_access_check(info, structs):
                continue
            action = "modifies state" if writes_state else "calls another program"
            matches.append(self.create_match(
                info.line, info.column, length=2,
                description=f"Public function '{info.name}' {action} without access control"
            ))
        return matches

    @staticmethod
    def _has_access_check(info: FunctionInfo, structs: Dict[str, Any]) -> bool:
        if any('access_control' in attribute or ACCESS_CHECK_RE.search(attribute)
               for attribute in info.attributes):
            return True
        if ACCESS_CHECK_RE.search(function_text(info)):
            return True
        if any(ACCESS_CHECK_RE.search(param.type_text) for param in info.params):
            return True
        context_struct = structs.get(info.decl.context_type or '')
        return context_struct is not None and bool(ACCESS_CHECK_RE.search(context_struct.body_text))

class ArbitraryJumpRule(RegexSecurityRule):
    def __init__(self):
        super().__init__(
            "ARBITRARY_JUMP", "Unsafe Code",
            "Unsafe block bypasses memory safety checks",
            Severity.CRITICAL, RuleCategory.SECURITY,
            patterns=[r'\bunsafe\s*\{', r'\basm!'],
        )
        self.confidence = Confidence.HIGH

class MissingValidationRule(GraphSecurityRule):
    """Integer, byte and string arguments of public functions used without a check."""

    def __init__(self):
        super().__init__("MISSING_VALIDATION", "Missing Input Validation",
                         "Parameter used without validation",
                         Severity.WARNING, RuleCategory.SECURITY, min_security_level='standard')

    def check_graph(self, cfg, dataflow, content, **kwargs) -> List[RuleMatch]:
        matches = []
        for info in cfg.functions:
            if not info.is_public:
                continue
            statements = list(iter_statements(info.decl.body))
            for param in info.params:
                if not VALIDATED_TYPE_RE.match(param.type_text.replace(' ', '')):
                    continue
                if not self._is_used(param.name, info, dataflow, statements):
                    continue
                if self._is_validated(param.name, statements):
                    continue
                matches.append(self.create_match(
                    param.line, param.column, length=len(param.name), matched_text=param.name,
                    description=f"Parameter '{param.name}' of '{info.name}' is used without validation"
                ))
        return matches

    @staticmethod
    def _is_used(name: str, info: FunctionInfo, dataflow: Optional[DataFlowResult],
                 statements: List[Statement]) -> bool:
        if dataflow is not None:
            return any(root_of(path) == name for node_id in info.node_ids
                       for path in dataflow.facts[node_id].uses)
        return any(name in statement.values for statement in statements)

    @staticmethod
    def _is_validated(name: str, statements: List[Statement]) -> bool:
        for statement in statements:
            values = statement.values
            if name not in values:
                continue
            if statement.kind == 'condition' or any(value in VALIDATION_MACROS for value in values):
                return True
        return False

class TimestampDependenceRule(LineRegexRule):
    def __init__(self):
        super().__init__(
            "TIMESTAMP_DEPENDENCE", "Timestamp Dependence",
            "Logic depends on the cluster clock",
            Severity.WARNING, RuleCategory.SECURITY,
            patterns=[r'\bClock::get\b', r'\bunix_timestamp\b', r'\bsysvar::clock\b'],
            min_security_level='standard'
        )

class WeakRandomnessRule(LineRegexRule):
    def __init__(self):
        super().__init__(
            "WEAK_RANDOMNESS", "Weak Randomness",
            "Predictable source of randomness",
            Severity.WARNING, RuleCategory.SECURITY,
            patterns=[r'\brecent_blockhashes\b', r'\bslot\s*\)?\s*%', r'\b(?:unix_)?timestamp\s*\)?\s*%'],
            min_security_level='high'
        )

class UnsafeCastingRule(LineRegexRule):
    def __init__(self):
        super().__init__(
            "UNSAFE_CASTING", "Truncating Cast",
            "Cast to a narrower integer type may truncate",
            Severity.WARNING, RuleCategory.SECURITY,
            patterns=[r'\bas\s+(?:u8|u16|u32|i8|i16|i32)\b'],
            min_security_level='high'
        )

# -----------------------------------------------------------------------------
# Reentrancy
# -----------------------------------------------------------------------------

class ReentrancyRule(GraphSecurityRule):
    """
    External call followed by a write to state that was read before the call.

    The search follows every edge from the call inside its function, never
    passes through a guard node and is capped at path_length_factor times
    the function's node count.
    """

    def __init__(self, path_length_factor: int = 2):
        super().__init__("REENTRANCY", "Reentrancy",
                         "State written after external call", Severity.CRITICAL, RuleCategory.REENTRANCY)
        self.path_length_factor = path_length_factor

    def check_graph(self, cfg, dataflow, content, **kwargs) -> List[RuleMatch]:
        if dataflow is None:
            return []
        config = kwargs.get('config')
        factor = config.get_reentrancy_path_factor() if config is not None else self.path_length_factor

        matches = []
        for call in cfg.iter_nodes(NodeKind.CALL_SITE):
            info = cfg.function_for(call.id)
            if call.dead or info is None:
                continue
            match = self._check_call(cfg, dataflow, call, info, factor)
            if match:
                matches.append(match)
        return matches

    def _check_call(self, cfg: ControlFlowGraph, dataflow: DataFlowResult, call: CFGNode,
                    info: FunctionInfo, factor: int) -> Optional[RuleMatch]:
        if any('access_control' in attribute for attribute in info.attributes):
            return None

        scope = cfg.function_subgraph(info)
        guards = {node_id for node_id in info.node_ids if is_guard(cfg.nodes[node_id])}
        if call.id in guards or guards & nx.ancestors(scope, call.id):
            return None

        reads = dataflow.reads_before(call.id)
        if not reads:
            return None

        view = nx.restricted_view(scope, guards, [])
        cutoff = factor * len(info.node_ids)
        distances = nx.single_source_shortest_path_length(view, call.id, cutoff=cutoff)

        # Nearest matching write on a guard-free path within the cap
        candidates = [
            (distances[node_id], node_id, order, written)
            for order, (node_id, written) in enumerate(dataflow.writes_after(call.id))
            if node_id in distances and any(write_matches_read(written, read) for read in reads)
        ]
        if not candidates:
            return None
        _, node_id, _, written = min(candidates)

        path = nx.shortest_path(view, call.id, node_id)
        branches = sum(1 for n in path[1:-1]
                       if cfg.nodes[n].kind in (NodeKind.BRANCH, NodeKind.LOOP_HEADER))
        write_node = cfg.nodes[node_id]
        return self.create_match(
            call.line, call.column,
            length=len(call.external_calls[0]),
            matched_text=call.external_calls[0],
            confidence=max(0.2, 0.95 - 0.15 * branches),
            description=f"State '{written}' is written at line {write_node.line} after external "
                        f"call '{call.external_calls[0]}' without a reentrancy guard",
            context={'write_line': write_node.line, 'branches': branches}
        )

# -----------------------------------------------------------------------------
# Data-flow rules
# -----------------------------------------------------------------------------

class DataflowConvergenceRule(GraphSecurityRule):
    def __init__(self):
        super().__init__("DATAFLOW_NOT_CONVERGED", "Data-flow Analysis Incomplete",
                         "data-flow analysis did not converge", Severity.WARNING, RuleCategory.DATAFLOW)

    def check_graph(self, cfg, dataflow, content, **kwargs) -> List[RuleMatch]:
        if dataflow is None or dataflow.converged:
            return []
        return [self.create_match(1, 1)]

class UnreachableCodeRule(GraphSecurityRule):
    def __init__(self):
        super().__init__("UNREACHABLE_CODE", "Unreachable Code",
                         "Unreachable code", Severity.WARNING, RuleCategory.DATAFLOW)
        self.confidence = Confidence.HIGH

    def check_graph(self, cfg, dataflow, content, **kwargs) -> List[RuleMatch]:
        matches = []
        for node in cfg.iter_nodes():
            if node.dead and node.statements:
                first = node.statements[0]
                where = f" in '{node.function}'" if node.function else ""
                matches.append(self.create_match(first.line, first.column,
                                                 description=f"Unreachable code{where}"))
        return matches

class UnusedAssignmentRule(GraphSecurityRule):
    def __init__(self):
        super().__init__("UNUSED_ASSIGNMENT", "Unused Assignment",
                         "Variable is assigned but never used", Severity.INFO, RuleCategory.DATAFLOW)

    def check_graph(self, cfg, dataflow, content, **kwargs) -> List[RuleMatch]:
        if dataflow is None:
            return []
        return [
            self.create_match(binding.line, binding.column, length=len(binding.name),
                              matched_text=binding.name,
                              description=f"Variable '{binding.name}' is assigned but never used")
            for binding in dataflow.unused_bindings()
            if not cfg.nodes[binding.node_id].dead
        ]

# -----------------------------------------------------------------------------
# Deep analysis rules
# -----------------------------------------------------------------------------

class LargeFunctionRule(GraphSecurityRule):
    def __init__(self, max_lines: int = 50):
        super().__init__("LARGE_FUNCTION", "Large Function",
                         "Function is too long", Severity.WARNING, RuleCategory.DEEP_ANALYSIS)
        self.max_lines = max_lines

    def check_graph(self, cfg, dataflow, content, **kwargs) -> List[RuleMatch]:
        config = kwargs.get('config')
        max_lines = config.get_max_function_lines() if config is not None else self.max_lines
        matches = []
        for info in cfg.functions:
            length = info.end_line - info.line + 1
            if length > max_lines:
                matches.append(self.create_match(
                    info.line, info.column,
                    description=f"Function '{info.name}' is {length} lines long (limit {max_lines})"
                ))
        return matches

class ExpensiveLoopOperationRule(GraphSecurityRule):
    def __init__(self):
        super().__init__("EXPENSIVE_LOOP_OPERATION", "Expensive Operation in Loop",
                         "Expensive operation inside a loop", Severity.WARNING, RuleCategory.DEEP_ANALYSIS)

    def check_graph(self, cfg, dataflow, content, **kwargs) -> List[RuleMatch]:
        matches = []
        for info in cfg.functions:
            for loop in iter_loops(info.decl.body):
                for statement in iter_statements(loop.body):
                    tokens = statement.tokens
                    for index, token in enumerate(tokens[1:-1], start=1):
                        if (token.value in EXPENSIVE_LOOP_CALLS and tokens[index - 1].value in ('.', '::')
                                and tokens[index + 1].value == '('):
                            matches.append(self.create_match(
                                token.line, token.column, length=len(token.value), matched_text=token.value,
                                description=f"Expensive operation '{token.value}' inside a loop"
                            ))
        return matches

class PotentialInfiniteLoopRule(GraphSecurityRule):
    def __init__(self):
        super().__init__("POTENTIAL_INFINITE_LOOP", "Potential Infinite Loop",
                         "Loop has no reachable exit", Severity.WARNING, RuleCategory.DEEP_ANALYSIS)

    def check_graph(self, cfg, dataflow, content, **kwargs) -> List[RuleMatch]:
        matches = []
        for info in cfg.functions:
            for loop in iter_loops(info.decl.body):
                header = loop.header
                if loop.kind == 'loop' and not _loop_can_exit(loop.body):
                    matches.append(self.create_match(header.line, header.column,
                                                     description="'loop' without break or return"))
                elif loop.kind == 'while' and header.values[1:] == ['true']:
                    matches.append(self.create_match(header.line, header.column,
                                                     description="'while true' loop"))
        return matches

# -----------------------------------------------------------------------------
# Compatibility rules
# -----------------------------------------------------------------------------

class DeprecatedFeatureRule(RegexSecurityRule):
    def __init__(self):
        super().__init__(
            "DEPRECATED_FEATURE", "Deprecated Feature",
            "Direct syscall usage is deprecated; use the solana_program wrappers",
            Severity.WARNING, RuleCategory.COMPATIBILITY,
            patterns=[r'\bsyscall\b', r'\bdeclare_id!']
        )

    def check(self, content: str, **kwargs) -> List[RuleMatch]:
        matches = super().check(content, **kwargs)
        for match in matches:
            if match.matched_text == 'declare_id!':
                match.severity = Severity.INFO
                match.description = ("declare_id! found; declare the program id in the style of your "
                                     "current framework version")
        return sorted(matches, key=lambda m: (m.line_number, m.column_number))

# -----------------------------------------------------------------------------
# Analyzer
# -----------------------------------------------------------------------------

class RustContractAnalyzer(LanguageAnalyzer):
    """
    Rust/Solana contract analyzer.

    Owns the tokenizer, graph builder, data-flow solver, metrics calculator
    and the rule engine. Holds no per-analysis state.
    """

    LANGUAGE = 'rust'

    @property
    def language_name(self) -> str:
        return self.LANGUAGE

    @property
    def file_extensions(self) -> List[str]:
        return self.config.get_file_extensions(self.LANGUAGE) or ['.rs']

    def __init__(self, config: Optional[Config] = None):
        """Initialize the Rust contract analyzer."""
        self.config = config or Config()
        self.tokenizer = Tokenizer()
        self.cfg_builder = ControlFlowGraphBuilder()
        self.dataflow_analyzer = DataFlowAnalyzer(self.config.get_dataflow_iteration_factor())
        time_divisor, bugs_divisor = self.config.get_halstead_divisors()
        self.metrics_calculator = MetricsCalculator(
            time_divisor, bugs_divisor,
            thresholds=self.config.get_metric_thresholds(),
            penalties=self.config.get_metric_penalties()
        )
        self.rule_manager = RuleManager()
        self.rule_engine = RuleEngine(self.rule_manager, max_workers=self.config.get_rule_workers())
        self._initialize_rules()

    def _initialize_rules(self) -> None:
        """Register every rule, grouped by pipeline stage."""
        rules: List[BaseSecurityRule] = [
            # Syntax
            UnterminatedCommentRule(),
            UnterminatedStringRule(),
            MismatchedDelimiterRule(),
            UnclosedBracketRule(),
            MissingEntryPointRule(),

            # Security
            UncheckedMathRule(),
            MissingAccessControlRule(),
            ArbitraryJumpRule(),
            MissingValidationRule(),
            TimestampDependenceRule(),
            WeakRandomnessRule(),
            UnsafeCastingRule(),

            ReentrancyRule(self.config.get_reentrancy_path_factor()),

            # Data flow
            DataflowConvergenceRule(),
            UnreachableCodeRule(),
            UnusedAssignmentRule(),

            # Deep analysis
            LargeFunctionRule(self.config.get_max_function_lines()),
            ExpensiveLoopOperationRule(),
            PotentialInfiniteLoopRule(),

            # Compatibility
            DeprecatedFeatureRule()
        ]
        for rule in rules:
            self.add_rule(rule)
        logger.debug(f"Initialized {len(self.rule_manager.rules)} Rust contract rules")

    def add_rule(self, rule: BaseSecurityRule) -> None:
        if not self.rule_manager.add_rule(rule):
            raise ValueError(f"Invalid rule definition: {rule.rule_id}")

    def get_enabled_rules(self) -> List[BaseSecurityRule]:
        return self.rule_manager.get_enabled_rules()

    def get_supported_rules(self) -> List[str]:
        return list(self.rule_manager.rules.keys())

    def can_analyze(self, file_path: Path) -> bool:
        return (self.config.is_language_enabled(self.LANGUAGE) and
                super().can_analyze(file_path))

    # Pipeline stages

    def tokenize(self, source: str) -> TokenStream:
        return self.tokenizer.tokenize(source)

    def build_cfg(self, tokens) -> ControlFlowGraph:
        return self.cfg_builder.build(tokens)

    def analyze_dataflow(self, cfg: ControlFlowGraph) -> DataFlowResult:
        return self.dataflow_analyzer.analyze(cfg)

    def calculate_metrics(self, source: str, tokens, cfg: ControlFlowGraph) -> CodeMetrics:
        return self.metrics_calculator.calculate(source, tokens, cfg)

    def run_checks(self, category: str, context: RuleExecutionContext) -> List[Vulnerability]:
        """
        Run the enabled rules of one stage and convert their matches.

        Security rules are additionally filtered by the requested security
        level. A failing rule raises RuleExecutionError.
        """
        if context.masked_content is None:
            context.masked_content = mask_comments(context.content, context.tokens)

        security_level = context.security_level if category == RuleCategory.SECURITY.value else None
        results = self.rule_engine.execute_rules_by_category(context, category, security_level)
        self.rule_engine.raise_for_failures(results)

        findings = []
        for result in results:
            for match in result.matches:
                findings.append(self._create_vulnerability_from_match(match, context.content))

        if findings:
            logger.info(f"{category} checks produced {len(findings)} findings")
        return findings

    def _create_vulnerability_from_match(self, match: RuleMatch, content: str) -> Vulnerability:
        """Convert a RuleMatch to a Vulnerability enriched from the catalogue."""
        vulnerability = Vulnerability(
            code=match.rule_id,
            message=match.description,
            severity=match.severity.value,
            line_number=match.line_number,
            column_number=match.column_number,
            length=match.length,
            remediation=match.remediation,
            confidence=round(match.confidence, 2),
            title=match.title
        )
        vulnerability.code_snippet = extract_code_snippet(content, match.line_number)
        vulnerability.enrich_with_pattern(get_contract_pattern(match.rule_id))
        return vulnerability
