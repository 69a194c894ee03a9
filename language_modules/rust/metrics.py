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
import math
import logging
from typing import Dict, List, Optional, Sequence

from core import (
    CodeMetrics, ComplexityMetrics, Config, DocumentationMetrics, HalsteadMetrics,
    MaintainabilityMetrics, SizeMetrics
)
from language_modules.rust.cfg_builder import ControlFlowGraph, NodeKind
from language_modules.rust.tokenizer import Token, TokenType, mask_comments

logger = logging.getLogger(__name__)

OPERATOR_TYPES = frozenset({
    TokenType.KEYWORD, TokenType.OPERATOR, TokenType.BRACE_OPEN, TokenType.BRACE_CLOSE,
    TokenType.PAREN_OPEN, TokenType.PAREN_CLOSE
})
OPERAND_TYPES = frozenset({TokenType.IDENTIFIER, TokenType.LITERAL})
LOGICAL_OPERATORS = frozenset({'&&', '||'})

DEFAULT_THRESHOLDS = Config.DEFAULT_CONFIG['metrics']['thresholds']
DEFAULT_PENALTIES = Config.DEFAULT_CONFIG['metrics']['penalties']

_FUNCTION_RE = re.compile(r'\bfn\s+[A-Za-z_]\w*\s*(?:<[^>{]*>\s*)?\(')
_STRUCT_RE = re.compile(r'\bstruct\s+[A-Za-z_]\w*')
_FUNCTION_LINE_RE = re.compile(
    r'^\s*(?:pub(?:\s*\([^)]*\))?\s+)?(?:(?:const|async|unsafe|default)\s+)*'
    r'(?:extern\s+(?:"[^"]*"\s+)?)?fn\s+[A-Za-z_]\w*'
)

class MetricsCalculator:
    """Computes complexity, size, documentation and maintainability metrics."""

    def __init__(self, time_divisor: float = 18, bugs_divisor: float = 3000,
                 thresholds: Optional[Dict[str, float]] = None,
                 penalties: Optional[Dict[str, float]] = None):
        self.time_divisor = time_divisor
        self.bugs_divisor = bugs_divisor
        self.thresholds = {**DEFAULT_THRESHOLDS, **(thresholds or {})}
        self.penalties = {**DEFAULT_PENALTIES, **(penalties or {})}

    def calculate(self, source: str, tokens: Sequence[Token], cfg: ControlFlowGraph) -> CodeMetrics:
        """
        Calculate every metric for one contract.

        Args:
            source (str): Contract source
            tokens: Token sequence of the source
            cfg (ControlFlowGraph): Graph built from the tokens

        Returns:
            CodeMetrics: Complete metrics including the maintainability score
        """
        tokens = list(tokens)
        metrics = CodeMetrics(
            complexity=ComplexityMetrics(
                cyclomatic=self.cyclomatic_complexity(cfg),
                cognitive=self.cognitive_complexity(cfg),
                halstead=self.halstead(tokens)
            ),
            size=self.size(source, tokens),
            documentation=self.documentation(source)
        )
        metrics.maintainability = self.maintainability(metrics)
        logger.debug(f"Metrics: cyclomatic={metrics.complexity.cyclomatic}, "
                     f"cognitive={metrics.complexity.cognitive}, "
                     f"maintainability={metrics.maintainability.score}")
        return metrics

    @staticmethod
    def cyclomatic_complexity(cfg: ControlFlowGraph) -> int:
        """McCabe complexity E - N + 2P."""
        return cfg.edge_count() - cfg.node_count() + 2 * cfg.connected_components()

    @staticmethod
    def cognitive_complexity(cfg: ControlFlowGraph) -> int:
        """
        Depth-weighted complexity.

        Every branch or loop header adds one plus its nesting depth and every
        `&&`/`||` adds one. Nodes are visited once; nodes unreachable from the
        entry are walked as extra roots.
        """
        total = 0
        visited = set()
        roots = ([cfg.entry_id] if cfg.entry_id is not None else []) + sorted(cfg.nodes)

        for root in roots:
            stack = [root]
            while stack:
                node_id = stack.pop()
                if node_id in visited:
                    continue
                visited.add(node_id)
                node = cfg.nodes[node_id]
                if node.kind in (NodeKind.BRANCH, NodeKind.LOOP_HEADER):
                    total += 1 + node.depth
                for statement in node.statements:
                    total += sum(1 for value in statement.values if value in LOGICAL_OPERATORS)
                stack.extend(reversed(cfg.successors(node_id)))
        return total

    def halstead(self, tokens: Sequence[Token]) -> HalsteadMetrics:
        operators = [token.value for token in tokens if token.type in OPERATOR_TYPES]
        operands = [token.value for token in tokens if token.type in OPERAND_TYPES]

        n1, n2 = len(set(operators)), len(set(operands))
        total_operators, total_operands = len(operators), len(operands)
        vocabulary = n1 + n2
        length = total_operators + total_operands

        volume = length * math.log2(vocabulary) if vocabulary > 0 else 0.0
        difficulty = (n1 / 2) * (total_operands / n2) if n2 > 0 else 0.0
        effort = difficulty * volume
        return HalsteadMetrics(
            volume=volume,
            difficulty=difficulty,
            effort=effort,
            time=effort / self.time_divisor,
            bugs=volume / self.bugs_divisor
        )

    @staticmethod
    def size(source: str, tokens: Sequence[Token]) -> SizeMetrics:
        lines = source.split('\n')
        stripped = [line.strip() for line in lines]
        code = mask_comments(source, tokens)
        return SizeMetrics(
            loc=len(lines),
            sloc=len([line for line in stripped if line and not line.startswith('//')]),
            comments=len([line for line in stripped if line.startswith('//') or line.startswith('/*')]),
            functions=len(_FUNCTION_RE.findall(code)),
            structs=len(_STRUCT_RE.findall(code))
        )

    @staticmethod
    def documentation(source: str) -> DocumentationMetrics:
        lines = [line.strip() for line in source.split('\n')]

        function_lines = [index for index, line in enumerate(lines) if _FUNCTION_LINE_RE.match(line)]
        documented = 0
        for index in function_lines:
            above = index - 1
            while above >= 0 and lines[above].startswith('#'):
                above -= 1
            if above >= 0 and (lines[above].startswith('///') or lines[above].endswith('*/')):
                documented += 1
        coverage = documented / len(function_lines) if function_lines else 1.0

        blocks: List[str] = []
        current: List[str] = []
        for line in lines + ['']:
            if line.startswith('///'):
                current.append(line[3:].strip())
            elif current:
                blocks.append(' '.join(current))
                current = []
        quality = sum(_doc_block_quality(block) for block in blocks) / len(blocks) if blocks else 0.0

        return DocumentationMetrics(coverage=coverage, quality=quality)

    def maintainability(self, metrics: CodeMetrics) -> MaintainabilityMetrics:
        """
        Start at 100 and subtract a fixed penalty per breached threshold.

        The displayed score is clamped at 0; each penalty adds an issue string.
        """
        thresholds = self.thresholds
        penalties = self.penalties
        score = 100
        issues = []

        if metrics.complexity.cyclomatic > thresholds['cyclomatic']:
            score -= penalties['cyclomatic']
            issues.append("High cyclomatic complexity")
        if metrics.complexity.cognitive > thresholds['cognitive']:
            score -= penalties['cognitive']
            issues.append("High cognitive complexity")
        if metrics.documentation.coverage < thresholds['documentation_coverage']:
            score -= penalties['documentation_coverage']
            issues.append("Insufficient documentation coverage")
        if metrics.documentation.quality < thresholds['documentation_quality']:
            score -= penalties['documentation_quality']
            issues.append("Poor documentation quality")
        if metrics.size.sloc > thresholds['sloc']:
            score -= penalties['sloc']
            issues.append("File is too large")

        return MaintainabilityMetrics(score=max(0, score), issues=issues)

def _doc_block_quality(text: str) -> float:
    score = 0.0
    if '@param' in text or '# Arguments' in text:
        score += 0.3
    if '@return' in text or '# Returns' in text:
        score += 0.3
    if len(text) > 50:
        score += 0.2
    if '@example' in text or '# Examples' in text:
        score += 0.2
    return score
