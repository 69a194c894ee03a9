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

import logging
from typing import Dict, List, Optional

from core import CodeMetrics, Config, Suggestion, Vulnerability
from rules.contract_rules import get_recommendation

logger = logging.getLogger(__name__)

# (threshold key, category, message, recommendation)
METRIC_SUGGESTIONS = [
    ('cyclomatic', 'performance', "High cyclomatic complexity detected",
     "Consider breaking down complex functions into smaller, more manageable pieces"),
    ('cognitive', 'performance', "High cognitive complexity detected",
     "Reduce nesting by returning early and extracting nested branches into helper functions"),
    ('documentation_coverage', 'style', "Low documentation coverage",
     "Add documentation to improve code maintainability"),
    ('documentation_quality', 'style', "Poor documentation quality",
     "Describe arguments, return values and examples in doc comments"),
    ('sloc', 'style', "File is too large",
     "Split the program into modules by instruction or account type")
]

class SuggestionGenerator:
    """
    Maps findings and metric breaches to prioritized suggestions.

    Output order is fixed: errors in input order, then metric suggestions,
    then warnings in input order.
    """

    def __init__(self, thresholds: Optional[Dict[str, float]] = None):
        self.thresholds = {**Config.DEFAULT_CONFIG['metrics']['thresholds'], **(thresholds or {})}

    def generate(self, errors: List[Vulnerability], warnings: List[Vulnerability],
                 metrics: Optional[CodeMetrics] = None) -> List[Suggestion]:
        suggestions = []

        for error in errors:
            suggestions.append(Suggestion(
                category='security',
                priority='high',
                message=f"Critical issue: {error.message}",
                recommendation=get_recommendation(error.code),
                line=error.line_number
            ))

        if metrics is not None:
            suggestions.extend(self._metric_suggestions(metrics))

        for warning in warnings:
            suggestions.append(Suggestion(
                category='compatibility',
                priority='low',
                message=warning.message,
                recommendation=get_recommendation(warning.code),
                line=warning.line_number
            ))

        logger.debug(f"Generated {len(suggestions)} suggestions")
        return suggestions

    def _metric_suggestions(self, metrics: CodeMetrics) -> List[Suggestion]:
        breached = {
            'cyclomatic': metrics.complexity.cyclomatic > self.thresholds['cyclomatic'],
            'cognitive': metrics.complexity.cognitive > self.thresholds['cognitive'],
            'documentation_coverage': metrics.documentation.coverage < self.thresholds['documentation_coverage'],
            'documentation_quality': metrics.documentation.quality < self.thresholds['documentation_quality'],
            'sloc': metrics.size.sloc > self.thresholds['sloc']
        }
        return [
            Suggestion(category=category, priority='medium', message=message, recommendation=recommendation)
            for key, category, message, recommendation in METRIC_SUGGESTIONS
            if breached[key]
        ]
