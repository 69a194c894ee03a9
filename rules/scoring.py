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
from dataclasses import dataclass, field
from typing import Dict, Iterable, Optional

logger = logging.getLogger(__name__)

DEFAULT_SEVERITY_WEIGHTS = {
    'critical': 20,
    'error': 10,
    'warning': 5,
    'info': 2
}

RISK_LEVELS = ['low', 'moderate', 'high', 'critical']

@dataclass
class SecurityAssessment:
    """Aggregated score and risk classification."""
    score: float
    risk_level: str
    counts: Dict[str, int] = field(default_factory=dict)

class SecurityScorer:
    """
    Combines security findings into a bounded score and a risk level.

    The score starts at 100, loses a severity-weighted penalty per finding
    and is clamped to [0, 100].
    """

    def __init__(self, severity_weights: Optional[Dict[str, float]] = None):
        self.severity_weights = {**DEFAULT_SEVERITY_WEIGHTS, **(severity_weights or {})}

    def assess(self, findings: Iterable) -> SecurityAssessment:
        counts = {severity: 0 for severity in DEFAULT_SEVERITY_WEIGHTS}
        penalty = 0
        for finding in findings:
            counts[finding.severity] = counts.get(finding.severity, 0) + 1
            penalty += self.severity_weights.get(finding.severity, 0)

        score = min(100, max(0, 100 - penalty))
        return SecurityAssessment(score=score, risk_level=self.risk_level(counts), counts=counts)

    def score(self, findings: Iterable) -> float:
        return self.assess(findings).score

    @staticmethod
    def risk_level(counts: Dict[str, int]) -> str:
        if counts.get('critical'):
            return 'critical'
        if counts.get('error'):
            return 'high'
        if any(counts.values()):
            return 'moderate'
        return 'low'
