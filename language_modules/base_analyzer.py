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
from abc import ABC, abstractmethod
from typing import List, Dict, Any, Optional
from dataclasses import dataclass
from enum import Enum

logger = logging.getLogger(__name__)

class RuleCategory(Enum):
    """Pipeline stage a rule belongs to."""
    SYNTAX = "syntax"
    SECURITY = "security"
    REENTRANCY = "reentrancy"
    DATAFLOW = "dataflow"
    DEEP_ANALYSIS = "deep_analysis"
    COMPATIBILITY = "compatibility"

class Severity(Enum):
    """Finding severity levels."""
    CRITICAL = "critical"
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"

    @property
    def is_error(self) -> bool:
        """Critical and error findings invalidate a contract."""
        return self in (Severity.CRITICAL, Severity.ERROR)

class Confidence(Enum):
    """Confidence levels for rule detection."""
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def score(self) -> float:
        return {'high': 0.9, 'medium': 0.6, 'low': 0.3}[self.value]

SECURITY_LEVELS = ['basic', 'standard', 'high']

@dataclass
class RuleMatch:
    """
    Represents a match found by a contract rule.

    Contains all information needed to create a Vulnerability object,
    including location, context, and metadata about the match.
    """
    rule_id: str
    title: str
    description: str
    severity: Severity
    confidence: float
    category: RuleCategory
    line_number: int
    column_number: int = 0
    length: Optional[int] = None
    matched_text: str = ""
    context: Dict[str, Any] = None
    remediation: str = ""

    def __post_init__(self):
        if self.context is None:
            self.context = {}

class BaseSecurityRule(ABC):
    """
    Abstract base class for contract detection rules.

    Each rule represents a specific finding producer. Rules receive the
    source text together with the token stream, control-flow graph and
    data-flow facts of one analysis run and never mutate them.
    """

    def __init__(self, rule_id: str, title: str, description: str,
                 severity: Severity, category: RuleCategory,
                 min_security_level: str = 'basic'):
        self.rule_id = rule_id
        self.title = title
        self.description = description
        self.severity = severity
        self.category = category
        self.min_security_level = min_security_level
        self.enabled = True
        self.confidence = Confidence.MEDIUM

    @abstractmethod
    def check(self, content: str, **kwargs) -> List[RuleMatch]:
        """
        Check source code for findings matching this rule.

        Args:
            content (str): Source code content to analyze
            **kwargs: Analysis context (tokens, cfg, dataflow, config, masked_content)

        Returns:
            list: List of RuleMatch objects for found issues
        """
        pass

    def is_enabled(self) -> bool:
        """Check if this rule is enabled."""
        return self.enabled

    def set_enabled(self, enabled: bool) -> None:
        """Enable or disable this rule."""
        self.enabled = enabled

    def applies_to_level(self, security_level: str) -> bool:
        """Check whether the rule runs at the given security level."""
        return SECURITY_LEVELS.index(self.min_security_level) <= SECURITY_LEVELS.index(security_level)

    def create_match(self, line_number: int, column_number: int, description: str = "",
                     severity: Optional[Severity] = None, confidence: Optional[float] = None,
                     length: Optional[int] = None, matched_text: str = "",
                     context: Optional[Dict[str, Any]] = None) -> RuleMatch:
        """Build a RuleMatch carrying this rule's metadata."""
        return RuleMatch(
            rule_id=self.rule_id,
            title=self.title,
            description=description or self.description,
            severity=severity or self.severity,
            confidence=self.confidence.score if confidence is None else confidence,
            category=self.category,
            line_number=line_number,
            column_number=column_number,
            length=length,
            matched_text=matched_text,
            context=context
        )

class RegexSecurityRule(BaseSecurityRule):
    """
    Contract rule based on regular expression patterns.

    Patterns run over the comment-masked source so that commented-out code
    and documentation never trigger a finding.
    """

    def __init__(self, rule_id: str, title: str, description: str,
                 severity: Severity, category: RuleCategory,
                 patterns: List[str], flags: int = re.MULTILINE,
                 min_security_level: str = 'basic'):
        super().__init__(rule_id, title, description, severity, category, min_security_level)
        self.patterns = [re.compile(pattern, flags) for pattern in patterns]
        self.flags = flags

    def check(self, content: str, **kwargs) -> List[RuleMatch]:
        """
        Check content using regex patterns.

        Args:
            content (str): Source code content
            **kwargs: Analysis context, 'masked_content' is preferred when present

        Returns:
            list: List of RuleMatch objects
        """
        matches = []
        text = kwargs.get('masked_content') or content

        for pattern in self.patterns:
            for match in pattern.finditer(text):
                # Calculate line and column numbers (1-based)
                line_start = text.count('\n', 0, match.start()) + 1
                col_start = match.start() - text.rfind('\n', 0, match.start())

                matched_text = match.group(0)

                matches.append(self.create_match(
                    line_number=line_start,
                    column_number=col_start,
                    length=len(matched_text),
                    matched_text=matched_text,
                    context={'pattern': pattern.pattern}
                ))

        return matches
