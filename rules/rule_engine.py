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
import time
from typing import List, Dict, Any, Optional, Callable
from dataclasses import dataclass, field
from enum import Enum
from concurrent.futures import ThreadPoolExecutor

logger = logging.getLogger(__name__)

class RuleExecutionStatus(Enum):
    """Status of rule execution."""
    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"

class RuleType(Enum):
    """Types of contract rules."""
    REGEX = "regex"
    TOKEN = "token"
    GRAPH = "graph"

class RuleExecutionError(Exception):
    """Raised when a rule fails while analyzing a contract."""

    def __init__(self, rule_id: str, cause: Optional[BaseException] = None):
        super().__init__(f"Rule {rule_id} failed: {cause}")
        self.rule_id = rule_id
        self.cause = cause

@dataclass
class RuleExecutionContext:
    """
    Context information for rule execution.

    Holds the source text together with the token list, control-flow graph
    and data-flow facts of one analysis run. Rules read the context and
    never modify the graph or the facts.
    """
    content: str
    language: str
    tokens: List[Any] = field(default_factory=list)
    cfg: Any = None
    dataflow: Any = None
    options: Any = None
    config: Any = None
    masked_content: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def get_lines(self) -> List[str]:
        """Get content split into lines."""
        return self.content.splitlines()

    def get_line(self, line_number: int) -> Optional[str]:
        """Get a specific line by number (1-based)."""
        lines = self.get_lines()
        if 1 <= line_number <= len(lines):
            return lines[line_number - 1]
        return None

    @property
    def security_level(self) -> str:
        return getattr(self.options, 'security_level', 'standard')

@dataclass
class RuleExecutionResult:
    """
    Result of executing a contract rule.

    Contains the matches found, execution metadata, and the exception
    raised by the rule when it failed.
    """
    rule_id: str
    status: RuleExecutionStatus
    matches: List[Any] = field(default_factory=list)
    execution_time: float = 0.0
    error_message: Optional[str] = None
    error: Optional[BaseException] = None
    warnings: List[str] = field(default_factory=list)

    @property
    def has_matches(self) -> bool:
        """Check if any matches were found."""
        return len(self.matches) > 0

    @property
    def match_count(self) -> int:
        """Get number of matches found."""
        return len(self.matches)

    @property
    def is_successful(self) -> bool:
        """Check if rule execution was successful."""
        return self.status == RuleExecutionStatus.SUCCESS

class RuleValidator:
    """
    Validates contract rule definitions.

    Ensures rules carry an identifier, a known severity, a pipeline category
    and a valid minimum security level.
    """

    REQUIRED_FIELDS = {
        'rule_id', 'title', 'description', 'severity', 'category'
    }

    VALID_SEVERITIES = {'critical', 'error', 'warning', 'info'}
    VALID_CATEGORIES = {'syntax', 'security', 'reentrancy', 'dataflow', 'deep_analysis', 'compatibility'}
    VALID_SECURITY_LEVELS = {'basic', 'standard', 'high'}

    def __init__(self):
        self.validation_errors = []
        self.validation_warnings = []

    def validate_rule(self, rule: Any) -> bool:
        """
        Validate a rule definition.

        Args:
            rule: Rule object to validate

        Returns:
            bool: True if rule is valid
        """
        self.validation_errors.clear()
        self.validation_warnings.clear()

        self._check_required_fields(rule)
        self._validate_rule_id(rule)
        self._validate_severity(rule)
        self._validate_category(rule)
        self._validate_security_level(rule)
        self._validate_rule_specific(rule)

        return len(self.validation_errors) == 0

    def _check_required_fields(self, rule: Any) -> None:
        """Check that all required fields are present."""
        for name in sorted(self.REQUIRED_FIELDS):
            if getattr(rule, name, None) is None:
                self.validation_errors.append(f"Missing required field: {name}")

    def _validate_rule_id(self, rule: Any) -> None:
        """Validate rule ID format."""
        rule_id = getattr(rule, 'rule_id', None)
        if rule_id is None:
            return
        if not isinstance(rule_id, str) or not rule_id.strip():
            self.validation_errors.append("Rule ID must be a non-empty string")
        elif len(rule_id) > 50:
            self.validation_errors.append("Rule ID must be 50 characters or less")
        elif not rule_id.replace('_', '').isalnum() or rule_id != rule_id.upper():
            self.validation_warnings.append("Rule ID should be an upper-case code such as UNCHECKED_MATH")

    def _validate_severity(self, rule: Any) -> None:
        severity = getattr(getattr(rule, 'severity', None), 'value', getattr(rule, 'severity', None))
        if severity is not None and severity not in self.VALID_SEVERITIES:
            self.validation_errors.append(f"Invalid severity: {severity}. Must be one of {sorted(self.VALID_SEVERITIES)}")

    def _validate_category(self, rule: Any) -> None:
        category = getattr(getattr(rule, 'category', None), 'value', getattr(rule, 'category', None))
        if category is not None and category not in self.VALID_CATEGORIES:
            self.validation_errors.append(f"Invalid category: {category}. Must be one of {sorted(self.VALID_CATEGORIES)}")

    def _validate_security_level(self, rule: Any) -> None:
        level = getattr(rule, 'min_security_level', 'basic')
        if level not in self.VALID_SECURITY_LEVELS:
            self.validation_errors.append(f"Invalid security level: {level}")

    def _validate_rule_specific(self, rule: Any) -> None:
        """Validate rule-specific requirements."""
        if hasattr(rule, 'patterns') and not rule.patterns:
            self.validation_errors.append("Regex rules must have a non-empty patterns list")
        if not callable(getattr(rule, 'check', None)):
            self.validation_errors.append("Rules must implement check()")

    def get_validation_report(self) -> Dict[str, List[str]]:
        """Get validation errors and warnings."""
        return {
            'errors': self.validation_errors.copy(),
            'warnings': self.validation_warnings.copy()
        }

class RuleManager:
    """
    Manages collections of contract rules.

    Keeps rules in registration order and indexes them by pipeline
    category and rule type.
    """

    def __init__(self):
        self.rules: Dict[str, Any] = {}
        self.rules_by_category: Dict[str, List[Any]] = {}
        self.rules_by_type: Dict[RuleType, List[Any]] = {rule_type: [] for rule_type in RuleType}
        self.validator = RuleValidator()

    def add_rule(self, rule: Any) -> bool:
        """
        Add a rule to the manager.

        Args:
            rule: Rule to add

        Returns:
            bool: True if rule was added successfully
        """
        if not self.validator.validate_rule(rule):
            validation_report = self.validator.get_validation_report()
            logger.error(f"Rule validation failed for {getattr(rule, 'rule_id', 'unknown')}: {validation_report['errors']}")
            return False

        rule_id = rule.rule_id
        if rule_id in self.rules:
            logger.warning(f"Rule {rule_id} already exists, replacing...")
            self.remove_rule(rule_id)

        self.rules[rule_id] = rule

        category = rule.category.value
        self.rules_by_category.setdefault(category, []).append(rule)

        rule_type = self._determine_rule_type(rule)
        self.rules_by_type[rule_type].append(rule)

        logger.debug(f"Added rule: {rule_id} ({category}, {rule_type.value})")
        return True

    def remove_rule(self, rule_id: str) -> bool:
        """Remove a rule by ID."""
        if rule_id not in self.rules:
            return False

        rule = self.rules.pop(rule_id)
        category_rules = self.rules_by_category.get(rule.category.value, [])
        if rule in category_rules:
            category_rules.remove(rule)
        type_rules = self.rules_by_type[self._determine_rule_type(rule)]
        if rule in type_rules:
            type_rules.remove(rule)

        logger.debug(f"Removed rule: {rule_id}")
        return True

    def get_rule(self, rule_id: str) -> Optional[Any]:
        """Get a rule by ID."""
        return self.rules.get(rule_id)

    def get_rules_by_category(self, category: str) -> List[Any]:
        """Get all rules for a pipeline category."""
        return self.rules_by_category.get(category, []).copy()

    def get_rules_by_type(self, rule_type: RuleType) -> List[Any]:
        return self.rules_by_type[rule_type].copy()

    def get_enabled_rules(self) -> List[Any]:
        """Get all enabled rules."""
        return [rule for rule in self.rules.values() if rule.is_enabled()]

    def disable_rule(self, rule_id: str) -> bool:
        rule = self.get_rule(rule_id)
        if rule:
            rule.set_enabled(False)
            return True
        return False

    @staticmethod
    def _determine_rule_type(rule: Any) -> RuleType:
        """Determine the type of a rule based on its characteristics."""
        if hasattr(rule, 'patterns'):
            return RuleType.REGEX
        if getattr(rule, 'uses_graph', False):
            return RuleType.GRAPH
        return RuleType.TOKEN

class RuleEngine:
    """
    Core rule processing engine.

    Executes rules against one analysis context and returns their results
    in registration order. Rules may run on a thread pool since none of
    them mutate the context.
    """

    def __init__(self, rule_manager: Optional[RuleManager] = None, max_workers: int = 1):
        self.rule_manager = rule_manager or RuleManager()
        self.max_workers = max_workers
        self.max_matches_per_rule = 1000

    def execute_rules(self, context: RuleExecutionContext,
                      rule_filter: Optional[Callable[[Any], bool]] = None) -> List[RuleExecutionResult]:
        """
        Execute all applicable rules against the given context.

        Args:
            context (RuleExecutionContext): Execution context
            rule_filter (callable, optional): Function to filter which rules to execute

        Returns:
            list: List of RuleExecutionResult objects
        """
        enabled_rules = self.rule_manager.get_enabled_rules()
        if rule_filter:
            enabled_rules = [rule for rule in enabled_rules if rule_filter(rule)]
        return self._run(enabled_rules, context)

    def execute_rules_by_category(self, context: RuleExecutionContext, category: str,
                                  security_level: Optional[str] = None) -> List[RuleExecutionResult]:
        """
        Execute the enabled rules of one pipeline category.

        Args:
            context (RuleExecutionContext): Execution context
            category (str): Pipeline category, e.g. 'security'
            security_level (str, optional): Only run rules whose minimum level is covered

        Returns:
            list: List of RuleExecutionResult objects
        """
        rules = [rule for rule in self.rule_manager.get_rules_by_category(category) if rule.is_enabled()]
        if security_level is not None:
            rules = [rule for rule in rules if rule.applies_to_level(security_level)]
        return self._run(rules, context)

    def _run(self, rules: List[Any], context: RuleExecutionContext) -> List[RuleExecutionResult]:
        logger.debug(f"Executing {len(rules)} rules")
        if self.max_workers > 1 and len(rules) > 1:
            with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
                results = list(executor.map(lambda rule: self._execute_single_rule(rule, context), rules))
        else:
            results = [self._execute_single_rule(rule, context) for rule in rules]

        for result in results:
            if result.has_matches:
                logger.info(f"Rule {result.rule_id} found {result.match_count} matches")
            elif result.status == RuleExecutionStatus.FAILED:
                logger.error(f"Error executing rule {result.rule_id}: {result.error_message}")
        return results

    def _execute_single_rule(self, rule: Any, context: RuleExecutionContext) -> RuleExecutionResult:
        """
        Execute a single rule against the context.

        Args:
            rule: Rule to execute
            context (RuleExecutionContext): Execution context

        Returns:
            RuleExecutionResult: Execution result
        """
        start_time = time.time()
        rule_id = getattr(rule, 'rule_id', 'unknown')

        if not rule.is_enabled():
            return RuleExecutionResult(rule_id=rule_id, status=RuleExecutionStatus.SKIPPED)

        try:
            matches = rule.check(
                content=context.content,
                tokens=context.tokens,
                cfg=context.cfg,
                dataflow=context.dataflow,
                options=context.options,
                config=context.config,
                masked_content=context.masked_content
            ) or []
        except Exception as e:
            return RuleExecutionResult(
                rule_id=rule_id,
                status=RuleExecutionStatus.FAILED,
                execution_time=time.time() - start_time,
                error_message=str(e),
                error=e
            )

        warnings = []
        if len(matches) > self.max_matches_per_rule:
            matches = matches[:self.max_matches_per_rule]
            warning_msg = f"Rule {rule_id} generated too many matches, limited to {self.max_matches_per_rule}"
            logger.warning(warning_msg)
            warnings.append(warning_msg)

        return RuleExecutionResult(
            rule_id=rule_id,
            status=RuleExecutionStatus.SUCCESS,
            matches=matches,
            execution_time=time.time() - start_time,
            warnings=warnings
        )

    @staticmethod
    def raise_for_failures(results: List[RuleExecutionResult]) -> None:
        """Raise RuleExecutionError for the first failed rule, if any."""
        for result in results:
            if result.status == RuleExecutionStatus.FAILED:
                raise RuleExecutionError(result.rule_id, result.error) from result.error

    def get_execution_summary(self, results: List[RuleExecutionResult]) -> Dict[str, Any]:
        """
        Generate summary statistics for rule execution results.

        Args:
            results (list): List of RuleExecutionResult objects

        Returns:
            dict: Summary statistics
        """
        total_rules = len(results)
        successful_rules = len([r for r in results if r.is_successful])
        total_matches = sum(r.match_count for r in results)
        total_execution_time = sum(r.execution_time for r in results)

        status_counts = {status.value: len([r for r in results if r.status == status])
                         for status in RuleExecutionStatus}

        rules_with_matches = [r for r in results if r.has_matches]

        return {
            'total_rules_executed': total_rules,
            'successful_rules': successful_rules,
            'total_matches_found': total_matches,
            'total_execution_time': total_execution_time,
            'average_execution_time': total_execution_time / total_rules if total_rules > 0 else 0,
            'status_breakdown': status_counts,
            'rules_with_matches': len(rules_with_matches),
            'match_rate': len(rules_with_matches) / total_rules if total_rules > 0 else 0
        }
