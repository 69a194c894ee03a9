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

from typing import Dict, List, Optional, Set
from dataclasses import dataclass, field

DEFAULT_RECOMMENDATION = "Review and refactor the code according to best practices"

# Finding categories, keyed by pipeline stage
CONTRACT_CATEGORIES = {
    'structure': {
        'name': 'Structural Errors',
        'description': 'Source text that cannot be read as well-formed Rust'
    },
    'syntax': {
        'name': 'Syntax Validation',
        'description': 'Lexical problems and missing program entry points'
    },
    'security': {
        'name': 'Security Vulnerabilities',
        'description': 'Heuristic patterns known to lead to loss of funds or unauthorized state changes'
    },
    'reentrancy': {
        'name': 'Reentrancy',
        'description': 'State updates reachable after a cross-program call'
    },
    'dataflow': {
        'name': 'Data Flow',
        'description': 'Unreachable code, unused assignments and analysis limits'
    },
    'deep_analysis': {
        'name': 'Deep Analysis',
        'description': 'Compute-budget and maintainability risks'
    },
    'compatibility': {
        'name': 'Compatibility',
        'description': 'Deprecated runtime features and declaration styles'
    }
}

@dataclass
class ContractPattern:
    """
    Defines a finding kind with its remediation guidance.
    """
    pattern_id: str
    name: str
    description: str
    severity: str
    category: str
    recommendation: str
    primary_remediation: str
    cwe_ids: List[int] = field(default_factory=list)
    references: List[str] = field(default_factory=list)
    examples: List[str] = field(default_factory=list)
    tags: Set[str] = field(default_factory=set)

class ContractRuleSet:
    """
    Catalogue of every finding code the analyzer can emit.

    Detectors enrich their findings from here, and the suggestion generator
    takes its canned recommendation per code from the same entries.
    """

    def __init__(self):
        self.patterns: Dict[str, ContractPattern] = {}
        self._initialize_patterns()

    def _initialize_patterns(self) -> None:
        self._add_structural_patterns()
        self._add_syntax_patterns()
        self._add_security_patterns()
        self._add_dataflow_patterns()
        self._add_deep_analysis_patterns()
        self._add_compatibility_patterns()

    def _add_pattern(self, pattern: ContractPattern) -> None:
        """Add a pattern to the rule set."""
        self.patterns[pattern.pattern_id] = pattern

    def _add_structural_patterns(self) -> None:
        for code, name, remediation in (
            ('UNEXPECTED_CLOSING_BRACE', "Unexpected Closing Brace",
             "Remove the extra '}' or add the matching '{' earlier in the block."),
            ('UNEXPECTED_CLOSING_PAREN', "Unexpected Closing Parenthesis",
             "Remove the extra ')' or add the matching '(' earlier in the expression."),
            ('UNCLOSED_BRACE', "Unclosed Brace",
             "Close every '{' opened by a function, impl, module or block."),
            ('UNCLOSED_PAREN', "Unclosed Parenthesis",
             "Close every '(' opened by a call, tuple or parameter list.")
        ):
            self._add_pattern(ContractPattern(
                pattern_id=code,
                name=name,
                description="Delimiters are not balanced, so only the well-formed prefix of the program is analyzed.",
                severity="error",
                category="structure",
                recommendation="Fix the delimiter nesting so the program compiles",
                primary_remediation=remediation,
                tags={"structure"}
            ))
        self._add_pattern(ContractPattern(
            pattern_id="NESTING_TOO_DEEP",
            name="Nesting Too Deep",
            description="Blocks nested past the analyzer's depth limit are skipped, so nothing inside them is checked.",
            severity="error",
            category="structure",
            recommendation="Flatten the nesting so every block can be analyzed",
            primary_remediation="Move deeply nested branches into helper functions or return early to reduce nesting.",
            tags={"structure", "complexity"}
        ))

    def _add_syntax_patterns(self) -> None:
        self._add_pattern(ContractPattern(
            pattern_id="UNTERMINATED_COMMENT",
            name="Unterminated Block Comment",
            description="A '/*' comment is never closed; everything after it is comment text to the compiler.",
            severity="error",
            category="syntax",
            recommendation="Close the block comment with '*/'",
            primary_remediation="Add the closing '*/'. Block comments nest in Rust, so every inner '/*' needs its own '*/'.",
            tags={"syntax", "comment"}
        ))
        self._add_pattern(ContractPattern(
            pattern_id="UNTERMINATED_STRING",
            name="Unterminated String Literal",
            description="A string literal runs to the end of the input without a closing quote.",
            severity="error",
            category="syntax",
            recommendation="Close the string literal",
            primary_remediation="Add the closing '\"' (and matching '#' marks for raw strings); escape embedded quotes with '\\\"'.",
            tags={"syntax", "string"}
        ))
        self._add_pattern(ContractPattern(
            pattern_id="MISMATCHED_DELIMITER",
            name="Mismatched Delimiter",
            description="A bracket is closed by a delimiter of a different kind, e.g. '(' closed by ']'.",
            severity="error",
            category="syntax",
            recommendation="Close each bracket with its matching delimiter",
            primary_remediation="Match '(' with ')', '[' with ']' and '{' with '}'.",
            tags={"syntax", "delimiter"}
        ))
        self._add_pattern(ContractPattern(
            pattern_id="UNCLOSED_BRACKET",
            name="Unclosed Square Bracket",
            description="A '[' is never closed.",
            severity="error",
            category="syntax",
            recommendation="Close the square bracket",
            primary_remediation="Add the missing ']' to the array, index or attribute expression.",
            tags={"syntax", "delimiter"}
        ))
        self._add_pattern(ContractPattern(
            pattern_id="MISSING_ENTRY_POINT",
            name="Missing Program Entry Point",
            description="No '#[program]' module, 'entrypoint!' macro or 'process_instruction' function was found.",
            severity="warning",
            category="syntax",
            recommendation="Declare the program entry point",
            primary_remediation="Add 'entrypoint!(process_instruction);' for native programs or a '#[program]' module for Anchor.",
            references=["https://solana.com/docs/programs/rust/program-structure"],
            tags={"syntax", "entrypoint"}
        ))

    def _add_security_patterns(self) -> None:
        self._add_pattern(ContractPattern(
            pattern_id="REENTRANCY",
            name="Reentrancy",
            description="State that was read before a cross-program call is written after it. A callee that "
                        "re-enters the program observes the stale state and can repeat the operation, for "
                        "example withdrawing the same balance twice.",
            severity="critical",
            category="reentrancy",
            recommendation="Implement a reentrancy guard using mutex patterns",
            primary_remediation="Update state before making the external call (checks-effects-interactions), or "
                                "wrap the read, the call and the write in a lock/unlock reentrancy guard.",
            cwe_ids=[841],
            references=[
                "https://cwe.mitre.org/data/definitions/841.html",
                "https://solana.com/docs/core/cpi"
            ],
            examples=["invoke(&ix, &accounts)?;\nvault.balance = vault.balance - amount;"],
            tags={"reentrancy", "cpi", "state"}
        ))
        self._add_pattern(ContractPattern(
            pattern_id="UNCHECKED_MATH",
            name="Unchecked Arithmetic",
            description="Integer arithmetic without overflow checks wraps silently in release builds.",
            severity="warning",
            category="security",
            recommendation="Use checked math operations or explicit overflow checks",
            primary_remediation="Replace 'a + b' with 'a.checked_add(b).ok_or(ErrorCode::Overflow)?' "
                                "(likewise checked_sub and checked_mul), or use saturating_* where clamping is intended.",
            cwe_ids=[190, 191],
            references=["https://cwe.mitre.org/data/definitions/190.html"],
            examples=["vault.balance += amount;"],
            tags={"arithmetic", "overflow"}
        ))
        self._add_pattern(ContractPattern(
            pattern_id="MISSING_ACCESS_CONTROL",
            name="Missing Access Control",
            description="A public instruction changes state or calls another program without checking a signer, "
                        "owner or authority.",
            severity="error",
            category="security",
            recommendation="Add access control checks to state-modifying functions",
            primary_remediation="Require the authority to sign ('Signer<'info>' or 'is_signer') and compare it with "
                                "the stored owner ('has_one = authority' or 'require_keys_eq!').",
            cwe_ids=[284, 862],
            references=["https://cwe.mitre.org/data/definitions/862.html"],
            tags={"authorization", "signer"}
        ))
        self._add_pattern(ContractPattern(
            pattern_id="ARBITRARY_JUMP",
            name="Unsafe Code",
            description="'unsafe' blocks and inline assembly bypass the borrow checker and memory safety.",
            severity="critical",
            category="security",
            recommendation="Remove dynamic jumps or implement strict validation",
            primary_remediation="Rewrite the block in safe Rust; if raw access is unavoidable, validate every pointer "
                                "and length before use and keep the unsafe region minimal.",
            cwe_ids=[119],
            references=["https://cwe.mitre.org/data/definitions/119.html"],
            tags={"unsafe", "memory"}
        ))
        self._add_pattern(ContractPattern(
            pattern_id="MISSING_VALIDATION",
            name="Missing Input Validation",
            description="An instruction argument is used without any bounds or value check.",
            severity="warning",
            category="security",
            recommendation="Implement comprehensive input validation",
            primary_remediation="Check instruction arguments with 'require!' (e.g. 'require!(amount > 0, "
                                "ErrorCode::InvalidAmount)') before using them.",
            cwe_ids=[20],
            references=["https://cwe.mitre.org/data/definitions/20.html"],
            tags={"validation", "input"}
        ))
        self._add_pattern(ContractPattern(
            pattern_id="TIMESTAMP_DEPENDENCE",
            name="Timestamp Dependence",
            description="Logic depends on the cluster clock, which validators can skew within limits.",
            severity="warning",
            category="security",
            recommendation="Use block numbers instead of timestamps for time-sensitive operations",
            primary_remediation="Use slot numbers for ordering, and allow a tolerance window where wall-clock time is required.",
            cwe_ids=[829],
            tags={"timestamp", "clock"}
        ))
        self._add_pattern(ContractPattern(
            pattern_id="WEAK_RANDOMNESS",
            name="Weak Randomness",
            description="Randomness derived from slots, blockhashes or timestamps is predictable by validators.",
            severity="warning",
            category="security",
            recommendation="Use verifiable random functions (VRF) for randomness",
            primary_remediation="Source randomness from a verifiable random function oracle instead of chain state.",
            cwe_ids=[330],
            references=["https://cwe.mitre.org/data/definitions/330.html"],
            tags={"randomness"}
        ))
        self._add_pattern(ContractPattern(
            pattern_id="UNSAFE_CASTING",
            name="Truncating Cast",
            description="An 'as' cast to a narrower integer type silently truncates the value.",
            severity="warning",
            category="security",
            recommendation="Use safe casting operations with explicit checks",
            primary_remediation="Use 'u32::try_from(value)' and handle the conversion error instead of 'value as u32'.",
            cwe_ids=[681, 197],
            tags={"casting", "truncation"}
        ))

    def _add_dataflow_patterns(self) -> None:
        self._add_pattern(ContractPattern(
            pattern_id="DATAFLOW_NOT_CONVERGED",
            name="Data-flow Analysis Incomplete",
            description="The reaching-definitions solver hit its iteration cap; later results may be incomplete.",
            severity="warning",
            category="dataflow",
            recommendation="Simplify control flow so the analysis can complete",
            primary_remediation="Split large functions or raise dataflow.iteration_factor in the configuration.",
            tags={"dataflow"}
        ))
        self._add_pattern(ContractPattern(
            pattern_id="UNREACHABLE_CODE",
            name="Unreachable Code",
            description="Statements that no execution path reaches.",
            severity="warning",
            category="dataflow",
            recommendation="Remove code that can never execute",
            primary_remediation="Delete the statements after the return, break or continue, or restructure the branch.",
            cwe_ids=[561],
            tags={"dead_code"}
        ))
        self._add_pattern(ContractPattern(
            pattern_id="UNUSED_ASSIGNMENT",
            name="Unused Assignment",
            description="A 'let' binding that is never read.",
            severity="info",
            category="dataflow",
            recommendation="Remove the binding or prefix it with an underscore",
            primary_remediation="Delete the unused binding, or rename it '_name' when it is kept for its side effects.",
            cwe_ids=[563],
            tags={"dead_store"}
        ))

    def _add_deep_analysis_patterns(self) -> None:
        self._add_pattern(ContractPattern(
            pattern_id="LARGE_FUNCTION",
            name="Large Function",
            description="Long functions are hard to audit and tend to exceed the compute budget.",
            severity="warning",
            category="deep_analysis",
            recommendation="Consider breaking down complex functions into smaller, more manageable pieces",
            primary_remediation="Extract validation, state updates and cross-program calls into helper functions.",
            tags={"size"}
        ))
        self._add_pattern(ContractPattern(
            pattern_id="EXPENSIVE_LOOP_OPERATION",
            name="Expensive Operation in Loop",
            description="Allocation or (de)serialization inside a loop multiplies compute-unit consumption.",
            severity="warning",
            category="deep_analysis",
            recommendation="Implement gas-efficient patterns and avoid unbounded operations",
            primary_remediation="Hoist clones, allocations and serialization out of the loop or borrow instead of cloning.",
            tags={"compute_budget", "loop"}
        ))
        self._add_pattern(ContractPattern(
            pattern_id="POTENTIAL_INFINITE_LOOP",
            name="Potential Infinite Loop",
            description="A loop with no reachable exit exhausts the compute budget.",
            severity="warning",
            category="deep_analysis",
            recommendation="Implement proper bounds and gas checks for loops",
            primary_remediation="Add a 'break' condition or bound the iteration count explicitly.",
            cwe_ids=[835],
            tags={"compute_budget", "loop"}
        ))

    def _add_compatibility_patterns(self) -> None:
        self._add_pattern(ContractPattern(
            pattern_id="DEPRECATED_FEATURE",
            name="Deprecated Feature",
            description="A runtime feature or declaration style that newer toolchains replace.",
            severity="warning",
            category="compatibility",
            recommendation="Migrate to the supported program APIs",
            primary_remediation="Replace raw syscalls with the solana_program wrappers; declare the program id "
                                "with the current macro of your framework version.",
            tags={"compatibility"}
        ))

    def get_pattern(self, pattern_id: str) -> Optional[ContractPattern]:
        """Get a specific pattern by finding code."""
        return self.patterns.get(pattern_id)

    def get_all_patterns(self) -> List[ContractPattern]:
        return list(self.patterns.values())

    def get_recommendation(self, code: str) -> str:
        """Canned recommendation for a finding code."""
        pattern = self.get_pattern(code)
        return pattern.recommendation if pattern else DEFAULT_RECOMMENDATION

# Shared read-only catalogue
_CATALOGUE = ContractRuleSet()

def get_contract_pattern(pattern_id: str) -> Optional[ContractPattern]:
    """Get a specific catalogue entry by finding code."""
    return _CATALOGUE.get_pattern(pattern_id)

def get_recommendation(code: str) -> str:
    return _CATALOGUE.get_recommendation(code)

def get_all_contract_patterns() -> List[ContractPattern]:
    return _CATALOGUE.get_all_patterns()
