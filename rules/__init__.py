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

from .rule_engine import (
    RuleEngine,
    RuleValidator,
    RuleManager,
    RuleExecutionContext,
    RuleExecutionResult,
    RuleExecutionError
)

from .contract_rules import (
    ContractPattern,
    ContractRuleSet,
    get_contract_pattern,
    get_all_contract_patterns,
    get_recommendation,
    CONTRACT_CATEGORIES
)

from .scoring import SecurityScorer, SecurityAssessment

__all__ = [
    # Rule Engine
    'RuleEngine',
    'RuleValidator',
    'RuleManager',
    'RuleExecutionContext',
    'RuleExecutionResult',
    'RuleExecutionError',

    # Contract Rules
    'ContractPattern',
    'ContractRuleSet',
    'get_contract_pattern',
    'get_all_contract_patterns',
    'get_recommendation',
    'CONTRACT_CATEGORIES',

    # Scoring
    'SecurityScorer',
    'SecurityAssessment'
]

# Module metadata
MODULE_VERSION = "1.0.0"

def get_module_info() -> dict:
    """
    Get information about the rules module.

    Returns:
        dict: Module information and statistics
    """
    return {
        'version': MODULE_VERSION,
        'total_categories': len(CONTRACT_CATEGORIES),
        'available_patterns': len(get_all_contract_patterns()),
        'categories': list(CONTRACT_CATEGORIES.keys())
    }
