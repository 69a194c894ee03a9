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

from .base_analyzer import BaseSecurityRule, RuleMatch, RuleCategory, Severity

__all__ = ['BaseSecurityRule', 'RuleMatch', 'RuleCategory', 'Severity']

# Registry of available language modules
AVAILABLE_LANGUAGES = []

def register_language_module(language_name: str, module_path: str) -> None:
    """
    Register a language module for dynamic loading.

    Args:
        language_name (str): Name of the contract language
        module_path (str): Python module path to the analyzer
    """
    if language_name not in [lang['name'] for lang in AVAILABLE_LANGUAGES]:
        AVAILABLE_LANGUAGES.append({
            'name': language_name,
            'module_path': module_path
        })

def get_available_languages() -> list:
    return AVAILABLE_LANGUAGES.copy()

def is_language_available(language_name: str) -> bool:
    return language_name in [lang['name'] for lang in AVAILABLE_LANGUAGES]

register_language_module('rust', 'language_modules.rust.analyzer')
