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

from .analyzer import RustContractAnalyzer

__all__ = ['RustContractAnalyzer']

# Module metadata
LANGUAGE_NAME = 'rust'
FILE_EXTENSIONS = ['.rs']
SUPPORTED_RULE_CATEGORIES = [
    'syntax',
    'security',
    'reentrancy',
    'dataflow',
    'deep_analysis',
    'compatibility'
]

def get_analyzer(config=None):
    """
    Factory function to create a Rust contract analyzer instance.

    Returns:
        RustContractAnalyzer: Configured Rust analyzer instance
    """
    return RustContractAnalyzer(config)
