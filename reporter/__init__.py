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

from .html_reporter import HTMLReporter
from .json_reporter import JSONReporter

__all__ = ['HTMLReporter', 'JSONReporter', 'get_reporter', 'SUPPORTED_FORMATS']

# Supported report formats
SUPPORTED_FORMATS = ['html', 'json']

def get_reporter(format_type: str = 'html'):
    """
    Factory function to get the appropriate reporter instance.

    Args:
        format_type (str): The desired report format ('html' or 'json')

    Returns:
        Reporter instance for the specified format

    Raises:
        ValueError: If the format_type is not supported
    """
    format_type = format_type.lower()
    if format_type == 'html':
        return HTMLReporter()
    if format_type == 'json':
        return JSONReporter()
    raise ValueError(f"Unsupported report format: {format_type}. "
                     f"Supported formats: {', '.join(SUPPORTED_FORMATS)}")
