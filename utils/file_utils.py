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
from pathlib import Path
from typing import Optional, List

import chardet

logger = logging.getLogger(__name__)

# Encodings tried before falling back to detection
PREFERRED_ENCODINGS = ('utf-8',)

def safe_read_file(file_path: Path, encoding: Optional[str] = None, max_size: Optional[int] = None) -> Optional[str]:
    """
    Safely read a contract source file with encoding detection.

    Args:
        file_path (Path): Path to the file
        encoding (str, optional): Specific encoding to use
        max_size (int, optional): Maximum file size to read in bytes

    Returns:
        str: File content or None if the file could not be read
    """
    try:
        file_size = file_path.stat().st_size
        if max_size and file_size > max_size:
            logger.warning(f"File too large to read: {file_path} ({file_size} bytes)")
            return None

        with open(file_path, 'rb') as f:
            raw_data = f.read()
    except OSError as e:
        logger.error(f"Error reading file {file_path}: {str(e)}")
        return None

    if encoding:
        try:
            return raw_data.decode(encoding)
        except (UnicodeDecodeError, LookupError):
            logger.debug(f"Failed to read with encoding {encoding}: {file_path}")

    for candidate in PREFERRED_ENCODINGS:
        try:
            return raw_data.decode(candidate)
        except UnicodeDecodeError:
            continue

    detected = _detect_encoding(raw_data)
    if detected:
        try:
            return raw_data.decode(detected, errors='replace')
        except LookupError:
            logger.debug(f"Unknown detected encoding {detected}: {file_path}")

    # latin-1 decodes any byte sequence
    return raw_data.decode('latin-1', errors='replace')

def _detect_encoding(raw_data: bytes) -> Optional[str]:
    """Detect the encoding of a byte sample with chardet."""
    detected = chardet.detect(raw_data[:8192])
    if detected and (detected.get('confidence') or 0) > 0.6:
        return detected['encoding']
    return None

def extract_code_snippet(content: str, line_number: int, context_lines: int = 2) -> str:
    """
    Extract the lines around a finding, each prefixed with its line number.

    The target line is marked with '>'. Returns an empty string when the line
    is outside the content.
    """
    lines = content.splitlines()
    if line_number < 1 or line_number > len(lines):
        return ""

    start_line = max(0, line_number - context_lines - 1)
    end_line = min(len(lines), line_number + context_lines)
    width = len(str(end_line))

    snippet: List[str] = []
    for index in range(start_line, end_line):
        marker = '>' if index + 1 == line_number else ' '
        snippet.append(f"{marker} {index + 1:>{width}} | {lines[index]}")
    return '\n'.join(snippet)

def count_lines_of_code(content: str) -> int:
    """Count non-blank lines that are not wholly line comments."""
    count = 0
    in_block_comment = False
    for raw_line in content.splitlines():
        line = raw_line.strip()
        if not line:
            continue
        if in_block_comment:
            if '*/' in line:
                in_block_comment = False
                line = line.split('*/', 1)[1].strip()
                if line and not line.startswith('//'):
                    count += 1
            continue
        if line.startswith('//'):
            continue
        if line.startswith('/*'):
            if '*/' not in line:
                in_block_comment = True
            elif line.split('*/', 1)[1].strip():
                count += 1
            continue
        count += 1
    return count
