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

import json
import datetime
from pathlib import Path
from typing import Dict, Any

class JSONReporter:
    """
    Writes scan results as JSON.

    Each contract entry carries the AnalysisResult wire format unchanged, so
    the file can be consumed by the same clients as the analysis API.
    """

    def __init__(self, indent: int = 2):
        self.indent = indent

    def generate_report(self, scan_results, output_path: str) -> str:
        """
        Generate JSON report from scan results.

        Raises:
            IOError: If unable to write to output path
        """
        output_file = Path(output_path)
        try:
            output_file.parent.mkdir(parents=True, exist_ok=True)
            with open(output_file, 'w', encoding='utf-8') as f:
                f.write(self.render(scan_results))
        except OSError as e:
            raise IOError(f"Failed to generate JSON report: {str(e)}") from e
        return str(output_file.resolve())

    def render(self, scan_results) -> str:
        return json.dumps(self.build_report(scan_results), indent=self.indent)

    def build_report(self, scan_results) -> Dict[str, Any]:
        files = []
        for file_result in scan_results.file_results:
            entry: Dict[str, Any] = {
                'filename': file_result.filename,
                'language': file_result.language,
                'linesOfCode': file_result.lines_of_code,
                'analysisDuration': round(file_result.analysis_duration, 3)
            }
            if file_result.result is not None:
                entry['result'] = file_result.result.to_dict()
                if file_result.result.risk_level is not None:
                    entry['riskLevel'] = file_result.result.risk_level
            if file_result.error is not None:
                entry['error'] = file_result.error
            files.append(entry)

        return {
            'target': scan_results.target_path,
            'generatedAt': datetime.datetime.now().strftime('%Y-%m-%d %H:%M:%S'),
            'startTime': scan_results.start_time,
            'endTime': scan_results.end_time,
            'totalDuration': round(scan_results.total_duration, 3),
            'options': scan_results.options or {},
            'summary': {
                'totalFiles': len(scan_results.file_results),
                'invalidFiles': len(scan_results.get_invalid_files()),
                'totalFindings': scan_results.get_total_findings(),
                'bySeverity': scan_results.get_findings_by_severity()
            },
            'files': files
        }
