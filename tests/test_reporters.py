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

"""Tests for the HTML and JSON reporters."""

import json

import pytest

from core import AnalysisOptions
from reporter import HTMLReporter, JSONReporter, get_reporter


@pytest.fixture
def scan_results(analyzer, tmp_path, vulnerable_source, clean_source):
    source_dir = tmp_path / "programs"
    source_dir.mkdir()
    (source_dir / "counter.rs").write_text(clean_source)
    (source_dir / "vault.rs").write_text(vulnerable_source)
    return analyzer.analyze_path(source_dir, AnalysisOptions(validate_security=True, include_metrics=True))


class TestGetReporter:

    def test_known_formats(self):
        assert isinstance(get_reporter('html'), HTMLReporter)
        assert isinstance(get_reporter('JSON'), JSONReporter)

    def test_unknown_format(self):
        with pytest.raises(ValueError):
            get_reporter('pdf')


class TestJSONReporter:

    def test_report_structure(self, scan_results, tmp_path):
        path = JSONReporter().generate_report(scan_results, str(tmp_path / "out" / "report.json"))
        with open(path, encoding='utf-8') as f:
            report = json.load(f)

        assert report['summary']['totalFiles'] == 2
        assert report['summary']['invalidFiles'] == 1
        assert report['summary']['bySeverity']['critical'] >= 1
        assert report['options']['validateSecurity'] is True

        counter, vault = report['files']
        assert counter['result']['isValid'] is True
        assert counter['riskLevel'] == 'low'
        assert vault['result']['isValid'] is False
        assert vault['riskLevel'] == 'critical'
        assert 'REENTRANCY' in [e['code'] for e in vault['result']['errors']]
        assert 'metrics' in vault['result']

    def test_result_matches_wire_format(self, scan_results):
        report = JSONReporter().build_report(scan_results)
        assert report['files'][1]['result'] == scan_results.file_results[1].result.to_dict()

    def test_failed_file_has_error(self, scan_results):
        scan_results.file_results[0].result = None
        scan_results.file_results[0].error = "Contract analysis failed: boom"
        entry = JSONReporter().build_report(scan_results)['files'][0]
        assert entry['error'] == "Contract analysis failed: boom"
        assert 'result' not in entry

    def test_unwritable_path(self, scan_results, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("")
        with pytest.raises(IOError):
            JSONReporter().generate_report(scan_results, str(blocker / "report.json"))


class TestHTMLReporter:

    def test_report_content(self, scan_results, tmp_path):
        path = HTMLReporter().generate_report(scan_results, str(tmp_path / "report.html"))
        with open(path, encoding='utf-8') as f:
            html = f.read()

        assert "Sentinel Smart Contract Analysis Report" in html
        assert "REENTRANCY" in html
        assert "CWE-841" in html
        assert "vault.rs" in html

    def test_findings_grouped_by_category(self, scan_results):
        data = HTMLReporter()._prepare_report_data(scan_results)
        assert data['categories']['reentrancy']['count'] == 1
        assert data['summary']['invalid_files'] == 1

    def test_file_results(self, scan_results):
        files = HTMLReporter()._prepare_report_data(scan_results)['file_results']
        assert [f['is_valid'] for f in files] == [True, False]
        assert files[0]['security_score'] == 100
        assert files[1]['metrics']['complexity']['cyclomatic'] >= 1

    def test_markup_in_source_is_escaped(self, scan_results, tmp_path):
        finding = scan_results.file_results[1].result.errors[0]
        finding.message = "<script>alert(1)</script>"
        path = HTMLReporter().generate_report(scan_results, str(tmp_path / "report.html"))
        with open(path, encoding='utf-8') as f:
            html = f.read()
        assert "<script>alert(1)</script>" not in html
