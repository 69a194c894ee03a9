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

"""Tests for the ContractAnalyzer pipeline and directory scanning."""

import json
import threading

import pytest

from core import (
    AnalysisFailedError, AnalysisObserver, AnalysisOptions, ContractAnalyzer, Vulnerability,
    analyze
)
from language_modules.base_analyzer import BaseSecurityRule, RuleCategory, Severity
from language_modules.rust.analyzer import RustContractAnalyzer
from rules.rule_engine import RuleExecutionError


class RecordingObserver(AnalysisObserver):
    def __init__(self):
        self.completed = []
        self.failed = []

    def on_analysis_complete(self, result):
        self.completed.append(result)

    def on_analysis_failed(self, error):
        self.failed.append(error)


class BrokenGraphAnalyzer(RustContractAnalyzer):
    def build_cfg(self, tokens):
        raise RuntimeError("graph construction exploded")


class ExplodingRule(BaseSecurityRule):
    def __init__(self):
        super().__init__("EXPLODING_RULE", "Exploding", "Always raises", Severity.ERROR, RuleCategory.SECURITY)

    def check(self, content, **kwargs):
        raise ValueError("rule bug")


class TestAnalysisResult:
    """Validity, wire format and determinism."""

    @pytest.mark.parametrize("source_name", ['vulnerable_source', 'guarded_source', 'clean_source'])
    def test_is_valid_matches_errors(self, request, analyzer, all_stages, source_name):
        result = analyzer.analyze(request.getfixturevalue(source_name), all_stages)
        assert result.is_valid == (len(result.errors) == 0)
        assert all(f.severity in ('critical', 'error') for f in result.errors)
        assert all(f.severity in ('warning', 'info') for f in result.warnings)

    def test_clean_program_is_valid(self, analyzer, all_stages, clean_source):
        result = analyzer.analyze(clean_source, all_stages)
        assert result.is_valid
        assert result.security_score == 100
        assert result.risk_level == 'low'

    def test_vulnerable_program(self, analyzer, all_stages, vulnerable_source):
        result = analyzer.analyze(vulnerable_source, all_stages)
        assert not result.is_valid
        assert {'REENTRANCY', 'MISSING_ACCESS_CONTROL'} <= {f.code for f in result.errors}
        assert 0 <= result.security_score < 100
        assert result.risk_level == 'critical'

    def test_analysis_is_deterministic(self, analyzer, all_stages, vulnerable_source):
        first = json.dumps(analyzer.analyze(vulnerable_source, all_stages).to_dict(), sort_keys=True)
        second = json.dumps(analyzer.analyze(vulnerable_source, all_stages).to_dict(), sort_keys=True)
        assert first == second

    def test_concurrent_analyses_match(self, analyzer, all_stages, vulnerable_source):
        expected = json.dumps(analyzer.analyze(vulnerable_source, all_stages).to_dict(), sort_keys=True)
        outputs = []

        def worker():
            outputs.append(json.dumps(analyzer.analyze(vulnerable_source, all_stages).to_dict(), sort_keys=True))

        threads = [threading.Thread(target=worker) for _ in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        assert outputs == [expected] * 4

    def test_optional_fields_are_omitted(self, analyzer, clean_source):
        data = analyzer.analyze(clean_source, AnalysisOptions()).to_dict()
        assert 'metrics' not in data
        assert 'securityScore' not in data
        assert data['isValid'] is True
        assert data['suggestions'] == []

    def test_optional_fields_are_present(self, analyzer, all_stages, clean_source):
        data = analyzer.analyze(clean_source, all_stages).to_dict()
        assert data['metrics']['complexity']['cyclomatic'] >= 1
        assert set(data['metrics']) == {'complexity', 'size', 'documentation', 'maintainability'}
        assert data['securityScore'] == 100

    def test_suggestions_follow_findings(self, analyzer, vulnerable_source):
        result = analyzer.analyze(vulnerable_source, AnalysisOptions(validate_security=True))
        priorities = [s.priority for s in result.suggestions]
        assert priorities == sorted(priorities, key=['high', 'medium', 'low'].index)
        assert len(result.suggestions) == len(result.errors) + len(result.warnings)

    def test_duplicate_findings_are_removed(self):
        first = Vulnerability('UNCHECKED_MATH', "a", 'warning', 3, 5)
        repeat = Vulnerability('UNCHECKED_MATH', "b", 'warning', 3, 5)
        other_code = Vulnerability('UNSAFE_CASTING', "c", 'warning', 3, 5)
        assert ContractAnalyzer._deduplicate([first, repeat, other_code]) == [first, other_code]


class TestPipelineOptions:

    def test_structural_errors_always_reported(self, analyzer):
        result = analyzer.analyze("fn main() {", AnalysisOptions())
        assert [(e.code, e.message) for e in result.errors] == [('UNCLOSED_BRACE', "Unclosed braces: 1")]
        assert not result.is_valid

    def test_deep_nesting_is_analyzed(self, analyzer):
        source = "pub fn deep(a: bool) {\n" + "if a {\n" * 400 + "work();\n" + "}\n" * 401
        options = AnalysisOptions(validate_syntax=True, validate_security=True, include_metrics=True)
        result = analyzer.analyze(source, options)
        assert 'NESTING_TOO_DEEP' in [e.code for e in result.errors]
        assert result.metrics is not None

    def test_empty_source(self, analyzer):
        result = analyzer.analyze("", AnalysisOptions())
        assert result.is_valid
        assert result.get_findings() == []

    def test_options_default_to_configuration(self, analyzer, clean_source):
        result = analyzer.analyze(clean_source)
        assert result.metrics is not None
        assert result.security_score is not None

    def test_camel_case_options(self, analyzer, clean_source):
        result = analyzer.analyze(clean_source, {'includeMetrics': True, 'validateSecurity': False})
        assert result.metrics is not None
        assert result.security_score is None

    def test_invalid_security_level(self, analyzer, clean_source):
        with pytest.raises(ValueError):
            analyzer.analyze(clean_source, {'securityLevel': 'extreme'})

    def test_module_level_analyze(self, clean_source):
        result = analyze(clean_source, {'validateSyntax': True})
        assert result.is_valid


class TestFailures:
    """Engine failures surface as AnalysisFailedError."""

    def test_graph_failure(self, config):
        observer = RecordingObserver()
        analyzer = ContractAnalyzer(config, language_analyzer=BrokenGraphAnalyzer(config), observer=observer)

        with pytest.raises(AnalysisFailedError) as excinfo:
            analyzer.analyze("fn a() {}", AnalysisOptions())

        assert isinstance(excinfo.value.cause, RuntimeError)
        assert "graph construction exploded" in str(excinfo.value)
        assert observer.failed == [excinfo.value]
        assert observer.completed == []

    def test_rule_failure(self, config, rust_analyzer):
        rust_analyzer.add_rule(ExplodingRule())
        analyzer = ContractAnalyzer(config, language_analyzer=rust_analyzer)

        with pytest.raises(AnalysisFailedError) as excinfo:
            analyzer.analyze("fn a() {}", AnalysisOptions(validate_security=True))
        assert isinstance(excinfo.value.cause, RuleExecutionError)
        assert excinfo.value.cause.rule_id == "EXPLODING_RULE"

    def test_failing_rule_outside_enabled_stage_is_not_run(self, config, rust_analyzer):
        rust_analyzer.add_rule(ExplodingRule())
        analyzer = ContractAnalyzer(config, language_analyzer=rust_analyzer)
        assert analyzer.analyze("fn a() {}", AnalysisOptions()).is_valid

    def test_completion_is_observed(self, config, rust_analyzer, clean_source):
        observer = RecordingObserver()
        analyzer = ContractAnalyzer(config, language_analyzer=rust_analyzer, observer=observer)
        result = analyzer.analyze(clean_source, AnalysisOptions())
        assert observer.completed == [result]
        assert observer.failed == []


class TestAnalyzePath:

    @pytest.fixture
    def workspace(self, tmp_path, vulnerable_source, clean_source):
        (tmp_path / "programs" / "vault" / "src").mkdir(parents=True)
        (tmp_path / "programs" / "vault" / "src" / "lib.rs").write_text(vulnerable_source)
        (tmp_path / "programs" / "counter").mkdir(parents=True)
        (tmp_path / "programs" / "counter" / "lib.rs").write_text(clean_source)
        (tmp_path / "target" / "debug").mkdir(parents=True)
        (tmp_path / "target" / "debug" / "generated.rs").write_text("fn main() {")
        (tmp_path / "README.md").write_text("# vault")
        return tmp_path

    def test_scan_directory(self, analyzer, workspace):
        results = analyzer.analyze_path(workspace, AnalysisOptions(validate_security=True))
        names = [r.filename for r in results.file_results]
        assert names == [
            str(workspace / "programs" / "counter" / "lib.rs"),
            str(workspace / "programs" / "vault" / "src" / "lib.rs"),
        ]
        assert [r.filename for r in results.get_invalid_files()] == [names[1]]
        assert results.options['validateSecurity'] is True
        assert results.file_results[0].lines_of_code > 0

    def test_scan_single_file(self, analyzer, workspace):
        path = workspace / "programs" / "counter" / "lib.rs"
        results = analyzer.analyze_path(path, AnalysisOptions())
        assert len(results.file_results) == 1
        assert results.get_invalid_files() == []

    def test_extra_exclusions(self, config, analyzer, workspace):
        config.set_exclusions(['programs/vault/*'])
        results = analyzer.analyze_path(workspace, AnalysisOptions())
        assert [r.filename for r in results.file_results] == [str(workspace / "programs" / "counter" / "lib.rs")]

    def test_missing_path(self, analyzer, tmp_path):
        with pytest.raises(FileNotFoundError):
            analyzer.analyze_path(tmp_path / "missing")

    def test_engine_failure_is_recorded_per_file(self, config, workspace):
        analyzer = ContractAnalyzer(config, language_analyzer=BrokenGraphAnalyzer(config))
        results = analyzer.analyze_path(workspace / "programs" / "counter", AnalysisOptions())
        assert results.file_results[0].result is None
        assert "graph construction exploded" in results.file_results[0].error
        assert results.get_invalid_files() == results.file_results
