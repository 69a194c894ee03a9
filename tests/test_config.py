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

"""Tests for configuration loading and analysis options."""

from pathlib import Path

import pytest
import yaml

from core import AnalysisOptions, Config


def write_config(tmp_path, text):
    path = tmp_path / "config.yaml"
    path.write_text(text)
    return str(path)


class TestConfig:

    def test_defaults(self):
        config = Config()
        options = config.get_default_options()
        assert options.validate_syntax and options.validate_security and options.include_metrics
        assert not options.deep_analysis and not options.validate_compatibility
        assert options.security_level == 'standard'
        assert config.get_dataflow_iteration_factor() == 50
        assert config.get_reentrancy_path_factor() == 2
        assert config.get_halstead_divisors() == (18, 3000)
        assert config.get_file_extensions('rust') == ['.rs']

    def test_yaml_is_merged_over_defaults(self, tmp_path):
        config = Config(write_config(tmp_path, """
analysis:
  security_level: high
  deep_analysis: true
metrics:
  thresholds:
    cyclomatic: 20
"""))
        options = config.get_default_options()
        assert options.security_level == 'high'
        assert options.deep_analysis
        assert options.validate_syntax
        assert config.get_metric_thresholds()['cyclomatic'] == 20
        assert config.get_metric_thresholds()['cognitive'] == 15

    def test_empty_yaml_keeps_defaults(self, tmp_path):
        config = Config(write_config(tmp_path, ""))
        assert config.to_dict() == Config().to_dict()

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            Config(str(tmp_path / "missing.yaml"))

    def test_invalid_yaml(self, tmp_path):
        with pytest.raises(yaml.YAMLError):
            Config(write_config(tmp_path, "analysis: [unclosed"))

    @pytest.mark.parametrize("text", [
        "analysis:\n  security_level: paranoid\n",
        "dataflow:\n  iteration_factor: 0\n",
        "reentrancy:\n  path_length_factor: -1\n",
        "analysis:\n  max_file_size_mb: 0\n",
        "metrics:\n  halstead_time_divisor: 0\n",
        "scoring:\n  severity_weights:\n    fatal: 5\n",
        "analysis:\n  deep_analysis: maybe\n",
    ])
    def test_invalid_values(self, tmp_path, text):
        with pytest.raises(ValueError):
            Config(write_config(tmp_path, text))

    def test_set_option(self):
        config = Config()
        config.set_option('deep_analysis', True)
        assert config.get_default_options().deep_analysis
        with pytest.raises(ValueError):
            config.set_option('no_such_option', True)
        with pytest.raises(ValueError):
            config.set_option('security_level', 'paranoid')

    def test_defaults_are_not_shared(self):
        first = Config()
        first.set_exclusions(['*.tmp'])
        assert '*.tmp' not in Config().get_exclusion_patterns()

    @pytest.mark.parametrize("path,excluded", [
        ('target/debug/build.rs', True),
        ('programs/vault/target/gen.rs', True),
        ('.git/hooks/pre-commit', True),
        ('programs/vault/src/lib.rs', False),
        ('lib.rs.bak', True),
    ])
    def test_should_exclude_file(self, path, excluded):
        assert Config().should_exclude_file(Path(path)) is excluded


class TestAnalysisOptions:

    def test_defaults_are_off(self):
        options = AnalysisOptions()
        assert not any([options.validate_syntax, options.validate_security, options.include_metrics,
                        options.deep_analysis, options.validate_compatibility])
        assert options.security_level == 'standard'

    def test_from_camel_case(self):
        options = AnalysisOptions.from_dict({
            'validateSyntax': True,
            'validateSecurity': 1,
            'securityLevel': 'high',
            'includeMetrics': False,
            'unknownKey': True
        })
        assert options.validate_syntax is True
        assert options.validate_security is True
        assert options.security_level == 'high'
        assert options.include_metrics is False

    @pytest.mark.parametrize("value,expected", [
        ("false", False), ("False", False), ("0", False), ("no", False),
        ("true", True), ("YES", True), ("1", True),
    ])
    def test_string_flags(self, value, expected):
        options = AnalysisOptions.from_dict({'validateSecurity': value, 'include_metrics': value})
        assert options.validate_security is expected
        assert options.include_metrics is expected

    def test_unrecognized_string_flag(self):
        with pytest.raises(ValueError):
            AnalysisOptions.from_dict({'deepAnalysis': 'sometimes'})

    def test_quoted_flag_in_config_file(self, tmp_path):
        path = write_config(tmp_path, "analysis:\n  validate_security: 'false'\n  include_metrics: 'true'\n")
        options = Config(path).get_default_options()
        assert options.validate_security is False
        assert options.include_metrics is True

    def test_from_snake_case(self):
        options = AnalysisOptions.from_dict({'deep_analysis': True})
        assert options.deep_analysis

    def test_wire_format(self):
        data = AnalysisOptions(validate_security=True, security_level='basic').to_dict()
        assert data == {
            'validateSyntax': False,
            'validateSecurity': True,
            'securityLevel': 'basic',
            'includeMetrics': False,
            'deepAnalysis': False,
            'validateCompatibility': False
        }

    def test_invalid_security_level(self):
        with pytest.raises(ValueError):
            AnalysisOptions.from_dict({'securityLevel': 'extreme'})

    def test_coerce(self):
        options = AnalysisOptions(deep_analysis=True)
        assert AnalysisOptions.coerce(options) is options
        assert AnalysisOptions.coerce(None) is None
        assert AnalysisOptions.coerce({'deepAnalysis': True}).deep_analysis
        with pytest.raises(TypeError):
            AnalysisOptions.coerce(['deepAnalysis'])
