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

import os
import copy
import time
import fnmatch
import logging
import importlib
import yaml
from pathlib import Path
from typing import List, Dict, Any, Optional, Type, Union
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field, asdict
from abc import ABC, abstractmethod

from rules.rule_engine import RuleExecutionContext

logger = logging.getLogger(__name__)

# =============================================================================
# DATA MODELS
# =============================================================================

class Vulnerability:
    """Represents a single finding (structural error, vulnerability or warning) in a contract."""

    ERROR_SEVERITIES = ('critical', 'error')

    def __init__(self,
                 code: str,
                 message: str,
                 severity: str,
                 line_number: int,
                 column_number: int = 0,
                 length: Optional[int] = None,
                 remediation: str = "",
                 confidence: float = 1.0,
                 title: str = ""):
        self.code = code
        self.message = message
        self.severity = severity.lower()
        self.line_number = line_number
        self.column_number = column_number
        self.length = length
        self.remediation = remediation
        self.confidence = confidence
        self.title = title or code.replace('_', ' ').title()

        # Catalogue fields
        self.cwe_ids: List[int] = []
        self.references: List[str] = []
        self.tags: List[str] = []

        # For report rendering
        self.code_snippet: str = ""

    @property
    def is_error(self) -> bool:
        return self.severity in self.ERROR_SEVERITIES

    @property
    def dedup_key(self) -> tuple:
        return (self.code, self.line_number, self.column_number)

    def location(self) -> Dict[str, int]:
        location = {'line': self.line_number, 'column': self.column_number}
        if self.length is not None:
            location['length'] = self.length
        return location

    def to_dict(self) -> Dict[str, Any]:
        """Convert finding to its wire format."""
        data = {
            'code': self.code,
            'severity': self.severity,
            'location': self.location(),
            'message': self.message,
            'remediation': self.remediation,
            'confidence': self.confidence
        }
        if self.cwe_ids:
            data['cweIds'] = list(self.cwe_ids)
        if self.references:
            data['references'] = list(self.references)
        return data

    def enrich_with_pattern(self, pattern) -> None:
        """Enrich finding with catalogue pattern data."""
        if pattern:
            self.title = pattern.name
            self.cwe_ids = pattern.cwe_ids.copy()
            self.references = pattern.references.copy()
            self.tags = sorted(pattern.tags)
            if not self.remediation:
                self.remediation = pattern.primary_remediation

@dataclass
class Suggestion:
    """Prioritized improvement suggestion derived from findings and metrics."""
    category: str
    priority: str
    message: str
    recommendation: str
    line: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            'category': self.category,
            'priority': self.priority,
            'message': self.message,
            'recommendation': self.recommendation
        }
        if self.line is not None:
            data['line'] = self.line
        return data

@dataclass
class HalsteadMetrics:
    volume: float = 0.0
    difficulty: float = 0.0
    effort: float = 0.0
    time: float = 0.0
    bugs: float = 0.0

@dataclass
class ComplexityMetrics:
    cyclomatic: int = 1
    cognitive: int = 0
    halstead: HalsteadMetrics = field(default_factory=HalsteadMetrics)

@dataclass
class SizeMetrics:
    loc: int = 0
    sloc: int = 0
    comments: int = 0
    functions: int = 0
    structs: int = 0

@dataclass
class DocumentationMetrics:
    coverage: float = 1.0
    quality: float = 0.0

@dataclass
class MaintainabilityMetrics:
    score: float = 100.0
    issues: List[str] = field(default_factory=list)

@dataclass
class CodeMetrics:
    """Complexity, size, documentation and maintainability metrics for one contract."""
    complexity: ComplexityMetrics = field(default_factory=ComplexityMetrics)
    size: SizeMetrics = field(default_factory=SizeMetrics)
    documentation: DocumentationMetrics = field(default_factory=DocumentationMetrics)
    maintainability: MaintainabilityMetrics = field(default_factory=MaintainabilityMetrics)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

TRUE_STRINGS = frozenset({'true', 'yes', 'on', '1'})
FALSE_STRINGS = frozenset({'false', 'no', 'off', '0', ''})

def parse_flag(name: str, value: Any) -> bool:
    """Interpret an option flag; strings such as "false" or "0" are false."""
    if isinstance(value, str):
        text = value.strip().lower()
        if text in TRUE_STRINGS:
            return True
        if text in FALSE_STRINGS:
            return False
        raise ValueError(f"Invalid value for {name}: {value!r}")
    return bool(value)

@dataclass
class AnalysisOptions:
    """
    Stage switches for one analysis run.

    Accepts the camelCase names used on the wire (validateSyntax,
    securityLevel, ...) as well as snake_case keys.
    """
    validate_syntax: bool = False
    validate_security: bool = False
    security_level: str = 'standard'
    include_metrics: bool = False
    deep_analysis: bool = False
    validate_compatibility: bool = False

    WIRE_NAMES = {
        'validateSyntax': 'validate_syntax',
        'validateSecurity': 'validate_security',
        'securityLevel': 'security_level',
        'includeMetrics': 'include_metrics',
        'deepAnalysis': 'deep_analysis',
        'validateCompatibility': 'validate_compatibility'
    }

    def __post_init__(self):
        if self.security_level not in Config.SECURITY_LEVELS:
            raise ValueError(f"Invalid securityLevel: {self.security_level}. "
                             f"Must be one of: {', '.join(Config.SECURITY_LEVELS)}")

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'AnalysisOptions':
        """Build options from a camelCase or snake_case mapping; unknown keys are ignored."""
        values = {}
        for key, value in (data or {}).items():
            name = cls.WIRE_NAMES.get(key, key)
            if name in cls.WIRE_NAMES.values():
                values[name] = value if name == 'security_level' else parse_flag(key, value)
        return cls(**values)

    @classmethod
    def coerce(cls, options: Union['AnalysisOptions', Dict[str, Any], None]) -> Optional['AnalysisOptions']:
        if options is None or isinstance(options, cls):
            return options
        if isinstance(options, dict):
            return cls.from_dict(options)
        raise TypeError(f"Unsupported options type: {type(options).__name__}")

    def to_dict(self) -> Dict[str, Any]:
        return {wire: getattr(self, name) for wire, name in self.WIRE_NAMES.items()}

class AnalysisResult:
    """
    Complete report for one contract.

    `is_valid` is derived from `errors` and cannot be set independently.
    """

    def __init__(self,
                 errors: Optional[List[Vulnerability]] = None,
                 warnings: Optional[List[Vulnerability]] = None,
                 metrics: Optional[CodeMetrics] = None,
                 security_score: Optional[float] = None,
                 suggestions: Optional[List[Suggestion]] = None,
                 risk_level: Optional[str] = None):
        self.errors = errors or []
        self.warnings = warnings or []
        self.metrics = metrics
        self.security_score = security_score
        self.suggestions = suggestions
        self.risk_level = risk_level

    @property
    def is_valid(self) -> bool:
        return len(self.errors) == 0

    def get_findings(self) -> List[Vulnerability]:
        return self.errors + self.warnings

    def get_finding_count_by_severity(self) -> Dict[str, int]:
        """Get count of findings by severity level."""
        counts = {'critical': 0, 'error': 0, 'warning': 0, 'info': 0}
        for finding in self.get_findings():
            if finding.severity in counts:
                counts[finding.severity] += 1
        return counts

    def to_dict(self) -> Dict[str, Any]:
        """Wire format; metrics and securityScore are omitted when not computed."""
        data: Dict[str, Any] = {
            'isValid': self.is_valid,
            'errors': [error.to_dict() for error in self.errors],
            'warnings': [warning.to_dict() for warning in self.warnings]
        }
        if self.metrics is not None:
            data['metrics'] = self.metrics.to_dict()
        if self.security_score is not None:
            data['securityScore'] = self.security_score
        if self.suggestions is not None:
            data['suggestions'] = [suggestion.to_dict() for suggestion in self.suggestions]
        return data

class FileAnalysisResult:
    """Contains the results of analyzing a single contract file."""

    def __init__(self, filename: str, language: str):
        self.filename = filename
        self.language = language
        self.result: Optional[AnalysisResult] = None
        self.source: str = ""
        self.analysis_duration: float = 0.0
        self.error: Optional[str] = None
        self.file_size: int = 0
        self.lines_of_code: int = 0

    @property
    def findings(self) -> List[Vulnerability]:
        return self.result.get_findings() if self.result else []

    def has_errors(self) -> bool:
        """Check if the contract failed validation or could not be analyzed."""
        return self.error is not None or (self.result is not None and not self.result.is_valid)

    def get_finding_count_by_severity(self) -> Dict[str, int]:
        if self.result is None:
            return {'critical': 0, 'error': 0, 'warning': 0, 'info': 0}
        return self.result.get_finding_count_by_severity()

class ScanResults:
    """Contains the results of analyzing every contract under a target path."""

    def __init__(self, target_path: str):
        self.target_path = target_path
        self.file_results: List[FileAnalysisResult] = []
        self.total_duration: float = 0.0
        self.start_time: Optional[str] = None
        self.end_time: Optional[str] = None
        self.options: Optional[Dict[str, Any]] = None

    def add_file_result(self, result: FileAnalysisResult) -> None:
        self.file_results.append(result)

    def get_total_findings(self) -> int:
        return sum(len(result.findings) for result in self.file_results)

    def get_findings_by_severity(self) -> Dict[str, int]:
        total_counts = {'critical': 0, 'error': 0, 'warning': 0, 'info': 0}
        for result in self.file_results:
            for severity, count in result.get_finding_count_by_severity().items():
                total_counts[severity] += count
        return total_counts

    def get_invalid_files(self) -> List[FileAnalysisResult]:
        return [result for result in self.file_results if result.has_errors()]

class AnalysisFailedError(Exception):
    """Raised when the analysis engine itself fails; source findings never raise."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause

class AnalysisObserver:
    """Receives completion and failure notifications from ContractAnalyzer."""

    def on_analysis_complete(self, result: AnalysisResult) -> None:
        pass

    def on_analysis_failed(self, error: AnalysisFailedError) -> None:
        pass

# =============================================================================
# CONFIGURATION
# =============================================================================

class Config:
    """Configuration management for the Smart Contract Analyzer."""

    # Default configuration values
    DEFAULT_CONFIG = {
        'analysis': {
            'validate_syntax': True,
            'validate_security': True,
            'security_level': 'standard',
            'include_metrics': True,
            'deep_analysis': False,
            'validate_compatibility': False,
            'max_file_size_mb': 10,
            'max_workers': 4,
            'rule_workers': 1
        },
        'exclusions': {
            'patterns': [
                '.git/*',
                'target/*',
                'node_modules/*',
                '.anchor/*',
                '*.bak'
            ]
        },
        'languages': {
            'rust': {
                'enabled': True,
                'file_extensions': ['.rs']
            }
        },
        'dataflow': {
            'iteration_factor': 50
        },
        'reentrancy': {
            'path_length_factor': 2
        },
        'metrics': {
            'halstead_time_divisor': 18,
            'halstead_bugs_divisor': 3000,
            'thresholds': {
                'cyclomatic': 10,
                'cognitive': 15,
                'documentation_coverage': 0.7,
                'documentation_quality': 0.6,
                'sloc': 500
            },
            'penalties': {
                'cyclomatic': 10,
                'cognitive': 10,
                'documentation_coverage': 15,
                'documentation_quality': 10,
                'sloc': 10
            }
        },
        'scoring': {
            'severity_weights': {
                'critical': 20,
                'error': 10,
                'warning': 5,
                'info': 2
            }
        },
        'deep_analysis': {
            'max_function_lines': 50
        }
    }

    SECURITY_LEVELS = ['basic', 'standard', 'high']
    SEVERITY_LEVELS = ['info', 'warning', 'error', 'critical']

    def __init__(self, config_path: Optional[str] = None):
        """Initialize configuration."""
        self._config = self._load_default_config()

        if config_path:
            self._load_config_file(config_path)

        self._validate_config()

    def _load_default_config(self) -> Dict[str, Any]:
        """Load the default configuration."""
        return copy.deepcopy(self.DEFAULT_CONFIG)

    def _load_config_file(self, config_path: str) -> None:
        """Load configuration from YAML file."""
        config_file = Path(config_path)

        if not config_file.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        try:
            with open(config_file, 'r', encoding='utf-8') as f:
                user_config = yaml.safe_load(f)

            if user_config:
                self._merge_config(user_config)
                logger.info(f"Loaded configuration from: {config_path}")

        except yaml.YAMLError as e:
            raise yaml.YAMLError(f"Invalid YAML in config file {config_path}: {str(e)}")
        except Exception as e:
            logger.error(f"Error loading config file {config_path}: {str(e)}")
            raise

    def _merge_config(self, user_config: Dict[str, Any]) -> None:
        """Merge user configuration with defaults."""
        def merge_dicts(base_dict: Dict, update_dict: Dict) -> Dict:
            """Recursively merge dictionaries."""
            for key, value in update_dict.items():
                if key in base_dict and isinstance(base_dict[key], dict) and isinstance(value, dict):
                    merge_dicts(base_dict[key], value)
                else:
                    base_dict[key] = value
            return base_dict

        merge_dicts(self._config, user_config)

    def _validate_config(self) -> None:
        """Validate configuration values."""
        security_level = self._config['analysis']['security_level']
        if security_level not in self.SECURITY_LEVELS:
            raise ValueError(f"Invalid security_level: {security_level}. "
                             f"Must be one of: {', '.join(self.SECURITY_LEVELS)}")

        for flag in AnalysisOptions.WIRE_NAMES.values():
            if flag != 'security_level':
                parse_flag(f'analysis.{flag}', self._config['analysis'][flag])

        max_size = self.get_max_file_size_mb()
        if not isinstance(max_size, (int, float)) or max_size <= 0:
            raise ValueError(f"Invalid max_file_size_mb: {max_size}. Must be a positive number.")

        for name, value in (('dataflow.iteration_factor', self.get_dataflow_iteration_factor()),
                            ('reentrancy.path_length_factor', self.get_reentrancy_path_factor()),
                            ('analysis.max_workers', self.get_max_workers()),
                            ('analysis.rule_workers', self.get_rule_workers())):
            if not isinstance(value, int) or value <= 0:
                raise ValueError(f"Invalid {name}: {value}. Must be a positive integer.")

        time_divisor, bugs_divisor = self.get_halstead_divisors()
        if time_divisor <= 0 or bugs_divisor <= 0:
            raise ValueError("Halstead divisors must be positive numbers.")

        for severity, weight in self.get_severity_weights().items():
            if severity not in self.SEVERITY_LEVELS:
                raise ValueError(f"Unknown severity in scoring.severity_weights: {severity}")
            if not isinstance(weight, (int, float)) or weight < 0:
                raise ValueError(f"Invalid weight for {severity}: {weight}. Must be non-negative.")

        logger.debug("Configuration validation passed")

    # Getter methods for configuration values
    def get_default_options(self) -> AnalysisOptions:
        """Build analysis options from the 'analysis' section."""
        analysis = self._config['analysis']
        return AnalysisOptions(
            validate_syntax=parse_flag('analysis.validate_syntax', analysis['validate_syntax']),
            validate_security=parse_flag('analysis.validate_security', analysis['validate_security']),
            security_level=analysis['security_level'],
            include_metrics=parse_flag('analysis.include_metrics', analysis['include_metrics']),
            deep_analysis=parse_flag('analysis.deep_analysis', analysis['deep_analysis']),
            validate_compatibility=parse_flag('analysis.validate_compatibility', analysis['validate_compatibility'])
        )

    def set_option(self, name: str, value: Any) -> None:
        """Override one 'analysis' option."""
        if name not in self._config['analysis']:
            raise ValueError(f"Unknown analysis option: {name}")
        if name == 'security_level' and value not in self.SECURITY_LEVELS:
            raise ValueError(f"Invalid security_level: {value}")
        self._config['analysis'][name] = value

    def get_max_file_size_mb(self) -> float:
        return self._config['analysis']['max_file_size_mb']

    def get_max_workers(self) -> int:
        return self._config['analysis']['max_workers']

    def get_rule_workers(self) -> int:
        return self._config['analysis']['rule_workers']

    def get_exclusion_patterns(self) -> List[str]:
        return list(self._config['exclusions']['patterns'])

    def set_exclusions(self, patterns: List[str]) -> None:
        """Add additional exclusion patterns."""
        self._config['exclusions']['patterns'].extend(patterns)

    def get_language_config(self, language: str) -> Dict[str, Any]:
        return self._config['languages'].get(language, {})

    def get_file_extensions(self, language: str) -> List[str]:
        return self.get_language_config(language).get('file_extensions', [])

    def is_language_enabled(self, language: str) -> bool:
        return self.get_language_config(language).get('enabled', False)

    def get_dataflow_iteration_factor(self) -> int:
        return self._config['dataflow']['iteration_factor']

    def get_reentrancy_path_factor(self) -> int:
        return self._config['reentrancy']['path_length_factor']

    def get_halstead_divisors(self) -> tuple:
        metrics = self._config['metrics']
        return metrics['halstead_time_divisor'], metrics['halstead_bugs_divisor']

    def get_metric_thresholds(self) -> Dict[str, float]:
        return dict(self._config['metrics']['thresholds'])

    def get_metric_penalties(self) -> Dict[str, float]:
        return dict(self._config['metrics']['penalties'])

    def get_severity_weights(self) -> Dict[str, float]:
        return dict(self._config['scoring']['severity_weights'])

    def get_max_function_lines(self) -> int:
        return self._config['deep_analysis']['max_function_lines']

    def should_exclude_file(self, file_path: Path) -> bool:
        """Check if a file should be excluded from analysis."""
        file_str = file_path.as_posix()
        for pattern in self.get_exclusion_patterns():
            if fnmatch.fnmatch(file_str, pattern) or fnmatch.fnmatch(file_path.name, pattern):
                return True
            # Directory patterns such as "target/*" match the directory anywhere in the path
            if pattern.endswith('/*') and pattern[:-2] in file_path.parts:
                return True
        return False

    def to_dict(self) -> Dict[str, Any]:
        """Return configuration as dictionary."""
        return copy.deepcopy(self._config)

# =============================================================================
# LANGUAGE ANALYZER BASE CLASS
# =============================================================================

class LanguageAnalyzer(ABC):
    """Abstract base class for language-specific contract analyzers."""

    @property
    @abstractmethod
    def language_name(self) -> str:
        """Return the name of the contract language this analyzer handles."""
        pass

    @property
    @abstractmethod
    def file_extensions(self) -> List[str]:
        """Return list of file extensions this analyzer can process."""
        pass

    def can_analyze(self, file_path: Path) -> bool:
        """Check if this analyzer can process the given file."""
        return file_path.is_file() and file_path.suffix.lower() in self.file_extensions

    @abstractmethod
    def tokenize(self, source: str):
        """Return a restartable token stream for the source."""
        pass

    @abstractmethod
    def build_cfg(self, tokens):
        """Build the control-flow graph; structural errors are recorded on it."""
        pass

    @abstractmethod
    def analyze_dataflow(self, cfg):
        """Compute reaching-definition facts over the graph."""
        pass

    @abstractmethod
    def run_checks(self, category: str, context: RuleExecutionContext) -> List[Vulnerability]:
        """Run every enabled rule of one pipeline stage."""
        pass

    @abstractmethod
    def calculate_metrics(self, source: str, tokens, cfg) -> CodeMetrics:
        """Compute complexity, size, documentation and maintainability metrics."""
        pass

    @abstractmethod
    def get_supported_rules(self) -> List[str]:
        """Get list of finding codes this analyzer can produce."""
        pass

# =============================================================================
# LANGUAGE REGISTRY
# =============================================================================

class LanguageRegistry:
    """Registry for language-specific analyzers."""

    def __init__(self, config: Optional[Config] = None):
        self.config = config
        self._analyzers: Dict[str, Type[LanguageAnalyzer]] = {}
        self._instances: Dict[str, LanguageAnalyzer] = {}
        self._module_paths = ['language_modules']

    def register_analyzer(self, analyzer_class: Type[LanguageAnalyzer]) -> None:
        """Register a language analyzer class."""
        if not issubclass(analyzer_class, LanguageAnalyzer):
            raise ValueError(f"Analyzer must inherit from LanguageAnalyzer: {analyzer_class}")

        language_name = analyzer_class.LANGUAGE
        self._analyzers[language_name] = analyzer_class
        logger.debug(f"Registered analyzer for language: {language_name}")

    def get_analyzer(self, language: str) -> Optional[LanguageAnalyzer]:
        """Get analyzer instance for a specific language."""
        if language not in self._instances:
            if language not in self._analyzers:
                return None
            self._instances[language] = self._analyzers[language](self.config)
        return self._instances[language]

    def get_supported_languages(self) -> List[str]:
        return list(self._analyzers.keys())

    def discover_analyzers(self) -> None:
        """Automatically discover and load language analyzer modules."""
        for module_path in self._module_paths:
            self._discover_in_path(module_path)

    def _discover_in_path(self, module_path: str) -> None:
        base_path = Path(__file__).resolve().parent / module_path
        if not base_path.exists():
            logger.debug(f"Module path does not exist: {base_path}")
            return

        for lang_dir in sorted(base_path.iterdir()):
            if lang_dir.is_dir() and not lang_dir.name.startswith('_'):
                self._load_language_module(module_path, lang_dir.name)

    def _load_language_module(self, module_path: str, language: str) -> None:
        """Load a specific language analyzer module."""
        module_name = f"{module_path}.{language}.analyzer"
        try:
            module = importlib.import_module(module_name)
        except ImportError as e:
            logger.debug(f"Could not import {module_name}: {str(e)}")
            return

        for attr_name in dir(module):
            attr = getattr(module, attr_name)
            if (isinstance(attr, type) and
                    issubclass(attr, LanguageAnalyzer) and
                    attr is not LanguageAnalyzer and
                    getattr(attr, 'LANGUAGE', None) == language):
                self.register_analyzer(attr)
                logger.debug(f"Loaded analyzer from {module_name}")
                break
        else:
            logger.warning(f"No analyzer class found in {module_name}")

    def get_analyzer_for_file(self, file_path: Path) -> Optional[LanguageAnalyzer]:
        """Get appropriate analyzer for a specific file."""
        for language in self._analyzers:
            analyzer = self.get_analyzer(language)
            if analyzer.can_analyze(file_path):
                return analyzer
        return None

# =============================================================================
# MAIN CONTRACT ANALYZER
# =============================================================================

class ContractAnalyzer:
    """
    Main contract analysis orchestrator.

    Sequences tokenization, graph construction, the optional validation
    stages, reentrancy and data-flow checks, metrics, scoring and
    suggestions. No state is kept between calls, so one instance can serve
    concurrent analyses.
    """

    DEFAULT_LANGUAGE = 'rust'

    def __init__(self,
                 config: Optional[Config] = None,
                 language_analyzer: Optional[LanguageAnalyzer] = None,
                 scorer=None,
                 suggestion_generator=None,
                 observer: Optional[AnalysisObserver] = None):
        """Initialize the contract analyzer; missing collaborators are built from config."""
        self.config = config or Config()
        self.registry = LanguageRegistry(self.config)

        if language_analyzer is None:
            self.registry.discover_analyzers()
            language_analyzer = self.registry.get_analyzer(self.DEFAULT_LANGUAGE)
            if language_analyzer is None:
                raise RuntimeError(f"No analyzer available for language: {self.DEFAULT_LANGUAGE}")
        else:
            self.registry.register_analyzer(type(language_analyzer))
            self.registry._instances[language_analyzer.language_name] = language_analyzer
        self.language_analyzer = language_analyzer

        if scorer is None:
            from rules.scoring import SecurityScorer
            scorer = SecurityScorer(self.config.get_severity_weights())
        self.scorer = scorer

        if suggestion_generator is None:
            from rules.suggestions import SuggestionGenerator
            suggestion_generator = SuggestionGenerator(self.config.get_metric_thresholds())
        self.suggestion_generator = suggestion_generator

        self.observer = observer or AnalysisObserver()

        logger.debug(f"ContractAnalyzer initialized with {self.language_analyzer.language_name} analyzer")

    def analyze(self, source_code: str,
                options: Union[AnalysisOptions, Dict[str, Any], None] = None) -> AnalysisResult:
        """
        Analyze one contract.

        Args:
            source_code (str): Contract source text
            options: AnalysisOptions, a camelCase/snake_case dict, or None for config defaults

        Returns:
            AnalysisResult: Findings, optional metrics and score, suggestions

        Raises:
            AnalysisFailedError: If the analysis engine fails internally
            ValueError: If the options are invalid
        """
        options = AnalysisOptions.coerce(options) or self.config.get_default_options()
        start_time = time.time()

        try:
            result = self._run_pipeline(source_code or "", options)
        except Exception as e:
            logger.error(f"Analysis failed: {str(e)}")
            error = AnalysisFailedError(f"Contract analysis failed: {str(e)}", cause=e)
            self.observer.on_analysis_failed(error)
            raise error from e

        logger.info(f"Analysis complete in {time.time() - start_time:.3f}s: "
                    f"{len(result.errors)} errors, {len(result.warnings)} warnings")
        self.observer.on_analysis_complete(result)
        return result

    def _run_pipeline(self, source_code: str, options: AnalysisOptions) -> AnalysisResult:
        analyzer = self.language_analyzer
        errors: List[Vulnerability] = []
        warnings: List[Vulnerability] = []

        # Tokenize / BuildCFG
        tokens = analyzer.tokenize(source_code)
        cfg = analyzer.build_cfg(tokens)
        dataflow = analyzer.analyze_dataflow(cfg)
        context = RuleExecutionContext(
            content=source_code,
            language=analyzer.language_name,
            tokens=tokens.to_list(),
            cfg=cfg,
            dataflow=dataflow,
            options=options,
            config=self.config
        )
        self._partition(cfg.structural_errors, errors, warnings)

        if options.validate_syntax:
            self._partition(analyzer.run_checks('syntax', context), errors, warnings)

        scored_findings: List[Vulnerability] = []
        if options.validate_security:
            security_findings = analyzer.run_checks('security', context)
            scored_findings.extend(security_findings)
            self._partition(security_findings, errors, warnings)

        reentrancy_findings = analyzer.run_checks('reentrancy', context)
        scored_findings.extend(reentrancy_findings)
        self._partition(reentrancy_findings, errors, warnings)

        security_score = None
        risk_level = None
        if options.validate_security:
            assessment = self.scorer.assess(scored_findings)
            security_score = assessment.score
            risk_level = assessment.risk_level
            logger.debug(f"Security score {security_score} ({risk_level} risk)")

        self._partition(analyzer.run_checks('dataflow', context), errors, warnings)

        metrics = None
        if options.include_metrics:
            metrics = analyzer.calculate_metrics(source_code, context.tokens, cfg)

        if options.deep_analysis:
            self._partition(analyzer.run_checks('deep_analysis', context), errors, warnings)

        if options.validate_compatibility:
            self._partition(analyzer.run_checks('compatibility', context), errors, warnings)

        errors = self._deduplicate(errors)
        warnings = self._deduplicate(warnings)
        suggestions = self.suggestion_generator.generate(errors, warnings, metrics)

        return AnalysisResult(
            errors=errors,
            warnings=warnings,
            metrics=metrics,
            security_score=security_score,
            suggestions=suggestions,
            risk_level=risk_level
        )

    @staticmethod
    def _partition(findings: List[Vulnerability], errors: List[Vulnerability],
                   warnings: List[Vulnerability]) -> None:
        for finding in findings:
            (errors if finding.is_error else warnings).append(finding)

    @staticmethod
    def _deduplicate(findings: List[Vulnerability]) -> List[Vulnerability]:
        """Drop repeats of an identical (code, line, column); distinct codes on a line all stay."""
        seen = set()
        unique = []
        for finding in findings:
            if finding.dedup_key in seen:
                continue
            seen.add(finding.dedup_key)
            unique.append(finding)
        return unique

    def analyze_path(self, target_path: Path,
                     options: Union[AnalysisOptions, Dict[str, Any], None] = None) -> ScanResults:
        """Analyze every contract file under a file or directory path."""
        from utils.file_utils import safe_read_file, count_lines_of_code

        start_time = time.time()
        target_path = Path(target_path)
        if not target_path.exists():
            raise FileNotFoundError(f"Target path does not exist: {target_path}")

        options = AnalysisOptions.coerce(options) or self.config.get_default_options()
        results = ScanResults(str(target_path))
        results.start_time = time.strftime('%Y-%m-%d %H:%M:%S')
        results.options = options.to_dict()

        files = self._discover_files(target_path)
        logger.info(f"Found {len(files)} contract files to analyze")

        def analyze_file(file_path: Path) -> FileAnalysisResult:
            file_start = time.time()
            file_result = FileAnalysisResult(str(file_path), self.language_analyzer.language_name)
            try:
                content = safe_read_file(file_path)
                if content is None:
                    file_result.error = "Could not read file content"
                    return file_result
                file_result.source = content
                file_result.file_size = file_path.stat().st_size
                file_result.lines_of_code = count_lines_of_code(content)
                file_result.result = self.analyze(content, options)
            except AnalysisFailedError as e:
                file_result.error = str(e)
            finally:
                file_result.analysis_duration = time.time() - file_start
            return file_result

        if files:
            max_workers = min(len(files), self.config.get_max_workers())
            with ThreadPoolExecutor(max_workers=max_workers) as executor:
                future_to_file = {executor.submit(analyze_file, path): path for path in files}
                collected = {}
                for future in as_completed(future_to_file):
                    file_path = future_to_file[future]
                    collected[file_path] = future.result()
                    if collected[file_path].has_errors():
                        logger.info(f"Found errors in: {file_path}")
            for file_path in files:
                results.add_file_result(collected[file_path])
        else:
            logger.warning("No contract files found for analysis")

        results.total_duration = time.time() - start_time
        results.end_time = time.strftime('%Y-%m-%d %H:%M:%S')
        logger.info(f"Scan complete: {len(results.file_results)} files, "
                    f"{results.get_total_findings()} findings")
        return results

    def _discover_files(self, target_path: Path) -> List[Path]:
        if target_path.is_file():
            return [target_path] if self._should_analyze_file(target_path, Path(target_path.name)) else []

        files = []
        for root, dirs, filenames in os.walk(target_path):
            relative_root = Path(root).relative_to(target_path)
            dirs[:] = sorted(d for d in dirs if not self.config.should_exclude_file(relative_root / d))
            for filename in sorted(filenames):
                file_path = Path(root) / filename
                if self._should_analyze_file(file_path, relative_root / filename):
                    files.append(file_path)
        return files

    def _should_analyze_file(self, file_path: Path, relative_path: Path) -> bool:
        # Exclusion patterns apply to the path below the scan target
        if self.config.should_exclude_file(relative_path):
            return False
        try:
            file_size_mb = file_path.stat().st_size / (1024 * 1024)
        except OSError:
            logger.debug(f"Could not get file size: {file_path}")
            return False
        if file_size_mb > self.config.get_max_file_size_mb():
            logger.debug(f"Skipping large file: {file_path} ({file_size_mb:.1f} MB)")
            return False
        return self.registry.get_analyzer_for_file(file_path) is not None

def analyze(source_code: str,
            options: Union[AnalysisOptions, Dict[str, Any], None] = None,
            config: Optional[Config] = None) -> AnalysisResult:
    """
    Analyze contract source with a freshly built ContractAnalyzer.

    Args:
        source_code (str): Contract source text
        options: Analysis options; None uses the configuration defaults
        config (Config, optional): Configuration to build the analyzer with

    Returns:
        AnalysisResult: The analysis report
    """
    return ContractAnalyzer(config).analyze(source_code, options)
