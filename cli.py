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

import argparse
import sys
import os
import logging
from pathlib import Path
from typing import List, Optional

import yaml

from core import ContractAnalyzer, Config, AnalysisFailedError
from reporter import get_reporter, SUPPORTED_FORMATS
from rules.contract_rules import get_all_contract_patterns

VERSION = '1.0.0'

# Optional stages: (option name, enable flag, disable flag, help text)
STAGE_FLAGS = [
    ('validate_syntax', '--syntax', '--no-syntax', 'syntax validation'),
    ('validate_security', '--security', '--no-security', 'security detectors and scoring'),
    ('include_metrics', '--metrics', '--no-metrics', 'code metrics'),
    ('deep_analysis', '--deep', '--no-deep', 'deep analysis (function size, loop checks)'),
    ('validate_compatibility', '--compatibility', '--no-compatibility', 'compatibility checks'),
]

def setup_logging(verbose: bool = False) -> None:
    """Configure logging for the application."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(sys.stdout)
        ]
    )

def validate_target_path(path: str) -> Path:
    """Validate that the target path exists and is accessible."""
    target = Path(path)

    if not target.exists():
        raise argparse.ArgumentTypeError(f"Path does not exist: {path}")

    if not (target.is_file() or target.is_dir()):
        raise argparse.ArgumentTypeError(f"Path is not a file or directory: {path}")

    if not os.access(target, os.R_OK):
        raise argparse.ArgumentTypeError(f"Path is not readable: {path}")

    return target

def create_parser() -> argparse.ArgumentParser:
    """Create and configure the argument parser."""
    parser = argparse.ArgumentParser(
        prog='contract-analyzer',
        description='Static security and quality analysis for Rust/Solana smart contracts',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Analyze a single program
  contract-analyzer programs/vault/src/lib.rs

  # Analyze a workspace with deep analysis and a JSON report
  contract-analyzer programs/ --deep --format json --output report.json

  # Run every security detector
  contract-analyzer programs/ --security-level high

  # Show the detection rules
  contract-analyzer --list-rules
        """
    )

    parser.add_argument(
        'target',
        nargs='?',
        type=validate_target_path,
        help='Contract file or directory to analyze'
    )

    parser.add_argument(
        '--output', '-o',
        type=str,
        help='Output file path for the report (default: contract_report.<format>)'
    )

    parser.add_argument(
        '--format', '-f',
        choices=SUPPORTED_FORMATS,
        default='html',
        help='Report format (default: html)'
    )

    parser.add_argument(
        '--config', '-c',
        type=str,
        help='Path to custom configuration file (YAML format)'
    )

    parser.add_argument(
        '--security-level',
        choices=Config.SECURITY_LEVELS,
        help='Security detector level (default from configuration: standard)'
    )

    for option, enable, disable, description in STAGE_FLAGS:
        group = parser.add_mutually_exclusive_group()
        group.add_argument(enable, dest=option, action='store_true', default=None,
                           help=f'Enable {description}')
        group.add_argument(disable, dest=option, action='store_false', default=None,
                           help=f'Disable {description}')

    parser.add_argument(
        '--exclude',
        type=str,
        action='append',
        help='Exclude files/directories matching pattern (can be used multiple times)'
    )

    parser.add_argument(
        '--verbose', '-v',
        action='store_true',
        help='Enable verbose output'
    )

    parser.add_argument(
        '--quiet', '-q',
        action='store_true',
        help='Suppress all output except errors'
    )

    parser.add_argument(
        '--list-rules',
        action='store_true',
        help='List all detection rules and their finding codes'
    )

    parser.add_argument(
        '--version',
        action='version',
        version=f'Sentinel Smart Contract Analyzer v{VERSION}'
    )

    return parser

def list_rules() -> None:
    """Display the finding catalogue."""
    print("Smart Contract Detection Rules:")
    print("=" * 50)

    for pattern in sorted(get_all_contract_patterns(), key=lambda p: (p.category, p.pattern_id)):
        print(f"{pattern.pattern_id} [{pattern.category}, {pattern.severity}]: {pattern.name}")
        print(f"    {pattern.description}")
        print()

def apply_overrides(config: Config, args: argparse.Namespace) -> None:
    """Override configuration with command line arguments."""
    for option, _, _, _ in STAGE_FLAGS:
        value = getattr(args, option)
        if value is not None:
            config.set_option(option, value)

    if args.security_level:
        config.set_option('security_level', args.security_level)

    if args.exclude:
        config.set_exclusions(args.exclude)

def print_summary(results, report_path: str) -> None:
    counts = results.get_findings_by_severity()
    print("\nAnalysis complete!")
    print(f"Contracts analyzed: {len(results.file_results)}")
    print(f"Total findings: {results.get_total_findings()} "
          f"(critical {counts['critical']}, error {counts['error']}, "
          f"warning {counts['warning']}, info {counts['info']})")

    for file_result in results.file_results:
        result = file_result.result
        if file_result.error:
            print(f"  {file_result.filename}: analysis failed ({file_result.error})")
        elif result is not None and result.security_score is not None:
            print(f"  {file_result.filename}: score {result.security_score}, {result.risk_level} risk")

    print(f"Report generated: {report_path}")

def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the CLI application."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.list_rules:
        list_rules()
        return 0

    if args.target is None:
        parser.error("the following arguments are required: target")

    if args.verbose and args.quiet:
        parser.error("--verbose and --quiet cannot be used together")

    if not args.quiet:
        setup_logging(args.verbose)

    logger = logging.getLogger(__name__)

    try:
        config = Config(args.config) if args.config else Config()
        apply_overrides(config, args)

        analyzer = ContractAnalyzer(config)

        if not args.quiet:
            print(f"Starting contract analysis of: {args.target}")

        results = analyzer.analyze_path(args.target, config.get_default_options())

        reporter = get_reporter(args.format)
        output = args.output or f'contract_report.{args.format}'
        report_path = reporter.generate_report(results, output)

        if not args.quiet:
            print_summary(results, report_path)

        if results.get_invalid_files():
            if not args.quiet:
                print("\nErrors detected. Review the report for details.")
            return 1

        if not args.quiet:
            print("\nNo errors detected.")
        return 0

    except KeyboardInterrupt:
        if not args.quiet:
            print("\nAnalysis interrupted by user")
        return 130

    except (AnalysisFailedError, ValueError, FileNotFoundError, yaml.YAMLError, IOError) as e:
        logger.error(f"Analysis failed: {str(e)}")
        if args.verbose:
            logger.exception("Detailed error information:")
        return 1

if __name__ == '__main__':
    sys.exit(main())
