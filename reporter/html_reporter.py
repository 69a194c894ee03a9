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

import datetime
from pathlib import Path
from typing import Dict, List, Any
from jinja2 import Environment, BaseLoader

from rules.contract_rules import CONTRACT_CATEGORIES, get_contract_pattern

class HTMLReporter:
    """
    Generates HTML contract analysis reports from scan results.

    Features:
    - Findings grouped by rule category
    - Severity-based color coding
    - Security score, risk level and metrics per contract
    - Prioritized suggestions
    - Code snippets around each finding
    """

    def __init__(self):
        self.template = self._get_html_template()

    def generate_report(self, scan_results, output_path: str) -> str:
        """
        Generate HTML report from scan results.

        Args:
            scan_results: ScanResults object from ContractAnalyzer.analyze_path
            output_path (str): Path where HTML report should be saved

        Returns:
            str: Path to the generated HTML report

        Raises:
            IOError: If unable to write to output path
        """
        report_data = self._prepare_report_data(scan_results)
        html_content = self.template.render(**report_data)

        output_file = Path(output_path)
        try:
            output_file.parent.mkdir(parents=True, exist_ok=True)
            with open(output_file, 'w', encoding='utf-8') as f:
                f.write(html_content)
        except OSError as e:
            raise IOError(f"Failed to generate HTML report: {str(e)}") from e

        return str(output_file.resolve())

    def _prepare_report_data(self, scan_results) -> Dict[str, Any]:
        """Prepare data structure for HTML template rendering."""
        file_results = self._prepare_file_results(scan_results)
        counts = scan_results.get_findings_by_severity()

        return {
            'report_title': 'Smart Contract Analysis Report',
            'generated_at': datetime.datetime.now().strftime('%Y-%m-%d %H:%M:%S'),
            'summary': {
                'total_findings': scan_results.get_total_findings(),
                'critical': counts['critical'],
                'error': counts['error'],
                'warning': counts['warning'],
                'info': counts['info'],
                'invalid_files': len(scan_results.get_invalid_files()),
                'analysis_duration': round(scan_results.total_duration, 2)
            },
            'categories': self._group_by_category(scan_results),
            'file_results': file_results,
            'total_files': len(scan_results.file_results),
            'scan_target': scan_results.target_path,
            'start_time': scan_results.start_time or 'Unknown',
            'end_time': scan_results.end_time or 'Unknown',
            'options': scan_results.options or {}
        }

    def _group_by_category(self, scan_results) -> Dict[str, Dict[str, Any]]:
        """Group findings by the catalogue category of their code."""
        groups = {
            category_id: {'title': info['name'], 'findings': [], 'count': 0}
            for category_id, info in CONTRACT_CATEGORIES.items()
        }

        for file_result in scan_results.file_results:
            for finding in file_result.findings:
                pattern = get_contract_pattern(finding.code)
                category_id = pattern.category if pattern and pattern.category in groups else 'security'
                entry = self._finding_data(finding)
                entry['filename'] = file_result.filename
                groups[category_id]['findings'].append(entry)
                groups[category_id]['count'] += 1

        return groups

    def _prepare_file_results(self, scan_results) -> List[Dict[str, Any]]:
        """Prepare file-level results for the template."""
        file_results = []
        for file_result in scan_results.file_results:
            result = file_result.result
            file_data = {
                'filename': file_result.filename,
                'language': file_result.language,
                'findings': [self._finding_data(finding) for finding in file_result.findings],
                'is_valid': result.is_valid if result else False,
                'security_score': result.security_score if result else None,
                'risk_level': result.risk_level if result else None,
                'metrics': result.metrics.to_dict() if result and result.metrics else None,
                'suggestions': [s.to_dict() for s in (result.suggestions or [])] if result else [],
                'lines_of_code': file_result.lines_of_code,
                'file_size': file_result.file_size,
                'analysis_duration': round(file_result.analysis_duration, 3),
                'error': file_result.error
            }
            file_data['finding_count'] = len(file_data['findings'])
            file_results.append(file_data)
        return file_results

    @staticmethod
    def _finding_data(finding) -> Dict[str, Any]:
        data = finding.to_dict()
        data['title'] = finding.title
        data['code_snippet'] = finding.code_snippet
        data['tags'] = finding.tags
        return data

    def _get_html_template(self) -> Any:
        """Get the HTML template for report generation."""

        template_content = """<!DOCTYPE html>
    <html lang="en">
    <head>
        <meta charset="UTF-8">
        <meta name="viewport" content="width=device-width, initial-scale=1.0">
        <title>{{ report_title }}</title>
        <style>
            * { margin: 0; padding: 0; box-sizing: border-box; }

            body {
                font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif;
                line-height: 1.6;
                color: #333;
                background-color: #f4f6f8;
            }

            .header {
                background: linear-gradient(135deg, #14213d 0%, #1f7a8c 100%);
                color: white;
                padding: 2rem 0;
                text-align: center;
            }

            .header h1 { font-size: 2.2rem; margin-bottom: 0.5rem; }
            .header .subtitle { opacity: 0.9; }

            .container { max-width: 1200px; margin: 0 auto; padding: 2rem; }

            .summary-grid {
                display: grid;
                grid-template-columns: repeat(auto-fit, minmax(160px, 1fr));
                gap: 1.5rem;
                margin: 2rem 0;
            }

            .summary-card {
                background: white;
                padding: 1.5rem;
                border-radius: 10px;
                text-align: center;
                border-left: 4px solid #1f7a8c;
            }

            .summary-card h3 { font-size: 2rem; color: #1f7a8c; }
            .severity-critical { border-left-color: #c0392b; }
            .severity-critical h3 { color: #c0392b; }
            .severity-error { border-left-color: #e67e22; }
            .severity-error h3 { color: #e67e22; }
            .severity-warning { border-left-color: #f1c40f; }
            .severity-warning h3 { color: #b7950b; }
            .severity-info { border-left-color: #2980b9; }
            .severity-info h3 { color: #2980b9; }

            .section { background: white; margin: 2rem 0; border-radius: 10px; overflow: hidden; }
            .section-header { background: #f8f9fa; padding: 1.2rem 1.5rem; border-bottom: 1px solid #e9ecef; }
            .section-content { padding: 1.5rem; }

            .category-header, .file-header {
                background: #1f7a8c;
                color: white;
                padding: 0.8rem 1rem;
                cursor: pointer;
                display: flex;
                justify-content: space-between;
                border-radius: 6px;
                margin-top: 1rem;
            }

            .file-header { background: #e9ecef; color: #333; }
            .file-header.invalid { border-left: 4px solid #c0392b; }

            .collapsible { display: none; padding: 0.5rem 1rem; }
            .collapsible.active { display: block; }

            .finding {
                background: #f8f9fa;
                border-left: 4px solid #dee2e6;
                margin: 1rem 0;
                padding: 1rem;
                border-radius: 0 8px 8px 0;
            }

            .finding.critical { border-left-color: #c0392b; }
            .finding.error { border-left-color: #e67e22; }
            .finding.warning { border-left-color: #f1c40f; }
            .finding.info { border-left-color: #2980b9; }

            .finding-meta { display: flex; gap: 1rem; font-size: 0.9rem; flex-wrap: wrap; margin: 0.4rem 0; }

            .badge {
                padding: 0.15rem 0.5rem;
                border-radius: 12px;
                font-size: 0.7rem;
                font-weight: 600;
                text-transform: uppercase;
                color: white;
                background: #6c757d;
            }

            .badge-critical { background: #c0392b; }
            .badge-error { background: #e67e22; }
            .badge-warning { background: #f1c40f; color: #333; }
            .badge-info { background: #2980b9; }

            .code-snippet {
                background: #1e272e;
                color: #d2dae2;
                padding: 1rem;
                border-radius: 6px;
                font-family: 'Monaco', 'Consolas', monospace;
                font-size: 0.85rem;
                white-space: pre;
                overflow-x: auto;
                margin: 0.8rem 0;
            }

            .remediation { background: #d4edda; border-left: 3px solid #28a745; padding: 0.5rem; margin-top: 0.6rem; }

            .metrics-table { border-collapse: collapse; margin: 0.8rem 0; }
            .metrics-table td { padding: 0.2rem 1rem 0.2rem 0; font-size: 0.9rem; }

            .suggestion { padding: 0.4rem 0; border-bottom: 1px dashed #e9ecef; }

            .references a { color: #1f7a8c; margin-right: 1rem; }

            .footer { text-align: center; padding: 2rem; color: #666; background: white; margin-top: 3rem; }
            .footer a { color: #1f7a8c; text-decoration: none; }
        </style>
    </head>
    <body>
        <div class="header">
            <h1>Sentinel Smart Contract Analysis Report</h1>
            <div class="subtitle">Generated on {{ generated_at }}</div>
            <div class="subtitle">Target: {{ scan_target }}</div>
        </div>

        <div class="container">
            <div class="summary-grid">
                <div class="summary-card"><h3>{{ total_files }}</h3><p>Contracts Analyzed</p></div>
                <div class="summary-card"><h3>{{ summary.invalid_files }}</h3><p>Invalid Contracts</p></div>
                <div class="summary-card"><h3>{{ summary.total_findings }}</h3><p>Total Findings</p></div>
                <div class="summary-card severity-critical"><h3>{{ summary.critical }}</h3><p>Critical</p></div>
                <div class="summary-card severity-error"><h3>{{ summary.error }}</h3><p>Error</p></div>
                <div class="summary-card severity-warning"><h3>{{ summary.warning }}</h3><p>Warning</p></div>
                <div class="summary-card severity-info"><h3>{{ summary.info }}</h3><p>Info</p></div>
            </div>

            <div class="section">
                <div class="section-header"><h2>Findings by Category</h2></div>
                <div class="section-content">
                    {% for category_id, category in categories.items() %}
                    {% if category.count > 0 %}
                    <div class="category-header" onclick="toggle('category-{{ category_id }}')">
                        <span>{{ category.title }}</span>
                        <span>{{ category.count }} findings</span>
                    </div>
                    <div class="collapsible active" id="category-{{ category_id }}">
                        {% for finding in category.findings %}
                        <div class="finding {{ finding.severity }}">
                            <h4>{{ finding.title }} <small>({{ finding.code }})</small></h4>
                            <div class="finding-meta">
                                <span class="badge badge-{{ finding.severity }}">{{ finding.severity }}</span>
                                <span>{{ finding.filename }}:{{ finding.location.line }}:{{ finding.location.column }}</span>
                                <span>Confidence {{ finding.confidence }}</span>
                                {% for cwe_id in finding.cweIds|default([]) %}
                                <span class="badge">CWE-{{ cwe_id }}</span>
                                {% endfor %}
                            </div>
                            <p>{{ finding.message }}</p>
                        </div>
                        {% endfor %}
                    </div>
                    {% endif %}
                    {% endfor %}
                </div>
            </div>

            <div class="section">
                <div class="section-header"><h2>Contract Results</h2></div>
                <div class="section-content">
                    {% for file in file_results %}
                    <div class="file-header {% if not file.is_valid %}invalid{% endif %}" onclick="toggle('file-{{ loop.index }}')">
                        <span>{{ file.filename }} ({{ file.language }})</span>
                        <span>
                            {% if file.security_score is not none %}Score {{ file.security_score }} &middot; {{ file.risk_level }} risk &middot; {% endif %}
                            {{ file.finding_count }} findings
                        </span>
                    </div>
                    <div class="collapsible" id="file-{{ loop.index }}">
                        {% if file.error %}
                        <p><strong>Analysis failed:</strong> {{ file.error }}</p>
                        {% endif %}

                        {% if file.metrics %}
                        <table class="metrics-table">
                            <tr><td>Cyclomatic complexity</td><td>{{ file.metrics.complexity.cyclomatic }}</td></tr>
                            <tr><td>Cognitive complexity</td><td>{{ file.metrics.complexity.cognitive }}</td></tr>
                            <tr><td>Halstead volume</td><td>{{ file.metrics.complexity.halstead.volume|round(2) }}</td></tr>
                            <tr><td>Lines (total / source / comment)</td><td>{{ file.metrics.size.loc }} / {{ file.metrics.size.sloc }} / {{ file.metrics.size.comments }}</td></tr>
                            <tr><td>Functions / structs</td><td>{{ file.metrics.size.functions }} / {{ file.metrics.size.structs }}</td></tr>
                            <tr><td>Documentation coverage</td><td>{{ (file.metrics.documentation.coverage * 100)|round(1) }}%</td></tr>
                            <tr><td>Maintainability</td><td>{{ file.metrics.maintainability.score }}</td></tr>
                        </table>
                        {% endif %}

                        {% for finding in file.findings %}
                        <div class="finding {{ finding.severity }}">
                            <h4>{{ finding.title }} <small>({{ finding.code }})</small></h4>
                            <div class="finding-meta">
                                <span class="badge badge-{{ finding.severity }}">{{ finding.severity }}</span>
                                <span>Line {{ finding.location.line }}, column {{ finding.location.column }}</span>
                            </div>
                            <p>{{ finding.message }}</p>
                            {% if finding.code_snippet %}
                            <div class="code-snippet">{{ finding.code_snippet }}</div>
                            {% endif %}
                            {% if finding.remediation %}
                            <div class="remediation"><strong>Remediation:</strong> {{ finding.remediation }}</div>
                            {% endif %}
                            {% if finding.references %}
                            <div class="references">
                                <strong>References:</strong>
                                {% for ref in finding.references %}
                                <a href="{{ ref }}" target="_blank">{{ ref }}</a>
                                {% endfor %}
                            </div>
                            {% endif %}
                        </div>
                        {% else %}
                        {% if not file.error %}<p>No findings in this contract.</p>{% endif %}
                        {% endfor %}

                        {% if file.suggestions %}
                        <h4>Suggestions</h4>
                        {% for suggestion in file.suggestions %}
                        <div class="suggestion">
                            <span class="badge">{{ suggestion.priority }}</span>
                            {{ suggestion.message }}{% if suggestion.line %} (line {{ suggestion.line }}){% endif %}:
                            {{ suggestion.recommendation }}
                        </div>
                        {% endfor %}
                        {% endif %}
                    </div>
                    {% endfor %}
                </div>
            </div>
        </div>

        <div class="footer">
            <p>Generated by <strong>Sentinel Smart Contract Analyzer</strong></p>
            <p>Scan started {{ start_time }}, finished {{ end_time }} ({{ summary.analysis_duration }}s)</p>
            <p>Copyright &copy; 2025 <a href="https://www.redcellsecurity.org" target="_blank">Red Cell Security, LLC</a></p>
        </div>

        <script>
            function toggle(id) {
                document.getElementById(id).classList.toggle('active');
            }
        </script>
    </body>
    </html>"""

        env = Environment(loader=BaseLoader(), autoescape=True)
        return env.from_string(template_content)
