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

"""Tests for the Rust contract detectors, one finding code at a time."""

import pytest

from core import AnalysisOptions, Config, ContractAnalyzer
from rules.contract_rules import get_contract_pattern


def run(analyzer, source, **options):
    return analyzer.analyze(source, AnalysisOptions(**options))


def findings(result, code):
    return [finding for finding in result.get_findings() if finding.code == code]


def program(body):
    return "#[program]\npub mod m {\n" + body + "\n}\n"


class TestReentrancy:
    """State written after an external call."""

    def test_write_after_invoke(self, analyzer, vulnerable_source):
        result = run(analyzer, vulnerable_source)
        reentrancy = findings(result, 'REENTRANCY')
        assert len(reentrancy) == 1
        finding = reentrancy[0]
        assert finding.severity == 'critical'
        assert finding.line_number == 9
        assert finding.confidence == pytest.approx(0.95)
        assert "ctx.accounts.vault.balance" in finding.message
        assert "line 10" in finding.message
        assert finding in result.errors
        assert not result.is_valid

    def test_guard_suppresses_finding(self, analyzer, guarded_source):
        assert findings(run(analyzer, guarded_source), 'REENTRANCY') == []

    def test_checks_effects_interactions_order_is_clean(self, analyzer):
        source = program("""    pub fn withdraw(ctx: Context<Withdraw>, amount: u64) -> Result<()> {
        let balance = ctx.accounts.vault.balance;
        ctx.accounts.vault.balance = balance - amount;
        invoke(&transfer_ix, &[ctx.accounts.vault.to_account_info()])?;
        Ok(())
    }""")
        assert findings(run(analyzer, source), 'REENTRANCY') == []

    def test_unrelated_write_is_clean(self, analyzer):
        source = program("""    pub fn pay(ctx: Context<Pay>) -> Result<()> {
        let fee = ctx.accounts.config.fee;
        invoke(&ix, &[])?;
        ctx.accounts.stats.count = 1;
        Ok(())
    }""")
        assert findings(run(analyzer, source), 'REENTRANCY') == []

    @pytest.mark.parametrize("call,write", [
        ("token::transfer(ctx, amount)?;", "ctx.accounts.stats.count = 1;"),
        ("invoke(&ix, &[ctx.accounts.vault.to_account_info()])?;", "ctx.accounts.vault.balance = 0;"),
    ])
    def test_account_passed_to_call_is_not_a_field_read(self, analyzer, call, write):
        source = program(f"""    pub fn pay(ctx: Context<Pay>, amount: u64) -> Result<()> {{
        {call}
        {write}
        Ok(())
    }}""")
        assert findings(run(analyzer, source), 'REENTRANCY') == []

    def test_field_below_written_path_read_before_call(self, analyzer):
        source = program("""    pub fn reset(ctx: Context<Reset>) -> Result<()> {
        let total = ctx.accounts.vault.stats.total;
        invoke(&ix, &[])?;
        ctx.accounts.vault.stats = Stats::default();
        Ok(())
    }""")
        reentrancy = findings(run(analyzer, source), 'REENTRANCY')
        assert len(reentrancy) == 1
        assert "ctx.accounts.vault.stats" in reentrancy[0].message

    def test_branch_on_path_lowers_confidence(self, analyzer):
        source = program("""    pub fn withdraw(ctx: Context<Withdraw>, amount: u64) -> Result<()> {
        let balance = ctx.accounts.vault.balance;
        invoke(&transfer_ix, &[])?;
        if amount > 0 {
            ctx.accounts.vault.balance = balance - amount;
        }
        Ok(())
    }""")
        reentrancy = findings(run(analyzer, source), 'REENTRANCY')
        assert len(reentrancy) == 1
        assert reentrancy[0].confidence == pytest.approx(0.8)

    def test_access_control_attribute_suppresses(self, analyzer):
        source = program("""    #[access_control(admin_only(&ctx))]
    pub fn withdraw(ctx: Context<Withdraw>, amount: u64) -> Result<()> {
        let balance = ctx.accounts.vault.balance;
        invoke(&transfer_ix, &[])?;
        ctx.accounts.vault.balance = balance - amount;
        Ok(())
    }""")
        assert findings(run(analyzer, source), 'REENTRANCY') == []

    def test_runs_without_security_stage(self, analyzer, vulnerable_source):
        result = run(analyzer, vulnerable_source, validate_security=False)
        assert len(findings(result, 'REENTRANCY')) == 1
        assert result.security_score is None


class TestUncheckedMath:

    def test_compound_assignment_to_state_is_error(self, analyzer):
        source = program("""    pub fn deposit(ctx: Context<Deposit>, amount: u64) -> Result<()> {
        ctx.accounts.vault.balance += amount;
        Ok(())
    }""")
        math = findings(run(analyzer, source, validate_security=True), 'UNCHECKED_MATH')
        assert len(math) == 1
        assert math[0].severity == 'error'
        assert math[0].line_number == 4
        assert "ctx.accounts.vault.balance" in math[0].message

    def test_binary_operation_is_warning(self, analyzer):
        source = "fn f(a: u64, b: u64) -> u64 {\n    let total = a + b;\n    total\n}"
        math = findings(run(analyzer, source, validate_security=True), 'UNCHECKED_MATH')
        assert [(f.severity, f.line_number) for f in math] == [('warning', 2)]

    def test_literal_arithmetic_is_ignored(self, analyzer):
        source = "fn f() -> u64 {\n    let total = 1 + 2;\n    total\n}"
        assert findings(run(analyzer, source, validate_security=True), 'UNCHECKED_MATH') == []

    def test_checked_arithmetic_is_ignored(self, analyzer):
        source = "fn f(a: u64, b: u64) -> Option<u64> {\n    a.checked_add(b + 1)\n}"
        assert findings(run(analyzer, source, validate_security=True), 'UNCHECKED_MATH') == []

    def test_one_finding_per_statement(self, analyzer):
        source = "fn f(a: u64, b: u64, c: u64) -> u64 {\n    let total = a + b * c;\n    total\n}"
        assert len(findings(run(analyzer, source, validate_security=True), 'UNCHECKED_MATH')) == 1


class TestAccessControl:

    SET_FEE = """    pub fn set_fee(ctx: Context<SetFee>, fee: u64) -> Result<()> {
        ctx.accounts.config.fee = fee;
        Ok(())
    }"""

    def test_unprotected_state_write(self, analyzer):
        source = program(self.SET_FEE) + (
            "#[derive(Accounts)]\npub struct SetFee<'info> {\n"
            "    #[account(mut)]\n    pub config: Account<'info, Config>,\n}\n"
        )
        access = findings(run(analyzer, source, validate_security=True), 'MISSING_ACCESS_CONTROL')
        assert len(access) == 1
        assert access[0].line_number == 3
        assert access[0].message == "Public function 'set_fee' modifies state without access control"
        assert access[0].severity == 'error'

    def test_signer_in_accounts_struct(self, analyzer):
        source = program(self.SET_FEE) + (
            "#[derive(Accounts)]\npub struct SetFee<'info> {\n"
            "    #[account(mut, has_one = admin)]\n    pub config: Account<'info, Config>,\n"
            "    pub admin: Signer<'info>,\n}\n"
        )
        assert findings(run(analyzer, source, validate_security=True), 'MISSING_ACCESS_CONTROL') == []

    def test_private_function_is_ignored(self, analyzer):
        source = "fn set(ctx: Context<Set>) {\n    ctx.accounts.config.fee = 1;\n}"
        assert findings(run(analyzer, source, validate_security=True), 'MISSING_ACCESS_CONTROL') == []

    def test_external_call_without_check(self, analyzer):
        source = "pub fn pay(ctx: Context<Pay>) {\n    invoke(&ix, &[])?;\n}"
        access = findings(run(analyzer, source, validate_security=True), 'MISSING_ACCESS_CONTROL')
        assert access[0].message == "Public function 'pay' calls another program without access control"


class TestRegexDetectors:

    def test_unsafe_block(self, analyzer):
        result = run(analyzer, "fn f() {\n    unsafe { g(); }\n}", validate_security=True)
        jump = findings(result, 'ARBITRARY_JUMP')
        assert [(f.severity, f.line_number, f.column_number) for f in jump] == [('critical', 2, 5)]

    def test_commented_out_unsafe_is_ignored(self, analyzer):
        result = run(analyzer, "fn f() {\n    // unsafe { g(); }\n}", validate_security=True)
        assert findings(result, 'ARBITRARY_JUMP') == []

    @pytest.mark.parametrize("level,expected", [('basic', 0), ('standard', 1), ('high', 1)])
    def test_timestamp_dependence_levels(self, analyzer, level, expected):
        source = "fn f() -> i64 {\n    let now = Clock::get()?.unix_timestamp;\n    now\n}"
        result = run(analyzer, source, validate_security=True, security_level=level)
        assert len(findings(result, 'TIMESTAMP_DEPENDENCE')) == expected

    @pytest.mark.parametrize("level,expected", [('standard', 0), ('high', 1)])
    def test_weak_randomness_levels(self, analyzer, level, expected):
        source = "fn f(clock: Clock) -> u64 {\n    let pick = clock.slot % 10;\n    pick\n}"
        result = run(analyzer, source, validate_security=True, security_level=level)
        assert len(findings(result, 'WEAK_RANDOMNESS')) == expected

    @pytest.mark.parametrize("level,expected", [('standard', 0), ('high', 1)])
    def test_unsafe_casting_levels(self, analyzer, level, expected):
        source = "fn f(amount: u64) -> u8 {\n    let small = amount as u8;\n    small\n}"
        result = run(analyzer, source, validate_security=True, security_level=level)
        assert len(findings(result, 'UNSAFE_CASTING')) == expected


class TestMissingValidation:

    def test_unvalidated_parameter(self, analyzer):
        source = "pub fn set(ctx: Context<Set>, fee: u64) {\n    ctx.accounts.config.fee = fee;\n}"
        validation = findings(run(analyzer, source, validate_security=True), 'MISSING_VALIDATION')
        assert [(f.line_number, f.column_number) for f in validation] == [(1, 31)]
        assert "'fee'" in validation[0].message

    def test_require_counts_as_validation(self, analyzer):
        source = ("pub fn set(ctx: Context<Set>, fee: u64) {\n"
                  "    require!(fee <= 100, ErrorCode::FeeTooHigh);\n"
                  "    ctx.accounts.config.fee = fee;\n}")
        assert findings(run(analyzer, source, validate_security=True), 'MISSING_VALIDATION') == []

    def test_not_run_at_basic_level(self, analyzer):
        source = "pub fn set(ctx: Context<Set>, fee: u64) {\n    ctx.accounts.config.fee = fee;\n}"
        result = run(analyzer, source, validate_security=True, security_level='basic')
        assert findings(result, 'MISSING_VALIDATION') == []


class TestSyntaxDetectors:

    @pytest.mark.parametrize("source,code", [
        ("#[program]\nmod m {}\n/* open", 'UNTERMINATED_COMMENT'),
        ('#[program]\nmod m { fn f() { let s = "open; } }', 'UNTERMINATED_STRING'),
        ("#[program]\nmod m { fn f() { let t = (1, 2]; } }", 'MISMATCHED_DELIMITER'),
        ("#[program]\nmod m { fn f() { let v = [1, 2; } }", 'UNCLOSED_BRACKET'),
    ])
    def test_lexical_errors(self, analyzer, source, code):
        result = run(analyzer, source, validate_syntax=True)
        assert code in [f.code for f in result.errors]
        assert not result.is_valid

    def test_mismatched_delimiter_message(self, analyzer):
        result = run(analyzer, "#[program]\nmod m { fn f() { let t = (1, 2]; } }", validate_syntax=True)
        mismatch = findings(result, 'MISMATCHED_DELIMITER')[0]
        assert mismatch.message == "Mismatched delimiter: '(' at line 2 closed by ']'"

    def test_unclosed_bracket_message(self, analyzer):
        result = run(analyzer, "#[program]\nmod m { fn f() { let v = [1, 2; } }", validate_syntax=True)
        assert findings(result, 'UNCLOSED_BRACKET')[0].message == "Unclosed square brackets: 1"

    def test_missing_entry_point(self, analyzer):
        result = run(analyzer, "fn helper() {}", validate_syntax=True)
        entry = findings(result, 'MISSING_ENTRY_POINT')
        assert [(f.severity, f.line_number, f.column_number) for f in entry] == [('warning', 1, 1)]
        assert result.is_valid

    @pytest.mark.parametrize("marker", [
        "#[program]\nmod m {}",
        "entrypoint!(process_instruction);",
        "pub fn process_instruction() {}",
    ])
    def test_entry_points(self, analyzer, marker):
        assert findings(run(analyzer, marker, validate_syntax=True), 'MISSING_ENTRY_POINT') == []

    def test_entry_point_in_comment_does_not_count(self, analyzer):
        result = run(analyzer, "// #[program]\nfn helper() {}", validate_syntax=True)
        assert len(findings(result, 'MISSING_ENTRY_POINT')) == 1

    def test_syntax_stage_off(self, analyzer):
        assert run(analyzer, "fn helper() {}").get_findings() == []


class TestDataflowDetectors:

    def test_unreachable_code(self, analyzer):
        result = run(analyzer, "fn f() -> u64 {\n    return 1;\n    let y = 2;\n}")
        unreachable = findings(result, 'UNREACHABLE_CODE')
        assert [(f.line_number, f.column_number, f.message) for f in unreachable] == [
            (3, 5, "Unreachable code in 'f'")
        ]
        assert findings(result, 'UNUSED_ASSIGNMENT') == []

    def test_unused_assignment(self, analyzer):
        result = run(analyzer, "fn f() {\n    let unused = 5;\n    let _x = 1;\n}")
        unused = findings(result, 'UNUSED_ASSIGNMENT')
        assert [(f.severity, f.line_number, f.column_number) for f in unused] == [('info', 2, 9)]
        assert result.is_valid

    def test_not_converged(self, analyzer, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("dataflow:\n  iteration_factor: 1\n")
        limited = ContractAnalyzer(Config(str(path)))
        result = limited.analyze("pub fn f(a: u64) -> u64 { let b = a; b }", AnalysisOptions())
        warning = findings(result, 'DATAFLOW_NOT_CONVERGED')
        assert [(f.severity, f.message) for f in warning] == [('warning', "data-flow analysis did not converge")]
        assert result.is_valid


class TestDeepAnalysis:

    def test_large_function(self, analyzer):
        source = "fn big() {\n" + "    tick();\n" * 58 + "}\n"
        result = run(analyzer, source, deep_analysis=True)
        large = findings(result, 'LARGE_FUNCTION')
        assert len(large) == 1
        assert large[0].message == "Function 'big' is 60 lines long (limit 50)"

    def test_large_function_needs_deep_analysis(self, analyzer):
        source = "fn big() {\n" + "    tick();\n" * 58 + "}\n"
        assert findings(run(analyzer, source), 'LARGE_FUNCTION') == []

    def test_clone_in_loop(self, analyzer):
        source = ("fn f(items: Vec<Item>) {\n    for item in items.iter() {\n"
                  "        let copy = item.clone();\n        store(copy);\n    }\n}")
        expensive = findings(run(analyzer, source, deep_analysis=True), 'EXPENSIVE_LOOP_OPERATION')
        assert [(f.line_number, f.message) for f in expensive] == [
            (3, "Expensive operation 'clone' inside a loop")
        ]

    @pytest.mark.parametrize("source,message", [
        ("fn f() {\n    loop { tick(); }\n}", "'loop' without break or return"),
        ("fn f() {\n    while true { tick(); }\n}", "'while true' loop"),
    ])
    def test_infinite_loops(self, analyzer, source, message):
        loops = findings(run(analyzer, source, deep_analysis=True), 'POTENTIAL_INFINITE_LOOP')
        assert [(f.line_number, f.message) for f in loops] == [(2, message)]

    @pytest.mark.parametrize("source", [
        "fn f() {\n    loop { if done() { break; } }\n}",
        "fn f() -> u64 {\n    loop { if done() { return 1; } }\n}",
        "fn f() {\n    while running() { tick(); }\n}",
    ])
    def test_loops_with_exit(self, analyzer, source):
        assert findings(run(analyzer, source, deep_analysis=True), 'POTENTIAL_INFINITE_LOOP') == []

    def test_break_of_inner_loop_does_not_exit_outer(self, analyzer):
        source = "fn f() {\n    loop {\n        loop { break; }\n    }\n}"
        loops = findings(run(analyzer, source, deep_analysis=True), 'POTENTIAL_INFINITE_LOOP')
        assert [f.line_number for f in loops] == [2]


class TestCompatibility:

    def test_deprecated_features(self, analyzer):
        source = ('declare_id!("Fg6PaFpoGXkYsidMpWTK6W2BeZ7FEfcYkg476zPFsLnS");\n'
                  "fn f() {\n    syscall(1);\n}")
        result = run(analyzer, source, validate_compatibility=True)
        deprecated = findings(result, 'DEPRECATED_FEATURE')
        assert [(f.severity, f.line_number) for f in deprecated] == [('info', 1), ('warning', 3)]
        assert result.is_valid

    def test_compatibility_stage_off(self, analyzer):
        result = run(analyzer, "fn f() {\n    syscall(1);\n}")
        assert findings(result, 'DEPRECATED_FEATURE') == []


class TestFindingEnrichment:

    def test_catalogue_data_and_snippet(self, analyzer, vulnerable_source):
        finding = findings(run(analyzer, vulnerable_source), 'REENTRANCY')[0]
        assert finding.title == "Reentrancy"
        assert finding.cwe_ids == [841]
        assert finding.remediation
        assert ">  9 | " in finding.code_snippet
        data = finding.to_dict()
        assert data['location'] == {'line': 9, 'column': 9, 'length': 6}
        assert data['cweIds'] == [841]

    def test_every_rule_has_a_catalogue_entry(self, rust_analyzer):
        for code in rust_analyzer.get_supported_rules():
            assert get_contract_pattern(code) is not None, code
