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

"""Tests for reaching-definitions analysis and statement effects."""

import pytest

from language_modules.rust.cfg_builder import ControlFlowGraphBuilder, NodeKind
from language_modules.rust.dataflow import (
    DataFlowAnalyzer, read_paths, statement_effects, write_matches_read
)
from language_modules.rust.parser import StatementParser
from language_modules.rust.tokenizer import Tokenizer


def solve(source, iteration_factor=50):
    cfg = ControlFlowGraphBuilder().build(Tokenizer().tokenize(source))
    return cfg, DataFlowAnalyzer(iteration_factor).analyze(cfg)


def first_statement(source):
    program = StatementParser(Tokenizer().tokenize(source).to_list()).parse()
    return program.functions[0].body.statements[0]


def node_with(cfg, prefix):
    return next(node for node in cfg.iter_nodes() if node.text.startswith(prefix))


class TestStatementEffects:

    def test_let_defines_pattern_and_reads_initializer(self):
        effects = statement_effects(first_statement("fn f() { let (a, mut b) = pair(ctx.accounts.vault.amount); }"))
        assert [name for name, _ in effects.defines] == ['a', 'b']
        assert effects.uses == {'ctx.accounts.vault.amount'}
        assert effects.is_let

    def test_state_write(self):
        effects = statement_effects(first_statement("fn f() { ctx.accounts.vault.balance = balance - amount; }"))
        assert effects.state_writes == ['ctx.accounts.vault.balance']
        assert effects.uses == {'balance', 'amount'}

    def test_compound_assignment_reads_target(self):
        effects = statement_effects(first_statement("fn f() { vault.total += amount; }"))
        assert effects.state_writes == ['vault.total']
        assert effects.uses == {'vault.total', 'amount'}

    def test_dereferenced_local_is_state(self):
        effects = statement_effects(first_statement("fn f() { *counter = 5; }"))
        assert effects.state_writes == ['counter']

    def test_plain_local_assignment_is_not_state(self):
        effects = statement_effects(first_statement("fn f() { total = 5; }"))
        assert effects.state_writes == []
        assert [name for name, _ in effects.defines] == ['total']

    def test_method_names_are_not_reads(self):
        tokens = Tokenizer().tokenize("vault.balance.checked_add(amount)").to_list()
        assert read_paths(tokens) == ['vault.balance', 'amount']

    def test_format_arguments_are_reads(self):
        tokens = Tokenizer().tokenize('msg!("{amount} lamports", )').to_list()
        assert read_paths(tokens) == ['amount']

    def test_type_paths_are_not_reads(self):
        tokens = Tokenizer().tokenize("Clock::get()?.unix_timestamp").to_list()
        assert read_paths(tokens) == []


class TestPathMatching:

    @pytest.mark.parametrize("written,read,expected", [
        ('vault.balance', 'vault.balance', True),
        ('vault.balance', 'vault.balance.amount', True),
        ('vault.balance', 'vault', False),
        ('ctx.accounts.stats.count', 'ctx', False),
        ('vault.bal', 'vault.balance', False),
        ('other.balance', 'vault.balance', False),
    ])
    def test_write_matches_read(self, written, read, expected):
        assert write_matches_read(written, read) is expected


class TestReachingDefinitions:

    def test_definitions_merge_at_join(self):
        cfg, result = solve("""fn f() {
    let a = 1;
    if c() {
        a = 2;
    }
    use_it(a);
}""")
        node = node_with(cfg, 'use_it')
        assert {(d.variable, d.line) for d in result.reaching(node.id)} == {('a', 2), ('a', 4)}

    def test_redefinition_kills_earlier_definition(self):
        cfg, result = solve("fn f() {\n    let a = 1;\n    a = 2;\n    use_it(a);\n}")
        node = node_with(cfg, 'let a')
        assert {(d.variable, d.line) for d in result.facts[node.id].reach_out} == {('a', 3)}

    def test_parameters_are_defined_at_entry(self):
        cfg, result = solve("fn f(amount: u64) {\n    use_it(amount);\n}")
        node = node_with(cfg, 'use_it')
        assert {d.variable for d in result.reaching(node.id)} == {'amount'}

    def test_facts_do_not_cross_functions(self):
        cfg, result = solve("fn a() { let x = 1; }\nfn b() { use_it(x); }")
        node = node_with(cfg, 'use_it')
        assert result.reaching(node.id) == frozenset()

    def test_loop_carries_definitions_back_to_header(self):
        cfg, result = solve("fn f() {\n    let mut i = 0;\n    while i < 3 {\n        i = i + 1;\n    }\n}")
        header = next(cfg.iter_nodes(NodeKind.LOOP_HEADER))
        assert {(d.variable, d.line) for d in result.reaching(header.id)} == {('i', 2), ('i', 4)}

    def test_converges(self):
        _, result = solve("fn f(x: u64) { if x > 1 { a(); } b(); }")
        assert result.converged
        assert result.iterations > 0

    def test_iteration_cap(self):
        _, result = solve("pub fn f(a: u64) -> u64 { let b = a; b }", iteration_factor=1)
        assert not result.converged
        assert result.iterations == 5


class TestCallOrdering:

    def test_reads_before_and_writes_after_call(self, vulnerable_source):
        cfg, result = solve(vulnerable_source)
        call = next(cfg.iter_nodes(NodeKind.CALL_SITE))
        reads = result.reads_before(call.id)
        assert 'ctx.accounts.vault.balance' in reads
        assert 'ctx.accounts.vault' in reads
        writes = result.writes_after(call.id)
        assert [path for _, path in writes] == ['ctx.accounts.vault.balance']
        assert cfg.nodes[writes[0][0]].line == 10


class TestUnusedBindings:

    def test_unused_binding(self):
        _, result = solve("fn f() {\n    let unused = 5;\n    let _skip = 1;\n    let used = 2;\n    g(used);\n}")
        assert [(b.name, b.line) for b in result.unused_bindings()] == [('unused', 2)]

    def test_binding_read_in_later_node(self):
        _, result = solve("fn f(x: u64) {\n    let a = 1;\n    if x > 1 { g(a); }\n}")
        assert result.unused_bindings() == []

    def test_shadowed_binding_is_unused(self):
        _, result = solve("fn f() {\n    let a = 1;\n    let a = 2;\n    g(a);\n}")
        assert [(b.name, b.line) for b in result.unused_bindings()] == [('a', 2)]

    def test_binding_used_on_next_loop_iteration(self):
        _, result = solve("fn f() {\n    loop {\n        g(last);\n        let last = 1;\n    }\n}")
        assert result.unused_bindings() == []

    def test_binding_used_on_next_while_iteration(self):
        _, result = solve("fn f(n: u64) {\n    let mut i = 0;\n    while i < n {\n        g(total);\n"
                          "        let total = i;\n    }\n}")
        assert result.unused_bindings() == []

    def test_binding_outside_loop_is_not_loop_carried(self):
        _, result = solve("fn f() {\n    g(late);\n    let late = 1;\n}")
        assert [(b.name, b.line) for b in result.unused_bindings()] == [('late', 3)]
