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

"""Shared fixtures: contract sources and analyzer instances."""

import pytest

from core import Config, ContractAnalyzer, AnalysisOptions
from language_modules.rust.analyzer import RustContractAnalyzer


VULNERABLE_WITHDRAW = """use anchor_lang::prelude::*;

#[program]
pub mod vault {
    use super::*;

    pub fn withdraw(ctx: Context<Withdraw>, amount: u64) -> Result<()> {
        let balance = ctx.accounts.vault.balance;
        invoke(&transfer_ix, &[ctx.accounts.vault.to_account_info()])?;
        ctx.accounts.vault.balance = balance - amount;
        Ok(())
    }
}
"""

GUARDED_WITHDRAW = """use anchor_lang::prelude::*;

#[program]
pub mod vault {
    use super::*;

    pub fn withdraw(ctx: Context<Withdraw>, amount: u64) -> Result<()> {
        let balance = ctx.accounts.vault.balance;
        ctx.accounts.vault.locked = true;
        invoke(&transfer_ix, &[ctx.accounts.vault.to_account_info()])?;
        ctx.accounts.vault.balance = balance - amount;
        ctx.accounts.vault.locked = false;
        Ok(())
    }
}
"""

CLEAN_PROGRAM = """use anchor_lang::prelude::*;

#[program]
pub mod counter {
    use super::*;

    /// Reads the counter.
    pub fn get(ctx: Context<Get>) -> Result<u64> {
        Ok(ctx.accounts.counter.count)
    }
}

#[derive(Accounts)]
pub struct Get<'info> {
    pub counter: Account<'info, Counter>,
}
"""


@pytest.fixture
def config():
    return Config()


@pytest.fixture
def rust_analyzer(config):
    return RustContractAnalyzer(config)


@pytest.fixture
def analyzer(config, rust_analyzer):
    return ContractAnalyzer(config, language_analyzer=rust_analyzer)


@pytest.fixture
def all_stages():
    return AnalysisOptions(
        validate_syntax=True,
        validate_security=True,
        security_level='high',
        include_metrics=True,
        deep_analysis=True,
        validate_compatibility=True
    )


@pytest.fixture
def vulnerable_source():
    return VULNERABLE_WITHDRAW


@pytest.fixture
def guarded_source():
    return GUARDED_WITHDRAW


@pytest.fixture
def clean_source():
    return CLEAN_PROGRAM