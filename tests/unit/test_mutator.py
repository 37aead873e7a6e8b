"""Tests for ordermint.ledger: TokenMutator, DryRunSubmitter, AptosSdkSubmitter setup."""

from __future__ import annotations

import logging

import pytest

from ordermint.core import TokenClass
from ordermint.errors import ConfigError
from ordermint.ledger.aptos_submitter import AptosSdkSubmitter
from ordermint.ledger.mutator import FN_BURN, FN_MINT, TokenMutator
from ordermint.ledger.submitter import DryRunSubmitter
from ordermint.ledger.types import EntryFunctionCall, MutationOutcome

MODULE_ID = "0xabc::SpoutToken"


@pytest.fixture
def submitter() -> DryRunSubmitter:
    return DryRunSubmitter()


@pytest.fixture
def mutator(submitter: DryRunSubmitter) -> TokenMutator:
    return TokenMutator(submitter=submitter, module_id=MODULE_ID)


class TestTokenMutator:
    def test_type_argument(self, mutator: TokenMutator) -> None:
        assert mutator.type_argument(TokenClass.TSLA) == "0xabc::SpoutToken::TSLA"

    def test_mint_call(self, mutator: TokenMutator, submitter: DryRunSubmitter) -> None:
        outcome = mutator.mint("0xA11CE", TokenClass.AAPL, 10**16)

        assert outcome.success
        call = submitter.calls[0]
        assert call.function == f"{MODULE_ID}::{FN_MINT}"
        assert call.type_arguments == ("0xabc::SpoutToken::AAPL",)
        assert call.arguments == ("0xA11CE", 10**16)

    def test_burn_call(self, mutator: TokenMutator, submitter: DryRunSubmitter) -> None:
        mutator.burn("0xB0B", TokenClass.LQD, 5)
        call = submitter.calls[0]
        assert call.function == "0xabc::SpoutToken::admin_burn_from"
        assert call.function_name == FN_BURN
        assert call.arguments == ("0xB0B", 5)

    def test_amount_passed_unscaled(
        self, mutator: TokenMutator, submitter: DryRunSubmitter
    ) -> None:
        mutator.mint("0xA11CE", TokenClass.USD, 2**70)
        assert submitter.calls[0].arguments[1] == 2**70

    def test_negative_amount_rejected(self, mutator: TokenMutator) -> None:
        with pytest.raises(ValueError):
            mutator.mint("0xA11CE", TokenClass.USD, -1)

    def test_submitter_exception_propagates(self) -> None:
        class Boom:
            def submit(self, call: EntryFunctionCall) -> MutationOutcome:
                raise RuntimeError("node down")

        with pytest.raises(RuntimeError, match="node down"):
            TokenMutator(submitter=Boom(), module_id=MODULE_ID).burn("0x1", TokenClass.USD, 1)


class TestEntryFunctionCall:
    def test_parts(self) -> None:
        call = EntryFunctionCall(function="0xabc::SpoutToken::mint")
        assert call.module_id == "0xabc::SpoutToken"
        assert call.function_name == "mint"

    def test_to_dict_encodes_u64_as_string(self) -> None:
        call = EntryFunctionCall(
            function="0xabc::SpoutToken::set_user_verification",
            arguments=("0xA11CE", True, 42),
        )
        assert call.to_dict()["arguments"] == ["0xA11CE", True, "42"]


class TestDryRunSubmitter:
    def test_records_and_succeeds(self, submitter: DryRunSubmitter) -> None:
        call = EntryFunctionCall(function="0xabc::SpoutToken::mint", arguments=("0x1", 1))
        outcome = submitter.submit(call)

        assert outcome.success
        assert outcome.gas_used == "0"
        assert outcome.tx_hash.startswith("0xdryrun")
        assert submitter.calls == [call]

    def test_hashes_differ_per_call(self, submitter: DryRunSubmitter) -> None:
        call = EntryFunctionCall(function="0xabc::SpoutToken::mint", arguments=("0x1", 1))
        assert submitter.submit(call).tx_hash != submitter.submit(call).tx_hash

    def test_configured_failure(self) -> None:
        submitter = DryRunSubmitter(fail_functions=frozenset({"admin_burn_from"}))
        ok = submitter.submit(EntryFunctionCall(function="0xabc::SpoutToken::mint"))
        failed = submitter.submit(EntryFunctionCall(function="0xabc::SpoutToken::admin_burn_from"))

        assert ok.success
        assert not failed.success
        assert failed.error_message == "dry-run configured failure"
        assert failed.tx_hash.startswith("0xdryrun")


class TestMutationOutcome:
    def test_failed(self) -> None:
        outcome = MutationOutcome.failed("E_NOT_ADMIN", tx_hash="0x9")
        assert outcome.to_dict() == {
            "tx_hash": "0x9",
            "success": False,
            "gas_used": None,
            "error_message": "E_NOT_ADMIN",
        }


class TestAptosSdkSubmitter:
    def test_missing_key_is_config_error(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("MODULE_PUBLISHER_ACCOUNT_PRIVATE_KEY", raising=False)
        # Also a ConfigError when the aptos extra is not installed.
        with pytest.raises(ConfigError):
            AptosSdkSubmitter("https://node.test/v1")

    def test_committed_success_outcome(self) -> None:
        txn = {"type": "user_transaction", "success": True, "gas_used": 42, "vm_status": "ok"}
        outcome = AptosSdkSubmitter._outcome("0xabc", txn)

        assert outcome.success
        assert outcome.gas_used == "42"
        assert outcome.error_message is None

    def test_committed_vm_failure_outcome(self) -> None:
        txn = {
            "type": "user_transaction",
            "success": False,
            "gas_used": "7",
            "vm_status": "Move abort: E_NOT_ADMIN",
        }
        outcome = AptosSdkSubmitter._outcome("0xabc", txn)

        assert not outcome.success
        assert outcome.error_message == "Move abort: E_NOT_ADMIN"

    def test_pending_transaction_is_indeterminate(
        self, caplog: pytest.LogCaptureFixture
    ) -> None:
        txn = {"type": "pending_transaction", "hash": "0xabc"}
        with caplog.at_level(logging.WARNING):
            outcome = AptosSdkSubmitter._outcome("0xabc", txn)

        assert not outcome.success
        assert outcome.tx_hash == "0xabc"
        assert outcome.gas_used is None
        assert "pending" in (outcome.error_message or "")
        assert "indeterminate" in (outcome.error_message or "")
        assert "TX_PENDING" in caplog.messages
