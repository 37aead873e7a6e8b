"""TransactionSubmitter backed by the ``aptos-sdk`` package.

Requires the ``aptos`` extra (``pip install ordermint[aptos]``). The SDK is
imported lazily so dry-run deployments and tests never need it.

The signing key is read from MODULE_PUBLISHER_ACCOUNT_PRIVATE_KEY (hex, with
or without the ``ed25519-priv-`` prefix) and is never logged.
"""

from __future__ import annotations

import asyncio
import logging
import os
from typing import TYPE_CHECKING, Any

from ordermint.errors import ConfigError
from ordermint.ledger.types import MutationOutcome

if TYPE_CHECKING:
    from ordermint.ledger.types import EntryFunctionCall

logger = logging.getLogger(__name__)

ENV_PRIVATE_KEY = "MODULE_PUBLISHER_ACCOUNT_PRIVATE_KEY"
_KEY_PREFIX = "ed25519-priv-"


def _strip_key_prefix(raw: str) -> str:
    key = raw.strip()
    if key.startswith(_KEY_PREFIX):
        key = key[len(_KEY_PREFIX) :]
    return key


class AptosSdkSubmitter:
    """Signs with the module publisher account and submits BCS transactions.

    Each submit() runs one short-lived event loop: build, sign, submit, wait.
    The engine is synchronous and calls this sequentially.
    """

    def __init__(self, node_url: str, private_key: str | None = None) -> None:
        try:
            from aptos_sdk.account import Account  # noqa: PLC0415 - optional extra
        except ImportError as e:
            raise ConfigError(
                "live submission requires the 'aptos' extra: pip install 'ordermint[aptos]'"
            ) from e

        raw_key = private_key if private_key is not None else os.environ.get(ENV_PRIVATE_KEY, "")
        if not raw_key.strip():
            raise ConfigError(f"{ENV_PRIVATE_KEY} is required when dry_run is disabled")

        self._node_url = node_url
        try:
            self._account = Account.load_key(_strip_key_prefix(raw_key))
        except Exception as e:
            # The SDK raises assorted ValueError/nacl errors; never echo the key.
            raise ConfigError(f"invalid {ENV_PRIVATE_KEY}: {type(e).__name__}") from None

        logger.info(
            "Submitter account initialized",
            extra={"sender": str(self._account.address()), "node_url": node_url},
        )

    def submit(self, call: EntryFunctionCall) -> MutationOutcome:
        return asyncio.run(self._submit(call))

    async def _submit(self, call: EntryFunctionCall) -> MutationOutcome:
        from aptos_sdk.async_client import RestClient  # noqa: PLC0415
        from aptos_sdk.transactions import TransactionPayload  # noqa: PLC0415

        client = RestClient(self._node_url)
        try:
            payload = TransactionPayload(self._entry_function(call))
            signed = await client.create_bcs_signed_transaction(self._account, payload)
            tx_hash = await client.submit_bcs_transaction(signed)
            try:
                await client.wait_for_transaction(tx_hash)
            except AssertionError:
                # SDK asserts on VM failure and on wait timeout; the fetched txn tells which.
                pass
            txn = await client.transaction_by_hash(tx_hash)
            return self._outcome(tx_hash, txn)
        finally:
            await client.close()

    @staticmethod
    def _outcome(tx_hash: str, txn: dict[str, Any]) -> MutationOutcome:
        if txn.get("type") == "pending_transaction" or "success" not in txn:
            logger.warning("TX_PENDING", extra={"tx_hash": tx_hash})
            return MutationOutcome.failed(
                f"transaction {tx_hash} still pending after wait; outcome indeterminate",
                tx_hash=tx_hash,
            )
        success = bool(txn.get("success", False))
        return MutationOutcome(
            tx_hash=tx_hash,
            success=success,
            gas_used=str(txn["gas_used"]) if "gas_used" in txn else None,
            error_message=None if success else str(txn.get("vm_status", "transaction failed")),
        )

    @staticmethod
    def _entry_function(call: EntryFunctionCall) -> Any:
        from aptos_sdk.account_address import AccountAddress  # noqa: PLC0415
        from aptos_sdk.bcs import Serializer  # noqa: PLC0415
        from aptos_sdk.transactions import EntryFunction, TransactionArgument  # noqa: PLC0415
        from aptos_sdk.type_tag import StructTag, TypeTag  # noqa: PLC0415

        args: list[Any] = []
        for value in call.arguments:
            if isinstance(value, bool):
                args.append(TransactionArgument(value, Serializer.bool))
            elif isinstance(value, int):
                args.append(TransactionArgument(value, Serializer.u64))
            else:
                args.append(TransactionArgument(AccountAddress.from_str(value), Serializer.struct))

        type_args = [TypeTag(StructTag.from_str(t)) for t in call.type_arguments]
        return EntryFunction.natural(call.module_id, call.function_name, type_args, args)
