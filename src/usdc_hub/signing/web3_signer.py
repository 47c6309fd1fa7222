"""Signer collaborator backed by a JSON-RPC node or wallet that holds the key.

Transactions are sent with ``eth_sendTransaction`` from an account the
connected node (or a wallet RPC bridge) has unlocked. This package never sees
private keys; nonce sequencing stays with the node.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from eth_utils import to_checksum_address
from web3 import AsyncHTTPProvider, AsyncWeb3, Web3
from web3.exceptions import ContractLogicError, TimeExhausted, TransactionNotFound, Web3Exception

from usdc_hub.config import get_settings
from usdc_hub.contracts import ABIS
from usdc_hub.domain.collaborators import ContractRef, Receipt
from usdc_hub.domain.enums import SubmissionStage
from usdc_hub.domain.exceptions import SubmissionFailedError
from usdc_hub.logging_config import get_logger

if TYPE_CHECKING:
    from web3.contract import AsyncContract

logger = get_logger(__name__)


class Web3Reader:
    """Read-only ChainReader over web3.py's async client."""

    def __init__(self, rpc_url: str, *, w3: AsyncWeb3 | None = None) -> None:
        self._w3 = w3 or AsyncWeb3(AsyncHTTPProvider(rpc_url))

    async def chain_id(self) -> int:
        return int(await self._w3.eth.chain_id)

    def _contract(self, ref: ContractRef) -> AsyncContract:
        return self._w3.eth.contract(address=to_checksum_address(ref.address), abi=ABIS[ref.name])

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def call(self, contract: ContractRef, method: str, args: tuple[Any, ...] = ()) -> Any:
        fn = getattr(self._contract(contract).functions, method)
        return await fn(*args).call()

    async def get_allowance(self, token: ContractRef, owner: str, spender: str) -> int:
        allowance = await self.call(
            token, "allowance", (to_checksum_address(owner), to_checksum_address(spender))
        )
        return int(allowance)

    async def get_receipt(self, tx_id: str) -> Receipt | None:
        try:
            receipt = await self._w3.eth.get_transaction_receipt(tx_id)
        except TransactionNotFound:
            return None
        if receipt["status"] == 0:
            raise SubmissionFailedError(
                f"Transaction {tx_id} reverted",
                stage=SubmissionStage.ACTION.value,
                tx_id=tx_id,
            )
        return Receipt(
            tx_id=tx_id,
            block_number=receipt["blockNumber"],
            gas_used=receipt.get("gasUsed"),
        )


class Web3Signer(Web3Reader):
    """Implements the Signer protocol for an account unlocked on the node."""

    def __init__(
        self,
        rpc_url: str,
        account: str,
        *,
        inclusion_timeout_seconds: float | None = None,
        w3: AsyncWeb3 | None = None,
    ) -> None:
        super().__init__(rpc_url, w3=w3)
        self._address = to_checksum_address(account)
        self._timeout = inclusion_timeout_seconds or get_settings().inclusion_timeout_seconds

    @property
    def address(self) -> str:
        return self._address

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def send_approval(self, token: ContractRef, spender: str, amount: int) -> str:
        return await self._transact(token, "approve", (to_checksum_address(spender), amount))

    async def send_action(self, contract: ContractRef, method: str, args: tuple[Any, ...]) -> str:
        return await self._transact(contract, method, args)

    async def _transact(self, contract: ContractRef, method: str, args: tuple[Any, ...]) -> str:
        fn = getattr(self._contract(contract).functions, method)(*args)
        try:
            tx_hash = await fn.transact({"from": self._address})
        except ContractLogicError as exc:
            # Reverted during gas estimation: nothing was broadcast
            raise SubmissionFailedError(
                f"{method} would revert: {exc.message or exc}",
                stage=SubmissionStage.ACTION.value,
            ) from exc
        except (Web3Exception, ValueError) as exc:
            raise SubmissionFailedError(
                f"{method} was rejected: {exc}", stage=SubmissionStage.ACTION.value
            ) from exc

        tx_id = Web3.to_hex(tx_hash)
        logger.info("signer.tx_sent", method=method, tx_id=tx_id, to=contract.address)
        return tx_id

    async def await_inclusion(self, tx_id: str) -> Receipt:
        try:
            receipt = await self._w3.eth.wait_for_transaction_receipt(tx_id, timeout=self._timeout)
        except TimeExhausted as exc:
            raise SubmissionFailedError(
                f"Transaction {tx_id} was not included within {self._timeout:.0f}s",
                stage=SubmissionStage.ACTION.value,
                tx_id=tx_id,
            ) from exc

        if receipt["status"] == 0:
            reason = await self._revert_reason(tx_id, receipt["blockNumber"])
            message = f"Transaction {tx_id} reverted"
            if reason:
                message = f"{message}: {reason}"
            raise SubmissionFailedError(message, stage=SubmissionStage.ACTION.value, tx_id=tx_id)

        logger.info("signer.tx_included", tx_id=tx_id, block_number=receipt["blockNumber"])
        return Receipt(
            tx_id=tx_id,
            block_number=receipt["blockNumber"],
            gas_used=receipt.get("gasUsed"),
        )

    async def _revert_reason(self, tx_id: str, block_number: int) -> str | None:
        """Replay a reverted transaction as a call to recover its reason string."""
        tx = await self._w3.eth.get_transaction(tx_id)
        replay = {"from": tx["from"], "to": tx["to"], "data": tx["input"], "value": tx.get("value", 0)}
        try:
            await self._w3.eth.call(replay, block_identifier=block_number)
        except ContractLogicError as exc:
            return str(exc.message or exc)
        except (Web3Exception, ValueError) as exc:
            logger.warning("signer.revert_replay_failed", tx_id=tx_id, error=str(exc))
        return None
