"""In-memory signer for tests and the simulation script.

Generates fake transaction hashes, keeps allowances in a dict, and can be
scripted to reject a method before broadcast or to revert it on inclusion.
"""

from __future__ import annotations

import asyncio
import uuid
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from usdc_hub.config import HUB_CHAIN_ID
from usdc_hub.domain.amounts import rescale
from usdc_hub.domain.collaborators import Receipt
from usdc_hub.domain.enums import SubmissionStage
from usdc_hub.domain.exceptions import SubmissionFailedError
from usdc_hub.logging_config import get_logger

if TYPE_CHECKING:
    from collections.abc import Callable

    from usdc_hub.domain.collaborators import ContractRef

logger = get_logger(__name__)

SIMULATED_ADDRESS = "0x00000000000000000000000000000000000000a1"


def fake_tx_hash() -> str:
    return "0x" + uuid.uuid4().hex + uuid.uuid4().hex


@dataclass(frozen=True)
class SentTransaction:
    tx_id: str
    contract: ContractRef
    method: str
    args: tuple[Any, ...]


def _default_quotes() -> dict[str, Callable[..., Any]]:
    return {
        # 1:1 stable pool, LP (18 decimals) to pool coin (6 decimals)
        "calc_withdraw_one_coin": lambda amount, _index: rescale(amount, 18, 6),
        "get_virtual_price": lambda: 10**18,
        "balances": lambda _index: 0,
        "balanceOf": lambda _owner: 0,
    }


class SimulatedSigner:
    """Signer protocol implementation with no chain behind it."""

    def __init__(
        self,
        address: str = SIMULATED_ADDRESS,
        chain_id: int = HUB_CHAIN_ID,
        *,
        allowances: dict[tuple[str, str], int] | None = None,
        quotes: dict[str, Callable[..., Any]] | None = None,
        reject: dict[str, str] | None = None,
        revert: dict[str, str] | None = None,
        inclusion_delay_seconds: float = 0.0,
    ) -> None:
        """Initialize the signer.

        Args:
            address: Account the transactions appear to come from.
            chain_id: Chain the signer reports being connected to.
            allowances: Initial allowances keyed by (token, spender).
            quotes: View-function results by method name (callables take the call args).
            reject: Methods rejected before broadcast, with the error message.
            revert: Methods broadcast but reverted on inclusion, with the revert reason.
            inclusion_delay_seconds: Simulated block time.
        """
        self._address = address
        self._chain_id = chain_id
        self._allowances = {
            (token.lower(), spender.lower()): amount
            for (token, spender), amount in (allowances or {}).items()
        }
        self._quotes = {**_default_quotes(), **(quotes or {})}
        self._reject = reject or {}
        self._revert = revert or {}
        self._delay = inclusion_delay_seconds
        self._pending_reverts: dict[str, str] = {}
        self._pending_approvals: dict[str, tuple[str, str, int]] = {}
        self._receipts: dict[str, Receipt] = {}
        self._reverted: dict[str, str] = {}
        self._block = 0
        self.sent: list[SentTransaction] = []

    @property
    def address(self) -> str:
        return self._address

    async def chain_id(self) -> int:
        return self._chain_id

    async def call(self, contract: ContractRef, method: str, args: tuple[Any, ...] = ()) -> Any:
        if method == "allowance":
            _owner, spender = args
            return self._allowances.get((contract.address.lower(), spender.lower()), 0)
        quote = self._quotes.get(method)
        if quote is None:
            raise KeyError(f"no simulated result for {method}")
        return quote(*args)

    async def get_allowance(self, token: ContractRef, owner: str, spender: str) -> int:
        return await self.call(token, "allowance", (owner, spender))

    async def send_approval(self, token: ContractRef, spender: str, amount: int) -> str:
        tx_id = self._broadcast(token, "approve", (spender, amount))
        self._pending_approvals[tx_id] = (token.address.lower(), spender.lower(), amount)
        return tx_id

    async def send_action(self, contract: ContractRef, method: str, args: tuple[Any, ...]) -> str:
        return self._broadcast(contract, method, args)

    def _broadcast(self, contract: ContractRef, method: str, args: tuple[Any, ...]) -> str:
        if method in self._reject:
            logger.info("signer.simulated_rejection", method=method)
            raise SubmissionFailedError(self._reject[method], stage=SubmissionStage.ACTION.value)
        tx_id = fake_tx_hash()
        self.sent.append(SentTransaction(tx_id, contract, method, args))
        if method in self._revert:
            self._pending_reverts[tx_id] = self._revert[method]
        logger.info("signer.tx_sent", method=method, tx_id=tx_id, simulated=True)
        return tx_id

    async def await_inclusion(self, tx_id: str) -> Receipt:
        if self._delay:
            await asyncio.sleep(self._delay)
        self._block += 1

        reason = self._pending_reverts.pop(tx_id, None)
        if reason is not None:
            self._reverted[tx_id] = reason
            raise SubmissionFailedError(
                f"Transaction {tx_id} reverted: {reason}",
                stage=SubmissionStage.ACTION.value,
                tx_id=tx_id,
            )

        approval = self._pending_approvals.pop(tx_id, None)
        if approval is not None:
            token, spender, amount = approval
            self._allowances[(token, spender)] = amount

        receipt = Receipt(tx_id=tx_id, block_number=self._block, gas_used=21_000)
        self._receipts[tx_id] = receipt
        return receipt

    async def get_receipt(self, tx_id: str) -> Receipt | None:
        if tx_id in self._reverted:
            raise SubmissionFailedError(
                f"Transaction {tx_id} reverted: {self._reverted[tx_id]}",
                stage=SubmissionStage.ACTION.value,
                tx_id=tx_id,
            )
        return self._receipts.get(tx_id)

    def methods_sent(self) -> list[str]:
        return [tx.method for tx in self.sent]
