"""Collaborator Protocols: the signer and the cross-chain indexer.

These are Protocols (structural subtyping) so concrete adapters don't need to
inherit from a base class. The domain layer has ZERO imports from web3 or
httpx; adapters live in signing/ and indexer/.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

# Raw indexer values
CCTX_STATUS_OUTBOUND_MINED = "OutboundMined"
FINALIZATION_EXECUTED = "Executed"


@dataclass(frozen=True)
class ContractRef:
    """A contract the signer can talk to.

    Attributes:
        name: ABI name in usdc_hub.contracts.ABIS (e.g. "erc20", "pool").
        address: Deployed address on the signer's chain.
    """

    name: str
    address: str


@dataclass(frozen=True)
class Receipt:
    """Inclusion receipt of a successful transaction."""

    tx_id: str
    block_number: int | None = None
    gas_used: int | None = None


@dataclass(frozen=True)
class OutboundLeg:
    """One outbound leg of a cross-chain transaction as the indexer reports it."""

    hash: str | None
    finalization_status: str | None = None
    receiver_chain_id: int | None = None

    @property
    def is_executed(self) -> bool:
        """Executed on the receiving chain but not yet reported as mined."""
        return self.finalization_status == FINALIZATION_EXECUTED


@dataclass(frozen=True)
class SettlementQueryResult:
    """The indexer's view of the cross-chain transaction started by an origin tx.

    Attributes:
        cctx_index: Indexer identifier of the cross-chain transaction.
        status: Raw status string (e.g. "PendingOutbound", "OutboundMined").
        status_message: Free-form detail from the indexer.
        outbound_legs: Zero or more outbound legs, first leg first.
    """

    cctx_index: str | None
    status: str
    status_message: str = ""
    outbound_legs: tuple[OutboundLeg, ...] = field(default_factory=tuple)

    @property
    def is_mined(self) -> bool:
        return self.status == CCTX_STATUS_OUTBOUND_MINED

    @property
    def first_leg(self) -> OutboundLeg | None:
        return self.outbound_legs[0] if self.outbound_legs else None


@runtime_checkable
class ChainReader(Protocol):
    """Read-only contract access."""

    async def call(self, contract: ContractRef, method: str, args: tuple[Any, ...] = ()) -> Any:
        """Execute a view function and return its decoded result."""
        ...

    async def get_receipt(self, tx_id: str) -> Receipt | None:
        """Return the receipt of an included transaction, or None while pending.

        Raises:
            SubmissionFailedError: If the transaction was included but reverted.
        """
        ...


@runtime_checkable
class Signer(ChainReader, Protocol):
    """Sends transactions on behalf of one account on one chain.

    Nonce sequencing and key custody belong to the implementation (a wallet,
    a node with an unlocked account, a remote signer), never to this core.
    """

    @property
    def address(self) -> str:
        """The account transactions are sent from."""
        ...

    async def chain_id(self) -> int:
        """The chain the signer is currently connected to."""
        ...

    async def get_allowance(self, token: ContractRef, owner: str, spender: str) -> int:
        ...

    async def send_approval(self, token: ContractRef, spender: str, amount: int) -> str:
        """Broadcast ``approve(spender, amount)`` and return its transaction id."""
        ...

    async def send_action(self, contract: ContractRef, method: str, args: tuple[Any, ...]) -> str:
        """Broadcast a state-changing call and return its transaction id."""
        ...

    async def await_inclusion(self, tx_id: str) -> Receipt:
        """Wait until the transaction is included.

        Raises:
            SubmissionFailedError: If it reverted or was not included in time.
        """
        ...


@runtime_checkable
class Indexer(Protocol):
    """Cross-chain transaction status lookup."""

    async def lookup_by_origin_tx(self, tx_id: str) -> SettlementQueryResult | None:
        """Return the indexed status, or None if the origin tx is not indexed yet.

        Raises:
            IndexerUnavailableError: If the lookup itself failed.
        """
        ...
