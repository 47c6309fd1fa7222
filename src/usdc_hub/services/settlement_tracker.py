"""Settlement Tracker - follows one origin transaction until it settles.

Polls the cross-chain indexer on a fixed cadence, maps each raw response to a
SettlementState, and stops deterministically once a terminal state is reached
or the caller cancels. One tracker owns exactly one SettlementRecord; nothing
else mutates it.

Poll outcomes:
    - no record yet          -> state unchanged
    - leg not finalized      -> CONFIRMING
    - leg executed, not mined-> PROCESSING
    - cctx OutboundMined     -> SETTLED (terminal, on_settled fires once)
    - indexer error          -> state unchanged, logged, polling continues

Hub-only actions (convert, redeem) create no cross-chain record. Their
tracker polls the hub receipt instead: included settles, reverted fails.

FAILED is only reachable through ``mark_failed()``, called when the
origin transaction itself reverts or is not included. An
unreachable indexer is never a failed transfer: the origin transaction may
already be irreversibly committed.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from usdc_hub.config import get_settings
from usdc_hub.domain.enums import LegRole, SettlementState, SubmissionStage, TransferOutcome
from usdc_hub.domain.exceptions import (
    IndexerUnavailableError,
    SubmissionFailedError,
    UnknownOutcomeError,
)
from usdc_hub.domain.state_machine import advance
from usdc_hub.logging_config import get_logger

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable

    from usdc_hub.domain.amounts import AmountBounds
    from usdc_hub.domain.collaborators import ChainReader, Indexer, SettlementQueryResult
    from usdc_hub.domain.enums import ActionKind
    from usdc_hub.registry import Deployment

logger = get_logger(__name__)


@dataclass
class SettlementRecord:
    """Mutable tracking state for one origin transaction.

    ``hub_tx_id`` and ``destination_tx_id`` are populated monotonically and
    never cleared once set.
    """

    origin_tx_id: str
    state: SettlementState = SettlementState.SUBMITTED
    hub_tx_id: str | None = None
    destination_tx_id: str | None = None
    cctx_index: str | None = None
    indexer_status: str | None = None
    last_polled_at: datetime | None = None
    poll_count: int = 0
    terminal: bool = False
    failure_reason: str | None = None
    last_error: str | None = None

    def snapshot(self) -> SettlementUpdate:
        return SettlementUpdate(
            origin_tx_id=self.origin_tx_id,
            state=self.state,
            hub_tx_id=self.hub_tx_id,
            destination_tx_id=self.destination_tx_id,
            cctx_index=self.cctx_index,
            indexer_status=self.indexer_status,
            poll_count=self.poll_count,
            terminal=self.terminal,
            failure_reason=self.failure_reason,
        )


@dataclass(frozen=True)
class SettlementUpdate:
    """Immutable view of a SettlementRecord, delivered to subscribers."""

    origin_tx_id: str
    state: SettlementState
    hub_tx_id: str | None
    destination_tx_id: str | None
    cctx_index: str | None
    indexer_status: str | None
    poll_count: int
    terminal: bool
    failure_reason: str | None = None

    @property
    def description(self) -> str:
        return self.state.description

    def to_dict(self) -> dict:
        return {
            "origin_tx_id": self.origin_tx_id,
            "state": self.state.value,
            "description": self.description,
            "hub_tx_id": self.hub_tx_id,
            "destination_tx_id": self.destination_tx_id,
            "cctx_index": self.cctx_index,
            "indexer_status": self.indexer_status,
            "poll_count": self.poll_count,
            "terminal": self.terminal,
            "failure_reason": self.failure_reason,
        }


class SettlementTracker:
    """Owns the poll loop and the SettlementRecord for one origin transaction."""

    def __init__(
        self,
        origin_tx_id: str,
        indexer: Indexer,
        *,
        poll_interval_seconds: float | None = None,
        leg_role: LegRole = LegRole.HUB,
        origin_is_hub: bool = False,
        receipts: ChainReader | None = None,
        on_settled: Callable[[SettlementUpdate], None] | None = None,
    ) -> None:
        """Create a tracker in SUBMITTED state. Nothing is polled until start().

        Args:
            origin_tx_id: Transaction id on the origin chain.
            indexer: Cross-chain status lookup.
            poll_interval_seconds: Fixed delay between polls (settings default).
            leg_role: Chain the outbound leg hash belongs to.
            origin_is_hub: True when the origin transaction is itself on the
                hub chain (withdrawals, conversions).
            receipts: Hub-chain reader for actions that never leave the hub
                (convert, redeem). When set, each poll asks for the origin
                receipt instead of the indexer, and inclusion settles.
            on_settled: Called exactly once when SETTLED is reached.
        """
        if poll_interval_seconds is None:
            poll_interval_seconds = get_settings().poll_interval_seconds
        if poll_interval_seconds < 0:
            raise ValueError("poll_interval_seconds must be non-negative")

        self._indexer = indexer
        self._receipts = receipts
        self._interval = poll_interval_seconds
        self._leg_role = leg_role
        self._on_settled = on_settled
        self._settled_fired = False

        self.record = SettlementRecord(origin_tx_id=origin_tx_id)
        if origin_is_hub:
            self.record.hub_tx_id = origin_tx_id

        self._listeners: list[Callable[[SettlementUpdate], None]] = []
        self._queues: list[asyncio.Queue[SettlementUpdate | None]] = []
        self._task: asyncio.Task[None] | None = None
        self._cancelled = False
        self._done = asyncio.Event()
        self._log = logger.bind(origin_tx_id=origin_tx_id)

    # ------------------------------------------------------------------
    # Read-only state
    # ------------------------------------------------------------------

    @property
    def origin_tx_id(self) -> str:
        return self.record.origin_tx_id

    @property
    def state(self) -> SettlementState:
        return self.record.state

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def detached(self) -> bool:
        """True for a one-shot snapshot: never started and not finished."""
        return self._task is None and not self._done.is_set()

    @property
    def outcome(self) -> TransferOutcome:
        if self.record.state is SettlementState.SETTLED:
            return TransferOutcome.SETTLED
        if self.record.state is SettlementState.FAILED:
            return TransferOutcome.FAILED
        if self._cancelled:
            return TransferOutcome.UNKNOWN
        return TransferOutcome.PENDING

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    def subscribe(self, listener: Callable[[SettlementUpdate], None]) -> Callable[[], None]:
        """Register a listener for every change; returns the matching unsubscribe."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def updates(self) -> AsyncIterator[SettlementUpdate]:
        """Yield the current snapshot, then each change until tracking ends."""
        queue: asyncio.Queue[SettlementUpdate | None] = asyncio.Queue()
        current = self.record.snapshot()
        if self._done.is_set() or self.detached:
            yield current
            return
        self._queues.append(queue)
        try:
            yield current
            while True:
                update = await queue.get()
                if update is None:
                    return
                yield update
                if update.terminal:
                    return
        finally:
            if queue in self._queues:
                self._queues.remove(queue)

    def _emit(self) -> None:
        update = self.record.snapshot()
        for listener in list(self._listeners):
            try:
                listener(update)
            except Exception:
                self._log.exception("settlement.listener_error")
        for queue in self._queues:
            queue.put_nowait(update)

    def _finish(self) -> None:
        self._done.set()
        for queue in self._queues:
            queue.put_nowait(None)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self, **handle_context: Any) -> SettlementHandle:
        """Begin polling now (first poll at t=0), then every interval.

        Polling is not restarted if the tracker is already running, terminal
        or cancelled. Keyword arguments are passed to the returned handle.
        """
        if self._task is None and not self.record.terminal and not self._cancelled:
            self._log.info("settlement.tracking_started", interval=self._interval)
            self._task = asyncio.create_task(
                self._run(), name=f"settlement:{self.record.origin_tx_id}"
            )
        return SettlementHandle(self, **handle_context)

    def cancel(self) -> None:
        """Stop polling. Idempotent; cannot un-submit the origin transaction."""
        if self._cancelled or self.record.terminal:
            return
        self._cancelled = True
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._log.info(
            "settlement.tracking_cancelled",
            state=self.record.state.value,
            note="origin transaction may still settle; re-query by origin tx id",
        )
        self._finish()

    async def wait(self, timeout: float | None = None) -> TransferOutcome:
        """Wait for a terminal state or cancellation.

        On deadline the tracker is cancelled and UNKNOWN is returned, never FAILED.
        A tracker that was never started returns its current outcome at once.
        """
        if self.detached:
            return self.outcome
        try:
            await asyncio.wait_for(self._done.wait(), timeout=timeout)
        except TimeoutError:
            self._log.warning("settlement.deadline_elapsed", timeout=timeout)
            self.cancel()
        return self.outcome

    async def _run(self) -> None:
        try:
            while not self.record.terminal and not self._cancelled:
                await self.poll_once()
                if self.record.terminal or self._cancelled:
                    break
                await asyncio.sleep(self._interval)
        except asyncio.CancelledError:
            self._log.debug("settlement.poll_loop_stopped")
            raise

    # ------------------------------------------------------------------
    # Polling
    # ------------------------------------------------------------------

    async def poll_once(self) -> SettlementState:
        """Run a single poll cycle and return the (possibly unchanged) state."""
        if self._cancelled or self.record.terminal:
            return self.record.state
        if self._receipts is not None:
            return await self._poll_inclusion()

        try:
            result = await self._indexer.lookup_by_origin_tx(self.record.origin_tx_id)
        except IndexerUnavailableError as exc:
            if self._cancelled or self.record.terminal:
                return self.record.state
            self._mark_polled()
            self.record.last_error = exc.detail
            self._log.warning(
                "settlement.indexer_unavailable",
                error=exc.detail,
                poll_count=self.record.poll_count,
            )
            return self.record.state
        except Exception as exc:
            if self._cancelled or self.record.terminal:
                return self.record.state
            self._mark_polled()
            self.record.last_error = str(exc)
            self._log.exception("settlement.indexer_error", poll_count=self.record.poll_count)
            return self.record.state

        # A response that arrives after cancel must not touch the record
        if self._cancelled or self.record.terminal:
            return self.record.state

        self._mark_polled()
        self.record.last_error = None
        self._apply(result)
        return self.record.state

    async def _poll_inclusion(self) -> SettlementState:
        try:
            receipt = await self._receipts.get_receipt(self.record.origin_tx_id)
        except SubmissionFailedError as exc:
            if self._cancelled or self.record.terminal:
                return self.record.state
            self._mark_polled()
            self.mark_failed(exc.message)
            return self.record.state
        except Exception as exc:
            if self._cancelled or self.record.terminal:
                return self.record.state
            self._mark_polled()
            self.record.last_error = str(exc)
            self._log.exception("settlement.receipt_error", poll_count=self.record.poll_count)
            return self.record.state

        if self._cancelled or self.record.terminal:
            return self.record.state
        self._mark_polled()
        self.record.last_error = None
        if receipt is None:
            self._log.debug("settlement.not_included", poll_count=self.record.poll_count)
        else:
            self.complete_on_inclusion(receipt.tx_id)
        return self.record.state

    def _mark_polled(self) -> None:
        self.record.poll_count += 1
        self.record.last_polled_at = datetime.now(UTC)

    def _apply(self, result: SettlementQueryResult | None) -> None:
        if result is None:
            self._log.debug("settlement.not_indexed", poll_count=self.record.poll_count)
            return

        before = (self.record.state, self.record.hub_tx_id, self.record.destination_tx_id)

        if self.record.cctx_index is None and result.cctx_index:
            self.record.cctx_index = result.cctx_index
        self.record.indexer_status = result.status

        leg = result.first_leg
        if leg is not None and leg.hash:
            self._record_leg_hash(leg.hash)

        if result.is_mined:
            target = SettlementState.SETTLED
        elif leg is not None and leg.is_executed:
            target = SettlementState.PROCESSING
        else:
            target = SettlementState.CONFIRMING

        self._log.debug(
            "settlement.polled",
            indexer_status=result.status,
            target=target.value,
            poll_count=self.record.poll_count,
        )
        self._transition(target, emit=False)

        if (self.record.state, self.record.hub_tx_id, self.record.destination_tx_id) != before:
            self._emit()
        if self.record.terminal:
            self._after_terminal()

    def _record_leg_hash(self, leg_hash: str) -> None:
        if self._leg_role is LegRole.HUB:
            if self.record.hub_tx_id is None:
                self.record.hub_tx_id = leg_hash
        elif self.record.destination_tx_id is None:
            self.record.destination_tx_id = leg_hash

    def _transition(self, target: SettlementState, *, emit: bool = True) -> bool:
        current = self.record.state
        # Progress is monotone; stale or repeated observations are ignored
        if current.is_terminal or target.progress <= current.progress:
            return False
        self.record.state = advance(current, target)
        self.record.terminal = self.record.state.is_terminal
        self._log.info(
            "settlement.state_changed",
            old_state=current.value,
            new_state=self.record.state.value,
            hub_tx_id=self.record.hub_tx_id,
            destination_tx_id=self.record.destination_tx_id,
        )
        if emit:
            self._emit()
            if self.record.terminal:
                self._after_terminal()
        return True

    def _after_terminal(self) -> None:
        if self.record.state is SettlementState.SETTLED and not self._settled_fired:
            self._settled_fired = True
            if self._on_settled is not None:
                try:
                    self._on_settled(self.record.snapshot())
                except Exception:
                    self._log.exception("settlement.on_settled_error")
        self._finish()

    # ------------------------------------------------------------------
    # Outcomes decided by the orchestrator
    # ------------------------------------------------------------------

    def mark_failed(self, reason: str) -> None:
        """Record that the origin transaction reverted or was never included."""
        if self._cancelled or self.record.terminal:
            return
        self.record.failure_reason = reason
        self._log.warning("settlement.submission_failed", reason=reason)
        self._transition(SettlementState.FAILED)

    def complete_on_inclusion(self, tx_id: str | None = None) -> None:
        """Settle a same-chain action: inclusion on the hub chain is final."""
        if self._cancelled or self.record.terminal:
            return
        if self.record.hub_tx_id is None:
            self.record.hub_tx_id = tx_id or self.record.origin_tx_id
        self._transition(SettlementState.SETTLED)


class SettlementHandle:
    """Caller-facing view of one transfer after its action transaction was sent.

    Cancelling the handle stops watching; it does not and cannot cancel the
    transfer already broadcast on-chain.
    """

    def __init__(
        self,
        tracker: SettlementTracker,
        *,
        kind: ActionKind | None = None,
        origin_chain_id: int | None = None,
        destination_chain_id: int | None = None,
        bounds: AmountBounds | None = None,
        approval_tx_id: str | None = None,
        deployment: Deployment | None = None,
    ) -> None:
        self._tracker = tracker
        self.kind = kind
        self.origin_chain_id = origin_chain_id
        self.destination_chain_id = destination_chain_id
        self.bounds = bounds
        self.approval_tx_id = approval_tx_id
        self._deployment = deployment

    @property
    def tracker(self) -> SettlementTracker:
        return self._tracker

    @property
    def origin_tx_id(self) -> str:
        return self._tracker.record.origin_tx_id

    @property
    def hub_tx_id(self) -> str | None:
        return self._tracker.record.hub_tx_id

    @property
    def destination_tx_id(self) -> str | None:
        return self._tracker.record.destination_tx_id

    @property
    def state(self) -> SettlementState:
        return self._tracker.state

    @property
    def outcome(self) -> TransferOutcome:
        return self._tracker.outcome

    def snapshot(self) -> SettlementUpdate:
        return self._tracker.record.snapshot()

    def subscribe(self, listener: Callable[[SettlementUpdate], None]) -> Callable[[], None]:
        return self._tracker.subscribe(listener)

    def updates(self) -> AsyncIterator[SettlementUpdate]:
        return self._tracker.updates()

    def cancel(self) -> None:
        self._tracker.cancel()

    async def wait(self, timeout: float | None = None) -> TransferOutcome:
        return await self._tracker.wait(timeout)

    async def result(self, timeout: float | None = None) -> SettlementUpdate:
        """Wait for the outcome and return the final snapshot.

        Raises:
            SubmissionFailedError: If the origin transaction failed.
            UnknownOutcomeError: If tracking was cancelled or the deadline elapsed.
        """
        outcome = await self.wait(timeout)
        if outcome is TransferOutcome.SETTLED:
            return self.snapshot()
        if outcome is TransferOutcome.FAILED:
            raise SubmissionFailedError(
                self._tracker.record.failure_reason or "Origin transaction failed",
                stage=SubmissionStage.ACTION.value,
                tx_id=self.origin_tx_id,
            )
        raise UnknownOutcomeError(self.origin_tx_id)

    def explorer_links(self) -> dict[str, str]:
        """Block-explorer URLs for every transaction id known so far."""
        if self._deployment is None:
            return {}
        links: dict[str, str] = {}
        candidates = (
            ("origin", self.origin_chain_id, self.origin_tx_id),
            ("hub", self._deployment.hub.chain_id, self.hub_tx_id),
            ("destination", self.destination_chain_id, self.destination_tx_id),
        )
        for label, chain_id, tx_id in candidates:
            if chain_id is None or not tx_id:
                continue
            url = self._deployment.explorer_tx_url(chain_id, tx_id)
            if url:
                links[label] = url
        return links
