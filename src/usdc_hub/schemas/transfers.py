"""Pydantic schemas for the transfer API.

Request models only check shapes; every business rule (amount precision,
recipient format, per-kind fields) is enforced once by ``validate_action``
so HTTP and in-process callers get the same errors.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

# ---------------------------------------------------------------------------
# Request Schemas
# ---------------------------------------------------------------------------


class QuoteRequest(BaseModel):
    """Request body for planning a transfer without sending anything."""

    kind: str = Field(..., description="convert | redeem | deposit | withdraw", examples=["deposit"])
    origin_chain: int = Field(..., description="Chain the action transaction is sent on", examples=[42161])
    source_token: str = Field(..., description="Token spent by the action", examples=["USDC"])
    destination_selector: str | int = Field(
        ...,
        description="Target token symbol (convert/redeem) or target chain id (deposit/withdraw)",
        examples=[7000],
    )
    amount: str = Field(..., description="Decimal amount as a string", examples=["100"])
    recipient: str = Field(
        ...,
        description="EVM address that receives the output",
        examples=["0x742d35Cc6634C0532925a3b844Bc9e7595f2bD18"],
    )
    slippage_bps: int | None = Field(
        default=None, description="Slippage tolerance in basis points (default from settings)"
    )
    gas_reserve_bps: int | None = Field(
        default=None,
        description="Share of a withdrawal swapped for destination gas (withdraw only)",
    )


# ---------------------------------------------------------------------------
# Response Schemas
# ---------------------------------------------------------------------------


class AmountBoundsResponse(BaseModel):
    base_units: int
    expected_output_base_units: int
    min_output_base_units: int
    gas_reserve_base_units: int = 0


class QuoteResponse(BaseModel):
    """The calls execute() would send for an action."""

    kind: str
    origin_chain_id: int
    destination_chain_id: int
    recipient: str
    bounds: AmountBoundsResponse
    expected_output: str = Field(description="Expected output, formatted for display")
    min_output: str = Field(description="Slippage-bounded minimum output, formatted for display")
    token: str = Field(description="Token that must be approved")
    spender: str
    target: str
    method: str


class SettlementStatusResponse(BaseModel):
    """Current settlement state of an origin transaction."""

    origin_tx_id: str
    state: str
    description: str
    terminal: bool
    hub_tx_id: str | None = None
    destination_tx_id: str | None = None
    cctx_index: str | None = None
    indexer_status: str | None = None
    explorer_links: dict[str, str] = Field(default_factory=dict)


class PoolAssetResponse(BaseModel):
    symbol: str
    chain_id: int
    balance: str
    share_percent: str


class PoolSnapshotResponse(BaseModel):
    assets: list[PoolAssetResponse]
    total_liquidity: str
    virtual_price: str


class TokenBalanceResponse(BaseModel):
    symbol: str = Field(examples=["USDC.4"])
    chain_id: int
    address: str
    base_units: int
    balance: str = Field(examples=["12.5"])


class AccountBalancesResponse(BaseModel):
    """Hub-chain holdings of one account, LP token first."""

    account: str
    balances: list[TokenBalanceResponse]


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = Field(examples=["ok"])
    version: str = Field(examples=["0.1.0"])
    indexer: str = Field(examples=["healthy"])
