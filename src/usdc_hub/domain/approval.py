"""Decide whether an ERC-20 approval must precede the main action.

Fetching the allowance and sending the approval are the caller's job; this
module only compares numbers so the skip-redundant-approval rule can be
tested without a chain.
"""

from __future__ import annotations


def needs_approval(current_allowance: int, required_amount: int) -> bool:
    """Return True when the spender may not yet pull ``required_amount``."""
    return current_allowance < required_amount
