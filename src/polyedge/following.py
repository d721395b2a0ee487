"""Follow-list management for the signal generator."""

from __future__ import annotations

from polyedge.models import FollowedTrader


class FollowError(Exception):
    """Raised on duplicate adds and removals of unknown traders."""


def add_followed(following: list[FollowedTrader], wallet: str, name: str | None = None) -> list[FollowedTrader]:
    """Return a new list with *wallet* appended.

    Wallet comparison is case-insensitive.  The name defaults to the first
    10 characters of the wallet.
    """
    if any(t.wallet.lower() == wallet.lower() for t in following):
        raise FollowError(f"Already following {name or wallet}")
    return [*following, FollowedTrader(wallet=wallet, name=name or wallet[:10])]


def remove_followed(following: list[FollowedTrader], wallet_or_name: str) -> list[FollowedTrader]:
    """Return a new list without the trader matching *wallet_or_name* (case-insensitive)."""
    needle = wallet_or_name.lower()
    kept = [t for t in following if t.wallet.lower() != needle and t.name.lower() != needle]
    if len(kept) == len(following):
        raise FollowError(f"Trader not found: {wallet_or_name}")
    return kept
