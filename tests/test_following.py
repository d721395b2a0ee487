"""Tests for follow-list management."""

from __future__ import annotations

import pytest

from polyedge.following import FollowError, add_followed, remove_followed
from polyedge.models import FollowedTrader

WALLET = "0xAbCdEf0123456789"


def test_add_defaults_name_to_wallet_prefix():
    following = add_followed([], WALLET)
    assert following == [FollowedTrader(wallet=WALLET, name=WALLET[:10])]


def test_add_with_name_does_not_mutate_input():
    original: list[FollowedTrader] = []
    following = add_followed(original, WALLET, "abby")
    assert following[0].name == "abby"
    assert original == []


def test_add_duplicate_is_case_insensitive():
    following = add_followed([], WALLET)
    with pytest.raises(FollowError, match="Already following"):
        add_followed(following, WALLET.lower())


@pytest.mark.parametrize("needle", [WALLET, WALLET.upper(), "ABBY"])
def test_remove_by_wallet_or_name(needle):
    following = [FollowedTrader(wallet=WALLET, name="abby"), FollowedTrader(wallet="0x2", name="two")]
    assert remove_followed(following, needle) == [FollowedTrader(wallet="0x2", name="two")]


def test_remove_unknown_raises():
    with pytest.raises(FollowError, match="not found"):
        remove_followed([FollowedTrader(wallet="0x2", name="two")], "nobody")
