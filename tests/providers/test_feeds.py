"""Tests for feed helpers and two factor info in providers/base.py."""

import pytest

from providers.base import ListFeed, TwoFactorInfo, TwoFactorMode, exhaust_feed


@pytest.mark.asyncio
async def test_exhaust_reads_all_pages():
    feed = ListFeed([[1, 2], [3], [4, 5]])
    assert await exhaust_feed(feed) == [1, 2, 3, 4, 5]
    assert not feed.has_more()


@pytest.mark.asyncio
async def test_exhaust_stops_once_enough_items():
    feed = ListFeed([[1, 2], [3, 4], [5, 6]])
    assert await exhaust_feed(feed, max_items=3) == [1, 2, 3, 4]
    assert feed.has_more()


@pytest.mark.asyncio
async def test_empty_feed():
    assert await exhaust_feed(ListFeed([])) == []


def test_available_modes_order():
    info = TwoFactorInfo("id", "alice", totp_enabled=True, sms_enabled=True)
    assert info.available_modes() == [TwoFactorMode.TOTP, TwoFactorMode.SMS]
    assert TwoFactorInfo("id", "alice").available_modes() == []
    assert TwoFactorMode.TOTP.value == "0"
    assert TwoFactorMode.SMS.value == "1"
