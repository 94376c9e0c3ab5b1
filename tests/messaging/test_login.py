"""Tests for the interactive login flow."""

from unittest.mock import AsyncMock

import pytest

from messaging.errors import PromptTimeoutError
from messaging.login import LoginFlow, LoginPhase, LoginResult
from messaging.models import LocalMessage
from messaging.platforms.base import ReactionTally
from messaging.prompts import PromptService
from providers.base import (
    CheckpointRequiredError,
    TwoFactorInfo,
    TwoFactorMode,
    TwoFactorRequiredError,
)

CONTROL = "100"


def make_flow(remote, local, **kwargs):
    return LoginFlow(
        remote, PromptService(local, CONTROL), "alice", "secret", **kwargs
    )


def reply(content, author_id="u1"):
    return LocalMessage("m", CONTROL, author_id, content=content)


@pytest.mark.asyncio
async def test_plain_login(remote, local):
    flow = make_flow(remote, local)

    assert await flow.run() == LoginResult.OK
    assert remote.calls == [("login", "alice", "secret")]
    assert flow.session.phase == LoginPhase.OK


@pytest.mark.asyncio
async def test_single_mode_skips_selection(remote, local):
    remote.login_error = TwoFactorRequiredError(
        TwoFactorInfo("2fa-id", "alice", totp_enabled=True)
    )
    local.scripted_messages = [reply(".2fa 123456")]

    assert await make_flow(remote, local).run() == LoginResult.OK

    assert ("two_factor_login", "2fa-id", TwoFactorMode.TOTP, "123456") in remote.calls
    assert local.reactions == []


@pytest.mark.asyncio
async def test_both_modes_tie_goes_to_first_reaction(remote, local):
    remote.login_error = TwoFactorRequiredError(
        TwoFactorInfo("2fa-id", "alice", totp_enabled=True, sms_enabled=True)
    )
    local.scripted_tallies = [ReactionTally("📱", 1), ReactionTally("🔒", 1)]
    local.scripted_messages = [reply(".2fa 4321")]

    assert await make_flow(remote, local).run() == LoginResult.OK

    assert ("two_factor_login", "2fa-id", TwoFactorMode.SMS, "4321") in remote.calls
    assert [emoji for _, _, emoji in local.reactions] == ["🔒", "📱"]


@pytest.mark.asyncio
async def test_mode_select_timeout_surfaces_timeout_error(remote, local):
    remote.login_error = TwoFactorRequiredError(
        TwoFactorInfo("2fa-id", "alice", totp_enabled=True, sms_enabled=True)
    )
    flow = make_flow(remote, local, mode_select_timeout=0.01)

    with pytest.raises(TimeoutError):
        await flow.run()

    assert flow.session.phase == LoginPhase.FAIL
    assert LoginPhase.MODE_SELECT in flow.session.history


@pytest.mark.asyncio
async def test_code_timeout_raises_prompt_timeout(remote, local):
    remote.login_error = CheckpointRequiredError()
    flow = make_flow(remote, local, code_timeout=0.01)

    with pytest.raises(PromptTimeoutError):
        await flow.run()


@pytest.mark.asyncio
async def test_invalid_codes_are_ignored(remote, local):
    remote.login_error = TwoFactorRequiredError(
        TwoFactorInfo("2fa-id", "alice", sms_enabled=True)
    )
    local.scripted_messages = [
        reply(".2fa abc"),
        reply(".2fa 1234567"),
        LocalMessage("m", CONTROL, "bot", content=".2fa 111", author_is_bot=True),
        reply(".2fa 42"),
    ]

    assert await make_flow(remote, local).run() == LoginResult.OK
    assert ("two_factor_login", "2fa-id", TwoFactorMode.SMS, "42") in remote.calls


@pytest.mark.asyncio
async def test_checkpoint(remote, local):
    remote.login_error = CheckpointRequiredError()
    local.scripted_messages = [reply(".code 654321")]

    assert await make_flow(remote, local).run() == LoginResult.OK

    assert remote.calls[1:] == [("challenge_auto",), ("challenge_code", "654321")]


@pytest.mark.asyncio
async def test_checkpoint_after_two_factor_code(remote, local):
    remote.login_error = TwoFactorRequiredError(
        TwoFactorInfo("2fa-id", "alice", totp_enabled=True)
    )
    remote.two_factor_login = AsyncMock(side_effect=CheckpointRequiredError())
    local.scripted_messages = [reply(".2fa 123456"), reply(".code 654321")]
    flow = make_flow(remote, local)

    assert await flow.run() == LoginResult.OK

    remote.two_factor_login.assert_awaited_once()
    assert remote.calls[-2:] == [("challenge_auto",), ("challenge_code", "654321")]
    assert LoginPhase.CHECKPOINT_REQUIRED in flow.session.history
    assert flow.session.phase == LoginPhase.OK


@pytest.mark.asyncio
async def test_no_two_factor_mode(remote, local):
    remote.login_error = TwoFactorRequiredError(TwoFactorInfo("2fa-id", "alice"))
    flow = make_flow(remote, local)

    assert await flow.run() == LoginResult.NO_TWO_FACTOR
    assert flow.session.phase == LoginPhase.NO_TWO_FACTOR


@pytest.mark.asyncio
async def test_failure_is_reported(remote, local):
    remote.login_error = RuntimeError("bad password")
    flow = make_flow(remote, local)

    assert await flow.run() == LoginResult.FAIL

    channel_id, kind, card = local.sent[-1]
    assert (channel_id, kind) == (CONTROL, "card")
    assert card.title == "Error"
    assert "bad password" in card.description
