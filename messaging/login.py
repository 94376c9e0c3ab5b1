"""Interactive remote login driven through the control channel."""

from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from enum import Enum

from loguru import logger

from providers.base import (
    CheckpointRequiredError,
    RemoteClient,
    TwoFactorInfo,
    TwoFactorMode,
    TwoFactorRequiredError,
)

from .errors import PromptTimeoutError
from .prompts import ChoiceOption, PromptService, is_numeric_code
from .rendering.cards import error_card

TWO_FACTOR_TITLE = "Two Factor Authentication"


class LoginPhase(Enum):
    ATTEMPT_LOGIN = "attempt_login"
    TWO_FACTOR_REQUIRED = "two_factor_required"
    MODE_SELECT = "mode_select"
    CHECKPOINT_REQUIRED = "checkpoint_required"
    AWAIT_CODE = "await_code"
    OK = "ok"
    NO_TWO_FACTOR = "no_two_factor"
    FAIL = "fail"


class LoginResult(Enum):
    OK = "ok"
    FAIL = "fail"
    NO_TWO_FACTOR = "no_two_factor"


@dataclass
class LoginSession:
    phase: LoginPhase = LoginPhase.ATTEMPT_LOGIN
    pending_challenge: TwoFactorInfo | None = None
    deadline: datetime | None = None
    history: list[LoginPhase] = field(default_factory=list)

    def enter(self, phase: LoginPhase, timeout: float | None = None) -> None:
        self.history.append(self.phase)
        self.phase = phase
        self.deadline = (
            datetime.now(UTC) + timedelta(seconds=timeout) if timeout else None
        )
        logger.debug(f"LOGIN: -> {phase.value}")


MODE_OPTIONS = [
    ChoiceOption(
        emoji="🔒",
        description="TOTP (Authentication App like Google Authenticator)",
        value=TwoFactorMode.TOTP,
    ),
    ChoiceOption(emoji="📱", description="SMS", value=TwoFactorMode.SMS),
]


class LoginFlow:
    """
    Credential login with optional two-factor and checkpoint branches.

    Prompt deadlines propagate as ``PromptTimeoutError``; any other error ends
    in ``LoginResult.FAIL`` after being posted to the control channel.
    """

    def __init__(
        self,
        remote: RemoteClient,
        prompts: PromptService,
        username: str,
        password: str,
        *,
        code_timeout: float = 300.0,
        mode_select_timeout: float = 60.0,
    ):
        self._remote = remote
        self._prompts = prompts
        self._username = username
        self._password = password
        self._code_timeout = code_timeout
        self._mode_select_timeout = mode_select_timeout
        self.session = LoginSession()

    async def run(self) -> LoginResult:
        try:
            result = await self._attempt()
        except PromptTimeoutError:
            self.session.enter(LoginPhase.FAIL)
            raise
        except Exception as e:
            self.session.enter(LoginPhase.FAIL)
            logger.error(f"LOGIN: failed: {e!r}")
            await self._report(e)
            return LoginResult.FAIL

        self.session.enter(
            LoginPhase.OK if result == LoginResult.OK else LoginPhase.NO_TWO_FACTOR
        )
        return result

    async def _attempt(self) -> LoginResult:
        self.session.enter(LoginPhase.ATTEMPT_LOGIN)
        try:
            try:
                await self._remote.login(self._username, self._password)
                return LoginResult.OK
            except TwoFactorRequiredError as e:
                return await self._two_factor(e.info)
        # A submitted two factor code can still land on a checkpoint
        except CheckpointRequiredError:
            return await self._checkpoint()

    async def _two_factor(self, info: TwoFactorInfo) -> LoginResult:
        self.session.enter(LoginPhase.TWO_FACTOR_REQUIRED)
        self.session.pending_challenge = info
        modes = info.available_modes()
        if not modes:
            logger.warning("LOGIN: account has no supported two factor mode")
            return LoginResult.NO_TWO_FACTOR

        if len(modes) == 1:
            mode = modes[0]
        else:
            self.session.enter(LoginPhase.MODE_SELECT, self._mode_select_timeout)
            mode = await self._prompts.multiple_choice(
                TWO_FACTOR_TITLE,
                "Select the two factor method you want to use.",
                MODE_OPTIONS,
                timeout=self._mode_select_timeout,
            )

        code = await self._await_code(".2fa ")
        await self._remote.two_factor_login(info, mode, code)
        return LoginResult.OK

    async def _checkpoint(self) -> LoginResult:
        self.session.enter(LoginPhase.CHECKPOINT_REQUIRED)
        await self._remote.resolve_challenge_automatically()
        code = await self._await_code(".code ")
        await self._remote.submit_challenge_code(code)
        return LoginResult.OK

    async def _await_code(self, prefix: str) -> str:
        self.session.enter(LoginPhase.AWAIT_CODE, self._code_timeout)
        return await self._prompts.text_input(
            TWO_FACTOR_TITLE,
            f"Type your code like this: {prefix}<code>",
            prefix=prefix,
            timeout=self._code_timeout,
            input_validator=is_numeric_code,
        )

    async def _report(self, error: Exception) -> None:
        try:
            await self._prompts.notify(error_card(error, title="Error"))
        except Exception as e:
            logger.error(f"LOGIN: could not report error: {e}")
