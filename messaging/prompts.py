"""Interactive prompts in the control channel.

Each prompt is a single wait on the local platform with an explicit deadline.
An elapsed deadline raises ``PromptTimeoutError``.
"""

import re
from collections.abc import Callable
from dataclasses import dataclass

from loguru import logger

from .errors import PromptTimeoutError
from .models import LocalMessage
from .platforms.base import LocalPlatform
from .rendering.cards import Card

NUMERIC_CODE = re.compile(r"\d{1,6}")


@dataclass(frozen=True)
class ChoiceOption:
    emoji: str
    description: str
    value: object


class PromptService:
    def __init__(self, platform: LocalPlatform, channel_id: str):
        self._platform = platform
        self.channel_id = channel_id

    async def notify(self, card: Card) -> str:
        return await self._platform.send_card(self.channel_id, card)

    async def multiple_choice(
        self,
        title: str,
        message: str,
        options: list[ChoiceOption],
        *,
        timeout: float,
    ) -> object:
        """
        Post the options and return the value of the most-reacted option.

        Ties go to the option whose reaction arrived first.
        """
        body = "\n".join(f"{o.emoji} - {o.description}" for o in options)
        prompt_id = await self._platform.send_card(
            self.channel_id, Card(title=title, description=f"{message}\n\n{body}")
        )
        for option in options:
            await self._platform.add_reaction(self.channel_id, prompt_id, option.emoji)

        emojis = [o.emoji for o in options]
        try:
            tallies = await self._platform.wait_for_reactions(
                self.channel_id, prompt_id, emojis, timeout=timeout
            )
        except TimeoutError as e:
            raise PromptTimeoutError(f"{title}: no choice within {timeout:.0f}s") from e

        if not tallies:
            raise PromptTimeoutError(f"{title}: no choice recorded")
        # max() keeps the first of equal counts, i.e. arrival order
        top = max(tallies, key=lambda t: t.count)
        chosen = next(o for o in options if o.emoji == top.emoji)
        logger.info(f"PROMPT: '{title}' answered with {chosen.description}")
        return chosen.value

    async def text_input(
        self,
        title: str,
        message: str,
        *,
        prefix: str = "",
        timeout: float,
        input_validator: Callable[[str], bool] | None = None,
        user_validator: Callable[[str], bool] | None = None,
    ) -> str:
        """Post instructions and return the text after prefix of the first valid reply."""
        input_validator = input_validator or (lambda _: True)
        user_validator = user_validator or (lambda _: True)

        await self._platform.send_card(
            self.channel_id, Card(title=title, description=message)
        )

        def accept(msg: LocalMessage) -> bool:
            return (
                not msg.author_is_bot
                and user_validator(msg.author_id)
                and msg.content.startswith(prefix)
                and input_validator(msg.content[len(prefix) :].strip())
            )

        try:
            reply = await self._platform.wait_for_message(
                self.channel_id, accept, timeout=timeout
            )
        except TimeoutError as e:
            raise PromptTimeoutError(f"{title}: input timed out after {timeout:.0f}s") from e
        return reply.content[len(prefix) :].strip()


def is_numeric_code(value: str) -> bool:
    return NUMERIC_CODE.fullmatch(value) is not None
