"""Discord markdown helpers."""

DISCORD_MESSAGE_LIMIT = 2000


def discord_code_block(
    text: str, language: str = "", limit: int = DISCORD_MESSAGE_LIMIT
) -> str:
    """Fenced code block, truncating the body so the whole block fits in limit."""
    text = text.replace("```", "`\u200b``")
    fence_open = f"```{language}\n"
    fence_close = "\n```"
    room = limit - len(fence_open) - len(fence_close)
    if room < 0:
        room = 0
    return f"{fence_open}{text[:room]}{fence_close}"


def truncate(text: str, limit: int = DISCORD_MESSAGE_LIMIT, suffix: str = "…") -> str:
    if len(text) <= limit:
        return text
    return text[: max(0, limit - len(suffix))] + suffix
