"""Control-line command parsing.

Arguments are read left to right. A positional argument reads until the next
space; a named argument (``requires_name``) is located by ``-<name>`` and reads
until the next ``-``. Either form may be quoted with ``"``, ``'`` or a
backtick, in which case the value runs to the matching quote.
"""

from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from typing import Any

from .errors import InvalidArgumentError

QUOTES = ('"', "`", "'")


def _always_valid(_: str) -> bool:
    return True


@dataclass(frozen=True)
class ArgumentSpec:
    name: str
    requires_name: bool = False
    validator: Callable[[str], bool] = _always_valid


def create_arguments(*args: ArgumentSpec | str) -> list[ArgumentSpec]:
    """Build argument specs; bare strings become positional arguments."""
    return [ArgumentSpec(a) if isinstance(a, str) else a for a in args]


@dataclass
class Command:
    """Transient record built from one control line."""

    name: str
    positional_args: list[str] = field(default_factory=list)
    named_args: dict[str, str] = field(default_factory=dict)
    args_text: str = ""


CommandHandler = Callable[[dict[str, str], Any], Awaitable[Any]]


@dataclass
class CommandSpec:
    names: tuple[str, ...]
    handler: CommandHandler
    arguments: list[ArgumentSpec] = field(default_factory=list)

    def matches(self, name: str) -> bool:
        return name in self.names


def create_command(
    name: str | Sequence[str],
    arguments: list[ArgumentSpec],
    handler: CommandHandler,
) -> CommandSpec:
    names = (name,) if isinstance(name, str) else tuple(name)
    return CommandSpec(names=names, handler=handler, arguments=arguments)


def find_command(table: Sequence[CommandSpec], name: str) -> CommandSpec | None:
    return next((c for c in table if c.matches(name)), None)


def _skip_whitespace(text: str, pos: int) -> int:
    while pos < len(text) and text[pos] == " ":
        pos += 1
    return pos


def _read_until(text: str, start: int, stop: str) -> tuple[str, int, bool]:
    """
    Read from start up to (excluding) stop.

    Returns (value, position after the value, quoted). Past end of input
    yields an empty value.
    """
    if start >= len(text):
        return "", len(text), False
    if text[start] in QUOTES:
        quote = text[start]
        end = text.find(quote, start + 1)
        if end == -1:
            return text[start + 1 :], len(text), True
        return text[start + 1 : end], end + 1, True
    end = text.find(stop, start)
    if end == -1:
        return text[start:], len(text), False
    return text[start:end], end, False


def _extract(text: str, pos: int, spec: ArgumentSpec) -> tuple[str, int]:
    pos = _skip_whitespace(text, pos)
    if spec.requires_name:
        marker = f"-{spec.name}"
        idx = text.find(marker)
        if idx == -1:
            value = ""
        else:
            start = _skip_whitespace(text, idx + len(marker))
            value, _, quoted = _read_until(text, start, "-")
            if not quoted:
                value = value.rstrip()
        # Named arguments do not advance the positional cursor
        new_pos = pos
    else:
        value, new_pos, _ = _read_until(text, pos, " ")

    if not spec.validator(value):
        raise InvalidArgumentError(spec.name, value)
    return value, new_pos


def parse_arguments(text: str, specs: Sequence[ArgumentSpec]) -> dict[str, str]:
    """Parse argument text (without the command word) into a name -> value dict."""
    pos = 0
    result: dict[str, str] = {}
    for spec in specs:
        value, pos = _extract(text, pos, spec)
        result[spec.name] = value
    return result


def split_command(line: str, prefix: str = "") -> tuple[str, str]:
    """Split a control line into (command name, argument text)."""
    body = line[len(prefix) :] if prefix and line.startswith(prefix) else line
    body = body.lstrip(" ")
    name, _, rest = body.partition(" ")
    return name, rest


def parse(
    line: str, specs: Sequence[ArgumentSpec], prefix: str = ""
) -> dict[str, str]:
    """Parse a full control line; the leading command word is skipped."""
    _, args_text = split_command(line, prefix)
    return parse_arguments(args_text, specs)


def tokenize(line: str, prefix: str = "") -> Command:
    """Build a Command record: ``-name value`` pairs are named, the rest positional."""
    name, args_text = split_command(line, prefix)
    command = Command(name=name, args_text=args_text)
    pos = 0
    while True:
        pos = _skip_whitespace(args_text, pos)
        if pos >= len(args_text):
            break
        if args_text[pos] == "-" and pos + 1 < len(args_text):
            arg_name, pos, _ = _read_until(args_text, pos + 1, " ")
            pos = _skip_whitespace(args_text, pos)
            value, pos, _ = _read_until(args_text, pos, " ")
            command.named_args[arg_name] = value
        else:
            value, pos, _ = _read_until(args_text, pos, " ")
            command.positional_args.append(value)
    return command
