"""Tests for messaging/commands.py."""

import pytest

from messaging.commands import (
    ArgumentSpec,
    create_arguments,
    create_command,
    find_command,
    parse,
    parse_arguments,
    split_command,
    tokenize,
)
from messaging.errors import InvalidArgumentError


class TestParse:
    def test_named_argument_quoted(self):
        specs = [ArgumentSpec("query", requires_name=True)]
        assert parse('add -query "my thread"', specs) == {"query": "my thread"}

    def test_positional_reads_to_first_space(self):
        assert parse("add weekend trip", create_arguments("query")) == {
            "query": "weekend"
        }

    def test_positional_quoted_keeps_spaces(self):
        assert parse("add 'weekend trip' x", create_arguments("query")) == {
            "query": "weekend trip"
        }

    def test_backtick_quote(self):
        assert parse("add `a b`", create_arguments("query")) == {"query": "a b"}

    def test_prefix_is_stripped(self):
        assert parse(".add bob", create_arguments("query"), prefix=".") == {
            "query": "bob"
        }

    def test_multiple_positionals(self):
        specs = create_arguments("first", "second")
        assert parse("cmd one two three", specs) == {"first": "one", "second": "two"}

    def test_missing_positional_is_empty(self):
        assert parse("add", create_arguments("query")) == {"query": ""}

    def test_unterminated_quote_reads_to_end(self):
        assert parse('add "open ended', create_arguments("query")) == {
            "query": "open ended"
        }


class TestNamedArguments:
    def test_unquoted_value_reads_until_dash(self):
        specs = [ArgumentSpec("title", requires_name=True)]
        assert parse_arguments("-title weekend trip -other x", specs) == {
            "title": "weekend trip"
        }

    def test_missing_named_argument_is_empty(self):
        specs = [ArgumentSpec("title", requires_name=True)]
        assert parse_arguments("nothing here", specs) == {"title": ""}

    def test_named_does_not_consume_positional(self):
        specs = [ArgumentSpec("limit", requires_name=True), ArgumentSpec("query")]
        assert parse_arguments("bob -limit 3", specs) == {"limit": "3", "query": "bob"}


class TestValidation:
    def test_validator_failure_raises(self):
        specs = [ArgumentSpec("count", validator=str.isdigit)]
        with pytest.raises(InvalidArgumentError) as exc_info:
            parse_arguments("abc", specs)
        assert exc_info.value.argument == "count"
        assert str(exc_info.value) == "count's value is invalid"

    def test_validator_success(self):
        specs = [ArgumentSpec("count", validator=str.isdigit)]
        assert parse_arguments("12", specs) == {"count": "12"}


class TestCommandTable:
    async def _noop(self, args, message):
        return None

    def test_find_by_alias(self):
        table = [
            create_command("add", create_arguments("query"), self._noop),
            create_command(["recent", "recents", "inbox"], [], self._noop),
        ]
        assert find_command(table, "inbox") is table[1]
        assert find_command(table, "add") is table[0]
        assert find_command(table, "missing") is None

    def test_split_command(self):
        assert split_command(".search foo bar", ".") == ("search", "foo bar")
        assert split_command(".recent", ".") == ("recent", "")


class TestTokenize:
    def test_named_and_positional(self):
        command = tokenize(".add bob -mode 'fast lane' tail", ".")
        assert command.name == "add"
        assert command.positional_args == ["bob", "tail"]
        assert command.named_args == {"mode": "fast lane"}
        assert command.args_text == "bob -mode 'fast lane' tail"

    def test_empty(self):
        command = tokenize("recent")
        assert command.name == "recent"
        assert command.positional_args == []
        assert command.named_args == {}
