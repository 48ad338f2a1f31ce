"""
Unit tests for services.bridge.commands module.

Tests:
- parse(): exact, whitespace-tolerant, case-sensitive matching
- handle(): subscribe/unsubscribe/help replies and registry effects
"""

import pytest

from nostrcord.models.constants import Command
from nostrcord.services.bridge.commands import (
    ALREADY_SUBSCRIBED,
    HELP,
    NOT_SUBSCRIBED,
    SUBSCRIBED,
    UNSUBSCRIBED,
    CommandInterpreter,
)


@pytest.fixture
def interpreter(registry):
    return CommandInterpreter(registry)


class TestParse:
    @pytest.mark.parametrize(
        ("text", "expected"),
        [
            ("!subscribe", Command.SUBSCRIBE),
            ("  !subscribe\n", Command.SUBSCRIBE),
            ("!unsubscribe", Command.UNSUBSCRIBE),
            ("!help", Command.HELP),
            ("!Subscribe", None),
            ("!subscribe now", None),
            ("subscribe", None),
            ("hello", None),
            ("", None),
        ],
    )
    def test_parse(self, text, expected):
        assert CommandInterpreter.parse(text) is expected


class TestHandle:
    async def test_not_a_command(self, interpreter, alice):
        assert await interpreter.handle(alice, "hello") is None

    async def test_subscribe(self, interpreter, registry, alice):
        result = await interpreter.handle(alice, "!subscribe")
        assert result.command is Command.SUBSCRIBE
        assert result.reply == SUBSCRIBED
        assert result.changed is True
        assert registry.contains(alice)

    async def test_subscribe_twice(self, interpreter, registry, alice):
        await interpreter.handle(alice, "!subscribe")
        result = await interpreter.handle(alice, "!subscribe")
        assert result.reply == ALREADY_SUBSCRIBED
        assert result.changed is False
        assert len(registry) == 1

    async def test_unsubscribe(self, interpreter, registry, alice):
        await registry.add(alice)
        result = await interpreter.handle(alice, "!unsubscribe")
        assert result.reply == UNSUBSCRIBED
        assert result.changed is True
        assert not registry.contains(alice)

    async def test_unsubscribe_when_absent(self, interpreter, alice):
        result = await interpreter.handle(alice, "!unsubscribe")
        assert result.reply == NOT_SUBSCRIBED
        assert result.changed is False

    async def test_help(self, interpreter, registry, alice):
        result = await interpreter.handle(alice, "!help")
        assert result.reply == HELP
        assert result.changed is False
        assert len(registry) == 0

    def test_help_lists_every_command(self):
        for command in Command:
            assert command.value in HELP
