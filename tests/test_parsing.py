"""Tests for pollsync/parsing.py."""

import pytest

from pollsync.errors import ValidationFailed
from pollsync.parsing import (
    parse_cost,
    parse_count,
    parse_label,
    parse_ordinal,
    parse_poll_command,
    parse_yes_no,
    split_command,
)


@pytest.mark.parametrize("text", ["yes", "Y", " да ", "Д"])
def test_yes(text):
    assert parse_yes_no(text) is True


@pytest.mark.parametrize("text", ["no", "N", "нет", "н"])
def test_no(text):
    assert parse_yes_no(text) is False


@pytest.mark.parametrize("text", ["", "maybe", "yes please", "1"])
def test_unrecognized_yes_no(text):
    assert parse_yes_no(text) is None


def test_parse_label():
    assert parse_label(" Sep 7 ") == "Sep 7"
    with pytest.raises(ValidationFailed, match="date name"):
        parse_label("  ")


def test_parse_cost():
    assert parse_cost("50") == 50.0
    assert parse_cost("12,5") == 12.5
    assert parse_cost("0") == 0.0


@pytest.mark.parametrize("text", ["-1", "abc", "inf", "nan", ""])
def test_parse_cost_rejects(text):
    with pytest.raises(ValidationFailed, match="valid positive number"):
        parse_cost(text)


def test_parse_count():
    assert parse_count(" 12 ") == 12
    with pytest.raises(ValidationFailed):
        parse_count("1.5")
    with pytest.raises(ValidationFailed):
        parse_count("-2")


def test_parse_ordinal():
    assert parse_ordinal("1", 3) == 0
    assert parse_ordinal("3", 3) == 2
    with pytest.raises(ValidationFailed, match="valid option number"):
        parse_ordinal("0", 3)
    with pytest.raises(ValidationFailed, match="valid option number"):
        parse_ordinal("first", 3)
    with pytest.raises(ValidationFailed, match="between 1 and 3"):
        parse_ordinal("4", 3)


@pytest.mark.parametrize(
    "args",
    ["Game? | Yes | No", "Game?;Yes;No", "Game?\nYes\nNo", "Game? || Yes |; No"],
)
def test_parse_poll_command_separators(args):
    assert parse_poll_command(args) == ("Game?", ["Yes", "No"])


def test_parse_poll_command_needs_an_option():
    with pytest.raises(ValidationFailed, match="Usage"):
        parse_poll_command("Only a question")
    with pytest.raises(ValidationFailed):
        parse_poll_command("")


def test_split_command():
    assert split_command("/update") == ("update", "")
    assert split_command("/Poll@SyncBot Q | A") == ("poll", "Q | A")
    assert split_command("/poll\nQ\nA") == ("poll", "Q\nA")
    assert split_command("hello") is None
