"""
Unit tests for the plain-text protocol helpers.
"""

import pytest

from protocol import (
    ADMIN_TOKENS,
    CLIENT_TOKENS,
    SERVER_TAG,
    ControlToken,
    InvalidName,
    MalformedInbound,
    chat_line,
    closing_notice,
    confirmation,
    decode_frame,
    is_server_message,
    join_notice,
    leave_notice,
    parse_control,
    shutdown_warning,
    validate_username,
)


class TestParseControl:
    @pytest.mark.parametrize("text", ["/exit", "/EXIT", "  /Exit \n", "\t/exit"])
    def test_exit_is_case_insensitive_and_trimmed(self, text):
        assert parse_control(text) is ControlToken.EXIT

    def test_admin_tokens(self):
        assert parse_control("/shutdown") is ControlToken.SHUTDOWN
        assert parse_control("/clear") is ControlToken.CLEAR
        assert parse_control("/users\n") is ControlToken.USERS

    @pytest.mark.parametrize("text", ["", "exit", "/exit now", "hello", "/quit", None])
    def test_non_tokens(self, text):
        assert parse_control(text) is None

    def test_token_sets_are_disjoint(self):
        assert CLIENT_TOKENS.isdisjoint(ADMIN_TOKENS)
        assert CLIENT_TOKENS | ADMIN_TOKENS == set(ControlToken)


class TestDecodeFrame:
    def test_text_passes_through(self):
        assert decode_frame("hola") == "hola"

    def test_utf8_bytes_are_decoded(self):
        assert decode_frame("ñandú".encode("utf-8")) == "ñandú"

    def test_invalid_bytes_raise(self):
        with pytest.raises(MalformedInbound):
            decode_frame(b"\xff\xfe\xfa")


class TestValidateUsername:
    def test_trims(self):
        assert validate_username("  alice \n") == "alice"

    def test_keeps_case(self):
        assert validate_username("Alice") == "Alice"

    @pytest.mark.parametrize("text", ["", "   ", "\n", "/exit", "/SHUTDOWN"])
    def test_rejects_empty_and_tokens(self, text):
        with pytest.raises(InvalidName):
            validate_username(text)


class TestMessages:
    def test_chat_line(self):
        assert chat_line("alice", "hello") == "alice: hello"

    def test_server_notices_are_tagged(self):
        for message in (join_notice("bob"), leave_notice("bob"), closing_notice(), shutdown_warning(60)):
            assert message.startswith(SERVER_TAG)
            assert is_server_message(message)

    def test_chat_line_is_not_server_message(self):
        assert not is_server_message(chat_line("alice", "[Server]: fake"))

    def test_join_and_leave_mention_name(self):
        assert "bob" in join_notice("bob")
        assert "bob" in leave_notice("bob")

    def test_confirmation_mentions_name(self):
        assert '"alice"' in confirmation("alice")

    @pytest.mark.parametrize("seconds,expected", [
        (400, "7 minutes"),
        (360, "6 minutes"),
        (60, "1 minute"),
        (30, "30 seconds"),
        (1, "1 second"),
        (0.2, "1 second"),
    ])
    def test_shutdown_warning(self, seconds, expected):
        assert shutdown_warning(seconds) == f"{SERVER_TAG}The server will close in {expected}."
