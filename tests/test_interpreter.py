"""Tests for the command interpreter state machine."""

import pytest

from home_message_router import (
    Channel,
    CommandInterpreter,
    ConversationState,
    DialogMode,
    Envelope,
    OutboundMessage,
    TopicRegistry,
)
from home_message_router import commands
from home_message_router.interpreter import normalize

MAIN = ConversationState()
ADMIN = ConversationState(dialog_mode=DialogMode.ADMIN)
TRACKING = ConversationState(dialog_mode=DialogMode.TRACKING_AWAIT_CODE)


@pytest.fixture
def topics():
    return TopicRegistry()


@pytest.fixture
def interpreter(topics):
    return CommandInterpreter(topics)


def sms(message: str, device: str = "D1") -> Envelope:
    return Envelope(device=device, source="SMS", message=message)


def chatbot(message: str, device: str = "D1") -> Envelope:
    return Envelope(device=device, source="Telegram", message=message)


def reply(envelope: Envelope, text: str) -> OutboundMessage:
    return OutboundMessage(envelope.with_message(text))


class TestNormalize:
    def test_trims_collapses_and_uppercases(self):
        assert normalize("  rst   pets \r\n") == "RST PETS"
        assert normalize("Menu") == "MENU"


class TestMainMenu:
    @pytest.mark.parametrize(
        ("message", "attribute", "token"),
        [
            ("1", "temperature", "GET"),
            ("2", "deodorizer", "ACT"),
            ("3", "intercom", "ACT"),
            ("4", "pets", "ACT"),
            ("op2", "deodorizer", "ACT"),
        ],
    )
    def test_device_commands(self, interpreter, topics, message, attribute, token):
        envelope = sms(message)
        result = interpreter.interpret(Channel.SMS, envelope, MAIN)

        assert result.outbound == [OutboundMessage(envelope.with_message(token), getattr(topics, attribute))]
        assert result.state.dialog_mode is DialogMode.MAIN

    def test_deodorizer_command_keeps_device_and_source(self, interpreter, topics):
        """Option 2 sends ACT to the deodorizer with the caller's device and source."""
        result = interpreter.interpret(Channel.CHATBOT, chatbot("2"), MAIN)

        assert result.outbound == [
            OutboundMessage(Envelope(device="D1", source="Telegram", message="ACT"), topics.deodorizer)
        ]
        assert result.state == MAIN

    def test_menu_replies_with_main_menu(self, interpreter):
        envelope = sms(" menu ")
        result = interpreter.interpret(Channel.SMS, envelope, MAIN)

        assert result.outbound == [reply(envelope, commands.MAIN_MENU)]
        assert result.outbound[0].is_reply
        assert result.state.dialog_mode is DialogMode.MAIN

    @pytest.mark.parametrize("state", [MAIN, ADMIN, TRACKING])
    def test_menu_always_returns_to_main(self, interpreter, state):
        envelope = chatbot("MENU")
        result = interpreter.interpret(Channel.CHATBOT, envelope, state)

        assert result.outbound == [reply(envelope, commands.MAIN_MENU)]
        assert result.state.dialog_mode is DialogMode.MAIN

    def test_admin_enters_admin_mode(self, interpreter):
        envelope = chatbot("admin")
        result = interpreter.interpret(Channel.CHATBOT, envelope, MAIN)

        assert result.outbound == [reply(envelope, commands.ADMIN_MENU)]
        assert result.state.dialog_mode is DialogMode.ADMIN

    def test_invalid_option(self, interpreter):
        envelope = sms("hello")
        result = interpreter.interpret(Channel.SMS, envelope, MAIN)

        assert result.outbound == [reply(envelope, commands.INVALID_OPTION)]
        assert result.state.dialog_mode is DialogMode.MAIN

    def test_chatbot_button_labels(self, interpreter, topics):
        envelope = chatbot("Abrir Portaria")
        result = interpreter.interpret(Channel.CHATBOT, envelope, MAIN)

        assert result.outbound == [OutboundMessage(envelope.with_message("ACT"), topics.intercom)]

    def test_button_labels_are_not_sms_commands(self, interpreter):
        envelope = sms("Abrir Portaria")
        result = interpreter.interpret(Channel.SMS, envelope, MAIN)

        assert result.outbound == [reply(envelope, commands.INVALID_OPTION)]

    def test_tracking_option_prompts_for_code(self, interpreter):
        envelope = sms("6")
        result = interpreter.interpret(Channel.SMS, envelope, MAIN)

        assert result.outbound == [reply(envelope, commands.TRACKING_PROMPT)]
        assert result.state.dialog_mode is DialogMode.TRACKING_AWAIT_CODE

    def test_input_is_not_mutated(self, interpreter):
        envelope = sms("2")
        state = ConversationState()
        interpreter.interpret(Channel.SMS, envelope, state)

        assert envelope.message == "2"
        assert state.dialog_mode is DialogMode.MAIN


class TestAlerts:
    @pytest.mark.parametrize("message", ["5", "OP5", "alert", "ALERT tirar o lixo", "ALERT tirar o lixo, 0"])
    def test_prompts_for_syntax(self, interpreter, message):
        envelope = sms(message)
        result = interpreter.interpret(Channel.SMS, envelope, MAIN)

        assert result.outbound == [reply(envelope, commands.ALERT_SYNTAX)]
        assert result.state.dialog_mode is DialogMode.MAIN

    def test_valid_alert_is_forwarded_verbatim(self, interpreter, topics):
        envelope = chatbot("Alert Tirar o lixo, 30")
        result = interpreter.interpret(Channel.CHATBOT, envelope, MAIN)

        assert result.outbound == [OutboundMessage(envelope, topics.tasks)]
        assert result.state.dialog_mode is DialogMode.MAIN


class TestAdminShortcuts:
    @pytest.mark.parametrize(
        ("message", "attribute", "token"),
        [
            ("RST PETS", "pets", "RST"),
            ("rst int", "intercom", "RST"),
            ("RST DES", "deodorizer", "RST"),
            ("RST SMS", "sms_gateway", "RST"),
            ("RST BRK", "config", "RST"),
            ("STD BRK", "config", "STD"),
        ],
    )
    def test_shortcuts_work_from_main_without_mode_change(self, interpreter, topics, message, attribute, token):
        envelope = sms(message)
        result = interpreter.interpret(Channel.SMS, envelope, MAIN)

        assert result.outbound == [OutboundMessage(envelope.with_message(token), getattr(topics, attribute))]
        assert result.state.dialog_mode is DialogMode.MAIN


class TestAdminMenu:
    @pytest.mark.parametrize(
        ("message", "attribute", "token"),
        [
            ("1", "pets", "RST"),
            ("2", "intercom", "RST"),
            ("3", "deodorizer", "RST"),
            ("4", "sms_gateway", "RST"),
            ("5", "config", "RST"),
            ("6", "config", "STD"),
            ("RST PETS", "pets", "RST"),
        ],
    )
    def test_admin_codes(self, interpreter, topics, message, attribute, token):
        envelope = chatbot(message)
        result = interpreter.interpret(Channel.CHATBOT, envelope, ADMIN)

        assert result.outbound == [OutboundMessage(envelope.with_message(token), getattr(topics, attribute))]
        assert result.state.dialog_mode is DialogMode.ADMIN

    def test_option_one_restarts_pets(self, interpreter, topics):
        result = interpreter.interpret(Channel.SMS, sms("1"), ADMIN)

        assert [(out.topic, out.envelope.message) for out in result.outbound] == [(topics.pets, "RST")]
        assert result.state == ADMIN

    def test_main_menu_options_are_invalid_in_admin(self, interpreter):
        envelope = sms("ADMIN")
        result = interpreter.interpret(Channel.SMS, envelope, ADMIN)

        assert result.outbound == [reply(envelope, commands.INVALID_ADMIN_OPTION)]
        assert result.state.dialog_mode is DialogMode.ADMIN


class TestTrackingCode:
    def test_short_code_is_rejected(self, interpreter):
        envelope = sms("AB1234567")
        result = interpreter.interpret(Channel.SMS, envelope, TRACKING)

        assert len(result.outbound) == 1
        assert result.outbound[0].is_reply
        assert commands.INVALID_TRACKING_CODE in result.outbound[0].envelope.message
        assert commands.TRACKING_PROMPT in result.outbound[0].envelope.message
        assert result.state.dialog_mode is DialogMode.TRACKING_AWAIT_CODE

    def test_thirteen_character_code_is_forwarded(self, interpreter, topics):
        envelope = sms("AB123456789BR")
        result = interpreter.interpret(Channel.SMS, envelope, TRACKING)

        assert result.outbound == [OutboundMessage(envelope, topics.tracking)]
        assert result.state.dialog_mode is DialogMode.MAIN

    def test_length_is_measured_on_raw_message(self, interpreter):
        # 13 characters only after trimming
        envelope = sms(" AB123456789BR")
        result = interpreter.interpret(Channel.SMS, envelope, TRACKING)

        assert result.outbound[0].is_reply
        assert result.state.dialog_mode is DialogMode.TRACKING_AWAIT_CODE

    def test_commands_are_treated_as_codes(self, interpreter):
        envelope = sms("ADMIN")
        result = interpreter.interpret(Channel.SMS, envelope, TRACKING)

        assert result.outbound[0].is_reply
        assert result.state.dialog_mode is DialogMode.TRACKING_AWAIT_CODE
