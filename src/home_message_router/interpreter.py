"""Command interpretation: the per-conversation state machine.

Given an inbound envelope, the channel it arrived on and the device's current
dialog mode, decide which envelopes go out and which mode comes next. The
interpreter is pure: it neither publishes nor touches the conversation store.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from home_message_router import commands
from home_message_router.conversation import ConversationState, DialogMode
from home_message_router.topics import DeviceKind

if TYPE_CHECKING:
    from home_message_router.messages import Channel, Envelope
    from home_message_router.topics import TopicRegistry

logger = logging.getLogger(__name__)

ALERT_PATTERN = re.compile(r"^ALERT\s+(?P<task>\S.*?)\s*,\s*(?P<minutes>\d+)$", re.IGNORECASE)


def normalize(message: str) -> str:
    """Uppercase the message and collapse runs of whitespace."""
    return " ".join(message.split()).upper()


@dataclass(frozen=True)
class OutboundMessage:
    """An envelope to publish.

    ``topic`` is a device topic, or None for a reply on the channel the
    command came from.
    """

    envelope: Envelope
    topic: str | None = None

    @property
    def is_reply(self) -> bool:
        return self.topic is None


@dataclass(frozen=True)
class Interpretation:
    state: ConversationState
    outbound: list[OutboundMessage] = field(default_factory=list)


class CommandInterpreter:
    """Decision logic shared by every channel adapter.

    Args:
        topics: Registry used to resolve device targets to topic names
    """

    def __init__(self, topics: TopicRegistry) -> None:
        self.topics = topics

    def interpret(self, channel: Channel, envelope: Envelope, state: ConversationState) -> Interpretation:
        keyword = normalize(envelope.message)
        logger.debug(
            "Interpreting '%s' from device %s on %s in mode %s",
            keyword,
            envelope.device,
            channel.name,
            state.dialog_mode.value,
        )

        if state.dialog_mode is DialogMode.TRACKING_AWAIT_CODE and keyword != "MENU":
            return self._interpret_tracking_code(envelope, state)
        if state.dialog_mode is DialogMode.ADMIN:
            return self._interpret_admin(channel, keyword, envelope, state)
        return self._interpret_main(channel, keyword, envelope, state)

    def _interpret_tracking_code(self, envelope: Envelope, state: ConversationState) -> Interpretation:
        # Length is checked on the raw text; the code is forwarded untouched
        if len(envelope.message) == commands.TRACKING_CODE_LENGTH:
            return Interpretation(
                state=state.transition(DialogMode.MAIN),
                outbound=[OutboundMessage(envelope, self.topics.device_topic(DeviceKind.TRACKING))],
            )
        text = f"{commands.INVALID_TRACKING_CODE}\r\n{commands.TRACKING_PROMPT}"
        return Interpretation(state=state, outbound=[self._reply(envelope, text)])

    def _interpret_admin(
        self, channel: Channel, keyword: str, envelope: Envelope, state: ConversationState
    ) -> Interpretation:
        command = commands.ADMIN_COMMANDS.lookup(keyword, channel)
        if command is None:
            return Interpretation(state=state, outbound=[self._reply(envelope, commands.INVALID_ADMIN_OPTION)])
        return self._apply(command, envelope, state)

    def _interpret_main(
        self, channel: Channel, keyword: str, envelope: Envelope, state: ConversationState
    ) -> Interpretation:
        if keyword.startswith(commands.ALERT_KEYWORD + " "):
            return self._schedule_alert(envelope, state)

        command = commands.MAIN_COMMANDS.lookup(keyword, channel)
        if command is None:
            return Interpretation(state=state, outbound=[self._reply(envelope, commands.INVALID_OPTION)])
        return self._apply(command, envelope, state)

    def _schedule_alert(self, envelope: Envelope, state: ConversationState) -> Interpretation:
        match = ALERT_PATTERN.match(envelope.message.strip())
        if match is None or int(match["minutes"]) <= 0:
            return Interpretation(state=state, outbound=[self._reply(envelope, commands.ALERT_SYNTAX)])
        # The task service schedules the alert and answers the user itself
        return Interpretation(
            state=state,
            outbound=[OutboundMessage(envelope, self.topics.device_topic(DeviceKind.TASKS))],
        )

    def _apply(self, command: commands.Command, envelope: Envelope, state: ConversationState) -> Interpretation:
        outbound: list[OutboundMessage] = []
        if command.target is not None and command.token is not None:
            device_command = envelope.with_message(command.token)
            outbound.append(OutboundMessage(device_command, self.topics.device_topic(command.target)))
        if command.reply is not None:
            outbound.append(self._reply(envelope, command.reply))
        next_state = state if command.next_mode is None else state.transition(command.next_mode)
        return Interpretation(state=next_state, outbound=outbound)

    @staticmethod
    def _reply(envelope: Envelope, text: str) -> OutboundMessage:
        return OutboundMessage(envelope.with_message(text))
