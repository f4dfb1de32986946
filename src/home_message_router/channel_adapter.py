"""Per-channel glue between inbound chat messages and the interpreter."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from home_message_router.conversation import ConversationStore
    from home_message_router.interpreter import CommandInterpreter
    from home_message_router.messages import Channel, Envelope
    from home_message_router.metrics import RouterMetrics
    from home_message_router.publisher import Publisher
    from home_message_router.topics import TopicRegistry


class ChannelAdapter:
    """Feed one channel's inbound messages through the interpreter.

    SMS and chat-bot adapters share the interpreter and the conversation
    store. Conversations are keyed by ``Envelope.device`` only, so a phone
    number and a chat-bot user id are separate conversations.
    """

    def __init__(
        self,
        channel: Channel,
        topics: TopicRegistry,
        interpreter: CommandInterpreter,
        store: ConversationStore,
        publisher: Publisher,
        metrics: RouterMetrics | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.channel = channel
        self.topics = topics
        self.interpreter = interpreter
        self.store = store
        self.publisher = publisher
        self.metrics = metrics
        self.logger = logger or logging.getLogger(__name__)

    @property
    def inbound_topic(self) -> str:
        return self.topics.inbound_topic(self.channel)

    @property
    def outbound_topic(self) -> str:
        return self.topics.outbound_topic(self.channel)

    async def handle(self, envelope: Envelope) -> list[tuple[str, Envelope]]:
        """Interpret one inbound message and publish the results.

        Returns:
            The (topic, envelope) pairs handed to the publisher, in order
        """
        if envelope.is_empty:
            self.logger.debug("Dropping empty %s message from device %s", self.channel.name, envelope.device)
            self._count("messages_dropped")
            return []

        # AIDEV-NOTE: State is written only after the interpreter has returned a complete decision
        async with self.store.lock(envelope.device):
            state = self.store.get(envelope.device)
            result = self.interpreter.interpret(self.channel, envelope, state)
            self.store.set(envelope.device, result.state)

            if result.state != state:
                self.logger.info(
                    "Device %s moved from %s to %s",
                    envelope.device,
                    state.dialog_mode.value,
                    result.state.dialog_mode.value,
                )
            self._count("commands_interpreted")

            # Publishing under the lock keeps one device's replies in command order
            published = []
            for outbound in result.outbound:
                topic = self.outbound_topic if outbound.is_reply else outbound.topic
                await self.publisher.publish(topic, outbound.envelope)
                published.append((topic, outbound.envelope))
        return published

    def _count(self, counter: str) -> None:
        if self.metrics is not None:
            self.metrics.increment(counter)
