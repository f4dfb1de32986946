"""Translation of device replies into chat notifications.

Devices answer commands asynchronously on their own topic, echoing the device
id and source of the command that triggered them. The handler turns a fixed
vocabulary of tokens into text for the channel named by ``source``. It keeps
no state: the same (device kind, token, channel) always yields the same text.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import TYPE_CHECKING

from home_message_router.interpreter import normalize
from home_message_router.messages import Channel
from home_message_router.topics import DeviceKind

if TYPE_CHECKING:
    from home_message_router.messages import Envelope
    from home_message_router.metrics import RouterMetrics
    from home_message_router.publisher import Publisher
    from home_message_router.topics import TopicRegistry

DEFAULT_TEMPERATURE_ALERT_THRESHOLD = 80.0

TEMPERATURE_REPORT = "Temperatura no momento: {value}°"
TEMPERATURE_ALERT = "Temperatura do Raspberry muito alta! {value}°"

_ALL_CHANNELS = tuple(Channel)
# TODO: route temperature and door-ring notifications to SMS once product confirms SMS users want them
_CHATBOT_ONLY = (Channel.CHATBOT,)

_REPLY_RULES = (
    (DeviceKind.DEODORIZER, "OK", _ALL_CHANNELS, "Desodorizacao Executada!"),
    (DeviceKind.DEODORIZER, "OK RST", _ALL_CHANNELS, "Desodorizador reiniciado!"),
    (DeviceKind.INTERCOM, "OK", _ALL_CHANNELS, "Portaria Aberta!"),
    (DeviceKind.INTERCOM, "OK RST", _ALL_CHANNELS, "Interfone reiniciado!"),
    (DeviceKind.INTERCOM, "RING", _CHATBOT_ONLY, "Parece que tem alguem tocando o Interfone!"),
    (DeviceKind.PETS, "OK", _ALL_CHANNELS, "Pets Alimentados!"),
    (DeviceKind.PETS, "OK RST", _ALL_CHANNELS, "Alimentador de pets reiniciado!"),
    (DeviceKind.SMS_GATEWAY, "OK RST", _ALL_CHANNELS, "Gateway SMS reiniciado!"),
    (DeviceKind.CONFIG, "OK RST", _ALL_CHANNELS, "Broker reiniciado!"),
    (DeviceKind.CONFIG, "OK STD", _ALL_CHANNELS, "Broker desligado!"),
    (DeviceKind.TASKS, "OK", _ALL_CHANNELS, "Alerta agendado!"),
)

REPLY_TEXTS: dict[tuple[DeviceKind, str, Channel], str] = {
    (kind, token, channel): text for kind, token, channels, text in _REPLY_RULES for channel in channels
}


@dataclass(frozen=True)
class Notification:
    channel: Channel
    envelope: Envelope


class DeviceReplyHandler:
    """Stateless lookup from device replies to user notifications.

    Args:
        topics: Registry used to pick each channel's outbound topic
        publisher: Where notifications are published
        temperature_alert_threshold: Readings at or above this value are reported as alerts
    """

    def __init__(
        self,
        topics: TopicRegistry,
        publisher: Publisher,
        temperature_alert_threshold: float = DEFAULT_TEMPERATURE_ALERT_THRESHOLD,
        metrics: RouterMetrics | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.topics = topics
        self.publisher = publisher
        self.temperature_alert_threshold = temperature_alert_threshold
        self.metrics = metrics
        self.logger = logger or logging.getLogger(__name__)

    def translate(self, kind: DeviceKind, envelope: Envelope) -> Notification | None:
        """Translate a device reply, or return None when no rule matches."""
        channel = envelope.channel
        if channel is None or envelope.is_empty:
            return None

        if kind is DeviceKind.TEMPERATURE:
            text = self._temperature_text(envelope.message.strip(), channel)
        else:
            text = REPLY_TEXTS.get((kind, normalize(envelope.message), channel))

        if text is None:
            return None
        return Notification(channel=channel, envelope=envelope.with_message(text))

    def _temperature_text(self, reading: str, channel: Channel) -> str | None:
        if channel is not Channel.CHATBOT:
            return None
        try:
            value = float(reading)
        except ValueError:
            return None
        if not math.isfinite(value) or value <= 0:
            return None
        if value >= self.temperature_alert_threshold:
            return TEMPERATURE_ALERT.format(value=reading)
        return TEMPERATURE_REPORT.format(value=reading)

    async def handle(self, kind: DeviceKind, envelope: Envelope) -> tuple[str, Envelope] | None:
        """Publish the notification for a device reply.

        Returns:
            The (topic, envelope) pair published, or None if the reply was dropped
        """
        notification = self.translate(kind, envelope)
        if notification is None:
            self.logger.debug(
                "No notification for %s reply '%s' from source %s", kind.value, envelope.message, envelope.source
            )
            self._count("replies_unmatched")
            return None

        topic = self.topics.outbound_topic(notification.channel)
        self._count("replies_translated")
        await self.publisher.publish(topic, notification.envelope)
        return topic, notification.envelope

    def _count(self, counter: str) -> None:
        if self.metrics is not None:
            self.metrics.increment(counter)
