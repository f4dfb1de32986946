"""Wire payload exchanged on every topic of the router.

Chat gateways, devices and the router itself all publish the same small JSON
document: who the conversation belongs to, which channel it came from and the
text itself.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict

INTERNAL_SOURCE = "Internal"
ONLINE_MESSAGE = "Online"


class Channel(str, Enum):
    """Human-facing messaging surfaces the router talks to.

    The value is the source tag the gateway writes into ``Envelope.source``.
    """

    SMS = "SMS"
    CHATBOT = "Telegram"

    @classmethod
    def from_source(cls, source: str | None) -> Channel | None:
        """Resolve a source tag (case-insensitive) to a channel.

        Returns None for router announcements, device-class tags and
        anything else that is not a chat channel.
        """
        if not source:
            return None
        return _SOURCE_ALIASES.get(source.strip().upper())


_SOURCE_ALIASES = {
    "SMS": Channel.SMS,
    "TELEGRAM": Channel.CHATBOT,
    "CHATBOT": Channel.CHATBOT,
}


# AIDEV-NOTE: Field set is fixed; gateways and devices parse exactly device/source/message
class Envelope(BaseModel):
    """A single message on the bus.

    Attributes:
        device: Conversation or device identifier (phone number, chat-bot user id)
        source: Channel tag (``SMS``, ``Telegram``), ``Internal`` or a device-class tag
        message: Command keyword, device token or user-facing text
    """

    model_config = ConfigDict(extra="ignore")

    device: str
    source: str
    message: str

    @property
    def channel(self) -> Channel | None:
        return Channel.from_source(self.source)

    @property
    def is_empty(self) -> bool:
        return not self.message.strip()

    def with_message(self, message: str) -> Envelope:
        """Copy of this envelope addressed to the same device and source."""
        return self.model_copy(update={"message": message})

    def to_payload(self) -> str:
        # pydantic writes non-ASCII characters as-is, so menu text and "°" stay readable
        return self.model_dump_json()
