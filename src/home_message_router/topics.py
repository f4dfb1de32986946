"""Topic registry: logical router functions mapped to MQTT topic names."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field

from home_message_router.messages import Channel


class DeviceKind(str, Enum):
    """Device and service endpoints the router sends commands to."""

    TEMPERATURE = "temperature"
    DEODORIZER = "deodorizer"
    INTERCOM = "intercom"
    PETS = "pets"
    SMS_GATEWAY = "sms_gateway"
    CONFIG = "config"
    TASKS = "tasks"
    TRACKING = "tracking"


# Device kinds whose replies the router listens to. The tracking service answers users directly.
REPLYING_DEVICES = (
    DeviceKind.TEMPERATURE,
    DeviceKind.DEODORIZER,
    DeviceKind.INTERCOM,
    DeviceKind.PETS,
    DeviceKind.SMS_GATEWAY,
    DeviceKind.CONFIG,
    DeviceKind.TASKS,
)


class TopicRegistry(BaseModel):
    router_status: str = "home/message_router/status"

    sms_inbound: str = "home/gateway/sms/in"
    sms_outbound: str = "home/gateway/sms/out"
    sms_gateway: str = Field(default="home/gateway/sms/control", description="SMS gateway control topic")

    chatbot_inbound: str = "home/gateway/telegram/in"
    chatbot_outbound: str = "home/gateway/telegram/out"

    temperature: str = "home/devices/temperature"
    deodorizer: str = "home/devices/deodorizer"
    intercom: str = "home/devices/intercom"
    pets: str = "home/devices/pets"

    config: str = Field(default="home/broker/config", description="Broker restart/shutdown control topic")
    tasks: str = "home/services/tasks"
    tracking: str = "home/services/tracking"

    def device_topic(self, kind: DeviceKind) -> str:
        return getattr(self, kind.value)

    def inbound_topic(self, channel: Channel) -> str:
        return self.sms_inbound if channel is Channel.SMS else self.chatbot_inbound

    def outbound_topic(self, channel: Channel) -> str:
        return self.sms_outbound if channel is Channel.SMS else self.chatbot_outbound

    def reply_topics(self) -> dict[DeviceKind, str]:
        """Device topics the router subscribes to for asynchronous replies."""
        return {kind: self.device_topic(kind) for kind in REPLYING_DEVICES}

    def subscription_topics(self) -> list[str]:
        topics = [self.inbound_topic(channel) for channel in Channel]
        topics.extend(self.reply_topics().values())
        return topics
