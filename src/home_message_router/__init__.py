"""Message router between chat channels (SMS, Telegram) and home automation devices over MQTT."""

from .channel_adapter import ChannelAdapter
from .conversation import ConversationState, ConversationStore, DialogMode
from .device_replies import DeviceReplyHandler, Notification
from .interpreter import CommandInterpreter, Interpretation, OutboundMessage
from .messages import Channel, Envelope
from .publisher import MqttPublisher, Publisher
from .router import MessageRouter
from .router_config import RouterConfig, load_config
from .router_logger import LoggerConfig, RouterLogger
from .topics import DeviceKind, TopicRegistry

__all__ = [
    "Channel",
    "ChannelAdapter",
    "CommandInterpreter",
    "ConversationState",
    "ConversationStore",
    "DeviceKind",
    "DeviceReplyHandler",
    "DialogMode",
    "Envelope",
    "Interpretation",
    "LoggerConfig",
    "MessageRouter",
    "MqttPublisher",
    "Notification",
    "OutboundMessage",
    "Publisher",
    "RouterConfig",
    "RouterLogger",
    "TopicRegistry",
    "load_config",
]
