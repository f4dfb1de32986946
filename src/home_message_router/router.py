from __future__ import annotations

import asyncio
import weakref
from dataclasses import dataclass
from datetime import datetime
from functools import partial
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from home_message_router import router_logger
from home_message_router.channel_adapter import ChannelAdapter
from home_message_router.conversation import ConversationStore
from home_message_router.device_replies import DeviceReplyHandler
from home_message_router.interpreter import CommandInterpreter
from home_message_router.messages import INTERNAL_SOURCE, ONLINE_MESSAGE, Channel, Envelope
from home_message_router.metrics import RouterMetrics
from home_message_router.mqtt_tools import topic_matches
from home_message_router.publisher import MqttPublisher

if TYPE_CHECKING:
    import logging
    from collections.abc import Awaitable, Callable

    import aiomqtt

    from home_message_router.publisher import Publisher
    from home_message_router.router_config import RouterConfig

    Route = Callable[[Envelope], Awaitable[Any]]


# AIDEV-NOTE: Composition root - owns the topic -> handler table and per-message tasks
class MessageRouter:
    """Route MQTT traffic between chat channels and device topics.

    Architecture:
    - Inbound chat topics go to one ChannelAdapter per channel
    - Device topics go to the stateless DeviceReplyHandler
    - Each message is handled in its own task; per-device locks in the
      ConversationStore keep one device's messages sequential
    """

    @dataclass
    class TaskInfo:
        """Track information about active tasks for monitoring and debugging."""

        name: str
        created_at: datetime
        task_ref: weakref.ReferenceType

    def __init__(
        self,
        config_obj: RouterConfig,
        mqtt_client: aiomqtt.Client,
        task_group: asyncio.TaskGroup,
        logger: logging.Logger | None = None,
        publisher: Publisher | None = None,
        store: ConversationStore | None = None,
    ) -> None:
        """Wire the router components together.

        Args:
            config_obj: Broker, topic and conversation settings
            mqtt_client: Connected MQTT client used for subscriptions
            task_group: TaskGroup that owns the per-message tasks
            logger: Optional custom logger
            publisher: Optional publisher, defaults to an MqttPublisher on ``mqtt_client``
            store: Optional conversation store, defaults to one built from ``config_obj``
        """
        self.config_obj = config_obj
        self.mqtt_client = mqtt_client
        self.task_group = task_group
        self.logger = logger or router_logger.RouterLogger.get_logger(__name__)
        self.metrics = RouterMetrics(router_name=config_obj.client_id)
        self.publisher: Publisher = publisher or MqttPublisher(mqtt_client, logger=self.logger, metrics=self.metrics)
        self.store = store or ConversationStore(
            max_conversations=config_obj.max_conversations,
            session_ttl_seconds=config_obj.conversation_ttl_seconds,
        )

        topics = config_obj.topics
        interpreter = CommandInterpreter(topics)
        self.adapters = {
            channel: ChannelAdapter(
                channel=channel,
                topics=topics,
                interpreter=interpreter,
                store=self.store,
                publisher=self.publisher,
                metrics=self.metrics,
                logger=self.logger,
            )
            for channel in Channel
        }
        self.reply_handler = DeviceReplyHandler(
            topics=topics,
            publisher=self.publisher,
            temperature_alert_threshold=config_obj.temperature_alert_threshold,
            metrics=self.metrics,
            logger=self.logger,
        )

        self.routes: dict[str, Route] = {adapter.inbound_topic: adapter.handle for adapter in self.adapters.values()}
        for kind, topic in topics.reply_topics().items():
            self.routes[topic] = partial(self.reply_handler.handle, kind)

        self._active_tasks: dict[int, MessageRouter.TaskInfo] = {}
        self._task_counter = 0

    async def setup_mqtt_subscriptions(self) -> None:
        for topic in self.routes:
            await self.mqtt_client.subscribe(topic=topic, qos=0)
            self.logger.info("Subscribed to topic: %s", topic)

    async def announce_online(self) -> bool:
        """Publish the router's liveness envelope on its status topic."""
        status = Envelope(device=self.config_obj.client_id, source=INTERNAL_SOURCE, message=ONLINE_MESSAGE)
        return await self.publisher.publish(self.config_obj.topics.router_status, status)

    def resolve_route(self, topic: str) -> Route | None:
        route = self.routes.get(topic)
        if route is not None:
            return route
        for pattern, candidate in self.routes.items():
            if topic_matches(pattern, topic):
                return candidate
        return None

    def decode_message_payload(self, payload: bytes | bytearray | str | Any) -> str | None:
        """Decode an MQTT payload to text, or None when it cannot be decoded."""
        if isinstance(payload, bytes | bytearray):
            try:
                return payload.decode("utf-8")
            except UnicodeDecodeError:
                self.logger.warning("Discarding payload that is not valid UTF-8")
                return None
        if isinstance(payload, str):
            return payload
        self.logger.warning("Unexpected payload type: %s", type(payload))
        return None

    async def listen_to_messages(self, client: aiomqtt.Client) -> None:
        """Dispatch every incoming MQTT message to its handler in a separate task.

        Args:
            client: Connected MQTT client to listen on
        """
        async for message in client.messages:
            topic = message.topic.value
            self.logger.debug("Received message on topic %s", topic)
            self.metrics.increment("messages_received")

            payload_str = self.decode_message_payload(message.payload)
            if payload_str is None:
                self.metrics.increment("messages_malformed")
                continue
            self.add_task(self._handle_message_async(topic, payload_str), name="handle_message")

    async def _handle_message_async(self, topic: str, payload_str: str) -> None:
        try:
            await self.handle_message(topic, payload_str)
        except Exception as e:
            self.metrics.increment("handler_errors")
            self.logger.error("Error processing message on topic %s: %s", topic, e, exc_info=True)

    async def handle_message(self, topic: str, payload: str) -> None:
        """Parse one payload and hand it to the handler registered for its topic."""
        route = self.resolve_route(topic)
        if route is None:
            self.logger.debug("No handler for topic %s", topic)
            self.metrics.increment("messages_dropped")
            return

        try:
            envelope = Envelope.model_validate_json(payload)
        except ValidationError as e:
            self.logger.warning("Discarding malformed message on topic %s: %s", topic, e)
            self.metrics.increment("messages_malformed")
            return

        timer_id = self.metrics.start_timer()
        try:
            await route(envelope)
        finally:
            self.metrics.end_timer(timer_id)

    def add_task(self, coro: Any, name: str | None = None) -> asyncio.Task[Any]:
        """Run a coroutine in the router's task group and track it until it finishes."""
        if name is None:
            name = getattr(coro, "__name__", f"anonymous_coro_{id(coro)}")

        task_id = self._task_counter
        task = self.task_group.create_task(coro, name=f"{name}_{task_id}")
        self._active_tasks[task_id] = self.TaskInfo(name=name, created_at=datetime.now(), task_ref=weakref.ref(task))
        task.add_done_callback(partial(self._task_completed, task_id))
        self._task_counter += 1
        return task

    def _task_completed(self, task_id: int, task: asyncio.Task) -> None:
        task_info = self._active_tasks.pop(task_id, None)
        if not task_info or task.cancelled():
            return
        if task.exception():
            self.logger.error(
                "Task '%s' (#%d) failed: %s", task_info.name, task_id, task.exception(), exc_info=task.exception()
            )
        else:
            self.logger.debug(
                "Task '%s' (#%d) completed after %s", task_info.name, task_id, datetime.now() - task_info.created_at
            )

    def get_active_task_count(self) -> int:
        return len(self._active_tasks)
