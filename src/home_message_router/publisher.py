"""Best-effort publishing of envelopes to the MQTT broker."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Protocol

import aiomqtt

if TYPE_CHECKING:
    from home_message_router.messages import Envelope
    from home_message_router.metrics import RouterMetrics


class Publisher(Protocol):
    async def publish(self, topic: str, envelope: Envelope, retain: bool = False, qos: int = 0) -> bool: ...


class MqttPublisher:
    """Publish envelopes once, at-most-once delivery.

    Failures are logged and counted but never retried and never raised:
    losing a notification must not stop the router.

    Args:
        mqtt_client: Connected aiomqtt client
        logger: Logger for publish traces
        metrics: Optional counters updated on every publish
        timeout: Seconds before a publish call is abandoned
    """

    def __init__(
        self,
        mqtt_client: aiomqtt.Client,
        logger: logging.Logger | None = None,
        metrics: RouterMetrics | None = None,
        timeout: float = 5.0,
    ) -> None:
        self.mqtt_client = mqtt_client
        self.logger = logger or logging.getLogger(__name__)
        self.metrics = metrics
        self.timeout = timeout

    async def publish(self, topic: str, envelope: Envelope, retain: bool = False, qos: int = 0) -> bool:
        payload = envelope.to_payload()
        self.logger.debug("Publishing to topic '%s': %s", topic, payload)
        try:
            await asyncio.wait_for(
                self.mqtt_client.publish(topic=topic, payload=payload, qos=qos, retain=retain),
                timeout=self.timeout,
            )
        except TimeoutError:
            self.logger.warning("Publish timeout to topic '%s' for device %s", topic, envelope.device)
            self._record(success=False)
            return False
        except aiomqtt.MqttError as e:
            self.logger.error("MQTT error publishing to topic '%s': %s", topic, e)
            self._record(success=False)
            return False

        self.logger.info("Published to topic '%s' for device %s", topic, envelope.device)
        self._record(success=True)
        return True

    def _record(self, success: bool) -> None:
        if self.metrics is not None:
            self.metrics.record_publish(success)
