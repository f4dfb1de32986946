"""MQTT connection management with automatic reconnection for the router."""

import asyncio
import logging

import aiomqtt

from home_message_router.router import MessageRouter
from home_message_router.router_config import RouterConfig


# AIDEV-NOTE: Main entry point for the router lifecycle - handles MQTT connection and retry logic
async def mqtt_connection_handler(
    config: RouterConfig,
    retry_interval: int | None = None,
    logger: logging.Logger | None = None,
    **kwargs,
):
    """Connect to the broker, run the router and reconnect when the connection drops.

    Args:
        config: Broker, topic and conversation settings
        retry_interval: Seconds to wait between reconnection attempts, defaults to ``config.retry_interval``
        logger: Optional custom logger
        **kwargs: Additional arguments passed to the MessageRouter constructor

    Each connection gets a fresh router in its own TaskGroup: subscriptions,
    the online announcement, then the listening loop. Conversation state
    passed in through ``kwargs["store"]`` survives reconnects.
    """
    if not logger:
        logger = logging.getLogger()
    if retry_interval is None:
        retry_interval = config.retry_interval
    if not (config.mqtt_server_host and config.mqtt_server_port):
        raise ValueError("Unknown mqtt config option combination.")

    client = aiomqtt.Client(
        config.mqtt_server_host,
        port=config.mqtt_server_port,
        identifier=config.client_id,
        username=config.mqtt_username,
        password=config.mqtt_password,
        logger=logger,
    )
    while True:
        try:
            async with client as mqtt_client:
                logger.info(
                    "Connected successfully to MQTT broker %s:%d.", config.mqtt_server_host, config.mqtt_server_port
                )

                async with asyncio.TaskGroup() as tg:
                    router = MessageRouter(
                        config_obj=config, mqtt_client=mqtt_client, task_group=tg, logger=logger, **kwargs
                    )
                    await router.setup_mqtt_subscriptions()
                    await router.announce_online()
                    tg.create_task(router.listen_to_messages(mqtt_client))

        # A connection loss in the listener reaches us wrapped in the TaskGroup's ExceptionGroup
        except* aiomqtt.MqttError:
            logger.error("Connection lost; reconnecting in %d seconds...", retry_interval, exc_info=True)
        await asyncio.sleep(retry_interval)
