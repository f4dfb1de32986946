import asyncio
import os

from home_message_router.conversation import ConversationStore
from home_message_router.mqtt_connection_handler import mqtt_connection_handler
from home_message_router.router_config import RouterConfig, load_config
from home_message_router.router_logger import RouterLogger


def main() -> None:
    """Run the router with config from ROUTER_CONFIG_PATH (file or directory) or the environment."""
    logger = RouterLogger.get_logger("home_message_router")
    config_path = os.getenv("ROUTER_CONFIG_PATH")
    config = load_config(config_path, RouterConfig) if config_path else RouterConfig.from_env()

    store = ConversationStore(
        max_conversations=config.max_conversations,
        session_ttl_seconds=config.conversation_ttl_seconds,
    )
    try:
        asyncio.run(mqtt_connection_handler(config, logger=logger, store=store))
    except KeyboardInterrupt:
        logger.info("Message router stopped.")


if __name__ == "__main__":
    main()
