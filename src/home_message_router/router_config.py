import logging
import os
from pathlib import Path
from typing import Any, Self, TypeVar

import yaml
from pydantic import BaseModel, Field, ValidationError

from home_message_router.topics import TopicRegistry

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)


class RouterConfig(BaseModel):
    mqtt_server_host: str = "localhost"
    mqtt_server_port: int = 1883
    mqtt_username: str | None = None
    mqtt_password: str | None = None
    client_id: str = "message_router"
    retry_interval: int = Field(default=5, description="Seconds between MQTT reconnection attempts")
    topics: TopicRegistry = Field(default_factory=TopicRegistry)
    max_conversations: int = Field(default=10_000, description="Maximum number of conversations kept in memory")
    conversation_ttl_seconds: float | None = Field(
        default=None, description="Reset ADMIN/TRACKING conversations idle for longer than this"
    )
    temperature_alert_threshold: float = Field(default=80.0, description="Temperature reported as too high")

    @classmethod
    def from_env(cls) -> Self:
        return cls.model_validate(
            {
                "mqtt_server_host": os.getenv("MQTT_HOST", "localhost"),
                "mqtt_server_port": int(os.getenv("MQTT_PORT", "1883")),
                "mqtt_username": os.getenv("MQTT_USERNAME"),
                "mqtt_password": os.getenv("MQTT_PASSWORD"),
                "client_id": os.getenv("ROUTER_CLIENT_ID", "message_router"),
            }
        )


def merge_dicts(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge ``override`` into a copy of ``base``; nested mappings merge key by key."""
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = merge_dicts(merged[key], value)
        else:
            merged[key] = value
    return merged


def combine_yaml_files(file_paths: list[Path]) -> dict:
    """
    Combine multiple YAML files into a single dictionary.

    Later files win. Nested sections such as ``topics`` are merged, so one
    file can override a single topic without repeating the others.

    Args:
        file_paths (list[Path]): List of paths to YAML files.

    Returns:
        dict: Combined dictionary from all YAML files.
    """
    combined_data: dict[str, Any] = {}
    for file_path in file_paths:
        with file_path.open("r", encoding="utf-8") as file:
            data = yaml.safe_load(file) or {}
            combined_data = merge_dicts(combined_data, data)
    return combined_data


def load_config(config_path: str | Path, config_class: type[T]) -> T:
    """
    Load and validate configuration from YAML files.

    Args:
        config_path (Union[str, Path]): Path to a YAML file or a directory containing YAML files.
        config_class (Type[T]): The Pydantic model class to validate the combined data against.

    Returns:
        T: An instance of the provided Pydantic model class.

    Raises:
        FileNotFoundError: If no YAML files are found.
        ValidationError: If the combined data does not conform to the Pydantic model.
    """
    config_path = Path(config_path)

    yaml_files = sorted(config_path.glob("*.yaml")) if config_path.is_dir() else [config_path]

    if not yaml_files:
        raise FileNotFoundError(f"No YAML files found in the directory: {config_path}")

    try:
        combined_data = combine_yaml_files(yaml_files)
        return config_class.model_validate(combined_data)
    except FileNotFoundError as err:
        logger.error("Config file not found: %s", config_path)
        raise err
    except ValidationError as err_v:
        logger.error("Validation error: %s", err_v)
        raise err_v
