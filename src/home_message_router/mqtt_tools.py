"""Utilities for MQTT topic pattern matching."""

import re
from functools import lru_cache


@lru_cache(maxsize=256)
def mqtt_pattern_to_regex(pattern: str) -> re.Pattern:
    """Convert an MQTT topic filter with wildcards to a compiled regular expression.

    Args:
        pattern: MQTT topic filter
                '+' matches a single topic level (e.g., 'home/+/in')
                '#' matches any number of trailing levels (e.g., 'home/devices/#')

    Returns:
        Compiled regular expression anchored at both ends
    """
    pattern = re.escape(pattern)
    pattern = pattern.replace(r"\+", r"[^/]+").replace(r"/\#", r"(/.*)?").replace(r"\#", r".*")
    return re.compile(f"^{pattern}$")


def topic_matches(pattern: str, topic: str) -> bool:
    """Check whether a concrete topic matches an MQTT topic filter."""
    if "+" not in pattern and "#" not in pattern:
        return pattern == topic
    return mqtt_pattern_to_regex(pattern).match(topic) is not None
