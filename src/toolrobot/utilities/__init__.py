import json
import logging
from typing import Any

from pydantic import BaseModel

from .log_helpers import LOG_FMT, basic_log_config, suppress_logs

__all__ = [
    "LOG_FMT",
    "basic_log_config",
    "suppress_logs",
    "stringify",
]

logger = logging.getLogger(__name__)


def stringify(value: Any) -> str:
    """Render a tool result as the string that is stored in call history and shown to the provider."""
    if isinstance(value, str):
        return value
    elif isinstance(value, BaseModel):
        return value.model_dump_json()
    try:
        return json.dumps(value)
    except (TypeError, ValueError) as e:
        logger.debug(f"Could not serialize result as json string: {e}")
        return str(value)
