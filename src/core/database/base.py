"""
Courier - Database Base Module
==============================

Helpers shared by the database mixins.

Author: Courier Maintainers
"""

import json
from typing import Any, Optional

from src.core.logger import logger


# =============================================================================
# Helper Functions
# =============================================================================

def _safe_json_loads(value: Optional[str], default: Any = None) -> Any:
    """Safely parse JSON, returning default on error."""
    if not value:
        return default if default is not None else []
    try:
        return json.loads(value)
    except (json.JSONDecodeError, ValueError):
        logger.warning(f"Corrupted JSON in database: {value[:50] if len(value) > 50 else value}")
        return default if default is not None else []


def _json_dumps(value: Any) -> str:
    """Serialize a JSON column value."""
    return json.dumps(value, separators=(",", ":"))


__all__ = ["_safe_json_loads", "_json_dumps"]
