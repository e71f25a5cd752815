"""
Structured metric log lines.

Emitted as `METRICS: {json}` so log aggregation can parse them without a
dedicated metrics service.
"""

import json
import logging
from typing import Any, Dict, Optional

from daybreak.lib.time import utcnow_naive

logger = logging.getLogger(__name__)


def log_metrics(event: str, data: Dict[str, Any], log: Optional[logging.Logger] = None) -> None:
    """
    Log a metrics event.

    Args:
        event: Event name (e.g., 'briefing_delivered', 'provider_degraded')
        data: Event data dictionary (must be JSON serializable)
        log: Logger to emit on; defaults to this module's logger
    """
    try:
        metrics_data = {
            'event': event,
            'timestamp': utcnow_naive().isoformat(),
            **data
        }
        (log or logger).info(f"METRICS: {json.dumps(metrics_data, default=str)}")
    except Exception as e:
        logger.warning(f"Failed to log metrics: {e}")
