from typing import Any, Dict

import requests

from orgmirror.config import settings
from orgmirror.utils.logger import logger


def notify_sync(integration: str, sync_data: Dict[str, Any]) -> bool:
    """Tell the downstream consumer that the mirror changed.

    Best effort: a missing configuration or a failed request is logged and
    reported as False, never raised.
    """
    if not settings.SYNC_NOTIFY_URL or not settings.SYNC_NOTIFY_API_KEY:
        logger.debug("Sync notification target not configured. Skipping.")
        return False

    try:
        response = requests.post(
            settings.SYNC_NOTIFY_URL,
            headers={
                "Authorization": f"Bearer {settings.SYNC_NOTIFY_API_KEY}",
                "Content-Type": "application/json",
            },
            json={
                "type": "sync_notification",
                "integration": integration,
                "syncData": sync_data,
            },
            timeout=10,
        )
        response.raise_for_status()
        logger.info(f"Sync notification sent for {integration}: {sync_data}")
        return True
    except requests.exceptions.RequestException as e:
        logger.error(f"Error sending sync notification: {e}")
        return False
