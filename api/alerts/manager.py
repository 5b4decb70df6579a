"""
Clinician Alert Manager for the RadioCare chatbot.

Stores an alert whenever a generated reply is classified medium or high
severity, then notifies the care team.
"""

import logging
from typing import List, Optional

import httpx

from contexts.severity import Severity
from llm.conversation_store import AlertStore
from llm.records import AlertRecord

logger = logging.getLogger(__name__)


class AlertManager:
    """
    Creates and lists clinician alerts.

    Every alert is logged for the care team. When a webhook is configured
    the alert is also posted there (paging system, ward dashboard, etc.).
    """

    def __init__(
        self,
        store: AlertStore,
        webhook_url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the alert manager.

        Args:
            store: Alert persistence
            webhook_url: Care-team webhook (optional)
            api_key: Sent as X-API-Key to the webhook
            timeout: Webhook request timeout in seconds
            transport: httpx transport override
        """
        self.store = store
        self.webhook_url = webhook_url
        self.api_key = api_key
        self.timeout = timeout
        self._transport = transport

    async def create_alert(self, user_id: str, severity: Severity, message: str) -> AlertRecord:
        """Persist an alert and notify clinicians."""
        alert = await self.store.create(
            AlertRecord(user_id=user_id, severity=severity.value, message=message)
        )
        logger.info(f"Alert {alert.id} created for user {user_id} ({severity.value})")
        await self.notify_clinicians(alert)
        return alert

    async def notify_clinicians(self, alert: AlertRecord) -> bool:
        """
        Tell the care team about an alert.

        Returns:
            True if the webhook accepted the alert (False when none is configured)
        """
        logger.warning(
            f"Notifying clinicians: {alert.severity} severity reply for user {alert.user_id}: "
            f"{alert.message[:100]}"
        )
        if not self.webhook_url:
            return False

        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["X-API-Key"] = self.api_key

        try:
            async with httpx.AsyncClient(transport=self._transport) as client:
                response = await client.post(
                    self.webhook_url,
                    json=alert.to_dict(),
                    headers=headers,
                    timeout=self.timeout,
                )
        except httpx.HTTPError as e:
            logger.error(f"Clinician webhook error for alert {alert.id}: {e}")
            return False

        if response.status_code in (200, 201, 202):
            logger.info(f"Alert {alert.id} delivered to clinician webhook")
            return True

        logger.error(
            f"Clinician webhook rejected alert {alert.id}: "
            f"{response.status_code} {response.text[:200]}"
        )
        return False

    async def list_alerts(self, user_id: str) -> List[AlertRecord]:
        return await self.store.list_for_user(user_id)
