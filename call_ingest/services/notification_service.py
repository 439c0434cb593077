"""
SMS alert notifications
Sends staff alerts through Twilio and keeps an audit row per alert
"""

import asyncio
from typing import Any, Dict, List, Optional, Tuple

from twilio.base.exceptions import TwilioRestException
from twilio.rest import Client

from call_ingest.core.config import Settings, settings as default_settings
from call_ingest.core.exceptions import NotificationError
from call_ingest.core.logging import get_logger
from call_ingest.db.repository import CallEventRepository
from call_ingest.models.records import SmsLogRow, SmsRecipientResult

logger = get_logger(__name__)

PRIORITY_LABELS = {
    "P1": "URGENCE",
    "P2": "Prioritaire",
    "P3": "Standard",
    "P4": "Information",
}

# Slab work is handled by the secondary technician only
SECONDARY_ONLY_SERVICES = frozenset({"sous_dalle"})


class NotificationService:
    """Service for sending SMS alerts to on-call staff"""

    def __init__(
        self,
        repository: CallEventRepository,
        settings: Optional[Settings] = None,
        client: Optional[Client] = None
    ):
        self.repository = repository
        self.settings = settings or default_settings
        self.phone_number = self.settings.twilio_phone_number
        self._client = client

    @property
    def simulated(self) -> bool:
        return self._client is None and not self.settings.twilio_configured

    @property
    def client(self) -> Client:
        if self._client is None:
            self._client = Client(self.settings.twilio_account_sid, self.settings.twilio_auth_token)
        return self._client

    def resolve_recipients(self, recipient: str, service_type: Optional[str]) -> List[Tuple[str, str]]:
        """Return (name, phone) pairs for the requested recipient selector"""
        primary = (self.settings.alert_primary_name, self.settings.alert_primary_phone)
        secondary = (self.settings.alert_secondary_name, self.settings.alert_secondary_phone)

        if (service_type or "").lower() in SECONDARY_ONLY_SERVICES:
            selected = [secondary]
        elif recipient == "secondary":
            selected = [secondary]
        elif recipient == "both":
            selected = [primary, secondary]
        else:
            selected = [primary]

        resolved = []
        for name, phone in selected:
            if phone:
                resolved.append((name, phone))
            else:
                logger.warning(f"No phone configured for alert recipient {name}, skipping")
        return resolved

    @staticmethod
    def format_message(priority: str, customer: Dict[str, Any]) -> str:
        lines = [
            f"[{priority}] {PRIORITY_LABELS.get(priority, 'Standard')} - Drain Fortin",
            f"Client: {customer.get('name') or 'Inconnu'}",
            f"Tél: {customer.get('phone') or 'Inconnu'}",
            f"Service: {customer.get('serviceType') or 'Non précisé'}",
        ]
        if customer.get("address"):
            lines.append(f"Adresse: {customer['address']}")
        if customer.get("description"):
            lines.append(f"Détails: {customer['description']}")
        return "\n".join(lines)

    async def send_sms(self, to_number: str, body: str) -> str:
        """
        Send one SMS

        Returns:
            Message SID ("simulated" when no Twilio credentials are configured)

        Raises:
            NotificationError: Twilio rejected the message
        """
        if self.simulated:
            logger.info(f"[SIMULATION] SMS to {to_number}: {body!r}")
            return "simulated"

        try:
            message = await asyncio.to_thread(
                self.client.messages.create,
                to=to_number,
                from_=self.phone_number,
                body=body,
            )
        except TwilioRestException as e:
            logger.error(f"Twilio error sending SMS to {to_number}: {e}")
            raise NotificationError(f"Failed to send SMS: {e.msg}", twilio_code=e.code) from e

        logger.info(f"SMS sent: {message.sid}")
        return message.sid

    async def send_alert(self, arguments: Dict[str, Any]) -> SmsLogRow:
        """
        Deliver an alert requested by the sendSMSAlert tool and log it

        A failed recipient is recorded as unsuccessful; the others are
        still attempted.
        """
        priority = str(arguments.get("priority") or "P3").upper()
        if priority not in PRIORITY_LABELS:
            priority = "P3"
        customer = arguments.get("customerInfo") or {}
        if not isinstance(customer, dict):
            customer = {}
        service_type = customer.get("serviceType")

        body = self.format_message(priority, customer)
        results = []
        for name, phone in self.resolve_recipients(str(arguments.get("recipient") or "primary"), service_type):
            try:
                await self.send_sms(phone, body)
                success = True
            except NotificationError as e:
                logger.error(f"Alert {priority} to {name} failed: {e.message}")
                success = False
            results.append(SmsRecipientResult(recipient=name, phone=phone, success=success))

        log = SmsLogRow(
            priority=priority,
            customer_name=customer.get("name"),
            customer_phone=customer.get("phone"),
            service_type=service_type,
            message=body,
            recipients=results,
        )
        await self.repository.record_sms_alert(log)
        return log
