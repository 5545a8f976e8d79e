"""
Email service using Resend API
"""
import logging
from typing import List, Optional

import resend

from case_intake.core.config import settings
from case_intake.core.outcome import Outcome
from case_intake.services.ticket_service import TicketNotification

logger = logging.getLogger(__name__)


def split_addresses(addresses: Optional[str]) -> List[str]:
    """Ticket addresses are stored as ';'-separated lists"""
    if not addresses:
        return []
    return [address.strip() for address in addresses.split(";") if address.strip()]


class EmailTransport:
    """
    Thin wrapper over Resend; reports success or failure, never raises.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        from_address: Optional[str] = None,
        from_name: Optional[str] = None,
    ):
        self.api_key = api_key if api_key is not None else settings.RESEND_API_KEY
        self.from_address = from_address if from_address is not None else settings.EMAIL_FROM_ADDRESS
        self.from_name = from_name if from_name is not None else settings.EMAIL_FROM_NAME

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    def sender(self, from_address: Optional[str] = None) -> str:
        address = from_address or self.from_address or settings.SUPPORT_EMAIL_ADDRESS
        if self.from_name:
            return f"{self.from_name} <{address}>"
        return address

    def send(
        self,
        to: str,
        subject: str,
        html_body: str,
        from_address: Optional[str] = None,
        cc: Optional[str] = None,
        bcc: Optional[str] = None,
    ) -> bool:
        recipients = split_addresses(to)
        if not recipients:
            logger.warning("Email not sent: no recipients for %r", subject)
            return False
        if not self.configured:
            logger.warning("Email not sent: RESEND_API_KEY is not configured")
            return False

        email_data = {
            "from": self.sender(from_address),
            "to": recipients,
            "subject": subject,
            "html": html_body,
        }
        if split_addresses(cc):
            email_data["cc"] = split_addresses(cc)
        if split_addresses(bcc):
            email_data["bcc"] = split_addresses(bcc)

        try:
            resend.api_key = self.api_key
            result = resend.Emails.send(email_data)
        except Exception as e:
            logger.error("Email sending failed: %s", e)
            return False

        if isinstance(result, dict):
            resend_id = result.get("id")
        else:
            resend_id = getattr(result, "id", None)
        logger.info("Email sent via Resend - ID: %s, To: %s", resend_id, ", ".join(recipients))
        return True


def dispatch_ticket_notification(transport: EmailTransport, notification: TicketNotification) -> Outcome[bool]:
    """Send a ticket's email; a failed send is reported, never raised"""
    sent = transport.send(
        notification.to_address,
        notification.subject,
        notification.message,
        from_address=notification.from_address,
        cc=notification.cc_address,
        bcc=notification.bcc_address,
    )
    outcome = Outcome(value=sent)
    if not sent:
        logger.warning("Failed to send email for ticket %s", notification.ticket_number)
        outcome.warn(
            "EMAIL_NOT_SENT",
            f"Failed to send email for ticket {notification.ticket_number}",
            case_ticket_detail_id=notification.case_ticket_detail_id,
        )
    return outcome


def dispatch_ticket_notifications(notifications: List[TicketNotification]) -> None:
    """Background task entry point, run after the ticket's transaction commits"""
    transport = get_email_transport()
    for notification in notifications:
        dispatch_ticket_notification(transport, notification)


# Singleton instance
_email_transport: Optional[EmailTransport] = None


def get_email_transport() -> EmailTransport:
    """Get singleton email transport instance"""
    global _email_transport
    if _email_transport is None:
        _email_transport = EmailTransport()
    return _email_transport
