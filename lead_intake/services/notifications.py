# lead_intake/services/notifications.py
"""
Outbound notifications: approved-lead emails and sales-team alerts.

Delivery is best-effort. Every public method catches and logs its own
failures so callers never see them.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional

import requests

from lead_intake.core.errors import DownstreamUnavailable
from lead_intake.services.http import make_session, timeouts

logger = logging.getLogger("intake.notifications")

RESEND_URL = "https://api.resend.com/emails"


@dataclass
class EmailMessage:
    to: str
    subject: str
    body: str


@dataclass
class SalesAlert:
    lead_id: str
    name: str
    email: str
    company: str = ""
    title: str = ""
    score: int = 0
    tier: str = ""
    highlights: List[str] = field(default_factory=list)


class Notifier:
    """Interface; concrete notifiers override _send."""

    def __init__(self, sales_recipients: Optional[List[str]] = None, app_url: str = ""):
        self.sales_recipients = list(sales_recipients or [])
        self.app_url = app_url.rstrip("/")

    def _send(self, message: EmailMessage) -> None:
        raise NotImplementedError

    def send_email(self, message: EmailMessage) -> bool:
        try:
            self._send(message)
        except (DownstreamUnavailable, requests.RequestException) as e:
            logger.error("Email delivery to %s failed: %s", message.to, e)
            return False
        except Exception:
            logger.exception("Unexpected error sending email to %s", message.to)
            return False
        logger.info("Email sent to=%s subject=%r", message.to, message.subject)
        return True

    def notify_sales_team(self, alert: SalesAlert) -> int:
        """Send one alert per configured recipient. Returns how many went out."""
        if not self.sales_recipients:
            logger.info("No sales recipients configured; skipping alert for lead=%s", alert.lead_id)
            return 0
        subject = f"New {alert.tier} lead: {alert.name}" + (f" ({alert.company})" if alert.company else "")
        lines = [
            f"Name: {alert.name}",
            f"Email: {alert.email}",
            f"Company: {alert.company or '-'}",
            f"Title: {alert.title or '-'}",
            f"Score: {alert.score}% ({alert.tier})",
        ]
        lines += [f"- {h}" for h in alert.highlights]
        if self.app_url:
            lines.append(f"{self.app_url}/leads/{alert.lead_id}")
        body = "\n".join(lines)
        sent = 0
        for to in self.sales_recipients:
            if self.send_email(EmailMessage(to=to, subject=subject, body=body)):
                sent += 1
        return sent


class LogNotifier(Notifier):
    """Used when no email provider is configured."""

    def _send(self, message: EmailMessage) -> None:
        logger.warning("Email provider not configured; would send to=%s subject=%r", message.to, message.subject)


class ResendNotifier(Notifier):
    def __init__(
        self,
        api_key: str,
        from_email: str,
        sales_recipients: Optional[List[str]] = None,
        app_url: str = "",
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
    ):
        super().__init__(sales_recipients, app_url)
        self.api_key = api_key
        self.from_email = from_email
        self.timeout = timeout
        self.session = session or make_session()

    def _send(self, message: EmailMessage) -> None:
        r = self.session.post(
            RESEND_URL,
            headers={"Authorization": f"Bearer {self.api_key}", "Content-Type": "application/json"},
            json={
                "from": self.from_email,
                "to": [message.to],
                "subject": message.subject,
                "text": message.body,
            },
            timeout=timeouts(self.timeout),
        )
        if r.status_code >= 400:
            raise DownstreamUnavailable(f"resend returned {r.status_code}: {r.text[:200]}")
