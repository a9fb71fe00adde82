"""
Fire-and-forget SMS notifications.

Services queue notices while the request's transaction is open; the route
schedules :meth:`Notifier.flush` as a background task after commit.  A
notice never makes the state change it describes fail: decryption and
vendor errors are logged and dropped.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from rideshare.infrastructure.models import UserModel
from rideshare.infrastructure.sms import SmsGateway, sms_gateway
from rideshare.security.crypto import decrypt_phone

logger = logging.getLogger(__name__)


@dataclass
class Notice:
    user_id: int
    phone_encrypted: Optional[str]
    body: str
    # Phone of the other party, revealed into ``{contact}`` in the body
    contact_encrypted: Optional[str] = None


class Notifier:
    def __init__(self, gateway: Optional[SmsGateway] = None):
        self.gateway = gateway or sms_gateway
        self.pending: list[Notice] = []

    def notify(
        self, recipient: UserModel, body: str, contact: Optional[UserModel] = None
    ) -> None:
        self.pending.append(
            Notice(
                user_id=recipient.id,
                phone_encrypted=recipient.phone_number_encrypted,
                body=body,
                contact_encrypted=contact.phone_number_encrypted if contact else None,
            )
        )

    async def flush(self) -> int:
        """Send everything queued; returns the number delivered."""
        notices, self.pending = self.pending, []
        sent = 0
        for notice in notices:
            if not notice.phone_encrypted:
                logger.debug("User %s has no phone; skipping SMS", notice.user_id)
                continue
            try:
                phone = decrypt_phone(notice.phone_encrypted)
                contact = (
                    decrypt_phone(notice.contact_encrypted)
                    if notice.contact_encrypted
                    else "via in-app messages"
                )
                body = notice.body.replace("{contact}", contact)
                await self.gateway.send_sms(phone, body)
                sent += 1
            except Exception:
                logger.exception("Failed to send SMS to user %s", notice.user_id)
        return sent
