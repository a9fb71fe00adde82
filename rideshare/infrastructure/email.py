"""Magic-link email delivery over a JSON HTTP API."""

from __future__ import annotations

import logging
from typing import Optional

import httpx

from rideshare.config import Settings, settings as default_settings
from rideshare.domain.errors import Internal

logger = logging.getLogger(__name__)


class EmailGateway:
    def __init__(
        self,
        settings: Optional[Settings] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.settings = settings or default_settings
        self._client = client

    @property
    def test_mode(self) -> bool:
        return not self.settings.email_api_url

    async def send_magic_link(self, email: str, link: str, registering: bool) -> None:
        subject = (
            "Complete your AlbaniaRides registration"
            if registering
            else "Your AlbaniaRides login link"
        )
        if self.test_mode:
            logger.info("[TEST MODE] Magic link for %s: %s", email, link)
            return
        payload = {
            "from": self.settings.email_sender,
            "to": email,
            "subject": subject,
            "text": f"Open this link to continue: {link}\n\nIt expires in "
            f"{self.settings.magic_link_expire_minutes} minutes.",
        }
        headers = {"Authorization": f"Bearer {self.settings.email_api_key or ''}"}
        try:
            resp = await self._post(payload, headers)
            resp.raise_for_status()
        except httpx.HTTPError as exc:
            logger.exception("Failed to send magic link to %s", email)
            raise Internal("Failed to send login email") from exc

    async def _post(self, payload: dict, headers: dict) -> httpx.Response:
        if self._client is not None:
            return await self._client.post(
                self.settings.email_api_url, json=payload, headers=headers
            )
        async with httpx.AsyncClient(timeout=10.0) as client:
            return await client.post(
                self.settings.email_api_url, json=payload, headers=headers
            )


email_gateway = EmailGateway()
