"""
Twilio SMS / Verify gateway.

Talks to the Twilio REST API over ``httpx``.  Without credentials the
gateway runs in test mode: nothing leaves the process, every message is
logged and the OTP is the fixed ``settings.test_otp_code``.
"""

from __future__ import annotations

import logging
from typing import Optional

import httpx

from rideshare.config import Settings, settings as default_settings
from rideshare.domain.errors import Internal

logger = logging.getLogger(__name__)

TWILIO_API = "https://api.twilio.com/2010-04-01"
TWILIO_VERIFY_API = "https://verify.twilio.com/v2"


class SmsGateway:
    def __init__(
        self,
        settings: Optional[Settings] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.settings = settings or default_settings
        self._client = client

    @property
    def test_mode(self) -> bool:
        return self.settings.sms_test_mode

    def _http(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                auth=(
                    self.settings.twilio_account_sid or "",
                    self.settings.twilio_auth_token or "",
                ),
                timeout=10.0,
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    # ── OTP ───────────────────────────────────────────────────────────

    async def send_verification(self, phone: str) -> None:
        if self.test_mode or not self.settings.twilio_verify_service_sid:
            logger.info("[TEST MODE] Sending verification to %s", phone)
            return
        url = (
            f"{TWILIO_VERIFY_API}/Services/"
            f"{self.settings.twilio_verify_service_sid}/Verifications"
        )
        try:
            resp = await self._http().post(url, data={"To": phone, "Channel": "sms"})
            resp.raise_for_status()
        except httpx.HTTPError as exc:
            logger.exception("Failed to send verification to %s", phone)
            raise Internal("Failed to send verification code") from exc

    async def check_verification(self, phone: str, code: str) -> bool:
        if self.test_mode or not self.settings.twilio_verify_service_sid:
            logger.info("[TEST MODE] Verifying %s", phone)
            return code == self.settings.test_otp_code
        url = (
            f"{TWILIO_VERIFY_API}/Services/"
            f"{self.settings.twilio_verify_service_sid}/VerificationCheck"
        )
        try:
            resp = await self._http().post(url, data={"To": phone, "Code": code})
            resp.raise_for_status()
        except httpx.HTTPError:
            logger.exception("Failed to check verification for %s", phone)
            return False
        return resp.json().get("status") == "approved"

    # ── Transactional SMS ─────────────────────────────────────────────

    async def send_sms(self, to: str, body: str) -> None:
        """Send one SMS.  Raises ``httpx.HTTPError`` on vendor failure."""
        if self.test_mode:
            logger.info("[TEST MODE] SMS to %s: %s", to, body)
            return
        url = f"{TWILIO_API}/Accounts/{self.settings.twilio_account_sid}/Messages.json"
        resp = await self._http().post(
            url,
            data={"To": to, "From": self.settings.twilio_phone_number, "Body": body},
        )
        resp.raise_for_status()


sms_gateway = SmsGateway()
