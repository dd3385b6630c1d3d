"""Time-based one-time password setup and verification."""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from urllib.parse import quote

import pyotp

QR_CHART_URL = "https://chart.googleapis.com/chart?chs=200x200&chld=M|0&cht=qr&chl="


@dataclass(frozen=True)
class TOTPSetup:
    secret: str
    provisioning_uri: str
    qr_code_url: str


class TOTPService:
    """Generate and check TOTP codes (SHA1, 30 second steps by default)."""

    def __init__(
        self,
        issuer: str = "eVuka Rewards",
        digits: int = 6,
        interval: int = 30,
        valid_window: int = 1,
    ) -> None:
        self._issuer = issuer
        self._digits = digits
        self._interval = interval
        self._valid_window = valid_window

    def _totp(self, secret: str) -> pyotp.TOTP:
        return pyotp.TOTP(
            secret,
            digits=self._digits,
            digest=hashlib.sha1,
            interval=self._interval,
            issuer=self._issuer,
        )

    def generate_secret(self, label: str) -> TOTPSetup:
        """Create a new base32 secret and the URIs an authenticator app needs.

        Args:
            label: Account name shown in the authenticator, usually an email.
        """
        secret = pyotp.random_base32()
        uri = self._totp(secret).provisioning_uri(name=label, issuer_name=self._issuer)
        return TOTPSetup(
            secret=secret,
            provisioning_uri=uri,
            qr_code_url=QR_CHART_URL + quote(uri, safe=""),
        )

    def now(self, secret: str) -> str:
        return self._totp(secret).now()

    def verify(self, secret: str, code: str) -> bool:
        """Check a code, accepting one step of clock drift either way."""
        code = (code or "").strip()
        if not code.isdigit() or len(code) != self._digits:
            return False
        return self._totp(secret).verify(code, valid_window=self._valid_window)
