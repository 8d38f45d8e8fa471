from __future__ import annotations

import io
import logging
from dataclasses import dataclass, field
from typing import Any, Optional

import qrcode
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

from ..core.constants import DEFAULT_QR_MAX_AGE_SECONDS

logger = logging.getLogger(__name__)

REGISTRATION_PAYLOAD = "registration"
EVENT_ATTENDANCE_PAYLOAD = "event_attendance"


@dataclass(frozen=True)
class QRVerification:
    valid: bool
    reason: Optional[str] = None
    data: dict = field(default_factory=dict)


class QRCodeService:
    """Signs, verifies and renders attendance QR payloads.

    Payloads are JSON objects with a ``type`` field, signed and timestamped
    so a scanned code can be checked for tampering and age.
    """

    def __init__(
        self,
        secret_key: str,
        *,
        max_age_seconds: int = DEFAULT_QR_MAX_AGE_SECONDS,
        salt: str = "event-attendance-qr",
    ):
        self._serializer = URLSafeTimedSerializer(secret_key, salt=salt)
        self._max_age = int(max_age_seconds)

    @property
    def max_age_seconds(self) -> int:
        return self._max_age

    def sign(self, payload_type: str, **data: Any) -> str:
        return self._serializer.dumps({"type": payload_type, **data})

    def verify(self, token: str, expected_type: str, *, max_age: Optional[int] = None) -> QRVerification:
        if not token or not str(token).strip():
            return QRVerification(valid=False, reason="empty payload")

        try:
            data = self._serializer.loads(str(token).strip(), max_age=self._max_age if max_age is None else max_age)
        except SignatureExpired:
            return QRVerification(valid=False, reason="code has expired")
        except BadSignature:
            logger.warning("Rejected QR payload with a bad signature")
            return QRVerification(valid=False, reason="signature mismatch")

        if not isinstance(data, dict) or data.get("type") != expected_type:
            return QRVerification(valid=False, reason=f"expected a {expected_type} code")
        return QRVerification(valid=True, data=data)

    def render_png(self, token: str) -> bytes:
        qr = qrcode.QRCode(
            version=None,
            error_correction=qrcode.constants.ERROR_CORRECT_M,
            box_size=10,
            border=2,
        )
        qr.add_data(token)
        qr.make(fit=True)

        img = qr.make_image(fill_color="black", back_color="white")

        buf = io.BytesIO()
        img.save(buf, format="PNG")
        return buf.getvalue()
