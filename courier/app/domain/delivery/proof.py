"""
Proof of delivery.

Two confirmation styles exist for the dropoff "deliver" step: a 6-digit
code read out by the recipient (the default), or a photo of the handed
over items plus the recipient's signature. The mode is a deployment
setting (PROOF_OF_DELIVERY_MODE).
"""

import hmac
import re
from dataclasses import dataclass
from typing import Optional

from courier.app.core.config import settings
from courier.app.core.exceptions import ConfirmationRejectedError

CODE_PATTERN = re.compile(r"^\d{6}$")


@dataclass
class ProofOfDelivery:
    code: Optional[str] = None
    photo_url: Optional[str] = None
    signature: Optional[str] = None

    def is_empty(self) -> bool:
        return not (self.code or self.photo_url or self.signature)


class ProofVerifier:
    """Checks proof against a stop. Raises ConfirmationRejectedError on mismatch."""

    def __init__(self, mode: Optional[str] = None, default_code: Optional[str] = None):
        self.mode = mode or settings.proof_of_delivery_mode
        self.default_code = default_code or settings.default_confirmation_code

    def expected_code(self, stop) -> str:
        return getattr(stop, "confirmation_code", None) or self.default_code

    def verify(self, stop, proof: ProofOfDelivery) -> None:
        if self.mode == "photo_signature":
            if not proof.photo_url or not proof.signature:
                raise ConfirmationRejectedError(
                    stop.id, "Both a delivery photo and a recipient signature are required"
                )
            return

        code = (proof.code or "").strip()
        if not CODE_PATTERN.match(code):
            raise ConfirmationRejectedError(stop.id, "Confirmation code must be 6 digits")
        if not hmac.compare_digest(code, self.expected_code(stop)):
            raise ConfirmationRejectedError(stop.id)
