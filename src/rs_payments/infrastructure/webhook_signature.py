"""Webhook-Signature verification.

GoCardless signs the raw request body: hex(HMAC-SHA256(secret, body)).
"""

import hashlib
import hmac

from config.settings import settings
from src.rs_common.errors import InvalidWebhookSignatureError, PaymentProviderNotConfiguredError


def compute_signature(body: bytes, secret: str) -> str:
    return hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()


def verify_signature(body: bytes, signature: str | None, secret: str | None = None) -> None:
    """Raise InvalidWebhookSignatureError unless ``signature`` matches ``body``."""
    secret = secret if secret is not None else settings.GOCARDLESS_WEBHOOK_SECRET
    if not secret:
        raise PaymentProviderNotConfiguredError()
    if not signature:
        raise InvalidWebhookSignatureError()
    expected = compute_signature(body, secret)
    if not hmac.compare_digest(expected, signature.strip()):
        raise InvalidWebhookSignatureError()
