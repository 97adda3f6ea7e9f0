"""
L2 request signing for the Polymarket CLOB.

Every authenticated request carries five headers:

    POLY_ADDRESS     signer (EOA) address, also for Safe accounts
    POLY_API_KEY     API key
    POLY_PASSPHRASE  passphrase
    POLY_TIMESTAMP   unix seconds as a decimal string
    POLY_SIGNATURE   HMAC-SHA256 over timestamp + METHOD + path [+ body]

The signature is standard base64 with the url-safe alphabet swapped in
('+' -> '-', '/' -> '_') and the '=' padding KEPT. This is not base64url;
the exchange rejects signatures with the padding stripped.
"""

import base64
import binascii
import hashlib
import hmac
import re
import time
from typing import Dict, Optional

from utils.exceptions import ConfigurationError


_NON_BASE64_RE = re.compile(r'[^A-Za-z0-9+/=]')


def normalize_to_base64(value: str) -> str:
    """
    Canonicalize a secret to padded standard base64.

    Accepts base64 or base64url input, drops stray characters and fixes up
    missing padding. Idempotent.
    """
    s = (value or '').strip()
    s = s.replace('-', '+').replace('_', '/')
    s = _NON_BASE64_RE.sub('', s)

    pad = len(s) % 4
    if pad == 2:
        s += '=='
    elif pad == 3:
        s += '='
    return s


def decode_secret(secret: str) -> bytes:
    """
    Decode an API secret into HMAC key bytes.

    Raises:
        ConfigurationError: If the secret is empty or not decodable
    """
    normalized = normalize_to_base64(secret)
    try:
        secret_bytes = base64.b64decode(normalized)
    except (binascii.Error, ValueError) as e:
        raise ConfigurationError(
            "Invalid API secret (base64 decode failed)",
            error_code='INVALID_API_SECRET',
            original_error=e
        ) from e

    if not secret_bytes:
        raise ConfigurationError(
            "Invalid API secret (decodes to zero bytes)",
            error_code='INVALID_API_SECRET'
        )
    return secret_bytes


def sign(
    secret_bytes: bytes,
    timestamp: str,
    method: str,
    path: str,
    body: Optional[str] = None
) -> str:
    """
    Build POLY_SIGNATURE for one request.

    Args:
        secret_bytes: Decoded API secret (see decode_secret)
        timestamp: Unix seconds as a string
        method: HTTP method, any case
        path: Request path including the query string
        body: Serialized request body, if any

    Returns:
        Url-safe-alphabet base64 of the digest, padding preserved
    """
    message = f"{timestamp}{method.upper()}{path}"
    if body is not None:
        message += body

    digest = hmac.new(secret_bytes, message.encode('utf-8'), hashlib.sha256).digest()
    return base64.b64encode(digest).decode('ascii').replace('+', '-').replace('/', '_')


def current_timestamp() -> str:
    return str(int(time.time()))


def build_l2_headers(
    address: str,
    api_key: str,
    passphrase: str,
    secret_bytes: bytes,
    method: str,
    path: str,
    body: Optional[str] = None,
    timestamp: Optional[str] = None
) -> Dict[str, str]:
    """
    Build the signed header set for an authenticated CLOB request.

    Args:
        address: POLY_ADDRESS value, must be the signer (EOA) address
        timestamp: Shared timestamp, defaults to now
    """
    ts = timestamp or current_timestamp()
    return {
        'Content-Type': 'application/json',
        'POLY_ADDRESS': address,
        'POLY_API_KEY': api_key,
        'POLY_PASSPHRASE': passphrase,
        'POLY_SIGNATURE': sign(secret_bytes, ts, method, path, body),
        'POLY_TIMESTAMP': ts,
    }
