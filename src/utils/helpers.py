"""
Helper utilities for the CLOB Auth Manager

Provides:
- Secret masking for logs and operator output
- Address validation (Ethereum/Polygon)
- Lenient numeric coercion for loosely typed API payloads
"""

import math
import re
from typing import Any, Optional

from config.constants import MASK_KEEP_CHARS
from utils.exceptions import ConfigurationError


_ADDRESS_RE = re.compile(r'^0x[0-9a-fA-F]{40}$')


def mask(value: Optional[str], keep: int = MASK_KEEP_CHARS) -> str:
    """
    Mask a secret for display: short prefix plus total length.

    Example:
        >>> mask("abcdefgh")
        'abcd…(len=8)'
        >>> mask(None)
        '<missing>'
    """
    if not value:
        return '<missing>'
    v = str(value)
    return f"{v[:keep]}…(len={len(v)})"


def validate_ethereum_address(address: str) -> bool:
    """
    Validate Ethereum/Polygon address format (0x prefixed hex).

    Raises:
        ConfigurationError: If address is malformed
    """
    if not isinstance(address, str) or not _ADDRESS_RE.match(address):
        raise ConfigurationError(
            "Invalid Ethereum address format",
            error_code='INVALID_ADDRESS_FORMAT',
            details={'address': str(address), 'expected_format': '0x + 40 hex chars'}
        )
    return True


def to_float(value: Any, default: float = 0.0) -> float:
    """
    Coerce a number-ish API value to float.

    Strings are parsed, anything unparsable or non-finite becomes default.
    """
    if isinstance(value, bool):
        return default
    if isinstance(value, (int, float)):
        result = float(value)
    else:
        try:
            result = float(str(value).strip())
        except (TypeError, ValueError):
            return default
    return result if math.isfinite(result) else default
