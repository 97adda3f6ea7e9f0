"""
Heuristics for loosely typed CLOB responses.

The key-listing endpoint has been observed to answer in several shapes,
and sometimes returns HTTP 200 with an error payload instead of raising.
None of this is a documented contract, so each rule is a small function
in an ordered list. Add a rule here when a new shape shows up.

Observed key-list shapes:
    {"apiKeys": ["uuid", ...]}
    [{"apiKey": "uuid", ...}, ...]
    ["uuid", ...]
"""

import re
from typing import Any, Callable, List, Optional

from py_clob_client.exceptions import PolyApiException


# ============================================================================
# API KEY EXTRACTION
# ============================================================================

_KEY_FIELDS = ('apiKey', 'api_key', 'key')
_LIST_FIELDS = ('apiKeys', 'api_keys', 'keys')


def _field(obj: Any, name: str) -> Any:
    if isinstance(obj, dict):
        return obj.get(name)
    return getattr(obj, name, None)


def _keys_from_string_list(payload: Any) -> Optional[List[str]]:
    if isinstance(payload, list) and payload and all(isinstance(x, str) for x in payload):
        return list(payload)
    return None


def _keys_from_object_list(payload: Any) -> Optional[List[str]]:
    if not isinstance(payload, list) or not payload:
        return None
    keys = []
    for item in payload:
        for name in _KEY_FIELDS:
            value = _field(item, name)
            if value:
                keys.append(str(value))
                break
    return keys


def _keys_from_wrapped_list(payload: Any) -> Optional[List[str]]:
    for name in _LIST_FIELDS:
        value = _field(payload, name)
        if isinstance(value, list):
            return [x for x in value if isinstance(x, str)]
    return None


KEY_EXTRACTORS: List[Callable[[Any], Optional[List[str]]]] = [
    _keys_from_string_list,
    _keys_from_object_list,
    _keys_from_wrapped_list,
]


def extract_api_keys(payload: Any) -> List[str]:
    """First extractor that recognizes the shape wins; unknown shapes yield []"""
    if not payload:
        return []
    for extractor in KEY_EXTRACTORS:
        keys = extractor(payload)
        if keys is not None:
            return keys
    return []


# ============================================================================
# UNAUTHORIZED DETECTION
# ============================================================================

def _status_is_401(payload: Any) -> bool:
    status = _field(payload, 'status')
    return status == 401 or status == '401'


def _error_mentions_unauthorized(payload: Any) -> bool:
    err = _field(payload, 'error')
    return isinstance(err, str) and 'unauthorized' in err.lower()


UNAUTHORIZED_PAYLOAD_RULES: List[Callable[[Any], bool]] = [
    _status_is_401,
    _error_mentions_unauthorized,
]


def is_unauthorized_payload(payload: Any) -> bool:
    """True for a 200-status response that nonetheless encodes a 401"""
    if payload is None or isinstance(payload, (list, str)):
        return False
    return any(rule(payload) for rule in UNAUTHORIZED_PAYLOAD_RULES)


_STATUS_401_RE = re.compile(r'\b401\b')


def _exception_status(err: Exception) -> Any:
    if isinstance(err, PolyApiException):
        return getattr(err, 'status_code', None)
    response = getattr(err, 'response', None)
    status = getattr(response, 'status_code', None) or getattr(response, 'status', None)
    return status if status is not None else getattr(err, 'status', None)


def _exception_error_payload(err: Exception) -> Any:
    if isinstance(err, PolyApiException):
        return getattr(err, 'error_msg', None)
    return getattr(err, 'response_data', None) or getattr(err, 'data', None)


def is_unauthorized_error(err: Exception) -> bool:
    """True when a raised exception means the credentials were rejected"""
    if _exception_status(err) == 401:
        return True
    msg = str(err).lower()
    if _STATUS_401_RE.search(msg) or 'unauthorized' in msg:
        return True
    payload = _exception_error_payload(err)
    if isinstance(payload, str):
        return 'unauthorized' in payload.lower()
    return payload is not None and _error_mentions_unauthorized(payload)


# ============================================================================
# ERROR PAYLOADS FROM CREATE/DERIVE
# ============================================================================

def error_from_payload(payload: Any) -> Optional[str]:
    """
    Error message of a create/derive response that failed without raising,
    or None when the payload looks like a normal response.
    """
    if payload is None:
        return None
    err = _field(payload, 'error')
    if err:
        return str(err)
    status = _field(payload, 'status')
    if isinstance(status, int) and status >= 400:
        return f"derive failed (status={status})"
    return None
