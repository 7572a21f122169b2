"""Hashing utilities for provider authentication and report identity.

- control_sum: request checksum required by the vindecoder.eu API.
  The algorithm is fixed by the provider (SHA-1, first 10 hex chars).
- report_id: deterministic report identifier per (VIN, calendar day).
"""

import hashlib
from datetime import date

CONTROL_SUM_LENGTH = 10
REPORT_ID_HASH_LENGTH = 10


def control_sum(vin: str, action: str, api_key: str, secret_key: str) -> str:
    """Compute the vindecoder.eu control sum for one request.

    Args:
        vin: Sanitized VIN (uppercase). Must be the same value used in the URL.
        action: API action (e.g. "decode", "stolen-check").
        api_key: Provider API key.
        secret_key: Provider secret key. NEVER logged.

    Returns:
        First 10 hex chars of sha1("vin|action|api_key|secret_key").
    """
    message = f"{vin}|{action}|{api_key}|{secret_key}".encode()
    return hashlib.sha1(message).hexdigest()[:CONTROL_SUM_LENGTH]


def report_id(vin: str, day: date) -> str:
    """Derive the report identifier for a VIN on a calendar day.

    Pure function: the same VIN on the same day always yields the same id.

    Returns:
        "VR-YYYYMMDD-XXXXXXXXXX" where the suffix is the uppercased
        sha256 prefix of "vin|YYYY-MM-DD".
    """
    digest = hashlib.sha256(f"{vin}|{day.isoformat()}".encode()).hexdigest()
    return f"VR-{day.strftime('%Y%m%d')}-{digest[:REPORT_ID_HASH_LENGTH].upper()}"
