"""
Header Functions
=================
Functions for creating and parsing signed request headers.
"""

from dataclasses import dataclass
from typing import Mapping, Dict, Optional

from .signature import sign, format_timestamp, generate_nonce

OWNER_ID_HEADER = "X-Owner-ID"
CREDENTIAL_ID_HEADER = "X-Credential-ID"
TIMESTAMP_HEADER = "X-Timestamp"
NONCE_HEADER = "X-Nonce"
SIGNATURE_HEADER = "X-Signature"
SERVICE_NAME_HEADER = "X-Service-Name"


@dataclass
class SignedRequest:
    """The authentication fields carried by a signed request."""
    owner_id: str
    credential_id: str
    timestamp: str
    nonce: str
    signature: str
    service_name: Optional[str] = None


def create_signed_headers(
    secret: str,
    credential_id: str,
    owner_id: Optional[str] = None,
    service_name: Optional[str] = None,
    timestamp: Optional[str] = None,
    nonce: Optional[str] = None,
) -> Dict[str, str]:
    """
    Create headers for a signed request.

    Args:
        secret: Secret returned when the credential was issued or rotated
        credential_id: Credential key string
        owner_id: Owner id; omit for administrative credentials
        service_name: Calling service, selects the admin secret
        timestamp: Override the request timestamp (defaults to now)
        nonce: Override the nonce (defaults to a fresh UUID)

    Returns:
        Dictionary of headers to include in the request
    """
    timestamp = timestamp or format_timestamp()
    nonce = nonce or generate_nonce()
    headers = {
        CREDENTIAL_ID_HEADER: credential_id,
        TIMESTAMP_HEADER: timestamp,
        NONCE_HEADER: nonce,
        SIGNATURE_HEADER: sign(secret, timestamp, nonce, owner_id, credential_id),
    }
    if owner_id:
        headers[OWNER_ID_HEADER] = owner_id
    if service_name:
        headers[SERVICE_NAME_HEADER] = service_name
    return headers


def parse_signed_headers(headers: Mapping[str, str]) -> SignedRequest:
    """
    Parse signed request headers.

    Missing headers come back as empty strings; validation rejects them.
    """
    return SignedRequest(
        owner_id=(headers.get(OWNER_ID_HEADER) or "").strip(),
        credential_id=(headers.get(CREDENTIAL_ID_HEADER) or "").strip(),
        timestamp=(headers.get(TIMESTAMP_HEADER) or "").strip(),
        nonce=(headers.get(NONCE_HEADER) or "").strip(),
        signature=(headers.get(SIGNATURE_HEADER) or "").strip(),
        service_name=(headers.get(SERVICE_NAME_HEADER) or "").strip() or None,
    )
