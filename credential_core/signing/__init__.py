"""
Request Signing Module
======================
HMAC signatures over the canonical request string, plus header helpers.
"""

from .signature import (
    canonical_string,
    sign,
    verify,
    format_timestamp,
    generate_nonce,
    SIGNATURE_ALGORITHM,
)
from .headers import (
    SignedRequest,
    create_signed_headers,
    parse_signed_headers,
    OWNER_ID_HEADER,
    CREDENTIAL_ID_HEADER,
    TIMESTAMP_HEADER,
    NONCE_HEADER,
    SIGNATURE_HEADER,
    SERVICE_NAME_HEADER,
)

__all__ = [
    # Signature
    "canonical_string",
    "sign",
    "verify",
    "format_timestamp",
    "generate_nonce",
    "SIGNATURE_ALGORITHM",
    # Headers
    "SignedRequest",
    "create_signed_headers",
    "parse_signed_headers",
    "OWNER_ID_HEADER",
    "CREDENTIAL_ID_HEADER",
    "TIMESTAMP_HEADER",
    "NONCE_HEADER",
    "SIGNATURE_HEADER",
    "SERVICE_NAME_HEADER",
]
