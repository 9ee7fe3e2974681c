"""
Secret Name Formatting
======================
Deterministic secret names derived from owner/credential ids or service names.
"""

from typing import Optional

OWNER_ID_PLACEHOLDER = "{owner_id}"
CREDENTIAL_ID_PLACEHOLDER = "{credential_id}"
SERVICE_NAME_PLACEHOLDER = "{service_name}"

_PLACEHOLDERS = (OWNER_ID_PLACEHOLDER, CREDENTIAL_ID_PLACEHOLDER, SERVICE_NAME_PLACEHOLDER)


class SecretNameFormatter:
    """
    Formats and parses secret names using configurable templates.

    Example:
        formatter = SecretNameFormatter(
            "credentials/owners/{owner_id}/keys/{credential_id}",
            "credentials/admin/{service_name}-admin-credential-secret",
        )
        formatter.owner_secret_name("m-1", "abc")
        # "credentials/owners/m-1/keys/abc"
    """

    def __init__(self, owner_format: str, admin_format: str):
        if CREDENTIAL_ID_PLACEHOLDER not in owner_format:
            raise ValueError("Owner secret name format must contain {credential_id}")
        if SERVICE_NAME_PLACEHOLDER not in admin_format:
            raise ValueError("Admin secret name format must contain {service_name}")
        self.owner_format = owner_format
        self.admin_format = admin_format

    def owner_secret_name(self, owner_id: str, credential_id: str) -> str:
        return (
            self.owner_format
            .replace(OWNER_ID_PLACEHOLDER, owner_id)
            .replace(CREDENTIAL_ID_PLACEHOLDER, credential_id)
        )

    def admin_secret_name(self, service_name: str) -> str:
        return self.admin_format.replace(SERVICE_NAME_PLACEHOLDER, service_name)

    def _segment_value(self, pattern: str, placeholder: str, secret_name: str) -> Optional[str]:
        pattern_parts = pattern.split("/")
        name_parts = secret_name.split("/")
        if len(pattern_parts) != len(name_parts):
            return None

        value = None
        for template, actual in zip(pattern_parts, name_parts):
            if placeholder in template:
                prefix, _, suffix = template.partition(placeholder)
                if not (actual.startswith(prefix) and actual.endswith(suffix)):
                    return None
                value = actual[len(prefix):len(actual) - len(suffix)]
            elif any(p in template for p in _PLACEHOLDERS):
                if not actual:
                    return None
            elif template != actual:
                return None
        return value or None

    def extract_credential_id(self, secret_name: str) -> Optional[str]:
        """Credential id from an owner secret name, or None if it does not match."""
        return self._segment_value(self.owner_format, CREDENTIAL_ID_PLACEHOLDER, secret_name)

    def extract_service_name(self, secret_name: str) -> Optional[str]:
        """Service name from an admin secret name, or None if it does not match."""
        return self._segment_value(self.admin_format, SERVICE_NAME_PLACEHOLDER, secret_name)

    def is_admin_secret_name(self, secret_name: str) -> bool:
        return self.extract_service_name(secret_name) is not None

    def is_owner_secret_name(self, secret_name: str) -> bool:
        return self.extract_credential_id(secret_name) is not None
