"""
Credential Engine Configuration
===============================
Settings for credential issuance, validation and expiry, read from the environment.
"""

import os
from dataclasses import dataclass


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    value = os.environ.get(name)
    if value is None or value.strip() == "":
        return default
    return int(value)


@dataclass
class CredentialSettings:
    """Configuration for the credential engine."""
    max_active_credentials_per_owner: int = 5
    default_rate_limit: int = 1000
    default_expiration_days: int = 365
    request_time_window_minutes: int = 5
    owner_secret_name_format: str = "credentials/owners/{owner_id}/keys/{credential_id}"
    admin_secret_name_format: str = "credentials/admin/{service_name}-admin-credential-secret"
    default_service_name: str = "credential-service"
    admin_endpoint_prefix: str = "/api/v1/admin"
    sweep_interval_seconds: int = 3600
    replay_purge_interval_seconds: int = 30
    # Revoked credentials still pass signature checks unless this is set;
    # the business layer applies its own revoked-key policy.
    reject_revoked_credentials: bool = False
    track_last_used: bool = True

    @classmethod
    def from_env(cls) -> "CredentialSettings":
        """Build settings from environment variables, falling back to defaults."""
        defaults = cls()
        return cls(
            max_active_credentials_per_owner=_env_int(
                "CREDENTIAL_MAX_ACTIVE_PER_OWNER", defaults.max_active_credentials_per_owner
            ),
            default_rate_limit=_env_int(
                "CREDENTIAL_DEFAULT_RATE_LIMIT", defaults.default_rate_limit
            ),
            default_expiration_days=_env_int(
                "CREDENTIAL_DEFAULT_EXPIRATION_DAYS", defaults.default_expiration_days
            ),
            request_time_window_minutes=_env_int(
                "CREDENTIAL_REQUEST_WINDOW_MINUTES", defaults.request_time_window_minutes
            ),
            owner_secret_name_format=os.environ.get(
                "CREDENTIAL_OWNER_SECRET_NAME_FORMAT", defaults.owner_secret_name_format
            ),
            admin_secret_name_format=os.environ.get(
                "CREDENTIAL_ADMIN_SECRET_NAME_FORMAT", defaults.admin_secret_name_format
            ),
            default_service_name=os.environ.get(
                "SERVICE_NAME", defaults.default_service_name
            ),
            admin_endpoint_prefix=os.environ.get(
                "CREDENTIAL_ADMIN_ENDPOINT_PREFIX", defaults.admin_endpoint_prefix
            ),
            sweep_interval_seconds=_env_int(
                "CREDENTIAL_SWEEP_INTERVAL_SECONDS", defaults.sweep_interval_seconds
            ),
            replay_purge_interval_seconds=_env_int(
                "CREDENTIAL_REPLAY_PURGE_INTERVAL_SECONDS", defaults.replay_purge_interval_seconds
            ),
            reject_revoked_credentials=_env_bool(
                "CREDENTIAL_REJECT_REVOKED", defaults.reject_revoked_credentials
            ),
            track_last_used=_env_bool(
                "CREDENTIAL_TRACK_LAST_USED", defaults.track_last_used
            ),
        )

    @property
    def request_time_window_seconds(self) -> int:
        return self.request_time_window_minutes * 60
