"""
HashiCorp Vault Secret Store
============================

Usage:
    from credential_core.secret_store import VaultSecretStore

    store = VaultSecretStore(mount_point="credentials")
    raw = await store.get("credentials/owners/m-1/keys/abc")
"""

import asyncio
import json
import logging
import os
import threading
from typing import Any, Dict, Optional

import hvac
import hvac.exceptions
import structlog
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from ..exceptions import SecretStoreError
from .base import SecretStore

logger = structlog.get_logger(__name__)
retry_logger = logging.getLogger(__name__)

# requests' connection errors derive from OSError
TRANSIENT_ERRORS = (
    hvac.exceptions.VaultDown,
    hvac.exceptions.InternalServerError,
    hvac.exceptions.BadGateway,
    OSError,
)


class VaultSecretStore(SecretStore):
    """Secret store on Vault KV v2. hvac is synchronous, so calls run in a worker thread."""

    def __init__(
        self,
        url: Optional[str] = None,
        token: Optional[str] = None,
        mount_point: str = "credentials",
        client: Optional[hvac.Client] = None,
        max_attempts: int = 3,
    ):
        self.url = url or os.environ.get("VAULT_ADDR", "http://127.0.0.1:8200")
        self.token = token or os.environ.get("VAULT_TOKEN")
        self.mount_point = mount_point
        self.max_attempts = max_attempts
        self._client = client
        self._client_lock = threading.Lock()

    def _ensure_client(self) -> hvac.Client:
        """
        Lazy-loaded Vault client.

        Blocks on the authentication round trip, so it only runs in the
        worker thread used by _call.
        """
        with self._client_lock:
            if self._client is None:
                client = hvac.Client(url=self.url, token=self.token)
                if not client.is_authenticated():
                    raise SecretStoreError("Vault authentication failed. Check VAULT_TOKEN.")
                self._client = client
            return self._client

    def _invoke(self, operation: str, kwargs: Dict[str, Any]) -> Any:
        kv = self._ensure_client().secrets.kv.v2
        return getattr(kv, operation)(**kwargs)

    async def _call(self, operation: str, **kwargs: Any) -> Any:
        result = None
        async for attempt in AsyncRetrying(
            retry=retry_if_exception_type(TRANSIENT_ERRORS),
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=0.2, min=0.2, max=5),
            before_sleep=before_sleep_log(retry_logger, logging.WARNING),
            reraise=True,
        ):
            with attempt:
                result = await asyncio.to_thread(self._invoke, operation, kwargs)
        return result

    @staticmethod
    def _decode(value: str) -> Dict[str, Any]:
        try:
            data = json.loads(value)
        except ValueError as e:
            raise SecretStoreError("Secret value is not valid JSON", details=str(e))
        if not isinstance(data, dict):
            raise SecretStoreError("Secret value must be a JSON object")
        return data

    async def get(self, name: str) -> Optional[str]:
        try:
            response = await self._call(
                "read_secret_version",
                path=name,
                mount_point=self.mount_point,
                raise_on_deleted_version=True,
            )
        except hvac.exceptions.InvalidPath:
            logger.info("vault_secret_not_found", mount_point=self.mount_point)
            return None
        except hvac.exceptions.VaultError as e:
            logger.error("vault_read_failed", error=str(e))
            raise SecretStoreError("Failed to read secret from Vault", details=str(e))
        return json.dumps(response["data"]["data"])

    async def put(self, name: str, value: str) -> None:
        data = self._decode(value)
        try:
            await self._call(
                "create_or_update_secret",
                path=name,
                secret=data,
                mount_point=self.mount_point,
            )
        except hvac.exceptions.VaultError as e:
            logger.error("vault_write_failed", error=str(e))
            raise SecretStoreError("Failed to store secret in Vault", details=str(e))

    async def update(self, name: str, value: str) -> None:
        data = self._decode(value)
        try:
            # patch refuses to create, which gives update its must-exist semantics
            await self._call(
                "patch",
                path=name,
                secret=data,
                mount_point=self.mount_point,
            )
        except hvac.exceptions.InvalidPath:
            raise SecretStoreError(f"Secret not found in Vault: {name}")
        except hvac.exceptions.VaultError as e:
            logger.error("vault_update_failed", error=str(e))
            raise SecretStoreError("Failed to update secret in Vault", details=str(e))
