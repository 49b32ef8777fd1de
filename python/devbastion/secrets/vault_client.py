"""
An asynchronous Vault client covering what provisioning needs from the secret
store: token acquisition (Kubernetes auth or a direct token) and KV v2
read/write of individual secrets.
"""

from __future__ import annotations

import aiohttp
import aiofiles
from typing import Any, Dict, Optional, Type

from pydantic import BaseModel, ValidationError

from devbastion.models.vault import VaultSettings


class _KVData(BaseModel):
    data: Dict[str, Any]


class _KVReadResponse(BaseModel):
    data: _KVData


class _AuthBlock(BaseModel):
    client_token: str


class _LoginResponse(BaseModel):
    auth: _AuthBlock


class AsyncVaultClient:
    """An asynchronous Vault client for KV v2 secrets.

    Errors from Vault are raised as RuntimeError carrying the HTTP status, e.g.
    "Error reading secret: 404, {...}". Transport failures surface as
    aiohttp.ClientError.
    """

    def __init__(self, settings: VaultSettings) -> None:
        """
        Initialize the AsyncVaultClient.

        Args:
            settings (VaultSettings): Contains vault_addr, auth method, kv_mount, etc.
        """
        self._vault_addr = settings.vault_addr.rstrip("/")
        self._vault_role_name = settings.vault_role_name
        self._token_path = settings.token_path
        self._verify_ssl = settings.verify_ssl
        self._kv_mount = settings.kv_mount
        self._direct_token = settings.direct_vault_token

        self._session: Optional[aiohttp.ClientSession] = None
        self._client_token: Optional[str] = None

    async def __aenter__(self) -> AsyncVaultClient:
        """Async context manager entry, creates an aiohttp session."""
        self._session = aiohttp.ClientSession()
        return self

    async def __aexit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc_val: Optional[BaseException],
        exc_tb: Optional[Any],
    ) -> None:
        """Async context manager exit, closes the aiohttp session."""
        if self._session:
            await self._session.close()
        self._session = None

    async def ensure_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            self._session = aiohttp.ClientSession()
        return self._session

    async def get_active_token(self) -> str:
        """Return a Vault token, logging in on first use.

        Raises:
            RuntimeError: If no token can be acquired.
        """
        if self._client_token is None:
            await self._login()
        if not self._client_token:
            raise RuntimeError("Vault token unavailable.")
        return self._client_token

    async def _login(self) -> None:
        """Kubernetes-based login, or adopt the direct token if one was given.

        Raises:
            RuntimeError: If K8s login fails or no role is specified.
        """
        if self._direct_token is not None:
            self._client_token = self._direct_token
            return

        if not self._vault_role_name:
            raise RuntimeError("Cannot login via K8s: vault_role_name not set.")

        session = await self.ensure_session()
        async with aiofiles.open(self._token_path, "r") as f:
            jwt = await f.read()

        url = f"{self._vault_addr}/v1/auth/kubernetes/login"
        payload = {"jwt": jwt.strip(), "role": self._vault_role_name}
        async with session.post(url, json=payload, ssl=self._verify_ssl) as resp:
            raw_js = await resp.json(content_type=None)
            if resp.status != 200:
                raise RuntimeError(f"Vault login failed: {resp.status}, {raw_js}")

        try:
            login = _LoginResponse.model_validate(raw_js)
        except ValidationError as ex:
            raise RuntimeError("Vault did not return a valid client_token.") from ex
        self._client_token = login.auth.client_token

    def _data_url(self, path: str) -> str:
        return f"{self._vault_addr}/v1/{self._kv_mount}/data/{path.strip('/')}"

    # ------------------------------
    # KV V2 Methods
    # ------------------------------
    async def read_secret(self, path: str) -> Dict[str, Any]:
        """Read the latest version of the KV v2 secret at `path`.

        Raises:
            RuntimeError: On any non-200 response, including 404.
        """
        token = await self.get_active_token()
        session = await self.ensure_session()

        headers = {"X-Vault-Token": token}
        async with session.get(
            self._data_url(path), headers=headers, ssl=self._verify_ssl
        ) as resp:
            raw_js = await resp.json(content_type=None)
            if resp.status != 200:
                raise RuntimeError(f"Error reading secret: {resp.status}, {raw_js}")

        try:
            return _KVReadResponse.model_validate(raw_js).data.data
        except ValidationError as ex:
            raise RuntimeError(f"Malformed KV v2 response for '{path}': {ex}") from ex

    async def read_secret_if_exists(self, path: str) -> Optional[Dict[str, Any]]:
        """Like read_secret, but return None when Vault answers 404."""
        try:
            return await self.read_secret(path)
        except RuntimeError as ex:
            if "404" in str(ex):
                return None
            raise

    async def write_secret(self, path: str, data: Dict[str, Any]) -> None:
        """Write a new version of the KV v2 secret at `path`."""
        token = await self.get_active_token()
        session = await self.ensure_session()

        headers = {"X-Vault-Token": token}
        async with session.post(
            self._data_url(path),
            json={"data": data},
            headers=headers,
            ssl=self._verify_ssl,
        ) as resp:
            if resp.status not in (200, 204):
                detail = await resp.text()
                raise RuntimeError(f"Error writing secret: {resp.status}, {detail}")
