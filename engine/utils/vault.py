"""
Equalizer Vault Client
======================
Reads engine configuration and secrets from HashiCorp Vault, falling back to
the process environment.

Usage:
    from utils.vault import secrets

    db_url = secrets.get("postgres_url", default="")
    row_limit = secrets.get_int("linkage_row_limit", default=10000)
"""

import os
import logging
from typing import Any, Dict, Optional

import hvac

logger = logging.getLogger("EqualizerBE")


class VaultClient:
    """
    Vault client for fetching secrets.

    Secrets path structure: secret/equalizer/{region}/{env}
    All secrets for a region/env are stored in a single path.
    """

    def __init__(self):
        self.vault_addr = (os.getenv("VAULT_ADDR") or "").strip()
        self.region = os.getenv("EQUALIZER_REGION", "br")
        self.env = os.getenv("EQUALIZER_ENV", "dev")

        self._client: Optional[hvac.Client] = None
        self._cache: Dict[str, Any] = {}

        self._connection_attempted = False
        self._vault_available = False

    def _get_client(self) -> Optional[hvac.Client]:
        """Lazy initialization of Vault client with authentication."""
        if not self.vault_addr:
            return None

        if self._client is not None:
            return self._client

        if self._connection_attempted and not self._vault_available:
            return None

        self._connection_attempted = True

        try:
            self._client = hvac.Client(url=self.vault_addr)

            role_id = os.getenv("VAULT_ROLE_ID")
            secret_id = os.getenv("VAULT_SECRET_ID")
            token = os.getenv("VAULT_TOKEN")

            if role_id and secret_id:
                self._client.auth.approle.login(role_id=role_id, secret_id=secret_id)
                logger.info(
                    f"Authenticated to Vault via AppRole for {self.region}/{self.env}"
                )
                self._vault_available = True
            elif token:
                self._client.token = token
                logger.info(
                    f"Authenticated to Vault via token for {self.region}/{self.env}"
                )
                self._vault_available = True
            else:
                logger.warning("No Vault credentials configured")
                self._client = None

        except Exception as e:
            logger.warning(f"Could not connect to Vault: {e}")
            self._client = None

        return self._client

    def _secret_path(self) -> str:
        return f"equalizer/{self.region}/{self.env}"

    def _fetch_from_vault(self) -> Dict[str, Any]:
        client = self._get_client()
        if client is None:
            return {}

        try:
            path = self._secret_path()
            response = client.secrets.kv.v2.read_secret_version(
                path=path, mount_point="secret"
            )
            secrets = response["data"]["data"]
            logger.debug(f"Fetched {len(secrets)} secrets from Vault ({path})")
            return secrets
        except Exception as e:
            logger.warning(f"Could not fetch secrets from Vault: {e}")
            return {}

    def _load_secrets(self) -> None:
        if not self._cache:
            self._cache = self._fetch_from_vault()

    def _env_fallback(self, key: str) -> Optional[str]:
        """Try to get value from process environment (ephemeral exports)."""
        for candidate in (key, key.upper(), key.lower()):
            v = os.getenv(candidate)
            if v is not None and v != "":
                return v
        return None

    def get(self, key: str, default: Optional[str] = None) -> str:
        """
        Get a secret value from Vault, or from process environment if not in Vault.

        Args:
            key: Secret key (e.g., "postgres_url", "db_type")
            default: Value to return if not found in Vault or env.

        Returns:
            Secret value

        Raises:
            KeyError: If secret not found and no default provided.
        """
        self._load_secrets()

        key_lower = key.lower()
        for k, v in self._cache.items():
            if k.lower() == key_lower:
                return v

        env_val = self._env_fallback(key)
        if env_val is not None:
            return env_val

        if default is not None:
            return default
        raise KeyError(f"Secret '{key}' not found (Vault or env)")

    def get_int(self, key: str, default: int) -> int:
        raw = self.get(key, default=str(default))
        try:
            return int(raw)
        except (TypeError, ValueError):
            logger.warning(f"Invalid integer for '{key}': {raw!r}, using {default}")
            return default

    def refresh(self) -> None:
        """Force refresh all secrets from Vault."""
        self._cache = self._fetch_from_vault()
        logger.info(f"Secrets refreshed for {self.region}/{self.env}")


# Global singleton instance
secrets = VaultClient()
