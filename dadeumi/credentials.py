"""Provider API keys kept in the operating system keyring.

Responsibilities:
- Store one API key per generation provider under the `dadeumi` keyring service.
- Treat a missing backend or a locked keychain as "no stored key" on reads.
- Never echo key material back to callers beyond the key itself.

Key types:
- `CredentialStore`: the operations the CLI needs from a key store.
- `KeyringCredentialStore`: the `keyring`-backed implementation.
"""

from __future__ import annotations

from dataclasses import dataclass

import keyring
from keyring.backends import fail
from keyring.errors import KeyringError, PasswordDeleteError

from .parsing import normalize_optional_string

KEYRING_SERVICE = "dadeumi"
SUPPORTED_PROVIDERS = ("openai", "anthropic")


def provider_account(provider: str) -> str:
    """Return the keyring account holding `provider`'s API key."""

    return f"{provider}_api_key"


class CredentialStore:
    """Key storage operations used by runtime resolution and `dadeumi credentials`."""

    def is_available(self) -> bool:
        raise NotImplementedError

    def get_api_key(self) -> str | None:
        raise NotImplementedError

    def set_api_key(self, api_key: str) -> None:
        raise NotImplementedError

    def clear_api_key(self) -> bool:
        """Delete the stored key; return `False` when nothing was stored."""

        raise NotImplementedError


@dataclass(slots=True)
class KeyringCredentialStore(CredentialStore):
    """Credential store for a single keyring account."""

    service_name: str = KEYRING_SERVICE
    account_name: str = provider_account("openai")

    def is_available(self) -> bool:
        """Return `False` when keyring fell back to its fail backend."""

        return not isinstance(keyring.get_keyring(), fail.Keyring)

    def get_api_key(self) -> str | None:
        try:
            stored = keyring.get_password(self.service_name, self.account_name)
        except KeyringError:
            return None
        return normalize_optional_string(stored)

    def set_api_key(self, api_key: str) -> None:
        """Store a stripped API key.

        Raises:
            ValueError: If the key is blank.
            RuntimeError: If no keyring backend can persist it.
        """

        cleaned = normalize_optional_string(api_key)
        if cleaned is None:
            raise ValueError("API key must be a non-empty string.")
        if not self.is_available():
            raise RuntimeError(
                "Secure credential storage is unavailable: no keyring backend is configured."
            )
        keyring.set_password(self.service_name, self.account_name, cleaned)

    def clear_api_key(self) -> bool:
        if self.get_api_key() is None:
            return False
        try:
            keyring.delete_password(self.service_name, self.account_name)
        except PasswordDeleteError:
            return False
        return True


def create_credential_store(provider: str = "openai") -> CredentialStore:
    """Return the keyring store for `provider` (`openai` or `anthropic`)."""

    normalized = provider.strip().lower()
    if normalized not in SUPPORTED_PROVIDERS:
        raise ValueError(
            f"Unsupported provider `{provider}`; expected one of: "
            f"{', '.join(SUPPORTED_PROVIDERS)}."
        )
    return KeyringCredentialStore(account_name=provider_account(normalized))
