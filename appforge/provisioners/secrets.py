"""Secret Provisioner — seal the deploy credential and register it remotely.

Each registration fetches the repository's public key afresh (the remote key
may rotate), seals the plaintext to it, and PUTs the result under the secret
name.  The PUT replaces any previous value, so registering twice is safe.
"""

from __future__ import annotations

import base64
import binascii
import logging
from pathlib import Path

from appforge.bridge.crypto_bridge import SealingError, key_fingerprint, seal_secret
from appforge.clients.github import GitHubApiError, GitHubClient
from appforge.core.errors import SecretRegistrationError
from appforge.models.provisioning import RepositoryHandle

logger = logging.getLogger(__name__)


def load_deploy_credential(path: Path) -> bytes:
    """Read a service-account key file holding raw JSON or base64-encoded JSON."""
    try:
        raw = Path(path).read_bytes().strip()
    except OSError as exc:
        raise SecretRegistrationError(f"Cannot read deploy credential {path}: {exc}") from exc

    if raw.startswith(b"{"):
        return raw
    try:
        decoded = base64.b64decode(raw, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise SecretRegistrationError(
            f"Deploy credential {path} is neither JSON nor base64"
        ) from exc
    return decoded.strip()


class SecretProvisioner:
    """Registers sealed secrets on a repository."""

    def __init__(self, github: GitHubClient) -> None:
        self._github = github

    def register_secret(
        self, handle: RepositoryHandle, secret_name: str, plaintext: bytes
    ) -> None:
        """Upsert *secret_name* on *handle* with *plaintext* sealed to its current key."""
        try:
            public_key = self._github.get_public_key(handle.owner, handle.name)
            bundle = seal_secret(plaintext, public_key["key"], public_key["key_id"])
            status = self._github.put_secret(
                handle.owner,
                handle.name,
                secret_name,
                encrypted_value=bundle.encoded_value,
                key_id=bundle.key_id,
            )
        except (GitHubApiError, SealingError, KeyError) as exc:
            raise SecretRegistrationError(
                f"Registering {secret_name} on {handle.full_name} failed: {exc}"
            ) from exc

        logger.info(
            "Secret %s %s on %s (key %s)",
            secret_name,
            "created" if status == 201 else "updated",
            handle.full_name,
            key_fingerprint(public_key["key"]),
        )
