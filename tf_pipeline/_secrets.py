"""Encrypt and publish GitHub Actions repository secrets.

Values are sealed with libsodium's anonymous sealed box so only the holder of
the repository's private key can open them. The public key is fetched again
before every secret because GitHub may rotate it between calls.
"""

from __future__ import annotations

import base64
from collections.abc import Mapping

from nacl import exceptions as nacl_exceptions
from nacl.public import PublicKey, SealedBox

from tf_pipeline._github_client import GitHubClient
from tf_pipeline._pipeline_errors import GitHubAPIError, SecretPublicationError
from tf_pipeline._pipeline_models import BackendLocation, RecipientKey, SecretEntry

__all__ = ["encrypt_secret", "pipeline_secrets", "publish_secrets"]


def encrypt_secret(plaintext: str, key: RecipientKey) -> str:
    """Seal ``plaintext`` for ``key`` and return base64 ciphertext.

    Parameters
    ----------
    plaintext
        Secret value to encrypt.
    key
        Repository public key (raw 32 bytes).

    Returns
    -------
    str
        Base64-encoded sealed box.
    """
    box = SealedBox(PublicKey(key.key))
    sealed = box.encrypt(plaintext.encode("utf-8"))
    return base64.b64encode(sealed).decode("ascii")


def pipeline_secrets(
    region: str, backend: BackendLocation, pipeline_role_arn: str
) -> dict[str, str]:
    """Return the secrets consumed by the generated CI workflow."""
    return {
        "AWS_REGION": region,
        "TF_STATE_BUCKET": backend.bucket,
        "PIPELINE_ROLE_ARN": pipeline_role_arn,
    }


def publish_secrets(
    client: GitHubClient,
    owner: str,
    repo: str,
    secrets: Mapping[str, str],
) -> list[str]:
    """Upsert each non-empty secret and return the names published.

    Empty values are skipped so the existing secret, if any, stays as it is.
    The first failure aborts the remaining secrets; earlier ones stay
    published, which is safe because publication is an upsert.

    Raises
    ------
    SecretPublicationError
        Raised with the failing secret's name.
    """
    entries = [SecretEntry(name, value) for name, value in secrets.items() if value]
    published: list[str] = []
    for entry in entries:
        try:
            key = client.get_secrets_public_key(owner, repo)
            encrypted = encrypt_secret(entry.value, key)
            client.put_secret(owner, repo, entry.name, encrypted, key.key_id)
        except (GitHubAPIError, nacl_exceptions.CryptoError, ValueError) as exc:
            raise SecretPublicationError(entry.name, str(exc)) from exc
        published.append(entry.name)
    return published
