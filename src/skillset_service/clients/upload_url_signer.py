"""Ed25519 JWS signer for time-limited object upload URLs."""

from __future__ import annotations

import base64
import json
from pathlib import Path
from typing import Any

from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey
from cryptography.hazmat.primitives.serialization import (
    Encoding,
    NoEncryption,
    PrivateFormat,
    load_pem_private_key,
)
from joserfc import jws
from joserfc.errors import JoseError
from joserfc.jwk import OKPKey


class InvalidUploadTokenError(Exception):
    """Raised when an upload token is malformed or its signature does not verify."""


def ensure_signing_key(private_key_path: str) -> None:
    """Generate an Ed25519 PEM key at the given path if none exists yet."""
    private_key_file = Path(private_key_path)
    if private_key_file.exists():
        return
    key = Ed25519PrivateKey.generate()
    pem = key.private_bytes(Encoding.PEM, PrivateFormat.PKCS8, NoEncryption())
    private_key_file.parent.mkdir(parents=True, exist_ok=True)
    private_key_file.write_bytes(pem)


class UploadUrlSigner:
    """
    Signs and verifies the tokens embedded in issued upload URLs.

    The token is a compact JWS (EdDSA) over the object path, the action,
    and an expiry timestamp. Only this service holds the key, so a valid
    token proves the URL was issued here and has not been altered.
    """

    def __init__(self, private_key_path: str, key_id: str) -> None:
        self._key_id = key_id

        pem_data = Path(private_key_path).read_bytes()
        private_key = load_pem_private_key(pem_data, password=None)
        if not isinstance(private_key, Ed25519PrivateKey):
            msg = "Upload signing key must be an Ed25519 private key"
            raise ValueError(msg)

        raw_private = private_key.private_bytes_raw()
        raw_public = private_key.public_key().public_bytes_raw()

        jwk_dict: dict[str, str | list[str]] = {
            "kty": "OKP",
            "crv": "Ed25519",
            "d": base64.urlsafe_b64encode(raw_private).rstrip(b"=").decode(),
            "x": base64.urlsafe_b64encode(raw_public).rstrip(b"=").decode(),
        }
        self._key = OKPKey.import_key(jwk_dict)

    def sign(self, payload: dict[str, Any]) -> str:
        """Create a JWS compact serialization token for the payload."""
        protected = {"alg": "EdDSA", "kid": self._key_id}
        payload_bytes = json.dumps(payload, separators=(",", ":"), sort_keys=True).encode()
        return jws.serialize_compact(protected, payload_bytes, self._key, algorithms=["EdDSA"])

    def verify(self, token: str) -> dict[str, Any]:
        """
        Verify a token and return its payload.

        Raises:
            InvalidUploadTokenError: malformed token, bad signature, or non-object payload
        """
        try:
            compact = jws.deserialize_compact(token, self._key, algorithms=["EdDSA"])
            payload = json.loads(compact.payload)
        except (JoseError, ValueError) as exc:
            raise InvalidUploadTokenError("Upload token could not be verified") from exc

        if not isinstance(payload, dict):
            raise InvalidUploadTokenError("Upload token payload must be a JSON object")
        return payload
