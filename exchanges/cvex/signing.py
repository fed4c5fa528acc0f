"""
Ed25519 request signing for the CVEX trading API.

The venue identifies an account by the raw 32-byte Ed25519 public key
(the tail of its DER SubjectPublicKeyInfo encoding) and authenticates every
mutating request with a signature over::

    SHA256("{METHOD} {URL}\\n{BODY}")

The digest is signed with pure Ed25519 (no pre-hash variant), which is what
``Ed25519PrivateKey.sign`` implements. BODY must be the exact text that goes
on the wire.
"""

from __future__ import annotations

import hashlib
import logging
import threading
from pathlib import Path
from typing import Union

from cryptography.exceptions import InvalidSignature, UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)

logger = logging.getLogger(__name__)

IDENTITY_LENGTH = 32

KeyLike = Union[Ed25519PrivateKey, bytes, str, None]


class SigningError(RuntimeError):
    """Base class for identity and signature failures."""


class KeyUnavailableError(SigningError):
    """Raised when no private key material is available."""


class KeyFormatError(SigningError):
    """Raised when key material cannot be parsed as an Ed25519 private key."""


def load_private_key(pem: bytes | str | None, password: bytes | None = None) -> Ed25519PrivateKey:
    """Parse a PEM encoded (PKCS#8) Ed25519 private key."""
    if pem is None or not pem.strip():
        raise KeyUnavailableError("Private key material is empty")
    data = pem.encode("utf-8") if isinstance(pem, str) else pem
    try:
        key = serialization.load_pem_private_key(data, password=password)
    except (ValueError, TypeError, UnsupportedAlgorithm):
        # The parser message may echo input; keep it out of the error.
        raise KeyFormatError("Private key is not a valid PEM encoded key") from None
    if not isinstance(key, Ed25519PrivateKey):
        raise KeyFormatError(f"Expected an Ed25519 private key, got {type(key).__name__}")
    return key


def load_private_key_file(path: Path | str | None, password: bytes | None = None) -> Ed25519PrivateKey:
    """Read and parse the private key file configured for the operator."""
    if not path:
        raise KeyUnavailableError("Private key path is not configured")
    key_path = Path(path).expanduser()
    try:
        pem = key_path.read_bytes()
    except FileNotFoundError:
        raise KeyUnavailableError(f"Private key file not found: {key_path}") from None
    except OSError as exc:
        raise KeyUnavailableError(f"Private key file unreadable: {key_path} ({exc.strerror})") from None
    return load_private_key(pem, password=password)


def derive_identity(key: KeyLike) -> bytes:
    """Return the 32-byte account identity for a private key (object or PEM)."""
    private_key = _coerce_key(key)
    der = private_key.public_key().public_bytes(
        encoding=serialization.Encoding.DER,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )
    return der[-IDENTITY_LENGTH:]


def canonical_message(method: str, url: str, body: str | None) -> bytes:
    return f"{method.upper()} {url}\n{body or ''}".encode("utf-8")


def sign(key: KeyLike, method: str, url: str, body: str | None) -> str:
    """Sign the canonical request and return the hex encoded signature."""
    private_key = _coerce_key(key)
    digest = hashlib.sha256(canonical_message(method, url, body)).digest()
    return private_key.sign(digest).hex()


def verify(identity: bytes | str, signature: str, method: str, url: str, body: str | None) -> bool:
    """Check a hex signature against a raw or hex encoded identity."""
    raw_identity = bytes.fromhex(identity) if isinstance(identity, str) else identity
    try:
        public_key = Ed25519PublicKey.from_public_bytes(raw_identity)
        digest = hashlib.sha256(canonical_message(method, url, body)).digest()
        public_key.verify(bytes.fromhex(signature), digest)
    except (InvalidSignature, ValueError):
        return False
    return True


def _coerce_key(key: KeyLike) -> Ed25519PrivateKey:
    if isinstance(key, Ed25519PrivateKey):
        return key
    if key is None:
        raise KeyUnavailableError("No private key supplied")
    if isinstance(key, (bytes, str)):
        return load_private_key(key)
    raise KeyFormatError(f"Unsupported key type {type(key).__name__}")


class RequestSigner:
    """
    Holds the operator's private key and signs outgoing requests.

    Signing is a pure function of its inputs, so concurrent callers only need
    a consistent reference to the key. ``reload`` parses the replacement key
    before swapping the reference under a lock; signs that already captured
    the previous key finish with it.
    """

    def __init__(
        self,
        key: Ed25519PrivateKey | None = None,
        *,
        key_path: Path | str | None = None,
        password: bytes | None = None,
    ) -> None:
        self._key_path = key_path
        self._password = password
        self._lock = threading.Lock()
        if key is None:
            key = load_private_key_file(key_path, password=password)
        self._key = key
        self._identity = derive_identity(key)

    @classmethod
    def from_file(cls, path: Path | str | None, password: bytes | None = None) -> "RequestSigner":
        return cls(key_path=path, password=password)

    @property
    def identity(self) -> bytes:
        with self._lock:
            return self._identity

    @property
    def identity_hex(self) -> str:
        return self.identity.hex()

    def sign_request(self, method: str, url: str, body: str | None) -> tuple[str, str]:
        """Return ``(identity_hex, signature_hex)`` for the request."""
        with self._lock:
            key, identity = self._key, self._identity
        signature = sign(key, method, url, body)
        logger.debug("Signed %s %s for identity %s", method.upper(), url, identity.hex())
        return identity.hex(), signature

    def reload(self, key_path: Path | str | None = None) -> None:
        """Re-read the key file (or a new path) and rotate the active key."""
        path = key_path or self._key_path
        key = load_private_key_file(path, password=self._password)
        identity = derive_identity(key)
        with self._lock:
            self._key = key
            self._identity = identity
            self._key_path = path
        logger.info("Signing key reloaded; identity %s", identity.hex())
