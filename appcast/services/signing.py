"""Sparkle archive signatures.

Two key types are understood:

- DSA (``dsa_priv.pem``): Sparkle's legacy scheme. The archive's SHA-1
  digest is itself signed with DSA/SHA-1, matching
  ``openssl dgst -sha1 -binary < archive | openssl dgst -sha1 -sign dsa_priv.pem``.
  Goes in ``sparkle:dsaSignature``.
- Ed25519, either as a PEM private key or as the base64 seed exported by
  Sparkle's ``generate_keys -x``. The archive bytes are signed directly.
  Goes in ``sparkle:edSignature``.

Both signatures are base64 encoded.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
from pathlib import Path

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import dsa, ed25519

from appcast.core.result import Err, Ok, Result
from appcast.services.errors import ReleaseError
from appcast.services.model import Signature

__all__ = ["DSA_ATTRIBUTE", "ED_ATTRIBUTE", "load_signing_key", "sign_archive"]

DSA_ATTRIBUTE = "dsaSignature"
ED_ATTRIBUTE = "edSignature"

_ED25519_SEED_SIZE = 32

SigningKey = dsa.DSAPrivateKey | ed25519.Ed25519PrivateKey


def _sha1_file(path: Path) -> bytes:
    h = hashlib.sha1()
    with path.open("rb") as f:
        for chunk in iter(lambda: f.read(1024 * 1024), b""):
            h.update(chunk)
    return h.digest()


def _invalid(key_path: Path, reason: str) -> Err[ReleaseError]:
    return Err(ReleaseError(kind="key_invalid", message=f"{key_path}: {reason}"))


def load_signing_key(key_path: Path) -> Result[SigningKey, ReleaseError]:
    if not key_path.is_file():
        return Err(ReleaseError(kind="key_missing", message=f"Unable to find {key_path}!"))

    try:
        raw = key_path.read_bytes()
    except OSError as e:
        return _invalid(key_path, str(e))

    if b"-----BEGIN" in raw:
        try:
            key = serialization.load_pem_private_key(raw, password=None)
        except (ValueError, TypeError, UnsupportedAlgorithm) as e:
            return _invalid(key_path, f"cannot load PEM key ({e})")
        if isinstance(key, (dsa.DSAPrivateKey, ed25519.Ed25519PrivateKey)):
            return Ok(key)
        return _invalid(key_path, f"unsupported key type {type(key).__name__}")

    try:
        seed = base64.b64decode(raw.strip(), validate=True)
    except binascii.Error:
        return _invalid(key_path, "neither a PEM key nor a base64 Ed25519 seed")
    if len(seed) != _ED25519_SEED_SIZE:
        return _invalid(key_path, f"expected a {_ED25519_SEED_SIZE}-byte Ed25519 seed")
    return Ok(ed25519.Ed25519PrivateKey.from_private_bytes(seed))


def sign_archive(path: Path, key_path: Path) -> Result[Signature, ReleaseError]:
    """Sign the full contents of path with the private key at key_path."""
    key = load_signing_key(key_path)
    if isinstance(key, Err):
        return key

    try:
        if isinstance(key.value, dsa.DSAPrivateKey):
            raw_sig = key.value.sign(_sha1_file(path), hashes.SHA1())
            attribute = DSA_ATTRIBUTE
        else:
            raw_sig = key.value.sign(path.read_bytes())
            attribute = ED_ATTRIBUTE
    except OSError as e:
        return Err(ReleaseError(kind="io_error", message=f"cannot read {path}: {e}"))

    return Ok(Signature(attribute=attribute, value=base64.b64encode(raw_sig).decode("ascii")))
