from __future__ import annotations

import base64
import hashlib
from pathlib import Path

import pytest
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import dsa, ec, ed25519
from cryptography.hazmat.primitives.asymmetric.types import PrivateKeyTypes

from appcast.core.result import Err, Ok
from appcast.services.signing import DSA_ATTRIBUTE, ED_ATTRIBUTE, sign_archive

PAYLOAD = b"PK\x03\x04 iSoul archive bytes" * 100


def _write_pem(path: Path, key: PrivateKeyTypes) -> Path:
    path.write_bytes(
        key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption(),
        )
    )
    return path


@pytest.fixture
def archive(tmp_path: Path) -> Path:
    path = tmp_path / "iSoul 1.2.3.zip"
    path.write_bytes(PAYLOAD)
    return path


class TestDsa:
    def test_signature_verifies_over_sha1_digest(self, tmp_path: Path, archive: Path) -> None:
        key = dsa.generate_private_key(key_size=2048)
        key_path = _write_pem(tmp_path / "dsa_priv.pem", key)

        result = sign_archive(archive, key_path)

        assert isinstance(result, Ok)
        assert result.value.attribute == DSA_ATTRIBUTE
        signature = base64.b64decode(result.value.value)
        digest = hashlib.sha1(PAYLOAD).digest()
        key.public_key().verify(signature, digest, hashes.SHA1())


class TestEd25519:
    def test_pem_key(self, tmp_path: Path, archive: Path) -> None:
        key = ed25519.Ed25519PrivateKey.generate()
        key_path = _write_pem(tmp_path / "ed_priv.pem", key)

        result = sign_archive(archive, key_path)

        assert isinstance(result, Ok)
        assert result.value.attribute == ED_ATTRIBUTE
        key.public_key().verify(base64.b64decode(result.value.value), PAYLOAD)

    def test_base64_seed_key(self, tmp_path: Path, archive: Path) -> None:
        key = ed25519.Ed25519PrivateKey.generate()
        seed = key.private_bytes(
            encoding=serialization.Encoding.Raw,
            format=serialization.PrivateFormat.Raw,
            encryption_algorithm=serialization.NoEncryption(),
        )
        key_path = tmp_path / "sparkle_private_key"
        key_path.write_text(base64.b64encode(seed).decode("ascii") + "\n", encoding="ascii")

        result = sign_archive(archive, key_path)

        assert isinstance(result, Ok)
        key.public_key().verify(base64.b64decode(result.value.value), PAYLOAD)

    def test_deterministic(self, tmp_path: Path, archive: Path) -> None:
        key_path = _write_pem(tmp_path / "ed_priv.pem", ed25519.Ed25519PrivateKey.generate())

        assert sign_archive(archive, key_path) == sign_archive(archive, key_path)


class TestKeyErrors:
    def test_missing_key(self, tmp_path: Path, archive: Path) -> None:
        result = sign_archive(archive, tmp_path / "dsa_priv.pem")

        assert isinstance(result, Err)
        assert result.error.kind == "key_missing"

    def test_unsupported_key_type(self, tmp_path: Path, archive: Path) -> None:
        key_path = _write_pem(tmp_path / "ec.pem", ec.generate_private_key(ec.SECP256R1()))

        result = sign_archive(archive, key_path)

        assert isinstance(result, Err)
        assert result.error.kind == "key_invalid"

    def test_garbage_key(self, tmp_path: Path, archive: Path) -> None:
        key_path = tmp_path / "dsa_priv.pem"
        key_path.write_text("not a key", encoding="utf-8")

        result = sign_archive(archive, key_path)

        assert isinstance(result, Err)
        assert result.error.kind == "key_invalid"

    def test_missing_archive(self, tmp_path: Path) -> None:
        key_path = _write_pem(tmp_path / "ed_priv.pem", ed25519.Ed25519PrivateKey.generate())

        result = sign_archive(tmp_path / "missing.zip", key_path)

        assert isinstance(result, Err)
        assert result.error.kind == "io_error"
