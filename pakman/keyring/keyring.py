"""Signing keyring — Ed25519 identities via PyNaCl (libsodium).

The package lifecycle needs exactly two capabilities from the keyring:
``Signer.sign`` (produce an armored detached signature at build time) and
``Keyring.verify`` (check one against the trusted public keys at install
time).  Key management (create, export, import, remove, list) supports the
CLI.

Directory layout::

    {root}/var/lib/pakman/keyring/
        secring.json   — key_id -> identity + hex seed (mode 0600)
        pubring.json   — key_id -> identity + hex public key (trusted keys)

A key id is the first 16 hex characters of SHA-256 over the hex public key.
"""

from __future__ import annotations

import hashlib
import json
import logging
from pathlib import Path
from typing import Protocol

import nacl.signing
from nacl.exceptions import BadSignatureError
from pydantic import BaseModel, ConfigDict
from pydantic import ValidationError as PydanticValidationError

from pakman.core.errors import (
    DuplicateError,
    IntegrityError,
    NotFoundError,
    StoreIOError,
    ValidationError,
)
from pakman.core.store import read_json, write_json_atomic
from pakman.keyring.armor import PUBLIC_KEY, SIGNATURE, armor, dearmor, dearmor_all

logger = logging.getLogger(__name__)

_SHORT_ID_LEN = 8


def key_fingerprint(public_key: str) -> str:
    """First 16 hex characters of SHA-256(public_key hex)."""
    return hashlib.sha256(public_key.encode("utf-8")).hexdigest()[:16]


class KeyIdentity(BaseModel):
    """Public half of a keyring entry."""

    model_config = ConfigDict(frozen=True)

    name: str
    email: str
    public_key: str  # hex, 32 bytes

    @property
    def key_id(self) -> str:
        return key_fingerprint(self.public_key)

    @property
    def short_id(self) -> str:
        return self.key_id[:_SHORT_ID_LEN]


class SecretKey(KeyIdentity):
    seed: str  # hex, 32 bytes


class Signer(Protocol):
    """Anything able to produce an armored detached signature."""

    def sign(self, data: bytes) -> str: ...


class SigningIdentity:
    """A secret key bound for signing — the object handed to the builder."""

    def __init__(self, secret: SecretKey) -> None:
        self._secret = secret
        self._signing_key = nacl.signing.SigningKey(bytes.fromhex(secret.seed))

    @property
    def identity(self) -> KeyIdentity:
        return KeyIdentity(
            name=self._secret.name,
            email=self._secret.email,
            public_key=self._secret.public_key,
        )

    def sign(self, data: bytes) -> str:
        """Return an ASCII-armored detached Ed25519 signature over *data*."""
        signature = self._signing_key.sign(data).signature
        return armor(SIGNATURE, signature, {"Key-Id": self._secret.key_id})


class Keyring:
    """File-backed keyring of secret signing keys and trusted public keys.

    Parameters
    ----------
    directory:
        Directory holding ``secring.json`` and ``pubring.json``.
    """

    def __init__(self, directory: Path) -> None:
        self._dir = Path(directory)
        self._secring_path = self._dir / "secring.json"
        self._pubring_path = self._dir / "pubring.json"

    # -- Loading ------------------------------------------------------------

    def _ensure_dir(self) -> None:
        try:
            self._dir.mkdir(mode=0o700, parents=True, exist_ok=True)
        except OSError as exc:
            raise StoreIOError(f"can't find or create keyring dir: {exc}") from exc

    def _load(self, path: Path, model: type[KeyIdentity]) -> dict[str, KeyIdentity]:
        raw = read_json(path, {})
        try:
            return {kid: model.model_validate(entry) for kid, entry in raw.items()}
        except (AttributeError, PydanticValidationError) as exc:
            raise StoreIOError(f"reading keyring {path}: {exc}") from exc

    def _save(self, path: Path, entries: dict[str, KeyIdentity]) -> None:
        self._ensure_dir()
        write_json_atomic(path, {kid: e.model_dump() for kid, e in entries.items()})

    def secret_keys(self) -> dict[str, SecretKey]:
        return self._load(self._secring_path, SecretKey)  # type: ignore[return-value]

    def public_keys(self) -> dict[str, KeyIdentity]:
        return self._load(self._pubring_path, KeyIdentity)

    # -- Key management -----------------------------------------------------

    def create(self, name: str, email: str) -> KeyIdentity:
        """Generate a fresh keypair; the public half becomes trusted too."""
        if not name:
            raise ValidationError("name cannot be empty")
        if not email:
            raise ValidationError("email cannot be empty")
        if any(c in email for c in "()<>\x00"):
            raise ValidationError(f"email {email!r} contains invalid chars")

        sk = nacl.signing.SigningKey.generate()
        secret = SecretKey(
            name=name,
            email=email,
            public_key=sk.verify_key.encode().hex(),
            seed=sk.encode().hex(),
        )

        secs = self.secret_keys()
        pubs = self.public_keys()
        secs[secret.key_id] = secret
        pubs[secret.key_id] = KeyIdentity(name=name, email=email, public_key=secret.public_key)
        self._save(self._secring_path, secs)
        self._save(self._pubring_path, pubs)
        logger.info("Created key %s for %s <%s>.", secret.short_id, name, email)
        return pubs[secret.key_id]

    def export(self, key: str) -> str:
        """Return the armored public key matching *key* (email or key id)."""
        identity = _find_key(self.public_keys(), key)
        payload = json.dumps(identity.model_dump(), sort_keys=True).encode("utf-8")
        return armor(PUBLIC_KEY, payload, {"Key-Id": identity.key_id})

    def import_key(self, armored: str) -> list[str]:
        """Trust every public key in *armored*; return the new key ids.

        Raises
        ------
        DuplicateError
            If every key in the input is already trusted.
        """
        incoming: list[KeyIdentity] = []
        for _headers, payload in dearmor_all(armored, PUBLIC_KEY):
            try:
                incoming.append(KeyIdentity.model_validate_json(payload))
            except PydanticValidationError as exc:
                raise ValidationError(f"reading armored public key: {exc}") from exc

        pubs = self.public_keys()
        fresh = [k for k in incoming if k.key_id not in pubs]
        if not fresh:
            raise DuplicateError("no new key material found")
        for k in fresh:
            pubs[k.key_id] = k
        self._save(self._pubring_path, pubs)
        logger.info("Imported %d public key(s).", len(fresh))
        return [k.key_id for k in fresh]

    def remove(self, key: str) -> KeyIdentity:
        """Stop trusting the public key matching *key*.

        Public keys that have a matching secret key are never removed.
        """
        pubs = self.public_keys()
        victim = _find_key(pubs, key)
        if victim.key_id in self.secret_keys():
            raise ValidationError(
                f"refusing to remove pubkey with matching privkey: {victim.short_id}"
            )
        del pubs[victim.key_id]
        self._save(self._pubring_path, pubs)
        logger.info("Removed public key %s.", victim.short_id)
        return victim

    def list_keys(self) -> tuple[list[KeyIdentity], list[KeyIdentity]]:
        """Return ``(secret identities, trusted public identities)``."""
        secs = [
            KeyIdentity(name=s.name, email=s.email, public_key=s.public_key)
            for s in self.secret_keys().values()
        ]
        return secs, list(self.public_keys().values())

    # -- Signing capabilities -----------------------------------------------

    def find_secret_identity(self, key: str) -> SigningIdentity:
        """Return a signer for the secret key matching *key* (email or key id)."""
        secret = _find_key(self.secret_keys(), key)
        return SigningIdentity(secret)  # type: ignore[arg-type]

    def verify(self, data: bytes, signature: str) -> KeyIdentity:
        """Check an armored detached *signature* over *data*.

        Returns the trusted identity that produced it.

        Raises
        ------
        IntegrityError
            If the signature is malformed, its key is not trusted, or the
            cryptographic check fails.
        """
        try:
            headers, sig_bytes = dearmor(signature, SIGNATURE)
        except ValidationError as exc:
            raise IntegrityError(f"check sig: {exc}") from exc

        pubs = self.public_keys()
        key_id = headers.get("Key-Id", "")
        candidates = [pubs[key_id]] if key_id in pubs else []
        if not candidates:
            raise IntegrityError(f"check sig: signing key {key_id or '?'} is not trusted")

        for identity in candidates:
            try:
                vk = nacl.signing.VerifyKey(bytes.fromhex(identity.public_key))
                vk.verify(data, sig_bytes)
            except (BadSignatureError, ValueError):
                continue
            logger.debug("Signature verified with key %s.", identity.short_id)
            return identity
        raise IntegrityError("check sig: signature verification failed")


def _find_key(entries: dict[str, KeyIdentity], key: str) -> KeyIdentity:
    """Locate an entry by email (contains ``@``) or by full/short key id."""
    if "@" in key:
        matches = [e for e in entries.values() if e.email == key]
        if len(matches) > 1:
            raise ValidationError("too many keys matched; try searching by key id?")
    else:
        matches = [
            e for kid, e in entries.items() if key in (kid, kid[:_SHORT_ID_LEN])
        ]
    if not matches:
        raise NotFoundError(f"key {key!r} not found")
    return matches[0]
