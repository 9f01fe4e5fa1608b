"""Ed25519 keyring: signing identities and trusted public keys."""

from pakman.keyring.keyring import KeyIdentity, Keyring, Signer, SigningIdentity, key_fingerprint

__all__ = ["Keyring", "KeyIdentity", "Signer", "SigningIdentity", "key_fingerprint"]
