"""
Hashing and identity primitives shared by the registry and its merkle maps.

Everything that ends up inside a root is a field element (an int reduced
modulo the BN254 scalar field), so that roots, keys and message values can be
handled uniformly.
"""

from dataclasses import dataclass
from hashlib import sha256

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)

# BN254 scalar field modulus
FIELD_MODULUS = (
    21888242871839275222246405745257275088548364400416034343698204186575808495617
)


class Hash(bytes):
    def __new__(cls, dst, *data):
        assert isinstance(dst, bytes)
        h = sha256()
        h.update(dst)
        for d in data:
            h.update(d)
        return super().__new__(cls, h.digest())

    def __deepcopy__(self, memo):
        return self


def field(value: int) -> int:
    return value % FIELD_MODULUS


def is_field_element(value) -> bool:
    return isinstance(value, int) and 0 <= value < FIELD_MODULUS


def encode_field(value: int) -> bytes:
    return int.to_bytes(value, length=32, byteorder="big")


def field_hash(dst: bytes, *elements: int) -> int:
    """
    Domain separated hash of field elements, reduced back into the field.

    Every element is encoded as 32 big endian bytes so that the input framing
    is unambiguous.
    """
    digest = Hash(dst, *(encode_field(e) for e in elements))
    return field(int.from_bytes(digest, byteorder="big"))


def address_digest(public_key: bytes) -> int:
    """
    The key under which an identity is stored in the registry maps.
    """
    assert len(public_key) == 32, f"public key is {len(public_key)} bytes"
    return field(int.from_bytes(Hash(b"SPYMASTER_ADDRESS", public_key), "big"))


def whitelist_payload(key: int) -> bytes:
    """
    The bytes the admin signs to authorize whitelisting `key`.
    """
    return Hash(b"SPYMASTER_WHITELIST", encode_field(key))


def verify_signature(public_key: bytes, signature: bytes, payload: bytes) -> bool:
    if len(signature) != 64:
        return False
    try:
        Ed25519PublicKey.from_public_bytes(public_key).verify(signature, payload)
    except InvalidSignature:
        return False
    return True


@dataclass(frozen=True)
class Identity:
    private_key: Ed25519PrivateKey

    @staticmethod
    def generate() -> "Identity":
        return Identity(Ed25519PrivateKey.generate())

    @staticmethod
    def from_seed(seed: bytes) -> "Identity":
        return Identity(
            Ed25519PrivateKey.from_private_bytes(Hash(b"SPYMASTER_SEED", seed))
        )

    @property
    def public_key(self) -> Ed25519PublicKey:
        return self.private_key.public_key()

    @property
    def public_key_bytes(self) -> bytes:
        return self.public_key.public_bytes_raw()

    def sign(self, payload: bytes) -> bytes:
        return self.private_key.sign(payload)

    @property
    def digest(self) -> int:
        return address_digest(self.public_key_bytes)
