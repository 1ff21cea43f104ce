"""
Signing identity — secp256k1 keypair persisted as one hex line, ECDSA signing
and verification over SHA-256 digests.

Depends on: nothing
"""

import hashlib
import os
import sys
from dataclasses import dataclass

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.utils import (
    Prehashed,
    decode_dss_signature,
    encode_dss_signature,
)
from cryptography.hazmat.primitives.serialization import Encoding, PublicFormat

# Group order of secp256k1
CURVE_ORDER = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141
HALF_CURVE_ORDER = CURVE_ORDER // 2


class IdentityError(OSError):
    """The key file exists but cannot be read or does not hold a valid key."""


# =============================================================================
# Keypair
# =============================================================================

@dataclass(frozen=True)
class Identity:
    private_key: ec.EllipticCurvePrivateKey
    public_key: ec.EllipticCurvePublicKey

    @classmethod
    def generate(cls) -> "Identity":
        private_key = ec.generate_private_key(ec.SECP256K1())
        return cls(private_key, private_key.public_key())

    @classmethod
    def from_private_hex(cls, private_key_hex: str) -> "Identity":
        """Rebuild the keypair from a hex scalar (either case). Raises ValueError."""
        secret = int.from_bytes(bytes.fromhex(private_key_hex), "big")
        if not 0 < secret < CURVE_ORDER:
            raise ValueError("private key out of range")
        private_key = ec.derive_private_key(secret, ec.SECP256K1())
        return cls(private_key, private_key.public_key())

    @property
    def private_key_hex(self) -> str:
        return format(self.private_key.private_numbers().private_value, "064x")

    @property
    def public_key_bytes(self) -> bytes:
        """SEC1 compressed point, 33 bytes."""
        return self.public_key.public_bytes(Encoding.X962, PublicFormat.CompressedPoint)

    @property
    def public_key_hex(self) -> str:
        return self.public_key_bytes.hex()

    def sign(self, data: bytes) -> bytes:
        """DER-encoded low-S ECDSA signature over SHA-256(data)."""
        return sign_digest(self.private_key, hashlib.sha256(data).digest())


def load_or_create_identity(path: str) -> Identity:
    """Load the identity from path, creating and persisting a fresh one if absent.

    Only the first line of an existing file is used. Raises IdentityError if the
    file is present but unreadable or does not hold a valid private key.
    """
    if not os.path.exists(path):
        identity = Identity.generate()
        key_dir = os.path.dirname(path)
        try:
            if key_dir:
                os.makedirs(key_dir, exist_ok=True)
            # Created owner-only; never readable by others, even briefly
            fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o600)
            with os.fdopen(fd, "w") as f:
                f.write(identity.private_key_hex + "\n")
        except FileExistsError:
            # Lost a creation race; the winner's key is the identity
            return load_or_create_identity(path)
        except OSError as e:
            raise IdentityError(f"cannot create key file {path}: {e}") from e
        print(f"[Cartographer] Created fresh private key: {path}", file=sys.stderr)
        print(f"[Cartographer] Public key: {identity.public_key_hex}", file=sys.stderr)
        return identity

    try:
        with open(path, "r", encoding="utf-8") as f:
            line = f.readline().strip()
    except (OSError, UnicodeDecodeError) as e:
        raise IdentityError(f"cannot read key file {path}: {e}") from e
    try:
        identity = Identity.from_private_hex(line)
    except ValueError as e:
        raise IdentityError(f"key file {path} does not contain a valid private key: {e}") from e
    print(f"[Cartographer] Using public key: {identity.public_key_hex}", file=sys.stderr)
    return identity


# =============================================================================
# Signing & Verification
# =============================================================================

def sign_digest(private_key: ec.EllipticCurvePrivateKey, digest: bytes) -> bytes:
    """Sign a 32-byte SHA-256 digest. The result is canonical (low-S) DER."""
    der = private_key.sign(digest, ec.ECDSA(Prehashed(hashes.SHA256())))
    r, s = decode_dss_signature(der)
    if s > HALF_CURVE_ORDER:
        s = CURVE_ORDER - s
    return encode_dss_signature(r, s)


def load_public_key(public_key_bytes: bytes) -> ec.EllipticCurvePublicKey:
    """Parse a SEC1 (compressed or uncompressed) secp256k1 point. Raises ValueError."""
    return ec.EllipticCurvePublicKey.from_encoded_point(ec.SECP256K1(), public_key_bytes)


def verify_signature(public_key_bytes: bytes, signature: bytes, data: bytes) -> bool:
    """Verify a DER signature over SHA-256(data). Returns True if valid."""
    try:
        public_key = load_public_key(public_key_bytes)
        public_key.verify(
            signature,
            hashlib.sha256(data).digest(),
            ec.ECDSA(Prehashed(hashes.SHA256())),
        )
        return True
    except (InvalidSignature, ValueError):
        return False
