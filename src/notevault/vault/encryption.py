# Vault - Encryption Service
#
# Master password -> encryption key (Argon2id or scrypt, memory-hard)
# Key verifier (HMAC-SHA256 of a fixed constant under the derived key)
# Note encryption (AES-256-GCM or ChaCha20-Poly1305, fresh nonce per seal)

import os
from dataclasses import dataclass
from typing import Dict, Optional, Tuple, Union

from argon2.low_level import Type, hash_secret_raw
from cryptography.exceptions import InvalidSignature, InvalidTag
from cryptography.hazmat.primitives import hashes, hmac
from cryptography.hazmat.primitives.ciphers.aead import AESGCM, ChaCha20Poly1305
from cryptography.hazmat.primitives.kdf.scrypt import Scrypt

from ..errors import AuthenticationFailure, InvalidInput

KeyBytes = Union[bytes, bytearray]


class KeyDeriver:
    """
    Derives the vault key from the master password.

    Flow:
    1. User enters master password
    2. Memory-hard KDF derives a 256-bit key from password + vault salt
    3. HMAC of a fixed constant under that key is compared with the stored
       verifier before the key is trusted for decryption

    Work parameters are recorded in the vault header, so the same password
    and salt always reproduce the same key.
    """

    KEY_LENGTH = 32  # 256 bits
    SALT_LENGTH = 32  # 256-bit salt
    VERIFIER_LENGTH = 32  # HMAC-SHA256 output
    VERIFIER_CONSTANT = b"notevault/key-verifier/v1"

    DEFAULT_PARAMS: Dict[str, Dict[str, int]] = {
        # RFC 9106 second recommendation, 64 MiB
        "argon2id": {"time_cost": 3, "memory_cost": 65536, "parallelism": 4},
        "scrypt": {"n": 2 ** 15, "r": 8, "p": 1},
    }

    def __init__(self, algorithm: str = "argon2id", params: Optional[Dict[str, int]] = None):
        if algorithm not in self.DEFAULT_PARAMS:
            raise InvalidInput(f"Unsupported KDF: {algorithm}")
        merged = dict(self.DEFAULT_PARAMS[algorithm])
        if params:
            unknown = set(params) - set(merged)
            if unknown:
                raise InvalidInput(f"Unknown {algorithm} parameter(s): {sorted(unknown)}")
            merged.update({k: int(v) for k, v in params.items()})
        self.check_params(algorithm, merged)
        self.algorithm = algorithm
        self.params = merged

    @staticmethod
    def check_params(algorithm: str, params: Dict[str, int]) -> None:
        """
        Reject work parameters the KDF backend would refuse.

        Raises:
            InvalidInput: A parameter is out of range.
        """
        if any(v < 1 for v in params.values()):
            raise InvalidInput(f"{algorithm} parameters must be positive: {params}")
        if algorithm == "scrypt":
            n = params["n"]
            if n < 2 or n & (n - 1):
                raise InvalidInput(f"scrypt n must be a power of two, got {n}")
        elif params["memory_cost"] < 8 * params["parallelism"]:
            raise InvalidInput("argon2 memory_cost must be at least 8 * parallelism")

    @classmethod
    def from_settings(cls, settings) -> "KeyDeriver":
        """Build a deriver for a new vault from VaultSettings."""
        return cls(settings.kdf, settings.kdf_params())

    def derive(self, password: str, salt: bytes) -> bytearray:
        """
        Derive the encryption key from the master password.

        Args:
            password: User's master password
            salt: Vault salt (stored in the vault header)

        Returns:
            256-bit key in a mutable buffer so the session can zero it
        """
        secret = password.encode("utf-8")
        if self.algorithm == "scrypt":
            kdf = Scrypt(
                salt=salt,
                length=self.KEY_LENGTH,
                n=self.params["n"],
                r=self.params["r"],
                p=self.params["p"],
            )
            return bytearray(kdf.derive(secret))

        return bytearray(hash_secret_raw(
            secret=secret,
            salt=salt,
            time_cost=self.params["time_cost"],
            memory_cost=self.params["memory_cost"],
            parallelism=self.params["parallelism"],
            hash_len=self.KEY_LENGTH,
            type=Type.ID,
        ))

    @staticmethod
    def generate_salt() -> bytes:
        """Generate cryptographically random salt."""
        return os.urandom(KeyDeriver.SALT_LENGTH)

    @staticmethod
    def initialize_verifier(key: KeyBytes) -> bytes:
        """Compute the verifier stored in the vault header for this key."""
        h = hmac.HMAC(bytes(key), hashes.SHA256())
        h.update(KeyDeriver.VERIFIER_CONSTANT)
        return h.finalize()

    @staticmethod
    def check_verifier(key: KeyBytes, verifier: bytes) -> bool:
        """Recompute the verifier for ``key`` and compare in constant time."""
        h = hmac.HMAC(bytes(key), hashes.SHA256())
        h.update(KeyDeriver.VERIFIER_CONSTANT)
        try:
            h.verify(verifier)
        except InvalidSignature:
            return False
        return True


@dataclass(frozen=True)
class SealedBox:
    """Output of one seal: everything needed to open it again (besides the key)."""
    nonce: bytes
    ciphertext: bytes
    tag: bytes


class Cipher:
    """
    Authenticated encryption of note contents.

    Each seal draws a fresh 96-bit nonce from the OS CSPRNG; the nonce is
    never supplied by the caller, so it cannot be reused by mistake.
    Collision probability stays negligible far beyond the number of notes a
    single vault will ever hold.
    """

    NONCE_LENGTH = 12  # 96-bit nonce (GCM / ChaCha20-Poly1305)
    TAG_LENGTH = 16  # 128-bit authentication tag

    BACKENDS = {
        "aesgcm": AESGCM,
        "chacha20": ChaCha20Poly1305,
    }

    def __init__(self, backend: str = "aesgcm"):
        if backend not in self.BACKENDS:
            raise InvalidInput(f"Unsupported cipher backend: {backend}")
        self.backend = backend
        self._aead_cls = self.BACKENDS[backend]

    def seal(self, key: KeyBytes, plaintext: bytes, associated_data: bytes = b"") -> SealedBox:
        """
        Encrypt and authenticate ``plaintext``.

        Args:
            key: 256-bit key (from KeyDeriver.derive)
            plaintext: Note contents
            associated_data: Authenticated but unencrypted context (note name)

        Returns:
            SealedBox with nonce, ciphertext and detached tag
        """
        nonce = os.urandom(self.NONCE_LENGTH)
        aead = self._aead_cls(bytes(key))
        combined = aead.encrypt(nonce, plaintext, associated_data)

        return SealedBox(
            nonce=nonce,
            ciphertext=combined[:-self.TAG_LENGTH],
            tag=combined[-self.TAG_LENGTH:],
        )

    def open(
        self,
        key: KeyBytes,
        nonce: bytes,
        ciphertext: bytes,
        tag: bytes,
        associated_data: bytes = b"",
    ) -> bytes:
        """
        Verify and decrypt.

        Raises:
            AuthenticationFailure: On any tag mismatch, malformed nonce/tag,
                or wrong key. No partial plaintext is returned.
        """
        if len(nonce) != self.NONCE_LENGTH or len(tag) != self.TAG_LENGTH:
            raise AuthenticationFailure("Authentication failed: malformed nonce or tag")

        aead = self._aead_cls(bytes(key))
        try:
            return aead.decrypt(nonce, ciphertext + tag, associated_data)
        except InvalidTag as err:
            raise AuthenticationFailure() from err


COMMON_PASSWORDS = frozenset({
    "password123", "Password123", "Admin123456",
    "Welcome12345", "Passw0rd123", "123456789012",
    "Password1234", "Qwerty123456",
})


def verify_master_password(password: str, min_length: int = 12) -> Tuple[bool, str]:
    """
    Verify a new master password meets strength requirements.

    Requirements:
    - At least ``min_length`` characters
    - Mix of uppercase, lowercase, numbers
    - Not a common weak password

    Returns:
        (is_valid, error_message)
    """
    if len(password) < min_length:
        return False, f"Master password must be at least {min_length} characters long"

    if not any(c.isupper() for c in password):
        return False, "Master password must contain at least one uppercase letter"

    if not any(c.islower() for c in password):
        return False, "Master password must contain at least one lowercase letter"

    if not any(c.isdigit() for c in password):
        return False, "Master password must contain at least one number"

    if password in COMMON_PASSWORDS:
        return False, "This password is too common. Please choose a stronger password."

    return True, ""
