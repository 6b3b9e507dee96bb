"""
Vault Configuration: validated settings for new and existing vaults.

Settings come from ``NOTEVAULT_*`` environment variables (optionally via a
``.env`` file loaded by the CLI) and may be overridden on the command line.

KDF and cipher choices only apply when a vault is created. An existing vault
always re-derives with the parameters recorded in its own header.
"""
import os
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, field_validator

DEFAULT_VAULT_PATH = Path.home() / ".notevault"

SUPPORTED_KDFS = ("argon2id", "scrypt")
SUPPORTED_CIPHERS = ("aesgcm", "chacha20")


class VaultSettings(BaseModel):
    """Validated notevault configuration."""

    vault_path: Path = Field(default=DEFAULT_VAULT_PATH)
    kdf: str = Field(default="argon2id")
    cipher: str = Field(default="aesgcm")

    # Argon2id work parameters (memory_cost in KiB)
    argon2_time_cost: int = Field(default=3, ge=1)
    argon2_memory_cost: int = Field(default=65536, ge=8)
    argon2_parallelism: int = Field(default=4, ge=1)

    # scrypt work parameters
    scrypt_n: int = Field(default=2 ** 15, ge=2)
    scrypt_r: int = Field(default=8, ge=1)
    scrypt_p: int = Field(default=1, ge=1)

    min_password_length: int = Field(default=12, ge=1)
    log_dir: Optional[Path] = None
    content_delimiter: str = Field(default=".", min_length=1)

    @field_validator("kdf")
    @classmethod
    def validate_kdf(cls, v: str) -> str:
        """Validate KDF algorithm is supported."""
        v = v.lower()
        if v not in SUPPORTED_KDFS:
            raise ValueError(f"Unsupported KDF: {v}")
        return v

    @field_validator("cipher")
    @classmethod
    def validate_cipher(cls, v: str) -> str:
        """Validate cipher backend is supported."""
        v = v.lower()
        if v not in SUPPORTED_CIPHERS:
            raise ValueError(f"Unsupported cipher backend: {v}")
        return v

    @field_validator("scrypt_n")
    @classmethod
    def validate_scrypt_n(cls, v: int) -> int:
        """scrypt requires N to be a power of two."""
        if v & (v - 1):
            raise ValueError(f"scrypt_n must be a power of two, got {v}")
        return v

    @field_validator("vault_path", "log_dir")
    @classmethod
    def expand_user(cls, v: Optional[Path]) -> Optional[Path]:
        return v.expanduser() if v is not None else v

    @property
    def effective_log_dir(self) -> Path:
        """Audit log directory; defaults to ``<vault_path>/logs``."""
        return self.log_dir or self.vault_path / "logs"

    def kdf_params(self) -> dict:
        """Work parameters for the configured KDF, as recorded in a new vault."""
        if self.kdf == "scrypt":
            return {"n": self.scrypt_n, "r": self.scrypt_r, "p": self.scrypt_p}
        return {
            "time_cost": self.argon2_time_cost,
            "memory_cost": self.argon2_memory_cost,
            "parallelism": self.argon2_parallelism,
        }

    @classmethod
    def from_env(cls, **overrides) -> "VaultSettings":
        """Create VaultSettings from ``NOTEVAULT_*`` environment variables.

        Keyword overrides whose value is None are ignored, so CLI arguments
        can be passed straight through.

        Returns:
            Populated VaultSettings instance.
        """
        env_map = {
            "vault_path": "NOTEVAULT_PATH",
            "kdf": "NOTEVAULT_KDF",
            "cipher": "NOTEVAULT_CIPHER",
            "argon2_time_cost": "NOTEVAULT_ARGON2_TIME_COST",
            "argon2_memory_cost": "NOTEVAULT_ARGON2_MEMORY_COST",
            "argon2_parallelism": "NOTEVAULT_ARGON2_PARALLELISM",
            "scrypt_n": "NOTEVAULT_SCRYPT_N",
            "scrypt_r": "NOTEVAULT_SCRYPT_R",
            "scrypt_p": "NOTEVAULT_SCRYPT_P",
            "min_password_length": "NOTEVAULT_MIN_PASSWORD_LENGTH",
            "log_dir": "NOTEVAULT_LOG_DIR",
            "content_delimiter": "NOTEVAULT_DELIMITER",
        }
        values = {
            field: os.environ[var]
            for field, var in env_map.items()
            if os.environ.get(var)
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)
