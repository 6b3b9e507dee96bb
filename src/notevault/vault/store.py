# Vault - Store
#
# On-disk layout of a vault directory:
#
#   <vault>/vault.json          header: salt, KDF parameters, cipher, key verifier
#   <vault>/notes/<name>.json   one encrypted note record per file
#
# Every write goes to a temp file in the same directory, is fsynced, then
# renamed over the target with os.replace. A crash at any point leaves
# either the old file or the new one, never a partial record.

import base64
import binascii
import json
import logging
import os
import tempfile
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List

from ..errors import (
    AlreadyExists,
    AuthenticationFailure,
    InvalidInput,
    NotFound,
    StorageIO,
    VaultNotFound,
)
from .encryption import Cipher, KeyDeriver

logger = logging.getLogger(__name__)

FORMAT_NAME = "notevault"
FORMAT_VERSION = 1

HEADER_FILE = "vault.json"
NOTES_DIR = "notes"
RECORD_SUFFIX = ".json"
TEMP_SUFFIX = ".tmp"

# Keeps "<name>.json" and its temp file name under the usual 255-byte NAME_MAX
MAX_NAME_BYTES = 200
_FORBIDDEN_NAME_CHARS = ("/", "\\", "\x00")


def encode_for_storage(data: bytes) -> str:
    """Encode binary data for JSON storage (base64)."""
    return base64.b64encode(data).decode("ascii")


def decode_from_storage(data: str) -> bytes:
    """Decode base64-encoded data from a vault file."""
    return base64.b64decode(data.encode("ascii"), validate=True)


def utcnow() -> str:
    return datetime.now(timezone.utc).isoformat()


def validate_note_name(name: str) -> str:
    """
    Validate a note name before it is turned into a file path.

    Raises:
        InvalidInput: If name is empty, too long, not printable, contains a
            path separator or NUL, or starts with '.'.
    """
    if not isinstance(name, str) or not name:
        raise InvalidInput("Note name cannot be empty")
    if len(name.encode("utf-8")) > MAX_NAME_BYTES:
        raise InvalidInput(f"Note name cannot exceed {MAX_NAME_BYTES} bytes")
    if any(c in name for c in _FORBIDDEN_NAME_CHARS):
        raise InvalidInput("Note name cannot contain path separators")
    if not name.isprintable():
        raise InvalidInput("Note name must be printable")
    if name.startswith("."):
        raise InvalidInput("Note name cannot start with '.'")
    if name != name.strip():
        raise InvalidInput("Note name cannot start or end with whitespace")
    return name


@dataclass
class VaultHeader:
    """Per-vault metadata needed to re-derive and verify the key."""

    salt: bytes
    kdf: str
    kdf_params: Dict[str, int]
    cipher: str
    verifier: bytes
    created_at: str = field(default_factory=utcnow)
    version: int = FORMAT_VERSION

    def to_dict(self) -> Dict[str, Any]:
        return {
            "format": FORMAT_NAME,
            "version": self.version,
            "salt": encode_for_storage(self.salt),
            "kdf": {"algorithm": self.kdf, "params": dict(self.kdf_params)},
            "cipher": self.cipher,
            "verifier": encode_for_storage(self.verifier),
            "created_at": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "VaultHeader":
        if data.get("format") != FORMAT_NAME:
            raise ValueError("not a notevault header")
        if data.get("version") != FORMAT_VERSION:
            raise ValueError(f"unsupported vault version: {data.get('version')}")
        header = cls(
            salt=decode_from_storage(data["salt"]),
            kdf=data["kdf"]["algorithm"],
            kdf_params={k: int(v) for k, v in data["kdf"]["params"].items()},
            cipher=data["cipher"],
            verifier=decode_from_storage(data["verifier"]),
            created_at=data["created_at"],
            version=data["version"],
        )
        header.validate()
        return header

    def validate(self) -> None:
        """
        Check that the header describes a vault this version can open.

        Raises:
            ValueError: Unknown KDF or cipher, bad KDF parameters, or a salt
                or verifier of the wrong length.
        """
        defaults = KeyDeriver.DEFAULT_PARAMS.get(self.kdf)
        if defaults is None:
            raise ValueError(f"unknown KDF: {self.kdf!r}")
        if set(self.kdf_params) != set(defaults):
            raise ValueError(f"bad {self.kdf} parameters: {sorted(self.kdf_params)}")
        try:
            KeyDeriver.check_params(self.kdf, self.kdf_params)
        except InvalidInput as err:
            raise ValueError(str(err)) from err
        if self.cipher not in Cipher.BACKENDS:
            raise ValueError(f"unknown cipher: {self.cipher!r}")
        if len(self.salt) != KeyDeriver.SALT_LENGTH:
            raise ValueError(f"salt must be {KeyDeriver.SALT_LENGTH} bytes")
        if len(self.verifier) != KeyDeriver.VERIFIER_LENGTH:
            raise ValueError(f"verifier must be {KeyDeriver.VERIFIER_LENGTH} bytes")


@dataclass
class NoteRecord:
    """One encrypted note as persisted in the vault."""

    name: str
    nonce: bytes
    ciphertext: bytes
    tag: bytes
    created_at: str = field(default_factory=utcnow)
    modified_at: str = field(default_factory=utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "nonce": encode_for_storage(self.nonce),
            "ciphertext": encode_for_storage(self.ciphertext),
            "tag": encode_for_storage(self.tag),
            "created_at": self.created_at,
            "modified_at": self.modified_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "NoteRecord":
        return cls(
            name=data["name"],
            nonce=decode_from_storage(data["nonce"]),
            ciphertext=decode_from_storage(data["ciphertext"]),
            tag=decode_from_storage(data["tag"]),
            created_at=data["created_at"],
            modified_at=data["modified_at"],
        )


class VaultStore:
    """
    File-backed store for the vault header and encrypted note records.

    Single process, single session: there is no cross-process locking.
    All OS errors surface as StorageIO.

    Args:
        root: Vault directory. Created on initialize().
    """

    def __init__(self, root: Path):
        self.root = Path(root)
        self.header_path = self.root / HEADER_FILE
        self.notes_dir = self.root / NOTES_DIR

    def __repr__(self) -> str:
        return f"<VaultStore root={str(self.root)!r}>"

    # ------------------------------------------------------------------
    # Vault header
    # ------------------------------------------------------------------

    def exists(self) -> bool:
        """True if a vault header is present at this location."""
        try:
            return self.header_path.is_file()
        except OSError as err:
            raise StorageIO(f"Cannot access vault at {self.root}: {err.strerror}") from err

    def load(self) -> VaultHeader:
        """
        Read the vault header and clear temp files left by interrupted writes.

        Raises:
            VaultNotFound: No header at this location.
            StorageIO: Header unreadable or malformed.
        """
        try:
            raw = self.header_path.read_bytes()
        except FileNotFoundError as err:
            raise VaultNotFound(str(self.root)) from err
        except OSError as err:
            raise StorageIO(f"Cannot read vault header: {err.strerror}") from err

        try:
            header = VaultHeader.from_dict(json.loads(raw))
        except (ValueError, KeyError, TypeError, AttributeError, binascii.Error) as err:
            raise StorageIO(f"Vault header is corrupted: {err}") from err

        self._sweep_temp_files()
        logger.debug("Loaded vault header from %s", self.root)
        return header

    def initialize(self, header: VaultHeader) -> VaultHeader:
        """
        Create the vault directory and write its header.

        Raises:
            AlreadyExists: A header is already present.
            StorageIO: Directory or header could not be written.
        """
        if self.exists():
            raise AlreadyExists(str(self.root), f"Vault already exists at {self.root}")

        try:
            self.root.mkdir(mode=0o700, parents=True, exist_ok=True)
            # The audit log may have created the directory already
            os.chmod(self.root, 0o700)
            self.notes_dir.mkdir(mode=0o700, exist_ok=True)
            self._atomic_write(self.header_path, self._dump(header.to_dict()))
        except OSError as err:
            raise StorageIO(f"Failed to create vault: {err.strerror}") from err

        logger.debug("Initialized vault at %s", self.root)
        return header

    # ------------------------------------------------------------------
    # Note records
    # ------------------------------------------------------------------

    def _record_path(self, name: str) -> Path:
        return self.notes_dir / f"{validate_note_name(name)}{RECORD_SUFFIX}"

    def contains(self, name: str) -> bool:
        try:
            return self._record_path(name).is_file()
        except OSError as err:
            raise StorageIO(f"Cannot access note {name}: {err.strerror}") from err

    def get(self, name: str) -> NoteRecord:
        """
        Read one note record.

        Raises:
            NotFound: No record with this name.
            AuthenticationFailure: Record file exists but is malformed.
            StorageIO: Record unreadable.
        """
        path = self._record_path(name)
        try:
            raw = path.read_bytes()
        except FileNotFoundError as err:
            raise NotFound(name) from err
        except OSError as err:
            raise StorageIO(f"Cannot read note {name}: {err.strerror}") from err

        try:
            return NoteRecord.from_dict(json.loads(raw))
        except (ValueError, KeyError, TypeError, AttributeError, binascii.Error) as err:
            raise AuthenticationFailure(f"Note record is corrupted: {name}") from err

    def put(self, record: NoteRecord) -> None:
        """Insert or overwrite a note record atomically."""
        path = self._record_path(record.name)
        try:
            self.notes_dir.mkdir(mode=0o700, parents=True, exist_ok=True)
            self._atomic_write(path, self._dump(record.to_dict()))
        except OSError as err:
            raise StorageIO(f"Failed to write note {record.name}: {err.strerror}") from err
        logger.debug("Wrote note record %s", record.name)

    def delete(self, name: str) -> None:
        """
        Remove a note record.

        Raises:
            NotFound: No record with this name.
        """
        path = self._record_path(name)
        try:
            path.unlink()
            self._fsync_dir(self.notes_dir)
        except FileNotFoundError as err:
            raise NotFound(name) from err
        except OSError as err:
            raise StorageIO(f"Failed to delete note {name}: {err.strerror}") from err
        logger.debug("Deleted note record %s", name)

    def list(self) -> List[str]:
        """Names of all stored notes, sorted."""
        try:
            entries = list(self.notes_dir.iterdir())
        except FileNotFoundError:
            return []
        except OSError as err:
            raise StorageIO(f"Cannot list notes: {err.strerror}") from err

        return sorted(
            p.name[:-len(RECORD_SUFFIX)]
            for p in entries
            if p.name.endswith(RECORD_SUFFIX) and not p.name.startswith(".")
        )

    # ------------------------------------------------------------------
    # Write discipline
    # ------------------------------------------------------------------

    @staticmethod
    def _dump(data: Dict[str, Any]) -> bytes:
        return json.dumps(data, indent=2, sort_keys=True).encode("utf-8")

    def _atomic_write(self, path: Path, data: bytes) -> None:
        """Write ``data`` to ``path`` via temp file + fsync + os.replace."""
        # mkstemp creates the file with mode 0600
        fd, tmp_path = tempfile.mkstemp(
            dir=path.parent, prefix=f".{path.name}.", suffix=TEMP_SUFFIX,
        )
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, path)
        except BaseException:
            # Clean up temp file on failure
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise
        self._fsync_dir(path.parent)

    @staticmethod
    def _fsync_dir(directory: Path) -> None:
        """Persist a rename or unlink in ``directory`` (POSIX only)."""
        if os.name != "posix":
            return
        fd = os.open(directory, os.O_RDONLY)
        try:
            os.fsync(fd)
        finally:
            os.close(fd)

    def _sweep_temp_files(self) -> None:
        """Remove temp files orphaned by a crash between write and rename."""
        for directory in (self.root, self.notes_dir):
            try:
                stale = [
                    p for p in directory.iterdir()
                    if p.name.startswith(".") and p.name.endswith(TEMP_SUFFIX)
                ]
            except FileNotFoundError:
                continue
            except OSError as err:
                raise StorageIO(f"Cannot scan {directory}: {err.strerror}") from err
            for path in stale:
                try:
                    path.unlink()
                except FileNotFoundError:
                    continue
                except OSError as err:
                    raise StorageIO(f"Cannot remove stale temp file: {err.strerror}") from err
                logger.info("Removed stale temp file %s", path.name)
