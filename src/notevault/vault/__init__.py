# Vault Module - Encrypted Note Storage
#
# Master password -> memory-hard KDF -> 256-bit key
# Per-note authenticated encryption, one atomically written file per note

from .encryption import Cipher, KeyDeriver, SealedBox, verify_master_password
from .service import NoteService, Session, VaultState
from .store import NoteRecord, VaultHeader, VaultStore, validate_note_name

__all__ = [
    "Cipher",
    "KeyDeriver",
    "SealedBox",
    "verify_master_password",
    "NoteService",
    "Session",
    "VaultState",
    "NoteRecord",
    "VaultHeader",
    "VaultStore",
    "validate_note_name",
]
