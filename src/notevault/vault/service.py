# Vault - Note Service
#
# Session state machine over the vault:
#
#   LOCKED --unlock(password)--> UNLOCKED --lock()--> LOCKED
#
# The derived key lives only inside a Session and is zeroed on lock.
# Note operations raise NotUnlocked unless a session is open.

import logging
import time
from enum import Enum
from typing import Callable, List, Optional

from ..config import VaultSettings
from ..core import EventSeverity, EventType, get_audit_logger
from ..errors import (
    AlreadyExists,
    AuthenticationFailure,
    InvalidInput,
    NoteVaultError,
    NotUnlocked,
    StorageIO,
    UnlockThrottled,
    WrongPassword,
)
from .encryption import Cipher, KeyDeriver, verify_master_password
from .store import NoteRecord, VaultHeader, VaultStore, utcnow, validate_note_name

logger = logging.getLogger(__name__)


class VaultState(str, Enum):
    LOCKED = "locked"
    UNLOCKED = "unlocked"


def wipe(buffer: bytearray) -> None:
    """Overwrite a key buffer in place."""
    for i in range(len(buffer)):
        buffer[i] = 0


class Session:
    """Owns the derived key between unlock and lock."""

    def __init__(self, key: bytearray):
        self._key: Optional[bytearray] = key

    @property
    def active(self) -> bool:
        return self._key is not None

    @property
    def key(self) -> bytearray:
        if self._key is None:
            raise NotUnlocked()
        return self._key

    def close(self) -> None:
        """Overwrite the key buffer and drop it."""
        if self._key is not None:
            wipe(self._key)
            self._key = None

    def __repr__(self) -> str:
        return f"<Session active={self.active}>"


class NoteService:
    """
    Create, view, edit and delete encrypted notes.

    Security:
    - Master password never stored (only salt + verifier)
    - Wrong passwords detected via the key verifier, before any decryption
    - Each note sealed with a fresh nonce; note name bound as associated data
    - Exponential backoff after repeated failed unlocks
    - Audit logging for every vault and note operation

    Args:
        store: Vault storage location
        settings: Parameters used when creating a new vault
        clock: Monotonic clock, injectable for tests
    """

    MAX_BACKOFF_SECONDS = 16

    def __init__(
        self,
        store: VaultStore,
        settings: Optional[VaultSettings] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.store = store
        self.settings = settings or VaultSettings(vault_path=store.root)
        self._clock = clock

        self._header: Optional[VaultHeader] = None
        self._cipher: Optional[Cipher] = None
        self._session: Optional[Session] = None

        # Rate limiting for unlock attempts
        self.failed_attempts = 0
        self.lockout_until: Optional[float] = None

        self.logger = get_audit_logger()

    def __enter__(self) -> "NoteService":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.lock()

    # ------------------------------------------------------------------
    # State machine
    # ------------------------------------------------------------------

    @property
    def state(self) -> VaultState:
        if self._session is not None and self._session.active:
            return VaultState.UNLOCKED
        return VaultState.LOCKED

    @property
    def is_unlocked(self) -> bool:
        return self.state is VaultState.UNLOCKED

    def vault_exists(self) -> bool:
        return self.store.exists()

    def initialize(self, master_password: str) -> None:
        """
        Create a new vault protected by ``master_password`` and unlock it.

        Raises:
            InvalidInput: Password fails the strength policy.
            AlreadyExists: A vault already exists at this location.
            StorageIO: Vault could not be written.
        """
        is_valid, error_msg = verify_master_password(
            master_password, self.settings.min_password_length,
        )
        if not is_valid:
            raise InvalidInput(error_msg)

        if self.store.exists():
            raise AlreadyExists(str(self.store.root), f"Vault already exists at {self.store.root}")

        deriver = KeyDeriver.from_settings(self.settings)
        salt = KeyDeriver.generate_salt()
        key = deriver.derive(master_password, salt)

        header = VaultHeader(
            salt=salt,
            kdf=deriver.algorithm,
            kdf_params=deriver.params,
            cipher=self.settings.cipher,
            verifier=KeyDeriver.initialize_verifier(key),
        )
        try:
            self.store.initialize(header)
        except NoteVaultError:
            wipe(key)
            raise

        self._header = header
        self._open_session(key)

        self.logger.log_event(
            event_type=EventType.VAULT_CREATED,
            severity=EventSeverity.INFO,
            message="Vault initialized with master password",
            details={"kdf": header.kdf, "cipher": header.cipher},
        )

    def unlock(self, master_password: str) -> None:
        """
        Unlock the vault.

        Rate limiting with exponential backoff:
        - 1st failed attempt: no delay
        - 2nd failed attempt: 2 second delay
        - 3rd failed attempt: 4 second delay
        - 4th failed attempt: 8 second delay
        - 5th+ failed attempt: 16 second delay

        Raises:
            UnlockThrottled: Called during a backoff window.
            WrongPassword: Verifier mismatch; state stays LOCKED.
            VaultNotFound: No vault at this location.
            StorageIO: Header unreadable.
        """
        if self.lockout_until is not None:
            remaining = self.lockout_until - self._clock()
            if remaining > 0:
                self.logger.log_event(
                    event_type=EventType.VAULT_UNLOCK_THROTTLED,
                    severity=EventSeverity.ALERT,
                    message=f"Unlock attempt during lockout period ({remaining:.0f}s remaining)",
                )
                raise UnlockThrottled(remaining)

        header = self._load_header()
        # Re-authentication drops any open session first.
        self.lock()

        try:
            deriver = KeyDeriver(header.kdf, header.kdf_params)
        except InvalidInput as err:
            raise StorageIO(f"Vault header is corrupted: {err}") from err
        logger.debug("Deriving candidate key (%s, %s)", header.kdf, header.kdf_params)
        candidate_key = deriver.derive(master_password, header.salt)

        try:
            if not KeyDeriver.check_verifier(candidate_key, header.verifier):
                self._handle_failed_unlock()
            self._open_session(candidate_key)
        except BaseException:
            # Only a session may keep the key
            wipe(candidate_key)
            raise

        self.failed_attempts = 0
        self.lockout_until = None

        self.logger.log_event(
            event_type=EventType.VAULT_UNLOCKED,
            severity=EventSeverity.INFO,
            message="Vault unlocked successfully",
        )

    def _handle_failed_unlock(self) -> None:
        """Record a failed attempt, arm the backoff window, raise WrongPassword."""
        self.failed_attempts += 1
        if self.failed_attempts == 1:
            delay_seconds = 0
        else:
            delay_seconds = min(2 ** (self.failed_attempts - 1), self.MAX_BACKOFF_SECONDS)
        self.lockout_until = self._clock() + delay_seconds if delay_seconds else None

        self.logger.log_event(
            event_type=EventType.VAULT_UNLOCK_FAILED,
            severity=EventSeverity.ALERT,
            message=(
                f"Vault unlock failed: incorrect password "
                f"(attempt {self.failed_attempts}, {delay_seconds}s lockout)"
            ),
        )

        if delay_seconds:
            raise WrongPassword(
                f"Incorrect master password. Please wait {delay_seconds} seconds before trying again."
            )
        raise WrongPassword()

    def lock(self) -> None:
        """Zero the session key and return to LOCKED. Safe to call repeatedly."""
        if self._session is None:
            return
        self._session.close()
        self._session = None

        self.logger.log_event(
            event_type=EventType.VAULT_LOCKED,
            severity=EventSeverity.INFO,
            message="Vault locked",
        )

    def _load_header(self) -> VaultHeader:
        if self._header is None:
            self._header = self.store.load()
        return self._header

    def _open_session(self, key: bytearray) -> None:
        if self._session is not None:
            self._session.close()
        self._cipher = Cipher(self._header.cipher)
        self._session = Session(key)

    def _require_key(self) -> bytearray:
        if self._session is None:
            raise NotUnlocked()
        return self._session.key

    # ------------------------------------------------------------------
    # Note operations
    # ------------------------------------------------------------------

    def _seal(self, key: bytearray, name: str, plaintext: str):
        return self._cipher.seal(key, plaintext.encode("utf-8"), name.encode("utf-8"))

    def exists(self, name: str) -> bool:
        """
        True if a note with this name is stored.

        Raises:
            NotUnlocked, InvalidInput, StorageIO
        """
        self._require_key()
        validate_note_name(name)
        return self.store.contains(name)

    def create(self, name: str, plaintext: str) -> None:
        """
        Encrypt and store a new note.

        Raises:
            NotUnlocked, InvalidInput, AlreadyExists, StorageIO
        """
        key = self._require_key()
        validate_note_name(name)

        if self.store.contains(name):
            raise AlreadyExists(name)

        box = self._seal(key, name, plaintext)
        now = utcnow()
        self.store.put(NoteRecord(
            name=name,
            nonce=box.nonce,
            ciphertext=box.ciphertext,
            tag=box.tag,
            created_at=now,
            modified_at=now,
        ))

        self.logger.log_note_event(EventType.NOTE_CREATED, name)

    def view(self, name: str) -> str:
        """
        Decrypt and return a note.

        Raises:
            NotUnlocked, InvalidInput, NotFound, StorageIO
            AuthenticationFailure: Record corrupted, tampered with, or sealed
                under a different key.
        """
        key = self._require_key()
        validate_note_name(name)

        try:
            record = self.store.get(name)
            plaintext = self._cipher.open(
                key, record.nonce, record.ciphertext, record.tag, name.encode("utf-8"),
            )
        except AuthenticationFailure:
            self.logger.log_note_event(
                EventType.NOTE_AUTH_FAILED, name, severity=EventSeverity.CRITICAL,
            )
            raise

        self.logger.log_note_event(EventType.NOTE_VIEWED, name)
        return plaintext.decode("utf-8")

    def edit(self, name: str, new_plaintext: str) -> None:
        """
        Re-seal an existing note with a fresh nonce.

        Raises:
            NotUnlocked, InvalidInput, NotFound, StorageIO
            AuthenticationFailure: Existing record is malformed.
        """
        key = self._require_key()
        validate_note_name(name)

        existing = self.store.get(name)
        box = self._seal(key, name, new_plaintext)
        self.store.put(NoteRecord(
            name=name,
            nonce=box.nonce,
            ciphertext=box.ciphertext,
            tag=box.tag,
            created_at=existing.created_at,
            modified_at=utcnow(),
        ))

        self.logger.log_note_event(EventType.NOTE_EDITED, name)

    def delete(self, name: str) -> None:
        """
        Permanently remove a note.

        Raises:
            NotUnlocked, InvalidInput, NotFound, StorageIO
        """
        self._require_key()
        validate_note_name(name)

        self.store.delete(name)

        self.logger.log_note_event(EventType.NOTE_DELETED, name)

    def list(self) -> List[str]:
        """Names of all notes in the vault."""
        self._require_key()
        return self.store.list()
