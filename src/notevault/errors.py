# Error taxonomy
#
# Every failure a user can recover from is a NoteVaultError subclass.
# Messages never carry passwords, key material or note contents.


class NoteVaultError(Exception):
    """Base class for all recoverable notevault errors."""


class WrongPassword(NoteVaultError):
    """Master password did not reproduce the stored key verifier."""

    def __init__(self, message: str = "Incorrect master password"):
        super().__init__(message)


class UnlockThrottled(NoteVaultError):
    """Unlock attempted while a failed-attempt backoff window is active."""

    def __init__(self, retry_after: float):
        self.retry_after = retry_after
        super().__init__(
            f"Too many failed attempts. Please wait {retry_after:.0f} seconds."
        )


class NotUnlocked(NoteVaultError):
    """A note operation was requested while the vault is locked."""

    def __init__(self, message: str = "Vault is locked. Unlock vault first."):
        super().__init__(message)


class NotFound(NoteVaultError):
    """No note with the requested name."""

    def __init__(self, name: str, message: str = ""):
        self.name = name
        super().__init__(message or f"Note not found: {name}")


class VaultNotFound(NotFound):
    """No vault has been initialized at the configured location."""

    def __init__(self, location: str):
        super().__init__(location, f"No vault found at {location}")


class AlreadyExists(NoteVaultError):
    """A note (or vault) with this name is already present."""

    def __init__(self, name: str, message: str = ""):
        self.name = name
        super().__init__(message or f"Note already exists: {name}")


class AuthenticationFailure(NoteVaultError):
    """Ciphertext failed authentication: corrupted, tampered, or wrong key."""

    def __init__(self, message: str = "Authentication failed: note data is corrupted or was tampered with"):
        super().__init__(message)


class StorageIO(NoteVaultError):
    """Filesystem failure while reading or writing the vault."""


class InvalidInput(NoteVaultError):
    """Rejected input (malformed note name, weak password, bad parameter)."""
