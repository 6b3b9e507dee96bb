"""
Shared pytest fixtures for the notevault test suite.

The autouse fixture below isolates tests from the user's real audit log:
every AuditLogger created without an explicit ``log_dir`` writes into the
test's temp directory instead of ``~/.notevault/logs``.

KDF work parameters are turned down to their minimums so that each
derivation takes milliseconds instead of a large fraction of a second.
"""

import pytest

from notevault.config import VaultSettings
from notevault.vault import NoteService, VaultStore

MASTER_PASSWORD = "CorrectHorse42Battery"

FAST_KDF = {
    "argon2_time_cost": 1,
    "argon2_memory_cost": 8,
    "argon2_parallelism": 1,
    "scrypt_n": 16,
    "scrypt_r": 1,
    "scrypt_p": 1,
}


@pytest.fixture(autouse=True)
def _isolate_audit_logs(tmp_path, monkeypatch):
    """Redirect the global AuditLogger to a temp directory for every test."""
    import notevault.core.audit_log as audit_mod

    # Reset the singleton so the next call to get_audit_logger() creates
    # a fresh instance pointing at the temp directory.
    old_logger = audit_mod._audit_logger
    audit_mod._audit_logger = None

    orig_init = audit_mod.AuditLogger.__init__

    def patched_init(self, log_dir=None):
        orig_init(self, log_dir=log_dir or tmp_path / "audit_logs")

    monkeypatch.setattr(audit_mod.AuditLogger, "__init__", patched_init)

    yield

    audit_mod._audit_logger = old_logger


@pytest.fixture
def master_password():
    return MASTER_PASSWORD


@pytest.fixture
def settings(tmp_path):
    """Vault settings with fast KDF parameters, rooted in the temp dir."""
    return VaultSettings(vault_path=tmp_path / "vault", **FAST_KDF)


@pytest.fixture
def store(settings):
    return VaultStore(settings.vault_path)


@pytest.fixture
def service(store, settings, master_password):
    """An initialized, unlocked NoteService."""
    svc = NoteService(store, settings)
    svc.initialize(master_password)
    yield svc
    svc.lock()
