# Tests for VaultSettings
# Covers: defaults, NOTEVAULT_* environment variables, overrides,
#         validation errors, derived properties

from pathlib import Path

import pytest
from pydantic import ValidationError

from notevault.config import DEFAULT_VAULT_PATH, VaultSettings

ENV_VARS = [
    "NOTEVAULT_PATH",
    "NOTEVAULT_KDF",
    "NOTEVAULT_CIPHER",
    "NOTEVAULT_ARGON2_TIME_COST",
    "NOTEVAULT_ARGON2_MEMORY_COST",
    "NOTEVAULT_ARGON2_PARALLELISM",
    "NOTEVAULT_SCRYPT_N",
    "NOTEVAULT_SCRYPT_R",
    "NOTEVAULT_SCRYPT_P",
    "NOTEVAULT_MIN_PASSWORD_LENGTH",
    "NOTEVAULT_LOG_DIR",
    "NOTEVAULT_DELIMITER",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for var in ENV_VARS:
        monkeypatch.delenv(var, raising=False)


class TestDefaults:
    def test_defaults(self):
        s = VaultSettings()
        assert s.vault_path == DEFAULT_VAULT_PATH
        assert s.kdf == "argon2id"
        assert s.cipher == "aesgcm"
        assert s.min_password_length == 12
        assert s.content_delimiter == "."
        assert s.log_dir is None

    def test_default_kdf_params(self):
        assert VaultSettings().kdf_params() == {
            "time_cost": 3, "memory_cost": 65536, "parallelism": 4,
        }

    def test_scrypt_kdf_params(self):
        assert VaultSettings(kdf="scrypt").kdf_params() == {"n": 2 ** 15, "r": 8, "p": 1}

    def test_log_dir_defaults_under_vault(self, tmp_path):
        s = VaultSettings(vault_path=tmp_path / "v")
        assert s.effective_log_dir == tmp_path / "v" / "logs"

    def test_explicit_log_dir(self, tmp_path):
        s = VaultSettings(vault_path=tmp_path / "v", log_dir=tmp_path / "logs")
        assert s.effective_log_dir == tmp_path / "logs"

    def test_home_is_expanded(self):
        s = VaultSettings(vault_path="~/somewhere")
        assert s.vault_path == Path.home() / "somewhere"


class TestValidation:
    def test_kdf_is_case_insensitive(self):
        assert VaultSettings(kdf="SCRYPT").kdf == "scrypt"

    def test_unsupported_kdf(self):
        with pytest.raises(ValidationError, match="Unsupported KDF"):
            VaultSettings(kdf="pbkdf2")

    def test_unsupported_cipher(self):
        with pytest.raises(ValidationError, match="Unsupported cipher"):
            VaultSettings(cipher="des")

    def test_scrypt_n_power_of_two(self):
        with pytest.raises(ValidationError, match="power of two"):
            VaultSettings(scrypt_n=1000)

    @pytest.mark.parametrize("field,value", [
        ("argon2_time_cost", 0),
        ("argon2_memory_cost", 4),
        ("argon2_parallelism", 0),
        ("scrypt_r", 0),
        ("min_password_length", 0),
        ("content_delimiter", ""),
    ])
    def test_out_of_range(self, field, value):
        with pytest.raises(ValidationError):
            VaultSettings(**{field: value})


class TestFromEnv:
    def test_reads_environment(self, monkeypatch, tmp_path):
        monkeypatch.setenv("NOTEVAULT_PATH", str(tmp_path / "env-vault"))
        monkeypatch.setenv("NOTEVAULT_KDF", "scrypt")
        monkeypatch.setenv("NOTEVAULT_CIPHER", "chacha20")
        monkeypatch.setenv("NOTEVAULT_SCRYPT_N", "1024")
        monkeypatch.setenv("NOTEVAULT_MIN_PASSWORD_LENGTH", "16")
        monkeypatch.setenv("NOTEVAULT_DELIMITER", "EOF")

        s = VaultSettings.from_env()
        assert s.vault_path == tmp_path / "env-vault"
        assert s.kdf == "scrypt"
        assert s.cipher == "chacha20"
        assert s.scrypt_n == 1024
        assert s.min_password_length == 16
        assert s.content_delimiter == "EOF"

    def test_empty_variable_ignored(self, monkeypatch):
        monkeypatch.setenv("NOTEVAULT_KDF", "")
        assert VaultSettings.from_env().kdf == "argon2id"

    def test_overrides_win(self, monkeypatch, tmp_path):
        monkeypatch.setenv("NOTEVAULT_KDF", "scrypt")
        s = VaultSettings.from_env(kdf="argon2id", vault_path=tmp_path)
        assert s.kdf == "argon2id"
        assert s.vault_path == tmp_path

    def test_none_overrides_ignored(self, monkeypatch):
        monkeypatch.setenv("NOTEVAULT_CIPHER", "chacha20")
        s = VaultSettings.from_env(cipher=None, kdf=None, vault_path=None)
        assert s.cipher == "chacha20"
        assert s.kdf == "argon2id"

    def test_invalid_environment(self, monkeypatch):
        monkeypatch.setenv("NOTEVAULT_ARGON2_TIME_COST", "lots")
        with pytest.raises(ValidationError):
            VaultSettings.from_env()
