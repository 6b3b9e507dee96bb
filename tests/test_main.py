# Tests for the notevault command-line entry point
# Covers: argument parsing, environment configuration, exit codes,
#         startup storage errors, audit log location

import io
import json

import pytest

from notevault import __version__
from notevault.__main__ import build_parser, main
from notevault.config import VaultSettings
from notevault.vault import NoteService, VaultStore


@pytest.fixture
def env(tmp_path, monkeypatch):
    """Point the CLI at a temp vault with fast KDF parameters."""
    monkeypatch.setenv("NOTEVAULT_PATH", str(tmp_path / "vault"))
    monkeypatch.setenv("NOTEVAULT_LOG_DIR", str(tmp_path / "logs"))
    monkeypatch.setenv("NOTEVAULT_ARGON2_TIME_COST", "1")
    monkeypatch.setenv("NOTEVAULT_ARGON2_MEMORY_COST", "8")
    monkeypatch.setenv("NOTEVAULT_ARGON2_PARALLELISM", "1")
    monkeypatch.setenv("NOTEVAULT_SCRYPT_N", "16")
    monkeypatch.setenv("NOTEVAULT_SCRYPT_R", "1")
    monkeypatch.setenv("NOTEVAULT_SCRYPT_P", "1")
    for var in ("NOTEVAULT_KDF", "NOTEVAULT_CIPHER", "NOTEVAULT_DELIMITER",
                "NOTEVAULT_MIN_PASSWORD_LENGTH"):
        monkeypatch.delenv(var, raising=False)
    return tmp_path


def feed(monkeypatch, commands, passwords):
    """Replace the terminal: commands on stdin, passwords through getpass."""
    queue = list(passwords)

    def fake_getpass(prompt=""):
        if not queue:
            raise EOFError
        return queue.pop(0)

    monkeypatch.setattr("sys.stdin", io.StringIO(commands))
    monkeypatch.setattr("getpass.getpass", fake_getpass)


class TestParser:
    def test_defaults_are_none(self):
        args = build_parser().parse_args([])
        assert args.vault is None
        assert args.kdf is None
        assert args.cipher is None

    def test_rejects_unknown_kdf(self, capsys):
        with pytest.raises(SystemExit) as excinfo:
            build_parser().parse_args(["--kdf", "md5"])
        assert excinfo.value.code == 2

    def test_version(self, capsys):
        with pytest.raises(SystemExit) as excinfo:
            main(["--version"])
        assert excinfo.value.code == 0
        assert f"notevault v{__version__}" in capsys.readouterr().out


class TestMain:
    def test_first_run_creates_vault(self, env, monkeypatch, capsys, master_password):
        feed(monkeypatch, "new\nhello\nworld\n.\nquit\n", [master_password, master_password])
        assert main([]) == 0

        out = capsys.readouterr().out
        assert "Vault created and unlocked." in out
        assert "Created note hello" in out

        settings = VaultSettings(vault_path=env / "vault")
        svc = NoteService(VaultStore(env / "vault"), settings)
        svc.unlock(master_password)
        assert svc.view("hello") == "world"
        svc.lock()

    def test_command_line_overrides_environment(self, env, monkeypatch, master_password):
        feed(monkeypatch, "quit\n", [master_password, master_password])
        other = env / "other-vault"
        assert main(["--vault", str(other), "--kdf", "scrypt", "--cipher", "chacha20"]) == 0

        header = VaultStore(other).load()
        assert header.kdf == "scrypt"
        assert header.kdf_params == {"n": 16, "r": 1, "p": 1}
        assert header.cipher == "chacha20"
        assert not (env / "vault").exists()

    def test_aborted_at_password_prompt(self, env, monkeypatch):
        feed(monkeypatch, "quit\n", [])
        assert main([]) == 1

    def test_audit_log_written(self, env, monkeypatch, master_password):
        feed(monkeypatch, "quit\n", [master_password, master_password])
        main([])

        logs = list((env / "logs").glob("audit_*.log"))
        assert len(logs) == 1
        events = [json.loads(line) for line in logs[0].read_text().splitlines() if line]
        types = [e["event_type"] for e in events]
        assert types[0] == "system.start"
        assert "vault.created" in types
        assert types[-1] == "system.stop"
        assert master_password not in logs[0].read_text()

    def test_invalid_configuration(self, env, monkeypatch, capsys):
        monkeypatch.setenv("NOTEVAULT_SCRYPT_N", "1000")
        assert main([]) == 2
        assert "Invalid configuration" in capsys.readouterr().err


class TestStartupStorageErrors:
    def test_vault_under_a_regular_file(self, env, monkeypatch, capsys, master_password):
        blocker = env / "blocker"
        blocker.write_text("not a directory")
        monkeypatch.setenv("NOTEVAULT_PATH", str(blocker / "vault"))
        feed(monkeypatch, "quit\n", [master_password, master_password])

        assert main([]) == 2
        assert "Failed to create vault" in capsys.readouterr().err

    def test_corrupted_header(self, env, monkeypatch, capsys, master_password):
        vault = env / "vault"
        vault.mkdir()
        (vault / "vault.json").write_text("{")
        feed(monkeypatch, "quit\n", [master_password])

        assert main([]) == 2
        assert "corrupted" in capsys.readouterr().err

        logs = list((env / "logs").glob("audit_*.log"))
        assert '"vault.error"' in logs[0].read_text()

    @pytest.mark.parametrize("field,value", [
        ("cipher", "des"),
        ("kdf", {"algorithm": "md5", "params": {}}),
        ("kdf", {"algorithm": "argon2id", "params": {"time_cost": 1, "memory_cost": 1, "parallelism": 4}}),
        ("salt", ""),
        ("verifier", "AAAA"),
    ])
    def test_header_with_bad_values(self, env, monkeypatch, capsys, master_password, field, value):
        settings = VaultSettings.from_env()
        with NoteService(VaultStore(settings.vault_path), settings) as svc:
            svc.initialize(master_password)

        header_path = env / "vault" / "vault.json"
        data = json.loads(header_path.read_text())
        data[field] = value
        header_path.write_text(json.dumps(data))
        feed(monkeypatch, "quit\n", [master_password])

        assert main([]) == 2
        assert "corrupted" in capsys.readouterr().err
