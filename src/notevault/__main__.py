# Main Entry Point - Command Line
#
# Loads settings (.env, NOTEVAULT_* environment, command-line flags),
# opens the vault and runs the interactive shell.
#
# Exit codes: 0 on quit, 1 when aborted at the password prompt,
# 2 when the vault location cannot be read or written at startup.

import argparse
import atexit
import sys
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import ValidationError

from . import __version__
from .config import SUPPORTED_CIPHERS, SUPPORTED_KDFS, VaultSettings
from .core import AuditLogger, EventSeverity, EventType, get_audit_logger, set_audit_logger
from .errors import StorageIO
from .shell import EXIT_STORAGE_ERROR, NoteShell
from .vault import NoteService, VaultStore


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="notevault",
        description="notevault - encrypted notes behind a single master password",
    )

    parser.add_argument(
        "--vault",
        default=None,
        help="Vault directory (default: $NOTEVAULT_PATH or ~/.notevault)"
    )

    parser.add_argument(
        "--kdf",
        choices=SUPPORTED_KDFS,
        default=None,
        help="Key derivation function for a new vault (default: argon2id)"
    )

    parser.add_argument(
        "--cipher",
        choices=SUPPORTED_CIPHERS,
        default=None,
        help="Cipher for a new vault (default: aesgcm)"
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"notevault v{__version__}"
    )

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for notevault."""
    args = build_parser().parse_args(argv)

    load_dotenv()

    try:
        settings = VaultSettings.from_env(
            vault_path=args.vault, kdf=args.kdf, cipher=args.cipher,
        )
    except ValidationError as e:
        print(f"Invalid configuration:\n{e}", file=sys.stderr)
        return EXIT_STORAGE_ERROR

    try:
        set_audit_logger(AuditLogger(settings.effective_log_dir))
    except OSError as e:
        print(f"Error: cannot open audit log directory: {e.strerror}", file=sys.stderr)
        return EXIT_STORAGE_ERROR

    get_audit_logger().log_event(
        event_type=EventType.SYSTEM_START,
        severity=EventSeverity.INFO,
        message="notevault starting",
        details={"version": __version__, "vault": str(settings.vault_path)}
    )

    service = NoteService(VaultStore(settings.vault_path), settings)
    # Best-effort key wipe on interpreter exit
    atexit.register(service.lock)

    shell = NoteShell(service, delimiter=settings.content_delimiter)
    try:
        exit_code = shell.run()
    except StorageIO as e:
        print(f"Error: {e}", file=sys.stderr)
        get_audit_logger().log_event(
            event_type=EventType.VAULT_ERROR,
            severity=EventSeverity.CRITICAL,
            message=f"Cannot open vault: {e}"
        )
        return EXIT_STORAGE_ERROR

    get_audit_logger().log_event(
        event_type=EventType.SYSTEM_STOP,
        severity=EventSeverity.INFO,
        message="notevault stopped",
        details={"exit_code": exit_code}
    )
    return exit_code


if __name__ == "__main__":
    sys.exit(main())
