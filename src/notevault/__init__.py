# notevault - Main Package
#
# Encrypted note manager for the command line.
# Notes are sealed with a key derived from a single master password and
# stored one file per note inside a vault directory.

__version__ = "0.1.0"
__author__ = "notevault contributors"
__description__ = "Command-line encrypted note manager"

from .core import EventType, EventSeverity, get_audit_logger
from .errors import NoteVaultError

__all__ = [
    "__version__",
    "EventType",
    "EventSeverity",
    "get_audit_logger",
    "NoteVaultError",
]
