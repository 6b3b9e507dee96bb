# Interactive Shell
#
# One command per line: new / edit / view / del / list / lock / help / quit.
# Every recoverable NoteVaultError is turned into a message here; only
# storage failures while opening the vault escape to the caller.

import getpass
import sys
from typing import Callable, Optional, TextIO

from .errors import (
    AlreadyExists,
    AuthenticationFailure,
    InvalidInput,
    NoteVaultError,
    UnlockThrottled,
    WrongPassword,
)
from .vault import NoteService

EXIT_OK = 0
EXIT_ABORTED = 1
EXIT_STORAGE_ERROR = 2

COMMAND_PROMPT = "Enter command (new / edit / view / del / list / lock / quit):"

HELP_TEXT = """\
Commands:
  new    create a note
  edit   replace the contents of a note
  view   show a note
  del    delete a note
  list   list note names
  lock   lock the vault and ask for the password again
  help   show this help
  quit   lock the vault and exit"""


class NoteShell:
    """
    Command loop over a NoteService.

    Args:
        service: Vault service (starts LOCKED)
        stdin: Command and content input
        stdout: Output stream
        password_reader: Reads a password without echo (default getpass)
        delimiter: Line that ends note content entry
    """

    def __init__(
        self,
        service: NoteService,
        stdin: Optional[TextIO] = None,
        stdout: Optional[TextIO] = None,
        password_reader: Optional[Callable[[str], str]] = None,
        delimiter: str = ".",
    ):
        self.service = service
        self.stdin = stdin or sys.stdin
        self.stdout = stdout or sys.stdout
        self.password_reader = password_reader or getpass.getpass
        self.delimiter = delimiter

        self._commands = {
            "new": self.do_new,
            "edit": self.do_edit,
            "view": self.do_view,
            "del": self.do_del,
            "list": self.do_list,
            "help": self.do_help,
        }

    def _print(self, *args) -> None:
        print(*args, file=self.stdout)

    def _readline(self, prompt: str = "") -> Optional[str]:
        """Read one line without its newline; None at end of input."""
        if prompt:
            self.stdout.write(prompt)
            self.stdout.flush()
        line = self.stdin.readline()
        if not line:
            return None
        return line.rstrip("\r\n")

    # ------------------------------------------------------------------
    # Main loop
    # ------------------------------------------------------------------

    def run(self) -> int:
        """
        Run until ``quit``, end of input, or an abort at the password prompt.

        Returns:
            Process exit code.

        Raises:
            StorageIO: Vault unreadable or unwritable while opening it.
        """
        try:
            if not self.open_vault():
                return EXIT_ABORTED

            while True:
                command = self._readline(COMMAND_PROMPT + "\n")
                if command is None:
                    self._print("Exiting")
                    return EXIT_OK
                command = command.strip()

                if command == "quit":
                    self._print("Exiting")
                    return EXIT_OK
                if command == "lock":
                    self.service.lock()
                    self._print("Vault locked.")
                    if not self.open_vault():
                        return EXIT_ABORTED
                    continue

                handler = self._commands.get(command)
                if handler is None:
                    self._print("Invalid command.")
                    continue
                self.dispatch(handler)
        except KeyboardInterrupt:
            self._print("\nExiting")
            return EXIT_ABORTED
        finally:
            self.service.lock()

    def dispatch(self, handler: Callable[[], None]) -> None:
        """Run one command handler, reporting any recoverable error."""
        try:
            handler()
        except AuthenticationFailure as err:
            self._print(f"WARNING: {err}")
            self._print("The vault may be corrupted or tampered with.")
        except NoteVaultError as err:
            self._print(f"Error: {err}")

    # ------------------------------------------------------------------
    # Password gate
    # ------------------------------------------------------------------

    def _read_password(self, prompt: str) -> Optional[str]:
        try:
            return self.password_reader(prompt)
        except (EOFError, KeyboardInterrupt):
            self._print()
            return None

    def open_vault(self) -> bool:
        """Unlock the vault, creating it first if needed. False if aborted."""
        if not self.service.vault_exists():
            return self._create_vault()

        while True:
            password = self._read_password("Master password: ")
            if password is None:
                return False
            try:
                self.service.unlock(password)
            except (WrongPassword, UnlockThrottled) as err:
                self._print(err)
                continue
            self._print("Vault unlocked.")
            return True

    def _create_vault(self) -> bool:
        self._print(f"No vault found at {self.service.store.root}. Creating a new one.")
        while True:
            password = self._read_password("New master password: ")
            if password is None:
                return False
            confirm = self._read_password("Repeat master password: ")
            if confirm is None:
                return False
            if password != confirm:
                self._print("Passwords do not match.")
                continue
            try:
                self.service.initialize(password)
            except InvalidInput as err:
                self._print(err)
                continue
            self._print("Vault created and unlocked.")
            return True

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def _read_name(self, prompt: str) -> str:
        name = self._readline(prompt)
        if name is None:
            raise InvalidInput("No note name given")
        return name.strip()

    def _read_content(self) -> str:
        self._print(f"Enter note contents. End with a line containing only '{self.delimiter}'.")
        lines = []
        while True:
            line = self._readline()
            if line is None or line == self.delimiter:
                break
            lines.append(line)
        return "\n".join(lines)

    def do_new(self) -> None:
        name = self._read_name("New note name? ")
        # Reject bad or taken names before collecting content.
        if self.service.exists(name):
            raise AlreadyExists(name)
        self.service.create(name, self._read_content())
        self._print(f"Created note {name}")

    def do_edit(self) -> None:
        name = self._read_name("Name of note to edit? ")
        try:
            current = self.service.view(name)
        except AuthenticationFailure as err:
            # A damaged note can still be overwritten
            self._print(f"WARNING: {err}")
            self._print("Current contents cannot be shown; enter replacement contents.")
        else:
            self._print(f"--- current contents of {name} ---")
            self._print(current)
            self._print("---")
        self.service.edit(name, self._read_content())
        self._print(f"Saved note {name}")

    def do_view(self) -> None:
        name = self._read_name("Name of note to view? ")
        contents = self.service.view(name)
        self._print(f"--- {name} ---")
        self._print(contents)
        self._print("---")

    def do_del(self) -> None:
        name = self._read_name("Name of note to delete? ")
        self.service.delete(name)
        self._print(f"Deleted note {name}")

    def do_list(self) -> None:
        names = self.service.list()
        if not names:
            self._print("(no notes)")
            return
        for name in names:
            self._print(name)

    def do_help(self) -> None:
        self._print(HELP_TEXT)
