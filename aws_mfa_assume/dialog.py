"""Interactive input of the values needed to assume the role.

Prompts are written to stderr because stdout carries the credential JSON.
"""

import getpass
import logging
import sys
from dataclasses import dataclass, field
from typing import Callable, Dict, Optional

logger = logging.getLogger("aws_mfa_assume.dialog")

MFA_TOKEN_LENGTH = 6  # Standard MFA token length


class Colors:
    BOLD = '\033[1m'
    CYAN = '\033[96m'
    YELLOW = '\033[93m'
    RED = '\033[91m'
    ENDC = '\033[0m'


@dataclass
class DialogResult:
    region: str
    access_key_id: str
    secret_access_key: str = field(repr=False)
    mfa_arn: str
    role_arn: str
    duration: str
    mfa_mode: str = "code"
    mfa_code: str = field(default="", repr=False)
    mfa_command: str = ""

    def requested_duration(self, default: int) -> int:
        """Duration in seconds, or default if the field is blank or not a positive integer."""
        try:
            value = int(self.duration.strip())
        except (AttributeError, ValueError):
            return default
        return value if value > 0 else default


class TerminalDialog:
    """Collects the dialog fields from the terminal.

    Returns None from show() when the user presses Ctrl-C or closes stdin.
    """

    requires_rendering_workaround = False

    def __init__(self, input_func: Callable[[], str] = input,
                 secret_func: Callable[..., str] = getpass.getpass, stream=None):
        self.input_func = input_func
        self.secret_func = secret_func
        self.stream = stream or sys.stderr

    def _write(self, text: str):
        self.stream.write(text)
        self.stream.flush()

    def _ask(self, label: str, default: Optional[str] = None, secret: bool = False,
             required: bool = True) -> str:
        if default and secret:
            hint = " [saved]"
        elif default:
            hint = f" [{default}]"
        else:
            hint = ""
        prompt = f"{Colors.YELLOW}{label}{hint}: {Colors.ENDC}"

        while True:
            if secret:
                value = self.secret_func(prompt, stream=self.stream).strip()
            else:
                self._write(prompt)
                value = self.input_func().strip()

            if not value and default:
                return default
            if value or not required:
                return value
            self._write(f"{Colors.RED}✗ {label} is required{Colors.ENDC}\n")

    def _ask_mfa_code(self) -> str:
        while True:
            code = self._ask("MFA code", secret=True)
            if code.isdigit() and len(code) == MFA_TOKEN_LENGTH:
                return code
            self._write(f"{Colors.RED}✗ MFA code must be {MFA_TOKEN_LENGTH} digits{Colors.ENDC}\n")

    def _ask_mfa_mode(self, default: str) -> str:
        while True:
            mode = self._ask("MFA source (code/command)", default=default).lower()
            if mode in ("code", "command"):
                return mode
            self._write(f"{Colors.RED}✗ Enter 'code' or 'command'{Colors.ENDC}\n")

    def show(self, defaults: Dict) -> Optional[DialogResult]:
        self._write(f"\n{Colors.CYAN}{Colors.BOLD}AWS MFA Assume Role{Colors.ENDC}\n")
        duration_default = defaults.get("duration")

        try:
            region = self._ask("AWS region", defaults.get("region"))
            access_key_id = self._ask("Access key ID", defaults.get("access_key_id"))
            secret_access_key = self._ask("Secret access key", defaults.get("secret_access_key"), secret=True)
            mfa_arn = self._ask("MFA device ARN", defaults.get("mfa_arn"))
            role_arn = self._ask("Role ARN", defaults.get("role_arn"))
            duration = self._ask(
                "Session duration (seconds)",
                str(duration_default) if duration_default else None,
                required=False,
            )
            mfa_mode = self._ask_mfa_mode(defaults.get("mfa_mode") or "code")

            mfa_code = ""
            mfa_command = ""
            if mfa_mode == "command":
                mfa_command = self._ask("MFA command", defaults.get("mfa_command"))
            else:
                mfa_code = self._ask_mfa_code()
        except (KeyboardInterrupt, EOFError):
            self._write("\n")
            logger.debug("Dialog cancelled")
            return None

        return DialogResult(
            region=region,
            access_key_id=access_key_id,
            secret_access_key=secret_access_key,
            mfa_arn=mfa_arn,
            role_arn=role_arn,
            duration=duration,
            mfa_mode=mfa_mode,
            mfa_code=mfa_code,
            mfa_command=mfa_command,
        )
