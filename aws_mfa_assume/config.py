"""Persistent credential profile with owner-only file permissions.

The profile holds the long-lived inputs needed to assume the role again on the
next run. The one-time MFA code is never part of it.
"""

import json
import logging
import os
import stat
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional

import boto3

from .settings import CONFIG_DIR, DEFAULT_CONFIG_PATH

logger = logging.getLogger("aws_mfa_assume.config")

FILE_MODE = 0o600
DIR_MODE = 0o700
# group/other read, write, execute
LOOSE_BITS = stat.S_IRWXG | stat.S_IRWXO

MFA_MODES = ("code", "command")


class CredentialStoreError(Exception):
    """The profile could not be written."""


class InsecurePermissionsError(CredentialStoreError):
    """The profile file or directory is readable by others and could not be tightened."""


@dataclass
class CredentialProfile:
    region: str
    access_key_id: str
    secret_access_key: str
    mfa_arn: str
    role_arn: str
    duration: int
    mfa_mode: str = "code"
    mfa_command: Optional[str] = None

    def to_dict(self) -> Dict:
        data = {
            "region": self.region,
            "accessKeyId": self.access_key_id,
            "secretAccessKey": self.secret_access_key,
            "mfaArn": self.mfa_arn,
            "roleArn": self.role_arn,
            "duration": self.duration,
            "mfaMode": self.mfa_mode,
        }
        if self.mfa_command:
            data["mfaCommand"] = self.mfa_command
        return data

    @classmethod
    def from_dict(cls, data: Dict) -> "CredentialProfile":
        """Build a profile from its JSON form.

        Raises ValueError for missing or mistyped fields. Unknown keys are ignored.
        """
        if not isinstance(data, dict):
            raise ValueError("profile must be a JSON object")

        values = {}
        for key, attr in (
            ("region", "region"),
            ("accessKeyId", "access_key_id"),
            ("secretAccessKey", "secret_access_key"),
            ("mfaArn", "mfa_arn"),
            ("roleArn", "role_arn"),
        ):
            value = data.get(key)
            if not isinstance(value, str):
                raise ValueError(f"missing or invalid field '{key}'")
            values[attr] = value

        duration = data.get("duration")
        # bool is an int subclass
        if not isinstance(duration, int) or isinstance(duration, bool):
            raise ValueError("missing or invalid field 'duration'")

        mfa_mode = data.get("mfaMode", "code")
        if mfa_mode not in MFA_MODES:
            raise ValueError(f"invalid mfaMode '{mfa_mode}'")

        mfa_command = data.get("mfaCommand")
        if mfa_command is not None and not isinstance(mfa_command, str):
            raise ValueError("invalid field 'mfaCommand'")

        return cls(duration=duration, mfa_mode=mfa_mode, mfa_command=mfa_command or None, **values)

    def as_defaults(self) -> Dict:
        """Field defaults for the input dialog."""
        return {
            "region": self.region,
            "access_key_id": self.access_key_id,
            "secret_access_key": self.secret_access_key,
            "mfa_arn": self.mfa_arn,
            "role_arn": self.role_arn,
            "duration": self.duration,
            "mfa_mode": self.mfa_mode,
            "mfa_command": self.mfa_command,
        }


def posix_permissions_supported() -> bool:
    return os.name == "posix"


def _tighten(path: Path, mode: int):
    """Restrict path to owner-only access if group/other bits are set.

    Raises InsecurePermissionsError when the bits cannot be cleared.
    """
    current = stat.S_IMODE(path.stat().st_mode)
    if not current & LOOSE_BITS:
        return

    logger.warning(f"Tightening permissions on {path} from {oct(current)} to {oct(mode)}")
    try:
        os.chmod(path, mode)
    except OSError as e:
        raise InsecurePermissionsError(f"Could not restrict permissions on {path}: {e}") from e

    if stat.S_IMODE(path.stat().st_mode) & LOOSE_BITS:
        raise InsecurePermissionsError(f"{path} is still accessible to other users after chmod")


def _require_private(path: Path):
    """Raise InsecurePermissionsError if path is accessible to group or others."""
    current = stat.S_IMODE(path.stat().st_mode)
    if current & LOOSE_BITS:
        raise InsecurePermissionsError(
            f"{path} is accessible to other users ({oct(current)}); "
            f"restrict it with 'chmod 700 {path}' or choose another location"
        )


class CredentialStore:
    """Loads and saves the credential profile as a JSON file.

    Only the tool's own directory (managed_dir) or one the store created
    is ever chmod'ed; any other containing directory must already be private.
    Concurrent runs are not coordinated: the last successful save wins.
    """

    def __init__(self, path: Optional[Path] = None, managed_dir: Optional[Path] = CONFIG_DIR):
        self.path = Path(path) if path else DEFAULT_CONFIG_PATH
        self.managed_dir = Path(managed_dir) if managed_dir else None

    def _secure_directory(self, created: bool = False):
        directory = self.path.parent
        if created or directory == self.managed_dir:
            _tighten(directory, DIR_MODE)
        else:
            _require_private(directory)

    def load(self) -> Optional[CredentialProfile]:
        """Return the saved profile, or None if there is no usable one."""
        if not self.path.is_file():
            logger.debug(f"Profile file not found: {self.path}")
            return None

        try:
            if posix_permissions_supported():
                self._secure_directory()
                _tighten(self.path, FILE_MODE)
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
            profile = CredentialProfile.from_dict(data)
        except InsecurePermissionsError as e:
            logger.warning(f"Ignoring saved profile: {e}")
            return None
        except (OSError, ValueError) as e:
            # json.JSONDecodeError is a ValueError
            logger.debug(f"Could not load profile from {self.path}: {e}")
            return None

        logger.debug(f"Loaded profile from {self.path}")
        return profile

    def save(self, profile: CredentialProfile):
        """Overwrite the profile file.

        Raises CredentialStoreError (or InsecurePermissionsError) if the file
        cannot be written with owner-only permissions.
        """
        content = json.dumps(profile.to_dict(), indent=2) + "\n"
        directory = self.path.parent

        try:
            if not posix_permissions_supported():
                directory.mkdir(parents=True, exist_ok=True)
                with open(self.path, "w", encoding="utf-8") as f:
                    f.write(content)
                return

            created = not directory.exists()
            directory.mkdir(parents=True, exist_ok=True, mode=DIR_MODE)
            self._secure_directory(created=created)
            if self.path.exists():
                _tighten(self.path, FILE_MODE)

            # Mode is applied at creation so a new file is never readable by others
            fd = os.open(self.path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, FILE_MODE)
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(content)

            _tighten(self.path, FILE_MODE)
        except CredentialStoreError:
            raise
        except OSError as e:
            raise CredentialStoreError(f"Could not write profile to {self.path}: {e}") from e

        logger.info(f"Saved profile to {self.path}")


def seed_defaults(session=None) -> Dict:
    """Best-effort defaults from the ambient AWS configuration.

    Looks up the region and the access key pair through the boto3 default
    credential chain (environment, shared credentials file, and so on). Never
    raises; returns an empty dict if nothing can be found.
    """
    defaults = {}
    try:
        session = session or boto3.Session()
        credentials = session.get_credentials()
        if credentials is not None:
            frozen = credentials.get_frozen_credentials()
            if frozen.access_key:
                defaults["access_key_id"] = frozen.access_key
            if frozen.secret_key:
                defaults["secret_access_key"] = frozen.secret_key
        if session.region_name:
            defaults["region"] = session.region_name
    except Exception as e:
        logger.debug(f"Could not seed defaults from AWS configuration: {e}")
        return {}

    logger.debug(f"Seeded defaults: {sorted(defaults)}")
    return defaults
