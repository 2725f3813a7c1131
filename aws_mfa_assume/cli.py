#!/usr/bin/env python3
"""
AWS MFA Assume Role
Prompts for long-lived AWS keys and an MFA code (or a command that prints
one), assumes an IAM role through STS and prints the temporary credentials
as JSON on stdout.
"""

import argparse
import json
import logging
import subprocess
import sys
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional

from . import __version__
from .config import CredentialProfile, CredentialStore, CredentialStoreError, seed_defaults
from .dialog import DialogResult, TerminalDialog
from .masking import SecretMaskingFilter, mask_secrets
from .platform_compat import PlatformAdapter
from .settings import Settings, load_env_file
from .sts import NegotiationRequest, assume_role_with_mfa, create_sts_client

EXIT_OK = 0
EXIT_FAILED = 2

# Global logger
logger = logging.getLogger("aws_mfa_assume")


class MfaCommandError(Exception):
    """The MFA command failed or produced no code."""


def setup_logging(log_dir: Path, debug: bool = False):
    """Configure logging to file and optionally to console in debug mode."""
    log_level = logging.DEBUG if debug else logging.INFO
    logger.setLevel(log_level)
    masking = SecretMaskingFilter()

    # File handler - always logs INFO and above
    log_file = log_dir / f"aws_mfa_assume_{datetime.now().strftime('%Y%m%d')}.log"
    try:
        log_dir.mkdir(parents=True, exist_ok=True, mode=0o700)
        file_handler = logging.FileHandler(log_file)
    except OSError as e:
        log_file = None
        print_warning(f"Could not open log file in {log_dir}: {e}")
    else:
        file_handler.setLevel(log_level)
        file_handler.setFormatter(logging.Formatter('%(asctime)s - %(levelname)s - %(message)s'))
        file_handler.addFilter(masking)
        logger.addHandler(file_handler)

    # Console handler - only in debug mode
    if debug:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(logging.DEBUG)
        console_handler.setFormatter(logging.Formatter('%(levelname)s: %(message)s'))
        console_handler.addFilter(masking)
        logger.addHandler(console_handler)

    logger.debug(f"Logging initialized. Log file: {log_file}")


class Colors:
    BLUE = '\033[94m'
    GREEN = '\033[92m'
    RED = '\033[91m'
    ENDC = '\033[0m'


def print_success(msg: str):
    msg = mask_secrets(msg)
    print(f"{Colors.GREEN}✓ {msg}{Colors.ENDC}", file=sys.stderr)
    logger.info(f"SUCCESS: {msg}")


def print_error(msg: str):
    msg = mask_secrets(msg)
    print(f"{Colors.RED}✗ {msg}{Colors.ENDC}", file=sys.stderr)
    logger.error(msg)


def print_warning(msg: str):
    msg = mask_secrets(msg)
    print(f"{Colors.RED}⚠ {msg}{Colors.ENDC}", file=sys.stderr)
    logger.warning(msg)


def print_info(msg: str):
    msg = mask_secrets(msg)
    print(f"{Colors.BLUE}ℹ {msg}{Colors.ENDC}", file=sys.stderr)
    logger.info(msg)


def run_mfa_command(command: str, timeout: Optional[int] = None) -> str:
    """Run command through the platform shell and return its trimmed stdout."""
    logger.debug("Running MFA command")
    try:
        proc = subprocess.run(command, shell=True, capture_output=True, text=True, timeout=timeout)
    except subprocess.TimeoutExpired as e:
        raise MfaCommandError(f"timed out after {e.timeout}s") from e
    except OSError as e:
        raise MfaCommandError(str(e)) from e

    if proc.returncode != 0:
        detail = proc.stderr.strip() or f"exit status {proc.returncode}"
        raise MfaCommandError(detail)

    code = proc.stdout.strip()
    if not code:
        raise MfaCommandError("command produced no output")
    return code


def load_defaults(store: CredentialStore, settings: Settings,
                  duration: Optional[int] = None) -> dict:
    """Dialog defaults from the saved profile, or from the ambient AWS config."""
    profile = store.load()
    if profile is not None:
        defaults = profile.as_defaults()
    else:
        defaults = seed_defaults()
        defaults.setdefault("duration", settings.default_duration)

    if duration:
        defaults["duration"] = duration
    return defaults


def authenticate(store: CredentialStore, dialog, settings: Settings,
                 duration: Optional[int] = None,
                 client_factory: Optional[Callable] = None) -> int:
    """Prompt, assume the role, save the profile and print the credentials.

    Returns the process exit code.
    """
    defaults = load_defaults(store, settings, duration)

    result: Optional[DialogResult] = dialog.show(defaults)
    if result is None:
        print("User cancelled dialog.", file=sys.stderr)
        logger.info("User cancelled dialog")
        return EXIT_FAILED

    mfa_code = result.mfa_code
    if result.mfa_mode == "command":
        try:
            mfa_code = run_mfa_command(result.mfa_command, settings.command_timeout)
        except MfaCommandError as e:
            print_error(f"MFA command failed: {e}")
            return EXIT_FAILED

    request = NegotiationRequest(
        region=result.region,
        access_key_id=result.access_key_id,
        secret_access_key=result.secret_access_key,
        mfa_arn=result.mfa_arn,
        role_arn=result.role_arn,
        mfa_code=mfa_code,
        duration=result.requested_duration(settings.default_duration),
    )
    logger.info(f"Assuming role {request.role_arn} (requested {request.duration}s)")

    try:
        client = (client_factory or create_sts_client)(
            request.region, request.access_key_id, request.secret_access_key)
        negotiated = assume_role_with_mfa(request, client=client, session_name=settings.session_name)
    except Exception as e:
        print_error(f"STS AssumeRole failed: {e}")
        return EXIT_FAILED

    if negotiated.duration < request.duration:
        print_info(f"Role does not allow {request.duration}s sessions, using {negotiated.duration}s")
    print_success(f"Assumed role {request.role_arn} for {negotiated.duration}s")

    profile = CredentialProfile(
        region=result.region,
        access_key_id=result.access_key_id,
        secret_access_key=result.secret_access_key,
        mfa_arn=result.mfa_arn,
        role_arn=result.role_arn,
        duration=negotiated.duration,
        mfa_mode=result.mfa_mode,
        mfa_command=result.mfa_command or None,
    )
    try:
        store.save(profile)
    except CredentialStoreError as e:
        # The credentials are already issued; only the saved defaults are stale
        print_warning(f"Could not save profile: {e}")

    print(json.dumps({"Credentials": negotiated.credentials.as_output()}))
    logger.info(f"Emitted credentials for {request.role_arn} ({negotiated.duration}s)")
    return EXIT_OK


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="aws-mfa-assume",
        description='Assume an AWS IAM role with MFA and print temporary credentials as JSON',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s                     Prompt for inputs (saved values are offered as defaults)
  %(prog)s --duration 3600     Request a 1-hour session
  %(prog)s --debug             Verbose logging on stderr

The JSON on stdout can be piped to jq or a wrapper script to export the variables.
        """
    )
    parser.add_argument(
        '-d', '--duration',
        type=int,
        help='Session duration in seconds (default: saved value, or 43200)'
    )
    parser.add_argument(
        '-c', '--config',
        type=Path,
        help='Path of the saved profile file'
    )
    parser.add_argument(
        '--debug',
        action='store_true',
        help='Enable debug mode with verbose logging'
    )
    parser.add_argument('--version', action='version', version=f"%(prog)s {__version__}")
    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    load_env_file()
    settings = Settings.from_env()
    if args.config:
        settings.config_path = args.config.expanduser()

    if args.duration is not None and args.duration <= 0:
        parser.error("--duration must be a positive number of seconds")

    dialog = TerminalDialog()
    PlatformAdapter().ensure_rendering_compatible(dialog)

    # Initialize logging
    setup_logging(settings.log_dir, debug=args.debug)
    logger.info("AWS MFA Assume started")
    logger.debug(f"Arguments: {vars(args)}")

    store = CredentialStore(settings.config_path)
    sys.exit(authenticate(store, dialog, settings, duration=args.duration))


if __name__ == '__main__':
    main()
