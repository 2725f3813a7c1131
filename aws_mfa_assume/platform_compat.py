"""Pre-flight environment adjustments needed by some dialog backends."""

import logging
import os
import subprocess
import sys

logger = logging.getLogger("aws_mfa_assume.platform_compat")

WEBKIT_SANDBOX_VAR = "WEBKIT_DISABLE_SANDBOX_THIS_IS_DANGEROUS"


class PlatformAdapter:
    """Restarts the process once with a sandbox-disabling variable when required.

    WebKitGTK's bubblewrap sandbox needs unprivileged user namespaces, which
    many containers lack. The variable has to be present at exec time, so it
    cannot simply be set in os.environ. This is the only place that reads it.
    """

    def __init__(self, platform: str = sys.platform, environ=None, runner=subprocess.run):
        self.platform = platform
        self.environ = os.environ if environ is None else environ
        self.runner = runner

    def needs_restart(self, dialog) -> bool:
        return (
            self.platform.startswith("linux")
            and getattr(dialog, "requires_rendering_workaround", False)
            and not self.environ.get(WEBKIT_SANDBOX_VAR)
        )

    def ensure_rendering_compatible(self, dialog, argv=None):
        """Re-run the current command with the workaround set, then exit with its status."""
        if not self.needs_restart(dialog):
            return

        argv = argv if argv is not None else sys.argv
        env = dict(self.environ)
        env[WEBKIT_SANDBOX_VAR] = "1"
        logger.debug(f"Restarting with {WEBKIT_SANDBOX_VAR}=1")
        proc = self.runner([sys.executable, "-m", "aws_mfa_assume", *argv[1:]], env=env)
        sys.exit(proc.returncode)
