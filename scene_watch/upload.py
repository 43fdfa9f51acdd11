"""Remote archival of alert frames to MEGA through the MEGAcmd tools.

MEGAcmd keeps its own logged-in session in a background server, so an upload
is two commands: ``mega-login <email> <password>`` (a no-op error when the
session already exists) and ``mega-put -c <file> <remote dir>``.

The password is passed on the mega-login command line, so it is visible to
other local users through ``ps`` for the moment the command runs. On a shared
machine, log in once by hand with ``mega-login`` and leave SW_MEGA_PASSWORD
set to any placeholder: the existing session is reused and the real password
never reaches argv.
"""

import logging
import os
import subprocess
from dataclasses import dataclass
from typing import List

from .config import Config

logger = logging.getLogger(__name__)


class UploadError(RuntimeError):
    """Raised when login or upload fails."""


@dataclass(frozen=True)
class UploadCredentials:
    """Account credential pair for the upload service."""

    email: str
    password: str

    def __repr__(self) -> str:
        return f"UploadCredentials(email={self.email!r}, password='***')"


class NullUploader:
    """Uploader used when no account is configured."""

    def upload(self, credentials: UploadCredentials, path: str) -> None:
        logger.debug("Upload disabled; skipping %s", path)


class MegaCmdUploader:
    """Authenticate-then-upload using the MEGAcmd command line tools."""

    def __init__(self, remote_dir: str = None, cmd_dir: str = None, timeout: float = None) -> None:
        self.remote_dir = remote_dir or Config.MEGA_REMOTE_DIR
        self.cmd_dir = Config.MEGA_CMD_DIR if cmd_dir is None else cmd_dir
        self.timeout = float(Config.UPLOAD_TIMEOUT_SEC if timeout is None else timeout)

    def _cmd(self, name: str) -> str:
        return os.path.join(self.cmd_dir, name) if self.cmd_dir else name

    def _run(self, args: List[str]) -> subprocess.CompletedProcess:
        try:
            return subprocess.run(
                args,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                timeout=self.timeout,
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            raise UploadError(f"failed to run {args[0]}: {e}") from e

    def login(self, credentials: UploadCredentials) -> None:
        proc = self._run([self._cmd("mega-login"), credentials.email, credentials.password])
        if proc.returncode == 0:
            logger.info("Logged in to MEGA as %s", credentials.email)
            return
        out = (proc.stdout + proc.stderr).decode("utf-8", "replace")
        if "already logged in" in out.lower():
            return
        raise UploadError(f"mega-login exited with {proc.returncode}: {out.strip()}")

    def upload(self, credentials: UploadCredentials, path: str) -> None:
        """Log in (if needed) and upload `path` into the remote directory.

        Raises:
          UploadError: if the local file is missing or either command fails.
        """
        if not os.path.isfile(path):
            raise UploadError(f"local file not found: {path}")
        self.login(credentials)
        proc = self._run([self._cmd("mega-put"), "-c", path, self.remote_dir])
        if proc.returncode != 0:
            err = proc.stderr.decode("utf-8", "replace").strip()
            raise UploadError(f"mega-put exited with {proc.returncode}: {err}")
        logger.info("Uploaded %s to MEGA:%s", os.path.basename(path), self.remote_dir)


def make_uploader():
    """Return a `MegaCmdUploader` when both MEGA credentials are set, else a `NullUploader`."""
    if Config.MEGA_EMAIL and Config.MEGA_PASSWORD:
        return MegaCmdUploader()
    return NullUploader()
