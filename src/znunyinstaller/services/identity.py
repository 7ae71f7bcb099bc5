"""Service account management."""

from typing import Callable


class IdentityService:
    """Creates and removes the OS user that runs Znuny."""

    def __init__(self, logger):
        self.logger = logger

    def user_exists(self, username: str, run_cmd: Callable) -> bool:
        result = run_cmd(["getent", "passwd", username], check=False, capture_output=True)
        return result.returncode == 0

    def ensure_service_identity(self, username: str, home_dir: str, group: str, run_cmd: Callable):
        self.logger.info("Creating Znuny system user...")
        if self.user_exists(username, run_cmd):
            self.logger.warning("User '%s' already exists", username)
            return

        run_cmd(
            ["useradd", "-d", home_dir, "-c", "Znuny user", "-g", group, "-s", "/bin/bash", username],
            check=True,
            capture_output=True,
        )
        self.logger.info("User '%s' created", username)

    def remove_service_identity(self, username: str, run_cmd: Callable):
        if not self.user_exists(username, run_cmd):
            self.logger.info("User '%s' not present, nothing to remove", username)
            return
        run_cmd(["userdel", "-r", username], check=True, capture_output=True)
