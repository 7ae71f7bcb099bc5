"""Activation of the cron jobs shipped with Znuny."""

import glob
import os
import shutil
from typing import Callable

from znunyinstaller.errors import CollaboratorExitError


class CronService:
    """Copies `*.dist` cron templates into place and starts them."""

    def __init__(self, logger, filesystem_service):
        self.logger = logger
        self.filesystem_service = filesystem_service

    def activate_cron(self, settings, run_cmd: Callable):
        self.logger.info("Setting up Znuny cron jobs...")
        cron_dir = os.path.join(settings.stable_link, "var", "cron")
        if not os.path.isdir(cron_dir):
            self.logger.warning("Cron directory not found, skipping cron setup")
            return

        for template in sorted(glob.glob(os.path.join(cron_dir, "*.dist"))):
            target = template[: -len(".dist")]
            shutil.copyfile(template, target)
            try:
                self.filesystem_service.chown(
                    target, settings.service_user, settings.web_group, run_cmd
                )
            except CollaboratorExitError as exc:
                self.logger.warning("Could not set ownership on %s: %s", target, exc)

        cron_script = os.path.join(settings.stable_link, "bin", "Cron.sh")
        if not os.path.isfile(cron_script):
            self.logger.warning("Cron.sh not found")
            return

        result = run_cmd(
            ["su", "-", settings.service_user, "-c", f"{cron_script} start"],
            check=False,
            capture_output=True,
        )
        if result.returncode != 0:
            self.logger.warning("Some cron jobs may have failed to install")
            return
        self.logger.info("Cron jobs configured")

    def remove_crontab(self, settings, run_cmd: Callable):
        run_cmd(
            ["su", "-", settings.service_user, "-c", "crontab -r"],
            check=False,
            capture_output=True,
        )
