"""Runs Znuny's Perl module checker and classifies its report."""

import os
import re
from typing import Callable

_REQUIRED_MISSING = re.compile(r"required.*Not installed", flags=re.IGNORECASE)


class ModuleCheckService:
    def __init__(self, logger):
        self.logger = logger

    def check_modules(self, settings, run_cmd: Callable) -> bool:
        self.logger.info("Checking installed Perl modules...")
        tool = os.path.join(settings.stable_link, "bin", "otrs.CheckModules.pl")
        if not os.path.isfile(tool):
            self.logger.warning("CheckModules.pl not found, skipping module check")
            return True

        result = run_cmd([tool], check=False, capture_output=True, cwd=settings.stable_link)
        report = (result.stdout or "") + (result.stderr or "")
        try:
            with open(settings.module_report_file, "w", encoding="utf-8") as file_obj:
                file_obj.write(report)
        except OSError as exc:
            self.logger.warning("Could not write module report: %s", exc)

        if _REQUIRED_MISSING.search(report):
            self.logger.error(
                "Required modules are missing. Check %s for details", settings.module_report_file
            )
            return False
        if "Not installed" in report:
            self.logger.warning(
                "Some optional modules are not installed. Check %s for details",
                settings.module_report_file,
            )
            return True

        self.logger.info("All required modules are installed")
        return True
