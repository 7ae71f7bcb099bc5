"""Filesystem ownership and permission helpers for ZnunyInstaller."""

import logging
import os
import shutil
from typing import Callable, Optional

from rich.console import Console

from znunyinstaller.constants import CONFIG_FILE_MODE, TREE_MODE, VAR_DIR_MODE, VAR_FILE_MODE


class FileSystemService:
    """Encapsulates file and directory side effects."""

    PERMISSION_TOOL = os.path.join("bin", "otrs.SetPermissions.pl")

    def __init__(self, logger: logging.Logger, console: Console):
        self.logger = logger
        self.console = console

    def set_permissions(self, path: str, mode: int):
        try:
            os.chmod(path, mode)
        except Exception as exc:
            self.logger.warning("Could not set permissions on %s: %s", path, exc)

    def set_tree_permissions(self, root: str, dir_mode: int, file_mode: int):
        if not os.path.exists(root):
            return

        self.set_permissions(root, dir_mode)
        for current_root, dirs, files in os.walk(root):
            for directory in dirs:
                self.set_permissions(os.path.join(current_root, directory), dir_mode)
            for file_name in files:
                file_path = os.path.join(current_root, file_name)
                if os.path.islink(file_path):
                    continue
                self.set_permissions(file_path, file_mode)

    def chown(self, path: str, owner: str, group: str, run_cmd: Callable, recursive: bool = False):
        cmd = ["chown"]
        if recursive:
            cmd.append("-R")
        cmd += [f"{owner}:{group}", path]
        run_cmd(cmd, check=True, capture_output=True)

    def cleanup_dir(self, path: str):
        if not os.path.exists(path):
            return
        shutil.rmtree(path)
        self.logger.debug("Removed directory: %s", path)

    def apply_manual_permissions(self, root: str, owner: str, group: str, run_cmd: Callable):
        self.logger.info("Applying manual permissions")
        self.chown(root, owner, group, run_cmd, recursive=True)
        self.set_tree_permissions(root, dir_mode=TREE_MODE, file_mode=TREE_MODE)
        self.set_tree_permissions(
            os.path.join(root, "var"),
            dir_mode=VAR_DIR_MODE,
            file_mode=VAR_FILE_MODE,
        )

    def normalize_permissions(
        self,
        root: str,
        owner: str,
        group: str,
        run_cmd: Callable,
        config_file: Optional[str] = None,
    ):
        """Prefers Znuny's own permission tool, falling back to the manual policy."""
        self.logger.info("Setting file permissions...")
        tool = os.path.join(root, self.PERMISSION_TOOL)

        if os.path.isfile(tool) and os.access(tool, os.X_OK):
            result = run_cmd(
                [tool, f"--znuny-user={owner}", f"--web-group={group}"],
                check=False,
                capture_output=True,
                cwd=root,
            )
            if result.returncode != 0:
                self.logger.warning(
                    "SetPermissions.pl reported issues, applying manual permissions"
                )
                self.apply_manual_permissions(root, owner, group, run_cmd)
        else:
            self.apply_manual_permissions(root, owner, group, run_cmd)

        if config_file and os.path.exists(config_file):
            self.set_permissions(config_file, CONFIG_FILE_MODE)

        self.logger.info("File permissions set successfully")
