"""Archive extraction and stable-link publication for ZnunyInstaller."""

import os
import tarfile
from pathlib import Path

from znunyinstaller.errors import ExtractError


class ArchiveService:
    """Encapsulates safe archive extraction logic."""

    def __init__(self, logger, filesystem_service):
        self.logger = logger
        self.filesystem_service = filesystem_service

    def is_within_dir(self, base_dir: Path, candidate: Path) -> bool:
        try:
            return os.path.commonpath([str(base_dir), str(candidate)]) == str(base_dir)
        except ValueError:
            return False

    def safe_extract_tar(self, tar_path: str, destination_dir: str):
        base = Path(destination_dir).resolve()

        try:
            with tarfile.open(tar_path, "r:*") as tar_ref:
                members = tar_ref.getmembers()
                for member in members:
                    target_path = (base / member.name).resolve()
                    if not self.is_within_dir(base, target_path):
                        raise ExtractError(
                            f"Unsafe archive entry detected: `{member.name}`. "
                            "Archive extraction aborted to prevent path traversal."
                        )

                    if member.issym() or member.islnk():
                        link_base = target_path.parent if member.issym() else base
                        link_target = (link_base / member.linkname).resolve()
                        if not self.is_within_dir(base, link_target):
                            raise ExtractError(
                                f"Unsafe archive entry detected: `{member.name}` links outside "
                                "the install directory."
                            )

                    if member.isdev():
                        raise ExtractError(
                            f"Unsafe archive entry detected: `{member.name}` is a device file."
                        )

                if hasattr(tarfile, "data_filter"):
                    tar_ref.extractall(str(base), members=members, filter="data")
                else:
                    tar_ref.extractall(str(base), members=members)
        except (tarfile.TarError, EOFError, OSError) as exc:
            raise ExtractError(f"Failed to extract archive {tar_path}: {exc}") from exc

    def publish_link(self, target_dir: str, link_path: str):
        if os.path.islink(link_path):
            os.remove(link_path)
        elif os.path.exists(link_path):
            raise ExtractError(
                f"{link_path} exists and is not a symbolic link. Move it away and retry."
            )
        os.symlink(target_dir, link_path)
        self.logger.info("Linked %s -> %s", link_path, target_dir)

    def install_release(self, archive_path: str, release_dir: str, link_path: str):
        if os.path.isdir(release_dir):
            self.logger.warning("Release directory %s already exists, removing...", release_dir)
            try:
                self.filesystem_service.cleanup_dir(release_dir)
            except OSError as exc:
                raise ExtractError(
                    f"Could not remove stale release directory {release_dir}: {exc}"
                ) from exc

        self.logger.info("Extracting %s...", archive_path)
        self.safe_extract_tar(archive_path, os.path.dirname(release_dir))

        if not os.path.isdir(release_dir):
            raise ExtractError(
                f"Archive {archive_path} did not contain the expected directory "
                f"{os.path.basename(release_dir)}."
            )

        self.publish_link(release_dir, link_path)
