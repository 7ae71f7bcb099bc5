"""Download service with retries, progress reporting and checksum validation."""

import hashlib
import os
import time
from typing import Optional

from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TaskProgressColumn,
    TextColumn,
    TimeElapsedColumn,
)

from znunyinstaller.constants import (
    DOWNLOAD_ATTEMPTS,
    DOWNLOAD_BACKOFF_SECONDS,
    DOWNLOAD_TIMEOUT_SECONDS,
)
from znunyinstaller.errors import DownloadError, TransientFetchError
from znunyinstaller.errors_catalog import actionable_error


class DownloadService:
    """Fetches the release archive to a temporary name and publishes it atomically."""

    def __init__(
        self,
        logger,
        console,
        requests_module,
        attempts: int = DOWNLOAD_ATTEMPTS,
        retry_backoff_seconds: float = DOWNLOAD_BACKOFF_SECONDS,
        timeout: float = DOWNLOAD_TIMEOUT_SECONDS,
    ):
        self.logger = logger
        self.console = console
        self.requests = requests_module
        self.attempts = max(1, attempts)
        self.retry_backoff_seconds = retry_backoff_seconds
        self.timeout = timeout

    @staticmethod
    def has_archive(path: str) -> bool:
        return os.path.isfile(path) and os.path.getsize(path) > 0

    def _download_once(self, url: str, temp_path: str, description: str, expected_sha256: Optional[str]):
        hasher = hashlib.sha256() if expected_sha256 else None

        try:
            with self.requests.get(url, stream=True, timeout=self.timeout) as response:
                response.raise_for_status()
                total_size = int(response.headers.get("Content-Length", 0))

                with Progress(
                    SpinnerColumn(),
                    TextColumn("[progress.description]{task.description}"),
                    BarColumn(),
                    TaskProgressColumn(),
                    "•",
                    TimeElapsedColumn(),
                    console=self.console,
                ) as progress:
                    task = progress.add_task(f"[cyan]{description}", total=total_size or None)
                    with open(temp_path, "wb") as file_obj:
                        for chunk in response.iter_content(chunk_size=8192):
                            if not chunk:
                                continue
                            file_obj.write(chunk)
                            if hasher:
                                hasher.update(chunk)
                            progress.update(task, advance=len(chunk))
        except self.requests.RequestException as exc:
            raise TransientFetchError(f"Download failed for {description}: {exc}") from exc
        except OSError as exc:
            raise TransientFetchError(f"Could not write {temp_path}: {exc}") from exc

        if not self.has_archive(temp_path):
            raise TransientFetchError(f"Download of {description} produced an empty file.")

        if hasher:
            downloaded_sha = hasher.hexdigest()
            if downloaded_sha != expected_sha256:
                raise TransientFetchError(
                    f"Checksum mismatch for {description}. Expected {expected_sha256}, "
                    f"but got {downloaded_sha}."
                )

    @staticmethod
    def _discard(path: str):
        try:
            os.remove(path)
        except OSError:
            pass

    def fetch(
        self,
        url: str,
        dest_path: str,
        description: str = "Downloading...",
        expected_sha256: Optional[str] = None,
    ) -> str:
        if self.has_archive(dest_path):
            self.logger.info("Using existing archive %s", dest_path)
            return dest_path

        self.logger.info("Downloading %s to %s", url, dest_path)
        self.console.print(f"[blue]Downloading from: {url}[/blue]")
        os.makedirs(os.path.dirname(dest_path) or ".", exist_ok=True)
        temp_path = f"{dest_path}.tmp"

        for attempt in range(1, self.attempts + 1):
            try:
                self._download_once(url, temp_path, description, expected_sha256)
            except TransientFetchError as exc:
                self._discard(temp_path)
                self.logger.warning("Download attempt %s failed: %s", attempt, exc)
                if attempt < self.attempts:
                    self.logger.info("Retrying in %.0f seconds...", self.retry_backoff_seconds)
                    time.sleep(self.retry_backoff_seconds)
                continue

            os.replace(temp_path, dest_path)
            break

        if not self.has_archive(dest_path):
            raise DownloadError(
                actionable_error("download_failed", url=url, attempts=self.attempts, path=dest_path)
            )
        return dest_path
