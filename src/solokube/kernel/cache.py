"""Boot kernel cache.

The kernel binary is fetched once from a release archive and kept under the
user cache directory at ``<cache>/cluster/kernels/<archive name>/vmlinux``.
A cached file is valid when it exists and is non-empty; its contents are not
re-verified.
"""

import asyncio
import os
import tarfile
import tempfile
from collections.abc import Callable
from pathlib import Path, PurePosixPath
from urllib.parse import urlparse

import httpx
import platformdirs
import zstandard

from solokube.core.config import DEFAULT_KERNEL_ARCHIVE_URL, KernelConfig
from solokube.core.exceptions import (
    KernelArchiveError,
    KernelCacheError,
    KernelDownloadError,
)
from solokube.utils.logging import get_logger
from solokube.utils.paths import expand_tilde

logger = get_logger(__name__)

KERNEL_MODE = 0o644
DOWNLOAD_TIMEOUT = httpx.Timeout(60.0)


class KernelCache:
    """Directory-backed store for the cluster boot kernel."""

    def __init__(
        self,
        archive_url: str = DEFAULT_KERNEL_ARCHIVE_URL,
        archive_member: str = "vmlinux",
        cache_root: str | Path | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize kernel cache.

        Args:
            archive_url: URL of the zstd-compressed kernel tarball
            archive_member: Path of the kernel binary inside the archive
            cache_root: Base cache directory (platform user cache dir if None)
            transport: HTTP transport override (optional)
        """
        self.archive_url = archive_url
        self.archive_member = archive_member
        self.cache_root = Path(cache_root) if cache_root else Path(platformdirs.user_cache_dir())
        self._transport = transport

    @classmethod
    def from_config(cls, config: KernelConfig) -> "KernelCache":
        """Build a cache from kernel configuration."""
        return cls(
            archive_url=config.archive_url,
            archive_member=config.archive_member,
            cache_root=expand_tilde(config.cache_dir) if config.cache_dir else None,
        )

    @property
    def archive_name(self) -> str:
        return PurePosixPath(urlparse(self.archive_url).path).name

    @property
    def cache_dir(self) -> Path:
        return self.cache_root / "cluster" / "kernels"

    @property
    def cached_path(self) -> Path:
        """Deterministic location of the cached kernel for this archive."""
        return self.cache_dir / self.archive_name / PurePosixPath(self.archive_member).name

    def is_cached(self) -> bool:
        """Check whether a non-empty cached kernel exists."""
        try:
            return self.cached_path.stat().st_size > 0
        except OSError:
            return False

    async def resolve(
        self,
        explicit_path: str | None = None,
        on_fetch: Callable[[], None] | None = None,
    ) -> str:
        """Resolve the kernel binary to boot the node with.

        An explicit path is tilde-expanded and returned without validation.
        Otherwise the cached kernel is returned, downloading it on a miss.

        Args:
            explicit_path: User-supplied kernel path (optional)
            on_fetch: Called once before a download starts (optional)

        Returns:
            Absolute kernel path

        Raises:
            KernelResolutionError: If the kernel cannot be downloaded or cached
        """
        if explicit_path:
            return str(expand_tilde(explicit_path))

        try:
            self.cache_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise KernelCacheError(f"failed to create kernel cache {self.cache_dir}: {e}") from e

        if self.is_cached():
            logger.debug("kernel_cache_hit", path=str(self.cached_path))
            return str(self.cached_path)

        if on_fetch is not None:
            on_fetch()
        return await self._populate()

    async def _populate(self) -> str:
        cached = self.cached_path
        logger.info("kernel_download_started", url=self.archive_url)

        try:
            cached.parent.mkdir(parents=True, exist_ok=True)
            # Same filesystem as the cache so the final move is an atomic rename.
            with tempfile.TemporaryDirectory(dir=self.cache_dir, prefix=".fetch-") as tmp:
                work_dir = Path(tmp)
                archive = work_dir / self.archive_name
                await self._download(archive)
                extracted = await asyncio.to_thread(self._extract, archive, work_dir)

                cached.unlink(missing_ok=True)
                os.replace(extracted, cached)
                os.chmod(cached, KERNEL_MODE)
        except OSError as e:
            logger.error("kernel_cache_write_failed", path=str(cached), error=str(e))
            raise KernelCacheError(f"failed to cache kernel at {cached}: {e}") from e

        logger.info("kernel_cached", path=str(cached))
        return str(cached)

    async def _download(self, destination: Path) -> None:
        try:
            async with httpx.AsyncClient(
                follow_redirects=True,
                timeout=DOWNLOAD_TIMEOUT,
                transport=self._transport,
            ) as client:
                async with client.stream("GET", self.archive_url) as response:
                    if not response.is_success:
                        raise KernelDownloadError(
                            f"failed to download kernel archive: HTTP {response.status_code}",
                            status=response.status_code,
                        )
                    with destination.open("wb") as f:
                        async for chunk in response.aiter_bytes():
                            f.write(chunk)
        except httpx.HTTPError as e:
            logger.error("kernel_download_failed", url=self.archive_url, error=str(e))
            raise KernelDownloadError(f"failed to download kernel archive: {e}") from e

        logger.debug("kernel_archive_downloaded", path=str(destination))

    def _extract(self, archive: Path, directory: Path) -> Path:
        """Extract the kernel member into ``directory``.

        Raises:
            KernelArchiveError: If the member is missing or not a regular file
        """
        target = PurePosixPath(self.archive_member)
        data = None

        try:
            with (
                archive.open("rb") as fh,
                zstandard.ZstdDecompressor().stream_reader(fh) as reader,
                tarfile.open(fileobj=reader, mode="r|") as tar,
            ):
                for member in tar:
                    if PurePosixPath(member.name) != target:
                        continue
                    if not member.isfile():
                        raise KernelArchiveError(
                            f"kernel {self.archive_member} is not a regular file in archive"
                        )
                    data = tar.extractfile(member).read()
                    break
        except (tarfile.TarError, zstandard.ZstdError) as e:
            raise KernelArchiveError(f"failed to read kernel archive: {e}") from e

        if data is None:
            raise KernelArchiveError(f"kernel {self.archive_member} not found in archive")

        output = directory / target.name
        fd, tmp_name = tempfile.mkstemp(dir=directory)
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        os.replace(tmp_name, output)
        return output
