import os
import shutil
import tarfile
import tempfile
import threading
import zipfile
from pathlib import Path

import requests
from packaging.version import Version
from urllib3.exceptions import ReadTimeoutError

from . import config
from .errors import FetchTimeout, FetchUnavailable

MARKER = ".complete"


def _is_read_timeout(error):
    """requests re-raises a read timeout hit while streaming the body as a ConnectionError."""
    candidates = list(error.args)
    cause = error.__cause__ or error.__context__
    while cause is not None:
        candidates.append(cause)
        cause = cause.__cause__ or cause.__context__
    return any(isinstance(c, (ReadTimeoutError, TimeoutError)) for c in candidates)


def _extract_archive(archive_path: Path, extract_dir: Path):
    """
    Extracts a .zip or .tar.gz archive and flattens a single top-level folder.

    GitHub tag archives unpack into '<repo>-<version>/'; the package cache
    wants the package contents directly under its version directory.
    """
    name = archive_path.name
    if name.endswith(".zip"):
        with zipfile.ZipFile(archive_path, 'r') as zip_ref:
            zip_ref.extractall(extract_dir)
    elif name.endswith((".tar.gz", ".tgz")):
        with tarfile.open(archive_path, 'r:gz') as tar_ref:
            tar_ref.extractall(extract_dir, filter="data")
    else:
        raise ValueError(f"Unsupported archive format: {name}")
    archive_path.unlink()

    entries = [entry for entry in extract_dir.iterdir() if entry.name != MARKER]
    if len(entries) == 1 and entries[0].is_dir():
        top = entries[0]
        for child in top.iterdir():
            shutil.move(str(child), str(extract_dir / child.name))
        top.rmdir()


class HttpFetcher:
    """
    Downloads a package archive over HTTP and unpacks it into a directory.

    Timeouts surface as FetchTimeout; any other network or HTTP failure as
    FetchUnavailable, so callers can decide whether a retry is worth it.
    """

    def __init__(self, session=None, timeout=None, chunk_size=8192, show_progress=True):
        self.session = session or requests.Session()
        self.timeout = config.FETCH_TIMEOUT if timeout is None else timeout
        self.chunk_size = chunk_size
        self.show_progress = show_progress

    def fetch(self, ref, dest_dir: Path):
        """
        Downloads `ref.source` into `dest_dir` and extracts it there.

        Args:
            ref (PackageRef): The package to fetch.
            dest_dir (Path): An empty directory owned by the caller.

        Raises:
            FetchTimeout: The server did not answer within `timeout` seconds.
            FetchUnavailable: Connection failure, HTTP error or corrupt archive.
        """
        archive_name = os.path.basename(ref.source.split("?", 1)[0]) or "package.tar.gz"
        archive_path = Path(dest_dir) / archive_name
        print(f"    -> Downloading {ref} from {ref.source}")
        try:
            with self.session.get(ref.source, stream=True, timeout=self.timeout) as response:
                response.raise_for_status()
                self._write_stream(response, archive_path)
        except requests.exceptions.Timeout as e:
            raise FetchTimeout(str(ref), self.timeout) from e
        except requests.exceptions.ConnectionError as e:
            if _is_read_timeout(e):
                raise FetchTimeout(str(ref), self.timeout) from e
            raise FetchUnavailable(str(ref), str(e)) from e
        except requests.exceptions.HTTPError as e:
            status = e.response.status_code if e.response is not None else "error"
            raise FetchUnavailable(str(ref), f"HTTP {status}") from e
        except requests.exceptions.RequestException as e:
            raise FetchUnavailable(str(ref), str(e)) from e

        print(f"    -> Extracting {archive_name}...")
        try:
            _extract_archive(archive_path, Path(dest_dir))
        except (zipfile.BadZipFile, tarfile.TarError, ValueError) as e:
            raise FetchUnavailable(str(ref), f"corrupt archive: {e}") from e

    def _write_stream(self, response, archive_path: Path):
        total_size_str = response.headers.get('Content-Length')
        total_size = int(total_size_str) if total_size_str else 0
        downloaded_size = 0
        with open(archive_path, 'wb') as out_file:
            for chunk in response.iter_content(chunk_size=self.chunk_size):
                if not chunk:
                    continue
                out_file.write(chunk)
                downloaded_size += len(chunk)
                if self.show_progress and total_size:
                    # Draw progress bar
                    progress = downloaded_size / total_size
                    bar_length = 40
                    filled_length = int(bar_length * progress)
                    bar = '█' * filled_length + '-' * (bar_length - filled_length)
                    print(f"\r      [{bar}] {progress * 100:.1f}% ({downloaded_size/1024/1024:.1f}/{total_size/1024/1024:.1f} MB)", end="")
        if self.show_progress and total_size:
            print()  # Newline after the progress bar is complete


class PackageCache:
    """
    Local package store keyed by (name, version).

    A package directory only becomes visible once it is complete: fetches
    land in a temporary sibling directory that is moved into place at the
    end, so an interrupted or failed fetch leaves nothing behind and the
    fetch can simply be retried. At most one fetch per package is in flight
    within the process.
    """

    def __init__(self, root=None, fetcher=None):
        self.root = Path(root or config.CACHE_DIR)
        self.fetcher = fetcher or HttpFetcher()
        self._locks = {}
        self._locks_guard = threading.Lock()

    def path_for(self, ref) -> Path:
        return self.root / ref.name / ref.version

    def is_cached(self, ref) -> bool:
        return (self.path_for(ref) / MARKER).is_file()

    def _lock_for(self, ref):
        key = (ref.name, ref.version)
        with self._locks_guard:
            return self._locks.setdefault(key, threading.Lock())

    def fetch(self, ref) -> Path:
        """Returns the cached directory for `ref`, fetching it first if needed."""
        target = self.path_for(ref)
        with self._lock_for(ref):
            if self.is_cached(ref):
                return target

            target.parent.mkdir(parents=True, exist_ok=True)
            staging = Path(tempfile.mkdtemp(prefix=f".{ref.version}-", dir=target.parent))
            try:
                self.fetcher.fetch(ref, staging)
                (staging / MARKER).write_text(ref.source)
                if target.exists():
                    # Left over from a run that died before writing its marker.
                    shutil.rmtree(target)
                os.replace(staging, target)
            finally:
                if staging.exists():
                    shutil.rmtree(staging, ignore_errors=True)
        print(f"    -> Cached {ref} in {target}")
        return target

    def cached_versions(self, name):
        """Lists the complete cached versions of `name`, oldest first."""
        package_dir = self.root / name
        if not package_dir.is_dir():
            return []
        return sorted(
            (entry.name for entry in package_dir.iterdir()
             if not entry.name.startswith(".") and (entry / MARKER).is_file()),
            key=Version,
        )
