"""Per-user match cache shared by every vgrep process.

The cache file is a JSON array of ``[index, file, line, content]`` rows with
the search's working directory appended as a final one-element row. Writes
go through a tempfile + rename and are serialized across processes by a pid
lock file next to the cache. The CLI writes in a background thread and must
``join()`` the writer before exiting.
"""

import json
import os
import tempfile
import threading
import time

from loguru import logger

from vgrep.errors import CacheError, CacheLockError, CacheMismatchError
from vgrep.matches import MatchRecord, MatchStore

CACHE_DIR = os.environ.get("VGREP_CACHE_DIR", os.path.expanduser("~/.cache"))
CACHE_NAME = "vgrep-py.json"
LOCK_NAME = "vgrep-py.lock"
LOCK_RETRY_SLEEP = 0.05


def cache_path() -> str:
    return os.path.join(CACHE_DIR, CACHE_NAME)


def lock_path() -> str:
    return os.path.join(CACHE_DIR, LOCK_NAME)


def current_directory() -> str:
    """Absolute, symlink-resolved working directory of this process."""
    return os.path.realpath(os.getcwd())


# --- Lock file ---

def _pid_alive(pid: int) -> bool:
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        return True
    return True


class CacheLock:
    """Cooperative cross-process lock backed by an O_EXCL pid file.

    ``acquire`` retries with a short sleep until the lock is free; a lock
    left behind by a dead process is taken over. ``release`` failures raise
    CacheLockError since a stale lock would block every later run.
    """

    def __init__(self, path: str | None = None, retry_sleep: float = LOCK_RETRY_SLEEP):
        self.path = path or lock_path()
        self.retry_sleep = retry_sleep
        self.held = False

    def _try_create(self) -> bool:
        try:
            fd = os.open(self.path, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
        except FileExistsError:
            return False
        except OSError as e:
            raise CacheLockError(f"Cannot create lock file {self.path}: {e}") from e
        with os.fdopen(fd, "w") as f:
            f.write(str(os.getpid()))
        return True

    def _owner(self, path: str | None = None) -> int | None:
        try:
            with open(path or self.path, "r") as f:
                return int(f.read().strip())
        except (OSError, ValueError):
            return None

    def _take_over(self, dead_owner: int):
        """Remove the lock of ``dead_owner``, leaving any newer lock alone.

        The lock file is renamed to a name private to this process before
        its owner is checked.
        """
        stale = f"{self.path}.{os.getpid()}.stale"
        try:
            os.rename(self.path, stale)
        except FileNotFoundError:
            return
        except OSError as e:
            raise CacheLockError(f"Cannot remove stale lock file {self.path}: {e}") from e
        try:
            if self._owner(stale) == dead_owner:
                logger.debug("Removed stale lock of dead process {}", dead_owner)
                return
            # another process took the lock over in the meantime: put it back
            try:
                os.link(stale, self.path)
            except FileExistsError:
                logger.warning("Lock file {} was replaced during stale lock takeover", self.path)
        finally:
            os.unlink(stale)

    def acquire(self):
        os.makedirs(os.path.dirname(self.path), exist_ok=True)
        while not self._try_create():
            owner = self._owner()
            if owner is not None and owner != os.getpid() and not _pid_alive(owner):
                self._take_over(owner)
                continue
            time.sleep(self.retry_sleep)
        self.held = True
        logger.debug("Acquired cache lock {}", self.path)

    def release(self):
        if not self.held:
            return
        try:
            os.unlink(self.path)
        except OSError as e:
            raise CacheLockError(f"Cannot release lock file {self.path}: {e}") from e
        self.held = False
        logger.debug("Released cache lock {}", self.path)

    def __enter__(self):
        self.acquire()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.release()
        return False


# --- Serialization ---

def dumps(records: list[MatchRecord], working_directory: str) -> str:
    rows = [r.to_row() for r in records]
    rows.append([working_directory])
    return json.dumps(rows)


def loads(text: str) -> tuple[list[MatchRecord], str]:
    """Inverse of ``dumps``; raises ValueError/TypeError on malformed data."""
    rows = json.loads(text)
    if not isinstance(rows, list) or not rows:
        raise ValueError("cache is not a non-empty list")
    trailer = rows.pop()
    if not isinstance(trailer, list) or len(trailer) != 1 or not isinstance(trailer[0], str):
        raise ValueError("missing working directory record")
    return [MatchRecord.from_row(row) for row in rows], trailer[0]


def write_cache(records: list[MatchRecord], working_directory: str, path: str | None = None,
                lock: CacheLock | None = None):
    """Atomically write a snapshot to the cache under the lock."""
    path = path or cache_path()
    directory = os.path.dirname(path)
    payload = dumps(records, working_directory)
    lock = lock or CacheLock(os.path.join(directory, LOCK_NAME))
    with lock:
        os.makedirs(directory, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=directory, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
            os.replace(tmp_path, path)
        except OSError as e:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise CacheError(f"Cannot write cache {path}: {e}") from e
    logger.debug("Wrote {} matches to {}", len(records), path)


def load_cache(path: str | None = None, strict: bool = False,
               lock: CacheLock | None = None) -> MatchStore:
    """Load the cached store.

    A corrupt cache is deleted and reported as CacheError. When the cached
    working directory differs from the current one the store keeps the
    cached directory (so relative paths still resolve) and a warning is
    logged; with ``strict`` a CacheMismatchError is raised instead.
    """
    path = path or cache_path()
    lock = lock or CacheLock(os.path.join(os.path.dirname(path), LOCK_NAME))
    with lock:
        try:
            with open(path, "rb") as f:
                data = f.read()
        except OSError as e:
            raise CacheError(f"Cannot read cache {path}: {e.strerror or e}") from e
        try:
            records, cached_dir = loads(data.decode("utf-8"))
        except (ValueError, TypeError) as e:
            logger.debug("Removing corrupt cache {}: {}", path, e)
            try:
                os.remove(path)
            except OSError:
                pass
            raise CacheError(f"Corrupt cache {path}: {e}") from e

    here = current_directory()
    if cached_dir != here:
        if strict:
            raise CacheMismatchError(cached_dir, here)
        logger.warning("Using matches cached in {} (current directory: {})", cached_dir, here)
    return MatchStore(records, working_directory=cached_dir)


# --- Background writer ---

class CacheWriter:
    """Single-flight background persistence of a MatchStore.

    ``schedule`` snapshots the store and writes it in a thread, joining any
    write still in flight first. ``join`` blocks until the last write is
    done and re-raises its error, if any.
    """

    def __init__(self, path: str | None = None):
        self.path = path
        self._thread: threading.Thread | None = None
        self._error: Exception | None = None

    def _run(self, records: list[MatchRecord], working_directory: str):
        try:
            write_cache(records, working_directory, path=self.path)
        except (CacheError, OSError) as e:
            self._error = e

    def schedule(self, store: MatchStore):
        try:
            self.join()
        except CacheLockError:
            raise
        except (CacheError, OSError) as e:
            logger.warning("Previous cache write failed: {}", e)
        snapshot = [MatchRecord(r.index, r.file, r.line, r.content) for r in store]
        self._thread = threading.Thread(
            target=self._run,
            args=(snapshot, store.working_directory),
            name="vgrep-cache-writer",
        )
        self._thread.start()

    def join(self):
        if self._thread is not None:
            self._thread.join()
            self._thread = None
        if self._error is not None:
            error, self._error = self._error, None
            raise error
