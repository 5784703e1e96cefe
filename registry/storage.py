"""
Diploma Registry - Registry Storage Backend

This module provides JSON-based persistence with file locking, atomic replace-on-write,
optional compression and rotating backups. A state transition and its audit event are
written in the same document, so one atomic write commits both.
"""

import fcntl
import gzip
import hashlib
import json
import logging
import os
import platform
import shutil
import time
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from threading import RLock
from typing import Any, Callable, Dict, List, Optional, Union

from .exceptions import IntegrityError, LockTimeoutError, StorageError
from .schema import Registry


logger = logging.getLogger(__name__)

BACKUP_DIR = 'backups'


class FileLock:
    """Cross-platform file locking implementation."""

    def __init__(self, file_path: Union[str, Path], timeout: float = 30.0):
        self.file_path = Path(file_path)
        self.lock_file_path = self.file_path.with_suffix(self.file_path.suffix + '.lock')
        self.timeout = timeout
        self.lock_fd = None
        self._thread_lock = RLock()

    def is_locked(self) -> bool:
        return self.lock_fd is not None

    def acquire(self) -> bool:
        """
        Acquire file lock with timeout.

        The lock file is persistent and only the OS lock on it is exclusive, so a
        lock file left behind by a crashed process does not block later holders.
        """
        with self._thread_lock:
            if self.lock_fd is not None:
                return True  # Already locked by this instance

            start_time = time.time()

            while time.time() - start_time < self.timeout:
                try:
                    self.lock_fd = os.open(str(self.lock_file_path), os.O_CREAT | os.O_RDWR)
                except OSError as e:
                    raise StorageError(f"Failed to open lock file: {e}")

                try:
                    if platform.system() == 'Windows':
                        import msvcrt
                        msvcrt.locking(self.lock_fd, msvcrt.LK_NBLCK, 1)
                    else:
                        fcntl.flock(self.lock_fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
                    return True
                except OSError:
                    # Held by another process or instance, wait and retry
                    self._discard_fd()
                    time.sleep(0.01)

            raise LockTimeoutError(f"Failed to acquire lock within {self.timeout} seconds")

    def _discard_fd(self) -> None:
        try:
            os.close(self.lock_fd)
        finally:
            self.lock_fd = None

    def release(self) -> None:
        """Release file lock. The lock file itself is left in place."""
        with self._thread_lock:
            if self.lock_fd is None:
                return

            try:
                if platform.system() == 'Windows':
                    import msvcrt
                    msvcrt.locking(self.lock_fd, msvcrt.LK_UNLCK, 1)
                else:
                    fcntl.flock(self.lock_fd, fcntl.LOCK_UN)

                os.close(self.lock_fd)

            except OSError as e:
                # Don't raise, so the original exception is not masked
                logger.warning(f"Failed to release lock: {e}")
            finally:
                self.lock_fd = None

    def __enter__(self):
        self.acquire()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.release()


class JSONStorage:
    """Locked JSON document storage with atomic operations and compression."""

    def __init__(
        self,
        file_path: Union[str, Path],
        compressed: bool = False,
        backup_count: int = 5,
        lock_timeout: float = 30.0
    ):
        self.file_path = Path(file_path)
        self.compressed = compressed
        self.backup_count = backup_count
        self.lock_timeout = lock_timeout

        self.file_path.parent.mkdir(parents=True, exist_ok=True)

        if not self.file_path.exists():
            self._write_file({})

    @property
    def backup_dir(self) -> Path:
        return self.file_path.parent / BACKUP_DIR

    def _calculate_checksum(self, data: bytes) -> str:
        """Calculate SHA-256 checksum of data."""
        return hashlib.sha256(data).hexdigest()

    def _read_file(self) -> bytes:
        """Read raw file data."""
        opener = gzip.open if self.compressed else open
        with opener(self.file_path, 'rb') as f:
            return f.read()

    def _write_file(self, data: Dict[str, Any]) -> bytes:
        """Write data to file atomically. Returns the serialized bytes."""
        json_data = json.dumps(data, indent=2, sort_keys=True, default=str).encode('utf-8')

        temp_file = self.file_path.with_suffix(self.file_path.suffix + '.tmp')

        try:
            opener = gzip.open if self.compressed else open
            with opener(temp_file, 'wb') as f:
                f.write(json_data)

            # Atomic move (rename)
            os.replace(temp_file, self.file_path)

        except OSError as e:
            if temp_file.exists():
                temp_file.unlink()
            raise StorageError(f"Failed to write file: {e}")

        return json_data

    def _load(self) -> Dict[str, Any]:
        try:
            data = self._read_file()
        except OSError as e:
            raise StorageError(f"Failed to read storage: {e}")

        if not data:
            return {}

        try:
            return json.loads(data.decode('utf-8'))
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise IntegrityError(f"Invalid JSON data: {e}")

    def _store(self, data: Dict[str, Any], create_backup: bool) -> str:
        if create_backup:
            self._create_backup()
        return self._calculate_checksum(self._write_file(data))

    def _create_backup(self) -> Optional[Path]:
        """Create timestamped backup of current file."""
        if not self.file_path.exists():
            return None

        timestamp = datetime.now(timezone.utc).strftime('%Y%m%dT%H%M%S%f')
        backup_path = self.backup_dir / f"{self.file_path.stem}_{timestamp}{self.file_path.suffix}"

        backup_path.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(self.file_path, backup_path)

        self._cleanup_old_backups()
        return backup_path

    def _cleanup_old_backups(self) -> None:
        """Remove old backup files beyond backup_count."""
        for backup_file in self.list_backups()[self.backup_count:]:
            try:
                backup_file.unlink()
            except OSError as e:
                logger.warning(f"Failed to remove old backup {backup_file}: {e}")

    @contextmanager
    def _lock_context(self):
        """Context manager for file locking."""
        with FileLock(self.file_path, timeout=self.lock_timeout):
            yield

    def read(self) -> Dict[str, Any]:
        """Read and deserialize data from storage."""
        with self._lock_context():
            return self._load()

    def write(self, data: Dict[str, Any], create_backup: bool = True) -> str:
        """Write data to storage atomically and return its checksum."""
        with self._lock_context():
            return self._store(data, create_backup)

    def update(self, updater_func: Callable[[Dict[str, Any]], Dict[str, Any]],
               create_backup: bool = False) -> str:
        """
        Read, transform and write back under a single lock.

        Exceptions raised by updater_func propagate unchanged and nothing is written.
        """
        with self._lock_context():
            current_data = self._load()
            updated_data = updater_func(current_data)
            return self._store(updated_data, create_backup)

    def backup(self) -> Optional[Path]:
        """Create a backup of the current file under the lock."""
        with self._lock_context():
            return self._create_backup()

    def exists(self) -> bool:
        """Check if storage file exists."""
        return self.file_path.exists()

    def size(self) -> int:
        """Get storage file size in bytes."""
        if not self.file_path.exists():
            return 0
        return self.file_path.stat().st_size

    def list_backups(self) -> List[Path]:
        """List available backup files, newest first."""
        if not self.backup_dir.exists():
            return []

        pattern = f"{self.file_path.stem}_*{self.file_path.suffix}"
        return sorted(self.backup_dir.glob(pattern), key=lambda p: p.name, reverse=True)

    def restore_backup(self, backup_timestamp: str) -> bool:
        """Restore from a specific backup."""
        backup_name = f"{self.file_path.stem}_{backup_timestamp}{self.file_path.suffix}"
        backup_path = self.backup_dir / backup_name

        if not backup_path.exists():
            return False

        with self._lock_context():
            # Back up current state before restore
            self._create_backup()
            shutil.copy2(backup_path, self.file_path)

        return True


class RegistryStorage:
    """High-level registry storage interface."""

    def __init__(
        self,
        storage_dir: Union[str, Path] = "registry_data",
        compressed: bool = False,
        backup_count: int = 5,
        lock_timeout: float = 30.0,
        backup_on_commit: bool = False
    ):
        self.storage_dir = Path(storage_dir)
        self.storage_dir.mkdir(parents=True, exist_ok=True)
        self.backup_on_commit = backup_on_commit

        file_name = "registry.json.gz" if compressed else "registry.json"
        self.json_storage = JSONStorage(
            self.storage_dir / file_name,
            compressed=compressed,
            backup_count=backup_count,
            lock_timeout=lock_timeout
        )

    @staticmethod
    def _parse(data: Dict[str, Any]) -> Registry:
        if not data:
            return Registry()
        try:
            return Registry.model_validate(data)
        except ValueError as e:
            raise IntegrityError(f"Registry document failed validation: {e}")

    def load_registry(self) -> Registry:
        """Load registry from storage."""
        return self._parse(self.json_storage.read())

    def update_registry(self, updater_func: Callable[[Registry], Registry]) -> str:
        """Apply a transition to the stored registry and commit it atomically."""
        def registry_updater(data):
            registry = updater_func(self._parse(data))
            return registry.model_dump(mode='json')

        return self.json_storage.update(registry_updater, create_backup=self.backup_on_commit)

    def backup_registry(self) -> bool:
        """Create manual backup of registry."""
        try:
            return self.json_storage.backup() is not None
        except (OSError, StorageError) as e:
            logger.error(f"Backup failed: {e}")
            return False

    def list_backups(self) -> List[str]:
        """List available backup timestamps."""
        return [backup.stem.rsplit('_', 1)[-1].split('.')[0]
                for backup in self.json_storage.list_backups()]

    def restore_backup(self, timestamp: str) -> bool:
        """Restore registry from backup."""
        return self.json_storage.restore_backup(timestamp)

    def get_storage_info(self) -> Dict[str, Any]:
        """Get storage information."""
        return {
            'backend': 'json',
            'file_path': str(self.json_storage.file_path),
            'compressed': self.json_storage.compressed,
            'size_bytes': self.json_storage.size(),
            'exists': self.json_storage.exists(),
            'backup_count': len(self.json_storage.list_backups())
        }


class MemoryStorage:
    """In-process registry storage with the same commit contract as RegistryStorage."""

    def __init__(self):
        self._document: Dict[str, Any] = {}
        self._lock = RLock()

    def load_registry(self) -> Registry:
        with self._lock:
            return RegistryStorage._parse(self._document)

    def update_registry(self, updater_func: Callable[[Registry], Registry]) -> str:
        with self._lock:
            registry = updater_func(RegistryStorage._parse(self._document))
            self._document = registry.model_dump(mode='json')
            return self._checksum()

    def _checksum(self) -> str:
        data = json.dumps(self._document, sort_keys=True, default=str).encode('utf-8')
        return hashlib.sha256(data).hexdigest()

    def backup_registry(self) -> bool:
        return False

    def list_backups(self) -> List[str]:
        return []

    def restore_backup(self, timestamp: str) -> bool:
        return False

    def get_storage_info(self) -> Dict[str, Any]:
        return {
            'backend': 'memory',
            'size_bytes': len(json.dumps(self._document, default=str)),
            'exists': bool(self._document),
            'backup_count': 0
        }
