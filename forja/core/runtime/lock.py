"""
Lock de ejecución: una sola ejecución por host a la vez.

El motor asume propiedad exclusiva del host; quien lo invoca (la CLI) toma
este lock antes de empezar y lo libera al terminar.
"""

import fcntl
import os
from pathlib import Path
from typing import Optional

from forja.core.errors import LockError


class RunLock:
    """flock exclusivo y no bloqueante sobre un archivo; guarda el PID del dueño."""

    def __init__(self, path: Path):
        self.path = path
        self._fd: Optional[int] = None

    @property
    def held(self) -> bool:
        return self._fd is not None

    def acquire(self) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd = os.open(self.path, os.O_RDWR | os.O_CREAT, 0o644)
        except OSError as e:
            raise LockError(f"No se pudo abrir el lock {self.path}: {e}") from e
        try:
            fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
        except BlockingIOError:
            owner = os.pread(fd, 32, 0).decode(errors="replace").strip() or "?"
            os.close(fd)
            raise LockError(f"Otra ejecución mantiene el lock {self.path} (pid {owner})") from None
        os.ftruncate(fd, 0)
        os.pwrite(fd, f"{os.getpid()}\n".encode(), 0)
        self._fd = fd

    def release(self) -> None:
        if self._fd is None:
            return
        os.ftruncate(self._fd, 0)
        fcntl.flock(self._fd, fcntl.LOCK_UN)
        os.close(self._fd)
        self._fd = None

    def __enter__(self) -> "RunLock":
        self.acquire()
        return self

    def __exit__(self, *exc) -> None:
        self.release()
