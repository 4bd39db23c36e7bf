"""Scoped access to user-granted files and directories.

A path handed over by the user is turned into a ResourceToken right away. Later
operations resolve the token back into a path and bracket every filesystem touch
with begin_access/end_access, so access is never held longer than one operation.

Bookmarks record the granted path together with its device/inode identity. A token
whose location was replaced or removed since the grant is stale: it still resolves
(best effort) and the next begin_access re-validates the live permissions.
"""

import base64
import json
import logging
import os
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, Tuple, TypeVar, Union

from upmix.domain.errors import PermissionDenied
from upmix.domain.models import ResourceToken

T = TypeVar("T")


class ResourceHandle:
    """Creates, resolves and scopes ResourceTokens."""

    def __init__(self):
        self.logger = logging.getLogger(__name__)
        self._open_scopes: Dict[str, int] = {}
        self._lock = threading.Lock()

    @staticmethod
    def _can_access(path: Path, writable: bool) -> bool:
        if not path.exists():
            return False
        if path.is_dir():
            mode = os.R_OK | os.X_OK
            if writable:
                mode |= os.W_OK
            return os.access(path, mode)
        mode = os.R_OK | (os.W_OK if writable else 0)
        return os.access(path, mode)

    @staticmethod
    def _encode(payload: Dict[str, Any]) -> str:
        raw = json.dumps(payload, sort_keys=True).encode("utf-8")
        return base64.urlsafe_b64encode(raw).decode("ascii")

    @staticmethod
    def _decode(bookmark: str) -> Dict[str, Any]:
        raw = base64.urlsafe_b64decode(bookmark.encode("ascii"))
        return json.loads(raw.decode("utf-8"))

    def create_token(self, path: Union[str, Path], writable: bool = False) -> ResourceToken:
        """Converts a live, accessible path into a durable token."""
        granted = Path(path).expanduser().absolute()
        if not self._can_access(granted, writable):
            raise PermissionDenied(granted, "Failed to create a security-scoped bookmark for file access.")

        st = granted.stat()
        bookmark = self._encode({
            "path": str(granted),
            "dev": st.st_dev,
            "ino": st.st_ino,
            "dir": granted.is_dir(),
        })
        return ResourceToken(original_path=granted, bookmark=bookmark, writable=writable)

    def _resolve_with_staleness(self, token: ResourceToken) -> Tuple[Path, bool]:
        try:
            data = self._decode(token.bookmark)
            path = Path(data["path"])
        except (ValueError, KeyError, TypeError) as e:
            self.logger.warning(f"BOOKMARK_UNREADABLE: {token.original_path.name} ({e}); using granted path")
            return token.original_path, True

        try:
            st = path.stat()
        except OSError:
            return path, True
        return path, (st.st_dev, st.st_ino) != (data.get("dev"), data.get("ino"))

    def is_stale(self, token: ResourceToken) -> bool:
        return self._resolve_with_staleness(token)[1]

    def resolve(self, token: ResourceToken) -> Path:
        """Re-derives the path for a token. Stale tokens are logged, not rejected."""
        path, stale = self._resolve_with_staleness(token)
        if stale:
            self.logger.warning(f"Bookmark data is stale for {token.original_path.name}")
        return path

    def begin_access(self, token: ResourceToken) -> Path:
        path = self.resolve(token)
        if not self._can_access(path, token.writable):
            raise PermissionDenied(path)
        with self._lock:
            self._open_scopes[token.bookmark] = self._open_scopes.get(token.bookmark, 0) + 1
        return path

    def end_access(self, token: ResourceToken) -> None:
        with self._lock:
            count = self._open_scopes.get(token.bookmark, 0)
            if count <= 1:
                self._open_scopes.pop(token.bookmark, None)
            else:
                self._open_scopes[token.bookmark] = count - 1

    @property
    def open_scopes(self) -> int:
        """Number of access scopes currently held, across all tokens."""
        with self._lock:
            return sum(self._open_scopes.values())

    @contextmanager
    def scope(self, token: ResourceToken) -> Iterator[Path]:
        path = self.begin_access(token)
        try:
            yield path
        finally:
            self.end_access(token)

    def with_scope(self, token: ResourceToken, operation: Callable[[Path], T]) -> T:
        """Runs operation against the resolved path while access is held.

        Raises PermissionDenied without calling operation if access cannot begin;
        errors from operation propagate unchanged after access is released.
        """
        with self.scope(token) as path:
            return operation(path)
