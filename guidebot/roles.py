"""Role store for guidebot.

Holds the two independent role sets, admins and authorized users,
keyed by Telegram username, and persists them as a single JSON file
(see models.RoleSnapshot). Every mutation updates memory under the
exclusive lock and then rewrites the whole file.

Key classes:
    ReadWriteLock: Shared/exclusive lock built on threading.Condition.
    RoleStore: Membership checks and mutations with persistence.
"""

import os
import tempfile
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterator, List, Optional

import structlog
from pydantic import ValidationError

from .exceptions import RoleStoreError
from .models import AdminEntry, RoleSnapshot

logger = structlog.get_logger("guidebot.roles")


class ReadWriteLock:
    """Many readers or one writer.

    Writers wait for active readers to drain; new readers wait while a
    writer holds or is waiting for the lock, so writers are not starved.
    Not reentrant.
    """

    def __init__(self):
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    @contextmanager
    def read(self) -> Iterator[None]:
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def write(self) -> Iterator[None]:
        with self._cond:
            self._writers_waiting += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


class RoleStore:
    """Admins and authorized users, persisted to a JSON file.

    Construction loads the file. A missing file is an empty store; an
    unreadable or malformed one is logged and the store starts empty.
    Mutations never raise on persist failure: the in-memory state stays
    authoritative and the next successful save writes it out in full.

    Args:
        path: Location of the snapshot file (e.g. ``data/admins.json``).
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        self._lock = ReadWriteLock()
        self._save_lock = threading.Lock()  # one writer of the file at a time
        self._admins: Dict[str, Optional[int]] = {}  # username -> chat id
        self._authorized: Dict[str, bool] = {}
        try:
            self.load()
        except RoleStoreError as e:
            logger.error("role_store_load_failed", path=str(self.path), error=str(e))
            with self._lock.write():
                self._admins = {}
                self._authorized = {}

    # --- persistence ---

    def load(self) -> None:
        """Replace in-memory state with the snapshot on disk.

        Raises:
            RoleStoreError: If the file exists but cannot be read or
                does not hold a valid snapshot.
        """
        try:
            raw = self.path.read_bytes()
        except FileNotFoundError:
            logger.info("role_store_missing", path=str(self.path))
            with self._lock.write():
                self._admins = {}
                self._authorized = {}
            return
        except OSError as e:
            raise RoleStoreError(
                f"error reading role file: {e}", operation="load", path=str(self.path)
            ) from e

        try:
            snapshot = RoleSnapshot.model_validate_json(raw)
        except (ValidationError, UnicodeDecodeError) as e:
            raise RoleStoreError(
                f"error parsing role file: {e}", operation="load", path=str(self.path)
            ) from e

        with self._lock.write():
            # Admin identity is the entry's Username, not its key
            self._admins = {
                entry.username: entry.chat_id for entry in snapshot.admins.values()
            }
            self._authorized = {
                username: True
                for username, allowed in snapshot.authorized_users.items()
                if allowed
            }
            counts = (len(self._admins), len(self._authorized))
        logger.info("role_store_loaded", admins=counts[0], authorized_users=counts[1])

    def save(self) -> None:
        """Write the full snapshot, replacing the file atomically.

        Raises:
            RoleStoreError: If the file cannot be written.
        """
        with self._save_lock, self._lock.read():
            snapshot = RoleSnapshot(
                admins={
                    username: AdminEntry(username=username, chat_id=chat_id)
                    for username, chat_id in self._admins.items()
                },
                authorized_users=dict(self._authorized),
            )
            data = snapshot.to_json()

            tmp_name = None
            try:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                fd, tmp_name = tempfile.mkstemp(
                    dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp"
                )
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    f.write(data)
                os.replace(tmp_name, self.path)
            except OSError as e:
                if tmp_name and os.path.exists(tmp_name):
                    os.unlink(tmp_name)
                raise RoleStoreError(
                    f"error writing role file: {e}", operation="save", path=str(self.path)
                ) from e

    def _persist(self, event: str, username: str) -> None:
        try:
            self.save()
        except RoleStoreError as e:
            logger.error("role_store_save_failed", trigger=event, username=username, error=str(e))

    # --- queries ---

    def is_admin(self, username: Optional[str]) -> bool:
        if not username:
            return False
        with self._lock.read():
            return username in self._admins

    def is_authorized(self, username: Optional[str]) -> bool:
        if not username:
            return False
        with self._lock.read():
            return self._authorized.get(username, False)

    def admins(self) -> List[str]:
        """Admin usernames, sorted."""
        with self._lock.read():
            return sorted(self._admins)

    def admin_chat_ids(self) -> List[int]:
        """Known admin chat ids, in ``admins()`` order. Zero counts as unknown."""
        with self._lock.read():
            return [
                self._admins[username]
                for username in sorted(self._admins)
                if self._admins[username]
            ]

    def admins_without_chat_id(self) -> List[str]:
        """Admin usernames that cannot receive forwards, sorted."""
        with self._lock.read():
            return sorted(u for u, chat_id in self._admins.items() if not chat_id)

    def authorized_users(self) -> List[str]:
        """Authorized usernames, sorted."""
        with self._lock.read():
            return sorted(self._authorized)

    # --- mutations ---

    def add_admin(self, username: str, chat_id: Optional[int] = None) -> None:
        """Register ``username`` as admin.

        Idempotent. A known chat id is kept unless a new one is given.
        """
        with self._lock.write():
            if chat_id is None:
                chat_id = self._admins.get(username)
            self._admins[username] = chat_id
        logger.info("admin_added", username=username, has_chat_id=chat_id is not None)
        self._persist("add_admin", username)

    def authorize(self, username: str) -> None:
        """Allow ``username`` to submit guide suggestions. Idempotent."""
        with self._lock.write():
            self._authorized[username] = True
        logger.info("user_authorized", username=username)
        self._persist("authorize", username)

    def deauthorize(self, username: str) -> None:
        """Revoke ``username``'s suggestion permission. Idempotent."""
        with self._lock.write():
            self._authorized.pop(username, None)
        logger.info("user_deauthorized", username=username)
        self._persist("deauthorize", username)
