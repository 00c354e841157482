from __future__ import annotations
import threading
from contextlib import contextmanager
from typing import Dict, Iterator, List, Optional, Tuple

from delivery.realtime.mailbox import Mailbox


class ReadWriteLock:
    """Many concurrent readers or a single writer. Writers are preferred."""

    def __init__(self) -> None:
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
                if not self._readers:
                    self._cond.notify_all()

    @contextmanager
    def write(self) -> Iterator[None]:
        with self._cond:
            self._writers_waiting += 1
            while self._writer or self._readers:
                self._cond.wait()
            self._writers_waiting -= 1
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


class SubscriberRegistry:
    """user id -> the mailbox of that user's single active stream."""

    def __init__(self, capacity: int = 10) -> None:
        self.capacity = capacity
        self._mailboxes: Dict[int, Mailbox] = {}
        self._lock = ReadWriteLock()

    def __len__(self) -> int:
        with self._lock.read():
            return len(self._mailboxes)

    def __contains__(self, user_id: object) -> bool:
        with self._lock.read():
            return user_id in self._mailboxes

    def register(self, user_id: int) -> Mailbox:
        return self.replace(user_id)[0]

    def replace(self, user_id: int) -> Tuple[Mailbox, Optional[Mailbox]]:
        """Install a fresh mailbox; returns it with the one it displaced, if any."""
        mailbox = Mailbox(user_id, self.capacity)
        with self._lock.write():
            previous = self._mailboxes.get(user_id)
            self._mailboxes[user_id] = mailbox
        if previous is not None:
            previous.close()
        return mailbox, previous

    def unregister(self, user_id: int, mailbox: Optional[Mailbox] = None) -> bool:
        """Remove and close the user's mailbox. True if something was removed.

        With ``mailbox`` given, the entry is removed only if it is still that
        mailbox; a replaced connection must not evict its successor.
        """
        with self._lock.write():
            current = self._mailboxes.get(user_id)
            if current is None or (mailbox is not None and current is not mailbox):
                current = None
            else:
                del self._mailboxes[user_id]
        if mailbox is not None:
            mailbox.close()
        if current is None:
            return False
        current.close()
        return True

    def lookup(self, user_id: int) -> Optional[Mailbox]:
        with self._lock.read():
            return self._mailboxes.get(user_id)

    def snapshot(self) -> List[Tuple[int, Mailbox]]:
        with self._lock.read():
            return list(self._mailboxes.items())

    def subscriber_ids(self) -> List[int]:
        with self._lock.read():
            return sorted(self._mailboxes)

    def close_all(self) -> int:
        with self._lock.write():
            mailboxes = list(self._mailboxes.values())
            self._mailboxes.clear()
        for mb in mailboxes:
            mb.close()
        return len(mailboxes)
