"""
Sift - Store Locking
=====================
Readers/writer lock guarding the in-memory vector store.

Built on ``threading.Condition`` so it is safe from coroutines running
on the event loop and from worker threads alike.  Writers are preferred:
once an append is waiting, new scans queue behind it, so a steady query
load cannot starve ingestion.

Usage:
    lock = ReadWriteLock()
    with lock.read_lock():
        records = list(self._records)
    with lock.write_lock():
        self._records.append(record)
"""

from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager


class ReadWriteLock:
    """Any number of concurrent scans, or exactly one append."""

    __slots__ = ("_cond", "_active_readers", "_writing", "_pending_writers")

    def __init__(self) -> None:
        self._cond = threading.Condition()
        self._active_readers = 0
        self._writing = False
        self._pending_writers = 0

    @contextmanager
    def read_lock(self) -> Iterator[None]:
        with self._cond:
            self._cond.wait_for(lambda: not self._writing and self._pending_writers == 0)
            self._active_readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._active_readers -= 1
                if not self._active_readers:
                    self._cond.notify_all()

    @contextmanager
    def write_lock(self) -> Iterator[None]:
        with self._cond:
            self._pending_writers += 1
            try:
                self._cond.wait_for(lambda: not self._writing and not self._active_readers)
            finally:
                self._pending_writers -= 1
            self._writing = True
        try:
            yield
        finally:
            with self._cond:
                self._writing = False
                self._cond.notify_all()
