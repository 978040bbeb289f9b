#!/usr/bin/env python3
"""
Snapshot storage for the treeshell filesystem.

The filesystem serializes itself to a single blob under a fixed key after
every mutation. Stores only move opaque strings around; parsing and the
fallback to the default tree live in the filesystem module.
"""

import logging
import os
from typing import Dict, Optional

logger = logging.getLogger(__name__)

SNAPSHOT_KEY = 'treeshell-filesystem'


class SnapshotStore:
    """Key-value blob store interface."""

    def read(self, key: str) -> Optional[str]:
        raise NotImplementedError

    def write(self, key: str, data: str) -> None:
        raise NotImplementedError


class MemoryStore(SnapshotStore):
    """In-process store, mostly useful for tests and throwaway sessions."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self.blobs: Dict[str, str] = dict(initial or {})

    def read(self, key: str) -> Optional[str]:
        return self.blobs.get(key)

    def write(self, key: str, data: str) -> None:
        self.blobs[key] = data


class JsonFileStore(SnapshotStore):
    """
    Store each key as ``<directory>/<key>.json``.

    Writes go to a temporary file that is then moved over the old snapshot,
    so a reader never sees a half-written blob.
    """

    def __init__(self, directory: str):
        self.directory = directory

    def _path(self, key: str) -> str:
        return os.path.join(self.directory, f'{key}.json')

    def read(self, key: str) -> Optional[str]:
        path = self._path(key)
        try:
            with open(path, 'r', encoding='utf-8') as f:
                return f.read()
        except FileNotFoundError:
            return None
        except OSError as e:
            logger.warning("Could not read snapshot %s: %s", path, e)
            return None

    def write(self, key: str, data: str) -> None:
        os.makedirs(self.directory, exist_ok=True)
        path = self._path(key)
        tmp_path = path + '.tmp'
        try:
            with open(tmp_path, 'w', encoding='utf-8') as f:
                f.write(data)
            os.replace(tmp_path, path)
        except OSError:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise
        logger.debug("Snapshot written to %s (%d bytes)", path, len(data))
