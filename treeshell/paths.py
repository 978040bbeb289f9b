#!/usr/bin/env python3
"""
Path handling for the treeshell virtual filesystem.

All paths inside the tree are absolute, '/'-separated and normalized. These
helpers are purely syntactic: nothing here checks whether a path exists.
"""

from typing import List, Tuple


def _segments(path: str) -> List[str]:
    return [part for part in path.split('/') if part]


def resolve(path: str, cwd: str = '/') -> str:
    """Resolve a (possibly relative) path against a working directory.

    Absolute input starts from the root, relative input starts from the
    segments of ``cwd``. ``.`` is dropped and ``..`` pops one segment,
    stopping silently at the root.

    Examples:
        resolve('docs/../a.txt', '/home')  -> '/home/a.txt'
        resolve('/../..', '/home')         -> '/'
    """
    if path.startswith('/'):
        normalized: List[str] = []
    else:
        normalized = _segments(cwd)

    for part in _segments(path):
        if part == '.':
            continue
        elif part == '..':
            if normalized:
                normalized.pop()
        else:
            normalized.append(part)

    return '/' + '/'.join(normalized) if normalized else '/'


def normalize_path(path: str) -> str:
    """Normalize a path as if it were absolute."""
    return resolve('/' + path)


def split_path(path: str) -> Tuple[str, str]:
    """Split a normalized path into (parent, name). The root has no name."""
    path = normalize_path(path)
    if path == '/':
        return '/', ''
    parent, _, name = path.rpartition('/')
    return parent or '/', name


def join_path(parent: str, name: str) -> str:
    """Join a directory path and a child name."""
    return f"{'' if parent == '/' else parent}/{name}"


def is_within(path: str, ancestor: str) -> bool:
    """True if ``path`` is ``ancestor`` itself or lies somewhere below it."""
    if ancestor == '/':
        return True
    return path == ancestor or path.startswith(ancestor + '/')
