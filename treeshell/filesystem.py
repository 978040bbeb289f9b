#!/usr/bin/env python3
"""
treeshell - a hierarchical virtual file store addressed by POSIX-style paths.

Core philosophy:
- A single root directory owns the whole tree
- Every mutation works on a deep copy that is swapped in atomically
- Every swap is written through to the snapshot store
- The /System subtree is off limits, and touching it is remembered
"""

import copy
import json
import logging
import math
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Container, Dict, Iterator, List, Optional, Tuple

from .paths import normalize_path, split_path, join_path, is_within
from .storage import SnapshotStore, MemoryStore, SNAPSHOT_KEY

logger = logging.getLogger(__name__)

PROTECTED_PREFIX = '/System'
BINARY_PREFIX = 'data:image'
SNAPSHOT_VERSION = 1


class FsError(Enum):
    """Reasons a filesystem operation can fail."""
    NOT_FOUND = 'not found'
    TYPE_MISMATCH = 'type mismatch'
    ALREADY_EXISTS = 'already exists'
    PROTECTED = 'protected'
    CYCLE_REJECTED = 'cycle rejected'
    SAME_PARENT = 'same parent'
    INVALID_NAME = 'invalid name'


def content_size(content: str) -> int:
    """Size in bytes of file content.

    Content carrying the binary prefix is a base64 data URI; its size is the
    decoded length estimated from the payload after the first comma.
    """
    if content.startswith(BINARY_PREFIX):
        head, sep, payload = content.partition(',')
        if not sep:
            payload = head
        return math.ceil(len(payload) / 4) * 3
    return len(content.encode('utf-8'))


def is_protected(path: str) -> bool:
    """Check whether a normalized path lies in the protected subtree."""
    return is_within(path, PROTECTED_PREFIX)


def valid_name(name: str) -> bool:
    return bool(name) and '/' not in name and name not in ('.', '..')


@dataclass
class Node:
    """Base class for all tree nodes."""
    name: str
    path: str
    mtime: float = field(default_factory=time.time)

    def is_file(self) -> bool:
        return False

    def is_dir(self) -> bool:
        return False

    def to_dict(self) -> dict:
        raise NotImplementedError


@dataclass
class FileNode(Node):
    """Regular file. ``size`` always follows ``content``."""
    content: str = ''
    size: int = field(init=False, default=0)

    def __post_init__(self):
        self.size = content_size(self.content)

    def is_file(self) -> bool:
        return True

    def set_content(self, content: str) -> None:
        self.content = content
        self.size = content_size(content)
        self.mtime = time.time()

    def to_dict(self) -> dict:
        return {
            'type': 'file',
            'name': self.name,
            'path': self.path,
            'size': self.size,
            'mtime': self.mtime,
            'content': self.content,
        }


@dataclass
class DirNode(Node):
    """Directory node. Directories never report an aggregate size."""
    children: Dict[str, Node] = field(default_factory=dict)

    @property
    def size(self) -> int:
        return 0

    def is_dir(self) -> bool:
        return True

    def to_dict(self) -> dict:
        return {
            'type': 'directory',
            'name': self.name,
            'path': self.path,
            'size': 0,
            'mtime': self.mtime,
            'children': {name: child.to_dict() for name, child in self.children.items()},
        }


def node_from_dict(data: dict) -> Node:
    """Rebuild a node (and its subtree) from its serialized form."""
    node_type = data['type']
    mtime = data.get('mtime')
    mtime = time.time() if mtime is None else float(mtime)
    if node_type == 'file':
        content = data.get('content', '')
        if not isinstance(content, str):
            raise TypeError(f"file content must be a string, got {type(content).__name__}")
        return FileNode(data['name'], data['path'], mtime, content=content)
    elif node_type == 'directory':
        children = {name: node_from_dict(child) for name, child in data['children'].items()}
        return DirNode(data['name'], data['path'], mtime, children=children)
    raise ValueError(f"Unknown node type: {node_type}")


def walk(node: Node) -> Iterator[Node]:
    """Depth-first iteration over a node and all of its descendants."""
    yield node
    if node.is_dir():
        for child in node.children.values():
            yield from walk(child)


def check_tree(root: Node) -> None:
    """Raise ValueError if the tree breaks a structural invariant."""
    if not root.is_dir() or root.path != '/' or root.name != '':
        raise ValueError("root must be a directory named '' at '/'")
    for node in walk(root):
        if not node.is_dir():
            continue
        for key, child in node.children.items():
            if child.name != key or not valid_name(key):
                raise ValueError(f"bad child name {key!r} in {node.path}")
            if child.path != join_path(node.path, key):
                raise ValueError(f"inconsistent path {child.path!r} under {node.path}")


def rewrite_paths(node: Node, parent_path: str, mtime: Optional[float] = None) -> None:
    """Recompute the path of a node and every descendant below ``parent_path``."""
    node.path = join_path(parent_path, node.name)
    if mtime is not None:
        node.mtime = mtime
    if node.is_dir():
        for child in node.children.values():
            rewrite_paths(child, node.path, mtime)


def copy_name(name: str, taken: Container[str]) -> str:
    """Pick a free name for a copy: ``a.txt``, ``a (copy).txt``, ``a (copy 2).txt``..."""
    base, dot, ext = name.rpartition('.')
    if dot:
        ext = '.' + ext
    else:
        base, ext = name, ''

    candidate = name
    counter = 1
    while candidate in taken:
        suffix = ' (copy)' if counter == 1 else f' (copy {counter})'
        candidate = f'{base}{suffix}{ext}'
        counter += 1
    return candidate


WELCOME_TEXT = 'Welcome to the TreeShell Text Editor!'
DEFAULT_IMAGE = (
    'data:image/png;base64,iVBORw0KGgoAAAANSUhEUgAAAEAAAABACAYAAACqaXHeAAAAAXNSR0IArs4c6QAAAHhJREFUeJzt'
    '0DEBAAAAwqD1T20ND6AAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAA'
    'AAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAA8AAn2AAB2G1p5AAAAABJRU5ErkJggg=='
)


def default_tree(now: Optional[float] = None) -> DirNode:
    """Build the built-in desktop/documents/downloads/system layout."""
    now = time.time() if now is None else now

    documents = DirNode('Documents', '/Documents', now - 500, children={
        'welcome.txt': FileNode('welcome.txt', '/Documents/welcome.txt', now - 200,
                                content=WELCOME_TEXT),
        'photo.png': FileNode('photo.png', '/Documents/photo.png', now - 500,
                              content=DEFAULT_IMAGE),
    })
    system = DirNode('System', '/System', now - 9500, children={
        'kernel.bin': FileNode('kernel.bin', '/System/kernel.bin', now - 8000,
                               content='BINARY_DATA'),
        'config.sys': FileNode('config.sys', '/System/config.sys', now - 7000,
                               content='CONFIG_DATA'),
    })

    return DirNode('', '/', now - 10000, children={
        'Desktop': DirNode('Desktop', '/Desktop', now - 9000),
        'Documents': documents,
        'Downloads': DirNode('Downloads', '/Downloads', now - 8500),
        'System': system,
    })


def parse_snapshot(blob: str) -> Tuple[DirNode, bool]:
    """Parse a serialized snapshot into (root, corrupted flag)."""
    data = json.loads(blob)
    root = node_from_dict(data['root'])
    check_tree(root)
    return root, bool(data.get('corrupted', False))


Mutation = Callable[[DirNode], Optional[FsError]]


class FileSystem:
    """
    The tree store.

    Lookups walk the live tree. Mutations deep-copy it, apply the change to
    the copy and swap the copy in only if the change fully succeeded, so a
    node returned by a lookup is never modified afterwards.

    Domain failures never raise: operations return False/None and record the
    reason in ``last_error``.
    """

    def __init__(self, store: Optional[SnapshotStore] = None, key: str = SNAPSHOT_KEY):
        self._setup(store, key)
        self._root = self._load()

    def _setup(self, store: Optional[SnapshotStore], key: str) -> None:
        """State shared by every way of building a FileSystem."""
        self.store = store if store is not None else MemoryStore()
        self.key = key
        self.last_error: Optional[FsError] = None
        self._corrupted = False

    def _load(self) -> DirNode:
        """Read the persisted snapshot, falling back to the default tree."""
        blob = self.store.read(self.key)
        if blob is None:
            return default_tree()
        try:
            root, corrupted = parse_snapshot(blob)
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            logger.warning("Discarding unreadable snapshot %r: %s", self.key, e)
            return default_tree()
        self._corrupted = corrupted
        return root

    def _persist(self) -> None:
        self.store.write(self.key, self.to_json())

    # State inspection

    @property
    def root(self) -> DirNode:
        return self._root

    @property
    def corrupted(self) -> bool:
        """True once the protected subtree was tampered with or the tree was corrupted."""
        return self._corrupted

    @staticmethod
    def _find(root: DirNode, path: str) -> Optional[Node]:
        node: Node = root
        for part in normalize_path(path).split('/'):
            if not part:
                continue
            if not node.is_dir():
                return None
            child = node.children.get(part)
            if child is None:
                return None
            node = child
        return node

    def normalize_path(self, path: str) -> str:
        """Normalize a path as an absolute path."""
        return normalize_path(path)

    def get_node(self, path: str) -> Optional[Node]:
        """Look up any node by absolute path."""
        return self._find(self._root, path)

    def get_directory(self, path: str) -> Optional[DirNode]:
        node = self.get_node(path)
        return node if node is not None and node.is_dir() else None

    def read_file(self, path: str) -> Optional[str]:
        node = self.get_node(path)
        return node.content if node is not None and node.is_file() else None

    def exists(self, path: str) -> bool:
        return self.get_node(path) is not None

    def listdir(self, path: str) -> Optional[List[str]]:
        """Sorted child names of a directory."""
        directory = self.get_directory(path)
        if directory is None:
            return None
        return sorted(directory.children)

    def walk(self) -> Iterator[Node]:
        return walk(self._root)

    # Mutation plumbing

    def _fail(self, error: FsError) -> bool:
        self.last_error = error
        return False

    def _reject_protected(self, operation: str, path: str) -> bool:
        logger.warning("Refused %s on protected path %s", operation, path)
        self._corrupted = True
        self._persist()
        return self._fail(FsError.PROTECTED)

    def _mutate(self, apply: Mutation) -> bool:
        new_root = copy.deepcopy(self._root)
        error = apply(new_root)
        if error is not None:
            return self._fail(error)
        self._root = new_root
        self.last_error = None
        self._persist()
        return True

    def replace_root(self, root: DirNode, corrupted: Optional[bool] = None) -> None:
        """Swap in a whole new tree. Used by the corruption routine."""
        if corrupted is not None:
            self._corrupted = corrupted
        self._root = root
        self.last_error = None
        self._persist()

    def reset_to_defaults(self) -> None:
        """Restore the built-in tree and clear the corruption flag."""
        self.replace_root(default_tree(), corrupted=False)

    # Mutations

    def write_file(self, path: str, content: str) -> bool:
        """Replace the content of an existing file."""
        path = normalize_path(path)
        if is_protected(path):
            return self._reject_protected('write', path)

        def apply(root: DirNode) -> Optional[FsError]:
            node = self._find(root, path)
            if node is None:
                return FsError.NOT_FOUND
            if not node.is_file():
                return FsError.TYPE_MISMATCH
            node.set_content(content)
            return None

        return self._mutate(apply)

    def _create(self, parent_path: str, name: str, make: Callable[[str, float], Node]) -> bool:
        parent_path = normalize_path(parent_path)
        if not valid_name(name):
            return self._fail(FsError.INVALID_NAME)
        if is_protected(join_path(parent_path, name)):
            return self._reject_protected('create', join_path(parent_path, name))

        def apply(root: DirNode) -> Optional[FsError]:
            parent = self._find(root, parent_path)
            if parent is None:
                return FsError.NOT_FOUND
            if not parent.is_dir():
                return FsError.TYPE_MISMATCH
            if name in parent.children:
                return FsError.ALREADY_EXISTS
            now = time.time()
            parent.children[name] = make(join_path(parent_path, name), now)
            parent.mtime = now
            return None

        return self._mutate(apply)

    def create_directory(self, parent_path: str, name: str) -> bool:
        return self._create(parent_path, name,
                            lambda path, now: DirNode(name, path, now))

    def create_file(self, parent_path: str, name: str, content: str = '') -> bool:
        return self._create(parent_path, name,
                            lambda path, now: FileNode(name, path, now, content=content))

    def delete_node(self, path: str) -> bool:
        """Remove a file or a whole directory subtree."""
        path = normalize_path(path)
        if is_protected(path):
            return self._reject_protected('delete', path)
        parent_path, name = split_path(path)
        if not name:
            return self._fail(FsError.INVALID_NAME)

        def apply(root: DirNode) -> Optional[FsError]:
            parent = self._find(root, parent_path)
            if parent is None or not parent.is_dir() or name not in parent.children:
                return FsError.NOT_FOUND
            del parent.children[name]
            parent.mtime = time.time()
            return None

        return self._mutate(apply)

    def rename_node(self, path: str, new_name: str) -> bool:
        """Rename a node in place, rewriting descendant paths."""
        path = normalize_path(path)
        if is_protected(path):
            return self._reject_protected('rename', path)
        parent_path, name = split_path(path)
        if not name or not valid_name(new_name):
            return self._fail(FsError.INVALID_NAME)

        def apply(root: DirNode) -> Optional[FsError]:
            parent = self._find(root, parent_path)
            if parent is None or not parent.is_dir() or name not in parent.children:
                return FsError.NOT_FOUND
            if new_name in parent.children:
                return FsError.ALREADY_EXISTS
            now = time.time()
            node = parent.children.pop(name)
            node.name = new_name
            rewrite_paths(node, parent_path, now)
            parent.children[new_name] = node
            parent.mtime = now
            return None

        return self._mutate(apply)

    def move_node(self, source_path: str, new_parent_path: str) -> bool:
        """Move a node under another directory, keeping its name."""
        source_path = normalize_path(source_path)
        new_parent_path = normalize_path(new_parent_path)
        if is_protected(source_path):
            return self._reject_protected('move', source_path)
        if is_protected(new_parent_path):
            return self._reject_protected('move', new_parent_path)

        node = self.get_node(source_path)
        if node is None:
            return self._fail(FsError.NOT_FOUND)
        destination = self.get_node(new_parent_path)
        if destination is None:
            return self._fail(FsError.NOT_FOUND)
        if not destination.is_dir():
            return self._fail(FsError.TYPE_MISMATCH)
        if is_within(new_parent_path, source_path):
            return self._fail(FsError.CYCLE_REJECTED)
        old_parent_path, name = split_path(source_path)
        # Same-directory moves are refused even though they would be harmless.
        if old_parent_path == new_parent_path:
            return self._fail(FsError.SAME_PARENT)
        if name in destination.children:
            return self._fail(FsError.ALREADY_EXISTS)

        def apply(root: DirNode) -> Optional[FsError]:
            old_parent = self._find(root, old_parent_path)
            new_parent = self._find(root, new_parent_path)
            if old_parent is None or new_parent is None or name not in old_parent.children:
                return FsError.NOT_FOUND
            now = time.time()
            moved = old_parent.children.pop(name)
            rewrite_paths(moved, new_parent_path, now)
            new_parent.children[name] = moved
            old_parent.mtime = new_parent.mtime = now
            return None

        return self._mutate(apply)

    def copy_node(self, source_path: str, destination_parent_path: str) -> bool:
        """Deep-copy a node into a directory, renaming the copy on collision."""
        source_path = normalize_path(source_path)
        destination_parent_path = normalize_path(destination_parent_path)
        if is_protected(destination_parent_path):
            return self._reject_protected('copy', destination_parent_path)

        source = self.get_node(source_path)
        destination = self.get_node(destination_parent_path)
        if source is None or destination is None:
            return self._fail(FsError.NOT_FOUND)
        if not destination.is_dir():
            return self._fail(FsError.TYPE_MISMATCH)
        if is_within(destination_parent_path, source_path):
            return self._fail(FsError.CYCLE_REJECTED)
        new_name = copy_name(source.name, destination.children)

        def apply(root: DirNode) -> Optional[FsError]:
            target = self._find(root, destination_parent_path)
            original = self._find(root, source_path)
            if target is None or original is None or not target.is_dir():
                return FsError.NOT_FOUND
            now = time.time()
            duplicate = copy.deepcopy(original)
            duplicate.name = new_name
            rewrite_paths(duplicate, destination_parent_path, now)
            target.children[new_name] = duplicate
            target.mtime = now
            return None

        return self._mutate(apply)

    # Serialization

    def to_dict(self) -> dict:
        return {
            'version': SNAPSHOT_VERSION,
            'corrupted': self._corrupted,
            'root': self._root.to_dict(),
        }

    def to_json(self) -> str:
        """Serialize the tree and the corruption flag to JSON."""
        return json.dumps(self.to_dict())

    @classmethod
    def from_json(cls, json_str: str, store: Optional[SnapshotStore] = None,
                  key: str = SNAPSHOT_KEY) -> 'FileSystem':
        """Deserialize a filesystem. Raises ValueError on a malformed snapshot."""
        try:
            root, corrupted = parse_snapshot(json_str)
        except (KeyError, TypeError, AttributeError) as e:
            raise ValueError(f"Malformed snapshot: {e}") from e
        fs = cls.__new__(cls)
        fs._setup(store, key)
        fs._corrupted = corrupted
        fs._root = root
        return fs
