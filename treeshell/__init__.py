"""
TreeShell - a virtual hierarchical file store with a small shell on top

This package provides an in-memory file tree addressed by POSIX-style paths,
with write-through snapshot persistence, a protected /System subtree, a
stochastic corruption routine, and a terminal that supports pipes and
output redirection.
"""

__version__ = "0.1.0"

from .paths import (
    resolve,
    normalize_path,
    split_path,
    join_path,
)

from .filesystem import (
    FileSystem,
    FileNode,
    DirNode,
    Node,
    FsError,
    default_tree,
    PROTECTED_PREFIX,
)

from .storage import (
    SnapshotStore,
    MemoryStore,
    JsonFileStore,
    SNAPSHOT_KEY,
)

from .corruption import corrupt

from .command_parser import (
    Command,
    CommandParser,
    Pipeline,
)

from .actions import (
    ActionBus,
    extract_actions,
    dispatch_reply,
    bind_filesystem,
    bind_terminal,
)

from .builtins import (
    BUILTINS,
    ShellContext,
    dispatch,
)

from .terminal import (
    TerminalSession,
    TerminalConfig,
    TerminalLine,
    CommandHistory,
)

__all__ = [
    # Paths
    "resolve",
    "normalize_path",
    "split_path",
    "join_path",

    # Core filesystem
    "FileSystem",
    "FileNode",
    "DirNode",
    "Node",
    "FsError",
    "default_tree",
    "PROTECTED_PREFIX",

    # Persistence
    "SnapshotStore",
    "MemoryStore",
    "JsonFileStore",
    "SNAPSHOT_KEY",

    # Corruption
    "corrupt",

    # Command parser
    "Command",
    "CommandParser",
    "Pipeline",

    # Action bus
    "ActionBus",
    "extract_actions",
    "dispatch_reply",
    "bind_filesystem",
    "bind_terminal",

    # Builtins
    "BUILTINS",
    "ShellContext",
    "dispatch",

    # Terminal
    "TerminalSession",
    "TerminalConfig",
    "TerminalLine",
    "CommandHistory",

    # Version info
    "__version__",
]
