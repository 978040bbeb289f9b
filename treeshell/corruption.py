#!/usr/bin/env python3
"""
Stochastic damage for the "system failure" demo.

The result is scrambled but still a valid tree: renamed nodes are re-keyed
in their parent and every path is recomputed afterwards. There is no undo;
``FileSystem.reset_to_defaults`` is the only way back.
"""

import copy
import random
import string
from typing import Optional

from .filesystem import DirNode, FileSystem, Node, rewrite_paths

SCRAMBLE_PROBABILITY = 0.5
DELETE_PROBABILITY = 0.2
DELETE_EXEMPT = ('System', 'Desktop')
TOKEN_ALPHABET = string.ascii_lowercase + string.digits


def gibberish(rng: random.Random, length: int = 5) -> str:
    return ''.join(rng.choice(TOKEN_ALPHABET) for _ in range(length))


def _scramble(node: Node, rng: random.Random) -> None:
    if node.is_file():
        node.name = f'{gibberish(rng)}.dat'
        node.set_content(f'CORRUPTED_DATA_{gibberish(rng)}')
    else:
        node.name = gibberish(rng)
        _corrupt_children(node, rng)


def _corrupt_children(directory: DirNode, rng: random.Random) -> None:
    survivors = {}
    for key, node in directory.children.items():
        if rng.random() < SCRAMBLE_PROBABILITY:
            _scramble(node, rng)
        if rng.random() < DELETE_PROBABILITY and key not in DELETE_EXEMPT:
            continue
        # A fresh token can collide with a sibling; keep drawing until it doesn't.
        while node.name in survivors:
            node.name = gibberish(rng) + ('.dat' if node.is_file() else '')
        survivors[node.name] = node
    directory.children = survivors


def corrupt(fs: FileSystem, rng: Optional[random.Random] = None) -> DirNode:
    """Scramble and prune the tree of ``fs`` and raise its corruption flag.

    Each child of a visited directory is independently renamed (files also
    get placeholder content, directories are recursed into) with probability
    0.5, and deleted with probability 0.2 unless it is keyed ``System`` or
    ``Desktop`` at that level.

    Returns the new root.
    """
    rng = rng or random.Random()
    root = copy.deepcopy(fs.root)
    _corrupt_children(root, rng)
    rewrite_paths(root, '/')
    fs.replace_root(root, corrupted=True)
    return root
