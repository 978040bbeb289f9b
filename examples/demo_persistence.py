#!/usr/bin/env python3
"""Demo of the TreeShell terminal with write-through persistence."""

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import tempfile

from treeshell.terminal import TerminalSession, TerminalConfig


def run(session, commands):
    for cmd in commands:
        print(f"$ {cmd}")
        output = session.run_command(cmd)
        if output:
            print(session.display(output))


def main():
    print("=" * 60)
    print("TreeShell Terminal Emulator - Persistence Demo")
    print("=" * 60)

    state_dir = tempfile.mkdtemp(prefix='treeshell-')
    config = TerminalConfig(state_directory=state_dir, enable_colors=False, ping_delay=0)

    # Part 1: every change is saved as soon as it happens
    print("\n1. Creating some files...")
    session = TerminalSession(config)
    run(session, [
        "cd /Documents",
        "echo TODO: water the plants > todo.txt",
        "mkdir projects",
        "cp todo.txt projects",
        "ls",
    ])

    # Part 2: tampering with /System is refused, and remembered
    print("\n2. Poking at the system partition...")
    run(session, ["echo oops > /System/config.sys"])
    print(f"corrupted: {session.fs.corrupted}")

    # Part 3: a brand new session picks up where the old one stopped
    print("\n3. Starting a new session on the same state directory...")
    restarted = TerminalSession(config)
    run(restarted, [
        "cat /Documents/todo.txt",
        "ls /Documents/projects",
    ])
    print(f"corrupted: {restarted.fs.corrupted}")

    print("\n" + "=" * 60)
    print("Demo complete!")
    print(f"Snapshot kept in: {state_dir}")
    print("\nRun 'treeshell --state-dir <dir>' to keep working with it.")


if __name__ == "__main__":
    main()
