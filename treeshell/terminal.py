#!/usr/bin/env python3
"""
Terminal emulator for treeshell.

This module runs command lines against the virtual filesystem: it parses a
line into pipeline stages, runs the stages in order feeding each one's
plain-text output to the next, and either logs the final output or writes it
to the redirection target.

Design Principles:
- Clean separation between parsing (command_parser) and execution
- Builtins never see the session, only a ShellContext
- Stateful session management (cwd, history, output log)
"""

import argparse
import getpass
import logging
import random
from dataclasses import dataclass
from typing import Callable, List, Optional

from .actions import ActionBus, bind_filesystem, bind_terminal
from .builtins import ShellContext, dispatch, public_ip
from .command_parser import CommandParser, Command
from .filesystem import FileSystem, FsError
from .markup import CLEAR_SCREEN, error, strip_markup
from .paths import split_path
from .storage import JsonFileStore, MemoryStore

logger = logging.getLogger(__name__)

WELCOME = "Welcome to TreeShell. Type 'help' for commands."


@dataclass
class TerminalConfig:
    """Configuration for terminal session."""
    user: str = 'user'
    hostname: str = 'treeshell'
    prompt_format: str = '{user}@{hostname}:{cwd}$ '
    enable_colors: bool = True
    history_size: int = 1000
    ping_delay: float = 0.5
    state_directory: Optional[str] = None  # Where snapshots are kept; in-memory if unset


@dataclass
class TerminalLine:
    """One entry of the output log: an echoed command or a response."""
    kind: str
    text: str


class CommandHistory:
    """Manages command history for the terminal session."""

    def __init__(self, max_size: int = 1000):
        """Initialize with maximum history size."""
        self.max_size = max_size
        self.history: List[str] = []
        self.position = 0

    def add(self, command: str):
        """Add a command to history, skipping immediate repeats."""
        if command and command.strip():
            if not self.history or self.history[-1] != command:
                self.history.append(command)
            if len(self.history) > self.max_size:
                self.history.pop(0)
        self.position = len(self.history)

    def previous(self) -> Optional[str]:
        """Get previous command in history."""
        if self.position > 0:
            self.position -= 1
            return self.history[self.position]
        return None

    def next(self) -> Optional[str]:
        """Get next command in history."""
        if self.position < len(self.history) - 1:
            self.position += 1
            return self.history[self.position]
        self.position = len(self.history)
        return ''


class TerminalSession:
    """
    Main terminal session manager.

    Owns the current directory (through its ShellContext), the command
    history and the output log, and provides the REPL loop.
    """

    def __init__(self, config: Optional[TerminalConfig] = None,
                 fs: Optional[FileSystem] = None,
                 bus: Optional[ActionBus] = None,
                 assistant: Optional[Callable[[str], str]] = None,
                 ip_lookup: Optional[Callable[[], str]] = None,
                 rng: Optional[random.Random] = None):
        """Initialize terminal session."""
        self.config = config or TerminalConfig()
        if fs is None:
            if self.config.state_directory:
                fs = FileSystem(JsonFileStore(self.config.state_directory))
            else:
                fs = FileSystem(MemoryStore())
        self.fs = fs
        self.bus = bus or ActionBus()
        self.assistant = assistant
        self.parser = CommandParser()
        self.history = CommandHistory(self.config.history_size)
        self.lines: List[TerminalLine] = [TerminalLine('response', WELCOME)]
        self.context = ShellContext(
            fs=self.fs,
            bus=self.bus,
            history=self.history.history,
            user=self.config.user,
            hostname=self.config.hostname,
            rng=rng or random.Random(),
            ping_delay=self.config.ping_delay,
            ip_lookup=ip_lookup or public_ip,
        )
        self.running = False

    @property
    def cwd(self) -> str:
        return self.context.cwd

    def _respond(self, text: str) -> str:
        self.lines.append(TerminalLine('response', text))
        return text

    def run_command(self, command_line: str) -> str:
        """
        Run one command line and return what it printed.

        Returns '' when the output was redirected, and the clear-screen
        sequence when the line contained 'clear'.
        """
        if not command_line or not command_line.strip():
            return ''

        self.history.add(command_line)
        self.lines.append(TerminalLine('command', command_line))

        if self.parser.is_assistant_request(command_line):
            return self._run_assistant(self.parser.assistant_prompt(command_line))

        pipeline = self.parser.parse(command_line)

        stdin = ''
        output = ''
        for command in pipeline.commands:
            if command.name.lower() == 'clear':
                self.lines.clear()
                return CLEAR_SCREEN
            output = self._execute_command(command, stdin)
            stdin = strip_markup(output)

        if pipeline.redirect:
            return self._redirect(pipeline.redirect, strip_markup(output))
        if output:
            self._respond(output)
        return output

    def _execute_command(self, command: Command, stdin: str) -> str:
        """Execute a single stage, turning unexpected failures into error text."""
        try:
            return dispatch(self.context, command.name, command.args, stdin)
        except Exception as e:
            logger.exception("Command %r failed", command.name)
            return error(f"{command.name}: {e}")

    def _redirect(self, target: str, content: str) -> str:
        """Write pipeline output to a file, creating the file if needed."""
        path = self.context.resolve(target)
        if self.fs.get_node(path) is None:
            parent, name = split_path(path)
            written = self.fs.create_file(parent, name, content)
        else:
            written = self.fs.write_file(path, content)

        if written:
            return ''
        return self._respond(error(self._redirect_error(target, path)))

    def _redirect_error(self, target: str, path: str) -> str:
        if self.fs.last_error == FsError.PROTECTED:
            return f'{target} is write-protected.'
        node = self.fs.get_node(path)
        if node is not None and node.is_dir():
            return f'{target} is a directory.'
        parent, _ = split_path(path)
        if self.fs.get_directory(parent) is None:
            return 'Directory does not exist.'
        return f'Could not write to {target}.'

    def _run_assistant(self, prompt: str) -> str:
        """Send a prompt to the assistant collaborator and log its reply."""
        if self.assistant is None:
            return self._respond(error(
                'Error: AI is not configured. Start the session with an assistant to use ai.'))
        try:
            reply = self.assistant(prompt)
        except Exception:
            logger.exception("Assistant request failed")
            return self._respond(error('Error: Could not get a response from the AI.'))
        return self._respond(reply)

    def get_prompt(self) -> str:
        """Generate the command prompt."""
        cwd = self.cwd
        display_cwd = '~' if cwd == '/' else cwd.rsplit('/', 1)[-1]

        if self.config.enable_colors:
            # Green for user@host, blue for path
            return (f'\033[32m{self.config.user}@{self.config.hostname}\033[0m:'
                    f'\033[34m{display_cwd}\033[0m$ ')
        return self.config.prompt_format.format(
            user=self.config.user,
            hostname=self.config.hostname,
            cwd=display_cwd,
        )

    def display(self, text: str) -> str:
        """Text as it should appear on this terminal."""
        return text if self.config.enable_colors else strip_markup(text)

    def run_interactive(self):
        """Run the interactive REPL loop."""
        self.running = True

        for line in self.lines:
            print(self.display(line.text))
        print()

        while self.running:
            try:
                command_line = input(self.get_prompt())
                if command_line.strip().lower() in ('exit', 'quit'):
                    break

                output = self.run_command(command_line)
                if output:
                    print(self.display(output))

            except KeyboardInterrupt:
                print("^C")
                continue
            except EOFError:
                print()
                break
            except Exception as e:
                logger.exception("Unhandled error in REPL")
                print(f"Error: {e}")

        self.running = False
        print("Goodbye!")

    def run_script(self, script_lines: List[str]) -> List[str]:
        """
        Run a script (list of command lines) and return outputs.
        """
        outputs = []
        for line in script_lines:
            # Skip comments and empty lines
            line = line.strip()
            if not line or line.startswith('#'):
                continue
            outputs.append(self.run_command(line))
        return outputs


def main():
    """Main entry point for terminal emulator."""
    parser = argparse.ArgumentParser(description='TreeShell Terminal Emulator')
    parser.add_argument('-c', '--command', help='Execute command and exit')
    parser.add_argument('-u', '--user', help='Set username', default=getpass.getuser())
    parser.add_argument('--state-dir', help='Directory holding the persisted filesystem')
    parser.add_argument('--no-color', action='store_true', help='Disable ANSI colors')
    parser.add_argument('--log-level', default='WARNING',
                        help='Logging level (DEBUG, INFO, WARNING, ERROR)')
    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.WARNING),
        format='%(levelname)s | %(name)s | %(message)s',
    )

    config = TerminalConfig(
        user=args.user,
        enable_colors=not args.no_color,
        state_directory=args.state_dir,
    )
    session = TerminalSession(config=config)
    bind_filesystem(session.bus, session.fs)
    bind_terminal(session.bus, session)

    if args.command:
        output = session.run_command(args.command)
        if output:
            print(session.display(output))
    else:
        session.run_interactive()


if __name__ == '__main__':
    main()
