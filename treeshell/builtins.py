#!/usr/bin/env python3
"""
Builtin commands for the treeshell terminal.

Every builtin is a plain function ``(ctx, args, stdin) -> str`` registered
in the BUILTINS table under its command name. Output may carry ANSI markup;
the terminal strips it before handing output to the next pipeline stage.

A builtin's docstring doubles as its help page: the first line is the
description, followed by optional Usage/Examples sections.
"""

import logging
import platform
import random
import re
import shutil
import time
import urllib.request
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, List

from .actions import ActionBus
from .filesystem import FileSystem, FsError
from .markup import directory, error, highlight
from .paths import resolve, split_path

logger = logging.getLogger(__name__)

IP_LOOKUP_URL = 'https://api.ipify.org'


def public_ip(timeout: float = 5.0) -> str:
    """Ask an external service for this machine's public IP address."""
    with urllib.request.urlopen(IP_LOOKUP_URL, timeout=timeout) as response:
        return response.read().decode('utf-8').strip()


@dataclass
class ShellContext:
    """State a builtin can see: the tree, the working directory and collaborators."""
    fs: FileSystem
    bus: ActionBus
    cwd: str = '/'
    history: List[str] = field(default_factory=list)
    user: str = 'user'
    hostname: str = 'treeshell'
    started: float = field(default_factory=time.time)
    rng: random.Random = field(default_factory=random.Random)
    ping_delay: float = 0.5
    ip_lookup: Callable[[], str] = public_ip
    sleep: Callable[[float], None] = time.sleep

    def resolve(self, path: str) -> str:
        return resolve(path, self.cwd)


Builtin = Callable[[ShellContext, List[str], str], str]

BUILTINS: Dict[str, Builtin] = {}

# Handled by the pipeline itself rather than dispatched, but still documented.
SPECIAL_COMMANDS = {
    'clear': """Clear the terminal screen.

        Usage:
            clear

        Examples:
            clear                  # Wipe the output log and stop the pipeline""",
}


def builtin(name: str) -> Callable[[Builtin], Builtin]:
    """Register a function in the dispatch table."""
    def register(func: Builtin) -> Builtin:
        BUILTINS[name] = func
        return func
    return register


def dispatch(ctx: ShellContext, name: str, args: List[str], stdin: str = '') -> str:
    """Run the builtin called ``name`` (case-insensitive)."""
    handler = BUILTINS.get(name.lower())
    if handler is None:
        return error(f'Command not found: {name}')
    return handler(ctx, args, stdin)


def extract_docstring_sections(docstring: str) -> dict:
    """Extract the description, usage and examples from a builtin docstring."""
    sections = {'description': '', 'usage': '', 'examples': []}
    if not docstring:
        return sections

    lines = docstring.strip().split('\n')
    sections['description'] = lines[0].strip()

    current_section = None
    for line in lines[1:]:
        line = line.strip()
        if line.startswith('Usage:'):
            current_section = 'usage'
        elif line.startswith('Examples:'):
            current_section = 'examples'
        elif line and current_section == 'usage':
            sections['usage'] = line
        elif line and current_section == 'examples':
            sections['examples'].append(line)

    return sections


def _format_help(name: str, docstring: str) -> str:
    sections = extract_docstring_sections(docstring)
    help_lines = [f"{name} - {sections['description']}", ""]
    if sections['usage']:
        help_lines.extend(["Usage:", f"    {sections['usage']}", ""])
    if sections['examples']:
        help_lines.append("Examples:")
        help_lines.extend(f"    {ex}" for ex in sections['examples'])
    return '\n'.join(help_lines).rstrip()


# Information

@builtin('help')
def help_(ctx: ShellContext, args: List[str], stdin: str) -> str:
    """Show available commands or help for one command.

    Usage:
        help [COMMAND]

    Examples:
        help                   # List all commands
        help grep              # Show help for grep
    """
    if not args:
        names = list(BUILTINS) + list(SPECIAL_COMMANDS)
        return f"Available commands: {', '.join(names)}"

    name = args[0].lower()
    if name in BUILTINS:
        return _format_help(name, BUILTINS[name].__doc__)
    if name in SPECIAL_COMMANDS:
        return _format_help(name, SPECIAL_COMMANDS[name])
    return error(f"help: no help available for '{args[0]}'")


@builtin('date')
def date(ctx: ShellContext, args: List[str], stdin: str) -> str:
    """Print the current date and time."""
    return datetime.now().strftime('%a %b %d %Y %H:%M:%S')


@builtin('echo')
def echo(ctx: ShellContext, args: List[str], stdin: str) -> str:
    """Display a line of text.

    Usage:
        echo [STRING...]

    Examples:
        echo hello world       # Print "hello world"
        echo hi > note.txt     # Write "hi" to note.txt
    """
    return ' '.join(args)


@builtin('neofetch')
def neofetch(ctx: ShellContext, args: List[str], stdin: str) -> str:
    """Show system information."""
    from . import __version__

    columns, rows = shutil.get_terminal_size()
    return '\n'.join([
        f"TreeShell v{__version__}",
        "-----------------",
        f"OS: TreeShell (Python {platform.python_version()})",
        f"Kernel: {platform.system()} {platform.release()}",
        f"Resolution: {columns}x{rows}",
        "Theme: Dark",
    ])


@builtin('ai')
def ai(ctx: ShellContext, args: List[str], stdin: str) -> str:
    """Ask the assistant a question.

    Usage:
        ai PROMPT

    Examples:
        ai what is a pipe?     # Send a prompt to the assistant
    """
    # Lines with a prompt are routed to the assistant before dispatch.
    return 'Please provide a prompt for the AI. Usage: ai "your question"'


@builtin('history')
def history(ctx: ShellContext, args: List[str], stdin: str) -> str:
    """List previously entered commands."""
    return '\n'.join(f'{i}  {cmd}' for i, cmd in enumerate(ctx.history, 1))


@builtin('uname')
def uname(ctx: ShellContext, args: List[str], stdin: str) -> str:
    """Print the system name."""
    return 'TreeShell (Python)'


@builtin('whoami')
def whoami(ctx: ShellContext, args: List[str], stdin: str) -> str:
    """Print the current user name."""
    return ctx.user


@builtin('uptime')
def uptime(ctx: ShellContext, args: List[str], stdin: str) -> str:
    """Show how long the session has been running."""
    seconds = int(time.time() - ctx.started)
    days, seconds = divmod(seconds, 86400)
    hours, seconds = divmod(seconds, 3600)
    minutes = seconds // 60
    return f'up {days} day(s), {hours} hour(s), {minutes} minute(s)'


# Navigation and file operations

@builtin('pwd')
def pwd(ctx: ShellContext, args: List[str], stdin: str) -> str:
    """Print working directory."""
    return ctx.cwd


@builtin('cd')
def cd(ctx: ShellContext, args: List[str], stdin: str) -> str:
    """Change the current directory.

    Usage:
        cd [PATH]

    Examples:
        cd /Documents          # Go to /Documents
        cd ..                  # Go to parent directory
        cd                     # Go to the root
    """
    target = ctx.resolve(args[0] if args else '/')
    if ctx.fs.get_directory(target) is None:
        return error(f'cd: no such file or directory: {args[0]}')
    ctx.cwd = target
    return ''


@builtin('ls')
def ls(ctx: ShellContext, args: List[str], stdin: str) -> str:
    """List directory contents.

    Usage:
        ls [PATH]

    Examples:
        ls                     # List current directory
        ls /Documents          # List /Documents
        ls | grep txt          # Filter the listing
    """
    path = ctx.resolve(args[0]) if args else ctx.cwd
    target = ctx.fs.get_directory(path)
    if target is None:
        shown = args[0] if args else '.'
        return error(f"ls: cannot access '{shown}': No such file or directory")

    entries = []
    for name in sorted(target.children):
        entries.append(directory(name) if target.children[name].is_dir() else name)
    return '\n'.join(entries)


@builtin('cat')
def cat(ctx: ShellContext, args: List[str], stdin: str) -> str:
    """Display file contents.

    Usage:
        cat [FILE]

    Examples:
        cat welcome.txt        # Display a file
        echo hi | cat          # Display piped input
    """
    if not args:
        return stdin if stdin else 'usage: cat [file]'

    path = ctx.resolve(args[0])
    content = ctx.fs.read_file(path)
    if content is not None:
        return content
    node = ctx.fs.get_node(path)
    if node is not None and node.is_dir():
        return error(f'cat: {args[0]}: Is a directory')
    return error(f'cat: {args[0]}: No such file or directory')


_CREATE_FAILURES = {
    FsError.NOT_FOUND: 'No such file or directory',
    FsError.TYPE_MISMATCH: 'Not a directory',
    FsError.INVALID_NAME: 'Invalid name',
    FsError.PROTECTED: 'Permission denied',
}


def _create(ctx: ShellContext, args: List[str], command: str, kind: str,
            create: Callable[[str, str], bool]) -> str:
    if not args:
        return f'usage: {command} [{kind}_name]'
    parent, name = split_path(ctx.resolve(args[0]))
    if create(parent, name):
        return ''
    reason = _CREATE_FAILURES.get(ctx.fs.last_error, 'File exists')
    return error(f"{command}: cannot create {kind} '{args[0]}': {reason}")


@builtin('mkdir')
def mkdir(ctx: ShellContext, args: List[str], stdin: str) -> str:
    """Create a directory.

    Usage:
        mkdir DIRECTORY

    Examples:
        mkdir projects         # Create ./projects
        mkdir /Desktop/tmp     # Create with absolute path
    """
    return _create(ctx, args, 'mkdir', 'directory', ctx.fs.create_directory)


@builtin('touch')
def touch(ctx: ShellContext, args: List[str], stdin: str) -> str:
    """Create an empty file.

    Usage:
        touch FILE

    Examples:
        touch notes.txt        # Create ./notes.txt
    """
    return _create(ctx, args, 'touch', 'file', ctx.fs.create_file)


@builtin('rm')
def rm(ctx: ShellContext, args: List[str], stdin: str) -> str:
    """Remove a file or directory (directories are removed with their contents).

    Usage:
        rm PATH

    Examples:
        rm old.txt             # Remove a file
        rm /Downloads/stuff    # Remove a whole directory
    """
    if not args:
        return 'usage: rm [file_or_directory]'
    if ctx.fs.delete_node(ctx.resolve(args[0])):
        return ''
    return error(f"rm: cannot remove '{args[0]}': No such file or directory")


@builtin('mv')
def mv(ctx: ShellContext, args: List[str], stdin: str) -> str:
    """Move a file or directory into another directory.

    Usage:
        mv SOURCE DIRECTORY

    Examples:
        mv notes.txt /Desktop  # Move notes.txt onto the desktop
    """
    if len(args) < 2:
        return 'usage: mv [source] [destination]'
    if ctx.fs.move_node(ctx.resolve(args[0]), ctx.resolve(args[1])):
        return ''
    return error(f"mv: failed to move '{args[0]}' to '{args[1]}'")


@builtin('cp')
def cp(ctx: ShellContext, args: List[str], stdin: str) -> str:
    """Copy a file or directory into another directory.

    Usage:
        cp SOURCE DIRECTORY

    Examples:
        cp welcome.txt .       # Creates "welcome (copy).txt"
        cp /Documents /Desktop # Copy a whole directory
    """
    if len(args) < 2:
        return 'usage: cp [source] [destination]'
    if ctx.fs.copy_node(ctx.resolve(args[0]), ctx.resolve(args[1])):
        return ''
    return error(f"cp: failed to copy '{args[0]}' to '{args[1]}'")


TEXT_EXTENSIONS = {'txt', 'md', 'js', 'ts', 'json', 'html', 'css'}
IMAGE_EXTENSIONS = {'jpg', 'jpeg', 'png', 'gif'}


@builtin('open')
def open_(ctx: ShellContext, args: List[str], stdin: str) -> str:
    """Open an application, a directory or a file.

    Usage:
        open APP_ID|PATH

    Examples:
        open /Documents        # Open the file explorer there
        open welcome.txt       # Open in the text editor
        open settings          # Launch an app by id
    """
    if not args:
        return 'usage: open [app_id | file_path]'

    node = ctx.fs.get_node(ctx.resolve(args[0]))
    if node is None:
        ctx.bus.publish({'action': 'openApp', 'appId': args[0]})
        return ''
    if node.is_dir():
        ctx.bus.publish({'action': 'openApp', 'appId': 'file-explorer', 'data': {'path': node.path}})
        return ''

    extension = node.name.rpartition('.')[2].lower()
    if extension in TEXT_EXTENSIONS:
        app_id = 'text-editor'
    elif extension in IMAGE_EXTENSIONS:
        app_id = 'photo-viewer'
    else:
        return error(f'open: File type ".{extension}" is not supported.')
    ctx.bus.publish({'action': 'openApp', 'appId': app_id, 'data': {'filePath': node.path}})
    return ''


# Text processing

@builtin('grep')
def grep(ctx: ShellContext, args: List[str], stdin: str) -> str:
    """Print lines matching a pattern, highlighting the matches.

    Usage:
        grep PATTERN [FILE]

    Examples:
        grep error log.txt     # Search a file
        ls | grep txt          # Filter piped input
    """
    if not args:
        return 'usage: grep [pattern] [file?]'

    try:
        regex = re.compile(args[0])
    except re.error as e:
        return error(f'grep: invalid regex: {e}')

    text = stdin
    if not stdin and len(args) > 1:
        content = ctx.fs.read_file(ctx.resolve(args[1]))
        if content is None:
            return error(f'grep: {args[1]}: No such file or directory')
        text = content
    if not text:
        return ''

    def mark(match: re.Match) -> str:
        return highlight(match.group(0)) if match.group(0) else ''

    return '\n'.join(regex.sub(mark, line) for line in text.split('\n') if regex.search(line))


@builtin('wc')
def wc(ctx: ShellContext, args: List[str], stdin: str) -> str:
    """Print line, word and byte counts.

    Usage:
        wc [FILE]

    Examples:
        wc welcome.txt         # Count a file
        cat a.txt | wc         # Count piped input
    """
    if stdin:
        text = stdin
    elif args:
        text = ctx.fs.read_file(ctx.resolve(args[0]))
        if text is None:
            return error(f'wc: {args[0]}: No such file or directory')
    else:
        return 'usage: wc [file]'

    lines = len(text.split('\n'))
    words = len(text.split())
    return f"{lines} {words} {len(text.encode('utf-8'))}"


# Network toys

@builtin('ping')
def ping(ctx: ShellContext, args: List[str], stdin: str) -> str:
    """Send four simulated pings to a host.

    Usage:
        ping [HOST]

    Examples:
        ping example.com       # Four simulated replies
    """
    host = args[0] if args else 'localhost'
    replies = []
    for _ in range(4):
        if ctx.ping_delay > 0:
            ctx.sleep(ctx.ping_delay)
        replies.append(f'Reply from {host}: time={ctx.rng.randint(1, 30)}ms')
    return '\n'.join(replies)


@builtin('ipconfig')
def ipconfig(ctx: ShellContext, args: List[str], stdin: str) -> str:
    """Show the public IP address."""
    try:
        ip = ctx.ip_lookup()
    except Exception as e:
        logger.warning("IP lookup failed: %s", e)
        return 'Could not retrieve IP address.'
    return f'Public IP Address: {ip}'


# Text art

COW = r"""
        \   ^__^
         \  (oo)\_______
            (__)\       )\/\
                ||----w |
                ||     ||"""

FORTUNES = [
    "You will be hungry again in one hour.",
    "The fortune you seek is in another cookie.",
    "A conclusion is simply the place where you got tired of thinking.",
    "He who laughs last is laughing at you.",
    "If you think nobody cares, try missing a couple of payments.",
    "An alien of some sort will be appearing to you shortly.",
]


def word_wrap(text: str, max_width: int = 40) -> List[str]:
    """Wrap words into lines of at most max_width, padded to equal length."""
    lines = []
    current = ''
    for word in text.split():
        if current and len(current) + 1 + len(word) > max_width:
            lines.append(current)
            current = word
        else:
            current = f'{current} {word}' if current else word
    lines.append(current)

    width = max(len(line) for line in lines)
    return [line.ljust(width) for line in lines]


def speech_bubble(text: str, max_width: int = 40) -> str:
    lines = word_wrap(text, max_width)
    width = len(lines[0])
    top = ' ' + '_' * (width + 2)
    bottom = ' ' + '-' * (width + 2)

    if len(lines) == 1:
        middle = [f'< {lines[0]} >']
    else:
        middle = [f'/ {lines[0]} \\']
        middle.extend(f'| {line} |' for line in lines[1:-1])
        middle.append(f'\\ {lines[-1]} /')

    return '\n'.join([top] + middle + [bottom])


@builtin('cowsay')
def cowsay(ctx: ShellContext, args: List[str], stdin: str) -> str:
    """Have a cow say something.

    Usage:
        cowsay [MESSAGE]

    Examples:
        cowsay hello           # A cow saying hello
        fortune | cowsay       # A cow telling your fortune
    """
    message = ' '.join(args) or stdin or 'Moo!'
    return speech_bubble(message) + COW


@builtin('fortune')
def fortune(ctx: ShellContext, args: List[str], stdin: str) -> str:
    """Print a random fortune."""
    return ctx.rng.choice(FORTUNES)
