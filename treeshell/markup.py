#!/usr/bin/env python3
"""
ANSI markup for terminal output.

Builtins decorate their output with colors; anything that treats output as
data (pipes, redirection, a terminal without color) uses strip_markup.
"""

import re

RESET = '\033[0m'
RED = '\033[31m'
BLUE = '\033[34m'
HIGHLIGHT = '\033[30;43m'
CLEAR_SCREEN = '\033[2J\033[H'

_ANSI_PATTERN = re.compile(r'\033\[[0-9;]*[A-Za-z]')


def error(text: str) -> str:
    return f'{RED}{text}{RESET}'


def directory(text: str) -> str:
    return f'{BLUE}{text}{RESET}'


def highlight(text: str) -> str:
    return f'{HIGHLIGHT}{text}{RESET}'


def strip_markup(text: str) -> str:
    """Remove every ANSI escape sequence, leaving plain text."""
    return _ANSI_PATTERN.sub('', text)
