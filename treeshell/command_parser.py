#!/usr/bin/env python3
"""
Command parser for the treeshell terminal.

Translates a raw command line into a Pipeline: an ordered list of stages
separated by '|' plus an optional '>' redirection target.

Design Principles:
- Single responsibility: parse commands, don't execute them
- Pure functions with predictable outputs
- No quoting and no flag parsing, arguments are split on whitespace
"""

from dataclasses import dataclass, field
from typing import List, Optional, Tuple

ASSISTANT_PREFIX = 'ai '


@dataclass
class Command:
    """A single pipeline stage: command name plus whitespace-split arguments."""
    name: str
    args: List[str] = field(default_factory=list)
    raw: str = ''

    def __str__(self) -> str:
        return ' '.join([self.name] + self.args)


@dataclass
class Pipeline:
    """
    Commands connected by pipes, with an optional redirection target.

    Commands run left to right, the output of each becoming the input of
    the next. The target, if any, receives the final output.
    """
    commands: List[Command]
    redirect: Optional[str] = None

    def __str__(self) -> str:
        text = ' | '.join(str(cmd) for cmd in self.commands)
        if self.redirect:
            text += f' > {self.redirect}'
        return text


class CommandParser:
    """
    Parser for the terminal's command syntax.

    This parser handles:
    - Pipes (|)
    - Output redirection (>) to a single target
    - The 'ai ...' prefix, which bypasses both
    """

    def parse(self, command_line: str) -> Pipeline:
        """Parse a complete command line into a Pipeline."""
        main_command, redirect = self._split_redirect(command_line)
        commands = [self._parse_command(stage) for stage in self._split_by_pipe(main_command)]
        return Pipeline(commands=commands, redirect=redirect)

    def _split_redirect(self, command_line: str) -> Tuple[str, Optional[str]]:
        """Split off everything after the first '>' as the redirection target.

        Further '>' characters are kept as part of the target. An empty
        target means there is no redirection.
        """
        if '>' not in command_line:
            return command_line.strip(), None
        main_command, _, target = command_line.partition('>')
        target = target.strip()
        return main_command.strip(), target or None

    def _split_by_pipe(self, text: str) -> List[str]:
        return [stage.strip() for stage in text.split('|')]

    def _parse_command(self, stage: str) -> Command:
        tokens = stage.split()
        if not tokens:
            return Command(name='', raw=stage)
        return Command(name=tokens[0], args=tokens[1:], raw=stage)

    def parse_simple(self, command_str: str) -> Command:
        """
        Parse a single stage without pipes or redirection.

        Convenience method for testing and simple cases.
        """
        return self._parse_command(command_str.strip())

    @staticmethod
    def is_assistant_request(command_line: str) -> bool:
        """True for lines routed to the assistant instead of the pipeline."""
        return command_line.strip().lower().startswith(ASSISTANT_PREFIX)

    @staticmethod
    def assistant_prompt(command_line: str) -> str:
        return command_line.strip()[len(ASSISTANT_PREFIX):].strip()
