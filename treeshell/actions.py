#!/usr/bin/env python3
"""
Action bus between the assistant and the rest of the system.

Two message shapes travel on the bus:
- OS-level actions: ``{"action": "openApp", "appId": ...}``
- in-app actions:   ``{"appId": "file-explorer", "action": "createFile", "payload": {...}}``

Handlers subscribe by action name (and app id for in-app actions). The
filesystem and terminal bindings below are the handlers this package ships.
"""

import json
import logging
import re
from collections import defaultdict
from typing import Any, Callable, Dict, List, Optional, Tuple

from .corruption import corrupt

logger = logging.getLogger(__name__)

FILE_EXPLORER = 'file-explorer'
NOTES_APP = 'prod-notes'
TERMINAL_APP = 'terminal'
NOTES_DIRECTORY = '/Documents'

Handler = Callable[[Dict[str, Any]], Any]

_JSON_BLOCK = re.compile(r'```json\n([\s\S]*?)\n```')


class ActionBus:
    """Synchronous publish/subscribe for action messages."""

    def __init__(self):
        self._handlers: Dict[Tuple[Optional[str], str], List[Handler]] = defaultdict(list)

    def subscribe(self, action: str, handler: Handler, app_id: Optional[str] = None) -> None:
        """Register a handler. In-app handlers need the app id they serve."""
        self._handlers[(app_id, action)].append(handler)

    def publish(self, message: Dict[str, Any]) -> bool:
        """
        Deliver a message to its handlers.

        In-app handlers receive the payload, OS-level handlers the whole
        message. Returns False when nobody is listening.
        """
        action = message.get('action')
        if 'payload' in message:
            key = (message.get('appId'), action)
            argument = message.get('payload') or {}
        else:
            key = (None, action)
            argument = message

        handlers = self._handlers.get(key)
        if not handlers:
            logger.debug("No handler for action %s", key)
            return False
        for handler in list(handlers):
            handler(argument)
        return True


def extract_actions(reply: str) -> Tuple[str, List[Dict[str, Any]]]:
    """Split an assistant reply into its prose and its fenced JSON actions."""
    match = _JSON_BLOCK.search(reply)
    if not match:
        return reply.strip(), []

    text = _JSON_BLOCK.sub('', reply, count=1).strip()
    try:
        data = json.loads(match.group(1))
    except ValueError as e:
        logger.warning("Failed to parse assistant action JSON: %s", e)
        return text, []

    actions = data if isinstance(data, list) else [data]
    return text, [action for action in actions if isinstance(action, dict)]


def describe_action(action: Dict[str, Any]) -> str:
    """A one-line confirmation for a dispatched action."""
    payload = action.get('payload')
    name = action.get('action')
    if payload is not None:
        if name == 'executeTerminalCommand':
            return f'Executing "{payload.get("command")}" in the terminal.'
        if name == 'createFile':
            return f'Okay, creating the file "{payload.get("fileName")}" for you.'
        if name == 'createNote':
            return f'I\'ve created a new note with the title "{payload.get("title")}".'
        return 'Got it. Performing the requested action in the app.'

    if name == 'openApp':
        return f"Opening {action.get('appId')}."
    if name == 'restart':
        return 'Restarting now.'
    if name == 'factoryReset':
        return 'Performing a factory reset as requested.'
    if name == 'corruptFileSystem':
        return ('As you wish. Initiating file system corruption sequence. '
                'This is irreversible without a factory reset.')
    return 'Action completed successfully.'


def dispatch_reply(bus: ActionBus, reply: str) -> str:
    """Publish every action in an assistant reply and return the text to show."""
    text, actions = extract_actions(reply)
    confirmation = ''
    for action in actions:
        bus.publish(action)
        confirmation = describe_action(action)
    return text or confirmation or reply.strip()


def bind_filesystem(bus: ActionBus, fs, rng=None) -> None:
    """Route file-explorer, notes and reset/corrupt actions to a FileSystem."""
    def create_file(payload):
        ok = fs.create_file(payload.get('parentPath', '/'), payload.get('fileName', ''),
                            payload.get('content', ''))
        logger.info("createFile %s in %s: %s", payload.get('fileName'), payload.get('parentPath'), ok)
        return ok

    def create_note(payload):
        return fs.create_file(NOTES_DIRECTORY, f"{payload.get('title', '')}.txt",
                              payload.get('content', ''))

    explorer = {
        'createFile': create_file,
        'createDirectory': lambda p: fs.create_directory(p.get('parentPath', '/'), p.get('dirName', '')),
        'renameNode': lambda p: fs.rename_node(p.get('path', ''), p.get('newName', '')),
        'moveNode': lambda p: fs.move_node(p.get('sourcePath', ''), p.get('destinationPath', '')),
        'copyNode': lambda p: fs.copy_node(p.get('sourcePath', ''), p.get('destinationPath', '')),
        'deleteNode': lambda p: fs.delete_node(p.get('path', '')),
    }
    for action, handler in explorer.items():
        bus.subscribe(action, handler, app_id=FILE_EXPLORER)

    bus.subscribe('createNote', create_note, app_id=NOTES_APP)
    bus.subscribe('factoryReset', lambda message: fs.reset_to_defaults())
    bus.subscribe('corruptFileSystem', lambda message: corrupt(fs, rng))


def bind_terminal(bus: ActionBus, session) -> None:
    """Route terminal actions to a TerminalSession."""
    bus.subscribe('executeTerminalCommand',
                  lambda payload: session.run_command(payload.get('command', '')),
                  app_id=TERMINAL_APP)
