#!/usr/bin/env python3
"""
Tests for the action bus, assistant reply parsing and the filesystem and
terminal bindings.
"""

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import random

import pytest

from treeshell.actions import (
    ActionBus, bind_filesystem, bind_terminal, describe_action, dispatch_reply, extract_actions,
)
from treeshell.filesystem import FileSystem, WELCOME_TEXT
from treeshell.storage import MemoryStore
from treeshell.terminal import TerminalConfig, TerminalSession


@pytest.fixture
def fs():
    return FileSystem(MemoryStore())


@pytest.fixture
def bus(fs):
    bus = ActionBus()
    bind_filesystem(bus, fs, rng=random.Random(3))
    return bus


def explorer(action, **payload):
    return {'appId': 'file-explorer', 'action': action, 'payload': payload}


class TestActionBus:

    def test_in_app_handlers_receive_payload(self):
        bus = ActionBus()
        received = []
        bus.subscribe('doThing', received.append, app_id='app')
        assert bus.publish({'appId': 'app', 'action': 'doThing', 'payload': {'x': 1}})
        assert received == [{'x': 1}]

    def test_os_handlers_receive_whole_message(self):
        bus = ActionBus()
        received = []
        bus.subscribe('openApp', received.append)
        message = {'action': 'openApp', 'appId': 'settings'}
        assert bus.publish(message)
        assert received == [message]

    def test_unhandled_message(self):
        bus = ActionBus()
        bus.subscribe('doThing', lambda payload: None, app_id='app')
        assert not bus.publish({'appId': 'other', 'action': 'doThing', 'payload': {}})
        assert not bus.publish({'action': 'doThing'})

    def test_multiple_handlers_run_in_order(self):
        bus = ActionBus()
        calls = []
        bus.subscribe('ping', lambda m: calls.append('a'))
        bus.subscribe('ping', lambda m: calls.append('b'))
        bus.publish({'action': 'ping'})
        assert calls == ['a', 'b']


class TestFilesystemBinding:

    def test_create_file_maps_to_create_file(self, bus, fs):
        bus.publish(explorer('createFile', parentPath='/Desktop', fileName='a.txt', content='hi'))
        assert fs.read_file('/Desktop/a.txt') == 'hi'

    def test_create_directory(self, bus, fs):
        bus.publish(explorer('createDirectory', parentPath='/', dirName='Music'))
        assert fs.get_directory('/Music') is not None

    def test_rename_move_copy_delete(self, bus, fs):
        bus.publish(explorer('renameNode', path='/Documents/welcome.txt', newName='hi.txt'))
        assert fs.read_file('/Documents/hi.txt') == WELCOME_TEXT

        bus.publish(explorer('moveNode', sourcePath='/Documents/hi.txt', destinationPath='/Desktop'))
        assert fs.exists('/Desktop/hi.txt')

        bus.publish(explorer('copyNode', sourcePath='/Desktop/hi.txt', destinationPath='/Desktop'))
        assert fs.exists('/Desktop/hi (copy).txt')

        bus.publish(explorer('deleteNode', path='/Desktop/hi.txt'))
        assert fs.listdir('/Desktop') == ['hi (copy).txt']

    def test_protected_action_is_refused(self, bus, fs):
        bus.publish(explorer('deleteNode', path='/System/config.sys'))
        assert fs.exists('/System/config.sys')
        assert fs.corrupted

    def test_create_note(self, bus, fs):
        bus.publish({'appId': 'prod-notes', 'action': 'createNote',
                     'payload': {'title': 'Groceries', 'content': 'eggs'}})
        assert fs.read_file('/Documents/Groceries.txt') == 'eggs'

    def test_corrupt_then_factory_reset(self, bus, fs):
        bus.publish({'action': 'corruptFileSystem'})
        assert fs.corrupted

        bus.publish({'action': 'factoryReset'})
        assert not fs.corrupted
        assert fs.read_file('/Documents/welcome.txt') == WELCOME_TEXT


class TestTerminalBinding:

    def test_execute_terminal_command(self, bus, fs):
        session = TerminalSession(TerminalConfig(ping_delay=0), fs=fs, bus=bus)
        bind_terminal(bus, session)
        bus.publish({'appId': 'terminal', 'action': 'executeTerminalCommand',
                     'payload': {'command': 'mkdir /Desktop/from-ai'}})
        assert fs.exists('/Desktop/from-ai')
        assert session.history.history == ['mkdir /Desktop/from-ai']

    def test_open_builtin_reaches_subscribers(self, bus, fs):
        session = TerminalSession(TerminalConfig(ping_delay=0), fs=fs, bus=bus)
        opened = []
        bus.subscribe('openApp', opened.append)
        session.run_command('open /Documents/welcome.txt')
        assert opened[0]['appId'] == 'text-editor'


class TestReplies:

    def test_reply_without_actions(self):
        assert extract_actions('  Just text.  ') == ('Just text.', [])

    def test_single_action(self):
        reply = 'Sure.\n```json\n{"action": "openApp", "appId": "settings"}\n```'
        text, actions = extract_actions(reply)
        assert text == 'Sure.'
        assert actions == [{'action': 'openApp', 'appId': 'settings'}]

    def test_action_list(self):
        reply = '```json\n[{"action": "restart"}, {"action": "factoryReset"}]\n```'
        text, actions = extract_actions(reply)
        assert text == ''
        assert [a['action'] for a in actions] == ['restart', 'factoryReset']

    def test_invalid_json(self):
        text, actions = extract_actions('Oops\n```json\n{not json}\n```')
        assert text == 'Oops'
        assert actions == []

    def test_dispatch_reply_publishes_and_confirms(self, bus, fs):
        reply = ('```json\n{"appId": "file-explorer", "action": "createFile", '
                 '"payload": {"parentPath": "/Desktop", "fileName": "x.md", "content": ""}}\n```')
        assert dispatch_reply(bus, reply) == 'Okay, creating the file "x.md" for you.'
        assert fs.exists('/Desktop/x.md')

    def test_dispatch_reply_prefers_text(self, bus):
        reply = 'Resetting.\n```json\n{"action": "factoryReset"}\n```'
        assert dispatch_reply(bus, reply) == 'Resetting.'

    def test_describe_action(self):
        assert describe_action({'action': 'openApp', 'appId': 'terminal'}) == 'Opening terminal.'
        assert describe_action({'action': 'unknown'}) == 'Action completed successfully.'
