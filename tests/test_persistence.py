#!/usr/bin/env python3
"""
Tests for snapshot persistence: write-through, reload, the JSON file store
and the fallback to the default tree.
"""

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import json
import unittest
from unittest import mock

import pytest

from treeshell.filesystem import FileSystem, WELCOME_TEXT, SNAPSHOT_VERSION
from treeshell.storage import MemoryStore, JsonFileStore, SNAPSHOT_KEY


@pytest.fixture
def store():
    return MemoryStore()


class TestWriteThrough:

    def test_nothing_written_until_first_mutation(self, store):
        FileSystem(store)
        assert store.read(SNAPSHOT_KEY) is None

    def test_every_mutation_is_persisted(self, store):
        fs = FileSystem(store)
        fs.create_file('/Desktop', 'a.txt', 'one')
        assert json.loads(store.read(SNAPSHOT_KEY))['root']['children']['Desktop']['children']['a.txt']['content'] == 'one'

        fs.write_file('/Desktop/a.txt', 'two')
        reloaded = FileSystem(store)
        assert reloaded.read_file('/Desktop/a.txt') == 'two'

    def test_failed_mutation_is_not_persisted(self, store):
        fs = FileSystem(store)
        fs.create_file('/Desktop', 'a.txt')
        blob = store.read(SNAPSHOT_KEY)
        assert not fs.create_file('/Desktop', 'a.txt')
        assert store.read(SNAPSHOT_KEY) == blob

    def test_corruption_flag_survives_reload(self, store):
        fs = FileSystem(store)
        fs.delete_node('/System/kernel.bin')
        assert FileSystem(store).corrupted

    def test_snapshot_format(self, store):
        fs = FileSystem(store)
        fs.create_directory('/', 'Work')
        data = json.loads(store.read(SNAPSHOT_KEY))
        assert data['version'] == SNAPSHOT_VERSION
        assert data['corrupted'] is False
        work = data['root']['children']['Work']
        assert work['type'] == 'directory'
        assert work['path'] == '/Work'
        assert work['size'] == 0
        assert work['children'] == {}


class TestFallback:

    @pytest.mark.parametrize('blob', [
        'not json at all',
        '{}',
        '{"root": {"type": "socket", "name": "", "path": "/"}}',
        '{"root": {"type": "directory", "name": "", "path": "/", "children": '
        '{"a": {"type": "file", "name": "b", "path": "/a", "content": ""}}}}',
    ])
    def test_unreadable_snapshot_falls_back_to_default_tree(self, blob):
        fs = FileSystem(MemoryStore({SNAPSHOT_KEY: blob}))
        assert fs.read_file('/Documents/welcome.txt') == WELCOME_TEXT
        assert not fs.corrupted

    def test_from_json_round_trip(self, store):
        fs = FileSystem(store)
        fs.create_file('/Documents', 'n.txt', 'note')
        restored = FileSystem.from_json(fs.to_json())
        assert restored.to_dict() == fs.to_dict()

    def test_from_json_rejects_garbage(self):
        with pytest.raises(ValueError):
            FileSystem.from_json('{"corrupted": true}')

    def test_from_json_instance_behaves_like_a_loaded_one(self, store):
        source = FileSystem(MemoryStore())
        source.delete_node('/System/kernel.bin')

        restored = FileSystem.from_json(source.to_json(), store=store, key='other')
        assert restored.corrupted
        assert restored.last_error is None
        assert restored.store is store
        assert restored.create_file('/Desktop', 'a.txt')
        assert FileSystem(store, key='other').exists('/Desktop/a.txt')

    def test_from_json_defaults_to_memory_store(self):
        restored = FileSystem.from_json(FileSystem(MemoryStore()).to_json())
        assert isinstance(restored.store, MemoryStore)
        assert restored.key == SNAPSHOT_KEY

    def test_zero_mtime_survives_reload(self):
        blob = json.dumps({'root': {
            'type': 'directory', 'name': '', 'path': '/', 'mtime': 0.0, 'children': {
                'a.txt': {'type': 'file', 'name': 'a.txt', 'path': '/a.txt',
                          'mtime': 0.0, 'content': 'x'},
            },
        }})
        fs = FileSystem(MemoryStore({SNAPSHOT_KEY: blob}))
        assert fs.root.mtime == 0.0
        assert fs.get_node('/a.txt').mtime == 0.0


class TestJsonFileStore(unittest.TestCase):
    """The on-disk store, one JSON file per key."""

    def setUp(self):
        import tempfile
        self.temp_dir = tempfile.mkdtemp()

    def tearDown(self):
        import shutil
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_missing_file_reads_as_none(self):
        self.assertIsNone(JsonFileStore(self.temp_dir).read(SNAPSHOT_KEY))

    def test_write_then_read(self):
        store = JsonFileStore(os.path.join(self.temp_dir, 'state'))
        store.write('k', '{"a": 1}')
        self.assertEqual(store.read('k'), '{"a": 1}')
        self.assertTrue(os.path.exists(os.path.join(self.temp_dir, 'state', 'k.json')))
        self.assertFalse(os.path.exists(os.path.join(self.temp_dir, 'state', 'k.json.tmp')))

    def test_failed_replace_leaves_no_temporary_file(self):
        store = JsonFileStore(self.temp_dir)
        store.write('k', 'old')

        def broken_replace(src, dst):
            raise OSError('disk full')

        with mock.patch('treeshell.storage.os.replace', broken_replace):
            with self.assertRaises(OSError):
                store.write('k', 'new')

        self.assertEqual(os.listdir(self.temp_dir), ['k.json'])
        self.assertEqual(store.read('k'), 'old')

    def test_filesystem_survives_restart(self):
        fs = FileSystem(JsonFileStore(self.temp_dir))
        fs.create_directory('/Desktop', 'Saved')
        fs.rename_node('/Documents/welcome.txt', 'hello.txt')

        restarted = FileSystem(JsonFileStore(self.temp_dir))
        self.assertTrue(restarted.exists('/Desktop/Saved'))
        self.assertEqual(restarted.read_file('/Documents/hello.txt'), WELCOME_TEXT)
        self.assertEqual(restarted.get_node('/Documents/hello.txt').path, '/Documents/hello.txt')


if __name__ == '__main__':
    unittest.main()
