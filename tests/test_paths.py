#!/usr/bin/env python3
"""
Tests for path resolution and the small path helpers.
"""

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pytest

from treeshell.paths import resolve, normalize_path, split_path, join_path, is_within


class TestResolve:
    """Resolve relative and absolute paths against a working directory."""

    def test_relative_path_appends_to_cwd(self):
        assert resolve('notes.txt', '/Documents') == '/Documents/notes.txt'

    def test_absolute_path_ignores_cwd(self):
        assert resolve('/Downloads', '/Documents') == '/Downloads'

    def test_dot_segments_are_dropped(self):
        assert resolve('./a/./b', '/') == '/a/b'

    def test_dotdot_pops_a_segment(self):
        assert resolve('../Downloads', '/Documents') == '/Downloads'
        assert resolve('a/b/../c', '/x') == '/x/a/c'

    def test_dotdot_never_climbs_above_root(self):
        assert resolve('../../..', '/Documents') == '/'
        assert resolve('/../../a', '/Documents') == '/a'

    def test_empty_segments_are_filtered(self):
        assert resolve('//a///b//', '/') == '/a/b'

    def test_empty_and_dot_input_is_cwd(self):
        assert resolve('', '/Documents') == '/Documents'
        assert resolve('.', '/Documents') == '/Documents'

    def test_root_result_is_single_slash(self):
        assert resolve('/', '/a/b') == '/'
        assert resolve('..', '/a') == '/'

    @pytest.mark.parametrize('path', [
        '/Documents/welcome.txt',
        '/a/../b/./c',
        '/',
        '//x//y/..',
    ])
    @pytest.mark.parametrize('cwd', ['/', '/Documents', '/a/b/c'])
    def test_absolute_paths_resolve_to_their_normal_form(self, path, cwd):
        assert resolve(path, cwd) == normalize_path(path)


class TestHelpers:
    """split_path, join_path and is_within."""

    def test_normalize_treats_relative_as_absolute(self):
        assert normalize_path('Documents/x/..') == '/Documents'

    def test_split_path(self):
        assert split_path('/Documents/welcome.txt') == ('/Documents', 'welcome.txt')
        assert split_path('/Documents') == ('/', 'Documents')
        assert split_path('/') == ('/', '')

    def test_join_path(self):
        assert join_path('/', 'Documents') == '/Documents'
        assert join_path('/Documents', 'a.txt') == '/Documents/a.txt'

    def test_is_within_is_segment_aware(self):
        assert is_within('/Documents/Sub', '/Documents')
        assert is_within('/Documents', '/Documents')
        assert not is_within('/DocumentsOld', '/Documents')
        assert is_within('/anything', '/')
