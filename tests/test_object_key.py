"""Tests for object key normalization."""

import pytest

from object_key import build_key


@pytest.mark.parametrize(
    'prefix, file_name, expected',
    [
        ('', 'bar', 'bar'),
        ('foo', 'bar', 'foo/bar'),
        ('/foo', 'bar', 'foo/bar'),
        ('/foo/', 'bar', 'foo/bar'),
        ('foo', '/bar', 'foo/bar'),
        ('foo/', '/bar', 'foo/bar'),
        ('', '/bar', 'bar'),
        ('a/b', 'c.txt', 'a/b/c.txt'),
        ('//foo//', '//bar', 'foo/bar'),
    ],
)
def test_build_key(prefix: str, file_name: str, expected: str) -> None:
    assert build_key(prefix, file_name) == expected


def test_slash_only_prefix_acts_as_empty() -> None:
    assert build_key('/', 'bar') == 'bar'
    assert build_key('///', '/bar') == 'bar'


def test_file_name_trailing_slash_is_kept() -> None:
    """Only leading slashes are stripped from the file name."""
    assert build_key('foo', 'bar/') == 'foo/bar/'
    assert build_key('', 'bar/') == 'bar/'


def test_no_validation_of_path_segments() -> None:
    assert build_key('foo', '../bar') == 'foo/../bar'
    assert build_key('foo', '') == 'foo/'


@pytest.mark.parametrize('prefix', ['', '/', 'foo', '/foo', 'foo/', '/foo/', '//foo//', 'a/b/'])
@pytest.mark.parametrize('file_name', ['bar', '/bar', '//bar', 'x/y.txt', '/x/y'])
def test_never_leading_or_doubled_slash(prefix: str, file_name: str) -> None:
    key = build_key(prefix, file_name)
    assert not key.startswith('/')
    assert '//' not in key
