"""Unit tests for the `.properties` parser in `personservice.config`."""

from textwrap import dedent

import pytest

from personservice.config import PropertiesFileError, parse_properties

# pylint: disable=magic-value-comparison


def test_separators():
    """Keys and values may be separated by '=', ':' or whitespace."""
    text = dedent(
        """\
        a=1
        b = 2
        c:3
        d : 4
        e 5
        """
    )
    assert parse_properties(text) == {"a": "1", "b": "2", "c": "3", "d": "4", "e": "5"}


def test_comments_and_blank_lines_are_ignored():
    """Lines starting with '#' or '!' and blank lines are skipped."""
    text = "# comment\n! also a comment\n\n   \nkey=value\n"
    assert parse_properties(text) == {"key": "value"}


def test_key_without_value():
    """A key on its own maps to the empty string."""
    assert parse_properties("lonely\n") == {"lonely": ""}


def test_value_whitespace_is_trimmed():
    """Surrounding whitespace is removed from keys and values."""
    assert parse_properties("   info.app.name =   personService   \n") == {
        "info.app.name": "personService"
    }


def test_line_continuation():
    """A trailing backslash joins the next line, dropping its leading whitespace."""
    text = "list=a,\\\n     b,\\\n     c\nnext=1\n"
    assert parse_properties(text) == {"list": "a,b,c", "next": "1"}


def test_escaped_backslash_does_not_continue():
    """An even number of trailing backslashes is a literal backslash."""
    text = "path=C:\\\\\nnext=1\n"
    assert parse_properties(text) == {"path": "C:\\", "next": "1"}


def test_escaped_separator_in_key():
    """An escaped '=' belongs to the key."""
    assert parse_properties("a\\=b=c\n") == {"a=b": "c"}


def test_later_duplicates_win():
    """When a key repeats, the last value is kept."""
    assert parse_properties("k=1\nk=2\n") == {"k": "2"}


def test_empty_key_raises_with_location():
    """A line with no key reports the source and line number."""
    with pytest.raises(PropertiesFileError) as excinfo:
        parse_properties("ok=1\n\n=orphan\n", source="app.properties")
    assert excinfo.value.path == "app.properties"
    assert excinfo.value.lineno == 3
    assert "app.properties:3" in str(excinfo.value)
