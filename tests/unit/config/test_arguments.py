"""Unit tests for command-line argument parsing in `personservice.config`."""

import pytest

from personservice.config import InvalidArgumentError, parse_arguments

# pylint: disable=magic-value-comparison


def test_empty_arguments():
    """No arguments yield no options and no non-option values."""
    parsed = parse_arguments([])
    assert parsed.source_args == ()
    assert dict(parsed.options) == {}
    assert parsed.non_option_args == ()


def test_name_value_options():
    """--name=value pairs become option properties."""
    parsed = parse_arguments(["--info.app.name=demo", "--server.port=8080"])
    assert parsed.options == {"info.app.name": "demo", "server.port": "8080"}


def test_value_may_contain_equals_sign():
    """Only the first '=' separates the name from the value."""
    parsed = parse_arguments(["--query=a=b"])
    assert parsed.options == {"query": "a=b"}


def test_bare_flag_is_true():
    """A bare --name is recorded as 'true'."""
    parsed = parse_arguments(["--debug"])
    assert parsed.options == {"debug": "true"}


def test_empty_value_is_kept():
    """--name= records an empty string."""
    parsed = parse_arguments(["--info.app.name="])
    assert parsed.options == {"info.app.name": ""}


def test_repeated_options_are_joined():
    """Repeating an option joins the values with commas."""
    parsed = parse_arguments(["--profiles.active=dev", "--profiles.active=local"])
    assert parsed.options == {"profiles.active": "dev,local"}


def test_non_option_arguments_are_kept_in_order():
    """Arguments not starting with '--' are preserved as non-option arguments."""
    args = ["first", "--debug", "-v", "second"]
    parsed = parse_arguments(args)
    assert parsed.non_option_args == ("first", "-v", "second")
    assert parsed.source_args == tuple(args)


@pytest.mark.parametrize("arg", ["--", "--=value", "--  =x"])
def test_invalid_syntax_raises(arg):
    """An option without a name is rejected."""
    with pytest.raises(InvalidArgumentError) as excinfo:
        parse_arguments([arg])
    assert excinfo.value.argument == arg
