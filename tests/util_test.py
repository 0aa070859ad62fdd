"""Tests for utility functions."""

from gradient.nbstartup.util import split_list, str_bool


def test_str_bool() -> None:
    assert str_bool("") is False
    assert str_bool("0") is False
    assert str_bool("0.0") is False
    assert str_bool("1") is True
    assert str_bool("-2.5") is True
    assert str_bool("no") is False
    assert str_bool("False") is False
    assert str_bool("n") is False
    assert str_bool("yes") is True
    assert str_bool("TRUE") is True
    assert str_bool("debug") is True


def test_split_list() -> None:
    assert split_list("") == []
    assert split_list("uv") == ["uv"]
    assert split_list("uv,venv") == ["uv", "venv"]
    assert split_list(" uv , venv,,services ") == ["uv", "venv", "services"]
    assert split_list("uv venv") == ["uv", "venv"]
