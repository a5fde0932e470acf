import pytest

from utils.validators import InputParser, TextValidator


@pytest.mark.parametrize("text,expected", [(None, True), ("", True), ("  \t", True), ("Dune", False)])
def test_is_blank(text, expected):
    assert TextValidator.is_blank(text) is expected


def test_clean():
    assert TextValidator.clean(None) == ""
    assert TextValidator.clean("  Frank Herbert ") == "Frank Herbert"


@pytest.mark.parametrize("raw,expected", [("12", 12), (" 7 ", 7), ("-3", -3), ("", None), ("abc", None), (None, None)])
def test_parse_int(raw, expected):
    assert InputParser.parse_int(raw) == expected


@pytest.mark.parametrize("raw,expected", [("true", True), ("No", False), ("", None), ("maybe", None)])
def test_parse_bool(raw, expected):
    assert InputParser.parse_bool(raw) is expected
