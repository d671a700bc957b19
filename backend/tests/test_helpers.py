import pytest

from cms.utils.helpers import dump_json_list, load_json_list, parse_json, parse_retain_list


@pytest.mark.parametrize(
    "value, expected",
    [
        (None, None),
        ("", []),
        ("   ", []),
        ("[]", []),
        ('["uploads/projects/a.jpg", "", "/uploads/projects/b.jpg"]', ["uploads/projects/a.jpg", "/uploads/projects/b.jpg"]),
        ('"uploads/projects/a.jpg"', ["uploads/projects/a.jpg"]),
        ("{broken", []),
        ('{"a": 1}', []),
        (["uploads/projects/a.jpg"], ["uploads/projects/a.jpg"]),
    ],
)
def test_parse_retain_list(value, expected):
    assert parse_retain_list(value) == expected


def test_parse_json_fallback():
    assert parse_json(None, []) == []
    assert parse_json("not json", "fallback") == "fallback"
    assert parse_json([1, 2]) == [1, 2]
    assert parse_json('{"k": "v"}') == {"k": "v"}


def test_json_list_columns():
    assert load_json_list(None) == []
    assert load_json_list("garbage") == []
    assert load_json_list('{"a": 1}') == []
    assert load_json_list(dump_json_list(["uploads/a.jpg", "uploads/b.jpg"])) == ["uploads/a.jpg", "uploads/b.jpg"]
    assert dump_json_list(None) == "[]"
