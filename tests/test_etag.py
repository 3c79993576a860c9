import hashlib

import pytest

from app.core import etag as etag_utils
from app.domains.offers.entities import OfferSnapshot


def test_generate_format():
    value = etag_utils.generate({"a": 1})
    assert value.startswith('"') and value.endswith('"')
    assert len(value) == 10
    assert etag_utils.is_valid(value)


def test_generate_matches_md5_prefix_of_compact_json():
    expected = hashlib.md5('{"a":1,"b":[2,3]}'.encode("utf-8")).hexdigest()[:8]
    assert etag_utils.generate({"b": [2, 3], "a": 1}) == f'"{expected}"'


def test_generate_ignores_key_order_at_any_depth():
    first = {"title": "T", "content": {"x": {"b": 1, "a": [{"d": 1, "c": 2}]}, "y": 2}}
    second = {"content": {"y": 2, "x": {"a": [{"c": 2, "d": 1}], "b": 1}}, "title": "T"}
    assert etag_utils.generate(first) == etag_utils.generate(second)


def test_generate_keeps_list_order():
    assert etag_utils.generate({"a": [1, 2]}) != etag_utils.generate({"a": [2, 1]})


def test_generate_keeps_non_ascii_text():
    expected = hashlib.md5('{"title":"Париж"}'.encode("utf-8")).hexdigest()[:8]
    assert etag_utils.generate({"title": "Париж"}) == f'"{expected}"'


@pytest.mark.parametrize("payload", ["text", 42, None])
def test_generate_rejects_non_objects(payload):
    with pytest.raises(ValueError):
        etag_utils.generate(payload)


def test_for_offer_is_sensitive_to_each_field():
    base = etag_utils.for_offer("Paris trip", {"days": 3}, "draft")
    assert etag_utils.for_offer("Paris trip v2", {"days": 3}, "draft") != base
    assert etag_utils.for_offer("Paris trip", {"days": 4}, "draft") != base
    assert etag_utils.for_offer("Paris trip", {"days": 3}, "published") != base


def test_for_offer_defaults():
    assert etag_utils.for_offer("T", None, None) == etag_utils.for_offer("T", {}, "draft")


def test_snapshot_fingerprint_matches_for_offer():
    snapshot = OfferSnapshot(title="T", content={"k": "v"}, status="archived")
    assert snapshot.fingerprint() == etag_utils.for_offer("T", {"k": "v"}, "archived")


@pytest.mark.parametrize("raw, expected", [
    ('"abc12345"', '"abc12345"'),
    ("abc12345", '"abc12345"'),
    ('  "abc12345" ', '"abc12345"'),
    ('W/"abc12345"', '"abc12345"'),
    ("", None),
    (None, None),
])
def test_normalize(raw, expected):
    assert etag_utils.normalize(raw) == expected


def test_compare():
    assert etag_utils.compare('"abc12345"', "abc12345")
    assert etag_utils.compare('W/"abc12345"', '"abc12345"')
    assert not etag_utils.compare('"abc12345"', '"abc12346"')
    assert not etag_utils.compare(None, '"abc12345"')
    assert not etag_utils.compare('"abc12345"', "")


def test_extract_hash_and_is_valid():
    assert etag_utils.extract_hash('"deadbeef"') == "deadbeef"
    assert etag_utils.extract_hash(None) is None
    assert etag_utils.is_valid('"deadbeef"')
    assert not etag_utils.is_valid('"xyz"')
    assert not etag_utils.is_valid('"deadbeef00"')
