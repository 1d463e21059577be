# tests/test_etag.py
from techtool.core.etag import etag_matches, generate_etag


def test_etag_is_quoted_and_deterministic():
    data = [{"display_id": "HRB-1", "title": "A"}, {"display_id": "HRB-2", "title": "B"}]
    tag = generate_etag(data)
    assert tag.startswith('"') and tag.endswith('"')
    assert len(tag) == 34
    assert generate_etag([dict(d) for d in data]) == tag


def test_etag_is_order_sensitive():
    a = {"display_id": "HRB-1"}
    b = {"display_id": "HRB-2"}
    assert generate_etag([a, b]) != generate_etag([b, a])


def test_etag_changes_with_content():
    assert generate_etag([{"status": "Open"}]) != generate_etag([{"status": "Completed"}])


def test_etag_matching():
    tag = generate_etag([])
    assert etag_matches(tag, tag)
    assert not etag_matches(None, tag)
    assert not etag_matches("", tag)
    assert not etag_matches(tag.strip('"'), tag)
