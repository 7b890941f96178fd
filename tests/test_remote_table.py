"""
Remote table client tests - request shape and response parsing against a mocked
requests session.
"""

import pytest
import requests
from unittest.mock import MagicMock

from expiry_tracker.core.remote_table import RemoteTableClient, RemoteTableError


def make_response(payload=None, status=200, json_error=False):
    response = MagicMock()
    response.ok = 200 <= status < 300
    response.status_code = status
    response.text = "body"
    if json_error:
        response.json.side_effect = ValueError("no json")
    else:
        response.json.return_value = payload
    return response


def make_client(response):
    session = MagicMock()
    if isinstance(response, Exception):
        session.post.side_effect = response
    else:
        session.post.return_value = response
    client = RemoteTableClient(graphql_url="http://gql", rpc_url="http://rpc",
                               parent_id="0xparent", key_type="pkg::domain::Domain",
                               timeout=5, session=session)
    return client, session


def page_payload(nodes, has_next=False, end_cursor=None):
    return {"data": {"object": {"dynamicFields": {
        "pageInfo": {"hasNextPage": has_next, "endCursor": end_cursor},
        "nodes": nodes,
    }}}}


class TestFetchPage:
    """Test paginated query handling."""

    def test_parses_nodes_and_page_info(self):
        nodes = [
            {"name": {"json": {"labels": ["sui", "alice"]}},
             "value": {"json": {"expiration_timestamp_ms": "1700000000000"}}},
            {"name": {"json": None}, "value": None},
        ]
        client, session = make_client(make_response(page_payload(nodes, True, "cur2")))

        page = client.fetch_page("cur1", page_size=50)

        assert page.has_next_page is True
        assert page.end_cursor == "cur2"
        assert page.nodes[0].name_labels == ["sui", "alice"]
        assert page.nodes[0].expiration_raw == "1700000000000"
        assert page.nodes[1].name_labels is None
        assert page.nodes[1].expiration_raw is None

        url = session.post.call_args[0][0]
        body = session.post.call_args[1]["json"]
        assert url == "http://gql"
        assert body["variables"] == {"parentId": "0xparent", "first": 50, "cursor": "cur1"}

    def test_first_page_sends_no_cursor(self):
        client, session = make_client(make_response(page_payload([])))
        client.fetch_page(None, page_size=10)
        assert "cursor" not in session.post.call_args[1]["json"]["variables"]

    def test_missing_connection_is_empty_final_page(self):
        client, _ = make_client(make_response({"data": {"object": None}}))
        page = client.fetch_page(None)
        assert page.nodes == []
        assert page.has_next_page is False

    def test_graphql_errors_raise(self):
        client, _ = make_client(make_response({"errors": [{"message": "boom"}]}))
        with pytest.raises(RemoteTableError, match="boom"):
            client.fetch_page(None)

    def test_http_error_raises(self):
        client, _ = make_client(make_response(status=503))
        with pytest.raises(RemoteTableError, match="503"):
            client.fetch_page(None)

    def test_transport_error_raises(self):
        client, _ = make_client(requests.ConnectionError("down"))
        with pytest.raises(RemoteTableError, match="down"):
            client.fetch_page(None)

    def test_invalid_json_raises(self):
        client, _ = make_client(make_response(json_error=True))
        with pytest.raises(RemoteTableError):
            client.fetch_page(None)

    def test_next_page_without_cursor_raises(self):
        client, _ = make_client(make_response(page_payload([], True, None)))
        with pytest.raises(RemoteTableError, match="continuation"):
            client.fetch_page(None)

    @pytest.mark.parametrize("connection", [
        ["not", "a", "dict"],
        "oops",
        {"pageInfo": "oops", "nodes": []},
        {"pageInfo": {"hasNextPage": False}, "nodes": "oops"},
        {"pageInfo": {"hasNextPage": True, "endCursor": 7}, "nodes": []},
    ])
    def test_malformed_shape_raises(self, connection):
        payload = {"data": {"object": {"dynamicFields": connection}}}
        client, _ = make_client(make_response(payload))
        with pytest.raises(RemoteTableError):
            client.fetch_page(None)


class TestLookupExpiration:
    """Test single-key point lookups."""

    def test_returns_expiration(self):
        payload = {"result": {"data": {"content": {"fields": {"value": {"fields": {
            "expiration_timestamp_ms": "1800000000000"}}}}}}}
        client, session = make_client(make_response(payload))

        assert client.lookup_expiration(["sui", "alice"]) == "1800000000000"

        body = session.post.call_args[1]["json"]
        assert body["method"] == "suix_getDynamicFieldObject"
        assert body["params"] == ["0xparent", {"type": "pkg::domain::Domain", "value": {"labels": ["sui", "alice"]}}]

    def test_absent_record_returns_none(self):
        client, _ = make_client(make_response({"result": {"error": {"code": "dynamicFieldNotFound"}}}))
        assert client.lookup_expiration(["sui", "ghost"]) is None

    def test_rpc_error_raises(self):
        client, _ = make_client(make_response({"error": {"message": "rate limited"}}))
        with pytest.raises(RemoteTableError):
            client.lookup_expiration(["sui", "alice"])
