"""
Remote table client - cursor-paginated reads of the registry's dynamic-field
table and single-key point lookups used for re-verification.
"""

from typing import Any, Dict, List, Optional

import requests

from . import config as config_module
from .schema import Page, RawNode

SCAN_QUERY = """
query ScanNameRecords($parentId: SuiAddress!, $cursor: String, $first: Int) {
  object(address: $parentId) {
    dynamicFields(first: $first, after: $cursor) {
      pageInfo { hasNextPage endCursor }
      nodes {
        name { json }
        value {
          ... on MoveValue { json }
        }
      }
    }
  }
}
"""


class RemoteTableError(Exception):
    """Raised for transport failures and malformed or error responses."""
    pass


def _json_path(data: Any, *path: str) -> Any:
    """Walk nested dicts, returning None as soon as a step is missing."""
    for step in path:
        if not isinstance(data, dict):
            return None
        data = data.get(step)
    return data


def parse_node(node: Dict[str, Any]) -> RawNode:
    labels = _json_path(node, "name", "json", "labels")
    expiration = _json_path(node, "value", "json", "expiration_timestamp_ms")
    return RawNode(
        name_labels=list(labels) if isinstance(labels, list) else None,
        expiration_raw=None if expiration is None else str(expiration),
        raw=node if isinstance(node, dict) else {},
    )


class RemoteTableClient:
    """HTTP client for the registry table (GraphQL for pages, JSON-RPC for lookups)."""

    def __init__(self, graphql_url: str = None, rpc_url: str = None, parent_id: str = None,
                 key_type: str = None, timeout: float = None, session: requests.Session = None):
        self.graphql_url = graphql_url or config_module.get_graphql_url()
        self.rpc_url = rpc_url or config_module.get_rpc_url()
        self.parent_id = parent_id or config_module.REGISTRY_TABLE_ID
        self.key_type = key_type or config_module.DOMAIN_TYPE
        self.timeout = timeout or config_module.REQUEST_TIMEOUT_SEC
        self.session = session or requests.Session()

    def _post(self, url: str, body: Dict[str, Any]) -> Dict[str, Any]:
        try:
            response = self.session.post(url, json=body, timeout=self.timeout)
        except requests.RequestException as e:
            raise RemoteTableError(f"Request to {url} failed: {e}") from e

        if not response.ok:
            raise RemoteTableError(f"Request failed ({response.status_code}): {response.text[:200]}")

        try:
            payload = response.json()
        except ValueError as e:
            raise RemoteTableError(f"Invalid JSON from {url}: {e}") from e

        if not isinstance(payload, dict):
            raise RemoteTableError(f"Unexpected response shape from {url}")
        return payload

    def fetch_page(self, cursor: Optional[str], page_size: int = None) -> Page:
        """Fetch one page of the table starting after cursor (None = from the start)."""
        variables: Dict[str, Any] = {
            "parentId": self.parent_id,
            "first": page_size or config_module.PAGE_SIZE,
        }
        if cursor:
            variables["cursor"] = cursor

        payload = self._post(self.graphql_url, {"query": SCAN_QUERY, "variables": variables})

        errors = payload.get("errors")
        if errors:
            messages = ", ".join(str(e.get("message", e)) if isinstance(e, dict) else str(e) for e in errors)
            raise RemoteTableError(f"GraphQL errors: {messages}")

        connection = _json_path(payload, "data", "object", "dynamicFields")
        if connection is None:
            return Page(nodes=[], has_next_page=False, end_cursor=None)
        if not isinstance(connection, dict):
            raise RemoteTableError(f"Malformed dynamicFields: {type(connection).__name__}")

        page_info = connection.get("pageInfo") or {}
        if not isinstance(page_info, dict):
            raise RemoteTableError(f"Malformed pageInfo: {type(page_info).__name__}")
        has_next = bool(page_info.get("hasNextPage"))
        end_cursor = page_info.get("endCursor")
        if has_next and not (isinstance(end_cursor, str) and end_cursor):
            raise RemoteTableError("Page reports more results but no continuation cursor")

        raw_nodes = connection.get("nodes") or []
        if not isinstance(raw_nodes, list):
            raise RemoteTableError(f"Malformed nodes: {type(raw_nodes).__name__}")

        nodes: List[RawNode] = [parse_node(node) for node in raw_nodes]
        return Page(nodes=nodes, has_next_page=has_next, end_cursor=end_cursor)

    def lookup_expiration(self, key_labels: List[str]) -> Optional[str]:
        """
        Point lookup of a single record by its label key.

        Returns the raw expiration string, None when the record or field is
        absent, and raises RemoteTableError on failure.
        """
        body = {
            "jsonrpc": "2.0",
            "id": 1,
            "method": "suix_getDynamicFieldObject",
            "params": [self.parent_id, {"type": self.key_type, "value": {"labels": key_labels}}],
        }
        payload = self._post(self.rpc_url, body)

        if payload.get("error"):
            raise RemoteTableError(f"RPC error: {payload['error']}")

        expiration = _json_path(payload, "result", "data", "content", "fields",
                                "value", "fields", "expiration_timestamp_ms")
        return None if expiration is None else str(expiration)

    def close(self):
        self.session.close()
