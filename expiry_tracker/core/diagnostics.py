"""
Diagnostics probe - checks the first remote page and a store round trip without
touching the tracked snapshot or the tracker state.
"""

import json
from typing import Any, Dict, List

from .kv_store import IKeyValueStore, StoreError
from .remote_table import RemoteTableClient, RemoteTableError
from .windowing import extract

PROBE_KEY = "tracker:debug:probe"


def run_probe(store: IKeyValueStore, client: RemoteTableClient) -> Dict[str, Any]:
    """Return a log of probe steps. Failures are recorded, never raised."""
    log: List[str] = [f"graphqlUrl={client.graphql_url}", f"rpcUrl={client.rpc_url}"]

    try:
        page = client.fetch_page(None)
        log.append(f"firstPage: {len(page.nodes)} nodes, hasNext={page.has_next_page}")
        if page.nodes:
            first = page.nodes[0]
            log.append(f"firstNode.raw={json.dumps(first.raw, default=str)[:500]}")
            record = extract(first)
            log.append(f"extracted={record.to_dict() if record else None}")
    except RemoteTableError as e:
        log.append(f"fetchPage error: {e}")

    try:
        store.put(PROBE_KEY, b"ok", ttl_seconds=60)
        value = store.get(PROBE_KEY)
        log.append(f"kvWrite: {value.decode('utf-8') if value else None}")
        store.delete(PROBE_KEY)
    except StoreError as e:
        log.append(f"kvWrite error: {e}")

    return {"log": log}
