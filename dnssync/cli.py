from __future__ import annotations

import argparse
import json
import sys
from typing import Any, Dict, List, Optional
from urllib import error, parse, request
from uuid import uuid4

import uvicorn

from dnssync.config import get_settings
from dnssync.schemas.nodes import NodeAddressType


def _api_request(
    *,
    base_url: str,
    path: str,
    method: str = "GET",
    json_body: Optional[Dict[str, Any]] = None,
) -> Any:
    url = base_url.rstrip("/") + path
    headers: Dict[str, str] = {"Accept": "application/json"}
    data: Optional[bytes] = None

    if json_body is not None:
        data = json.dumps(json_body).encode("utf-8")
        headers["Content-Type"] = "application/json"

    req = request.Request(url=url, method=method.upper(), data=data, headers=headers)
    try:
        with request.urlopen(req, timeout=15) as response:
            body = response.read().decode("utf-8")
            return json.loads(body) if body else {}
    except error.HTTPError as exc:
        payload = exc.read().decode("utf-8")
        detail = payload
        try:
            parsed = json.loads(payload)
            if isinstance(parsed, dict) and "detail" in parsed:
                detail = str(parsed["detail"])
        except json.JSONDecodeError:
            pass
        raise RuntimeError(f"HTTP {exc.code}: {detail}") from exc


def _parse_pairs(items: List[str], flag: str) -> Dict[str, str]:
    pairs: Dict[str, str] = {}
    for item in items:
        if "=" not in item:
            raise RuntimeError(f"Invalid {flag} value '{item}'. Expected key=value")
        key, value = item.split("=", 1)
        key = key.strip()
        if not key:
            raise RuntimeError(f"{flag} key cannot be empty")
        pairs[key] = value.strip()
    return pairs


def _parse_addresses(items: List[str]) -> List[Dict[str, str]]:
    valid = {item.value for item in NodeAddressType}
    addresses: List[Dict[str, str]] = []
    for item in items:
        if "=" not in item:
            raise RuntimeError(f"Invalid --address value '{item}'. Expected TYPE=ADDRESS")
        address_type, address = item.split("=", 1)
        if address_type not in valid:
            raise RuntimeError(
                f"Unknown address type '{address_type}'. Expected one of: {', '.join(sorted(valid))}"
            )
        addresses.append({"type": address_type, "address": address.strip()})
    return addresses


def _find_node_id(api_url: str, name: str) -> str:
    rows = _api_request(base_url=api_url, path=f"/nodes?name={parse.quote(name, safe='')}")
    for row in rows if isinstance(rows, list) else []:
        if isinstance(row, dict) and row.get("name") == name:
            return str(row["id"])
    raise RuntimeError(f"Node '{name}' not found")


def cmd_endpoints(args: argparse.Namespace) -> int:
    rows = _api_request(base_url=args.api_url, path="/endpoints")
    if args.json:
        print(json.dumps(rows, indent=2, sort_keys=True))
        return 0
    print("NAME\tTYPE\tTTL\tTARGETS")
    for row in rows if isinstance(rows, list) else []:
        ttl = row.get("record_ttl") or {}
        ttl_text = str(ttl.get("value")) if ttl.get("configured") else "-"
        targets = ",".join(row.get("targets", []))
        print(f"{row.get('dns_name')}\t{row.get('record_type')}\t{ttl_text}\t{targets}")
    return 0


def cmd_nodes_list(args: argparse.Namespace) -> int:
    rows = _api_request(base_url=args.api_url, path=f"/nodes?limit={args.limit}")
    if not isinstance(rows, list):
        raise RuntimeError("Unexpected response for /nodes")
    print("NAME\tADDRESSES\tLABELS")
    for row in rows:
        addresses = ",".join(f"{item['type']}={item['address']}" for item in row.get("addresses", []))
        labels = ",".join(f"{key}={value}" for key, value in sorted(row.get("labels", {}).items()))
        print(f"{row.get('name')}\t{addresses or '-'}\t{labels or '-'}")
    return 0


def cmd_nodes_add(args: argparse.Namespace) -> int:
    payload = {
        "id": args.node_id or str(uuid4()),
        "name": args.name,
        "labels": _parse_pairs(args.label, "--label"),
        "annotations": _parse_pairs(args.annotation, "--annotation"),
        "addresses": _parse_addresses(args.address),
    }
    result = _api_request(base_url=args.api_url, path="/nodes", method="POST", json_body=payload)
    print(json.dumps(result, indent=2, sort_keys=True))
    return 0


def cmd_nodes_delete(args: argparse.Namespace) -> int:
    node_id = _find_node_id(args.api_url, args.name)
    _api_request(base_url=args.api_url, path=f"/nodes/{node_id}", method="DELETE")
    print(json.dumps({"deleted": args.name, "id": node_id}, indent=2, sort_keys=True))
    return 0


def cmd_serve(args: argparse.Namespace) -> int:
    settings = get_settings()
    uvicorn.run(
        "dnssync.main:create_app",
        factory=True,
        host=args.host or settings.server_host,
        port=args.port or settings.server_port,
        log_config=None,
    )
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="dnssync", description="Node DNS sync controller CLI")
    parser.add_argument("--api-url", default="http://127.0.0.1:8000")

    sub = parser.add_subparsers(dest="command", required=True)

    endpoints = sub.add_parser("endpoints", help="Show endpoints derived from current node state")
    endpoints.add_argument("--json", action="store_true", help="Print raw JSON")
    endpoints.set_defaults(func=cmd_endpoints)

    nodes = sub.add_parser("nodes", help="Manage the node inventory")
    nodes_sub = nodes.add_subparsers(dest="nodes_command", required=True)

    nodes_list = nodes_sub.add_parser("list", help="List nodes")
    nodes_list.add_argument("--limit", type=int, default=100)
    nodes_list.set_defaults(func=cmd_nodes_list)

    nodes_add = nodes_sub.add_parser("add", help="Register a node")
    nodes_add.add_argument("--name", required=True)
    nodes_add.add_argument("--id", dest="node_id", default="")
    nodes_add.add_argument("--address", action="append", default=[], help="TYPE=ADDRESS, repeatable")
    nodes_add.add_argument("--label", action="append", default=[], help="key=value, repeatable")
    nodes_add.add_argument("--annotation", action="append", default=[], help="key=value, repeatable")
    nodes_add.set_defaults(func=cmd_nodes_add)

    nodes_delete = nodes_sub.add_parser("delete", help="Remove a node by name")
    nodes_delete.add_argument("--name", required=True)
    nodes_delete.set_defaults(func=cmd_nodes_delete)

    serve = sub.add_parser("serve", help="Run the API server")
    serve.add_argument("--host", default="")
    serve.add_argument("--port", type=int, default=0)
    serve.set_defaults(func=cmd_serve)

    return parser


def main() -> None:
    parser = build_parser()
    args = parser.parse_args()
    try:
        exit_code = args.func(args)
    except Exception as exc:  # noqa: BLE001
        print(f"error: {exc}", file=sys.stderr)
        raise SystemExit(1) from exc
    raise SystemExit(exit_code)


if __name__ == "__main__":
    main()
