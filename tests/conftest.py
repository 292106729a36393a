"""Shared fixtures for kvtool tests.

FakeKvApi is an in-memory stand-in for the Cloudflare KV API, served to
CloudflareClient through httpx.MockTransport.
"""

import json
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import unquote

import httpx
import pytest

from kvtool.config import KvConfig
from kvtool.services.api import CloudflareClient

ACCOUNT_ID = "0123456789abcdef0123456789abcdef"


def envelope(result: Any = None, success: bool = True, errors=None, result_info=None) -> Dict:
    body = {"success": success, "errors": errors or [], "messages": [], "result": result}
    if result_info is not None:
        body["result_info"] = result_info
    return body


def error_response(status: int, code: int, message: str) -> httpx.Response:
    return httpx.Response(
        status, json=envelope(success=False, errors=[{"code": code, "message": message}])
    )


class FakeKvApi:
    """In-memory Cloudflare KV API.

    Attributes:
        namespaces: Namespace records keyed by id
        store: Raw stored value strings per namespace id
        projects: Pages project payloads keyed by project name
        requests: (method, path, params) for every request received
    """

    def __init__(self) -> None:
        self.namespaces: Dict[str, Dict[str, Any]] = {}
        self.store: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self.projects: Dict[str, Dict[str, Any]] = {}
        self.requests: List[Tuple[str, str, Dict[str, str]]] = []
        self.fail_values: Dict[str, Tuple[int, int, str]] = {}
        self.empty_values: set = set()
        self._next_id = 1

    # -- setup helpers -------------------------------------------------

    def add_namespace(self, title: str, values: Optional[Dict[str, Any]] = None) -> str:
        namespace_id = f"ns{self._next_id:04d}"
        self._next_id += 1
        self.namespaces[namespace_id] = {
            "id": namespace_id,
            "title": title,
            "supports_url_encoding": True,
        }
        self.store[namespace_id] = {}
        for key, value in (values or {}).items():
            self.store[namespace_id][key] = {"value": json.dumps(value)}
        return namespace_id

    def fail_value(self, key: str, status: int, code: int, message: str) -> None:
        self.fail_values[key] = (status, code, message)

    def set_raw_value(self, namespace_id: str, key: str, raw: str) -> None:
        self.store[namespace_id][key] = {"value": raw}

    def find_ids(self, title: str) -> List[str]:
        return [ns["id"] for ns in self.namespaces.values() if ns["title"] == title]

    def values_of(self, namespace_id: str) -> Dict[str, Any]:
        return {
            key: json.loads(item["value"]) for key, item in self.store[namespace_id].items()
        }

    def calls(self, method: str, prefix: str = "") -> List[Tuple[str, str, Dict[str, str]]]:
        return [
            call for call in self.requests if call[0] == method and call[1].startswith(prefix)
        ]

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    # -- request handling ----------------------------------------------

    def handler(self, request: httpx.Request) -> httpx.Response:
        raw_path = request.url.raw_path.decode("ascii").split("?", 1)[0]
        prefix = f"/client/v4/accounts/{ACCOUNT_ID}/"
        assert raw_path.startswith(prefix), raw_path
        assert request.headers["Authorization"] == "Bearer test-token"

        path = raw_path[len(prefix):]
        params = dict(request.url.params)
        self.requests.append((request.method, path, params))
        body = json.loads(request.content) if request.content else None
        parts = path.split("/")

        if parts[0] == "pages" and len(parts) == 3:
            project = self.projects.get(parts[2])
            if project is None:
                return error_response(404, 8000007, "Project not found")
            return httpx.Response(200, json=envelope(project))

        if parts[:3] != ["storage", "kv", "namespaces"]:
            return error_response(404, 7003, "Could not route")

        rest = parts[3:]
        if not rest:
            if request.method == "GET":
                return self._list_namespaces(params)
            if request.method == "POST":
                namespace_id = self.add_namespace(body["title"])
                return httpx.Response(200, json=envelope(self.namespaces[namespace_id]))

        namespace_id = rest[0]
        if namespace_id not in self.namespaces:
            return error_response(404, 10013, "namespace not found")

        if len(rest) == 1:
            if request.method == "PUT":
                self.namespaces[namespace_id]["title"] = body["title"]
                return httpx.Response(200, json=envelope({}))
            if request.method == "DELETE":
                del self.namespaces[namespace_id]
                del self.store[namespace_id]
                return httpx.Response(200, json=envelope({}))

        if rest[1:] == ["keys"] and request.method == "GET":
            return self._list_keys(namespace_id, params)

        if len(rest) == 3 and rest[1] == "values":
            return self._read_value(namespace_id, unquote(rest[2]))

        if rest[1:] == ["bulk"]:
            if request.method == "PUT":
                for item in body:
                    self.store[namespace_id][item["key"]] = item
                return httpx.Response(200, json=envelope({}))
            if request.method == "DELETE":
                for name in body:
                    self.store[namespace_id].pop(name, None)
                return httpx.Response(200, json=envelope({}))

        return error_response(405, 10000, "Method not allowed")

    def _list_namespaces(self, params: Dict[str, str]) -> httpx.Response:
        page = int(params.get("page", 1))
        per_page = int(params.get("per_page", 20))
        ordered = sorted(self.namespaces.values(), key=lambda ns: ns["title"])
        start = (page - 1) * per_page
        return httpx.Response(200, json=envelope(ordered[start : start + per_page]))

    def _list_keys(self, namespace_id: str, params: Dict[str, str]) -> httpx.Response:
        limit = int(params.get("limit", 1000))
        offset = int(params.get("cursor") or 0)
        names = sorted(self.store[namespace_id])
        page = names[offset : offset + limit]
        next_offset = offset + len(page)
        cursor = str(next_offset) if next_offset < len(names) else ""

        result = []
        for name in page:
            item = self.store[namespace_id][name]
            entry: Dict[str, Any] = {"name": name}
            if "expiration" in item:
                entry["expiration"] = item["expiration"]
            if "metadata" in item:
                entry["metadata"] = item["metadata"]
            result.append(entry)

        return httpx.Response(
            200, json=envelope(result, result_info={"count": len(page), "cursor": cursor})
        )

    def _read_value(self, namespace_id: str, key: str) -> httpx.Response:
        if key in self.fail_values:
            return error_response(*self.fail_values[key])
        if key in self.empty_values:
            return httpx.Response(200, content=b"")
        item = self.store[namespace_id].get(key)
        if item is None:
            return error_response(404, 10009, "get: 'key not found'")
        return httpx.Response(200, content=item["value"].encode("utf-8"))


@pytest.fixture
def config() -> KvConfig:
    """Test configuration pointing at the fake account."""
    return KvConfig(account_id=ACCOUNT_ID, api_token="test-token", concurrency=4)


@pytest.fixture
def fake_api() -> FakeKvApi:
    """Empty in-memory KV API."""
    return FakeKvApi()


@pytest.fixture
async def client(config, fake_api):
    """Open CloudflareClient wired to the fake API."""
    async with CloudflareClient(config, transport=fake_api.transport) as c:
        yield c


@pytest.fixture(autouse=True)
def isolated_log_dir(tmp_path, monkeypatch):
    """Keep session logs out of the real state directory."""
    monkeypatch.setenv("XDG_STATE_HOME", str(tmp_path / "state"))
