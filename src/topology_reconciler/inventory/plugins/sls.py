"""
SLS inventory plugin.

This is a minimal SLS http client with no third party deps.

Design
Reads go through the dumpstate endpoint, which returns the same schema the
static plugin reads from disk. That keeps normalization identical.

Writes are puts of single hardware objects and single networks. They are only
used by the runner to push a change set.

There is no retry here. A failed request raises InventoryUnavailable and the
runner stops before anything else is pushed.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Protocol, TypeVar
from urllib.error import HTTPError, URLError
from urllib.parse import quote
from urllib.request import Request, urlopen

from topology_reconciler.core.errors import InventoryUnavailable, MalformedInput
from topology_reconciler.core.types import HardwareRecord, NetworkRecord
from topology_reconciler.inventory.hardware import hardware_to_sls
from topology_reconciler.inventory.network import network_to_sls
from topology_reconciler.inventory.plugins.base import InventoryPlugin, InventoryWriter
from topology_reconciler.inventory.plugins.static import state_from_dump
from topology_reconciler.inventory.store import InventoryState

logger = logging.getLogger(__name__)

T = TypeVar("T")


class HttpClient(Protocol):
    """Simple http client interface for testability."""

    def get_json(self, url: str, headers: dict[str, str]) -> Any:
        """Return parsed json for the given url."""

    def put_json(self, url: str, payload: Any, headers: dict[str, str]) -> None:
        """Send payload as json with a PUT request."""


@dataclass
class UrllibHttpClient(HttpClient):
    """Default http client using urllib."""

    timeout_seconds: int = 10

    def get_json(self, url: str, headers: dict[str, str]) -> Any:
        req = Request(url, headers=headers, method="GET")
        with urlopen(req, timeout=self.timeout_seconds) as resp:
            body = resp.read().decode("utf-8")
        return json.loads(body)

    def put_json(self, url: str, payload: Any, headers: dict[str, str]) -> None:
        data = json.dumps(payload).encode("utf-8")
        req_headers = dict(headers)
        req_headers["Content-Type"] = "application/json"
        req = Request(url, data=data, headers=req_headers, method="PUT")
        with urlopen(req, timeout=self.timeout_seconds) as resp:
            resp.read()


@dataclass(frozen=True)
class SlsInventoryPlugin(InventoryPlugin, InventoryWriter):
    """
    Load inventory from, and push changes to, an SLS service.

    base_url is the SLS API root, for example http://cray-sls/v1
    token is optional. If provided, it is sent as a bearer Authorization header.
    """

    base_url: str
    token: str | None = None
    http: HttpClient = field(default_factory=UrllibHttpClient)

    def _headers(self) -> dict[str, str]:
        headers: dict[str, str] = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def _url(self, *parts: str) -> str:
        path = "/".join(quote(p, safe="") for p in parts)
        return f"{self.base_url.rstrip('/')}/{path}"

    def _request(self, what: str, call: Callable[[], T]) -> T:
        try:
            return call()
        except HTTPError as err:
            raise InventoryUnavailable(f"{what} failed with HTTP {err.code}: {err.reason}") from err
        except (URLError, TimeoutError) as err:
            raise InventoryUnavailable(f"{what} failed: {err}") from err
        except json.JSONDecodeError as err:
            raise MalformedInput(f"{what} returned invalid json: {err}") from err

    def load(self) -> InventoryState:
        url = self._url("dumpstate")
        logger.info("Retrieving current SLS state from %s", url)
        data = self._request(f"GET {url}", lambda: self.http.get_json(url, headers=self._headers()))
        return state_from_dump(data)

    def put_hardware(self, record: HardwareRecord) -> None:
        url = self._url("hardware", record.identifier)
        payload = hardware_to_sls(record)
        logger.info("Putting hardware %s", record.identifier)
        self._request(f"PUT {url}", lambda: self.http.put_json(url, payload, headers=self._headers()))

    def put_network(self, network: NetworkRecord) -> None:
        url = self._url("networks", network.name)
        payload = network_to_sls(network)
        logger.info("Putting network %s", network.name)
        self._request(f"PUT {url}", lambda: self.http.put_json(url, payload, headers=self._headers()))
