"""JSON-RPC transport with node failover.

Both ledgers speak JSON-RPC 2.0 over HTTP POST. A transport failure (network
error, timeout, non-200 status, unparsable body) moves on to the next node;
a JSON-RPC ``error`` object means the node answered and is returned to the
caller as ``RPCResponseError`` without trying other nodes.
"""

import logging
from typing import Any, Optional

import httpx

from swaphive.errors import APIError

logger = logging.getLogger(__name__)


class RPCResponseError(APIError):
    """The node answered with a JSON-RPC error object."""

    def __init__(self, message: str, endpoint: Optional[str] = None, code: Optional[int] = None):
        super().__init__(message, endpoint)
        self.code = code


class JsonRpcClient:
    """Minimal JSON-RPC client over a list of interchangeable nodes."""

    def __init__(
        self,
        nodes: list[str],
        timeout: float = 8.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the client.

        Args:
            nodes: Node base URLs, preferred node first
            timeout: Per-request timeout in seconds
            transport: Optional httpx transport (used by tests)
        """
        if not nodes:
            raise ValueError("At least one RPC node is required")
        self.nodes = list(nodes)
        self.timeout = timeout
        self._transport = transport
        self._current = 0

    @property
    def current_node(self) -> str:
        return self.nodes[self._current]

    async def call(self, method: str, params: Any, path: str = "") -> Any:
        """Call a JSON-RPC method, failing over between nodes.

        Args:
            method: RPC method name (e.g. "condenser_api.get_accounts")
            params: Positional list or named dict
            path: Path appended to the node URL (e.g. "/contracts")

        Returns:
            The ``result`` member of the response (may be None)

        Raises:
            RPCResponseError: If a node returned an error object
            APIError: If every node failed at the transport level
        """
        payload = {"jsonrpc": "2.0", "method": method, "params": params, "id": 1}
        errors = []

        for offset in range(len(self.nodes)):
            index = (self._current + offset) % len(self.nodes)
            url = self.nodes[index].rstrip("/") + path

            try:
                async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                    response = await client.post(url, json=payload)

                if response.status_code != 200:
                    raise APIError(f"HTTP {response.status_code}", url)

                data = response.json()

            except (httpx.HTTPError, ValueError, APIError) as e:
                logger.warning(f"RPC node {url} failed for {method}: {type(e).__name__}: {e}")
                errors.append(f"{url}: {e}")
                continue

            if index != self._current:
                logger.info(f"Switching RPC node to {self.nodes[index]}")
                self._current = index

            if isinstance(data, dict) and data.get("error"):
                error = data["error"]
                message = error.get("message", str(error)) if isinstance(error, dict) else str(error)
                code = error.get("code") if isinstance(error, dict) else None
                raise RPCResponseError(f"{method}: {message}", url, code)

            return data.get("result") if isinstance(data, dict) else data

        raise APIError(f"All RPC nodes failed for {method}: {'; '.join(errors)}", self.current_node)
