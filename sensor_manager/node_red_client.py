"""
Node-RED Admin API Client
Thin async wrapper over the flows endpoints (API v2) used by the flow
coordinator and the /node-red routes

Node-RED owns the flow document; this client only reads the full node list
with its revision token and writes the full list back.
"""
import httpx
import logging
from dataclasses import dataclass, field
from typing import Optional, Dict, Any, List

from .exceptions import NodeRedError, FlowRevisionConflictError

logger = logging.getLogger(__name__)

API_VERSION_HEADERS = {"Node-RED-API-Version": "v2"}
DEPLOY_HEADERS = {**API_VERSION_HEADERS, "Node-RED-Deployment-Type": "flows"}

# Truncate upstream bodies carried in error details
_MAX_BODY = 500


@dataclass
class FlowDocument:
    """Full remote node list plus the revision it was read at"""
    flows: List[Dict[str, Any]] = field(default_factory=list)
    rev: Optional[str] = None

    def node_ids(self) -> set:
        return {node.get("id") for node in self.flows}

    def find(self, node_id: str) -> Optional[Dict[str, Any]]:
        return next((node for node in self.flows if node.get("id") == node_id), None)

    def flow_nodes(self, flow_id: str) -> List[Dict[str, Any]]:
        """Tab node plus every node placed on it"""
        return [node for node in self.flows if node.get("id") == flow_id or node.get("z") == flow_id]

    def without_flow(self, flow_id: str) -> List[Dict[str, Any]]:
        return [node for node in self.flows if node.get("id") != flow_id and node.get("z") != flow_id]


class NodeRedClient:
    """
    Node-RED client over the admin HTTP API

    The underlying httpx.AsyncClient is created by connect() and closed by
    disconnect(); both are driven by the application lifespan.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        health_timeout: float = 2.0,
        api_token: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.health_timeout = health_timeout
        self.api_token = api_token
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def connect(self):
        """Create the HTTP client"""
        if self._client is not None:
            return
        headers = {"Content-Type": "application/json"}
        if self.api_token:
            headers["Authorization"] = f"Bearer {self.api_token}"
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            headers=headers,
            transport=self._transport,
        )
        logger.info(f"Node-RED client ready for {self.base_url}")

    async def disconnect(self):
        """Close the HTTP client"""
        if self._client is not None:
            await self._client.aclose()
            self._client = None
            logger.info("Node-RED client closed")

    @property
    def http(self) -> httpx.AsyncClient:
        if self._client is None:
            raise RuntimeError("NodeRedClient is not connected")
        return self._client

    async def __aenter__(self):
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.disconnect()

    # ------------------------------------------------------------
    # Health
    # ------------------------------------------------------------

    async def health_check(self) -> Dict[str, Any]:
        """Probe GET /settings with the short health timeout"""
        try:
            response = await self.http.get("/settings", timeout=self.health_timeout)
        except httpx.HTTPError as e:
            logger.debug(f"Node-RED health check failed: {e!r}")
            return {"ok": False, "url": self.base_url, "error": type(e).__name__}

        if response.is_success:
            return {"ok": True, "url": self.base_url}
        return {"ok": False, "url": self.base_url, "status": response.status_code}

    async def is_healthy(self) -> bool:
        return (await self.health_check())["ok"]

    # ------------------------------------------------------------
    # Flows
    # ------------------------------------------------------------

    async def get_flows(self) -> FlowDocument:
        """
        Read the full flow document

        Node-RED answers either a bare node array (API v1) or
        {"flows": [...], "rev": "..."} (API v2).
        """
        try:
            response = await self.http.get("/flows", headers=API_VERSION_HEADERS)
        except httpx.HTTPError as e:
            logger.error(f"Node-RED fetch flows failed: {e!r}")
            raise NodeRedError(f"Node-RED fetch flows failed: {e}")

        if not response.is_success:
            raise NodeRedError(
                f"Node-RED fetch flows failed: {response.status_code}",
                status_code=response.status_code,
                body=response.text[:_MAX_BODY],
            )

        try:
            body = response.json()
        except ValueError:
            raise NodeRedError("Node-RED returned a non-JSON flows document", status_code=response.status_code)

        if isinstance(body, list):
            return FlowDocument(flows=body)
        if isinstance(body, dict) and isinstance(body.get("flows"), list):
            return FlowDocument(flows=body["flows"], rev=body.get("rev"))

        raise NodeRedError("Unexpected Node-RED flows response format", status_code=response.status_code)

    async def deploy_flows(self, flows: List[Dict[str, Any]], rev: Optional[str] = None) -> Optional[str]:
        """
        Write the full flow document back

        Returns the new revision token when Node-RED reports one.

        Raises:
            FlowRevisionConflictError: rev is stale (HTTP 409)
            NodeRedError: any other rejection or transport failure
        """
        payload: Dict[str, Any] = {"flows": flows, "deployment": "flows"}
        if rev is not None:
            payload["rev"] = rev

        try:
            response = await self.http.post("/flows", json=payload, headers=DEPLOY_HEADERS)
        except httpx.HTTPError as e:
            logger.error(f"Node-RED deploy flows failed: {e!r}")
            raise NodeRedError(f"Node-RED deploy flows failed: {e}")

        if response.status_code == 409:
            logger.warning(f"Node-RED rejected stale flow revision {rev}")
            raise FlowRevisionConflictError(rev, body=response.text[:_MAX_BODY])

        if not response.is_success:
            text = response.text[:_MAX_BODY]
            raise NodeRedError(
                f"Node-RED deploy flows failed: {response.status_code} {text}".rstrip(),
                status_code=response.status_code,
                body=text,
            )

        logger.info(f"Deployed {len(flows)} Node-RED nodes (rev={rev})")
        try:
            body = response.json()
        except ValueError:
            return None
        return body.get("rev") if isinstance(body, dict) else None
