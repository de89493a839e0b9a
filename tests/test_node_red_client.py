"""
Tests for the Node-RED admin API client

Runs against the in-memory FakeNodeRed from conftest.
"""
import httpx
import pytest

from sensor_manager.exceptions import FlowRevisionConflictError, NodeRedError
from sensor_manager.node_red_client import FlowDocument, NodeRedClient

NODE_RED_URL = "http://node-red.test:1880"


class TestFlowDocument:

    def setup_method(self):
        self.document = FlowDocument(
            flows=[
                {"id": "tab-a", "type": "tab"},
                {"id": "n1", "type": "debug", "z": "tab-a"},
                {"id": "tab-b", "type": "tab"},
                {"id": "n2", "type": "debug", "z": "tab-b"},
                {"id": "cfg", "type": "mqtt-broker"},
            ],
            rev="rev-9",
        )

    def test_flow_nodes(self):
        assert [n["id"] for n in self.document.flow_nodes("tab-a")] == ["tab-a", "n1"]

    def test_without_flow_keeps_configs(self):
        assert [n["id"] for n in self.document.without_flow("tab-a")] == ["tab-b", "n2", "cfg"]

    def test_find(self):
        assert self.document.find("n2")["z"] == "tab-b"
        assert self.document.find("missing") is None


class TestHealth:

    @pytest.mark.asyncio
    async def test_healthy(self, node_red_client):
        assert await node_red_client.health_check() == {"ok": True, "url": NODE_RED_URL}

    @pytest.mark.asyncio
    async def test_unreachable(self, node_red, node_red_client):
        node_red.healthy = False

        health = await node_red_client.health_check()

        assert health["ok"] is False
        assert health["error"] == "ConnectError"
        assert await node_red_client.is_healthy() is False

    @pytest.mark.asyncio
    async def test_error_status(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(500))
        async with NodeRedClient(NODE_RED_URL, transport=transport) as client:
            assert await client.health_check() == {"ok": False, "url": NODE_RED_URL, "status": 500}

    @pytest.mark.asyncio
    async def test_not_connected(self):
        client = NodeRedClient(NODE_RED_URL)

        with pytest.raises(RuntimeError):
            await client.health_check()


class TestGetFlows:

    @pytest.mark.asyncio
    async def test_v2_document(self, node_red, node_red_client):
        node_red.flows = [{"id": "tab-a", "type": "tab"}]

        document = await node_red_client.get_flows()

        assert document.flows == [{"id": "tab-a", "type": "tab"}]
        assert document.rev == "rev-1"

    @pytest.mark.asyncio
    async def test_v1_bare_list(self, node_red, node_red_client):
        node_red.api_v1 = True
        node_red.flows = [{"id": "tab-a", "type": "tab"}]

        document = await node_red_client.get_flows()

        assert document.flows == [{"id": "tab-a", "type": "tab"}]
        assert document.rev is None

    @pytest.mark.asyncio
    async def test_read_failure(self, node_red, node_red_client):
        node_red.read_status = 500

        with pytest.raises(NodeRedError) as exc_info:
            await node_red_client.get_flows()

        assert exc_info.value.status_code == 500
        assert exc_info.value.details["upstream_body"] == "read failed"

    @pytest.mark.asyncio
    async def test_unexpected_shape(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(200, json={"nodes": []}))
        async with NodeRedClient(NODE_RED_URL, transport=transport) as client:
            with pytest.raises(NodeRedError):
                await client.get_flows()

    @pytest.mark.asyncio
    async def test_transport_error(self):
        def refuse(request):
            raise httpx.ConnectError("Connection refused", request=request)

        async with NodeRedClient(NODE_RED_URL, transport=httpx.MockTransport(refuse)) as client:
            with pytest.raises(NodeRedError):
                await client.get_flows()


class TestDeployFlows:

    @pytest.mark.asyncio
    async def test_body_and_headers(self, node_red, node_red_client):
        flows = [{"id": "tab-a", "type": "tab"}]

        new_rev = await node_red_client.deploy_flows(flows, "rev-1")

        assert new_rev == "rev-2"
        assert node_red.deploys == [{"flows": flows, "deployment": "flows", "rev": "rev-1"}]
        headers = node_red.deploy_headers[0]
        assert headers["Node-RED-API-Version"] == "v2"
        assert headers["Node-RED-Deployment-Type"] == "flows"

    @pytest.mark.asyncio
    async def test_rev_omitted_when_unknown(self, node_red, node_red_client):
        await node_red_client.deploy_flows([])

        assert "rev" not in node_red.deploys[0]

    @pytest.mark.asyncio
    async def test_stale_rev_conflict(self, node_red, node_red_client):
        with pytest.raises(FlowRevisionConflictError) as exc_info:
            await node_red_client.deploy_flows([], "rev-0")

        assert exc_info.value.rev == "rev-0"
        assert exc_info.value.error_code == "FLOW_REVISION_CONFLICT"

    @pytest.mark.asyncio
    async def test_rejection(self, node_red, node_red_client):
        node_red.deploy_status = 400

        with pytest.raises(NodeRedError) as exc_info:
            await node_red_client.deploy_flows([], "rev-1")

        assert not isinstance(exc_info.value, FlowRevisionConflictError)
        assert exc_info.value.status_code == 400
        assert "deploy rejected" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_bearer_token(self):
        seen = {}

        def handler(request):
            seen["auth"] = request.headers.get("Authorization")
            return httpx.Response(200, json={"rev": "r"})

        async with NodeRedClient(NODE_RED_URL, api_token="secret", transport=httpx.MockTransport(handler)) as client:
            await client.deploy_flows([])

        assert seen["auth"] == "Bearer secret"
