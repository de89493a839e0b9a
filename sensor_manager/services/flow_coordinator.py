"""
Flow Coordinator - keeps sensor records and Node-RED flows in step

Two independently failing systems are involved, so every operation orders
its steps so that a failure never leaves a local record pointing at a flow
that was not deployed, nor drops the only pointer to a flow that still
exists:

    register       remote deploy  -> local insert
    update_status  remote toggle  -> local update
    delete         remote removal -> local delete

Writes to the flow document are read-modify-write cycles carrying the
revision token that was read. A stale token (409) re-runs the whole cycle
with exponential backoff, up to max_attempts.
"""
import asyncio
from dataclasses import dataclass, field
from functools import wraps
from typing import Optional, List, Dict, Any

from ..exceptions import (
    DuplicateSensorError,
    InvalidInputError,
    NodeRedError,
    FlowRevisionConflictError,
    UpstreamUnavailableError,
    FlowDeployFailedError,
    UpstreamUpdateFailedError,
    UpstreamDeleteFailedError,
)
from ..logging_config import get_logger
from ..models import Sensor, SENSOR_STATUSES
from ..node_red_client import NodeRedClient
from ..utils import parse_json_text, utcnow
from .flow_generator import FlowBundle, build_sensor_flow
from .sensor_store import SensorStore

logger = get_logger(__name__)

# Columns that may not be cleared by an update
_REQUIRED_FIELDS = ("broker_url", "topic", "sample_payload", "status")


def retry_on_conflict(func):
    """Re-run a flow read-modify-write cycle when Node-RED reports a stale rev"""
    @wraps(func)
    async def wrapper(self, *args, **kwargs):
        last_error = None
        for attempt in range(self.max_attempts):
            try:
                return await func(self, *args, **kwargs)
            except FlowRevisionConflictError as e:
                last_error = e
                if attempt < self.max_attempts - 1:
                    wait_time = self.backoff_base * (2 ** attempt)
                    logger.warning(
                        "flow_revision_conflict",
                        operation=func.__name__,
                        attempt=attempt + 1,
                        max_attempts=self.max_attempts,
                        retry_in=wait_time,
                    )
                    await asyncio.sleep(wait_time)
        logger.error("flow_revision_conflict_exhausted", operation=func.__name__, attempts=self.max_attempts)
        raise last_error
    return wrapper


@dataclass
class RegistrationResult:
    sensor: Sensor
    flow_id: str
    added_node_ids: List[str] = field(default_factory=list)


class FlowCoordinator:
    """Orchestrates sensor records together with their Node-RED flows"""

    def __init__(
        self,
        store: SensorStore,
        node_red: NodeRedClient,
        max_attempts: int = 3,
        backoff_base: float = 0.2,
    ):
        self.store = store
        self.node_red = node_red
        self.max_attempts = max(1, max_attempts)
        self.backoff_base = backoff_base

    # ============================================================
    # Sensor lifecycle
    # ============================================================

    async def register(
        self,
        sensor_id: str,
        broker_url: str,
        topic: str,
        sample_payload: str,
        description: Optional[str] = None,
    ) -> RegistrationResult:
        """
        Deploy a flow for a new sensor, then persist the sensor

        Raises:
            DuplicateSensorError: sensor_id already registered
            InvalidInputError / InvalidPayloadError: bad parameters
            UpstreamUnavailableError: Node-RED did not answer the health check
            FlowDeployFailedError: Node-RED rejected the write
        """
        if await self.store.exists(sensor_id):
            raise DuplicateSensorError(sensor_id)

        bundle = build_sensor_flow(sensor_id, broker_url, topic, sample_payload)
        added = await self._deploy_bundle(bundle)

        try:
            sensor = await self.store.create(
                sensor_id,
                broker_url=broker_url,
                topic=topic,
                description=description,
                sample_payload=sample_payload,
                status="disconnected",
                node_red_flow_id=bundle.flow_id,
            )
        except Exception as e:
            logger.error("sensor_persist_failed", sensor_id=sensor_id, flow_id=bundle.flow_id, error=str(e))
            await self._discard_bundle(bundle)
            raise

        logger.info("sensor_registered", sensor_id=sensor_id, flow_id=bundle.flow_id, nodes=len(added))
        return RegistrationResult(sensor=sensor, flow_id=bundle.flow_id, added_node_ids=added)

    async def update_status(self, sensor_id: str, status: str) -> Sensor:
        """
        Change a sensor's status, enabling/disabling its flow tab first

        The local status is only written once the remote tab agrees.
        """
        return await self.update_sensor(sensor_id, status=status)

    async def update_sensor(self, sensor_id: str, **fields) -> Sensor:
        """
        Edit sensor fields; a status change toggles the remote tab first

        Raises:
            SensorNotFoundError: unknown sensor_id
            InvalidInputError / InvalidPayloadError: bad field values
            UpstreamUpdateFailedError: Node-RED toggle failed, nothing written locally
        """
        sensor = await self.store.get_or_raise(sensor_id)
        self._validate_fields(fields)

        status = fields.get("status")
        if status is not None:
            if sensor.node_red_flow_id:
                desired_disabled = status == "disconnected"
                try:
                    changed = await self._set_tab_disabled(sensor.node_red_flow_id, desired_disabled)
                except NodeRedError as e:
                    logger.error(
                        "flow_toggle_failed",
                        sensor_id=sensor_id,
                        flow_id=sensor.node_red_flow_id,
                        error=e.message,
                    )
                    raise UpstreamUpdateFailedError(e)
                logger.info(
                    "flow_toggled" if changed else "flow_toggle_noop",
                    sensor_id=sensor_id,
                    flow_id=sensor.node_red_flow_id,
                    disabled=desired_disabled,
                )
            if status == "connected" and "last_seen" not in fields:
                fields["last_seen"] = utcnow()

        return await self.store.update(sensor_id, **fields)

    async def delete(self, sensor_id: str) -> bool:
        """
        Remove a sensor's flow, then the sensor

        Returns:
            True when a remote flow was found and removed

        Raises:
            SensorNotFoundError: unknown sensor_id
            UpstreamDeleteFailedError: flow removal failed, record kept
        """
        sensor = await self.store.get_or_raise(sensor_id)

        flow_deleted = False
        if sensor.node_red_flow_id:
            flow_deleted = await self.remove_flow(sensor.node_red_flow_id)

        await self.store.delete(sensor_id)
        logger.info("sensor_deleted", sensor_id=sensor_id, flow_deleted=flow_deleted)
        return flow_deleted

    # ============================================================
    # Standalone flow operations
    # ============================================================

    async def list_flows(self) -> List[Dict[str, Any]]:
        await self._require_node_red()
        return (await self.node_red.get_flows()).flows

    async def get_flow(self, flow_id: str) -> List[Dict[str, Any]]:
        """Tab node and every node on it; empty when the flow is gone"""
        return (await self.node_red.get_flows()).flow_nodes(flow_id)

    async def deploy_flow(self, sensor_id: str, broker_url: str, topic: str, sample_payload: str) -> FlowBundle:
        """Deploy a sensor flow without creating a sensor record"""
        bundle = build_sensor_flow(sensor_id, broker_url, topic, sample_payload)
        await self._deploy_bundle(bundle)
        logger.info("flow_deployed", sensor_id=sensor_id, flow_id=bundle.flow_id)
        return bundle

    async def remove_flow(self, flow_id: str) -> bool:
        """
        Drop every node of a flow

        Returns:
            True if anything was removed

        Raises:
            UpstreamDeleteFailedError: Node-RED read or write failed
        """
        try:
            return await self._remove_flow_nodes(flow_id)
        except NodeRedError as e:
            logger.error("flow_remove_failed", flow_id=flow_id, error=e.message)
            raise UpstreamDeleteFailedError(e)

    # ============================================================
    # Internals
    # ============================================================

    def _validate_fields(self, fields: Dict[str, Any]):
        for name in _REQUIRED_FIELDS:
            if name in fields and fields[name] is None:
                raise InvalidInputError(name, "cannot be cleared")

        status = fields.get("status")
        if status is not None and status not in SENSOR_STATUSES:
            raise InvalidInputError("status", f"must be one of {', '.join(SENSOR_STATUSES)}")

        if fields.get("sample_payload") is not None:
            parse_json_text(fields["sample_payload"], require_object=True)

    async def _require_node_red(self):
        if not await self.node_red.is_healthy():
            logger.warning("node_red_unavailable", url=self.node_red.base_url)
            raise UpstreamUnavailableError(self.node_red.base_url)

    async def _deploy_bundle(self, bundle: FlowBundle) -> List[str]:
        await self._require_node_red()
        try:
            return await self._merge_bundle(bundle)
        except NodeRedError as e:
            logger.error("flow_deploy_failed", flow_id=bundle.flow_id, error=e.message, upstream_status=e.status_code)
            raise FlowDeployFailedError(e)

    @retry_on_conflict
    async def _merge_bundle(self, bundle: FlowBundle) -> List[str]:
        document = await self.node_red.get_flows()
        existing_ids = document.node_ids()
        nodes_to_add = [node for node in bundle.all_nodes if node["id"] not in existing_ids]
        if nodes_to_add:
            await self.node_red.deploy_flows([*document.flows, *nodes_to_add], document.rev)
        return [node["id"] for node in nodes_to_add]

    @retry_on_conflict
    async def _set_tab_disabled(self, flow_id: str, disabled: bool) -> bool:
        document = await self.node_red.get_flows()
        tab = next(
            (node for node in document.flows if node.get("id") == flow_id and node.get("type") == "tab"),
            None,
        )
        if tab is None:
            logger.warning("flow_tab_missing", flow_id=flow_id)
            return False
        if bool(tab.get("disabled", False)) == disabled:
            return False

        updated = [
            {**node, "disabled": disabled} if node is tab else node
            for node in document.flows
        ]
        await self.node_red.deploy_flows(updated, document.rev)
        return True

    @retry_on_conflict
    async def _remove_flow_nodes(self, flow_id: str) -> bool:
        document = await self.node_red.get_flows()
        remaining = document.without_flow(flow_id)
        if len(remaining) == len(document.flows):
            return False
        await self.node_red.deploy_flows(remaining, document.rev)
        return True

    @retry_on_conflict
    async def _drop_nodes(self, node_ids: List[str]) -> bool:
        document = await self.node_red.get_flows()
        doomed = set(node_ids)
        remaining = [node for node in document.flows if node.get("id") not in doomed]
        if len(remaining) == len(document.flows):
            return False
        await self.node_red.deploy_flows(remaining, document.rev)
        return True

    async def _discard_bundle(self, bundle: FlowBundle):
        """Best-effort rollback of a bundle whose sensor could not be saved"""
        try:
            removed = await self._drop_nodes(bundle.node_ids())
            logger.info("flow_rolled_back", flow_id=bundle.flow_id, removed=removed)
        except NodeRedError as e:
            logger.error("flow_rollback_failed", flow_id=bundle.flow_id, error=e.message)
