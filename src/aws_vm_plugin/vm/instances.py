"""EC2 instances: listing, details and power operations."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from types import MappingProxyType

from lxml import etree

from aws_vm_plugin.domain.decode import first_child, parse, resource_tag, tag_text_or
from aws_vm_plugin.domain.models import Vm, VmNetwork, VmOperation, VmStatus
from aws_vm_plugin.gateway.ec2 import PARAMETER_INSTANCE_ID, Ec2Client
from aws_vm_plugin.gateway.query import ec2_query
from aws_vm_plugin.vm.instance_types import InstanceTypeCatalog

logger = logging.getLogger(__name__)

STATE_TERMINATED = 48

CODE_TO_STATUS: Mapping[int, VmStatus] = MappingProxyType(
    {
        16: VmStatus.POWERED_ON,
        STATE_TERMINATED: VmStatus.POWERED_OFF,
        80: VmStatus.POWERED_OFF,
        0: VmStatus.POWERED_ON,  # pending
        32: VmStatus.POWERED_OFF,  # shutting-down
        64: VmStatus.POWERED_OFF,  # stopping
    }
)

BUSY_CODES = frozenset({0, 32, 64})

OPERATION_TO_ACTION: Mapping[VmOperation, tuple[str, tuple[tuple[str, str], ...]]] = (
    MappingProxyType(
        {
            VmOperation.OFF: ("StopInstances", (("Force", "true"),)),
            VmOperation.SHUTDOWN: ("StopInstances", ()),
            VmOperation.ON: ("StartInstances", ()),
            VmOperation.REBOOT: ("RebootInstances", ()),
            VmOperation.RESET: ("RebootInstances", ()),
        }
    )
)

_INSTANCES_XPATH = "/DescribeInstancesResponse/reservationSet/item/instancesSet/item"
_TRANSITIONS_XPATH = "/*[contains(local-name(), 'InstancesResponse')]/instancesSet/item"


class VmOperationError(Exception):
    def __init__(self, message: str, code: str = "vm-operation-execute") -> None:
        super().__init__(message)
        self.code = code


class InstanceNotFoundError(LookupError):
    def __init__(self, instance_id: str | None) -> None:
        super().__init__(f"Instance {instance_id} not found")
        self.instance_id = instance_id
        self.code = "aws-instance-id"


def _state_code(record: etree._Element, tag: str = "instanceState") -> int:
    state = first_child(record, tag)
    if state is None:
        raise ValueError(f"Missing {tag} in instance record")
    return int(tag_text_or(state, "code", "-1"))


def _add_network(
    node: etree._Element,
    networks: list[VmNetwork],
    network_type: str,
    ip_tag: str,
    dns_tag: str,
) -> None:
    ip = node.findtext(ip_tag)
    if ip:
        networks.append(VmNetwork(type=network_type, ip=ip, dns=node.findtext(dns_tag)))


def decode_networks(record: etree._Element) -> list[VmNetwork]:
    networks: list[VmNetwork] = []
    _add_network(record, networks, "private", "privateIpAddress", "privateDnsName")
    _add_network(record, networks, "public", "ipAddress", "dnsName")
    for ipv6_set in record.xpath("networkInterfaceSet/item/ipv6AddressesSet"):
        for item in ipv6_set.iterchildren("item"):
            _add_network(item, networks, "public", "ipv6Address", "dnsName")
    return networks


def decode_instance(
    record: etree._Element,
    instance_types: InstanceTypeCatalog,
    with_networks: bool = False,
) -> Vm:
    instance_id = tag_text_or(record, "instanceId", "")
    state = _state_code(record)
    status = CODE_TO_STATUS.get(state)
    placement = first_child(record, "placement")
    instance_type = instance_types.get(tag_text_or(record, "instanceType"))

    vm = Vm(
        id=instance_id,
        name=resource_tag(record, "name") or instance_id,
        description=resource_tag(record, "description"),
        status=status,
        busy=state in BUSY_CODES,
        deployed=status is VmStatus.POWERED_ON,
        vpc=record.findtext("vpcId"),
        az=placement.findtext("availabilityZone") if placement is not None else None,
        cpu=instance_type.cpu if instance_type else 0,
        ram=instance_type.ram_mib if instance_type else 0,
    )
    if with_networks:
        vm.networks = decode_networks(record)
    return vm


class VmService:
    def __init__(self, ec2: Ec2Client, instance_types: InstanceTypeCatalog) -> None:
        self._ec2 = ec2
        self._instance_types = instance_types

    def describe_instances(
        self,
        parameters: Mapping[str, str],
        filters: list[tuple[str, object]] | None = None,
        with_networks: bool = False,
    ) -> list[Vm]:
        response = self._ec2.process(parameters, ec2_query("DescribeInstances", filters or []))
        if not response:
            return []
        root = parse(response)
        return [
            decode_instance(record, self._instance_types, with_networks)
            for record in root.xpath(_INSTANCES_XPATH)
        ]

    def find_all_by_name_or_id(self, parameters: Mapping[str, str], criteria: str) -> list[Vm]:
        """Instances whose name or id contains ``criteria``, case-insensitive."""
        needle = criteria.lower()
        found = [
            vm
            for vm in self.describe_instances(parameters)
            if needle in vm.name.lower() or needle in vm.id.lower()
        ]
        return sorted(found, key=lambda vm: (vm.name.lower(), vm.id))

    def get_vm_details(self, parameters: Mapping[str, str]) -> Vm:
        instance_id = parameters.get(PARAMETER_INSTANCE_ID)
        found = self.describe_instances(
            parameters,
            [("Filter.1.Name", "instance-id"), ("Filter.1.Value.1", instance_id)],
            with_networks=True,
        )
        if not found:
            raise InstanceNotFoundError(instance_id)
        return found[0]

    def execute(self, subscription: int, operation: VmOperation) -> str:
        """Run a power operation, return the ``name,id`` of the instance."""
        parameters = self._ec2.get_parameters(subscription)
        instance_id = parameters.get(PARAMETER_INSTANCE_ID)
        vm = self.get_vm_details(parameters)

        action = OPERATION_TO_ACTION.get(operation)
        response = None
        if action is not None:
            name, extra = action
            response = self._ec2.process(
                parameters, ec2_query(name, [*extra, ("InstanceId.1", instance_id)])
            )
        if not self._log_transition_state(response):
            raise VmOperationError(f"Operation {operation.value} failed on {instance_id}")
        return f"{vm.name},{instance_id}"

    def _log_transition_state(self, response: str | None) -> bool:
        if not response:
            return False
        items = parse(response).xpath(_TRANSITIONS_XPATH)
        for item in items:
            logger.info(
                "Instance %s goes from %s to %s state",
                tag_text_or(item, "instanceId"),
                _state_code(item, "previousState"),
                _state_code(item, "currentState"),
            )
        return bool(items)
