"""EC2 instance operations."""

from aws_vm_plugin.vm.instance_types import InstanceType, InstanceTypeCatalog
from aws_vm_plugin.vm.instances import InstanceNotFoundError, VmOperationError, VmService

__all__ = [
    "InstanceNotFoundError",
    "InstanceType",
    "InstanceTypeCatalog",
    "VmOperationError",
    "VmService",
]
