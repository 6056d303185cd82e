"""AWS VM plugin: signed EC2 access and AMI snapshot lifecycle."""

from aws_vm_plugin.logging_utils import configure_logging
from aws_vm_plugin.plugin import VmAwsPlugin

__all__ = ["VmAwsPlugin", "configure_logging"]
