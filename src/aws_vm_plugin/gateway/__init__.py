"""Signed HTTP access to the AWS Query API."""

from aws_vm_plugin.gateway.ec2 import Ec2Client, ParameterSource
from aws_vm_plugin.gateway.http import Gateway, HttpGateway, SignedRequest

__all__ = [
    "Ec2Client",
    "Gateway",
    "HttpGateway",
    "ParameterSource",
    "SignedRequest",
]
