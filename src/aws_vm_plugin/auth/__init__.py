"""Request signing for the AWS Query API."""

from aws_vm_plugin.auth.query import SignatureQuery, SignatureQueryError
from aws_vm_plugin.auth.signer import EMPTY_BODY_SHA256, AWS4Signer

__all__ = [
    "AWS4Signer",
    "EMPTY_BODY_SHA256",
    "SignatureQuery",
    "SignatureQueryError",
]
