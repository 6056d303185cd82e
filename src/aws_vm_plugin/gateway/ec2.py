"""EC2 and STS Query API calls signed from subscription parameters."""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from typing import Protocol

from aws_vm_plugin.auth.query import SignatureQuery
from aws_vm_plugin.auth.signer import AWS4Signer
from aws_vm_plugin.config import AWSSettings, load_settings
from aws_vm_plugin.gateway.http import Gateway, SignedRequest
from aws_vm_plugin.utils.masking import redact_authorization, redact_sensitive_fields

logger = logging.getLogger(__name__)

KEY = "service:vm:aws"

PARAMETER_ACCESS_KEY_ID = KEY + ":access-key-id"
PARAMETER_SECRET_ACCESS_KEY = KEY + ":secret-access-key"
PARAMETER_REGION = KEY + ":region"
PARAMETER_INSTANCE_ID = KEY + ":id"

STS_VALIDATE_QUERY = "Action=GetCallerIdentity&Version=2011-06-15"


class ParameterSource(Protocol):
    """Subscription parameter storage."""

    def get_parameters(self, subscription: int) -> Mapping[str, str]: ...


class Ec2Client:
    def __init__(
        self,
        gateway: Gateway,
        parameters: ParameterSource,
        signer: AWS4Signer | None = None,
        settings: AWSSettings | None = None,
    ) -> None:
        self._gateway = gateway
        self._parameters = parameters
        self._signer = signer or AWS4Signer()
        self._settings = settings or load_settings().aws

    def get_parameters(self, subscription: int) -> Mapping[str, str]:
        return self._parameters.get_parameters(subscription)

    def region(self, parameters: Mapping[str, str]) -> str:
        return parameters.get(PARAMETER_REGION) or self._settings.default_region

    def new_request(
        self,
        parameters: Mapping[str, str],
        *,
        service: str,
        body: str | None,
        method: str = "POST",
        headers: Mapping[str, str] | None = None,
    ) -> SignedRequest:
        """Sign a request with the credentials and region of ``parameters``."""
        query = SignatureQuery.build(
            path="/",
            service=service,
            region=self.region(parameters),
            access_key=parameters.get(PARAMETER_ACCESS_KEY_ID),
            secret_key=parameters.get(PARAMETER_SECRET_ACCESS_KEY),
            method=method,
            body=body,
            headers=headers,
            host_suffix=self._settings.host_suffix,
        )
        authorization = self._signer.sign(query)
        request_headers = dict(query.headers)
        request_headers["Authorization"] = authorization
        logger.debug(
            "New %s request to %s (Authorization: %s)",
            query.method,
            query.url,
            redact_authorization(authorization),
        )
        return SignedRequest(
            method=query.method,
            url=query.url,
            body=query.body,
            headers=request_headers,
        )

    def process(self, parameters: Mapping[str, str], query: str) -> str | None:
        """Run an EC2 action; ``None`` when the call failed."""
        request = self.new_request(
            parameters,
            service="ec2",
            body=f"{query}&Version={self._settings.api_version}",
        )
        response = self._gateway.execute(request)
        if response is None:
            logger.info(
                "EC2 query %s failed with parameters %s",
                query.split("&", 1)[0],
                redact_sensitive_fields(dict(parameters)),
            )
        return response

    def process_for(
        self,
        subscription: int,
        query_provider: Callable[[Mapping[str, str]], str],
    ) -> str | None:
        """Run an EC2 action built from the parameters of ``subscription``."""
        parameters = self.get_parameters(subscription)
        return self.process(parameters, query_provider(parameters))

    def validate_access(self, parameters: Mapping[str, str]) -> bool:
        """Check the credentials with STS ``GetCallerIdentity``."""
        request = self.new_request(parameters, service="sts", body=STS_VALIDATE_QUERY)
        return self._gateway.execute(request) is not None
