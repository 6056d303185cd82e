"""Immutable description of one request to sign with AWS Signature V4."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Mapping

DEFAULT_METHOD = "POST"
DEFAULT_HOST_SUFFIX = "amazonaws.com"

# Validation order of the required fields.
_REQUIRED_FIELDS = ("path", "service", "region", "access_key", "secret_key", "method")


class SignatureQueryError(ValueError):
    """Raised when a query misses a field required for signing."""

    def __init__(self, field_name: str) -> None:
        super().__init__(f"Signature query requires '{field_name}'")
        self.field_name = field_name
        self.code = "signature-query-incomplete"


@dataclass(frozen=True)
class SignatureQuery:
    """One request to sign.

    ``headers`` is intentionally a plain dict: the signer injects
    ``x-amz-date``, ``x-amz-content-sha256`` and ``Host`` into it so the
    canonical request and the sent request carry the same header set.
    """

    path: str
    service: str
    region: str
    access_key: str
    secret_key: str = field(repr=False)
    method: str = DEFAULT_METHOD
    body: str | None = None
    headers: dict[str, str] = field(default_factory=dict)
    query_parameters: dict[str, str] = field(default_factory=dict)
    host_suffix: str = DEFAULT_HOST_SUFFIX
    # Explicit host, such as a VPC endpoint or a virtual-hosted S3 bucket.
    endpoint: str | None = None

    @classmethod
    def build(
        cls,
        *,
        path: str | None = None,
        service: str | None = None,
        region: str | None = None,
        access_key: str | None = None,
        secret_key: str | None = None,
        method: str | None = DEFAULT_METHOD,
        body: str | None = None,
        headers: Mapping[str, str] | None = None,
        query_parameters: Mapping[str, str] | None = None,
        host_suffix: str = DEFAULT_HOST_SUFFIX,
        endpoint: str | None = None,
    ) -> "SignatureQuery":
        """Validate and build a query; a missing field fails before any signing."""
        values = {
            "path": path,
            "service": service,
            "region": region,
            "access_key": access_key,
            "secret_key": secret_key,
            "method": method,
        }
        for name in _REQUIRED_FIELDS:
            if values[name] is None:
                raise SignatureQueryError(name)

        return cls(
            path=path,  # type: ignore[arg-type]
            service=service,  # type: ignore[arg-type]
            region=region,  # type: ignore[arg-type]
            access_key=access_key,  # type: ignore[arg-type]
            secret_key=secret_key,  # type: ignore[arg-type]
            method=method,  # type: ignore[arg-type]
            body=body,
            headers=dict(headers or {}),
            query_parameters=dict(query_parameters or {}),
            host_suffix=host_suffix,
            endpoint=endpoint,
        )

    @property
    def host(self) -> str:
        if self.endpoint:
            return self.endpoint
        if self.service == "s3":
            # S3 keeps the legacy dash-style regional endpoint.
            return f"s3-{self.region}.{self.host_suffix}"
        return f"{self.service}.{self.region}.{self.host_suffix}"

    @property
    def url(self) -> str:
        return f"https://{self.host}{self.path}"
