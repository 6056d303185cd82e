"""AWS Signature Version 4 signer for the ``Authorization`` header.

The canonical request, string to sign and signing key are exposed as
pure functions; ``AWS4Signer.sign`` chains them for one query.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
from collections.abc import Callable, Mapping
from datetime import datetime
from urllib.parse import quote

from aws_vm_plugin.auth.query import SignatureQuery
from aws_vm_plugin.utils.time import amz_date, date_stamp, utc_now

logger = logging.getLogger(__name__)

SCHEME = "AWS4"
ALGORITHM = "HMAC-SHA256"
TERMINATOR = "aws4_request"

# SHA-256 of an empty request body.
EMPTY_BODY_SHA256 = "e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855"


def _sha256_hex(data: str | bytes) -> str:
    if isinstance(data, str):
        data = data.encode("utf-8")
    return hashlib.sha256(data).hexdigest()


def _hmac_sha256(key: bytes, message: str) -> bytes:
    return hmac.new(key, message.encode("utf-8"), hashlib.sha256).digest()


def url_encode(value: str, *, keep_path_slash: bool = False) -> str:
    """RFC 3986 encoding: only ``A-Za-z0-9-_.~`` are left as is."""
    return quote(value, safe="/" if keep_path_slash else "")


def hash_body(body: str | bytes | None) -> str:
    if body is None:
        return EMPTY_BODY_SHA256
    return _sha256_hex(body)


def canonical_header_names(headers: Mapping[str, str]) -> str:
    return ";".join(sorted(name.lower() for name in headers))


def canonical_headers(headers: Mapping[str, str]) -> str:
    """Sorted ``name:value`` lines, each terminated by a newline."""
    lines = []
    for name in sorted(headers, key=str.lower):
        value = " ".join(str(headers[name]).split())
        lines.append(f"{name.lower()}:{value}\n")
    return "".join(lines)


def canonical_query_string(parameters: Mapping[str, str]) -> str:
    if not parameters:
        return ""
    return "&".join(
        f"{url_encode(key)}={url_encode(str(parameters[key]))}" for key in sorted(parameters)
    )


def canonical_path(path: str | None) -> str:
    if not path:
        return "/"
    encoded = url_encode(path, keep_path_slash=True)
    return encoded if encoded.startswith("/") else "/" + encoded


def canonical_request(
    method: str,
    path: str,
    query_string: str,
    headers: str,
    header_names: str,
    body_hash: str,
) -> str:
    return "\n".join(
        (method, canonical_path(path), query_string, headers, header_names, body_hash)
    )


def credential_scope(stamp: str, region: str, service: str) -> str:
    return f"{stamp}/{region}/{service}/{TERMINATOR}"


def string_to_sign(date_time: str, scope: str, request: str) -> str:
    return f"{SCHEME}-{ALGORITHM}\n{date_time}\n{scope}\n{_sha256_hex(request)}"


def signing_key(secret_key: str, stamp: str, region: str, service: str) -> bytes:
    """Derive the scoped key: secret, then date, region, service and terminator."""
    key = (SCHEME + secret_key).encode("utf-8")
    for part in (stamp, region, service, TERMINATOR):
        key = _hmac_sha256(key, part)
    return key


def signature(key: bytes, to_sign: str) -> str:
    return _hmac_sha256(key, to_sign).hex()


class AWS4Signer:
    """Computes the ``Authorization`` header value of a :class:`SignatureQuery`."""

    def __init__(self, clock: Callable[[], datetime] = utc_now) -> None:
        self._clock = clock

    def sign(self, query: SignatureQuery, now: datetime | None = None) -> str:
        """Sign ``query`` at ``now`` (the signer clock when omitted).

        The query headers are updated in place with ``x-amz-date``,
        ``x-amz-content-sha256`` and ``Host``.
        """
        moment = now if now is not None else self._clock()
        date_time = amz_date(moment)
        stamp = date_stamp(moment)
        body_hash = hash_body(query.body)

        query.headers["x-amz-date"] = date_time
        query.headers["x-amz-content-sha256"] = body_hash
        query.headers["Host"] = query.host

        header_names = canonical_header_names(query.headers)
        request = canonical_request(
            query.method,
            query.path,
            canonical_query_string(query.query_parameters),
            canonical_headers(query.headers),
            header_names,
            body_hash,
        )

        scope = credential_scope(stamp, query.region, query.service)
        key = signing_key(query.secret_key, stamp, query.region, query.service)
        computed = signature(key, string_to_sign(date_time, scope, request))
        logger.debug("Signed %s %s for scope %s", query.method, query.host, scope)

        return (
            f"{SCHEME}-{ALGORITHM} Credential={query.access_key}/{scope}, "
            f"SignedHeaders={header_names}, Signature={computed}"
        )
