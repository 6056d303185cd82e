"""EC2 Query API body construction."""

from __future__ import annotations

from collections.abc import Iterable
from urllib.parse import urlencode


def ec2_query(action: str, parameters: Iterable[tuple[str, object]] = ()) -> str:
    """Form-encoded ``Action=...&Key=Value`` body, parameters kept in order."""
    pairs = [("Action", action), *((key, str(value)) for key, value in parameters)]
    return urlencode(pairs)


def indexed(prefix: str, values: Iterable[object]) -> list[tuple[str, object]]:
    """``Prefix.1=a&Prefix.2=b`` style list parameters."""
    return [(f"{prefix}.{index}", value) for index, value in enumerate(values, start=1)]
