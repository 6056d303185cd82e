"""Well-known EC2 instance types and their vCPU and memory."""

from __future__ import annotations

import csv
import io
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable

logger = logging.getLogger(__name__)

_DEFAULT_PATH = Path(__file__).resolve().parents[1] / "data" / "instance-type-details.csv"


@dataclass(frozen=True)
class InstanceType:
    id: str
    cpu: int
    ram: float  # GiB

    @property
    def ram_mib(self) -> int:
        return int(self.ram * 1024)


class InstanceTypeCatalog:
    def __init__(self, types: Iterable[InstanceType]) -> None:
        self._types = {t.id: t for t in types}

    def get(self, type_id: str | None) -> InstanceType | None:
        if type_id is None:
            return None
        return self._types.get(type_id)

    def __len__(self) -> int:
        return len(self._types)

    @classmethod
    def from_csv(cls, text: str) -> "InstanceTypeCatalog":
        types = []
        for row in csv.DictReader(io.StringIO(text)):
            try:
                types.append(
                    InstanceType(id=row["id"].strip(), cpu=int(row["cpu"]), ram=float(row["ram"]))
                )
            except (KeyError, ValueError) as exc:
                logger.warning("Skipping invalid instance type row %s: %s", row, exc)
        return cls(types)

    @classmethod
    def load_default(cls) -> "InstanceTypeCatalog":
        with _DEFAULT_PATH.open("r", encoding="utf-8") as handle:
            catalog = cls.from_csv(handle.read())
        logger.debug("Loaded %d instance types from %s", len(catalog), _DEFAULT_PATH)
        return catalog
