"""Normalized cost accounting for storage operations.

Every round trip is priced in cost units from its operation kind and the
number of payload bytes it moved. Prices scale per started kilobyte-equivalent
(with a one kilobyte floor) so that:

    1 point read of a 1 KB document  = 1.00
    1 query read returning 1 KB      = 2.79  (query engine overhead)
    1 create of a 1 KB document      = 5.71
    1 update of a 1 KB document      = 10.67
    1 delete of a 1 KB document      = 5.71

The function is pure: same kind and size always produce the same cost, and
for a fixed kind cost never decreases as the payload grows.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from .enums import OperationKind

CostUnit = float

_KILOBYTE = 1024.0

_DEFAULT_RATES: dict[OperationKind, float] = {
    OperationKind.READ: 1.0,
    OperationKind.POINT_READ: 1.0,
    OperationKind.CREATE: 5.71,
    OperationKind.UPDATE: 10.67,
    OperationKind.DELETE: 5.71,
}

# Query reads pay for predicate evaluation; point reads go straight to the key
_DEFAULT_OVERHEAD: dict[OperationKind, float] = {
    OperationKind.READ: 1.79,
}


@dataclass(frozen=True)
class CostModel:
    """Rates per kilobyte and fixed overhead per operation kind.

    Attributes:
        rates: Cost per kilobyte-equivalent for each kind
        overhead: Fixed cost added to every operation of a kind
    """

    rates: dict[OperationKind, float] = field(default_factory=lambda: dict(_DEFAULT_RATES))
    overhead: dict[OperationKind, float] = field(
        default_factory=lambda: dict(_DEFAULT_OVERHEAD)
    )

    def __post_init__(self) -> None:
        """Validate rates."""
        missing = [kind.value for kind in OperationKind if kind not in self.rates]
        if missing:
            raise ValueError(f"CostModel is missing rates for: {', '.join(missing)}")
        if any(rate < 0 for rate in self.rates.values()):
            raise ValueError("CostModel rates must be non-negative")
        if any(value < 0 for value in self.overhead.values()):
            raise ValueError("CostModel overhead must be non-negative")
        point = self.rates[OperationKind.POINT_READ] + self.overhead.get(
            OperationKind.POINT_READ, 0.0
        )
        query = self.rates[OperationKind.READ] + self.overhead.get(OperationKind.READ, 0.0)
        if point >= query or self.rates[OperationKind.POINT_READ] > self.rates[OperationKind.READ]:
            raise ValueError("Point reads must be priced below query reads")

    def cost(self, kind: OperationKind, payload_bytes: int) -> CostUnit:
        """Price one operation.

        Args:
            kind: Operation kind
            payload_bytes: Bytes read or written by the operation

        Returns:
            Non-negative cost in normalized units

        Raises:
            ValueError: If payload_bytes is negative
        """
        if payload_bytes < 0:
            raise ValueError(f"payload_bytes must be >= 0, got {payload_bytes}")
        kilobytes = max(1.0, payload_bytes / _KILOBYTE)
        return self.rates[kind] * kilobytes + self.overhead.get(kind, 0.0)


DEFAULT_COST_MODEL = CostModel()


def cost(kind: OperationKind, payload_bytes: int) -> CostUnit:
    """Price one operation with the default cost model."""
    return DEFAULT_COST_MODEL.cost(kind, payload_bytes)
