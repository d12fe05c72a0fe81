import copy
from typing import List, Optional

from retread.engine.aggregation import refresh_status
from retread.engine.types import Shipment
from retread.repositories.shipment_repo import StaleSnapshotError


class InMemoryShipmentStore:
    """
    Simple in-process store with the same load/save contract as the SQL one.
    Handy for tests and for running the engine without a database.
    """

    def __init__(self, shipments: Optional[List[Shipment]] = None):
        self._shipments = [refresh_status(s) for s in shipments or []]
        self._version = 0
        self._pushed = 0
        self.saves = 0

    def version(self) -> int:
        return self._version

    def pushed_version(self) -> int:
        return self._pushed

    def load(self) -> List[Shipment]:
        return copy.deepcopy(self._shipments)

    def save(
        self,
        shipments: List[Shipment],
        expected_version: Optional[int] = None,
        source: str = "local",
    ) -> int:
        if expected_version is not None and expected_version != self._version:
            raise StaleSnapshotError(expected_version, self._version)
        self._shipments = [refresh_status(s) for s in copy.deepcopy(shipments)]
        self._version += 1
        if source == "pull":
            self._pushed = self._version
        self.saves += 1
        return self._version

    def mark_pushed(self, version: int):
        self._pushed = max(self._pushed, version)
