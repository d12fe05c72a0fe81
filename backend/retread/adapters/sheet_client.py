import logging
import time
from typing import Dict, List, Optional

import requests

from retread.engine.types import Shipment
from retread.schemas.wire import shipment_to_wire, shipments_from_payload

log = logging.getLogger(__name__)


class SheetClientError(Exception):
    """Raised when the spreadsheet endpoint cannot be reached or answers badly."""
    pass


class SheetClient:
    """
    Thin client for the spreadsheet-backed script endpoint.

    Reads are GET requests with an `action` query parameter, writes are
    JSON POSTs carrying an `action` field. Every write is a full snapshot;
    the endpoint offers no partial update and no concurrency token.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 15.0,
        session: Optional[requests.Session] = None,
    ):
        if not base_url:
            raise SheetClientError("Sheet endpoint URL is not configured")
        self.base_url = base_url
        self.timeout = timeout
        self.session = session or requests.Session()

    def _get(self, action: str):
        # cache-buster, the script host caches GETs aggressively
        params = {"action": action, "t": int(time.time() * 1000)}
        try:
            r = self.session.get(self.base_url, params=params, timeout=self.timeout)
            r.raise_for_status()
            return r.json()
        except requests.RequestException as e:
            raise SheetClientError(f"GET {action} failed: {e}") from e
        except ValueError as e:
            raise SheetClientError(f"GET {action} returned invalid JSON") from e

    def _post(self, payload: Dict):
        try:
            r = self.session.post(self.base_url, json=payload, timeout=self.timeout)
            r.raise_for_status()
        except requests.RequestException as e:
            raise SheetClientError(f"POST {payload.get('action')} failed: {e}") from e
        return True

    def fetch_shipments(self) -> List[Shipment]:
        data = self._get("getShipments")
        if not isinstance(data, (list, dict)):
            raise SheetClientError("getShipments returned an unexpected payload")
        shipments = shipments_from_payload(data)
        log.debug("fetched %d shipments from sheet", len(shipments))
        return shipments

    def push_shipments(self, shipments: List[Shipment]) -> bool:
        return self._post(
            {
                "action": "syncShipments",
                "shipments": [shipment_to_wire(s) for s in shipments],
            }
        )

    def list_users(self) -> List[Dict]:
        data = self._get("getUsers")
        if not isinstance(data, list):
            raise SheetClientError("getUsers returned an unexpected payload")
        return [
            {"username": u.get("username"), "password": u.get("password")}
            for u in data
            if isinstance(u, dict) and u.get("username")
        ]

    def register_user(self, username: str, secret: str) -> bool:
        return self._post(
            {"action": "register", "user": {"username": username, "password": secret}}
        )

    def change_credential(self, username: str, secret: str) -> bool:
        return self._post(
            {
                "action": "changePassword",
                "user": {"username": username, "password": secret},
            }
        )

    def health_check(self) -> bool:
        try:
            self._get("getShipments")
            return True
        except SheetClientError:
            return False


class SheetShipmentStore:
    """load/save contract over the sheet; save is a full-snapshot overwrite."""

    def __init__(self, client: SheetClient):
        self.client = client

    def load(self) -> List[Shipment]:
        return self.client.fetch_shipments()

    def save(self, shipments: List[Shipment]) -> bool:
        return self.client.push_shipments(shipments)


class SheetUserDirectory:
    """User directory kept on the sheet. Credentials are passed through untouched."""

    def __init__(self, client: SheetClient):
        self.client = client

    def list_users(self) -> List[Dict]:
        return self.client.list_users()

    def register_user(self, username: str, secret: str) -> bool:
        return self.client.register_user(username, secret)

    def change_credential(self, username: str, secret: str) -> bool:
        return self.client.change_credential(username, secret)
