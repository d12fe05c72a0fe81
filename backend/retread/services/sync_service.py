import json
import logging
from typing import Dict, Optional

from sqlalchemy.orm import Session

from retread.adapters.sheet_client import SheetClient, SheetClientError
from retread.config import settings
from retread.repositories.shipment_repo import SqlShipmentStore
from retread.schemas.wire import shipments_from_payload
from retread.utils.transactions import store_lock

log = logging.getLogger(__name__)


class SyncServiceException(Exception):
    pass


class SyncService:
    """
    Replicates the shipment collection between the local store and the
    spreadsheet endpoint. Both directions move whole snapshots; the remote
    side is last-writer-wins, so pull before mutating whenever possible.
    """

    def __init__(
        self,
        db: Optional[Session] = None,
        client: Optional[SheetClient] = None,
        store=None,
        config=settings,
    ):
        self.store = store if store is not None else SqlShipmentStore(db)
        self.config = config
        self.client = client
        if self.client is None and config.SHEET_ENDPOINT_URL:
            self.client = SheetClient(
                config.SHEET_ENDPOINT_URL, timeout=config.SHEET_TIMEOUT_SECONDS
            )

    def _require_client(self) -> SheetClient:
        if self.client is None:
            raise SyncServiceException("Sheet endpoint is not configured")
        return self.client

    def pull(self) -> Dict:
        """
        Replace the local collection with the remote one. Local changes not
        pushed yet are kept and the pull is skipped, so they are not lost.
        """
        client = self._require_client()
        try:
            remote = client.fetch_shipments()
        except SheetClientError as e:
            raise SyncServiceException(str(e)) from e

        with store_lock(timeout=self.config.STORE_LOCK_TIMEOUT):
            if self.store.version() > self.store.pushed_version():
                log.info("pull skipped: local changes waiting to be pushed")
                return {"pulled": False, "shipments": len(self.store.load())}
            version = self.store.save(remote, source="pull")
        log.info("pulled %d shipments from sheet (version %d)", len(remote), version)
        return {"pulled": True, "shipments": len(remote), "version": version}

    def push(self, force: bool = False) -> Dict:
        """Send the local collection if it changed since the last push."""
        client = self._require_client()
        version = self.store.version()
        if not force and version <= self.store.pushed_version():
            return {"pushed": False, "version": version}
        shipments = self.store.load()
        try:
            client.push_shipments(shipments)
        except SheetClientError as e:
            raise SyncServiceException(str(e)) from e
        self.store.mark_pushed(version)
        log.info("pushed %d shipments to sheet (version %d)", len(shipments), version)
        return {"pushed": True, "version": version, "shipments": len(shipments)}

    def import_snapshot(self, raw) -> Dict:
        """
        Load an exported snapshot (JSON text, a list of shipments or
        {"shipments": [...]}) as the new local collection.
        """
        if isinstance(raw, (str, bytes)):
            try:
                raw = json.loads(raw)
            except ValueError as e:
                raise SyncServiceException("Snapshot is not valid JSON") from e
        shipments = shipments_from_payload(raw)
        with store_lock(timeout=self.config.STORE_LOCK_TIMEOUT):
            version = self.store.save(shipments, source="import")
        log.info("imported %d shipments (version %d)", len(shipments), version)
        return {"imported": len(shipments), "version": version}
