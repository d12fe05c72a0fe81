#!/usr/bin/env python3
"""
Import a shipment snapshot exported from the spreadsheet endpoint (the
getShipments JSON) into the local database, replacing what is there.

Usage:
    python scripts/import_snapshot.py --file shipments.json
    python scripts/import_snapshot.py --pull      # fetch from SHEET_ENDPOINT_URL
"""
import argparse
import os
import sys

# allow running from repo/scripts
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from retread.config import configure_logging
from retread.db import SessionLocal, init_db
from retread.services.sync_service import SyncService, SyncServiceException


def main(argv=None) -> int:
    parser = argparse.ArgumentParser()
    src = parser.add_mutually_exclusive_group(required=True)
    src.add_argument("--file", "-f", help="Path to a getShipments JSON export")
    src.add_argument("--pull", action="store_true", help="Fetch from the sheet endpoint")
    args = parser.parse_args(argv)

    configure_logging()
    init_db(reset=False)
    db = SessionLocal()
    try:
        svc = SyncService(db)
        if args.pull:
            result = svc.pull()
        else:
            if not os.path.exists(args.file):
                print("File not found:", args.file)
                return 1
            with open(args.file, "r", encoding="utf-8") as f:
                result = svc.import_snapshot(f.read())
        print(result)
        return 0
    except SyncServiceException as e:
        print("Import failed:", e)
        return 1
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
