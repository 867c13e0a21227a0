# scripts/run_plate_alert_scan.py
"""
Run the plate alert scan once. Meant for cron, e.g. every morning:
    0 7 * * *  cd /srv/ledger && python scripts/run_plate_alert_scan.py
Usage: python scripts/run_plate_alert_scan.py [--date 2026-03-01]
"""

import argparse
import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from datetime import date
from app.database import SessionLocal
from app.services.plate_service import get_active_alerts, scan_plate_alerts


def main():
    parser = argparse.ArgumentParser(description="Scan plates for overdue, expiring and unaccounted plates")
    parser.add_argument("--date", type=date.fromisoformat, default=None, help="Scan as of this date (YYYY-MM-DD)")
    args = parser.parse_args()

    db = SessionLocal()
    try:
        created = scan_plate_alerts(db, today=args.date)
        print(f"New alerts: {len(created)}")
        for alert in get_active_alerts(db):
            print(f"  [{alert.severity.upper():7}] {alert.alert_type}: {alert.description}")
    finally:
        db.close()


if __name__ == "__main__":
    main()
