# scripts/test/simulate_stage_change.py
"""Walk a registration through the lifecycle against a running backend."""

import argparse
import requests

BACKEND_URL = "http://localhost:8080"

HAPPY_PATH = ["documents_collected", "submitted_to_dmv", "dmv_processing", "sticker_ready", "sticker_delivered"]


def main():
    parser = argparse.ArgumentParser(description="Simulate registration stage changes")
    parser.add_argument("--url", default=BACKEND_URL)
    parser.add_argument("--api-key", default=None)
    parser.add_argument("--registration", type=int, default=None, help="Existing registration id (default: create one)")
    parser.add_argument("--reject", action="store_true", help="Reject at dmv_processing, then resubmit")
    parser.add_argument("--no-notify", action="store_true", help="Do not message the customer")
    args = parser.parse_args()

    headers = {"X-Admin-User": "simulator"}
    if args.api_key:
        headers["X-API-Key"] = args.api_key
    api = f"{args.url}/api/v1"

    reg_id = args.registration
    if reg_id is None:
        resp = requests.post(f"{api}/registrations", headers=headers, timeout=10, json={
            "customer_name": "Test Customer",
            "customer_phone": "+18325550100",
            "vin": "1HGCM82633A004352",
            "vehicle_year": 2021, "vehicle_make": "Honda", "vehicle_model": "Accord",
            "notify_customer": not args.no_notify,
        })
        resp.raise_for_status()
        reg_id = resp.json()["id"]
        print(f"Created {resp.json()['order_id']} (id={reg_id})")

    path = list(HAPPY_PATH)
    if args.reject:
        path[3:3] = ["rejected", "submitted_to_dmv", "dmv_processing"]

    for stage in path:
        body = {"target_stage": stage, "notify_customer": not args.no_notify}
        if stage == "rejected":
            body["rejection_notes"] = "VIN mismatch on title"
        resp = requests.put(f"{api}/registrations/{reg_id}/stage", headers=headers, json=body, timeout=10)
        print(f"-> {stage:20} HTTP {resp.status_code}  {resp.json().get('detail', '')}")
        if resp.status_code != 200:
            break

    reg = requests.get(f"{api}/registrations/{reg_id}", headers=headers, timeout=10).json()
    print(f"\nTracker: {args.url}/track/{reg['order_id']}-{reg['access_token']}")


if __name__ == "__main__":
    main()
