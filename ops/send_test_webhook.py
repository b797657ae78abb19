#!/usr/bin/env python3
"""
Send a signed sample Messenger webhook to a running inbox API.

Usage:
  FB_APP_SECRET=... python ops/send_test_webhook.py [--url http://localhost:8080/webhook/facebook]
  --bad-signature   send a wrong signature, expect 403
"""
import argparse
import json
import os
import sys
import time

import requests

from inbox_api.services.signature_service import SIGNATURE_HEADER, compute_signature

DEFAULT_URL = os.environ.get("INBOX_WEBHOOK_URL", "http://localhost:8080/webhook/facebook")


def build_payload(page_id: str, sender_id: str, text: str) -> dict:
    now_ms = int(time.time() * 1000)
    return {
        "object": "page",
        "entry": [
            {
                "id": page_id,
                "time": now_ms,
                "messaging": [
                    {
                        "sender": {"id": sender_id},
                        "recipient": {"id": page_id},
                        "timestamp": now_ms,
                        "message": {"mid": f"m_smoke_{now_ms}", "text": text},
                    }
                ],
            }
        ],
    }


def main() -> int:
    parser = argparse.ArgumentParser(description="Send a signed test webhook")
    parser.add_argument("--url", default=DEFAULT_URL)
    parser.add_argument("--page-id", default=os.environ.get("FB_TEST_PAGE_ID", "123456789"))
    parser.add_argument("--sender-id", default="smoke-test-user")
    parser.add_argument("--text", default="Hello from the smoke test")
    parser.add_argument("--bad-signature", action="store_true")
    args = parser.parse_args()

    app_secret = os.environ.get("FB_APP_SECRET", "")
    if not app_secret:
        print("FB_APP_SECRET is not set")
        return 2

    body = json.dumps(build_payload(args.page_id, args.sender_id, args.text)).encode("utf-8")
    signature = compute_signature(body, "wrong-secret" if args.bad_signature else app_secret)

    r = requests.post(
        args.url,
        data=body,
        headers={"Content-Type": "application/json", SIGNATURE_HEADER: signature},
        timeout=10,
    )
    print(f"{r.status_code} {r.text[:80]}")

    expected = 403 if args.bad_signature else 200
    if r.status_code != expected:
        print(f"FAIL: expected {expected}")
        return 1
    print("OK")
    return 0


if __name__ == "__main__":
    sys.exit(main())
