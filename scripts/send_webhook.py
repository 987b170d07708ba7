"""Post a gateway-shaped settlement webhook to a running payments service.

Useful for manual duplicate-delivery and unknown-transaction testing.
"""

import argparse
import json

import httpx


def build_payload(transaction_id: str, reference: str, status: str, amount: int, phone_number: str, provider: str) -> dict:
    return {
        "transaction": {"uuid": transaction_id, "reference": reference, "status": status},
        "collection": {
            "amount": {"formatted": f"{amount:,}", "raw": amount, "currency": "UGX"},
            "phone_number": phone_number,
            "provider": provider,
        },
        "status": status,
    }


def main() -> None:
    """Parse CLI args and deliver one webhook."""

    parser = argparse.ArgumentParser(description="Send a collection webhook to the payments service.")
    parser.add_argument("--url", default="http://localhost:8000/webhooks/collections")
    parser.add_argument("--transaction-id", required=True)
    parser.add_argument("--reference", default="")
    parser.add_argument("--status", default="completed", choices=["completed", "failed", "cancelled"])
    parser.add_argument("--amount", type=int, default=50000)
    parser.add_argument("--phone-number", default="+256780123456")
    parser.add_argument("--provider", default="mtn")
    parser.add_argument("--repeat", type=int, default=1, help="Deliver the same body N times")
    args = parser.parse_args()

    payload = build_payload(args.transaction_id, args.reference, args.status, args.amount, args.phone_number, args.provider)
    for _ in range(args.repeat):
        resp = httpx.post(args.url, json=payload, timeout=10.0)
        print(resp.status_code, json.dumps(resp.json()))


if __name__ == "__main__":
    main()
