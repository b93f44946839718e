"""Fetch and print payment statistics and recent payments as JSON."""

import argparse
import json

import httpx


def main() -> None:
    """CLI entrypoint for quick payment health checks."""

    parser = argparse.ArgumentParser(description="Fetch payment stats and recent payments.")
    parser.add_argument("--base-url", default="http://localhost:8000")
    parser.add_argument("--recent", type=int, default=10)
    args = parser.parse_args()

    with httpx.Client(base_url=args.base_url, timeout=10.0) as client:
        stats = client.get("/api/payments/stats")
        stats.raise_for_status()
        recent = client.get("/api/payments/recent", params={"limit": args.recent})
        recent.raise_for_status()
    print(json.dumps({"stats": stats.json(), "recent": recent.json()}, indent=2))


if __name__ == "__main__":
    main()
