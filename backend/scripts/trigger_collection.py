#!/usr/bin/env python3
"""Call a collection trigger over HTTP, for use from an external cron.

Usage:
    python scripts/trigger_collection.py                      # weekly collection
    python scripts/trigger_collection.py --backfill 8         # last 8 weeks
    python scripts/trigger_collection.py --backfill 8 --historical-serp
    python scripts/trigger_collection.py --url-id <uuid>      # one URL

The base URL defaults to http://localhost:$PORT and the shared secret to
CRON_SECRET, both read through the application settings (.env included).
Exits non-zero when the run reports ok: false or the call fails.
"""

import argparse
import asyncio
import json
import sys
from typing import Any

import httpx

from rankwatch.core.auth import CRON_SECRET_HEADER
from rankwatch.core.config import get_settings

# Collection runs can take several minutes for large URL sets
REQUEST_TIMEOUT_SECONDS = 900.0


def build_request(args: argparse.Namespace) -> tuple[str, dict[str, Any] | None]:
    """Endpoint path and JSON body for the requested run."""
    if args.backfill is not None:
        body: dict[str, Any] = {
            "weeks_back": args.backfill,
            "use_historical_serp": args.historical_serp,
        }
        if args.url_id:
            body["url_id"] = args.url_id
        return "/api/v1/admin/backfill", body
    if args.url_id:
        return "/api/v1/admin/trigger-url", {"url_id": args.url_id}
    return "/api/v1/cron", None


async def trigger(base_url: str, path: str, body: dict[str, Any] | None, secret: str | None) -> int:
    headers = {CRON_SECRET_HEADER: secret} if secret else {}
    async with httpx.AsyncClient(base_url=base_url, timeout=REQUEST_TIMEOUT_SECONDS) as client:
        try:
            response = await client.post(path, json=body, headers=headers)
        except httpx.HTTPError as e:
            print(f"Request failed: {e}", file=sys.stderr)
            return 2

    try:
        payload = response.json()
    except ValueError:
        print(f"HTTP {response.status_code}: {response.text}", file=sys.stderr)
        return 2

    for line in payload.get("log", []):
        print(line)
    print(json.dumps(payload.get("counts", payload), indent=2))
    return 0 if response.is_success and payload.get("ok", False) else 1


def main() -> int:
    settings = get_settings()
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--base-url", default=f"http://localhost:{settings.port}")
    parser.add_argument("--backfill", type=int, metavar="WEEKS", help="Backfill this many weeks")
    parser.add_argument("--historical-serp", action="store_true", help="Historical SERP for past weeks")
    parser.add_argument("--url-id", help="Restrict the run to one tracked URL")
    args = parser.parse_args()

    path, body = build_request(args)
    return asyncio.run(trigger(args.base_url, path, body, settings.cron_secret))


if __name__ == "__main__":
    sys.exit(main())
