"""Post a raw JSON webhook body to a running relay.

Useful for manual duplicate-delivery and enrichment testing.
"""

import argparse
import json
from pathlib import Path

import httpx


def post(url: str, payload: dict, timeout: float) -> int:
    """Send one body and return the relay's status code."""

    resp = httpx.post(url, json=payload, timeout=timeout)
    return resp.status_code


def main() -> None:
    """Parse CLI args and post one JSON payload."""

    parser = argparse.ArgumentParser(description="Post a raw JSON webhook body to the relay.")
    parser.add_argument("--url", default="http://localhost:10000/")
    parser.add_argument("--json", dest="json_inline", default=None, help="Inline JSON payload")
    parser.add_argument("--file", dest="json_file", default=None, help="Path to JSON file")
    parser.add_argument("--repeat", type=int, default=1, help="Send the same body N times")
    parser.add_argument("--timeout", type=float, default=5.0)
    args = parser.parse_args()

    if bool(args.json_inline) == bool(args.json_file):
        raise SystemExit("Provide exactly one of --json or --file")

    if args.json_inline:
        payload = json.loads(args.json_inline)
    else:
        payload = json.loads(Path(args.json_file).read_text())

    for attempt in range(1, args.repeat + 1):
        status = post(args.url, payload, args.timeout)
        print(f"attempt={attempt} status={status}")


if __name__ == "__main__":
    main()
