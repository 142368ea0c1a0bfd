"""Poll the relay once, the way the downstream consumer does."""

import argparse
import json

import httpx


def main() -> None:
    """Fetch notifications (or drain replies) and print the JSON response."""

    parser = argparse.ArgumentParser(description="Poll relay notifications or replies.")
    parser.add_argument("--base-url", default="http://localhost:10000")
    parser.add_argument("--replies", action="store_true", help="Drain the reply set instead")
    parser.add_argument("--mode", default="mine", choices=["pending", "mine", "all"])
    parser.add_argument("--user", default=None)
    parser.add_argument("--limit", type=int, default=50)
    parser.add_argument("--peek", action="store_true")
    parser.add_argument("--token", default=None)
    args = parser.parse_args()

    headers = {"Authorization": f"Bearer {args.token}"} if args.token else {}
    if args.replies:
        resp = httpx.get(f"{args.base_url}/replies", headers=headers, timeout=5.0)
    else:
        params = {"mode": args.mode, "limit": args.limit, "peek": str(args.peek).lower()}
        if args.user:
            params["user"] = args.user
        resp = httpx.get(f"{args.base_url}/notifications", params=params, headers=headers, timeout=5.0)
    print(resp.status_code)
    print(json.dumps(resp.json(), indent=2))


if __name__ == "__main__":
    main()
