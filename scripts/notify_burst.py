"""Send many notify requests for one code to watch the abuse limiter kick in."""

import argparse
import asyncio
from uuid import uuid4

import httpx


async def main() -> None:
    """CLI entrypoint for burst submission smoke tests."""

    parser = argparse.ArgumentParser(description="Send many notify requests for the same code.")
    parser.add_argument("--base-url", default="http://localhost:8000")
    parser.add_argument("--code-id", default="burst-code-1")
    parser.add_argument("--count", type=int, default=12)
    parser.add_argument("--user-agent", default="notify-burst/1.0")
    parser.add_argument("--spread-origins", action="store_true", help="Use a different X-Forwarded-For per request")
    args = parser.parse_args()

    statuses: dict[int, int] = {}
    async with httpx.AsyncClient(timeout=10.0) as client:
        for i in range(args.count):
            headers = {"user-agent": args.user_agent, "x-trace-id": str(uuid4())}
            if args.spread_origins:
                headers["x-forwarded-for"] = f"10.0.0.{i % 250 + 1}"
            payload = {
                "codeId": args.code_id,
                "title": "Your vehicle needs attention",
                "body": f"Burst message {i}",
                "metadata": {"reason": "blocking", "message": f"Burst message {i}"},
            }
            resp = await client.post(f"{args.base_url}/notify", json=payload, headers=headers)
            statuses[resp.status_code] = statuses.get(resp.status_code, 0) + 1
            print(resp.status_code, resp.text)

    print("status_counts=", statuses)


if __name__ == "__main__":
    asyncio.run(main())
