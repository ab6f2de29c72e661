"""
Simulate inbound inquiries against a running API.

Usage:
    python scripts/simulate_lead.py --listing <listing_id>
    python scripts/simulate_lead.py --listing <listing_id> --count 6
    python scripts/simulate_lead.py --listing <listing_id> --message "Can I tour this ASAP?"
"""
import argparse
import asyncio
import logging

import httpx

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

BASE_URL = "http://localhost:8000"


async def simulate_inquiry(
    client: httpx.AsyncClient,
    listing_id: str,
    name: str,
    email: str,
    phone: str,
    message: str,
):
    """Send one inquiry through the lead intake endpoint."""
    payload = {
        "listing_id": listing_id,
        "name": name,
        "email": email,
        "phone": phone,
        "message": message,
        "source": "website",
    }
    resp = await client.post(f"{BASE_URL}/api/v1/leads", json=payload)
    logger.info("Lead intake response: %s %s", resp.status_code, resp.json())
    return resp


async def main():
    parser = argparse.ArgumentParser(description="Simulate inbound inquiries")
    parser.add_argument("--listing", required=True, help="Listing UUID")
    parser.add_argument("--count", type=int, default=1, help="Number of distinct inquiries")
    parser.add_argument("--name", default="John Smith")
    parser.add_argument("--phone", default="+15125559876")
    parser.add_argument(
        "--message",
        default="We'd love to schedule a viewing this weekend. Pre-approved and ready to move soon.",
    )
    args = parser.parse_args()

    logger.info("Simulating %d inquiries for listing %s...", args.count, args.listing)
    async with httpx.AsyncClient(timeout=30) as client:
        for i in range(args.count):
            first = args.name.split()[0].lower()
            await simulate_inquiry(
                client, args.listing, args.name, f"{first}+{i}@example.com",
                args.phone, args.message,
            )


if __name__ == "__main__":
    asyncio.run(main())
