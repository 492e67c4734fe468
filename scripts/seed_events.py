"""Generate fake tracker traffic and revenue for development and demos.

Beacons are timestamped on receipt, so traffic always lands on today;
revenue is back-filled for the requested number of days.

Usage:
    python -m scripts.seed_events --admin-key <ADMIN_API_KEY> [--url http://localhost:8000]
    python -m scripts.seed_events --admin-key ... --site-id 3 --count 2000 --days 14
"""

import argparse
import random
import sys
from datetime import date, timedelta

import httpx

PAGES = [
    "/",
    "/recipes",
    "/recipes/pasta-carbonara",
    "/recipes/banana-bread",
    "/guides/knife-skills",
    "/about",
    "/newsletter",
]

REFERRERS = [
    "https://www.google.com/",
    "https://www.pinterest.com/",
    "https://www.facebook.com/",
    "",
    "",
]

USER_AGENTS = [
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) Chrome/120.0.0.0",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) Chrome/120.0.0.0",
    "Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X) Safari/605.1.15",
    "Mozilla/5.0 (Linux; Android 14) Chrome/120.0.0.0 Mobile",
]

SOURCES = [("adsense", 8.0), ("affiliate", 3.0), ("sponsorship", 1.5)]


def generate_beacons(tracking_id: str, count: int, base_url: str) -> list[dict]:
    """Build pageview beacons grouped into sessions, each closed by a session_end."""
    beacons: list[dict] = []
    session_no = 0
    while len(beacons) < count:
        session_no += 1
        session_id = f"sess_seed{session_no:06d}"
        referrer = random.choice(REFERRERS)
        # Roughly 40% of sessions bounce after one page
        views = 1 if random.random() < 0.4 else random.randint(2, 6)
        for _ in range(views):
            page = random.choice(PAGES)
            beacons.append(
                {
                    "siteId": tracking_id,
                    "sessionId": session_id,
                    "eventType": "pageview",
                    "url": f"{base_url}{page}",
                    "referrer": referrer,
                    "data": {"path": page},
                }
            )
        beacons.append(
            {
                "siteId": tracking_id,
                "sessionId": session_id,
                "eventType": "session_end",
                "data": {"duration": random.randint(5_000, 600_000)},
            }
        )
    return beacons[:count]


def generate_revenue(site_id: int, days: int) -> list[dict]:
    today = date.today()
    entries = []
    for offset in range(days):
        day = today - timedelta(days=offset)
        for source, base in SOURCES:
            impressions = random.randint(800, 5000)
            entries.append(
                {
                    "site_id": site_id,
                    "source": source,
                    "amount": f"{base * random.uniform(0.5, 1.5):.4f}",
                    "impressions": impressions,
                    "clicks": int(impressions * random.uniform(0.002, 0.02)),
                    "date": day.isoformat(),
                    "metadata": {"seeded": True},
                }
            )
    return entries


def main():
    parser = argparse.ArgumentParser(description="Seed tracker traffic and revenue")
    parser.add_argument("--admin-key", required=True, help="ADMIN_API_KEY of the server")
    parser.add_argument("--url", default="http://localhost:8000", help="API base URL")
    parser.add_argument("--site-id", type=int, help="Existing site id (a new site is created if omitted)")
    parser.add_argument("--count", type=int, default=500, help="Number of tracker beacons")
    parser.add_argument("--days", type=int, default=14, help="Days of revenue history")
    args = parser.parse_args()

    admin = {"X-API-Key": args.admin_key}
    api = f"{args.url}/api/v1"

    with httpx.Client(timeout=30) as client:
        if args.site_id is None:
            resp = client.post(
                f"{api}/sites/",
                json={"name": "Seeded Recipes", "url": "https://recipes.example.com", "category": "food"},
                headers=admin,
            )
        else:
            resp = client.get(f"{api}/sites/{args.site_id}", headers=admin)
        if resp.status_code not in (200, 201):
            print(f"  Error: {resp.status_code} - {resp.text}", file=sys.stderr)
            sys.exit(1)
        site = resp.json()
        print(f"Seeding site {site['id']} ({site['tracking_id']})...")

        beacons = generate_beacons(site["tracking_id"], args.count, site["url"])
        sent = 0
        for beacon in beacons:
            resp = client.post(
                f"{api}/tracking/event",
                json=beacon,
                headers={"User-Agent": random.choice(USER_AGENTS)},
            )
            if resp.status_code != 200:
                print(f"  Error: {resp.status_code} - {resp.text}", file=sys.stderr)
                sys.exit(1)
            sent += 1
            if sent % 100 == 0:
                print(f"  Sent {sent}/{len(beacons)} beacons")

        entries = generate_revenue(site["id"], args.days)
        for entry in entries:
            resp = client.post(f"{api}/revenue/", json=entry, headers=admin)
            if resp.status_code != 200:
                print(f"  Error: {resp.status_code} - {resp.text}", file=sys.stderr)
                sys.exit(1)
        print(f"  Recorded {len(entries)} revenue entries over {args.days} days")

    print(f"Done! Seeded {sent} beacons.")


if __name__ == "__main__":
    main()
