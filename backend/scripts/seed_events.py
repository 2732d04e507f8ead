"""Generate realistic fake telemetry for development and demos.

Usage:
    python -m scripts.seed_events [--url http://localhost:8000]
    python -m scripts.seed_events --sessions 200 --days 7 --batch-size 500
"""

import argparse
import random
import sys
import uuid
from datetime import datetime, timedelta, timezone

import httpx

PAGES = [
    ("/", "Home"),
    ("/pricing", "Pricing"),
    ("/features", "Features"),
    ("/about", "About us"),
    ("/blog", "Blog"),
    ("/blog/getting-started", "Getting started"),
    ("/docs", "Documentation"),
    ("/docs/api", "API reference"),
    ("/signup", "Sign up"),
    ("/login", "Log in"),
]

ELEMENTS = [
    ("button", "cta-signup", "btn btn-primary"),
    ("a", "nav-pricing", "nav-link"),
    ("a", "nav-docs", "nav-link"),
    ("button", "play-video", "btn"),
    ("input", "search", "form-control"),
]

REFERRERS = [
    "https://google.com",
    "https://twitter.com",
    "https://github.com",
    "https://news.ycombinator.com",
    "",
    "",
    "",
]

USER_AGENTS = [
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/17.0 Mobile/15E148 Safari/604.1",
    "Mozilla/5.0 (Linux; Android 14; Pixel 8) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Mobile Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10.15; rv:121.0) Gecko/20100101 Firefox/121.0",
]

SCREENS = [(1920, 1080), (1440, 900), (390, 844), (412, 915), (2560, 1440)]


def generate_session(start: datetime, user_id: str) -> list[dict]:
    """One visit: session_start, a few page views with scrolls and clicks, session_end."""
    session_id = f"sess_{uuid.uuid4().hex[:12]}"
    user_agent = random.choice(USER_AGENTS)
    screen_w, screen_h = random.choice(SCREENS)
    common = {
        "session_id": session_id,
        "user_id": user_id,
        "user_agent": user_agent,
        "screen_width": screen_w,
        "screen_height": screen_h,
        "viewport_width": screen_w,
        "viewport_height": screen_h - 120,
    }
    ts = start
    events = []

    def emit(event_type: str, path: str, title: str, **fields) -> None:
        events.append(
            {
                **common,
                "event_type": event_type,
                "page_url": f"https://example.com{path}",
                "page_title": title,
                "timestamp": ts.isoformat(),
                **fields,
            }
        )

    path, title = random.choice(PAGES)
    emit("session_start", path, title, referrer=random.choice(REFERRERS))

    page_count = random.randint(1, 6)
    for n in range(1, page_count + 1):
        path, title = random.choice(PAGES)
        emit("page_view", path, title, page_load_time=random.randint(150, 4000), page_count=n)
        max_depth = 0
        for _ in range(random.randint(0, 3)):
            ts += timedelta(seconds=random.randint(2, 30))
            max_depth = min(100, max_depth + random.randint(10, 40))
            emit("scroll", path, title, scroll_depth=max_depth, max_scroll_depth=max_depth)
        for _ in range(random.randint(0, 2)):
            ts += timedelta(seconds=random.randint(1, 20))
            tag, element_id, element_class = random.choice(ELEMENTS)
            emit(
                "click",
                path,
                title,
                element_tag=tag,
                element_id=element_id,
                element_class=element_class,
                click_x=random.randint(0, screen_w),
                click_y=random.randint(0, screen_h),
            )
        ts += timedelta(seconds=random.randint(5, 120))
        emit("page_exit", path, title, max_scroll_depth=max_depth)

    duration = int((ts - start).total_seconds())
    emit("session_end", path, title, session_duration=duration, page_count=page_count)
    return events


def generate_events(sessions: int, days: int) -> list[dict]:
    """Generate events for a number of sessions spread over the last N days."""
    now = datetime.now(timezone.utc)
    users = [f"user_{i}" for i in range(max(sessions // 3, 5))]
    events = []
    for _ in range(sessions):
        start = now - timedelta(seconds=random.randint(0, days * 86400))
        user = random.choice(users) if random.random() > 0.3 else ""
        events.extend(generate_session(start, user))
    return events


def main():
    parser = argparse.ArgumentParser(description="Seed telemetry events")
    parser.add_argument("--url", default="http://localhost:8000", help="API base URL")
    parser.add_argument("--sessions", type=int, default=100, help="Number of sessions")
    parser.add_argument("--days", type=int, default=7, help="Days of history")
    parser.add_argument("--batch-size", type=int, default=200, help="Events per request (max 1000)")
    args = parser.parse_args()

    if not 1 <= args.batch_size <= 1000:
        parser.error("--batch-size must be between 1 and 1000")

    print(f"Generating {args.sessions} sessions over {args.days} days...")
    events = generate_events(args.sessions, args.days)

    # Sort by timestamp for realistic ordering
    events.sort(key=lambda e: e["timestamp"])

    print(f"Sending {len(events)} events to {args.url}...")
    total_sent = 0
    with httpx.Client(timeout=30) as client:
        for i in range(0, len(events), args.batch_size):
            batch = events[i : i + args.batch_size]
            resp = client.post(f"{args.url}/api/v1/analytics/events", json={"events": batch})
            if resp.status_code == 200:
                total_sent += resp.json()["processed"]
                print(f"  Sent {total_sent}/{len(events)} events")
            else:
                print(f"  Error: {resp.status_code} - {resp.text}", file=sys.stderr)
                sys.exit(1)

    print(f"Done! Seeded {total_sent} events.")


if __name__ == "__main__":
    main()
