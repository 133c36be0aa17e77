#!/usr/bin/env python3
"""
Seed script — creates a small social graph for trying out suggestions.

Creates:
  • 10 profiles spread over a few cities, two of them verified
  • A follow graph (each user follows 2-4 others)
  • 4 posts per user, most of them hashtagged
  • Some likes and comments across posts

Run after the API is up:
  python scripts/seed_data.py --api-url http://localhost:8000

Suggestions need a bearer token issued by the auth provider for one of
the printed profile ids.
"""
import argparse
import json
import random
import time
import urllib.error
import urllib.request
from dataclasses import dataclass


BASE_USERS = [
    ("alice_ai", "Alice Chen", "Tel Aviv"),
    ("bob_builder", "Bob Martinez", "Haifa"),
    ("carol_codes", "Carol Singh", "tel aviv"),
    ("dave_designs", "Dave Kim", "Jerusalem"),
    ("eve_engineer", "Eve Johnson", "Haifa"),
    ("frank_feeds", "Frank Williams", None),
    ("grace_graphs", "Grace Li", "Tel Aviv"),
    ("henry_hpc", "Henry Brown", "Jerusalem"),
    ("iris_infra", "Iris Davis", None),
    ("jack_ml", "Jack Wilson", "Haifa"),
]

VERIFIED = {"alice_ai", "grace_graphs"}

SAMPLE_POSTS = [
    "Just shipped a new feature to production #devops #release",
    "Deep dive into graph databases today #databases",
    "Morning run along the beach, 10k done #running",
    "Reading about recommendation systems #ml #recsys",
    "Cold-start is the hardest part of #recsys",
    "Pair programming session went great #devops",
    "New espresso machine, productivity up 30% #coffee",
    "Weekend hike in the north #hiking #outdoors",
    "Async Python keeps surprising me #python",
    "Benchmarking SQL joins vs denormalised tables #databases",
    "Hot take: tabs are fine #python",
    "Trying a new pour-over recipe #coffee",
]

SAMPLE_COMMENTS = ["Great point!", "Totally agree", "Interesting, tell me more", "🔥"]


@dataclass
class ApiClient:
    base_url: str

    def _send(self, method: str, path: str, data: dict | None = None) -> dict:
        url = f"{self.base_url}{path}"
        body = json.dumps(data).encode() if data is not None else None
        req = urllib.request.Request(
            url, data=body, headers={"Content-Type": "application/json"}, method=method
        )
        try:
            with urllib.request.urlopen(req, timeout=10) as resp:
                raw = resp.read()
                return json.loads(raw) if raw else {}
        except urllib.error.HTTPError as e:
            print(f"  HTTP {e.code} on {method} {path}: {e.read().decode()}")
            return {}

    def post(self, path: str, data: dict) -> dict:
        return self._send("POST", path, data)

    def patch(self, path: str, data: dict) -> dict:
        return self._send("PATCH", path, data)

    def get(self, path: str) -> dict:
        return self._send("GET", path)


def wait_for_api(client: ApiClient, retries: int = 15) -> None:
    print(f"Waiting for API at {client.base_url} ...")
    for _ in range(retries):
        try:
            if client.get("/health").get("status") == "ok":
                print("  API is ready!\n")
                return
        except urllib.error.URLError:
            pass
        time.sleep(3)
    raise RuntimeError(f"API not reachable at {client.base_url} after {retries} retries")


def main(api_url: str, seed: int) -> None:
    random.seed(seed)
    client = ApiClient(api_url)
    wait_for_api(client)

    # ── Create profiles ──────────────────────────────────────────────────
    print("Creating profiles...")
    user_ids: dict[str, str] = {}
    for handle, name, location in BASE_USERS:
        result = client.post(
            "/users/", {"user_handle": handle, "user_name": name, "location": location}
        )
        uid = result.get("id", "")
        if not uid:
            print(f"  ✗ Failed to create {handle}")
            continue
        user_ids[handle] = uid
        if handle in VERIFIED:
            client.patch(f"/users/{uid}", {"is_verified": True})
        print(f"  ✓ {handle} ({uid})")

    if not user_ids:
        print("No profiles created — aborting")
        return

    ids = list(user_ids.values())

    # ── Create follow graph ───────────────────────────────────────────────
    print("\nCreating follow relationships...")
    edges = 0
    for follower_id in ids:
        others = [u for u in ids if u != follower_id]
        for following_id in random.sample(others, k=min(random.randint(2, 4), len(others))):
            client.post("/users/follow", {"follower_id": follower_id, "following_id": following_id})
            edges += 1
    print(f"  ✓ {edges} follow edges created")

    # ── Create posts ──────────────────────────────────────────────────────
    print("\nCreating posts...")
    post_ids: list[str] = []
    for user_id in ids:
        for content in random.sample(SAMPLE_POSTS, k=4):
            pid = client.post("/posts/", {"user_id": user_id, "content": content}).get("id")
            if pid:
                post_ids.append(pid)
    print(f"  ✓ {len(post_ids)} posts created")

    # ── Likes & comments ──────────────────────────────────────────────────
    print("\nAdding likes and comments...")
    likes = comments = 0
    for post_id in post_ids:
        for user_id in random.sample(ids, k=random.randint(0, 4)):
            client.post(f"/posts/{post_id}/like", {"user_id": user_id})
            likes += 1
        if random.random() < 0.3:
            client.post(
                f"/posts/{post_id}/comments",
                {"user_id": random.choice(ids), "content": random.choice(SAMPLE_COMMENTS)},
            )
            comments += 1
    print(f"  ✓ {likes} likes, {comments} comments added")

    # ── Print summary ─────────────────────────────────────────────────────
    print("\n" + "=" * 60)
    print("Seed complete! Here are some commands to try:\n")
    u = ids[0]
    print(f"# Who does '{BASE_USERS[0][0]}' follow?")
    print(f"  curl -s '{api_url}/users/{u}/following' | python3 -m json.tool\n")
    print("# Suggestions (token must resolve to one of the ids above):")
    print(f"  curl -s -X POST '{api_url}/suggestions/' \\")
    print("    -H 'Authorization: Bearer $TOKEN' \\")
    print("    -H 'Content-Type: application/json' \\")
    print("    -d '{\"limit\": 5}' | python3 -m json.tool\n")
    print("# Check Jaeger traces: http://localhost:16686")
    print(f"# Check metrics: {api_url}/metrics")
    print("=" * 60)


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Seed the Suggest-Users API")
    parser.add_argument("--api-url", default="http://localhost:8000", help="API base URL")
    parser.add_argument("--seed", type=int, default=7, help="random seed for the graph")
    args = parser.parse_args()
    main(args.api_url, args.seed)
