#!/usr/bin/env python3
"""
userpulse Quickstart — create users and watch the notifications arrive.

Opens the SSE stream, creates a user, tries to create it again (duplicate
email), then prints the two notifications the stream delivered.
Run with: python examples/quickstart.py

Requires: pip install httpx
Backend must be running: http://localhost:8000
"""

import json
import sys
import threading
import uuid

import httpx

BASE = "http://localhost:8000/api/v1"


def watch(received: list, ready: threading.Event, done: threading.Event):
    """Collect SSE payloads until two have arrived."""
    with httpx.stream("GET", f"{BASE}/sse/notifications", timeout=None) as resp:
        ready.set()
        for line in resp.iter_lines():
            if not line.startswith("data:"):
                continue
            received.append(json.loads(line[len("data:"):]))
            if len(received) >= 2:
                break
    done.set()


def main():
    run_id = uuid.uuid4().hex[:6]
    client = httpx.Client(base_url=BASE, timeout=10)

    # ── Health check ──────────────────────────────────────────────
    print("Checking backend health...")
    try:
        resp = client.get("/health")
    except httpx.ConnectError:
        print(f"Backend not reachable at {BASE}")
        sys.exit(1)
    health = resp.json()
    print(f"  Postgres: {'✓' if health['postgres'] == 'ok' else '✗'}")
    print(f"  Redis:    {'✓' if health['redis'] == 'ok' else '✗'}")

    # ── Subscribe ─────────────────────────────────────────────────
    print("\n1. Opening notification stream...")
    received: list = []
    ready, done = threading.Event(), threading.Event()
    threading.Thread(target=watch, args=(received, ready, done), daemon=True).start()
    ready.wait(timeout=5)

    # ── Create a user ─────────────────────────────────────────────
    email = f"ada-{run_id}@example.com"
    print(f"\n2. Creating user {email}...")
    resp = client.post("/users", json={"name": "Ada", "email": email})
    assert resp.status_code == 201, f"Failed: {resp.text}"
    print(f"   User #{resp.json()['id']} saved")

    # ── Duplicate ─────────────────────────────────────────────────
    print("\n3. Creating the same email again...")
    resp = client.post("/users", json={"name": "Ada again", "email": email})
    print(f"   Rejected: {resp.status_code} {resp.json()['detail']}")

    # ── Notifications ─────────────────────────────────────────────
    print("\n4. Notifications:")
    if not done.wait(timeout=10):
        print("   (timed out waiting, is the consumer running?)")
    for event in received:
        print(f"   {event['type']}: {json.dumps(event)}")

    # ── Cached lookup ─────────────────────────────────────────────
    resp = client.get("/users/by-email", params={"email": email})
    print(f"\n5. Lookup by email: {resp.json()['name']}")

    print("\nDone!")


if __name__ == "__main__":
    main()
