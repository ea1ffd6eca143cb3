#!/usr/bin/env python3
"""
Seed script to create demo groups and agents against a running API
"""

import asyncio
import os

import httpx

API_URL = os.environ.get("DYNAMIC_QUEUE_API_URL", "http://localhost:8000")

DEMO_GROUPS = [
    {"name": "Downtown Support", "location": "Downtown", "phone_number": "+15551234567"},
    {"name": "Uptown Support", "location": "Uptown", "phone_number": "+15551234568"},
    {"name": "Airport Support", "location": "Airport", "phone_number": "+15551234569"},
]

DEMO_AGENTS = [
    ("Alice Johnson", "alice", 0),
    ("Brian Lee", "brian", 0),
    ("Carmen Diaz", "carmen", 1),
    ("Deepak Rao", "deepak", 2),
]


async def seed_demo_data():
    """Seed demo data for development"""
    async with httpx.AsyncClient(base_url=API_URL, timeout=10.0) as client:
        existing = (await client.get("/groups")).json()
        if any(group["phone_number"] == DEMO_GROUPS[0]["phone_number"] for group in existing):
            print("Demo data already exists. Skipping...")
            return

        print("Creating demo groups...")
        groups = []
        for payload in DEMO_GROUPS:
            response = await client.post("/groups", json=payload)
            response.raise_for_status()
            group = response.json()
            groups.append(group)
            print(f"Created group: {group['name']} (ID: {group['id']}, phone: {group['phone_number']})")

        # Downtown overflows to Uptown, then Airport
        downtown, uptown, airport = groups
        response = await client.put(
            f"/groups/{downtown['id']}/overflow",
            json={"overflow_group_ids": [uptown["id"], airport["id"]]},
        )
        response.raise_for_status()
        response = await client.patch(
            f"/groups/{downtown['id']}/overflow/enable",
            json={"enabled": True},
        )
        response.raise_for_status()

        print("Creating demo agents...")
        for name, username, group_index in DEMO_AGENTS:
            response = await client.post(
                "/agents",
                json={
                    "name": name,
                    "email": f"{username}@example.com",
                    "username": username,
                    "password": "password123",
                    "group_ids": [groups[group_index]["id"]],
                },
            )
            response.raise_for_status()
            agent = response.json()
            print(f"Created agent: {agent['name']} (ID: {agent['id']})")

    print(f"""
Demo data created successfully!

Groups:
  {downtown['name']}: {downtown['phone_number']} (overflows to Uptown, then Airport)
  {uptown['name']}: {uptown['phone_number']}
  {airport['name']}: {airport['phone_number']}

Agents log in with their username and password123, starting OFFLINE.
Point your Twilio number's voice webhook at /webhooks/twilio/voice.
""")


if __name__ == "__main__":
    asyncio.run(seed_demo_data())
