"""Example step: simulates a lookup against an external service."""

import asyncio


async def apply(data):
    await asyncio.sleep(0.1)
    return {**data, "region": "eu" if data.get("country") in {"de", "fr", "nl"} else "other"}
