#!/usr/bin/env python3
"""
Example demonstrating configuration driven dynamic logging
"""

import asyncio

from dynamic_logging import (
    DynamicLoggerConfig,
    StaticConfigFetcher,
    async_ambient_context,
    dynamic_log,
    init_dynamic_logger,
    shutdown_dynamic_logger,
    stream_sink,
)

# What a config service would answer for each call site key
CONFIGS = {
    "PROCESS_START": {
        "variablesToLog": ["user_id", "status", "item_count", "request_id"],
        "samplingRate": 1,
        "prefixMessage": "Start: ",
    },
    "ITEM_FLAGGED": {
        "variablesToLog": ["user_id", "review_reason"],
        "samplingRate": 1,
        "prefixMessage": "Review: ",
        "customCode": "f'{item_count} items, limit {Math.max(2, limit)}'",
    },
    "SYSTEM_EVENT": {
        "VariablesToLog": ["event"],
        "SamplingRate": 0.5,
        "PrefixMessage": "System: ",
    },
    "UNSAFE": {
        "variablesToLog": [],
        "samplingRate": 1,
        "customCode": "process.exit()",
    },
}


async def process_data(user):
    """Instrumented business function; locals are captured automatically"""
    user_id = user["id"]
    status = "processing"
    items = user.get("items", [])
    item_count = len(items)
    limit = 2

    await dynamic_log("PROCESS_START", "data processing started")
    await asyncio.sleep(0.05)

    if item_count > limit:
        status = "flagged_for_review"
        review_reason = "Too many items"
        await dynamic_log("ITEM_FLAGGED", "item flagged")
    else:
        status = "processed_successfully"

    return status


async def main():
    """Run a couple of requests through the dynamic logger"""
    init_dynamic_logger(
        StaticConfigFetcher(CONFIGS, latency_ms=5),
        stream_sink(),
        DynamicLoggerConfig(fetch_timeout_ms=500, verbose=True),
    )

    try:
        async with async_ambient_context(request_id="req-001"):
            await process_data({"id": "user123", "items": ["a", "b", "c"]})

        # Sampled at 50%, so only some of these appear
        for attempt in range(4):
            await dynamic_log("SYSTEM_EVENT", f"heartbeat {attempt}", {"event": "heartbeat"})

        # Rejected custom code is reported in the line, the program carries on
        await dynamic_log("UNSAFE", "this call site has bad custom code", {})

        # Keys without configuration never produce output
        await dynamic_log("NOT_CONFIGURED", "never logged", {})
    finally:
        await shutdown_dynamic_logger()


if __name__ == "__main__":
    asyncio.run(main())
