"""
Streaming example using ch_http_core.

This example demonstrates streaming inserts with request compression,
streaming a large result, and aborting a running query.
"""

import asyncio
import logging

from ch_http_core import (
    CancellationError,
    CancellationToken,
    ClientConfig,
    CompressionSettings,
    create_client,
)

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


async def csv_lines(count):
    """Generate CSV rows."""
    for i in range(count):
        yield f"{i},event_{i}\n"


async def streaming_insert_demo(client):
    """Demonstrate a gzip-compressed streaming insert."""
    await client.command("CREATE TABLE IF NOT EXISTS stream_events (id UInt32, name String) ENGINE Memory")

    result = await client.insert("stream_events", csv_lines(100_000), format="CSV")
    logger.info(f"Streamed insert done: {result.summary}")


async def streaming_query_demo(client):
    """Demonstrate reading a large result row by row."""
    result = await client.query("SELECT * FROM stream_events", format="JSONCompactEachRow")

    count = 0
    async for _ in result.stream():
        count += 1
    logger.info(f"Streamed {count} rows")

    await client.command("DROP TABLE stream_events")


async def cancellation_demo(client):
    """Demonstrate aborting a slow query."""
    token = CancellationToken()
    loop = asyncio.get_running_loop()
    loop.call_later(0.5, token.cancel)

    try:
        await client.query("SELECT sleep(3)", cancel_token=token)
    except CancellationError as e:
        logger.info(f"Query aborted: {e}")


async def main():
    """Run all examples."""
    config = ClientConfig(compression=CompressionSettings(compress_request=True))

    async with create_client(config) as client:
        await streaming_insert_demo(client)
        await streaming_query_demo(client)
        await cancellation_demo(client)


if __name__ == "__main__":
    asyncio.run(main())
