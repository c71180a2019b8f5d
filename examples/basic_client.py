"""
Basic client example using ch_http_core.

This example demonstrates how to run queries, commands and inserts
against a ClickHouse server listening on localhost:8123.
"""

import asyncio
import logging

from ch_http_core import ClientConfig, ServerError, create_client

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


async def query_demo(client):
    """Demonstrate a query with bound parameters."""
    logger.info("Running query...")

    result = await client.query(
        "SELECT number, toString(number) AS s FROM system.numbers WHERE number < {limit:UInt32}",
        query_params={"limit": 5},
    )
    data = await result.json()
    logger.info(f"Rows: {data['rows']}, first: {data['data'][0]}")


async def insert_demo(client):
    """Demonstrate creating a table and inserting rows."""
    logger.info("Creating table and inserting rows...")

    await client.command("CREATE TABLE IF NOT EXISTS example_events (id UInt32, name String) ENGINE Memory")
    result = await client.insert("example_events", [[1, "first"], [2, "second"]], columns=["id", "name"])
    logger.info(f"Insert executed: {result.executed}, query id: {result.query_id}")

    result = await client.query("SELECT * FROM example_events ORDER BY id", format="JSONEachRow")
    async for row in result.stream():
        logger.info(f"Row: {row.json()}")

    await client.command("DROP TABLE example_events")


async def error_demo(client):
    """Demonstrate server errors."""
    try:
        await client.query("SELEC 1")
    except ServerError as e:
        logger.info(f"Server rejected the statement: code={e.code} type={e.type}")


async def main():
    """Run all examples."""
    logger.info("Starting client examples...")

    async with create_client(ClientConfig(url="http://localhost:8123")) as client:
        ping = await client.ping()
        if not ping.ok:
            logger.error(f"Server is not reachable: {ping.error}")
            return

        await query_demo(client)
        await insert_demo(client)
        await error_demo(client)

    logger.info("All examples completed successfully!")


if __name__ == "__main__":
    asyncio.run(main())
