#!/usr/bin/env python3
"""
Simple demo of chainlog.

Appends a few values to a file-backed log, then reads them back by
identifier, by index range, and in reverse.
"""

import asyncio
import sys
import tempfile

from chainlog import FileStore, NotFoundError, SequenceLog
from chainlog.utils.logging import configure_logging


async def demo(data_dir: str) -> None:
    async with SequenceLog(FileStore(directory=data_dir)) as log:
        print("\n[1] Appending 10 messages...")
        identifiers = []
        for i in range(10):
            identifier = await log.append({"id": i, "data": f"Hello from chainlog! Message #{i}"})
            identifiers.append(identifier)
            print(f"  appended index={i} id={identifier[:12]}...")

        print("\n[2] Looking up the first message by identifier...")
        entry = await log.get(identifiers[0])
        print(f"  index={entry.index} value={entry.value}")

        print("\n[3] Reading indices 3 through 6...")
        async for entry in log.read_from(3, 6):
            print(f"  index={entry.index} value={entry.value['data']}")

        print("\n[4] Walking backwards from the newest entry...")
        async for entry in log.read_backward():
            print(f"  index={entry.index}")

        print("\n[5] Looking up an unknown identifier...")
        try:
            await log.get("does-not-exist")
        except NotFoundError as e:
            print(f"  {e}")

        print(f"\nCurrent index: {await log.get_current_index()}")


def main():
    print("=" * 60)
    print("chainlog - Simple Append/Read Demo")
    print("=" * 60)

    configure_logging(log_level="WARNING", log_format="console")

    with tempfile.TemporaryDirectory() as tmpdir:
        asyncio.run(demo(tmpdir))

    return 0


if __name__ == "__main__":
    sys.exit(main())
