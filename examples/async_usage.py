"""
Asyncio usage example for shiplog.

The coordinator runs on the application's own event loop; ``log()`` stays a
plain synchronous call so it can be used from any coroutine without awaiting.
"""

import asyncio
import sys
from pathlib import Path

# Add src to path for development
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from shiplog import AsyncLogShipper, Settings
from shiplog.core.settings import CoreSettings


async def main() -> None:
    settings = Settings(core=CoreSettings(flush_interval_seconds=1.0, enable_metrics=True))

    async with AsyncLogShipper("http://localhost:3000", "async-example", settings=settings) as shipper:
        await shipper.initialize(5)
        for i in range(12):
            shipper.log("INFO", f"job-{i}", f"processed item {i}")
            await asyncio.sleep(0.1)

        print(f"flush result: {(await shipper.flush()).value}")
        if shipper.metrics is not None:
            print(await shipper.metrics.snapshot())


if __name__ == "__main__":
    asyncio.run(main())
