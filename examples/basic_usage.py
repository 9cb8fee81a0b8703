"""
Basic usage example for shiplog.

Buffers a few log lines and ships them to a collector listening on
http://localhost:3000 (POST /api/logs). Lines are sent every 10 entries,
every 5 seconds, and once more on close.
"""

import sys
from pathlib import Path

# Add src to path for development
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from shiplog import LogShipper


def main() -> None:
    shipper = LogShipper("http://localhost:3000", "example-app")
    shipper.initialize(10)

    shipper.log("INFO", "trace-123", "Application started")
    shipper.log("DEBUG", None, "Loaded configuration")
    shipper.log("ERROR", "trace-123", "Traceback (most recent call last):\n  ...")

    # Wait for the current batch instead of relying on the timer
    result = shipper.flush().result(timeout=10)
    print(f"flush result: {result.value}")

    print(f"close result: {shipper.close().value}")


if __name__ == "__main__":
    main()
