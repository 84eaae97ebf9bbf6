#!/usr/bin/env python3
"""
Interactive Robot Test Script.

This script demonstrates the high-level Robot API.
Run it with the serial port of the servo bus, e.g.:

    python examples/try_robot.py /dev/ttyUSB0
"""

import sys
import asyncio
import logging
from pathlib import Path

# Add SDK to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from servo_sdk import Robot, RobotConfig, TransportError, raw_to_degrees

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(levelname)s - %(message)s'
)


async def run(port: str):
    robot = Robot(config=RobotConfig(port=port))

    print(f"Connecting to {port}...")
    try:
        await robot.connect()
    except TransportError as e:
        print(f"Failed to connect! {e}")
        return

    try:
        print("\nChecking motors...")
        results = await robot.check_all_motors()
        for device_id, result in results.items():
            print(f"  {device_id}: {'OK' if result.ok else result.error}")

        print("\nPositions:")
        positions = await robot.get_all_positions()
        for device_id, position in zip(robot.config.motor_ids, positions):
            print(f"  {device_id}: {position} ({raw_to_degrees(position):.1f} deg)")

        print("\nEnabling torque...")
        torque = await robot.enable_all()
        if not torque.ok:
            print(f"Torque failed on {list(torque.failed)}")

        first = robot.config.motor_ids[0]
        start = await robot.get_position(first)
        print(f"\nNudging motor {first} and back...")
        await robot.set_position_limited(first, start + 256)
        await robot.sleep(500)
        await robot.move_smooth(first, start, 1000)

    finally:
        print("\nReleasing motors and disconnecting...")
        await robot.stop()
        await robot.disconnect()
        print("Done.")


def main():
    if len(sys.argv) < 2:
        print(f"Usage: {sys.argv[0]} PORT")
        sys.exit(1)
    try:
        asyncio.run(run(sys.argv[1]))
    except KeyboardInterrupt:
        print("\nInterrupted by user.")


if __name__ == "__main__":
    main()
