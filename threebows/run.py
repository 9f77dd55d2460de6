"""
CLI host for the Three Bows experience.

Usage:
    python3 threebows/run.py --birth-date YYYY-MM-DD [--birth-time HH:MM] \
        [--camera INDEX] [--bow-timeout SECONDS] [--manual] [--chart-only]
    python3 threebows/run.py --last
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from threebows.bazi import compute_chart
from threebows.bow_detector import BowDetector
from threebows.capture import CameraSource, PoseNoseEstimator
from threebows.fortune import FortuneError, get_fortune
from threebows.reading import load_last_reading, save_last_reading

BOWS_NEEDED = 3


def print_chart(chart):
    print("Four Pillars:")
    for pos, text in chart.describe().items():
        print(f"  {pos.capitalize():6s}: {text}")


def print_fortune(fortune: dict):
    print()
    print(f"  {fortune['overall']}")
    print()
    print(f"Zodiac:        {fortune['zodiac_element']} {fortune['zodiac_animal']}")
    print(f"Personality:   {fortune['personality']}")
    five = fortune["five_elements"]
    print(f"Five Elements: {five['dominant']}. {five['reading']}")
    print(f"Wealth:        {fortune['wealth']}")
    print(f"Relationships: {fortune['relationships']}")
    comp = fortune["compatibility"]
    print(f"Compatibility: {comp['reading']}")
    print(f"  Harmonious:  {', '.join(comp['harmonious'])}")
    print(f"  Challenging: {', '.join(comp['challenging'])}")
    print(f"Lucky numbers:    {', '.join(str(n) for n in fortune['lucky_numbers'])}")
    print(f"Lucky colors:     {', '.join(fortune['lucky_colors'])}")
    print(f"Lucky directions: {', '.join(fortune['lucky_directions'])}")


async def collect_bows(camera_index=0, bow_timeout=60.0, manual=False) -> int:
    """
    Run the bow detector until three bows are counted.

    Falls back to pressing Enter as the bow trigger when the camera or the
    pose model is unavailable, or when no bows arrive before the timeout.
    """
    done = asyncio.Event()

    def on_bow(count):
        print(f"  Bow {count} of {BOWS_NEEDED}")
        if count >= BOWS_NEEDED:
            done.set()

    detector = BowDetector(
        CameraSource(camera_index),
        PoseNoseEstimator(),
        on_bow=on_bow,
        on_calibrated=lambda: print("Ready. Bow slowly and deeply three times."),
    )

    started = False if manual else await detector.start()
    if started:
        print("Calibrating... hold still for a moment.")
        try:
            await asyncio.wait_for(done.wait(), timeout=bow_timeout)
        except asyncio.TimeoutError:
            print("No bows seen. Switching to manual bows.")
        finally:
            detector.stop()
    elif not manual:
        print("Camera unavailable. Press Enter for each bow.")

    while detector.bow_count < BOWS_NEEDED:
        await asyncio.to_thread(input, "Press Enter to bow... ")
        if not detector.manual_bow():
            print("  Too quick. Bow slowly.")

    return detector.bow_count


def main():
    parser = argparse.ArgumentParser(description="Bow three times and receive a Ba Zi fortune.")
    parser.add_argument("--birth-date", dest="birth_date", help="YYYY-MM-DD")
    parser.add_argument("--birth-time", dest="birth_time", default=None, help="HH:MM (24h), optional")
    parser.add_argument("--camera", type=int, default=0, help="Camera index")
    parser.add_argument("--bow-timeout", dest="bow_timeout", type=float, default=60.0,
                        help="Seconds to wait for detected bows before manual fallback")
    parser.add_argument("--manual", action="store_true", help="Skip the camera, bow with Enter")
    parser.add_argument("--chart-only", dest="chart_only", action="store_true",
                        help="Print the Four Pillars and exit")
    parser.add_argument("--last", action="store_true", help="Show the last saved reading")
    parser.add_argument("--verbose", "-v", action="store_true")

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.last:
        saved = load_last_reading()
        if saved is None:
            print("No saved reading yet.")
            return 1
        print(f"Born {saved['birth_date']} {saved['birth_time'] or '(time unknown)'}")
        print("Four Pillars:")
        for pos, p in saved["chart"].items():
            print(f"  {pos.capitalize():6s}: {p['description'] if p else 'Not provided'}")
        print_fortune(saved["fortune"])
        return 0

    if not args.birth_date:
        parser.error("--birth-date is required")

    try:
        chart = compute_chart(args.birth_date, args.birth_time)
    except ValueError as err:
        parser.error(str(err))

    print_chart(chart)
    if args.chart_only:
        return 0

    print()
    asyncio.run(collect_bows(args.camera, args.bow_timeout, args.manual))

    print("\nConsulting the oracle...")
    try:
        fortune = get_fortune(args.birth_date, args.birth_time, chart)
    except FortuneError as err:
        print(err)
        return 1

    print_fortune(fortune.model_dump())
    path = save_last_reading(args.birth_date, args.birth_time, chart, fortune)
    print(f"\nSaved to {path}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
