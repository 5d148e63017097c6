"""
Sweep Runner Script

Manually trigger the auto-completion sweep, e.g. from cron when the API
server runs with SCHEDULER_ENABLED=false.
Usage: python -m scheduling_engine.scripts.run_sweep [--grace-minutes N] [--repeat N --interval SECONDS]
"""
import asyncio
import argparse
import logging
import sys

from scheduling_engine.config import get_settings
from scheduling_engine.database import dispose_engine
from scheduling_engine.dependencies import build_session_service


def print_summary(summary, run: int):
    print(f"\n=== Sweep #{run} ===")
    if summary.skipped:
        print("  Skipped: another sweep is still running")
        return
    print(f"  Completed: {summary.completed}")
    print(f"  No-show:   {summary.no_show}")
    print(f"  Failed:    {summary.failed}")
    print(f"  Duration:  {summary.duration_ms:.1f}ms")


async def run_sweeps(grace_minutes=None, repeat: int = 1, interval: float = 0) -> int:
    """Run the sweep `repeat` times; returns the total failure count"""
    settings = get_settings()
    if grace_minutes is not None:
        settings = settings.model_copy(update={"no_show_grace_minutes": grace_minutes})

    service = build_session_service(settings)
    failed = 0
    try:
        for run in range(1, repeat + 1):
            summary = await service.run_sweep_once()
            print_summary(summary, run)
            failed += summary.failed
            if run < repeat:
                await asyncio.sleep(interval)
    finally:
        await dispose_engine()

    return failed


async def main():
    """CLI entry point"""
    parser = argparse.ArgumentParser(description="Advance elapsed confirmed sessions")
    parser.add_argument(
        "--grace-minutes",
        "-g",
        type=int,
        help="Override the no-show grace period (default: NO_SHOW_GRACE_MINUTES)"
    )
    parser.add_argument(
        "--repeat",
        "-r",
        type=int,
        default=1,
        help="Number of sweeps to run (default: 1)"
    )
    parser.add_argument(
        "--interval",
        "-i",
        type=float,
        default=60.0,
        help="Seconds between repeated sweeps (default: 60)"
    )

    args = parser.parse_args()

    if args.repeat < 1:
        print("ERROR: --repeat must be at least 1")
        parser.print_help()
        sys.exit(1)

    failed = await run_sweeps(args.grace_minutes, args.repeat, args.interval)

    if failed:
        print(f"\n⚠ {failed} session(s) failed; see log for details")
        sys.exit(2)
    print("\n✅ Sweep complete!")


if __name__ == "__main__":
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    asyncio.run(main())
