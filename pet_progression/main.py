"""Command-line replay of daily health records through the progression pipeline

Usage:
    python -m pet_progression.main days.json [--seed 7] [--active-steps 8000]

days.json holds a list of records:
    [{"date": "2024-01-15", "steps": 9000, "sleep_hours": 7.5, "hrv": 48,
      "met_criteria": true}, ...]
met_criteria is optional; without it a day qualifies when steps reach
--active-steps.
"""
import argparse
import asyncio
import json
import logging
import random
from datetime import datetime, time
from pathlib import Path
from typing import Dict, List, Optional

from pydantic import TypeAdapter

from pet_progression.config import LOG_LEVEL
from pet_progression.exceptions import ProgressionError, ValidationError
from pet_progression.gamification.notifications import CollectingNotifier
from pet_progression.models.health import DailyHealthRecord
from pet_progression.services.container import ProgressionContainer, create_store
from pet_progression.utils.datetime_helpers import UTC, get_week_start

# Configure logging
logging.basicConfig(
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    level=getattr(logging, LOG_LEVEL.upper(), logging.INFO)
)

logger = logging.getLogger(__name__)

DEFAULT_ACTIVE_STEPS = 8000


class ReplayClock:
    """Clock pinned to midday of the day being replayed"""

    def __init__(self):
        self.current = datetime.now(UTC)

    def set_day(self, day) -> None:
        self.current = datetime.combine(day, time(12, 0), tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.current


def load_days(path: Path, active_steps: int = DEFAULT_ACTIVE_STEPS) -> List[Dict]:
    """
    Read and validate the replay file

    Returns:
        Entries sorted by date: {"record": DailyHealthRecord, "met_criteria": bool}

    Raises:
        ValidationError: If the file is not a list of valid daily records
    """
    try:
        raw = json.loads(path.read_text())
    except (OSError, json.JSONDecodeError) as e:
        raise ValidationError(
            message=f"Cannot read replay file {path}: {e}",
            field="path",
            value=str(path),
            cause=e
        ) from e

    if not isinstance(raw, list):
        raise ValidationError(message="Replay file must contain a list", field="days", value=type(raw).__name__)

    try:
        records = TypeAdapter(List[DailyHealthRecord]).validate_python(raw)
    except ValueError as e:
        raise ValidationError(message=f"Invalid daily record: {e}", field="days", cause=e) from e

    entries = []
    for entry, record in zip(raw, records):
        met = entry.get("met_criteria")
        entries.append({
            "record": record,
            "met_criteria": bool(met) if met is not None else record.steps >= active_steps
        })
    return sorted(entries, key=lambda e: e["record"].date)


async def replay(days: List[Dict], seed: Optional[int] = None) -> Dict:
    """
    Feed each day through a fresh progression pipeline

    Returns:
        Summary with the final streak, earned achievements, owned cosmetics,
        render layers and bonus points
    """
    clock = ReplayClock()
    notifier = CollectingNotifier()
    container = ProgressionContainer(
        store=create_store(),
        notifier=notifier,
        clock=clock,
        rng=random.Random(seed)
    )
    service = container.progression_service

    week: List[DailyHealthRecord] = []
    try:
        await service.initialize()

        for entry in days:
            record = entry["record"]
            clock.set_day(record.date)

            if week and get_week_start(week[0].date) != get_week_start(record.date):
                week = []

            update = await service.handle_health_update(
                record, entry["met_criteria"], week_data=week, day=record.date
            )
            week.append(record)

            if update.failed_steps:
                logger.warning(f"{record.date}: steps failed: {', '.join(update.failed_steps)}")

        streak = await container.streaks.get_streak_state()
        earned = await container.achievements.get_earned_achievements()
        inventory = await container.cosmetics.get_inventory()
        layers = await container.cosmetics.get_cosmetic_layers()

        return {
            "current_streak": streak.current_streak,
            "longest_streak": streak.longest_streak,
            "achievements": [ua.id for ua in earned],
            "cosmetics": [item.id for item in inventory.items],
            "render_layers": [layer.cosmetic_id for layer in layers],
            "bonus_points": await container.challenges.get_total_bonus_points(),
            "unlock_events": len(notifier.events),
        }
    finally:
        close = getattr(container.store, "close", None)
        if close is not None:
            await close()


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point"""
    parser = argparse.ArgumentParser(description="Replay daily health records through the progression engine")
    parser.add_argument("days_file", type=Path, help="JSON list of daily records")
    parser.add_argument("--seed", type=int, default=None, help="Seed for challenge selection")
    parser.add_argument(
        "--active-steps",
        type=int,
        default=DEFAULT_ACTIVE_STEPS,
        help="Steps that qualify a day when met_criteria is absent"
    )
    args = parser.parse_args(argv)

    try:
        days = load_days(args.days_file, args.active_steps)
        logger.info(f"Replaying {len(days)} days from {args.days_file}")
        summary = asyncio.run(replay(days, seed=args.seed))
    except ProgressionError as e:
        logger.error(f"Replay failed: {e.message}")
        return 1

    print(json.dumps(summary, indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
