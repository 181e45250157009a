# run.py
from __future__ import annotations

import argparse
import logging
import sys
from typing import List, Optional

from modcore import ModifierEngine, ModcoreError
from modcore.dice import Dice
from modcore.host import Actor
from modcore.loader import load_roll_data
from modcore.log import configure_logging
from modcore.models import EffectType, StackResult

logger = logging.getLogger("modcore.run")


def print_breakdown(result: StackResult) -> None:
    for entry in result.entries:
        mark = "+" if entry.applied else "x"
        print(f"  [{mark}] {entry.message}", flush=True)
    print(f"Total: {result.formula}", flush=True)


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Resolve stacked modifiers for one statistic.")
    parser.add_argument("modifiers", help="JSON file with a modifier list")
    parser.add_argument("--effect", required=True, choices=EffectType.values(), help="Effect type to resolve")
    parser.add_argument("--value", default=None, help="Specific value affected (skill id, save id, ...)")
    parser.add_argument("--data", default=None, help="JSON file with roll data for @references")
    parser.add_argument("--damage-type", action="append", default=None, help="Damage type of the roll (repeatable)")
    parser.add_argument("--roll", default=None, metavar="BASE", help="Roll BASE (e.g. 1d20) plus the modifiers")
    parser.add_argument("--seed", type=int, default=None, help="Seed for deterministic rolls")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    args = parser.parse_args(argv)

    configure_logging(verbose=args.verbose)

    engine = ModifierEngine(seed=args.seed)
    try:
        roll_data = load_roll_data(args.data)
        # A stand-in actor carries the roll data so each modifier's max sees it.
        holder = Actor(id="cli", name="Command line", system=dict(roll_data))
        mods = engine.load_modifiers(args.modifiers, parent=holder)
        result = engine.resolve(
            mods,
            args.effect,
            args.value,
            damage_types=args.damage_type,
        )
        print(f"{args.effect}{'/' + args.value if args.value else ''}:", flush=True)
        print_breakdown(result)

        if args.roll:
            rolled = engine.roll(args.roll, result, roll_data)
            print(Dice.format_roll(rolled), flush=True)
    except ModcoreError as e:
        logger.error("%s", e)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
