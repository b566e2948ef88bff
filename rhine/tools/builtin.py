"""
Builtin tools available to the CLI: a dice roller and a clock.
"""

import random
import re
from datetime import datetime
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, Field

from rhine.tools.base import ToolDefinition
from rhine.tools.registry import ToolRegistry

_DICE_PATTERN = re.compile(r"^\s*(\d*)\s*[dD]\s*(\d+)\s*(?:([+-])\s*(\d+))?\s*$")

MAX_DICE = 100
MAX_SIDES = 1000


class RollDiceArgs(BaseModel):
    notation: str = Field(description="Dice notation, e.g. '2d6+3' or 'd20'")


class CurrentTimeArgs(BaseModel):
    timezone: str = Field(default="UTC", description="IANA timezone name, e.g. 'Europe/Berlin'")


def roll_dice(args: RollDiceArgs, rng: random.Random | None = None) -> dict:
    """Roll dice given in NdM+K notation."""
    match = _DICE_PATTERN.match(args.notation)
    if match is None:
        raise ValueError(f"Invalid dice notation: {args.notation!r}")

    count = int(match.group(1) or 1)
    sides = int(match.group(2))
    if not 1 <= count <= MAX_DICE:
        raise ValueError(f"Dice count must be between 1 and {MAX_DICE}")
    if not 2 <= sides <= MAX_SIDES:
        raise ValueError(f"Dice sides must be between 2 and {MAX_SIDES}")

    modifier = int(match.group(4) or 0)
    if match.group(3) == "-":
        modifier = -modifier

    rng = rng or random.Random()
    rolls = [rng.randint(1, sides) for _ in range(count)]
    return {
        "notation": args.notation.strip(),
        "rolls": rolls,
        "modifier": modifier,
        "total": sum(rolls) + modifier,
    }


def current_time(args: CurrentTimeArgs) -> dict:
    """Current date and time in the given timezone."""
    try:
        zone = ZoneInfo(args.timezone)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ValueError(f"Unknown timezone: {args.timezone!r}") from e
    now = datetime.now(zone)
    return {"timezone": args.timezone, "iso": now.isoformat(timespec="seconds")}


BUILTIN_TOOLS = [
    ToolDefinition(
        name="roll_dice",
        description="Roll dice using standard notation such as 2d6+3",
        func=roll_dice,
        args_model=RollDiceArgs,
    ),
    ToolDefinition(
        name="current_time",
        description="Get the current date and time in a timezone",
        func=current_time,
        args_model=CurrentTimeArgs,
    ),
]


def register_builtin_tools(registry: ToolRegistry) -> ToolRegistry:
    """Register every builtin tool on ``registry`` and return it."""
    for definition in BUILTIN_TOOLS:
        if definition.name not in registry:
            registry.register(definition)
    return registry
