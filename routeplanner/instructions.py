from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Protocol

from .geodesy import compass_octant

COMPASS_PHRASES: tuple[str, ...] = (
    "north",
    "northeast",
    "east",
    "southeast",
    "south",
    "southwest",
    "west",
    "northwest",
)
ROAD_PHRASES: tuple[str, ...] = (
    "along the main road",
    "along the service road",
    "along the footpath",
    "along the side street",
)
MANEUVER_PHRASES: tuple[str, ...] = (
    "continue straight",
    "turn left",
    "turn right",
    "make a U-turn",
)


@dataclass(frozen=True)
class StepContext:
    index: int
    count: int
    start_name: str
    end_name: str
    heading_deg: float
    turn_deg: float | None = None
    waypoint_name: str | None = None

    @property
    def is_first(self) -> bool:
        return self.index == 0

    @property
    def is_last(self) -> bool:
        return self.index == self.count - 1


class InstructionWriter(Protocol):
    def write(self, context: StepContext) -> str: ...


def compose_instruction(context: StepContext, *, direction: str, maneuver: str, road: str | None = None) -> str:
    body = f"head {direction}"
    if road and not context.is_first and not context.is_last:
        body += f" {road}"
    body += f" and {maneuver}"
    parts: list[str] = []
    if context.is_first:
        parts.append(f"Depart from {context.start_name}")
    elif context.waypoint_name:
        parts.append(f"Pass {context.waypoint_name}")
    parts.append(body)
    if context.is_last:
        parts.append(f"arrive at {context.end_name}")
    text = ", ".join(parts)
    return text[0].upper() + text[1:]


class RandomPhraseWriter:
    """Cosmetic wording with pseudo-randomly chosen direction and maneuver."""

    def __init__(self, rng: random.Random | None = None) -> None:
        self._rng = rng or random.Random()

    def write(self, context: StepContext) -> str:
        return compose_instruction(
            context,
            direction=self._rng.choice(COMPASS_PHRASES),
            maneuver=self._rng.choice(MANEUVER_PHRASES),
            road=self._rng.choice(ROAD_PHRASES),
        )


def maneuver_for_turn(turn_deg: float | None) -> str:
    if turn_deg is None:
        return "continue straight"
    magnitude = abs(turn_deg)
    side = "right" if turn_deg > 0 else "left"
    if magnitude <= 20.0:
        return "continue straight"
    if magnitude <= 60.0:
        return f"bear {side}"
    if magnitude <= 150.0:
        return f"turn {side}"
    return "make a U-turn"


class BearingPhraseWriter:
    """Deterministic wording derived from the segment heading and turn angle."""

    def write(self, context: StepContext) -> str:
        return compose_instruction(
            context,
            direction=COMPASS_PHRASES[compass_octant(context.heading_deg)],
            maneuver=maneuver_for_turn(context.turn_deg),
        )


def writer_for_style(style: str, *, rng: random.Random | None = None) -> InstructionWriter:
    if style == "bearing":
        return BearingPhraseWriter()
    return RandomPhraseWriter(rng)
