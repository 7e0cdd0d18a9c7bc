from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from pygame.math import Vector2

from ..core.agent import Ant
from ..core.context import ForagingContext
from .escape import check_trapped, tick_escape
from .foraging import DeliveryOutcome, deposit_trail, record_path, try_deliver, try_pickup
from .lifecycle import apply_aging
from .steering import move, steer


@dataclass(slots=True)
class AntTickReport:
    direction: Vector2
    picked_up: bool = False
    delivery: Optional[DeliveryOutcome] = None
    died: bool = False
    entered_escape: bool = False


def update_ant(ant: Ant, ctx: ForagingContext) -> AntTickReport:
    """Run one tick of sensing, steering, movement and the food transaction.

    The ant reads and writes the shared field in ``ctx`` immediately, so ants
    updated later in the same tick see this ant's deposit.
    """
    if not ant.alive:
        return AntTickReport(direction=Vector2())
    if apply_aging(ant, ctx.config):
        return AntTickReport(direction=Vector2(), died=True)

    tick_escape(ant)
    ant.trip_ticks += 1

    direction = steer(ant, ctx)
    deposit_trail(ant, ctx)
    move(ant, direction, ctx)

    entered = check_trapped(ant, ctx)
    record_path(ant, ctx.config.ant)

    report = AntTickReport(direction=direction, entered_escape=entered)
    if ant.carrying:
        report.delivery = try_deliver(ant, ctx)
    else:
        report.picked_up = try_pickup(ant, ctx) is not None
    return report
