""" Timed interrupts: a race between the player acting and a timer lapsing.

Whichever resolves first wins. Acting in time applies the interrupt's
consequence and leads to its target node. The timer lapsing leads to the
declared missed node, just like a choice resolution. Cancelling leaves state
exactly as it was.

Time comes from an injectable Clock so tests never sleep.
"""

import abc
import enum
import time
import logging
from typing import Callable, Optional

from terminus import util
from terminus.dialog import Interrupt
from terminus.errors import InterruptStateError
from terminus.state import GameState, apply_change


class Clock(abc.ABC):
    @abc.abstractmethod
    def now(self) -> float: ...

class MonotonicClock(Clock):
    def now(self) -> float:
        return time.monotonic()

class ManualClock(Clock):
    """ A clock that only moves when told to. """
    def __init__(self, start:float=0.) -> None:
        self.t = start

    def now(self) -> float:
        return self.t

    def advance(self, dt:float) -> float:
        if dt < 0:
            raise ValueError(f'cannot advance clock backwards by {dt}')
        self.t += dt
        return self.t


class InterruptOutcome(enum.Enum):
    PENDING = enum.auto()
    ACTED = enum.auto()
    MISSED = enum.auto()
    CANCELLED = enum.auto()


class InterruptRace:
    def __init__(
            self,
            interrupt:Interrupt,
            state:GameState,
            clock:Clock,
            character_id:Optional[str]=None,
            on_resolve:Optional[Callable[["InterruptRace"], None]]=None,
    ) -> None:
        self.logger = logging.getLogger(util.fullname(self))
        self.interrupt = interrupt
        self.state = state
        self.clock = clock
        self.character_id = character_id
        self.on_resolve = on_resolve

        self.started_at = clock.now()
        self.deadline = self.started_at + interrupt.duration
        self.outcome = InterruptOutcome.PENDING
        self.next_node_id:Optional[str] = None

    @property
    def resolved(self) -> bool:
        return self.outcome != InterruptOutcome.PENDING

    def remaining(self) -> float:
        return max(0., self.deadline - self.clock.now())

    def _check_pending(self) -> None:
        if self.resolved:
            raise InterruptStateError(f'interrupt already resolved as {self.outcome.name}')

    def _resolve(self, outcome:InterruptOutcome, next_node_id:Optional[str]) -> None:
        self.outcome = outcome
        self.next_node_id = next_node_id
        self.logger.debug(f'interrupt resolved {outcome.name} -> {next_node_id}')
        if self.on_resolve is not None:
            self.on_resolve(self)

    def poll(self) -> Optional[str]:
        """ Resolves to the missed node if the timer has lapsed. Returns the
        next node id once resolved, None while still pending. """
        if self.outcome == InterruptOutcome.CANCELLED:
            raise InterruptStateError("interrupt was cancelled")
        if not self.resolved and self.clock.now() >= self.deadline:
            self._resolve(InterruptOutcome.MISSED, self.interrupt.missed_node_id)
        return self.next_node_id

    def act(self) -> str:
        """ The player acts. If the timer already lapsed the timer wins and
        the missed node comes back instead. """
        self._check_pending()
        if self.clock.now() >= self.deadline:
            self._resolve(InterruptOutcome.MISSED, self.interrupt.missed_node_id)
        else:
            if self.interrupt.consequence is not None:
                apply_change(self.state, self.interrupt.consequence, self.character_id)
            self._resolve(InterruptOutcome.ACTED, self.interrupt.target_node_id)
        assert self.next_node_id is not None
        return self.next_node_id

    def cancel(self) -> None:
        """ Abandons the race without touching state. Cancelling a resolved
        race is an error. """
        self._check_pending()
        self.outcome = InterruptOutcome.CANCELLED
        self.logger.debug("interrupt cancelled")
