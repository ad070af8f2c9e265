"""Live poll scheduler.

One ``LivePollScheduler`` per game fetches the provider snapshot on a fixed
interval and hands it to the processor. Transient and validation failures
are retried on the next tick; an unknown game, a broken ledger or a final
snapshot ends polling.
"""
import threading
from enum import Enum
from typing import Callable, Dict, Optional

from flask import has_app_context

from squares import db, socketio
from squares.models import Game
from squares.services.scoring.errors import (
    ConcurrencyInvariantError, NotFoundError, TransientProviderError, ValidationError,
)
from squares.services.scoring.processor import sync_game

# Adaptive intervals (seconds) for the batch poller
POLLING_INTERVALS = {
    'in_progress': 15,
    'halftime': 30,
    'scheduled': 5 * 60,
    'final': 0,
}


def get_polling_interval(status: str, is_halftime: bool = False) -> int:
    if status == 'final':
        return POLLING_INTERVALS['final']
    if status == 'in_progress':
        return POLLING_INTERVALS['halftime'] if is_halftime else POLLING_INTERVALS['in_progress']
    return POLLING_INTERVALS['scheduled']


class SchedulerState(str, Enum):
    IDLE = 'idle'
    POLLING = 'polling'


class LivePollScheduler:
    """Polls the score source for one game on a fixed interval.

    - ``start()`` fetches immediately, then repeats every ``interval`` seconds
    - ``stop()`` stops issuing fetches; one already running completes
    - A tick that fires while a fetch is in flight is skipped
    - Stops itself once a final snapshot has been processed, on an unknown
      game, or on a broken ledger; provider hiccups just wait for the next tick
    """

    def __init__(self, app, game_id: int, interval: Optional[int] = None,
                 spawn: Optional[Callable] = None, sleep: Optional[Callable] = None):
        self.app = app
        self.game_id = game_id
        self.interval = int(interval if interval is not None else app.config.get('POLL_INTERVAL_SEC', 30))
        self._spawn = spawn or socketio.start_background_task
        self._sleep = sleep or socketio.sleep
        self._lock = threading.Lock()
        self._in_flight = False
        self._generation = 0
        self.state = SchedulerState.IDLE
        self.last_result = None
        self.last_error: Optional[str] = None

    @property
    def is_polling(self) -> bool:
        return self.state == SchedulerState.POLLING

    def start(self) -> bool:
        if self.is_polling:
            return False
        self.state = SchedulerState.POLLING
        self._generation += 1
        generation = self._generation
        self.app.logger.info(f"[poll-start] game={self.game_id} interval={self.interval}s")
        try:
            self.tick()
        except Exception:
            self.stop(reason='start_failed')
            raise
        if self._is_current(generation):
            self._spawn_loop(generation)
        return True

    def stop(self, reason: str = 'stopped') -> None:
        if self.state == SchedulerState.IDLE:
            return
        self.state = SchedulerState.IDLE
        self._generation += 1
        self.app.logger.info(f"[poll-stop] game={self.game_id} reason={reason}")

    def _is_current(self, generation: int) -> bool:
        return self.is_polling and generation == self._generation

    def _spawn_loop(self, generation: int) -> None:
        if self.app.config.get('TESTING') and not self.app.config.get('ENABLE_SCHEDULER_IN_TESTS'):
            return
        self._spawn(self._run, generation)

    def _run(self, generation: int) -> None:
        while self._is_current(generation):
            self._wait(generation)
            if not self._is_current(generation):
                return
            self.tick()

    def _wait(self, generation: int) -> None:
        # heartbeat sleep loop if enabled
        try:
            hb = int(self.app.config.get('POLL_HEARTBEAT_SEC', 0))
        except (TypeError, ValueError):
            hb = 0
        if hb <= 0:
            self._sleep(self.interval)
            return
        slept = 0
        while slept < self.interval and self._is_current(generation):
            step = min(hb, self.interval - slept)
            self._sleep(step)
            slept += step
            self.app.logger.info(
                f"[poll-heartbeat] game={self.game_id} remaining={max(0, self.interval - slept)}s"
            )

    def tick(self):
        with self._lock:
            if self._in_flight:
                self.app.logger.info(f"[poll-skip] game={self.game_id} fetch already in flight")
                return None
            self._in_flight = True
        try:
            if has_app_context():
                return self._fetch_and_process()
            with self.app.app_context():
                return self._fetch_and_process()
        finally:
            with self._lock:
                self._in_flight = False

    def _fetch_and_process(self):
        try:
            game = db.session.get(Game, self.game_id)
            if game is None:
                raise NotFoundError(f'Game {self.game_id} not found', game_id=self.game_id)
            result = sync_game(game)
        except (TransientProviderError, ValidationError) as exc:
            # provider hiccup or malformed event; keep the last good state and retry
            self.last_error = exc.message
            self.app.logger.warning(f"[poll-retry] game={self.game_id} {exc.message}")
            return None
        except NotFoundError as exc:
            self.last_error = exc.message
            self.app.logger.warning(f"[poll-abort] game={self.game_id} {exc.message}")
            self.stop(reason='not_found')
            return None
        except ConcurrencyInvariantError as exc:
            self.last_error = exc.message
            self.app.logger.error(f"[poll-abort] game={self.game_id} ledger invariant: {exc.message}")
            self.stop(reason='ledger_invariant')
            return None
        except Exception as exc:
            db.session.rollback()
            self.last_error = str(exc)
            self.app.logger.exception(f"[poll-retry] game={self.game_id} unexpected failure")
            return None

        self.last_result = result
        if result.rejected:
            self.last_error = result.rejected
        else:
            self.last_error = None
        if result.terminal:
            self.stop(reason='final')
        return result

    def to_dict(self):
        return {
            'game_id': self.game_id,
            'state': self.state.value,
            'interval': self.interval,
            'last_error': self.last_error,
            'last_result': self.last_result.to_dict() if self.last_result else None,
        }


_schedulers: Dict[int, LivePollScheduler] = {}


def get_scheduler(game_id: int) -> Optional[LivePollScheduler]:
    return _schedulers.get(game_id)


def start_polling(app, game_id: int, **kwargs) -> LivePollScheduler:
    scheduler = _schedulers.get(game_id)
    if scheduler is None or scheduler.app is not app:
        scheduler = LivePollScheduler(app, game_id, **kwargs)
        _schedulers[game_id] = scheduler
    scheduler.start()
    return scheduler


def stop_polling(game_id: int) -> bool:
    scheduler = _schedulers.get(game_id)
    if scheduler is None or not scheduler.is_polling:
        return False
    scheduler.stop()
    return True
