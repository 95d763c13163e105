import threading
import time
from typing import Callable, Optional

from deep_pagination.config import ScenarioConfig


class ScenarioRun:
    """
    Shared state of one target scenario: the soft deadline and how many of
    its virtual users have spent their iteration budget.

    The deadline only stops new walks and new pages; requests already in
    flight finish under the transport's own timeout.
    """

    def __init__(self, config: ScenarioConfig, clock: Callable[[], float] = time.monotonic):
        self.config = config
        self.clock = clock
        self.lock = threading.Lock()
        self.started_at: Optional[float] = None
        self.users_finished = 0

    @property
    def name(self):
        return self.config.target.name

    def start(self):
        with self.lock:
            if self.started_at is None:
                self.started_at = self.clock()

    def reset(self):
        with self.lock:
            self.started_at = None
            self.users_finished = 0

    @property
    def deadline(self) -> Optional[float]:
        if self.started_at is None:
            return None
        return self.started_at + self.config.max_duration_seconds

    def has_time_left(self) -> bool:
        self.start()
        return self.clock() < self.deadline

    def should_start_walk(self, iterations_done: int) -> bool:
        if iterations_done >= self.config.iterations_per_vu:
            return False
        return self.has_time_left()

    def finish_user(self) -> int:
        """Mark one virtual user done; returns how many are still running."""
        with self.lock:
            self.users_finished = min(self.users_finished + 1, self.config.virtual_users)
            return self.config.virtual_users - self.users_finished

    @property
    def complete(self) -> bool:
        with self.lock:
            return self.users_finished >= self.config.virtual_users
