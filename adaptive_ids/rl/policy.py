from __future__ import annotations

import logging
import random
import threading
from dataclasses import dataclass
from typing import Protocol

from adaptive_ids.models.events import ACTIONS, Action
from adaptive_ids.rl.state import State

logger = logging.getLogger(__name__)

TableKey = tuple[tuple[int, ...], Action]


class RandomSource(Protocol):
    def random(self) -> float: ...

    def choice(self, seq): ...


@dataclass(slots=True)
class PolicyConfig:
    alpha: float = 0.1
    gamma: float = 0.9
    epsilon: float = 0.3
    bins: int = 10
    seed: int | None = None

    def __post_init__(self) -> None:
        if not 0.0 < self.alpha <= 1.0:
            raise ValueError(f"alpha must be in (0, 1], got {self.alpha}")
        if not 0.0 <= self.gamma < 1.0:
            raise ValueError(f"gamma must be in [0, 1), got {self.gamma}")
        if not 0.0 <= self.epsilon <= 1.0:
            raise ValueError(f"epsilon must be in [0, 1], got {self.epsilon}")
        if self.bins < 1:
            raise ValueError(f"bins must be >= 1, got {self.bins}")


class PolicyEngine:
    """Q-learning tabular con selección epsilon-greedy sobre estados discretizados.

    States are bucketed into ``config.bins`` bins per continuous feature before
    being used as table keys, which bounds the table to
    ``bins**5 * 4 * len(ACTIONS)`` entries.
    """

    def __init__(self, config: PolicyConfig | None = None, rng: RandomSource | None = None) -> None:
        self.config = config or PolicyConfig()
        self._rng = rng or random.Random(self.config.seed)
        self._table: dict[TableKey, float] = {}
        self._lock = threading.Lock()

    @property
    def table_size(self) -> int:
        return len(self._table)

    def select_action(self, state: State) -> Action:
        if self._rng.random() < self.config.epsilon:
            return self._rng.choice(ACTIONS)
        return self.best_action(state)

    def best_action(self, state: State) -> Action:
        key = self._key(state)
        with self._lock:
            return self._best_action_locked(key)

    def update(self, state: State, action: Action, reward: float, next_state: State) -> float:
        key = self._key(state)
        next_key = self._key(next_state)
        alpha, gamma = self.config.alpha, self.config.gamma
        with self._lock:
            current = self._table.get((key, action), 0.0)
            max_next = self._max_value_locked(next_key)
            updated = current + alpha * (reward + gamma * max_next - current)
            self._table[(key, action)] = updated
        logger.debug("Actualización Q acción=%s recompensa=%.2f q=%.4f -> %.4f", action.value, reward, current, updated)
        return updated

    def get_q_value(self, state: State, action: Action) -> float:
        with self._lock:
            return self._table.get((self._key(state), action), 0.0)

    def snapshot(self) -> dict[TableKey, float]:
        with self._lock:
            return dict(self._table)

    def _key(self, state: State) -> tuple[int, ...]:
        return state.discretize(self.config.bins)

    def _best_action_locked(self, key: tuple[int, ...]) -> Action:
        best_action = Action.ALLOW
        best_value = float("-inf")
        for action in ACTIONS:
            value = self._table.get((key, action), 0.0)
            if value > best_value:
                best_value = value
                best_action = action
        return best_action

    def _max_value_locked(self, key: tuple[int, ...]) -> float:
        return max(self._table.get((key, action), 0.0) for action in ACTIONS)
