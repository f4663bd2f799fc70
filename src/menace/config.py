"""Bead schedule and reward settings for the matchbox memory."""
from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Tuple

from .errors import ConfigError

# (first turn, beads) steps in Michie's style: turns 1-2 -> 4, 3-4 -> 3, 5-6 -> 2, 7+ -> 1
DEFAULT_BEAD_STEPS: Tuple[Tuple[int, int], ...] = ((1, 4), (3, 3), (5, 2), (7, 1))


@dataclass(frozen=True)
class BeadSchedule:
    steps: Tuple[Tuple[int, int], ...] = DEFAULT_BEAD_STEPS

    def __post_init__(self) -> None:
        try:
            steps = tuple((int(t), int(b)) for t, b in self.steps)
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Bead schedule steps must be (turn, beads) integer pairs: {e}") from e
        object.__setattr__(self, "steps", steps)
        if not steps:
            raise ConfigError("Bead schedule needs at least one step")
        if steps[0][0] != 1:
            raise ConfigError(f"Bead schedule must start at turn 1, got {steps[0][0]}")
        prev_turn, prev_beads = 0, None
        for turn, beads in steps:
            if turn <= prev_turn:
                raise ConfigError(f"Bead schedule turns must increase: {steps}")
            if beads < 0:
                raise ConfigError(f"Bead counts must be non-negative: {steps}")
            if prev_beads is not None and beads > prev_beads:
                raise ConfigError(f"Bead schedule must be non-increasing: {steps}")
            prev_turn, prev_beads = turn, beads

    def beads_for_turn(self, turn: int) -> int:
        beads = self.steps[0][1]
        for first_turn, count in self.steps:
            if turn >= first_turn:
                beads = count
            else:
                break
        return beads


@dataclass(frozen=True)
class MenaceConfig:
    schedule: BeadSchedule = field(default_factory=BeadSchedule)
    win_reward: int = 3
    draw_reward: int = 1
    loss_penalty: int = 1

    def __post_init__(self) -> None:
        for name in ("win_reward", "draw_reward", "loss_penalty"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                raise ConfigError(f"{name} must be a non-negative integer, got {value!r}")

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "MenaceConfig":
        known = {"bead_schedule", "win_reward", "draw_reward", "loss_penalty"}
        unknown = set(data) - known
        if unknown:
            raise ConfigError(f"Unknown config keys: {sorted(unknown)}")
        kwargs: Dict[str, Any] = {k: data[k] for k in ("win_reward", "draw_reward", "loss_penalty") if k in data}
        if "bead_schedule" in data:
            try:
                steps = tuple((t, b) for t, b in data["bead_schedule"])
            except (TypeError, ValueError) as e:
                raise ConfigError(f"bead_schedule must be a list of [turn, beads] pairs: {e}") from e
            kwargs["schedule"] = BeadSchedule(steps)
        return cls(**kwargs)

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["bead_schedule"] = [list(s) for s in d.pop("schedule")["steps"]]
        return d


def load_config(path: Path) -> MenaceConfig:
    try:
        data = json.loads(Path(path).read_text())
    except json.JSONDecodeError as e:
        raise ConfigError(f"Config file {path} is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a JSON object")
    return MenaceConfig.from_mapping(data)
