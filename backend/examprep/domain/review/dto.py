from dataclasses import dataclass


@dataclass(frozen=True)
class SchedulingParams:
    initial_ease: float = 2.5
    minimum_ease: float = 1.3
    first_interval_days: int = 1
    second_interval_days: int = 6
    again_interval_days: int = 1
    # about a hundred years; keeps now + interval inside datetime range
    maximum_interval_days: int = 36500
    again_penalty: float = 0.2
    hard_penalty: float = 0.15
    easy_bonus: float = 0.15
