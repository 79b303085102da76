from dataclasses import dataclass
from enum import Enum
from typing import Optional
import math


class ConstructionPolicy(Enum):
    """What a bounded value does with an out-of-range raw value."""
    STRICT = "strict"  # raise OutOfRange
    CLAMP_TO_MIN = "clamp_to_min"  # silently substitute MIN


class OutOfRange(ValueError):
    def __init__(self, minimum: int, maximum: int, actual):
        super().__init__(f"value must be between {minimum} and {maximum} but was {actual}")
        self.minimum = minimum
        self.maximum = maximum
        self.actual = actual


@dataclass(frozen=True)
class BoundedValue:
    """Immutable integer restricted to [MIN, MAX].

    Subclasses pick the range, the DEFAULT used when nothing (or garbage) is
    given, and a ConstructionPolicy. Text and float conversion never fail:
    unusable input falls back to DEFAULT.
    """
    value: Optional[int] = None

    MIN = 0
    MAX = 0
    DEFAULT = 0
    POLICY = ConstructionPolicy.STRICT

    def __post_init__(self):
        value = self.DEFAULT if self.value is None else self.value
        if not self.in_range(value):
            if self.POLICY is ConstructionPolicy.STRICT:
                raise OutOfRange(self.MIN, self.MAX, value)
            value = self.MIN
        object.__setattr__(self, "value", int(value))

    @classmethod
    def in_range(cls, value) -> bool:
        return cls.MIN <= value <= cls.MAX

    @classmethod
    def make(cls, raw: int):
        return cls(raw)

    @classmethod
    def coerce(cls, value):
        """Accept an instance as is, or a plain int through make()."""
        if isinstance(value, cls):
            return value
        if isinstance(value, int) and not isinstance(value, bool):
            return cls.make(value)
        raise TypeError(f"expected {cls.__name__} or int, got {value!r}")

    @classmethod
    def _from_int(cls, raw: int):
        # Strict types cannot reject user input here, so they fall back to DEFAULT.
        if cls.POLICY is ConstructionPolicy.STRICT and not cls.in_range(raw):
            return cls()
        return cls(raw)

    @classmethod
    def from_text(cls, text: str):
        try:
            raw = int(str(text).strip())
        except (TypeError, ValueError):
            return cls()
        return cls._from_int(raw)

    @classmethod
    def from_float(cls, number: float):
        try:
            number = float(number)
        except (TypeError, ValueError):
            return cls()
        if not math.isfinite(number):
            return cls()
        return cls._from_int(int(number))

    def to_text(self) -> str:
        return str(self.value)

    def to_float(self) -> float:
        return float(self.value)

    def __int__(self):
        return self.value

    def __float__(self):
        return float(self.value)

    def __str__(self):
        return self.to_text()


# Beats and Subdivisions clamp while Tempo and TempoTapAmount are strict.
# The difference is deliberate: the first two are bound straight to editable
# UI fields, the latter two are only built from validated values.

@dataclass(frozen=True)
class Beats(BoundedValue):
    """Beats per bar. Out-of-range values become MIN, they never raise."""
    MIN = 1
    MAX = 8
    DEFAULT = 4
    POLICY = ConstructionPolicy.CLAMP_TO_MIN


@dataclass(frozen=True)
class Subdivisions(BoundedValue):
    """Ticks per beat. Out-of-range values become MIN, they never raise."""
    MIN = 1
    MAX = 8
    DEFAULT = 1
    POLICY = ConstructionPolicy.CLAMP_TO_MIN


@dataclass(frozen=True)
class Tempo(BoundedValue):
    """Beats per minute. Out-of-range construction raises OutOfRange."""
    MIN = 40
    MAX = 208
    DEFAULT = 80
    POLICY = ConstructionPolicy.STRICT

    def incremented(self, step: int = 1) -> "Tempo":
        return Tempo(min(self.MAX, self.value + step))

    def decremented(self, step: int = 1) -> "Tempo":
        return Tempo(max(self.MIN, self.value - step))


@dataclass(frozen=True)
class TempoTapAmount(BoundedValue):
    """Number of taps averaged by tap tempo (the window holds value - 1 intervals)."""
    MIN = 2
    MAX = 8
    DEFAULT = 4
    POLICY = ConstructionPolicy.STRICT

    @property
    def window_capacity(self) -> int:
        return self.value - 1
