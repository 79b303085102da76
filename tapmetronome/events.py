"""Messages fed to MetronomeController.post(), handled strictly in arrival order."""
from dataclasses import dataclass
from typing import Any, Mapping, Optional

from .timing import Tick, TimingConfiguration
from .values import TempoTapAmount


# Engine side

@dataclass(frozen=True)
class Connected:
    engine: Any  # MetronomeEngine or anything with the same interface


@dataclass(frozen=True)
class Disconnected:
    pass


@dataclass(frozen=True)
class TickOccurred:
    tick: Tick


@dataclass(frozen=True)
class ConfigurationRefreshed:
    pass


# UI side

@dataclass(frozen=True)
class Tapped:
    timestamp_ms: Optional[int] = None


@dataclass(frozen=True)
class ConfigurationEdited:
    """Only the named fields change, so queued edits never undo each other."""
    changes: Mapping[str, Any]

    @classmethod
    def of(cls, configuration: TimingConfiguration) -> "ConfigurationEdited":
        return cls({
            "beats": configuration.beats,
            "subdivisions": configuration.subdivisions,
            "tempo": configuration.tempo,
            "emphasize_first_beat": configuration.emphasize_first_beat,
        })


@dataclass(frozen=True)
class PlayingRequested:
    playing: bool


@dataclass(frozen=True)
class TapAmountChanged:
    amount: TempoTapAmount
