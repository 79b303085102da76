# Tap Metronome settings
# User-editable defaults and their lenient loading

from dataclasses import dataclass, field, fields
from typing import Any, Dict, Mapping

from .logging_utils import log_event
from .timing import TimingConfiguration
from .values import Beats, Subdivisions, Tempo, TempoTapAmount

DEFAULT_LARGE_TEMPO_STEP = 10  # long press on +/- changes tempo by this much


def _parse_bool(value: Any, default: bool) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        text = value.strip().lower()
        if text in ("1", "true", "yes", "on"):
            return True
        if text in ("0", "false", "no", "off"):
            return False
    if isinstance(value, (int, float)):
        return bool(value)
    return default


def _parse_positive_int(value: Any, default: int) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        return default
    return number if number > 0 else default


@dataclass
class MetronomeSettings:
    """Settings a user expects to find again next session"""
    beats: Beats = field(default_factory=Beats)
    subdivisions: Subdivisions = field(default_factory=Subdivisions)
    tempo: Tempo = field(default_factory=Tempo)
    emphasize_first_beat: bool = True
    tempo_tap_amount: TempoTapAmount = field(default_factory=TempoTapAmount)
    large_tempo_step: int = DEFAULT_LARGE_TEMPO_STEP
    log_level: str = "INFO"

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "MetronomeSettings":
        """Build settings from a loosely typed mapping. Never raises on bad values."""
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            log_event("warning", "Settings", "Ignoring unknown keys", keys=",".join(unknown))

        defaults = cls()
        return cls(
            beats=Beats.from_text(data["beats"]) if "beats" in data else defaults.beats,
            subdivisions=(
                Subdivisions.from_text(data["subdivisions"]) if "subdivisions" in data else defaults.subdivisions
            ),
            tempo=Tempo.from_text(data["tempo"]) if "tempo" in data else defaults.tempo,
            emphasize_first_beat=_parse_bool(data.get("emphasize_first_beat"), defaults.emphasize_first_beat),
            tempo_tap_amount=(
                TempoTapAmount.from_text(data["tempo_tap_amount"])
                if "tempo_tap_amount" in data else defaults.tempo_tap_amount
            ),
            large_tempo_step=_parse_positive_int(data.get("large_tempo_step"), defaults.large_tempo_step),
            log_level=str(data.get("log_level") or defaults.log_level).upper(),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "beats": self.beats.value,
            "subdivisions": self.subdivisions.value,
            "tempo": self.tempo.value,
            "emphasize_first_beat": self.emphasize_first_beat,
            "tempo_tap_amount": self.tempo_tap_amount.value,
            "large_tempo_step": self.large_tempo_step,
            "log_level": self.log_level,
        }

    def to_configuration(self) -> TimingConfiguration:
        return TimingConfiguration(
            beats=self.beats,
            subdivisions=self.subdivisions,
            tempo=self.tempo,
            emphasize_first_beat=self.emphasize_first_beat,
        )
