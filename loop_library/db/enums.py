"""Enum definitions for application constants."""

from enum import Enum


class Instrument(str, Enum):
    """Instrument categories a loop can be filed under."""
    OTHER = "other"
    BASS = "bass"
    DRUMS = "drums"
    FX = "fx"
    GUITAR = "guitar"
    KEYS = "keys"
    ORCHESTRAL = "orchestral"
    VOCALS = "vocals"


class LoopType(str, Enum):
    """Kind of asset a loop carries."""
    AUDIO = "audio"
    MIDI = "midi"


class FileExtension(str, Enum):
    """
    Extensions stored per submission/loop.

    Objects live under `<id>.<extension>` in the submissions and loops buckets.
    """
    MP3 = "mp3"
    MID = "mid"
