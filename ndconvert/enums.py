"""Enumeration classes for ndconvert type definitions."""

from enum import Enum, auto


class AxisType(Enum):
    """Semantic identity of a dataset axis.

    Attributes:
        X: Image width
        Y: Image height
        Z: Depth (focal plane)
        CHANNEL: Channel (fluorescence channel, wavelength, ...)
        TIME: Time point
        SAMPLE: Interleaved samples of one pixel (e.g. RGB components)
        SEQUENCE: Index of a file or page sequence
        OTHER: Any other axis
    """

    X = auto()
    Y = auto()
    Z = auto()
    CHANNEL = auto()
    TIME = auto()
    SAMPLE = auto()
    SEQUENCE = auto()
    OTHER = auto()

    @classmethod
    def from_label(cls, label: str) -> "AxisType":
        """Map a tifffile style axis letter (e.g. ``"Z"``, ``"C"``) to a type."""
        return _LABELS.get(label.upper(), cls.OTHER)

    @property
    def label(self) -> str:
        """Default one-letter label for this axis type."""
        for key, value in _LABELS.items():
            if value is self:
                return key
        return "Q"


_LABELS = {
    "X": AxisType.X,
    "Y": AxisType.Y,
    "Z": AxisType.Z,
    "C": AxisType.CHANNEL,
    "T": AxisType.TIME,
    "S": AxisType.SAMPLE,
    "I": AxisType.SEQUENCE,
}


class OverwriteDecision(Enum):
    """Outcome of checking whether a destination may be overwritten.

    Attributes:
        PROCEED: The destination may be written
        ABORT: The destination must not be touched
        NEEDS_PROMPT: The user has to be asked
    """

    PROCEED = auto()
    ABORT = auto()
    NEEDS_PROMPT = auto()
