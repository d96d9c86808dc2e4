"""
Activity enumerations shared by the track model and the binary codec.

Wire values are the explicit integer values below. Never renumber a member:
the byte written for an enum is its value, and existing streams depend on it.
"""

from enum import Enum, IntEnum

from tracklog.models.errors import TrackFormatError


class ActivityType(IntEnum):
    """Kind of movement a session or segment records."""

    WALK = 0
    RUN = 1
    BIKE = 2
    SWIM = 3
    EBIKE = 4
    MOTORBIKE = 5
    CAR = 6
    TRAIN = 7
    BOAT = 8
    PLANE = 9

    COMBINATION = 10
    UNKNOWN = 11

    @classmethod
    def from_byte(cls, byte: int) -> "ActivityType":
        try:
            return cls(byte)
        except ValueError:
            raise TrackFormatError(f"Failed to decode byte {byte} into ActivityType") from None

    def to_byte(self) -> bytes:
        return bytes((self.value,))


class DynamicDataType(IntEnum):
    """Optional sensor channels carried by a track point."""

    ALTITUDE = 0       # m above sea level
    SPEED = 1          # km/h
    TEMPERATURE = 2    # Celsius
    HEART_RATE = 3     # bpm
    CADENCE = 4        # steps/min
    POWER = 5          # W
    STEP_COUNT = 6     # total cumulative steps
    FUEL_MILEAGE = 7   # km/l
    RPM = 8

    @property
    def mask(self) -> int:
        """Bit owned by this channel in the 16-bit presence mask."""
        return 1 << self.value

    @property
    def unit(self) -> str:
        return CHANNEL_UNITS[self]


CHANNEL_UNITS = {
    DynamicDataType.ALTITUDE: "m",
    DynamicDataType.SPEED: "km/h",
    DynamicDataType.TEMPERATURE: "C",
    DynamicDataType.HEART_RATE: "bpm",
    DynamicDataType.CADENCE: "steps/min",
    DynamicDataType.POWER: "W",
    DynamicDataType.STEP_COUNT: "steps",
    DynamicDataType.FUEL_MILEAGE: "km/l",
    DynamicDataType.RPM: "rpm",
}

# The presence mask is a u16
if len(DynamicDataType) > 16:
    raise RuntimeError(f"{len(DynamicDataType)} channels do not fit a 16-bit presence mask")


class DataPoint(IntEnum):
    """Marker byte that prefixes every record after the header."""

    TRACK_POINT = 0
    START_SEGMENT = 1
    END_SEGMENT = 2
    TIME_SYNC = 3

    @classmethod
    def from_byte(cls, byte: int) -> "DataPoint":
        try:
            return cls(byte)
        except ValueError:
            raise TrackFormatError(f"Failed to decode byte {byte} into DataPoint") from None

    def to_byte(self) -> bytes:
        return bytes((self.value,))


class SessionStatus(Enum):
    """Lifecycle state of a recording. Not part of the byte stream."""

    LIVE = "live"
    PAUSED = "paused"
    FINISHED = "finished"
    UNKNOWN = "unknown"  # connection lost, or the state is otherwise unknown
