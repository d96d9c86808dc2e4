"""
Raw track model (source-format, unsegmented).

CSV imports load into this structure before it is split into segments.
"""

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Optional

import numpy as np
from numpy.typing import NDArray

from tracklog.models.activity import DynamicDataType


@dataclass
class RawTrack:
    """Raw samples extracted from a source file."""

    source: str
    source_file: Path
    name: str

    timestamps: NDArray[np.float64]  # seconds from first sample
    latitude: NDArray[np.float64]
    longitude: NDArray[np.float64]

    # Sensor channels in canonical units (see DynamicDataType.unit), NaN = no value
    channels: dict[DynamicDataType, NDArray[np.float64]] = field(default_factory=dict)

    lap_number: Optional[NDArray[np.int32]] = None
    recorded_at: Optional[datetime] = None

    @property
    def sample_count(self) -> int:
        return len(self.timestamps)
