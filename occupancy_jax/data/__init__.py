"""Data containers, format adapters and simulation for occupancy-jax."""

from .adapters import (
    OccupancyData,
    DataFormatAdapter,
    LongFormatAdapter,
    WideFormatAdapter,
    detect_data_format,
    load_data,
    register_adapter,
)
from .simulation import SimulatedOccupancy, simulate_occupancy_data

__all__ = [
    "OccupancyData",
    "DataFormatAdapter",
    "LongFormatAdapter",
    "WideFormatAdapter",
    "detect_data_format",
    "load_data",
    "register_adapter",
    "SimulatedOccupancy",
    "simulate_occupancy_data",
]
