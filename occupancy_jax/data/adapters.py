"""
Data containers and format adapters for occupancy-jax.

Detection histories may be ragged (units surveyed a different number of
times). They are stored padded to the longest history together with a boolean
event mask; padded cells hold zeros and never contribute to a likelihood.
"""

import re
import pandas as pd
import numpy as np
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Union, Any

from ..core.exceptions import DataFormatError, ShapeMismatchError
from ..utils.logging import get_logger
from ..utils.validation import validate_array_dimensions, validate_detection_history


logger = get_logger(__name__)


@dataclass(frozen=True)
class OccupancyData:
    """
    Immutable detection data for a single-season occupancy analysis.

    Attributes:
        unit_covariates: (n_units, k_unit) occupancy covariates
        event_covariates: (n_units, max_events, k_event) detection covariates
        detection_history: (n_units, max_events) 0/1 outcomes, zero padded
        event_mask: (n_units, max_events) True where the unit was surveyed
    """

    unit_covariates: np.ndarray
    event_covariates: np.ndarray
    detection_history: np.ndarray
    event_mask: np.ndarray
    unit_covariate_names: List[str] = field(default_factory=list)
    event_covariate_names: List[str] = field(default_factory=list)
    unit_ids: Optional[List[Any]] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        # Own copies, so freezing never touches the caller's arrays
        for name in ("unit_covariates", "event_covariates", "detection_history", "event_mask"):
            object.__setattr__(self, name, np.array(getattr(self, name)))

        n_units, max_events = self.detection_history.shape

        if self.event_mask.shape != (n_units, max_events):
            raise ShapeMismatchError(
                "event_mask", expected=(n_units, max_events), actual=self.event_mask.shape
            )
        validate_array_dimensions(self.unit_covariates, expected_shape=(n_units, None), name="unit_covariates")
        validate_array_dimensions(
            self.event_covariates, expected_shape=(n_units, max_events, None), name="event_covariates"
        )
        if self.unit_covariate_names and len(self.unit_covariate_names) != self.unit_covariates.shape[1]:
            raise ShapeMismatchError(
                "unit_covariate_names",
                expected=self.unit_covariates.shape[1],
                actual=len(self.unit_covariate_names),
            )
        if self.event_covariate_names and len(self.event_covariate_names) != self.event_covariates.shape[2]:
            raise ShapeMismatchError(
                "event_covariate_names",
                expected=self.event_covariates.shape[2],
                actual=len(self.event_covariate_names),
            )
        if self.unit_ids is not None and len(self.unit_ids) != n_units:
            raise ShapeMismatchError("unit_ids", expected=n_units, actual=len(self.unit_ids))

        validate_detection_history(self.detection_history, self.event_mask)

        for array in (self.unit_covariates, self.event_covariates, self.detection_history, self.event_mask):
            array.flags.writeable = False

    @property
    def n_units(self) -> int:
        return self.detection_history.shape[0]

    @property
    def max_events(self) -> int:
        return self.detection_history.shape[1]

    @property
    def n_events(self) -> np.ndarray:
        """Number of surveyed events per unit."""
        return self.event_mask.sum(axis=1)

    @property
    def detected(self) -> np.ndarray:
        """Per-unit detected flag, derived from the history (never supplied)."""
        return (self.detection_history * self.event_mask).sum(axis=1) > 0

    @property
    def n_detected(self) -> int:
        return int(self.detected.sum())

    @property
    def naive_occupancy(self) -> float:
        """Fraction of units with at least one detection."""
        return self.n_detected / self.n_units if self.n_units else 0.0

    @property
    def is_ragged(self) -> bool:
        return not bool(self.event_mask.all())

    @property
    def covariate_names(self) -> List[str]:
        """All covariates available to formulas (unit-level first)."""
        return list(self.unit_covariate_names) + list(self.event_covariate_names)

    def get_unit_covariate(self, name: str) -> np.ndarray:
        return self.unit_covariates[:, self.unit_covariate_names.index(name)]

    def get_event_covariate(self, name: str) -> np.ndarray:
        return self.event_covariates[:, :, self.event_covariate_names.index(name)]

    def subset(self, units: Sequence[int]) -> "OccupancyData":
        """Return a new container restricted to the given unit indices."""
        units = np.asarray(units, dtype=int)
        return OccupancyData(
            unit_covariates=self.unit_covariates[units].copy(),
            event_covariates=self.event_covariates[units].copy(),
            detection_history=self.detection_history[units].copy(),
            event_mask=self.event_mask[units].copy(),
            unit_covariate_names=list(self.unit_covariate_names),
            event_covariate_names=list(self.event_covariate_names),
            unit_ids=[self.unit_ids[i] for i in units] if self.unit_ids is not None else None,
            metadata=dict(self.metadata),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to a pickle-safe dictionary of numpy arrays and lists."""
        return {
            "unit_covariates": np.array(self.unit_covariates),
            "event_covariates": np.array(self.event_covariates),
            "detection_history": np.array(self.detection_history),
            "event_mask": np.array(self.event_mask),
            "unit_covariate_names": list(self.unit_covariate_names),
            "event_covariate_names": list(self.event_covariate_names),
            "unit_ids": list(self.unit_ids) if self.unit_ids is not None else None,
            "metadata": dict(self.metadata),
        }

    @classmethod
    def from_dict(cls, data_dict: Dict[str, Any]) -> "OccupancyData":
        """Deserialize from :meth:`to_dict` output."""
        return cls(
            unit_covariates=np.array(data_dict["unit_covariates"], dtype=float),
            event_covariates=np.array(data_dict["event_covariates"], dtype=float),
            detection_history=np.array(data_dict["detection_history"], dtype=float),
            event_mask=np.array(data_dict["event_mask"], dtype=bool),
            unit_covariate_names=list(data_dict.get("unit_covariate_names") or []),
            event_covariate_names=list(data_dict.get("event_covariate_names") or []),
            unit_ids=data_dict.get("unit_ids"),
            metadata=dict(data_dict.get("metadata") or {}),
        )

    @classmethod
    def from_arrays(
        cls,
        unit_covariates: Any,
        event_covariates: Any,
        detection_history: Any,
        unit_covariate_names: Optional[List[str]] = None,
        event_covariate_names: Optional[List[str]] = None,
        unit_ids: Optional[List[Any]] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> "OccupancyData":
        """
        Build a container from per-unit arrays.

        Args:
            unit_covariates: (n_units, k_unit) matrix, a sequence of per-unit
                vectors, a 1-D array (one covariate), or None
            event_covariates: dense (n_units, n_events, k_event) array, a
                sequence of per-unit (n_events_i, k_event) matrices, or None
            detection_history: dense (n_units, n_events) array or a sequence
                of per-unit 0/1 vectors of varying length

        Raises:
            ShapeMismatchError: If unit counts, covariate widths, or per-unit
                event counts disagree
            DomainError: If a detection outcome is not 0 or 1
        """
        histories = _as_unit_rows(detection_history, "detection_history")
        n_units = len(histories)
        lengths = np.array([len(h) for h in histories], dtype=int)
        max_events = int(lengths.max()) if n_units else 0

        history = np.zeros((n_units, max_events), dtype=float)
        mask = np.zeros((n_units, max_events), dtype=bool)
        for i, h in enumerate(histories):
            history[i, : len(h)] = h
            mask[i, : len(h)] = True

        # Validate before padding hides anything
        validate_detection_history(history, mask)

        unit_matrix = _as_unit_matrix(unit_covariates, n_units)
        event_array = _as_event_array(event_covariates, lengths, max_events)

        return cls(
            unit_covariates=unit_matrix,
            event_covariates=event_array,
            detection_history=history,
            event_mask=mask,
            unit_covariate_names=list(unit_covariate_names or _default_names("x", unit_matrix.shape[1])),
            event_covariate_names=list(event_covariate_names or _default_names("w", event_array.shape[2])),
            unit_ids=list(unit_ids) if unit_ids is not None else None,
            metadata=dict(metadata or {}),
        )


def _default_names(prefix: str, count: int) -> List[str]:
    return [f"{prefix}{k + 1}" for k in range(count)]


def _as_unit_rows(detection_history: Any, name: str) -> List[np.ndarray]:
    """Split a dense or ragged history into one float vector per unit."""
    if isinstance(detection_history, np.ndarray) and detection_history.dtype != object:
        if detection_history.ndim != 2:
            raise ShapeMismatchError(name, expected="2 dimensions", actual=detection_history.ndim)
        return [np.asarray(row, dtype=float) for row in detection_history]

    rows = []
    for i, row in enumerate(detection_history):
        row = np.asarray(row, dtype=float)
        if row.ndim != 1:
            raise ShapeMismatchError(name, expected="1-D history", actual=row.shape, unit=i)
        rows.append(row)
    return rows


def _as_unit_matrix(unit_covariates: Any, n_units: int) -> np.ndarray:
    if unit_covariates is None:
        return np.zeros((n_units, 0), dtype=float)

    matrix = np.array(unit_covariates, dtype=float)
    if matrix.ndim == 1:
        matrix = matrix.reshape(-1, 1) if matrix.size else np.zeros((0, 0))
    if matrix.ndim != 2:
        raise ShapeMismatchError("unit_covariates", expected="2 dimensions", actual=matrix.ndim)
    if matrix.shape[0] != n_units:
        raise ShapeMismatchError("unit_covariates", expected=n_units, actual=matrix.shape[0])
    return matrix


def _as_event_array(event_covariates: Any, lengths: np.ndarray, max_events: int) -> np.ndarray:
    n_units = len(lengths)
    if event_covariates is None:
        return np.zeros((n_units, max_events, 0), dtype=float)

    if isinstance(event_covariates, np.ndarray) and event_covariates.dtype != object:
        if event_covariates.ndim == 2:
            event_covariates = event_covariates[:, :, None]
        if event_covariates.ndim != 3:
            raise ShapeMismatchError("event_covariates", expected="3 dimensions", actual=event_covariates.ndim)
        per_unit = list(event_covariates)
    else:
        per_unit = list(event_covariates)

    if len(per_unit) != n_units:
        raise ShapeMismatchError("event_covariates", expected=n_units, actual=len(per_unit))

    width = None
    array = None
    for i, block in enumerate(per_unit):
        block = np.asarray(block, dtype=float)
        if block.size == 0 and lengths[i] == 0:
            continue
        if block.ndim == 1:
            block = block.reshape(-1, 1)
        if block.ndim != 2:
            raise ShapeMismatchError("event_covariates", expected="2-D per unit", actual=block.shape, unit=i)
        if block.shape[0] != lengths[i]:
            raise ShapeMismatchError(
                "event_covariates rows", expected=int(lengths[i]), actual=block.shape[0], unit=i
            )
        if width is None:
            width = block.shape[1]
            array = np.zeros((n_units, max_events, width), dtype=float)
        elif block.shape[1] != width:
            raise ShapeMismatchError("event_covariates columns", expected=width, actual=block.shape[1], unit=i)
        array[i, : block.shape[0]] = block

    if array is None:
        array = np.zeros((n_units, max_events, 0), dtype=float)
    return array


class DataFormatAdapter(ABC):
    """Abstract base class for data format adapters."""

    @abstractmethod
    def detect_format(self, data: pd.DataFrame) -> bool:
        """Return True if this adapter can handle the data format."""
        pass

    @abstractmethod
    def process(self, data: pd.DataFrame) -> OccupancyData:
        """Convert a DataFrame into an :class:`OccupancyData`."""
        pass


class LongFormatAdapter(DataFormatAdapter):
    """
    Adapter for long-format data: one row per (unit, event).

    Unit covariates are numeric columns constant within every unit unless
    named explicitly; the remaining numeric columns are event covariates.
    """

    def __init__(
        self,
        unit_column: str = "unit",
        event_column: Optional[str] = "event",
        detection_column: str = "y",
        unit_covariates: Optional[List[str]] = None,
        event_covariates: Optional[List[str]] = None,
    ):
        self.unit_column = unit_column
        self.event_column = event_column
        self.detection_column = detection_column
        self.unit_covariates = unit_covariates
        self.event_covariates = event_covariates

    def detect_format(self, data: pd.DataFrame) -> bool:
        return self.unit_column in data.columns and self.detection_column in data.columns

    def process(self, data: pd.DataFrame) -> OccupancyData:
        for column in (self.unit_column, self.detection_column):
            if column not in data.columns:
                raise DataFormatError(
                    specific_issue=f"Missing '{column}' column",
                    expected_formats=["long (unit, event, y)"],
                )

        if data[self.detection_column].isna().any():
            raise DataFormatError(
                specific_issue=f"'{self.detection_column}' contains missing values",
                suggestions=["Drop rows for events that were not surveyed"],
            )

        if self.event_column and self.event_column in data.columns:
            data = data.sort_values([self.unit_column, self.event_column], kind="stable")

        reserved = {self.unit_column, self.event_column, self.detection_column}
        unit_cols, event_cols = self._split_covariates(data, reserved)

        grouped = data.groupby(self.unit_column, sort=False)
        unit_ids, histories, unit_rows, event_blocks = [], [], [], []
        for unit_id, rows in grouped:
            unit_ids.append(unit_id)
            histories.append(rows[self.detection_column].to_numpy(dtype=float))
            unit_rows.append(rows[unit_cols].iloc[0].to_numpy(dtype=float) if unit_cols else np.zeros(0))
            event_blocks.append(rows[event_cols].to_numpy(dtype=float))

        logger.info(
            f"Processed long-format data: {len(unit_ids)} units, {len(data)} events",
            unit_covariates=unit_cols,
            event_covariates=event_cols,
        )

        return OccupancyData.from_arrays(
            unit_covariates=np.array(unit_rows, dtype=float).reshape(len(unit_ids), len(unit_cols)),
            event_covariates=event_blocks,
            detection_history=histories,
            unit_covariate_names=unit_cols,
            event_covariate_names=event_cols,
            unit_ids=unit_ids,
            metadata={"adapter": self.__class__.__name__},
        )

    def _split_covariates(self, data: pd.DataFrame, reserved: set):
        numeric = [
            col for col in data.select_dtypes(include=[np.number]).columns if col not in reserved
        ]
        skipped = [col for col in data.columns if col not in reserved and col not in numeric]
        if skipped:
            logger.warning(f"Ignoring non-numeric columns: {skipped}")

        if not numeric and self.unit_covariates is None and self.event_covariates is None:
            return [], []

        if self.unit_covariates is not None or self.event_covariates is not None:
            unit_cols = list(self.unit_covariates or [])
            event_cols = list(self.event_covariates or [])
            missing = [col for col in unit_cols + event_cols if col not in data.columns]
            if missing:
                raise DataFormatError(specific_issue=f"Missing covariate columns: {missing}")
            return unit_cols, event_cols

        constant = data.groupby(self.unit_column, sort=False)[numeric].nunique(dropna=False).max() <= 1
        unit_cols = [col for col in numeric if bool(constant[col])]
        event_cols = [col for col in numeric if not bool(constant[col])]
        return unit_cols, event_cols


class WideFormatAdapter(DataFormatAdapter):
    """
    Adapter for wide-format data: one row per unit, detections in y1..yJ.

    Missing (NaN) detection cells mark events that were not surveyed; the
    surveyed events of each unit keep their original order. Event covariates
    are read from columns ``{prefix}{j}`` for each prefix given.
    """

    def __init__(
        self,
        detection_prefix: str = "y",
        event_covariate_prefixes: Optional[List[str]] = None,
        unit_column: Optional[str] = None,
    ):
        self.detection_prefix = detection_prefix
        self.event_covariate_prefixes = list(event_covariate_prefixes or [])
        self.unit_column = unit_column

    def _numbered_columns(self, data: pd.DataFrame, prefix: str) -> List[str]:
        pattern = re.compile(rf"^{re.escape(prefix)}(\d+)$")
        matches = []
        for col in data.columns:
            match = pattern.match(str(col))
            if match:
                matches.append((int(match.group(1)), col))
        return [col for _, col in sorted(matches)]

    def detect_format(self, data: pd.DataFrame) -> bool:
        return len(self._numbered_columns(data, self.detection_prefix)) >= 1

    def process(self, data: pd.DataFrame) -> OccupancyData:
        detection_cols = self._numbered_columns(data, self.detection_prefix)
        if not detection_cols:
            raise DataFormatError(
                specific_issue=f"No detection columns named '{self.detection_prefix}1..J'",
                expected_formats=["wide (y1..yJ)"],
            )

        covariate_blocks = {}
        for prefix in self.event_covariate_prefixes:
            columns = self._numbered_columns(data, prefix)
            if len(columns) != len(detection_cols):
                raise DataFormatError(
                    specific_issue=(
                        f"Event covariate '{prefix}' has {len(columns)} columns, "
                        f"expected {len(detection_cols)}"
                    )
                )
            covariate_blocks[prefix] = data[columns].to_numpy(dtype=float)

        used = set(detection_cols) | {self.unit_column}
        for prefix in self.event_covariate_prefixes:
            used |= set(self._numbered_columns(data, prefix))
        unit_cols = [
            col for col in data.select_dtypes(include=[np.number]).columns if col not in used
        ]

        detections = data[detection_cols].to_numpy(dtype=float)
        surveyed = ~np.isnan(detections)

        histories, event_blocks = [], []
        for i in range(len(data)):
            keep = surveyed[i]
            histories.append(detections[i, keep])
            if covariate_blocks:
                event_blocks.append(
                    np.column_stack([covariate_blocks[p][i, keep] for p in self.event_covariate_prefixes])
                )
            else:
                event_blocks.append(np.zeros((int(keep.sum()), 0)))

        unit_ids = data[self.unit_column].tolist() if self.unit_column in data.columns else None

        logger.info(
            f"Processed wide-format data: {len(data)} units, {len(detection_cols)} occasions",
            unsurveyed_cells=int((~surveyed).sum()),
        )

        return OccupancyData.from_arrays(
            unit_covariates=data[unit_cols].to_numpy(dtype=float) if unit_cols else None,
            event_covariates=event_blocks,
            detection_history=histories,
            unit_covariate_names=unit_cols,
            event_covariate_names=list(self.event_covariate_prefixes),
            unit_ids=unit_ids,
            metadata={"adapter": self.__class__.__name__},
        )


# Registry of available adapters
_adapters: List[DataFormatAdapter] = [
    LongFormatAdapter(),
    WideFormatAdapter(),
]


def register_adapter(adapter: DataFormatAdapter) -> None:
    """Register a new data format adapter (new adapters get priority)."""
    _adapters.insert(0, adapter)


def detect_data_format(data: pd.DataFrame) -> DataFormatAdapter:
    """
    Automatically detect the appropriate data format adapter.

    Raises:
        DataFormatError: If no suitable adapter is found
    """
    for adapter in _adapters:
        if adapter.detect_format(data):
            logger.debug(f"Detected format: {adapter.__class__.__name__}")
            return adapter

    raise DataFormatError(
        specific_issue="Unable to detect data format",
        expected_formats=["long (unit, event, y)", "wide (y1..yJ)"],
    )


def load_data(
    file_path: Union[str, Path],
    adapter: Optional[DataFormatAdapter] = None,
    **kwargs,
) -> OccupancyData:
    """
    Load detection data from a CSV file.

    Args:
        file_path: Path to data file
        adapter: Specific adapter to use (auto-detected if None)
        **kwargs: Additional arguments for pandas.read_csv

    Raises:
        DataFormatError: If the file cannot be read or its format is not recognized
    """
    file_path = Path(file_path)

    if not file_path.exists():
        raise DataFormatError(specific_issue=f"File not found: {file_path}")

    if file_path.suffix.lower() != ".csv":
        raise DataFormatError(
            specific_issue=f"Unsupported file format: {file_path.suffix}",
            suggestions=["Convert file to CSV format"],
        )

    try:
        data = pd.read_csv(file_path, **kwargs)
    except (OSError, ValueError, pd.errors.ParserError) as e:
        raise DataFormatError(specific_issue=f"Failed to load file: {e}") from e

    if adapter is None:
        adapter = detect_data_format(data)

    return adapter.process(data)
