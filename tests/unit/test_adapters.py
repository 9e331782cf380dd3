"""
Tests for OccupancyData and the pandas format adapters.
"""

import pickle

import numpy as np
import pandas as pd
import pytest

from occupancy_jax.core.exceptions import DataFormatError, DomainError, ShapeMismatchError
from occupancy_jax.data.adapters import (
    LongFormatAdapter,
    OccupancyData,
    WideFormatAdapter,
    detect_data_format,
    load_data,
)

pytestmark = pytest.mark.unit


class TestOccupancyData:

    def test_ragged_histories_are_padded_with_mask(self, ragged_data):
        assert ragged_data.n_units == 3
        assert ragged_data.max_events == 4
        np.testing.assert_array_equal(ragged_data.n_events, [4, 2, 3])
        np.testing.assert_array_equal(ragged_data.event_mask[1], [True, True, False, False])
        np.testing.assert_array_equal(ragged_data.detection_history[1], [1, 0, 0, 0])
        np.testing.assert_array_equal(ragged_data.event_covariates[1, 2:], np.zeros((2, 1)))
        assert ragged_data.is_ragged

    def test_detected_flag_is_derived(self, ragged_data):
        np.testing.assert_array_equal(ragged_data.detected, [False, True, True])
        assert ragged_data.n_detected == 2
        assert ragged_data.naive_occupancy == pytest.approx(2 / 3)

    def test_arrays_are_read_only(self, ragged_data):
        with pytest.raises(ValueError):
            ragged_data.detection_history[0, 0] = 1.0

    def test_caller_arrays_stay_writable(self):
        unit_covariates = np.array([[0.1], [0.2]])
        OccupancyData.from_arrays(unit_covariates, None, np.zeros((2, 3)))

        unit_covariates[0, 0] = 5.0
        assert unit_covariates[0, 0] == 5.0

    def test_direct_construction_leaves_inputs_writable(self):
        history = np.array([[0.0, 1.0], [0.0, 0.0]])
        data = OccupancyData(
            unit_covariates=np.zeros((2, 0)),
            event_covariates=np.zeros((2, 2, 0)),
            detection_history=history,
            event_mask=np.ones((2, 2), dtype=bool),
        )

        assert history.flags.writeable
        history[0, 1] = 0.0
        assert data.detection_history[0, 1] == 1.0

    def test_unsurveyed_unit_does_not_fix_covariate_width(self):
        data = OccupancyData.from_arrays(None, [[], np.ones((2, 2))], [[], [0, 1]])

        assert data.event_covariates.shape == (2, 2, 2)
        np.testing.assert_array_equal(data.event_mask[0], [False, False])

    def test_default_covariate_names(self):
        data = OccupancyData.from_arrays(np.ones((2, 2)), np.ones((2, 3, 1)), np.zeros((2, 3)))

        assert data.unit_covariate_names == ["x1", "x2"]
        assert data.event_covariate_names == ["w1"]
        assert data.covariate_names == ["x1", "x2", "w1"]

    def test_one_dimensional_unit_covariate(self):
        data = OccupancyData.from_arrays(np.array([0.5, 1.5]), None, [[0, 1], [0]])

        assert data.unit_covariates.shape == (2, 1)
        np.testing.assert_array_equal(data.get_unit_covariate("x1"), [0.5, 1.5])

    def test_rejects_non_binary_history(self):
        with pytest.raises(DomainError):
            OccupancyData.from_arrays(None, None, [[0, 1], [0, 2]])

    def test_rejects_mismatched_mask(self):
        with pytest.raises(ShapeMismatchError):
            OccupancyData(
                unit_covariates=np.zeros((2, 0)),
                event_covariates=np.zeros((2, 3, 0)),
                detection_history=np.zeros((2, 3)),
                event_mask=np.ones((2, 2), dtype=bool),
            )

    def test_subset(self, ragged_data):
        subset = ragged_data.subset([2, 0])

        assert subset.n_units == 2
        np.testing.assert_array_equal(subset.detected, [True, False])
        np.testing.assert_array_equal(subset.unit_covariates, ragged_data.unit_covariates[[2, 0]])

    def test_dict_serialization_survives_pickle(self, ragged_data):
        restored = OccupancyData.from_dict(pickle.loads(pickle.dumps(ragged_data.to_dict())))

        np.testing.assert_array_equal(restored.detection_history, ragged_data.detection_history)
        np.testing.assert_array_equal(restored.event_mask, ragged_data.event_mask)
        np.testing.assert_array_equal(restored.event_covariates, ragged_data.event_covariates)
        assert restored.covariate_names == ragged_data.covariate_names


class TestLongFormatAdapter:

    def test_process(self, long_frame):
        data = LongFormatAdapter().process(long_frame)

        assert data.unit_ids == ["a", "b", "c"]
        assert data.unit_covariate_names == ["elev"]
        assert data.event_covariate_names == ["date"]
        np.testing.assert_array_equal(data.n_events, [3, 2, 3])
        np.testing.assert_array_equal(data.detected, [True, False, True])
        np.testing.assert_allclose(data.get_unit_covariate("elev"), [1.5, -0.3, 0.2])
        np.testing.assert_allclose(data.get_event_covariate("date")[1, :2], [0.2, 0.5])

    def test_events_sorted_within_unit(self, long_frame):
        shuffled = long_frame.iloc[[2, 0, 1, 4, 3, 7, 6, 5]]
        data = LongFormatAdapter().process(shuffled)

        np.testing.assert_array_equal(data.detection_history[0, :3], [0, 1, 0])

    def test_explicit_covariates(self, long_frame):
        adapter = LongFormatAdapter(unit_covariates=["elev"], event_covariates=[])
        data = adapter.process(long_frame)

        assert data.event_covariate_names == []

    def test_missing_detection_values_rejected(self, long_frame):
        frame = long_frame.copy()
        frame.loc[1, "y"] = np.nan
        with pytest.raises(DataFormatError):
            LongFormatAdapter().process(frame)

    def test_missing_unit_column(self, long_frame):
        with pytest.raises(DataFormatError):
            LongFormatAdapter().process(long_frame.drop(columns=["unit"]))


class TestWideFormatAdapter:

    def test_unsurveyed_cells_make_ragged_histories(self, wide_frame):
        adapter = WideFormatAdapter(event_covariate_prefixes=["wind"], unit_column="site")
        data = adapter.process(wide_frame)

        assert data.unit_ids == ["s1", "s2", "s3"]
        assert data.unit_covariate_names == ["forest"]
        assert data.event_covariate_names == ["wind"]
        np.testing.assert_array_equal(data.n_events, [3, 2, 3])
        np.testing.assert_array_equal(data.detection_history[1, :2], [1, 0])
        np.testing.assert_allclose(data.get_event_covariate("wind")[1, :2], [2.0, 1.0])

    def test_detection_columns_ordered_numerically(self):
        frame = pd.DataFrame({"y10": [1], "y2": [0], "y1": [0]})
        data = WideFormatAdapter().process(frame)

        np.testing.assert_array_equal(data.detection_history[0], [0, 0, 1])

    def test_event_covariate_column_count_checked(self, wide_frame):
        adapter = WideFormatAdapter(event_covariate_prefixes=["wind"])
        with pytest.raises(DataFormatError):
            adapter.process(wide_frame.drop(columns=["wind3"]))


class TestLoadData:

    def test_detects_long_format(self, long_frame, tmp_path):
        path = tmp_path / "long.csv"
        long_frame.to_csv(path, index=False)

        assert isinstance(detect_data_format(long_frame), LongFormatAdapter)
        assert load_data(path).n_units == 3

    def test_detects_wide_format(self, wide_frame, tmp_path):
        path = tmp_path / "wide.csv"
        wide_frame.to_csv(path, index=False)

        assert isinstance(detect_data_format(wide_frame), WideFormatAdapter)
        data = load_data(path, adapter=WideFormatAdapter(event_covariate_prefixes=["wind"], unit_column="site"))
        np.testing.assert_array_equal(data.n_events, [3, 2, 3])

    def test_missing_file(self, tmp_path):
        with pytest.raises(DataFormatError):
            load_data(tmp_path / "missing.csv")

    def test_unsupported_extension(self, tmp_path):
        path = tmp_path / "data.xlsx"
        path.write_text("not a spreadsheet")
        with pytest.raises(DataFormatError):
            load_data(path)

    def test_unrecognized_columns(self):
        with pytest.raises(DataFormatError):
            detect_data_format(pd.DataFrame({"a": [1], "b": [0]}))
