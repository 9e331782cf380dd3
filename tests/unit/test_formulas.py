"""
Tests for formula parsing and design matrix construction.
"""

import numpy as np
import pytest

from occupancy_jax.core.exceptions import ModelSpecificationError
from occupancy_jax.formulas import (
    FormulaSpec,
    ParameterFormula,
    ParameterType,
    build_design_matrix,
    create_simple_spec,
    default_design_matrices,
)
from occupancy_jax.formulas.design_matrix import INTERCEPT_NAME

pytestmark = pytest.mark.unit


class TestParameterFormula:

    @pytest.mark.parametrize(
        "formula, terms, has_intercept",
        [
            ("~1", [], True),
            ("~elev", ["elev"], True),
            ("~1 + elev + forest", ["elev", "forest"], True),
            ("psi ~ elev", ["elev"], True),
            ("~elev - 1", ["elev"], False),
            ("~0 + elev", ["elev"], False),
            ("~elev + elev", ["elev"], True),
        ],
    )
    def test_parse(self, formula, terms, has_intercept):
        parsed = ParameterFormula(ParameterType.PSI, formula)

        assert parsed.terms == terms
        assert parsed.has_intercept is has_intercept
        assert parsed.get_complexity() == len(terms) + int(has_intercept)

    @pytest.mark.parametrize("formula", ["", "~", "~ -1", "~elev*date", "~log(elev)", "~1 - elev"])
    def test_invalid(self, formula):
        with pytest.raises(ModelSpecificationError):
            ParameterFormula(ParameterType.P, formula)

    def test_response_must_match_parameter(self):
        with pytest.raises(ModelSpecificationError):
            ParameterFormula(ParameterType.P, "psi ~ elev")

    def test_missing_covariates_listed(self):
        formula = ParameterFormula(ParameterType.P, "~date + wind")
        with pytest.raises(ModelSpecificationError) as exc_info:
            formula.validate_covariates(["date", "elev"])
        assert exc_info.value.context["missing_covariates"] == ["wind"]


class TestFormulaSpec:

    def test_total_parameters(self):
        spec = create_simple_spec(psi="~elev", p="~elev + date - 1")
        assert spec.get_total_parameters() == 4

    def test_dict_round_trip(self):
        spec = create_simple_spec(psi="~elev", p="~date", name="elevation")
        restored = FormulaSpec.from_dict(spec.to_dict())

        assert restored.psi.terms == ["elev"]
        assert restored.p.terms == ["date"]
        assert str(restored) == "elevation: psi ~elev, p ~date"

    def test_parameters_must_be_in_place(self):
        with pytest.raises(ModelSpecificationError):
            FormulaSpec(
                psi=ParameterFormula(ParameterType.P, "~1"),
                p=ParameterFormula(ParameterType.P, "~1"),
            )


class TestDesignMatrix:

    def test_psi_matrix(self, ragged_data):
        info = build_design_matrix(ParameterFormula(ParameterType.PSI, "~elev"), ragged_data)

        assert info.matrix.shape == (3, 2)
        assert info.column_names == [INTERCEPT_NAME, "elev"]
        np.testing.assert_array_equal(info.matrix[:, 0], 1.0)
        np.testing.assert_array_equal(info.matrix[:, 1], ragged_data.get_unit_covariate("elev"))

    def test_psi_rejects_event_covariates(self, ragged_data):
        with pytest.raises(ModelSpecificationError):
            build_design_matrix(ParameterFormula(ParameterType.PSI, "~date"), ragged_data)

    def test_p_matrix_broadcasts_unit_covariates(self, ragged_data):
        info = build_design_matrix(ParameterFormula(ParameterType.P, "~elev + date - 1"), ragged_data)

        assert info.matrix.shape == (3, 4, 2)
        assert info.column_names == ["elev", "date"]
        assert not info.has_intercept
        for j in range(4):
            np.testing.assert_array_equal(info.matrix[:, j, 0], ragged_data.get_unit_covariate("elev"))
        np.testing.assert_array_equal(info.matrix[:, :, 1], ragged_data.get_event_covariate("date"))

    def test_unknown_covariate(self, ragged_data):
        with pytest.raises(ModelSpecificationError):
            build_design_matrix(ParameterFormula(ParameterType.P, "~wind"), ragged_data)

    def test_default_design_uses_all_covariates(self, ragged_data):
        design = default_design_matrices(ragged_data)

        assert design["psi"].column_names == [INTERCEPT_NAME, "elev"]
        assert design["p"].column_names == [INTERCEPT_NAME, "date"]
        assert design["psi"].formula_string == "~1 + elev"
        assert design["p"].matrix.shape == (3, 4, 2)
