"""
Formula specification classes for occupancy-jax.

Formulas are additive R-style strings:

    psi ~ 1                 # Intercept only
    psi ~ elev + forest     # Additive effects (intercept implied)
    p ~ date + wind - 1     # No intercept
"""

import re
from dataclasses import dataclass, field
from typing import List, Dict, Optional, Any, Union
from enum import Enum

from ..core.exceptions import ModelSpecificationError


_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_.]*$")


class ParameterType(str, Enum):
    """Parameters of a single-season occupancy model."""

    PSI = "psi"  # Occupancy probability
    P = "p"  # Detection probability, conditional on occupancy


@dataclass
class ParameterFormula:
    """Formula specification for a single parameter."""

    parameter: ParameterType
    formula_string: str
    terms: List[str] = field(default_factory=list)
    has_intercept: bool = True

    def __post_init__(self):
        """Parse the formula string into covariate terms."""
        self.parameter = ParameterType(self.parameter)
        self.terms, self.has_intercept = self._parse(self.formula_string)

    def _parse(self, formula_string: str):
        text = formula_string.strip()
        if not text:
            raise ModelSpecificationError(
                formula=formula_string,
                parameter=self.parameter.value,
                suggestions=["Provide a non-empty formula", "Use '~1' for intercept-only models"],
            )

        if "~" in text:
            response, _, text = text.partition("~")
            response = response.strip()
            if response and response != self.parameter.value:
                raise ModelSpecificationError(
                    formula=formula_string,
                    parameter=self.parameter.value,
                    suggestions=[f"Response '{response}' does not match parameter '{self.parameter.value}'"],
                )
            if not text.strip():
                raise ModelSpecificationError(formula=formula_string, parameter=self.parameter.value)

        # Normalize "a - 1" into signed tokens
        tokens = re.findall(r"[+-]?\s*[^+-]+", text.strip())
        terms: List[str] = []
        has_intercept = True

        for token in tokens:
            token = token.replace(" ", "")
            negative = token.startswith("-")
            name = token.lstrip("+-")

            if name == "1":
                has_intercept = not negative
            elif name == "0":
                has_intercept = False
            elif negative:
                raise ModelSpecificationError(
                    formula=formula_string,
                    parameter=self.parameter.value,
                    suggestions=["Only '- 1' may be subtracted (to drop the intercept)"],
                )
            elif _IDENTIFIER.match(name):
                if name not in terms:
                    terms.append(name)
            else:
                raise ModelSpecificationError(formula=formula_string, parameter=self.parameter.value)

        if not terms and not has_intercept:
            raise ModelSpecificationError(
                formula=formula_string,
                parameter=self.parameter.value,
                suggestions=["Formula removes the intercept and has no covariates"],
            )

        return terms, has_intercept

    def validate_covariates(self, available_covariates: List[str]) -> None:
        """
        Validate that all covariates in the formula are available.

        Raises:
            ModelSpecificationError: If missing covariates are found
        """
        missing = [term for term in self.terms if term not in available_covariates]
        if missing:
            raise ModelSpecificationError(
                formula=self.formula_string,
                parameter=self.parameter.value,
                available_covariates=list(available_covariates),
                missing_covariates=missing,
            )

    def get_complexity(self) -> int:
        """Number of coefficients this formula contributes."""
        return len(self.terms) + int(self.has_intercept)


@dataclass
class FormulaSpec:
    """Complete occupancy model specification: formulas for psi and p."""

    psi: ParameterFormula
    p: ParameterFormula
    name: Optional[str] = None

    def __post_init__(self):
        if self.psi.parameter != ParameterType.PSI or self.p.parameter != ParameterType.P:
            raise ModelSpecificationError(
                formula="FormulaSpec",
                suggestions=[
                    "FormulaSpec needs a psi formula and a p formula",
                    "Example: create_simple_spec(psi='~elev', p='~date')",
                ],
            )

    def get_total_parameters(self) -> int:
        return self.psi.get_complexity() + self.p.get_complexity()

    def to_dict(self) -> Dict[str, Any]:
        result = {"psi": self.psi.formula_string, "p": self.p.formula_string}
        if self.name:
            result["name"] = self.name
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Union[str, Dict]]) -> "FormulaSpec":
        """
        Create FormulaSpec from dictionary.

        Examples:
            {"psi": "~1", "p": "~1"}
            {"psi": "~elev", "p": "~date", "name": "Elevation model"}
        """
        return create_simple_spec(
            psi=data.get("psi", "~1"), p=data.get("p", "~1"), name=data.get("name")
        )

    def __str__(self) -> str:
        formula_str = f"psi {self.psi.formula_string}, p {self.p.formula_string}"
        if self.name:
            return f"{self.name}: {formula_str}"
        return formula_str


def create_simple_spec(psi: str = "~1", p: str = "~1", name: Optional[str] = None) -> FormulaSpec:
    """Create a FormulaSpec from two formula strings."""
    return FormulaSpec(
        psi=ParameterFormula(ParameterType.PSI, psi),
        p=ParameterFormula(ParameterType.P, p),
        name=name,
    )
