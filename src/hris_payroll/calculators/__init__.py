"""Payroll item calculation."""

from hris_payroll.calculators.engine import PayrollCalculator, applies_to_period, resolve_daily_rate
from hris_payroll.calculators.formulas import FormulaContext, register_formula, resolve_formula
from hris_payroll.calculators.line_builder import LineItemBuilder
from hris_payroll.calculators.rate_resolver import RateResolver
from hris_payroll.calculators.types import (
    CalculationMethod,
    CompensationRule,
    Frequency,
    ItemCalculationContext,
    ItemCalculationResult,
    ItemTotals,
    LineCandidate,
    LineType,
)

__all__ = [
    "CalculationMethod",
    "CompensationRule",
    "FormulaContext",
    "Frequency",
    "ItemCalculationContext",
    "ItemCalculationResult",
    "ItemTotals",
    "LineCandidate",
    "LineItemBuilder",
    "LineType",
    "PayrollCalculator",
    "RateResolver",
    "applies_to_period",
    "register_formula",
    "resolve_daily_rate",
    "resolve_formula",
]
