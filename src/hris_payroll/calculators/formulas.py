"""Formula strategies for Formula-method allowance and deduction types.

Strategies are registered by type code. Types whose code has no registered
strategy use ``default_formula``.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Callable

from hris_payroll.calculators.line_builder import LineItemBuilder
from hris_payroll.calculators.types import CompensationRule

GSIS_RATE = Decimal("0.09")
PAGIBIG_RATE = Decimal("0.02")
PAGIBIG_CAP = Decimal("100")
PHILHEALTH_RATE = Decimal("0.0275")
PHILHEALTH_CAP = Decimal("1800")
WITHHOLDING_THRESHOLD = Decimal("20833")
WITHHOLDING_RATE = Decimal("0.15")


@dataclass(frozen=True)
class FormulaContext:
    """Inputs available to a formula strategy."""

    rule: CompensationRule
    basic_pay: Decimal
    gross_pay: Decimal
    working_days: int
    standard_working_days: int = 22


FormulaStrategy = Callable[[FormulaContext], Decimal]

_REGISTRY: dict[str, FormulaStrategy] = {}


def register_formula(code: str) -> Callable[[FormulaStrategy], FormulaStrategy]:
    """Register a strategy for a compensation type code."""

    def decorator(func: FormulaStrategy) -> FormulaStrategy:
        _REGISTRY[code.upper()] = func
        return func

    return decorator


def resolve_formula(code: str) -> FormulaStrategy:
    return _REGISTRY.get(code.upper(), default_formula)


def registered_codes() -> list[str]:
    return sorted(_REGISTRY)


def default_formula(ctx: FormulaContext) -> Decimal:
    """Default amount, prorated over the standard month when the type says so."""
    amount = ctx.rule.default_amount or Decimal("0")
    if ctx.rule.is_prorated and ctx.standard_working_days:
        amount = amount * Decimal(ctx.working_days) / Decimal(ctx.standard_working_days)
    return LineItemBuilder.round_to_cents(amount)


@register_formula("GSIS")
def gsis_contribution(ctx: FormulaContext) -> Decimal:
    return LineItemBuilder.round_to_cents(ctx.gross_pay * GSIS_RATE)


@register_formula("PAGIBIG")
def pagibig_contribution(ctx: FormulaContext) -> Decimal:
    return LineItemBuilder.round_to_cents(min(ctx.gross_pay * PAGIBIG_RATE, PAGIBIG_CAP))


@register_formula("PHILHEALTH")
def philhealth_contribution(ctx: FormulaContext) -> Decimal:
    return LineItemBuilder.round_to_cents(min(ctx.gross_pay * PHILHEALTH_RATE, PHILHEALTH_CAP))


@register_formula("WITHHOLDING_TAX")
def withholding_tax(ctx: FormulaContext) -> Decimal:
    # Flat rate on the excess over the exempt threshold
    if ctx.gross_pay <= WITHHOLDING_THRESHOLD:
        return Decimal("0.00")
    return LineItemBuilder.round_to_cents((ctx.gross_pay - WITHHOLDING_THRESHOLD) * WITHHOLDING_RATE)
