"""Tests for statutory benefit calculators and service-length rules."""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from hris_payroll.benefits import (
    BenefitHistory,
    BenefitType,
    EmployeeSnapshot,
    LeaveCredit,
    available_benefit_types,
    completed_years_of_service,
    get_calculator,
    service_months_in_year,
    service_reference_date,
)
from hris_payroll.errors import ValidationError


def snapshot(**kwargs) -> EmployeeSnapshot:
    values = {
        "employee_id": uuid4(),
        "appointment_date": date(2015, 6, 1),
        "employment_status": "Active",
        "monthly_salary": Decimal("22000.00"),
        "daily_rate": Decimal("1000.00"),
        "highest_monthly_salary": Decimal("25000.00"),
    }
    values.update(kwargs)
    return EmployeeSnapshot(**values)


class TestServiceLength:
    def test_months_in_year(self):
        assert service_months_in_year(date(2020, 3, 15), 2025) == 12
        assert service_months_in_year(date(2025, 1, 1), 2025) == 12
        assert service_months_in_year(date(2025, 9, 1), 2025) == 4
        assert service_months_in_year(date(2025, 10, 1), 2025) == 3
        assert service_months_in_year(date(2026, 1, 5), 2025) == 0

    def test_completed_years(self):
        assert completed_years_of_service(date(2015, 6, 1), date(2025, 5, 31)) == 9
        assert completed_years_of_service(date(2015, 6, 1), date(2025, 6, 1)) == 10
        assert completed_years_of_service(date(2015, 6, 1), date(2014, 1, 1)) == 0

    def test_reference_date(self):
        assert service_reference_date(2025) == date(2025, 12, 31)
        assert service_reference_date(2025, date(2025, 4, 30)) == date(2025, 4, 30)
        assert service_reference_date(2025, date(2026, 4, 30)) == date(2025, 12, 31)


class TestRegistry:
    def test_every_benefit_type_has_a_calculator(self, settings):
        assert set(available_benefit_types()) == set(BenefitType)
        for benefit_type in BenefitType:
            assert get_calculator(benefit_type, settings).benefit_type == benefit_type

    def test_unknown_type(self, settings):
        with pytest.raises(ValidationError):
            get_calculator("CHRISTMAS_HAM", settings)


class TestThirteenthMonth:
    def test_one_twelfth_of_basic_pay(self, settings):
        result = get_calculator(BenefitType.THIRTEENTH_MONTH, settings).compute(
            snapshot(), 2025, BenefitHistory(basic_pay_total=Decimal("264000.00"))
        )

        assert result.eligible
        assert result.amount == Decimal("22000.00")

    def test_no_history_is_ineligible(self, settings):
        result = get_calculator(BenefitType.FOURTEENTH_MONTH, settings).compute(
            snapshot(), 2025, BenefitHistory()
        )

        assert not result.eligible
        assert result.amount == Decimal("0.00")
        assert result.benefit_type == BenefitType.FOURTEENTH_MONTH


class TestPerformanceBonus:
    def test_september_appointee_meets_minimum(self, settings):
        result = get_calculator(BenefitType.PBB, settings).compute(
            snapshot(appointment_date=date(2025, 9, 1)), 2025, BenefitHistory()
        )

        assert result.eligible
        assert result.details["service_months"] == 4
        assert result.amount == Decimal("22000.00")

    def test_october_appointee_is_ineligible(self, settings):
        result = get_calculator(BenefitType.PBB, settings).compute(
            snapshot(appointment_date=date(2025, 10, 1)), 2025, BenefitHistory()
        )

        assert not result.eligible
        assert result.details["service_months"] == 3

    def test_daily_rate_fallback(self, settings):
        result = get_calculator(BenefitType.PBB, settings).compute(
            snapshot(monthly_salary=None, daily_rate=Decimal("950.00")), 2025, BenefitHistory()
        )

        assert result.amount == Decimal("20900.00")
        assert result.details["basis"] == "daily_rate"


class TestLoyaltyAward:
    @pytest.mark.parametrize(
        "appointed,eligible,amount,next_in",
        [
            (date(2016, 1, 15), False, "0.00", 1),  # 9 years
            (date(2015, 1, 15), True, "10000.00", 5),  # 10 years
            (date(2010, 1, 15), True, "15000.00", 5),  # 15 years
            (date(2009, 1, 15), True, "15000.00", 4),  # 16 years
            (date(2005, 1, 15), True, "20000.00", 5),  # 20 years
        ],
    )
    def test_milestones(self, settings, appointed, eligible, amount, next_in):
        result = get_calculator(BenefitType.LOYALTY_AWARD, settings).compute(
            snapshot(appointment_date=appointed), 2025, BenefitHistory()
        )

        assert result.eligible is eligible
        assert result.amount == Decimal(amount)
        assert result.details["next_eligible_in_years"] == next_in

    def test_years_counted_to_separation(self, settings):
        result = get_calculator(BenefitType.LOYALTY_AWARD, settings).compute(
            snapshot(
                appointment_date=date(2015, 6, 1),
                employment_status="Retired",
                separation_date=date(2025, 3, 31),
            ),
            2025,
            BenefitHistory(),
        )

        assert not result.eligible
        assert result.details["years_of_service"] == 9


class TestLeaveMonetization:
    def test_days_capped_per_type(self, settings):
        vl, sl, spl = uuid4(), uuid4(), uuid4()
        history = BenefitHistory(
            leave_credits=[
                LeaveCredit(vl, "VL", Decimal("40"), is_monetizable=True),
                LeaveCredit(sl, "SL", Decimal("0"), is_monetizable=True),
                LeaveCredit(spl, "SPL", Decimal("3"), is_monetizable=False),
            ]
        )

        result = get_calculator(BenefitType.LEAVE_MONETIZATION, settings).compute(
            snapshot(), 2025, history
        )

        assert result.eligible
        assert result.amount == Decimal("29000.00")
        assert result.days_used == Decimal("29")
        assert result.leave_days == {vl: Decimal("29")}

    def test_inactive_employee_is_ineligible(self, settings):
        history = BenefitHistory(
            leave_credits=[LeaveCredit(uuid4(), "VL", Decimal("10"), is_monetizable=True)]
        )

        result = get_calculator(BenefitType.LEAVE_MONETIZATION, settings).compute(
            snapshot(employment_status="On Leave"), 2025, history
        )

        assert not result.eligible

    def test_no_balance_is_ineligible(self, settings):
        result = get_calculator(BenefitType.LEAVE_MONETIZATION, settings).compute(
            snapshot(), 2025, BenefitHistory()
        )

        assert not result.eligible
        assert result.eligibility.reason == "No monetizable leave balance"


class TestTerminalLeave:
    def test_amount_uses_highest_salary(self, settings):
        result = get_calculator(BenefitType.TERMINAL_LEAVE, settings).compute(
            snapshot(employment_status="Retired", separation_date=date(2025, 6, 30)),
            2025,
            BenefitHistory(total_leave_credits=Decimal("100"), constant_factor=Decimal("1.0")),
        )

        # 100 x 25000 x 1.0 / 22
        assert result.eligible
        assert result.amount == Decimal("113636.36")
        assert result.details["highest_monthly_salary"] == Decimal("25000.00")

    def test_current_salary_when_no_highest(self, settings):
        result = get_calculator(BenefitType.TERMINAL_LEAVE, settings).compute(
            snapshot(employment_status="Resigned", highest_monthly_salary=None),
            2025,
            BenefitHistory(total_leave_credits=Decimal("22"), constant_factor=Decimal("0.5")),
        )

        assert result.amount == Decimal("11000.00")

    def test_active_employee_is_ineligible(self, settings):
        result = get_calculator(BenefitType.TERMINAL_LEAVE, settings).compute(
            snapshot(), 2025, BenefitHistory(total_leave_credits=Decimal("100"))
        )

        assert not result.eligible

    @pytest.mark.parametrize("factor", ["0.05", "2.5"])
    def test_factor_out_of_range(self, settings, factor):
        with pytest.raises(ValidationError):
            get_calculator(BenefitType.TERMINAL_LEAVE, settings).compute(
                snapshot(employment_status="Retired"),
                2025,
                BenefitHistory(total_leave_credits=Decimal("10"), constant_factor=Decimal(factor)),
            )

    def test_to_dict_is_json_safe(self, settings):
        result = get_calculator(BenefitType.TERMINAL_LEAVE, settings).compute(
            snapshot(employment_status="Retired"),
            2025,
            BenefitHistory(total_leave_credits=Decimal("10")),
        )

        data = result.to_dict()
        assert data["benefit_type"] == "TERMINAL_LEAVE"
        assert data["amount"] == "11363.64"
        assert data["eligibility"]["eligible"] is True
