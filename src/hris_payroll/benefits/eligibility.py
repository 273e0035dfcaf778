"""Service-length arithmetic shared by every benefit rule.

All calculators use these functions; no rule computes service length on
its own.
"""

from __future__ import annotations

from datetime import date


def service_months_in_year(appointment_date: date, year: int) -> int:
    """Months of service credited within ``year``.

    Appointed on or before 1 January: 12. Appointed during the year: the
    appointment month counts in full, so 13 - month. Appointed later: 0.
    """
    if appointment_date <= date(year, 1, 1):
        return 12
    if appointment_date.year == year:
        return 13 - appointment_date.month
    return 0


def completed_years_of_service(appointment_date: date, as_of: date) -> int:
    """Whole anniversary years between appointment and ``as_of``."""
    if as_of < appointment_date:
        return 0
    years = as_of.year - appointment_date.year
    if (as_of.month, as_of.day) < (appointment_date.month, appointment_date.day):
        years -= 1
    return max(years, 0)


def service_reference_date(year: int, separation_date: date | None = None) -> date:
    """End of ``year``, or the separation date if the employee left earlier."""
    year_end = date(year, 12, 31)
    if separation_date is not None and separation_date < year_end:
        return separation_date
    return year_end


def prorated_months(appointment_date: date | None, year: int) -> int:
    """Months used to prorate a yearly leave allocation."""
    if appointment_date is None:
        return 12
    return service_months_in_year(appointment_date, year)
