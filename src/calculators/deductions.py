"""Standard deduction, dependent deduction and child tax credit resolution."""

import logging
from datetime import date

from src.calculators.money import ZERO, money
from src.calculators.tax_data import CreditParameters, StandardDeduction
from src.db.models import MARRIED_STATUSES, DeductionResult, Dependent, TaxpayerProfile

logger = logging.getLogger(__name__)


def age_at_year_end(date_of_birth: date, tax_year: int) -> int:
    """Age on December 31 of tax_year."""
    year_end = date(tax_year, 12, 31)
    age = year_end.year - date_of_birth.year
    if (year_end.month, year_end.day) < (date_of_birth.month, date_of_birth.day):
        age -= 1
    return age


class DeductionCreditResolver:
    """Resolves a taxpayer profile into deductions and credits for one tax year."""

    def __init__(self, credits: CreditParameters) -> None:
        self._credits = credits

    def standard_deduction(
        self, profile: TaxpayerProfile, table: StandardDeduction
    ) -> tuple[DeductionResult, list[str]]:
        """Base amount plus blind/disabled add-ons for self and, if married, spouse."""
        additions = ZERO
        if profile.is_blind:
            additions += table.additional_blind
        if profile.is_disabled:
            additions += table.additional_disabled
        if profile.filing_status in MARRIED_STATUSES:
            if profile.is_spouse_blind:
                additions += table.additional_blind
            if profile.is_spouse_disabled:
                additions += table.additional_disabled

        notes: list[str] = []
        if profile.filing_status not in MARRIED_STATUSES and (
            profile.is_spouse_blind or profile.is_spouse_disabled
        ):
            notes.append(
                f"Spouse add-ons ignored for filing status {profile.filing_status.value}"
            )

        amount = money(table.amount + additions)
        partial = DeductionResult(
            base_standard_deduction=money(table.amount),
            additional_amounts=money(additions),
            standard_deduction=amount,
            total_deductions=amount,
        )
        return partial, notes

    def qualifying_dependents(self, dependents: list[Dependent]) -> int:
        return sum(1 for d in dependents if d.is_qualifying_child or d.is_qualifying_relative)

    def qualifying_children(self, dependents: list[Dependent], tax_year: int) -> tuple[int, list[str]]:
        """Count qualifying children under the age limit at year end.

        Each child is counted once. A qualifying child without a date of
        birth cannot be aged and is left out with a note.
        """
        count = 0
        notes: list[str] = []
        for index, dependent in enumerate(dependents):
            if not dependent.is_qualifying_child:
                continue
            if dependent.date_of_birth is None:
                name = dependent.first_name or f"dependent #{index + 1}"
                notes.append(f"No date of birth for {name}; not counted for child tax credit")
                continue
            if age_at_year_end(dependent.date_of_birth, tax_year) < self._credits.child_age_limit:
                count += 1
        return count, notes

    def resolve(
        self, profile: TaxpayerProfile, table: StandardDeduction, tax_year: int
    ) -> DeductionResult:
        """Resolve every deduction and credit for the profile.

        Args:
            profile: Taxpayer profile with flags and dependents.
            table: Standard deduction row for the profile's filing status.
            tax_year: Year used to age dependents (December 31).

        Returns:
            DeductionResult with itemised components.
        """
        result, notes = self.standard_deduction(profile, table)

        dependents = self.qualifying_dependents(profile.dependents)
        dependent_deduction = money(self._credits.dependent_deduction * dependents)

        children, child_notes = self.qualifying_children(profile.dependents, tax_year)
        notes.extend(child_notes)
        child_credit = money(self._credits.child_tax_credit * children)

        for note in notes:
            logger.warning(note)

        logger.info(
            "Resolved deductions: standard=%s dependents=%d children=%d credit=%s",
            result.standard_deduction,
            dependents,
            children,
            child_credit,
        )

        return result.model_copy(update={
            "qualifying_dependents": dependents,
            "dependent_deduction": dependent_deduction,
            "total_deductions": result.standard_deduction + dependent_deduction,
            "qualifying_children": children,
            "child_tax_credit": child_credit,
            "notes": notes,
        })
