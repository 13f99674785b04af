"""Indian personal income-tax estimate for FY 2025-26.

Compares the old regime (with Chapter VI-A deductions and HRA) against the
new default regime. Surcharge is not modelled and other income is taxed at
slab rates.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Optional, Tuple

Regime = Literal["old", "new"]

CESS_RATE = 0.04
LIMIT_80C = 150_000
LIMIT_80D_SELF = 25_000
LIMIT_80D_PARENTS = 25_000
LIMIT_80D_SENIOR_PARENTS = 50_000
LIMIT_80TTA = 10_000
LIMIT_80CCD1B = 50_000
LIMIT_SECTION_24 = 200_000

# (upper bound of slab, rate); None means unbounded
_OLD_SLABS: List[Tuple[Optional[float], float]] = [
    (250_000, 0.0),
    (500_000, 0.05),
    (1_000_000, 0.20),
    (None, 0.30),
]
_NEW_SLABS: List[Tuple[Optional[float], float]] = [
    (400_000, 0.0),
    (800_000, 0.05),
    (1_200_000, 0.10),
    (1_600_000, 0.15),
    (2_000_000, 0.20),
    (2_400_000, 0.25),
    (None, 0.30),
]

_STANDARD_DEDUCTION = {"old": 50_000, "new": 75_000}
_REBATE_LIMIT = {"old": 500_000, "new": 1_200_000}


def _number(value: Any) -> float:
    try:
        return float(value or 0)
    except (TypeError, ValueError):
        return 0.0


@dataclass(slots=True)
class OtherIncome:
    fd_interest: float = 0.0
    capital_gains_stcg: float = 0.0
    capital_gains_ltcg: float = 0.0
    rental_income: float = 0.0
    other_sources: float = 0.0

    @property
    def total(self) -> float:
        return (
            self.fd_interest
            + self.capital_gains_stcg
            + self.capital_gains_ltcg
            + self.rental_income
            + self.other_sources
        )


@dataclass(slots=True)
class Deductions80C:
    ppf: float = 0.0
    elss: float = 0.0
    lic: float = 0.0
    epf: float = 0.0
    tuition_fees: float = 0.0
    home_loan_principal: float = 0.0
    nsc: float = 0.0
    others: float = 0.0

    @property
    def total(self) -> float:
        return (
            self.ppf
            + self.elss
            + self.lic
            + self.epf
            + self.tuition_fees
            + self.home_loan_principal
            + self.nsc
            + self.others
        )

    def labelled(self) -> List[Tuple[str, float]]:
        return [
            ("PPF", self.ppf),
            ("ELSS", self.elss),
            ("LIC", self.lic),
            ("EPF", self.epf),
            ("Tuition Fees", self.tuition_fees),
            ("Home Loan Principal", self.home_loan_principal),
            ("NSC", self.nsc),
            ("Others", self.others),
        ]


@dataclass(slots=True)
class Deductions80D:
    self_health_insurance: float = 0.0
    parents_health_insurance: float = 0.0
    parents_are_senior: bool = False


@dataclass(slots=True)
class HraDetails:
    basic_salary: float = 0.0
    hra_received: float = 0.0
    rent_paid: float = 0.0
    is_metro_city: bool = False


@dataclass(slots=True)
class TaxConfig:
    """A user's declared income and investments for the financial year."""

    gross_annual_income: float = 0.0
    other_income: OtherIncome = field(default_factory=OtherIncome)
    deductions_80c: Deductions80C = field(default_factory=Deductions80C)
    deductions_80d: Deductions80D = field(default_factory=Deductions80D)
    section_80tta: float = 0.0
    section_24_home_loan: float = 0.0
    section_80e: float = 0.0
    section_80ccd1b: float = 0.0
    hra: HraDetails = field(default_factory=HraDetails)
    preferred_regime: str = "auto"

    @classmethod
    def from_document(cls, document: Dict[str, Any]) -> "TaxConfig":
        """Build a config from a ``tax_config`` document, zero-filling gaps."""
        other = document.get("other_income") or {}
        d80c = document.get("deductions_80c") or {}
        d80d = document.get("deductions_80d") or {}
        hra = document.get("hra") or {}
        return cls(
            gross_annual_income=_number(document.get("gross_annual_income")),
            other_income=OtherIncome(
                fd_interest=_number(other.get("fd_interest")),
                capital_gains_stcg=_number(other.get("capital_gains_stcg")),
                capital_gains_ltcg=_number(other.get("capital_gains_ltcg")),
                rental_income=_number(other.get("rental_income")),
                other_sources=_number(other.get("other_sources")),
            ),
            deductions_80c=Deductions80C(
                ppf=_number(d80c.get("ppf")),
                elss=_number(d80c.get("elss")),
                lic=_number(d80c.get("lic")),
                epf=_number(d80c.get("epf")),
                tuition_fees=_number(d80c.get("tuition_fees")),
                home_loan_principal=_number(d80c.get("home_loan_principal")),
                nsc=_number(d80c.get("nsc")),
                others=_number(d80c.get("others")),
            ),
            deductions_80d=Deductions80D(
                self_health_insurance=_number(d80d.get("self_health_insurance")),
                parents_health_insurance=_number(d80d.get("parents_health_insurance")),
                parents_are_senior=bool(d80d.get("parents_are_senior")),
            ),
            section_80tta=_number(document.get("section_80tta")),
            section_24_home_loan=_number(document.get("section_24_home_loan")),
            section_80e=_number(document.get("section_80e")),
            section_80ccd1b=_number(document.get("section_80ccd1b")),
            hra=HraDetails(
                basic_salary=_number(hra.get("basic_salary")),
                hra_received=_number(hra.get("hra_received")),
                rent_paid=_number(hra.get("rent_paid")),
                is_metro_city=bool(hra.get("is_metro_city")),
            ),
            preferred_regime=document.get("preferred_regime") or "auto",
        )


def get_default_tax_config() -> TaxConfig:
    return TaxConfig()


@dataclass(slots=True)
class RegimeResult:
    regime: Regime
    gross_income: float
    total_deductions: float
    taxable_income: float
    tax_before_cess: float
    cess: float
    total_tax: float
    effective_rate: float
    total_80d: float = 0.0
    hra_exemption: float = 0.0


@dataclass(slots=True)
class TaxComparison:
    old: RegimeResult
    new: RegimeResult
    recommended: Regime
    savings: float


def calculate_hra_exemption(hra: HraDetails) -> float:
    """Least of HRA received, rent over 10% of basic, and 50%/40% of basic."""
    if hra.rent_paid <= 0 or hra.hra_received <= 0:
        return 0.0
    rent_excess = hra.rent_paid - 0.10 * hra.basic_salary
    salary_share = (0.50 if hra.is_metro_city else 0.40) * hra.basic_salary
    return max(0.0, min(hra.hra_received, rent_excess, salary_share))


def calculate_80d(deductions: Deductions80D) -> float:
    parents_limit = (
        LIMIT_80D_SENIOR_PARENTS if deductions.parents_are_senior else LIMIT_80D_PARENTS
    )
    return min(deductions.self_health_insurance, LIMIT_80D_SELF) + min(
        deductions.parents_health_insurance, parents_limit
    )


def _slab_tax(taxable: float, slabs: List[Tuple[Optional[float], float]]) -> float:
    tax = 0.0
    lower = 0.0
    for upper, rate in slabs:
        if taxable <= lower:
            break
        top = taxable if upper is None else min(taxable, upper)
        tax += (top - lower) * rate
        if upper is None:
            break
        lower = upper
    return tax


def _finalize(
    regime: Regime,
    gross: float,
    deductions: float,
    slabs: List[Tuple[Optional[float], float]],
    **extra: float,
) -> RegimeResult:
    taxable = max(0.0, gross - deductions)
    tax = _slab_tax(taxable, slabs)
    rebate_limit = _REBATE_LIMIT[regime]
    if taxable <= rebate_limit:
        tax = 0.0
    elif regime == "new":
        # Marginal relief just above the rebate threshold.
        tax = min(tax, taxable - rebate_limit)
    tax = round(tax)
    cess = round(tax * CESS_RATE)
    total = tax + cess
    return RegimeResult(
        regime=regime,
        gross_income=gross,
        total_deductions=deductions,
        taxable_income=taxable,
        tax_before_cess=tax,
        cess=cess,
        total_tax=total,
        effective_rate=total / gross * 100 if gross > 0 else 0.0,
        **extra,
    )


def calculate_old_regime(config: TaxConfig) -> RegimeResult:
    gross = config.gross_annual_income + config.other_income.total
    total_80d = calculate_80d(config.deductions_80d)
    hra_exemption = calculate_hra_exemption(config.hra)
    deductions = (
        _STANDARD_DEDUCTION["old"]
        + min(config.deductions_80c.total, LIMIT_80C)
        + total_80d
        + min(config.section_80tta, LIMIT_80TTA)
        + config.section_80e
        + min(config.section_80ccd1b, LIMIT_80CCD1B)
        + min(config.section_24_home_loan, LIMIT_SECTION_24)
        + hra_exemption
    )
    return _finalize(
        "old",
        gross,
        deductions,
        _OLD_SLABS,
        total_80d=total_80d,
        hra_exemption=hra_exemption,
    )


def calculate_new_regime(config: TaxConfig) -> RegimeResult:
    gross = config.gross_annual_income + config.other_income.total
    return _finalize("new", gross, _STANDARD_DEDUCTION["new"], _NEW_SLABS)


def calculate_tax(config: TaxConfig) -> TaxComparison:
    """Compute both regimes and recommend the cheaper one (new on a tie)."""
    old = calculate_old_regime(config)
    new = calculate_new_regime(config)
    recommended: Regime = "old" if old.total_tax < new.total_tax else "new"
    return TaxComparison(
        old=old,
        new=new,
        recommended=recommended,
        savings=abs(old.total_tax - new.total_tax),
    )


__all__ = [
    "Deductions80C",
    "Deductions80D",
    "HraDetails",
    "LIMIT_80C",
    "OtherIncome",
    "RegimeResult",
    "TaxComparison",
    "TaxConfig",
    "calculate_80d",
    "calculate_hra_exemption",
    "calculate_tax",
    "get_default_tax_config",
]
