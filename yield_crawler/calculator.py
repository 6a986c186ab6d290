"""Compound-interest projection used by the ``/calculate`` endpoint."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field, model_validator

DAYS_PER_YEAR = 365


class RateType(str, Enum):
    APY = "APY"
    APR = "APR"


class CalculationRequest(BaseModel):
    """Inputs of a projection; ``rate`` is in percent."""

    principal: float | None = None
    rate: float = 0.0
    rate_type: RateType = RateType.APY
    days: float | None = None
    compounding_per_year: int = Field(default=365, ge=1)

    @model_validator(mode="after")
    def _validate_required(self) -> "CalculationRequest":
        if self.principal is None or self.principal <= 0:
            raise ValueError("principal must be a positive number")
        if self.days is None or self.days <= 0:
            raise ValueError("days must be a positive number")
        return self


class CalculationResult(BaseModel):
    final: float
    profit: float


def compound(request: CalculationRequest) -> CalculationResult:
    """APY compounds once per year fraction; APR compounds ``n`` times a year."""

    principal = float(request.principal or 0.0)
    rate = request.rate / 100
    years = float(request.days or 0.0) / DAYS_PER_YEAR
    if request.rate_type is RateType.APY:
        final = principal * (1 + rate) ** years
    else:
        periods = request.compounding_per_year
        final = principal * (1 + rate / periods) ** (periods * years)
    return CalculationResult(final=round(final, 2), profit=round(final - principal, 2))


__all__ = ["CalculationRequest", "CalculationResult", "RateType", "compound"]
