import re
from decimal import Decimal
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from errors import InvalidAmount, ShareMismatch
from precision import DEFAULT_CURRENCY, MAX_PRECISION

SHARE_TOLERANCE = Decimal("0.01")

_CURRENCY_CODE = re.compile(r"^[A-Z]{3}$")


def _currency_code(value: str) -> str:
    code = value.strip().upper()
    if not _CURRENCY_CODE.match(code):
        raise ValueError(f"Invalid currency code: {value!r}")
    return code


def _non_negative(value: Decimal, field: str) -> Decimal:
    if not value.is_finite() or value < 0:
        raise InvalidAmount(f"{field} must be a non-negative number, got {value}")
    return value


def _rate_table(rates: Optional[Dict[str, Decimal]]) -> Optional[Dict[str, Decimal]]:
    if rates is None:
        return None
    table = {}
    for code, rate in rates.items():
        if not rate.is_finite() or rate <= 0:
            raise InvalidAmount(f"Rate for {code} must be positive, got {rate}")
        table[_currency_code(code)] = rate
    return table


class Member(BaseModel):
    id: str
    name: str


class ParticipantShare(BaseModel):
    participant_id: str
    share_amount: Decimal

    @field_validator("share_amount")
    @classmethod
    def check_share(cls, v):
        return _non_negative(v, "share_amount")


class Expense(BaseModel):
    id: str
    amount: Decimal = Field(..., description="Total amount in the expense's own currency")
    currency: str = DEFAULT_CURRENCY
    paid_by: str = Field(..., description="ID of the member who paid")
    shares: List[ParticipantShare]
    category: Optional[str] = None
    description: Optional[str] = None
    date: Optional[str] = None
    deleted: bool = False

    @field_validator("amount")
    @classmethod
    def check_amount(cls, v):
        return _non_negative(v, "amount")

    @field_validator("currency")
    @classmethod
    def check_currency(cls, v):
        return _currency_code(v)

    @model_validator(mode="after")
    def check_shares_total(self):
        allocated = sum((s.share_amount for s in self.shares), Decimal(0))
        if abs(allocated - self.amount) > SHARE_TOLERANCE:
            raise ShareMismatch(allocated, self.amount)
        return self


class RateContext(BaseModel):
    """Everything the engine needs to normalize amounts into one currency"""
    rates: Optional[Dict[str, Decimal]] = Field(None, description="Currency -> units per 1 unit of a common base")
    custom_rates: Optional[Dict[str, Decimal]] = Field(None, description="Currency -> user rate into the settlement currency")
    settlement_currency: str = DEFAULT_CURRENCY
    precision: int = Field(2, ge=0, le=MAX_PRECISION)
    using_fallback: bool = False

    @field_validator("settlement_currency")
    @classmethod
    def check_currency(cls, v):
        return _currency_code(v)

    @field_validator("rates", "custom_rates")
    @classmethod
    def check_rates(cls, v):
        return _rate_table(v)


class RateTable(BaseModel):
    base: str
    rates: Dict[str, Decimal]
    timestamp: float
    using_fallback: bool = False


class Balance(BaseModel):
    member_id: str
    name: Optional[str] = None
    paid: Decimal
    share: Decimal
    balance: Decimal


class Settlement(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    from_member: str = Field(..., alias="from")
    to_member: str = Field(..., alias="to")
    amount: Decimal


class SettlementSummary(BaseModel):
    total_expenses: int
    total_amount: Decimal
    total_shared: Decimal
    is_balanced: bool


class CategoryStatistics(BaseModel):
    category: Optional[str] = None
    label: str
    amount: Decimal
    count: int
    percentage: Decimal = Field(..., description="Share of the total amount, in percent")


class ExportStatistics(BaseModel):
    total_expenses: int
    total_amount: Decimal
    member_count: int
    per_person: Decimal
    categories: List[CategoryStatistics] = []


class SettlementResult(BaseModel):
    settlement_currency: str
    precision: int
    using_fallback: bool = False
    balances: Dict[str, Balance]
    settlements: List[Settlement]
    settled: List[str] = Field(default_factory=list, description="Members with nothing left to pay or receive")
    summary: SettlementSummary


# ===== REQUEST MODELS =====
class LedgerSnapshot(BaseModel):
    members: List[Member] = Field(default_factory=list, description="Project roster; members without expenses still get a balance")
    expenses: List[Expense]
    context: RateContext = Field(default_factory=RateContext)


class EqualAllocationRequest(BaseModel):
    total: Decimal
    participant_ids: List[str]
    precision: int = Field(2, ge=0, le=MAX_PRECISION)


class CustomAllocationRequest(BaseModel):
    total: Decimal
    shares: Dict[str, Decimal]
    precision: int = Field(2, ge=0, le=MAX_PRECISION)


class ConversionRequest(BaseModel):
    amount: Decimal
    from_currency: str
    to_currency: str
    context: RateContext = Field(default_factory=RateContext)

    @field_validator("from_currency", "to_currency")
    @classmethod
    def check_currency(cls, v):
        return _currency_code(v)


class BalancesSettleRequest(BaseModel):
    balances: Dict[str, Decimal]
    precision: int = Field(2, ge=0, le=MAX_PRECISION)


class ExportContent(BaseModel):
    expense_details: bool = True
    settlement_info: bool = True
    member_balances: bool = True
    statistics_summary: bool = True


class ExportRequest(LedgerSnapshot):
    project_name: str
    content: ExportContent = Field(default_factory=ExportContent)
