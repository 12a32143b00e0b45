from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response
from typing import List, Optional, Dict
from decimal import Decimal, InvalidOperation
import logging

from config import settings
from currency_converter import CurrencyConverter
from errors import InvalidAmount, ShareMismatch, UnbalancedLedger
from exchange_rates import ExchangeRateProvider
from models import (
    Balance,
    BalancesSettleRequest,
    ConversionRequest,
    CustomAllocationRequest,
    EqualAllocationRequest,
    ExportRequest,
    LedgerSnapshot,
    ParticipantShare,
    RateContext,
    Settlement,
    SettlementResult,
)
from report_export import build_statistics, generate_csv
from settlement_optimizer import SettlementOptimizer
from share_allocator import ShareAllocator

# Configure logging
logging.basicConfig(level=settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

app = FastAPI(
    title=settings.APP_NAME,
    debug=settings.DEBUG,
    description="Shared expense balances and minimal settlement transfers across currencies",
    version="1.0.0"
)

# CORS middleware to allow frontend connections
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

rate_provider = ExchangeRateProvider()


# ===== API ENDPOINTS =====
@app.get("/")
async def root():
    return {"message": "SettleUp Ledger API"}

@app.post("/allocations/equal", response_model=List[ParticipantShare])
async def allocate_equal(request: EqualAllocationRequest):
    """Split a total evenly; the first participant absorbs the rounding remainder"""
    try:
        return ShareAllocator.allocate_equal(request.total, request.participant_ids, request.precision)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

@app.post("/allocations/custom", response_model=List[ParticipantShare])
async def allocate_custom(request: CustomAllocationRequest):
    """Validate custom shares against the expense total"""
    try:
        return ShareAllocator.allocate_custom(request.total, request.shares, request.precision)
    except ShareMismatch as e:
        raise HTTPException(status_code=400, detail=e.to_dict())
    except InvalidAmount as e:
        raise HTTPException(status_code=400, detail=str(e))

@app.post("/convert", response_model=dict)
async def convert_amount(request: ConversionRequest):
    """Convert an amount with the caller's rate context"""
    ctx = request.context
    converted = CurrencyConverter.convert(
        request.amount,
        request.from_currency,
        request.to_currency,
        ctx.rates,
        ctx.custom_rates,
        ctx.precision,
        settlement_currency=ctx.settlement_currency,
    )
    rate = CurrencyConverter.effective_rate(
        request.from_currency,
        request.to_currency,
        ctx.rates,
        ctx.custom_rates,
        ctx.settlement_currency,
    )
    return {
        "from": request.from_currency,
        "to": request.to_currency,
        "amount": str(request.amount),
        "converted_amount": str(converted),
        "exchange_rate": str(rate),
        "display": CurrencyConverter.describe_rate(
            request.from_currency,
            request.to_currency,
            ctx.rates,
            ctx.custom_rates,
            ctx.settlement_currency,
        ),
        "using_fallback": ctx.using_fallback,
    }

@app.get("/exchange-rates", response_model=dict)
def get_exchange_rates(
    from_currency: Optional[str] = Query(None, alias="from"),
    to_currency: Optional[str] = Query(None, alias="to"),
    amount: Optional[str] = None,
):
    """Return all rates, or a single conversion when from and to are given"""
    if from_currency and to_currency:
        try:
            value = Decimal(amount) if amount else Decimal(1)
        except InvalidOperation:
            raise HTTPException(status_code=400, detail="Invalid amount")
        if not value.is_finite():
            raise HTTPException(status_code=400, detail="Invalid amount")

        converted, rate = rate_provider.convert(value, from_currency.upper(), to_currency.upper())
        return {
            "from": from_currency.upper(),
            "to": to_currency.upper(),
            "amount": str(value),
            "converted_amount": str(converted),
            "exchange_rate": str(rate),
            "using_fallback": rate_provider.using_fallback,
        }

    table = rate_provider.get_rates()
    return {
        "base": table.base,
        "rates": {code: str(rate) for code, rate in table.rates.items()},
        "timestamp": table.timestamp,
        "using_fallback": table.using_fallback,
    }

def _snapshot_context(snapshot: LedgerSnapshot) -> RateContext:
    """The caller's rate context, or live rates with the configured project defaults"""
    if "context" in snapshot.model_fields_set:
        return snapshot.context
    return rate_provider.rate_context(settings.SETTLEMENT_CURRENCY, settings.DEFAULT_PRECISION)

# Routes that may fetch rates are plain functions so they run in the threadpool
@app.post("/balances", response_model=Dict[str, Balance])
def calculate_balances(snapshot: LedgerSnapshot):
    """Net balance per member in the settlement currency"""
    return SettlementOptimizer.calculate_balances(snapshot.expenses, _snapshot_context(snapshot), snapshot.members)

@app.post("/settlements", response_model=SettlementResult)
def calculate_settlements(snapshot: LedgerSnapshot):
    """Calculate optimal settlements for a project"""
    try:
        return SettlementOptimizer.optimize_settlements(
            snapshot.expenses, _snapshot_context(snapshot), snapshot.members
        )
    except UnbalancedLedger as e:
        logger.error(f"Unbalanced ledger: {str(e)}")
        raise HTTPException(status_code=422, detail=str(e))

@app.post("/settlements/from-balances", response_model=List[Settlement])
async def settle_balances(request: BalancesSettleRequest):
    """Settle an already computed balance vector"""
    precision = request.precision if "precision" in request.model_fields_set else settings.DEFAULT_PRECISION
    try:
        return SettlementOptimizer.settle_balances(request.balances, precision)
    except UnbalancedLedger as e:
        raise HTTPException(status_code=422, detail=str(e))

@app.post("/export/csv")
def export_csv(request: ExportRequest):
    """Export expenses, settlements, member balances and statistics as CSV"""
    context = _snapshot_context(request)
    try:
        result = SettlementOptimizer.optimize_settlements(request.expenses, context, request.members)
    except UnbalancedLedger as e:
        raise HTTPException(status_code=422, detail=str(e))

    try:
        statistics = None
        if request.content.statistics_summary:
            statistics = build_statistics(request.expenses, context, len(result.balances))
        body = generate_csv(
            project_name=request.project_name,
            currency=result.settlement_currency,
            expenses=request.expenses,
            balances=result.balances,
            settlements=result.settlements,
            members=request.members,
            content=request.content,
            precision=result.precision,
            statistics=statistics,
        )
    except Exception as e:
        logger.error(f"Error generating CSV export: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Error generating export: {str(e)}")

    return Response(
        content=body,
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": 'attachment; filename="settlement.csv"'},
    )

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
