import io
from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional

import pandas as pd

from currency_converter import CurrencyConverter
from models import (
    Balance,
    CategoryStatistics,
    Expense,
    ExportContent,
    ExportStatistics,
    Member,
    RateContext,
    Settlement,
)
from precision import format_currency, round_to

NO_TRANSFERS_MESSAGE = "All settled, no transfers needed"
UNCATEGORIZED = "Uncategorized"


def _member_name(member_id: str, names: Dict[str, str]) -> str:
    return names.get(member_id, member_id)


def _section(title: str, df: pd.DataFrame) -> str:
    buffer = io.StringIO()
    df.to_csv(buffer, index=False, lineterminator="\n")
    return f"[{title}]\n\n{buffer.getvalue()}"


def build_statistics(
    expenses: List[Expense],
    context: RateContext,
    member_count: int,
) -> ExportStatistics:
    """
    Totals for the statistics section, in the settlement currency.

    Categories are ordered by amount, largest first; expenses without a
    category are grouped under "Uncategorized".
    """
    total = Decimal(0)
    count = 0
    by_category: Dict[Optional[str], Dict[str, object]] = {}

    for expense in expenses:
        if expense.deleted:
            continue
        converted = CurrencyConverter.convert(
            expense.amount,
            expense.currency,
            context.settlement_currency,
            context.rates,
            context.custom_rates,
            context.precision,
            settlement_currency=context.settlement_currency,
        )
        total += converted
        count += 1
        entry = by_category.setdefault(expense.category, {"amount": Decimal(0), "count": 0})
        entry["amount"] += converted
        entry["count"] += 1

    categories = []
    for category, entry in by_category.items():
        percentage = entry["amount"] * 100 / total if total else Decimal(0)
        categories.append(CategoryStatistics(
            category=category,
            label=category or UNCATEGORIZED,
            amount=round_to(entry["amount"], context.precision),
            count=entry["count"],
            percentage=round_to(percentage, 1),
        ))
    categories.sort(key=lambda c: c.amount, reverse=True)

    per_person = total / member_count if member_count else Decimal(0)
    return ExportStatistics(
        total_expenses=count,
        total_amount=round_to(total, context.precision),
        member_count=member_count,
        per_person=round_to(per_person, context.precision),
        categories=categories,
    )


def expense_frame(
    expenses: List[Expense],
    names: Dict[str, str],
    currency: Optional[str] = None,
    precision: Optional[int] = None,
) -> pd.DataFrame:
    rows = []
    for expense in expenses:
        if expense.deleted:
            continue
        # Only amounts already in the settlement currency follow the project precision
        decimals = precision if expense.currency == currency else None
        rows.append({
            "Date": expense.date or "",
            "Description": expense.description or "",
            "Category": expense.category or "",
            "Amount": format_currency(expense.amount, expense.currency, decimals),
            "Paid By": _member_name(expense.paid_by, names),
            "Participants": ", ".join(_member_name(s.participant_id, names) for s in expense.shares),
        })
    return pd.DataFrame(rows, columns=["Date", "Description", "Category", "Amount", "Paid By", "Participants"])


def settlement_frame(
    settlements: List[Settlement],
    names: Dict[str, str],
    currency: str,
    precision: Optional[int] = None,
) -> pd.DataFrame:
    rows = [{
        "From": _member_name(s.from_member, names),
        "To": _member_name(s.to_member, names),
        "Amount": format_currency(s.amount, currency, precision),
    } for s in settlements]
    return pd.DataFrame(rows, columns=["From", "To", "Amount"])


def balance_frame(
    balances: Dict[str, Balance],
    names: Dict[str, str],
    currency: str,
    precision: Optional[int] = None,
) -> pd.DataFrame:
    rows = [{
        "Member": b.name or _member_name(member_id, names),
        "Paid": format_currency(b.paid, currency, precision),
        "Share": format_currency(b.share, currency, precision),
        "Balance": format_currency(b.balance, currency, precision),
    } for member_id, b in balances.items()]
    return pd.DataFrame(rows, columns=["Member", "Paid", "Share", "Balance"])


def statistics_frame(statistics: ExportStatistics, currency: str, precision: Optional[int] = None) -> pd.DataFrame:
    return pd.DataFrame([
        {"Item": "Expenses", "Value": str(statistics.total_expenses)},
        {"Item": "Total Amount", "Value": format_currency(statistics.total_amount, currency, precision)},
        {"Item": "Members", "Value": str(statistics.member_count)},
        {"Item": "Per Person", "Value": format_currency(statistics.per_person, currency, precision)},
    ], columns=["Item", "Value"])


def category_frame(categories: List[CategoryStatistics], currency: str, precision: Optional[int] = None) -> pd.DataFrame:
    rows = [{
        "Category": c.label,
        "Amount": format_currency(c.amount, currency, precision),
        "Count": c.count,
        "Percentage": f"{c.percentage}%",
    } for c in categories]
    return pd.DataFrame(rows, columns=["Category", "Amount", "Count", "Percentage"])


def generate_csv(
    project_name: str,
    currency: str,
    expenses: List[Expense],
    balances: Dict[str, Balance],
    settlements: List[Settlement],
    members: Optional[List[Member]] = None,
    content: Optional[ExportContent] = None,
    export_date: Optional[date] = None,
    precision: Optional[int] = None,
    statistics: Optional[ExportStatistics] = None,
) -> str:
    """
    Render a project report as CSV text.

    Sections are separated by blank lines; the output starts with a UTF-8 BOM
    so spreadsheet tools pick the right encoding. Settlement-currency amounts
    are shown at `precision` decimals when given, otherwise at the currency's
    own. The statistics section needs `statistics` (see build_statistics).
    """
    content = content or ExportContent()
    names = {m.id: m.name for m in members or []}
    export_date = export_date or date.today()

    header = pd.DataFrame([
        {"Field": "Project", "Value": project_name},
        {"Field": "Exported", "Value": export_date.isoformat()},
        {"Field": "Currency", "Value": currency},
    ])
    buffer = io.StringIO()
    header.to_csv(buffer, index=False, header=False, lineterminator="\n")
    sections = [buffer.getvalue()]

    live = [e for e in expenses if not e.deleted]
    if content.expense_details and live:
        sections.append(_section("Expenses", expense_frame(live, names, currency, precision)))

    if content.settlement_info:
        if settlements:
            sections.append(_section("Settlements", settlement_frame(settlements, names, currency, precision)))
        else:
            sections.append(f"[Settlements]\n\n{NO_TRANSFERS_MESSAGE}\n")

    if content.member_balances and balances:
        sections.append(_section("Member Balances", balance_frame(balances, names, currency, precision)))

    if content.statistics_summary and statistics is not None:
        sections.append(_section("Statistics", statistics_frame(statistics, currency, precision)))
        if statistics.categories:
            sections.append(_section("Category Breakdown", category_frame(statistics.categories, currency, precision)))

    return "\ufeff" + "\n".join(sections)
