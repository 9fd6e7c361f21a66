"""
Accounting services.

- Recording expenses and income with their effect on account balances
- Transfers between accounts
- Balance sheet, cash flow, trial balance and payment-account report
"""

import logging
from collections import OrderedDict
from datetime import timedelta
from decimal import Decimal

from django.db import transaction
from django.db.models import Sum
from django.db.models.functions import TruncDate
from django.utils import timezone

from apps.core.exceptions import BadRequest, InvalidStateError
from apps.core.history import record_history
from apps.core.utils import money, period_bounds
from apps.inventory import fifo

from .models import Account, AccountTransfer, Expense, Income

logger = logging.getLogger(__name__)

BALANCE_TOLERANCE = Decimal("0.01")


def _check_account(tenant, account):
    if account is not None and account.tenant_id != tenant.pk:
        raise BadRequest("Account does not belong to this business.")


def _positive_amount(amount):
    amount = money(amount)
    if amount <= 0:
        raise BadRequest("Amount must be greater than zero.", details={"amount": str(amount)})
    return amount


@transaction.atomic
def record_expense(tenant, user, category, amount, account=None, **fields):
    """
    Create an expense; a paid expense with an account debits that account.

    Extra ``fields`` are model fields (warehouse, expense_date, status,
    description).
    """
    _check_account(tenant, account)
    amount = _positive_amount(amount)
    expense = Expense.objects.create(
        tenant=tenant,
        category=category,
        amount=amount,
        account=account,
        created_by=user,
        **fields,
    )
    expense.apply_balance()
    record_history(
        tenant,
        user,
        "EXPENSE_CREATED",
        expense,
        f"Expense {expense.reference}: {category} {expense.amount}",
    )
    return expense


@transaction.atomic
def record_income(tenant, user, category, amount, account=None, **fields):
    """Create an income entry; received income with an account credits it."""
    _check_account(tenant, account)
    amount = _positive_amount(amount)
    income = Income.objects.create(
        tenant=tenant,
        category=category,
        amount=amount,
        account=account,
        created_by=user,
        **fields,
    )
    income.apply_balance()
    record_history(
        tenant,
        user,
        "INCOME_CREATED",
        income,
        f"Income {income.reference}: {category} {income.amount}",
    )
    return income


@transaction.atomic
def update_entry(entry, user, **changes):
    """
    Edit an expense or income entry, moving its balance effect along with it.
    """
    _check_account(entry.tenant, changes.get("account", entry.account))
    if "amount" in changes:
        changes["amount"] = _positive_amount(changes["amount"])
    entry.apply_balance(-1)
    for field, value in changes.items():
        setattr(entry, field, value)
    entry.mark_modified(user)
    entry.save()
    entry.apply_balance()
    return entry


@transaction.atomic
def settle_entry(entry, user):
    """Mark a pending expense paid or pending income received."""
    if entry.status == entry.settled_status:
        raise InvalidStateError(f"{entry.reference} is already {entry.status}.")
    entry.status = entry.settled_status
    entry.mark_modified(user)
    entry.save(update_fields=["status", "mod_flag", "modified_by", "updated_at"])
    entry.apply_balance()
    record_history(
        entry.tenant,
        user,
        f"{entry.__class__.__name__.upper()}_SETTLED",
        entry,
        f"{entry.reference} marked {entry.status}",
    )
    return entry


@transaction.atomic
def transfer_funds(tenant, user, from_account, to_account, amount, transfer_date=None, note=""):
    """
    Move money between two accounts.

    Both accounts are locked in primary-key order. Cash, bank, asset and
    equity accounts cannot go below zero; credit and liability accounts can.
    """
    amount = money(amount)
    if amount <= 0:
        raise BadRequest("Transfer amount must be greater than zero.")
    if from_account.pk == to_account.pk:
        raise BadRequest("Cannot transfer to the same account.")
    _check_account(tenant, from_account)
    _check_account(tenant, to_account)

    locked = {
        account.pk: account
        for account in Account.objects.select_for_update()
        .filter(pk__in=[from_account.pk, to_account.pk])
        .order_by("pk")
    }
    source = locked[from_account.pk]
    target = locked[to_account.pk]

    if not source.is_credit_account and source.balance < amount:
        logger.warning(
            f"Transfer of {amount} from account {source.pk} refused: balance {source.balance}"
        )
        raise BadRequest(
            f"Insufficient balance in {source.name}.",
            details={"balance": str(source.balance), "requested": str(amount)},
        )

    source.adjust_balance(-amount)
    target.adjust_balance(amount)
    transfer = AccountTransfer.objects.create(
        tenant=tenant,
        from_account=source,
        to_account=target,
        amount=amount,
        transfer_date=transfer_date or timezone.localdate(),
        note=note,
        created_by=user,
    )
    record_history(
        tenant,
        user,
        "ACCOUNT_TRANSFER_CREATED",
        transfer,
        f"Transferred {amount} from {source.name} to {target.name}",
    )
    return transfer


def _float_lines(lines):
    return [dict(line, balance=float(line["balance"])) for line in lines]


def balance_sheet(tenant, as_of=None):
    """
    Balance sheet from account balances plus inventory at FIFO cost.

    Retained earnings are the net profit from the tenant's first day up to
    ``as_of``.
    """
    from apps.reporting.services import profit_and_loss

    as_of = as_of or timezone.localdate()
    accounts = Account.objects.filter(tenant=tenant, is_active=True).order_by("name")

    assets, liabilities, equity = [], [], []
    for account in accounts:
        line = {
            "id": account.pk,
            "name": account.name,
            "type": account.account_type,
            "balance": account.balance,
        }
        if account.account_type in Account.ASSET_TYPES:
            assets.append(line)
        elif account.account_type in Account.LIABILITY_TYPES:
            liabilities.append(line)
        else:
            equity.append(line)

    inventory_value = fifo.stock_value(tenant, basis="cost")
    assets.append(
        {"id": None, "name": "Inventory", "type": "inventory", "balance": inventory_value}
    )

    start = timezone.localtime(tenant.created_at).date() if tenant.created_at else as_of
    net_profit = profit_and_loss(tenant, min(start, as_of), as_of)["summary"]["netProfit"]
    retained = Decimal(str(net_profit))
    equity.append(
        {"id": None, "name": "Retained earnings", "type": "retained", "balance": money(retained)}
    )

    total_assets = sum((line["balance"] for line in assets), Decimal("0.00"))
    total_liabilities = sum((line["balance"] for line in liabilities), Decimal("0.00"))
    total_equity = sum((line["balance"] for line in equity), Decimal("0.00"))
    difference = total_assets - (total_liabilities + total_equity)

    return {
        "report_type": "balance_sheet",
        "generated_at": timezone.now().isoformat(),
        "as_of_date": as_of.isoformat(),
        "assets": {"accounts": _float_lines(assets), "total": float(total_assets)},
        "liabilities": {"accounts": _float_lines(liabilities), "total": float(total_liabilities)},
        "equity": {"accounts": _float_lines(equity), "total": float(total_equity)},
        "summary": {
            "total_assets": float(total_assets),
            "total_liabilities_and_equity": float(total_liabilities + total_equity),
            "difference": float(difference),
            "balanced": abs(difference) < BALANCE_TOLERANCE,
        },
    }


def _daily_totals(queryset, date_field, amount_field):
    rows = (
        queryset.annotate(day=TruncDate(date_field))
        .values("day")
        .annotate(day_total=Sum(amount_field))
        .order_by("day")
    )
    return {row["day"]: row["day_total"] or Decimal("0.00") for row in rows}


def _date_totals(queryset, date_field, amount_field):
    rows = queryset.values(date_field).annotate(day_total=Sum(amount_field)).order_by(date_field)
    return {row[date_field]: row["day_total"] or Decimal("0.00") for row in rows}


def cash_flow(tenant, start_date, end_date):
    """
    Money in and out over a period, with a per-day series.

    inflows = sales totals - refunds + received income
    outflows = paid expenses + received purchases
    """
    from apps.procurement.models import Purchase
    from apps.sales.models import Sale, SellReturn

    start, end = period_bounds(start_date, end_date)

    sales = Sale.objects.filter(
        tenant=tenant, is_voided=False, sale_date__gte=start, sale_date__lt=end
    )
    refunds = SellReturn.objects.filter(
        tenant=tenant,
        status=SellReturn.COMPLETED,
        processed_at__gte=start,
        processed_at__lt=end,
    )
    income = Income.objects.filter(
        tenant=tenant,
        status=Income.RECEIVED,
        income_date__gte=start_date,
        income_date__lte=end_date,
    )
    expenses = Expense.objects.filter(
        tenant=tenant,
        status=Expense.PAID,
        expense_date__gte=start_date,
        expense_date__lte=end_date,
    )
    purchases = Purchase.objects.filter(
        tenant=tenant,
        status=Purchase.RECEIVED,
        received_at__gte=start,
        received_at__lt=end,
    )

    daily_sales = _daily_totals(sales, "sale_date", "total")
    daily_refunds = _daily_totals(refunds, "processed_at", "refund_amount")
    daily_income = _date_totals(income, "income_date", "amount")
    daily_expenses = _date_totals(expenses, "expense_date", "amount")
    daily_purchases = _daily_totals(purchases, "received_at", "total")

    zero = Decimal("0.00")
    series = []
    totals = {"sales": zero, "refunds": zero, "income": zero, "expenses": zero, "purchases": zero}
    day = start_date
    while day <= end_date:
        row = {
            "sales": daily_sales.get(day, zero),
            "refunds": daily_refunds.get(day, zero),
            "income": daily_income.get(day, zero),
            "expenses": daily_expenses.get(day, zero),
            "purchases": daily_purchases.get(day, zero),
        }
        for key, value in row.items():
            totals[key] += value
        inflow = row["sales"] - row["refunds"] + row["income"]
        outflow = row["expenses"] + row["purchases"]
        series.append(
            {
                "date": day.isoformat(),
                "inflow": float(inflow),
                "outflow": float(outflow),
                "net": float(inflow - outflow),
            }
        )
        day += timedelta(days=1)

    inflows = totals["sales"] - totals["refunds"] + totals["income"]
    outflows = totals["expenses"] + totals["purchases"]
    return {
        "report_type": "cash_flow",
        "generated_at": timezone.now().isoformat(),
        "period": {"start_date": start_date.isoformat(), "end_date": end_date.isoformat()},
        "inflows": {
            "sales": float(totals["sales"]),
            "refunds": float(totals["refunds"]),
            "income": float(totals["income"]),
            "total": float(inflows),
        },
        "outflows": {
            "expenses": float(totals["expenses"]),
            "purchases": float(totals["purchases"]),
            "total": float(outflows),
        },
        "summary": {
            "inflows": float(inflows),
            "outflows": float(outflows),
            "net": float(inflows - outflows),
        },
        "series": series,
    }


def trial_balance(tenant, as_of=None):
    """
    Debit and credit column per account.

    Cash, bank and asset accounts are debit-natured; the rest credit-natured.
    A negative balance moves to the opposite column.
    """
    as_of = as_of or timezone.localdate()
    rows = []
    total_debits = Decimal("0.00")
    total_credits = Decimal("0.00")

    for account in Account.objects.filter(tenant=tenant).order_by("account_type", "name"):
        balance = account.balance
        if balance == 0:
            continue
        if account.account_type in Account.ASSET_TYPES:
            debit = balance if balance > 0 else Decimal("0.00")
            credit = -balance if balance < 0 else Decimal("0.00")
        else:
            credit = balance if balance > 0 else Decimal("0.00")
            debit = -balance if balance < 0 else Decimal("0.00")
        rows.append(
            {
                "id": account.pk,
                "name": account.name,
                "type": account.account_type,
                "debit": float(debit),
                "credit": float(credit),
            }
        )
        total_debits += debit
        total_credits += credit

    return {
        "report_type": "trial_balance",
        "generated_at": timezone.now().isoformat(),
        "as_of_date": as_of.isoformat(),
        "accounts": rows,
        "summary": {
            "total_debits": float(total_debits),
            "total_credits": float(total_credits),
            "is_balanced": total_debits == total_credits,
        },
    }


def payment_account_report(tenant, start_date, end_date, account=None):
    """
    Movements per account in a period: paid expenses, received income and
    transfers in and out, each with a signed amount.
    """
    accounts = Account.objects.filter(tenant=tenant).order_by("name")
    if account is not None:
        accounts = accounts.filter(pk=account.pk)

    report = OrderedDict()
    for acc in accounts:
        report[acc.pk] = {
            "id": acc.pk,
            "name": acc.name,
            "type": acc.account_type,
            "balance": float(acc.balance),
            "inflow": Decimal("0.00"),
            "outflow": Decimal("0.00"),
            "movements": [],
        }

    def _add(account_id, day, kind, reference, amount, description=""):
        entry = report.get(account_id)
        if entry is None:
            return
        if amount >= 0:
            entry["inflow"] += amount
        else:
            entry["outflow"] += -amount
        entry["movements"].append(
            {
                "date": day.isoformat(),
                "type": kind,
                "reference": reference,
                "amount": float(amount),
                "description": description,
            }
        )

    for expense in Expense.objects.filter(
        tenant=tenant,
        status=Expense.PAID,
        account__isnull=False,
        expense_date__gte=start_date,
        expense_date__lte=end_date,
    ):
        _add(
            expense.account_id,
            expense.expense_date,
            "expense",
            expense.reference,
            -expense.amount,
            expense.category,
        )
    for income in Income.objects.filter(
        tenant=tenant,
        status=Income.RECEIVED,
        account__isnull=False,
        income_date__gte=start_date,
        income_date__lte=end_date,
    ):
        _add(
            income.account_id,
            income.income_date,
            "income",
            income.reference,
            income.amount,
            income.category,
        )
    for transfer in AccountTransfer.objects.filter(
        tenant=tenant,
        transfer_date__gte=start_date,
        transfer_date__lte=end_date,
    ).select_related("from_account", "to_account"):
        _add(
            transfer.from_account_id,
            transfer.transfer_date,
            "transfer_out",
            f"TRF-{transfer.pk}",
            -transfer.amount,
            f"To {transfer.to_account.name}",
        )
        _add(
            transfer.to_account_id,
            transfer.transfer_date,
            "transfer_in",
            f"TRF-{transfer.pk}",
            transfer.amount,
            f"From {transfer.from_account.name}",
        )

    rows = []
    for entry in report.values():
        entry["movements"].sort(key=lambda movement: movement["date"])
        entry["net"] = float(entry["inflow"] - entry["outflow"])
        entry["inflow"] = float(entry["inflow"])
        entry["outflow"] = float(entry["outflow"])
        rows.append(entry)

    return {
        "report_type": "payment_accounts",
        "generated_at": timezone.now().isoformat(),
        "period": {"start_date": start_date.isoformat(), "end_date": end_date.isoformat()},
        "accounts": rows,
        "summary": {
            "inflow": sum(row["inflow"] for row in rows),
            "outflow": sum(row["outflow"] for row in rows),
        },
    }


