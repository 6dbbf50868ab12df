from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Iterable, List, Optional

ZERO = Decimal("0")
ONE = Decimal("1")
HUNDRED = Decimal("100")

INVESTMENT_TYPES = {"stock", "fii", "etf", "crypto", "cdb", "treasury", "lci_lca", "savings", "other"}
FIXED_INCOME_TYPES = {"cdb", "treasury", "lci_lca", "savings"}
OPERATION_TYPES = {"buy", "sell", "deposit", "withdraw", "dividend"}
INDEXERS = {"CDI", "IPCA", "SELIC", "PREFIXADO", "NA"}
INVESTMENT_TYPE_LABELS = {
    "stock": "Ações",
    "fii": "Fundos Imobiliários",
    "etf": "ETFs",
    "crypto": "Criptomoedas",
    "cdb": "CDB",
    "treasury": "Tesouro Direto",
    "lci_lca": "LCI/LCA",
    "savings": "Poupança",
    "other": "Outros",
}
INVESTMENT_CATEGORY = "Investimento"
DIVIDEND_CATEGORY = "Dividendos"


class InsufficientQuantityError(ValueError):
    """Raised when a sale asks for more units than the position holds."""


class InsufficientBalanceError(ValueError):
    """Raised when a withdrawal exceeds the current value or a buy exceeds the cash balance."""


class InvalidOperationDateError(ValueError):
    """Raised when an operation is dated in the future or before the last one."""


@dataclass(frozen=True)
class Position:
    type: str
    quantity: Decimal = ZERO
    average_price: Decimal = ZERO
    current_price: Decimal = ZERO
    total_invested: Decimal = ZERO
    current_value: Decimal = ZERO

    @property
    def is_fixed_income(self) -> bool:
        return self.type in FIXED_INCOME_TYPES


@dataclass(frozen=True)
class PositionMetrics:
    quantity: Decimal
    average_price: Decimal
    current_price: Decimal
    total_invested: Decimal
    current_value: Decimal
    profit_loss: Decimal
    profit_loss_percent: Decimal


@dataclass(frozen=True)
class Operation:
    type: str
    price: Decimal = ZERO
    quantity: Decimal = ONE
    fees: Decimal = ZERO
    total: Optional[Decimal] = None
    date: Optional[date] = None


@dataclass(frozen=True)
class LedgerEntry:
    type: str
    amount: Decimal
    category: str
    description: str


@dataclass(frozen=True)
class OperationResult:
    operation_type: str
    quantity: Decimal
    price: Decimal
    total: Decimal
    fees: Decimal
    metrics: Optional[PositionMetrics]
    ledger_entry: Optional[LedgerEntry]


def normalize_operation_type(value: str) -> str:
    normalized = value.strip().lower()
    if normalized not in OPERATION_TYPES:
        raise ValueError("Invalid operation type.")
    return normalized


def profit_metrics(total_invested: Decimal, current_value: Decimal) -> tuple[Decimal, Decimal]:
    profit_loss = current_value - total_invested
    percent = profit_loss / total_invested * HUNDRED if total_invested > ZERO else ZERO
    return profit_loss, percent


def validate_operation_date(
    operation_date: date, today: date, last_operation_date: Optional[date] = None
) -> None:
    if operation_date > today:
        raise InvalidOperationDateError("A data da operação não pode ser futura")
    if last_operation_date is not None and operation_date < last_operation_date:
        raise InvalidOperationDateError(
            "A data da operação não pode ser anterior a "
            f"{last_operation_date.strftime('%d/%m/%Y')} (data da última operação)"
        )


def ensure_balance_covers(available_balance: Decimal, required: Decimal) -> None:
    if available_balance < required:
        raise InsufficientBalanceError(
            f"Saldo insuficiente: disponível R$ {available_balance:.2f}, necessário R$ {required:.2f}"
        )


def opening_deposit_entry(name: str, amount: Decimal) -> LedgerEntry:
    return LedgerEntry(
        type="expense",
        amount=amount,
        category=INVESTMENT_CATEGORY,
        description=f"Aplicação: {name}",
    )


def apply_operation(
    position: Position,
    operation: Operation,
    name: str,
    ticker: Optional[str] = None,
    available_balance: Optional[Decimal] = None,
    skip_balance_check: bool = False,
) -> OperationResult:
    """Validate an operation and compute the new position and its ledger entry.

    Buys are checked against ``available_balance`` when one is given. With
    ``skip_balance_check`` the buy is neither checked nor written to the ledger.
    """
    op_type = normalize_operation_type(operation.type)
    if op_type == "dividend":
        return _apply_dividend(operation, name, ticker)

    is_buy = op_type in {"buy", "deposit"}
    fixed = position.is_fixed_income
    quantity = operation.quantity if operation.quantity and operation.quantity > ZERO else ONE
    price = operation.price
    fees = operation.fees or ZERO
    if price is None or price <= ZERO:
        raise ValueError("Valor é obrigatório")
    if fees < ZERO:
        raise ValueError("Fees cannot be negative.")
    total = price + fees if fixed else quantity * price + fees

    if not is_buy:
        if fixed and price > position.current_value:
            raise InsufficientBalanceError(
                f"Valor do resgate (R$ {price:.2f}) excede o saldo disponível "
                f"(R$ {position.current_value:.2f})"
            )
        if not fixed and quantity > position.quantity:
            raise InsufficientQuantityError(
                f"Quantidade ({quantity}) excede o disponível ({position.quantity} cotas)"
            )
    elif not skip_balance_check and available_balance is not None:
        ensure_balance_covers(available_balance, total)

    metrics = _position_after(position, is_buy, quantity, price, total, fixed)
    if is_buy and skip_balance_check:
        ledger_entry = None
    elif is_buy:
        ledger_entry = LedgerEntry(
            type="expense",
            amount=total,
            category=INVESTMENT_CATEGORY,
            description=f"{'Depósito' if fixed else 'Compra'}: {name}",
        )
    else:
        ledger_entry = LedgerEntry(
            type="income",
            amount=total - fees,
            category=INVESTMENT_CATEGORY,
            description=f"{'Resgate' if fixed else 'Venda'}: {name}",
        )
    return OperationResult(
        operation_type=op_type,
        quantity=ONE if fixed else quantity,
        price=total - fees if fixed else price,
        total=total,
        fees=fees,
        metrics=metrics,
        ledger_entry=ledger_entry,
    )


def _apply_dividend(operation: Operation, name: str, ticker: Optional[str]) -> OperationResult:
    total = operation.total
    if total is None or total <= ZERO:
        raise ValueError("Valor do dividendo é obrigatório")
    label = f"{name} ({ticker})" if ticker else name
    return OperationResult(
        operation_type="dividend",
        quantity=ZERO,
        price=ZERO,
        total=total,
        fees=ZERO,
        metrics=None,
        ledger_entry=LedgerEntry(
            type="income",
            amount=total,
            category=DIVIDEND_CATEGORY,
            description=f"Provento: {label}",
        ),
    )


def _position_after(
    position: Position,
    is_buy: bool,
    quantity: Decimal,
    price: Decimal,
    total: Decimal,
    fixed: bool,
) -> PositionMetrics:
    if fixed:
        if is_buy:
            total_invested = position.total_invested + total
            current_value = position.current_value + total
        else:
            # Withdrawals remove invested capital in the same proportion as value.
            share = total / position.current_value if position.current_value > ZERO else ONE
            total_invested = max(ZERO, position.total_invested - position.total_invested * share)
            current_value = max(ZERO, position.current_value - total)
        new_quantity = ONE
        average_price = total_invested
        current_price = current_value
    else:
        if is_buy:
            new_quantity = position.quantity + quantity
            total_invested = position.total_invested + total
        else:
            new_quantity = max(ZERO, position.quantity - quantity)
            total_invested = max(ZERO, position.total_invested - quantity * position.average_price)
        average_price = total_invested / new_quantity if new_quantity > ZERO else ZERO
        current_price = position.current_price or price
        current_value = new_quantity * current_price

    profit_loss, profit_loss_percent = profit_metrics(total_invested, current_value)
    return PositionMetrics(
        quantity=new_quantity,
        average_price=average_price,
        current_price=current_price,
        total_invested=total_invested,
        current_value=current_value,
        profit_loss=profit_loss,
        profit_loss_percent=profit_loss_percent,
    )


@dataclass(frozen=True)
class HoldingSnapshot:
    id: int
    name: str
    type: str
    total_invested: Decimal
    current_value: Decimal


def portfolio_overview(holdings: Iterable[HoldingSnapshot]) -> dict:
    items: List[HoldingSnapshot] = list(holdings)
    total_invested = sum((item.total_invested for item in items), ZERO)
    current_value = sum((item.current_value for item in items), ZERO)
    by_type: dict[str, Decimal] = {}
    for item in items:
        by_type[item.type] = by_type.get(item.type, ZERO) + item.current_value
    allocation = [
        {
            "type": inv_type,
            "label": INVESTMENT_TYPE_LABELS.get(inv_type, inv_type),
            "value": value,
            "percentage": value / current_value * HUNDRED if current_value > ZERO else ZERO,
        }
        for inv_type, value in sorted(by_type.items(), key=lambda pair: pair[1], reverse=True)
    ]
    performers = [
        (profit_metrics(item.total_invested, item.current_value)[1], item)
        for item in items
        if item.total_invested > ZERO
    ]
    performers.sort(key=lambda pair: pair[0])
    profit_loss, profit_loss_percent = profit_metrics(total_invested, current_value)
    return {
        "total_invested": total_invested,
        "current_value": current_value,
        "profit_loss": profit_loss,
        "profit_loss_percent": profit_loss_percent,
        "allocation": allocation,
        "best_performer": _performer(performers[-1]) if performers else None,
        "worst_performer": _performer(performers[0]) if performers else None,
    }


def _performer(pair: tuple[Decimal, HoldingSnapshot]) -> dict:
    percent, item = pair
    return {"id": item.id, "name": item.name, "profit_loss_percent": percent}
