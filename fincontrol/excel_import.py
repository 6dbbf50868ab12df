from __future__ import annotations

import io
import logging
import re
from datetime import date, datetime, timedelta
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Iterable
from zipfile import BadZipFile

from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException
from pydantic import BaseModel

from fincontrol.budget_engine import EXPENSE_CATEGORIES, INCOME_CATEGORIES
from fincontrol.goal_tracker import DEFAULT_GOAL_COLOR, GOAL_CATEGORY_LABELS, HEX_COLOR
from fincontrol.investment_ledger import INVESTMENT_TYPE_LABELS

logger = logging.getLogger(__name__)

EXCEL_EPOCH = date(1899, 12, 30)
TRANSACTION_TYPE_MAP = {"receita": "income", "despesa": "expense"}
IMPORT_INDEXERS = ["CDI", "IPCA", "SELIC", "PREFIXADO"]
FALSE_LABELS = {"não", "nao", "false", "0"}
THOUSANDS_ONLY = re.compile(r"^-?\d{1,3}(\.\d{3})+$")
ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}")
BR_DATE = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})$")

# Sheet key -> (worksheet title, header row). Column order is the file format.
SHEETS: dict[str, tuple[str, list[str]]] = {
    "transactions": ("Transações", ["Tipo", "Valor", "Categoria", "Descrição", "Data"]),
    "investments": (
        "Investimentos",
        [
            "Tipo",
            "Nome",
            "Ticker",
            "Instituição",
            "Quantidade",
            "Preço Médio",
            "Total Investido",
            "Valor Atual",
            "Taxa de Juros",
            "Indexador",
            "Vencimento",
        ],
    ),
    "budgets": ("Orçamentos", ["Categoria", "Limite", "Mês", "Ano"]),
    "goals": (
        "Metas",
        ["Nome", "Descrição", "Categoria", "Valor Alvo", "Valor Atual", "Data Alvo", "Cor"],
    ),
    "recurring": (
        "Despesas Recorrentes",
        ["Descrição", "Valor", "Categoria", "Dia Vencimento", "Ativa", "Observações"],
    ),
}

RAW_KEYS: dict[str, list[str]] = {
    "transactions": ["tipo", "valor", "categoria", "descricao", "data"],
    "investments": [
        "tipo",
        "nome",
        "ticker",
        "instituicao",
        "quantidade",
        "preco_medio",
        "total_investido",
        "valor_atual",
        "taxa_juros",
        "indexador",
        "vencimento",
    ],
    "budgets": ["categoria", "limite", "mes", "ano"],
    "goals": ["nome", "descricao", "categoria", "valor_alvo", "valor_atual", "data_alvo", "cor"],
    "recurring": ["descricao", "valor", "categoria", "dia_vencimento", "ativa", "observacoes"],
}


class ImportFormatError(ValueError):
    """Raised when the upload is not a readable .xlsx workbook."""


class TransactionRow(BaseModel):
    type: str
    value: Decimal
    category: str
    description: str | None = None
    date: date


class InvestmentRow(BaseModel):
    type: str
    name: str
    ticker: str | None = None
    institution: str | None = None
    quantity: Decimal = Decimal("0")
    average_price: Decimal = Decimal("0")
    total_invested: Decimal = Decimal("0")
    current_value: Decimal = Decimal("0")
    interest_rate: Decimal | None = None
    indexer: str | None = None
    maturity_date: date | None = None


class BudgetRow(BaseModel):
    category: str
    limit: Decimal
    month: int = 0
    year: int = 0


class GoalRow(BaseModel):
    name: str
    description: str | None = None
    category: str = "other"
    target_value: Decimal
    current_value: Decimal = Decimal("0")
    target_date: date | None = None
    color: str = DEFAULT_GOAL_COLOR


class RecurringRow(BaseModel):
    description: str
    value: Decimal
    category: str
    due_day: int
    is_active: bool = True
    notes: str | None = None


class ParsedRow(BaseModel):
    row_number: int
    data: dict[str, Any] | None = None
    errors: list[str] = []
    raw: dict[str, Any] = {}


class SheetResult(BaseModel):
    valid: list[ParsedRow] = []
    invalid: list[ParsedRow] = []
    total: int = 0


class ImportSummary(BaseModel):
    total_rows: int
    valid_rows: int
    invalid_rows: int
    has_errors: bool


class ImportPreview(BaseModel):
    sheets: dict[str, SheetResult]
    summary: ImportSummary


def parse_br_number(value: Any) -> Decimal | None:
    """Read a numeric cell or Brazilian-formatted text such as "R$ 1.500,50"."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float, Decimal)):
        return Decimal(str(value))
    text = re.sub(r"\s+", "", str(value)).replace("R$", "")
    if not text:
        return None
    if "," in text:
        text = text.replace(".", "").replace(",", ".")
    elif THOUSANDS_ONLY.match(text):
        text = text.replace(".", "")
    try:
        number = Decimal(text)
    except InvalidOperation:
        return None
    return number if number.is_finite() else None


def parse_date_value(value: Any) -> date | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, (int, float)):
        try:
            return EXCEL_EPOCH + timedelta(days=int(value))
        except OverflowError:
            return None
    text = str(value).strip()
    match = BR_DATE.match(text)
    if match:
        day, month, year = (int(part) for part in match.groups())
        try:
            return date(year, month, day)
        except ValueError:
            return None
    if ISO_DATE.match(text):
        try:
            return date.fromisoformat(text[:10])
        except ValueError:
            return None
    return None


def clean_text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def display(value: Any) -> str:
    return "" if value is None else str(value)


def _lookup(options: Iterable[str]) -> dict[str, str]:
    return {option.lower(): option for option in options}


def _label_map(labels: dict[str, str]) -> dict[str, str]:
    mapping = {code: code for code in labels}
    mapping.update({label.lower(): code for code, label in labels.items()})
    return mapping


INVESTMENT_TYPE_MAP = _label_map(INVESTMENT_TYPE_LABELS)
GOAL_CATEGORY_MAP = _label_map(GOAL_CATEGORY_LABELS)


class RowValidator:
    """Validates sheet rows against the user's category lists."""

    def __init__(
        self,
        expense_categories: Iterable[str] | None = None,
        income_categories: Iterable[str] | None = None,
    ) -> None:
        self.expense = _lookup(expense_categories or EXPENSE_CATEGORIES)
        self.income = _lookup(income_categories or INCOME_CATEGORIES)

    def transactions(self, raw: dict[str, Any], errors: list[str]) -> TransactionRow | None:
        kind = TRANSACTION_TYPE_MAP.get((clean_text(raw["tipo"]) or "").lower())
        if kind is None:
            errors.append(f'Tipo inválido: "{display(raw["tipo"])}". Use: receita ou despesa')
        value = parse_br_number(raw["valor"])
        if value is None or value <= 0:
            errors.append(f'Valor inválido: "{display(raw["valor"])}"')
        category = self._category(raw["categoria"], self.income if kind == "income" else self.expense, errors)
        when = parse_date_value(raw["data"])
        if when is None:
            errors.append(f'Data inválida: "{display(raw["data"])}". Use DD/MM/AAAA')
        if errors:
            return None
        return TransactionRow(
            type=kind,
            value=value,
            category=category,
            description=clean_text(raw["descricao"]),
            date=when,
        )

    def investments(self, raw: dict[str, Any], errors: list[str]) -> InvestmentRow | None:
        type_text = clean_text(raw["tipo"])
        inv_type = INVESTMENT_TYPE_MAP.get(type_text.lower()) if type_text else None
        if inv_type is None:
            errors.append(f'Tipo inválido: "{display(raw["tipo"])}"')
        name = clean_text(raw["nome"])
        if not name:
            errors.append("Nome é obrigatório")

        amounts: dict[str, Decimal] = {}
        for key, field_name, label in (
            ("quantidade", "quantity", "Quantidade"),
            ("preco_medio", "average_price", "Preço médio"),
            ("total_investido", "total_invested", "Total investido"),
            ("valor_atual", "current_value", "Valor atual"),
        ):
            amount = self._optional_number(raw[key], label, errors)
            if amount is not None and amount < 0:
                errors.append(f"{label} deve ser >= 0")
            amounts[field_name] = amount if amount is not None else Decimal("0")

        interest_rate = self._optional_number(raw["taxa_juros"], "Taxa de juros", errors)
        indexer = clean_text(raw["indexador"])
        if indexer:
            indexer = indexer.upper()
            if indexer not in IMPORT_INDEXERS:
                errors.append(
                    f'Indexador inválido: "{display(raw["indexador"])}". Use: {", ".join(IMPORT_INDEXERS)}'
                )
        maturity = None
        if clean_text(raw["vencimento"]):
            maturity = parse_date_value(raw["vencimento"])
            if maturity is None:
                errors.append(f'Vencimento inválido: "{display(raw["vencimento"])}". Use DD/MM/AAAA')
        if errors:
            return None
        return InvestmentRow(
            type=inv_type,
            name=name,
            ticker=clean_text(raw["ticker"]),
            institution=clean_text(raw["instituicao"]),
            interest_rate=interest_rate,
            indexer=indexer,
            maturity_date=maturity,
            **amounts,
        )

    def budgets(self, raw: dict[str, Any], errors: list[str]) -> BudgetRow | None:
        category = self._category(raw["categoria"], self.expense, errors)
        limit = parse_br_number(raw["limite"])
        if limit is None or limit <= 0:
            errors.append(f'Limite inválido: "{display(raw["limite"])}"')
        month = self._whole_number(raw["mes"], default=0)
        if month is None or not 0 <= month <= 12:
            errors.append(f'Mês inválido: "{display(raw["mes"])}". Use 1-12 ou 0 para fixo')
        year = self._whole_number(raw["ano"], default=0)
        if year is None or (year != 0 and not 2000 <= year <= 2100):
            errors.append(f'Ano inválido: "{display(raw["ano"])}". Use 2000-2100 ou 0 para fixo')
        if month is not None and year is not None and (month == 0) != (year == 0):
            errors.append("Mês e ano devem ser ambos 0 (orçamento fixo) ou ambos preenchidos")
        if errors:
            return None
        return BudgetRow(category=category, limit=limit, month=month, year=year)

    def goals(self, raw: dict[str, Any], errors: list[str]) -> GoalRow | None:
        name = clean_text(raw["nome"])
        if not name:
            errors.append("Nome é obrigatório")
        category_text = clean_text(raw["categoria"])
        category = "other"
        if category_text:
            category = GOAL_CATEGORY_MAP.get(category_text.lower())
            if category is None:
                errors.append(f'Categoria inválida: "{category_text}"')
        target_value = parse_br_number(raw["valor_alvo"])
        if target_value is None or target_value <= 0:
            errors.append(f'Valor alvo inválido: "{display(raw["valor_alvo"])}"')
        current_value = self._optional_number(raw["valor_atual"], "Valor atual", errors)
        if current_value is not None and current_value < 0:
            errors.append("Valor atual deve ser >= 0")
        target_date = None
        if clean_text(raw["data_alvo"]):
            target_date = parse_date_value(raw["data_alvo"])
            if target_date is None:
                errors.append(f'Data alvo inválida: "{display(raw["data_alvo"])}". Use DD/MM/AAAA')
        color = clean_text(raw["cor"])
        if color and not HEX_COLOR.match(color):
            errors.append(f'Cor inválida: "{color}". Use formato hex (#RRGGBB)')
        if errors:
            return None
        return GoalRow(
            name=name,
            description=clean_text(raw["descricao"]),
            category=category,
            target_value=target_value,
            current_value=current_value or Decimal("0"),
            target_date=target_date,
            color=color.upper() if color else DEFAULT_GOAL_COLOR,
        )

    def recurring(self, raw: dict[str, Any], errors: list[str]) -> RecurringRow | None:
        description = clean_text(raw["descricao"])
        if not description:
            errors.append("Descrição é obrigatória")
        value = parse_br_number(raw["valor"])
        if value is None or value <= 0:
            errors.append(f'Valor inválido: "{display(raw["valor"])}"')
        category = self._category(raw["categoria"], self.expense, errors)
        due_day = self._whole_number(raw["dia_vencimento"])
        if due_day is None or not 1 <= due_day <= 31:
            errors.append(f'Dia vencimento inválido: "{display(raw["dia_vencimento"])}". Use 1-31')
        active_text = (clean_text(raw["ativa"]) or "").lower()
        if errors:
            return None
        return RecurringRow(
            description=description,
            value=value,
            category=category,
            due_day=due_day,
            is_active=active_text not in FALSE_LABELS,
            notes=clean_text(raw["observacoes"]),
        )

    def _category(self, value: Any, options: dict[str, str], errors: list[str]) -> str | None:
        text = clean_text(value)
        if not text:
            errors.append("Categoria é obrigatória")
            return None
        category = options.get(text.lower())
        if category is None:
            errors.append(f'Categoria desconhecida: "{text}"')
        return category

    def _optional_number(self, value: Any, label: str, errors: list[str]) -> Decimal | None:
        if clean_text(value) is None:
            return None
        number = parse_br_number(value)
        if number is None:
            errors.append(f'{label} inválido: "{display(value)}"')
        return number

    def _whole_number(self, value: Any, default: int | None = None) -> int | None:
        if clean_text(value) is None:
            return default
        number = parse_br_number(value)
        if number is None or number != number.to_integral_value():
            return None
        return int(number)


def parse_workbook(
    contents: bytes,
    expense_categories: Iterable[str] | None = None,
    income_categories: Iterable[str] | None = None,
) -> ImportPreview:
    try:
        workbook = load_workbook(io.BytesIO(contents), read_only=True, data_only=True)
    except (InvalidFileException, BadZipFile, KeyError, OSError) as exc:
        raise ImportFormatError("Arquivo inválido. Envie uma planilha .xlsx") from exc

    validator = RowValidator(expense_categories, income_categories)
    try:
        sheets: dict[str, SheetResult] = {}
        for key, (title, _headers) in SHEETS.items():
            if title not in workbook.sheetnames:
                sheets[key] = SheetResult()
                continue
            sheets[key] = parse_sheet(workbook[title], RAW_KEYS[key], getattr(validator, key))
    finally:
        workbook.close()

    total_rows = sum(result.total for result in sheets.values())
    valid_rows = sum(len(result.valid) for result in sheets.values())
    invalid_rows = total_rows - valid_rows
    logger.info("Parsed import workbook: %s rows, %s invalid", total_rows, invalid_rows)
    return ImportPreview(
        sheets=sheets,
        summary=ImportSummary(
            total_rows=total_rows,
            valid_rows=valid_rows,
            invalid_rows=invalid_rows,
            has_errors=invalid_rows > 0,
        ),
    )


def parse_sheet(
    worksheet,
    keys: list[str],
    validate: Callable[[dict[str, Any], list[str]], BaseModel | None],
) -> SheetResult:
    result = SheetResult()
    for row_number, values in enumerate(worksheet.iter_rows(min_row=2, values_only=True), start=2):
        cells = list(values[: len(keys)]) + [None] * max(0, len(keys) - len(values))
        if all(clean_text(cell) is None for cell in cells):
            continue
        raw = dict(zip(keys, cells))
        errors: list[str] = []
        parsed = validate(raw, errors)
        row = ParsedRow(
            row_number=row_number,
            data=parsed.model_dump(mode="json") if parsed is not None else None,
            errors=errors,
            raw={key: _json_safe(value) for key, value in raw.items()},
        )
        if parsed is not None:
            result.valid.append(row)
        else:
            result.invalid.append(row)
    result.total = len(result.valid) + len(result.invalid)
    return result


def _json_safe(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    return value
