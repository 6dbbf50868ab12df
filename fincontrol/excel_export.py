from __future__ import annotations

import csv
import io
from datetime import date
from decimal import Decimal
from typing import Any, Iterable, Sequence

from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.datavalidation import DataValidation
from openpyxl.worksheet.worksheet import Worksheet

from fincontrol.budget_engine import EXPENSE_CATEGORIES, INCOME_CATEGORIES
from fincontrol.excel_import import (
    IMPORT_INDEXERS,
    SHEETS,
    BudgetRow,
    GoalRow,
    InvestmentRow,
    RecurringRow,
    TransactionRow,
)
from fincontrol.goal_tracker import GOAL_CATEGORY_LABELS
from fincontrol.investment_ledger import INVESTMENT_TYPE_LABELS

HEADER_FILL = PatternFill(start_color="FF10B981", end_color="FF10B981", fill_type="solid")
HEADER_FONT = Font(bold=True, color="FFFFFFFF", size=11)
HEADER_BORDER = Border(bottom=Side(style="thin", color="FF0D9668"))
HEADER_ALIGNMENT = Alignment(vertical="center", horizontal="center", wrap_text=True)
DROPDOWN_LAST_ROW = 500
MIN_COLUMN_WIDTH = 12
MAX_COLUMN_WIDTH = 40
CSV_HEADER = ["Tipo", "Valor", "Categoria", "Descrição", "Data"]

INSTRUCTIONS = [
    "INSTRUÇÕES DE PREENCHIMENTO - FinControl",
    "",
    "Este arquivo contém 5 abas para importação de dados:",
    "",
    "1. TRANSAÇÕES",
    "   • Tipo: receita ou despesa",
    "   • Valor: número positivo (ex: 1500.50 ou 1500,50)",
    "   • Categoria: escolha da lista suspensa",
    "   • Descrição: texto livre (opcional)",
    "   • Data: formato DD/MM/AAAA (ex: 15/03/2024)",
    "",
    "2. INVESTIMENTOS",
    "   • Tipo: escolha da lista (Ações, Fundos Imobiliários, ETFs, etc.)",
    "   • Nome: nome do investimento",
    "   • Ticker: código do ativo (opcional para renda fixa)",
    "   • Instituição: corretora ou banco (opcional)",
    "   • Quantidade, Preço Médio, Total Investido, Valor Atual: números",
    "   • Taxa de Juros: percentual (ex: 100 para 100% do CDI)",
    "   • Indexador: CDI, IPCA, SELIC ou PREFIXADO",
    "   • Vencimento: formato DD/MM/AAAA",
    "",
    "3. ORÇAMENTOS",
    "   • Categoria: escolha da lista suspensa",
    "   • Limite: valor máximo para a categoria",
    "   • Mês: 1 a 12, ou 0 para orçamento fixo mensal",
    "   • Ano: ex: 2024, ou 0 para orçamento fixo mensal",
    "",
    "4. METAS",
    "   • Nome: nome da meta",
    "   • Descrição: detalhes da meta (opcional)",
    "   • Categoria: escolha da lista suspensa",
    "   • Valor Alvo: quanto deseja atingir",
    "   • Valor Atual: quanto já possui guardado",
    "   • Data Alvo: formato DD/MM/AAAA (opcional)",
    "   • Cor: código hex (ex: #8B5CF6), opcional",
    "",
    "5. DESPESAS RECORRENTES",
    "   • Descrição: nome da despesa",
    "   • Valor: valor mensal",
    "   • Categoria: escolha da lista suspensa",
    "   • Dia Vencimento: 1 a 31",
    "   • Ativa: Sim ou Não",
    "   • Observações: texto livre (opcional)",
    "",
    "ATENÇÃO:",
    "   • Não altere os nomes das colunas (linha 1 de cada aba)",
    "   • Linhas com erros serão listadas no preview antes da importação",
    "   • A linha de exemplo (linha 2) pode ser apagada ou substituída",
]

TEMPLATE_EXAMPLES: dict[str, list[list[Any]]] = {
    "transactions": [["despesa", 150.0, "Supermercado", "Compras da semana", "15/01/2024"]],
    "investments": [
        ["Ações", "Petrobras", "PETR4", "XP", 100, 28.5, 2850, 3200, "", "", ""],
        ["CDB", "CDB Banco X", "", "Nubank", 1, 5000, 5000, 5150, 100, "CDI", "15/01/2026"],
    ],
    "budgets": [["Supermercado", 800, 0, 0]],
    "goals": [
        [
            "Reserva de Emergência",
            "6 meses de despesas",
            "Reserva de Emergência",
            30000,
            5000,
            "31/12/2025",
            "#EF4444",
        ]
    ],
    "recurring": [["Netflix", 55.9, "Streaming", 15, "Sim", "Plano família"]],
}


def all_categories() -> list[str]:
    return EXPENSE_CATEGORIES + [name for name in INCOME_CATEGORIES if name not in EXPENSE_CATEGORIES]


def dropdowns() -> dict[str, list[tuple[str, Sequence[str]]]]:
    return {
        "transactions": [("A", ["receita", "despesa"]), ("C", all_categories())],
        "investments": [("A", list(INVESTMENT_TYPE_LABELS.values())), ("J", IMPORT_INDEXERS)],
        "budgets": [("A", EXPENSE_CATEGORIES)],
        "goals": [("C", list(GOAL_CATEGORY_LABELS.values()))],
        "recurring": [("C", EXPENSE_CATEGORIES), ("E", ["Sim", "Não"])],
    }


def style_headers(sheet: Worksheet) -> None:
    for cell in sheet[1]:
        cell.fill = HEADER_FILL
        cell.font = HEADER_FONT
        cell.border = HEADER_BORDER
        cell.alignment = HEADER_ALIGNMENT
    sheet.row_dimensions[1].height = 30


def auto_width(sheet: Worksheet) -> None:
    for index, column in enumerate(sheet.iter_cols(), start=1):
        longest = MIN_COLUMN_WIDTH
        for cell in column:
            if cell.value is not None:
                longest = max(longest, len(str(cell.value)))
        sheet.column_dimensions[get_column_letter(index)].width = min(longest + 4, MAX_COLUMN_WIDTH)


def add_dropdown(sheet: Worksheet, column: str, options: Sequence[str]) -> None:
    validation = DataValidation(
        type="list",
        formula1=f'"{",".join(options)}"',
        allow_blank=True,
        showErrorMessage=True,
    )
    validation.errorTitle = "Valor inválido"
    validation.error = f"Escolha uma das opções: {', '.join(options)}"
    sheet.add_data_validation(validation)
    validation.add(f"{column}2:{column}{DROPDOWN_LAST_ROW}")


def add_data_sheet(workbook: Workbook, key: str, rows: Iterable[list[Any]]) -> Worksheet:
    title, headers = SHEETS[key]
    sheet = workbook.create_sheet(title)
    sheet.append(headers)
    for row in rows:
        sheet.append(row)
    style_headers(sheet)
    for column, options in dropdowns()[key]:
        add_dropdown(sheet, column, options)
    auto_width(sheet)
    return sheet


def _new_workbook() -> Workbook:
    workbook = Workbook()
    workbook.remove(workbook.active)
    workbook.properties.creator = "FinControl"
    return workbook


def _to_bytes(workbook: Workbook) -> bytes:
    buffer = io.BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


def build_template() -> bytes:
    workbook = _new_workbook()
    instructions = workbook.create_sheet("Instruções")
    instructions.column_dimensions["A"].width = 80
    for line in INSTRUCTIONS:
        instructions.append([line])
    instructions["A1"].font = Font(bold=True, size=14)
    for key in SHEETS:
        add_data_sheet(workbook, key, TEMPLATE_EXAMPLES[key])
    return _to_bytes(workbook)


def build_export(
    transactions: Iterable[TransactionRow],
    investments: Iterable[InvestmentRow],
    budgets: Iterable[BudgetRow],
    goals: Iterable[GoalRow],
    recurring: Iterable[RecurringRow],
) -> bytes:
    """Write the user's data in the template layout so the file can be imported again."""
    workbook = _new_workbook()
    add_data_sheet(workbook, "transactions", [_transaction_cells(row) for row in transactions])
    add_data_sheet(workbook, "investments", [_investment_cells(row) for row in investments])
    add_data_sheet(
        workbook,
        "budgets",
        [[row.category, _number(row.limit), row.month, row.year] for row in budgets],
    )
    add_data_sheet(workbook, "goals", [_goal_cells(row) for row in goals])
    add_data_sheet(workbook, "recurring", [_recurring_cells(row) for row in recurring])
    return _to_bytes(workbook)


def build_transactions_csv(transactions: Iterable[TransactionRow]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\r\n")
    writer.writerow(CSV_HEADER)
    for row in transactions:
        writer.writerow(
            [
                "Receita" if row.type == "income" else "Despesa",
                f"{row.value:.2f}".replace(".", ","),
                row.category,
                row.description or "",
                _br_date(row.date),
            ]
        )
    return "\ufeff" + buffer.getvalue()


def export_filename(kind: str, today: date, extension: str) -> str:
    return f"fincontrol-{kind}-{today.isoformat()}.{extension}"


def _transaction_cells(row: TransactionRow) -> list[Any]:
    return [
        "receita" if row.type == "income" else "despesa",
        _number(row.value),
        row.category,
        row.description or "",
        _br_date(row.date),
    ]


def _investment_cells(row: InvestmentRow) -> list[Any]:
    return [
        INVESTMENT_TYPE_LABELS.get(row.type, row.type),
        row.name,
        row.ticker or "",
        row.institution or "",
        _number(row.quantity),
        _number(row.average_price),
        _number(row.total_invested),
        _number(row.current_value),
        _number(row.interest_rate) if row.interest_rate is not None else "",
        row.indexer if row.indexer in IMPORT_INDEXERS else "",
        _br_date(row.maturity_date),
    ]


def _goal_cells(row: GoalRow) -> list[Any]:
    return [
        row.name,
        row.description or "",
        GOAL_CATEGORY_LABELS.get(row.category, row.category),
        _number(row.target_value),
        _number(row.current_value),
        _br_date(row.target_date),
        row.color,
    ]


def _recurring_cells(row: RecurringRow) -> list[Any]:
    return [
        row.description,
        _number(row.value),
        row.category,
        row.due_day,
        "Sim" if row.is_active else "Não",
        row.notes or "",
    ]


def _number(value: Decimal) -> float:
    return float(value)


def _br_date(value: date | None) -> str:
    return value.strftime("%d/%m/%Y") if value else ""
