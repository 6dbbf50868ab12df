import io
import unittest
from datetime import date
from decimal import Decimal

from openpyxl import load_workbook

from fincontrol.excel_export import (
    build_export,
    build_template,
    build_transactions_csv,
    export_filename,
)
from fincontrol.excel_import import (
    BudgetRow,
    GoalRow,
    InvestmentRow,
    RecurringRow,
    TransactionRow,
    parse_workbook,
)


class TemplateTests(unittest.TestCase):
    def test_template_layout(self) -> None:
        workbook = load_workbook(io.BytesIO(build_template()))

        self.assertEqual(
            workbook.sheetnames,
            ["Instruções", "Transações", "Investimentos", "Orçamentos", "Metas", "Despesas Recorrentes"],
        )
        transactions = workbook["Transações"]
        self.assertEqual([cell.value for cell in transactions[1]], ["Tipo", "Valor", "Categoria", "Descrição", "Data"])
        self.assertTrue(transactions["A1"].font.bold)
        self.assertEqual(len(transactions.data_validations.dataValidation), 2)
        self.assertEqual(workbook["Instruções"]["A1"].value, "INSTRUÇÕES DE PREENCHIMENTO - FinControl")


class ExportTests(unittest.TestCase):
    def setUp(self) -> None:
        self.transactions = [
            TransactionRow(
                type="expense",
                value=Decimal("1234.5"),
                category="Supermercado",
                description="Compras",
                date=date(2024, 3, 10),
            ),
            TransactionRow(type="income", value=Decimal("5000"), category="Salário", date=date(2024, 3, 5)),
        ]

    def test_export_can_be_imported_again(self) -> None:
        contents = build_export(
            self.transactions,
            [
                InvestmentRow(
                    type="cdb",
                    name="CDB Banco X",
                    quantity=Decimal("1"),
                    average_price=Decimal("5000"),
                    total_invested=Decimal("5000"),
                    current_value=Decimal("5100"),
                    interest_rate=Decimal("110"),
                    indexer="CDI",
                    maturity_date=date(2026, 1, 15),
                )
            ],
            [BudgetRow(category="Lazer", limit=Decimal("300"))],
            [GoalRow(name="Viagem", category="travel", target_value=Decimal("8000"))],
            [RecurringRow(description="Netflix", value=Decimal("55.9"), category="Streaming", due_day=15)],
        )

        preview = parse_workbook(contents)

        self.assertEqual(preview.summary.total_rows, 6)
        self.assertFalse(preview.summary.has_errors)
        self.assertEqual(preview.sheets["transactions"].valid[0].data["date"], "2024-03-10")
        self.assertEqual(preview.sheets["investments"].valid[0].data["maturity_date"], "2026-01-15")
        self.assertEqual(preview.sheets["goals"].valid[0].data["category"], "travel")
        self.assertTrue(preview.sheets["recurring"].valid[0].data["is_active"])

    def test_transactions_csv(self) -> None:
        content = build_transactions_csv(self.transactions)

        self.assertTrue(content.startswith("\ufeff"))
        lines = content.lstrip("\ufeff").split("\r\n")
        self.assertEqual(lines[0], "Tipo,Valor,Categoria,Descrição,Data")
        self.assertEqual(lines[1], 'Despesa,"1234,50",Supermercado,Compras,10/03/2024')
        self.assertEqual(lines[2], 'Receita,"5000,00",Salário,,05/03/2024')

    def test_export_filename(self) -> None:
        self.assertEqual(export_filename("dados", date(2024, 3, 15), "xlsx"), "fincontrol-dados-2024-03-15.xlsx")


if __name__ == "__main__":
    unittest.main()
