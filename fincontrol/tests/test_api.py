import os
import tempfile
import unittest
from datetime import date
from decimal import Decimal
from unittest import mock

TEST_DB_DIR = tempfile.mkdtemp()
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(TEST_DB_DIR, 'fincontrol-test.db')}"

from fastapi.testclient import TestClient  # noqa: E402

from fincontrol import main  # noqa: E402
from fincontrol.currency_conversion import CompositeRateProvider, StaticRateProvider  # noqa: E402
from fincontrol.excel_export import build_template  # noqa: E402

TODAY = date(2024, 3, 15)


def setUpModule() -> None:
    main.metadata.create_all(main.engine)


def amount(value) -> Decimal:
    return Decimal(str(value))


class ApiTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.client = TestClient(main.app)
        patcher = mock.patch("fincontrol.main.current_date", return_value=TODAY)
        patcher.start()
        self.addCleanup(patcher.stop)
        self.user_id = self.register(self.id().rsplit(".", 1)[-1])
        self.headers = {"x-user-id": str(self.user_id)}

    def register(self, name: str) -> int:
        response = self.client.post(
            "/api/auth/register",
            json={"name": name, "email": f"{name}@example.com", "password": "secret123"},
        )
        self.assertEqual(response.status_code, 201)
        return response.json()["id"]

    def post(self, path: str, payload=None):
        return self.client.post(path, json=payload, headers=self.headers)

    def get(self, path: str, **params):
        return self.client.get(path, params=params, headers=self.headers)


class AuthApiTests(ApiTestCase):
    def test_health(self) -> None:
        self.assertEqual(self.client.get("/health").json(), {"status": "ok"})

    def test_duplicate_email_and_login(self) -> None:
        response = self.client.post(
            "/api/auth/register",
            json={"name": "Outra", "email": "TEST_DUPLICATE_EMAIL_AND_LOGIN@example.com", "password": "secret123"},
        )
        self.assertEqual(response.status_code, 409)

        login = self.client.post(
            "/api/auth/login",
            json={"email": "test_duplicate_email_and_login@example.com", "password": "secret123"},
        )
        self.assertEqual(login.json()["id"], self.user_id)
        wrong = self.client.post(
            "/api/auth/login",
            json={"email": "test_duplicate_email_and_login@example.com", "password": "nope"},
        )
        self.assertEqual(wrong.status_code, 401)

    def test_user_identity_header(self) -> None:
        self.assertEqual(self.client.get("/api/balance").status_code, 401)
        self.assertEqual(self.client.get("/api/balance", headers={"x-user-id": "abc"}).status_code, 400)
        self.assertEqual(self.client.get("/api/balance", headers={"x-user-id": "999999"}).status_code, 404)

    def test_preferences_and_password(self) -> None:
        self.assertEqual(self.get("/api/user/preferences").json(), {"budget_threshold": 80})
        response = self.client.put("/api/user/preferences", json={"budget_threshold": 150}, headers=self.headers)
        self.assertEqual(response.status_code, 400)
        response = self.client.put("/api/user/preferences", json={"budget_threshold": 70}, headers=self.headers)
        self.assertEqual(response.json()["budget_threshold"], 70)

        response = self.client.put(
            "/api/user/change-password",
            json={"current_password": "wrong", "new_password": "another1"},
            headers=self.headers,
        )
        self.assertEqual(response.status_code, 400)
        response = self.client.put(
            "/api/user/change-password",
            json={"current_password": "secret123", "new_password": "another1"},
            headers=self.headers,
        )
        self.assertEqual(response.json(), {"status": "updated"})


class LedgerApiTests(ApiTestCase):
    def test_default_categories_and_in_use_protection(self) -> None:
        income = [item["name"] for item in self.get("/api/categories", type="income").json()]
        self.assertIn("Salário", income)

        created = self.post("/api/categories", {"name": "Pets", "type": "expense"})
        self.assertEqual(created.status_code, 201)
        self.assertEqual(self.post("/api/categories", {"name": "Pets", "type": "expense"}).status_code, 409)

        self.post("/api/transactions", {"type": "expense", "value": "30", "category": "Pets", "date": "2024-03-02"})
        response = self.client.delete(f"/api/categories/{created.json()['id']}", headers=self.headers)
        self.assertEqual(response.status_code, 409)

    def test_transactions_and_balance(self) -> None:
        self.post("/api/transactions", {"type": "income", "value": "5000", "category": "Salário", "date": "2024-03-05"})
        created = self.post(
            "/api/transactions",
            {"type": "EXPENSE", "value": "150.50", "category": "Supermercado", "description": " Feira ", "date": "2024-03-10"},
        )
        self.assertEqual(created.status_code, 201)
        self.assertEqual(created.json()["type"], "expense")
        self.assertEqual(created.json()["description"], "Feira")
        self.assertEqual(amount(created.json()["value"]), Decimal("150.50"))

        invalid = self.post("/api/transactions", {"type": "expense", "value": "0", "category": "Lazer", "date": "2024-03-10"})
        self.assertEqual(invalid.status_code, 400)

        balance = self.get("/api/balance").json()
        self.assertEqual(amount(balance["balance"]), Decimal("4849.50"))

        listed = self.get("/api/transactions", type="expense", search="fei").json()
        self.assertEqual([item["id"] for item in listed], [created.json()["id"]])

        summary = self.get("/api/dashboard/summary").json()
        self.assertEqual((summary["month"], summary["year"]), (3, 2024))
        self.assertEqual(amount(summary["totals"]["expense"]), Decimal("150.50"))
        self.assertEqual(len(summary["monthly"]), 6)

    def test_budget_upsert_and_alerts(self) -> None:
        first = self.post("/api/budgets", {"category": "Supermercado", "limit": "200"})
        second = self.post("/api/budgets", {"category": "Supermercado", "limit": "300"})
        self.assertEqual(first.json()["id"], second.json()["id"])
        self.assertTrue(second.json()["is_fixed"])
        self.assertEqual(self.post("/api/budgets", {"category": "Lazer", "limit": "100", "month": 3}).status_code, 400)

        self.post("/api/transactions", {"type": "expense", "value": "250", "category": "Supermercado", "date": "2024-03-10"})

        budgets = self.get("/api/budgets", month=3, year=2024).json()
        self.assertEqual(amount(budgets["budgets"][0]["spent"]), Decimal("250"))
        self.assertEqual(round(amount(budgets["budgets"][0]["percentage"]), 2), Decimal("83.33"))
        self.assertEqual(amount(budgets["total_remaining"]), Decimal("50"))

        alerts = self.get("/api/budget-alerts").json()
        self.assertEqual(alerts["threshold"], 80)
        self.assertEqual(alerts["alerts"][0]["level"], "warning")
        self.assertEqual(alerts["alerts"][0]["message"], "17% restante do orçamento")
        self.assertEqual(alerts["summary"]["warning_count"], 1)


class CardApiTests(ApiTestCase):
    def create_card(self, name: str) -> dict:
        response = self.post(
            "/api/cards",
            {"name": name, "last_digits": "1234", "limit": "1000", "closing_day": 5, "due_day": 15},
        )
        self.assertEqual(response.status_code, 201)
        return response.json()

    def test_installment_purchase_and_invoice_payment(self) -> None:
        card = self.create_card("Nubank")

        exceeded = self.post(
            f"/api/cards/{card['id']}/purchases",
            {"description": "TV", "value": "1200", "category": "Lazer", "date": "2024-03-10"},
        )
        self.assertEqual(exceeded.status_code, 400)
        self.assertEqual(exceeded.json()["code"], "LIMIT_EXCEEDED")

        created = self.post(
            f"/api/cards/{card['id']}/purchases",
            {"description": "Celular", "value": "300", "category": "Lazer", "date": "2024-03-10", "installments": 3},
        )
        self.assertEqual(created.status_code, 201)
        body = created.json()
        self.assertEqual([item["description"] for item in body["purchases"]], [
            "Celular (1/3)",
            "Celular (2/3)",
            "Celular (3/3)",
        ])
        self.assertEqual({item["date"] for item in body["purchases"]}, {"2024-03-10"})
        self.assertIsNone(body["purchases"][0]["parent_purchase_id"])
        self.assertEqual(body["purchases"][2]["parent_purchase_id"], body["purchases"][0]["id"])
        self.assertEqual(amount(body["available_limit"]), Decimal("700"))

        detail = self.get(f"/api/cards/{card['id']}").json()
        self.assertEqual([(item["month"], item["year"]) for item in detail["invoices"]], [(6, 2024), (5, 2024), (4, 2024)])
        april = detail["invoices"][-1]
        self.assertEqual(april["due_date"], "2024-04-15")
        self.assertEqual(amount(april["total"]), Decimal("100"))

        paid = self.client.put(
            f"/api/cards/{card['id']}/invoices/{april['id']}", json={"status": "paid"}, headers=self.headers
        )
        self.assertEqual(paid.json()["status"], "paid")
        self.assertEqual(amount(paid.json()["paid_amount"]), Decimal("100"))
        payments = self.get("/api/transactions", category="Fatura Cartão").json()
        self.assertEqual(len(payments), 1)
        self.assertEqual(payments[0]["description"], "Fatura Nubank - Abril/2024")
        self.assertEqual(payments[0]["date"], "2024-03-15")

        other = self.create_card("Inter")
        wrong_card = self.client.put(
            f"/api/cards/{other['id']}/invoices/{april['id']}", json={"status": "paid"}, headers=self.headers
        )
        self.assertEqual(wrong_card.json()["code"], "INVALID_REFERENCE")

        analytics = self.get("/api/cards/analytics").json()
        self.assertEqual(amount(analytics["summary"]["total_limit"]), Decimal("2000"))
        self.assertEqual(amount(analytics["summary"]["total_used"]), Decimal("200"))

    def test_budget_counts_installment_purchase_in_purchase_month(self) -> None:
        card = self.create_card("Nubank")
        self.post("/api/budgets", {"category": "Lazer", "limit": "150"})
        self.post(
            f"/api/cards/{card['id']}/purchases",
            {"description": "Show", "value": "200", "category": "Lazer", "date": "2024-03-10", "installments": 2},
        )

        march = self.get("/api/budgets", month=3, year=2024).json()
        april = self.get("/api/budgets", month=4, year=2024).json()
        self.assertEqual(amount(march["budgets"][0]["spent"]), Decimal("200"))
        self.assertEqual(amount(april["budgets"][0]["spent"]), Decimal("0"))

    def test_deleting_one_installment_removes_whole_group(self) -> None:
        card = self.create_card("Nubank")
        single = self.post(
            f"/api/cards/{card['id']}/purchases",
            {"description": "Livro", "value": "50", "category": "Educação", "date": "2024-03-10"},
        ).json()["purchases"][0]
        group = self.post(
            f"/api/cards/{card['id']}/purchases",
            {"description": "Celular", "value": "300", "category": "Lazer", "date": "2024-03-10", "installments": 3},
        ).json()["purchases"]

        response = self.client.delete(f"/api/purchases/{group[1]['id']}", headers=self.headers)
        self.assertEqual(response.json(), {"status": "deleted"})

        detail = self.get(f"/api/cards/{card['id']}").json()
        remaining = [purchase["id"] for invoice in detail["invoices"] for purchase in invoice["purchases"]]
        self.assertEqual(remaining, [single["id"]])
        totals = {(invoice["month"], invoice["year"]): amount(invoice["total"]) for invoice in detail["invoices"]}
        self.assertEqual(totals, {(4, 2024): Decimal("50"), (5, 2024): Decimal("0"), (6, 2024): Decimal("0")})

        missing = self.client.delete(f"/api/purchases/{group[0]['id']}", headers=self.headers)
        self.assertEqual(missing.status_code, 404)

    def test_invalid_card_payload(self) -> None:
        response = self.post("/api/cards", {"name": "X", "last_digits": "12", "limit": "1000", "closing_day": 5, "due_day": 15})
        self.assertEqual(response.status_code, 400)


class InvestmentApiTests(ApiTestCase):
    def test_operations_update_position_and_ledger(self) -> None:
        self.post("/api/transactions", {"type": "income", "value": "1000", "category": "Salário", "date": "2024-03-01"})
        created = self.post(
            "/api/investments",
            {"type": "stock", "name": "Petrobras", "ticker": "petr4", "quantity": "10", "average_price": "20"},
        )
        self.assertEqual(created.status_code, 201)
        investment = created.json()
        self.assertEqual(investment["ticker"], "PETR4")
        self.assertEqual(amount(investment["total_invested"]), Decimal("200"))
        path = f"/api/investments/{investment['id']}/operations"

        too_many = self.post(path, {"type": "sell", "quantity": "20", "price": "25"})
        self.assertEqual(too_many.json()["code"], "INSUFFICIENT_QUANTITY")
        future = self.post(path, {"type": "buy", "quantity": "1", "price": "25", "date": "2024-04-01"})
        self.assertEqual(future.json()["code"], "INVALID_DATE")

        bought = self.post(path, {"type": "buy", "quantity": "5", "price": "30"})
        self.assertEqual(bought.status_code, 201)
        self.assertEqual(amount(bought.json()["investment"]["quantity"]), Decimal("15"))
        self.assertEqual(len(self.get(path).json()), 2)

        ledger = self.get("/api/transactions", category="Investimento").json()
        self.assertEqual(len(ledger), 1)
        self.assertEqual(ledger[0]["type"], "expense")
        self.assertEqual(amount(ledger[0]["value"]), Decimal("150"))

        overview = self.get("/api/investments/analytics").json()
        self.assertEqual(overview["count"], 1)

    def test_fixed_income_withdrawal_beyond_balance(self) -> None:
        created = self.post(
            "/api/investments",
            {"type": "cdb", "name": "CDB Banco X", "total_invested": "1000", "skip_balance_check": True},
        )
        investment = created.json()
        self.assertEqual(amount(investment["quantity"]), Decimal("1"))

        response = self.post(
            f"/api/investments/{investment['id']}/operations", {"type": "withdraw", "price": "5000"}
        )
        self.assertEqual(response.json()["code"], "INSUFFICIENT_BALANCE")

    def test_cash_balance_guards_applications_and_buys(self) -> None:
        cdb = {"type": "cdb", "name": "CDB Banco X", "total_invested": "1000"}
        unfunded = self.post("/api/investments", cdb)
        self.assertEqual(unfunded.status_code, 400)
        self.assertEqual(unfunded.json()["code"], "INSUFFICIENT_BALANCE")
        self.assertEqual(self.get("/api/investments").json(), [])

        self.post("/api/transactions", {"type": "income", "value": "1500", "category": "Salário", "date": "2024-03-01"})
        investment = self.post("/api/investments", cdb).json()
        ledger = self.get("/api/transactions", category="Investimento").json()
        self.assertEqual([item["description"] for item in ledger], ["Aplicação: CDB Banco X"])
        self.assertEqual(amount(ledger[0]["value"]), Decimal("1000"))
        self.assertEqual(amount(self.get("/api/balance").json()["balance"]), Decimal("500"))

        path = f"/api/investments/{investment['id']}/operations"
        too_big = self.post(path, {"type": "deposit", "price": "600"})
        self.assertEqual(too_big.status_code, 400)
        self.assertEqual(too_big.json()["code"], "INSUFFICIENT_BALANCE")

        external = self.post(path, {"type": "deposit", "price": "600", "skip_balance_check": True})
        self.assertEqual(external.status_code, 201)
        self.assertEqual(amount(external.json()["investment"]["current_value"]), Decimal("1600"))
        self.assertEqual(len(self.get("/api/transactions", category="Investimento").json()), 1)


class RecurringAndGoalApiTests(ApiTestCase):
    def test_launch_is_idempotent_within_month(self) -> None:
        self.post("/api/recurring-expenses", {"description": "Internet", "value": "100", "category": "Internet", "due_day": 10})

        first = self.post("/api/recurring-expenses/launch").json()
        second = self.post("/api/recurring-expenses/launch").json()

        self.assertEqual(first["launched"], 1)
        self.assertEqual(first["transactions"][0]["date"], "2024-03-10")
        self.assertEqual(second["launched"], 0)
        listed = self.get("/api/recurring-expenses").json()
        self.assertTrue(listed["expenses"][0]["is_launched_this_month"])
        self.assertEqual(listed["summary"]["launched_count"], 1)

    def test_goal_contributions(self) -> None:
        goal = self.post("/api/goals", {"name": "Viagem", "category": "travel", "target_value": "1000"}).json()
        path = f"/api/goals/{goal['id']}/contribute"

        deposit = self.post(path, {"value": "400"})
        self.assertEqual(deposit.status_code, 201)
        self.assertEqual(amount(deposit.json()["goal"]["current_value"]), Decimal("400"))
        withdraw = self.post(path, {"value": "500", "type": "withdraw"})
        self.assertEqual(withdraw.json()["code"], "INSUFFICIENT_BALANCE")

        savings = self.get("/api/transactions", category="savings").json()
        self.assertEqual(savings[0]["description"], "Aporte na meta: Viagem")

        completed = self.post(path, {"value": "600"}).json()["goal"]
        self.assertTrue(completed["is_completed"])
        contribution_id = self.get(f"/api/goals/{goal['id']}").json()["contributions"][0]["id"]
        reverted = self.client.delete(
            f"/api/goals/{goal['id']}/contributions/{contribution_id}", headers=self.headers
        ).json()
        self.assertFalse(reverted["is_completed"])
        self.assertEqual(amount(reverted["current_value"]), Decimal("400"))

        analytics = self.get("/api/goals/analytics").json()
        self.assertEqual(analytics["summary"]["total_goals"], 1)

    def test_deleting_contribution_reopens_goal_still_at_target(self) -> None:
        goal = self.post("/api/goals", {"name": "Reserva", "category": "emergency", "target_value": "100"}).json()
        path = f"/api/goals/{goal['id']}/contribute"
        self.post(path, {"value": "100"})
        extra = self.post(path, {"value": "10", "notes": "bônus"}).json()
        self.assertTrue(extra["goal"]["is_completed"])

        reverted = self.client.delete(
            f"/api/goals/{goal['id']}/contributions/{extra['contribution']['id']}", headers=self.headers
        ).json()

        self.assertEqual(amount(reverted["current_value"]), Decimal("100"))
        self.assertFalse(reverted["is_completed"])
        self.assertIsNone(reverted["completed_at"])
        savings = self.get("/api/transactions", category="savings").json()
        self.assertIn("Aporte na meta: Reserva - bônus", [item["description"] for item in savings])


class ReportApiTests(ApiTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.post("/api/transactions", {"type": "income", "value": "4000", "category": "Salário", "date": "2024-03-05"})
        self.post("/api/transactions", {"type": "expense", "value": "900", "category": "Aluguel", "date": "2024-03-08"})
        self.post("/api/recurring-expenses", {"description": "Luz", "value": "120", "category": "Luz", "due_day": 20})

    def test_reports_respond(self) -> None:
        calendar = self.get("/api/bills-calendar").json()
        self.assertEqual(len(calendar["calendar"]), 31)
        self.assertEqual(calendar["summary"]["total_bills"], 1)
        self.assertEqual(self.get("/api/bills-calendar", month=13).status_code, 400)

        wealth = self.get("/api/wealth-evolution", period="3m").json()
        self.assertEqual(wealth["period"], "3m")
        self.assertEqual(amount(wealth["summary"]["current_wealth"]), Decimal("3100"))

        analytics = self.get("/api/analytics").json()
        self.assertEqual(analytics["spending_velocity"]["days_elapsed"], 15)

        health = self.get("/api/financial-health").json()
        self.assertTrue(0 <= health["score"] <= 1000)

        forecast = self.get("/api/cash-flow-forecast", days=60).json()
        self.assertEqual(forecast["period"], 60)
        self.assertEqual(amount(forecast["summary"]["current_balance"]), Decimal("3100"))

    def test_exchange_rates_use_fallback(self) -> None:
        provider = CompositeRateProvider(primary=StaticRateProvider(), fallback=StaticRateProvider())
        with mock.patch.object(main, "FX_PROVIDER", provider):
            body = self.client.get("/api/rates/exchange").json()
        self.assertEqual(body["base"], "BRL")
        self.assertEqual(set(body["rates"]), {"USD", "EUR", "GBP"})
        self.assertEqual(body["source"], "static")


class DataApiTests(ApiTestCase):
    def upload(self, filename: str, content: bytes):
        return self.client.post(
            "/api/data/import",
            files={"file": (filename, content, "application/octet-stream")},
            headers=self.headers,
        )

    def test_import_rejections(self) -> None:
        self.assertEqual(self.post("/api/data/import").json()["code"], "NO_FILE")
        self.assertEqual(self.upload("dados.csv", b"a,b").json()["code"], "INVALID_FORMAT")
        self.assertEqual(self.upload("dados.xlsx", b"garbage").json()["code"], "INVALID_FORMAT")

    def test_import_preview_and_confirm(self) -> None:
        preview = self.upload("modelo.xlsx", build_template()).json()
        self.assertEqual(preview["summary"]["total_rows"], 6)
        self.assertFalse(preview["summary"]["has_errors"])

        confirmed = self.post(
            "/api/data/import/confirm",
            {
                "transactions": [preview["sheets"]["transactions"]["valid"][0]["data"]],
                "goals": [{"name": "Reserva", "category": "emergency", "target_value": "1000", "current_value": "200"}],
            },
        ).json()
        self.assertEqual(confirmed["transactions"], 1)
        self.assertEqual(confirmed["goals"], 1)
        goal_id = self.get("/api/goals").json()[0]["id"]
        contributions = self.get(f"/api/goals/{goal_id}").json()["contributions"]
        self.assertEqual(contributions[0]["notes"], "Importado via planilha")

    def test_confirm_rejects_invalid_rows_without_saving(self) -> None:
        valid_transaction = {"type": "expense", "value": "50", "category": "Lazer", "date": "2024-03-01"}
        cases = [
            {"transactions": [valid_transaction, {**valid_transaction, "type": "bogus"}]},
            {"transactions": [{**valid_transaction, "value": "-50"}]},
            {"budgets": [{"category": "Lazer", "limit": "100", "month": 42, "year": 2024}]},
            {"budgets": [{"category": "Lazer", "limit": "0"}]},
            {"recurring": [{"description": "Academia", "value": "90", "category": "Academia", "due_day": 99}]},
            {"goals": [{"name": " ", "target_value": "100"}]},
        ]
        for body in cases:
            with self.subTest(body=body):
                response = self.post("/api/data/import/confirm", body)
                self.assertEqual(response.status_code, 400)
                self.assertIn("Dados inválidos", response.json()["detail"])

        self.assertEqual(self.get("/api/transactions").json(), [])
        self.assertEqual(self.get("/api/budgets", month=3, year=2024).json()["budgets"], [])
        self.assertEqual(self.get("/api/recurring-expenses").json()["expenses"], [])

    def test_template_and_export(self) -> None:
        template = self.client.get("/api/data/template")
        self.assertIn("fincontrol-modelo-importacao.xlsx", template.headers["content-disposition"])

        self.post("/api/transactions", {"type": "expense", "value": "10", "category": "Lazer", "date": "2024-03-01"})
        csv_export = self.get("/api/data/export", format="csv")
        self.assertIn("fincontrol-transacoes-2024-03-15.csv", csv_export.headers["content-disposition"])
        self.assertIn("Despesa", csv_export.content.decode("utf-8"))
        self.assertEqual(self.get("/api/data/export", format="pdf").json()["code"], "INVALID_FORMAT")

        workbook_export = self.get("/api/data/export")
        self.assertEqual(workbook_export.status_code, 200)
        self.assertTrue(workbook_export.content.startswith(b"PK"))


class FeedbackApiTests(ApiTestCase):
    def test_admin_only_management(self) -> None:
        created = self.post("/api/feedback", {"type": "bug", "message": "Botão quebrado", "page": "/dashboard"})
        self.assertEqual(created.status_code, 201)
        self.assertEqual(created.json()["status"], "pending")
        self.assertEqual(len(self.get("/api/feedback/mine").json()), 1)

        forbidden = self.get("/api/feedback")
        self.assertEqual(forbidden.status_code, 403)
        self.assertEqual(forbidden.json()["code"], "FORBIDDEN")

        path = f"/api/feedback/{created.json()['id']}"
        with mock.patch.object(main, "ADMIN_USER_IDS", {self.user_id}):
            empty = self.client.patch(path, json={}, headers=self.headers)
            self.assertEqual(empty.status_code, 400)
            updated = self.client.patch(
                path, json={"status": "resolved", "admin_response": "Corrigido"}, headers=self.headers
            ).json()
            self.assertEqual(updated["status"], "resolved")
            self.assertIsNotNone(updated["responded_at"])
            listed = self.get("/api/feedback", status="resolved").json()
            self.assertIn(created.json()["id"], [item["id"] for item in listed])
            self.assertEqual(self.client.delete(path, headers=self.headers).json(), {"status": "deleted"})


if __name__ == "__main__":
    unittest.main()
