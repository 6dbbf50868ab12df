import logging
import os
from dataclasses import asdict
from datetime import date, datetime, timezone
from datetime import date as date_type
from decimal import Decimal

import bcrypt
from fastapi import FastAPI, File, Header, HTTPException, Query, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel
from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    MetaData,
    Numeric,
    String,
    Table,
    Text,
    UniqueConstraint,
    create_engine,
    func,
    insert,
    or_,
    select,
    update,
)
from sqlalchemy.exc import IntegrityError

from fincontrol import bills_calendar as bills
from fincontrol import cash_flow_forecast as forecast
from fincontrol import financial_health as health
from fincontrol import spending_analytics as spending
from fincontrol import wealth_evolution as wealth
from fincontrol.budget_engine import (
    CARD_PAYMENT_CATEGORY,
    EXPENSE_CATEGORIES,
    INCOME_CATEGORIES,
    Budget,
    CardPurchase as BudgetPurchase,
    Transaction as BudgetTransaction,
    build_budget_alerts,
    evaluate_budgets,
    summarize_alerts,
)
from fincontrol.card_billing import (
    CardPurchase,
    CreditCard,
    Invoice,
    LimitExceededError,
    apply_invoice_payment,
    available_limit,
    build_card_alerts,
    ensure_within_limit,
    monthly_card_spending,
    payment_description,
    plan_installments,
    spending_by_category,
    used_limit,
    validate_cycle_days,
)
from fincontrol.currency_conversion import (
    CompositeRateProvider,
    FrankfurterRateProvider,
    StaticRateProvider,
)
from fincontrol.excel_export import build_export, build_template, build_transactions_csv, export_filename
from fincontrol.excel_import import (
    BudgetRow,
    GoalRow,
    ImportFormatError,
    ImportPreview,
    InvestmentRow,
    RecurringRow,
    TransactionRow,
    parse_workbook,
)
from fincontrol.goal_tracker import (
    GOAL_CATEGORIES,
    Contribution,
    Goal,
    InsufficientGoalBalanceError,
    apply_contribution,
    build_goals_report,
    goal_progress,
    revert_contribution,
    validate_color,
)
from fincontrol.investment_ledger import (
    FIXED_INCOME_TYPES,
    INDEXERS,
    INVESTMENT_TYPES,
    HoldingSnapshot,
    InsufficientBalanceError,
    InsufficientQuantityError,
    InvalidOperationDateError,
    Operation,
    Position,
    apply_operation,
    ensure_balance_covers,
    opening_deposit_entry,
    portfolio_overview,
    profit_metrics,
    validate_operation_date,
)
from fincontrol.periods import month_end, shift_month
from fincontrol.recurring_expenses import (
    RecurringExpense,
    expense_status,
    plan_launch,
    summarize_expenses,
    validate_due_day,
)

ZERO = Decimal("0")

log_level = os.getenv("LOG_LEVEL", "INFO").upper()
logging.basicConfig(level=log_level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger("fincontrol")

app = FastAPI(title="FinControl API")

frontend_origin = os.getenv("FRONTEND_ORIGIN", "http://localhost:3000")
app.add_middleware(
    CORSMiddleware,
    allow_origins=[frontend_origin],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

database_url = os.getenv("DATABASE_URL", "sqlite:///./fincontrol.db")
connect_args = {}
if database_url.startswith("sqlite"):
    connect_args = {"check_same_thread": False}

engine = create_engine(database_url, connect_args=connect_args)
metadata = MetaData()


def get_default_budget_threshold() -> int:
    raw = os.getenv("DEFAULT_BUDGET_THRESHOLD", "80")
    try:
        value = int(raw)
    except ValueError:
        return 80
    return value if 0 <= value <= 100 else 80


def get_admin_user_ids() -> set[int]:
    raw = os.getenv("ADMIN_USER_IDS", "")
    ids: set[int] = set()
    for part in raw.split(","):
        part = part.strip()
        if part.isdigit():
            ids.add(int(part))
    return ids


DEFAULT_BUDGET_THRESHOLD = get_default_budget_threshold()
IMPORT_MAX_BYTES = int(os.getenv("IMPORT_MAX_BYTES", str(5 * 1024 * 1024)))
ADMIN_USER_IDS = get_admin_user_ids()
FX_PROVIDER = CompositeRateProvider(
    primary=FrankfurterRateProvider(
        base_url=os.getenv("EXCHANGE_RATES_URL", "https://api.frankfurter.app")
    ),
    fallback=StaticRateProvider(),
)

TRANSACTION_TYPES = {"income", "expense"}
FEEDBACK_TYPES = {"bug", "suggestion", "other"}
FEEDBACK_STATUSES = {"pending", "reviewing", "resolved", "closed"}
IMPORT_CONTRIBUTION_NOTE = "Importado via planilha"
GOAL_TRANSACTION_CATEGORY = "savings"

users = Table(
    "users",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(255), nullable=False),
    Column("email", String(255), unique=True, nullable=False),
    Column("hashed_password", String(255), nullable=False),
    Column("budget_threshold", Integer),
    Column("created_at", DateTime, nullable=False, server_default=func.now()),
)

categories = Table(
    "categories",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("user_id", Integer, ForeignKey("users.id"), nullable=False),
    Column("name", String(255), nullable=False),
    Column("type", String(20), nullable=False),
    Column("created_at", DateTime, nullable=False, server_default=func.now()),
    UniqueConstraint("user_id", "name", "type", name="uq_categories_user_name_type"),
)

transactions = Table(
    "transactions",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("user_id", Integer, ForeignKey("users.id"), nullable=False),
    Column("type", String(20), nullable=False),
    Column("value", Numeric(12, 2), nullable=False),
    Column("category", String(255), nullable=False),
    Column("description", String(500)),
    Column("date", Date, nullable=False),
    Column("created_at", DateTime, nullable=False, server_default=func.now()),
)

budgets = Table(
    "budgets",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("user_id", Integer, ForeignKey("users.id"), nullable=False),
    Column("category", String(255), nullable=False),
    Column("limit", Numeric(12, 2), nullable=False),
    Column("month", Integer, nullable=False, server_default="0"),
    Column("year", Integer, nullable=False, server_default="0"),
    Column("created_at", DateTime, nullable=False, server_default=func.now()),
    UniqueConstraint("user_id", "category", "month", "year", name="uq_budgets_user_category_period"),
)

credit_cards = Table(
    "credit_cards",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("user_id", Integer, ForeignKey("users.id"), nullable=False),
    Column("name", String(255), nullable=False),
    Column("last_digits", String(4)),
    Column("brand", String(50)),
    Column("limit", Numeric(12, 2), nullable=False),
    Column("closing_day", Integer, nullable=False),
    Column("due_day", Integer, nullable=False),
    Column("color", String(7), nullable=False, server_default="#6366F1"),
    Column("is_active", Boolean, nullable=False, server_default="1"),
    Column("created_at", DateTime, nullable=False, server_default=func.now()),
)

invoices = Table(
    "invoices",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("card_id", Integer, ForeignKey("credit_cards.id"), nullable=False),
    Column("month", Integer, nullable=False),
    Column("year", Integer, nullable=False),
    Column("closing_date", Date, nullable=False),
    Column("due_date", Date, nullable=False),
    Column("status", String(20), nullable=False, server_default="open"),
    Column("total", Numeric(12, 2), nullable=False, server_default="0"),
    Column("paid_amount", Numeric(12, 2), nullable=False, server_default="0"),
    UniqueConstraint("card_id", "month", "year", name="uq_invoices_card_period"),
)

purchases = Table(
    "purchases",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("invoice_id", Integer, ForeignKey("invoices.id"), nullable=False),
    Column("description", String(500), nullable=False),
    Column("value", Numeric(12, 2), nullable=False),
    Column("total_value", Numeric(12, 2), nullable=False),
    Column("category", String(255), nullable=False),
    Column("date", Date, nullable=False),
    Column("installments", Integer, nullable=False, server_default="1"),
    Column("current_installment", Integer, nullable=False, server_default="1"),
    Column("parent_purchase_id", Integer, ForeignKey("purchases.id")),
    Column("created_at", DateTime, nullable=False, server_default=func.now()),
)

investments = Table(
    "investments",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("user_id", Integer, ForeignKey("users.id"), nullable=False),
    Column("type", String(20), nullable=False),
    Column("name", String(255), nullable=False),
    Column("ticker", String(20)),
    Column("institution", String(255)),
    Column("quantity", Numeric(18, 8), nullable=False, server_default="0"),
    Column("average_price", Numeric(14, 4), nullable=False, server_default="0"),
    Column("current_price", Numeric(14, 4), nullable=False, server_default="0"),
    Column("total_invested", Numeric(14, 2), nullable=False, server_default="0"),
    Column("current_value", Numeric(14, 2), nullable=False, server_default="0"),
    Column("profit_loss", Numeric(14, 2), nullable=False, server_default="0"),
    Column("profit_loss_percent", Numeric(10, 4), nullable=False, server_default="0"),
    Column("interest_rate", Numeric(8, 4)),
    Column("indexer", String(20)),
    Column("maturity_date", Date),
    Column("created_at", DateTime, nullable=False, server_default=func.now()),
)

investment_operations = Table(
    "investment_operations",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("investment_id", Integer, ForeignKey("investments.id"), nullable=False),
    Column("type", String(20), nullable=False),
    Column("quantity", Numeric(18, 8), nullable=False),
    Column("price", Numeric(14, 4), nullable=False),
    Column("total", Numeric(14, 2), nullable=False),
    Column("fees", Numeric(12, 2), nullable=False, server_default="0"),
    Column("date", Date, nullable=False),
    Column("notes", String(500)),
    Column("created_at", DateTime, nullable=False, server_default=func.now()),
)

recurring_expenses = Table(
    "recurring_expenses",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("user_id", Integer, ForeignKey("users.id"), nullable=False),
    Column("description", String(255), nullable=False),
    Column("value", Numeric(12, 2), nullable=False),
    Column("category", String(255), nullable=False),
    Column("due_day", Integer, nullable=False),
    Column("is_active", Boolean, nullable=False, server_default="1"),
    Column("notes", String(500)),
    Column("last_launched_at", Date),
    Column("created_at", DateTime, nullable=False, server_default=func.now()),
)

goals = Table(
    "goals",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("user_id", Integer, ForeignKey("users.id"), nullable=False),
    Column("name", String(255), nullable=False),
    Column("description", String(500)),
    Column("category", String(20), nullable=False, server_default="other"),
    Column("target_value", Numeric(14, 2), nullable=False),
    Column("current_value", Numeric(14, 2), nullable=False, server_default="0"),
    Column("target_date", Date),
    Column("color", String(7), nullable=False, server_default="#8B5CF6"),
    Column("is_completed", Boolean, nullable=False, server_default="0"),
    Column("completed_at", Date),
    Column("created_at", DateTime, nullable=False, server_default=func.now()),
)

goal_contributions = Table(
    "goal_contributions",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("goal_id", Integer, ForeignKey("goals.id"), nullable=False),
    Column("value", Numeric(14, 2), nullable=False),
    Column("date", Date, nullable=False),
    Column("notes", String(500)),
    Column("created_at", DateTime, nullable=False, server_default=func.now()),
)

feedback = Table(
    "feedback",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("user_id", Integer, ForeignKey("users.id"), nullable=False),
    Column("type", String(20), nullable=False),
    Column("message", Text, nullable=False),
    Column("page", String(255)),
    Column("status", String(20), nullable=False, server_default="pending"),
    Column("admin_response", Text),
    Column("responded_at", DateTime),
    Column("created_at", DateTime, nullable=False, server_default=func.now()),
)


@app.on_event("startup")
def init_db() -> None:
    metadata.create_all(engine)
    logger.info("Database schema ready at %s", engine.url.render_as_string(hide_password=True))


class ApiError(HTTPException):
    """HTTP error that carries a machine-readable code."""

    def __init__(self, status_code: int, detail: str, code: str) -> None:
        super().__init__(status_code=status_code, detail=detail)
        self.code = code


@app.exception_handler(ApiError)
async def handle_api_error(request: Request, exc: ApiError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail, "code": exc.code})


@app.exception_handler(Exception)
async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error.", "code": "INTERNAL_ERROR"},
    )


def current_date() -> date:
    return date.today()


class RegisterPayload(BaseModel):
    name: str
    email: str
    password: str

    @classmethod
    def validate_payload(cls, payload: "RegisterPayload") -> "RegisterPayload":
        payload.name = payload.name.strip()
        payload.email = payload.email.strip().lower()
        if not payload.name:
            raise ValueError("Name required.")
        if not payload.email or "@" not in payload.email:
            raise ValueError("Valid email required.")
        if len(payload.password) < 6:
            raise ValueError("Password must have at least 6 characters.")
        return payload


class CredentialsPayload(BaseModel):
    email: str
    password: str


class UserResponse(BaseModel):
    id: int
    name: str
    email: str
    created_at: datetime | None = None


class ProfilePayload(BaseModel):
    name: str


class ChangePasswordPayload(BaseModel):
    current_password: str
    new_password: str


class PreferencesPayload(BaseModel):
    budget_threshold: int

    @classmethod
    def validate_payload(cls, payload: "PreferencesPayload") -> "PreferencesPayload":
        if payload.budget_threshold < 0 or payload.budget_threshold > 100:
            raise ValueError("Budget threshold must be between 0 and 100.")
        return payload


class PreferencesResponse(BaseModel):
    budget_threshold: int


class CategoryPayload(BaseModel):
    name: str
    type: str = "expense"

    @classmethod
    def validate_payload(cls, payload: "CategoryPayload") -> "CategoryPayload":
        payload.name = payload.name.strip()
        payload.type = payload.type.strip().lower()
        if not payload.name:
            raise ValueError("Category name required.")
        if payload.type not in TRANSACTION_TYPES:
            raise ValueError("Category type must be 'income' or 'expense'.")
        return payload


class CategoryResponse(BaseModel):
    id: int
    name: str
    type: str


class TransactionPayload(BaseModel):
    type: str
    value: Decimal
    category: str
    description: str | None = None
    date: date

    @classmethod
    def validate_payload(cls, payload: "TransactionPayload") -> "TransactionPayload":
        payload.type = payload.type.strip().lower()
        if payload.type not in TRANSACTION_TYPES:
            raise ValueError("Transaction type must be 'income' or 'expense'.")
        if payload.value <= 0:
            raise ValueError("Value must be greater than zero.")
        payload.category = payload.category.strip()
        if not payload.category:
            raise ValueError("Category required.")
        payload.description = payload.description.strip() if payload.description else None
        return payload


class TransactionResponse(TransactionPayload):
    id: int


class BudgetPayload(BaseModel):
    category: str
    limit: Decimal
    month: int = 0
    year: int = 0

    @classmethod
    def validate_payload(cls, payload: "BudgetPayload") -> "BudgetPayload":
        payload.category = payload.category.strip()
        if not payload.category:
            raise ValueError("Category required.")
        if payload.limit <= 0:
            raise ValueError("Budget limit must be greater than zero.")
        if payload.month < 0 or payload.month > 12:
            raise ValueError("Month must be between 0 and 12.")
        if payload.year != 0 and (payload.year < 2000 or payload.year > 2100):
            raise ValueError("Year must be 0 or between 2000 and 2100.")
        if (payload.month == 0) != (payload.year == 0):
            raise ValueError("Month and year must both be 0 for a fixed budget.")
        return payload


class BudgetResponse(BaseModel):
    id: int
    category: str
    limit: Decimal
    month: int
    year: int
    is_fixed: bool
    spent: Decimal = ZERO
    percentage: Decimal = ZERO
    remaining: Decimal = ZERO


class CardPayload(BaseModel):
    name: str
    last_digits: str | None = None
    brand: str | None = None
    limit: Decimal
    closing_day: int
    due_day: int
    color: str | None = None
    is_active: bool = True

    @classmethod
    def validate_payload(cls, payload: "CardPayload") -> "CardPayload":
        payload.name = payload.name.strip()
        if not payload.name:
            raise ValueError("Card name required.")
        if payload.last_digits is not None:
            payload.last_digits = payload.last_digits.strip()
            if len(payload.last_digits) != 4 or not payload.last_digits.isdigit():
                raise ValueError("Last digits must be exactly 4 digits.")
        if payload.limit <= 0:
            raise ValueError("Card limit must be greater than zero.")
        validate_cycle_days(payload.closing_day, payload.due_day)
        payload.color = validate_color(payload.color) if payload.color else "#6366F1"
        payload.brand = payload.brand.strip() if payload.brand else None
        return payload


class CardResponse(BaseModel):
    id: int
    name: str
    last_digits: str | None = None
    brand: str | None = None
    limit: Decimal
    closing_day: int
    due_day: int
    color: str
    is_active: bool
    used_limit: Decimal = ZERO
    available_limit: Decimal = ZERO


class PurchaseResponse(BaseModel):
    id: int
    invoice_id: int
    description: str
    value: Decimal
    total_value: Decimal
    category: str
    date: date
    installments: int
    current_installment: int
    parent_purchase_id: int | None = None


class InvoiceResponse(BaseModel):
    id: int
    card_id: int
    month: int
    year: int
    closing_date: date
    due_date: date
    status: str
    total: Decimal
    paid_amount: Decimal
    purchases: list[PurchaseResponse] = []


class CardDetailResponse(CardResponse):
    invoices: list[InvoiceResponse] = []


class PurchasePayload(BaseModel):
    description: str
    value: Decimal
    category: str
    date: date
    installments: int = 1

    @classmethod
    def validate_payload(cls, payload: "PurchasePayload") -> "PurchasePayload":
        payload.description = payload.description.strip()
        payload.category = payload.category.strip()
        if not payload.description:
            raise ValueError("Description required.")
        if not payload.category:
            raise ValueError("Category required.")
        if payload.value <= 0:
            raise ValueError("Purchase value must be greater than zero.")
        return payload


class PurchaseCreatedResponse(BaseModel):
    purchases: list[PurchaseResponse]
    available_limit: Decimal


class InvoiceUpdatePayload(BaseModel):
    status: str | None = None
    paid_amount: Decimal | None = None


class InvestmentPayload(BaseModel):
    type: str
    name: str
    ticker: str | None = None
    institution: str | None = None
    quantity: Decimal = ZERO
    average_price: Decimal = ZERO
    current_price: Decimal | None = None
    total_invested: Decimal | None = None
    current_value: Decimal | None = None
    interest_rate: Decimal | None = None
    indexer: str | None = None
    maturity_date: date | None = None
    skip_balance_check: bool = False

    @classmethod
    def validate_payload(cls, payload: "InvestmentPayload") -> "InvestmentPayload":
        payload.type = payload.type.strip().lower()
        if payload.type not in INVESTMENT_TYPES:
            raise ValueError("Invalid investment type.")
        payload.name = payload.name.strip()
        if not payload.name:
            raise ValueError("Investment name required.")
        payload.ticker = payload.ticker.strip().upper() if payload.ticker else None
        payload.institution = payload.institution.strip() if payload.institution else None
        if payload.indexer:
            payload.indexer = payload.indexer.strip().upper()
            if payload.indexer not in INDEXERS:
                raise ValueError("Invalid indexer.")
        for label, value in (
            ("Quantity", payload.quantity),
            ("Average price", payload.average_price),
            ("Current price", payload.current_price),
            ("Total invested", payload.total_invested),
            ("Current value", payload.current_value),
        ):
            if value is not None and value < 0:
                raise ValueError(f"{label} cannot be negative.")
        return payload


class InvestmentResponse(BaseModel):
    id: int
    type: str
    name: str
    ticker: str | None = None
    institution: str | None = None
    quantity: Decimal
    average_price: Decimal
    current_price: Decimal
    total_invested: Decimal
    current_value: Decimal
    profit_loss: Decimal
    profit_loss_percent: Decimal
    interest_rate: Decimal | None = None
    indexer: str | None = None
    maturity_date: date | None = None


class OperationPayload(BaseModel):
    type: str
    quantity: Decimal | None = None
    price: Decimal | None = None
    fees: Decimal | None = None
    total: Decimal | None = None
    date: date_type | None = None
    notes: str | None = None
    skip_balance_check: bool = False


class OperationResponse(BaseModel):
    id: int
    investment_id: int
    type: str
    quantity: Decimal
    price: Decimal
    total: Decimal
    fees: Decimal
    date: date
    notes: str | None = None


class RecurringPayload(BaseModel):
    description: str
    value: Decimal
    category: str
    due_day: int
    is_active: bool = True
    notes: str | None = None

    @classmethod
    def validate_payload(cls, payload: "RecurringPayload") -> "RecurringPayload":
        payload.description = payload.description.strip()
        payload.category = payload.category.strip()
        if not payload.description:
            raise ValueError("Description required.")
        if not payload.category:
            raise ValueError("Category required.")
        if payload.value <= 0:
            raise ValueError("Value must be greater than zero.")
        validate_due_day(payload.due_day)
        payload.notes = payload.notes.strip() if payload.notes else None
        return payload


class RecurringResponse(BaseModel):
    id: int
    description: str
    value: Decimal
    category: str
    due_day: int
    is_active: bool
    notes: str | None = None
    last_launched_at: date | None = None
    due_date: date | None = None
    is_launched_this_month: bool = False
    is_past_due: bool = False


class LaunchPayload(BaseModel):
    expense_ids: list[int] | None = None


class GoalPayload(BaseModel):
    name: str
    description: str | None = None
    category: str = "other"
    target_value: Decimal
    current_value: Decimal = ZERO
    target_date: date | None = None
    color: str | None = None

    @classmethod
    def validate_payload(cls, payload: "GoalPayload") -> "GoalPayload":
        payload.name = payload.name.strip()
        if not payload.name:
            raise ValueError("Goal name required.")
        payload.category = payload.category.strip().lower()
        if payload.category not in GOAL_CATEGORIES:
            raise ValueError("Invalid goal category.")
        if payload.target_value <= 0:
            raise ValueError("Target value must be greater than zero.")
        if payload.current_value < 0:
            raise ValueError("Current value cannot be negative.")
        payload.color = validate_color(payload.color)
        payload.description = payload.description.strip() if payload.description else None
        return payload


class GoalResponse(BaseModel):
    id: int
    name: str
    description: str | None = None
    category: str
    target_value: Decimal
    current_value: Decimal
    target_date: date | None = None
    color: str
    is_completed: bool
    completed_at: date | None = None
    progress: Decimal = ZERO
    remaining: Decimal = ZERO
    monthly_needed: Decimal | None = None
    months_remaining: int | None = None


class ContributionPayload(BaseModel):
    value: Decimal
    type: str = "deposit"
    date: date_type | None = None
    notes: str | None = None


class ContributionResponse(BaseModel):
    id: int
    goal_id: int
    value: Decimal
    date: date
    notes: str | None = None


class ContributionResultResponse(BaseModel):
    contribution: ContributionResponse
    goal: GoalResponse


class ImportConfirmPayload(BaseModel):
    transactions: list[TransactionRow] = []
    investments: list[InvestmentRow] = []
    budgets: list[BudgetRow] = []
    goals: list[GoalRow] = []
    recurring: list[RecurringRow] = []


class ImportConfirmResponse(BaseModel):
    transactions: int
    investments: int
    budgets: int
    goals: int
    recurring: int


class FeedbackPayload(BaseModel):
    type: str
    message: str
    page: str | None = None

    @classmethod
    def validate_payload(cls, payload: "FeedbackPayload") -> "FeedbackPayload":
        payload.type = payload.type.strip().lower()
        if payload.type not in FEEDBACK_TYPES:
            raise ValueError("Feedback type must be bug, suggestion or other.")
        payload.message = payload.message.strip()
        if not payload.message or len(payload.message) > 2000:
            raise ValueError("Message must have between 1 and 2000 characters.")
        payload.page = payload.page.strip() if payload.page else None
        return payload


class FeedbackUpdatePayload(BaseModel):
    status: str | None = None
    admin_response: str | None = None

    @classmethod
    def validate_payload(cls, payload: "FeedbackUpdatePayload") -> "FeedbackUpdatePayload":
        if payload.status is None and payload.admin_response is None:
            raise ValueError("Informe status ou adminResponse")
        if payload.status is not None:
            payload.status = payload.status.strip().lower()
            if payload.status not in FEEDBACK_STATUSES:
                raise ValueError("Invalid feedback status.")
        if payload.admin_response is not None and len(payload.admin_response) > 2000:
            raise ValueError("Admin response must have at most 2000 characters.")
        return payload


class FeedbackResponse(BaseModel):
    id: int
    user_id: int
    type: str
    message: str
    page: str | None = None
    status: str
    admin_response: str | None = None
    responded_at: datetime | None = None
    created_at: datetime | None = None


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, hashed_password: str) -> bool:
    return bcrypt.checkpw(password.encode("utf-8"), hashed_password.encode("utf-8"))


def get_user_id(x_user_id: str | None) -> int:
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Missing user identity.")
    try:
        user_id = int(x_user_id)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail="Invalid user identity.") from exc
    with engine.begin() as conn:
        result = conn.execute(select(users.c.id).where(users.c.id == user_id))
        if not result.first():
            raise HTTPException(status_code=404, detail="User not found.")
    return user_id


def require_admin(user_id: int) -> None:
    if user_id not in ADMIN_USER_IDS:
        raise ApiError(403, "Acesso restrito a administradores.", "FORBIDDEN")


def resolve_period(month: int | None, year: int | None) -> tuple[int, int]:
    today = current_date()
    month = month or today.month
    year = year or today.year
    if month < 1 or month > 12:
        raise HTTPException(status_code=400, detail="Month must be between 1 and 12.")
    return month, year


def ensure_default_categories(conn, user_id: int) -> None:
    existing = conn.execute(
        select(categories.c.id).where(categories.c.user_id == user_id).limit(1)
    ).first()
    if existing:
        return
    rows = [{"user_id": user_id, "name": name, "type": "expense"} for name in EXPENSE_CATEGORIES]
    rows.extend({"user_id": user_id, "name": name, "type": "income"} for name in INCOME_CATEGORIES)
    conn.execute(insert(categories), rows)


def category_in_use(conn, user_id: int, name: str) -> bool:
    for table in (transactions, budgets, recurring_expenses):
        match = conn.execute(
            select(table.c.id).where(table.c.user_id == user_id, table.c.category == name).limit(1)
        ).first()
        if match:
            return True
    return False


def user_categories(conn, user_id: int) -> tuple[list[str], list[str]]:
    ensure_default_categories(conn, user_id)
    rows = conn.execute(
        select(categories.c.name, categories.c.type).where(categories.c.user_id == user_id)
    ).mappings().all()
    expense = [row["name"] for row in rows if row["type"] == "expense"]
    income = [row["name"] for row in rows if row["type"] == "income"]
    return expense, income


def user_threshold(conn, user_id: int) -> int:
    value = conn.execute(
        select(users.c.budget_threshold).where(users.c.id == user_id)
    ).scalar_one_or_none()
    return value if value is not None else DEFAULT_BUDGET_THRESHOLD


def fetch_ledger(conn, user_id: int, start_date: date | None = None, end_date: date | None = None):
    conditions = [transactions.c.user_id == user_id]
    if start_date is not None:
        conditions.append(transactions.c.date >= start_date)
    if end_date is not None:
        conditions.append(transactions.c.date <= end_date)
    return conn.execute(
        select(
            transactions.c.value,
            transactions.c.type,
            transactions.c.date,
            transactions.c.category,
        ).where(*conditions)
    ).mappings().all()


def fetch_balance(conn, user_id: int) -> tuple[Decimal, Decimal]:
    rows = conn.execute(
        select(transactions.c.type, func.coalesce(func.sum(transactions.c.value), 0))
        .where(transactions.c.user_id == user_id)
        .group_by(transactions.c.type)
    ).all()
    totals = {row[0]: Decimal(str(row[1])) for row in rows}
    return totals.get("income", ZERO), totals.get("expense", ZERO)


def card_from_row(row) -> CreditCard:
    return CreditCard(
        id=row["id"],
        name=row["name"],
        limit=row["limit"],
        closing_day=row["closing_day"],
        due_day=row["due_day"],
        color=row["color"],
        is_active=row["is_active"],
    )


def invoice_from_row(row) -> Invoice:
    return Invoice(
        id=row["id"],
        card_id=row["card_id"],
        month=row["month"],
        year=row["year"],
        status=row["status"],
        total=row["total"],
        paid_amount=row["paid_amount"],
        due_date=row["due_date"],
    )


def fetch_cards(conn, user_id: int, active_only: bool = False) -> list:
    conditions = [credit_cards.c.user_id == user_id]
    if active_only:
        conditions.append(credit_cards.c.is_active.is_(True))
    return conn.execute(
        select(credit_cards).where(*conditions).order_by(credit_cards.c.name.asc())
    ).mappings().all()


def fetch_invoices(conn, user_id: int, card_id: int | None = None) -> list[Invoice]:
    conditions = [credit_cards.c.user_id == user_id]
    if card_id is not None:
        conditions.append(invoices.c.card_id == card_id)
    rows = conn.execute(
        select(invoices)
        .select_from(invoices.join(credit_cards, invoices.c.card_id == credit_cards.c.id))
        .where(*conditions)
        .order_by(invoices.c.year.asc(), invoices.c.month.asc())
    ).mappings().all()
    return [invoice_from_row(row) for row in rows]


def fetch_card_purchases(conn, user_id: int, since: date | None = None) -> list[CardPurchase]:
    conditions = [credit_cards.c.user_id == user_id]
    if since is not None:
        conditions.append(purchases.c.date >= since)
    rows = conn.execute(
        select(purchases.c.value, purchases.c.date, purchases.c.category, invoices.c.card_id)
        .select_from(
            purchases.join(invoices, purchases.c.invoice_id == invoices.c.id).join(
                credit_cards, invoices.c.card_id == credit_cards.c.id
            )
        )
        .where(*conditions)
    ).mappings().all()
    return [
        CardPurchase(card_id=row["card_id"], amount=row["value"], date=row["date"], category=row["category"])
        for row in rows
    ]


def card_response(row, card_invoices: list[Invoice]) -> CardResponse:
    card = card_from_row(row)
    return CardResponse(
        **row,
        used_limit=used_limit(card_invoices),
        available_limit=available_limit(card, card_invoices),
    )


def recalculate_invoice(conn, invoice_id: int) -> None:
    total = conn.execute(
        select(func.coalesce(func.sum(purchases.c.value), 0)).where(purchases.c.invoice_id == invoice_id)
    ).scalar_one()
    conn.execute(update(invoices).where(invoices.c.id == invoice_id).values(total=Decimal(str(total))))


def fetch_recurring(conn, user_id: int, active_only: bool = False) -> list[RecurringExpense]:
    conditions = [recurring_expenses.c.user_id == user_id]
    if active_only:
        conditions.append(recurring_expenses.c.is_active.is_(True))
    rows = conn.execute(
        select(recurring_expenses)
        .where(*conditions)
        .order_by(recurring_expenses.c.due_day.asc(), recurring_expenses.c.id.asc())
    ).mappings().all()
    return [recurring_from_row(row) for row in rows]


def recurring_from_row(row) -> RecurringExpense:
    return RecurringExpense(
        id=row["id"],
        description=row["description"],
        amount=row["value"],
        category=row["category"],
        due_day=row["due_day"],
        is_active=row["is_active"],
        last_launched_at=row["last_launched_at"],
        notes=row["notes"],
    )


def recurring_response(expense: RecurringExpense, today: date) -> RecurringResponse:
    status = expense_status(expense, today)
    return RecurringResponse(
        id=expense.id,
        description=expense.description,
        value=expense.amount,
        category=expense.category,
        due_day=expense.due_day,
        is_active=expense.is_active,
        notes=expense.notes,
        last_launched_at=expense.last_launched_at,
        due_date=status.due_date,
        is_launched_this_month=status.is_launched_this_month,
        is_past_due=status.is_past_due,
    )


def goal_from_row(row) -> Goal:
    return Goal(
        id=row["id"],
        name=row["name"],
        target_value=row["target_value"],
        current_value=row["current_value"],
        category=row["category"],
        color=row["color"],
        target_date=row["target_date"],
        is_completed=row["is_completed"],
        completed_at=row["completed_at"],
    )


def goal_response(row, today: date) -> GoalResponse:
    progress = goal_progress(goal_from_row(row), today)
    return GoalResponse(
        **row,
        progress=progress.progress,
        remaining=progress.remaining,
        monthly_needed=progress.monthly_needed,
        months_remaining=progress.months_remaining,
    )


def fetch_goal_row(conn, user_id: int, goal_id: int):
    row = conn.execute(
        select(goals).where(goals.c.id == goal_id, goals.c.user_id == user_id)
    ).mappings().first()
    if not row:
        raise HTTPException(status_code=404, detail="Goal not found.")
    return row


def fetch_investment_row(conn, user_id: int, investment_id: int):
    row = conn.execute(
        select(investments).where(investments.c.id == investment_id, investments.c.user_id == user_id)
    ).mappings().first()
    if not row:
        raise HTTPException(status_code=404, detail="Investment not found.")
    return row


def position_values(payload: InvestmentPayload) -> dict:
    """Stored position columns for a created or edited investment."""
    if payload.type in FIXED_INCOME_TYPES:
        total_invested = payload.total_invested
        if total_invested is None:
            total_invested = payload.average_price
        current_value = payload.current_value if payload.current_value is not None else total_invested
        quantity = Decimal("1")
        average_price = total_invested
        current_price = current_value
    else:
        quantity = payload.quantity
        average_price = payload.average_price
        total_invested = payload.total_invested
        if total_invested is None:
            total_invested = quantity * average_price
        current_price = payload.current_price if payload.current_price is not None else average_price
        current_value = payload.current_value
        if current_value is None:
            current_value = quantity * current_price
    profit_loss, profit_loss_percent = profit_metrics(total_invested, current_value)
    return {
        "quantity": quantity,
        "average_price": average_price,
        "current_price": current_price,
        "total_invested": total_invested,
        "current_value": current_value,
        "profit_loss": profit_loss,
        "profit_loss_percent": profit_loss_percent,
    }


def record_opening_operation(conn, investment_id: int, values: dict, inv_type: str, when: date) -> None:
    if values["total_invested"] <= 0:
        return
    conn.execute(
        insert(investment_operations).values(
            investment_id=investment_id,
            type="deposit" if inv_type in FIXED_INCOME_TYPES else "buy",
            quantity=values["quantity"],
            price=values["average_price"],
            total=values["total_invested"],
            fees=ZERO,
            date=when,
        )
    )


def fetch_budget_inputs(conn, user_id: int, month: int, year: int):
    budget_rows = conn.execute(select(budgets).where(budgets.c.user_id == user_id)).mappings().all()
    start_date = date(year, month, 1)
    ledger = fetch_ledger(conn, user_id, start_date, month_end(start_date))
    card_rows = fetch_card_purchases(conn, user_id, since=start_date)
    return (
        [
            Budget(
                id=row["id"],
                category=row["category"],
                limit=row["limit"],
                month=row["month"],
                year=row["year"],
            )
            for row in budget_rows
        ],
        [
            BudgetTransaction(amount=row["value"], type=row["type"], date=row["date"], category=row["category"])
            for row in ledger
        ],
        [BudgetPurchase(amount=item.amount, date=item.date, category=item.category) for item in card_rows],
    )


def budget_response(status) -> BudgetResponse:
    budget = status.budget
    return BudgetResponse(
        id=budget.id,
        category=budget.category,
        limit=budget.limit,
        month=budget.month,
        year=budget.year,
        is_fixed=budget.is_fixed,
        spent=status.spent,
        percentage=status.percentage,
        remaining=status.remaining,
    )


def analytics_transactions(conn, user_id: int, since: date | None = None) -> list[spending.Transaction]:
    return [
        spending.Transaction(amount=row["value"], type=row["type"], date=row["date"], category=row["category"])
        for row in fetch_ledger(conn, user_id, start_date=since)
    ]


@app.get("/health")
def health_check():
    return {"status": "ok"}


@app.post("/api/auth/register", response_model=UserResponse, status_code=201)
def register(payload: RegisterPayload):
    try:
        payload = RegisterPayload.validate_payload(payload)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    try:
        with engine.begin() as conn:
            row = conn.execute(
                insert(users)
                .values(
                    name=payload.name,
                    email=payload.email,
                    hashed_password=hash_password(payload.password),
                )
                .returning(users.c.id, users.c.name, users.c.email, users.c.created_at)
            ).mappings().first()
            ensure_default_categories(conn, row["id"])
    except IntegrityError as exc:
        raise HTTPException(status_code=409, detail="Email already registered.") from exc
    logger.info("Registered user %s", row["id"])
    return UserResponse(**row)


@app.post("/api/auth/login", response_model=UserResponse)
def login(payload: CredentialsPayload):
    with engine.begin() as conn:
        row = conn.execute(
            select(users).where(users.c.email == payload.email.strip().lower())
        ).mappings().first()
    if not row or not verify_password(payload.password, row["hashed_password"]):
        raise HTTPException(status_code=401, detail="Invalid credentials.")
    return UserResponse(**row)


@app.get("/api/user/profile", response_model=UserResponse)
def get_profile(x_user_id: str | None = Header(None, alias="x-user-id")):
    user_id = get_user_id(x_user_id)
    with engine.begin() as conn:
        row = conn.execute(select(users).where(users.c.id == user_id)).mappings().first()
    return UserResponse(**row)


@app.put("/api/user/profile", response_model=UserResponse)
def update_profile(
    payload: ProfilePayload,
    x_user_id: str | None = Header(None, alias="x-user-id"),
):
    user_id = get_user_id(x_user_id)
    name = payload.name.strip()
    if not name:
        raise HTTPException(status_code=400, detail="Name required.")
    with engine.begin() as conn:
        row = conn.execute(
            update(users)
            .where(users.c.id == user_id)
            .values(name=name)
            .returning(users.c.id, users.c.name, users.c.email, users.c.created_at)
        ).mappings().first()
    return UserResponse(**row)


@app.put("/api/user/change-password")
def change_password(
    payload: ChangePasswordPayload,
    x_user_id: str | None = Header(None, alias="x-user-id"),
):
    user_id = get_user_id(x_user_id)
    if len(payload.new_password) < 6:
        raise HTTPException(status_code=400, detail="Password must have at least 6 characters.")
    with engine.begin() as conn:
        hashed = conn.execute(
            select(users.c.hashed_password).where(users.c.id == user_id)
        ).scalar_one()
        if not verify_password(payload.current_password, hashed):
            raise HTTPException(status_code=400, detail="Current password is incorrect.")
        conn.execute(
            update(users)
            .where(users.c.id == user_id)
            .values(hashed_password=hash_password(payload.new_password))
        )
    return {"status": "updated"}


@app.get("/api/user/preferences", response_model=PreferencesResponse)
def get_preferences(x_user_id: str | None = Header(None, alias="x-user-id")):
    user_id = get_user_id(x_user_id)
    with engine.begin() as conn:
        threshold = user_threshold(conn, user_id)
    return PreferencesResponse(budget_threshold=threshold)


@app.put("/api/user/preferences", response_model=PreferencesResponse)
def update_preferences(
    payload: PreferencesPayload,
    x_user_id: str | None = Header(None, alias="x-user-id"),
):
    user_id = get_user_id(x_user_id)
    try:
        payload = PreferencesPayload.validate_payload(payload)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    with engine.begin() as conn:
        conn.execute(
            update(users).where(users.c.id == user_id).values(budget_threshold=payload.budget_threshold)
        )
    return PreferencesResponse(budget_threshold=payload.budget_threshold)


@app.get("/api/categories", response_model=list[CategoryResponse])
def list_categories(
    type: str | None = Query(None),
    x_user_id: str | None = Header(None, alias="x-user-id"),
):
    user_id = get_user_id(x_user_id)
    conditions = [categories.c.user_id == user_id]
    if type:
        conditions.append(categories.c.type == type.strip().lower())
    with engine.begin() as conn:
        ensure_default_categories(conn, user_id)
        rows = conn.execute(
            select(categories).where(*conditions).order_by(categories.c.type.asc(), categories.c.name.asc())
        ).mappings().all()
    return [CategoryResponse(**row) for row in rows]


@app.post("/api/categories", response_model=CategoryResponse, status_code=201)
def create_category(
    payload: CategoryPayload,
    x_user_id: str | None = Header(None, alias="x-user-id"),
):
    user_id = get_user_id(x_user_id)
    try:
        payload = CategoryPayload.validate_payload(payload)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    try:
        with engine.begin() as conn:
            row = conn.execute(
                insert(categories)
                .values(user_id=user_id, name=payload.name, type=payload.type)
                .returning(categories.c.id, categories.c.name, categories.c.type)
            ).mappings().first()
    except IntegrityError as exc:
        raise HTTPException(status_code=409, detail="Category already exists.") from exc
    return CategoryResponse(**row)


@app.put("/api/categories/{category_id}", response_model=CategoryResponse)
def update_category(
    category_id: int,
    payload: CategoryPayload,
    x_user_id: str | None = Header(None, alias="x-user-id"),
):
    user_id = get_user_id(x_user_id)
    try:
        payload = CategoryPayload.validate_payload(payload)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    try:
        with engine.begin() as conn:
            row = conn.execute(
                update(categories)
                .where(categories.c.id == category_id, categories.c.user_id == user_id)
                .values(name=payload.name, type=payload.type)
                .returning(categories.c.id, categories.c.name, categories.c.type)
            ).mappings().first()
    except IntegrityError as exc:
        raise HTTPException(status_code=409, detail="Category already exists.") from exc
    if not row:
        raise HTTPException(status_code=404, detail="Category not found.")
    return CategoryResponse(**row)


@app.delete("/api/categories/{category_id}")
def delete_category(
    category_id: int,
    x_user_id: str | None = Header(None, alias="x-user-id"),
):
    user_id = get_user_id(x_user_id)
    with engine.begin() as conn:
        row = conn.execute(
            select(categories).where(categories.c.id == category_id, categories.c.user_id == user_id)
        ).mappings().first()
        if not row:
            raise HTTPException(status_code=404, detail="Category not found.")
        if category_in_use(conn, user_id, row["name"]):
            raise HTTPException(status_code=409, detail="Category is in use.")
        conn.execute(categories.delete().where(categories.c.id == category_id))
    return {"status": "deleted"}


@app.get("/api/transactions", response_model=list[TransactionResponse])
def list_transactions(
    type: str | None = Query(None),
    category: str | None = Query(None),
    start_date: date | None = Query(None),
    end_date: date | None = Query(None),
    search: str | None = Query(None),
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    x_user_id: str | None = Header(None, alias="x-user-id"),
):
    user_id = get_user_id(x_user_id)
    if start_date and end_date and start_date > end_date:
        raise HTTPException(status_code=400, detail="start_date must be before end_date.")
    conditions = [transactions.c.user_id == user_id]
    if type:
        conditions.append(transactions.c.type == type.strip().lower())
    if category:
        conditions.append(transactions.c.category == category)
    if start_date:
        conditions.append(transactions.c.date >= start_date)
    if end_date:
        conditions.append(transactions.c.date <= end_date)
    if search:
        conditions.append(transactions.c.description.ilike(f"%{search.strip()}%"))
    with engine.begin() as conn:
        rows = conn.execute(
            select(transactions)
            .where(*conditions)
            .order_by(transactions.c.date.desc(), transactions.c.id.desc())
            .limit(limit)
            .offset(offset)
        ).mappings().all()
    return [TransactionResponse(**row) for row in rows]


@app.post("/api/transactions", response_model=TransactionResponse, status_code=201)
def create_transaction(
    payload: TransactionPayload,
    x_user_id: str | None = Header(None, alias="x-user-id"),
):
    user_id = get_user_id(x_user_id)
    try:
        payload = TransactionPayload.validate_payload(payload)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    with engine.begin() as conn:
        row = conn.execute(
            insert(transactions)
            .values(user_id=user_id, **payload.model_dump())
            .returning(*transactions.c)
        ).mappings().first()
    return TransactionResponse(**row)


@app.put("/api/transactions/{transaction_id}", response_model=TransactionResponse)
def update_transaction(
    transaction_id: int,
    payload: TransactionPayload,
    x_user_id: str | None = Header(None, alias="x-user-id"),
):
    user_id = get_user_id(x_user_id)
    try:
        payload = TransactionPayload.validate_payload(payload)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    with engine.begin() as conn:
        row = conn.execute(
            update(transactions)
            .where(transactions.c.id == transaction_id, transactions.c.user_id == user_id)
            .values(**payload.model_dump())
            .returning(*transactions.c)
        ).mappings().first()
    if not row:
        raise HTTPException(status_code=404, detail="Transaction not found.")
    return TransactionResponse(**row)


@app.delete("/api/transactions/{transaction_id}")
def delete_transaction(
    transaction_id: int,
    x_user_id: str | None = Header(None, alias="x-user-id"),
):
    user_id = get_user_id(x_user_id)
    with engine.begin() as conn:
        result = conn.execute(
            transactions.delete().where(
                transactions.c.id == transaction_id, transactions.c.user_id == user_id
            )
        )
    if result.rowcount == 0:
        raise HTTPException(status_code=404, detail="Transaction not found.")
    return {"status": "deleted"}


@app.get("/api/balance")
def get_balance(x_user_id: str | None = Header(None, alias="x-user-id")):
    user_id = get_user_id(x_user_id)
    with engine.begin() as conn:
        income, expense = fetch_balance(conn, user_id)
    return {"income": income, "expense": expense, "balance": income - expense}


@app.get("/api/dashboard/summary")
def dashboard_summary(
    month: int | None = Query(None),
    year: int | None = Query(None),
    x_user_id: str | None = Header(None, alias="x-user-id"),
):
    user_id = get_user_id(x_user_id)
    month, year = resolve_period(month, year)
    start_date = date(year, month, 1)
    end_date = month_end(start_date)
    history_start = shift_month(start_date, -5)
    with engine.begin() as conn:
        txns = analytics_transactions(conn, user_id, since=history_start)
    return {
        "month": month,
        "year": year,
        "totals": asdict(spending.period_totals(txns, start_date, end_date)),
        "categories": [asdict(item) for item in spending.category_totals(txns, start_date, end_date)],
        "monthly": [asdict(item) for item in spending.monthly_totals(txns, history_start, end_date)],
    }


@app.get("/api/budgets")
def list_budgets(
    month: int | None = Query(None),
    year: int | None = Query(None),
    x_user_id: str | None = Header(None, alias="x-user-id"),
):
    user_id = get_user_id(x_user_id)
    month, year = resolve_period(month, year)
    with engine.begin() as conn:
        budget_list, ledger, card_purchases = fetch_budget_inputs(conn, user_id, month, year)
    statuses = evaluate_budgets(budget_list, ledger, card_purchases, month, year)
    total_limit = sum((status.budget.limit for status in statuses), ZERO)
    total_spent = sum((status.spent for status in statuses), ZERO)
    return {
        "month": month,
        "year": year,
        "budgets": [budget_response(status) for status in statuses],
        "total_limit": total_limit,
        "total_spent": total_spent,
        "total_remaining": total_limit - total_spent,
    }


@app.post("/api/budgets", response_model=BudgetResponse)
def upsert_budget(
    payload: BudgetPayload,
    x_user_id: str | None = Header(None, alias="x-user-id"),
):
    user_id = get_user_id(x_user_id)
    try:
        payload = BudgetPayload.validate_payload(payload)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    with engine.begin() as conn:
        row = save_budget(conn, user_id, payload.category, payload.limit, payload.month, payload.year)
    return BudgetResponse(**row, is_fixed=row["month"] == 0 and row["year"] == 0)


def save_budget(conn, user_id: int, category: str, limit: Decimal, month: int, year: int):
    """Insert or replace the budget keyed by (category, month, year)."""
    existing = conn.execute(
        select(budgets.c.id).where(
            budgets.c.user_id == user_id,
            budgets.c.category == category,
            budgets.c.month == month,
            budgets.c.year == year,
        )
    ).scalar_one_or_none()
    columns = (budgets.c.id, budgets.c.category, budgets.c.limit, budgets.c.month, budgets.c.year)
    if existing is not None:
        return conn.execute(
            update(budgets).where(budgets.c.id == existing).values(limit=limit).returning(*columns)
        ).mappings().first()
    return conn.execute(
        insert(budgets)
        .values(user_id=user_id, category=category, limit=limit, month=month, year=year)
        .returning(*columns)
    ).mappings().first()


@app.put("/api/budgets/{budget_id}", response_model=BudgetResponse)
def update_budget(
    budget_id: int,
    payload: BudgetPayload,
    x_user_id: str | None = Header(None, alias="x-user-id"),
):
    user_id = get_user_id(x_user_id)
    try:
        payload = BudgetPayload.validate_payload(payload)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    try:
        with engine.begin() as conn:
            row = conn.execute(
                update(budgets)
                .where(budgets.c.id == budget_id, budgets.c.user_id == user_id)
                .values(**payload.model_dump())
                .returning(budgets.c.id, budgets.c.category, budgets.c.limit, budgets.c.month, budgets.c.year)
            ).mappings().first()
    except IntegrityError as exc:
        raise HTTPException(status_code=409, detail="Budget already exists for this period.") from exc
    if not row:
        raise HTTPException(status_code=404, detail="Budget not found.")
    return BudgetResponse(**row, is_fixed=row["month"] == 0 and row["year"] == 0)


@app.delete("/api/budgets/{budget_id}")
def delete_budget(
    budget_id: int,
    x_user_id: str | None = Header(None, alias="x-user-id"),
):
    user_id = get_user_id(x_user_id)
    with engine.begin() as conn:
        result = conn.execute(
            budgets.delete().where(budgets.c.id == budget_id, budgets.c.user_id == user_id)
        )
    if result.rowcount == 0:
        raise HTTPException(status_code=404, detail="Budget not found.")
    return {"status": "deleted"}


@app.get("/api/budget-alerts")
def budget_alerts(
    month: int | None = Query(None),
    year: int | None = Query(None),
    x_user_id: str | None = Header(None, alias="x-user-id"),
):
    user_id = get_user_id(x_user_id)
    month, year = resolve_period(month, year)
    with engine.begin() as conn:
        threshold = user_threshold(conn, user_id)
        budget_list, ledger, card_purchases = fetch_budget_inputs(conn, user_id, month, year)
    statuses = evaluate_budgets(budget_list, ledger, card_purchases, month, year)
    alerts = build_budget_alerts(statuses, Decimal(threshold))
    return {
        "month": month,
        "year": year,
        "threshold": threshold,
        "alerts": [asdict(alert) for alert in alerts],
        "summary": summarize_alerts(alerts),
    }


def fetch_card_row(conn, user_id: int, card_id: int):
    row = conn.execute(
        select(credit_cards).where(credit_cards.c.id == card_id, credit_cards.c.user_id == user_id)
    ).mappings().first()
    if not row:
        raise HTTPException(status_code=404, detail="Card not found.")
    return row


@app.get("/api/cards/analytics")
def card_analytics(x_user_id: str | None = Header(None, alias="x-user-id")):
    user_id = get_user_id(x_user_id)
    today = current_date()
    since = shift_month(today, -6)
    with engine.begin() as conn:
        card_list = [card_from_row(row) for row in fetch_cards(conn, user_id, active_only=True)]
        invoice_list = fetch_invoices(conn, user_id)
        card_purchases = fetch_card_purchases(conn, user_id)
    active_ids = {card.id for card in card_list}
    invoice_list = [invoice for invoice in invoice_list if invoice.card_id in active_ids]
    card_purchases = [purchase for purchase in card_purchases if purchase.card_id in active_ids]

    recent = [purchase for purchase in card_purchases if since <= purchase.date <= today]
    total_spending = sum((purchase.amount for purchase in recent), ZERO)
    total_limit = sum((card.limit for card in card_list), ZERO)
    total_used = used_limit(invoice_list)
    monthly = monthly_card_spending(card_list, card_purchases, invoice_list, today)
    return {
        "spending_by_category": [asdict(item) for item in spending_by_category(recent, since)],
        "monthly_spending": [asdict(item) for item in monthly],
        "alerts": [asdict(alert) for alert in build_card_alerts(card_list, invoice_list, today)],
        "summary": {
            "total_limit": total_limit,
            "total_used": total_used,
            "usage_percentage": total_used / total_limit * 100 if total_limit > 0 else ZERO,
            "average_monthly_spending": total_spending / 6,
            "total_spending_last_6_months": total_spending,
        },
    }


@app.get("/api/cards", response_model=list[CardResponse])
def list_cards(x_user_id: str | None = Header(None, alias="x-user-id")):
    user_id = get_user_id(x_user_id)
    with engine.begin() as conn:
        rows = fetch_cards(conn, user_id)
        invoice_list = fetch_invoices(conn, user_id)
    return [
        card_response(row, [invoice for invoice in invoice_list if invoice.card_id == row["id"]])
        for row in rows
    ]


@app.post("/api/cards", response_model=CardResponse, status_code=201)
def create_card(
    payload: CardPayload,
    x_user_id: str | None = Header(None, alias="x-user-id"),
):
    user_id = get_user_id(x_user_id)
    try:
        payload = CardPayload.validate_payload(payload)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    with engine.begin() as conn:
        row = conn.execute(
            insert(credit_cards)
            .values(user_id=user_id, **payload.model_dump())
            .returning(*credit_cards.c)
        ).mappings().first()
    return card_response(row, [])


@app.get("/api/cards/{card_id}", response_model=CardDetailResponse)
def get_card(
    card_id: int,
    x_user_id: str | None = Header(None, alias="x-user-id"),
):
    user_id = get_user_id(x_user_id)
    with engine.begin() as conn:
        row = fetch_card_row(conn, user_id, card_id)
        invoice_rows = conn.execute(
            select(invoices)
            .where(invoices.c.card_id == card_id)
            .order_by(invoices.c.year.desc(), invoices.c.month.desc())
        ).mappings().all()
        purchase_rows = conn.execute(
            select(purchases)
            .where(purchases.c.invoice_id.in_([invoice["id"] for invoice in invoice_rows]))
            .order_by(purchases.c.date.desc(), purchases.c.id.desc())
        ).mappings().all()
    by_invoice: dict[int, list[PurchaseResponse]] = {}
    for purchase in purchase_rows:
        by_invoice.setdefault(purchase["invoice_id"], []).append(PurchaseResponse(**purchase))
    summary = card_response(row, [invoice_from_row(invoice) for invoice in invoice_rows])
    return CardDetailResponse(
        **summary.model_dump(),
        invoices=[
            InvoiceResponse(**invoice, purchases=by_invoice.get(invoice["id"], []))
            for invoice in invoice_rows
        ],
    )


@app.put("/api/cards/{card_id}", response_model=CardResponse)
def update_card(
    card_id: int,
    payload: CardPayload,
    x_user_id: str | None = Header(None, alias="x-user-id"),
):
    user_id = get_user_id(x_user_id)
    try:
        payload = CardPayload.validate_payload(payload)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    with engine.begin() as conn:
        row = conn.execute(
            update(credit_cards)
            .where(credit_cards.c.id == card_id, credit_cards.c.user_id == user_id)
            .values(**payload.model_dump())
            .returning(*credit_cards.c)
        ).mappings().first()
        if not row:
            raise HTTPException(status_code=404, detail="Card not found.")
        invoice_list = fetch_invoices(conn, user_id, card_id=card_id)
    return card_response(row, invoice_list)


@app.delete("/api/cards/{card_id}")
def delete_card(
    card_id: int,
    x_user_id: str | None = Header(None, alias="x-user-id"),
):
    user_id = get_user_id(x_user_id)
    with engine.begin() as conn:
        fetch_card_row(conn, user_id, card_id)
        invoice_ids = select(invoices.c.id).where(invoices.c.card_id == card_id)
        conn.execute(purchases.delete().where(purchases.c.invoice_id.in_(invoice_ids)))
        conn.execute(invoices.delete().where(invoices.c.card_id == card_id))
        conn.execute(credit_cards.delete().where(credit_cards.c.id == card_id))
    return {"status": "deleted"}


def get_or_create_invoice(conn, card_id: int, cycle) -> int:
    invoice_id = conn.execute(
        select(invoices.c.id).where(
            invoices.c.card_id == card_id,
            invoices.c.month == cycle.month,
            invoices.c.year == cycle.year,
        )
    ).scalar_one_or_none()
    if invoice_id is not None:
        return invoice_id
    return conn.execute(
        insert(invoices)
        .values(
            card_id=card_id,
            month=cycle.month,
            year=cycle.year,
            closing_date=cycle.closing_date,
            due_date=cycle.due_date,
            status="open",
            total=ZERO,
            paid_amount=ZERO,
        )
        .returning(invoices.c.id)
    ).scalar_one()


@app.post("/api/cards/{card_id}/purchases", response_model=PurchaseCreatedResponse, status_code=201)
def create_purchase(
    card_id: int,
    payload: PurchasePayload,
    x_user_id: str | None = Header(None, alias="x-user-id"),
):
    user_id = get_user_id(x_user_id)
    try:
        payload = PurchasePayload.validate_payload(payload)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    with engine.begin() as conn:
        card = card_from_row(fetch_card_row(conn, user_id, card_id))
        try:
            ensure_within_limit(card, fetch_invoices(conn, user_id, card_id=card_id), payload.value)
            entries = plan_installments(
                payload.description,
                payload.value,
                payload.date,
                payload.installments,
                card.closing_day,
                card.due_day,
            )
        except LimitExceededError as exc:
            raise ApiError(400, str(exc), "LIMIT_EXCEEDED") from exc
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc

        created: list[PurchaseResponse] = []
        parent_id = None
        for entry in entries:
            invoice_id = get_or_create_invoice(conn, card_id, entry.cycle)
            row = conn.execute(
                insert(purchases)
                .values(
                    invoice_id=invoice_id,
                    description=entry.description,
                    value=entry.amount,
                    total_value=payload.value,
                    category=payload.category,
                    date=payload.date,
                    installments=entry.count,
                    current_installment=entry.number,
                    parent_purchase_id=parent_id,
                )
                .returning(*purchases.c)
            ).mappings().first()
            if parent_id is None and entry.count > 1:
                parent_id = row["id"]
            recalculate_invoice(conn, invoice_id)
            created.append(PurchaseResponse(**row))
        remaining = available_limit(card, fetch_invoices(conn, user_id, card_id=card_id))
    return PurchaseCreatedResponse(purchases=created, available_limit=remaining)


@app.put("/api/cards/{card_id}/invoices/{invoice_id}", response_model=InvoiceResponse)
def update_invoice(
    card_id: int,
    invoice_id: int,
    payload: InvoiceUpdatePayload,
    x_user_id: str | None = Header(None, alias="x-user-id"),
):
    user_id = get_user_id(x_user_id)
    with engine.begin() as conn:
        card_row = fetch_card_row(conn, user_id, card_id)
        row = conn.execute(select(invoices).where(invoices.c.id == invoice_id)).mappings().first()
        if not row:
            raise HTTPException(status_code=404, detail="Invoice not found.")
        if row["card_id"] != card_id:
            raise ApiError(400, "Fatura não pertence a este cartão", "INVALID_REFERENCE")
        try:
            payment = apply_invoice_payment(
                invoice_from_row(row),
                status=payload.status.strip().lower() if payload.status else None,
                paid_amount=payload.paid_amount,
            )
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        updated = conn.execute(
            update(invoices)
            .where(invoices.c.id == invoice_id)
            .values(status=payment.status, paid_amount=payment.paid_amount)
            .returning(*invoices.c)
        ).mappings().first()
        if payment.payment_amount > 0:
            conn.execute(
                insert(transactions).values(
                    user_id=user_id,
                    type="expense",
                    value=payment.payment_amount,
                    category=CARD_PAYMENT_CATEGORY,
                    description=payment_description(card_row["name"], row["month"], row["year"]),
                    date=current_date(),
                )
            )
            logger.info(
                "Recorded payment of %s for invoice %s of card %s", payment.payment_amount, invoice_id, card_id
            )
        purchase_rows = conn.execute(
            select(purchases).where(purchases.c.invoice_id == invoice_id).order_by(purchases.c.date.desc())
        ).mappings().all()
    return InvoiceResponse(**updated, purchases=[PurchaseResponse(**item) for item in purchase_rows])


@app.delete("/api/purchases/{purchase_id}")
def delete_purchase(
    purchase_id: int,
    x_user_id: str | None = Header(None, alias="x-user-id"),
):
    user_id = get_user_id(x_user_id)
    with engine.begin() as conn:
        row = conn.execute(
            select(purchases.c.id, purchases.c.parent_purchase_id)
            .select_from(
                purchases.join(invoices, purchases.c.invoice_id == invoices.c.id).join(
                    credit_cards, invoices.c.card_id == credit_cards.c.id
                )
            )
            .where(purchases.c.id == purchase_id, credit_cards.c.user_id == user_id)
        ).mappings().first()
        if not row:
            raise HTTPException(status_code=404, detail="Purchase not found.")
        root_id = row["parent_purchase_id"] or row["id"]
        in_group = or_(purchases.c.id == root_id, purchases.c.parent_purchase_id == root_id)
        invoice_ids = conn.execute(select(purchases.c.invoice_id).where(in_group).distinct()).scalars().all()
        conn.execute(purchases.delete().where(in_group))
        for invoice_id in invoice_ids:
            recalculate_invoice(conn, invoice_id)
    return {"status": "deleted"}


@app.get("/api/investments/analytics")
def investment_analytics(x_user_id: str | None = Header(None, alias="x-user-id")):
    user_id = get_user_id(x_user_id)
    with engine.begin() as conn:
        rows = conn.execute(select(investments).where(investments.c.user_id == user_id)).mappings().all()
    holdings = [
        HoldingSnapshot(
            id=row["id"],
            name=row["name"],
            type=row["type"],
            total_invested=row["total_invested"],
            current_value=row["current_value"],
        )
        for row in rows
    ]
    overview = portfolio_overview(holdings)
    overview["count"] = len(holdings)
    return overview


@app.get("/api/investments", response_model=list[InvestmentResponse])
def list_investments(
    type: str | None = Query(None),
    x_user_id: str | None = Header(None, alias="x-user-id"),
):
    user_id = get_user_id(x_user_id)
    conditions = [investments.c.user_id == user_id]
    if type:
        conditions.append(investments.c.type == type.strip().lower())
    with engine.begin() as conn:
        rows = conn.execute(
            select(investments).where(*conditions).order_by(investments.c.name.asc())
        ).mappings().all()
    return [InvestmentResponse(**row) for row in rows]


@app.post("/api/investments", response_model=InvestmentResponse, status_code=201)
def create_investment(
    payload: InvestmentPayload,
    x_user_id: str | None = Header(None, alias="x-user-id"),
):
    user_id = get_user_id(x_user_id)
    try:
        payload = InvestmentPayload.validate_payload(payload)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    values = position_values(payload)
    today = current_date()
    charge_ledger = (
        payload.type in FIXED_INCOME_TYPES and values["total_invested"] > 0 and not payload.skip_balance_check
    )
    with engine.begin() as conn:
        if charge_ledger:
            income, expense = fetch_balance(conn, user_id)
            try:
                ensure_balance_covers(income - expense, values["total_invested"])
            except InsufficientBalanceError as exc:
                raise ApiError(400, str(exc), "INSUFFICIENT_BALANCE") from exc
        row = conn.execute(
            insert(investments)
            .values(
                user_id=user_id,
                type=payload.type,
                name=payload.name,
                ticker=payload.ticker,
                institution=payload.institution,
                interest_rate=payload.interest_rate,
                indexer=payload.indexer,
                maturity_date=payload.maturity_date,
                **values,
            )
            .returning(*investments.c)
        ).mappings().first()
        record_opening_operation(conn, row["id"], values, payload.type, today)
        if charge_ledger:
            entry = opening_deposit_entry(payload.name, values["total_invested"])
            conn.execute(
                insert(transactions).values(
                    user_id=user_id,
                    type=entry.type,
                    value=entry.amount,
                    category=entry.category,
                    description=entry.description,
                    date=today,
                )
            )
    return InvestmentResponse(**row)


@app.get("/api/investments/{investment_id}", response_model=InvestmentResponse)
def get_investment(
    investment_id: int,
    x_user_id: str | None = Header(None, alias="x-user-id"),
):
    user_id = get_user_id(x_user_id)
    with engine.begin() as conn:
        row = fetch_investment_row(conn, user_id, investment_id)
    return InvestmentResponse(**row)


@app.put("/api/investments/{investment_id}", response_model=InvestmentResponse)
def update_investment(
    investment_id: int,
    payload: InvestmentPayload,
    x_user_id: str | None = Header(None, alias="x-user-id"),
):
    user_id = get_user_id(x_user_id)
    try:
        payload = InvestmentPayload.validate_payload(payload)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    with engine.begin() as conn:
        fetch_investment_row(conn, user_id, investment_id)
        row = conn.execute(
            update(investments)
            .where(investments.c.id == investment_id)
            .values(
                type=payload.type,
                name=payload.name,
                ticker=payload.ticker,
                institution=payload.institution,
                interest_rate=payload.interest_rate,
                indexer=payload.indexer,
                maturity_date=payload.maturity_date,
                **position_values(payload),
            )
            .returning(*investments.c)
        ).mappings().first()
    return InvestmentResponse(**row)


@app.delete("/api/investments/{investment_id}")
def delete_investment(
    investment_id: int,
    x_user_id: str | None = Header(None, alias="x-user-id"),
):
    user_id = get_user_id(x_user_id)
    with engine.begin() as conn:
        fetch_investment_row(conn, user_id, investment_id)
        conn.execute(
            investment_operations.delete().where(investment_operations.c.investment_id == investment_id)
        )
        conn.execute(investments.delete().where(investments.c.id == investment_id))
    return {"status": "deleted"}


@app.get("/api/investments/{investment_id}/operations", response_model=list[OperationResponse])
def list_operations(
    investment_id: int,
    x_user_id: str | None = Header(None, alias="x-user-id"),
):
    user_id = get_user_id(x_user_id)
    with engine.begin() as conn:
        fetch_investment_row(conn, user_id, investment_id)
        rows = conn.execute(
            select(investment_operations)
            .where(investment_operations.c.investment_id == investment_id)
            .order_by(investment_operations.c.date.desc(), investment_operations.c.id.desc())
        ).mappings().all()
    return [OperationResponse(**row) for row in rows]


@app.post("/api/investments/{investment_id}/operations", status_code=201)
def create_operation(
    investment_id: int,
    payload: OperationPayload,
    x_user_id: str | None = Header(None, alias="x-user-id"),
):
    user_id = get_user_id(x_user_id)
    today = current_date()
    op_date = payload.date or today
    with engine.begin() as conn:
        row = fetch_investment_row(conn, user_id, investment_id)
        last_date = conn.execute(
            select(func.max(investment_operations.c.date)).where(
                investment_operations.c.investment_id == investment_id
            )
        ).scalar_one_or_none()
        position = Position(
            type=row["type"],
            quantity=row["quantity"],
            average_price=row["average_price"],
            current_price=row["current_price"],
            total_invested=row["total_invested"],
            current_value=row["current_value"],
        )
        operation = Operation(
            type=payload.type,
            price=payload.price,
            quantity=payload.quantity,
            fees=payload.fees or ZERO,
            total=payload.total,
            date=op_date,
        )
        income, expense = fetch_balance(conn, user_id)
        try:
            validate_operation_date(op_date, today, last_date)
            result = apply_operation(
                position,
                operation,
                row["name"],
                row["ticker"],
                available_balance=income - expense,
                skip_balance_check=payload.skip_balance_check,
            )
        except InvalidOperationDateError as exc:
            raise ApiError(400, str(exc), "INVALID_DATE") from exc
        except InsufficientQuantityError as exc:
            raise ApiError(400, str(exc), "INSUFFICIENT_QUANTITY") from exc
        except InsufficientBalanceError as exc:
            raise ApiError(400, str(exc), "INSUFFICIENT_BALANCE") from exc
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc

        op_row = conn.execute(
            insert(investment_operations)
            .values(
                investment_id=investment_id,
                type=result.operation_type,
                quantity=result.quantity,
                price=result.price,
                total=result.total,
                fees=result.fees,
                date=op_date,
                notes=payload.notes,
            )
            .returning(*investment_operations.c)
        ).mappings().first()
        if result.metrics is not None:
            row = conn.execute(
                update(investments)
                .where(investments.c.id == investment_id)
                .values(**asdict(result.metrics))
                .returning(*investments.c)
            ).mappings().first()
        if result.ledger_entry is not None:
            conn.execute(
                insert(transactions).values(
                    user_id=user_id,
                    type=result.ledger_entry.type,
                    value=result.ledger_entry.amount,
                    category=result.ledger_entry.category,
                    description=result.ledger_entry.description,
                    date=op_date,
                )
            )
    return {
        "operation": OperationResponse(**op_row),
        "investment": InvestmentResponse(**row),
    }


@app.get("/api/recurring-expenses")
def list_recurring_expenses(x_user_id: str | None = Header(None, alias="x-user-id")):
    user_id = get_user_id(x_user_id)
    today = current_date()
    with engine.begin() as conn:
        expenses = fetch_recurring(conn, user_id)
    statuses = [expense_status(expense, today) for expense in expenses]
    return {
        "expenses": [recurring_response(expense, today) for expense in expenses],
        "summary": asdict(summarize_expenses(statuses)),
    }


@app.post("/api/recurring-expenses", response_model=RecurringResponse, status_code=201)
def create_recurring_expense(
    payload: RecurringPayload,
    x_user_id: str | None = Header(None, alias="x-user-id"),
):
    user_id = get_user_id(x_user_id)
    try:
        payload = RecurringPayload.validate_payload(payload)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    with engine.begin() as conn:
        row = conn.execute(
            insert(recurring_expenses)
            .values(user_id=user_id, **payload.model_dump())
            .returning(*recurring_expenses.c)
        ).mappings().first()
    return recurring_response(recurring_from_row(row), current_date())


@app.post("/api/recurring-expenses/launch")
def launch_recurring_expenses(
    payload: LaunchPayload | None = None,
    x_user_id: str | None = Header(None, alias="x-user-id"),
):
    user_id = get_user_id(x_user_id)
    today = current_date()
    expense_ids = payload.expense_ids if payload else None
    created: list[TransactionResponse] = []
    with engine.begin() as conn:
        entries = plan_launch(fetch_recurring(conn, user_id, active_only=True), today, expense_ids)
        for entry in entries:
            row = conn.execute(
                insert(transactions)
                .values(
                    user_id=user_id,
                    type="expense",
                    value=entry.amount,
                    category=entry.category,
                    description=entry.description,
                    date=entry.date,
                )
                .returning(*transactions.c)
            ).mappings().first()
            conn.execute(
                update(recurring_expenses)
                .where(recurring_expenses.c.id == entry.expense_id)
                .values(last_launched_at=today)
            )
            created.append(TransactionResponse(**row))
    logger.info("Launched %s recurring expenses for user %s", len(created), user_id)
    return {"launched": len(created), "transactions": created}


@app.put("/api/recurring-expenses/{expense_id}", response_model=RecurringResponse)
def update_recurring_expense(
    expense_id: int,
    payload: RecurringPayload,
    x_user_id: str | None = Header(None, alias="x-user-id"),
):
    user_id = get_user_id(x_user_id)
    try:
        payload = RecurringPayload.validate_payload(payload)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    with engine.begin() as conn:
        row = conn.execute(
            update(recurring_expenses)
            .where(recurring_expenses.c.id == expense_id, recurring_expenses.c.user_id == user_id)
            .values(**payload.model_dump())
            .returning(*recurring_expenses.c)
        ).mappings().first()
    if not row:
        raise HTTPException(status_code=404, detail="Recurring expense not found.")
    return recurring_response(recurring_from_row(row), current_date())


@app.delete("/api/recurring-expenses/{expense_id}")
def delete_recurring_expense(
    expense_id: int,
    x_user_id: str | None = Header(None, alias="x-user-id"),
):
    user_id = get_user_id(x_user_id)
    with engine.begin() as conn:
        result = conn.execute(
            recurring_expenses.delete().where(
                recurring_expenses.c.id == expense_id, recurring_expenses.c.user_id == user_id
            )
        )
    if result.rowcount == 0:
        raise HTTPException(status_code=404, detail="Recurring expense not found.")
    return {"status": "deleted"}


def fetch_contributions(conn, user_id: int) -> dict[int, list[Contribution]]:
    rows = conn.execute(
        select(goal_contributions.c.goal_id, goal_contributions.c.value, goal_contributions.c.date)
        .select_from(goal_contributions.join(goals, goal_contributions.c.goal_id == goals.c.id))
        .where(goals.c.user_id == user_id)
    ).mappings().all()
    grouped: dict[int, list[Contribution]] = {}
    for row in rows:
        grouped.setdefault(row["goal_id"], []).append(Contribution(value=row["value"], date=row["date"]))
    return grouped


@app.get("/api/goals/analytics")
def goals_analytics(x_user_id: str | None = Header(None, alias="x-user-id")):
    user_id = get_user_id(x_user_id)
    with engine.begin() as conn:
        rows = conn.execute(select(goals).where(goals.c.user_id == user_id)).mappings().all()
        contributions = fetch_contributions(conn, user_id)
    report = build_goals_report([goal_from_row(row) for row in rows], contributions, current_date())
    return asdict(report)


@app.get("/api/goals", response_model=list[GoalResponse])
def list_goals(x_user_id: str | None = Header(None, alias="x-user-id")):
    user_id = get_user_id(x_user_id)
    today = current_date()
    with engine.begin() as conn:
        rows = conn.execute(
            select(goals)
            .where(goals.c.user_id == user_id)
            .order_by(goals.c.is_completed.asc(), goals.c.target_date.asc(), goals.c.id.asc())
        ).mappings().all()
    return [goal_response(row, today) for row in rows]


@app.post("/api/goals", response_model=GoalResponse, status_code=201)
def create_goal(
    payload: GoalPayload,
    x_user_id: str | None = Header(None, alias="x-user-id"),
):
    user_id = get_user_id(x_user_id)
    try:
        payload = GoalPayload.validate_payload(payload)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    today = current_date()
    is_completed = payload.current_value >= payload.target_value
    with engine.begin() as conn:
        row = conn.execute(
            insert(goals)
            .values(
                user_id=user_id,
                is_completed=is_completed,
                completed_at=today if is_completed else None,
                **payload.model_dump(),
            )
            .returning(*goals.c)
        ).mappings().first()
    return goal_response(row, today)


@app.get("/api/goals/{goal_id}")
def get_goal(
    goal_id: int,
    x_user_id: str | None = Header(None, alias="x-user-id"),
):
    user_id = get_user_id(x_user_id)
    with engine.begin() as conn:
        row = fetch_goal_row(conn, user_id, goal_id)
        contribution_rows = conn.execute(
            select(goal_contributions)
            .where(goal_contributions.c.goal_id == goal_id)
            .order_by(goal_contributions.c.date.desc(), goal_contributions.c.id.desc())
        ).mappings().all()
    return {
        "goal": goal_response(row, current_date()),
        "contributions": [ContributionResponse(**item) for item in contribution_rows],
    }


@app.put("/api/goals/{goal_id}", response_model=GoalResponse)
def update_goal(
    goal_id: int,
    payload: GoalPayload,
    x_user_id: str | None = Header(None, alias="x-user-id"),
):
    user_id = get_user_id(x_user_id)
    try:
        payload = GoalPayload.validate_payload(payload)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    today = current_date()
    with engine.begin() as conn:
        existing = fetch_goal_row(conn, user_id, goal_id)
        is_completed = payload.current_value >= payload.target_value
        completed_at = None
        if is_completed:
            completed_at = existing["completed_at"] if existing["is_completed"] else today
        row = conn.execute(
            update(goals)
            .where(goals.c.id == goal_id)
            .values(is_completed=is_completed, completed_at=completed_at, **payload.model_dump())
            .returning(*goals.c)
        ).mappings().first()
    return goal_response(row, today)


@app.delete("/api/goals/{goal_id}")
def delete_goal(
    goal_id: int,
    x_user_id: str | None = Header(None, alias="x-user-id"),
):
    user_id = get_user_id(x_user_id)
    with engine.begin() as conn:
        fetch_goal_row(conn, user_id, goal_id)
        conn.execute(goal_contributions.delete().where(goal_contributions.c.goal_id == goal_id))
        conn.execute(goals.delete().where(goals.c.id == goal_id))
    return {"status": "deleted"}


@app.post("/api/goals/{goal_id}/contribute", response_model=ContributionResultResponse, status_code=201)
def contribute_to_goal(
    goal_id: int,
    payload: ContributionPayload,
    x_user_id: str | None = Header(None, alias="x-user-id"),
):
    user_id = get_user_id(x_user_id)
    today = current_date()
    when = payload.date or today
    with engine.begin() as conn:
        row = fetch_goal_row(conn, user_id, goal_id)
        try:
            outcome = apply_contribution(
                goal_from_row(row), payload.value, payload.type, when, payload.notes
            )
        except InsufficientGoalBalanceError as exc:
            raise ApiError(400, str(exc), "INSUFFICIENT_BALANCE") from exc
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        contribution = conn.execute(
            insert(goal_contributions)
            .values(goal_id=goal_id, value=outcome.contribution_value, date=when, notes=payload.notes)
            .returning(*goal_contributions.c)
        ).mappings().first()
        goal_row = conn.execute(
            update(goals)
            .where(goals.c.id == goal_id)
            .values(
                current_value=outcome.current_value,
                is_completed=outcome.is_completed,
                completed_at=outcome.completed_at,
            )
            .returning(*goals.c)
        ).mappings().first()
        conn.execute(
            insert(transactions).values(
                user_id=user_id,
                type=outcome.transaction_type,
                value=payload.value,
                category=GOAL_TRANSACTION_CATEGORY,
                description=outcome.transaction_description,
                date=when,
            )
        )
    return ContributionResultResponse(
        contribution=ContributionResponse(**contribution),
        goal=goal_response(goal_row, today),
    )


@app.delete("/api/goals/{goal_id}/contributions/{contribution_id}", response_model=GoalResponse)
def delete_goal_contribution(
    goal_id: int,
    contribution_id: int,
    x_user_id: str | None = Header(None, alias="x-user-id"),
):
    user_id = get_user_id(x_user_id)
    with engine.begin() as conn:
        row = fetch_goal_row(conn, user_id, goal_id)
        value = conn.execute(
            select(goal_contributions.c.value).where(
                goal_contributions.c.id == contribution_id, goal_contributions.c.goal_id == goal_id
            )
        ).scalar_one_or_none()
        if value is None:
            raise HTTPException(status_code=404, detail="Contribution not found.")
        conn.execute(goal_contributions.delete().where(goal_contributions.c.id == contribution_id))
        goal_row = conn.execute(
            update(goals)
            .where(goals.c.id == goal_id)
            .values(
                current_value=revert_contribution(goal_from_row(row), value),
                is_completed=False,
                completed_at=None,
            )
            .returning(*goals.c)
        ).mappings().first()
    return goal_response(goal_row, current_date())


@app.get("/api/bills-calendar")
def get_bills_calendar(
    month: int | None = Query(None),
    year: int | None = Query(None),
    x_user_id: str | None = Header(None, alias="x-user-id"),
):
    user_id = get_user_id(x_user_id)
    month, year = resolve_period(month, year)
    today = current_date()
    with engine.begin() as conn:
        recurring = fetch_recurring(conn, user_id, active_only=True)
        card_list = [card_from_row(row) for row in fetch_cards(conn, user_id, active_only=True)]
        invoice_list = fetch_invoices(conn, user_id)
        ledger = [
            bills.LedgerItem(amount=row["value"], type=row["type"], date=row["date"], category=row["category"])
            for row in fetch_ledger(conn, user_id, start_date=shift_month(today, -3))
        ]
    report = bills.build_bills_calendar(recurring, card_list, invoice_list, ledger, month, year, today)
    return asdict(report)


@app.get("/api/wealth-evolution")
def get_wealth_evolution(
    period: str | None = Query(None),
    x_user_id: str | None = Header(None, alias="x-user-id"),
):
    user_id = get_user_id(x_user_id)
    with engine.begin() as conn:
        ledger = [
            wealth.LedgerMovement(amount=row["value"], type=row["type"], date=row["date"])
            for row in fetch_ledger(conn, user_id)
        ]
        operation_rows = conn.execute(
            select(investment_operations.c.total, investment_operations.c.type, investment_operations.c.date)
            .select_from(
                investment_operations.join(
                    investments, investment_operations.c.investment_id == investments.c.id
                )
            )
            .where(investments.c.user_id == user_id)
        ).mappings().all()
        goals_saved = conn.execute(
            select(func.coalesce(func.sum(goals.c.current_value), 0)).where(goals.c.user_id == user_id)
        ).scalar_one()
        outstanding = [
            wealth.OutstandingInvoice(
                month=invoice.month,
                year=invoice.year,
                total=invoice.total,
                paid_amount=invoice.paid_amount,
            )
            for invoice in fetch_invoices(conn, user_id)
            if not invoice.is_paid
        ]
    report = wealth.build_wealth_evolution(
        period,
        current_date(),
        ledger,
        [wealth.OperationMovement(total=row["total"], type=row["type"], date=row["date"]) for row in operation_rows],
        outstanding,
        Decimal(str(goals_saved)),
    )
    return asdict(report)


@app.get("/api/analytics")
def get_spending_analytics(x_user_id: str | None = Header(None, alias="x-user-id")):
    user_id = get_user_id(x_user_id)
    today = current_date()
    with engine.begin() as conn:
        txns = analytics_transactions(conn, user_id, since=date(today.year - 1, 1, 1))
    return asdict(spending.build_analytics(txns, today))


@app.get("/api/financial-health")
def get_financial_health(x_user_id: str | None = Header(None, alias="x-user-id")):
    user_id = get_user_id(x_user_id)
    today = current_date()
    month_start_date = date(today.year, today.month, 1)
    with engine.begin() as conn:
        txns = analytics_transactions(conn, user_id, since=shift_month(today, -12))
        card_list = [card_from_row(row) for row in fetch_cards(conn, user_id, active_only=True)]
        invoice_list = fetch_invoices(conn, user_id)
        recurring = fetch_recurring(conn, user_id, active_only=True)
        goal_rows = conn.execute(select(goals).where(goals.c.user_id == user_id)).mappings().all()
        investment_rows = conn.execute(
            select(investments.c.type, investments.c.current_value).where(investments.c.user_id == user_id)
        ).mappings().all()
        budget_list, ledger, card_purchases = fetch_budget_inputs(conn, user_id, today.month, today.year)

    monthly = spending.period_totals(txns, month_start_date, month_end(month_start_date))
    yearly = spending.period_totals(txns, date(today.year, 1, 1), date(today.year, 12, 31))
    by_type: dict[str, Decimal] = {}
    for row in investment_rows:
        if row["current_value"] > 0:
            by_type[row["type"]] = by_type.get(row["type"], ZERO) + row["current_value"]
    statuses = evaluate_budgets(budget_list, ledger, card_purchases, today.month, today.year)
    active_ids = {card.id for card in card_list}
    inputs = health.HealthInputs(
        monthly=health.Totals(income=monthly.income, expense=monthly.expense),
        yearly=health.Totals(income=yearly.income, expense=yearly.expense),
        credit_limit=sum((card.limit for card in card_list), ZERO),
        credit_used=used_limit(invoice for invoice in invoice_list if invoice.card_id in active_ids),
        recurring_total=sum((expense.amount for expense in recurring), ZERO),
        goals=[
            health.GoalBalance(
                category=row["category"],
                target_value=row["target_value"],
                current_value=row["current_value"],
                is_completed=row["is_completed"],
            )
            for row in goal_rows
        ],
        investments_by_type=by_type,
        budgets=[health.BudgetUsage(limit=status.budget.limit, spent=status.spent) for status in statuses],
        spending_trend=spending.spending_trend(txns, today).trend,
    )
    return asdict(health.assess_health(inputs))


@app.get("/api/cash-flow-forecast")
def get_cash_flow_forecast(
    days: int | None = Query(None),
    x_user_id: str | None = Header(None, alias="x-user-id"),
):
    user_id = get_user_id(x_user_id)
    today = current_date()
    with engine.begin() as conn:
        income_total, expense_total = fetch_balance(conn, user_id)
        income_rows = conn.execute(
            select(transactions.c.value, transactions.c.date).where(
                transactions.c.user_id == user_id,
                transactions.c.type == "income",
                transactions.c.date >= shift_month(today, -forecast.INCOME_WINDOW_MONTHS),
            )
        ).mappings().all()
        recurring = fetch_recurring(conn, user_id, active_only=True)
        due_invoices = [
            forecast.DueInvoice(due_date=invoice.due_date, total=invoice.total, paid_amount=invoice.paid_amount)
            for invoice in fetch_invoices(conn, user_id)
            if not invoice.is_paid and invoice.due_date >= today
        ]
    report = forecast.build_forecast(
        income_total - expense_total,
        [forecast.IncomeRecord(amount=row["value"], date=row["date"]) for row in income_rows],
        [forecast.ScheduledExpense(amount=expense.amount, due_day=expense.due_day) for expense in recurring],
        due_invoices,
        today,
        days,
    )
    return asdict(report)


@app.post("/api/data/import", response_model=ImportPreview)
async def preview_import(
    file: UploadFile | None = File(None),
    x_user_id: str | None = Header(None, alias="x-user-id"),
):
    user_id = get_user_id(x_user_id)
    if file is None:
        raise ApiError(400, "Nenhum arquivo enviado", "NO_FILE")
    if not (file.filename or "").lower().endswith(".xlsx"):
        raise ApiError(400, "Formato inválido. Envie um arquivo .xlsx", "INVALID_FORMAT")
    contents = await file.read()
    if len(contents) > IMPORT_MAX_BYTES:
        raise ApiError(400, "Arquivo muito grande. O limite é 5MB", "FILE_TOO_LARGE")
    with engine.begin() as conn:
        expense_names, income_names = user_categories(conn, user_id)
    try:
        return parse_workbook(contents, expense_names, income_names)
    except ImportFormatError as exc:
        raise ApiError(400, str(exc), "INVALID_FORMAT") from exc


def validate_import_rows(rows, payload_cls, sheet: str) -> list:
    validated = []
    for index, row in enumerate(rows, start=1):
        try:
            validated.append(payload_cls.validate_payload(payload_cls(**row.model_dump())))
        except ValueError as exc:
            raise ValueError(f"Dados inválidos em {sheet}, item {index}: {exc}") from exc
    return validated


@app.post("/api/data/import/confirm", response_model=ImportConfirmResponse)
def confirm_import(
    payload: ImportConfirmPayload,
    x_user_id: str | None = Header(None, alias="x-user-id"),
):
    user_id = get_user_id(x_user_id)
    today = current_date()
    try:
        transaction_rows = validate_import_rows(payload.transactions, TransactionPayload, "transações")
        budget_rows = validate_import_rows(payload.budgets, BudgetPayload, "orçamentos")
        goal_rows = validate_import_rows(payload.goals, GoalPayload, "metas")
        recurring_rows = validate_import_rows(payload.recurring, RecurringPayload, "despesas recorrentes")
        investment_payloads = [
            InvestmentPayload.validate_payload(
                InvestmentPayload(
                    type=row.type,
                    name=row.name,
                    ticker=row.ticker,
                    institution=row.institution,
                    quantity=row.quantity,
                    average_price=row.average_price,
                    total_invested=row.total_invested or None,
                    current_value=row.current_value or None,
                    interest_rate=row.interest_rate,
                    indexer=row.indexer,
                    maturity_date=row.maturity_date,
                )
            )
            for row in payload.investments
        ]
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    with engine.begin() as conn:
        if transaction_rows:
            conn.execute(
                insert(transactions),
                [{"user_id": user_id, **row.model_dump()} for row in transaction_rows],
            )
        for item in investment_payloads:
            values = position_values(item)
            investment_id = conn.execute(
                insert(investments)
                .values(
                    user_id=user_id,
                    type=item.type,
                    name=item.name,
                    ticker=item.ticker,
                    institution=item.institution,
                    interest_rate=item.interest_rate,
                    indexer=item.indexer,
                    maturity_date=item.maturity_date,
                    **values,
                )
                .returning(investments.c.id)
            ).scalar_one()
            record_opening_operation(conn, investment_id, values, item.type, today)
        for row in budget_rows:
            save_budget(conn, user_id, row.category, row.limit, row.month, row.year)
        for row in goal_rows:
            is_completed = row.current_value >= row.target_value
            goal_id = conn.execute(
                insert(goals)
                .values(
                    user_id=user_id,
                    is_completed=is_completed,
                    completed_at=today if is_completed else None,
                    **row.model_dump(),
                )
                .returning(goals.c.id)
            ).scalar_one()
            if row.current_value > 0:
                conn.execute(
                    insert(goal_contributions).values(
                        goal_id=goal_id,
                        value=row.current_value,
                        date=today,
                        notes=IMPORT_CONTRIBUTION_NOTE,
                    )
                )
        if recurring_rows:
            conn.execute(
                insert(recurring_expenses),
                [{"user_id": user_id, **row.model_dump()} for row in recurring_rows],
            )
    created = ImportConfirmResponse(
        transactions=len(transaction_rows),
        investments=len(investment_payloads),
        budgets=len(budget_rows),
        goals=len(goal_rows),
        recurring=len(recurring_rows),
    )
    logger.info("Import confirmed for user %s: %s", user_id, created.model_dump())
    return created


@app.get("/api/data/template")
def download_template():
    return Response(
        content=build_template(),
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        headers={"Content-Disposition": 'attachment; filename="fincontrol-modelo-importacao.xlsx"'},
    )


@app.get("/api/data/export")
def export_data(
    format: str = Query("xlsx"),
    x_user_id: str | None = Header(None, alias="x-user-id"),
):
    user_id = get_user_id(x_user_id)
    export_format = format.strip().lower()
    if export_format not in {"xlsx", "csv"}:
        raise ApiError(400, "Formato inválido. Use xlsx ou csv", "INVALID_FORMAT")
    today = current_date()
    with engine.begin() as conn:
        transaction_rows = [
            TransactionRow(**row)
            for row in conn.execute(
                select(transactions)
                .where(transactions.c.user_id == user_id)
                .order_by(transactions.c.date.desc(), transactions.c.id.desc())
            ).mappings().all()
        ]
        if export_format == "csv":
            filename = export_filename("transacoes", today, "csv")
            return Response(
                content=build_transactions_csv(transaction_rows).encode("utf-8"),
                media_type="text/csv; charset=utf-8",
                headers={"Content-Disposition": f'attachment; filename="{filename}"'},
            )
        investment_rows = [
            InvestmentRow(**row)
            for row in conn.execute(select(investments).where(investments.c.user_id == user_id)).mappings().all()
        ]
        budget_rows = [
            BudgetRow(**row)
            for row in conn.execute(select(budgets).where(budgets.c.user_id == user_id)).mappings().all()
        ]
        goal_rows = [
            GoalRow(**row)
            for row in conn.execute(select(goals).where(goals.c.user_id == user_id)).mappings().all()
        ]
        recurring_rows = [
            RecurringRow(**row)
            for row in conn.execute(
                select(recurring_expenses).where(recurring_expenses.c.user_id == user_id)
            ).mappings().all()
        ]
    filename = export_filename("dados", today, "xlsx")
    return Response(
        content=build_export(transaction_rows, investment_rows, budget_rows, goal_rows, recurring_rows),
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@app.get("/api/rates/exchange")
def exchange_rates():
    quote = FX_PROVIDER.quote()
    return {
        "base": "BRL",
        "rates": quote.rates,
        "last_update": quote.last_update,
        "source": quote.source,
    }


@app.post("/api/feedback", response_model=FeedbackResponse, status_code=201)
def create_feedback(
    payload: FeedbackPayload,
    x_user_id: str | None = Header(None, alias="x-user-id"),
):
    user_id = get_user_id(x_user_id)
    try:
        payload = FeedbackPayload.validate_payload(payload)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    with engine.begin() as conn:
        row = conn.execute(
            insert(feedback).values(user_id=user_id, **payload.model_dump()).returning(*feedback.c)
        ).mappings().first()
    return FeedbackResponse(**row)


@app.get("/api/feedback/mine", response_model=list[FeedbackResponse])
def list_my_feedback(x_user_id: str | None = Header(None, alias="x-user-id")):
    user_id = get_user_id(x_user_id)
    with engine.begin() as conn:
        rows = conn.execute(
            select(feedback).where(feedback.c.user_id == user_id).order_by(feedback.c.id.desc())
        ).mappings().all()
    return [FeedbackResponse(**row) for row in rows]


@app.get("/api/feedback", response_model=list[FeedbackResponse])
def list_feedback(
    status: str | None = Query(None),
    type: str | None = Query(None),
    x_user_id: str | None = Header(None, alias="x-user-id"),
):
    user_id = get_user_id(x_user_id)
    require_admin(user_id)
    conditions = []
    if status:
        conditions.append(feedback.c.status == status.strip().lower())
    if type:
        conditions.append(feedback.c.type == type.strip().lower())
    with engine.begin() as conn:
        rows = conn.execute(
            select(feedback).where(*conditions).order_by(feedback.c.id.desc())
        ).mappings().all()
    return [FeedbackResponse(**row) for row in rows]


@app.get("/api/feedback/{feedback_id}", response_model=FeedbackResponse)
def get_feedback(
    feedback_id: int,
    x_user_id: str | None = Header(None, alias="x-user-id"),
):
    user_id = get_user_id(x_user_id)
    require_admin(user_id)
    with engine.begin() as conn:
        row = conn.execute(select(feedback).where(feedback.c.id == feedback_id)).mappings().first()
    if not row:
        raise HTTPException(status_code=404, detail="Feedback not found.")
    return FeedbackResponse(**row)


@app.patch("/api/feedback/{feedback_id}", response_model=FeedbackResponse)
def update_feedback(
    feedback_id: int,
    payload: FeedbackUpdatePayload,
    x_user_id: str | None = Header(None, alias="x-user-id"),
):
    user_id = get_user_id(x_user_id)
    require_admin(user_id)
    try:
        payload = FeedbackUpdatePayload.validate_payload(payload)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    values = {}
    if payload.status is not None:
        values["status"] = payload.status
    if payload.admin_response is not None:
        values["admin_response"] = payload.admin_response
        values["responded_at"] = datetime.now(timezone.utc)
    with engine.begin() as conn:
        row = conn.execute(
            update(feedback).where(feedback.c.id == feedback_id).values(**values).returning(*feedback.c)
        ).mappings().first()
    if not row:
        raise HTTPException(status_code=404, detail="Feedback not found.")
    return FeedbackResponse(**row)


@app.delete("/api/feedback/{feedback_id}")
def delete_feedback(
    feedback_id: int,
    x_user_id: str | None = Header(None, alias="x-user-id"),
):
    user_id = get_user_id(x_user_id)
    require_admin(user_id)
    with engine.begin() as conn:
        result = conn.execute(feedback.delete().where(feedback.c.id == feedback_id))
    if result.rowcount == 0:
        raise HTTPException(status_code=404, detail="Feedback not found.")
    return {"status": "deleted"}
