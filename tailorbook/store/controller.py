"""
Shop Controller

The one owner of the application state. Every change goes through a
named command here.

Each command follows the same steps:
1. Permission check (raises PermissionDeniedError)
2. Input validation (raises InputValidationError, nothing changed yet)
3. Mutation of the in-memory collections
4. notify_mutation() so the sync engine can schedule a save

DESIGN DECISION: Reads never raise for missing permissions.
They degrade to empty results, the same way the visibility filter does.
Commands that target an order only see the orders visible to the acting
user; anything else is reported as not found.
"""

import re
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Iterable, Optional, Sequence, Union

import structlog
from pydantic import BaseModel

from tailorbook.activity.logger import ActivityLogger
from tailorbook.config import get_settings
from tailorbook.ledger.calculator import (
    WorkerLedgerEntry,
    account_balances,
    customer_due,
    order_balance,
    worker_balance,
    worker_ledger,
)
from tailorbook.models.activity import ActivityEventBuilder
from tailorbook.models.entities import (
    Account,
    AccountType,
    AssignmentRole,
    Customer,
    Expense,
    MeasurementProfile,
    Order,
    OrderMeasurement,
    OrderStatus,
    User,
    Worker,
    WorkerPayment,
)
from tailorbook.orders.lifecycle import (
    OrderDraft,
    ReceiptAllocation,
    add_partial_payment,
    apply_customer_receipt,
    clear_worker_assignments,
    create_order,
    remove_customer_orders,
    update_order_assignment,
    update_order_status,
)
from tailorbook.permissions.model import (
    WORKER_LOGIN_PERMISSIONS,
    PermissionDeniedError,
    PermissionTag,
    Role,
    has_permission,
    require_permission,
)
from tailorbook.permissions.visibility import (
    visible_customers,
    visible_expenses,
    visible_orders,
)
from tailorbook.queries.reports import (
    Dashboard,
    DateRangePreset,
    ReportBuilder,
    ShopReport,
    resolve_date_range,
)
from tailorbook.services.auth.interface import AuthServiceInterface, AuthenticationError
from tailorbook.services.export import (
    customer_rows,
    expense_rows,
    order_rows,
    report_rows,
    to_csv,
)
from tailorbook.store.state import AppState
from tailorbook.store.sync import SyncEngine
from tailorbook.validation.validator import InputValidator


logger = structlog.get_logger(__name__)


class RecordNotFoundError(Exception):
    """A command targeted an id that does not exist (or is not visible)."""

    def __init__(self, collection: str, record_id: str):
        self.collection = collection
        self.record_id = record_id
        super().__init__(f"{collection} record not found: {record_id}")


class ConfirmationRequiredError(Exception):
    """A destructive command was called without confirm=True."""
    pass


class WorkerCredentials(BaseModel):
    """Login created alongside a new worker, shown once to the admin."""
    user_id: str
    username: str
    password: str


def worker_username(name: str) -> str:
    """Lowercase letters and digits of a worker's name."""
    return re.sub(r"[^a-z0-9]", "", name.lower())


class ShopController:
    """
    Named commands and read views over the application state.

    Args:
        state: The application state this controller owns
        sync: Sync engine notified after every mutation
        auth: Auth service, used for password hashing and changes
        validator: Input validator
        activity: Activity logger
    """

    def __init__(
        self,
        state: AppState,
        sync: SyncEngine,
        auth: Optional[AuthServiceInterface] = None,
        validator: Optional[InputValidator] = None,
        activity: Optional[ActivityLogger] = None,
    ):
        self._state = state
        self._sync = sync
        self._auth = auth
        self._validator = validator or InputValidator()
        self._activity = activity or ActivityLogger()
        self._reports = ReportBuilder()

    @property
    def state(self) -> AppState:
        return self._state

    @property
    def current_user(self) -> Optional[User]:
        return self._state.current_user

    @property
    def _actor_id(self) -> Optional[str]:
        user = self._state.current_user
        return user.id if user else None

    # =========================================================================
    # Internals
    # =========================================================================

    def require(self, tag: PermissionTag, operation: str) -> None:
        try:
            require_permission(self._state.current_user, tag, operation)
        except PermissionDeniedError:
            self._activity.log(
                ActivityEventBuilder.permission_denied(self._actor_id, tag.value, operation)
            )
            raise

    def _committed(self) -> None:
        if not self._sync.notify_mutation():
            logger.debug("save_not_scheduled", hydrated=self._state.hydrated)

    @staticmethod
    def _confirm(confirm: bool, what: str) -> None:
        if not confirm:
            raise ConfirmationRequiredError(f"Deleting {what} must be confirmed")

    @staticmethod
    def _find(records: Iterable, record_id: str, collection: str):
        for record in records:
            if record.id == record_id:
                return record
        raise RecordNotFoundError(collection, record_id)

    @staticmethod
    def _replace(records: list, updated) -> None:
        for index, record in enumerate(records):
            if record.id == updated.id:
                records[index] = updated
                return

    @staticmethod
    def _revalidated(record, changes: dict[str, Any]):
        """Copy of `record` with `changes` applied and validated."""
        unknown = set(changes) - set(type(record).model_fields) - {"id"}
        if unknown:
            raise ValueError(f"Unknown fields: {', '.join(sorted(unknown))}")
        changes.pop("id", None)
        return type(record).model_validate({**record.model_dump(), **changes})

    def _visible_order(self, order_id: str) -> Order:
        return self._find(self.visible_orders(), order_id, "orders")

    # =========================================================================
    # Read views
    # =========================================================================

    def visible_orders(self) -> list[Order]:
        return visible_orders(self.current_user, self._state.orders, self._state.workers)

    def visible_customers(self) -> list[Customer]:
        return visible_customers(
            self.current_user,
            self._state.customers,
            self._state.orders,
            self._state.workers,
        )

    def visible_expenses(self) -> list[Expense]:
        return visible_expenses(self.current_user, self._state.expenses)

    def workers(self) -> list[Worker]:
        if not has_permission(self.current_user, PermissionTag.VIEW_WORKERS):
            return []
        return list(self._state.workers)

    def accounts(self) -> list[Account]:
        if not has_permission(self.current_user, PermissionTag.VIEW_ACCOUNTS):
            return []
        return list(self._state.accounts)

    def users(self) -> list[User]:
        if not has_permission(self.current_user, PermissionTag.MANAGE_USERS):
            return []
        return list(self._state.users)

    def account_balances(self) -> dict[str, Decimal]:
        if not has_permission(self.current_user, PermissionTag.VIEW_ACCOUNTS):
            return {}
        return account_balances(
            self._state.accounts,
            self._state.orders,
            self._state.expenses,
            self._state.worker_payments,
        )

    def order_balance(self, order_id: str) -> Decimal:
        return order_balance(self._visible_order(order_id))

    def customer_due(self, customer_id: str) -> Decimal:
        return customer_due(customer_id, self.visible_orders())

    def worker_ledger(self, worker_id: str) -> list[WorkerLedgerEntry]:
        """
        A worker's statement, built from the orders the user can see.

        Own-scope workers therefore see their own statement and nobody
        else's earnings.
        """
        if not has_permission(self.current_user, PermissionTag.VIEW_WORKERS):
            return []
        worker = self._find(self._state.workers, worker_id, "workers")
        return worker_ledger(worker, self.visible_orders(), self._state.worker_payments)

    def worker_balance(self, worker_id: str) -> Decimal:
        if not has_permission(self.current_user, PermissionTag.VIEW_WORKERS):
            return Decimal("0")
        worker =self._find(self._state.workers, worker_id, "workers")
        return worker_balance(worker, self.visible_orders(), self._state.worker_payments)

    def report(
        self,
        preset: Union[DateRangePreset, str] = DateRangePreset.MONTH,
        start: Optional[date] = None,
        end: Optional[date] = None,
        now: Optional[datetime] = None,
    ) -> ShopReport:
        date_range = resolve_date_range(preset, now=now, start=start, end=end)
        return self._reports.build_report(self.current_user, self._state.collections, date_range)

    def dashboard(self, today: Optional[date] = None) -> Dashboard:
        return self._reports.build_dashboard(self.current_user, self._state.collections, today)

    # -------------------------------------------------------------------------
    # Exports (always over visible data)
    # -------------------------------------------------------------------------

    def export_orders_csv(self) -> str:
        return to_csv(order_rows(self.visible_orders()))

    def export_customers_csv(self) -> str:
        return to_csv(customer_rows(self.visible_customers(), self.visible_orders()))

    def export_expenses_csv(self) -> str:
        return to_csv(expense_rows(self.visible_expenses(), self._state.accounts))

    def export_report_csv(self, report: ShopReport) -> str:
        return to_csv(report_rows(report))

    # =========================================================================
    # Customers
    # =========================================================================

    def add_customer(
        self,
        name: str,
        phone: str = "",
        profiles: Optional[Sequence[MeasurementProfile]] = None,
    ) -> Customer:
        self.require(PermissionTag.CREATE_CUSTOMERS, "add customer")
        self._validator.ensure_valid(self._validator.validate_named_record(name))

        customer = Customer(
            name=name,
            phone=phone,
            date_added=date.today(),
            profiles=list(profiles or []),
        )
        self._state.customers.append(customer)
        self._committed()
        return customer

    def update_customer(self, customer_id: str, **changes) -> Customer:
        self.require(PermissionTag.EDIT_CUSTOMERS, "edit customer")
        customer = self._find(self._state.customers, customer_id, "customers")
        if "name" in changes:
            self._validator.ensure_valid(self._validator.validate_named_record(changes["name"]))

        updated = self._revalidated(customer, changes)
        self._replace(self._state.customers, updated)
        self._committed()
        return updated

    def update_customer_profiles(
        self,
        customer_id: str,
        profiles: Sequence[MeasurementProfile],
    ) -> Customer:
        self.require(PermissionTag.EDIT_CUSTOMER_MEASUREMENTS, "edit customer measurements")
        customer = self._find(self._state.customers, customer_id, "customers")
        customer.profiles = [p.model_copy() for p in profiles]
        self._committed()
        return customer

    def delete_customer(self, customer_id: str, confirm: bool = False) -> int:
        """
        Delete a customer and every order they have. Returns the number of
        orders removed.
        """
        self.require(PermissionTag.DELETE_CUSTOMERS, "delete customer")
        customer = self._find(self._state.customers, customer_id, "customers")
        self._confirm(confirm, f"customer {customer.name} and all their orders")

        kept, removed = remove_customer_orders(self._state.orders, customer_id)
        self._state.collections.orders = kept
        self._state.collections.customers = [
            c for c in self._state.customers if c.id != customer_id
        ]
        self._activity.log(
            ActivityEventBuilder.customer_deleted(customer_id, len(removed), self._actor_id)
        )
        self._committed()
        return len(removed)

    # =========================================================================
    # Orders
    # =========================================================================

    def create_order(self, draft: OrderDraft, now: Optional[datetime] = None) -> Order:
        self.require(PermissionTag.CREATE_ORDERS, "create order")
        self._validator.ensure_valid(
            self._validator.validate_order_draft(draft, self._state.customers)
        )

        customer = self._find(self._state.customers, draft.customer_id, "customers")
        if not draft.customer_name or not draft.customer_phone:
            draft = draft.model_copy(update={
                "customer_name": draft.customer_name or customer.name,
                "customer_phone": draft.customer_phone or customer.phone,
            })

        order = create_order(draft, self._state.orders, now)
        self._state.orders.append(order)
        self._activity.log(ActivityEventBuilder.order_created(
            order.id, order.display_number, order.total_price, draft.advance, self._actor_id,
        ))
        self._committed()
        return order

    def update_order(self, order_id: str, **changes) -> Order:
        """Edit order details (items, price, dates, customer fields)."""
        self.require(PermissionTag.EDIT_ORDERS, "edit order")
        order = self._visible_order(order_id)
        if "total_price" in changes:
            self._validator.ensure_valid(self._validator.validate_amount(
                changes["total_price"], "total_price", allow_zero=True
            ))

        updated = self._revalidated(order, changes)
        self._replace(self._state.orders, updated)
        self._committed()
        return updated

    def update_order_measurements(
        self,
        order_id: str,
        measurements: Sequence[OrderMeasurement],
    ) -> Order:
        self.require(PermissionTag.EDIT_ORDER_MEASUREMENTS, "edit order measurements")
        order = self._visible_order(order_id)
        order.measurements = [m.model_copy() for m in measurements]
        self._committed()
        return order

    def delete_order(self, order_id: str, confirm: bool = False) -> None:
        self.require(PermissionTag.DELETE_ORDERS, "delete order")
        order = self._visible_order(order_id)
        self._confirm(confirm, f"order {order.display_number}")

        self._state.collections.orders = [o for o in self._state.orders if o.id != order_id]
        self._activity.log(ActivityEventBuilder.order_deleted(order_id, self._actor_id))
        self._committed()

    def add_partial_payment(
        self,
        order_id: str,
        amount: Decimal,
        account_id: Optional[str],
        now: Optional[datetime] = None,
    ) -> Decimal:
        """Record a payment on an order. Returns the new balance."""
        self.require(PermissionTag.EDIT_ORDERS, "record payment")
        self._validator.ensure_valid(self._validator.validate_amount(amount))
        order = self._visible_order(order_id)

        add_partial_payment(order, Decimal(amount), account_id, now)
        self._activity.log(ActivityEventBuilder.payment_recorded(
            order_id, Decimal(amount), account_id, self._actor_id,
        ))
        self._committed()
        return order_balance(order)

    def update_order_status(self, order_id: str, status: Union[OrderStatus, str]) -> Order:
        self.require(PermissionTag.EDIT_ORDERS, "change order status")
        status_value = status.value if isinstance(status, OrderStatus) else str(status)
        self._validator.ensure_valid(self._validator.validate_status(status_value))
        order = self._visible_order(order_id)

        previous = update_order_status(order, status_value)
        if previous != status_value:
            self._activity.log(ActivityEventBuilder.status_changed(
                order_id, previous, status_value, self._actor_id,
            ))
        self._committed()
        return order

    def update_order_assignment(
        self,
        order_id: str,
        role: Union[AssignmentRole, str],
        worker_name: Optional[str],
        rate: Optional[Decimal] = None,
    ) -> Order:
        """
        Assign a worker to a role on an order. Without an explicit rate the
        worker's per-suit rate is used.
        """
        self.require(PermissionTag.EDIT_ORDERS, "assign worker")
        order = self._visible_order(order_id)

        if worker_name and rate is None:
            worker = next((w for w in self._state.workers if w.name == worker_name), None)
            rate = worker.rate_per_suit if worker else Decimal("0")

        update_order_assignment(order, role, worker_name, rate or Decimal("0"))
        self._committed()
        return order

    def record_customer_receipt(
        self,
        customer_id: str,
        amount: Decimal,
        account_id: Optional[str],
        now: Optional[datetime] = None,
    ) -> ReceiptAllocation:
        """
        Spread one receipt over the customer's visible orders.

        Any remainder beyond the total due is returned as `unapplied` and
        is not credited.
        """
        self.require(PermissionTag.EDIT_ORDERS, "record customer receipt")
        self._validator.ensure_valid(self._validator.validate_amount(amount))
        self._find(self._state.customers, customer_id, "customers")

        allocation = apply_customer_receipt(
            customer_id, Decimal(amount), self.visible_orders(), account_id, now,
        )
        self._activity.log(ActivityEventBuilder.receipt_applied(
            customer_id,
            allocation.applied,
            allocation.unapplied,
            len(allocation.allocations),
            self._actor_id,
        ))
        if allocation.allocations:
            self._committed()
        return allocation

    # =========================================================================
    # Workers
    # =========================================================================

    def add_worker(
        self,
        name: str,
        roles: Sequence[str] = (),
        rate_per_suit: Decimal = Decimal("0"),
    ) -> tuple[Worker, Optional[WorkerCredentials]]:
        """
        Add a worker and, when the username is free, a login for them.

        The login gets the default staff password and only the permissions
        needed to see their own work.
        """
        self.require(PermissionTag.CREATE_WORKERS, "add worker")
        self._validator.ensure_valid(self._validator.validate_named_record(name))

        worker = Worker(name=name, roles=list(roles), rate_per_suit=rate_per_suit)
        self._state.workers.append(worker)

        credentials = None
        username = worker_username(worker.name)
        if username and not any(u.username == username for u in self._state.users):
            password = get_settings().app.default_staff_password
            user = User(
                username=username,
                password_hash=self._auth.hash_password(password) if self._auth else None,
                name=worker.name,
                role=worker.roles[0] if worker.roles else Role.STAFF.value,
                permissions=[tag.value for tag in WORKER_LOGIN_PERMISSIONS],
            )
            self._state.users.append(user)
            credentials = WorkerCredentials(user_id=user.id, username=username, password=password)

        self._activity.log(ActivityEventBuilder.worker_created(
            worker.id, worker.name, credentials.username if credentials else None, self._actor_id,
        ))
        self._committed()
        return worker, credentials

    def update_worker(self, worker_id: str, **changes) -> Worker:
        self.require(PermissionTag.EDIT_WORKERS, "edit worker")
        worker = self._find(self._state.workers, worker_id, "workers")
        if "name" in changes:
            self._validator.ensure_valid(self._validator.validate_named_record(changes["name"]))

        updated = self._revalidated(worker, changes)
        self._replace(self._state.workers, updated)
        self._committed()
        return updated

    def delete_worker(self, worker_id: str, confirm: bool = False) -> int:
        """
        Delete a worker and unassign them from every order.

        Orders are kept. Returns the number of role slots cleared.
        """
        self.require(PermissionTag.DELETE_WORKERS, "delete worker")
        worker = self._find(self._state.workers, worker_id, "workers")
        self._confirm(confirm, f"worker {worker.name}")

        cleared = clear_worker_assignments(self._state.orders, worker.name)
        self._state.collections.workers = [w for w in self._state.workers if w.id != worker_id]
        self._activity.log(ActivityEventBuilder.worker_deleted(worker_id, cleared, self._actor_id))
        self._committed()
        return cleared

    def record_worker_payment(
        self,
        worker_id: str,
        amount: Decimal,
        account_id: Optional[str],
        when: Optional[datetime] = None,
    ) -> WorkerPayment:
        self.require(PermissionTag.PAY_WORKERS, "pay worker")
        self._validator.ensure_valid(self._validator.validate_amount(amount))
        self._find(self._state.workers, worker_id, "workers")

        payment = WorkerPayment(
            worker_id=worker_id,
            amount=amount,
            account_id=account_id,
            date=when or datetime.now(),
        )
        self._state.worker_payments.append(payment)
        self._activity.log(ActivityEventBuilder.worker_paid(
            worker_id, payment.amount, account_id, self._actor_id,
        ))
        self._committed()
        return payment

    # =========================================================================
    # Expenses & accounts
    # =========================================================================

    def add_expense(
        self,
        category: str,
        amount: Decimal,
        account_id: Optional[str],
        note: Optional[str] = None,
        when: Optional[datetime] = None,
    ) -> Expense:
        self.require(PermissionTag.CREATE_EXPENSES, "add expense")
        self._validator.ensure_valid(self._validator.validate_amount(amount))

        expense = Expense(
            category=category or "Others",
            amount=amount,
            account_id=account_id,
            note=note,
            date=when or datetime.now(),
            created_by=self._actor_id,
        )
        self._state.expenses.append(expense)
        self._committed()
        return expense

    def update_expense(self, expense_id: str, **changes) -> Expense:
        self.require(PermissionTag.EDIT_EXPENSES, "edit expense")
        expense = self._find(self.visible_expenses(), expense_id, "expenses")
        if "amount" in changes:
            self._validator.ensure_valid(self._validator.validate_amount(changes["amount"]))

        updated = self._revalidated(expense, changes)
        self._replace(self._state.expenses, updated)
        self._committed()
        return updated

    def delete_expense(self, expense_id: str, confirm: bool = False) -> None:
        self.require(PermissionTag.DELETE_EXPENSES, "delete expense")
        self._find(self.visible_expenses(), expense_id, "expenses")
        self._confirm(confirm, "expense")

        self._state.collections.expenses = [
            e for e in self._state.expenses if e.id != expense_id
        ]
        self._committed()

    def add_account(
        self,
        name: str,
        account_type: Union[AccountType, str] = AccountType.CASH,
    ) -> Account:
        # Managing accounts rides on the accounts view permission
        self.require(PermissionTag.VIEW_ACCOUNTS, "add account")
        self._validator.ensure_valid(
            self._validator.validate_account(name, self._state.accounts)
        )

        account = Account(name=name, type=account_type)
        self._state.accounts.append(account)
        self._committed()
        return account

    # =========================================================================
    # Users
    # =========================================================================

    def add_user(
        self,
        name: str,
        username: str,
        password: str,
        role: Union[Role, str] = Role.STAFF,
        permissions: Optional[Sequence[Union[PermissionTag, str]]] = None,
    ) -> User:
        self.require(PermissionTag.MANAGE_USERS, "add user")
        result = self._validator.validate_new_user(name, username, self._state.users)
        result.issues.extend(
            self._validator.validate_password_change(password, password).issues
        )
        self._validator.ensure_valid(result)

        user = User(
            name=name,
            username=username,
            password_hash=self._auth.hash_password(password) if self._auth else None,
            role=role.value if isinstance(role, Role) else role,
            permissions=[p.value if isinstance(p, PermissionTag) else p for p in permissions or []],
        )
        self._state.users.append(user)
        self._activity.log(ActivityEventBuilder.user_created(user.id, user.username, self._actor_id))
        self._committed()
        return user

    def update_user(self, user_id: str, **changes) -> User:
        """Edit name, username or role of any user."""
        self.require(PermissionTag.MANAGE_USERS, "edit user")
        user = self._find(self._state.users, user_id, "users")
        self._validator.ensure_valid(self._validator.validate_profile_update(
            user_id,
            changes.get("name", user.name),
            changes.get("username", user.username),
            self._state.users,
        ))

        updated = self._revalidated(user, changes)
        self._replace(self._state.users, updated)
        if self._state.current_user and self._state.current_user.id == user_id:
            self._state.current_user = updated
        self._committed()
        return updated

    def set_user_permissions(
        self,
        user_id: str,
        permissions: Sequence[Union[PermissionTag, str]],
    ) -> User:
        """Replace a user's custom permissions; an empty list restores the role's."""
        self.require(PermissionTag.MANAGE_USERS, "set permissions")
        user = self._find(self._state.users, user_id, "users")
        user.permissions = [p.value if isinstance(p, PermissionTag) else p for p in permissions]
        self._committed()
        return user

    def toggle_user_active(self, user_id: str) -> User:
        self.require(PermissionTag.MANAGE_USERS, "activate or deactivate user")
        user = self._find(self._state.users, user_id, "users")
        user.active = not user.active
        self._committed()
        return user

    def delete_user(self, user_id: str, confirm: bool = False) -> bool:
        """
        Delete a user. Returns True when the acting user deleted
        themselves; the session must then log out.
        """
        self.require(PermissionTag.MANAGE_USERS, "delete user")
        user = self._find(self._state.users, user_id, "users")
        self._confirm(confirm, f"user {user.username}")

        self._state.collections.users = [u for u in self._state.users if u.id != user_id]
        self._activity.log(ActivityEventBuilder.user_deleted(user_id, self._actor_id))
        self._committed()
        return user_id == self._actor_id

    def update_own_profile(self, name: str, username: str) -> User:
        """Any logged-in user may change their own name and username."""
        current = self._state.current_user
        if current is None:
            raise AuthenticationError("Not logged in")
        self._validator.ensure_valid(
            self._validator.validate_profile_update(current.id, name, username, self._state.users)
        )

        user = self._find(self._state.users, current.id, "users")
        user.name = name.strip()
        user.username = username.strip()
        self._state.current_user = user
        self._committed()
        return user

    async def change_password(
        self,
        new_password: str,
        confirm_password: str,
        current_password: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> bool:
        """
        Change the acting user's password, or (Admin only) another user's.
        """
        if self._auth is None:
            raise RuntimeError("No auth service configured")
        await self._auth.change_password(
            new_password,
            confirm_password,
            current_password=current_password,
            user_id=user_id,
        )
        target_id = user_id or self._actor_id
        self._activity.log(ActivityEventBuilder.password_changed(self._actor_id, target_id))
        self._committed()
        return True
