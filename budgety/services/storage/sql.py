"""
Relational Storage Implementation

DESIGN DECISION: One SQLAlchemy-backed class implements every storage
interface because:
1. Family creation and invite redemption need a real transaction
2. The job lock is a unique row, so every API instance and every cron
   invocation sharing the database agrees on who ran today's tick
3. SQLite works out of the box for development; PostgreSQL is a URL change

TRADEOFFS:
- Calls are synchronous inside async methods. Every query is a short
  indexed lookup, so we accept blocking the loop briefly instead of
  running a second (async) driver stack.
- Aggregation for reports happens in Python over the month's rows.

Connection and schema setup are retried with exponential backoff.
Individual writes are not retried: a failed write surfaces as a
StorageError and the caller decides.
"""

from contextlib import contextmanager
from datetime import date, datetime, timezone
from typing import Iterator, Optional
from uuid import UUID

from sqlalchemy import and_, create_engine, delete, func, or_, select, text, update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool
from tenacity import retry, stop_after_attempt, wait_exponential

from budgety.config import get_settings
from budgety.models.audit import AuditEvent, AuditEventType, AuditSeverity
from budgety.models.budget import Category, CategoryBudget
from budgety.models.common import utcnow
from budgety.models.expense import (
    Expense,
    ExpenseFilter,
    ExpenseSort,
    Frequency,
    RecurringExpense,
)
from budgety.models.family import (
    AuthSession,
    Family,
    FamilyMember,
    FamilyRole,
    Invite,
    User,
)
from budgety.models.notification import Notification
from budgety.services.storage.interface import (
    DuplicateError,
    RecordNotFoundError,
    StorageError,
    StorageInterface,
    StorageUnavailableError,
)
from budgety.services.storage.tables import (
    AuditEventRow,
    Base,
    CategoryBudgetRow,
    CategoryRow,
    ExpenseRow,
    FamilyMemberRow,
    FamilyRow,
    InviteRow,
    JobLockRow,
    NotificationRow,
    RecurringExpenseRow,
    SessionRow,
    UserRow,
)


def _to_db_time(value: Optional[datetime]) -> Optional[datetime]:
    """Aware datetime -> naive UTC for storage."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def _from_db_time(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    return value.replace(tzinfo=timezone.utc)


def _uuid(value: Optional[str]) -> Optional[UUID]:
    return UUID(value) if value else None


def _str(value: Optional[UUID]) -> Optional[str]:
    return str(value) if value else None


class SqlDatabase:
    """
    Low-level database handle.

    Owns the engine and the session factory; provides retry logic for
    opening the connection and creating the schema.
    """

    def __init__(self, url: Optional[str] = None, echo: Optional[bool] = None):
        settings = get_settings().database
        self._url = url or settings.url
        self._echo = settings.echo if echo is None else echo
        self._engine: Optional[Engine] = None
        self._session_factory: Optional[sessionmaker] = None

    @property
    def url(self) -> str:
        return self._url

    def _engine_options(self) -> dict:
        if not self._url.startswith("sqlite"):
            return {"pool_pre_ping": True}
        options: dict = {"connect_args": {"check_same_thread": False}}
        if self._url in ("sqlite://", "sqlite:///:memory:"):
            # One shared connection, otherwise every checkout gets an empty database
            options["poolclass"] = StaticPool
        return options

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> Engine:
        """Create the engine and check the database answers."""
        if self._engine is None:
            try:
                engine = create_engine(self._url, echo=self._echo, **self._engine_options())
                with engine.connect() as conn:
                    conn.execute(text("SELECT 1"))
            except SQLAlchemyError as e:
                raise StorageUnavailableError(f"Failed to connect to database: {e}")
            self._engine = engine
            self._session_factory = sessionmaker(bind=engine, expire_on_commit=False)
        return self._engine

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def init_schema(self) -> None:
        """Create missing tables. Existing tables are left untouched."""
        engine = self.connect()
        try:
            Base.metadata.create_all(engine)
        except SQLAlchemyError as e:
            raise StorageUnavailableError(f"Failed to create schema: {e}")

    def session_factory(self) -> sessionmaker:
        self.connect()
        return self._session_factory

    def dispose(self) -> None:
        if self._engine is not None:
            self._engine.dispose()
            self._engine = None
            self._session_factory = None


class SqlStorage(StorageInterface):
    """
    SQLAlchemy implementation of every storage interface.

    Each public method runs in its own transaction.
    """

    def __init__(self, database: Optional[SqlDatabase] = None):
        self._db = database or SqlDatabase()

    @property
    def database(self) -> SqlDatabase:
        return self._db

    @contextmanager
    def _transaction(self, action: str) -> Iterator[Session]:
        """Open a session, commit on success, map driver errors to storage errors."""
        try:
            with self._db.session_factory().begin() as session:
                yield session
        except IntegrityError as e:
            raise DuplicateError(f"Failed to {action}: {e.orig}")
        except OperationalError as e:
            raise StorageUnavailableError(f"Failed to {action}: {e.orig}")
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to {action}: {e}")

    # =========================================================================
    # ROW CONVERSION
    # =========================================================================

    def _row_to_user(self, row: UserRow) -> User:
        return User(
            id=UUID(row.id),
            name=row.name,
            email=row.email,
            display_name=row.display_name,
            avatar_url=row.avatar_url,
            created_at=_from_db_time(row.created_at),
            updated_at=_from_db_time(row.updated_at),
        )

    def _row_to_session(self, row: SessionRow) -> AuthSession:
        return AuthSession(
            token=row.token,
            user_id=UUID(row.user_id),
            expires_at=_from_db_time(row.expires_at),
            created_at=_from_db_time(row.created_at),
        )

    def _row_to_family(self, row: FamilyRow) -> Family:
        return Family(
            id=UUID(row.id),
            name=row.name,
            currency=row.currency,
            monthly_budget=row.monthly_budget,
            large_expense_threshold=row.large_expense_threshold,
            created_at=_from_db_time(row.created_at),
            updated_at=_from_db_time(row.updated_at),
        )

    def _row_to_member(self, row: FamilyMemberRow) -> FamilyMember:
        return FamilyMember(
            id=UUID(row.id),
            family_id=UUID(row.family_id),
            user_id=UUID(row.user_id),
            role=FamilyRole(row.role),
            joined_at=_from_db_time(row.joined_at),
        )

    def _row_to_invite(self, row: InviteRow) -> Invite:
        return Invite(
            id=UUID(row.id),
            code=row.code,
            family_id=UUID(row.family_id),
            created_by=UUID(row.created_by),
            expires_at=_from_db_time(row.expires_at),
            used_by=_uuid(row.used_by),
            used_at=_from_db_time(row.used_at),
            created_at=_from_db_time(row.created_at),
        )

    def _row_to_category(self, row: CategoryRow) -> Category:
        return Category(
            id=UUID(row.id),
            name=row.name,
            icon=row.icon,
            is_default=row.is_default,
            family_id=_uuid(row.family_id),
        )

    def _row_to_category_budget(self, row: CategoryBudgetRow) -> CategoryBudget:
        return CategoryBudget(
            id=UUID(row.id),
            family_id=UUID(row.family_id),
            category_id=UUID(row.category_id),
            month=row.month,
            amount=row.amount,
        )

    def _row_to_expense(self, row: ExpenseRow) -> Expense:
        return Expense(
            id=UUID(row.id),
            amount=row.amount,
            description=row.description,
            expense_date=row.expense_date,
            category_id=UUID(row.category_id),
            family_id=UUID(row.family_id),
            created_by_id=UUID(row.created_by_id),
            created_at=_from_db_time(row.created_at),
            updated_at=_from_db_time(row.updated_at),
        )

    def _row_to_recurring(self, row: RecurringExpenseRow) -> RecurringExpense:
        return RecurringExpense(
            id=UUID(row.id),
            amount=row.amount,
            description=row.description,
            frequency=Frequency(row.frequency),
            start_date=row.start_date,
            end_date=row.end_date,
            next_due_date=row.next_due_date,
            is_active=row.is_active,
            family_id=UUID(row.family_id),
            category_id=UUID(row.category_id),
            created_by_id=UUID(row.created_by_id),
            created_at=_from_db_time(row.created_at),
            updated_at=_from_db_time(row.updated_at),
        )

    def _row_to_notification(self, row: NotificationRow) -> Notification:
        return Notification(
            id=UUID(row.id),
            type=row.type,
            title=row.title,
            body=row.body,
            data=row.data,
            is_read=row.is_read,
            user_id=UUID(row.user_id),
            family_id=_uuid(row.family_id),
            created_at=_from_db_time(row.created_at),
        )

    def _row_to_event(self, row: AuditEventRow) -> AuditEvent:
        return AuditEvent(
            event_id=UUID(row.event_id),
            timestamp=_from_db_time(row.timestamp),
            event_type=AuditEventType(row.event_type),
            severity=AuditSeverity(row.severity),
            entity_type=row.entity_type,
            entity_id=_uuid(row.entity_id),
            family_id=_uuid(row.family_id),
            actor_id=_uuid(row.actor_id),
            correlation_id=_uuid(row.correlation_id),
            description=row.description,
            details=row.details or {},
            error_message=row.error_message,
        )

    # =========================================================================
    # USERS
    # =========================================================================

    async def save_user(self, user: User) -> User:
        with self._transaction("save user") as session:
            session.add(UserRow(
                id=str(user.id),
                name=user.name,
                email=user.email,
                display_name=user.display_name,
                avatar_url=user.avatar_url,
                created_at=_to_db_time(user.created_at),
                updated_at=_to_db_time(user.updated_at),
            ))
        return user

    async def get_user(self, user_id: UUID) -> Optional[User]:
        with self._transaction("get user") as session:
            row = session.get(UserRow, str(user_id))
            return self._row_to_user(row) if row else None

    async def get_users(self, user_ids: list[UUID]) -> dict[UUID, User]:
        if not user_ids:
            return {}
        with self._transaction("get users") as session:
            rows = session.scalars(
                select(UserRow).where(UserRow.id.in_({str(uid) for uid in user_ids}))
            ).all()
            return {UUID(row.id): self._row_to_user(row) for row in rows}

    async def update_user(self, user: User) -> User:
        with self._transaction("update user") as session:
            row = session.get(UserRow, str(user.id))
            if row is None:
                raise RecordNotFoundError(f"User not found: {user.id}")
            user.updated_at = utcnow()
            row.name = user.name
            row.display_name = user.display_name
            row.avatar_url = user.avatar_url
            row.updated_at = _to_db_time(user.updated_at)
        return user

    async def save_session(self, session_record: AuthSession) -> AuthSession:
        with self._transaction("save session") as session:
            session.add(SessionRow(
                token=session_record.token,
                user_id=str(session_record.user_id),
                expires_at=_to_db_time(session_record.expires_at),
                created_at=_to_db_time(session_record.created_at),
            ))
        return session_record

    async def get_session(self, token: str) -> Optional[AuthSession]:
        with self._transaction("get session") as session:
            row = session.get(SessionRow, token)
            return self._row_to_session(row) if row else None

    # =========================================================================
    # FAMILIES
    # =========================================================================

    def _member_row(self, member: FamilyMember) -> FamilyMemberRow:
        return FamilyMemberRow(
            id=str(member.id),
            family_id=str(member.family_id),
            user_id=str(member.user_id),
            role=member.role.value,
            joined_at=_to_db_time(member.joined_at),
        )

    async def create_family(self, family: Family, admin: FamilyMember) -> Family:
        with self._transaction("create family") as session:
            session.add(FamilyRow(
                id=str(family.id),
                name=family.name,
                currency=family.currency,
                monthly_budget=family.monthly_budget,
                large_expense_threshold=family.large_expense_threshold,
                created_at=_to_db_time(family.created_at),
                updated_at=_to_db_time(family.updated_at),
            ))
            # Flush the family first so the membership's foreign key resolves
            session.flush()
            session.add(self._member_row(admin))
        return family

    async def get_family(self, family_id: UUID) -> Optional[Family]:
        with self._transaction("get family") as session:
            row = session.get(FamilyRow, str(family_id))
            return self._row_to_family(row) if row else None

    async def list_families_for_user(self, user_id: UUID) -> list[Family]:
        with self._transaction("list families") as session:
            rows = session.scalars(
                select(FamilyRow)
                .join(FamilyMemberRow, FamilyMemberRow.family_id == FamilyRow.id)
                .where(FamilyMemberRow.user_id == str(user_id))
                .order_by(FamilyMemberRow.joined_at)
            ).all()
            return [self._row_to_family(row) for row in rows]

    async def update_family(self, family: Family) -> Family:
        with self._transaction("update family") as session:
            row = session.get(FamilyRow, str(family.id))
            if row is None:
                raise RecordNotFoundError(f"Family not found: {family.id}")
            family.updated_at = utcnow()
            row.name = family.name
            row.currency = family.currency
            row.monthly_budget = family.monthly_budget
            row.large_expense_threshold = family.large_expense_threshold
            row.updated_at = _to_db_time(family.updated_at)
        return family

    async def delete_family(self, family_id: UUID) -> bool:
        fid = str(family_id)
        with self._transaction("delete family") as session:
            if session.get(FamilyRow, fid) is None:
                return False
            # Children first so foreign keys hold on databases that enforce them
            session.execute(delete(NotificationRow).where(NotificationRow.family_id == fid))
            session.execute(delete(ExpenseRow).where(ExpenseRow.family_id == fid))
            session.execute(delete(RecurringExpenseRow).where(RecurringExpenseRow.family_id == fid))
            session.execute(delete(CategoryBudgetRow).where(CategoryBudgetRow.family_id == fid))
            session.execute(delete(CategoryRow).where(CategoryRow.family_id == fid))
            session.execute(delete(InviteRow).where(InviteRow.family_id == fid))
            session.execute(delete(FamilyMemberRow).where(FamilyMemberRow.family_id == fid))
            session.execute(delete(FamilyRow).where(FamilyRow.id == fid))
        return True

    async def get_membership(self, family_id: UUID, user_id: UUID) -> Optional[FamilyMember]:
        with self._transaction("get membership") as session:
            row = session.scalars(
                select(FamilyMemberRow).where(
                    FamilyMemberRow.family_id == str(family_id),
                    FamilyMemberRow.user_id == str(user_id),
                )
            ).first()
            return self._row_to_member(row) if row else None

    async def get_member(self, member_id: UUID) -> Optional[FamilyMember]:
        with self._transaction("get member") as session:
            row = session.get(FamilyMemberRow, str(member_id))
            return self._row_to_member(row) if row else None

    async def list_members(self, family_id: UUID) -> list[FamilyMember]:
        with self._transaction("list members") as session:
            rows = session.scalars(
                select(FamilyMemberRow)
                .where(FamilyMemberRow.family_id == str(family_id))
                .order_by(FamilyMemberRow.joined_at)
            ).all()
            return [self._row_to_member(row) for row in rows]

    async def update_member(self, member: FamilyMember) -> FamilyMember:
        with self._transaction("update member") as session:
            row = session.get(FamilyMemberRow, str(member.id))
            if row is None:
                raise RecordNotFoundError(f"Member not found: {member.id}")
            row.role = member.role.value
        return member

    async def delete_member(self, member_id: UUID) -> bool:
        with self._transaction("delete member") as session:
            result = session.execute(
                delete(FamilyMemberRow).where(FamilyMemberRow.id == str(member_id))
            )
            return result.rowcount > 0

    async def save_invite(self, invite: Invite) -> Invite:
        with self._transaction("save invite") as session:
            session.add(InviteRow(
                id=str(invite.id),
                code=invite.code,
                family_id=str(invite.family_id),
                created_by=str(invite.created_by),
                expires_at=_to_db_time(invite.expires_at),
                used_by=_str(invite.used_by),
                used_at=_to_db_time(invite.used_at),
                created_at=_to_db_time(invite.created_at),
            ))
        return invite

    async def get_invite_by_code(self, code: str) -> Optional[Invite]:
        with self._transaction("get invite") as session:
            row = session.scalars(
                select(InviteRow)
                .where(InviteRow.code == code)
                .order_by(InviteRow.created_at.desc())
            ).first()
            return self._row_to_invite(row) if row else None

    async def redeem_invite(
        self,
        invite_id: UUID,
        member: FamilyMember,
        used_at: datetime,
    ) -> Optional[FamilyMember]:
        used_at_db = _to_db_time(used_at)
        with self._transaction("redeem invite") as session:
            # Conditional update claims the invite; a concurrent redeemer sees rowcount 0
            claimed = session.execute(
                update(InviteRow)
                .where(
                    InviteRow.id == str(invite_id),
                    InviteRow.used_by.is_(None),
                    InviteRow.expires_at > used_at_db,
                )
                .values(used_by=str(member.user_id), used_at=used_at_db)
            )
            if claimed.rowcount == 0:
                return None

            existing = session.scalars(
                select(FamilyMemberRow).where(
                    FamilyMemberRow.family_id == str(member.family_id),
                    FamilyMemberRow.user_id == str(member.user_id),
                )
            ).first()
            if existing is not None:
                raise DuplicateError("User is already a member of this family")
            session.add(self._member_row(member))
        return member

    # =========================================================================
    # CATEGORIES & BUDGETS
    # =========================================================================

    async def save_category(self, category: Category) -> Category:
        with self._transaction("save category") as session:
            session.add(CategoryRow(
                id=str(category.id),
                name=category.name,
                icon=category.icon,
                is_default=category.is_default,
                family_id=_str(category.family_id),
            ))
        return category

    async def get_category(self, category_id: UUID) -> Optional[Category]:
        with self._transaction("get category") as session:
            row = session.get(CategoryRow, str(category_id))
            return self._row_to_category(row) if row else None

    async def get_categories(self, category_ids: list[UUID]) -> dict[UUID, Category]:
        if not category_ids:
            return {}
        with self._transaction("get categories") as session:
            rows = session.scalars(
                select(CategoryRow).where(CategoryRow.id.in_({str(cid) for cid in category_ids}))
            ).all()
            return {UUID(row.id): self._row_to_category(row) for row in rows}

    async def list_categories(self, family_id: UUID) -> list[Category]:
        with self._transaction("list categories") as session:
            rows = session.scalars(
                select(CategoryRow)
                .where(or_(
                    and_(CategoryRow.is_default.is_(True), CategoryRow.family_id.is_(None)),
                    CategoryRow.family_id == str(family_id),
                ))
                .order_by(CategoryRow.name)
            ).all()
            return [self._row_to_category(row) for row in rows]

    async def list_default_categories(self) -> list[Category]:
        with self._transaction("list default categories") as session:
            rows = session.scalars(
                select(CategoryRow)
                .where(CategoryRow.is_default.is_(True), CategoryRow.family_id.is_(None))
                .order_by(CategoryRow.name)
            ).all()
            return [self._row_to_category(row) for row in rows]

    async def update_category(self, category: Category) -> Category:
        with self._transaction("update category") as session:
            row = session.get(CategoryRow, str(category.id))
            if row is None:
                raise RecordNotFoundError(f"Category not found: {category.id}")
            row.name = category.name
            row.icon = category.icon
        return category

    async def category_in_use(self, category_id: UUID) -> bool:
        cid = str(category_id)
        with self._transaction("check category usage") as session:
            expense = session.scalars(
                select(ExpenseRow.id).where(ExpenseRow.category_id == cid).limit(1)
            ).first()
            if expense is not None:
                return True
            template = session.scalars(
                select(RecurringExpenseRow.id).where(RecurringExpenseRow.category_id == cid).limit(1)
            ).first()
            return template is not None

    async def delete_category(self, category_id: UUID) -> bool:
        cid = str(category_id)
        with self._transaction("delete category") as session:
            session.execute(delete(CategoryBudgetRow).where(CategoryBudgetRow.category_id == cid))
            result = session.execute(delete(CategoryRow).where(CategoryRow.id == cid))
            return result.rowcount > 0

    async def list_category_budgets(self, family_id: UUID, month: str) -> list[CategoryBudget]:
        with self._transaction("list category budgets") as session:
            rows = session.scalars(
                select(CategoryBudgetRow).where(
                    CategoryBudgetRow.family_id == str(family_id),
                    CategoryBudgetRow.month == month,
                )
            ).all()
            return [self._row_to_category_budget(row) for row in rows]

    async def upsert_category_budget(self, budget: CategoryBudget) -> CategoryBudget:
        with self._transaction("upsert category budget") as session:
            row = session.scalars(
                select(CategoryBudgetRow).where(
                    CategoryBudgetRow.family_id == str(budget.family_id),
                    CategoryBudgetRow.category_id == str(budget.category_id),
                    CategoryBudgetRow.month == budget.month,
                )
            ).first()
            if row is None:
                row = CategoryBudgetRow(
                    id=str(budget.id),
                    family_id=str(budget.family_id),
                    category_id=str(budget.category_id),
                    month=budget.month,
                    amount=budget.amount,
                )
                session.add(row)
            else:
                row.amount = budget.amount
            session.flush()
            return self._row_to_category_budget(row)

    # =========================================================================
    # EXPENSES
    # =========================================================================

    async def save_expense(self, expense: Expense) -> Expense:
        with self._transaction("save expense") as session:
            session.add(ExpenseRow(
                id=str(expense.id),
                amount=expense.amount,
                description=expense.description,
                expense_date=expense.expense_date,
                category_id=str(expense.category_id),
                family_id=str(expense.family_id),
                created_by_id=str(expense.created_by_id),
                created_at=_to_db_time(expense.created_at),
                updated_at=_to_db_time(expense.updated_at),
            ))
        return expense

    async def get_expense(self, expense_id: UUID) -> Optional[Expense]:
        with self._transaction("get expense") as session:
            row = session.get(ExpenseRow, str(expense_id))
            return self._row_to_expense(row) if row else None

    async def update_expense(self, expense: Expense) -> Expense:
        with self._transaction("update expense") as session:
            row = session.get(ExpenseRow, str(expense.id))
            if row is None:
                raise RecordNotFoundError(f"Expense not found: {expense.id}")
            expense.updated_at = utcnow()
            row.amount = expense.amount
            row.description = expense.description
            row.expense_date = expense.expense_date
            row.category_id = str(expense.category_id)
            row.updated_at = _to_db_time(expense.updated_at)
        return expense

    async def delete_expense(self, expense_id: UUID) -> bool:
        with self._transaction("delete expense") as session:
            result = session.execute(delete(ExpenseRow).where(ExpenseRow.id == str(expense_id)))
            return result.rowcount > 0

    async def list_expenses(
        self,
        family_id: UUID,
        filters: ExpenseFilter,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[Expense], int]:
        conditions = [ExpenseRow.family_id == str(family_id)]
        if filters.start_date:
            conditions.append(ExpenseRow.expense_date >= filters.start_date)
        if filters.end_date:
            conditions.append(ExpenseRow.expense_date <= filters.end_date)
        if filters.category_id:
            conditions.append(ExpenseRow.category_id == str(filters.category_id))
        if filters.created_by_id:
            conditions.append(ExpenseRow.created_by_id == str(filters.created_by_id))

        if filters.sort == ExpenseSort.CREATED_AT:
            order = [ExpenseRow.created_at.desc()]
        else:
            order = [ExpenseRow.expense_date.desc(), ExpenseRow.created_at.desc()]

        with self._transaction("list expenses") as session:
            total = session.scalar(
                select(func.count()).select_from(ExpenseRow).where(*conditions)
            )
            rows = session.scalars(
                select(ExpenseRow).where(*conditions).order_by(*order).offset(offset).limit(limit)
            ).all()
            return [self._row_to_expense(row) for row in rows], total or 0

    async def list_expenses_between(
        self,
        family_id: UUID,
        start: date,
        end: date,
    ) -> list[Expense]:
        with self._transaction("list expenses in range") as session:
            rows = session.scalars(
                select(ExpenseRow)
                .where(
                    ExpenseRow.family_id == str(family_id),
                    ExpenseRow.expense_date >= start,
                    ExpenseRow.expense_date < end,
                )
                .order_by(ExpenseRow.expense_date, ExpenseRow.created_at)
            ).all()
            return [self._row_to_expense(row) for row in rows]

    # =========================================================================
    # RECURRING EXPENSES
    # =========================================================================

    async def save_recurring(self, template: RecurringExpense) -> RecurringExpense:
        with self._transaction("save recurring expense") as session:
            session.add(RecurringExpenseRow(
                id=str(template.id),
                amount=template.amount,
                description=template.description,
                frequency=template.frequency.value,
                start_date=template.start_date,
                end_date=template.end_date,
                next_due_date=template.next_due_date,
                is_active=template.is_active,
                family_id=str(template.family_id),
                category_id=str(template.category_id),
                created_by_id=str(template.created_by_id),
                created_at=_to_db_time(template.created_at),
                updated_at=_to_db_time(template.updated_at),
            ))
        return template

    async def get_recurring(self, template_id: UUID) -> Optional[RecurringExpense]:
        with self._transaction("get recurring expense") as session:
            row = session.get(RecurringExpenseRow, str(template_id))
            return self._row_to_recurring(row) if row else None

    async def update_recurring(self, template: RecurringExpense) -> RecurringExpense:
        with self._transaction("update recurring expense") as session:
            row = session.get(RecurringExpenseRow, str(template.id))
            if row is None:
                raise RecordNotFoundError(f"Recurring expense not found: {template.id}")
            template.updated_at = utcnow()
            row.amount = template.amount
            row.description = template.description
            row.frequency = template.frequency.value
            row.end_date = template.end_date
            row.is_active = template.is_active
            row.category_id = str(template.category_id)
            row.updated_at = _to_db_time(template.updated_at)
            next_due_date = row.next_due_date
        return template.model_copy(update={"next_due_date": next_due_date})

    async def delete_recurring(self, template_id: UUID) -> bool:
        with self._transaction("delete recurring expense") as session:
            result = session.execute(
                delete(RecurringExpenseRow).where(RecurringExpenseRow.id == str(template_id))
            )
            return result.rowcount > 0

    async def list_recurring(
        self,
        family_id: UUID,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[RecurringExpense], int]:
        condition = RecurringExpenseRow.family_id == str(family_id)
        with self._transaction("list recurring expenses") as session:
            total = session.scalar(
                select(func.count()).select_from(RecurringExpenseRow).where(condition)
            )
            rows = session.scalars(
                select(RecurringExpenseRow)
                .where(condition)
                .order_by(RecurringExpenseRow.created_at.desc())
                .offset(offset)
                .limit(limit)
            ).all()
            return [self._row_to_recurring(row) for row in rows], total or 0

    async def list_due_recurring(self, today: date) -> list[RecurringExpense]:
        with self._transaction("select due recurring expenses") as session:
            rows = session.scalars(
                select(RecurringExpenseRow)
                .where(
                    RecurringExpenseRow.is_active.is_(True),
                    RecurringExpenseRow.next_due_date <= today,
                    or_(
                        RecurringExpenseRow.end_date.is_(None),
                        RecurringExpenseRow.end_date >= today,
                    ),
                )
                .order_by(RecurringExpenseRow.next_due_date, RecurringExpenseRow.created_at)
            ).all()
            return [self._row_to_recurring(row) for row in rows]

    async def set_next_due_date(self, template_id: UUID, next_due_date: date) -> bool:
        with self._transaction("advance recurring expense") as session:
            result = session.execute(
                update(RecurringExpenseRow)
                .where(RecurringExpenseRow.id == str(template_id))
                .values(next_due_date=next_due_date, updated_at=_to_db_time(utcnow()))
            )
            return result.rowcount > 0

    # =========================================================================
    # NOTIFICATIONS
    # =========================================================================

    async def save_notifications(self, notifications: list[Notification]) -> list[Notification]:
        if not notifications:
            return []
        with self._transaction("save notifications") as session:
            session.add_all([
                NotificationRow(
                    id=str(n.id),
                    type=n.type,
                    title=n.title,
                    body=n.body,
                    data=n.data,
                    is_read=n.is_read,
                    user_id=str(n.user_id),
                    family_id=_str(n.family_id),
                    created_at=_to_db_time(n.created_at),
                )
                for n in notifications
            ])
        return notifications

    async def get_notification(self, notification_id: UUID) -> Optional[Notification]:
        with self._transaction("get notification") as session:
            row = session.get(NotificationRow, str(notification_id))
            return self._row_to_notification(row) if row else None

    async def list_notifications(
        self,
        user_id: UUID,
        limit: int = 20,
        cursor: Optional[UUID] = None,
        unread_only: bool = False,
    ) -> tuple[list[Notification], int]:
        conditions = [NotificationRow.user_id == str(user_id)]
        if unread_only:
            conditions.append(NotificationRow.is_read.is_(False))

        with self._transaction("list notifications") as session:
            total = session.scalar(
                select(func.count()).select_from(NotificationRow).where(*conditions)
            ) or 0

            page_conditions = list(conditions)
            if cursor is not None:
                anchor = session.get(NotificationRow, str(cursor))
                if anchor is None or anchor.user_id != str(user_id):
                    return [], total
                page_conditions.append(or_(
                    NotificationRow.created_at < anchor.created_at,
                    and_(
                        NotificationRow.created_at == anchor.created_at,
                        NotificationRow.id < anchor.id,
                    ),
                ))

            rows = session.scalars(
                select(NotificationRow)
                .where(*page_conditions)
                .order_by(NotificationRow.created_at.desc(), NotificationRow.id.desc())
                .limit(limit)
            ).all()
            return [self._row_to_notification(row) for row in rows], total

    async def count_unread(self, user_id: UUID) -> int:
        with self._transaction("count unread notifications") as session:
            return session.scalar(
                select(func.count()).select_from(NotificationRow).where(
                    NotificationRow.user_id == str(user_id),
                    NotificationRow.is_read.is_(False),
                )
            ) or 0

    async def mark_read(self, notification_id: UUID) -> bool:
        with self._transaction("mark notification read") as session:
            result = session.execute(
                update(NotificationRow)
                .where(NotificationRow.id == str(notification_id))
                .values(is_read=True)
            )
            return result.rowcount > 0

    async def mark_all_read(self, user_id: UUID) -> int:
        with self._transaction("mark notifications read") as session:
            result = session.execute(
                update(NotificationRow)
                .where(
                    NotificationRow.user_id == str(user_id),
                    NotificationRow.is_read.is_(False),
                )
                .values(is_read=True)
            )
            return result.rowcount

    async def delete_notification(self, notification_id: UUID) -> bool:
        with self._transaction("delete notification") as session:
            result = session.execute(
                delete(NotificationRow).where(NotificationRow.id == str(notification_id))
            )
            return result.rowcount > 0

    # =========================================================================
    # JOB LOCKS
    # =========================================================================

    async def acquire(self, job_name: str, run_key: str) -> bool:
        try:
            with self._transaction("acquire job lock") as session:
                session.add(JobLockRow(
                    job_name=job_name,
                    run_key=run_key,
                    acquired_at=_to_db_time(utcnow()),
                ))
        except DuplicateError:
            return False
        return True

    # =========================================================================
    # AUDIT
    # =========================================================================

    async def append_event(self, event: AuditEvent) -> bool:
        with self._transaction("append audit event") as session:
            session.add(AuditEventRow(
                event_id=str(event.event_id),
                timestamp=_to_db_time(event.timestamp),
                event_type=event.event_type.value,
                severity=event.severity.value,
                entity_type=event.entity_type,
                entity_id=_str(event.entity_id),
                family_id=_str(event.family_id),
                actor_id=_str(event.actor_id),
                correlation_id=_str(event.correlation_id),
                description=event.description,
                details=event.details or None,
                error_message=event.error_message,
            ))
        return True

    async def get_events_by_correlation_id(self, correlation_id: UUID) -> list[AuditEvent]:
        with self._transaction("get audit events") as session:
            rows = session.scalars(
                select(AuditEventRow)
                .where(AuditEventRow.correlation_id == str(correlation_id))
                .order_by(AuditEventRow.timestamp)
            ).all()
            return [self._row_to_event(row) for row in rows]

    async def get_events_by_entity(self, entity_type: str, entity_id: UUID) -> list[AuditEvent]:
        with self._transaction("get audit events") as session:
            rows = session.scalars(
                select(AuditEventRow)
                .where(
                    AuditEventRow.entity_type == entity_type,
                    AuditEventRow.entity_id == str(entity_id),
                )
                .order_by(AuditEventRow.timestamp)
            ).all()
            return [self._row_to_event(row) for row in rows]

    async def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        with self._transaction("get audit events") as session:
            rows = session.scalars(
                select(AuditEventRow).order_by(AuditEventRow.timestamp.desc()).limit(limit)
            ).all()
            return [self._row_to_event(row) for row in rows]
