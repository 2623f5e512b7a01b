"""
Ledger State Store

The in-memory source of truth for one user's clients, expenses and profile.

DESIGN DECISION: Mutations are synchronous and persistence is not.
Every mutation:
1. Validates the caller's input (raising ValidationError / NotFoundError)
2. Updates in-memory state, visible to the next read immediately
3. Records an audit event
4. Schedules a write of the FULL ledger under the identity current at that
   moment (see flowdesk.ledger.persistence)

A storage failure never reaches the caller of a mutation. It is logged as a
persist_failed audit event and the in-memory state is kept.

IDENTITY SWITCH: Changing the profile email discards the in-memory ledger and
reloads the ledger stored for the new email. The only exception is the first
sign-in: an anonymous ledger is carried over to an email that has nothing
stored yet, so work done before entering an email is not lost.
"""

import asyncio
from datetime import datetime
from typing import Any, Callable, Optional, Union

import structlog

from flowdesk.audit import AuditLogger
from flowdesk.errors import NotFoundError
from flowdesk.ledger.persistence import (
    PersistScheduler,
    dropped_entities,
    snapshot_from_payload,
)
from flowdesk.models.audit import AuditEventBuilder
from flowdesk.models.ledger import (
    DEFAULT_CLIENT_TERM,
    Client,
    ClientCreate,
    ClientUpdate,
    Expense,
    ExpenseCreate,
    LedgerSnapshot,
    PaymentMetadata,
    PaymentStatus,
    PlanTier,
    ProfileUpdate,
    new_entity_id,
    utcnow,
)
from flowdesk.services.storage import DeserializationError, KeyedPersistenceStore
from flowdesk.utils.dates import age_from_birthdate, normalize_birthdate
from flowdesk.validation import LedgerValidator


# ProfileUpdate field -> LedgerStore attribute
_PROFILE_ATTRIBUTES = {
    "name": "user_name",
    "email": "user_email",
    "phone": "user_phone",
    "age": "user_age",
    "birthdate": "user_birthdate",
    "profession": "user_profession",
}


class LedgerStore:
    """
    Clients, expenses and profile of the active identity.

    Create with `await LedgerStore.open(persistence)`; the application root
    owns the instance (there is no module-level store).
    """

    def __init__(
        self,
        persistence: KeyedPersistenceStore,
        validator: Optional[LedgerValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
        default_client_term: str = DEFAULT_CLIENT_TERM,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._persistence = persistence
        self._validator = validator or LedgerValidator()
        self._audit = audit_logger or AuditLogger()
        self._clock = clock
        self._default_client_term = default_client_term
        self._scheduler = PersistScheduler(persistence, on_failure=self._on_persist_failed)
        self._logger = structlog.get_logger(__name__)

        self._clients: list[Client] = []
        self._expenses: list[Expense] = []
        self.client_term = default_client_term
        self.user_name = ""
        self.user_email = ""
        self.user_phone = ""
        self.user_age: Optional[int] = None
        self.user_birthdate = ""
        self.user_profession = ""
        self.plan_tier = PlanTier.FREE
        self.notifications_enabled = False

        # Transient, never persisted
        self._loading = False
        self._identity = ""
        self._generation = 0
        self._persist_deferred = False
        self._reload_task: Optional[asyncio.Task] = None
        self._pending_reload: Optional[tuple] = None

    @classmethod
    async def open(
        cls,
        persistence: KeyedPersistenceStore,
        identity: Optional[str] = None,
        **kwargs: Any,
    ) -> "LedgerStore":
        """Construct an empty store and hydrate it from storage."""
        store = cls(persistence, **kwargs)
        await store.hydrate(identity)
        return store

    # =========================================================================
    # READ HELPERS
    # =========================================================================

    @property
    def identity(self) -> str:
        """Email the ledger is currently bound to ("" when anonymous)."""
        return self._identity

    @property
    def is_loading(self) -> bool:
        """
        True while a ledger load or identity reload is in progress, or while
        a write is queued or running. False means memory and storage agree.
        """
        return self._loading or not self._scheduler.is_idle()

    @property
    def clients(self) -> list[Client]:
        return [client.model_copy(deep=True) for client in self._clients]

    @property
    def expenses(self) -> list[Expense]:
        return [expense.model_copy(deep=True) for expense in self._expenses]

    @property
    def audit(self) -> AuditLogger:
        return self._audit

    def get_client(self, client_id: str) -> Optional[Client]:
        for client in self._clients:
            if client.id == client_id:
                return client.model_copy(deep=True)
        return None

    def get_expense(self, expense_id: str) -> Optional[Expense]:
        for expense in self._expenses:
            if expense.id == expense_id:
                return expense.model_copy(deep=True)
        return None

    def snapshot(self) -> LedgerSnapshot:
        """Independent copy of the whole persisted ledger."""
        return LedgerSnapshot(
            clients=[client.model_copy(deep=True) for client in self._clients],
            expenses=[expense.model_copy(deep=True) for expense in self._expenses],
            client_term=self.client_term,
            user_name=self.user_name,
            user_email=self.user_email,
            user_phone=self.user_phone,
            user_age=self.user_age,
            user_birthdate=self.user_birthdate,
            user_profession=self.user_profession,
            plan_tier=self.plan_tier,
            notifications_enabled=self.notifications_enabled,
        )

    # =========================================================================
    # LOADING
    # =========================================================================

    async def hydrate(self, identity: Optional[str] = None) -> None:
        """
        Load the stored ledger of an identity into memory.

        Identity resolution order: the argument, the current profile email,
        the last identity used, and finally the anonymous ledger. A corrupt
        stored ledger is treated as absent. Loading a different identity that
        has nothing stored also resets the profile, so no field of the
        previous identity leaks into the new one.
        """
        self._generation += 1
        generation = self._generation
        self._pending_reload = None
        self._loading = True
        try:
            resolved = (identity or "").strip() or self.user_email.strip()
            if not resolved:
                resolved = (await self._persistence.load_last_identity() or "").strip()
            snapshot = await self._load_snapshot(resolved)
            if generation != self._generation:
                return

            previous, self._identity = self._identity, resolved
            if snapshot is not None:
                self._apply_snapshot(snapshot)
            else:
                self._clients = []
                self._expenses = []
                if resolved != previous:
                    self._reset_profile()
                self.user_email = resolved
            if resolved:
                await self._persistence.save_last_identity(resolved)
            self._audit.log(AuditEventBuilder.ledger_loaded(
                resolved, snapshot is not None, len(self._clients), len(self._expenses)
            ))
        finally:
            if generation == self._generation:
                self._finish_loading()

    async def _load_snapshot(self, identity: str) -> Optional[LedgerSnapshot]:
        """
        Stored ledger of an identity, or None.

        Whatever cannot be read back (the whole blob, or single clients and
        expenses) is copied to the backup slot before the next write can
        replace it.
        """
        payload = await self._persistence.load(identity)
        if payload is None:
            return None
        try:
            snapshot = snapshot_from_payload(payload)
        except DeserializationError as e:
            self._logger.warning("ledger_blob_invalid", identity=identity, error=str(e))
            await self._persistence.backup(payload, identity)
            return None

        dropped = dropped_entities(payload, snapshot)
        if dropped:
            self._logger.warning("ledger_entities_dropped", identity=identity, dropped=dropped)
            await self._persistence.backup(payload, identity)
        return snapshot

    def _reset_profile(self) -> None:
        self.client_term = self._default_client_term
        self.user_name = ""
        self.user_email = ""
        self.user_phone = ""
        self.user_age = None
        self.user_birthdate = ""
        self.user_profession = ""
        self.plan_tier = PlanTier.FREE
        self.notifications_enabled = False

    def _apply_snapshot(self, snapshot: LedgerSnapshot) -> None:
        self._clients = list(snapshot.clients)
        self._expenses = list(snapshot.expenses)
        self.client_term = snapshot.client_term or self._default_client_term
        self.user_name = snapshot.user_name
        self.user_email = self._identity or snapshot.user_email
        self.user_phone = snapshot.user_phone
        self.user_age = snapshot.user_age
        self.user_birthdate = snapshot.user_birthdate
        self.user_profession = snapshot.user_profession
        self.plan_tier = snapshot.plan_tier
        self.notifications_enabled = snapshot.notifications_enabled

    def _finish_loading(self) -> None:
        self._loading = False
        if self._persist_deferred:
            self._persist_deferred = False
            self._persist()

    # =========================================================================
    # PROFILE
    # =========================================================================

    def set_client_term(self, term: str) -> None:
        self.client_term = term
        self._profile_changed(["client_term"])

    def set_user_profession(self, profession: str) -> None:
        self.user_profession = profession
        self._profile_changed(["profession"])

    def set_plan_tier(self, tier: Union[PlanTier, str]) -> None:
        """Anything other than "pro" downgrades to free."""
        self.plan_tier = PlanTier.PRO if tier == PlanTier.PRO else PlanTier.FREE
        self._profile_changed(["plan_tier"])

    def set_notifications_enabled(self, enabled: bool) -> None:
        self.notifications_enabled = bool(enabled)
        self._profile_changed(["notifications_enabled"])

    def set_user_profile(self, update: Union[ProfileUpdate, dict[str, Any]]) -> None:
        """
        Merge the provided profile fields; omitted fields are left untouched.

        If `birthdate` is given without `age`, the age is derived from it.
        If `email` changes, the ledger switches identity: the in-memory ledger
        is discarded, the ledger stored for the new email is reloaded, the
        fields given here are applied on top, and the result is persisted
        under the new email. Writes already queued for the old email still
        land on the old key.
        """
        changes = self._validator.check_profile_update(update).changes()
        if "birthdate" in changes:
            changes["birthdate"] = normalize_birthdate(changes["birthdate"])
            if "age" not in changes:
                derived = age_from_birthdate(changes["birthdate"], today=self._clock().date())
                if derived is not None:
                    changes["age"] = derived

        if "email" in changes:
            changes["email"] = (changes["email"] or "").strip()
            if changes["email"] != self._identity:
                self._switch_identity(changes)
                return

        self._apply_profile(changes)
        self._profile_changed(list(changes))

    def _apply_profile(self, changes: dict[str, Any]) -> None:
        for field, value in changes.items():
            attribute = _PROFILE_ATTRIBUTES[field]
            if value is None and attribute != "user_age":
                value = ""
            setattr(self, attribute, value)

    def _profile_changed(self, fields: list[str]) -> None:
        self._audit.log(AuditEventBuilder.profile_updated(fields, self._identity))
        self._persist()

    def _switch_identity(self, changes: dict[str, Any]) -> None:
        previous = self._identity
        new_identity = changes["email"]
        # First sign-in keeps the anonymous ledger if the email has none stored
        carry = (self._clients, self._expenses) if not previous else None

        self._clients = []
        self._expenses = []
        self._identity = new_identity
        self._apply_profile(changes)
        self._generation += 1
        self._loading = True
        self._audit.log(AuditEventBuilder.identity_switched(previous, new_identity))
        self._logger.info("identity_switched", previous=previous, current=new_identity)

        reload = (new_identity, changes, self._generation, carry)
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self._pending_reload = reload
            return
        self._pending_reload = None
        self._reload_task = loop.create_task(self._reload(*reload))

    async def _reload(
        self,
        identity: str,
        overrides: dict[str, Any],
        generation: int,
        carry: Optional[tuple[list[Client], list[Expense]]],
    ) -> None:
        await self._persistence.save_last_identity(identity)
        snapshot = await self._load_snapshot(identity)
        if generation != self._generation:
            self._logger.debug("stale_reload_ignored", identity=identity)
            return

        if snapshot is not None:
            self._apply_snapshot(snapshot)
        elif carry is not None:
            self._clients, self._expenses = carry
        self._apply_profile(overrides)
        self.user_email = identity
        self._audit.log(AuditEventBuilder.ledger_loaded(
            identity, snapshot is not None, len(self._clients), len(self._expenses)
        ))
        self._persist_deferred = True
        self._finish_loading()

    # =========================================================================
    # CLIENTS
    # =========================================================================

    def add_client(self, data: Union[ClientCreate, dict[str, Any]]) -> Client:
        """Append a client with a fresh id and no payment history."""
        parsed = self._validator.check_client_create(data)
        taken = {client.id for client in self._clients}
        client_id = new_entity_id()
        while client_id in taken:
            client_id = new_entity_id()

        client = Client.model_validate({**parsed.model_dump(), "id": client_id, "payments": {}})
        self._clients.append(client)
        self._audit.log(AuditEventBuilder.client_added(client.id, client.name, self._identity))
        self._persist()
        return client.model_copy(deep=True)

    def update_client(
        self,
        client_id: str,
        update: Union[ClientUpdate, dict[str, Any]],
    ) -> Client:
        """
        Merge the provided fields into a client.

        `id` and `payments` are never touched; the merged client is
        revalidated as a whole before it replaces the old one.
        """
        index, current = self._find_client(client_id)
        changes = self._validator.check_client_update(update).changes()

        merged = current.model_dump(exclude={"value_formatted", "payments"})
        merged.update(changes)
        merged["id"] = current.id
        merged["payments"] = current.payments
        updated = self._validator.check_client_merge(merged)

        self._clients[index] = updated
        self._audit.log(AuditEventBuilder.client_updated(updated.id, list(changes), self._identity))
        self._persist()
        return updated.model_copy(deep=True)

    def delete_client(self, client_id: str) -> None:
        """Remove a client together with its whole payment history."""
        index, client = self._find_client(client_id)
        del self._clients[index]
        self._audit.log(AuditEventBuilder.client_deleted(
            client.id, len(client.payments), self._identity
        ))
        self._persist()

    def toggle_payment(self, client_id: str, month_key: str) -> PaymentMetadata:
        """
        Flip a client's payment for one month.

        Unrecorded or pending becomes paid, snapshotting the client's current
        value; paid becomes pending and clears date and value.
        """
        _, client = self._find_client(client_id)
        self._validator.check_month_key(month_key)

        now = self._clock()
        current = client.payments.get(month_key)
        if current is not None and current.is_paid:
            record = PaymentMetadata(
                status=PaymentStatus.PENDING, date=None, value=None, updated_at=now
            )
        else:
            record = PaymentMetadata(
                status=PaymentStatus.PAID, date=now, value=client.value, updated_at=now
            )
        client.payments[month_key] = record

        self._audit.log(AuditEventBuilder.payment_toggled(
            client.id, month_key, record.status.value, self._identity
        ))
        self._persist()
        return record.model_copy()

    def _find_client(self, client_id: str) -> tuple[int, Client]:
        for index, client in enumerate(self._clients):
            if client.id == client_id:
                return index, client
        raise NotFoundError("client", client_id)

    # =========================================================================
    # EXPENSES
    # =========================================================================

    def add_expense(self, data: Union[ExpenseCreate, dict[str, Any]]) -> Expense:
        parsed = self._validator.check_expense_create(data)
        taken = {expense.id for expense in self._expenses}
        expense_id = new_entity_id()
        while expense_id in taken:
            expense_id = new_entity_id()

        expense = Expense.model_validate({**parsed.model_dump(), "id": expense_id})
        self._expenses.append(expense)
        self._audit.log(AuditEventBuilder.expense_added(expense.id, expense.title, self._identity))
        self._persist()
        return expense.model_copy(deep=True)

    def delete_expense(self, expense_id: str) -> None:
        for index, expense in enumerate(self._expenses):
            if expense.id == expense_id:
                del self._expenses[index]
                break
        else:
            raise NotFoundError("expense", expense_id)
        self._audit.log(AuditEventBuilder.expense_deleted(expense_id, self._identity))
        self._persist()

    # =========================================================================
    # PERSISTENCE
    # =========================================================================

    def _persist(self) -> None:
        if self._loading:
            # Written once the load settles, so it cannot clobber stored data
            self._persist_deferred = True
            return
        self._scheduler.schedule(self._identity, self.snapshot().to_payload())

    def _on_persist_failed(self, identity: str) -> None:
        self._audit.log(AuditEventBuilder.persist_failed(identity))

    async def flush(self) -> None:
        """Wait for pending identity reloads and every queued write."""
        while True:
            if self._pending_reload is not None:
                reload, self._pending_reload = self._pending_reload, None
                await self._reload(*reload)
            elif self._reload_task is not None and not self._reload_task.done():
                await self._reload_task
            else:
                break
        await self._scheduler.flush()
