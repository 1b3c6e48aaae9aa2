"""
Commission rule lifecycle: create, update, delete.

A scope never has two active rules: creating (or moving a rule) into an
occupied scope deactivates the previous holder in the same transaction.
Sales already settled keep their own copy of the rate and are never touched.
"""

import asyncio
import logging
import weakref
from contextlib import asynccontextmanager
from datetime import date
from decimal import Decimal
from typing import Iterable, List, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from src.models import AuditAction, CommissionRule, ScopeTier
from src.models.base import utcnow
from src.schemas.auth import TokenPayload
from src.schemas.commission import CommissionRuleInput
from src.services import rule_store
from src.services.errors import ScopeConflictError
from src.services.validator import ValidatedRule, validate_rule
from src.utils.audit import log_action

logger = logging.getLogger(__name__)

# One attempt plus one retry of the deactivate/activate swap
MAX_SWAP_ATTEMPTS = 2

ACTIVE_SCOPE_INDEX = "uq_commission_rules_active_scope"


def _is_scope_conflict(exc: IntegrityError) -> bool:
    """True when the error is the single-active-rule index, not another constraint."""
    message = str(exc.orig)
    # PostgreSQL names the index; SQLite only names the indexed column
    return ACTIVE_SCOPE_INDEX in message or "commission_rules.scope_key" in message


class ScopeLocks:
    """
    In-process write locks keyed by scope key.

    Row locks (SELECT ... FOR UPDATE) cover other processes; these keep
    concurrent requests in one worker from racing on the same scope. Locks
    disappear once nobody holds or waits for them.
    """

    def __init__(self):
        self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()

    def _get(self, key: str) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    @asynccontextmanager
    async def hold(self, keys: Iterable[str]):
        # Sorted acquisition so two moves between the same scopes cannot deadlock
        locks = [self._get(k) for k in sorted(set(keys))]
        acquired = []
        try:
            for lock in locks:
                await lock.acquire()
                acquired.append(lock)
            yield
        finally:
            for lock in reversed(acquired):
                lock.release()


scope_locks = ScopeLocks()


def _snapshot(rule: CommissionRule) -> dict:
    return {
        "scope_key": rule.scope_key,
        "rate": str(rule.rate),
        "active": rule.active,
        "valid_until": rule.valid_until.isoformat() if rule.valid_until else None,
    }


async def _apply_rule(
    db: AsyncSession,
    data: ValidatedRule,
    rule_id: Optional[int],
    actor: Optional[TokenPayload],
    ip_address: Optional[str],
) -> CommissionRule:
    """Write one create/update, superseding the scope's current holder."""
    holders: List[CommissionRule] = []
    if data.active:
        holders = await rule_store.get_active_rules_for_scope(db, data.scope_key, for_update=True)

    previous = None
    if rule_id is None:
        rule = CommissionRule(created_by=actor.user_id if actor else None)
    else:
        rule = await rule_store.get_rule(db, rule_id, for_update=True)
        previous = _snapshot(rule)

    now = utcnow()
    superseded = [h for h in holders if h.id != rule.id]
    for holder in superseded:
        holder.active = False
        holder.deactivated_at = now
    if superseded:
        # Deactivation must reach the database before the new active row
        await db.flush()

    if rule.active and not data.active and rule.id is not None:
        rule.deactivated_at = now
    elif data.active:
        rule.deactivated_at = None

    rule.scope = data.scope
    rule.scope_key = data.scope_key
    rule.category_id = data.category_id
    rule.supplier_id = data.supplier_id
    rule.product_id = data.product_id
    rule.rate = data.rate
    rule.active = data.active
    rule.remarks = data.remarks
    rule.valid_until = data.valid_until

    db.add(rule)
    await db.flush()

    for holder in superseded:
        await log_action(
            db=db,
            action=AuditAction.SUPERSEDE_RULE,
            actor=actor,
            target_type="rule",
            target_id=holder.id,
            action_metadata={"scope_key": holder.scope_key, "replaced_by": rule.id},
            ip_address=ip_address,
        )

    await log_action(
        db=db,
        action=AuditAction.CREATE_RULE if previous is None else AuditAction.UPDATE_RULE,
        actor=actor,
        target_type="rule",
        target_id=rule.id,
        action_metadata={"before": previous, "after": _snapshot(rule)},
        ip_address=ip_address,
    )

    if superseded:
        logger.info(
            f"Rule {rule.id} superseded rule(s) {[h.id for h in superseded]} "
            f"for scope '{data.scope_key}'"
        )
    return rule


async def upsert_rule(
    db: AsyncSession,
    data: CommissionRuleInput,
    rule_id: Optional[int] = None,
    actor: Optional[TokenPayload] = None,
    ip_address: Optional[str] = None,
    today: Optional[date] = None,
) -> CommissionRule:
    """
    Create a rule, or update rule_id in place.

    The write is one transaction: any previous active rule for the target
    scope is deactivated together with the new rule becoming active. If the
    database still reports a second active rule (a concurrent writer from
    another process), the swap is rolled back and retried once.

    Raises:
        ValidationError: Input rejected, nothing written
        NotFoundError: rule_id does not exist or was deleted
        ScopeConflictError: The swap failed twice on the uniqueness constraint
    """
    existing = None
    if rule_id is not None:
        existing = await rule_store.get_rule(db, rule_id)

    # An update may keep an expiry date that has passed in the meantime
    keeps_expiry = (
        existing is not None
        and existing.valid_until is not None
        and data.valid_until == existing.valid_until.isoformat()
    )
    validated = validate_rule(data, today=today, check_valid_until=not keeps_expiry).raise_for_errors()

    lock_keys = {validated.scope_key}
    if existing is not None:
        lock_keys.add(existing.scope_key)

    async with scope_locks.hold(lock_keys):
        for attempt in range(1, MAX_SWAP_ATTEMPTS + 1):
            try:
                rule = await _apply_rule(db, validated, rule_id, actor, ip_address)
                await db.commit()
                return rule
            except IntegrityError as e:
                await db.rollback()
                if not _is_scope_conflict(e):
                    logger.error(f"Rule write on '{validated.scope_key}' violated a constraint: {e.orig}")
                    raise
                if attempt == MAX_SWAP_ATTEMPTS:
                    logger.error(f"Scope conflict on '{validated.scope_key}' persisted after retry")
                    raise ScopeConflictError(validated.scope_key)
                logger.warning(f"Scope conflict on '{validated.scope_key}', retrying swap")
            except SQLAlchemyError:
                await db.rollback()
                raise


async def delete_rule(
    db: AsyncSession,
    rule_id: int,
    actor: Optional[TokenPayload] = None,
    ip_address: Optional[str] = None,
) -> None:
    """
    Delete a rule.

    The row is kept (soft delete) for audit; the rule stops being eligible
    and disappears from listings. Settled sales are not modified.

    Raises:
        NotFoundError: Rule does not exist or was already deleted
    """
    rule = await rule_store.get_rule(db, rule_id)

    async with scope_locks.hold([rule.scope_key]):
        rule = await rule_store.get_rule(db, rule_id, for_update=True)
        now = utcnow()
        if rule.active:
            rule.deactivated_at = now
        rule.active = False
        rule.deleted_at = now

        await log_action(
            db=db,
            action=AuditAction.DELETE_RULE,
            actor=actor,
            target_type="rule",
            target_id=rule.id,
            action_metadata=_snapshot(rule),
            ip_address=ip_address,
        )
        try:
            await db.commit()
        except SQLAlchemyError:
            await db.rollback()
            raise

    logger.info(f"Commission rule {rule_id} deleted (scope '{rule.scope_key}')")


async def seed_global_rule(db: AsyncSession, rate: Decimal) -> Optional[CommissionRule]:
    """Create a global rule at startup when none is active."""
    if await rule_store.get_active_rules_for_scope(db, "global"):
        return None

    rule = await upsert_rule(
        db,
        CommissionRuleInput(scope=ScopeTier.GLOBAL.value, rate=str(rate), remarks="Platform default"),
    )
    logger.info(f"Created default global commission rule at {rule.rate}%")
    return rule
