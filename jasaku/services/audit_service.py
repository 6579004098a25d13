"""Audit trail for booking/payment state changes."""

from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from jasaku.domain.actors import Actor
from jasaku.models.admin import AuditLog


class AuditService:
    """Writes audit rows inside the caller's transaction."""

    async def log_action(
        self,
        db: AsyncSession,
        actor: Actor,
        action: str,
        resource_type: str,
        resource_id: str,
        old_values: dict[str, Any] | None = None,
        new_values: dict[str, Any] | None = None,
    ) -> AuditLog:
        """Log an action.

        Args:
            db: Database session
            actor: Actor performing the action
            action: Action name (e.g., "booking_transition")
            resource_type: Resource type (e.g., "booking", "payment")
            resource_id: Resource ID
            old_values: Previous state
            new_values: New state

        Returns:
            Created audit log entry (not yet committed)
        """
        audit = AuditLog(
            actor_id=actor.id,
            actor_role=actor.role.value,
            action=action,
            resource_type=resource_type,
            resource_id=resource_id,
            old_values=old_values,
            new_values=new_values,
        )
        db.add(audit)
        return audit

    async def log_transition(
        self,
        db: AsyncSession,
        actor: Actor,
        booking_id: str,
        cause: str,
        old_status: str,
        new_status: str,
        payment_id: str | None = None,
        old_payment_status: str | None = None,
        new_payment_status: str | None = None,
    ) -> AuditLog:
        """Log a joint booking/payment status change."""
        old_values: dict[str, Any] = {"status": old_status}
        new_values: dict[str, Any] = {"status": new_status, "cause": cause}
        if payment_id:
            old_values["payment_status"] = old_payment_status
            new_values["payment_status"] = new_payment_status
            new_values["payment_id"] = payment_id

        return await self.log_action(
            db=db,
            actor=actor,
            action="booking_transition",
            resource_type="booking",
            resource_id=booking_id,
            old_values=old_values,
            new_values=new_values,
        )

    async def log_refund_action(
        self,
        db: AsyncSession,
        actor: Actor,
        refund_id: str,
        payment_id: str,
        amount: int,
        reason: str,
    ) -> AuditLog:
        """Log refund creation."""
        return await self.log_action(
            db=db,
            actor=actor,
            action="refund_create",
            resource_type="refund",
            resource_id=refund_id,
            new_values={
                "payment_id": payment_id,
                "amount": amount,
                "reason": reason,
            },
        )


audit_service = AuditService()
