"""Admin dashboard statistics (read-only queries)."""

from datetime import date

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import StoreUnavailable
from app.core.permissions import ActorRole
from app.domain.booking_state import BookingStatus
from app.models.booking import Booking
from app.models.user import Profile, UserRoleAssignment
from app.schemas.admin import DashboardStats

PAYMENT_AWAITING_VALIDATION = "waiting_validation"


class DashboardService:
    """Read-only statistics for the admin back-office."""

    async def _count(self, db: AsyncSession, query) -> int:
        result = await db.execute(query)
        return result.scalar() or 0

    async def _count_role(self, db: AsyncSession, role: ActorRole) -> int:
        return await self._count(
            db,
            select(func.count(func.distinct(UserRoleAssignment.user_id))).where(
                UserRoleAssignment.role == role.value
            ),
        )

    async def _count_bookings(self, db: AsyncSession, *criteria) -> int:
        return await self._count(db, select(func.count(Booking.id)).where(*criteria))

    async def get_dashboard_stats(self, db: AsyncSession, today: date) -> DashboardStats:
        """Collect the dashboard numbers as of ``today``."""
        try:
            renters = await self._count_role(db, ActorRole.RENTER)
            companions = await self._count_role(db, ActorRole.COMPANION)

            verified_companions = await self._count(
                db,
                select(func.count(func.distinct(Profile.user_id)))
                .join(UserRoleAssignment, UserRoleAssignment.user_id == Profile.user_id)
                .where(
                    UserRoleAssignment.role == ActorRole.COMPANION.value,
                    Profile.is_verified.is_(True),
                ),
            )

            total_bookings = await self._count(db, select(func.count(Booking.id)))
            today_bookings = await self._count_bookings(db, Booking.booking_date == today)
            pending = await self._count_bookings(db, Booking.status == BookingStatus.PENDING.value)
            approved = await self._count_bookings(db, Booking.status == BookingStatus.APPROVED.value)
            pending_payments = await self._count_bookings(
                db, Booking.payment_status == PAYMENT_AWAITING_VALIDATION
            )
        except SQLAlchemyError as e:
            raise StoreUnavailable("dashboard") from e

        return DashboardStats(
            total_renters=renters,
            total_companions=companions,
            total_bookings=total_bookings,
            today_bookings=today_bookings,
            pending_bookings=pending,
            approved_bookings=approved,
            verified_companions=verified_companions,
            unverified_companions=companions - verified_companions,
            pending_payments=pending_payments,
        )


dashboard_service = DashboardService()
