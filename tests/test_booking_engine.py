from datetime import timedelta
from unittest.mock import AsyncMock, patch

from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from gymbook.crud.crud_membership import user_membership as crud_user_membership
from gymbook.crud.crud_registration import registration as crud_registration
from gymbook.schemas.enums import AppRole, BookingFailureReason, RegistrationStatus
from gymbook.services.credit_ledger import NotACreditsMembership
from gymbook.services.deadline import deadline

from conftest import (
    CREDITS_RULE,
    UNLIMITED_RULE,
    create_course,
    create_membership,
    create_plan,
    create_user,
    limited_rule,
)


async def _credits(db: AsyncSession, user_id) -> int:
    memberships = await crud_user_membership.get_active_for_user(db, user_id=user_id)
    return memberships[0].membership_data.get("remaining_credits")


async def _credits_member(db: AsyncSession, credits: int):
    user = await create_user(db)
    plan = await create_plan(db, booking_rules=CREDITS_RULE)
    await create_membership(db, user_id=user.id, plan=plan, membership_data={"remaining_credits": credits})
    return user


async def _unlimited_member(db: AsyncSession):
    user = await create_user(db)
    plan = await create_plan(db, booking_rules=UNLIMITED_RULE)
    await create_membership(db, user_id=user.id, plan=plan)
    return user


class TestRegister:
    async def test_register_unlimited(self, async_db_session: AsyncSession, engine, gateway):
        user = await _unlimited_member(async_db_session)
        course = await create_course(async_db_session)

        result = await engine.register(async_db_session, user_id=user.id, course_id=course.id)

        assert result.success
        assert result.status == RegistrationStatus.REGISTERED
        gateway.mark_user_as_active.assert_called_once_with(user.id)
        row = await crud_registration.get_for_user(async_db_session, course_id=course.id, user_id=user.id)
        assert row.status == RegistrationStatus.REGISTERED

    async def test_refused_without_membership(self, async_db_session: AsyncSession, engine):
        user = await create_user(async_db_session)
        course = await create_course(async_db_session)

        result = await engine.register(async_db_session, user_id=user.id, course_id=course.id)

        assert not result.success
        assert result.reason == BookingFailureReason.NO_MEMBERSHIP
        assert result.message == "You need an active membership to book courses."
        assert await crud_registration.get_for_user(async_db_session, course_id=course.id, user_id=user.id) is None

    async def test_elevated_role_without_membership(self, async_db_session: AsyncSession, engine):
        admin = await create_user(async_db_session, roles=(AppRole.ADMIN,))
        course = await create_course(async_db_session)

        result = await engine.register(async_db_session, user_id=admin.id, course_id=course.id)

        assert result.success
        assert result.status == RegistrationStatus.REGISTERED

    async def test_duplicate_registration_rejected(self, async_db_session: AsyncSession, engine):
        user = await _unlimited_member(async_db_session)
        course = await create_course(async_db_session)
        await engine.register(async_db_session, user_id=user.id, course_id=course.id)

        result = await engine.register(async_db_session, user_id=user.id, course_id=course.id)

        assert not result.success
        assert result.reason == BookingFailureReason.ALREADY_REGISTERED

    async def test_duplicate_does_not_charge_twice(self, async_db_session: AsyncSession, engine):
        user = await _credits_member(async_db_session, 3)
        course = await create_course(async_db_session)
        await engine.register(async_db_session, user_id=user.id, course_id=course.id)

        await engine.register(async_db_session, user_id=user.id, course_id=course.id)

        assert await _credits(async_db_session, user.id) == 2

    async def test_cancelled_course_rejected(self, async_db_session: AsyncSession, engine):
        user = await _unlimited_member(async_db_session)
        course = await create_course(async_db_session, is_cancelled=True)

        result = await engine.register(async_db_session, user_id=user.id, course_id=course.id)

        assert result.reason == BookingFailureReason.COURSE_CANCELLED

    async def test_registration_deadline(self, async_db_session: AsyncSession, engine):
        user = await _unlimited_member(async_db_session)
        course = await create_course(async_db_session, registration_deadline_minutes=60)
        cutoff = deadline(course.course_date, course.start_time, 60)

        engine.clock = lambda: cutoff + timedelta(seconds=1)
        late = await engine.register(async_db_session, user_id=user.id, course_id=course.id)
        engine.clock = lambda: cutoff - timedelta(seconds=1)
        in_time = await engine.register(async_db_session, user_id=user.id, course_id=course.id)

        assert late.reason == BookingFailureReason.DEADLINE_PASSED
        assert in_time.success

    async def test_waitlist_overflow(self, async_db_session: AsyncSession, engine, gateway):
        course = await create_course(async_db_session, max_participants=1)
        first = await _credits_member(async_db_session, 5)
        second = await _credits_member(async_db_session, 5)

        a = await engine.register(async_db_session, user_id=first.id, course_id=course.id)
        b = await engine.register(async_db_session, user_id=second.id, course_id=course.id)

        assert a.status == RegistrationStatus.REGISTERED
        assert b.success
        assert b.status == RegistrationStatus.WAITLIST
        assert await crud_registration.count_registered(async_db_session, course_id=course.id) == 1
        # waitlisting is free
        assert await _credits(async_db_session, second.id) == 5
        gateway.mark_user_as_active.assert_called_once_with(first.id)

    async def test_limit_reached(self, async_db_session: AsyncSession, engine):
        user = await create_user(async_db_session)
        plan = await create_plan(async_db_session, booking_rules=limited_rule(1, "week"))
        await create_membership(async_db_session, user_id=user.id, plan=plan)
        first = await create_course(async_db_session)
        second = await create_course(async_db_session, title="Yoga")

        assert (await engine.register(async_db_session, user_id=user.id, course_id=first.id)).success
        result = await engine.register(async_db_session, user_id=user.id, course_id=second.id)

        assert result.reason == BookingFailureReason.LIMIT_REACHED

    async def test_compensating_refund_when_insert_fails(self, async_db_session: AsyncSession, engine, event_bus):
        user = await _credits_member(async_db_session, 2)
        course = await create_course(async_db_session)
        events = []
        event_bus.subscribe(events.append)

        # the rollback expires loaded instances, keep plain ids
        user_id, course_id = user.id, course.id

        failing_upsert = AsyncMock(side_effect=OperationalError("INSERT", {}, Exception("connection lost")))
        with patch.object(crud_registration, "upsert", failing_upsert):
            result = await engine.register(async_db_session, user_id=user_id, course_id=course_id)

        assert not result.success
        assert result.reason == BookingFailureReason.TRANSIENT_FAILURE
        assert await _credits(async_db_session, user_id) == 2
        assert await crud_registration.get_for_user(async_db_session, course_id=course_id, user_id=user_id) is None
        assert events == []

    async def test_failed_compensating_refund_still_reports_failure(self, async_db_session: AsyncSession, engine):
        user = await _credits_member(async_db_session, 2)
        course = await create_course(async_db_session)
        user_id, course_id = user.id, course.id

        failing_upsert = AsyncMock(side_effect=OperationalError("INSERT", {}, Exception("connection lost")))
        failing_refund = AsyncMock(side_effect=OperationalError("UPDATE", {}, Exception("connection lost")))
        with patch.object(crud_registration, "upsert", failing_upsert), \
                patch.object(engine.ledger, "refund", failing_refund):
            result = await engine.register(async_db_session, user_id=user_id, course_id=course_id)

        assert not result.success
        assert result.reason == BookingFailureReason.TRANSIENT_FAILURE
        failing_refund.assert_awaited_once()
        assert await crud_registration.get_for_user(async_db_session, course_id=course_id, user_id=user_id) is None
        # the deduction was committed and could not be undone
        assert await _credits(async_db_session, user_id) == 1

    async def test_rpc_failure_does_not_fail_registration(self, async_db_session: AsyncSession, engine, gateway):
        gateway.mark_user_as_active.side_effect = RuntimeError("rpc down")
        user = await _unlimited_member(async_db_session)
        course = await create_course(async_db_session)

        result = await engine.register(async_db_session, user_id=user.id, course_id=course.id)

        assert result.success

    async def test_publishes_event(self, async_db_session: AsyncSession, engine, event_bus):
        user = await _unlimited_member(async_db_session)
        course = await create_course(async_db_session)
        events = []
        event_bus.subscribe(events.append, course_id=course.id)

        await engine.register(async_db_session, user_id=user.id, course_id=course.id)

        assert len(events) == 1
        assert events[0].status == RegistrationStatus.REGISTERED
        assert events[0].previous_status is None


class TestCancel:
    async def test_cancel_unknown_registration(self, async_db_session: AsyncSession, engine):
        user = await _unlimited_member(async_db_session)
        course = await create_course(async_db_session)

        result = await engine.cancel(async_db_session, user_id=user.id, course_id=course.id)

        assert result.reason == BookingFailureReason.NOT_FOUND

    async def test_cancel_is_idempotent(self, async_db_session: AsyncSession, engine, gateway):
        user = await _credits_member(async_db_session, 1)
        course = await create_course(async_db_session)
        await engine.register(async_db_session, user_id=user.id, course_id=course.id)

        first = await engine.cancel(async_db_session, user_id=user.id, course_id=course.id)
        second = await engine.cancel(async_db_session, user_id=user.id, course_id=course.id)

        assert first.success
        assert first.status == RegistrationStatus.CANCELLED
        assert second.reason == BookingFailureReason.NOT_FOUND
        assert await _credits(async_db_session, user.id) == 1
        gateway.promote_from_waitlist.assert_called_once_with(course.id)

    async def test_cancellation_deadline(self, async_db_session: AsyncSession, engine):
        user = await _unlimited_member(async_db_session)
        course = await create_course(async_db_session, cancellation_deadline_minutes=120)
        await engine.register(async_db_session, user_id=user.id, course_id=course.id)

        engine.clock = lambda: deadline(course.course_date, course.start_time, 120) + timedelta(seconds=1)
        result = await engine.cancel(async_db_session, user_id=user.id, course_id=course.id)

        assert result.reason == BookingFailureReason.DEADLINE_PASSED
        row = await crud_registration.get_for_user(async_db_session, course_id=course.id, user_id=user.id)
        assert row.status == RegistrationStatus.REGISTERED

    async def test_cancel_waitlist_entry_no_refund_no_promotion(self, async_db_session: AsyncSession, engine, gateway):
        course = await create_course(async_db_session, max_participants=1)
        first = await _credits_member(async_db_session, 5)
        second = await _credits_member(async_db_session, 5)
        await engine.register(async_db_session, user_id=first.id, course_id=course.id)
        await engine.register(async_db_session, user_id=second.id, course_id=course.id)

        result = await engine.cancel(async_db_session, user_id=second.id, course_id=course.id)

        assert result.success
        assert await _credits(async_db_session, second.id) == 5
        gateway.promote_from_waitlist.assert_not_called()

    async def test_promotion_failure_is_logged_only(self, async_db_session: AsyncSession, engine, gateway):
        gateway.promote_from_waitlist.side_effect = RuntimeError("rpc down")
        user = await _unlimited_member(async_db_session)
        course = await create_course(async_db_session)
        await engine.register(async_db_session, user_id=user.id, course_id=course.id)

        result = await engine.cancel(async_db_session, user_id=user.id, course_id=course.id)

        assert result.success

    async def test_refund_failure_keeps_cancellation(self, async_db_session: AsyncSession, engine, gateway):
        user = await _credits_member(async_db_session, 1)
        course = await create_course(async_db_session)
        await engine.register(async_db_session, user_id=user.id, course_id=course.id)
        user_id, course_id = user.id, course.id

        failing_refund = AsyncMock(side_effect=OperationalError("UPDATE", {}, Exception("connection lost")))
        with patch.object(engine.ledger, "refund", failing_refund):
            result = await engine.cancel(async_db_session, user_id=user_id, course_id=course_id)

        assert result.success
        assert result.status == RegistrationStatus.CANCELLED
        assert result.remaining_credits is None
        row = await crud_registration.get_for_user(async_db_session, course_id=course_id, user_id=user_id)
        assert row.status == RegistrationStatus.CANCELLED
        gateway.promote_from_waitlist.assert_called_once_with(course_id)
        assert await _credits(async_db_session, user_id) == 0

    async def test_plan_change_before_refund_keeps_cancellation(self, async_db_session: AsyncSession, engine, gateway):
        user = await _credits_member(async_db_session, 1)
        course = await create_course(async_db_session)
        await engine.register(async_db_session, user_id=user.id, course_id=course.id)
        user_id, course_id = user.id, course.id

        with patch.object(engine.ledger, "refund", AsyncMock(side_effect=NotACreditsMembership("plan changed"))):
            result = await engine.cancel(async_db_session, user_id=user_id, course_id=course_id)

        assert result.success
        row = await crud_registration.get_for_user(async_db_session, course_id=course_id, user_id=user_id)
        assert row.status == RegistrationStatus.CANCELLED
        gateway.promote_from_waitlist.assert_called_once_with(course_id)

    async def test_register_again_after_cancel(self, async_db_session: AsyncSession, engine):
        user = await _unlimited_member(async_db_session)
        course = await create_course(async_db_session)
        await engine.register(async_db_session, user_id=user.id, course_id=course.id)
        await engine.cancel(async_db_session, user_id=user.id, course_id=course.id)

        result = await engine.register(async_db_session, user_id=user.id, course_id=course.id)

        assert result.success
        assert result.status == RegistrationStatus.REGISTERED


class TestCreditConservation:
    async def test_end_to_end_credits_scenario(self, async_db_session: AsyncSession, engine):
        """Two credits: book, book, refused, cancel one, book again."""
        user = await _credits_member(async_db_session, 2)
        c1 = await create_course(async_db_session, title="C1")
        c2 = await create_course(async_db_session, title="C2")
        c3 = await create_course(async_db_session, title="C3")

        r1 = await engine.register(async_db_session, user_id=user.id, course_id=c1.id)
        r2 = await engine.register(async_db_session, user_id=user.id, course_id=c2.id)
        r3 = await engine.register(async_db_session, user_id=user.id, course_id=c3.id)

        assert (r1.remaining_credits, r2.remaining_credits) == (1, 0)
        assert r3.reason == BookingFailureReason.NO_CREDITS
        assert r3.message == "You have no credits left. Please top up your credits at the reception."

        cancelled = await engine.cancel(async_db_session, user_id=user.id, course_id=c1.id)
        assert cancelled.remaining_credits == 1

        r4 = await engine.register(async_db_session, user_id=user.id, course_id=c3.id)
        assert r4.success
        assert r4.remaining_credits == 0

    async def test_balance_plus_registrations_is_constant(self, async_db_session: AsyncSession, engine):
        user = await _credits_member(async_db_session, 3)
        courses = [await create_course(async_db_session, title=f"C{i}") for i in range(4)]

        for course in courses:
            await engine.register(async_db_session, user_id=user.id, course_id=course.id)
        await engine.cancel(async_db_session, user_id=user.id, course_id=courses[0].id)
        await engine.register(async_db_session, user_id=user.id, course_id=courses[3].id)

        registered = 0
        for course in courses:
            row = await crud_registration.get_for_user(async_db_session, course_id=course.id, user_id=user.id)
            if row is not None and row.status == RegistrationStatus.REGISTERED:
                registered += 1
        assert registered + await _credits(async_db_session, user.id) == 3
