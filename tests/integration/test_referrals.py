"""Referral registration and bonus tests."""

import asyncio
from datetime import date

import pytest
from sqlalchemy import select

from nexus.db.models import Profile
from nexus.ledger import store
from nexus.ledger.exceptions import ReferralError
from nexus.rewards import referrals
from nexus.rewards.daily_login import handle_daily_login
from nexus.rewards.referrals import ReferralOutcome
from nexus.tasks import metering


def _fixed(code):
    def generate():
        return code

    return generate


async def _referred(db, referrer="alice", referred="bob", code="ALICE234"):
    await referrals.ensure_referral_code(db, referrer, generate=_fixed(code))
    return await referrals.register_referral(db, referred, code)


class TestReferralCode:
    @pytest.mark.asyncio
    async def test_code_assigned_once(self, db_session):
        first = await referrals.ensure_referral_code(db_session, "alice")
        second = await referrals.ensure_referral_code(db_session, "alice", generate=_fixed("OTHER234"))
        assert first == second
        assert len(first) == 8

    @pytest.mark.asyncio
    async def test_generator_is_injectable(self, db_session):
        assert await referrals.ensure_referral_code(db_session, "alice", generate=_fixed("alice234")) == "ALICE234"

    @pytest.mark.asyncio
    async def test_collision_retries_with_new_code(self, db_session):
        await referrals.ensure_referral_code(db_session, "alice", generate=_fixed("SAMECODE"))
        codes = iter(["SAMECODE", "FRESH234"])

        code = await referrals.ensure_referral_code(db_session, "bob", generate=lambda: next(codes))

        assert code == "FRESH234"

    @pytest.mark.asyncio
    async def test_gives_up_after_repeated_collisions(self, db_session):
        await referrals.ensure_referral_code(db_session, "alice", generate=_fixed("SAMECODE"))
        with pytest.raises(RuntimeError):
            await referrals.ensure_referral_code(db_session, "bob", generate=_fixed("SAMECODE"))


class TestRegisterReferral:
    @pytest.mark.asyncio
    async def test_register_creates_row_and_links_profile(self, db_session):
        result = await _referred(db_session)

        assert result.created is True
        assert result.referral.referrer_id == "alice"
        assert result.referral.referred_id == "bob"
        assert result.referral.signup_bonus_awarded is False
        profile = await db_session.scalar(
            select(Profile).where(Profile.id == "bob").execution_options(populate_existing=True)
        )
        assert profile.referred_by == "alice"

    @pytest.mark.asyncio
    async def test_code_lookup_is_case_insensitive(self, db_session):
        await referrals.ensure_referral_code(db_session, "alice", generate=_fixed("ALICE234"))
        result = await referrals.register_referral(db_session, "bob", " alice234 ")
        assert result.created is True

    @pytest.mark.asyncio
    async def test_second_registration_is_noop(self, db_session):
        await _referred(db_session)
        await referrals.ensure_referral_code(db_session, "carol", generate=_fixed("CAROL234"))

        again = await referrals.register_referral(db_session, "bob", "CAROL234")

        assert again.created is False
        assert again.referral.referrer_id == "alice"

    @pytest.mark.asyncio
    async def test_unknown_code_rejected(self, db_session):
        with pytest.raises(ReferralError, match="Unknown"):
            await referrals.register_referral(db_session, "bob", "NOPE2345")

    @pytest.mark.asyncio
    async def test_self_referral_rejected(self, db_session):
        await referrals.ensure_referral_code(db_session, "alice", generate=_fixed("ALICE234"))
        with pytest.raises(ReferralError, match="own"):
            await referrals.register_referral(db_session, "alice", "ALICE234")

    @pytest.mark.asyncio
    async def test_mutual_referral_rejected(self, db_session):
        await _referred(db_session)
        await referrals.ensure_referral_code(db_session, "bob", generate=_fixed("BOBB2345"))
        await referrals.award_signup_bonus(db_session, "bob")

        with pytest.raises(ReferralError, match="you referred"):
            await referrals.register_referral(db_session, "alice", "BOBB2345")

        assert (await referrals.award_signup_bonus(db_session, "alice")).outcome is ReferralOutcome.NO_REFERRAL
        assert await store.get_balance(db_session, "bob") == 0
        assert await store.get_balance(db_session, "alice") == 50

    @pytest.mark.asyncio
    async def test_user_with_own_code_rejected(self, db_session):
        await referrals.ensure_referral_code(db_session, "alice", generate=_fixed("ALICE234"))
        await referrals.ensure_referral_code(db_session, "bob", generate=_fixed("BOBB2345"))
        with pytest.raises(ReferralError, match="new accounts"):
            await referrals.register_referral(db_session, "bob", "ALICE234")

    @pytest.mark.asyncio
    async def test_user_who_logged_in_rejected(self, db_session):
        await referrals.ensure_referral_code(db_session, "alice", generate=_fixed("ALICE234"))
        await handle_daily_login(db_session, "bob", today=date(2026, 3, 10))
        with pytest.raises(ReferralError, match="new accounts"):
            await referrals.register_referral(db_session, "bob", "ALICE234")

    @pytest.mark.asyncio
    async def test_user_with_tasks_rejected(self, db_session):
        await referrals.ensure_referral_code(db_session, "alice", generate=_fixed("ALICE234"))
        await metering.start_task(db_session, "bob", "chat_message", 1)
        with pytest.raises(ReferralError, match="new accounts"):
            await referrals.register_referral(db_session, "bob", "ALICE234")
        assert (await referrals.award_signup_bonus(db_session, "bob")).outcome is ReferralOutcome.NO_REFERRAL


class TestBonuses:
    @pytest.mark.asyncio
    async def test_signup_bonus_paid_once(self, db_session):
        await _referred(db_session)

        first = await referrals.award_signup_bonus(db_session, "bob")
        second = await referrals.award_signup_bonus(db_session, "bob")

        assert first.outcome is ReferralOutcome.AWARDED
        assert first.referrer_id == "alice"
        assert first.credits_awarded == 50
        assert second.outcome is ReferralOutcome.ALREADY_AWARDED
        assert await store.get_balance(db_session, "alice") == 50
        assert await store.get_balance(db_session, "bob") == 0
        entries = await store.list_entries(db_session, "alice")
        assert [(e.amount, e.reason) for e in entries] == [(50, "referral:signup")]

    @pytest.mark.asyncio
    async def test_first_task_bonus_paid_once(self, db_session):
        await _referred(db_session)

        results = [await referrals.award_first_task_bonus(db_session, "bob") for _ in range(3)]

        assert [r.outcome for r in results] == [
            ReferralOutcome.AWARDED,
            ReferralOutcome.ALREADY_AWARDED,
            ReferralOutcome.ALREADY_AWARDED,
        ]
        assert await store.get_balance(db_session, "alice") == 25

    @pytest.mark.asyncio
    async def test_bonuses_are_independent(self, db_session):
        await _referred(db_session)
        await referrals.award_first_task_bonus(db_session, "bob")
        signup = await referrals.award_signup_bonus(db_session, "bob")
        assert signup.outcome is ReferralOutcome.AWARDED
        assert await store.get_balance(db_session, "alice") == 75

    @pytest.mark.asyncio
    async def test_no_referral(self, db_session):
        result = await referrals.award_signup_bonus(db_session, "stranger")
        assert result.outcome is ReferralOutcome.NO_REFERRAL
        assert result.referrer_id is None

    @pytest.mark.asyncio
    async def test_amount_override(self, db_session):
        await _referred(db_session)
        result = await referrals.award_signup_bonus(db_session, "bob", amount=10)
        assert result.credits_awarded == 10
        assert await store.get_balance(db_session, "alice") == 10

    @pytest.mark.asyncio
    async def test_concurrent_signup_triggers_pay_once(self, db_session, session_factory):
        """Two racing signup completions: one 50-credit grant, one flag flip."""
        await _referred(db_session)

        async def trigger():
            async with session_factory() as db:
                return (await referrals.award_signup_bonus(db, "bob")).outcome

        outcomes = await asyncio.gather(trigger(), trigger())

        assert sorted(o.value for o in outcomes) == ["already_awarded", "awarded"]
        assert await store.get_balance(db_session, "alice") == 50
        assert (await store.reconcile(db_session, "alice")).balanced


class TestOverview:
    @pytest.mark.asyncio
    async def test_overview_totals(self, db_session):
        await _referred(db_session, referred="bob")
        await referrals.register_referral(db_session, "carol", "ALICE234")
        await referrals.award_signup_bonus(db_session, "bob")
        await referrals.award_signup_bonus(db_session, "carol")
        await referrals.award_first_task_bonus(db_session, "bob")
        await store.grant_credits(db_session, None, "alice", 5, "daily_login")

        overview = await referrals.get_referral_overview(db_session, "alice")

        assert overview.referral_code == "ALICE234"
        assert {r.referred_id for r in overview.referrals} == {"bob", "carol"}
        assert overview.total_earned == 125
        bob = next(r for r in overview.referrals if r.referred_id == "bob")
        assert bob.signup_bonus_awarded is True
        assert bob.task_bonus_awarded is True

    @pytest.mark.asyncio
    async def test_overview_without_referrals(self, db_session):
        overview = await referrals.get_referral_overview(db_session, "loner")
        assert overview.referral_code is None
        assert overview.referrals == []
        assert overview.total_earned == 0
