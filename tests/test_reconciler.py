import datetime
import pytest
from store_ops.core.reconciler import (
    AvailabilityReconciler, RuleContext, auto_close_rule, auto_open_rule, override_expiry_rule, plan_transition,
)
from store_ops.core.state import AvailabilityOverride, LogAction, OperationalStatus, RestrictionType, ToggleOrigin
from helpers import FailingLogSink, FixedClock, daily_hours, ist, make_snapshot


def _reconciler(repo, sink, now):
    return AvailabilityReconciler(repo, sink, FixedClock(now))


def test_auto_open_within_hours(repo, sink):
    """Closed store, nothing suppressing it, inside hours -> opens"""
    repo.add(make_snapshot("CLOSED", hours=daily_hours()))

    view = _reconciler(repo, sink, ist(2025, 5, 6, 12, 0)).reconcile(1)

    assert view.operational_status == OperationalStatus.OPEN
    assert view.is_accepting_orders
    assert view.opens_at is None
    assert view.last_toggle_type == "AUTO_OPEN"
    assert [e.action for e in sink.entries] == [LogAction.OPEN]
    assert repo.snapshots[1].status == OperationalStatus.OPEN


def test_reconcile_is_idempotent(repo, sink):
    repo.add(make_snapshot("CLOSED", hours=daily_hours()))
    reconciler = _reconciler(repo, sink, ist(2025, 5, 6, 12, 0))

    first = reconciler.reconcile(1)
    second = reconciler.reconcile(1)

    assert first == second
    assert len(sink.entries) == 1
    assert repo.writes == 1


def test_no_transition_no_write(repo, sink):
    repo.add(make_snapshot("CLOSED", hours=daily_hours()))

    view = _reconciler(repo, sink, ist(2025, 5, 6, 20, 0)).reconcile(1)

    assert view.operational_status == OperationalStatus.CLOSED
    assert view.opens_at == ist(2025, 5, 7, 9, 0)
    assert repo.writes == 0
    assert sink.entries == []


def test_manual_hold_blocks_auto_open(repo, sink):
    override = AvailabilityOverride(block_auto_open=True, restriction_type=RestrictionType.MANUAL_HOLD)
    repo.add(make_snapshot("CLOSED", hours=daily_hours(), override=override))

    view = _reconciler(repo, sink, ist(2025, 5, 6, 12, 0)).reconcile(1)

    assert view.operational_status == OperationalStatus.CLOSED
    assert view.within_hours_but_restricted
    assert view.restriction_type == "MANUAL_HOLD"
    assert sink.entries == []


def test_scheduled_closed_day_has_no_countdown(repo, sink):
    # Tuesday blacked out
    repo.add(make_snapshot("CLOSED", hours=daily_hours(closed={2})))

    view = _reconciler(repo, sink, ist(2025, 5, 6, 12, 0)).reconcile(1)

    assert view.operational_status == OperationalStatus.CLOSED
    assert view.is_today_scheduled_closed
    assert view.opens_at is None
    assert view.today_slots == []


def test_schedule_disabled_never_auto_transitions(repo, sink):
    override = AvailabilityOverride(auto_open_from_schedule=False)
    repo.add(make_snapshot("CLOSED", hours=daily_hours(), override=override, store_pk=1))
    repo.add(make_snapshot("OPEN", hours=daily_hours(), override=override, store_pk=2))
    reconciler = _reconciler(repo, sink, ist(2025, 5, 6, 12, 0))

    assert reconciler.reconcile(1).operational_status == OperationalStatus.CLOSED

    reconciler.clock.advance(hours=9)  # 21:00, outside hours
    assert reconciler.reconcile(2).operational_status == OperationalStatus.OPEN
    assert sink.entries == []


def test_auto_close_outside_hours(repo, sink):
    repo.add(make_snapshot("OPEN", hours=daily_hours()))

    view = _reconciler(repo, sink, ist(2025, 5, 6, 20, 0)).reconcile(1)

    assert view.operational_status == OperationalStatus.CLOSED
    assert view.last_toggle_type == "AUTO_CLOSE"
    assert view.opens_at == ist(2025, 5, 7, 9, 0)
    [entry] = sink.entries
    assert entry.action == LogAction.CLOSED
    assert entry.close_reason == "Outside operating hours"


def test_no_auto_close_without_hours(repo, sink):
    """Hours missing or unreadable: nothing auto-opens or auto-closes"""
    repo.add(make_snapshot("OPEN", hours=None, store_pk=1))
    repo.add(make_snapshot("CLOSED", hours=None, store_pk=2))
    reconciler = _reconciler(repo, sink, ist(2025, 5, 6, 12, 0))

    assert reconciler.reconcile(1).operational_status == OperationalStatus.OPEN
    assert reconciler.reconcile(2).operational_status == OperationalStatus.CLOSED
    assert repo.writes == 0


def test_active_manual_close_keeps_store_closed(repo, sink):
    until = ist(2025, 5, 6, 12, 30)
    override = AvailabilityOverride(manual_close_until=until, restriction_type=RestrictionType.TEMPORARY)
    repo.add(make_snapshot("CLOSED", hours=daily_hours(), override=override))

    view = _reconciler(repo, sink, ist(2025, 5, 6, 12, 0)).reconcile(1)

    assert view.operational_status == OperationalStatus.CLOSED
    assert view.opens_at == until
    assert view.within_hours_but_restricted
    assert repo.writes == 0


def test_expired_close_reopens_within_hours(repo, sink):
    override = AvailabilityOverride(
        manual_close_until=ist(2025, 5, 6, 12, 30), restriction_type=RestrictionType.TEMPORARY
    )
    repo.add(make_snapshot("CLOSED", hours=daily_hours(), override=override))

    view = _reconciler(repo, sink, ist(2025, 5, 6, 12, 31)).reconcile(1)

    assert view.operational_status == OperationalStatus.OPEN
    assert view.manual_close_until is None
    assert view.restriction_type is None
    assert [e.action for e in sink.entries] == [LogAction.OPEN]


def test_expired_close_outside_hours_only_cleans_up(repo, sink):
    override = AvailabilityOverride(
        manual_close_until=ist(2025, 5, 6, 19, 0), restriction_type=RestrictionType.TEMPORARY
    )
    repo.add(make_snapshot("CLOSED", hours=daily_hours(), override=override))

    view = _reconciler(repo, sink, ist(2025, 5, 6, 19, 30)).reconcile(1)

    assert view.operational_status == OperationalStatus.CLOSED
    assert view.manual_close_until is None
    assert view.restriction_type is None
    assert view.opens_at == ist(2025, 5, 7, 9, 0)
    assert sink.entries == []
    stored = repo.snapshots[1].override
    assert stored.manual_close_until is None
    assert stored.last_toggle_type is None  # cleanup is not attributed


def test_expired_close_under_hold_keeps_hold(repo, sink):
    override = AvailabilityOverride(
        manual_close_until=ist(2025, 5, 6, 12, 30),
        block_auto_open=True,
        restriction_type=RestrictionType.MANUAL_HOLD,
    )
    repo.add(make_snapshot("CLOSED", hours=daily_hours(), override=override))

    view = _reconciler(repo, sink, ist(2025, 5, 6, 13, 0)).reconcile(1)

    assert view.operational_status == OperationalStatus.CLOSED
    assert view.manual_close_until is None
    assert view.block_auto_open
    assert view.restriction_type == "MANUAL_HOLD"
    assert sink.entries == []


def test_expired_temporary_close_with_schedule_disabled_stays_closed(repo, sink):
    override = AvailabilityOverride(
        manual_close_until=ist(2025, 5, 6, 12, 30),
        restriction_type=RestrictionType.TEMPORARY,
        auto_open_from_schedule=False,
    )
    repo.add(make_snapshot("CLOSED", hours=daily_hours(), override=override))

    view = _reconciler(repo, sink, ist(2025, 5, 6, 13, 0)).reconcile(1)

    assert view.operational_status == OperationalStatus.CLOSED
    assert view.manual_close_until is None
    assert view.restriction_type == "TEMPORARY"


def test_lapsed_close_on_open_store_cleans_up_then_auto_closes(repo, sink):
    override = AvailabilityOverride(
        manual_close_until=ist(2025, 5, 6, 19, 0), restriction_type=RestrictionType.TEMPORARY
    )
    repo.add(make_snapshot("OPEN", hours=daily_hours(), override=override))

    view = _reconciler(repo, sink, ist(2025, 5, 6, 20, 0)).reconcile(1)

    assert view.operational_status == OperationalStatus.CLOSED
    assert view.manual_close_until is None
    assert repo.writes == 1
    assert [e.action for e in sink.entries] == [LogAction.CLOSED]


def test_concurrent_auto_open_logs_once(repo, sink):
    """Two readers load the same closed snapshot before either writes"""
    repo.add(make_snapshot("CLOSED", hours=daily_hours()))
    reconciler = _reconciler(repo, sink, ist(2025, 5, 6, 12, 0))
    first_read = repo.load_snapshot(1)
    second_read = repo.load_snapshot(1)

    first = reconciler.reconcile_snapshot(first_read)
    second = reconciler.reconcile_snapshot(second_read)

    assert first.operational_status == OperationalStatus.OPEN
    assert second.operational_status == OperationalStatus.OPEN
    assert len([e for e in sink.entries if e.action == LogAction.OPEN]) == 1
    assert repo.writes == 1


def test_log_failure_does_not_undo_transition(repo):
    repo.add(make_snapshot("CLOSED", hours=daily_hours()))

    view = _reconciler(repo, FailingLogSink(), ist(2025, 5, 6, 12, 0)).reconcile(1)

    assert view.operational_status == OperationalStatus.OPEN
    assert repo.snapshots[1].status == OperationalStatus.OPEN


@pytest.mark.parametrize("override", [
    AvailabilityOverride(block_auto_open=True),
    AvailabilityOverride(auto_open_from_schedule=False),
    AvailabilityOverride(manual_close_until=datetime.datetime(2025, 5, 6, 0, 0, tzinfo=datetime.timezone.utc)),
])
def test_auto_open_rule_suppressed(override):
    ctx = RuleContext.build(make_snapshot("CLOSED", hours=daily_hours(), override=override), ist(2025, 5, 6, 12, 0))

    assert ctx.within_hours
    assert auto_open_rule(ctx) is None


def test_rules_are_independent():
    open_ctx = RuleContext.build(make_snapshot("OPEN", hours=daily_hours()), ist(2025, 5, 6, 12, 0))
    assert auto_open_rule(open_ctx) is None
    assert override_expiry_rule(open_ctx) is None
    assert auto_close_rule(open_ctx) is None
    assert plan_transition(open_ctx.snapshot, open_ctx.now) is None

    late_ctx = RuleContext.build(make_snapshot("OPEN", hours=daily_hours()), ist(2025, 5, 6, 22, 0))
    closing = auto_close_rule(late_ctx)
    assert closing.status == OperationalStatus.CLOSED
    assert closing.override.last_toggle_type == ToggleOrigin.AUTO_CLOSE
