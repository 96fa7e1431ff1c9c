# pylint: disable=missing-module-docstring,missing-function-docstring

from orchestrator.pacing import PacingAnchor, plan_delivery


def test_first_sample_anchors_and_is_due_now():
    decision = plan_delivery(PacingAnchor(), media_time_us=5_000, now_us=1_000_000)

    assert decision.anchor == PacingAnchor(first_wall_clock_us=1_000_000, first_media_time_us=5_000)
    assert decision.when_us == 1_000_000
    assert decision.delay_us == 0


def test_later_samples_follow_media_timeline():
    anchor = PacingAnchor(first_wall_clock_us=1_000_000, first_media_time_us=0)

    d1 = plan_delivery(anchor, media_time_us=33_000, now_us=1_000_100)
    d2 = plan_delivery(anchor, media_time_us=66_000, now_us=1_033_050)

    assert d1.when_us == 1_033_000
    assert d1.delay_us == 32_900
    assert d2.when_us == 1_066_000
    assert d2.delay_us == 32_950
    assert d1.anchor == anchor


def test_late_sample_has_negative_delay():
    anchor = PacingAnchor(first_wall_clock_us=0, first_media_time_us=0)

    decision = plan_delivery(anchor, media_time_us=33_000, now_us=50_000)

    assert decision.delay_us == -17_000
    assert decision.lateness_us == 17_000


def test_deadlines_do_not_accumulate_jitter():
    anchor = PacingAnchor()
    now = 0
    deadlines = []
    for i in range(10):
        decision = plan_delivery(anchor, media_time_us=i * 33_000, now_us=now)
        anchor = decision.anchor
        deadlines.append(decision.when_us)
        # Every delivery runs 700us late.
        now = decision.when_us + 700

    assert deadlines == [i * 33_000 for i in range(10)]


def test_nonzero_first_media_time_is_relative():
    anchor = PacingAnchor()
    first = plan_delivery(anchor, media_time_us=2_000_000, now_us=10)
    second = plan_delivery(first.anchor, media_time_us=2_033_000, now_us=10)

    assert second.when_us == 33_010
