from datetime import datetime

import pytest

from fakes import make_entry

from lifewheel.domain.models import WheelEntry
from lifewheel.domain.services import HistoryAggregator

IDS = ["spirituality", "family", "personal", "social", "health", "work"]


def test_trend_of_empty_history_is_empty():
    assert HistoryAggregator().trend([]) == []


def test_trend_of_single_entry_is_its_average():
    entry = make_entry(scores=dict(zip(IDS, [1, 2, 3, 4, 5, 9])))
    points = HistoryAggregator().trend([entry])
    assert len(points) == 1
    assert points[0].average == pytest.approx(4.0)
    assert points[0].label == "2026-01-31"


def test_trend_keeps_most_recent_window_oldest_first():
    entries = [make_entry(days_ago=d, scores=dict.fromkeys(IDS, 10 - d)) for d in range(8)]
    points = HistoryAggregator().trend(entries, window_size=5)
    assert len(points) == 5
    assert [p.average for p in points] == [6.0, 7.0, 8.0, 9.0, 10.0]
    stamps = [p.created_at for p in points]
    assert stamps == sorted(stamps)


def test_trend_does_not_trust_store_order():
    entries = [make_entry(days_ago=d, scores=dict.fromkeys(IDS, d + 1)) for d in (3, 0, 5, 1)]
    points = HistoryAggregator().trend(entries, window_size=3)
    assert [p.average for p in points] == [4.0, 2.0, 1.0]


def test_trend_window_larger_than_history():
    entries = [make_entry(days_ago=d) for d in range(2)]
    assert len(HistoryAggregator().trend(entries, window_size=5)) == 2


def test_trend_non_positive_window_is_empty():
    assert HistoryAggregator().trend([make_entry()], window_size=0) == []


def test_entry_average_divides_by_fixed_category_count():
    partial = WheelEntry(id="p", user_id="u1", created_at=datetime(2026, 1, 1), scores={"health": 6})
    assert HistoryAggregator().entry_average(partial) == pytest.approx(1.0)


def test_cross_user_averages_per_category():
    a = make_entry(user_id="u1", scores=dict.fromkeys(IDS, 4))
    b = make_entry(user_id="u2", scores=dict.fromkeys(IDS, 8))
    averages = HistoryAggregator().cross_user_category_averages([a, b])
    assert averages == dict.fromkeys(IDS, 6.0)


def test_cross_user_averages_unseen_category_reports_zero():
    only_health = WheelEntry(id="h", user_id="u1", created_at=datetime(2026, 1, 1), scores={"health": 7})
    averages = HistoryAggregator().cross_user_category_averages([only_health])
    assert averages["health"] == 7.0
    assert averages["work"] == 0.0


def test_cross_user_averages_of_nothing():
    averages = HistoryAggregator().cross_user_category_averages([])
    assert set(averages) == set(IDS)
    assert all(v == 0.0 for v in averages.values())
