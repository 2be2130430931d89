"""
Tests for client-side ad selection and impression logging.
"""
from datetime import date
from unittest.mock import MagicMock

from refledger.client.ads import ImpressionTracker, SlotAd, select_ad

TODAY = date(2026, 3, 1)


def test_select_prefers_ad_within_window():
    expired = SlotAd(id="old", placement="home_hero", end_date=date(2026, 2, 1))
    current = SlotAd(id="now", placement="home_hero", start_date=date(2026, 2, 20), end_date=date(2026, 3, 31))

    assert select_ad([expired, current], today=TODAY).id == "now"


def test_select_falls_back_to_first_ad():
    expired = SlotAd(id="old", placement="home_hero", end_date=date(2026, 2, 1))
    upcoming = SlotAd(id="soon", placement="home_hero", start_date=date(2026, 4, 1))

    assert select_ad([expired, upcoming], today=TODAY).id == "old"


def test_select_with_no_ads():
    assert select_ad([], today=TODAY) is None


def test_open_ended_window():
    assert select_ad([SlotAd(id="a1", placement="sidebar")], today=TODAY).id == "a1"


class TestImpressionTracker:
    """Tests for ImpressionTracker"""

    def test_logs_once_per_session(self):
        client = MagicMock()
        tracker = ImpressionTracker(client)

        assert tracker.on_visibility("a1", "home_hero", 0.5) is True
        assert tracker.on_visibility("a1", "home_hero", 1.0) is False

        client.track_impression.assert_called_once_with("a1", "home_hero")

    def test_below_threshold_not_logged(self):
        client = MagicMock()
        tracker = ImpressionTracker(client)

        assert tracker.on_visibility("a1", "home_hero", 0.39) is False
        client.track_impression.assert_not_called()

    def test_same_ad_other_placement_logged(self):
        client = MagicMock()
        tracker = ImpressionTracker(client)

        tracker.on_visibility("a1", "home_hero", 1.0)
        tracker.on_visibility("a1", "sidebar", 1.0)

        assert client.track_impression.call_count == 2

    def test_new_session_logs_again(self):
        client = MagicMock()
        tracker = ImpressionTracker(client)

        tracker.on_visibility("a1", "home_hero", 1.0)
        tracker.end_session()
        tracker.on_visibility("a1", "home_hero", 1.0)

        assert client.track_impression.call_count == 2
