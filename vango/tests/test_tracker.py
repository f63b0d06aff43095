import unittest
from types import SimpleNamespace
from unittest.mock import patch

from vango.db import InMemoryDbClient
from vango.positioning import Position
from vango.realtime import InMemoryChangeFeed
from vango.tracker import build_parser, main


def _settings():
    return SimpleNamespace(
        location_poll_interval_seconds=0.01, geolocation_timeout_seconds=1.0
    )


class TrackerCliTests(unittest.TestCase):
    def setUp(self):
        self.db = InMemoryDbClient()
        self.feed = InMemoryChangeFeed()
        patches = [
            patch("vango.tracker.get_db_client", return_value=self.db),
            patch("vango.tracker.get_change_feed", return_value=self.feed),
            patch("vango.tracker.get_settings", side_effect=_settings),
        ]
        for p in patches:
            p.start()
            self.addCleanup(p.stop)

    def test_once_reports_fixed_position(self):
        exit_code = main(["b1", "t1", "--fixed", "60.2", "24.9", "--once"])
        self.assertEqual(exit_code, 0)
        self.assertEqual(len(self.db.locations), 1)
        row = self.db.locations[0]
        self.assertEqual((row.booking_id, row.transporter_id), ("b1", "t1"))
        self.assertEqual((row.lat, row.lng), (60.2, 24.9))

    @patch("vango.positioning.requests.get")
    def test_once_without_position_fails(self, mock_get):
        mock_get.side_effect = OSError("unreachable")
        exit_code = main(["b1", "t1", "--position-url", "http://device.local/pos", "--once"])
        self.assertEqual(exit_code, 1)
        self.assertEqual(self.db.locations, [])

    def test_runs_for_duration(self):
        exit_code = main(
            [
                "b1",
                "t1",
                "--fixed",
                "60.2",
                "24.9",
                "--interval-seconds",
                "0.01",
                "--duration-seconds",
                "0.2",
            ]
        )
        self.assertEqual(exit_code, 0)
        self.assertGreaterEqual(len(self.db.locations), 1)

    @patch("vango.tracker.LocationService")
    def test_explicit_zero_interval_is_kept(self, mock_service):
        mock_service.return_value.get_current_position.return_value = Position(60.2, 24.9)

        main(["b1", "t1", "--fixed", "60.2", "24.9", "--interval-seconds", "0", "--once"])

        self.assertEqual(mock_service.call_args.kwargs["poll_interval_seconds"], 0)
        mock_service.return_value.close.assert_called_once()

    @patch("vango.tracker.LocationService")
    def test_interval_defaults_to_settings(self, mock_service):
        mock_service.return_value.get_current_position.return_value = Position(60.2, 24.9)

        main(["b1", "t1", "--fixed", "60.2", "24.9", "--once"])

        self.assertEqual(mock_service.call_args.kwargs["poll_interval_seconds"], 0.01)

    def test_position_source_is_required(self):
        with self.assertRaises(SystemExit):
            build_parser().parse_args(["b1", "t1"])


if __name__ == "__main__":
    unittest.main()
