import unittest
from unittest.mock import Mock, patch

import requests

from vango.geocoding import (
    HELSINKI_CENTER,
    TEST_ADDRESSES,
    Coordinates,
    GoogleGeocodingClient,
    MockGeocodingClient,
    calculate_distance,
    run_geocoding_validation,
    validate_coordinates,
    with_region_bias,
)


def _response(payload):
    response = Mock()
    response.json.return_value = payload
    return response


class DistanceTests(unittest.TestCase):
    def test_one_degree_of_longitude_at_equator(self):
        self.assertEqual(calculate_distance(0, 0, 0, 1), 111.19)

    def test_same_point_is_zero(self):
        self.assertEqual(calculate_distance(60.17, 24.94, 60.17, 24.94), 0)

    def test_symmetric(self):
        there = calculate_distance(60.1699, 24.9384, 60.2934, 25.0378)
        back = calculate_distance(60.2934, 25.0378, 60.1699, 24.9384)
        self.assertEqual(there, back)


class CoordinateHelperTests(unittest.TestCase):
    def test_region_bias_appended_once(self):
        self.assertEqual(with_region_bias("Kamppi"), "Kamppi, Helsinki, Finland")
        self.assertEqual(with_region_bias("Tikkurila, Vantaa"), "Tikkurila, Vantaa")
        self.assertEqual(with_region_bias("somewhere in SUOMI"), "somewhere in SUOMI")

    def test_validate_coordinates(self):
        self.assertFalse(validate_coordinates(Coordinates(*HELSINKI_CENTER)))
        self.assertFalse(validate_coordinates(Coordinates(0.0, 24.9)))
        self.assertFalse(validate_coordinates(Coordinates(float("nan"), 24.9)))
        self.assertTrue(validate_coordinates(Coordinates(60.2934, 25.0378)))
        # Outside Finland only warns.
        self.assertTrue(validate_coordinates(Coordinates(52.52, 13.40)))


class GoogleGeocodingClientTests(unittest.TestCase):
    @patch("vango.geocoding.requests.get")
    def test_ok_result(self, mock_get):
        mock_get.return_value = _response(
            {
                "status": "OK",
                "results": [
                    {
                        "geometry": {"location": {"lat": 60.2934, "lng": 25.0378}},
                        "formatted_address": "Tikkurila, 01300 Vantaa, Finland",
                    }
                ],
            }
        )
        client = GoogleGeocodingClient(api_key="key")

        coords = client.geocode_address("Tikkurila, Vantaa")
        self.assertEqual((coords.lat, coords.lng), (60.2934, 25.0378))
        self.assertEqual(coords.formatted_address, "Tikkurila, 01300 Vantaa, Finland")

        params = mock_get.call_args.kwargs["params"]
        self.assertEqual(params["address"], "Tikkurila, Vantaa")
        self.assertEqual(params["region"], "fi")
        self.assertEqual(params["key"], "key")

    @patch("vango.geocoding.requests.get")
    def test_zero_results(self, mock_get):
        mock_get.return_value = _response({"status": "ZERO_RESULTS", "results": []})
        client = GoogleGeocodingClient(api_key="key")
        self.assertIsNone(client.geocode_address("Nowhere"))
        self.assertEqual(
            mock_get.call_args.kwargs["params"]["address"], "Nowhere, Helsinki, Finland"
        )

    @patch("vango.geocoding.requests.get")
    def test_request_error(self, mock_get):
        mock_get.side_effect = requests.ConnectionError("offline")
        self.assertIsNone(GoogleGeocodingClient(api_key="key").geocode_address("Kamppi"))

    @patch("vango.geocoding.requests.get")
    def test_missing_key_skips_request(self, mock_get):
        client = GoogleGeocodingClient(api_key=None)
        self.assertFalse(client.api_key_configured)
        self.assertIsNone(client.geocode_address("Kamppi"))
        mock_get.assert_not_called()


class FakeGeocoder:
    api_key_configured = True

    def __init__(self, coordinates):
        self.coordinates = coordinates

    def geocode_address(self, address):
        value = self.coordinates.get(address)
        if isinstance(value, Exception):
            raise value
        return value


class GeocodingValidationTests(unittest.TestCase):
    def test_real_results_with_distance(self):
        geocoder = FakeGeocoder(
            {
                "A": Coordinates(60.1699, 24.9414),
                "B": Coordinates(60.1690, 24.9320),
                "C": None,
                "D": Coordinates(60.2934, 25.0378),
            }
        )
        sleeps = []

        report = run_geocoding_validation(
            geocoder, ("A", "B", "C", "D"), delay_seconds=0.2, sleep=sleeps.append
        )

        self.assertTrue(report["apiKeyConfigured"])
        self.assertEqual(
            report["summary"],
            {"total": 4, "successful": 3, "failed": 1, "mock": 0, "real": 3},
        )
        self.assertEqual(sleeps, [0.2] * 4)
        self.assertFalse(report["results"][2]["success"])
        self.assertEqual(report["distanceTest"]["from"], "A")
        self.assertEqual(report["distanceTest"]["to"], "D")
        self.assertTrue(report["distanceTest"]["distance"].endswith(" km"))
        self.assertEqual(report["message"], "Google Maps API is working correctly!")

    def test_mock_geocoder_reports_mock_only(self):
        report = run_geocoding_validation(MockGeocodingClient(), delay_seconds=0)
        self.assertFalse(report["apiKeyConfigured"])
        self.assertEqual(report["summary"]["total"], len(TEST_ADDRESSES))
        self.assertEqual(report["summary"]["mock"], len(TEST_ADDRESSES))
        self.assertEqual(report["summary"]["real"], 0)
        self.assertEqual(report["distanceTest"]["distance"], "0.00 km")
        self.assertEqual(report["message"], "Geocoding returned mock coordinates only")

    def test_all_failures(self):
        geocoder = FakeGeocoder({"A": RuntimeError("boom")})
        report = run_geocoding_validation(geocoder, ("A", "B"), delay_seconds=0)
        self.assertEqual(report["summary"]["successful"], 0)
        self.assertEqual(report["results"][0]["error"], "boom")
        self.assertIsNone(report["distanceTest"])
        self.assertEqual(report["message"], "Geocoding failed")


if __name__ == "__main__":
    unittest.main()
