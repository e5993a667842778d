import os
import unittest

import httpx

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")

from app.services.geocoder import Geocoder, GeocoderError

NOMINATIM_ITEM = {
    "lat": "42.3601",
    "lon": "-71.0589",
    "display_name": "Boston, Suffolk County, Massachusetts, 02108, United States",
    "address": {"city": "Boston", "state": "Massachusetts", "postcode": "02108", "country_code": "us"},
}


def _geocoder(handler) -> Geocoder:
    return Geocoder(url="https://geo.test/search", user_agent="tests/1.0", transport=httpx.MockTransport(handler))


class GeocoderTests(unittest.TestCase):
    def test_parses_first_result(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["q"] = request.url.params.get("q")
            seen["agent"] = request.headers.get("user-agent")
            return httpx.Response(200, json=[NOMINATIM_ITEM, {"lat": "bad"}])

        locations = _geocoder(handler).geocode(" 02108 ")
        self.assertEqual(seen, {"q": "02108", "agent": "tests/1.0"})
        self.assertEqual(len(locations), 1)
        location = locations[0]
        self.assertAlmostEqual(location.latitude, 42.3601)
        self.assertAlmostEqual(location.longitude, -71.0589)
        self.assertEqual(location.city, "Boston")
        self.assertEqual(location.zipcode, "02108")
        self.assertEqual(location.country, "US")

    def test_empty_query_skips_request(self):
        def handler(request):
            raise AssertionError("no request expected")

        self.assertEqual(_geocoder(handler).geocode("  "), [])

    def test_http_error_status_raises(self):
        with self.assertRaises(GeocoderError):
            _geocoder(lambda request: httpx.Response(503)).geocode("02108")

    def test_transport_error_raises(self):
        def handler(request):
            raise httpx.ConnectError("down", request=request)

        with self.assertRaises(GeocoderError):
            _geocoder(handler).geocode("02108")

    def test_malformed_payload_raises(self):
        with self.assertRaises(GeocoderError):
            _geocoder(lambda request: httpx.Response(200, json={"error": "nope"})).geocode("02108")


if __name__ == "__main__":
    unittest.main()
