from __future__ import annotations

import os
import unittest
from unittest import mock

import requests

from api_client import FIXTURE_INCLUDES, SportMonksClient
from payloads import fixture


def fake_response(payload: object, status_code: int = 200) -> mock.Mock:
    response = mock.Mock()
    response.json.return_value = payload
    if status_code >= 400:
        response.raise_for_status.side_effect = requests.HTTPError(f"{status_code} Error")
    else:
        response.raise_for_status.return_value = None
    return response


class SportMonksClientTests(unittest.TestCase):
    def setUp(self) -> None:
        self.client = SportMonksClient("https://api.example.test/v3/", api_token="secret", timeout=5)

    def test_requires_token(self) -> None:
        with mock.patch.dict(os.environ, {"SPORTMONKS_API_TOKEN": ""}):
            with self.assertRaises(ValueError):
                SportMonksClient("https://api.example.test/v3")

    def test_token_from_environment(self) -> None:
        with mock.patch.dict(os.environ, {"SPORTMONKS_API_TOKEN": "from-env"}):
            client = SportMonksClient("https://api.example.test/v3")
        self.assertEqual(client.api_token, "from-env")

    def test_get_fixture_requests_all_includes(self) -> None:
        payload = fixture()
        with mock.patch("api_client.requests.get", return_value=fake_response({"data": payload})) as get:
            result = self.client.get_fixture(1001)
        self.assertEqual(result, payload)
        get.assert_called_once_with(
            "https://api.example.test/v3/football/fixtures/1001",
            params={"include": FIXTURE_INCLUDES},
            headers={"Authorization": "secret", "Accept": "application/json"},
            timeout=5,
        )

    def test_client_is_a_resolver(self) -> None:
        with mock.patch("api_client.requests.get", return_value=fake_response({"data": fixture()})):
            self.assertEqual(self.client("1001")["id"], 1001)

    def test_empty_fixture_raises(self) -> None:
        with mock.patch("api_client.requests.get", return_value=fake_response({"data": {}})):
            with self.assertRaises(ValueError):
                self.client.get_fixture(1)

    def test_unexpected_shape_raises(self) -> None:
        with mock.patch("api_client.requests.get", return_value=fake_response(["nope"])):
            with self.assertRaises(ValueError):
                self.client.get_fixture(1)

    def test_http_errors_propagate(self) -> None:
        with mock.patch("api_client.requests.get", return_value=fake_response({}, status_code=500)):
            with self.assertRaises(requests.HTTPError):
                self.client.get_fixture(1)

    def test_is_final_status(self) -> None:
        self.assertTrue(SportMonksClient.is_final_status(5))
        self.assertTrue(SportMonksClient.is_final_status(None, "FT"))
        self.assertFalse(SportMonksClient.is_final_status(1, "NS"))


if __name__ == "__main__":
    unittest.main()
