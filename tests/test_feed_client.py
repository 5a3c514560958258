"""Tests for FeedClient."""

import socketserver
import threading
import unittest
from unittest.mock import MagicMock, patch

import requests
from urllib3.exceptions import ReadTimeoutError

import fixtures  # noqa: F401

from mnrtrack.errors import FeedTimeoutError, NetworkError
from mnrtrack.feed_client import FeedClient


def make_response(chunks, status_code=200):
    response = MagicMock()
    response.status_code = status_code
    response.iter_content.return_value = iter(chunks)
    return response


class TestFeedClient(unittest.TestCase):
    """Test downloads and error mapping."""

    def setUp(self):
        self.session = MagicMock()
        self.client = FeedClient(timeout=7, session=self.session)

    def test_fetch_bytes_sends_api_key(self):
        self.session.get.return_value = make_response([b"\x0a\x00", b"\x12"])

        data = self.client.fetch_bytes("https://feed", api_key="secret")

        self.assertEqual(data, b"\x0a\x00\x12")
        _, kwargs = self.session.get.call_args
        self.assertEqual(kwargs["headers"], {"x-api-key": "secret"})
        self.assertEqual(kwargs["timeout"], 7)
        self.assertTrue(kwargs["stream"])

    def test_fetch_text(self):
        self.session.get.return_value = make_response(["<table>".encode("utf-8")])
        self.assertEqual(self.client.fetch_text("http://page"), "<table>")
        _, kwargs = self.session.get.call_args
        self.assertIsNone(kwargs["headers"])

    def test_connect_timeout(self):
        self.session.get.side_effect = requests.ConnectTimeout("slow")
        with self.assertRaises(FeedTimeoutError) as ctx:
            self.client.fetch_text("http://page")
        self.assertTrue(str(ctx.exception).startswith("5003|"))
        self.assertIsInstance(ctx.exception, TimeoutError)

    def test_connection_error(self):
        self.session.get.side_effect = requests.ConnectionError("refused")
        with self.assertRaises(NetworkError):
            self.client.fetch_bytes("https://feed")

    def test_http_error(self):
        response = make_response([])
        response.status_code = 503
        response.raise_for_status.side_effect = requests.HTTPError("503 Server Error")
        self.session.get.return_value = response

        with self.assertRaises(NetworkError) as ctx:
            self.client.fetch_bytes("https://feed")
        self.assertIn("HTTP 503", ctx.exception.message)

    @patch("mnrtrack.feed_client.time.monotonic")
    def test_slow_body_is_aborted(self, mock_monotonic):
        """The deadline covers the body too, and the response is closed."""
        mock_monotonic.side_effect = [0.0, 1.0, 10.0]
        response = make_response([b"a", b"b", b"c"])
        self.session.get.return_value = response

        with self.assertRaises(FeedTimeoutError):
            self.client.fetch_bytes("https://feed")
        response.__exit__.assert_called_once()

    def test_read_timeout_in_body(self):
        response = make_response([])
        response.iter_content.side_effect = requests.ConnectionError(
            ReadTimeoutError(None, "https://feed", "Read timed out.")
        )
        self.session.get.return_value = response

        with self.assertRaises(FeedTimeoutError):
            self.client.fetch_bytes("https://feed")

    def test_connection_reset_in_body(self):
        response = make_response([])
        response.iter_content.side_effect = requests.ConnectionError("Connection reset by peer")
        self.session.get.return_value = response

        with self.assertRaises(NetworkError) as ctx:
            self.client.fetch_bytes("https://feed")
        self.assertNotIsInstance(ctx.exception, FeedTimeoutError)

    def test_close(self):
        self.client.close()
        self.session.close.assert_called_once()


class StallingHandler(socketserver.BaseRequestHandler):
    """Sends the headers and a few body bytes, then goes quiet."""

    def handle(self):
        self.request.recv(65536)
        self.request.sendall(b"HTTP/1.1 200 OK\r\nContent-Length: 100\r\n\r\nabc")
        self.server.release.wait(5)


class TestStalledServer(unittest.TestCase):
    """Test a real connection whose body stops arriving."""

    def setUp(self):
        self.server = socketserver.ThreadingTCPServer(("127.0.0.1", 0), StallingHandler)
        self.server.daemon_threads = True
        self.server.release = threading.Event()
        thread = threading.Thread(target=self.server.serve_forever, daemon=True)
        thread.start()
        self.addCleanup(self.server.server_close)
        self.addCleanup(self.server.shutdown)
        self.addCleanup(self.server.release.set)

    def test_stalled_body_times_out(self):
        session = requests.Session()
        session.trust_env = False
        client = FeedClient(timeout=0.5, session=session)
        self.addCleanup(client.close)

        host, port = self.server.server_address
        with self.assertRaises(FeedTimeoutError) as ctx:
            client.fetch_bytes(f"http://{host}:{port}/feed")
        self.assertIsInstance(ctx.exception, TimeoutError)


if __name__ == "__main__":
    unittest.main()
