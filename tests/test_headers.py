"""Tests for the live header probe."""

import httpx

from shieldlint.headers import USER_AGENT, fetch_headers


class TestFetchHeaders:
    """Tests for fetch_headers."""

    def test_lower_cases_header_names(self):
        """Header names are lower-cased and the probe identifies itself."""
        seen = []

        def handler(request):
            seen.append(request.headers["user-agent"])
            return httpx.Response(200, headers={"Strict-Transport-Security": "max-age=31536000"})

        client = httpx.Client(transport=httpx.MockTransport(handler))

        headers = fetch_headers("https://shop.test", client=client)

        assert headers["strict-transport-security"] == "max-age=31536000"
        assert seen == [USER_AGENT]

    def test_unreachable(self):
        """Connection failures return None."""

        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = httpx.Client(transport=httpx.MockTransport(handler))

        assert fetch_headers("https://shop.test", client=client) is None

    def test_caller_client_stays_open(self):
        """A client passed in is not closed."""
        client = httpx.Client(transport=httpx.MockTransport(lambda request: httpx.Response(204)))

        fetch_headers("https://shop.test", client=client)

        assert not client.is_closed
        client.close()

    def test_certificates_verified_by_default(self, monkeypatch):
        """An owned client verifies TLS certificates unless told otherwise."""
        real_client = httpx.Client
        seen = []

        def make_client(**kwargs):
            seen.append(kwargs["verify"])
            return real_client(transport=httpx.MockTransport(lambda request: httpx.Response(200)))

        monkeypatch.setattr(httpx, "Client", make_client)

        fetch_headers("https://shop.test")
        fetch_headers("https://shop.test", verify=False)

        assert seen == [True, False]
