"""Tests for the Frappe REST client and its connection state."""

import json

import httpx
import pytest

from erpbot.services.erpnext_client import BackendError, ERPNextClient


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def _client(handler, clock=None, reprobe_failures=2):
    return ERPNextClient(
        url="http://erp.test",
        api_key="key",
        api_secret="secret",
        timeout_sec=1.0,
        reprobe_failures=reprobe_failures,
        reprobe_interval_sec=60.0,
        transport=httpx.MockTransport(handler),
        clock=clock or FakeClock(),
    )


def _ping_ok(request):
    return httpx.Response(200, json={"message": "pong"})


class TestDocumentVerbs:
    @pytest.mark.asyncio
    async def test_token_auth_header(self):
        headers = []

        def handler(request):
            headers.append(request.headers["Authorization"])
            return _ping_ok(request)

        client = _client(handler)
        assert await client.ping() == "pong"
        assert headers == ["token key:secret"]

    @pytest.mark.asyncio
    async def test_get_list_encodes_params(self):
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            seen["params"] = dict(request.url.params)
            return httpx.Response(200, json={"data": [{"name": "SINV-1"}]})

        client = _client(handler)
        rows = await client.get_list(
            "Sales Invoice", fields=["name"], filters={"docstatus": 1}, order_by="posting_date desc", limit=5
        )

        assert rows == [{"name": "SINV-1"}]
        assert seen["path"] == "/api/resource/Sales Invoice"
        assert json.loads(seen["params"]["fields"]) == ["name"]
        assert json.loads(seen["params"]["filters"]) == {"docstatus": 1}
        assert seen["params"]["limit_page_length"] == "5"

    @pytest.mark.asyncio
    async def test_insert_posts_json(self):
        bodies = []

        def handler(request):
            bodies.append(json.loads(request.content))
            return httpx.Response(200, json={"data": {"name": "CUST-0001"}})

        client = _client(handler)
        doc = await client.insert("Customer", {"customer_name": "Dupont"})
        assert doc == {"name": "CUST-0001"}
        assert bodies == [{"customer_name": "Dupont"}]

    @pytest.mark.asyncio
    async def test_not_found_carries_status(self):
        client = _client(lambda request: httpx.Response(404, json={"exc_type": "DoesNotExistError"}))
        with pytest.raises(BackendError) as info:
            await client.get("Quotation", "SAL-QTN-9999")
        assert info.value.status_code == 404
        assert "DoesNotExistError" in str(info.value)

    @pytest.mark.asyncio
    async def test_transport_error_wrapped(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        client = _client(handler)
        with pytest.raises(BackendError, match="failed"):
            await client.ping()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("body", [["ok"], "ok", 42])
    async def test_non_object_json_is_backend_error(self, body):
        client = _client(lambda request: httpx.Response(200, json=body))
        with pytest.raises(BackendError, match="expected an object"):
            await client.insert("Customer", {"customer_name": "Dupont"})

    @pytest.mark.asyncio
    async def test_named_report_rows_zipped_with_columns(self):
        def handler(request):
            return httpx.Response(200, json={"message": {
                "columns": [{"fieldname": "item"}, "Qty:Float:80"],
                "result": [["PAIN", 5], {"item": "GATEAU", "Qty": 2}],
            }})

        client = _client(handler)
        rows = await client.run_named_report("Stock Balance")
        assert rows == [{"item": "PAIN", "Qty": 5}, {"item": "GATEAU", "Qty": 2}]


class TestConnectionState:
    @pytest.mark.asyncio
    async def test_connect_success(self):
        client = _client(_ping_ok)
        assert await client.connect() is True
        assert await client.is_available() is True

    @pytest.mark.asyncio
    async def test_connect_failure_never_raises(self):
        client = _client(lambda request: httpx.Response(503))
        assert await client.connect() is False
        assert client.state.connected is False

    @pytest.mark.asyncio
    async def test_connect_with_non_object_reply_never_raises(self):
        client = _client(lambda request: httpx.Response(200, json=["pong"]))
        assert await client.connect() is False
        assert client.state.connected is False

    @pytest.mark.asyncio
    async def test_consecutive_server_errors_disconnect(self):
        status = {"code": 200}
        client = _client(lambda request: httpx.Response(status["code"], json={"message": "pong"}))
        await client.connect()

        status["code"] = 500
        for _ in range(2):
            with pytest.raises(BackendError):
                await client.ping()
        assert client.state.connected is False

    @pytest.mark.asyncio
    async def test_client_errors_do_not_disconnect(self):
        status = {"code": 200}
        client = _client(lambda request: httpx.Response(status["code"], json={}))
        await client.connect()

        status["code"] = 404
        for _ in range(3):
            with pytest.raises(BackendError):
                await client.get("Customer", "missing")
        assert client.state.connected is True

    @pytest.mark.asyncio
    async def test_reprobe_waits_for_interval(self):
        clock = FakeClock()
        calls = []
        status = {"code": 503}

        def handler(request):
            calls.append(request.url.path)
            return httpx.Response(status["code"], json={"message": "pong"})

        client = _client(handler, clock=clock)
        await client.connect()
        assert len(calls) == 1

        status["code"] = 200
        clock.now = 30.0
        assert await client.is_available() is False
        assert len(calls) == 1

        clock.now = 60.0
        assert await client.is_available() is True
        assert len(calls) == 2
