"""Tests for the TrueLayer payments API client."""

import json
from urllib.parse import parse_qs

import httpx
import pytest

from quickpay.engine.errors import (
    PermanentError,
    ProtocolError,
    RateLimitError,
    RemoteError,
)
from quickpay.models.enums import Currency, PaymentStatus
from quickpay.providers.schemas import (
    Beneficiary,
    CreatePaymentRequest,
    Iban,
    PaymentUser,
    supported_capabilities,
)
from quickpay.providers.truelayer import TrueLayerPaymentsApi

TOKEN = {"access_token": "tok-1", "expires_in": 3600, "token_type": "Bearer"}
WAIT_FLOW = {"status": "authorizing", "authorization_flow": {"actions": {"next": {"type": "wait"}}}}


class FakeServer:
    """httpx.MockTransport handler with a route table and a request log."""

    def __init__(self, routes=None):
        self.routes = routes or {}
        self.requests: list[httpx.Request] = []
        self.token_requests = 0

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.path == "/connect/token":
            self.token_requests += 1
            return httpx.Response(200, json=TOKEN)
        route = self.routes.get((request.method, request.url.path))
        if route is None:
            return httpx.Response(404, json={"title": "Not Found"})
        if isinstance(route, list):
            route = route.pop(0)
        if isinstance(route, Exception):
            raise route
        return route

    def api_requests(self):
        return [r for r in self.requests if r.url.path != "/connect/token"]


@pytest.fixture
def signatures(monkeypatch):
    signed = []

    def fake_sign(kid, private_key_pem, method, path, headers, body):
        signed.append({"kid": kid, "method": method, "path": path, "headers": headers, "body": body})
        return "header..signature"

    monkeypatch.setattr("quickpay.providers.truelayer.sign_request", fake_sign)
    return signed


def make_client(server, environment="sandbox"):
    return TrueLayerPaymentsApi(
        client_id="client-1",
        client_secret="secret-1",
        signing_kid="kid-1",
        signing_private_key="pem",
        environment=environment,
        transport=httpx.MockTransport(server),
    )


def payment_request():
    return CreatePaymentRequest(
        amount_in_minor=250,
        currency=Currency.EUR,
        beneficiary=Beneficiary(
            account_holder_name="Jan Jansen",
            reference="rent",
            account_identifier=Iban(iban="NL91ABNA0417164300"),
        ),
        user=PaymentUser(name="QuickPay User", email="quickpay@example.com"),
    )


class TestEnvironment:
    def test_unknown_environment(self):
        with pytest.raises(ValueError, match="staging"):
            make_client(FakeServer(), environment="staging")

    @pytest.mark.asyncio
    async def test_sandbox_hosts(self, signatures):
        server = FakeServer({
            ("GET", "/v3/payments/pay_1"): httpx.Response(200, json={"id": "pay_1", "status": "executed"}),
        })
        client = make_client(server)

        await client.get_payment("pay_1")
        await client.close()

        assert server.requests[0].url.host == "auth.truelayer-sandbox.com"
        assert server.requests[1].url.host == "api.truelayer-sandbox.com"


class TestRequests:
    @pytest.mark.asyncio
    async def test_create_payment(self, signatures):
        server = FakeServer({
            ("POST", "/v3/payments"): httpx.Response(201, json={
                "id": "pay_1",
                "user": {"id": "usr_1"},
                "resource_token": "rt",
                "status": "authorization_required",
            }),
        })
        client = make_client(server)

        created = await client.create_payment(payment_request())

        assert created.id == "pay_1"
        assert created.status == PaymentStatus.AUTHORIZATION_REQUIRED

        token_request = server.requests[0]
        form = parse_qs(token_request.content.decode())
        assert form["grant_type"] == ["client_credentials"]
        assert form["client_id"] == ["client-1"]
        assert form["scope"] == ["payments"]

        request = server.api_requests()[0]
        assert request.headers["Authorization"] == "Bearer tok-1"
        assert request.headers["Content-Type"] == "application/json"
        assert request.headers["Tl-Signature"] == "header..signature"
        body = json.loads(request.content)
        assert body["currency"] == "EUR"
        assert body["payment_method"]["beneficiary"]["account_identifier"]["iban"] == "NL91ABNA0417164300"

    @pytest.mark.asyncio
    async def test_signature_covers_exact_request(self, signatures):
        server = FakeServer({
            ("POST", "/v3/payments/pay_1/authorization-flow/actions/form"): httpx.Response(200, json=WAIT_FLOW),
        })
        client = make_client(server)

        await client.submit_form_inputs("pay_1", {"otp": "123456"})

        request = server.api_requests()[0]
        signed = signatures[0]
        assert signed["kid"] == "kid-1"
        assert signed["method"] == "POST"
        assert signed["path"] == "/v3/payments/pay_1/authorization-flow/actions/form"
        assert signed["headers"] == [("Idempotency-Key", request.headers["Idempotency-Key"])]
        assert signed["body"] == request.content
        assert json.loads(request.content) == {"inputs": {"otp": "123456"}}

    @pytest.mark.asyncio
    async def test_every_post_gets_a_fresh_idempotency_key(self, signatures):
        server = FakeServer({
            ("POST", "/v3/payments/pay_1/authorization-flow/actions/consent"): [
                httpx.Response(200, json=WAIT_FLOW),
                httpx.Response(200, json=WAIT_FLOW),
            ],
        })
        client = make_client(server)

        await client.submit_consent("pay_1")
        await client.submit_consent("pay_1")

        keys = {r.headers["Idempotency-Key"] for r in server.api_requests()}
        assert len(keys) == 2

    @pytest.mark.asyncio
    async def test_start_flow_sends_capabilities(self, signatures):
        server = FakeServer({
            ("POST", "/v3/payments/pay_1/authorization-flow"): httpx.Response(200, json=WAIT_FLOW),
        })
        client = make_client(server)

        response = await client.start_authorization_flow(
            "pay_1", supported_capabilities("http://127.0.0.1:3000/callback")
        )

        assert response.authorization_flow.actions.next.type == "wait"
        body = json.loads(server.api_requests()[0].content)
        assert body["redirect"] == {"return_uri": "http://127.0.0.1:3000/callback"}
        assert body["form"]["input_types"] == ["text", "text_with_image", "select"]

    @pytest.mark.asyncio
    async def test_provider_selection_body(self, signatures):
        server = FakeServer({
            ("POST", "/v3/payments/pay_1/authorization-flow/actions/provider-selection"):
                httpx.Response(200, json=WAIT_FLOW),
        })
        client = make_client(server)

        await client.submit_provider_selection("pay_1", "ob-monzo")

        assert json.loads(server.api_requests()[0].content) == {"provider_id": "ob-monzo"}

    @pytest.mark.asyncio
    async def test_token_is_cached(self, signatures):
        server = FakeServer({
            ("GET", "/v3/payments/pay_1"): httpx.Response(200, json={"id": "pay_1", "status": "authorizing"}),
        })
        client = make_client(server)

        await client.get_payment("pay_1")
        await client.get_payment("pay_1")

        assert server.token_requests == 1

    @pytest.mark.asyncio
    async def test_unauthorized_drops_cached_token(self, signatures):
        server = FakeServer({
            ("GET", "/v3/payments/pay_1"): [
                httpx.Response(401, json={"title": "Unauthorized"}),
                httpx.Response(200, json={"id": "pay_1", "status": "authorizing"}),
            ],
        })
        client = make_client(server)

        with pytest.raises(PermanentError):
            await client.get_payment("pay_1")
        await client.get_payment("pay_1")

        assert server.token_requests == 2


class TestErrorMapping:
    @pytest.mark.asyncio
    async def test_rate_limited(self, signatures):
        server = FakeServer({
            ("GET", "/v3/payments/pay_1"): httpx.Response(429, headers={"Retry-After": "2"}),
        })

        with pytest.raises(RateLimitError) as exc_info:
            await make_client(server).get_payment("pay_1")
        assert exc_info.value.retry_after == 2.0
        assert exc_info.value.retriable is True

    @pytest.mark.asyncio
    async def test_gateway_errors_are_retriable(self, signatures):
        server = FakeServer({("GET", "/v3/payments/pay_1"): httpx.Response(503)})

        with pytest.raises(RemoteError) as exc_info:
            await make_client(server).get_payment("pay_1")
        assert exc_info.value.status_code == 503
        assert exc_info.value.retriable is True

    @pytest.mark.asyncio
    async def test_internal_error_is_not_retriable(self, signatures):
        server = FakeServer({("GET", "/v3/payments/pay_1"): httpx.Response(500)})

        with pytest.raises(RemoteError) as exc_info:
            await make_client(server).get_payment("pay_1")
        assert exc_info.value.retriable is False

    @pytest.mark.asyncio
    async def test_problem_details_in_message(self, signatures):
        server = FakeServer({
            ("POST", "/v3/payments/pay_1/authorization-flow/actions/form"): httpx.Response(400, json={
                "title": "Invalid Parameters",
                "detail": "Request validation failed.",
                "errors": {"inputs.otp": ["must be 6 digits"]},
                "trace_id": "trace-123",
            }),
        })

        with pytest.raises(PermanentError) as exc_info:
            await make_client(server).submit_form_inputs("pay_1", {"otp": "1"})

        message = str(exc_info.value)
        assert "Invalid Parameters: Request validation failed." in message
        assert "inputs.otp: must be 6 digits" in message
        assert "trace_id=trace-123" in message
        assert exc_info.value.status_code == 400
        assert exc_info.value.retriable is False

    @pytest.mark.asyncio
    async def test_network_failure(self, signatures):
        server = FakeServer({
            ("GET", "/v3/payments/pay_1"): httpx.ConnectError("connection refused"),
        })

        with pytest.raises(RemoteError) as exc_info:
            await make_client(server).get_payment("pay_1")
        assert exc_info.value.status_code == 0
        assert exc_info.value.retriable is True

    @pytest.mark.asyncio
    async def test_undecodable_body(self, signatures):
        server = FakeServer({
            ("GET", "/v3/payments/pay_1"): httpx.Response(200, content=b"<html>oops</html>"),
        })

        with pytest.raises(ProtocolError):
            await make_client(server).get_payment("pay_1")

    @pytest.mark.asyncio
    async def test_unexpected_shape(self, signatures):
        server = FakeServer({
            ("POST", "/v3/payments/pay_1/authorization-flow"): httpx.Response(200, json={
                "authorization_flow": {"actions": {"next": {"type": "teleport"}}},
            }),
        })

        with pytest.raises(ProtocolError):
            await make_client(server).start_authorization_flow(
                "pay_1", supported_capabilities("http://localhost/cb")
            )
