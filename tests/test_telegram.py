from __future__ import annotations

import json

import httpx
import pytest

from notifyhub.notifications import new_telegram_service
from notifyhub.notifications.base import RenderedMessage
from notifyhub.notifications.errors import (
    AdapterError,
    AuthenticationError,
    ConfigurationError,
    DispatchError,
    RateLimitedError,
    RecipientRejectedError,
    TransportError,
)
from notifyhub.notifications.telegram import (
    ParseMode,
    TelegramAdapter,
    TelegramOptions,
)

pytestmark = pytest.mark.anyio

TOKEN = "123456:ABC-def_ghi"
RENDERED = RenderedMessage(subject="Alert", text="Alert\n\nCPU at 95%")


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def _ok(captured: list[httpx.Request]):
    def handler(request: httpx.Request) -> httpx.Response:
        captured.append(request)
        return httpx.Response(200, json={"ok": True, "result": {"message_id": 1}})

    return handler


async def test_send_one_calls_send_message() -> None:
    captured: list[httpx.Request] = []
    adapter = TelegramAdapter(TOKEN, client=_client(_ok(captured)))

    await adapter.send_one(-1001234567890, RENDERED)

    request = captured[0]
    assert str(request.url) == f"https://api.telegram.org/bot{TOKEN}/sendMessage"
    assert json.loads(request.content) == {
        "chat_id": -1001234567890,
        "text": "Alert\n\nCPU at 95%",
        "parse_mode": "Markdown",
    }


async def test_plain_mode_omits_parse_mode() -> None:
    captured: list[httpx.Request] = []
    adapter = TelegramAdapter(
        TOKEN,
        options=TelegramOptions(parse_mode=ParseMode.PLAIN),
        client=_client(_ok(captured)),
    )

    await adapter.send_one(42, RENDERED)

    assert "parse_mode" not in json.loads(captured[0].content)


@pytest.mark.parametrize(
    ("status", "description", "error_type"),
    [
        (401, "Unauthorized", AuthenticationError),
        (403, "Forbidden: bot was blocked by the user", AuthenticationError),
        (400, "Bad Request: chat not found", RecipientRejectedError),
        (400, "Bad Request: can't parse entities", AdapterError),
        (429, "Too Many Requests: retry after 7", RateLimitedError),
    ],
)
async def test_api_errors_are_classified(
    status: int, description: str, error_type: type
) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        body = {"ok": False, "error_code": status, "description": description}
        if status == 429:
            body["parameters"] = {"retry_after": 7}
        return httpx.Response(status, json=body)

    adapter = TelegramAdapter(TOKEN, client=_client(handler))

    with pytest.raises(error_type) as excinfo:
        await adapter.send_one(42, RENDERED)

    assert type(excinfo.value) is error_type
    assert excinfo.value.recipient == 42
    assert description in str(excinfo.value)
    if status == 429:
        assert excinfo.value.retry_after == 7.0


@pytest.mark.parametrize("parameters", ["x", {"retry_after": "soon"}, {}, None])
async def test_rate_limit_with_malformed_parameters(parameters: object) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            429,
            json={
                "ok": False,
                "error_code": 429,
                "description": "Too Many Requests",
                "parameters": parameters,
            },
        )

    adapter = TelegramAdapter(TOKEN, client=_client(handler))

    with pytest.raises(RateLimitedError) as excinfo:
        await adapter.send_one(42, RENDERED)

    assert excinfo.value.recipient == 42
    assert excinfo.value.retry_after is None


async def test_ok_false_with_success_status_is_an_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"ok": False, "description": "odd"})

    adapter = TelegramAdapter(TOKEN, client=_client(handler))

    with pytest.raises(AdapterError, match="odd"):
        await adapter.send_one(42, RENDERED)


async def test_transport_failure_is_wrapped() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    adapter = TelegramAdapter(TOKEN, client=_client(handler))

    with pytest.raises(TransportError):
        await adapter.send_one(42, RENDERED)


@pytest.mark.parametrize("chat_id", ["42", True, 2**63, -(2**63) - 1, 4.2])
async def test_malformed_chat_ids_rejected_without_request(chat_id: object) -> None:
    captured: list[httpx.Request] = []
    adapter = TelegramAdapter(TOKEN, client=_client(_ok(captured)))

    with pytest.raises(RecipientRejectedError):
        await adapter.send_one(chat_id, RENDERED)  # type: ignore[arg-type]

    assert captured == []


@pytest.mark.parametrize("token", ["", "not-a-token", "abc:def", "123456:"])
def test_malformed_token_rejected(token: str) -> None:
    with pytest.raises(ConfigurationError):
        TelegramAdapter(token)


def test_unknown_parse_mode_rejected() -> None:
    with pytest.raises(ConfigurationError):
        TelegramAdapter(TOKEN, options=TelegramOptions(parse_mode="BBCode"))  # type: ignore[arg-type]


async def test_verify_returns_bot_profile() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path.endswith("/getMe")
        return httpx.Response(
            200, json={"ok": True, "result": {"id": 123456, "username": "ops_bot"}}
        )

    adapter = TelegramAdapter(TOKEN, client=_client(handler))

    profile = await adapter.verify()

    assert profile["username"] == "ops_bot"


async def test_verify_without_result_returns_empty_profile() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"ok": True})

    adapter = TelegramAdapter(TOKEN, client=_client(handler))

    assert await adapter.verify() == {}


async def test_verify_rejected_token_is_configuration_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            401, json={"ok": False, "error_code": 401, "description": "Unauthorized"}
        )

    adapter = TelegramAdapter(TOKEN, client=_client(handler))

    with pytest.raises(ConfigurationError, match="Unauthorized"):
        await adapter.verify()


async def test_service_sends_to_every_chat_and_aggregates() -> None:
    sent: list[int] = []

    def handler(request: httpx.Request) -> httpx.Response:
        chat_id = json.loads(request.content)["chat_id"]
        sent.append(chat_id)
        if chat_id == 2:
            return httpx.Response(
                400,
                json={
                    "ok": False,
                    "error_code": 400,
                    "description": "Bad Request: chat not found",
                },
            )
        return httpx.Response(200, json={"ok": True, "result": {}})

    service = new_telegram_service(TOKEN, recipients=[1, 2], client=_client(handler))
    service.add_recipients(3)
    service.configure(continue_on_err=True)

    with pytest.raises(DispatchError) as excinfo:
        await service.send("Alert", "CPU at 95%")

    assert sent == [1, 2, 3]
    assert [f.recipient for f in excinfo.value.failures] == [2]
    assert "chat not found" in str(excinfo.value)
    assert service.name == "telegram"
