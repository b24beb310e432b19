"""Fault classification tests."""

from __future__ import annotations

import socket

import httpx
import pytest

from direxport.core.fetch.errors import (
    FaultCategory,
    FaultRecord,
    HttpStatusError,
    TerminalFailure,
    TokenAcquisitionError,
    classify,
    classify_fault,
    classify_http_status,
    should_retry,
)


@pytest.mark.parametrize(
    "status_code, category",
    [
        (401, FaultCategory.AUTHENTICATION),
        (403, FaultCategory.AUTHORIZATION),
        (429, FaultCategory.RATE_LIMIT),
        (500, FaultCategory.SERVER_ERROR),
        (502, FaultCategory.SERVER_ERROR),
        (503, FaultCategory.SERVER_ERROR),
        (504, FaultCategory.TIMEOUT),
        (404, FaultCategory.UNKNOWN),
        (400, FaultCategory.UNKNOWN),
    ],
)
def test_http_status_mapping(status_code: int, category: FaultCategory) -> None:
    assert classify_http_status(status_code) is category
    assert classify(HttpStatusError("boom", status_code=status_code)) is category


def test_httpx_status_error_uses_response_code() -> None:
    request = httpx.Request("GET", "https://graph.test/v1.0/users")
    response = httpx.Response(429, request=request)
    exc = httpx.HTTPStatusError("too many", request=request, response=response)

    assert classify(exc) is FaultCategory.RATE_LIMIT


def test_token_acquisition_error_is_authentication() -> None:
    assert classify(TokenAcquisitionError("expired")) is FaultCategory.AUTHENTICATION
    # Even when the identity endpoint answered with a non-401 status
    exc = TokenAcquisitionError("bad request", status_code=400)
    assert classify(exc) is FaultCategory.AUTHENTICATION


def test_transport_failures() -> None:
    request = httpx.Request("GET", "https://graph.test/v1.0/users")

    assert classify(httpx.ReadTimeout("slow", request=request)) is FaultCategory.TIMEOUT
    assert classify(httpx.ConnectTimeout("slow", request=request)) is FaultCategory.TIMEOUT
    assert classify(TimeoutError()) is FaultCategory.TIMEOUT

    assert classify(httpx.ConnectError("refused", request=request)) is FaultCategory.NETWORK
    assert classify(httpx.RemoteProtocolError("reset", request=request)) is FaultCategory.NETWORK
    assert classify(ConnectionResetError()) is FaultCategory.NETWORK
    assert classify(socket.gaierror(-2, "Name or service not known")) is FaultCategory.NETWORK
    assert classify(socket.herror(1, "Unknown host")) is FaultCategory.NETWORK


def test_anything_else_is_unknown() -> None:
    assert classify(ValueError("bad page")) is FaultCategory.UNKNOWN
    assert classify(KeyError("id")) is FaultCategory.UNKNOWN


def test_classification_is_deterministic() -> None:
    exc = HttpStatusError("throttled", status_code=429)
    assert {classify(exc) for _ in range(10)} == {FaultCategory.RATE_LIMIT}


def test_should_retry() -> None:
    assert not should_retry(FaultCategory.AUTHENTICATION)
    assert not should_retry(FaultCategory.AUTHORIZATION)
    for category in (
        FaultCategory.RATE_LIMIT,
        FaultCategory.SERVER_ERROR,
        FaultCategory.TIMEOUT,
        FaultCategory.NETWORK,
        FaultCategory.UNKNOWN,
    ):
        assert should_retry(category)


def test_classify_fault_builds_record() -> None:
    exc = HttpStatusError("HTTP 429", status_code=429, retry_after=7.0)
    fault = classify_fault(exc, "fetch_users:1")

    assert fault.category is FaultCategory.RATE_LIMIT
    assert fault.operation == "fetch_users:1"
    assert fault.status_code == 429
    assert fault.retry_after == 7.0
    assert fault.retryable
    assert fault.to_dict()["category"] == "RateLimit"


def test_terminal_failure_keeps_fault_and_cause() -> None:
    cause = HttpStatusError("HTTP 403", status_code=403)
    fault = FaultRecord(FaultCategory.AUTHORIZATION, "HTTP 403", "fetch_groups:1", 403)
    failure = TerminalFailure(fault, cause)

    assert failure.cause is cause
    assert classify(failure) is FaultCategory.AUTHORIZATION
    assert classify_fault(failure, "other") is fault
    assert "fetch_groups:1" in str(failure)
