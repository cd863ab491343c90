import hashlib
import hmac
import json
from unittest.mock import MagicMock, patch

import pytest
from fastapi.testclient import TestClient

from orgmirror.api.main import app
from orgmirror.api.routes.github import verify_signature
from orgmirror.config import settings

client = TestClient(app)


def _signed_headers(body: bytes, event: str = "pull_request"):
    digest = hmac.new(settings.GITHUB_WEBHOOK_SECRET.encode(), body, hashlib.sha256).hexdigest()
    return {
        "X-Hub-Signature-256": f"sha256={digest}",
        "X-GitHub-Event": event,
        "X-GitHub-Delivery": "delivery-1",
        "Content-Type": "application/json",
    }


@pytest.fixture
def event_dispatcher():
    dispatcher = MagicMock()
    with patch("orgmirror.services.runtime.event_dispatcher", return_value=dispatcher):
        yield dispatcher


def test_verify_signature():
    body = b'{"a": 1}'
    good = "sha256=" + hmac.new(b"secret", body, hashlib.sha256).hexdigest()

    assert verify_signature(body, good, "secret")
    assert not verify_signature(body, good, "other")
    assert not verify_signature(body, None, "secret")
    assert not verify_signature(body, good, "")


def test_valid_delivery_is_dispatched(event_dispatcher):
    body = json.dumps({"action": "opened", "installation": {"id": 1}, "number": 4}).encode()

    response = client.post("/github/webhook", content=body, headers=_signed_headers(body))

    assert response.status_code == 200
    assert response.json() == {"status": "received"}
    event = event_dispatcher.dispatch.call_args.args[0]
    assert event.name == "pull_request"
    assert event.action == "opened"
    assert event.installation_id == 1


def test_bad_signature_is_rejected_before_parsing(event_dispatcher):
    body = b'{"action": "opened"}'
    headers = _signed_headers(body)
    headers["X-Hub-Signature-256"] = "sha256=" + "0" * 64

    response = client.post("/github/webhook", content=body, headers=headers)

    assert response.status_code == 400
    assert response.json()["detail"] == "Invalid GitHub signature"
    event_dispatcher.dispatch.assert_not_called()


def test_missing_signature_is_rejected(event_dispatcher):
    body = b'{"action": "opened"}'
    headers = _signed_headers(body)
    del headers["X-Hub-Signature-256"]

    response = client.post("/github/webhook", content=body, headers=headers)

    assert response.status_code == 400
    event_dispatcher.dispatch.assert_not_called()


def test_signed_but_malformed_body_is_rejected(event_dispatcher):
    body = b"not json"

    response = client.post("/github/webhook", content=body, headers=_signed_headers(body))

    assert response.status_code == 400
    event_dispatcher.dispatch.assert_not_called()


def test_processing_failure_returns_500(event_dispatcher):
    event_dispatcher.dispatch.side_effect = RuntimeError("database locked")
    body = json.dumps({"action": "opened", "installation": {"id": 1}}).encode()

    response = client.post("/github/webhook", content=body, headers=_signed_headers(body))

    assert response.status_code == 500
