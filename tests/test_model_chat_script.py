"""Tests for the model chat operator script."""

from __future__ import annotations

import json

import httpx
import pytest

from app.clients.model_gateway import ModelGateway
from app.core.config import ModelSettings
from scripts import model_chat


def test_run_once_without_credential_prints_fallback(capsys: pytest.CaptureFixture[str]) -> None:
    gateway = ModelGateway(ModelSettings(api_key=None))

    exit_code = model_chat.run_once("Review my weekly results", "test-model", gateway=gateway)

    assert exit_code == 0
    output = capsys.readouterr().out
    assert "You: " in output
    assert "Weekly summary (fallback)." in output


def test_list_models_without_credential_fails(capsys: pytest.CaptureFixture[str]) -> None:
    gateway = ModelGateway(ModelSettings(api_key=None))

    assert model_chat.list_models(gateway=gateway) == 1
    assert "BYTEZ_KEY" in capsys.readouterr().err


def test_list_models_prints_catalogue(capsys: pytest.CaptureFixture[str]) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"output": ["model-a"]})

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    gateway = ModelGateway(ModelSettings(api_key="test-key"), http_client=client)

    assert model_chat.list_models(gateway=gateway) == 0
    assert json.loads(capsys.readouterr().out) == {"output": ["model-a"]}


def test_main_dispatches_list_models(monkeypatch: pytest.MonkeyPatch) -> None:
    called: list[bool] = []
    monkeypatch.setattr(model_chat, "list_models", lambda: called.append(True) or 0)

    assert model_chat.main(["--list-models"]) == 0
    assert called == [True]
