"""Tests for operator authentication."""

from dataclasses import replace
from datetime import timedelta

import pytest
from fastapi import HTTPException
from fastapi.testclient import TestClient

from concierge_api.auth.jwt import create_access_token, decode_token
from concierge_api.main import create_app
from conftest import JWT_SECRET, OPERATOR_ID, auth_headers


# =============================================================================
# Token Handling
# =============================================================================


class TestTokens:
    def test_round_trip(self):
        token = create_access_token(OPERATOR_ID, JWT_SECRET)

        payload = decode_token(token, JWT_SECRET)

        assert payload.sub == OPERATOR_ID
        assert payload.iat is not None

    def test_expired(self):
        token = create_access_token(OPERATOR_ID, JWT_SECRET, timedelta(seconds=-5))

        with pytest.raises(HTTPException) as exc_info:
            decode_token(token, JWT_SECRET)

        assert exc_info.value.status_code == 401

    def test_wrong_secret(self):
        token = create_access_token(OPERATOR_ID, "another-secret")

        with pytest.raises(HTTPException) as exc_info:
            decode_token(token, JWT_SECRET)

        assert exc_info.value.status_code == 401

    def test_garbage(self):
        with pytest.raises(HTTPException):
            decode_token("not.a.token", JWT_SECRET)


# =============================================================================
# Dependencies
# =============================================================================


class TestOperatorAccess:
    def test_wrong_secret_rejected(self, client):
        response = client.get(
            "/dashboard/metrics", headers=auth_headers(OPERATOR_ID, "another-secret")
        )

        assert response.status_code == 401

    def test_empty_admin_list_allows_operators(self, settings, chat_model, notifier):
        open_settings = replace(settings, admin_user_ids=())
        with TestClient(create_app(open_settings, chat_model=chat_model, notifier=notifier)) as client:
            response = client.get("/admin/fees/summary", headers=auth_headers(OPERATOR_ID))

        assert response.status_code == 200

    def test_skip_auth_in_development(self, settings, chat_model, notifier):
        dev = replace(settings, env="development", skip_auth=True)
        with TestClient(create_app(dev, chat_model=chat_model, notifier=notifier)) as client:
            metrics = client.get("/dashboard/metrics")
            summary = client.get("/admin/fees/summary")

        assert metrics.status_code == 200
        assert summary.status_code == 200

    def test_skip_auth_ignored_outside_development(self, settings, chat_model, notifier):
        prod = replace(settings, env="production", skip_auth=True)
        with TestClient(create_app(prod, chat_model=chat_model, notifier=notifier)) as client:
            response = client.get("/dashboard/metrics")

        assert response.status_code == 401
