from datetime import timedelta

import jwt
import pytest

from app.core.config import settings
from app.core.security import create_access_token, verify_token


@pytest.mark.unit
class TestAccessTokens:

    def test_round_trip_claims(self) -> None:
        token = create_access_token("nurse-1", "tenant-north", ["beds:read"])

        payload = verify_token(token)

        assert payload["sub"] == "nurse-1"
        assert payload["tenant_id"] == "tenant-north"
        assert payload["permissions"] == ["beds:read"]

    def test_expired_token(self) -> None:
        token = create_access_token("nurse-1", "tenant-north", [], expires_delta=timedelta(minutes=-1))

        assert verify_token(token) is None

    def test_wrong_token_type(self) -> None:
        token = create_access_token("nurse-1", "tenant-north", [])

        assert verify_token(token, "refresh") is None

    def test_token_without_tenant(self) -> None:
        token = jwt.encode(
            {"sub": "nurse-1", "token_type": "access", "permissions": []},
            settings.SECRET_KEY,
            algorithm=settings.ALGORITHM
        )

        assert verify_token(token) is None

    def test_foreign_signature(self) -> None:
        token = jwt.encode(
            {"sub": "nurse-1", "tenant_id": "tenant-north", "token_type": "access"},
            "not-our-secret",
            algorithm=settings.ALGORITHM
        )

        assert verify_token(token) is None
