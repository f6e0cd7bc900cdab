"""Test rate limiting functionality."""
import pytest

from tests.utils import API, PASSWORD, register_member


@pytest.mark.integration
@pytest.mark.rate_limit
class TestRateLimiting:
    """Test rate limiting on member endpoints."""

    def test_login_rate_limit(self, client):
        """Login allows 10 attempts per minute from one address."""
        for i in range(10):
            response = client.post(f"{API}/auth/login", json={"login": "12345678Z", "password": PASSWORD})
            assert response.status_code == 401, f"Request {i+1} should reach the handler"

        response = client.post(f"{API}/auth/login", json={"login": "12345678Z", "password": PASSWORD})
        assert response.status_code == 429

    def test_register_rate_limit(self, client):
        """Registration allows 5 attempts per minute from one address."""
        register_member(client)
        for i in range(4):
            response = client.post(
                f"{API}/auth/register",
                json={"dni": "12345678Z", "nombre": "Ana", "email": "ana@bomberos.test", "password": PASSWORD},
            )
            assert response.status_code == 400, f"Request {i+2} should reach the handler"

        response = client.post(
            f"{API}/auth/register",
            json={"dni": "00000000T", "nombre": "Luis", "email": "luis@bomberos.test", "password": PASSWORD},
        )
        assert response.status_code == 429

    def test_limits_are_per_client_address(self, client):
        for _ in range(10):
            client.post(
                f"{API}/auth/login",
                json={"login": "12345678Z", "password": PASSWORD},
                headers={"X-Forwarded-For": "203.0.113.7"},
            )

        response = client.post(
            f"{API}/auth/login",
            json={"login": "12345678Z", "password": PASSWORD},
            headers={"X-Forwarded-For": "203.0.113.8"},
        )
        assert response.status_code == 401
