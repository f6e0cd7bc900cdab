from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

from fastapi.testclient import TestClient

API = "/api/v1"
PASSWORD = "Bomberos2025"


def poll_payload(
    titulo: str = "Horario",
    opciones: Optional[List[str]] = None,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    **fields,
) -> dict:
    """Body for POST /admin/polls: published, open from one hour ago to one hour ahead."""
    now = datetime.now(timezone.utc)
    payload = {
        "titulo": titulo,
        "tipo": "votacion",
        "fecha_inicio": (start or now - timedelta(hours=1)).isoformat(),
        "fecha_fin": (end or now + timedelta(hours=1)).isoformat(),
        "publicado": True,
        "opciones": opciones or ["Turno A", "Turno B"],
    }
    payload.update(fields)
    return payload


def create_poll(admin_client: TestClient, **kwargs) -> int:
    response = admin_client.post(f"{API}/admin/polls", json=poll_payload(**kwargs))
    assert response.status_code == 200, response.text
    return response.json()["poll_id"]


def option_ids(client: TestClient, poll_id: int) -> Dict[str, int]:
    """Option ids of a poll keyed by their text, read through the admin listing."""
    polls = client.get(f"{API}/admin/polls").json()
    poll = next(poll for poll in polls if poll["id"] == poll_id)
    return {option["texto"]: option["id"] for option in poll["opciones"]}


def register_member(
    client: TestClient,
    dni: str = "12345678Z",
    email: str = "ana@bomberos.test",
    nombre: str = "Ana",
) -> int:
    response = client.post(
        f"{API}/auth/register",
        json={"dni": dni, "nombre": nombre, "email": email, "password": PASSWORD},
    )
    assert response.status_code == 200, response.text
    return response.json()["user_id"]


def enable_member(admin_client: TestClient, user_id: int) -> None:
    """Verify a member's identity and grant them the right to vote."""
    for flag in ("verified", "voting-authorization"):
        response = admin_client.put(f"{API}/admin/users/{user_id}/{flag}", json={"value": True})
        assert response.status_code == 200, response.text


def login(client: TestClient, login_name: str = "12345678Z") -> Dict[str, str]:
    """Log a member in and return the Authorization header for their session."""
    response = client.post(f"{API}/auth/login", json={"login": login_name, "password": PASSWORD})
    assert response.status_code == 200, response.text
    # Keep later anonymous requests anonymous
    client.cookies.delete("session_token")
    return {"Authorization": f"Bearer {response.json()['access_token']}"}


def voting_member(admin_client: TestClient, dni: str = "12345678Z", email: str = "ana@bomberos.test") -> Dict[str, str]:
    """Register, enable and log in a member in one go."""
    user_id = register_member(admin_client, dni=dni, email=email)
    enable_member(admin_client, user_id)
    return login(admin_client, dni)
