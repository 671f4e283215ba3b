"""Shared test helpers: config files, seed data, and session cookies."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from pathlib import Path

    from httpx import AsyncClient, Response

SESSION_COOKIE_NAME = "skillset_session"
ADMIN_USERNAME = "admin"
DEFAULT_PASSWORD = "correct-horse"

SEED_TASKS: list[dict[str, Any]] = [
    {"id": "1", "title": "Make a Sandwich", "difficulty": "Low", "reward": 100},
    {"id": "3", "title": "Sort Recycling", "difficulty": "Medium", "reward": 150},
    {
        "id": "5",
        "title": "Load Dishwasher",
        "difficulty": "High",
        "reward": 200,
        "description": "Rinse first",
    },
]

_SEED_YAML = """\
tasks:
  - id: "1"
    title: "Make a Sandwich"
    difficulty: "Low"
    reward: 100
  - id: "3"
    title: "Sort Recycling"
    difficulty: "Medium"
    reward: 150
  - id: "5"
    title: "Load Dishwasher"
    difficulty: "High"
    reward: 200
    description: "Rinse first"
"""


def write_seed_file(tmp_path: Path) -> Path:
    """Write the standard three-task seed file."""
    seed_path = tmp_path / "tasks.yaml"
    seed_path.write_text(_SEED_YAML)
    return seed_path


def config_yaml(tmp_path: Path, *, seed_path: Path | None = None, max_body_size: int = 4096) -> str:
    """Build a complete service config rooted in a temp directory."""
    content = f"""\
service:
  name: "skillset"
  version: "0.1.0"
server:
  host: "127.0.0.1"
  port: 8000
  log_level: "info"
logging:
  level: "WARNING"
  directory: "{tmp_path / "logs"}"
database:
  path: "{tmp_path / "skillset.db"}"
request:
  max_body_size: {max_body_size}
auth:
  session_cookie_name: "{SESSION_COOKIE_NAME}"
  session_ttl_seconds: 3600
  cookie_secure: false
  password_hash_rounds: 1000
  admin_usernames:
    - "{ADMIN_USERNAME}"
limits:
  max_username_length: 32
  min_password_length: 4
  max_password_length: 128
storage:
  root_path: "{tmp_path / "objects"}"
  namespace: "uploads"
  public_base_url: "http://test"
  upload_url_ttl_seconds: 600
  signing_key_path: "{tmp_path / "keys" / "upload.pem"}"
  max_object_size: 1024
contact:
  base_url: "http://mock-email:9000"
  send_path: "/emails"
  api_key: "re_test_key"
  from_email: "Skillset <noreply@skillset.test>"
  to_email: "team@skillset.test"
  timeout_seconds: 5
price:
  base_url: "http://mock-price:9001"
  token_address: "TOKEN123"
  timeout_seconds: 5
"""
    if seed_path is not None:
        content += f'seed:\n  tasks_path: "{seed_path}"\n'
    return content


def write_config(tmp_path: Path, **kwargs: Any) -> Path:
    """Write a config file into the temp directory and return its path."""
    config_path = tmp_path / "config.yaml"
    config_path.write_text(config_yaml(tmp_path, **kwargs))
    return config_path


def session_id_from(response: Response) -> str:
    """Extract the session identifier from a Set-Cookie header."""
    header = response.headers.get("set-cookie", "")
    name, _, rest = header.partition("=")
    assert name == SESSION_COOKIE_NAME, header
    return rest.split(";", maxsplit=1)[0]


def auth_headers(session_id: str) -> dict[str, str]:
    """Cookie header carrying a session."""
    return {"Cookie": f"{SESSION_COOKIE_NAME}={session_id}"}


async def register_user(
    client: AsyncClient,
    username: str,
    password: str = DEFAULT_PASSWORD,
) -> tuple[dict[str, Any], dict[str, str]]:
    """Register via the API and return (user body, auth headers)."""
    response = await client.post(
        "/api/auth/register",
        json={"username": username, "password": password},
    )
    assert response.status_code == 200, response.text
    session_id = session_id_from(response)
    client.cookies.clear()
    return response.json(), auth_headers(session_id)
