"""Input cleaning and validation for member and poll fields.

Free text is stored as plain text with tags removed; escaping on output is
left to whatever renders it.
"""
import re
from typing import Optional

from sepei.core.constants import MIN_PASSWORD_LENGTH

MAX_POLL_TITLE_LENGTH = 200
MAX_POLL_DESCRIPTION_LENGTH = 2000
MAX_OPTION_TEXT_LENGTH = 200
MAX_NAME_LENGTH = 100
MAX_TOKEN_LENGTH = 100  # issued tokens are 43 characters

TAG_PATTERN = re.compile(r"<[^>]*>")
WHITESPACE_PATTERN = re.compile(r"\s+")
TOKEN_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")

DNI_LETTERS = "TRWAGMYFPDXBNJZSQVHLCKE"
DNI_PATTERN = re.compile(r"^[0-9]{8}[A-Z]$")
NIE_PATTERN = re.compile(r"^[XYZ][0-9]{7}[A-Z]$")
EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def sanitize_text(text: str, max_length: Optional[int] = None, strip_html: bool = True) -> str:
    """
    Clean a free-text field: trim, drop tags and collapse runs of whitespace.

    The length limit applies to the trimmed input, before tags are removed.

    Raises:
        ValueError: for non-strings, over-long input, or stray ``<``/``>``
        left after tag removal
    """
    if not isinstance(text, str):
        raise ValueError("Input must be a string")

    cleaned = text.strip()
    if max_length and len(cleaned) > max_length:
        raise ValueError(f"Input exceeds maximum length of {max_length} characters")

    if strip_html:
        cleaned = TAG_PATTERN.sub("", cleaned)
    if "<" in cleaned or ">" in cleaned:
        raise ValueError("Input contains invalid HTML-like patterns")

    return WHITESPACE_PATTERN.sub(" ", cleaned).strip()


def _required_text(text: str, max_length: int, label: str) -> str:
    cleaned = sanitize_text(text, max_length=max_length)
    if not cleaned:
        raise ValueError(f"{label} cannot be empty")
    return cleaned


def sanitize_poll_title(title: str) -> str:
    return _required_text(title, MAX_POLL_TITLE_LENGTH, "Poll title")


def sanitize_option_text(text: str) -> str:
    return _required_text(text, MAX_OPTION_TEXT_LENGTH, "Option text")


def normalize_voter_id(identifier: Optional[str]) -> str:
    """
    Normalize a voter identifier (DNI/NIE) into its deduplication key.

    Whitespace and hyphens are removed and letters upper-cased, so
    ``"12345678-z "`` and ``"12345678Z"`` map to the same voter.
    Returns an empty string for missing identifiers.
    """
    if not identifier:
        return ""
    return re.sub(r"[\s-]", "", identifier).upper()


def validate_dni(dni: str) -> str:
    """
    Validate a Spanish DNI or NIE including its control letter.

    Args:
        dni: Raw identifier as typed by the member

    Returns:
        The normalized identifier

    Raises:
        ValueError: If the format or the control letter is wrong
    """
    normalized = normalize_voter_id(dni)

    if NIE_PATTERN.match(normalized):
        prefix = "XYZ".index(normalized[0])
        number = int(f"{prefix}{normalized[1:8]}")
    elif DNI_PATTERN.match(normalized):
        number = int(normalized[:8])
    else:
        raise ValueError("DNI/NIE format is invalid")

    if normalized[-1] != DNI_LETTERS[number % 23]:
        raise ValueError("DNI/NIE control letter is invalid")

    return normalized


def validate_email(email: str) -> str:
    """Lower-case and validate an email address."""
    if not isinstance(email, str):
        raise ValueError("Email must be a string")

    normalized = email.strip().lower()
    if not EMAIL_PATTERN.match(normalized):
        raise ValueError("Email format is invalid")

    return normalized


def validate_password_strength(password: str) -> str:
    """Require a minimum length plus upper-case, lower-case and digit characters."""
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        raise ValueError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")
    if not re.search(r"[A-Z]", password):
        raise ValueError("Password must contain an uppercase letter")
    if not re.search(r"[a-z]", password):
        raise ValueError("Password must contain a lowercase letter")
    if not re.search(r"[0-9]", password):
        raise ValueError("Password must contain a number")
    return password


def validate_token_format(token: str) -> str:
    """Cheap shape check on a presented session token before any database lookup."""
    if not isinstance(token, str):
        raise ValueError("Token must be a string")

    token = token.strip()
    if not token or len(token) > MAX_TOKEN_LENGTH:
        raise ValueError("Token length is invalid")
    if not TOKEN_PATTERN.match(token):
        raise ValueError("Token contains characters outside URL-safe base64")
    return token
