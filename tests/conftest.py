"""Shared fixtures for copper_sync tests."""

import json
from unittest.mock import MagicMock

import pytest

from copper_sync.sync.contact import Contact


@pytest.fixture
def make_response():
    """Factory for mocked requests.Response objects."""

    def _make(status_code=200, body=None):
        response = MagicMock()
        response.status_code = status_code
        if body is None:
            response.content = b""
            response.json.side_effect = ValueError("No JSON")
            response.text = ""
        else:
            response.content = json.dumps(body).encode()
            response.json.return_value = body
            response.text = json.dumps(body)
        return response

    return _make


@pytest.fixture
def make_contact():
    """Factory for Contact objects with sensible defaults."""

    def _make(contact_id, email="auto", tags=None, name=None):
        if email == "auto":
            email = f"contact{contact_id}@example.com"
        return Contact(
            id=contact_id,
            name=name or f"Contact {contact_id}",
            email=email,
            tags=list(tags or []),
        )

    return _make
