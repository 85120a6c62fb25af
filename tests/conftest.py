"""
Global pytest configuration and fixtures.
"""

import pytest

from blizzard_auth.models import BlizzardAuthConfigModel


@pytest.fixture
def blizzard_config() -> BlizzardAuthConfigModel:
    return BlizzardAuthConfigModel(
        client_id="cid",
        client_secret="secret",
        callback_path="/auth/blizzard/callback",
    )
