"""Shared fixtures."""

import io

import pytest
from PIL import Image

from agent_media.core.config import get_test_settings, settings
from agent_media.core.logging import setup_logging
from agent_media.core.types import ActionContext

CREDENTIAL_ENV_VARS = ("FAL_API_KEY", "REPLICATE_API_TOKEN", "RUNPOD_API_KEY", "AI_GATEWAY_API_KEY")


@pytest.fixture(scope="session", autouse=True)
def structured_logging():
    """Route logs to stderr as the CLI does; stdout stays reserved for envelopes."""
    setup_logging()


@pytest.fixture(autouse=True)
def clean_credentials(monkeypatch):
    """No test sees provider credentials from the developer's shell or .env."""
    for env_var in CREDENTIAL_ENV_VARS:
        monkeypatch.delenv(env_var, raising=False)

    test_settings = get_test_settings()
    monkeypatch.setattr(settings, "app", test_settings.app)
    monkeypatch.setattr(settings, "providers", test_settings.providers)


def encode_image(width=400, height=300, mode="RGB", color=(200, 30, 30), fmt="PNG") -> bytes:
    buffer = io.BytesIO()
    Image.new(mode, (width, height), color).save(buffer, fmt)
    return buffer.getvalue()


@pytest.fixture
def make_image():
    """Factory for encoded test images."""
    return encode_image


@pytest.fixture
def context(tmp_path):
    return ActionContext(output_dir=str(tmp_path / "out"))


@pytest.fixture
def png_file(tmp_path):
    path = tmp_path / "photo.png"
    path.write_bytes(encode_image())
    return path


@pytest.fixture
def jpg_file(tmp_path):
    path = tmp_path / "photo.jpg"
    path.write_bytes(encode_image(fmt="JPEG"))
    return path
