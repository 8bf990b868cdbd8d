import json
import pathlib
import sys
from typing import Any

import pytest
from pydantic import SecretStr

PROJECT_ROOT = pathlib.Path(__file__).resolve().parents[1]
SRC_DIR = PROJECT_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from genui.config import Settings  # noqa: E402
from genui.stream.channel import EventChannel  # noqa: E402


@pytest.fixture
def settings() -> Settings:
    return Settings(
        openai_api_key=SecretStr("sk-test"),
        anthropic_api_key=SecretStr("ak-test"),
        yelp_api_key=SecretStr("yelp-test"),
        oxylabs_username="user",
        oxylabs_password=SecretStr("secret"),
        fal_key=SecretStr("fal-test"),
        default_model="gpt-4o-mini",
        system_prompt_path=None,
        interaction_log_path=None,
    )


async def drain_channel(channel: EventChannel) -> list[Any]:
    """Collect every payload written to a finished channel.

    JSON payloads are decoded; the terminal sentinel is returned verbatim.
    """

    payloads: list[Any] = []
    async for event in channel.events():
        data = event["data"]
        try:
            payloads.append(json.loads(data))
        except (TypeError, json.JSONDecodeError):
            payloads.append(data)
    return payloads


@pytest.fixture
def drain():
    return drain_channel
