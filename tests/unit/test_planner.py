"""Unit tests for planner.py."""

import json

import pytest

from sandpatch.planner import PLAN_FORMAT, Planner


class StubClient:
    def __init__(self, text):
        self.text = text
        self.calls = []

    async def generate(self, prompt, format=None):
        self.calls.append((prompt, format))
        return {"response": self.text}


@pytest.mark.asyncio
async def test_plan_parses_json():
    client = StubClient(json.dumps({"intent": "add subtract", "files": ["calculator.rb"]}))

    plan = await Planner(client).plan("Add subtract")

    assert plan["intent"] == "add subtract"
    prompt, fmt = client.calls[0]
    assert "All edits must use apply_patch" in prompt
    assert "Add subtract" in prompt
    assert fmt == PLAN_FORMAT


@pytest.mark.asyncio
async def test_plan_falls_back_to_text():
    plan = await Planner(StubClient("just edit it")).plan("x")
    assert plan == {"intent": "just edit it"}


def test_initial_messages():
    messages = Planner.initial_messages("Fix bug", {"intent": "fix"})
    assert messages[0]["role"] == "system"
    assert "apply_patch needs the sha256" in messages[0]["content"]
    assert "Fix bug" in messages[1]["content"]
    assert '"intent": "fix"' in messages[1]["content"]
