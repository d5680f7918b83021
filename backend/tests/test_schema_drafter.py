import asyncio
import json
from types import SimpleNamespace

import pytest

from scraping.errors import GenerationFault
from services.schema_drafter import draft_service, parse_draft

VALID_DRAFT = {
    "name": "Event Hosts",
    "description": "Names and pictures of the hosts of a lu.ma event",
    "input_schema": "{event_id: string}",
    "output_schema": "array<{name: string, picture_url?: string}>",
    "example_args": '{"event_id": "evt-7xmwzqze"}',
}


class FakeOpenAI:
    def __init__(self, content):
        async def create(**kwargs):
            self.prompt = kwargs["messages"][0]["content"]
            return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])

        self.prompt = ""
        self.chat = SimpleNamespace(completions=SimpleNamespace(create=create))


def test_parses_fenced_json_reply():
    draft = parse_draft("```json\n" + json.dumps(VALID_DRAFT) + "\n```")
    assert draft.name == "Event Hosts"
    assert draft.schema_spec().output_schema == VALID_DRAFT["output_schema"]


def test_object_example_args_are_serialized():
    data = dict(VALID_DRAFT, example_args={"event_id": "evt-1"})
    assert json.loads(parse_draft(json.dumps(data)).example_args) == {"event_id": "evt-1"}


@pytest.mark.parametrize(
    "reply",
    [
        "Sure! Here is your configuration.",
        json.dumps(["not", "an", "object"]),
        json.dumps({"name": "Missing fields"}),
        json.dumps(dict(VALID_DRAFT, output_schema="z.array(z.string())")),
        json.dumps(dict(VALID_DRAFT, example_args='{"page": 2}')),
    ],
)
def test_rejects_unusable_drafts(reply):
    with pytest.raises(GenerationFault):
        parse_draft(reply)


def test_draft_service_renders_prompt():
    client = FakeOpenAI(json.dumps(VALID_DRAFT))
    draft = asyncio.run(draft_service("https://lu.ma/7xmwzqze", "who is hosting?", client=client))

    assert draft.input_schema == "{event_id: string}"
    assert "URL to scrape: https://lu.ma/7xmwzqze" in client.prompt
    assert "who is hosting?" in client.prompt
    assert "{key: T, other?: T}" in client.prompt
