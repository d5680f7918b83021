import pytest

from fakes import EVENT_PAGE, HOSTS_OUTPUT_SCHEMA
from scraping.schemas import NetworkEvent, SchemaSpec, Transcript


@pytest.fixture
def hosts_spec() -> SchemaSpec:
    return SchemaSpec(
        input_schema="{event_id: string}",
        output_schema=HOSTS_OUTPUT_SCHEMA,
        example_args='{ event_id: "evt-7xmwzqze" }',
    )


@pytest.fixture
def event_transcript() -> Transcript:
    return Transcript(
        url="https://lu.ma/7xmwzqze",
        events=(
            NetworkEvent(
                url="https://api.lu.ma/event/get?event_api_id=evt-7xmwzqze",
                method="GET",
                resource_type="fetch",
                status=200,
                headers={"content-type": "application/json"},
                body=EVENT_PAGE,
                timestamp=1_700_000_000_000,
            ),
            NetworkEvent(
                url="https://lu.ma/7xmwzqze",
                method="GET",
                resource_type="document",
                status=200,
                headers={"content-type": "text/html"},
                body="<html>\n<body>\n</body>\n</html>",
                timestamp=1_700_000_000_100,
            ),
        ),
        replay_id="sess-123",
    )
