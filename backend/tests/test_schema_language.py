import pytest
from pydantic import ValidationError

from scraping.errors import SchemaSyntaxError
from services.schema_language import compile_schema, parse_literal

HOSTS = "array<{name: string(min=1), picture_url?: string}>"


def test_hosts_schema_accepts_valid_output():
    validator = compile_schema(HOSTS)
    validator.validate_python([{"name": "Ada", "picture_url": "https://x/a.png"}, {"name": "Grace"}])
    validator.validate_python([])


@pytest.mark.parametrize(
    "value",
    [
        [{"picture_url": "https://x/a.png"}],
        [{"name": ""}],
        [{"name": 42}],
        {"name": "Ada"},
        "Ada",
    ],
)
def test_hosts_schema_rejects_invalid_output(value):
    with pytest.raises(ValidationError):
        compile_schema(HOSTS).validate_python(value)


def test_extra_keys_are_ignored():
    compile_schema("{id: integer}").validate_python({"id": 1, "other": "x"})


def test_postfix_array_and_unions():
    validator = compile_schema("(string | null)[]")
    validator.validate_python(["a", None])
    with pytest.raises(ValidationError):
        validator.validate_python([1])


def test_numbers_and_bounds():
    compile_schema("number").validate_python(1.5)
    compile_schema("number").validate_python(3)
    compile_schema("integer(min=0, max=10)").validate_python(10)
    with pytest.raises(ValidationError):
        compile_schema("integer(min=0, max=10)").validate_python(11)
    with pytest.raises(ValidationError):
        compile_schema("boolean").validate_python("true")


def test_string_pattern_and_literals():
    compile_schema('string(pattern="^evt-")').validate_python("evt-1")
    with pytest.raises(ValidationError):
        compile_schema('string(pattern="^evt-")').validate_python("cal-1")
    compile_schema('"usd" | "eur"').validate_python("eur")
    with pytest.raises(ValidationError):
        compile_schema('"usd" | "eur"').validate_python("gbp")


def test_quoted_keys_and_empty_object():
    compile_schema('{"first name": string}').validate_python({"first name": "Ada"})
    compile_schema("{}").validate_python({})
    compile_schema("array<any>(min=1)").validate_python([1, "a", None])
    with pytest.raises(ValidationError):
        compile_schema("array<any>(min=1)").validate_python([])


@pytest.mark.parametrize(
    "text",
    [
        "",
        "z.array(z.object({ name: z.string() }))",
        "array<string",
        "{name string}",
        "strng",
        "string(min=)",
        "integer(pattern='x')",
        "__import__('os').system('echo hi')",
        "string extra",
    ],
)
def test_rejects_malformed_or_executable_text(text):
    with pytest.raises(SchemaSyntaxError):
        compile_schema(text)


def test_syntax_error_reports_position():
    with pytest.raises(SchemaSyntaxError) as excinfo:
        compile_schema("{name: strng}")
    assert excinfo.value.position == 7
    assert "position 7" in str(excinfo.value)


@pytest.mark.parametrize(
    "text,expected",
    [
        ('{"event_id": "evt-1"}', {"event_id": "evt-1"}),
        ("{'event_id': 'evt-1'}", {"event_id": "evt-1"}),
        ('{ event_id: "evt-1" }', {"event_id": "evt-1"}),
        ("{ page: 2, tags: ['a', 'b'], }", {"page": 2, "tags": ["a", "b"]}),
        ("[1, 2]", [1, 2]),
        ('{ name: "O\'Brien" }', {"name": "O'Brien"}),
        ('{ q: "a, b: c" }', {"q": "a, b: c"}),
        ("{ q: 'say \"hi\", ok' }", {"q": 'say "hi", ok'}),
        ("{ note: 'it\\'s', done: false, missing: undefined }", {"note": "it's", "done": False, "missing": None}),
    ],
)
def test_parse_literal(text, expected):
    assert parse_literal(text) == expected


@pytest.mark.parametrize("text", ["", "   ", "{ id: }", "getArgs()"])
def test_parse_literal_rejects_non_literals(text):
    with pytest.raises(ValueError):
        parse_literal(text)
