import pytest

from errors import ValidationFailed
from schemas import ChoiceListAnswer, TextAnswer
from validation import parse_body, validate_submission

SID = "6f1c2f7e-3d4b-4a8e-9c1f-2b7a5d9e0c11"


def _fields(body):
    with pytest.raises(ValidationFailed) as exc:
        validate_submission(body)
    return [d["field"] for d in exc.value.details]


def test_valid_submission_is_normalized_into_tagged_answers():
    sub = validate_submission({
        "survey_id": SID.upper(),
        "response_data": {"q1": "x" * 5000, "q2": ["a"] * 50, "q3": []},
        "user_agent": "u" * 500,
    })
    assert sub.survey_id == SID
    assert isinstance(sub.response_data["q1"], TextAnswer)
    assert isinstance(sub.response_data["q2"], ChoiceListAnswer)
    assert sub.response_data["q2"].kind == "choices"
    assert sub.response_data_json() == {"q1": "x" * 5000, "q2": ["a"] * 50, "q3": []}


def test_user_agent_is_optional():
    sub = validate_submission({"survey_id": SID, "response_data": {}})
    assert sub.user_agent is None
    assert sub.response_data == {}


def test_all_errors_are_collected():
    fields = _fields({"survey_id": "not-a-uuid", "response_data": {"a": None, "b": True}, "user_agent": 7})
    assert fields == ["survey_id", "response_data.a", "response_data.b", "user_agent"]


@pytest.mark.parametrize("body", [None, [], "text", 3])
def test_body_must_be_an_object(body):
    assert _fields(body) == ["body"]


@pytest.mark.parametrize("data", [[], "answers", 1])
def test_response_data_must_be_a_mapping(data):
    assert _fields({"survey_id": SID, "response_data": data}) == ["response_data"]


def test_missing_required_fields():
    with pytest.raises(ValidationFailed) as exc:
        validate_submission({})
    assert exc.value.details == [
        {"field": "survey_id", "message": "Required"},
        {"field": "response_data", "message": "Required"},
    ]


@pytest.mark.parametrize("sid", [
    "6f1c2f7e3d4b4a8e9c1f2b7a5d9e0c11",
    "{6f1c2f7e-3d4b-4a8e-9c1f-2b7a5d9e0c11}",
    "urn:uuid:6f1c2f7e-3d4b-4a8e-9c1f-2b7a5d9e0c11",
    "6f1c2f7e-3d4b-4a8e-9c1f-2b7a5d9e0c1z",
])
def test_survey_id_must_be_a_canonical_uuid(sid):
    assert _fields({"survey_id": sid, "response_data": {}}) == ["survey_id"]


def test_list_item_errors_point_at_the_index():
    with pytest.raises(ValidationFailed) as exc:
        validate_submission({"survey_id": SID, "response_data": {"q": ["ok", "y" * 501, {"x": 1}]}})
    assert exc.value.details == [
        {"field": "response_data.q.1", "message": "String must contain at most 500 character(s)"},
        {"field": "response_data.q.2", "message": "Expected string, received object"},
    ]


def test_text_ceiling_applies_to_every_string_answer():
    assert _fields({"survey_id": SID, "response_data": {"q1": "x" * 5001}}) == ["response_data.q1"]


def test_explicit_null_user_agent_is_rejected():
    assert _fields({"survey_id": SID, "response_data": {}, "user_agent": None}) == ["user_agent"]


@pytest.mark.parametrize("sid", [
    "00000000000000000000000000000000----",
    "6f1c2f7e3-d4b-4a8e-9c1f-2b7a5d9e0c11",
    "6f1c2f7e-3d4b4a8e-9c1f-2b7a-5d9e0c11",
])
def test_misplaced_hyphens_are_not_a_uuid(sid):
    assert _fields({"survey_id": sid, "response_data": {}}) == ["survey_id"]


@pytest.mark.parametrize("raw", [b"{not json", b"", b"\xff\xfe"])
def test_parse_body_rejects_malformed_json(raw):
    with pytest.raises(ValidationFailed) as exc:
        parse_body(raw)
    assert exc.value.details[0]["field"] == "body"


def test_parse_body_decodes_any_json_value():
    assert parse_body(b'{"survey_id": "x"}') == {"survey_id": "x"}
    assert parse_body(b"[1, 2]") == [1, 2]
