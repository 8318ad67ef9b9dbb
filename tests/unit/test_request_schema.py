from natureup.core.request_schema import FIELD_MESSAGES, validate_request


def _fields(result) -> list[str]:
    return [err.field for err in result.errors]


def test_minimal_envelope_is_valid(valid_envelope) -> None:
    result = validate_request(valid_envelope)
    assert result.valid is True
    assert result.errors == []
    assert result.request is not None
    assert result.request.user.id == "u1"
    assert result.request.context.location is None


def test_full_envelope_is_valid(valid_envelope) -> None:
    valid_envelope["user"]["healthGoals"] = ["sleep better", "reduce stress"]
    valid_envelope["user"]["preferences"] = {"voice": "calm"}
    valid_envelope["input"]["language"] = "en"
    valid_envelope["context"].update(
        {
            "excursionId": "exc-1",
            "location": {"lat": 37.77, "lng": -122.47, "accuracyMeters": 12},
            "weatherSummary": {"temperature": 18, "condition": "Clouds"},
        }
    )
    result = validate_request(valid_envelope)
    assert result.valid is True
    assert result.request.context.location.lng == -122.47


def test_non_object_payload_reports_root() -> None:
    for payload in ([], "hello", 42, None):
        result = validate_request(payload)
        assert result.valid is False
        assert _fields(result) == ["root"]


def test_missing_sections_each_reported(valid_envelope) -> None:
    result = validate_request({"clientVersion": "1.0.0"})
    assert result.valid is False
    assert set(_fields(result)) == {"user", "input", "context", "capabilities"}
    assert result.errors[0].message == FIELD_MESSAGES[result.errors[0].field]


def test_boolean_capabilities_are_strict(valid_envelope) -> None:
    valid_envelope["capabilities"]["canUseLocation"] = "yes"
    result = validate_request(valid_envelope)
    assert result.valid is False
    assert _fields(result) == ["capabilities.canUseLocation"]
    assert result.errors[0].message == "canUseLocation must be a boolean"


def test_modality_must_be_voice_or_text(valid_envelope) -> None:
    valid_envelope["input"]["modality"] = "video"
    result = validate_request(valid_envelope)
    assert _fields(result) == ["input.modality"]


def test_empty_required_strings_rejected(valid_envelope) -> None:
    valid_envelope["user"]["id"] = ""
    valid_envelope["clientVersion"] = ""
    result = validate_request(valid_envelope)
    assert set(_fields(result)) == {"user.id", "clientVersion"}


def test_numeric_strings_are_not_coordinates(valid_envelope) -> None:
    valid_envelope["context"]["location"] = {"lat": "37.7", "lng": -122.4}
    result = validate_request(valid_envelope)
    assert _fields(result) == ["context.location.lat"]


def test_health_goals_errors_collapse_to_one_field(valid_envelope) -> None:
    valid_envelope["user"]["healthGoals"] = ["ok", 1, 2]
    result = validate_request(valid_envelope)
    assert _fields(result) == ["user.healthGoals"]


def test_null_optional_fields_are_rejected(valid_envelope) -> None:
    valid_envelope["user"]["healthGoals"] = None
    valid_envelope["input"]["language"] = None
    valid_envelope["context"]["excursionId"] = None
    valid_envelope["context"]["location"] = None
    valid_envelope["context"]["weatherSummary"] = None
    result = validate_request(valid_envelope)
    assert result.valid is False
    assert _fields(result) == [
        "user.healthGoals",
        "input.language",
        "context.excursionId",
        "context.location",
        "context.weatherSummary",
    ]
    assert result.errors[1].message == "Language must be a string"


def test_absent_optional_fields_default_to_none(valid_envelope) -> None:
    result = validate_request(valid_envelope)
    assert result.valid is True
    assert result.request.input.language is None
    assert result.request.user.healthGoals is None
    assert result.request.context.weatherSummary is None


def test_unknown_fields_ignored(valid_envelope) -> None:
    valid_envelope["debug"] = True
    valid_envelope["user"]["nickname"] = "sam"
    assert validate_request(valid_envelope).valid is True
