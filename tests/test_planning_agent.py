"""
Unit tests for providers/planning_agent.py

Tests cover:
- Request parsing and prompt building
- Code-fence cleanup and plan parsing errors
- Per-block Places validation statuses
- generate_itinerary() with mocked litellm and Places calls
"""
import json
from unittest.mock import MagicMock, patch

import pytest

import providers.planning_agent as pa
from config import MissingCredentialsError
from TripData import AiSuggestedBlock, ValidationStatus


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

SAMPLE_REQUEST = {
    "destination": "Busan",
    "startDate": "2026-07-01",
    "endDate": "2026-07-02",
    "travelStyle": "food",
    "pace": "RELAXED",
    "mustVisit": "Haeundae, Gamcheon Culture Village\nJagalchi Market",
}

PLAN_JSON = {
    "tripTitle": "Busan by the sea",
    "summary": "Beaches and markets",
    "days": [
        {
            "date": "2026-07-01",
            "title": "Haeundae",
            "daySummary": "Beach day",
            "blocks": [
                {"startTime": "09:00", "endTime": "11:00", "category": "MORNING",
                 "placeName": "Haeundae Beach", "placeQueryHint": "Haeundae Beach Busan"},
                {"startTime": "12:00", "endTime": "13:00", "category": "LUNCH",
                 "placeName": "Mystery Noodles", "placeQueryHint": "Mystery Noodles Busan"},
            ],
        },
        {
            "date": "2026-07-02",
            "title": "Old town",
            "blocks": [
                {"startTime": "10:00", "endTime": "12:00", "category": "MORNING",
                 "placeName": "Gamcheon Culture Village"},
            ],
        },
    ],
}


def _llm_response(*contents):
    response = MagicMock()
    response.choices = []
    for content in contents:
        choice = MagicMock()
        choice.message.content = content
        response.choices.append(choice)
    return response


def _place(place_id="p1", lat=35.1587, lng=129.1604, **extra):
    return {
        "place_id": place_id,
        "geometry": {"location": {"lat": lat, "lng": lng}},
        "rating": 4.6,
        "formatted_address": "Busan, South Korea",
        **extra,
    }


def _fake_text_search(query, api_key):
    if "Mystery" in query:
        return []
    if "Gamcheon" in query:
        raise RuntimeError("quota exceeded")
    return [_place()]


# ---------------------------------------------------------------------------
# parse_plan_request / build_prompt
# ---------------------------------------------------------------------------

class TestParsePlanRequest:
    def test_camel_case_body(self):
        request = pa.parse_plan_request(SAMPLE_REQUEST)
        assert request.destination == "Busan"
        assert request.start_date == "2026-07-01"
        assert request.travel_style == "food"

    def test_must_visit_text_is_split(self):
        request = pa.parse_plan_request(SAMPLE_REQUEST)
        assert request.must_visit == ["Haeundae", "Gamcheon Culture Village", "Jagalchi Market"]

    def test_must_visit_list_kept(self):
        request = pa.parse_plan_request({**SAMPLE_REQUEST, "mustVisit": ["A", " ", "B"]})
        assert request.must_visit == ["A", "B"]

    @pytest.mark.parametrize("field", ["destination", "startDate", "endDate"])
    def test_missing_required_field(self, field):
        body = {k: v for k, v in SAMPLE_REQUEST.items() if k != field}
        with pytest.raises(pa.PlanRequestError) as exc:
            pa.parse_plan_request(body)
        assert exc.value.status_code == 400

    def test_blank_required_field(self):
        with pytest.raises(pa.PlanRequestError):
            pa.parse_plan_request({**SAMPLE_REQUEST, "destination": "   "})

    def test_non_object_body(self):
        with pytest.raises(pa.PlanRequestError):
            pa.parse_plan_request(["Busan"])


class TestBuildPrompt:
    def test_contains_request_values(self):
        prompt = pa.build_prompt(pa.parse_plan_request(SAMPLE_REQUEST))
        assert "Destination: Busan" in prompt
        assert "2026-07-01 ~ 2026-07-02" in prompt
        assert "Pace: RELAXED" in prompt
        assert "Jagalchi Market" in prompt

    def test_defaults(self):
        request = pa.parse_plan_request({"destination": "Busan", "startDate": "a", "endDate": "b"})
        prompt = pa.build_prompt(request)
        assert "Travel style: undecided" in prompt
        assert "Pace: BALANCED" in prompt
        assert "Budget level: MID" in prompt
        assert "Must-visit places: none" in prompt

    def test_forbids_model_coordinates(self):
        prompt = pa.build_prompt(pa.parse_plan_request(SAMPLE_REQUEST))
        assert "Do NOT include coordinates" in prompt
        assert '"placeQueryHint"' in prompt


# ---------------------------------------------------------------------------
# clean_json_text / parse_plan
# ---------------------------------------------------------------------------

class TestCleanJsonText:
    def test_strips_json_fence(self):
        assert pa.clean_json_text('```json\n{"a": 1}\n```') == '{"a": 1}'

    def test_strips_uppercase_fence(self):
        assert pa.clean_json_text('```JSON {"a": 1}```') == '{"a": 1}'

    def test_plain_text_untouched(self):
        assert pa.clean_json_text('  {"a": 1} ') == '{"a": 1}'


class TestParsePlan:
    def test_valid_plan(self):
        parsed = pa.parse_plan("```json\n" + json.dumps(PLAN_JSON) + "\n```")
        assert parsed["tripTitle"] == "Busan by the sea"

    def test_invalid_json_carries_raw_and_cleaned(self):
        with pytest.raises(pa.PlanParseError) as exc:
            pa.parse_plan("```json\nnot json\n```")
        detail = exc.value.to_detail()
        assert exc.value.status_code == 502
        assert detail["raw"] == "```json\nnot json\n```"
        assert detail["cleaned"] == "not json"

    @pytest.mark.parametrize("text", ['{"days": []}', '{"tripTitle": "x"}', '{"days": "soon"}', "[1, 2]"])
    def test_missing_days(self, text):
        with pytest.raises(pa.PlanShapeError):
            pa.parse_plan(text)


# ---------------------------------------------------------------------------
# validate_block / validate_day
# ---------------------------------------------------------------------------

class TestValidateBlock:
    def test_no_query_skips_lookup(self):
        with patch("providers.planning_agent.text_search") as search:
            result = pa.validate_block(AiSuggestedBlock(start_time="09:00"), "key")
        search.assert_not_called()
        assert result.validation_status == ValidationStatus.NOT_FOUND

    def test_query_hint_preferred_over_name(self):
        block = AiSuggestedBlock(place_name="Beach", place_query_hint="Haeundae Beach Busan")
        with patch("providers.planning_agent.text_search", return_value=[_place()]) as search:
            pa.validate_block(block, "key")
        search.assert_called_once_with("Haeundae Beach Busan", "key")

    def test_first_result_wins(self):
        results = [_place("first", lat=1.0, lng=2.0), _place("second", lat=3.0, lng=4.0)]
        with patch("providers.planning_agent.text_search", return_value=results):
            result = pa.validate_block(AiSuggestedBlock(place_name="Beach"), "key")
        assert result.validation_status == ValidationStatus.VALID
        assert result.place_id == "first"
        assert (result.lat, result.lng) == (1.0, 2.0)
        assert result.rating == 4.6
        assert result.address == "Busan, South Korea"

    def test_no_results(self):
        with patch("providers.planning_agent.text_search", return_value=[]):
            result = pa.validate_block(AiSuggestedBlock(place_name="Nowhere"), "key")
        assert result.validation_status == ValidationStatus.NOT_FOUND

    def test_lookup_failure_is_error(self):
        with patch("providers.planning_agent.text_search", side_effect=RuntimeError("boom")):
            result = pa.validate_block(AiSuggestedBlock(place_name="Beach", memo="keep me"), "key")
        assert result.validation_status == ValidationStatus.ERROR
        assert result.memo == "keep me"

    def test_result_without_coordinates(self):
        with patch("providers.planning_agent.text_search", return_value=[{"place_id": "p"}]):
            result = pa.validate_block(AiSuggestedBlock(place_name="Beach"), "key")
        assert result.validation_status == ValidationStatus.NOT_FOUND


class TestValidateDay:
    def test_order_preserved(self):
        blocks = [AiSuggestedBlock(place_name=n) for n in ("Haeundae", "Mystery", "Gamcheon")]
        with patch("providers.planning_agent.text_search", side_effect=_fake_text_search):
            results = pa.validate_day(blocks, "key")
        assert [r.place_name for r in results] == ["Haeundae", "Mystery", "Gamcheon"]
        assert [r.validation_status for r in results] == [
            ValidationStatus.VALID,
            ValidationStatus.NOT_FOUND,
            ValidationStatus.ERROR,
        ]

    def test_empty_day(self):
        assert pa.validate_day([], "key") == []


# ---------------------------------------------------------------------------
# generate_itinerary
# ---------------------------------------------------------------------------

class TestGenerateItinerary:
    def test_full_pipeline(self, credentials):
        request = pa.parse_plan_request(SAMPLE_REQUEST)
        fenced = "```json\n" + json.dumps(PLAN_JSON) + "\n```"
        with patch("providers.planning_agent.litellm.completion", return_value=_llm_response(fenced)) as llm, \
             patch("providers.planning_agent.text_search", side_effect=_fake_text_search):
            result = pa.generate_itinerary(request)

        assert llm.call_args.kwargs["api_key"] == "test-gemini-key"
        assert result.trip_title == "Busan by the sea"
        assert result.destination == "Busan"
        assert result.start_date == "2026-07-01"
        assert [d.date for d in result.days] == ["2026-07-01", "2026-07-02"]
        assert result.days[0].day_summary == "Beach day"
        assert [b.validation_status for b in result.days[0].blocks] == [
            ValidationStatus.VALID,
            ValidationStatus.NOT_FOUND,
        ]
        assert result.days[1].blocks[0].validation_status == ValidationStatus.ERROR

    def test_fragments_concatenated(self, credentials):
        text = json.dumps(PLAN_JSON)
        half = len(text) // 2
        with patch("providers.planning_agent.litellm.completion", return_value=_llm_response(text[:half], text[half:])), \
             patch("providers.planning_agent.text_search", return_value=[_place()]):
            result = pa.generate_itinerary(pa.parse_plan_request(SAMPLE_REQUEST))
        assert len(result.days) == 2

    def test_missing_credentials_checked_first(self, no_credentials):
        with patch("providers.planning_agent.litellm.completion") as llm:
            with pytest.raises(MissingCredentialsError):
                pa.generate_itinerary(pa.parse_plan_request(SAMPLE_REQUEST))
        llm.assert_not_called()

    def test_missing_maps_key(self, monkeypatch, no_credentials):
        monkeypatch.setenv("GEMINI_API_KEY", "k")
        with pytest.raises(MissingCredentialsError) as exc:
            pa.require_credentials()
        assert exc.value.provider == "Google Maps"

    def test_empty_output(self, credentials):
        with patch("providers.planning_agent.litellm.completion", return_value=_llm_response("", None)):
            with pytest.raises(pa.EmptyGenerationError) as exc:
                pa.generate_itinerary(pa.parse_plan_request(SAMPLE_REQUEST))
        assert exc.value.status_code == 502

    def test_provider_failure_relays_status(self, credentials):
        error = RuntimeError("rate limited")
        error.status_code = 429
        with patch("providers.planning_agent.litellm.completion", side_effect=error):
            with pytest.raises(pa.GenerationError) as exc:
                pa.generate_itinerary(pa.parse_plan_request(SAMPLE_REQUEST))
        assert exc.value.status_code == 429
        assert exc.value.to_detail()["details"] == "rate limited"

    def test_provider_failure_without_status(self, credentials):
        with patch("providers.planning_agent.litellm.completion", side_effect=RuntimeError("down")):
            with pytest.raises(pa.GenerationError) as exc:
                pa.generate_itinerary(pa.parse_plan_request(SAMPLE_REQUEST))
        assert exc.value.status_code == 502

    def test_unparsable_output(self, credentials):
        with patch("providers.planning_agent.litellm.completion", return_value=_llm_response("Sorry, I can't")):
            with pytest.raises(pa.PlanParseError):
                pa.generate_itinerary(pa.parse_plan_request(SAMPLE_REQUEST))
