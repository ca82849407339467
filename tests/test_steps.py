"""Tests for step pagination and step envelope handling."""

import pytest

from zephyr_mcp.errors import ApiError, NotFoundError
from zephyr_mcp.steps import (
    build_steps_payload,
    fetch_all_steps,
    flatten_step,
    normalize_page,
)

from conftest import steps_page

PATH = "testcases/PROJ-T1/teststeps"


def _offsets(fake_client):
    return [call.args[3]["startAt"] for call in fake_client.execute.call_args_list]


class TestFetchAllSteps:

    def test_two_pages_are_concatenated_in_order(self, fake_client):
        first = [f"step {i}" for i in range(100)]
        second = [f"step {i}" for i in range(100, 150)]
        fake_client.execute.side_effect = [
            steps_page(first, total=150, is_last=False),
            steps_page(second, total=150, is_last=True),
        ]

        result = fetch_all_steps(fake_client, PATH)

        assert fake_client.execute.call_count == 2
        assert _offsets(fake_client) == [0, 100]
        assert len(result["values"]) == 150
        assert result["total"] == 150
        assert result["values"][0]["description"] == "step 0"
        assert result["values"][-1]["description"] == "step 149"

    def test_page_requests_use_fixed_page_size(self, fake_client):
        fake_client.execute.return_value = steps_page(["a"], total=1, is_last=True)

        fetch_all_steps(fake_client, PATH)

        fake_client.execute.assert_called_once_with("GET", PATH, None, {"maxResults": 100, "startAt": 0})

    def test_exact_multiple_of_page_size_without_flag(self, fake_client):
        fake_client.execute.side_effect = [
            steps_page([f"s{i}" for i in range(100)], total=200),
            steps_page([f"s{i}" for i in range(100, 200)], total=200),
        ]

        result = fetch_all_steps(fake_client, PATH)

        assert fake_client.execute.call_count == 2
        assert result["total"] == 200

    def test_zero_steps_makes_one_request(self, fake_client):
        fake_client.execute.return_value = steps_page([], total=0)

        result = fetch_all_steps(fake_client, PATH)

        assert fake_client.execute.call_count == 1
        assert result["values"] == []
        assert result["total"] == 0

    def test_legacy_items_envelope(self, fake_client):
        fake_client.execute.side_effect = [
            steps_page([f"s{i}" for i in range(100)], total=120, key="items"),
            steps_page([f"s{i}" for i in range(100, 120)], total=120, key="items"),
        ]

        result = fetch_all_steps(fake_client, PATH)

        assert [step["description"] for step in result["values"]] == [f"s{i}" for i in range(120)]

    def test_explicit_last_flag_wins_over_total(self, fake_client):
        fake_client.execute.return_value = steps_page(["only"], total=500, is_last=True)

        result = fetch_all_steps(fake_client, PATH)

        assert fake_client.execute.call_count == 1
        assert result["total"] == 1

    def test_count_is_accumulated_length_not_server_total(self, fake_client):
        fake_client.execute.return_value = steps_page(["a", "b"], total=7, is_last=True)

        assert fetch_all_steps(fake_client, PATH)["total"] == 2

    def test_empty_page_stops_the_loop(self, fake_client):
        fake_client.execute.side_effect = [
            steps_page([f"s{i}" for i in range(100)], total=300, is_last=False),
            steps_page([], total=300, is_last=False),
        ]

        result = fetch_all_steps(fake_client, PATH)

        assert fake_client.execute.call_count == 2
        assert result["total"] == 100

    def test_runaway_pagination_is_capped(self, fake_client):
        fake_client.execute.return_value = {"values": [{"description": "again"}]}
        fake_client.execute.return_value["isLast"] = False

        with pytest.raises(ApiError) as exc_info:
            fetch_all_steps(fake_client, PATH, max_pages=5)

        assert fake_client.execute.call_count == 5
        assert exc_info.value.details["pagesFetched"] == 5

    def test_page_failure_propagates_unchanged(self, fake_client):
        error = NotFoundError("Zephyr API Error: HTTP 404", {"status": 404})
        fake_client.execute.side_effect = error

        with pytest.raises(NotFoundError) as exc_info:
            fetch_all_steps(fake_client, PATH)

        assert exc_info.value is error

    def test_inline_steps_are_flattened(self, fake_client):
        fake_client.execute.return_value = {
            "values": [
                {"inline": {"description": "Open login", "testData": None, "expectedResult": "Form shown"},
                 "testCase": None},
            ],
            "isLast": True,
        }

        result = fetch_all_steps(fake_client, PATH)

        assert result["values"] == [
            {"description": "Open login", "testData": None, "expectedResult": "Form shown"}
        ]


class TestStepShapes:

    def test_normalize_non_dict_page(self):
        page = normalize_page(None)
        assert page.items == [] and page.total is None and page.is_last is None

    def test_flatten_keeps_call_to_test_reference(self):
        step = {"inline": None, "testCase": {"testCaseKey": "PROJ-T2"}}
        assert flatten_step(step) == step

        step = {"inline": {"description": "d"}, "testCase": {"testCaseKey": "PROJ-T2"}}
        assert flatten_step(step) == {"description": "d", "testCase": {"testCaseKey": "PROJ-T2"}}

    def test_flat_execution_step_is_unchanged(self):
        step = {"id": 3, "description": "d", "expectedResult": "e", "status": {"id": 1}, "actualResult": "ok"}
        assert flatten_step(step) == step

    def test_build_steps_payload_wraps_inline(self):
        payload = build_steps_payload(
            [{"description": "Open", "expectedResult": "Opened"},
             {"description": "Type", "testData": "user=a", "expectedResult": "Typed"}],
        )

        assert payload["mode"] == "OVERWRITE"
        assert payload["items"][0] == {
            "inline": {
                "description": "Open",
                "testData": None,
                "expectedResult": "Opened",
                "customFields": {},
                "reflectRef": None,
            },
            "testCase": None,
        }
        assert payload["items"][1]["inline"]["testData"] == "user=a"

    def test_build_steps_payload_append_mode(self):
        assert build_steps_payload([], "APPEND")["mode"] == "APPEND"
