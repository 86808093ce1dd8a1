"""Unit tests for JSON-RPC parsing and serialization."""

import json

import pytest

from blueprints_mcp.rpc.protocol import (
    INTERNAL_ERROR,
    ParseError,
    make_error_response,
    make_success_response,
    parse_request,
    serialize_response,
)


class TestParseRequest:
    def test_full_request(self) -> None:
        request = parse_request(
            '{"jsonrpc":"2.0","method":"tools/list_agents","params":{"a":1},"id":7}'
        )
        assert request.method == "tools/list_agents"
        assert request.params == {"a": 1}
        assert request.id == 7
        assert not request.is_notification

    def test_jsonrpc_marker_optional(self) -> None:
        request = parse_request('{"method":"ping","id":"x"}')
        assert request.jsonrpc == "2.0"
        assert request.id == "x"

    def test_notification_has_no_id(self) -> None:
        assert parse_request('{"jsonrpc":"2.0","method":"notifications/initialized"}').is_notification

    def test_fractional_id_error_names_accepted_types(self) -> None:
        with pytest.raises(ParseError) as exc_info:
            parse_request('{"method":"initialize","id":1.5}')
        assert exc_info.value.message == "id must be string, integer, or null, got: float"

    def test_integer_and_null_ids_accepted(self) -> None:
        assert parse_request('{"method":"ping","id":0}').id == 0
        assert parse_request('{"method":"ping","id":null}').is_notification

    @pytest.mark.parametrize(
        "body, fragment",
        [
            ("not json", "Invalid JSON"),
            ("[1,2]", "JSON object"),
            ('{"jsonrpc":"1.0","method":"x"}', "jsonrpc"),
            ('{"jsonrpc":"2.0"}', "method"),
            ('{"jsonrpc":"2.0","method":""}', "method"),
            ('{"jsonrpc":"2.0","method":"x","params":[1]}', "params"),
            ('{"jsonrpc":"2.0","method":"x","id":true}', "id"),
            ('{"jsonrpc":"2.0","method":"x","id":{"a":1}}', "id"),
        ],
    )
    def test_invalid_bodies(self, body, fragment) -> None:
        with pytest.raises(ParseError) as exc_info:
            parse_request(body)
        assert fragment in exc_info.value.message


class TestSerialize:
    def test_success(self) -> None:
        data = json.loads(serialize_response(make_success_response(1, [{"id": "a1"}])))
        assert data == {"jsonrpc": "2.0", "id": 1, "result": [{"id": "a1"}]}

    def test_null_result_kept(self) -> None:
        data = json.loads(serialize_response(make_success_response(1, None)))
        assert "result" in data and data["result"] is None

    def test_error_with_data(self) -> None:
        response = make_error_response("r", INTERNAL_ERROR, "Internal error", "boom")
        data = json.loads(serialize_response(response))
        assert data["error"] == {"code": INTERNAL_ERROR, "message": "Internal error", "data": "boom"}
        assert "result" not in data
