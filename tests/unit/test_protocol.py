"""Tests for dispatch_server_message: wire dicts and SDK-style objects."""

from __future__ import annotations

from types import SimpleNamespace

from tests.helpers import audio_message, interrupted_message, pcm_bytes, tool_call_message
from vikara.session.protocol import (
    AudioOutputResult,
    InterruptedResult,
    ToolCallResult,
    TurnCompleteResult,
    dispatch_server_message,
)


class TestAudio:
    def test_inline_audio_becomes_audio_result(self) -> None:
        pcm = pcm_bytes(240)
        results = dispatch_server_message(audio_message(pcm))
        assert len(results) == 1
        assert isinstance(results[0], AudioOutputResult)
        assert results[0].blob.data == pcm
        assert results[0].blob.mime_type == "audio/pcm;rate=24000"

    def test_non_audio_parts_are_skipped(self) -> None:
        message = {
            "serverContent": {
                "modelTurn": {
                    "parts": [
                        {"text": "thinking"},
                        {"inlineData": {"mimeType": "image/png", "data": "AAAA"}},
                    ]
                }
            }
        }
        assert dispatch_server_message(message) == []

    def test_invalid_base64_part_is_dropped(self) -> None:
        message = {
            "serverContent": {
                "modelTurn": {"parts": [{"inlineData": {"mimeType": "audio/pcm", "data": "%%"}}]}
            }
        }
        assert dispatch_server_message(message) == []

    def test_sdk_object_with_raw_bytes(self) -> None:
        inline = SimpleNamespace(data=b"\x01\x00", mime_type="audio/pcm;rate=24000")
        message = SimpleNamespace(
            server_content=SimpleNamespace(
                model_turn=SimpleNamespace(parts=[SimpleNamespace(inline_data=inline)]),
                interrupted=None,
                turn_complete=None,
            ),
            tool_call=None,
        )
        results = dispatch_server_message(message)
        assert isinstance(results[0], AudioOutputResult)
        assert results[0].blob.data == b"\x01\x00"


class TestToolCalls:
    def test_function_calls_become_invocations(self) -> None:
        message = tool_call_message(
            ("c1", "check_availability", {"startIso": "a", "endIso": "b"}),
            ("c2", "list_events", {}),
        )
        results = dispatch_server_message(message)
        assert len(results) == 1
        result = results[0]
        assert isinstance(result, ToolCallResult)
        assert [inv.id for inv in result.invocations] == ["c1", "c2"]
        assert result.invocations[0].args == {"startIso": "a", "endIso": "b"}

    def test_missing_id_is_generated(self) -> None:
        message = {"toolCall": {"functionCalls": [{"name": "list_events"}]}}
        (result,) = dispatch_server_message(message)
        assert isinstance(result, ToolCallResult)
        assert result.invocations[0].id.startswith("call_")

    def test_nameless_call_is_ignored(self) -> None:
        assert dispatch_server_message({"toolCall": {"functionCalls": [{"id": "x"}]}}) == []


class TestOrdering:
    def test_interrupted_audio_turn_complete_order(self) -> None:
        message = audio_message(pcm_bytes(10))
        message["serverContent"]["interrupted"] = True
        message["serverContent"]["turnComplete"] = True
        kinds = [type(r) for r in dispatch_server_message(message)]
        assert kinds == [InterruptedResult, AudioOutputResult, TurnCompleteResult]

    def test_interrupted_alone(self) -> None:
        assert dispatch_server_message(interrupted_message()) == [InterruptedResult()]

    def test_setup_complete_is_ignored(self) -> None:
        assert dispatch_server_message({"setupComplete": {}}) == []
