import asyncio
import json
import pytest
from aive.domain.errors import LanguageModelUnavailable
from aive.domain.models import OperationStatus, OperationType
from aive.pipeline.interpreter import CommandInterpreter, SYSTEM_PROMPT


def interpret(llm, message, context=None):
    return asyncio.run(CommandInterpreter(llm).interpret(message, context))


def test_parses_model_json(model_reply, make_llm):
    llm = make_llm(model_reply("TRIM", {"startTime": 0, "endTime": 10}, "Trimmed first 10s"))
    result = interpret(llm, "Trim the first 10 seconds")

    assert result.command == "Trim the first 10 seconds"
    assert result.confidence == 0.8
    op = result.operation
    assert op.type == OperationType.TRIM
    assert op.parameters == {"startTime": 0, "endTime": 10}
    assert op.status == OperationStatus.PENDING
    assert op.input_file == "" and op.output_file == ""


def test_json_wrapped_in_prose_and_fences(make_llm):
    llm = make_llm('Sure! Here you go:\n```json\n{"operation": "resize", "parameters": {"width": 640, "height": 480}}\n```')
    op = interpret(llm, "make it smaller").operation
    assert op.type == OperationType.RESIZE
    assert op.parameters == {"width": 640, "height": 480}


@pytest.mark.parametrize("name,expected", [
    ("trim", OperationType.TRIM),
    ("Cut", OperationType.CUT),
    ("RESIZE", OperationType.RESIZE),
    ("Overlay", OperationType.OVERLAY),
    ("audio", OperationType.AUDIO),
])
def test_operation_names_case_insensitive(name, expected, model_reply, make_llm):
    op = interpret(make_llm(model_reply(name, {})), "do it").operation
    assert op.type == expected


@pytest.mark.parametrize("name", ["THUMBNAIL", "merge", "", "crop", None, 42])
def test_unknown_operation_maps_to_trim(name, make_llm):
    llm = make_llm(json.dumps({"operation": name, "parameters": {"foo": 1}}))
    op = interpret(llm, "whatever").operation
    assert op.type == OperationType.TRIM
    assert op.parameters == {"foo": 1}


def test_missing_parameters_become_empty(make_llm):
    op = interpret(make_llm('{"operation": "audio"}'), "louder").operation
    assert op.type == OperationType.AUDIO
    assert op.parameters == {}


def test_non_object_parameters_become_empty(make_llm):
    op = interpret(make_llm('{"operation": "audio", "parameters": [1, 2]}'), "louder").operation
    assert op.parameters == {}


class TestFallbackParsing:
    """Unparseable model output falls back to crude keyword matching."""

    @pytest.mark.parametrize("message", [
        "Trim the first 10 seconds",
        "please CUT the intro",
        "can you tRiM this",
        "shortcut to the end",
    ])
    @pytest.mark.parametrize("raw", ["I cannot help with that", "{not json}", "{\"operation\": ", "[1, 2, 3]", ""])
    def test_trim_or_cut_keywords(self, message, raw, make_llm):
        op = interpret(make_llm(raw), message).operation
        assert op.type == OperationType.TRIM
        assert op.parameters == {"startTime": 0, "endTime": 10}

    def test_resize_keyword(self, make_llm):
        op = interpret(make_llm("nope"), "Resize to 720p").operation
        assert op.type == OperationType.RESIZE
        assert op.parameters == {"width": 1280, "height": 720}

    def test_trim_wins_over_resize(self, make_llm):
        op = interpret(make_llm("nope"), "trim and resize").operation
        assert op.type == OperationType.TRIM

    def test_no_keyword_defaults_to_trim(self, make_llm):
        op = interpret(make_llm("nope"), "make it pop").operation
        assert op.type == OperationType.TRIM
        assert op.parameters == {"startTime": 0, "endTime": 10}

    def test_fallback_descriptors_are_fresh(self):
        first = CommandInterpreter.fallback_parse("trim")
        second = CommandInterpreter.fallback_parse("trim")
        assert first.id != second.id
        first.parameters["endTime"] = 99
        assert second.parameters["endTime"] == 10


def test_prompt_includes_context(make_llm):
    llm = make_llm('{"operation": "trim", "parameters": {}}')
    context = {"videoTracks": [{"path": "/videos/a.mp4", "duration": 30}]}
    interpret(llm, "Trim the first 10 seconds", context)

    call = llm.calls[0]
    assert call["system"] == SYSTEM_PROMPT
    for name in ("TRIM", "CUT", "RESIZE", "OVERLAY", "AUDIO"):
        assert name in call["system"]
    assert 'User command: "Trim the first 10 seconds"' in call["user"]
    assert "Project context:" in call["user"]
    assert "/videos/a.mp4" in call["user"]


def test_prompt_without_context(make_llm):
    llm = make_llm('{"operation": "trim", "parameters": {}}')
    interpret(llm, "trim")
    assert "Project context" not in llm.calls[0]["user"]


def test_unreachable_backend_propagates(make_llm):
    llm = make_llm(error=LanguageModelUnavailable("connection refused"))
    with pytest.raises(LanguageModelUnavailable):
        interpret(llm, "trim")


def test_create_operation_bypasses_model(make_llm):
    llm = make_llm()
    interpreter = CommandInterpreter(llm)
    op = interpreter.create_operation("RESIZE", {"width": 100, "height": 100})
    assert op.type == OperationType.RESIZE
    assert op.status == OperationStatus.PENDING
    assert llm.calls == []


class TestStatus:
    def test_ready(self, make_llm):
        status = asyncio.run(CommandInterpreter(make_llm()).status())
        assert status.status == "ready"
        assert status.available

    def test_model_not_found(self, make_llm):
        llm = make_llm(models=["llama3:8b"])
        status = asyncio.run(CommandInterpreter(llm).status())
        assert status.status == "model_not_found"
        assert not status.available
        assert "llama3:8b" in status.error

    def test_backend_down(self, make_llm):
        llm = make_llm(error=LanguageModelUnavailable("refused"))
        status = asyncio.run(CommandInterpreter(llm).status())
        assert status.status == "error"
        assert status.error == "refused"


def test_available_commands(make_llm):
    commands = CommandInterpreter(make_llm()).available_commands()
    assert any("Trim" in c for c in commands)
    assert any("Resize" in c for c in commands)
