"""Payload and response translation for each dialect (no network)."""

import pytest

from Relay.adapter.anthropic_adapter import AnthropicAdapter
from Relay.adapter.base_adapter import Usage
from Relay.adapter.gemini_adapter import GeminiAdapter
from Relay.adapter.mock_adapter import MockAdapter
from Relay.adapter.ollama_adapter import OllamaAdapter
from Relay.adapter.openai_adapter import OpenAIAdapter
from Relay.errors import MalformedRequest
from Relay.messages import CanonicalMessage, Role


def _system_only():
    return [CanonicalMessage(Role.SYSTEM, "only rules"), CanonicalMessage(Role.SYSTEM, "more rules")]


class TestOpenAIDialect:
    def test_messages_pass_through_unmerged(self, conversation):
        adapter = OpenAIAdapter({"model": "gpt-4o-mini", "api_key": "sk-test"})
        payload = adapter.to_payload(conversation, max_tokens=256, temperature=0.3)

        assert payload["model"] == "gpt-4o-mini"
        assert payload["max_tokens"] == 256
        assert payload["temperature"] == 0.3
        assert payload["messages"] == [m.to_dict() for m in conversation]
        assert "stream" not in payload

    def test_configurable_token_field(self, conversation):
        adapter = OpenAIAdapter(
            {"model": "o3-mini", "api_key": "k", "max_tokens_field": "max_completion_tokens"}
        )
        payload = adapter.to_payload(conversation, max_tokens=100, temperature=1.0, stream=True)
        assert payload["max_completion_tokens"] == 100
        assert "max_tokens" not in payload
        assert payload["stream"] is True

    def test_from_response_and_usage(self):
        adapter = OpenAIAdapter({"model": "m"})
        data = {
            "choices": [{"message": {"role": "assistant", "content": "answer"}}],
            "usage": {"prompt_tokens": 12, "completion_tokens": 3},
        }
        assert adapter.from_response(data) == "answer"
        assert adapter.extract_usage(data) == Usage(input_tokens=12, output_tokens=3)

    def test_stream_event_delta(self):
        adapter = OpenAIAdapter({"model": "m"})
        assert adapter.decode_stream_event({"choices": [{"delta": {"content": "Hel"}}]}) == "Hel"
        assert adapter.decode_stream_event({"choices": [{"delta": {"role": "assistant"}}]}) is None
        assert adapter.decode_stream_event({"choices": []}) is None


class TestAnthropicDialect:
    def test_builds_messages_payload_with_system(self, conversation):
        adapter = AnthropicAdapter(
            {"model": "claude-3-5-sonnet-20241022", "api_key": "sk-ant-test"}
        )
        payload = adapter.to_payload(conversation, max_tokens=1234, temperature=0.2)

        assert payload["model"] == "claude-3-5-sonnet-20241022"
        assert payload["max_tokens"] == 1234
        assert "maxTokens" not in payload
        assert payload["temperature"] == 0.2
        assert payload["system"] == "SYSTEM ONE\n\nSYSTEM TWO\n\nSYSTEM THREE"
        assert payload["messages"] == [
            {"role": "user", "content": [{"type": "text", "text": "Hello"}]},
            {"role": "assistant", "content": [{"type": "text", "text": "Hi"}]},
            {"role": "user", "content": [{"type": "text", "text": "Do X"}]},
        ]

    def test_system_field_omitted_without_system_messages(self):
        adapter = AnthropicAdapter({"model": "m", "api_key": "k"})
        payload = adapter.to_payload([CanonicalMessage(Role.USER, "hi")], 10, 0.0)
        assert "system" not in payload

    def test_only_system_messages_is_malformed(self):
        adapter = AnthropicAdapter({"model": "m", "api_key": "k"})
        with pytest.raises(MalformedRequest):
            adapter.to_payload(_system_only(), 10, 0.0)

    def test_from_response_joins_text_blocks(self):
        adapter = AnthropicAdapter({"model": "m"})
        data = {
            "content": [
                {"type": "text", "text": "Hello "},
                {"type": "tool_use", "id": "x"},
                {"type": "text", "text": "there"},
            ],
            "usage": {"input_tokens": 9, "output_tokens": 2},
        }
        assert adapter.from_response(data) == "Hello there"
        assert adapter.extract_usage(data) == Usage(9, 2)

    def test_stream_events(self):
        adapter = AnthropicAdapter({"model": "m"})
        assert adapter.decode_stream_event({"type": "message_start", "message": {}}) is None
        assert (
            adapter.decode_stream_event(
                {"type": "content_block_delta", "index": 0, "delta": {"type": "text_delta", "text": "Hel"}}
            )
            == "Hel"
        )


class TestGeminiDialect:
    def test_roles_remapped_and_system_instruction(self, conversation):
        adapter = GeminiAdapter({"model": "gemini-1.5-flash", "api_key": "g"})
        payload = adapter.to_payload(conversation, max_tokens=64, temperature=0.5)

        assert payload["systemInstruction"] == {
            "parts": [{"text": "SYSTEM ONE\n\nSYSTEM TWO\n\nSYSTEM THREE"}]
        }
        assert payload["contents"] == [
            {"role": "user", "parts": [{"text": "Hello"}]},
            {"role": "model", "parts": [{"text": "Hi"}]},
            {"role": "user", "parts": [{"text": "Do X"}]},
        ]
        assert payload["generationConfig"] == {"temperature": 0.5, "maxOutputTokens": 64}

    def test_endpoints(self):
        adapter = GeminiAdapter({"model": "gemini-1.5-flash"})
        assert adapter.endpoint(stream=False) == ("/models/gemini-1.5-flash:generateContent", {})
        assert adapter.endpoint(stream=True) == (
            "/models/gemini-1.5-flash:streamGenerateContent",
            {"alt": "sse"},
        )

    def test_only_system_messages_is_malformed(self):
        with pytest.raises(MalformedRequest):
            GeminiAdapter({"model": "m"}).to_payload(_system_only(), 10, 0.0)

    def test_from_response(self):
        data = {
            "candidates": [{"content": {"role": "model", "parts": [{"text": "a"}, {"text": "b"}]}}],
            "usageMetadata": {"promptTokenCount": 4, "candidatesTokenCount": 1},
        }
        adapter = GeminiAdapter({"model": "m"})
        assert adapter.from_response(data) == "ab"
        assert adapter.extract_usage(data) == Usage(4, 1)


class TestOllamaDialect:
    def test_payload(self, conversation):
        payload = OllamaAdapter({"model": "llama3.2"}).to_payload(conversation, 200, 0.7, stream=True)
        assert payload["model"] == "llama3.2"
        assert payload["stream"] is True
        assert payload["options"] == {"temperature": 0.7, "num_predict": 200}
        assert len(payload["messages"]) == len(conversation)

    def test_from_response(self):
        data = {"message": {"role": "assistant", "content": "ok"}, "prompt_eval_count": 5, "eval_count": 1}
        adapter = OllamaAdapter({"model": "m"})
        assert adapter.from_response(data) == "ok"
        assert adapter.extract_usage(data) == Usage(5, 1)
        assert adapter.extract_usage({"message": {}}) is None


class TestMockDialect:
    @pytest.mark.asyncio
    async def test_echoes_last_user_message(self, conversation):
        completion = await MockAdapter({"model": "echo"}).chat(conversation, 10, 0.0)
        assert completion.ok
        assert completion.text == "Do X"

    @pytest.mark.asyncio
    async def test_fixed_response_and_per_model_failure(self, conversation):
        config = {"response": "fixed", "models": {"broken": {"fail_with": "rateLimited"}}}
        ok = await MockAdapter(dict(config, model="fine")).chat(conversation, 10, 0.0)
        failed = await MockAdapter(dict(config, model="broken")).chat(conversation, 10, 0.0)
        assert ok.text == "fixed"
        assert not failed.ok
        assert failed.outcome.value == "rateLimited"

    @pytest.mark.asyncio
    async def test_stream_fragments_then_done(self, conversation):
        adapter = MockAdapter({"model": "m", "fragments": ["Hel", "lo"]})
        chunks = [c async for c in adapter.chat_stream(conversation, 10, 0.0)]
        assert [c.type for c in chunks] == ["content", "content", "done"]
        assert [c.content for c in chunks[:2]] == ["Hel", "lo"]
