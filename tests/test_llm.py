import unittest
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

from shellai.ai.llm import (
    AnthropicClient,
    ChatMessage,
    GeminiClient,
    OpenAIClient,
    ProviderIdentity,
    create_provider_client,
)
from shellai.errors import ConfigurationError, StreamingError


def _anthropic_event(type_, delta_type=None, text=None):
    delta = SimpleNamespace(type=delta_type, text=text) if delta_type else None
    return SimpleNamespace(type=type_, delta=delta)


def _openai_chunk(content):
    return SimpleNamespace(choices=[SimpleNamespace(delta=SimpleNamespace(content=content))])


class TestProviderIdentity(unittest.TestCase):
    def test_parse_accepts_known_names(self):
        self.assertEqual(ProviderIdentity.parse("openai"), ProviderIdentity.OPENAI)
        self.assertEqual(ProviderIdentity.parse(" Gemini "), ProviderIdentity.GEMINI)

    def test_parse_rejects_unknown_names(self):
        with self.assertRaises(ConfigurationError) as cm:
            ProviderIdentity.parse("cohere")
        self.assertIn("cohere", str(cm.exception))
        self.assertIn("anthropic", cm.exception.hint)


@patch("shellai.ai.llm.Anthropic")
class TestAnthropicClient(unittest.TestCase):
    def test_yields_only_text_deltas(self, MockAnthropic):
        MockAnthropic.return_value.messages.create.return_value = [
            _anthropic_event("message_start"),
            _anthropic_event("content_block_delta", "text_delta", "ls"),
            _anthropic_event("content_block_delta", "input_json_delta", "{}"),
            _anthropic_event("content_block_delta", "text_delta", " -la"),
            _anthropic_event("message_stop"),
        ]
        client = AnthropicClient("key", "claude-test")

        fragments = list(client.stream_chat([ChatMessage.user("list files")]))

        self.assertEqual(fragments, ["ls", " -la"])
        MockAnthropic.assert_called_once_with(api_key="key")

    def test_system_messages_go_to_system_parameter(self, MockAnthropic):
        create = MockAnthropic.return_value.messages.create
        create.return_value = []
        client = AnthropicClient("key", "claude-test")

        list(client.stream_chat([ChatMessage.system("be terse"), ChatMessage.user("hi")]))

        kwargs = create.call_args.kwargs
        self.assertEqual(kwargs["system"], "be terse")
        self.assertEqual(kwargs["messages"], [{"role": "user", "content": "hi"}])
        self.assertEqual(kwargs["model"], "claude-test")
        self.assertTrue(kwargs["stream"])

    def test_transport_failure_becomes_streaming_error(self, MockAnthropic):
        MockAnthropic.return_value.messages.create.side_effect = RuntimeError("boom")
        client = AnthropicClient("key", "claude-test")

        with self.assertRaises(StreamingError) as cm:
            list(client.stream_chat([ChatMessage.user("hi")]))
        self.assertEqual(cm.exception.provider, "anthropic")
        self.assertIn("boom", str(cm.exception))

    def test_missing_transport_is_configuration_error(self, MockAnthropic):
        MockAnthropic.return_value = None
        client = AnthropicClient("key", "claude-test")

        with self.assertRaises(ConfigurationError):
            list(client.stream_chat([ChatMessage.user("hi")]))


@patch("shellai.ai.llm.aisuite")
class TestOpenAIClient(unittest.TestCase):
    def test_yields_non_empty_delta_content(self, mock_aisuite):
        create = mock_aisuite.Client.return_value.chat.completions.create
        create.return_value = [
            _openai_chunk("git"),
            _openai_chunk(None),
            SimpleNamespace(choices=[]),
            _openai_chunk(" status"),
        ]
        client = OpenAIClient("key", "gpt-4")

        fragments = list(client.stream_chat([ChatMessage.system("sys"), ChatMessage.user("status")]))

        self.assertEqual(fragments, ["git", " status"])
        mock_aisuite.Client.assert_called_once_with({"openai": {"api_key": "key"}})
        kwargs = create.call_args.kwargs
        self.assertEqual(kwargs["model"], "openai:gpt-4")
        self.assertEqual(kwargs["messages"][0], {"role": "system", "content": "sys"})


@patch("shellai.ai.llm.genai")
class TestGeminiClient(unittest.TestCase):
    def test_system_messages_fold_into_user_turns(self, mock_genai):
        stream = mock_genai.Client.return_value.models.generate_content_stream
        stream.return_value = [SimpleNamespace(text="echo"), SimpleNamespace(text=None), SimpleNamespace(text=" hi")]
        client = GeminiClient("key", "gemini-pro")

        messages = [ChatMessage.system("rules"), ChatMessage.user("say hi"), ChatMessage.assistant("ok")]
        fragments = list(client.stream_chat(messages))

        self.assertEqual(fragments, ["echo", " hi"])
        contents = stream.call_args.kwargs["contents"]
        self.assertEqual(
            contents,
            [
                {"role": "user", "parts": [{"text": "rules\n\nsay hi"}]},
                {"role": "model", "parts": [{"text": "ok"}]},
            ],
        )


class TestCreateProviderClient(unittest.TestCase):
    @patch("shellai.ai.llm.genai")
    def test_picks_variant_by_provider(self, mock_genai):
        client = create_provider_client(ProviderIdentity.GEMINI, "key", "gemini-pro")
        self.assertIsInstance(client, GeminiClient)
        self.assertEqual(client.model, "gemini-pro")

    def test_client_is_shared_across_calls(self):
        with patch("shellai.ai.llm.aisuite") as mock_aisuite:
            create = mock_aisuite.Client.return_value.chat.completions.create
            create.side_effect = lambda **kwargs: iter([_openai_chunk("x")])
            client = create_provider_client("openai", "key", "gpt-4")

            list(client.stream_chat([ChatMessage.user("one")]))
            list(client.stream_chat([ChatMessage.user("two")]))

            mock_aisuite.Client.assert_called_once()
            self.assertEqual(create.call_count, 2)


if __name__ == "__main__":
    unittest.main()
