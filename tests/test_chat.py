import unittest
from unittest.mock import MagicMock, patch

from shellai.ai.assistants import chat
from shellai.ai.assistants.chat import ChatSession


class TestChatAssistant(unittest.TestCase):
    """Tests for the main `chat` assistant function."""

    @patch("shellai.ai.assistants.chat.ChatSession")
    @patch("shellai.ai.assistants.chat.open_provider_client")
    def test_chat_orchestration(self, mock_open_client, MockSession):
        """Verify the chat function opens a client and hands it to a session loop."""
        chat.chat("hello", provider="gemini")

        mock_open_client.assert_called_once_with("gemini")
        MockSession.assert_called_once_with(mock_open_client.return_value, None)
        MockSession.return_value.loop.assert_called_once_with("hello")


@patch("shellai.ai.assistants.chat.stream_response")
class TestChatSession(unittest.TestCase):
    """Tests for the multi-turn ChatSession."""

    def setUp(self):
        self.client = MagicMock()
        self.session = ChatSession(self.client, console=MagicMock())

    def test_history_is_resent_every_turn(self, mock_stream):
        mock_stream.side_effect = ["Hi there", "Paris"]

        self.session.send("hello")
        self.session.send("capital of France?")

        roles = [m.role for m in self.session.messages]
        self.assertEqual(roles, ["user", "assistant", "user", "assistant"])
        self.assertEqual(self.session.messages[3].content, "Paris")
        self.assertEqual(self.client.stream_chat.call_count, 2)

    def test_replies_stream_with_assistant_prefix(self, mock_stream):
        mock_stream.return_value = "ok"
        self.session.send("hi")

        kwargs = mock_stream.call_args.kwargs
        self.assertEqual(kwargs["prefix"], "Assistant: ")
        self.assertEqual(kwargs["spinner_text"], "Thinking...")
        self.assertTrue(kwargs["newline"])

    def test_loop_ends_on_exit(self, mock_stream):
        mock_stream.return_value = "answer"
        self.session.console.input.side_effect = ["question", "EXIT"]

        self.session.loop()

        self.assertEqual(len(self.session.messages), 2)
        self.session.console.print.assert_any_call("\nGoodbye! 👋")

    def test_loop_ends_on_empty_line_or_eof(self, mock_stream):
        self.session.console.input.side_effect = ["   "]
        self.session.loop()
        self.session.console.input.side_effect = EOFError
        self.session.loop()

        mock_stream.assert_not_called()

    def test_initial_message_is_sent_first(self, mock_stream):
        mock_stream.return_value = "hi!"
        self.session.console.input.side_effect = ["exit"]

        self.session.loop("hello")

        self.assertEqual(self.session.messages[0].content, "hello")
        self.assertEqual(mock_stream.call_args.kwargs["prefix"], "\nAssistant: ")


if __name__ == "__main__":
    unittest.main()
