import os
import tempfile
import unittest
from pathlib import Path
from unittest.mock import MagicMock, patch

from shellai.ai.assistants import script as script_module
from shellai.ai.assistants.script import (
    ScriptEnvironment,
    ScriptSession,
    build_messages,
    render_script,
)
from shellai.ai.executor import ArtifactKind, ExecutionResult
from shellai.ai.lifecycle import ReviewAction, SessionState


def _client(*replies):
    client = MagicMock()
    client.stream_chat.side_effect = [iter([r]) for r in replies]
    return client


def _environment(*actions, confirm=True):
    env = MagicMock(spec=ScriptEnvironment)
    env.status.return_value = MagicMock()
    env.choose_action.side_effect = list(actions)
    env.confirm_correction.return_value = confirm
    return env


class TestRenderScript(unittest.TestCase):
    def test_bash_body_replaces_placeholder(self):
        rendered = render_script("bash", 'echo "hi"\nls')
        self.assertTrue(rendered.startswith("#!/bin/bash\nset -euo pipefail\n"))
        self.assertIn('\necho "hi"\nls\n', rendered)
        self.assertNotIn("Script content here", rendered)

    def test_python_body_is_indented_like_placeholder(self):
        rendered = render_script("python", "print('a')\nif True:\n    print('b')")
        self.assertIn("def main():\n    print('a')\n    if True:\n        print('b')\n    pass\n", rendered)

    def test_node_body_keeps_surrounding_template(self):
        rendered = render_script("node", "console.log(1);")
        self.assertIn("async function main() {\n    console.log(1);\n}", rendered)
        self.assertTrue(rendered.rstrip().endswith("main().catch(console.error);"))

    def test_messages_name_the_script_type(self):
        system, user = build_messages("rename photos by date", "python")
        self.assertIn("python script", system.content)
        self.assertEqual(user.content, "Generate a python script to: rename photos by date")


class TestScriptSession(unittest.TestCase):
    def setUp(self):
        self.executor = MagicMock()
        self.tmp = tempfile.TemporaryDirectory()
        self.cwd = os.getcwd()
        os.chdir(self.tmp.name)

    def tearDown(self):
        os.chdir(self.cwd)
        self.tmp.cleanup()

    def test_generated_body_is_not_collapsed(self):
        env = _environment(ReviewAction.CANCEL)
        session = ScriptSession(_client("```bash\necho one\necho two\n```"), "bash", env, self.executor)

        outcome = session.run(build_messages("x", "bash"))

        self.assertIn("echo one\necho two\n", outcome.artifact)
        self.assertEqual(outcome.state, SessionState.CANCELLED)

    def test_runs_script_from_temp_file_and_cleans_up(self):
        seen = {}

        def run_artifact(path, kind):
            seen["path"] = path
            seen["kind"] = kind
            seen["content"] = Path(path).read_text(encoding="utf-8")
            seen["executable"] = os.access(path, os.X_OK)
            return ExecutionResult(0)

        self.executor.run_artifact.side_effect = run_artifact
        env = _environment(ReviewAction.EXECUTE)
        session = ScriptSession(_client("echo hi"), "bash", env, self.executor)

        outcome = session.run(build_messages("say hi", "bash"))

        self.assertEqual(outcome.state, SessionState.SUCCEEDED)
        self.assertEqual(seen["kind"], ArtifactKind.SCRIPT)
        self.assertTrue(seen["path"].endswith("script.sh"))
        self.assertIn("echo hi", seen["content"])
        self.assertTrue(seen["executable"])
        self.assertFalse(os.path.exists(seen["path"]))

    def test_correction_carries_the_whole_script(self):
        self.executor.run_artifact.side_effect = [ExecutionResult(1, "syntax error"), ExecutionResult(0)]
        client = _client("echo broken", "#!/bin/bash\necho fixed")
        env = _environment(ReviewAction.EXECUTE)
        session = ScriptSession(client, "bash", env, self.executor)

        outcome = session.run(build_messages("x", "bash"))

        self.assertEqual(outcome.state, SessionState.SUCCEEDED)
        self.assertEqual(outcome.artifact, "#!/bin/bash\necho fixed")
        prompt = client.stream_chat.call_args_list[1].args[0][0].content
        self.assertIn("failed with error: syntax error", prompt)
        self.assertIn("echo broken", prompt)

    def test_echoed_script_fails_without_asking(self):
        self.executor.run_artifact.return_value = ExecutionResult(1, "syntax error")
        client = _client("echo broken", render_script("bash", "echo broken"))
        env = _environment(ReviewAction.EXECUTE, confirm=False)

        outcome = ScriptSession(client, "bash", env, self.executor).run(build_messages("x", "bash"))

        self.assertEqual(outcome.state, SessionState.FAILED)
        self.assertEqual(outcome.reason, "AI couldn't find a better solution")
        self.assertEqual(self.executor.run_artifact.call_count, 1)
        env.confirm_correction.assert_not_called()

    def test_unknown_script_type_is_rejected(self):
        with self.assertRaises(ValueError):
            ScriptSession(MagicMock(), "ruby", _environment(), self.executor)


class TestScriptEntryPoint(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.output = Path(self.tmp.name) / "hello.sh"

    def tearDown(self):
        self.tmp.cleanup()

    @patch("shellai.ai.assistants.script.open_provider_client")
    def test_dry_run_still_saves_output(self, mock_open_client):
        mock_open_client.return_value = _client("echo hi")
        env = _environment()

        outcome = script_module.script("say hi", "bash", dry_run=True, output=str(self.output), environment=env)

        self.assertEqual(outcome.state, SessionState.CANCELLED)
        self.assertIn("echo hi", self.output.read_text(encoding="utf-8"))
        self.assertTrue(os.access(self.output, os.X_OK))

    @patch("shellai.ai.assistants.script.open_provider_client")
    def test_explicit_cancel_saves_nothing(self, mock_open_client):
        mock_open_client.return_value = _client("echo hi")
        env = _environment(ReviewAction.CANCEL)

        script_module.script("say hi", "bash", output=str(self.output), environment=env)

        self.assertFalse(self.output.exists())


class TestScriptEnvironment(unittest.TestCase):
    def setUp(self):
        self.env = ScriptEnvironment("bash", console=MagicMock())

    @patch("subprocess.run")
    def test_edit_opens_editor_on_a_temp_file(self, mock_run):
        def fake_editor(args):
            Path(args[1]).write_text("echo edited\n", encoding="utf-8")

        mock_run.side_effect = fake_editor
        with patch.dict("os.environ", {"EDITOR": "nano"}):
            result = self.env.edit("echo original\n")

        self.assertEqual(result, "echo edited\n")
        editor, path = mock_run.call_args.args[0]
        self.assertEqual(editor, "nano")
        self.assertTrue(path.endswith(".sh"))
        self.assertFalse(os.path.exists(path))

    @patch("subprocess.run", side_effect=FileNotFoundError)
    def test_missing_editor_leaves_script_unchanged(self, mock_run):
        with patch.dict("os.environ", {"EDITOR": "no-such-editor"}):
            self.assertIsNone(self.env.edit("echo original\n"))


if __name__ == "__main__":
    unittest.main()
