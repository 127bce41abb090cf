import unittest

from shellai.ai.risk import check_syntax, is_blocked, is_destructive


class TestIsDestructive(unittest.TestCase):
    def test_flags_destructive_verbs(self):
        for command in ["rm -rf build", "dd if=a of=b", "mkfs.ext4 /dev/sdb1", "shred secrets.txt", "truncate -s 0 log"]:
            with self.subTest(command=command):
                self.assertTrue(is_destructive(command))

    def test_requires_word_boundaries(self):
        self.assertFalse(is_destructive("ls -la"))
        self.assertFalse(is_destructive("echo confirm"))
        self.assertFalse(is_destructive("grep -r performance ."))


class TestCheckSyntax(unittest.TestCase):
    def test_accepts_simple_commands(self):
        self.assertIsNone(check_syntax("ls -la"))
        self.assertIsNone(check_syntax("git status --short"))

    def test_rejects_empty_command(self):
        self.assertEqual(check_syntax("   "), "Command cannot be empty")

    def test_rejects_shell_metacharacters(self):
        for command in ["ls; rm x", "cat a | grep b", "echo $HOME", "ls > out", "echo `id`", "a && b"]:
            with self.subTest(command=command):
                self.assertIn("dangerous characters", check_syntax(command))

    def test_rejects_invalid_command_name(self):
        self.assertEqual(check_syntax("(ls) -la"), "Invalid command name")


class TestIsBlocked(unittest.TestCase):
    def test_blocks_catastrophic_commands(self):
        for command in [
            "sudo rm -rf /",
            "sudo rm -rf /*",
            "sudo rm --recursive --force / ",
            "sudo rm -rf /;",
            "sudo rm -rf /&& echo done",
            'sudo rm -rf "/"',
            "sudo rm -rf //",
            "mv /home /dev/null",
            "dd if=/dev/zero of=/dev/sda bs=1M",
            "mkfs.ext4 -F /dev/sdb",
            "shred -u /etc/passwd",
        ]:
            with self.subTest(command=command):
                self.assertTrue(is_blocked(command))

    def test_allows_ordinary_commands(self):
        for command in [
            "rm -rf ./build",
            "sudo rm -rf /tmp/cache",
            "ls -la /",
            "dd if=disk.img of=backup.img",
            "shred notes.txt",
            "git status",
        ]:
            with self.subTest(command=command):
                self.assertFalse(is_blocked(command))


if __name__ == "__main__":
    unittest.main()
