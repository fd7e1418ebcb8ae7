import unittest

from click.testing import CliRunner

from deployer.cli import cli
from deployer.core import messages


class TestCli(unittest.TestCase):

    def setUp(self):
        self.runner = CliRunner()

    def test_deploy_help(self):
        result = self.runner.invoke(cli, ["deploy", "help"])
        self.assertEqual(result.exit_code, 0)
        self.assertIn(messages.HELP, result.output)

    def test_too_many_arguments(self):
        result = self.runner.invoke(cli, ["deploy", "a", "b", "c"])
        self.assertEqual(result.exit_code, 1)
        self.assertIn("Too many arguments", result.output)

    def test_pair_without_repository(self):
        result = self.runner.invoke(cli, ["deploy", "my-app", "other-app"])
        self.assertEqual(result.exit_code, 1)
        self.assertIn(messages.REPO_NAME_RETRY, result.output)


if __name__ == '__main__':
    unittest.main()
