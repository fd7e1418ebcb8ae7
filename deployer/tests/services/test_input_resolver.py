import unittest
from unittest.mock import MagicMock

from deployer.core import messages
from deployer.core.exceptions import DialogDeclined, RepositoryHostError, ResolutionError
from deployer.services.app_registry import AppRegistry
from deployer.services.dialog_service import ScriptedDialog
from deployer.services.input_resolver import (
    InputResolver,
    classify_tokens,
    numbered_list_pattern,
    parse_repository,
    split_branch
)


class TestInputHelpers(unittest.TestCase):

    def test_split_branch_with_tree_suffix(self):
        self.assertEqual(split_branch("owner/repo/tree/dev"), ("owner/repo", "dev"))
        self.assertEqual(
            split_branch("https://github.com/owner/repo/tree/feature/login"),
            ("https://github.com/owner/repo", "feature/login")
        )

    def test_split_branch_without_suffix(self):
        self.assertEqual(split_branch("owner/repo"), ("owner/repo", None))

    def test_parse_repository(self):
        self.assertEqual(parse_repository("owner/repo"), ("owner", "repo"))
        self.assertEqual(parse_repository("https://github.com/owner/repo.git"), ("owner", "repo"))
        self.assertEqual(parse_repository("https://github.com/owner/repo/"), ("owner", "repo"))

    def test_parse_repository_rejects_single_segment(self):
        with self.assertRaises(ResolutionError):
            parse_repository("repo")

    def test_classify_tokens_is_order_independent(self):
        self.assertEqual(classify_tokens("my-app", "owner/repo"), ("my-app", "owner/repo"))
        self.assertEqual(classify_tokens("owner/repo", "my-app"), ("my-app", "owner/repo"))
        self.assertIsNone(classify_tokens("my-app", "other"))

    def test_numbered_list_pattern(self):
        pattern = numbered_list_pattern(12)
        self.assertEqual(pattern.search("12").group(1), "12")
        self.assertEqual(pattern.search(" 3 ").group(1), "3")
        self.assertIsNone(pattern.search("13"))
        self.assertIsNone(pattern.search("0"))


class TestInputResolver(unittest.IsolatedAsyncioTestCase):

    def setUp(self):
        self.notifications = []
        self.github = MagicMock()
        self.github.list_branches.return_value = ["main"]

    def _resolver(self, responses=(), apps=None):
        self.registry = AppRegistry(apps)
        self.dialog = ScriptedDialog(responses, notify=self.notifications.append, timeout_message=messages.OK_ANOTHER_TIME)
        return InputResolver(self.registry, self.github, self.dialog, self.notifications.append)

    # --- two tokens ---

    async def test_pair_with_branch_needs_no_prompt(self):
        resolver = self._resolver()
        request = await resolver.resolve(["my-app", "owner/repo/tree/dev"])

        self.assertEqual(request.app_name, "my-app")
        self.assertEqual((request.owner, request.repo, request.branch), ("owner", "repo", "dev"))
        self.github.list_branches.assert_not_called()
        self.assertEqual(await self.registry.get("my-app"), "owner/repo/tree/dev")
        self.assertIn(messages.IN_PROGRESS.format(app="my-app", branch="dev", url="owner/repo"), self.notifications)

    async def test_pair_in_reverse_order(self):
        resolver = self._resolver()
        request = await resolver.resolve(["owner/repo/tree/dev", "my-app"])
        self.assertEqual(request.app_name, "my-app")
        self.assertEqual(request.branch, "dev")

    async def test_pair_without_repository_fails(self):
        resolver = self._resolver()
        with self.assertRaises(ResolutionError):
            await resolver.resolve(["my-app", "other-app"])
        self.assertEqual(await self.registry.snapshot(), {})

    async def test_too_many_tokens(self):
        resolver = self._resolver()
        with self.assertRaises(ResolutionError) as ctx:
            await resolver.resolve(["a", "b", "c"])
        self.assertNotIsInstance(ctx.exception, DialogDeclined)
        self.assertIn(messages.HELP, ctx.exception.message)

    # --- branch resolution ---

    async def test_single_branch_is_selected_automatically(self):
        resolver = self._resolver()
        request = await resolver.resolve(["my-app", "owner/repo"])
        self.assertEqual(request.branch, "main")
        self.assertEqual(self.dialog.remaining, 0)
        self.github.list_branches.assert_called_once_with("owner", "repo")

    async def test_branch_menu_selection(self):
        self.github.list_branches.return_value = ["main", "dev", "feature"]
        resolver = self._resolver(responses=["2"])
        request = await resolver.resolve(["my-app", "owner/repo"])

        self.assertEqual(request.branch, "dev")
        menu = [note for note in self.notifications if note.startswith(messages.BRANCH_PROMPT)]
        self.assertEqual(len(menu), 1)
        self.assertIn("(3)  feature", menu[0])

    async def test_branch_menu_out_of_range_declines(self):
        self.github.list_branches.return_value = ["main", "dev", "feature"]
        resolver = self._resolver(responses=["4"])
        with self.assertRaises(DialogDeclined):
            await resolver.resolve(["my-app", "owner/repo"])
        self.assertEqual(await self.registry.snapshot(), {})

    async def test_branch_listing_failure_falls_back_to_free_text(self):
        self.github.list_branches.side_effect = RepositoryHostError("rate limited")
        resolver = self._resolver(responses=["branch release-1"])
        request = await resolver.resolve(["my-app", "owner/repo"])
        self.assertEqual(request.branch, "release-1")

    async def test_no_branches_falls_back_to_free_text(self):
        self.github.list_branches.return_value = []
        resolver = self._resolver(responses=["branch main"])
        request = await resolver.resolve(["my-app", "owner/repo"])
        self.assertEqual(request.branch, "main")

    # --- one token ---

    async def test_known_app_deploys_registered_repository(self):
        resolver = self._resolver(apps={"my-app": "owner/repo/tree/main"})
        request = await resolver.resolve(["my-app"])

        self.assertEqual((request.app_name, request.branch), ("my-app", "main"))
        self.assertIn(messages.IN_PROGRESS_MATCHING, self.notifications)
        self.assertEqual(self.dialog.remaining, 0)

    async def test_unknown_app_registers_repository(self):
        resolver = self._resolver(responses=["yes", "owner/repo/tree/main"])
        request = await resolver.resolve(["new-app"])

        self.assertEqual(request.app_name, "new-app")
        self.assertIn(messages.NAME_NOT_FOUND.format(app="new-app"), self.notifications)
        self.assertEqual(await self.registry.get("new-app"), "owner/repo/tree/main")

    async def test_unknown_app_declined_leaves_registry_untouched(self):
        resolver = self._resolver(responses=["no"])
        with self.assertRaises(DialogDeclined):
            await resolver.resolve(["new-app"])
        self.assertIn(messages.OK_ANOTHER_TIME, self.notifications)
        self.assertEqual(await self.registry.snapshot(), {})

    async def test_unknown_app_repository_is_reprompted_once(self):
        resolver = self._resolver(responses=["yes", "not-a-repo", "owner/repo/tree/main"])
        request = await resolver.resolve(["new-app"])
        self.assertEqual(request.repo, "repo")
        self.assertEqual(self.notifications.count(messages.REPO_NAME_RETRY), 1)

    async def test_unknown_app_invalid_repository_twice_fails(self):
        resolver = self._resolver(responses=["yes", "nope", "still-nope"])
        with self.assertRaises(ResolutionError):
            await resolver.resolve(["new-app"])
        self.assertEqual(await self.registry.snapshot(), {})

    async def test_url_token_prompts_for_name(self):
        resolver = self._resolver(responses=["yes", "my-app"])
        request = await resolver.resolve(["owner/repo/tree/main"])

        self.assertEqual(request.app_name, "my-app")
        self.assertIn(messages.REGISTER_IN_PROGRESS.format(app="my-app", url="owner/repo/tree/main"), self.notifications)
        self.assertEqual(await self.registry.get("my-app"), "owner/repo/tree/main")

    async def test_url_token_declined(self):
        resolver = self._resolver(responses=["no"])
        with self.assertRaises(DialogDeclined):
            await resolver.resolve(["owner/repo"])
        self.assertIn(messages.REGISTER_NOT_HAPPENING, self.notifications)

    # --- no tokens ---

    async def test_empty_registry_prompts_for_pair(self):
        resolver = self._resolver(responses=["yes", "my-app owner/repo/tree/main", "yes"])
        request = await resolver.resolve([])

        self.assertEqual((request.app_name, request.branch), ("my-app", "main"))
        self.assertIn(messages.REGISTER_EMPTY, self.notifications)
        self.assertEqual(await self.registry.get("my-app"), "owner/repo/tree/main")

    async def test_empty_registry_declined_confirmation(self):
        resolver = self._resolver(responses=["yes", "my-app owner/repo", "no"])
        with self.assertRaises(DialogDeclined):
            await resolver.resolve([])
        self.assertIn(messages.DEPLOY_FAILURE, self.notifications)
        self.assertEqual(await self.registry.snapshot(), {})

    async def test_known_apps_are_offered(self):
        apps = {"alpha": "owner/alpha/tree/main", "beta": "owner/beta/tree/dev"}
        resolver = self._resolver(responses=["BETA"], apps=apps)
        request = await resolver.resolve([])

        self.assertEqual((request.app_name, request.repo, request.branch), ("beta", "beta", "dev"))
        self.assertIn("alpha: owner/alpha/tree/main\nbeta: owner/beta/tree/dev", self.notifications)

    async def test_timeout_counts_as_decline(self):
        resolver = self._resolver(responses=[])
        with self.assertRaises(DialogDeclined):
            await resolver.resolve(["new-app"])
        self.assertIn(messages.OK_ANOTHER_TIME, self.notifications)

    # --- end to end ---

    async def test_empty_registry_conversation_with_single_branch(self):
        self.github.list_branches.return_value = ["master"]
        resolver = self._resolver(responses=["yes", "normanb/node-helloworld node-helloworld", "yes"])
        request = await resolver.resolve([])

        self.assertEqual(
            (request.app_name, request.owner, request.repo, request.branch),
            ("node-helloworld", "normanb", "node-helloworld", "master")
        )

    async def test_reversed_tokens_resolve_identically(self):
        first = await self._resolver().resolve(["node-helloworld", "normanb/node-helloworld"])
        second = await self._resolver().resolve(["normanb/node-helloworld", "node-helloworld"])
        self.assertEqual(first, second)

    # --- intents ---

    async def test_intent_without_name(self):
        resolver = self._resolver()
        with self.assertRaises(ResolutionError) as ctx:
            await resolver.resolve_intent(None, "owner/repo")
        self.assertEqual(ctx.exception.message, messages.NAME_INVALID)

    async def test_intent_without_url(self):
        resolver = self._resolver()
        with self.assertRaises(ResolutionError) as ctx:
            await resolver.resolve_intent("my-app", "")
        self.assertEqual(ctx.exception.message, messages.REPO_INVALID)

    async def test_intent_registers_app(self):
        resolver = self._resolver()
        request = await resolver.resolve_intent("my-app", "owner/repo/tree/main")
        self.assertEqual(request.branch, "main")
        self.assertEqual(await self.registry.get("my-app"), "owner/repo/tree/main")


if __name__ == '__main__':
    unittest.main()
