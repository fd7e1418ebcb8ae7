import asyncio
import re
from typing import Callable, List, Optional, Pattern, Sequence, Tuple

from deployer.core import messages
from deployer.core.exceptions import RepositoryHostError, ResolutionError
from deployer.core.logging_config import get_logger
from deployer.core.schemas import DeploymentRequest
from deployer.services.app_registry import AppRegistry
from deployer.services.dialog_service import Dialog
from deployer.services.github_service import GitHubService

logger = get_logger(__name__)

BRANCH_SUFFIX = re.compile(r"^(.+)/tree/(.+)$")
SINGLE_WORD = re.compile(r"^\s*(\S+)\s*$")
WORD_PAIR = re.compile(r"^\s*(\S+)\s+(\S+)\s*$")
# "branch master" -> "master": the second whitespace delimited token
FREE_TEXT_BRANCH = re.compile(r"(?:\S+\s+){1}(\S+)")


def split_branch(url: str) -> Tuple[str, Optional[str]]:
    """Splits `<base>/tree/<branch>` into (base, branch); branch is None without the suffix."""
    match = BRANCH_SUFFIX.match(url.strip())
    if match is None:
        return url.strip(), None
    return match.group(1), match.group(2).strip('/') or None


def parse_repository(url: str) -> Tuple[str, str]:
    """Takes owner and repo from the last two path segments of a repository reference."""
    segments = [segment for segment in url.strip().rstrip('/').split('/')]
    if len(segments) < 2:
        raise ResolutionError(messages.REPO_NAME_RETRY, details={"url": url})
    repo = segments.pop()
    if repo.endswith('.git'):
        repo = repo[:-len('.git')]
    owner = segments.pop()
    if not owner or not repo:
        raise ResolutionError(messages.REPO_NAME_RETRY, details={"url": url})
    return owner, repo


def classify_tokens(first: str, second: str) -> Optional[Tuple[str, str]]:
    """
    Returns (app_name, url) for two free-form tokens. App names never contain
    a '/', repository references always do, so argument order does not matter.
    """
    if '/' in first:
        return second, first
    if '/' in second:
        return first, second
    return None


def numbered_list_pattern(count: int) -> Pattern[str]:
    """Matches exactly one of the numbers 1..count and nothing else."""
    choices = "|".join(str(index) for index in range(count, 0, -1))
    return re.compile(rf"^\s*({choices})\s*$")


class InputResolver:
    """
    Turns the arguments of a deploy command into a DeploymentRequest,
    asking the user for whatever is missing.

    Any decline or timeout raises DialogDeclined (a ResolutionError) and
    leaves the registry untouched.
    """

    def __init__(self, registry: AppRegistry, github: GitHubService, dialog: Dialog, notify: Callable[[str], None]):
        self.registry = registry
        self.github = github
        self.dialog = dialog
        self.notify = notify

    async def resolve(self, tokens: Sequence[str]) -> DeploymentRequest:
        tokens = [token for token in tokens if token and token.strip()]
        logger.debug(f"Resolving deploy command with tokens {tokens}")
        if not tokens:
            return await self._resolve_without_tokens()
        if len(tokens) == 1:
            return await self._resolve_single_token(tokens[0])
        if len(tokens) == 2:
            return await self._resolve_pair(tokens[0], tokens[1])
        raise ResolutionError(f"Too many arguments for deploy.\n{messages.HELP}", details={"tokens": list(tokens)})

    async def resolve_intent(self, app_name: Optional[str], url: Optional[str]) -> DeploymentRequest:
        """Entry point for an already parsed intent carrying app name and url."""
        if not app_name:
            logger.error("Deploy intent without an application name.")
            self.notify(messages.NAME_INVALID)
            raise ResolutionError(messages.NAME_INVALID)
        if not url:
            logger.error(f"Deploy intent for {app_name} without a repository.")
            self.notify(messages.REPO_INVALID)
            raise ResolutionError(messages.REPO_INVALID)
        return await self._complete_and_register(app_name, url)

    # --- command shapes ---

    async def _resolve_pair(self, first: str, second: str) -> DeploymentRequest:
        entry = classify_tokens(first, second)
        if entry is None:
            self.notify(messages.REPO_NAME_RETRY)
            raise ResolutionError(messages.REPO_NAME_RETRY, details={"tokens": [first, second]})
        app_name, url = entry
        return await self._complete_and_register(app_name, url)

    async def _resolve_single_token(self, token: str) -> DeploymentRequest:
        if '/' in token:
            await self.dialog.request_confirmation(messages.REGISTER_PROMPT, messages.REGISTER_NOT_HAPPENING)
            name_match = await self.dialog.request_matching_response(messages.NAME_PROMPT, SINGLE_WORD)
            app_name = name_match.group(1)
            self.notify(messages.REGISTER_IN_PROGRESS.format(app=app_name, url=token))
            return await self._complete_and_register(app_name, token)

        known_url = await self.registry.get(token)
        if known_url is not None:
            self.notify(messages.IN_PROGRESS_MATCHING)
            return await self.complete(token, known_url)

        self.notify(messages.NAME_NOT_FOUND.format(app=token))
        await self.dialog.request_confirmation(messages.REPO_PROMPT, messages.OK_ANOTHER_TIME)
        self.notify(messages.AWESOME)
        url = await self._prompt_repository()
        return await self._complete_and_register(token, url)

    async def _resolve_without_tokens(self) -> DeploymentRequest:
        apps = await self.registry.snapshot()
        if apps:
            return await self._select_known_app(apps)

        self.notify(messages.REGISTER_EMPTY)
        await self.dialog.request_confirmation(messages.DEPLOY_PROMPT, messages.DEPLOY_PROMPT_DENY)
        self.notify(messages.AWESOME)
        pair = await self.dialog.request_matching_response(messages.PROMPT_NAME_AND_REPO, WORD_PAIR)
        entry = classify_tokens(pair.group(1), pair.group(2))
        if entry is None:
            self.notify(messages.REPO_INVALID)
            raise ResolutionError(messages.REPO_INVALID, details={"response": pair.group(0)})
        app_name, url = entry
        await self.dialog.request_confirmation(
            messages.CONFIRM_NAME_AND_REPO.format(app=app_name, url=url),
            messages.DEPLOY_FAILURE
        )
        return await self._complete_and_register(app_name, url)

    async def _select_known_app(self, apps: dict) -> DeploymentRequest:
        names = sorted(apps, key=len, reverse=True)
        listing = "\n".join(messages.APP_SELECT_ENTRY.format(app=name, url=apps[name]) for name in sorted(apps))
        self.notify(listing)
        pattern = re.compile("(" + "|".join(re.escape(name) for name in names) + ")", re.IGNORECASE)
        logger.debug(f"Offering known applications with pattern {pattern.pattern}")

        match = await self.dialog.request_matching_response(messages.APP_SELECT, pattern)
        chosen = match.group(1)
        app_name = next((name for name in names if name.lower() == chosen.lower()), chosen)
        return await self.complete(app_name, apps[app_name])

    async def _prompt_repository(self) -> str:
        """Asks for a repository reference, re-prompting once if it has no '/'."""
        for attempt in range(2):
            url = (await self.dialog.request_matching_response(messages.REPO_NAME_PROMPT, SINGLE_WORD)).group(1)
            if '/' in url:
                return url
            self.notify(messages.REPO_NAME_RETRY)
            logger.info(f"Rejected repository reference '{url}' (attempt {attempt + 1})")
        raise ResolutionError(messages.REPO_NAME_RETRY)

    # --- completion ---

    async def _complete_and_register(self, app_name: str, url: str) -> DeploymentRequest:
        request = await self.complete(app_name, url)
        await self.registry.upsert(request.app_name, request.url)
        return request

    async def complete(self, app_name: str, url: str) -> DeploymentRequest:
        """Fills in owner, repo and branch for a known app name and url."""
        base, branch = split_branch(url)
        owner, repo = parse_repository(base)
        if branch is None:
            branch = await self.resolve_branch(owner, repo)
        request = DeploymentRequest(app_name=app_name, owner=owner, repo=repo, branch=branch, url=url)
        self.notify(messages.IN_PROGRESS.format(app=app_name, branch=branch, url=base))
        return request

    async def resolve_branch(self, owner: str, repo: str) -> str:
        branches: Optional[List[str]]
        try:
            branches = await asyncio.to_thread(self.github.list_branches, owner, repo)
        except RepositoryHostError as e:
            logger.warning(f"Could not list branches of {owner}/{repo}, asking the user instead: {e.message}")
            branches = None

        if not branches:
            match = await self.dialog.request_matching_response(messages.BRANCH_FREE_TEXT_PROMPT, FREE_TEXT_BRANCH)
            return match.group(1)

        if len(branches) == 1:
            logger.info(f"Using the only branch '{branches[0]}' of {owner}/{repo}")
            return branches[0]

        menu = "\n".join(messages.BRANCH_MENU_ENTRY.format(index=index, name=name) for index, name in enumerate(branches, start=1))
        match = await self.dialog.request_matching_response(
            f"{messages.BRANCH_PROMPT}\n{menu}",
            numbered_list_pattern(len(branches))
        )
        selection = int(match.group(1))
        if not 1 <= selection <= len(branches):
            raise ResolutionError(f"Branch selection {selection} is out of range.")
        return branches[selection - 1]
