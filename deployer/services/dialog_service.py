import asyncio
import re
from typing import Callable, Iterable, List, Optional, Pattern, Union

import click

from deployer.core.exceptions import DialogDeclined
from deployer.core.logging_config import get_logger

logger = get_logger(__name__)

Notifier = Callable[[str], None]
PatternLike = Union[str, Pattern[str]]

YES_PATTERN = re.compile(r"^\s*(yes|y|ok|sure|yep)\s*$", re.IGNORECASE)
NO_PATTERN = re.compile(r"^\s*(no|n|nope|cancel)\s*$", re.IGNORECASE)


def _compile(pattern: PatternLike) -> Pattern[str]:
    if isinstance(pattern, str):
        return re.compile(pattern, re.IGNORECASE)
    return pattern


class Dialog:
    """
    Conversational collaborator used during input resolution.

    Both requests either succeed or raise DialogDeclined; a timeout is
    reported exactly like an explicit decline.
    """

    def __init__(self, notify: Optional[Notifier] = None):
        self.notify = notify or (lambda message: None)

    async def request_confirmation(self, prompt: str, decline_message: str) -> bool:
        raise NotImplementedError

    async def request_matching_response(self, prompt: str, pattern: PatternLike) -> re.Match:
        raise NotImplementedError

    def _decline(self, message: str) -> DialogDeclined:
        self.notify(message)
        logger.info(f"Dialog declined: {message}")
        return DialogDeclined(message)


class ScriptedDialog(Dialog):
    """Answers are supplied up front; running out of answers counts as a timeout."""

    def __init__(self, responses: Iterable[str], notify: Optional[Notifier] = None, timeout_message: str = "No response received."):
        super().__init__(notify)
        self._responses: List[str] = list(responses)
        self.timeout_message = timeout_message

    def _next_response(self, prompt: str) -> Optional[str]:
        self.notify(prompt)
        if not self._responses:
            return None
        return self._responses.pop(0)

    async def request_confirmation(self, prompt: str, decline_message: str) -> bool:
        answer = self._next_response(prompt)
        if answer is None:
            raise self._decline(self.timeout_message)
        if YES_PATTERN.match(answer):
            return True
        raise self._decline(decline_message)

    async def request_matching_response(self, prompt: str, pattern: PatternLike) -> re.Match:
        answer = self._next_response(prompt)
        if answer is None:
            raise self._decline(self.timeout_message)
        match = _compile(pattern).search(answer)
        if match is None:
            raise self._decline(f"'{answer}' is not a valid response.")
        return match

    @property
    def remaining(self) -> int:
        return len(self._responses)


class ConsoleDialog(Dialog):
    """Terminal dialog for the CLI. Ctrl-C or end of input declines."""

    def __init__(self, notify: Optional[Notifier] = None, max_attempts: int = 3):
        super().__init__(notify)
        self.max_attempts = max_attempts

    async def request_confirmation(self, prompt: str, decline_message: str) -> bool:
        try:
            confirmed = await asyncio.to_thread(click.confirm, prompt, default=None)
        except click.Abort:
            confirmed = False
        if not confirmed:
            raise self._decline(decline_message)
        return True

    async def request_matching_response(self, prompt: str, pattern: PatternLike) -> re.Match:
        compiled = _compile(pattern)
        for _ in range(self.max_attempts):
            try:
                answer = await asyncio.to_thread(click.prompt, prompt, default="", show_default=False)
            except click.Abort:
                break
            match = compiled.search(answer)
            if match is not None:
                return match
            click.echo(f"Sorry, '{answer}' is not a valid response.")
        raise self._decline("No valid response received.")
