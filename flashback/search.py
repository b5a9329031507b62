# flashback/search.py
import logging
import re
from typing import Optional

from .errors import CommandError, NotConfiguredError

logger = logging.getLogger(__name__)

KEYWORD_PATTERN = re.compile(r"\w+")


class CommandParser:
    """
    Recognizes search commands addressed to the bot, e.g. "<@U123>: find budget",
    and turns them into full-text queries for the message store.
    """

    def __init__(self):
        self.bot_id: Optional[str] = None
        self.bot_name: Optional[str] = None
        self._command_pattern: Optional[re.Pattern] = None

    def set_bot_info(self, bot_id: str, bot_name: str) -> None:
        if not bot_id:
            raise ValueError("bot_id must not be empty")
        self.bot_id = bot_id
        self.bot_name = bot_name
        # A mention of the bot, a colon, then a remainder holding at least one word
        self._command_pattern = re.compile(
            r"(?:^|\W)<@" + re.escape(bot_id) + r">:\W*(\w.*)", re.DOTALL
        )

    @property
    def configured(self) -> bool:
        return self._command_pattern is not None

    def _pattern(self) -> re.Pattern:
        if self._command_pattern is None:
            raise NotConfiguredError("Bot info must be set before parsing commands")
        return self._command_pattern

    def is_command(self, text: str) -> bool:
        return self._pattern().search(text or "") is not None

    def get_query_from_command(self, text: str) -> str:
        """
        Extracts the keywords following the bot mention and joins them with AND.
        Each keyword is quoted so words like OR or NOT stay plain terms.
        """
        match = self._pattern().search(text or "")
        if match is None:
            raise CommandError(f"Invalid command: {text!r}")
        keywords = KEYWORD_PATTERN.findall(match.group(1))
        query = " AND ".join(f'"{keyword}"' for keyword in keywords)
        logger.debug(f"Query: {query}")
        return query
