# flashback/formatting.py
import logging
import re
from datetime import datetime, timezone
from typing import Iterable, Mapping

from .schemas import Message

logger = logging.getLogger(__name__)

USER_MENTION_PATTERN = re.compile(r"<@(\w+)>")
UNKNOWN_USER = "user"

# Go's time.UnixDate layout: "Mon Jan  2 15:04:05 MST 2006"
_UNIX_DATE = "%a %b {day} %H:%M:%S %Z %Y"


def substitute_user_ids(user_map: Mapping[str, str], text: str) -> str:
    """Rewrites <@U123> mentions as @name, or @user when the id is unknown."""
    def _replace(match: re.Match) -> str:
        name = user_map.get(match.group(1))
        if name is None:
            logger.debug("User mention id not found in name mapping")
            name = UNKNOWN_USER
        return "@" + name

    return USER_MENTION_PATTERN.sub(_replace, text)


def format_timestamp(ts: str) -> str:
    """Renders a "seconds.micros" platform timestamp in UTC; "" if malformed."""
    parts = (ts or "").split(".")
    if len(parts) != 2:
        logger.debug(f"Invalid timestamp format: {ts!r}")
        return ""
    try:
        moment = datetime.fromtimestamp(int(parts[0]), tz=timezone.utc)
    except (ValueError, OverflowError, OSError):
        logger.debug(f"Invalid timestamp value: {ts!r}")
        return ""
    return moment.strftime(_UNIX_DATE.format(day=f"{moment.day:>2}"))


def format_result(message: Message, user_map: Mapping[str, str]) -> str:
    sender = user_map.get(message.sender, UNKNOWN_USER)
    posted = format_timestamp(message.send_time)
    body = substitute_user_ids(user_map, message.body)
    return f"*{sender} posted on {posted}:* {body}"


def render_results(results: Iterable[Message], user_map: Mapping[str, str]) -> str:
    """Newline-joined result lines, oldest message first."""
    ordered = sorted(results, key=lambda m: m.send_time)
    return "\n".join(format_result(m, user_map) for m in ordered)
