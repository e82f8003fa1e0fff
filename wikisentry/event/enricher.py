"""Browser and OS context from the user-agent string."""

import logging
from typing import Any, Dict, Optional

from user_agents import parse as parse_user_agent

logger = logging.getLogger(__name__)

OTHER = "Other"


def _parse(user_agent: str) -> Optional[Any]:
    try:
        return parse_user_agent(user_agent)
    except Exception as e:
        logger.debug(f"User-agent parsing failed: {e}")
        return None


def browser_context(user_agent: Optional[str]) -> Dict[str, str]:
    """
    Build the ``browser`` context block.

    Args:
        user_agent: Raw User-Agent header value

    Returns:
        Dict with ``ua``, ``name`` and ``version``; keys that cannot be
        determined are left out
    """
    if not user_agent:
        return {}

    context = {"ua": user_agent}
    parsed = _parse(user_agent)
    if parsed is None:
        return context

    if parsed.browser.family and parsed.browser.family != OTHER:
        context["name"] = parsed.browser.family
        if parsed.browser.version_string:
            context["version"] = parsed.browser.version_string

    return context


def os_context(user_agent: Optional[str]) -> Dict[str, str]:
    """Build the ``os`` context block (platform name only)."""
    if not user_agent:
        return {}

    parsed = _parse(user_agent)
    if parsed is None or not parsed.os.family or parsed.os.family == OTHER:
        return {}

    return {"name": parsed.os.family}
