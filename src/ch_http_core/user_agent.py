"""User-Agent header value sent with every request."""

import platform
from typing import Optional

from . import __version__


def get_user_agent(application_id: Optional[str] = None) -> str:
    """
    Build the User-Agent string.

    Args:
        application_id: Optional application name prepended to the value

    Returns:
        e.g. "my_app ch-http-core/0.1.0 (lv:python/3.11.4; os:linux)"
    """
    default_user_agent = (
        f"ch-http-core/{__version__} "
        f"(lv:python/{platform.python_version()}; os:{platform.system().lower()})"
    )
    if application_id:
        return f"{application_id} {default_user_agent}"
    return default_user_agent
