"""
Percent-token expansion for ssh_config values.

Used at parse time for HostName and at connection time for ProxyCommand.
"""
from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ssh_profile.config import Profile


def expand(template: str, profile: "Profile") -> str:
    """
    Expand %u, %h, %H, %p and %% against the profile's current values.

    Tokens are replaced one after another, each pass working on the
    previous result, so a substituted value that itself contains a token
    is expanded again by the later passes.
    """
    result = template
    result = result.replace("%u", profile.user)
    result = result.replace("%h", profile.host_name)
    result = result.replace("%H", profile.host_name)
    result = result.replace("%p", str(profile.port))
    result = result.replace("%%", "%")
    return result
