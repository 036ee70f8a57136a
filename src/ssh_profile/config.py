"""
ssh_config parsing into a resolved connection profile.

Provides:
- Profile: Resolved connection settings for one host alias
- AddKeysToAgent: AddKeysToAgent policy values
- parse / parse_path / parse_home: Build a Profile from config text

The parser is a two-state machine folded over the config lines. A Host
line switches between MATCHING and NOT_MATCHING; while MATCHING, each
directive yields an effect (field updates) or is ignored.

Unlike OpenSSH, the last matching value wins: a later Host block that
matches the alias overwrites what an earlier block set.

Supported directives:
    User, HostName, Port, IdentityFile, ProxyCommand, ProxyJump,
    AddKeysToAgent, UserKnownHostsFile, StrictHostKeyChecking
"""
from __future__ import annotations

import functools
import logging
import os
import re
from dataclasses import asdict, dataclass, replace
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Any, Callable, Tuple

from ssh_profile.errors import ConfigIOError, ErrorContext, NoHome
from ssh_profile.patterns import matches_any
from ssh_profile.platform import current_user, get_config_path, home_dir
from ssh_profile.tokens import expand

if TYPE_CHECKING:
    from ssh_profile.stream import Resolver, Stream, StreamProvider

log = logging.getLogger("ssh_profile.config")

HomeProvider = Callable[[], "Path | None"]
UserProvider = Callable[[], str]

DEFAULT_PORT = 22

_PORT_PATTERN = re.compile(r"\+?[0-9]+")


class AddKeysToAgent(str, Enum):
    """Whether keys used for authentication are added to the agent."""
    YES = "yes"
    CONFIRM = "confirm"
    ASK = "ask"
    NO = "no"

    @classmethod
    def parse(cls, value: str) -> "AddKeysToAgent":
        """Map a directive value to a policy; unknown values mean NO."""
        lowered = value.lower()
        for member in (cls.YES, cls.CONFIRM, cls.ASK):
            if lowered == member.value:
                return member
        return cls.NO


class MatchState(str, Enum):
    """Whether the most recent Host line matched the alias."""
    NOT_MATCHING = "not_matching"
    MATCHING = "matching"


@dataclass(frozen=True)
class Profile:
    """
    Resolved connection settings for a host alias.

    Seeded with defaults for the alias and updated by every matching
    directive in file order.
    """
    user: str
    host_name: str
    port: int = DEFAULT_PORT
    identity_file: str | None = None
    proxy_command: str | None = None
    proxy_jump: str | None = None
    add_keys_to_agent: AddKeysToAgent = AddKeysToAgent.NO
    user_known_hosts_file: str | None = None
    strict_host_key_checking: bool = True

    @classmethod
    def default(cls, alias: str, user: str | None = None) -> "Profile":
        """Build the seeded profile for an alias."""
        if user is None:
            user = current_user()
        return cls(user=user, host_name=alias)

    def expand_tokens(self, template: str) -> str:
        """Expand percent-tokens in template against this profile."""
        return expand(template, self)

    async def stream(
        self,
        provider: "StreamProvider | None" = None,
        resolver: "Resolver | None" = None,
    ) -> "Stream":
        """Establish the byte stream for this profile."""
        from ssh_profile.stream import establish

        return await establish(self, provider=provider, resolver=resolver)

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-serialisable dictionary."""
        result = asdict(self)
        result["add_keys_to_agent"] = self.add_keys_to_agent.value
        return result


def _parse_port(value: str) -> int | None:
    """Parse an unsigned 16-bit port, returning None if invalid."""
    if not _PORT_PATTERN.fullmatch(value):
        return None
    port = int(value)
    if port > 65535:
        return None
    return port


def _unquote(value: str) -> str:
    """Strip one layer of single straight quotes wrapping the value."""
    if len(value) > 1 and value.startswith("'") and value.endswith("'"):
        return value[1:-1]
    return value


def _resolve_path(value: str, home: HomeProvider, alias: str) -> str:
    """Unquote a path value and expand a leading ~/ against home."""
    path = _unquote(value)
    if not path.startswith("~/"):
        return path

    base = home()
    if base is None:
        raise NoHome(context=ErrorContext(alias=alias, path=path))

    joined = os.path.join(str(base), path[2:])
    try:
        joined.encode("utf-8")
    except UnicodeEncodeError as e:
        raise ConfigIOError(
            "Failed to convert home directory to string",
            context=ErrorContext(alias=alias, original_error=str(e)),
        ) from e
    return joined


def _directive(
    key: str,
    value: str,
    profile: Profile,
    home: HomeProvider,
    alias: str,
) -> dict[str, Any] | None:
    """
    Interpret one directive of a matching Host block.

    Returns:
        Field updates for the profile, or None if the directive
        has no effect
    """
    # AddKeysToAgent and StrictHostKeyChecking compare the untrimmed value
    raw = value
    value = value.lstrip()

    if key == "user":
        return {"user": value}

    if key == "hostname":
        return {"host_name": expand(value, profile)}

    if key == "port":
        port = _parse_port(value)
        if port is None:
            log.debug("Ignoring invalid port %r", value)
            return None
        return {"port": port}

    if key == "identityfile":
        return {"identity_file": _resolve_path(value, home, alias)}

    if key == "proxycommand":
        # Expanded at connection time, see stream.establish
        return {"proxy_command": value}

    if key == "proxyjump":
        return {"proxy_jump": value}

    if key == "addkeystoagent":
        return {"add_keys_to_agent": AddKeysToAgent.parse(raw)}

    if key == "userknownhostsfile":
        return {"user_known_hosts_file": _resolve_path(value, home, alias)}

    if key == "stricthostkeychecking":
        return {"strict_host_key_checking": raw.lower() != "no"}

    log.debug("Ignoring unsupported directive %r", key)
    return None


def _step(
    carried: Tuple[MatchState, Profile],
    line: str,
    alias: str,
    home: HomeProvider,
) -> Tuple[MatchState, Profile]:
    """Advance the parser by one line."""
    state, profile = carried

    tokens = line.strip().split(" ", 1)
    if len(tokens) < 2:
        return state, profile

    key, value = tokens
    key = key.lower()

    if key == "host":
        patterns = value.split()
        if matches_any(alias, patterns):
            log.debug("Host %s matches %r", " ".join(patterns), alias)
            return MatchState.MATCHING, profile
        return MatchState.NOT_MATCHING, profile

    if state is not MatchState.MATCHING:
        return state, profile

    effect = _directive(key, value, profile, home, alias)
    if effect is None:
        return state, profile
    return state, replace(profile, **effect)


def parse(
    text: str,
    alias: str,
    *,
    home: HomeProvider = home_dir,
    user: UserProvider = current_user,
) -> Profile:
    """
    Resolve the profile for an alias from config text.

    Malformed lines and values are skipped. The only failures are a ~/
    path without a home directory (NoHome) and a path that cannot be
    represented as a string (ConfigIOError).

    Args:
        text: Config file contents
        alias: Host alias to look up
        home: Returns the home directory, or None if unknown
        user: Returns the default user name

    Returns:
        Profile seeded with defaults for the alias and updated by
        every matching directive
    """
    initial = (MatchState.NOT_MATCHING, Profile.default(alias, user()))
    _, profile = functools.reduce(
        lambda carried, line: _step(carried, line, alias, home),
        text.split("\n"),
        initial,
    )
    return profile


def parse_path(
    path: Path | str,
    alias: str,
    *,
    home: HomeProvider = home_dir,
    user: UserProvider = current_user,
) -> Profile:
    """
    Resolve the profile for an alias from a config file.

    Raises:
        ConfigIOError: If the file cannot be read or is not valid UTF-8
        NoHome: If a ~/ path needs an unavailable home directory
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            text = f.read()
    except OSError as e:
        raise ConfigIOError.from_os_error(
            e, path=str(path), context=ErrorContext(alias=alias)
        ) from e
    except UnicodeDecodeError as e:
        raise ConfigIOError(
            "stream did not contain valid UTF-8",
            path=str(path),
            context=ErrorContext(alias=alias, original_error=str(e)),
        ) from e
    return parse(text, alias, home=home, user=user)


def parse_home(
    alias: str,
    *,
    home: HomeProvider = home_dir,
    user: UserProvider = current_user,
) -> Profile:
    """
    Resolve the profile for an alias from ~/.ssh/config.

    Raises:
        NoHome: If the home directory cannot be determined
        ConfigIOError: If the file cannot be read
    """
    base = home()
    if base is None:
        raise NoHome(context=ErrorContext(alias=alias))
    return parse_path(get_config_path(Path(base)), alias, home=home, user=user)
