"""ssh-profile: resolve ssh_config host aliases into connection profiles."""

__version__ = "0.1.0"

from ssh_profile.client import ProfileConnection, build_connect_options, connect
from ssh_profile.config import (
    AddKeysToAgent,
    MatchState,
    Profile,
    parse,
    parse_home,
    parse_path,
)
from ssh_profile.errors import (
    ConfigIOError,
    ErrorContext,
    HostNotFound,
    NoHome,
    NotResolvable,
    ProfileError,
)
from ssh_profile.patterns import matches, matches_any
from ssh_profile.platform import current_user, get_config_path, home_dir
from ssh_profile.proxy import ProxyCommandError, ProxyCommandProcess
from ssh_profile.stream import (
    AsyncioStreamProvider,
    Stream,
    StreamProvider,
    default_resolver,
    establish,
)
from ssh_profile.tokens import expand

__all__ = [
    # Config
    "AddKeysToAgent",
    "MatchState",
    "Profile",
    "parse",
    "parse_home",
    "parse_path",
    # Patterns and tokens
    "matches",
    "matches_any",
    "expand",
    # Stream
    "Stream",
    "StreamProvider",
    "AsyncioStreamProvider",
    "default_resolver",
    "establish",
    # Client
    "ProfileConnection",
    "build_connect_options",
    "connect",
    # Proxy
    "ProxyCommandError",
    "ProxyCommandProcess",
    # Errors
    "ProfileError",
    "HostNotFound",
    "NoHome",
    "NotResolvable",
    "ConfigIOError",
    "ErrorContext",
    # Platform
    "current_user",
    "home_dir",
    "get_config_path",
]
