"""
CLI interface for ssh-profile.

Usage:
    python -m ssh_profile myhost                 # Resolve from ~/.ssh/config
    python -m ssh_profile -F ./ssh_config myhost # Resolve from a given file
    python -m ssh_profile --json myhost          # Print as JSON
    python -m ssh_profile -v myhost              # Debug logging
"""
from __future__ import annotations

import argparse
import json
import logging
import sys

from ssh_profile.config import Profile, parse_home, parse_path
from ssh_profile.errors import ProfileError


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the ssh-profile CLI."""
    parser = argparse.ArgumentParser(
        prog="ssh-profile",
        description="Resolve an ssh_config host alias into a connection profile",
        epilog="Example: python -m ssh_profile -F ~/.ssh/config myhost",
    )

    parser.add_argument(
        "alias",
        help="Host alias to look up",
    )

    parser.add_argument(
        "-F", "--config-file",
        metavar="FILE",
        help="Config file to read (default: ~/.ssh/config)",
    )

    parser.add_argument(
        "--json",
        action="store_true",
        help="Print the profile as JSON",
    )

    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Enable debug logging (-vv also enables asyncssh logging)",
    )

    return parser


def format_profile(profile: Profile) -> str:
    """Format a profile as ssh -G style 'key value' lines."""
    lines = [
        f"user {profile.user}",
        f"hostname {profile.host_name}",
        f"port {profile.port}",
    ]
    if profile.identity_file is not None:
        lines.append(f"identityfile {profile.identity_file}")
    if profile.proxy_command is not None:
        lines.append(f"proxycommand {profile.proxy_command}")
    if profile.proxy_jump is not None:
        lines.append(f"proxyjump {profile.proxy_jump}")
    lines.append(f"addkeystoagent {profile.add_keys_to_agent.value}")
    if profile.user_known_hosts_file is not None:
        lines.append(f"userknownhostsfile {profile.user_known_hosts_file}")
    lines.append(
        "stricthostkeychecking "
        + ("yes" if profile.strict_host_key_checking else "no")
    )
    return "\n".join(lines)


def configure_logging(verbose: int) -> None:
    """Set up stderr logging for the given verbosity."""
    if verbose <= 0:
        return
    logging.basicConfig(
        level=logging.DEBUG,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        stream=sys.stderr,
    )
    if verbose >= 2:
        logging.getLogger("asyncssh").setLevel(logging.DEBUG)
    else:
        logging.getLogger("asyncssh").setLevel(logging.WARNING)


def run(args: argparse.Namespace) -> int:
    """
    Resolve and print a profile.

    Returns:
        0 on success, 1 if the profile could not be resolved
    """
    configure_logging(args.verbose)

    try:
        if args.config_file:
            profile = parse_path(args.config_file, args.alias)
        else:
            profile = parse_home(args.alias)
    except ProfileError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if args.json:
        print(json.dumps(profile.to_dict(), indent=2))
    else:
        print(format_profile(profile))
    return 0


def main(argv: list[str] | None = None) -> int:
    """CLI entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)
    return run(args)


if __name__ == "__main__":
    sys.exit(main())
