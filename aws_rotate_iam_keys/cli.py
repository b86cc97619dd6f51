# -*- coding: utf-8 -*-
"""rotate-iam-keys command line."""

import argparse
import logging
import sys

from aws_rotate_iam_keys._version import __version__
from aws_rotate_iam_keys.exceptions import ConfigError, StoreError
from aws_rotate_iam_keys.managers import KeyRotator, RotationCoordinator, updated_profiles
from aws_rotate_iam_keys.profiles import ConfigType, ProfileRegistry, get_config_path
from aws_rotate_iam_keys.store import CredentialStore


def _profiles(value):
    names = [name.strip() for name in value.split(",") if name.strip()]
    if not names:
        raise argparse.ArgumentTypeError("expected one or more profile names")
    return names


def _positive(value, kind=float):
    try:
        number = kind(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"{value} is not a number") from None
    if number <= 0:
        raise argparse.ArgumentTypeError(f"{value} must be greater than 0")
    return number


def build_parser():
    parser = argparse.ArgumentParser(
        prog="rotate-iam-keys",
        description="Rotates your IAM Access Keys",
        epilog="Example: rotate-iam-keys --profile=dev,prod --dry-run",
    )
    parser.add_argument(
        "-p", "--profile",
        dest="profiles",
        action="append",
        type=_profiles,
        required=True,
        help="profile(s) to rotate, `--profile=dev,prod` or `-p dev -p prod` rotates both",
    )
    parser.add_argument(
        "--credfile",
        help="location of your aws credential file",
    )
    parser.add_argument(
        "--configfile",
        help="location of your aws config file",
    )
    parser.add_argument(
        "-D", "--disable",
        action="store_true",
        help="disable the access key instead of deleting it (not implemented yet)",
    )
    parser.add_argument(
        "-d", "--dry-run",
        action="store_true",
        help="runs without affecting anything, useful to run before fully committing "
             "to rotate your keys",
    )
    parser.add_argument(
        "--timeout",
        type=_positive,
        default=None,
        help="seconds to wait for a new key to become active before giving up on a profile",
    )
    parser.add_argument(
        "--max-workers",
        type=lambda value: _positive(value, int),
        default=None,
        help="rotate at most this many profiles at once (default: all at once)",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="debug logging",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    return parser


def run(args, service_factory=None):
    """Rotate the keys described by parsed ``args``.

    Returns:
        int: process exit code.
    """
    profile_names = [name for names in args.profiles for name in names]

    if args.disable:
        logging.getLogger(__name__).error(
            "--disable is not implemented, nothing was rotated")
        return 1

    try:
        credentials_path = args.credfile or get_config_path(ConfigType.CREDENTIALS)
        config_path = args.configfile or get_config_path(ConfigType.CONFIG)
        registry = ProfileRegistry.from_files(config_path, credentials_path)
    except ConfigError as e:
        logging.getLogger(__name__).error(str(e))
        return 1

    rotator_kwargs = {"deadline": args.timeout}
    if service_factory is not None:
        rotator_kwargs["service_factory"] = service_factory
    coordinator = RotationCoordinator(KeyRotator(**rotator_kwargs), max_workers=args.max_workers)

    updated_registry, failures = coordinator.run(profile_names, registry, dry_run=args.dry_run)
    if args.dry_run:
        return 0

    for failure in failures:
        logging.getLogger(__name__).error(f"Profile {failure.profile} was not rotated: "
                                          f"{failure.reason}")

    updates = updated_profiles(registry, updated_registry)
    try:
        CredentialStore(credentials_path).save(updates)
    except StoreError as e:
        logging.getLogger(__name__).error(f"Failed to write credentials: {e}")
        return 1

    logging.getLogger(__name__).info(
        f"Rotated {len(updates)} of {len(dict.fromkeys(profile_names))} profile(s)")
    return 0


def main(argv=None):
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    # botocore is very chatty at debug
    logging.getLogger("botocore").setLevel(logging.WARNING)
    return run(args)


if __name__ == "__main__":
    sys.exit(main())
