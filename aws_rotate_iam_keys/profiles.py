# -*- coding: utf-8 -*-
"""Profiles and the credentials bound to them.

Two documents describe the profiles that can be rotated. The config document
(``~/.aws/config``) lists them as ``[profile <name>]`` sections, the
credentials document (``~/.aws/credentials``) holds a ``[<name>]`` section with
the key pair for each one.

config::

    [profile dev]
    region = eu-west-1

    [profile dev-admin]
    role_arn = arn:aws:iam::123456789012:role/admin
    source_profile = dev   # an alias of dev, never rotated on its own

credentials::

    [dev]
    aws_access_key_id = AKIA...
    aws_secret_access_key = ...
"""

import configparser
import enum
import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass

from aws_rotate_iam_keys.exceptions import ConfigError, MissingFieldError

PROFILE_PREFIX = "profile "
SOURCE_PROFILE = "source_profile"
ACCESS_KEY_ID = "aws_access_key_id"
SECRET_ACCESS_KEY = "aws_secret_access_key"


class ConfigType(enum.Enum):
    CONFIG = ("AWS_CONFIG_FILE", "config")
    CREDENTIALS = ("AWS_SHARED_CREDENTIALS_FILE", "credentials")

    @property
    def env_var(self):
        return self.value[0]

    @property
    def file_name(self):
        return self.value[1]


def get_config_path(config_type):
    """Location of a config document.

    The environment variable for the document wins when set and non-empty,
    otherwise the file lives in ``~/.aws``.
    """
    override = os.environ.get(config_type.env_var)
    if override:
        return override

    home = os.path.expanduser("~")
    if home == "~":
        raise ConfigError("Failed to find home directory")
    return os.path.join(home, ".aws", config_type.file_name)


def new_parser():
    """A parser that keeps key case and reads values verbatim (no % interpolation)."""
    parser = configparser.ConfigParser(interpolation=None)
    parser.optionxform = str
    return parser


def read_document(path):
    parser = new_parser()
    try:
        with open(path, "r", encoding="utf-8") as fh:
            parser.read_file(fh, source=path)
    except (OSError, UnicodeDecodeError, configparser.Error) as e:
        raise ConfigError(f"Failed to read {path}: {e}") from e
    return parser


@dataclass(frozen=True)
class Credential:
    access_key_id: str
    secret_access_key: str

    def __post_init__(self):
        for name in ("access_key_id", "secret_access_key"):
            value = getattr(self, name)
            if not isinstance(value, str) or not value:
                raise ValueError(f"Credential {name} must be a non-empty string")

    def __repr__(self):
        return f"Credential(access_key_id={self.access_key_id!r}, secret_access_key='*********')"


class ProfileRegistry(Mapping):
    """Read-only snapshot of profile name to :class:`Credential`.

    Changes never happen in place, :meth:`replace` hands back a new registry.
    """

    def __init__(self, credentials=None):
        self._credentials = dict(credentials or {})

    def __getitem__(self, profile):
        return self._credentials[profile]

    def __iter__(self):
        return iter(self._credentials)

    def __len__(self):
        return len(self._credentials)

    def __repr__(self):
        return f"ProfileRegistry({self._credentials!r})"

    def replace(self, updates):
        """Return a new registry with the credentials in ``updates`` swapped in.

        Args:
            updates (Mapping[str, Credential]): new credential per existing profile.

        Raises:
            KeyError: if a profile in ``updates`` is not in this registry.
        """
        merged = dict(self._credentials)
        for profile, credential in updates.items():
            if profile not in merged:
                raise KeyError(profile)
            merged[profile] = credential
        return ProfileRegistry(merged)

    @classmethod
    def build(cls, config_source, credential_source):
        """Correlate the config and credentials documents.

        Args:
            config_source (configparser.ConfigParser): the config document.
            credential_source (configparser.ConfigParser): the credentials document.

        Returns:
            ProfileRegistry: every rotatable profile that has complete credentials.

        Raises:
            MissingFieldError: a profile's credentials section lacks a key field.
        """
        credentials = {}
        for section in config_source.sections():
            if config_source.has_option(section, SOURCE_PROFILE):
                # profiles that have a source_profile are not useful.
                logging.getLogger(__name__).debug(f"Skipping {section}, it has a source profile")
                continue
            if not section.startswith(PROFILE_PREFIX):
                continue
            profile = section[len(PROFILE_PREFIX):].strip()
            if not profile:
                continue

            if not credential_source.has_section(profile):
                logging.getLogger(__name__).info(f"Profile {profile} has no credentials")
                continue

            values = []
            for field in (ACCESS_KEY_ID, SECRET_ACCESS_KEY):
                value = credential_source.get(profile, field, fallback="").strip()
                if not value:
                    raise MissingFieldError(profile, field)
                values.append(value)

            credentials[profile] = Credential(*values)
            logging.getLogger(__name__).debug(f"Profile {profile}: {credentials[profile]!r}")

        return cls(credentials)

    @classmethod
    def from_files(cls, config_path, credentials_path):
        return cls.build(read_document(config_path), read_document(credentials_path))
