# -*- coding: utf-8 -*-
"""aws_rotate_iam_keys

Rotates long lived AWS IAM access keys for the profiles in your AWS config and
credentials files. A new key is created, confirmed working and only then is the
old key deleted and the credentials file updated.

"""

from aws_rotate_iam_keys.exceptions import RotateError, \
    ConfigError, \
    MissingFieldError, \
    ServiceError, \
    RotationError, \
    StoreError
from aws_rotate_iam_keys.profiles import Credential, \
    ProfileRegistry, \
    ConfigType, \
    get_config_path
from aws_rotate_iam_keys.identity import IdentityService, IAMIdentityService
from aws_rotate_iam_keys.managers import KeyRotator, \
    RotationCoordinator, \
    RotationState, \
    RotationSuccess, \
    RotationFailure, \
    updated_profiles
from aws_rotate_iam_keys.store import CredentialStore
from ._version import __version__

__all__ = ["__version__",
           "RotateError",
           "ConfigError",
           "MissingFieldError",
           "ServiceError",
           "RotationError",
           "StoreError",
           "Credential",
           "ProfileRegistry",
           "ConfigType",
           "get_config_path",
           "IdentityService",
           "IAMIdentityService",
           "KeyRotator",
           "RotationCoordinator",
           "RotationState",
           "RotationSuccess",
           "RotationFailure",
           "updated_profiles",
           "CredentialStore"]
