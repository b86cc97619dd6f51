# -*- coding: utf-8 -*-

import logging
from abc import ABC, abstractmethod

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from aws_rotate_iam_keys.exceptions import ServiceError
from aws_rotate_iam_keys.profiles import Credential

DEFAULT_REGION = "us-east-1"


class IdentityService(ABC):
    """Abstract Base Class for the service that issues access keys.

    A handle is bound to the credential it was built with, every call is made
    as the identity that owns that credential. The `KeyRotator` builds one
    handle per credential it needs to act as and never shares a handle
    between rotations.

    Every failure is raised as `ServiceError`.
    """

    def __init__(self, credential):
        self._credential = credential

    @property
    def credential(self):
        """The credential calls are authenticated with."""
        return self._credential

    @abstractmethod
    def issue(self):
        """Creates a new access key for the caller's identity.

        Returns:
            Credential: the new key pair.
        """
        return None

    @abstractmethod
    def probe(self):
        """Makes a cheap authenticated call.

        Succeeds only once the service honours the handle's credential, the
        result of the call is of no interest.
        """
        return None

    @abstractmethod
    def retire(self, access_key_id):
        """Deletes an access key of the caller's identity.

        Args:
            access_key_id (str): id of the key to delete.
        """
        return None


class IAMIdentityService(IdentityService):
    """`IdentityService` on top of AWS IAM.

    The IAM user is whoever owns the credential, so no user name is passed to
    IAM and a profile can only ever rotate its own keys.
    """

    def __init__(self, credential, region_name=DEFAULT_REGION, session=None):
        super(IAMIdentityService, self).__init__(credential)
        self._region_name = region_name
        self._session = session
        self._iam = None

    @property
    def region_name(self):
        return self._region_name

    @property
    def session(self):
        if self._session is None:
            self._session = boto3.Session(
                aws_access_key_id=self.credential.access_key_id,
                aws_secret_access_key=self.credential.secret_access_key,
                region_name=self.region_name,
            )
        return self._session

    @property
    def _client(self):
        if self._iam is None:
            self._iam = self.session.client("iam")
        return self._iam

    def _call(self, operation, **kwargs):
        try:
            return getattr(self._client, operation)(**kwargs)
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code")
            logging.getLogger(__name__).debug(
                f"{operation} as {self.credential.access_key_id} failed with {code}")
            raise ServiceError(operation, e, code=code) from e
        except BotoCoreError as e:
            raise ServiceError(operation, e) from e

    def issue(self):
        response = self._call("create_access_key")
        access_key = response["AccessKey"]
        return Credential(access_key["AccessKeyId"], access_key["SecretAccessKey"])

    def probe(self):
        self._call("list_access_keys")

    def retire(self, access_key_id):
        self._call("delete_access_key", AccessKeyId=access_key_id)
