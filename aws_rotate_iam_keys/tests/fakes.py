# -*- coding: utf-8 -*-
"""In memory stand in for IAM used across the tests."""

import itertools
import threading

from aws_rotate_iam_keys import Credential, IdentityService, ServiceError


class FakeIAMBackend:
    """Keys per user, shared by every handle built from `service`.

    ``pending_probes`` is how many calls a freshly issued key fails before it
    starts working, much like IAM propagation.
    """

    def __init__(self, pending_probes=0):
        self.lock = threading.Lock()
        self.keys = {}
        self.calls = []
        self.failures = {}
        self.pending_probes = pending_probes
        self._ids = itertools.count(1)

    def add_key(self, user, credential):
        self.keys[credential.access_key_id] = [credential.secret_access_key, user, 0]

    def fail(self, operation, user, error=None):
        self.failures[(operation, user)] = error or ServiceError(operation, "AccessDenied",
                                                                 code="AccessDenied")

    def user_keys(self, user):
        with self.lock:
            return sorted(key for key, entry in self.keys.items() if entry[1] == user)

    def service(self, credential):
        return FakeIdentityService(credential, self)


class FakeIdentityService(IdentityService):

    def __init__(self, credential, backend):
        super(FakeIdentityService, self).__init__(credential)
        self.backend = backend

    def _authenticate(self, operation):
        backend = self.backend
        with backend.lock:
            backend.calls.append((operation, self.credential.access_key_id))
            entry = backend.keys.get(self.credential.access_key_id)
            if entry is None or entry[0] != self.credential.secret_access_key:
                raise ServiceError(operation, "The security token included in the request is "
                                              "invalid", code="InvalidClientTokenId")
            if entry[2] > 0:
                entry[2] -= 1
                raise ServiceError(operation, "not propagated yet", code="InvalidClientTokenId")
            user = entry[1]
            if (operation, user) in backend.failures:
                raise backend.failures[(operation, user)]
            return user

    def issue(self):
        user = self._authenticate("issue")
        with self.backend.lock:
            number = next(self.backend._ids)
            credential = Credential(f"AKNEW{number}", f"SKNEW{number}")
            self.backend.keys[credential.access_key_id] = [credential.secret_access_key, user,
                                                           self.backend.pending_probes]
        return credential

    def probe(self):
        self._authenticate("probe")

    def retire(self, access_key_id):
        user = self._authenticate("retire")
        with self.backend.lock:
            entry = self.backend.keys.get(access_key_id)
            if entry is None or entry[1] != user:
                raise ServiceError("retire", f"The Access Key with id {access_key_id} cannot be "
                                             f"found", code="NoSuchEntity")
            del self.backend.keys[access_key_id]
