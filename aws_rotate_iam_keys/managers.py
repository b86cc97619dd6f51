# -*- coding: utf-8 -*-

import enum
import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass

from aws_rotate_iam_keys.exceptions import RotationError, ServiceError
from aws_rotate_iam_keys.identity import IAMIdentityService
from aws_rotate_iam_keys.profiles import Credential

"""
Rotating an access key for a profile.

A profile rotates its own key, the old key is what authenticates the request
for the new one and the new key is what authenticates deleting the old one.

    START --issue()--> ISSUED --probe() until ok--> CONFIRMED --retire(old)--> RETIRED
      |                  |                             |
      +------------------+-----------------------------+----> FAILED

issue      - a failure here loses nothing, the old key is still the only key.
confirm    - a new key is not usable straight away, IAM takes some seconds to
             propagate it. The new key is probed until it works. Giving up
             would strand a key nobody has confirmed, so the only ways out are
             success, the caller's deadline or the caller's cancel event.
retire     - a failure here leaves two working keys. The profile is reported
             as failed and the new key is NOT written to the credentials file,
             so running the rotation again starts from the key still on disk.

Many profiles are rotated at once by the RotationCoordinator. Each rotation
gets the value of its own credential and its own service handles so nothing
is shared between threads. Results are merged after every rotation finished.
"""

PROBE_INTERVAL_SECONDS = 5.0
PROFILE_NOT_FOUND = "profile not found"


class RotationState(enum.Enum):
    START = "start"
    ISSUED = "issued"
    CONFIRMED = "confirmed"
    RETIRED = "retired"
    FAILED = "failed"


@dataclass(frozen=True)
class RotationSuccess:
    profile: str
    credential: Credential


@dataclass(frozen=True)
class RotationFailure:
    profile: str
    reason: str
    error: Exception = None


class KeyRotator:
    """Drives one profile through issue, confirm and retire.

    Attributes:
        service_factory (callable): builds an `IdentityService` for a `Credential`.
        probe_interval (float): seconds between confirm probes.
        deadline (float): seconds a rotation may spend confirming a new key,
            None waits for as long as it takes.
        cancel_event (threading.Event): set by the caller to give up confirming.
    """

    def __init__(self,
                 service_factory=IAMIdentityService,
                 probe_interval=PROBE_INTERVAL_SECONDS,
                 deadline=None,
                 cancel_event=None):
        self._service_factory = service_factory
        self._probe_interval = probe_interval
        self._deadline = deadline
        self._cancel_event = cancel_event if cancel_event is not None else threading.Event()

    @property
    def service_factory(self):
        return self._service_factory

    @property
    def probe_interval(self):
        return self._probe_interval

    @property
    def deadline(self):
        return self._deadline

    @property
    def cancel_event(self):
        return self._cancel_event

    def rotate(self, profile, old_credential):
        """Replace ``old_credential`` with a brand new one.

        Args:
            profile (str): name used for logging and errors.
            old_credential (Credential): the profile's current key.

        Returns:
            tuple: ``(profile, new_credential)``.

        Raises:
            RotationError: carrying the state the rotation failed in.
        """
        logging.getLogger(__name__).info(f"Creating new access key for profile: {profile}")
        try:
            new_credential = self.service_factory(old_credential).issue()
        except ServiceError as e:
            raise RotationError(profile, RotationState.START, e) from e
        logging.getLogger(__name__).info(
            f"Profile {profile} {RotationState.ISSUED.name} {new_credential.access_key_id}")

        # From here on act as the new key, it must be usable to get further
        new_service = self.service_factory(new_credential)
        try:
            self._confirm(profile, new_service, new_credential)
        except RotationError:
            raise
        except Exception:
            logging.getLogger(__name__).warning(
                f"Confirming {new_credential.access_key_id} for profile {profile} failed, "
                f"it may need deleting by hand")
            raise
        logging.getLogger(__name__).info(f"Profile {profile} {RotationState.CONFIRMED.name}")

        logging.getLogger(__name__).info(
            f"Deleting old access key {old_credential.access_key_id} for profile: {profile}")
        try:
            new_service.retire(old_credential.access_key_id)
        except Exception as e:
            logging.getLogger(__name__).warning(
                f"Profile {profile} now has two active keys, {old_credential.access_key_id} "
                f"could not be deleted, {new_credential.access_key_id} is not saved")
            if not isinstance(e, ServiceError):
                raise
            raise RotationError(profile, RotationState.CONFIRMED, e,
                                orphaned_access_key_id=new_credential.access_key_id) from e
        logging.getLogger(__name__).info(f"Profile {profile} {RotationState.RETIRED.name}")

        return profile, new_credential

    def _confirm(self, profile, new_service, new_credential):
        started = time.monotonic()
        attempt = 0
        while True:
            attempt += 1
            try:
                new_service.probe()
                return
            except ServiceError as e:
                logging.getLogger(__name__).debug(
                    f"Profile {profile} key {new_credential.access_key_id} "
                    f"not active yet, attempt {attempt}: {e}")
                expired = self.deadline is not None and \
                    time.monotonic() - started + self.probe_interval > self.deadline
                if expired or self.cancel_event.wait(self.probe_interval):
                    logging.getLogger(__name__).warning(
                        f"Gave up confirming {new_credential.access_key_id} for profile "
                        f"{profile}, it may need deleting by hand")
                    raise RotationError(profile, RotationState.ISSUED, e,
                                        orphaned_access_key_id=new_credential.access_key_id) \
                        from e


def updated_profiles(before, after):
    """Profiles whose credential in ``after`` differs from ``before``."""
    return {profile: credential for profile, credential in after.items()
            if before.get(profile) != credential}


class RotationCoordinator:
    """Rotates a batch of profiles in parallel.

    Every profile is rotated in its own thread from a value copy of its
    credential. Failures are collected per profile and never stop the other
    rotations; the coordinator always waits for all of them before merging.

    Attributes:
        rotator (KeyRotator): runs a single rotation.
        max_workers (int): cap on rotations in flight, None runs them all at once.
    """

    def __init__(self, rotator=None, max_workers=None):
        self._rotator = rotator if rotator is not None else KeyRotator()
        self._max_workers = max_workers

    @property
    def rotator(self):
        return self._rotator

    @property
    def max_workers(self):
        return self._max_workers

    def cancel(self):
        """Ask rotations still confirming a key to stop."""
        self.rotator.cancel_event.set()

    def run_outcomes(self, profile_names, registry):
        """Rotate every named profile.

        Args:
            profile_names (list): names to rotate, duplicates are rotated once.
            registry (ProfileRegistry): snapshot of current credentials.

        Returns:
            list: a `RotationSuccess` or `RotationFailure` per distinct name, in
            the order the names were given.
        """
        # a cancel only applies to the run it interrupted
        self.rotator.cancel_event.clear()
        names = list(dict.fromkeys(profile_names))
        outcomes = {}
        to_rotate = []
        for name in names:
            if name not in registry:
                logging.getLogger(__name__).error(
                    f"Profile: {name} does not exist in credentials file")
                outcomes[name] = RotationFailure(name, PROFILE_NOT_FOUND)
            else:
                to_rotate.append(name)

        if to_rotate:
            workers = self.max_workers or len(to_rotate)
            with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="rotate") as executor:
                futures = {executor.submit(self.rotator.rotate, name, registry[name]): name
                           for name in to_rotate}
                try:
                    wait(futures)
                except KeyboardInterrupt:
                    logging.getLogger(__name__).warning(
                        "Interrupted, waiting for rotations in progress to stop")
                    self.cancel()
                    wait(futures)

                for future, name in futures.items():
                    outcomes[name] = self._outcome(name, future)

        return [outcomes[name] for name in names]

    @staticmethod
    def _outcome(name, future):
        try:
            profile, credential = future.result()
            return RotationSuccess(profile, credential)
        except RotationError as e:
            logging.getLogger(__name__).error(str(e))
            return RotationFailure(name, str(e), e)
        except Exception as e:
            logging.getLogger(__name__).exception(f"While rotating profile {name}")
            return RotationFailure(name, str(e), e)

    def run(self, profile_names, registry, dry_run=False):
        """Rotate profiles and merge the new credentials.

        Args:
            profile_names (list): names to rotate.
            registry (ProfileRegistry): snapshot of current credentials.
            dry_run (bool): only report what would be rotated.

        Returns:
            tuple: ``(updated_registry, failures)``, failures being a list of
            `RotationFailure`. Failed profiles keep their old credential.
        """
        if dry_run:
            for name in dict.fromkeys(profile_names):
                logging.getLogger(__name__).info(f"Would rotate {name}")
            return registry, []

        outcomes = self.run_outcomes(profile_names, registry)
        updates = {outcome.profile: outcome.credential for outcome in outcomes
                   if isinstance(outcome, RotationSuccess)}
        failures = [outcome for outcome in outcomes if isinstance(outcome, RotationFailure)]
        return registry.replace(updates), failures
