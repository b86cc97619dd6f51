# -*- coding: utf-8 -*-

class RotateError(Exception):
    """Base Error class."""


class ConfigError(RotateError):
    """Config or credentials document is missing, malformed or incomplete."""


class MissingFieldError(ConfigError):
    CUSTOM_ERROR_MESSAGE = "Profile {} has no {} in the credentials file"

    def __init__(self, profile, field):
        super(MissingFieldError, self).__init__(self.CUSTOM_ERROR_MESSAGE.format(profile, field))
        self._profile = profile
        self._field = field

    @property
    def profile(self):
        return self._profile

    @property
    def field(self):
        return self._field


class ServiceError(RotateError):
    CUSTOM_ERROR_MESSAGE = "Identity service call {} failed error {}"

    def __init__(self, operation, error, code=None):
        super(ServiceError, self).__init__(self.CUSTOM_ERROR_MESSAGE.format(operation,
                                                                            str(error)))
        self._operation = operation
        self._error = error
        self._code = code

    @property
    def operation(self):
        return self._operation

    @property
    def error(self):
        return self._error

    @property
    def code(self):
        return self._code


class RotationError(RotateError):
    CUSTOM_ERROR_MESSAGE = "Profile {} rotation failed in state {} error {}"

    def __init__(self, profile, state, cause, orphaned_access_key_id=None):
        super(RotationError, self).__init__(self.CUSTOM_ERROR_MESSAGE.format(profile,
                                                                             state.name,
                                                                             str(cause)))
        self._profile = profile
        self._state = state
        self._cause = cause
        self._orphaned_access_key_id = orphaned_access_key_id

    @property
    def profile(self):
        return self._profile

    @property
    def state(self):
        return self._state

    @property
    def cause(self):
        return self._cause

    @property
    def orphaned_access_key_id(self):
        """Id of a newly issued key left behind by the failure, if any."""
        return self._orphaned_access_key_id


class StoreError(RotateError):
    CUSTOM_ERROR_MESSAGE = "Credentials file {} could not be updated error {}"

    def __init__(self, path, error):
        super(StoreError, self).__init__(self.CUSTOM_ERROR_MESSAGE.format(path, str(error)))
        self._path = path
        self._error = error

    @property
    def path(self):
        return self._path

    @property
    def error(self):
        return self._error
