# -*- coding: utf-8 -*-
"""
End to end runs of the command line against a fake IAM.

"""
import logging
import os
import tempfile
import unittest
from unittest import mock

from aws_rotate_iam_keys import Credential
from aws_rotate_iam_keys.cli import build_parser, main, run
from aws_rotate_iam_keys.store import CredentialStore
from aws_rotate_iam_keys.tests.fakes import FakeIAMBackend

CONFIG = """[profile dev]
region = eu-west-1

[profile prod]
region = us-east-1

[profile ops]
role_arn = arn:aws:iam::123456789012:role/ops
source_profile = prod
"""

CREDENTIALS = """# personal keys
[dev]
aws_access_key_id = AK1
aws_secret_access_key = SK1

[prod]
aws_access_key_id = AK2
aws_secret_access_key = SK2

[scratch]
aws_access_key_id = AK9
aws_secret_access_key = SK9
"""


def setup_module():
    logging.basicConfig(level=logging.DEBUG)


class TestCli(unittest.TestCase):

    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.config_path = os.path.join(self._tmp.name, "config")
        self.credentials_path = os.path.join(self._tmp.name, "credentials")
        with open(self.config_path, "w") as fh:
            fh.write(CONFIG)
        with open(self.credentials_path, "w") as fh:
            fh.write(CREDENTIALS)

        self.backend = FakeIAMBackend()
        self.backend.add_key("dev-user", Credential("AK1", "SK1"))
        self.backend.add_key("prod-user", Credential("AK2", "SK2"))

    def tearDown(self):
        self._tmp.cleanup()

    def args(self, *extra):
        return build_parser().parse_args(["--credfile", self.credentials_path,
                                          "--configfile", self.config_path, *extra])

    def read(self):
        with open(self.credentials_path) as fh:
            return fh.read()

    def test_profiles_parsed(self):
        args = self.args("--profile=dev,prod", "-p", "qa")
        assert args.profiles == [["dev", "prod"], ["qa"]]

    def test_profile_required(self):
        with self.assertRaises(SystemExit):
            build_parser().parse_args([])

    def test_rotate_dev_and_prod(self):
        code = run(self.args("-p", "dev,prod"), service_factory=self.backend.service)
        assert code == 0

        loaded = CredentialStore(self.credentials_path).load()
        dev = loaded.get("dev", "aws_access_key_id")
        prod = loaded.get("prod", "aws_access_key_id")
        assert dev != "AK1" and prod != "AK2"
        assert self.backend.user_keys("dev-user") == [dev]
        assert self.backend.user_keys("prod-user") == [prod]
        assert dict(loaded.items("scratch")) == {"aws_access_key_id": "AK9",
                                                 "aws_secret_access_key": "SK9"}
        assert self.read().startswith("# personal keys\n"), "Comments must survive"

    def test_failure_is_reported_and_others_saved(self):
        self.backend.fail("retire", "dev-user")
        with self.assertLogs("aws_rotate_iam_keys.cli", level="ERROR") as logs:
            code = run(self.args("-p", "dev", "-p", "prod"), service_factory=self.backend.service)
        assert code == 0, "Profile failures are reported, not fatal"
        assert any("Profile dev was not rotated" in line for line in logs.output)

        loaded = CredentialStore(self.credentials_path).load()
        assert loaded.get("dev", "aws_access_key_id") == "AK1"
        assert loaded.get("prod", "aws_access_key_id") != "AK2"

    def test_dry_run(self):
        before = self.read()
        code = run(self.args("-p", "dev,prod", "--dry-run"), service_factory=self.backend.service)
        assert code == 0
        assert self.backend.calls == []
        assert self.read() == before, "Dry run must leave the credentials file as it was"

    def test_unknown_profile(self):
        before = self.read()
        code = run(self.args("-p", "ops"), service_factory=self.backend.service)
        assert code == 0
        assert self.backend.calls == []
        assert self.read() == before

    def test_disable_not_implemented(self):
        before = self.read()
        code = run(self.args("-p", "dev", "--disable"), service_factory=self.backend.service)
        assert code == 1
        assert self.backend.calls == []
        assert self.read() == before

    def test_config_error(self):
        with open(self.credentials_path, "w") as fh:
            fh.write("[dev]\naws_access_key_id = AK1\n")
        code = run(self.args("-p", "dev"), service_factory=self.backend.service)
        assert code == 1
        assert self.backend.calls == [], "No network call before the config is valid"

    def test_store_error(self):
        before = self.read()
        with mock.patch("aws_rotate_iam_keys.store.os.replace", side_effect=OSError("disk full")):
            code = run(self.args("-p", "dev"), service_factory=self.backend.service)
        assert code == 1
        assert self.read() == before
        assert sorted(os.listdir(self._tmp.name)) == ["config", "credentials"], \
            "Temporary file must be removed"

    def test_env_paths(self):
        env = {"AWS_CONFIG_FILE": self.config_path,
               "AWS_SHARED_CREDENTIALS_FILE": self.credentials_path}
        with mock.patch.dict(os.environ, env), \
                mock.patch("aws_rotate_iam_keys.cli.run", return_value=0) as patched:
            assert main(["-p", "dev"]) == 0
        args = patched.call_args[0][0]
        assert args.credfile is None and args.configfile is None

        with mock.patch.dict(os.environ, env):
            code = run(build_parser().parse_args(["-p", "dev"]),
                       service_factory=self.backend.service)
        assert code == 0
        assert CredentialStore(self.credentials_path).load().get("dev", "aws_access_key_id") \
            != "AK1"
