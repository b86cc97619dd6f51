# -*- coding: utf-8 -*-
"""aws-rotate-iam-keys a module for rotating AWS IAM access keys.

This module rotates the access keys of the profiles held in the AWS config and credentials
files. Each profile gets a new key that is confirmed working before the old key is deleted
and the credentials file is updated, several profiles are rotated at once.

"""

import setuptools
import re
from io import open

VERSIONFILE="aws_rotate_iam_keys/_version.py"
verstrline = open(VERSIONFILE, "rt").read()
VSRE = r"^__version__ = ['\"]([^'\"]*)['\"]"
mo = re.search(VSRE, verstrline, re.M)
if mo:
    verstr = mo.group(1)
else:
    raise RuntimeError("Unable to find version string in %s." % (VERSIONFILE,))

with open("README.md", "r", encoding='utf-8') as fh:
    long_description = fh.read()

setuptools.setup(
    name='aws_rotate_iam_keys',
    version=verstr,
    author="Mike Moore",
    author_email="z_z_zebra@yahoo.com",
    description="Rotate AWS IAM access keys for the profiles in your AWS credentials file without ever leaving a profile without a working key",
    long_description_content_type="text/markdown",
    long_description=long_description,
    url="https://github.com/Mikemoore63/aws-rotate-iam-keys",
    packages=setuptools.find_packages(),
    tests_require=['pytest'],
    extras_require={
        "test": ['pytest'],
    },
    include_package_data=True,
    license="MIT",
    scripts=[],
    entry_points={
        "console_scripts": [
            "rotate-iam-keys=aws_rotate_iam_keys.cli:main",
        ],
    },
    install_requires=[
        "boto3>=1.26,<2.0",
    ],
    python_requires=">=3.8",
    classifiers=[
        "Programming Language :: Python :: 3",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
    ],

)
