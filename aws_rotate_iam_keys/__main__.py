import sys

from aws_rotate_iam_keys.cli import main

sys.exit(main())
