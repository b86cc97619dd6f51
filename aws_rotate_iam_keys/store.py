# -*- coding: utf-8 -*-
"""The credentials file on disk.

Saving only ever touches the key fields of the profiles being updated. The file
is edited as text so that comments, ordering, spacing and any other profile
come back out exactly as they went in.
"""

import configparser
import logging
import os
import re
import tempfile

from aws_rotate_iam_keys.exceptions import StoreError
from aws_rotate_iam_keys.profiles import ACCESS_KEY_ID, SECRET_ACCESS_KEY, new_parser

# same header rule configparser applies to a stripped line
SECTION_RE = re.compile(r"\[(?P<name>.+)\]")
OPTION_RE = re.compile(r"^(?P<indent>[ \t]*)(?P<key>[^\s=:#;\[][^=:]*?)\s*[=:][ \t]*")


def _line_ending(line):
    if line.endswith("\r\n"):
        return "\r\n"
    if line.endswith("\n") or line.endswith("\r"):
        return line[-1]
    return ""


def _split_sections(lines):
    """Return ``[(name, start, end)]`` spans, ``start`` being the header line.

    Lines before the first header belong to no span.
    """
    spans = []
    for index, line in enumerate(lines):
        match = SECTION_RE.match(line.strip())
        if match:
            if spans:
                name, start, _ = spans[-1]
                spans[-1] = (name, start, index)
            spans.append((match.group("name"), index, len(lines)))
    return spans


def _fields(credential):
    return ((ACCESS_KEY_ID, credential.access_key_id),
            (SECRET_ACCESS_KEY, credential.secret_access_key))


def _indent(line):
    return len(line) - len(line.lstrip(" \t"))


def _update_section(lines, newline, credential):
    """Rewrite the key fields of one section (header line first).

    A line indented deeper than the option above it continues that option's
    value, as configparser reads it. Replaced keys keep their indentation.
    """
    values = dict(_fields(credential))
    result = [lines[0]]
    insert_at = 1
    option_indent = None
    key_indent = ""
    replacing = False
    for line in lines[1:]:
        if line.strip() and option_indent is not None and _indent(line) > option_indent:
            if replacing:
                # drop the rest of a multi line value we replaced
                continue
            result.append(line)
            if insert_at == len(result) - 1:
                insert_at = len(result)
            continue

        match = OPTION_RE.match(line)
        if not match:
            result.append(line)
            continue

        option_indent = len(match.group("indent"))
        key_indent = match.group("indent")
        key = match.group("key")
        replacing = key in values
        if replacing:
            result.append(line[:match.end()] + values.pop(key) + (_line_ending(line) or newline))
        else:
            result.append(line)
        insert_at = len(result)

    missing = [f"{key_indent}{key} = {value}{newline}"
               for key, value in _fields(credential) if key in values]
    if missing and not _line_ending(result[insert_at - 1]):
        result[insert_at - 1] += newline
    result[insert_at:insert_at] = missing
    return result


def apply_updates(text, updates):
    """Return ``text`` with the credentials in ``updates`` written into it.

    Args:
        text (str): the credentials document.
        updates (Mapping[str, Credential]): credential per profile name.
    """
    lines = text.splitlines(keepends=True)
    newline = next((_line_ending(line) for line in lines if _line_ending(line)), "\n")
    spans = _split_sections(lines)

    result = list(lines[:spans[0][1]]) if spans else list(lines)
    for name, start, end in spans:
        if name in updates:
            result.extend(_update_section(lines[start:end], newline, updates[name]))
        else:
            result.extend(lines[start:end])

    existing = {name for name, _, _ in spans}
    for profile, credential in updates.items():
        if profile in existing:
            continue
        if result and not _line_ending(result[-1]):
            result[-1] += newline
        if result and result[-1].strip():
            result.append(newline)
        result.append(f"[{profile}]{newline}")
        result.extend(f"{key} = {value}{newline}" for key, value in _fields(credential))

    return "".join(result)


class CredentialStore:
    """Loads and updates one credentials file."""

    def __init__(self, path):
        self._path = path

    @property
    def path(self):
        return self._path

    def _read_text(self, missing_ok=False):
        try:
            with open(self.path, "r", encoding="utf-8", newline="") as fh:
                return fh.read()
        except FileNotFoundError as e:
            if missing_ok:
                return ""
            raise StoreError(self.path, e) from e
        except (OSError, UnicodeDecodeError) as e:
            raise StoreError(self.path, e) from e

    def _parse(self, text):
        parser = new_parser()
        try:
            parser.read_string(text, source=self.path)
        except configparser.Error as e:
            raise StoreError(self.path, e) from e
        return parser

    def load(self):
        """Parse the credentials file.

        Returns:
            configparser.ConfigParser: the parsed document.

        Raises:
            StoreError: the file is missing, unreadable or malformed.
        """
        return self._parse(self._read_text())

    def save(self, updates):
        """Write ``updates`` into the credentials file.

        The file is read again right before writing so that edits made while a
        rotation was running survive. Only the key fields of the profiles in
        ``updates`` change. A malformed file is never written to.

        Args:
            updates (Mapping[str, Credential]): new credential per profile.

        Raises:
            StoreError: the file could not be parsed or written.
        """
        if not updates:
            logging.getLogger(__name__).debug(f"No updates for {self.path}")
            return

        text = self._read_text(missing_ok=True)
        # validate before touching anything
        self._parse(text)
        updated = apply_updates(text, updates)
        self._check(self._parse(updated), updates)
        self._write(updated)
        logging.getLogger(__name__).info(
            f"Updated {', '.join(sorted(updates))} in {self.path}")

    def _check(self, parser, updates):
        for profile, credential in updates.items():
            for key, value in _fields(credential):
                if parser.get(profile, key, fallback=None) != value:
                    raise StoreError(self.path, f"{key} of profile {profile} could not be "
                                                f"written")

    def _write(self, text):
        directory = os.path.dirname(os.path.abspath(self.path))
        tmp_path = None
        try:
            os.makedirs(directory, exist_ok=True)
            # mkstemp creates the file 0600, credentials are never world readable
            fd, tmp_path = tempfile.mkstemp(prefix=".credentials-", dir=directory)
            with os.fdopen(fd, "w", encoding="utf-8", newline="") as fh:
                fh.write(text)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp_path, self.path)
        except OSError as e:
            if tmp_path and os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise StoreError(self.path, e) from e
