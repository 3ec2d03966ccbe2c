"""ULID primary keys for services, availability windows and appointments.

ULIDs sort by creation time, so listing by primary key roughly follows
insertion order. Profiles are keyed by the auth provider's UUID instead.
"""

import ulid

ULID_LENGTH = 26


def generate_ulid() -> str:
    return str(ulid.new())
