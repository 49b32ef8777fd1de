"""
devbastion/utils/naming.py

Resource naming helpers for cloud stacks, plus the public-key renderings that
cloud APIs expect (EC2 key pairs take an authorized_keys line, GCP node
metadata takes "user:ssh-rsa <key> user" entries).
"""

from __future__ import annotations

import getpass
from typing import Dict, Optional


FALLBACK_NAME_PREFIX = "devbastion"


def default_name_prefix() -> str:
    """The current user name, used to keep developers' stacks apart.

    Falls back to FALLBACK_NAME_PREFIX when the uid has no login name, as in
    containers running under an arbitrary uid.
    """
    try:
        return getpass.getuser()
    except (OSError, KeyError):
        return FALLBACK_NAME_PREFIX


def gen_name(prefix: Optional[str], *parts: str) -> str:
    """Join `parts` with '-', led by `prefix` when it is non-empty."""
    if not prefix:
        return "-".join(parts)
    return "-".join((prefix,) + parts)


def name_tags(prefix: str, stack: str, resource_id: str) -> Dict[str, str]:
    """The tag map for a resource: {"Name": "<prefix>-<stack>-<id>"}."""
    return {"Name": f"{prefix}-{stack}-{resource_id}"}


def gcp_ssh_keys_entry(user: str, public_b64: str) -> str:
    return f"{user}:ssh-rsa {public_b64} {user}"
