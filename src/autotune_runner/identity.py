"""Scoped identity delegation for the job attempt.

The job engine picks up the proxy user and delegation token from the
environment; the scope sets both before the attempt and restores the previous
values afterwards.
"""

import os
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Generator, MutableMapping, Optional

from autotune_runner.adapter import AdapterInfrastructureError
from autotune_runner.constants import HADOOP_PROXY_USER, HADOOP_TOKEN_FILE_LOCATION


@dataclass(frozen=True)
class IdentityConfig:
    user: str
    token_file: Optional[Path] = None


class IdentityError(AdapterInfrastructureError):
    """Raised when the delegated identity cannot be established."""
    pass


@contextmanager
def delegated_identity(
    identity: Optional[IdentityConfig],
    environ: Optional[MutableMapping[str, str]] = None,
) -> Generator:
    """Run the enclosed block as identity.user; no-op when identity is None."""
    if identity is None:
        yield
        return

    env = os.environ if environ is None else environ

    if identity.token_file is not None and not Path(identity.token_file).is_file():
        raise IdentityError(f"Delegation token file not found: {identity.token_file}")

    saved = {key: env.get(key) for key in (HADOOP_PROXY_USER, HADOOP_TOKEN_FILE_LOCATION)}
    env[HADOOP_PROXY_USER] = identity.user
    if identity.token_file is not None:
        env[HADOOP_TOKEN_FILE_LOCATION] = str(identity.token_file)
    print(f"Running job as proxy user: {identity.user}")
    try:
        yield
    finally:
        for key, value in saved.items():
            if value is None:
                env.pop(key, None)
            else:
                env[key] = value
