"""Process exit codes for the relgate CLI.

Values are part of the CLI contract and must remain stable:
- 0: Released or Skipped run
- 1: User error (bad arguments)
- 2: Environment or configuration error (missing tool, bad config, bad history)
- 3: Build error (packaging failed, version drift in an artifact)
- 4: Network error (timeouts after retries)
- 6: Credential rejected by the registry
- 7: Consistency error (registry or tag already holds a different release)
"""

from enum import IntEnum

__all__ = ["ErrorCode"]


class ErrorCode(IntEnum):
    OK = 0
    USER_ERROR = 1
    ENV_ERROR = 2
    BUILD_ERROR = 3
    NETWORK_ERROR = 4
    AUTH_ERROR = 6
    CONSISTENCY_ERROR = 7

    def __str__(self) -> str:
        return self.name.lower().replace("_", " ")

    @property
    def is_success(self) -> bool:
        return self == ErrorCode.OK
