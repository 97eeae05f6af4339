from __future__ import annotations


class RepoWeaveError(Exception):
    """Base exception class for all repoweave-specific errors.

    This is the root of the repoweave exception hierarchy. Catching it at a
    boundary (CLI command, UI adapter) handles every failure raised by the
    routers and coordinators while letting system exceptions propagate.

    Attributes:
        message: Human-readable error message describing what went wrong.

    Example:
        ```python
        try:
            await session.push_to_all_remotes()
        except RepoWeaveError as e:
            logger.error("push_failed", error=e.message)
        ```
    """

    def __init__(self, message: str) -> None:
        """Initialize the RepoWeaveError.

        Args:
            message: Human-readable error message.
        """
        self.message = message
        super().__init__(message)
