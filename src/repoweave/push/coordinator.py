"""Multi-remote push fan-out.

:meth:`PushCoordinator.push_to_all_remotes` pushes one branch to every
push-capable clone URL independently, resolving a credential per host, and
aggregates the outcomes under a failure policy:

``best-effort``
    Partial success returns normally; only a total failure raises
    :class:`~repoweave.exceptions.RetriableError`.

``all-or-nothing``
    Any failure raises :class:`~repoweave.exceptions.UserActionableError`.

Both errors carry ``details = {"branch": ..., "results": (...)}`` with every
per-remote outcome. Under ``all-or-nothing`` the error kind is the one shared by
every failed remote, ``UNKNOWN`` when they differ.
"""

from __future__ import annotations

import dataclasses
import functools
from collections.abc import Callable, Iterable
from dataclasses import asdict, dataclass

from repoweave.config import PushMode
from repoweave.credentials import CredentialStore, Token, try_tokens_for_host
from repoweave.engine import GitEngine, PushRequest, PushResult, RepoAnnouncement
from repoweave.exceptions import (
    ErrorContext,
    ErrorKind,
    FatalError,
    RepoWeaveError,
    RetriableError,
    UserActionableError,
    auth_required_error,
    error_kind_of,
)
from repoweave.logging import get_logger
from repoweave.remotes import (
    detect_vendor,
    extract_hostname,
    filter_valid_remotes,
    is_credential_less,
    short_ref_name,
)

__all__ = ["PushCoordinator", "PushFanoutResult", "RemotePushOutcome"]

logger = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class RemotePushOutcome:
    """Outcome of pushing to one remote."""

    remote_url: str
    success: bool
    provider: str | None = None
    host: str | None = None
    error: str | None = None
    kind: ErrorKind | None = None

    def to_dict(self) -> dict[str, object]:
        data = asdict(self)
        data["kind"] = self.kind.value if self.kind else None
        return data


@dataclass(frozen=True, slots=True)
class PushFanoutResult:
    """Aggregated outcome of a push fan-out."""

    branch: str
    results: tuple[RemotePushOutcome, ...]

    @property
    def any_succeeded(self) -> bool:
        return any(r.success for r in self.results)

    @property
    def all_succeeded(self) -> bool:
        return all(r.success for r in self.results)

    @property
    def failed(self) -> tuple[RemotePushOutcome, ...]:
        return tuple(r for r in self.results if not r.success)

    def to_dict(self) -> dict[str, object]:
        return {
            "branch": self.branch,
            "results": [r.to_dict() for r in self.results],
            "any_succeeded": self.any_succeeded,
            "all_succeeded": self.all_succeeded,
        }


def _failed_hosts(outcomes: Iterable[RemotePushOutcome]) -> str:
    return ", ".join(o.host or o.remote_url for o in outcomes)


def _failure_kind(outcomes: Iterable[RemotePushOutcome]) -> ErrorKind:
    """The kind shared by every failed outcome, ``UNKNOWN`` when they differ."""
    kinds = {o.kind or ErrorKind.UNKNOWN for o in outcomes}
    return kinds.pop() if len(kinds) == 1 else ErrorKind.UNKNOWN


class PushCoordinator:
    """Pushes branches of one repository to all of its remotes.

    Args:
        engine: Git engine RPC handle performing the actual pushes.
        credentials: Token source for authenticated remotes.
        default_branch: Returns the branch pushed when none is given.
        default_mode: Failure policy used when none is given.
    """

    def __init__(
        self,
        engine: GitEngine,
        credentials: CredentialStore,
        *,
        default_branch: Callable[[], str] | None = None,
        default_mode: PushMode = "best-effort",
    ) -> None:
        self._engine = engine
        self._credentials = credentials
        self._default_branch = default_branch
        self._default_mode = default_mode
        self._repo: RepoAnnouncement | None = None

    def set_repo(self, repo: RepoAnnouncement) -> None:
        self._repo = repo

    async def _load_tokens(self) -> list[Token]:
        try:
            return await self._credentials.get_all_tokens()
        except RepoWeaveError as e:
            logger.warning("push_tokens_unavailable", error=e.message)
            return []

    def _resolve_branch(self, branch: str | None) -> str:
        fallback = self._default_branch() if self._default_branch else "main"
        return short_ref_name(branch or fallback) or fallback

    async def push_to_all_remotes(
        self,
        branch: str | None = None,
        mode: PushMode | None = None,
        allow_force: bool = False,
        confirm_destructive: bool = False,
    ) -> PushFanoutResult:
        """Push *branch* to every push-capable remote.

        Args:
            branch: Branch to push. Defaults to ``default_branch()``.
            mode: ``"best-effort"`` or ``"all-or-nothing"``.
            allow_force: Permit non-fast-forward pushes.
            confirm_destructive: Confirm pushes the engine flags as destructive.

        Returns:
            Per-remote outcomes.

        Raises:
            FatalError: If no repository id is bound.
            UserActionableError: If there is no push-capable remote, or any
                remote failed under ``all-or-nothing``.
            RetriableError: If every remote failed under ``best-effort``.
        """
        repo = self._repo
        if repo is None or not repo.repo_id:
            raise FatalError(
                "Cannot push: repository id is missing",
                context=ErrorContext(op="pushToAllRemotes"),
            )

        mode = mode or self._default_mode
        target = self._resolve_branch(branch)
        remotes = filter_valid_remotes(repo.clone_urls)
        if not remotes:
            rejected = tuple(u.strip() for u in repo.clone_urls if u and u.strip())
            listed = ", ".join(rejected) if rejected else "none announced"
            raise UserActionableError(
                "Cannot push: no push-capable remotes found in repository clone URLs "
                f"(rejected: {listed})",
                ErrorKind.NOT_FOUND,
                details={"rejected": rejected},
            )

        tokens = await self._load_tokens()
        log = logger.bind(repo_id=repo.repo_id, branch=target, mode=mode)
        log.info("push_fanout_started", remotes=len(remotes))

        outcomes: list[RemotePushOutcome] = []
        for remote_url in remotes:
            outcome = await self._push_one(
                repo.repo_id, remote_url, target, tokens, allow_force, confirm_destructive
            )
            if not outcome.success:
                log.warning("push_remote_failed", remote=remote_url, error=outcome.error)
            outcomes.append(outcome)

        result = PushFanoutResult(branch=target, results=tuple(outcomes))
        details = {"branch": target, "results": result.results}
        failed = result.failed

        if mode == "all-or-nothing" and failed:
            raise UserActionableError(
                f"Push failed for {len(failed)}/{len(result.results)} remotes: "
                f"{_failed_hosts(failed)}",
                _failure_kind(failed),
                details=details,
            )
        if mode == "best-effort" and not result.any_succeeded:
            raise RetriableError(
                f"Push failed for all {len(result.results)} remotes: "
                f"{_failed_hosts(failed)}",
                ErrorKind.NETWORK,
                details=details,
            )

        log.info(
            "push_fanout_completed",
            succeeded=len(result.results) - len(failed),
            failed=len(failed),
        )
        return result

    async def _push_one(
        self,
        repo_id: str,
        remote_url: str,
        branch: str,
        tokens: list[Token],
        allow_force: bool,
        confirm_destructive: bool,
    ) -> RemotePushOutcome:
        vendor = detect_vendor(remote_url)
        provider = vendor.value if vendor else None
        host = extract_hostname(remote_url)

        request = PushRequest(
            repo_id=repo_id,
            remote_url=remote_url,
            branch=branch,
            provider=provider,
            allow_force=allow_force,
            confirm_destructive=confirm_destructive,
        )
        failed = functools.partial(
            RemotePushOutcome, remote_url=remote_url, success=False, provider=provider
        )

        if is_credential_less(remote_url):
            try:
                response = await self._engine.safe_push_to_remote(request)
            except Exception as e:
                return failed(host=host, error=str(e), kind=error_kind_of(e))
            return _outcome(remote_url, provider, host, response)

        if not host:
            return failed(
                error=f"Cannot push to remote: unable to determine host for {remote_url}",
                kind=ErrorKind.UNKNOWN,
            )

        async def attempt(token: str, _token_host: str) -> PushResult:
            response = await self._engine.safe_push_to_remote(
                dataclasses.replace(request, token=token)
            )
            if not response.success and not response.requires_confirmation:
                raise auth_required_error(
                    response.error or "Push rejected",
                    context=ErrorContext(op="push", remote=remote_url, branch=branch),
                )
            return response

        try:
            response = await try_tokens_for_host(tokens, host, attempt, op_name="push")
        except RepoWeaveError as e:
            return failed(host=host, error=e.message, kind=error_kind_of(e))
        return _outcome(remote_url, provider, host, response)


def _outcome(
    remote_url: str, provider: str | None, host: str | None, response: PushResult
) -> RemotePushOutcome:
    error: str | None = None
    kind: ErrorKind | None = None
    if not response.success:
        error = response.error or "Push rejected"
        kind = ErrorKind.UNKNOWN
        if response.requires_confirmation:
            error = f"{error} (confirmation required)"
            kind = ErrorKind.AUTH_REQUIRED
    return RemotePushOutcome(
        remote_url=remote_url,
        success=response.success,
        provider=provider,
        host=host,
        error=error,
        kind=kind,
    )
