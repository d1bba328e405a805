"""Run orchestration.

A run is an ordered list of phase objects executed by ``execute``. Each phase
declares the ``WorkflowContext`` fields it needs (``requires``) and the ones
it fills in (``provides``); the executor checks both around every phase.

Failure policy: the first error of any phase, including a single account's
extraction, aborts the run. The executor then saves ``error.png``, attempts a
logout, saves ``after_logout.png`` and closes the browser. Closing happens
exactly once on every exit path. Artifacts written before the failure stay.
"""

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path

from . import accounts as account_directory
from . import exporter
from . import session as session_ctl
from .config import ExtractMode, ScraperConfig
from .errors import ScraperError
from .extraction import AccountExtraction
from .models import Account, ExtractionResult, TimeRange
from .session import Launcher, Session, launch_chromium

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1


@dataclass
class WorkflowContext:
    config: ScraperConfig
    requested: list[str] = field(default_factory=list)
    time_range: TimeRange | None = None
    session: Session | None = None
    discovered: list[Account] | None = None
    selected: list[Account] | None = None
    results: list[ExtractionResult] | None = None
    artifacts: list[Path] | None = None
    logged_out: bool | None = None
    failure: BaseException | None = None
    failed_phase: str | None = None

    def screenshot(self, name: str) -> Path | None:
        if self.session is None:
            return None
        return self.session.screenshot(self.config.screenshot_dir / f"{name}.png")


@dataclass
class WorkflowOutcome:
    exit_code: int
    context: WorkflowContext

    @property
    def ok(self) -> bool:
        return self.exit_code == EXIT_OK


class Phase:
    name = "phase"
    requires: tuple[str, ...] = ()
    provides: tuple[str, ...] = ()

    def run(self, ctx: WorkflowContext) -> None:
        raise NotImplementedError


class OpenSession(Phase):
    name = "open_session"
    provides = ("session",)

    def __init__(self, launcher: Launcher = launch_chromium) -> None:
        self.launcher = launcher

    def run(self, ctx: WorkflowContext) -> None:
        ctx.session = session_ctl.open_session(ctx.config, launcher=self.launcher)


class Login(Phase):
    """Log in and open the transaction page."""

    name = "login"
    requires = ("session",)

    def run(self, ctx: WorkflowContext) -> None:
        ctx.screenshot("before_login")
        session_ctl.login(ctx.session, ctx.config.credentials)
        session_ctl.navigate_to_transactions(ctx.session)


class ResolveAccounts(Phase):
    name = "resolve_accounts"
    requires = ("session",)
    provides = ("discovered", "selected")

    def run(self, ctx: WorkflowContext) -> None:
        ctx.discovered = account_directory.discover(ctx.session)
        ctx.selected = account_directory.select_accounts(ctx.requested, ctx.discovered)
        if not ctx.selected:
            logger.warning("No account matches %s; nothing to extract.", ", ".join(ctx.requested))
        else:
            logger.info("Selected %d of %d accounts.", len(ctx.selected), len(ctx.discovered))


class ExtractAccounts(Phase):
    """Select -> query -> extract -> export, one account after the other."""

    name = "extract_accounts"
    requires = ("session", "selected", "time_range")
    provides = ("results", "artifacts")

    def run(self, ctx: WorkflowContext) -> None:
        cfg = ctx.config
        ctx.results = []
        ctx.artifacts = []
        for account in ctx.selected:
            target = None
            if cfg.mode is ExtractMode.FILE:
                target = exporter.download_path(cfg.download_dir, account, ctx.time_range)

            result = AccountExtraction(ctx.session, account, ctx.time_range, download_target=target).run()
            ctx.results.append(result)

            if cfg.mode is ExtractMode.FILE:
                ctx.artifacts.append(result.downloaded_file)
            else:
                ctx.artifacts.append(exporter.write_result(cfg.output_dir, result))


class Logout(Phase):
    name = "logout"
    requires = ("session",)
    provides = ("logged_out",)

    def run(self, ctx: WorkflowContext) -> None:
        ctx.logged_out = session_ctl.logout(ctx.session)
        ctx.screenshot("after_logout")


def _missing(ctx: WorkflowContext, names: Sequence[str]) -> list[str]:
    return [n for n in names if getattr(ctx, n) is None]


def _teardown(ctx: WorkflowContext) -> None:
    session = ctx.session
    if session is None:
        return
    if ctx.logged_out is None and session.state is session_ctl.SessionState.AUTHENTICATED:
        ctx.logged_out = session_ctl.logout(session)
        ctx.screenshot("after_logout")
    session.close()


def execute(phases: Sequence[Phase], ctx: WorkflowContext) -> WorkflowOutcome:
    """Run ``phases`` in order; on failure capture, log out and close once."""
    try:
        for phase in phases:
            missing = _missing(ctx, phase.requires)
            if missing:
                raise ScraperError(f"Phase {phase.name} is missing inputs: {', '.join(missing)}")

            logger.debug("Running phase %s", phase.name)
            phase.run(ctx)

            missing = _missing(ctx, phase.provides)
            if missing:
                raise ScraperError(f"Phase {phase.name} did not provide: {', '.join(missing)}")
    except Exception as e:
        ctx.failure = e
        ctx.failed_phase = phase.name
        if isinstance(e, ScraperError):
            logger.error("%s failed: %s", phase.name, e)
        else:
            logger.error("%s failed with unexpected %s: %s", phase.name, type(e).__name__, e)
            logger.debug("Traceback", exc_info=True)
        ctx.screenshot("error")
    finally:
        _teardown(ctx)

    return WorkflowOutcome(EXIT_FAILURE if ctx.failure else EXIT_OK, ctx)


def run_workflow(config: ScraperConfig, requested: Sequence[str], time_range: TimeRange,
                 launcher: Launcher = launch_chromium) -> WorkflowOutcome:
    ctx = WorkflowContext(config=config, requested=list(requested), time_range=time_range)
    phases = [OpenSession(launcher), Login(), ResolveAccounts(), ExtractAccounts(), Logout()]
    outcome = execute(phases, ctx)
    if outcome.ok:
        logger.info("Done: %d account(s) exported.", len(ctx.artifacts or []))
    return outcome


def list_accounts(config: ScraperConfig, launcher: Launcher = launch_chromium) -> WorkflowOutcome:
    ctx = WorkflowContext(config=config, requested=[account_directory.ALL_ACCOUNTS])
    return execute([OpenSession(launcher), Login(), ResolveAccounts(), Logout()], ctx)
