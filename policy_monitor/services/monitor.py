# policy_monitor/services/monitor.py
"""
One remediation cycle: scan -> filter -> (per ad) pause -> fetch -> duplicate.

The cycle is scheduling-agnostic; RunOnce / IntervalScheduler in
scheduling.py decide when it runs.
"""
from __future__ import annotations

import logging
import threading
import time
from datetime import datetime, timezone
from typing import Callable, Optional

from ..models import AdOutcome, AdRecord, CycleSummary
from ..settings import (
    CredentialsError,
    Settings,
    customer_id as configured_customer_id,
    ensure_credentials,
)
from .duplicator import DuplicateCreator
from .google_ads import AuthenticationError, build_gateway
from .openai_client import build_rewrite_service
from .pauser import AdPauser
from .rewriter import TextRewriter
from .scanner import MissingCreativeError, PolicyScanner, filter_by_campaign

logger = logging.getLogger(__name__)


class CycleError(RuntimeError):
    """The scan or filter step failed; no ads were touched."""


class CycleInProgressError(RuntimeError):
    """Another cycle is already running on this monitor."""


def _log_reasons(ad: AdRecord) -> None:
    logger.info(
        "Ad %s [%s] in '%s' / '%s': %s",
        ad.ad_id, ad.platform_type, ad.campaign.name, ad.ad_group.name, ad.approval_status,
    )
    if not ad.policy_topics:
        logger.info("   no policy topic entries reported")
    for t in ad.policy_topics:
        logger.info("   policy: %s (%s)", t.topic, t.type)


class MonitoringCycle:
    def __init__(
        self,
        scanner: PolicyScanner,
        pauser: AdPauser,
        duplicator: DuplicateCreator,
        customer_id: str,
        campaign_marker: str = "AMG",
        step_delay: float = 2.0,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.scanner = scanner
        self.pauser = pauser
        self.duplicator = duplicator
        self.customer_id = customer_id
        self.campaign_marker = campaign_marker
        self.step_delay = step_delay
        self._sleep = sleep
        self._lock = threading.Lock()
        self.last_summary: Optional[CycleSummary] = None

    @property
    def running(self) -> bool:
        return self._lock.locked()

    def _candidates(self):
        try:
            flagged = self.scanner.scan()
            return filter_by_campaign(flagged, self.campaign_marker)
        except AuthenticationError:
            raise
        except Exception as e:
            logger.exception("Scan failed")
            raise CycleError(f"scan failed: {e}") from e

    def process(self, ad: AdRecord) -> AdOutcome:
        """Pause, then duplicate, one candidate. Errors propagate to the caller."""
        outcome = AdOutcome(
            ad_id=ad.ad_id, campaign=ad.campaign.name, ad_group=ad.ad_group.name, status="processed")
        _log_reasons(ad)

        self.pauser.pause(ad)
        self._sleep(self.step_delay)

        try:
            creative = self.scanner.fetch_creative(ad.resource_name)
        except MissingCreativeError as e:
            logger.warning("%s", e)
            creative = None

        result = self.duplicator.create(ad, creative)
        outcome.detail = result.outcome.value
        if result.detail:
            outcome.detail = f"{outcome.detail} ({result.detail})"
        if result.outcome.is_skip:
            outcome.status = "skipped"
        outcome.new_resource_name = result.resource_name
        return outcome

    def run(self) -> CycleSummary:
        if not self._lock.acquire(blocking=False):
            raise CycleInProgressError("a monitoring cycle is already running")
        try:
            return self._run()
        finally:
            self._lock.release()

    def _run(self) -> CycleSummary:
        summary = CycleSummary(customer_id=self.customer_id)
        logger.info("Starting policy monitoring cycle for customer %s", self.customer_id)

        candidates = self._candidates()
        for index, ad in enumerate(candidates, start=1):
            logger.info("Processing ad %d/%d", index, len(candidates))
            try:
                outcome = self.process(ad)
            except AuthenticationError:
                raise
            except Exception as e:
                logger.exception("Error processing ad %s", ad.ad_id)
                outcome = AdOutcome(
                    ad_id=ad.ad_id,
                    campaign=ad.campaign.name,
                    ad_group=ad.ad_group.name,
                    status="error",
                    detail=str(e),
                )
            summary.record(outcome)
            self._sleep(self.step_delay)

        summary.finished_at = datetime.now(timezone.utc)
        logger.info(
            "Cycle complete: processed=%d skipped=%d errors=%d total=%d",
            summary.processed, summary.skipped, summary.errored, summary.total,
        )
        self.last_summary = summary
        return summary


def build_monitor(
    cfg: Settings,
    customer_id: Optional[str] = None,
    dry_run: Optional[bool] = None,
    client=None,
) -> MonitoringCycle:
    """Wire a MonitoringCycle from settings. Raises CredentialsError."""
    check = ensure_credentials(cfg)
    if not check["ok"]:
        raise CredentialsError(check["missing"])
    cid = (customer_id or configured_customer_id(cfg)).replace("-", "")
    dry = cfg.DRY_RUN if dry_run is None else dry_run
    gateway = build_gateway(cfg, cid, client=client)
    rewriter = TextRewriter(rewrite_service=build_rewrite_service(cfg))
    return MonitoringCycle(
        scanner=PolicyScanner(gateway, cfg.approval_statuses, cfg.SCAN_LIMIT),
        pauser=AdPauser(
            gateway,
            confirm_delay=cfg.PAUSE_CONFIRM_DELAY_SECONDS,
            confirm_attempts=cfg.PAUSE_CONFIRM_ATTEMPTS,
            dry_run=dry,
        ),
        duplicator=DuplicateCreator(
            gateway,
            rewriter,
            max_ads_per_ad_group=cfg.MAX_ADS_PER_AD_GROUP,
            headline_max=cfg.HEADLINE_MAX_LENGTH,
            description_max=cfg.DESCRIPTION_MAX_LENGTH,
            rewrite_text=cfg.REWRITE_AD_TEXT,
            dry_run=dry,
        ),
        customer_id=cid,
        campaign_marker=cfg.CAMPAIGN_NAME_MARKER,
        step_delay=cfg.STEP_DELAY_SECONDS,
    )
