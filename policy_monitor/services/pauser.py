# policy_monitor/services/pauser.py
from __future__ import annotations

import logging
import time
from typing import Any, Callable, Optional

import grpc

from ..models import AdRecord
from .google_ads import AdsApiError, AdsGateway, AuthenticationError, enum_name

logger = logging.getLogger(__name__)

STATUS_QUERY = """
    SELECT ad_group_ad.status
    FROM ad_group_ad
    WHERE ad_group_ad.resource_name = '{resource_name}'
"""


class AdPauser:
    """Pause an ad via an update operation and poll until the change shows up."""

    def __init__(
        self,
        gateway: AdsGateway,
        confirm_delay: float = 3.0,
        confirm_attempts: int = 3,
        dry_run: bool = False,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.gateway = gateway
        self.confirm_delay = confirm_delay
        self.confirm_attempts = max(0, int(confirm_attempts))
        self.dry_run = dry_run
        self._sleep = sleep

    def build_operation(self, resource_name: str) -> Any:
        op = self.gateway.new_operation()
        op.update.resource_name = resource_name
        op.update.status = self.gateway.enums.AdGroupAdStatusEnum.PAUSED
        op.update_mask.paths.append("status")
        return op

    def current_status(self, resource_name: str) -> Optional[str]:
        rows = self.gateway.search(
            STATUS_QUERY.format(resource_name=resource_name), what="verify pause")
        if not rows:
            return None
        return enum_name(rows[0].ad_group_ad.status)

    def confirm(self, resource_name: str) -> bool:
        for attempt in range(1, self.confirm_attempts + 1):
            self._sleep(self.confirm_delay)
            try:
                status = self.current_status(resource_name)
            except AuthenticationError:
                raise
            except (AdsApiError, grpc.RpcError) as e:
                logger.warning("Pause check %d/%d failed: %s", attempt, self.confirm_attempts, e)
                continue
            logger.info("Pause check %d/%d: status=%s", attempt, self.confirm_attempts, status)
            if status == "PAUSED":
                return True
        return False

    def pause(self, ad: AdRecord) -> bool:
        """Pause ad. Returns True once the PAUSED status is confirmed."""
        if self.dry_run:
            logger.info("[dry run] would pause ad %s (%s)", ad.ad_id, ad.resource_name)
            return False

        logger.info("Pausing ad %s", ad.ad_id)
        resp = self.gateway.mutate_ad_group_ads(
            [self.build_operation(ad.resource_name)], what="pause ad")
        logger.info("Pause request accepted: %s", resp.results[0].resource_name)

        if self.confirm(ad.resource_name):
            logger.info("Ad %s successfully paused", ad.ad_id)
            return True
        logger.warning("Pause of ad %s not confirmed after %d checks", ad.ad_id, self.confirm_attempts)
        return False
