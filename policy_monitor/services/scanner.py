# policy_monitor/services/scanner.py
"""
Policy scanning: find ads whose approval status needs remediation, restrict
them to the monitored campaigns, and fetch full creatives for duplication.
"""
from __future__ import annotations

import logging
from collections import Counter, OrderedDict
from typing import Any, Dict, Iterable, List, Optional

from ..models import (
    AdAsset,
    AdCreative,
    AdGroupRef,
    AdRecord,
    AdType,
    CampaignRef,
    PolicyTopic,
    ResponsiveAdContent,
    TextAdContent,
)
from .google_ads import AdsGateway, enum_name

logger = logging.getLogger(__name__)


class MissingCreativeError(LookupError):
    """The ad disappeared (or returned no creative) between scan and fetch."""


SCAN_QUERY = """
    SELECT
      ad_group_ad.ad.id,
      ad_group_ad.ad.type,
      ad_group_ad.status,
      ad_group_ad.policy_summary.approval_status,
      ad_group_ad.policy_summary.policy_topic_entries,
      ad_group_ad.resource_name,
      ad_group.id,
      ad_group.name,
      ad_group.status,
      campaign.id,
      campaign.name,
      campaign.status
    FROM ad_group_ad
    WHERE campaign.status IN ('ENABLED', 'PAUSED')
      AND ad_group.status IN ('ENABLED', 'PAUSED')
      AND ad_group_ad.status = 'ENABLED'
"""

CREATIVE_QUERY = """
    SELECT
      ad_group_ad.ad.id,
      ad_group_ad.ad.type,
      ad_group_ad.ad.final_urls,
      ad_group_ad.ad.expanded_text_ad.headline_part1,
      ad_group_ad.ad.expanded_text_ad.headline_part2,
      ad_group_ad.ad.expanded_text_ad.headline_part3,
      ad_group_ad.ad.expanded_text_ad.description,
      ad_group_ad.ad.expanded_text_ad.description2,
      ad_group_ad.ad.expanded_text_ad.path1,
      ad_group_ad.ad.expanded_text_ad.path2,
      ad_group_ad.ad.responsive_search_ad.headlines,
      ad_group_ad.ad.responsive_search_ad.descriptions,
      ad_group_ad.ad.responsive_search_ad.path1,
      ad_group_ad.ad.responsive_search_ad.path2
    FROM ad_group_ad
    WHERE ad_group_ad.resource_name = '{resource_name}'
"""

_NO_PIN = {"UNSPECIFIED", "UNKNOWN", "0", "None", ""}


def _row_to_record(row: Any) -> AdRecord:
    aga = row.ad_group_ad
    platform_type = enum_name(aga.ad.type_)
    topics = [
        PolicyTopic(topic=str(entry.topic), type=enum_name(entry.type_))
        for entry in (getattr(aga.policy_summary, "policy_topic_entries", None) or [])
    ]
    return AdRecord(
        ad_id=str(aga.ad.id),
        resource_name=aga.resource_name,
        ad_type=AdType.from_platform(platform_type),
        platform_type=platform_type,
        status=enum_name(aga.status),
        approval_status=enum_name(aga.policy_summary.approval_status),
        ad_group=AdGroupRef(
            id=str(row.ad_group.id),
            name=row.ad_group.name,
            status=enum_name(row.ad_group.status),
        ),
        campaign=CampaignRef(
            id=str(row.campaign.id),
            name=row.campaign.name,
            status=enum_name(row.campaign.status),
        ),
        policy_topics=topics,
    )


def _pinned(value: Any) -> Optional[str]:
    if value is None:
        return None
    name = enum_name(value)
    return None if name in _NO_PIN else name


def _assets(items: Iterable[Any]) -> List[AdAsset]:
    return [
        AdAsset(text=item.text or "", pinned_field=_pinned(getattr(item, "pinned_field", None)))
        for item in (items or [])
    ]


def _row_to_creative(row: Any) -> AdCreative:
    ad = row.ad_group_ad.ad
    platform_type = enum_name(ad.type_)
    ad_type = AdType.from_platform(platform_type)
    creative = AdCreative(
        ad_type=ad_type,
        platform_type=platform_type,
        final_urls=list(ad.final_urls or []),
    )
    if ad_type is AdType.SIMPLE_TEXT:
        eta = ad.expanded_text_ad
        creative.text_ad = TextAdContent(
            headline_part1=eta.headline_part1 or "",
            headline_part2=eta.headline_part2 or "",
            headline_part3=eta.headline_part3 or "",
            description=eta.description or "",
            description2=eta.description2 or "",
            path1=eta.path1 or "",
            path2=eta.path2 or "",
        )
    elif ad_type is AdType.RESPONSIVE:
        rsa = ad.responsive_search_ad
        creative.responsive_ad = ResponsiveAdContent(
            headlines=_assets(rsa.headlines),
            descriptions=_assets(rsa.descriptions),
            path1=rsa.path1 or "",
            path2=rsa.path2 or "",
        )
    return creative


def _log_breakdown(label: str, records: Iterable[AdRecord]) -> None:
    counts = Counter(r.approval_status for r in records)
    if not counts:
        return
    logger.info("%s approval status breakdown:", label)
    for status, n in sorted(counts.items()):
        logger.info("   - %s: %d ads", status, n)


class PolicyScanner:
    """Queries one account for ads that fail (or partially fail) policy review."""

    def __init__(self, gateway: AdsGateway, approval_statuses: Iterable[str], scan_limit: int = 0):
        self.gateway = gateway
        self.approval_statuses = frozenset(
            s for s in approval_statuses if s != "APPROVED")
        self.scan_limit = max(0, int(scan_limit or 0))

    def _query(self) -> str:
        if self.scan_limit:
            return f"{SCAN_QUERY}    LIMIT {self.scan_limit}\n"
        return SCAN_QUERY

    def scan_all(self) -> List[AdRecord]:
        rows = self.gateway.search(self._query(), what="scan ads")
        records = [_row_to_record(r) for r in rows]
        logger.info("Found %d enabled ads in enabled/paused campaigns", len(records))
        _log_breakdown("All ads", records)
        return records

    def scan(self) -> List[AdRecord]:
        """Return ads whose approval status is one of the actionable statuses."""
        records = self.scan_all()
        flagged = [r for r in records if r.approval_status in self.approval_statuses]
        logger.info(
            "Found %d ads with approval status in %s",
            len(flagged),
            ", ".join(sorted(self.approval_statuses)) or "(none)",
        )
        return flagged

    def fetch_creative(self, resource_name: str) -> AdCreative:
        query = CREATIVE_QUERY.format(resource_name=resource_name)
        rows = self.gateway.search(query, what="fetch ad details")
        if not rows:
            raise MissingCreativeError(f"No creative returned for {resource_name}")
        return _row_to_creative(rows[0])


def filter_by_campaign(records: Iterable[AdRecord], marker: str) -> List[AdRecord]:
    """Keep ads whose campaign name contains marker (case-insensitive).

    An empty marker keeps everything.
    """
    groups: Dict[str, List[AdRecord]] = OrderedDict()
    for r in records:
        key = f"{r.campaign.name} ({r.campaign.id})"
        groups.setdefault(key, []).append(r)

    needle = (marker or "").lower()
    kept = OrderedDict(
        (key, ads) for key, ads in groups.items()
        if needle in (ads[0].campaign.name or "").lower()
    )
    candidates = [ad for ads in kept.values() for ad in ads]
    logger.info(
        "Found %d candidate ads across %d campaigns matching '%s'",
        len(candidates),
        len(kept),
        marker,
    )
    for key, ads in kept.items():
        logger.info("   %s: %d ads", key, len(ads))
    _log_breakdown("Candidate", candidates)
    return candidates
