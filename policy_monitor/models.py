# policy_monitor/models.py
"""Data models for the ad policy monitor."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional


class AdType(str, Enum):
    """Closed set of ad types the monitor knows how to duplicate."""
    SIMPLE_TEXT = "EXPANDED_TEXT_AD"
    RESPONSIVE = "RESPONSIVE_SEARCH_AD"
    UNSUPPORTED = "UNSUPPORTED"

    @classmethod
    def from_platform(cls, name: str) -> "AdType":
        for member in (cls.SIMPLE_TEXT, cls.RESPONSIVE):
            if member.value == name:
                return member
        return cls.UNSUPPORTED


class DuplicateOutcome(str, Enum):
    CREATED = "created"
    DRY_RUN = "dry_run"
    SKIPPED_LIMIT = "skipped: limit"
    SKIPPED_UNSUPPORTED = "skipped: unsupported type"
    SKIPPED_INSUFFICIENT = "skipped: insufficient content"
    SKIPPED_MISSING = "skipped: missing creative"

    @property
    def is_skip(self) -> bool:
        return self.name.startswith("SKIPPED")


@dataclass(frozen=True)
class CampaignRef:
    id: str
    name: str
    status: str = "ENABLED"


@dataclass(frozen=True)
class AdGroupRef:
    id: str
    name: str
    status: str = "ENABLED"


@dataclass(frozen=True)
class PolicyTopic:
    topic: str
    type: str


@dataclass
class AdRecord:
    """One scanned ad_group_ad row."""
    ad_id: str
    resource_name: str
    ad_type: AdType
    platform_type: str
    status: str
    approval_status: str
    ad_group: AdGroupRef
    campaign: CampaignRef
    policy_topics: List[PolicyTopic] = field(default_factory=list)


@dataclass(frozen=True)
class AdAsset:
    """Headline or description asset of a responsive ad."""
    text: str
    pinned_field: Optional[str] = None


@dataclass
class TextAdContent:
    headline_part1: str = ""
    headline_part2: str = ""
    headline_part3: str = ""
    description: str = ""
    description2: str = ""
    path1: str = ""
    path2: str = ""


@dataclass
class ResponsiveAdContent:
    headlines: List[AdAsset] = field(default_factory=list)
    descriptions: List[AdAsset] = field(default_factory=list)
    path1: str = ""
    path2: str = ""


@dataclass
class AdCreative:
    """Full creative payload of an ad, as fetched for duplication."""
    ad_type: AdType
    platform_type: str
    final_urls: List[str] = field(default_factory=list)
    text_ad: Optional[TextAdContent] = None
    responsive_ad: Optional[ResponsiveAdContent] = None


@dataclass
class DuplicateResult:
    outcome: DuplicateOutcome
    resource_name: Optional[str] = None
    detail: str = ""
    payload: Optional[dict] = None


@dataclass
class AdOutcome:
    """What happened to a single candidate during a cycle."""
    ad_id: str
    campaign: str
    ad_group: str
    status: str  # processed | skipped | error
    detail: str = ""
    new_resource_name: Optional[str] = None


@dataclass
class CycleSummary:
    customer_id: str
    started_at: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc))
    finished_at: Optional[datetime] = None
    processed: int = 0
    skipped: int = 0
    errored: int = 0
    outcomes: List[AdOutcome] = field(default_factory=list)

    @property
    def total(self) -> int:
        return self.processed + self.skipped + self.errored

    def record(self, outcome: AdOutcome) -> None:
        if outcome.status == "processed":
            self.processed += 1
        elif outcome.status == "skipped":
            self.skipped += 1
        else:
            self.errored += 1
        self.outcomes.append(outcome)

    def to_dict(self) -> dict:
        return {
            "customer_id": self.customer_id,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "processed": self.processed,
            "skipped": self.skipped,
            "errors": self.errored,
            "total": self.total,
            "ads": [
                {
                    "ad_id": o.ad_id,
                    "campaign": o.campaign,
                    "ad_group": o.ad_group,
                    "status": o.status,
                    "detail": o.detail,
                    "new_resource_name": o.new_resource_name,
                }
                for o in self.outcomes
            ],
        }
