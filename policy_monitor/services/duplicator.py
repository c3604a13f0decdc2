# policy_monitor/services/duplicator.py
"""
Create a rewritten copy of a flagged ad in the same ad group.

The copy is assembled as a plain dict payload first (easy to log and
inspect in dry runs), then turned into an AdGroupAdOperation.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional

from ..models import (
    AdAsset,
    AdCreative,
    AdRecord,
    AdType,
    DuplicateOutcome,
    DuplicateResult,
    ResponsiveAdContent,
    TextAdContent,
)
from .google_ads import AdsGateway, ResourceLimitError
from .rewriter import TextRewriter

logger = logging.getLogger(__name__)

MIN_HEADLINE_CHARS = 5
MIN_DESCRIPTION_CHARS = 10
MAX_HEADLINES = 15
MAX_DESCRIPTIONS = 4
MIN_HEADLINES = 3
MIN_DESCRIPTIONS = 2

COUNT_QUERY = """
    SELECT ad_group_ad.ad.id, ad_group_ad.status
    FROM ad_group_ad
    WHERE ad_group.id = {ad_group_id}
      AND ad_group_ad.status != 'REMOVED'
"""


class InsufficientContentError(ValueError):
    """Too few usable assets remain to build a valid responsive ad."""


class DuplicateCreator:
    def __init__(
        self,
        gateway: AdsGateway,
        rewriter: TextRewriter,
        max_ads_per_ad_group: int = 3,
        headline_max: int = 30,
        description_max: int = 90,
        rewrite_text: bool = True,
        dry_run: bool = False,
    ):
        self.gateway = gateway
        self.rewriter = rewriter
        self.max_ads_per_ad_group = max_ads_per_ad_group
        self.headline_max = headline_max
        self.description_max = description_max
        self.rewrite_text = rewrite_text
        self.dry_run = dry_run

    # ----------------------------- counting -----------------------------

    def count_active_ads(self, ad_group_id: str) -> int:
        """Number of ENABLED + PAUSED ads in the ad group."""
        rows = self.gateway.search(
            COUNT_QUERY.format(ad_group_id=int(ad_group_id)), what="count ads in ad group")
        return len(rows)

    # ----------------------------- rewriting ----------------------------

    def _headline(self, text: str) -> str:
        if not self.rewrite_text or not text:
            return text
        return self.rewriter.rewrite(text, self.headline_max, "ad headline")

    def _description(self, text: str) -> str:
        if not self.rewrite_text or not text:
            return text
        return self.rewriter.rewrite(text, self.description_max, "ad description")

    def _text_ad_payload(self, eta: TextAdContent) -> Dict[str, str]:
        return {
            "headline_part1": self._headline(eta.headline_part1),
            "headline_part2": self._headline(eta.headline_part2),
            "headline_part3": self._headline(eta.headline_part3),
            "description": self._description(eta.description),
            "description2": self._description(eta.description2),
            "path1": eta.path1,
            "path2": eta.path2,
        }

    @staticmethod
    def _dedupe(assets: Iterable[AdAsset], cap: int) -> List[AdAsset]:
        seen = set()
        kept: List[AdAsset] = []
        for asset in assets:
            key = asset.text.strip().lower()
            if not key or key in seen:
                continue
            seen.add(key)
            kept.append(asset)
            if len(kept) >= cap:
                break
        return kept

    def _responsive_payload(self, rsa: ResponsiveAdContent) -> Dict[str, Any]:
        headlines = self._dedupe(
            (
                AdAsset(self._headline(h.text), h.pinned_field)
                for h in rsa.headlines
                if len(h.text.strip()) >= MIN_HEADLINE_CHARS
            ),
            MAX_HEADLINES,
        )
        descriptions = self._dedupe(
            (
                AdAsset(self._description(d.text), d.pinned_field)
                for d in rsa.descriptions
                if len(d.text.strip()) >= MIN_DESCRIPTION_CHARS
            ),
            MAX_DESCRIPTIONS,
        )
        logger.info(
            "Responsive ad: %d/%d headlines and %d/%d descriptions usable",
            len(headlines), len(rsa.headlines), len(descriptions), len(rsa.descriptions),
        )
        if len(headlines) < MIN_HEADLINES or len(descriptions) < MIN_DESCRIPTIONS:
            raise InsufficientContentError(
                f"need {MIN_HEADLINES} headlines and {MIN_DESCRIPTIONS} descriptions, "
                f"have {len(headlines)} and {len(descriptions)}"
            )
        return {
            "headlines": [{"text": a.text, "pinned_field": a.pinned_field} for a in headlines],
            "descriptions": [{"text": a.text, "pinned_field": a.pinned_field} for a in descriptions],
            "path1": rsa.path1,
            "path2": rsa.path2,
        }

    def build_payload(self, creative: AdCreative) -> Dict[str, Any]:
        """Return the new ad as a dict. Raises InsufficientContentError."""
        payload: Dict[str, Any] = {
            "type": creative.ad_type.value,
            "final_urls": list(creative.final_urls),
        }
        if creative.ad_type is AdType.SIMPLE_TEXT:
            payload["expanded_text_ad"] = self._text_ad_payload(
                creative.text_ad or TextAdContent())
        elif creative.ad_type is AdType.RESPONSIVE:
            payload["responsive_search_ad"] = self._responsive_payload(
                creative.responsive_ad or ResponsiveAdContent())
        else:
            raise ValueError(f"unsupported ad type {creative.platform_type}")
        return payload

    # ----------------------------- operation ----------------------------

    def _text_asset(self, item: Dict[str, Optional[str]]) -> Any:
        asset = self.gateway.get_type("AdTextAsset")
        asset.text = item["text"]
        if item.get("pinned_field"):
            asset.pinned_field = self.gateway.enums.ServedAssetFieldTypeEnum[item["pinned_field"]]
        return asset

    def build_operation(self, ad_group_id: str, payload: Dict[str, Any]) -> Any:
        op = self.gateway.new_operation()
        aga = op.create
        aga.ad_group = self.gateway.ad_group_path(ad_group_id)
        aga.status = self.gateway.enums.AdGroupAdStatusEnum.ENABLED
        ad = aga.ad
        ad.final_urls.extend(payload["final_urls"])

        if "expanded_text_ad" in payload:
            eta = ad.expanded_text_ad
            for key, value in payload["expanded_text_ad"].items():
                if value:
                    setattr(eta, key, value)
        else:
            body = payload["responsive_search_ad"]
            rsa = ad.responsive_search_ad
            for item in body["headlines"]:
                rsa.headlines.append(self._text_asset(item))
            for item in body["descriptions"]:
                rsa.descriptions.append(self._text_asset(item))
            if body["path1"]:
                rsa.path1 = body["path1"]
            if body["path2"]:
                rsa.path2 = body["path2"]
        return op

    # ------------------------------- entry ------------------------------

    def create(self, candidate: AdRecord, creative: Optional[AdCreative]) -> DuplicateResult:
        if creative is None or not creative.final_urls:
            return DuplicateResult(
                DuplicateOutcome.SKIPPED_MISSING, detail="no creative or final URLs")

        if creative.ad_type is AdType.UNSUPPORTED:
            logger.warning("Unsupported ad type %s for ad %s", creative.platform_type, candidate.ad_id)
            return DuplicateResult(
                DuplicateOutcome.SKIPPED_UNSUPPORTED, detail=creative.platform_type)

        try:
            payload = self.build_payload(creative)
        except InsufficientContentError as e:
            logger.warning("Insufficient content for ad %s: %s", candidate.ad_id, e)
            return DuplicateResult(DuplicateOutcome.SKIPPED_INSUFFICIENT, detail=str(e))

        active = self.count_active_ads(candidate.ad_group.id)
        logger.info("Ad group %s has %d active ads", candidate.ad_group.name, active)
        if active >= self.max_ads_per_ad_group:
            logger.warning(
                "Ad group %s already has %d active ads (limit %d), skipping duplicate",
                candidate.ad_group.name, active, self.max_ads_per_ad_group,
            )
            return DuplicateResult(
                DuplicateOutcome.SKIPPED_LIMIT,
                detail=f"{active} active ads",
                payload=payload,
            )

        if self.dry_run:
            logger.info("[dry run] would create %s duplicate of ad %s", creative.ad_type.value, candidate.ad_id)
            return DuplicateResult(DuplicateOutcome.DRY_RUN, payload=payload)

        op = self.build_operation(candidate.ad_group.id, payload)
        try:
            resp = self.gateway.mutate_ad_group_ads([op], what="create duplicate ad")
        except ResourceLimitError as e:
            logger.warning("Resource limit hit creating duplicate of ad %s: %s", candidate.ad_id, e)
            return DuplicateResult(DuplicateOutcome.SKIPPED_LIMIT, detail=str(e), payload=payload)

        resource_name = resp.results[0].resource_name
        logger.info("Created duplicate ad: %s", resource_name)
        return DuplicateResult(DuplicateOutcome.CREATED, resource_name=resource_name, payload=payload)
