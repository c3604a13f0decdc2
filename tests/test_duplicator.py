import random
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from conftest import make_record
from policy_monitor.models import (
    AdAsset,
    AdCreative,
    AdType,
    DuplicateOutcome,
    ResponsiveAdContent,
    TextAdContent,
)
from policy_monitor.services.duplicator import DuplicateCreator, InsufficientContentError
from policy_monitor.services.google_ads import AdsApiError, ResourceLimitError
from policy_monitor.services.rewriter import TextRewriter

URLS = ["https://example.com/dubai-visa?utm_source=google&kw={keyword}"]
NEW_AD = "customers/1234567890/adGroupAds/77~9001"


def responsive_creative(headlines, descriptions, urls=URLS):
    return AdCreative(
        ad_type=AdType.RESPONSIVE,
        platform_type="RESPONSIVE_SEARCH_AD",
        final_urls=list(urls),
        responsive_ad=ResponsiveAdContent(
            headlines=[h if isinstance(h, AdAsset) else AdAsset(h) for h in headlines],
            descriptions=[AdAsset(d) for d in descriptions],
            path1="visa",
        ),
    )


GOOD_RSA = responsive_creative(
    [AdAsset("Fast Dubai Visa Service", "HEADLINE_1"), "Apply Online Today", "Trusted Visa Agency"],
    ["Get your Dubai visa processed quickly.", "Secure online application in minutes."],
)


@pytest.fixture
def gateway():
    gw = MagicMock()
    gw.search.return_value = [object(), object()]
    gw.mutate_ad_group_ads.return_value = SimpleNamespace(
        results=[SimpleNamespace(resource_name=NEW_AD)])
    return gw


@pytest.fixture
def creator(gateway):
    return DuplicateCreator(gateway, TextRewriter(rng=random.Random(3)))


class TestLimit:
    def test_full_ad_group_is_skipped_without_create(self, gateway, creator):
        gateway.search.return_value = [object(), object(), object()]

        result = creator.create(make_record(), GOOD_RSA)

        assert result.outcome is DuplicateOutcome.SKIPPED_LIMIT
        gateway.mutate_ad_group_ads.assert_not_called()

    def test_count_query_excludes_removed(self, gateway, creator):
        assert creator.count_active_ads("77") == 2
        query = gateway.search.call_args[0][0]
        assert "ad_group.id = 77" in query
        assert "!= 'REMOVED'" in query

    def test_platform_limit_error_maps_to_skip(self, gateway, creator):
        gateway.mutate_ad_group_ads.side_effect = ResourceLimitError("too many ads")
        result = creator.create(make_record(), GOOD_RSA)
        assert result.outcome is DuplicateOutcome.SKIPPED_LIMIT

    def test_other_api_errors_propagate(self, gateway, creator):
        gateway.mutate_ad_group_ads.side_effect = AdsApiError("bad request")
        with pytest.raises(AdsApiError):
            creator.create(make_record(), GOOD_RSA)


class TestResponsive:
    def test_created(self, gateway, creator):
        result = creator.create(make_record(), GOOD_RSA)

        assert result.outcome is DuplicateOutcome.CREATED
        assert result.resource_name == NEW_AD
        gateway.mutate_ad_group_ads.assert_called_once()

    def test_final_urls_preserved_exactly(self, gateway, creator):
        result = creator.create(make_record(), GOOD_RSA)

        assert result.payload["final_urls"] == URLS
        op = gateway.new_operation.return_value
        op.create.ad.final_urls.extend.assert_called_once_with(URLS)

    def test_new_ad_targets_same_group_and_is_enabled(self, gateway, creator):
        creator.create(make_record(ad_group_id="77"), GOOD_RSA)

        op = gateway.new_operation.return_value
        gateway.ad_group_path.assert_called_once_with("77")
        assert op.create.ad_group == gateway.ad_group_path.return_value
        assert op.create.status == gateway.enums.AdGroupAdStatusEnum.ENABLED

    def test_pins_are_kept_and_text_rewritten(self, creator):
        payload = creator.build_payload(GOOD_RSA)
        first = payload["responsive_search_ad"]["headlines"][0]
        assert first == {"text": "Quick Dubai Visa Service", "pinned_field": "HEADLINE_1"}

    def test_two_valid_headlines_is_insufficient(self, gateway, creator):
        creative = responsive_creative(
            ["Dubai Visa Help", "Apply Online Now", "Hi"],
            ["Get your Dubai visa processed quickly.", "Secure online application in minutes."],
        )

        result = creator.create(make_record(), creative)

        assert result.outcome is DuplicateOutcome.SKIPPED_INSUFFICIENT
        gateway.mutate_ad_group_ads.assert_not_called()

    def test_short_descriptions_are_dropped(self, creator):
        creative = responsive_creative(
            ["Dubai Visa Help", "Apply Online Now", "Visa Desk Open"],
            ["Too short", "Secure online application in minutes."],
        )
        with pytest.raises(InsufficientContentError):
            creator.build_payload(creative)

    def test_duplicates_after_rewrite_are_dropped(self, gateway):
        creator = DuplicateCreator(gateway, TextRewriter(), rewrite_text=False)
        creative = responsive_creative(
            ["Dubai Visa Help", "dubai visa help ", "Apply Online Now", "Visa Desk Open"],
            ["Get your Dubai visa processed quickly.", "Secure online application in minutes."],
        )
        headlines = creator.build_payload(creative)["responsive_search_ad"]["headlines"]
        assert [h["text"] for h in headlines] == ["Dubai Visa Help", "Apply Online Now", "Visa Desk Open"]

    def test_asset_caps(self, gateway):
        creator = DuplicateCreator(gateway, TextRewriter(), rewrite_text=False)
        creative = responsive_creative(
            [f"Visa Headline {i}" for i in range(20)],
            [f"Visa description number {i}" for i in range(6)],
        )
        body = creator.build_payload(creative)["responsive_search_ad"]
        assert len(body["headlines"]) == 15
        assert len(body["descriptions"]) == 4

    def test_rewritten_text_fits_limits(self, creator):
        creative = responsive_creative(
            ["Fast Dubai Visa Service For Everyone", "Apply Online Today", "Trusted Visa Agency"],
            ["Get " + "x" * 100, "Secure online application in minutes."],
        )
        body = creator.build_payload(creative)["responsive_search_ad"]
        assert all(0 < len(h["text"]) <= 30 for h in body["headlines"])
        assert all(0 < len(d["text"]) <= 90 for d in body["descriptions"])


class TestSimpleText:
    def creative(self):
        return AdCreative(
            ad_type=AdType.SIMPLE_TEXT,
            platform_type="EXPANDED_TEXT_AD",
            final_urls=list(URLS),
            text_ad=TextAdContent(
                headline_part1="Fast Dubai Visa Service",
                headline_part2="Apply Online",
                description="Trusted visa agency.",
                path1="dubai",
                path2="visa",
            ),
        )

    def test_headline_rewritten_paths_verbatim(self, creator):
        eta = creator.build_payload(self.creative())["expanded_text_ad"]
        assert eta["headline_part1"] == "Quick Dubai Visa Service"
        assert eta["headline_part2"] == "Submit Online"
        assert eta["headline_part3"] == ""
        assert eta["path1"] == "dubai"
        assert eta["path2"] == "visa"

    def test_verbatim_when_rewriting_disabled(self, gateway):
        creator = DuplicateCreator(gateway, TextRewriter(), rewrite_text=False)
        eta = creator.build_payload(self.creative())["expanded_text_ad"]
        assert eta["headline_part1"] == "Fast Dubai Visa Service"
        assert eta["description"] == "Trusted visa agency."

    def test_created(self, gateway, creator):
        result = creator.create(make_record(ad_type=AdType.SIMPLE_TEXT), self.creative())
        assert result.outcome is DuplicateOutcome.CREATED


class TestSkips:
    def test_unsupported_type(self, gateway, creator):
        creative = AdCreative(ad_type=AdType.UNSUPPORTED, platform_type="IMAGE_AD", final_urls=list(URLS))
        result = creator.create(make_record(), creative)
        assert result.outcome is DuplicateOutcome.SKIPPED_UNSUPPORTED
        assert result.detail == "IMAGE_AD"
        gateway.mutate_ad_group_ads.assert_not_called()

    def test_missing_creative(self, gateway, creator):
        assert creator.create(make_record(), None).outcome is DuplicateOutcome.SKIPPED_MISSING

    def test_missing_final_urls(self, gateway, creator):
        creative = responsive_creative(["a"], ["b"], urls=[])
        assert creator.create(make_record(), creative).outcome is DuplicateOutcome.SKIPPED_MISSING
        gateway.search.assert_not_called()

    def test_dry_run_does_not_mutate(self, gateway):
        creator = DuplicateCreator(gateway, TextRewriter(), dry_run=True)
        result = creator.create(make_record(), GOOD_RSA)
        assert result.outcome is DuplicateOutcome.DRY_RUN
        assert result.payload["final_urls"] == URLS
        gateway.mutate_ad_group_ads.assert_not_called()
