from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from conftest import enum, make_record, make_row
from policy_monitor.models import AdType
from policy_monitor.services.scanner import (
    MissingCreativeError,
    PolicyScanner,
    filter_by_campaign,
)


class TestPolicyScanner:
    @pytest.fixture
    def gateway(self):
        return MagicMock()

    def test_scan_keeps_only_actionable_statuses(self, gateway):
        gateway.search.return_value = [
            make_row(ad_id="1", approval="DISAPPROVED"),
            make_row(ad_id="2", approval="APPROVED"),
            make_row(ad_id="3", approval="APPROVED_LIMITED"),
            make_row(ad_id="4", approval="UNDER_REVIEW"),
        ]
        scanner = PolicyScanner(gateway, {"DISAPPROVED", "APPROVED_LIMITED"})

        flagged = scanner.scan()

        assert [r.ad_id for r in flagged] == ["1", "3"]

    def test_approved_is_never_actionable(self, gateway):
        gateway.search.return_value = [make_row(ad_id="9", approval="APPROVED")]
        scanner = PolicyScanner(gateway, {"APPROVED", "DISAPPROVED"})
        assert scanner.scan() == []

    def test_row_mapping(self, gateway):
        gateway.search.return_value = [make_row(ad_id="42", ad_type="EXPANDED_TEXT_AD")]
        record = PolicyScanner(gateway, {"DISAPPROVED"}).scan()[0]

        assert record.ad_type is AdType.SIMPLE_TEXT
        assert record.campaign.name == "AMG Dubai Visa"
        assert record.ad_group.id == "77"
        assert record.resource_name == "customers/1234567890/adGroupAds/77~42"
        assert record.policy_topics[0].topic == "DESTINATION_NOT_WORKING"
        assert record.policy_topics[0].type == "PROHIBITED"

    def test_unknown_ad_type_is_unsupported(self, gateway):
        gateway.search.return_value = [make_row(ad_type="IMAGE_AD")]
        record = PolicyScanner(gateway, {"DISAPPROVED"}).scan()[0]
        assert record.ad_type is AdType.UNSUPPORTED
        assert record.platform_type == "IMAGE_AD"

    def test_scan_limit_is_appended(self, gateway):
        gateway.search.return_value = []
        PolicyScanner(gateway, {"DISAPPROVED"}, scan_limit=25).scan()
        query = gateway.search.call_args[0][0]
        assert "LIMIT 25" in query
        assert "ad_group_ad.status = 'ENABLED'" in query

    def test_scan_errors_propagate(self, gateway):
        gateway.search.side_effect = RuntimeError("boom")
        with pytest.raises(RuntimeError):
            PolicyScanner(gateway, {"DISAPPROVED"}).scan()


class TestFetchCreative:
    def test_responsive_creative_with_pins(self):
        rsa = SimpleNamespace(
            headlines=[
                SimpleNamespace(text="Dubai Visa Service", pinned_field=enum("HEADLINE_1")),
                SimpleNamespace(text="Apply Online", pinned_field=enum("UNSPECIFIED")),
            ],
            descriptions=[SimpleNamespace(text="Trusted visa processing.", pinned_field=None)],
            path1="visa",
            path2="",
        )
        row = SimpleNamespace(ad_group_ad=SimpleNamespace(ad=SimpleNamespace(
            type_=enum("RESPONSIVE_SEARCH_AD"),
            final_urls=["https://example.com/visa?utm=1&x=%20"],
            responsive_search_ad=rsa,
        )))
        gateway = MagicMock()
        gateway.search.return_value = [row]

        creative = PolicyScanner(gateway, {"DISAPPROVED"}).fetch_creative("customers/1/adGroupAds/2~3")

        assert creative.ad_type is AdType.RESPONSIVE
        assert creative.final_urls == ["https://example.com/visa?utm=1&x=%20"]
        assert creative.responsive_ad.headlines[0].pinned_field == "HEADLINE_1"
        assert creative.responsive_ad.headlines[1].pinned_field is None
        assert creative.responsive_ad.path1 == "visa"
        assert "customers/1/adGroupAds/2~3" in gateway.search.call_args[0][0]

    def test_missing_creative(self):
        gateway = MagicMock()
        gateway.search.return_value = []
        with pytest.raises(MissingCreativeError):
            PolicyScanner(gateway, {"DISAPPROVED"}).fetch_creative("customers/1/adGroupAds/2~3")


class TestFilterByCampaign:
    def test_marker_is_case_insensitive(self):
        records = [
            make_record(ad_id="1", campaign_name="AMG Dubai Visa"),
            make_record(ad_id="2", campaign_name="Brand Search"),
            make_record(ad_id="3", campaign_name="amg retargeting"),
        ]
        kept = filter_by_campaign(records, "AMG")
        assert [r.ad_id for r in kept] == ["1", "3"]

    def test_empty_marker_keeps_everything(self):
        records = [make_record(ad_id="1"), make_record(ad_id="2", campaign_name="Other")]
        assert len(filter_by_campaign(records, "")) == 2

    def test_no_matches(self):
        assert filter_by_campaign([make_record(campaign_name="Brand")], "AMG") == []
