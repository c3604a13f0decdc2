"""Shared fixtures: settings without .env, fake Google Ads rows and records."""

from types import SimpleNamespace

import pytest

from policy_monitor.models import AdGroupRef, AdRecord, AdType, CampaignRef, PolicyTopic
from policy_monitor.settings import CREDENTIAL_KEYS, Settings

ENV_KEYS = list(CREDENTIAL_KEYS) + [
    "GOOGLE_ADS_SECRETS_FILE",
    "GOOGLE_ADS_CUSTOMER_ID",
    "GOOGLE_ADS_LOGIN_CUSTOMER_ID",
    "OPENAI_API_KEY",
    "DASH_API_KEY",
    "DRY_RUN",
    "REMEDIATE_APPROVAL_STATUSES",
]

FULL_CREDENTIALS = {
    "GOOGLE_ADS_CLIENT_ID": "client-id.apps.googleusercontent.com",
    "GOOGLE_ADS_CLIENT_SECRET": "secret",
    "GOOGLE_ADS_DEVELOPER_TOKEN": "dev-token",
    "GOOGLE_ADS_REFRESH_TOKEN": "1//refresh",
}


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep the developer's shell environment out of the tests."""
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


@pytest.fixture
def make_settings():
    def _make(**overrides):
        return Settings(_env_file=None, **overrides)

    return _make


@pytest.fixture
def configured_settings(make_settings):
    return make_settings(GOOGLE_ADS_CUSTOMER_ID="123-456-7890", **FULL_CREDENTIALS)


def enum(name):
    """Stand-in for a proto-plus enum value."""
    return SimpleNamespace(name=name)


def make_row(
    ad_id="1001",
    approval="DISAPPROVED",
    campaign_name="AMG Dubai Visa",
    campaign_id="55",
    ad_group_id="77",
    ad_group_name="Visa Services",
    ad_type="RESPONSIVE_SEARCH_AD",
    topics=(("DESTINATION_NOT_WORKING", "PROHIBITED"),),
):
    entries = [SimpleNamespace(topic=t, type_=enum(kind)) for t, kind in topics]
    return SimpleNamespace(
        ad_group_ad=SimpleNamespace(
            ad=SimpleNamespace(id=int(ad_id), type_=enum(ad_type)),
            status=enum("ENABLED"),
            resource_name=f"customers/1234567890/adGroupAds/{ad_group_id}~{ad_id}",
            policy_summary=SimpleNamespace(
                approval_status=enum(approval),
                policy_topic_entries=entries,
            ),
        ),
        ad_group=SimpleNamespace(id=int(ad_group_id), name=ad_group_name, status=enum("ENABLED")),
        campaign=SimpleNamespace(id=int(campaign_id), name=campaign_name, status=enum("ENABLED")),
    )


def make_record(
    ad_id="1001",
    approval="DISAPPROVED",
    campaign_name="AMG Dubai Visa",
    ad_group_id="77",
    ad_type=AdType.RESPONSIVE,
):
    return AdRecord(
        ad_id=ad_id,
        resource_name=f"customers/1234567890/adGroupAds/{ad_group_id}~{ad_id}",
        ad_type=ad_type,
        platform_type=ad_type.value,
        status="ENABLED",
        approval_status=approval,
        ad_group=AdGroupRef(id=ad_group_id, name="Visa Services"),
        campaign=CampaignRef(id="55", name=campaign_name),
        policy_topics=[PolicyTopic(topic="DESTINATION_NOT_WORKING", type="PROHIBITED")],
    )
