import pytest

from models import ExtractedProfile, FirmProfile, InvestorProfile, StartupRecord
from profiles import ProfileStore


@pytest.fixture
def austin_profile():
    return ExtractedProfile(
        company_name="BuildRight",
        industries=["construction tech"],
        stage="Series A",
        location="Austin, Texas",
    )

@pytest.fixture
def firms():
    return [
        FirmProfile(
            id="f1",
            name="Lone Star Ventures",
            firm_type="VC",
            stages=["Series A", "Series B"],
            sectors=["proptech"],
            location="Texas",
        ),
        FirmProfile(id="f2", name="Open Door Capital"),
        FirmProfile(id="f3", name="BioBridge", stages=["Seed"], sectors=["biotech"], location="London"),
    ]

@pytest.fixture
def investors():
    return [
        InvestorProfile(id="i1", name="Dana Reyes", email="dana@lonestar.vc", firm_id="f1", firm_name="Lone Star VC LLC"),
        InvestorProfile(id="i2", name="Sam Okafor", email="sam@biobridge.com", firm_id="f3"),
        InvestorProfile(id="i3", name="Alex Kim", stages=["Series A"], location="United States"),
        InvestorProfile(id="i4", name="Inactive Ian", is_active=False, stages=["Series A"], location="Global",
                        investor_type="Angel", email="ian@example.com"),
        InvestorProfile(id="i5", name="Quiet Quinn", firm_id="f1"),
    ]

@pytest.fixture
def startups():
    return [
        StartupRecord(
            id="s1",
            name="BuildRight Inc",
            industries=["construction tech"],
            stage="series a",
            location="Austin, Texas",
            traction="12 pilot sites",
        )
    ]

@pytest.fixture
def store(firms, investors, startups):
    return ProfileStore(firms, investors, startups)
