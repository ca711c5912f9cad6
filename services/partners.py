"""Hand-off to the utilities connection partner."""

from dataclasses import dataclass
from typing import Optional

from models import PartnerSettings, Property

DEFAULT_PROVIDER = "Movinghub"
REFERRAL_URL = "https://movinghub.com/refer"

# Symbolic tab the presentation layer opens to configure integrations
BILLING_TAB = "billing"


@dataclass(frozen=True)
class ConnectOutcome:
    """What the tenancy screen should do after "connect utilities"."""
    status: str  # 'missing' or 'success'
    navigate_to: Optional[str] = None
    tenant: str = ""
    provider: str = ""
    referral_url: str = ""

    @property
    def is_configured(self) -> bool:
        return self.status == "success"


def connect_utilities(prop: Property, settings: PartnerSettings) -> ConnectOutcome:
    """Decide between sending the user to settings or launching the referral."""
    if not settings.utilities_id:
        return ConnectOutcome(status="missing", navigate_to=BILLING_TAB)
    return ConnectOutcome(
        status="success",
        tenant=prop.tenant_name or "Tenant",
        provider=settings.utilities_provider or DEFAULT_PROVIDER,
        referral_url=f"{REFERRAL_URL}?partner={settings.utilities_id}",
    )
