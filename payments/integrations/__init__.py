from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass(frozen=True)
class GatewayCheckout:
    """What a gateway hands back for a newly created transaction/invoice."""

    transaction_id: str
    redirect_url: str
    token: Optional[str] = None
    expires_at: Optional[datetime] = None
