"""Maps an authenticated principal to the customer placing an order.

Token validation is done upstream by the DRF authentication classes;
this module only answers "which active customer is this user?".
"""

from __future__ import annotations

from typing import Any, Optional
from uuid import UUID

import structlog

from modules.customers.models import Customer

logger = structlog.get_logger(__name__)


class CustomerIdentityResolver:
    def resolve(self, user: Any) -> Optional[UUID]:
        """Return the active customer id linked to *user*, or ``None``."""
        if user is None or not getattr(user, "is_authenticated", False):
            return None

        customer_id = (
            Customer.objects.filter(user_id=user.pk, is_active=True)
            .values_list("id", flat=True)
            .first()
        )
        if customer_id is None:
            logger.warning("customer.identity_unresolved", user_id=str(user.pk))
        return customer_id
