"""Legal identity checks for the parties named on contracts and invoices"""

from enum import Enum
from typing import Optional

from ...errors import LegalIdentityIncomplete
from ...models import User


class PersonType(str, Enum):
    NATURAL = "natural"
    COMPANY = "company"


# Document each person type must provide
REQUIRED_DOCUMENT = {
    PersonType.NATURAL: "national_id",
    PersonType.COMPANY: "tax_id",
}


def missing_identity_field(user: User) -> Optional[str]:
    """Name of the first field the user still has to fill in, or None"""
    try:
        person_type = PersonType(user.person_type)
    except ValueError:
        return "person_type"
    field = REQUIRED_DOCUMENT[person_type]
    value = getattr(user, field)
    if not value or not value.strip():
        return field
    return None


def require_legal_identity(user: User, party: str) -> None:
    missing = missing_identity_field(user)
    if missing:
        raise LegalIdentityIncomplete(
            f"Legal identity incomplete for {party}: missing {missing}",
            user_id=user.id,
            missing=missing,
        )


def legal_name(user: User) -> Optional[str]:
    if user.person_type == PersonType.COMPANY.value and user.company_name:
        return user.company_name
    return user.full_name
