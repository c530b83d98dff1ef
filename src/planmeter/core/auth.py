"""Authorization rules for measurement mutations.

Membership and authentication live outside the engine. The engine
only needs to know whether the acting user created a record.
"""

from typing import Protocol

from planmeter.core.models import DocumentMeasurement


class Authorizer(Protocol):
    """Collaborator deciding record ownership."""

    def is_owner(self, user_id: str | None, creator_id: str | None) -> bool: ...


class OwnershipAuthorizer:
    """Treats the recorded creator as the sole owner."""

    def is_owner(self, user_id: str | None, creator_id: str | None) -> bool:
        return user_id is not None and user_id == creator_id


class MeasurementPolicy:
    """Capabilities of a user over a measurement.

    Content edits and deletion are reserved to the creator. Value
    recomputation is open to any authenticated user.
    """

    def __init__(self, authorizer: Authorizer | None = None):
        self._authorizer = authorizer or OwnershipAuthorizer()

    def can_edit_content(self, user_id: str | None, measurement: DocumentMeasurement) -> bool:
        return self._authorizer.is_owner(user_id, measurement.created_by)

    def can_delete(self, user_id: str | None, measurement: DocumentMeasurement) -> bool:
        return self._authorizer.is_owner(user_id, measurement.created_by)

    def can_recompute_value(self, user_id: str | None, measurement: DocumentMeasurement) -> bool:
        # Open question: unrestricted value pushes may be intended (anyone
        # can refresh values after a recalibration) or an ownership check
        # that was never added. Kept open until the owners decide.
        return user_id is not None
