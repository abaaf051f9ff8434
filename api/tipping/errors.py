"""Domain errors raised by the tipping services.

Routers translate these into HTTP responses; the batch tip path converts the
per-item ones into ``TipResult`` outcomes instead of raising.
"""

from __future__ import annotations


class TippingError(Exception):
    """Base class for tipping domain failures."""

    code = "error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class TippingForbidden(TippingError):
    """The acting user may not act for the target user."""

    code = "forbidden"

    def __init__(self, acting_user_id: int, target_user_id: int) -> None:
        super().__init__(
            f"User {acting_user_id} is not allowed to tip for user {target_user_id}"
        )
        self.acting_user_id = acting_user_id
        self.target_user_id = target_user_id


class NotFoundError(TippingError):
    """A referenced user, round, game or tip does not exist."""

    code = "not_found"

    def __init__(self, entity: str, entity_id: int | str) -> None:
        super().__init__(f"{entity} {entity_id} not found")
        self.entity = entity
        self.entity_id = entity_id


class TipNotFound(NotFoundError):
    def __init__(self, tip_id: int) -> None:
        super().__init__("Tip", tip_id)


class TipLocked(TippingError):
    """Blocked by a game-level or round-level lockout."""

    code = "locked"

    def __init__(self, message: str, scope: str = "round") -> None:
        super().__init__(message)
        self.scope = scope


class ValidationFailed(TippingError):
    """Malformed input: a team that is not playing, a bad margin, a duplicate name."""

    code = "validation"


class UpstreamUnavailable(TippingError):
    """Results source failed and there is no cached payload to fall back on."""

    code = "upstream_unavailable"


class UnknownJob(TippingError):
    code = "unknown_job"

    def __init__(self, job_id: str) -> None:
        super().__init__(f"Job {job_id} not found")
        self.job_id = job_id
