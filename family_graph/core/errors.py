"""
Typed failures raised by the relationship engine.

Every error here is an expected, user-actionable condition. Routers do not
catch them: the handler registered in ``main.py`` renders them as JSON with
the class' HTTP status and a machine-readable ``code``.
"""

from typing import Any


class KinshipError(Exception):
    status_code: int = 400
    code: str = "kinship_error"

    def __init__(self, message: str, **detail: Any):
        super().__init__(message)
        self.message = message
        self.detail = detail

    def to_dict(self) -> dict[str, Any]:
        return {"detail": self.message, "code": self.code, **self.detail}


class NotFound(KinshipError):
    status_code = 404
    code = "not_found"


class GenderMismatch(KinshipError):
    code = "gender_mismatch"


class AlreadyMarried(KinshipError):
    status_code = 409
    code = "already_married"


class AlreadyLinked(KinshipError):
    status_code = 409
    code = "already_linked"


class SelfReference(KinshipError):
    code = "self_reference"


class InvalidMember(KinshipError):
    code = "invalid_member"


class InvalidRelationship(KinshipError):
    code = "invalid_relationship"


class CircularAncestry(InvalidRelationship):
    code = "circular_ancestry"


class GenerationConflict(InvalidRelationship):
    code = "generation_conflict"


# ------------------------------------------------------------
# Join requests
# ------------------------------------------------------------

class AlreadyMember(KinshipError):
    status_code = 409
    code = "already_member"


class DuplicateJoinRequest(KinshipError):
    status_code = 409
    code = "duplicate_join_request"


class JoinRequestClosed(KinshipError):
    status_code = 409
    code = "join_request_closed"


class InvalidJoinRequest(KinshipError):
    code = "invalid_join_request"


class NameMismatch(KinshipError):
    code = "name_mismatch"
