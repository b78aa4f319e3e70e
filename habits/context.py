from dataclasses import dataclass
from datetime import date

from django.utils import timezone

from habits.security import session_token, wants_json


@dataclass(frozen=True)
class RequestContext:
    """What a handler needs from the request: who, the session secret, and which day it is."""

    user: object
    csrf_token: str
    today: date
    wants_json: bool = False

    @classmethod
    def from_request(cls, request):
        return cls(
            user=request.user,
            csrf_token=session_token(request),
            today=timezone.localdate(),
            wants_json=wants_json(request),
        )
