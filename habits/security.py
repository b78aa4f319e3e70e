import hmac
import json
import logging
import secrets
from functools import wraps

from django.contrib import messages
from django.http import HttpResponseForbidden, JsonResponse

logger = logging.getLogger(__name__)

SESSION_KEY = "csrf_token"
HEADER = "HTTP_X_CSRF_TOKEN"


def session_token(request) -> str:
    """Per-session anti-forgery secret, created on first use."""
    token = request.session.get(SESSION_KEY)
    if not token:
        token = secrets.token_hex(16)
        request.session[SESSION_KEY] = token
    return token


def token_matches(request, submitted) -> bool:
    expected = request.session.get(SESSION_KEY)
    if not expected or not isinstance(submitted, str):
        return False
    return hmac.compare_digest(expected, submitted)


def is_json_request(request) -> bool:
    return request.content_type == "application/json"


def wants_json(request) -> bool:
    return (
        is_json_request(request)
        or request.headers.get("x-requested-with", "").lower() == "xmlhttprequest"
        or request.GET.get("ajax") == "1"
    )


def json_body(request):
    """
    Parsed JSON object from the request body, cached on the request.
    Raises ValueError for bodies that are not a JSON object.
    """
    if not hasattr(request, "_json_body"):
        try:
            payload = json.loads(request.body or b"{}")
        except json.JSONDecodeError as exc:
            raise ValueError("Malformed JSON body") from exc
        if not isinstance(payload, dict):
            raise ValueError("JSON body must be an object")
        request._json_body = payload
    return request._json_body


def submitted_token(request):
    if is_json_request(request):
        try:
            token = json_body(request).get(SESSION_KEY)
        except ValueError:
            token = None
    else:
        token = request.POST.get(SESSION_KEY)
    return token or request.META.get(HEADER)


def json_error(message, status=400, **extra):
    return JsonResponse({"ok": False, "error": message, **extra}, status=status)


def session_token_required(view):
    """
    Rejects state-changing requests whose token does not match the session
    secret, before the view runs.
    """

    @wraps(view)
    def wrapper(request, *args, **kwargs):
        if request.method in ("POST", "PUT", "PATCH", "DELETE"):
            if not token_matches(request, submitted_token(request)):
                logger.warning("Rejected %s %s: token mismatch", request.method, request.path)
                if wants_json(request):
                    return json_error("Invalid CSRF token", status=403)
                messages.error(request, "Invalid request")
                return HttpResponseForbidden("Invalid request")
        return view(request, *args, **kwargs)

    return wrapper


def login_required_json(view):
    @wraps(view)
    def wrapper(request, *args, **kwargs):
        if not request.user.is_authenticated:
            return json_error("Not authenticated", status=401)
        return view(request, *args, **kwargs)

    return wrapper
