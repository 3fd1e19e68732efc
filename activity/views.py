from django.http import JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_POST

from payments.auth import resolve_identity
from payments.exceptions import AuthenticationRequired
from payments.utils import json_body

from .services import log_activity


@csrf_exempt
@require_POST
def log_activity_view(request):
    """Let a signed-in client record an action in the audit trail."""
    try:
        identity = resolve_identity(request)
    except AuthenticationRequired:
        identity = None
    if identity is None:
        return JsonResponse({"error": "Authentication required"}, status=401)

    body = json_body(request)
    if body is None:
        return JsonResponse({"error": "Invalid JSON body"}, status=400)
    action = body.get("action")
    if not action or not isinstance(action, str):
        return JsonResponse({"error": "Action is required"}, status=400)
    metadata = body.get("metadata")

    entry = log_activity(
        action,
        body.get("description") or "",
        actor_id=identity.subject,
        user_email=identity.email,
        ip_address=getattr(request, "client_ip", ""),
        metadata=metadata if isinstance(metadata, dict) else {},
    )
    if entry is None:
        return JsonResponse({"error": "An error occurred"}, status=500)
    return JsonResponse({"success": True})
