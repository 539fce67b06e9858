from fastapi import Request
from aluda.core.i18n import t, get_locale_from_header


def request_locale(request: Request) -> str:
    return get_locale_from_header(request.headers.get("Accept-Language"))


def localized_error(
    request: Request,
    error_key: str,
    data: dict | None = None,
    **kwargs
) -> dict:
    """
    Build a localized error body.

    The caller sets the status code on the injected ``Response`` so that
    cookies set by dependencies (guest session) are kept.
    
    Args:
        request: FastAPI request object
        error_key: Translation key for error message
        data: Additional response data
        **kwargs: Additional format parameters
    
    Returns:
        dict with the localized message under "error"
    """
    content = {"error": t(error_key, request_locale(request), **kwargs)}
    if data:
        content.update(data)
    return content
