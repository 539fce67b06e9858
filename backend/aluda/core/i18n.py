from typing import Dict, Any

DEFAULT_LOCALE = "ka"

TRANSLATIONS: Dict[str, Dict[str, Any]] = {
    "ka": {
        "errors": {
            "token_limit": "ტოკენების ლიმიტი ამოიწურა",
            "image_limit": "სურათების თვიური ლიმიტი ამოიწურა",
            "rate_limit": "ძალიან ბევრი მოთხოვნა, სცადეთ {retry_after} წამში",
            "unauthorized": "გთხოვთ გაიაროთ ავტორიზაცია",
            "forbidden": "წვდომა აკრძალულია",
            "user_not_found": "მომხმარებელი ვერ მოიძებნა",
            "internal_error": "სისტემური შეცდომა, სცადეთ მოგვიანებით"
        }
    },
    "en": {
        "errors": {
            "token_limit": "Token limit reached",
            "image_limit": "Monthly image limit reached",
            "rate_limit": "Too many requests, please try again in {retry_after} seconds",
            "unauthorized": "Please sign in",
            "forbidden": "Forbidden",
            "user_not_found": "User not found",
            "internal_error": "System error, please try again later"
        }
    }
}


def t(key: str, locale: str = DEFAULT_LOCALE, **kwargs) -> str:
    """
    Get translated text for the given key and locale.
    
    Args:
        key: Dot-notation key (e.g., "errors.token_limit")
        locale: Language code (ka or en)
        **kwargs: Format parameters for string interpolation
    
    Returns:
        Translated text, or the key itself if not found
    """
    keys = key.split(".")
    value = TRANSLATIONS.get(locale, TRANSLATIONS[DEFAULT_LOCALE])
    
    for k in keys:
        if isinstance(value, dict):
            value = value.get(k, key)
        else:
            return key
    
    # Handle string interpolation
    if isinstance(value, str) and kwargs:
        try:
            return value.format(**kwargs)
        except KeyError:
            return value
    
    return value if isinstance(value, str) else key


def get_locale_from_header(accept_language: str | None) -> str:
    """
    Extract locale from Accept-Language header.
    
    Args:
        accept_language: Accept-Language header value
    
    Returns:
        Locale code (ka or en), defaults to ka
    """
    if not accept_language:
        return DEFAULT_LOCALE
    
    # Parse Accept-Language header (e.g., "en-US,ka;q=0.9")
    for lang in accept_language.split(","):
        locale = lang.split(";")[0].strip().lower()
        primary = locale.split("-")[0]
        if primary in TRANSLATIONS:
            return primary
    
    return DEFAULT_LOCALE
