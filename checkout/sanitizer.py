"""Input sanitization for checkout request bodies."""
import re
from typing import Any, Callable, Dict, Optional

_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F]")
_EMAIL_INVALID = re.compile(r"[^a-z0-9.!#$%&'*+/=?^_`{|}~@-]")
_NAME_INVALID = re.compile(r"[^\w\s\-']|[\d_]")


def sanitize_input(value: Any) -> Any:
    if not isinstance(value, str):
        return value
    return _CONTROL_CHARS.sub("", value.strip())


def sanitize_email(value: Any) -> str:
    """Lower-cased address, or "" unless exactly one @ remains."""
    if not isinstance(value, str):
        return ""
    email = _EMAIL_INVALID.sub("", value.strip().lower())
    if email.count("@") != 1:
        return ""
    return email


def sanitize_name(value: Any) -> str:
    if not isinstance(value, str):
        return ""
    name = re.sub(r"\s+", " ", value.strip())
    name = _NAME_INVALID.sub("", name)
    name = re.sub(r"[-']{2,}", "-", name)
    name = re.sub(r"\b[^\W\d_]", lambda m: m.group(0).upper(), name)
    return name.strip()


CHECKOUT_RULES: Dict[str, Callable[[Any], Any]] = {
    "email": sanitize_email,
    "name": sanitize_name,
    "firstName": sanitize_name,
    "lastName": sanitize_name,
}


def sanitize_payload(data: Any, rules: Optional[Dict[str, Callable[[Any], Any]]] = None) -> Any:
    """Apply ``rules`` by key and ``sanitize_input`` to every other string, recursively."""
    rules = CHECKOUT_RULES if rules is None else rules
    if isinstance(data, list):
        return [sanitize_payload(v, rules) for v in data]
    if not isinstance(data, dict):
        return sanitize_input(data)

    out: Dict[str, Any] = {}
    for key, value in data.items():
        if key in rules and value is not None:
            out[key] = rules[key](value)
        else:
            out[key] = sanitize_payload(value, rules)
    return out
