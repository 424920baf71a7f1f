"""
Failure classification for ServiceNow DevOps requests.

Maps the message of a failed request (and the response body, if the instance
sent one) to the single message shown to the user. Rules are checked in order
and the first match wins, so the order of ERROR_RULES matters.
"""

import json

from snow_devops_builder import UNDEFINED_TEXT, to_text

# --- Messages ---
INVALID_URL_MESSAGE = "ServiceNow Instance URL is NOT valid. Please correct the URL and try again."
INVALID_CREDENTIALS_MESSAGE = (
    "Invalid username and password or Invalid token and toolid. "
    "Please correct the input parameters and try again."
)
BAD_REQUEST_PREFIX = "[ServiceNow DevOps] Security Scan Results are not Successful. "
BAD_REQUEST_SUFFIX = " Please provide valid inputs."
GENERIC_FAILURE_MESSAGE = (
    "ServiceNow Security Scan Results are NOT created. "
    "Please check ServiceNow logs for more details."
)

CIRCULAR_MARKER = "[Circular]"


def circular_safe_stringify(obj):
    """Serializes obj to compact JSON, replacing repeated containers.

    Any dict or list that was already visited during the walk is written as
    the string "[Circular]" instead of being serialized again. Values JSON
    cannot represent are written with str().
    """
    seen = set()

    def _walk(value):
        if isinstance(value, (dict, list, tuple)):
            if id(value) in seen:
                return CIRCULAR_MARKER
            seen.add(id(value))
            if isinstance(value, dict):
                return {str(k): _walk(v) for k, v in value.items()}
            return [_walk(item) for item in value]
        if value is None or isinstance(value, (str, int, float, bool)):
            return value
        return str(value)

    return json.dumps(_walk(obj), separators=(',', ':'))


def _contains_any(*needles):
    return lambda message: any(needle in message for needle in needles)


def _result_of(response_data):
    if not isinstance(response_data, dict):
        return None
    result = response_data.get('result')
    return result if isinstance(result, dict) else None


def _invalid_url(message, response_data):
    return INVALID_URL_MESSAGE


def _invalid_credentials(message, response_data):
    return INVALID_CREDENTIALS_MESSAGE


def is_truthy(value):
    """Truthiness as the DevOps API responses are interpreted.

    Only None, False, zero, NaN and the empty string are false. Empty
    objects and empty lists count as present.
    """
    if value is None or value is False or value == '':
        return False
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return value == value and value != 0
    return True


def _detail_text(error):
    if not isinstance(error, dict) or 'message' not in error:
        return UNDEFINED_TEXT
    return to_text(error['message'])


def _bad_request(message, response_data):
    """Builds the 400/404 message from the server's error detail.

    Detail errors may come as a list or as an object keyed by position; any
    other present value yields the bare prefix. Returns None when the body
    carries neither an errorMessage nor detail errors.
    """
    result = _result_of(response_data)
    if result is None:
        return None

    if is_truthy(result.get('errorMessage')):
        return f"{BAD_REQUEST_PREFIX}{to_text(result['errorMessage'])}{BAD_REQUEST_SUFFIX}"

    details = result.get('details')
    errors = details.get('errors') if isinstance(details, dict) else None
    if not is_truthy(errors):
        return None

    if isinstance(errors, dict):
        errors = list(errors.values())
    elif not isinstance(errors, list):
        errors = []
    error_message = BAD_REQUEST_PREFIX
    for error in errors:
        error_message += f"{_detail_text(error)}{BAD_REQUEST_SUFFIX}"
    return error_message


def _generic_failure(message, response_data):
    return GENERIC_FAILURE_MESSAGE


# (predicate on the error message, message builder), first match wins
ERROR_RULES = (
    (_contains_any('ECONNREFUSED', 'ENOTFOUND', '405'), _invalid_url),
    (_contains_any('401'), _invalid_credentials),
    (_contains_any('400', '404'), _bad_request),
    (lambda message: True, _generic_failure),
)


def classify_error(message, response_data=None):
    """Returns the user-facing failure message for a failed request.

    Args:
        message (str): The error message of the failed request
        response_data: Parsed response body, if any

    Returns:
        str or None: None only for a 400/404 without usable error detail
    """
    message = message or ''
    for matches, build_message in ERROR_RULES:
        if matches(message):
            return build_message(message, response_data)
    return None
