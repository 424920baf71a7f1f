#!/usr/bin/env python3
"""
ServiceNow DevOps Security Scan Results Step

Registers the results of a security scan with a ServiceNow DevOps instance
from a CI workflow. The step reads its inputs, builds the pipeline info and
security result payload, posts it once to the DevOps security API and turns
any failure into a single actionable error for the workflow run.

Usage:
    # Inside a workflow step (inputs come from INPUT_* variables)
    python snow_devops_security_scan.py

    # Local run, see --help for all options
    python snow_devops_security_scan.py --instance-url https://dev.service-now.com ...

Environment Variables:
    INPUT_INSTANCE-URL, INPUT_TOOL-ID, INPUT_JOB-NAME,
    INPUT_SECURITY-RESULT-ATTRIBUTES, INPUT_CONTEXT-GITHUB (required)
    INPUT_DEVOPS-INTEGRATION-TOKEN or
    INPUT_DEVOPS-INTEGRATION-USER-NAME + INPUT_DEVOPS-INTEGRATION-USER-PASSWORD
    SNOW_SSL_VERIFY, SNOW_REQUEST_TIMEOUT, SNOW_PROXY_URL (optional transport settings)
"""

import errno
import logging
import socket
import sys
from urllib.parse import urlparse

# Third-party imports
import requests

import action_core
from snow_devops_builder import AuthConfigError, build_request
from snow_devops_config import (
    create_parser,
    get_http_settings,
    load_config_file,
    load_env_file,
    read_raw_inputs,
    setup_logging,
)
from snow_devops_errors import circular_safe_stringify, classify_error, is_truthy
from snow_devops_inputs import normalize_inputs

logger = logging.getLogger(__name__)

# --- Constants ---
LOG_PREFIX = "[ServiceNow DevOps] Security Scan Results"
SUCCESS_NOTICE = "\n \x1b[1m\x1b[32m SUCCESS: Security Scan registration was successful\x1b[0m\x1b[0m"
NOT_REGISTERED_NOTICE = "FAILED: Security Scan could not be registered"
DNS_FAILURE_CODE = "ENOTFOUND"
INVALID_URL_TEXT = "Invalid URL"
INVALID_URL_ERRORS = (
    requests.exceptions.InvalidURL,
    requests.exceptions.MissingSchema,
    requests.exceptions.InvalidSchema,
)
REDACTED_HEADERS = ('authorization', 'proxy-authorization', 'cookie')


class TransportError(Exception):
    """A failed POST, with the response details when the server answered."""

    def __init__(self, message, status_code=None, response_data=None, error_type=None, detail=None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.response_data = response_data
        self.error_type = error_type or type(self).__name__
        self.detail = detail

    def describe(self):
        """Diagnostic view of the error for debug logging."""
        return {
            'name': self.error_type,
            'message': self.message,
            'status': self.status_code,
            'detail': self.detail,
        }

    @property
    def has_response(self):
        return self.response_data is not None


# --- Utility Functions ---

def log_request_headers(headers_dict, title="Request Headers"):
    """Logs request headers at debug level, redacting credentials."""
    logger.debug(f"--- {title} ---")
    for key, value in headers_dict.items():
        if key.lower() in REDACTED_HEADERS:
            logger.debug(f"  {key}: [{key.title()} Present - Redacted]")
        else:
            logger.debug(f"  {key}: {value}")


def _response_data(response):
    """Returns the parsed JSON body, the raw text if it is not JSON, or None."""
    try:
        return response.json()
    except ValueError:
        return response.text or None


def connection_error_code(exc):
    """Finds the socket-level error code behind a connection failure.

    Walks the cause/context chain (and urllib3's wrapped reasons) looking for
    the original OSError. Name resolution failures map to ENOTFOUND.

    Returns:
        str or None: e.g. 'ECONNREFUSED', 'ENOTFOUND'
    """
    seen = set()
    pending = [exc]
    while pending:
        current = pending.pop()
        if current is None or id(current) in seen:
            continue
        seen.add(id(current))
        if isinstance(current, socket.gaierror):
            return DNS_FAILURE_CODE
        if isinstance(current, OSError) and current.errno in errno.errorcode:
            return errno.errorcode[current.errno]
        pending.append(current.__cause__)
        pending.append(current.__context__)
        reason = getattr(current, 'reason', None)
        if isinstance(reason, BaseException):
            pending.append(reason)
        pending.extend(arg for arg in current.args if isinstance(arg, BaseException))
    return None


def _transport_error_from(exc, endpoint):
    """Builds a TransportError whose message never contains the request URL.

    The raw exception text (which may quote the URL) is kept as detail for
    diagnostics only.
    """
    error_type = type(exc).__name__
    detail = str(exc) or None
    if isinstance(exc, INVALID_URL_ERRORS):
        return TransportError(INVALID_URL_TEXT, error_type=error_type, detail=detail)
    code = connection_error_code(exc)
    if code:
        message = f"connect {code} {urlparse(endpoint).hostname}"
        return TransportError(message, error_type=error_type, detail=detail)
    return TransportError(error_type, error_type=error_type, detail=detail)


# --- Transport ---

def post_security_results(report_request, http_settings=None):
    """Posts the serialized payload once to the security results endpoint.

    Args:
        report_request (ReportRequest): Endpoint, headers and payload
        http_settings (dict): verify, timeout and proxies for requests

    Returns:
        The parsed response body

    Raises:
        TransportError: On connection problems or a non-2xx response
    """
    http_settings = http_settings or {}
    log_request_headers(report_request.headers, f"POST Request Headers for {report_request.endpoint}")
    try:
        response = requests.post(
            report_request.endpoint,
            data=report_request.body,
            headers=report_request.headers,
            verify=http_settings.get('verify', True),
            timeout=http_settings.get('timeout'),
            proxies=http_settings.get('proxies'),
        )
    except requests.exceptions.RequestException as e:
        raise _transport_error_from(e, report_request.endpoint) from e

    logger.info(f"Security results POST status code: {response.status_code}")
    if not response.ok:
        raise TransportError(
            f"Request failed with status code {response.status_code}",
            status_code=response.status_code,
            response_data=_response_data(response),
            error_type='HTTPError',
        )
    return _response_data(response)


# --- Outcome Reporting ---

def report_response(response_data):
    """Reports a completed request. Returns True when the scan was registered."""
    if isinstance(response_data, dict) and is_truthy(response_data.get('result')):
        action_core.info(SUCCESS_NOTICE)
        return True
    action_core.info(NOT_REGISTERED_NOTICE)
    return False


def report_failure(error):
    """Logs a failed request and marks the run failed with one message.

    Returns:
        str or None: The failure message, None if the error could not be described
    """
    action_core.debug(f"{LOG_PREFIX}, Error: {circular_safe_stringify(error.describe())}")
    if error.has_response:
        response_object = circular_safe_stringify(error.response_data)
        action_core.debug(
            f"{LOG_PREFIX}, Status code :{error.status_code}, Response data :{response_object}"
        )

    failure_message = classify_error(error.message, error.response_data)
    if failure_message is None:
        logger.warning(f"No error detail in the response for: {error.message}")
        return None
    action_core.set_failed(failure_message)
    return failure_message


# --- Main Flow ---

def run(raw_inputs, http_settings=None):
    """Runs one invocation of the step.

    Args:
        raw_inputs (RawInputs): Inputs read from the runner
        http_settings (dict): Transport settings

    Returns:
        int: Process exit code
    """
    inputs = normalize_inputs(raw_inputs)
    if inputs is None:
        return 1

    try:
        report_request = build_request(inputs)
    except AuthConfigError as e:
        action_core.set_failed(str(e))
        return 1

    try:
        response_data = post_security_results(report_request, http_settings)
    except TransportError as e:
        report_failure(e)
        return 1 if action_core.is_failed() else 0

    report_response(response_data)
    return 0


def main(argv=None):
    """Main entry point for the script."""
    parser = create_parser()
    args = parser.parse_args(argv)
    setup_logging(args.verbose)
    action_core.reset()

    try:
        load_env_file()
        config_parser = load_config_file()
        raw_inputs = read_raw_inputs(args, config_parser)
        http_settings = get_http_settings(config_parser)
        return run(raw_inputs, http_settings)
    except action_core.InputError as e:
        action_core.set_failed(str(e))
        return 1
    except Exception as e:
        logger.exception(f"An unhandled error occurred in main: {e}")
        action_core.set_failed(f"{LOG_PREFIX}, unexpected error: {e}")
        return 1


def cli():
    sys.exit(main())


if __name__ == "__main__":
    cli()
