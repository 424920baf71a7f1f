"""
Input normalization for the ServiceNow DevOps security scan step.

Turns the raw string inputs of the step into the values the payload builder
works with: the parsed GitHub context, the parsed security result attributes
and a cleaned-up instance URL.
"""

import json
import logging

import action_core

logger = logging.getLogger(__name__)

GITHUB_CONTEXT_LABEL = "github context"
SECURITY_ATTRIBUTES_LABEL = "securityResultAttributes"


class RawInputs:
    """String inputs of one invocation, exactly as read from the runner."""

    FIELDS = (
        'instance_url',
        'tool_id',
        'username',
        'password',
        'token',
        'job_name',
        'security_result_attributes_json',
        'github_context_json',
    )

    def __init__(self, **values):
        unknown = set(values) - set(self.FIELDS)
        if unknown:
            raise TypeError(f"Unknown inputs: {', '.join(sorted(unknown))}")
        for field in self.FIELDS:
            object.__setattr__(self, field, values.get(field) or '')

    def __setattr__(self, name, value):
        raise AttributeError("RawInputs is read-only")

    def __repr__(self):
        shown = {f: getattr(self, f) for f in self.FIELDS if f not in ('password', 'token')}
        return f"RawInputs({shown})"


class NormalizedInputs:
    """Parsed and cleaned inputs handed to the payload builder."""

    def __init__(self, instance_url, tool_id, job_name, username, password, token,
                 github_context, security_result_attributes):
        self.instance_url = instance_url
        self.tool_id = tool_id
        self.job_name = job_name
        self.username = username
        self.password = password
        self.token = token
        self.github_context = github_context
        self.security_result_attributes = security_result_attributes


def parse_json_input(raw_value, label):
    """Parses one JSON-bearing input.

    A parse failure marks the run failed with a message naming the input and
    the parser error, but does not raise.

    Args:
        raw_value (str): The raw input text
        label (str): Name used in the failure message

    Returns:
        tuple: (ok, value) where value is None when parsing failed
    """
    try:
        return True, json.loads(raw_value)
    except (json.JSONDecodeError, TypeError) as e:
        action_core.set_failed(f"Exception while parsing {label} {e}")
        return False, None


def normalize_instance_url(instance_url):
    """Trims whitespace and removes one trailing slash."""
    instance_url = instance_url.strip()
    if instance_url.endswith('/'):
        instance_url = instance_url[:-1]
    return instance_url


def normalize_inputs(raw):
    """Parses and cleans the raw inputs of one invocation.

    Both JSON inputs are always parsed so every malformed one is reported.
    If either failed, nothing is returned and the run must stop before a
    payload is built.

    Args:
        raw (RawInputs): Inputs read from the runner

    Returns:
        NormalizedInputs or None: None when a JSON input could not be parsed
    """
    context_ok, github_context = parse_json_input(raw.github_context_json, GITHUB_CONTEXT_LABEL)
    attributes_ok, attributes = parse_json_input(raw.security_result_attributes_json,
                                                 SECURITY_ATTRIBUTES_LABEL)
    if not (context_ok and attributes_ok):
        logger.error("Stopping before payload construction: malformed JSON input")
        return None

    if not isinstance(github_context, dict):
        logger.warning(f"GitHub context is a {type(github_context).__name__}, not an object; ignoring it")
        github_context = {}

    return NormalizedInputs(
        instance_url=normalize_instance_url(raw.instance_url),
        tool_id=raw.tool_id,
        job_name=raw.job_name,
        username=raw.username,
        password=raw.password,
        token=raw.token,
        github_context=github_context,
        security_result_attributes=attributes,
    )
