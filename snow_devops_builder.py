"""
Authentication selection and report payload assembly.

Picks one of the two ServiceNow DevOps authentication modes from the
credential inputs, derives the security results endpoint and request headers
for it, and builds the JSON body that is posted to the instance.
"""

import base64
import json
import logging

import action_core

logger = logging.getLogger(__name__)

# --- Constants ---
SECURITY_API_PATH = "/api/sn_devops/{version}/devops/tool/security"
TOKEN_AUTH_SCHEME = "sn_devops.DevOpsToken"
BASIC_AUTH_SCHEME = "Basic"
JSON_CONTENT_TYPE = "application/json"
UNDEFINED_TEXT = "undefined"
OBJECT_TEXT = "[object Object]"

MISSING_CREDENTIALS_MESSAGE = (
    "Either a secret token or an integration username and password is needed "
    "for integration user authentication"
)
INCOMPLETE_BASIC_AUTH_MESSAGE = (
    "For Basic Auth, both a username and password are mandatory for integration "
    "user authentication."
)

# Wire key -> GitHub context field
PIPELINE_CONTEXT_FIELDS = (
    ('runId', 'run_id'),
    ('runNumber', 'run_number'),
    ('runAttempt', 'run_attempt'),
)
PIPELINE_SOURCE_FIELDS = (
    ('sha', 'sha'),
    ('workflow', 'workflow'),
    ('repository', 'repository'),
    ('ref', 'ref'),
    ('refName', 'ref_name'),
    ('refType', 'ref_type'),
)


class AuthConfigError(Exception):
    """Raised when the credential inputs do not form a usable auth mode."""
    pass


class TokenAuth:
    """Tool-scoped secret token authentication (v2 API)."""

    api_version = "v2"

    def __init__(self, tool_id, token):
        self.tool_id = tool_id
        self.token = token

    def authorization(self):
        return f"{TOKEN_AUTH_SCHEME} {self.tool_id}:{self.token}"

    def __eq__(self, other):
        return isinstance(other, TokenAuth) and (self.tool_id, self.token) == (other.tool_id, other.token)

    def __repr__(self):
        return f"TokenAuth(tool_id={self.tool_id!r})"


class BasicAuth:
    """Integration user authentication with username and password (v1 API)."""

    api_version = "v1"

    def __init__(self, username, password):
        self.username = username
        self.password = password

    def authorization(self):
        credentials = f"{self.username}:{self.password}"
        encoded_credentials = base64.b64encode(credentials.encode('utf-8')).decode('utf-8')
        return f"{BASIC_AUTH_SCHEME} {encoded_credentials}"

    def __eq__(self, other):
        return isinstance(other, BasicAuth) and (self.username, self.password) == (other.username, other.password)

    def __repr__(self):
        return f"BasicAuth(username={self.username!r})"


def resolve_auth(tool_id, token, username, password):
    """Selects the authentication mode from the credential inputs.

    The token wins over username/password when both are supplied.

    Returns:
        TokenAuth or BasicAuth

    Raises:
        AuthConfigError: If no credentials, or only half of a username/password pair, are given
    """
    if not token and not username and not password:
        raise AuthConfigError(MISSING_CREDENTIALS_MESSAGE)
    if token:
        return TokenAuth(tool_id, token)
    if username and password:
        return BasicAuth(username, password)
    raise AuthConfigError(INCOMPLETE_BASIC_AUTH_MESSAGE)


def build_endpoint(instance_url, auth, tool_id):
    """Builds the security results URL for the selected auth mode.

    The tool id is appended as-is.
    """
    path = SECURITY_API_PATH.format(version=auth.api_version)
    return f"{instance_url}{path}?toolId={tool_id}"


def build_headers(auth):
    return {
        'Content-Type': JSON_CONTENT_TYPE,
        'Accept': JSON_CONTENT_TYPE,
        'Authorization': auth.authorization(),
    }


def to_text(value):
    """Renders a context value the way it appears in the pipeline info."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, dict):
        return OBJECT_TEXT
    if isinstance(value, list):
        # nulls inside a list render as empty items
        return ','.join('' if item is None else to_text(item) for item in value)
    return str(value)


def _context_text(github_context, field):
    if field not in github_context:
        return UNDEFINED_TEXT
    return to_text(github_context[field])


def build_pipeline_info(tool_id, job_name, github_context):
    """Builds the pipeline info record sent with the scan results.

    Args:
        tool_id (str): ServiceNow tool sys_id
        job_name (str): Name of the CI job
        github_context (dict): Parsed GitHub context

    Returns:
        dict: Pipeline info keyed by wire field names, all values text
    """
    pipeline_info = {'toolId': tool_id}
    for key, field in PIPELINE_CONTEXT_FIELDS:
        pipeline_info[key] = _context_text(github_context, field)
    pipeline_info['job'] = to_text(job_name)
    for key, field in PIPELINE_SOURCE_FIELDS:
        pipeline_info[key] = _context_text(github_context, field)
    return pipeline_info


def build_payload(pipeline_info, security_result_attributes):
    return {
        'pipelineInfo': pipeline_info,
        'securityResultAttributes': security_result_attributes,
    }


class ReportRequest:
    """Everything needed for the single POST to the instance."""

    def __init__(self, endpoint, headers, payload):
        self.endpoint = endpoint
        self.headers = headers
        self.payload = payload

    @property
    def body(self):
        return json.dumps(self.payload)


def build_request(inputs):
    """Assembles the payload and resolves authentication for one invocation.

    Args:
        inputs (NormalizedInputs): Parsed step inputs

    Returns:
        ReportRequest

    Raises:
        AuthConfigError: If the credentials cannot be resolved
    """
    pipeline_info = build_pipeline_info(inputs.tool_id, inputs.job_name, inputs.github_context)
    payload = build_payload(pipeline_info, inputs.security_result_attributes)
    action_core.debug(f"Security scan results Custom Action payload is : {json.dumps(pipeline_info)}\n\n")

    auth = resolve_auth(inputs.tool_id, inputs.token, inputs.username, inputs.password)
    logger.info(f"Using {type(auth).__name__} against the {auth.api_version} API")
    endpoint = build_endpoint(inputs.instance_url, auth, inputs.tool_id)
    return ReportRequest(endpoint, build_headers(auth), payload)
