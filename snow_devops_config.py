"""
Configuration for the ServiceNow DevOps security scan step.

Step inputs are resolved per input with the priority order:
command-line args > INPUT_* environment variables > config.ini > empty.
A .env file in the working directory is loaded first without overriding
variables that are already set.
"""

import argparse
import configparser
import logging
import os

from dotenv import find_dotenv, load_dotenv

import action_core
from snow_devops_inputs import RawInputs

# --- Constants ---
CONFIG_FILE = 'config.ini'
INPUTS_SECTION = 'servicenow'
HTTP_SECTION = 'http'
LOG_FORMAT = '%(asctime)s - %(levelname)s - %(message)s'
DEFAULT_LOG_LEVEL = 'INFO'

# (action input name, RawInputs field, required)
STEP_INPUTS = (
    ('instance-url', 'instance_url', True),
    ('tool-id', 'tool_id', True),
    ('devops-integration-user-name', 'username', False),
    ('devops-integration-user-password', 'password', False),
    ('devops-integration-token', 'token', False),
    ('job-name', 'job_name', True),
    ('security-result-attributes', 'security_result_attributes_json', True),
    ('context-github', 'github_context_json', True),
)

logger = logging.getLogger(__name__)


def create_parser():
    """Create and configure argument parser."""
    parser = argparse.ArgumentParser(
        description='Register security scan results with a ServiceNow DevOps instance',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Inside a workflow step, inputs come from INPUT_* variables
  python snow_devops_security_scan.py

  # Local run against a test instance
  python snow_devops_security_scan.py --instance-url https://dev.service-now.com \\
      --tool-id abc123 --token secret --job-name build \\
      --security-result-attributes '{"scanner": "Veracode"}' \\
      --context-github "$(cat github.json)"
        """
    )
    parser.add_argument('--instance-url', help='ServiceNow instance URL (overrides INPUT_INSTANCE-URL)')
    parser.add_argument('--tool-id', help='Orchestration tool sys_id')
    parser.add_argument('--username', dest='devops_integration_user_name',
                        help='DevOps integration user name')
    parser.add_argument('--password', dest='devops_integration_user_password',
                        help='DevOps integration user password')
    parser.add_argument('--token', dest='devops_integration_token',
                        help='DevOps integration token (takes precedence over username/password)')
    parser.add_argument('--job-name', help='Name of the CI job')
    parser.add_argument('--security-result-attributes', help='Security result attributes as JSON')
    parser.add_argument('--context-github', help='GitHub context as JSON')
    parser.add_argument('--verbose', action='store_true', help='Enable debug logging')
    return parser


def setup_logging(verbose=False):
    """Configures root logging once for the process."""
    if verbose or os.environ.get('RUNNER_DEBUG') == '1':
        level = logging.DEBUG
    else:
        level = getattr(logging, os.environ.get('SNOW_LOG_LEVEL', DEFAULT_LOG_LEVEL).upper(), logging.INFO)
    logging.basicConfig(level=level, format=LOG_FORMAT)
    return level


def load_env_file():
    """Load environment variables from .env file if it exists."""
    env_file = find_dotenv(usecwd=True)
    if not env_file:
        logger.debug("No .env file found, using system environment variables")
        return False
    logger.info(f"Loading environment variables from {env_file}")
    return load_dotenv(env_file, override=False)


def load_config_file(config_file=CONFIG_FILE):
    """Load configuration from config.ini file.

    Returns:
        configparser.ConfigParser: Loaded configuration object (empty if the file is missing)
    """
    config = configparser.ConfigParser(interpolation=None)
    if os.path.exists(config_file):
        config.read(config_file)
        logger.debug(f"Read configuration from {config_file}")
    return config


def _arg_value(args, input_name):
    if args is None:
        return None
    return getattr(args, input_name.replace('-', '_'), None)


def get_step_input(input_name, config_parser, args=None, required=False):
    """Resolves one step input across command line, environment and config file.

    Raises:
        action_core.InputError: If a required input has no value anywhere
    """
    value = _arg_value(args, input_name)
    if value:
        return value.strip()

    value = action_core.get_input(input_name)
    if value:
        return value

    value = config_parser.get(INPUTS_SECTION, input_name, fallback='').strip()
    if required and not value:
        raise action_core.InputError(f"Input required and not supplied: {input_name}")
    return value


def read_raw_inputs(args=None, config_parser=None):
    """Reads every step input of this invocation.

    Args:
        args: Parsed command-line arguments, or None inside a runner
        config_parser: ConfigParser with fallback values

    Returns:
        RawInputs

    Raises:
        action_core.InputError: On the first missing required input
    """
    if config_parser is None:
        config_parser = load_config_file()
    values = {}
    for input_name, field, required in STEP_INPUTS:
        values[field] = get_step_input(input_name, config_parser, args, required)
    return RawInputs(**values)


def _parse_bool(value, default):
    if value is None or value == '':
        return default
    return str(value).strip().lower() in ('1', 'true', 'yes', 'on')


def get_http_settings(config_parser=None):
    """Reads transport settings for the request.

    Returns:
        dict: verify (bool), timeout (float or None), proxies (dict or None)
    """
    if config_parser is None:
        config_parser = load_config_file()

    verify = _parse_bool(
        os.environ.get('SNOW_SSL_VERIFY') or config_parser.get(HTTP_SECTION, 'ssl_verify', fallback=None),
        True
    )
    timeout_value = (os.environ.get('SNOW_REQUEST_TIMEOUT') or
                     config_parser.get(HTTP_SECTION, 'timeout', fallback=None))
    timeout = None
    if timeout_value:
        try:
            timeout = float(timeout_value)
        except ValueError:
            logger.warning(f"Ignoring invalid request timeout: {timeout_value}")

    proxy_url = (os.environ.get('SNOW_PROXY_URL') or
                 config_parser.get(HTTP_SECTION, 'proxy_url', fallback=None))
    proxies = {'https': proxy_url} if proxy_url else None

    if not verify:
        logger.warning("SSL certificate verification is DISABLED.")
    if proxies:
        logger.info(f"Proxy configured: {proxy_url.split('@')[-1]}")

    return {'verify': verify, 'timeout': timeout, 'proxies': proxies}
