"""
Runner primitives for the security scan step.

Small stand-ins for the pieces of the GitHub Actions toolkit the step needs:
reading step inputs from the environment, writing debug lines, and marking the
run as failed through workflow commands on stdout.
"""

import logging
import os
import sys

logger = logging.getLogger(__name__)

# --- Constants ---
INPUT_ENV_PREFIX = "INPUT_"
DEBUG_COMMAND = "debug"
ERROR_COMMAND = "error"

# Run state for the current invocation
_run_state = {'failed': False, 'messages': []}


class InputError(Exception):
    """Raised when a required step input is missing."""
    pass


def input_env_name(name):
    """Returns the environment variable the runner uses for an input name."""
    return f"{INPUT_ENV_PREFIX}{name.replace(' ', '_').upper()}"


def get_input(name, required=False, default=''):
    """Reads a step input from the environment.

    Args:
        name (str): Input name as declared in action.yml (e.g. 'tool-id')
        required (bool): Raise InputError if the value is empty
        default (str): Value used when the variable is not set

    Returns:
        str: The input value with surrounding whitespace removed
    """
    value = os.environ.get(input_env_name(name), default) or ''
    value = value.strip()
    if required and not value:
        raise InputError(f"Input required and not supplied: {name}")
    return value


def _escape_data(message):
    return str(message).replace('%', '%25').replace('\r', '%0D').replace('\n', '%0A')


def _issue_command(command, message):
    sys.stdout.write(f"::{command}::{_escape_data(message)}\n")
    sys.stdout.flush()


def debug(message):
    """Writes a runner debug line (only shown when step debugging is on)."""
    logger.debug(message)
    _issue_command(DEBUG_COMMAND, message)


def info(message):
    """Writes a plain line to the step output."""
    sys.stdout.write(f"{message}\n")
    sys.stdout.flush()


def set_failed(message):
    """Marks the run as failed and emits an error annotation.

    Execution is not interrupted; callers decide whether to stop.
    """
    logger.error(message)
    _run_state['failed'] = True
    _run_state['messages'].append(message)
    _issue_command(ERROR_COMMAND, message)


def is_failed():
    return _run_state['failed']


def failure_messages():
    return list(_run_state['messages'])


def reset():
    """Clears the run state. Each invocation starts from a clean state."""
    _run_state['failed'] = False
    _run_state['messages'] = []
