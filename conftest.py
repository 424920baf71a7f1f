import os
import sys

import pytest

# Add the current directory to path to import the step modules
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

import action_core


@pytest.fixture(autouse=True)
def clean_run_state(monkeypatch, tmp_path):
    """Each test starts with no failures, no step inputs and an empty working directory."""
    action_core.reset()
    for key in list(os.environ):
        if key.startswith(action_core.INPUT_ENV_PREFIX) or key.startswith('SNOW_'):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.delenv('RUNNER_DEBUG', raising=False)
    monkeypatch.chdir(tmp_path)
    yield
    action_core.reset()


@pytest.fixture
def github_context():
    return {
        "run_id": 6512345678,
        "run_number": 42,
        "run_attempt": "1",
        "sha": "a1b2c3d4",
        "workflow": "CI",
        "repository": "acme/webapp",
        "ref": "refs/heads/main",
        "ref_name": "main",
        "ref_type": "branch",
    }


@pytest.fixture
def security_attributes():
    return {
        "scanner": "Veracode",
        "applicationName": "webapp",
        "buildVersion": "1.4.2",
        "securityToolId": "tool-sys-id",
    }
