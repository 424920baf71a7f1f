"""Tests for input normalization."""

import json

import pytest

import action_core
from snow_devops_inputs import (
    NormalizedInputs,
    RawInputs,
    normalize_inputs,
    normalize_instance_url,
    parse_json_input,
)


def make_raw_inputs(github_context, security_attributes, **overrides):
    values = {
        'instance_url': 'https://acme.service-now.com/',
        'tool_id': 'tool123',
        'token': 'tok456',
        'job_name': 'security-scan',
        'github_context_json': json.dumps(github_context),
        'security_result_attributes_json': json.dumps(security_attributes),
    }
    values.update(overrides)
    return RawInputs(**values)


class TestNormalizeInstanceUrl:
    def test_strips_trailing_slash(self):
        assert normalize_instance_url("https://x.service-now.com/") == "https://x.service-now.com"

    def test_strips_only_one_trailing_slash(self):
        assert normalize_instance_url("https://x.service-now.com//") == "https://x.service-now.com/"

    def test_trims_whitespace_before_stripping(self):
        assert normalize_instance_url("  https://x.service-now.com/ \n") == "https://x.service-now.com"

    def test_leaves_clean_url_alone(self):
        assert normalize_instance_url("https://x.service-now.com") == "https://x.service-now.com"


class TestRawInputs:
    def test_missing_fields_default_to_empty(self):
        raw = RawInputs(tool_id='tool123')
        assert raw.tool_id == 'tool123'
        assert raw.username == ''
        assert raw.token == ''

    def test_is_read_only(self):
        raw = RawInputs(tool_id='tool123')
        with pytest.raises(AttributeError):
            raw.tool_id = 'other'

    def test_rejects_unknown_fields(self):
        with pytest.raises(TypeError):
            RawInputs(tool='tool123')

    def test_repr_hides_secrets(self):
        raw = RawInputs(tool_id='tool123', token='very-secret', password='hunter2')
        assert 'very-secret' not in repr(raw)
        assert 'hunter2' not in repr(raw)


class TestParseJsonInput:
    def test_valid_json(self):
        assert parse_json_input('{"a": 1}', 'attrs') == (True, {"a": 1})
        assert not action_core.is_failed()

    def test_invalid_json_marks_run_failed(self):
        ok, value = parse_json_input('{not json', 'github context')

        assert not ok
        assert value is None
        assert action_core.is_failed()
        assert action_core.failure_messages()[0].startswith("Exception while parsing github context ")


class TestNormalizeInputs:
    def test_parses_both_documents(self, github_context, security_attributes):
        inputs = normalize_inputs(make_raw_inputs(github_context, security_attributes))

        assert isinstance(inputs, NormalizedInputs)
        assert inputs.instance_url == 'https://acme.service-now.com'
        assert inputs.github_context == github_context
        assert inputs.security_result_attributes == security_attributes
        assert inputs.token == 'tok456'
        assert not action_core.is_failed()

    def test_reports_every_malformed_document(self, github_context):
        raw = make_raw_inputs(github_context, {}, github_context_json='{oops',
                              security_result_attributes_json='[1, 2')

        assert normalize_inputs(raw) is None
        messages = action_core.failure_messages()
        assert len(messages) == 2
        assert messages[0].startswith("Exception while parsing github context")
        assert messages[1].startswith("Exception while parsing securityResultAttributes")

    def test_stops_when_only_attributes_are_malformed(self, github_context):
        raw = make_raw_inputs(github_context, {}, security_result_attributes_json='nope')

        assert normalize_inputs(raw) is None
        assert len(action_core.failure_messages()) == 1

    def test_non_object_context_is_treated_as_empty(self, security_attributes):
        inputs = normalize_inputs(make_raw_inputs(["not", "an", "object"], security_attributes))
        assert inputs.github_context == {}

    def test_attributes_pass_through_unchanged(self, github_context):
        attributes = [{"finding": "CVE-2024-0001", "severity": None}]
        inputs = normalize_inputs(make_raw_inputs(github_context, attributes))
        assert inputs.security_result_attributes == attributes
