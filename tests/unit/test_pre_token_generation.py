import copy
import os
from dataclasses import dataclass

import pytest

os.environ.setdefault("POWERTOOLS_TRACE_DISABLED", "1")

import pre_token_generation  # noqa: E402
from pre_token_generation import (  # noqa: E402
    TokenClaims,
    build_override_details,
    enrich_event,
    extract_token_claims,
)


@dataclass
class FakeLambdaContext:
    function_name: str = "cognito-pre-token-generation"
    memory_limit_in_mb: int = 128
    invoked_function_arn: str = (
        "arn:aws:lambda:eu-west-1:123456789012:function:cognito-pre-token-generation"
    )
    aws_request_id: str = "52fdfc07-2182-154f-163f-5f0f9a621d72"


def _event(attributes=None) -> dict:
    return {
        "version": "2",
        "triggerSource": "TokenGeneration_Authentication",
        "userPoolId": "eu-west-1_Example",
        "userName": "alice",
        "request": {"userAttributes": attributes if attributes is not None else {}},
        "response": {},
    }


def _claims(result: dict, token: str = "accessTokenGeneration") -> dict:
    return result["response"]["claimsAndScopeOverrideDetails"][token][
        "claimsToAddOrOverride"
    ]


# ------------------- Claim extraction -------------------


def test_domain_id_copied_to_both_tokens():
    result = enrich_event(_event({"sub": "u-1", "custom:domainId": "acme"}))

    assert _claims(result, "accessTokenGeneration") == {"domainId": "acme"}
    assert _claims(result, "idTokenGeneration") == {"domainId": "acme"}


def test_missing_attribute_yields_null_claim():
    result = enrich_event(_event({"sub": "u-1"}))

    assert _claims(result) == {"domainId": None}
    assert _claims(result, "idTokenGeneration") == {"domainId": None}


@pytest.mark.parametrize("value", ["", 42, None, ["acme"]])
def test_unusable_attribute_values_are_unset(value):
    assert extract_token_claims(_event({"custom:domainId": value})) == TokenClaims()


@pytest.mark.parametrize(
    "event",
    [
        None,
        "not-an-event",
        {},
        {"request": None},
        {"request": {"userAttributes": "acme"}},
    ],
    ids=["none", "string", "empty", "null-request", "non-mapping-attributes"],
)
def test_malformed_events_do_not_raise(event):
    result = enrich_event(event)

    assert _claims(result) == {"domainId": None}


def test_override_details_shape():
    details = build_override_details(TokenClaims(domain_id="acme"))

    assert set(details) == {"accessTokenGeneration", "idTokenGeneration"}
    assert details["accessTokenGeneration"] == details["idTokenGeneration"]


# ------------------- Event handling -------------------


def test_input_event_is_not_mutated():
    event = _event({"custom:domainId": "acme"})
    original = copy.deepcopy(event)

    enrich_event(event)

    assert event == original


def test_other_fields_are_preserved():
    event = _event({"custom:domainId": "acme"})

    result = enrich_event(event)

    for key in ("version", "triggerSource", "userPoolId", "userName", "request"):
        assert result[key] == event[key]


def test_existing_response_is_replaced():
    event = _event({"custom:domainId": "acme"})
    event["response"] = {"claimsOverrideDetails": {"claimsToSuppress": ["email"]}}

    result = enrich_event(event)

    assert list(result["response"]) == ["claimsAndScopeOverrideDetails"]


def test_enrichment_is_idempotent():
    once = enrich_event(_event({"custom:domainId": "acme"}))

    assert enrich_event(once) == once


def test_handler_returns_enriched_event():
    event = _event({"custom:domainId": "acme"})

    result = pre_token_generation.handler(event, FakeLambdaContext())

    assert _claims(result) == {"domainId": "acme"}
    assert result["userName"] == "alice"


def test_handler_logs_added_claim(monkeypatch):
    messages = []
    monkeypatch.setattr(
        pre_token_generation.logger,
        "info",
        lambda msg, *args, **kwargs: messages.append((msg, kwargs)),
    )

    pre_token_generation.handler(_event({"custom:domainId": "acme"}), FakeLambdaContext())

    added = dict(messages)["Added domainId claim"]
    assert added["domain_id"] == "acme"
