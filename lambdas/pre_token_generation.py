import os
from collections.abc import Mapping
from typing import Any, Optional, TypedDict

from attrs import define, field
from attrs.validators import instance_of, optional
from aws_lambda_powertools.logging.logger import Logger
from aws_lambda_powertools.tracing import Tracer
from aws_lambda_powertools.utilities.typing import LambdaContext

logger: Logger = Logger(
    service="cognito-pre-token-generation",
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
)
tracer: Tracer = Tracer(service="cognito-pre-token-generation")

DOMAIN_ID_ATTRIBUTE = "custom:domainId"
DOMAIN_ID_CLAIM = "domainId"


class PreTokenGenerationRequest(TypedDict, total=False):
    userAttributes: dict[str, str]


class PreTokenGenerationEvent(TypedDict, total=False):
    version: str
    triggerSource: str
    userPoolId: str
    userName: str
    request: PreTokenGenerationRequest
    response: dict[str, Any]


class ClaimsOverride(TypedDict):
    claimsToAddOrOverride: dict[str, Optional[str]]


class ClaimsAndScopeOverrideDetails(TypedDict):
    accessTokenGeneration: ClaimsOverride
    idTokenGeneration: ClaimsOverride


@define(slots=True, frozen=True, kw_only=True)
class TokenClaims:
    domain_id: Optional[str] = field(default=None, validator=optional(instance_of(str)))

    def to_claims(self) -> dict[str, Optional[str]]:
        return {DOMAIN_ID_CLAIM: self.domain_id}


def _user_attributes(event: Any) -> Mapping[str, Any]:
    if not isinstance(event, Mapping):
        return {}
    request = event.get("request")
    if not isinstance(request, Mapping):
        return {}
    attributes = request.get("userAttributes")
    return attributes if isinstance(attributes, Mapping) else {}


def extract_token_claims(event: Any) -> TokenClaims:
    """Read the claims to inject, treating anything missing or malformed as unset."""
    domain_id = _user_attributes(event).get(DOMAIN_ID_ATTRIBUTE)
    if not isinstance(domain_id, str) or not domain_id:
        domain_id = None
    return TokenClaims(domain_id=domain_id)


def build_override_details(claims: TokenClaims) -> ClaimsAndScopeOverrideDetails:
    return {
        "accessTokenGeneration": {"claimsToAddOrOverride": claims.to_claims()},
        "idTokenGeneration": {"claimsToAddOrOverride": claims.to_claims()},
    }


def enrich_event(event: Any) -> dict[str, Any]:
    """Return a copy of the trigger event with the claim overrides set."""
    claims = extract_token_claims(event)
    enriched = dict(event) if isinstance(event, Mapping) else {}
    enriched["response"] = {
        "claimsAndScopeOverrideDetails": build_override_details(claims)
    }
    return enriched


@logger.inject_lambda_context
@tracer.capture_lambda_handler
def handler(event: PreTokenGenerationEvent, context: LambdaContext) -> dict[str, Any]:
    logger.info("Pre token generation event", event=event)
    enriched = enrich_event(event)
    logger.info(
        "Added domainId claim",
        domain_id=enriched["response"]["claimsAndScopeOverrideDetails"][
            "accessTokenGeneration"
        ]["claimsToAddOrOverride"][DOMAIN_ID_CLAIM],
        response=enriched["response"],
    )
    return enriched
