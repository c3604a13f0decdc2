# policy_monitor/services/google_ads.py
from __future__ import annotations

import logging
from typing import Any, Callable, Iterable, List, Sequence, TypeVar

import grpc
from google.ads.googleads.client import GoogleAdsClient
from google.ads.googleads.errors import GoogleAdsException
from google.auth.exceptions import RefreshError

from ..settings import Settings, google_ads_config
from .throttle import RateLimiter, RetryPolicy, call_with_retry

logger = logging.getLogger(__name__)

T = TypeVar("T")


# ------------------------------------------------------------------------------
# Errors
# ------------------------------------------------------------------------------

class AdsApiError(RuntimeError):
    """A Google Ads call failed. Carries the request id and error-code names."""

    def __init__(self, message: str, request_id: str | None = None, codes: Sequence[str] = ()):
        super().__init__(message)
        self.request_id = request_id
        self.codes = list(codes)


class QuotaExceededError(AdsApiError):
    """Quota / rate-limit rejection (RESOURCE_EXHAUSTED). Retried once."""


class AuthenticationError(AdsApiError):
    """Credentials rejected by Google. Fatal for the whole run."""


class ResourceLimitError(AdsApiError):
    """The platform refused to create a resource because a count limit was hit."""


_QUOTA_CODES = {"quota_error"}
_AUTH_CODES = {"authentication_error", "authorization_error"}
_LIMIT_CODES = {"resource_count_limit_exceeded_error"}


def _error_code_name(error: Any) -> str | None:
    code = error.error_code
    # proto-plus wrappers expose the raw protobuf through .pb()
    raw = type(code).pb(code) if hasattr(type(code), "pb") else code
    return raw.WhichOneof("error_code")


def translate_exception(ex: GoogleAdsException) -> AdsApiError:
    """Map a GoogleAdsException onto the monitor's error taxonomy."""
    codes: List[str] = []
    messages: List[str] = []
    failure = getattr(ex, "failure", None)
    for err in getattr(failure, "errors", None) or []:
        name = _error_code_name(err)
        if name:
            codes.append(name)
        messages.append(f"{name or 'error'}: {err.message}")

    status = None
    rpc_error = getattr(ex, "error", None)
    if rpc_error is not None and hasattr(rpc_error, "code"):
        status = rpc_error.code()

    request_id = getattr(ex, "request_id", None)
    message = f"Request ID: {request_id}; " + ("; ".join(messages) or str(status))

    code_set = set(codes)
    if code_set & _QUOTA_CODES or status == grpc.StatusCode.RESOURCE_EXHAUSTED:
        return QuotaExceededError(message, request_id, codes)
    if code_set & _AUTH_CODES or status in (
        grpc.StatusCode.UNAUTHENTICATED,
        grpc.StatusCode.PERMISSION_DENIED,
    ):
        return AuthenticationError(message, request_id, codes)
    if code_set & _LIMIT_CODES:
        return ResourceLimitError(message, request_id, codes)
    return AdsApiError(message, request_id, codes)


# ------------------------------------------------------------------------------
# Client
# ------------------------------------------------------------------------------

def google_ads_client(cfg: Settings) -> GoogleAdsClient:
    """Return a configured GoogleAdsClient.

    Raises CredentialsError if any of the four credentials is missing.
    """
    return GoogleAdsClient.load_from_dict(google_ads_config(cfg))


def enum_name(value: Any) -> str:
    """Return the enum member name for proto-plus enums, str() otherwise."""
    return getattr(value, "name", str(value))


# ------------------------------------------------------------------------------
# Gateway: every call is rate limited, translated and retried on quota errors
# ------------------------------------------------------------------------------

class AdsGateway:
    """Thin wrapper around the calls the monitor makes against one account."""

    def __init__(
        self,
        client: GoogleAdsClient,
        customer_id: str,
        rate_limiter: RateLimiter,
        retry_policy: RetryPolicy,
    ):
        self.client = client
        self.customer_id = str(customer_id).replace("-", "")
        self.rate_limiter = rate_limiter
        self.retry_policy = retry_policy
        if QuotaExceededError not in self.retry_policy.retry_on:
            self.retry_policy.retry_on = tuple(
                self.retry_policy.retry_on) + (QuotaExceededError,)

    def _call(self, fn: Callable[[], T], what: str) -> T:
        def _attempt() -> T:
            self.rate_limiter.wait()
            try:
                return fn()
            except GoogleAdsException as e:
                raise translate_exception(e) from e
            except RefreshError as e:
                raise AuthenticationError(f"OAuth refresh failed: {e}") from e
            except grpc.RpcError as e:
                code = e.code()
                if code == grpc.StatusCode.RESOURCE_EXHAUSTED:
                    raise QuotaExceededError(f"{what}: {e.details()}") from e
                if code in (grpc.StatusCode.UNAUTHENTICATED, grpc.StatusCode.PERMISSION_DENIED):
                    raise AuthenticationError(f"{what}: {e.details()}") from e
                raise

        return call_with_retry(_attempt, self.retry_policy, what=what)

    def search(self, query: str, what: str = "search") -> List[Any]:
        """Run a GAQL query and materialise the rows."""
        ga = self.client.get_service("GoogleAdsService")

        def _run() -> List[Any]:
            return list(ga.search(customer_id=self.customer_id, query=query))

        return self._call(_run, what)

    def mutate_ad_group_ads(self, operations: Iterable[Any], what: str = "mutate") -> Any:
        svc = self.client.get_service("AdGroupAdService")
        ops = list(operations)

        def _run() -> Any:
            return svc.mutate_ad_group_ads(customer_id=self.customer_id, operations=ops)

        return self._call(_run, what)

    def new_operation(self) -> Any:
        return self.client.get_type("AdGroupAdOperation")

    def get_type(self, name: str) -> Any:
        return self.client.get_type(name)

    def ad_group_path(self, ad_group_id: str) -> str:
        svc = self.client.get_service("AdGroupAdService")
        return svc.ad_group_path(self.customer_id, ad_group_id)

    @property
    def enums(self) -> Any:
        return self.client.enums

    def list_accessible_customers(self) -> List[str]:
        svc = self.client.get_service("CustomerService")
        resp = self._call(svc.list_accessible_customers, "list_accessible_customers")
        return [rn.split("/")[-1] for rn in resp.resource_names]


def build_gateway(cfg: Settings, customer_id: str, client: GoogleAdsClient | None = None) -> AdsGateway:
    return AdsGateway(
        client or google_ads_client(cfg),
        customer_id,
        RateLimiter(cfg.MIN_API_INTERVAL_SECONDS),
        RetryPolicy(max_attempts=2, backoff=(cfg.QUOTA_RETRY_BACKOFF_SECONDS,)),
    )
