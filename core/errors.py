"""Error taxonomy shared by the onboarding and reporting handlers"""


class ServiceError(Exception):
    """Base error; carries the HTTP status and machine code used in JSON bodies"""

    status_code = 500
    code = "internal_error"

    def __init__(self, message="", details=None):
        super().__init__(message or self.code)
        self.message = message or self.code
        self.details = details

    def to_dict(self):
        body = {"error": self.code, "message": self.message}
        if self.details is not None:
            body["details"] = self.details
        return body


class ConfigurationError(ServiceError):
    """Required runtime configuration is missing"""

    status_code = 500
    code = "configuration_error"


class SecretAccessError(ServiceError):
    """The secret store could not be read"""

    status_code = 500
    code = "secret_unavailable"


class OAuthExchangeError(ServiceError):
    """Stripe rejected or failed the authorization-code exchange"""

    status_code = 502
    code = "oauth_exchange_failed"


class AuthorizationError(ServiceError):
    status_code = 403
    code = "forbidden"


class ValidationError(ServiceError):
    status_code = 400
    code = "invalid_payload"


class AggregationPartial(ServiceError):
    """A metric cannot be computed from the data at hand; reported as zero"""

    status_code = 200
    code = "aggregation_partial"


class RelayError(ServiceError):
    """The automation relay did not accept a notification"""

    status_code = 502
    code = "relay_failed"

    def __init__(self, message="", upstream_status=None):
        super().__init__(message)
        self.upstream_status = upstream_status
