"""
Error taxonomy shared by checkout, gateway adapters and reconciliation
"""


class PaymentError(Exception):
    """Base class for payment orchestration errors."""
    code = 'PAYMENT_ERROR'
    http_status = 400
    retryable = False

    def __init__(self, message, gateway=None):
        super().__init__(message)
        self.message = message
        self.gateway = gateway

    def to_dict(self):
        """JSON body for API error responses."""
        return {
            'error': self.message,
            'code': self.code,
            'details': getattr(self, 'details', None),
            'gateway': self.gateway,
            'retryable': self.retryable,
        }


class ConfigurationError(PaymentError):
    """Missing or invalid credentials; fatal to the single request, never retried."""
    code = 'CREATOR_GATEWAY_NOT_CONFIGURED'


class UnsupportedGatewayError(PaymentError):
    """The caller named a gateway the platform does not integrate."""
    code = 'UNSUPPORTED_GATEWAY'

    def __init__(self, gateway):
        super().__init__(f"Gateway '{gateway}' not supported", gateway=gateway)


class ProviderTransportError(PaymentError):
    """Network failure, timeout or 5xx from the provider. Safe to retry."""
    code = 'GATEWAY_ERROR'
    http_status = 502
    retryable = True

    def __init__(self, message, gateway=None, status_code=None, details=None):
        super().__init__(message, gateway=gateway)
        self.status_code = status_code
        self.details = details


class ProviderRejectedError(ProviderTransportError):
    """The provider answered 4xx: the request itself was refused."""
    code = 'GATEWAY_REJECTED'
    http_status = 400
    retryable = False


class NotFoundError(PaymentError):
    """The provider does not know the referenced id."""
    code = 'NOT_FOUND'
    http_status = 404


class ReconciliationNoMatch(PaymentError):
    """A webhook references nothing known locally."""
    code = 'RECONCILIATION_NO_MATCH'


class InvalidTransitionError(PaymentError):
    """A status change that the lifecycle forbids (data-integrity signal)."""
    code = 'INVALID_TRANSITION'
    http_status = 409

    def __init__(self, entity, entity_id, current, target):
        super().__init__(f"{entity} #{entity_id} cannot move from '{current}' to '{target}'")
        self.entity = entity
        self.entity_id = entity_id
        self.current = current
        self.target = target
