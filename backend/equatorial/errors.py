# Overview: Domain error hierarchy shared by services and routes.

"""
Service errors carry an HTTP status so routes can translate them without
knowing every failure mode.

    ServiceError (400)
    |-- InvalidRequest            malformed or semantically invalid input
    |-- InvalidState              operation not allowed in the entity's state
    |   `-- AlreadyRefunded
    |-- InvalidTransition         order status change outside the workflow
    |-- InsufficientStock         sale would drive stock below zero
    |-- OverRefund                refund quantity beyond what was purchased
    |-- AmountExceedsOriginal     refund amount beyond what is refundable
    |-- NotFound (404)
    |   |-- ProductNotFound / TransactionNotFound
    |   `-- OrderNotFound / CustomerNotFound
    |-- Unauthorized (401)
    |-- Forbidden (403)
    `-- ConflictError (409)
"""

from __future__ import annotations

from flask import jsonify


class ServiceError(Exception):
    status_code = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        payload = {"error": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class InvalidRequest(ServiceError):
    """400-level input problem."""


class InvalidState(ServiceError):
    pass


class AlreadyRefunded(InvalidState):
    pass


class InvalidTransition(ServiceError):
    pass


class InsufficientStock(ServiceError):
    pass


class OverRefund(ServiceError):
    pass


class AmountExceedsOriginal(ServiceError):
    pass


class NotFound(ServiceError):
    status_code = 404


class ProductNotFound(NotFound):
    pass


class TransactionNotFound(NotFound):
    pass


class OrderNotFound(NotFound):
    pass


class CustomerNotFound(NotFound):
    pass


class InvoiceNotFound(NotFound):
    pass


class Unauthorized(ServiceError):
    status_code = 401


class Forbidden(ServiceError):
    status_code = 403


class ConflictError(ServiceError):
    """409-level business rule conflict (e.g., duplicate email)."""
    status_code = 409


def error_response(exc: ServiceError):
    return jsonify(exc.to_dict()), exc.status_code
