"""FastAPI dependencies wiring vd_purchase to the clients built in the lifespan.

Everything external (payment processor, background dispatcher, notifier) lives
on `app.state`; tests swap any of them through `app.dependency_overrides`.
"""

from typing import Annotated

from fastapi import Depends, Request

from src.vd_common.tasks import BackgroundDispatcher
from src.vd_purchase.application.checkout import CheckoutInitiator
from src.vd_purchase.application.reconciliation import ReconciliationHandler
from src.vd_purchase.domain.repository import (
    PaymentProcessorProtocol,
    PurchaseNotifierProtocol,
)


def get_payment_processor(request: Request) -> PaymentProcessorProtocol:
    return request.app.state.payment_processor


def get_dispatcher(request: Request) -> BackgroundDispatcher:
    return request.app.state.dispatcher


def get_notifier(request: Request) -> PurchaseNotifierProtocol:
    return request.app.state.notifier


def get_checkout_initiator(
    processor: Annotated[PaymentProcessorProtocol, Depends(get_payment_processor)],
) -> CheckoutInitiator:
    return CheckoutInitiator(processor)


def get_reconciliation_handler(
    processor: Annotated[PaymentProcessorProtocol, Depends(get_payment_processor)],
    dispatcher: Annotated[BackgroundDispatcher, Depends(get_dispatcher)],
    notifier: Annotated[PurchaseNotifierProtocol, Depends(get_notifier)],
) -> ReconciliationHandler:
    return ReconciliationHandler(processor, dispatcher=dispatcher, notifier=notifier)
