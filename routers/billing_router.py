"""
Billing Router - subscription status, plans and Paystack payments
Webhook is defined FIRST to avoid middleware conflicts
"""

import json
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from backend.dependencies import get_billing_service, get_paystack_service, get_trial_service
from backend.utils.responses import error_response, success_response
from config.settings import settings
from models.billing_models import InitializePaymentRequest, VerifyPaymentRequest
from services.billing_service import (
    BillingError,
    BillingService,
    PaymentMismatchError,
    PlanNotFoundError,
    serialize_plan,
    serialize_subscription,
)
from services.paystack_service import PaystackService
from services.subscription_status import to_millis
from services.trial_service import TrialService

logger = logging.getLogger(__name__)

# Create billing router
billing_router = APIRouter(prefix="/api/billing", tags=["billing"])


def _payment_metadata(data: dict) -> dict:
    """Paystack echoes metadata back either as an object or as a JSON string."""
    metadata = data.get("metadata") or {}
    if isinstance(metadata, str):
        try:
            metadata = json.loads(metadata)
        except ValueError:
            return {}
    if not isinstance(metadata, dict):
        return {}
    return {
        "shop_id": metadata.get("shopId") or metadata.get("shop_id"),
        "plan_id": metadata.get("planId") or metadata.get("plan_id"),
    }


async def apply_payment(
    billing_service: BillingService,
    trial_service: TrialService,
    data: dict,
    reference: str,
):
    """
    Activate the paid period on both the server subscription and the local record.
    The charged amount and currency must match the plan named in the metadata.

    Raises:
        PlanNotFoundError, PaymentMismatchError
    """
    metadata = _payment_metadata(data)
    plan = await billing_service.verify_payment_amount(metadata["plan_id"], data.get("amount"), data.get("currency"))
    subscription = await billing_service.upgrade_subscription(metadata["shop_id"], plan.id, reference)
    trial_service.activate_local_subscription(
        metadata["shop_id"],
        to_millis(subscription.current_period_end),
        plan.id,
    )
    return subscription


# WEBHOOK ENDPOINT - MUST BE DEFINED FIRST TO AVOID MIDDLEWARE CONFLICTS
@billing_router.post("/webhook")
async def paystack_webhook(
    request: Request,
    billing_service: BillingService = Depends(get_billing_service),
    trial_service: TrialService = Depends(get_trial_service),
    paystack: PaystackService = Depends(get_paystack_service),
):
    """
    Handle Paystack webhook events with signature verification.

    Only `charge.success` events carrying shop and plan metadata activate a
    subscription. Always returns 200 so Paystack does not retry.
    """
    try:
        payload = await request.body()
        signature = request.headers.get("x-paystack-signature")
        if not paystack.verify_webhook_signature(payload, signature):
            logger.error("Paystack webhook signature verification failed")
            return JSONResponse(
                status_code=200,
                content={"ok": False, "received": True, "error": "Invalid webhook signature"}
            )

        try:
            event = json.loads(payload)
        except ValueError as e:
            logger.error(f"Invalid webhook payload: {e}")
            return JSONResponse(
                status_code=200,
                content={"ok": False, "received": True, "error": "Invalid payload format"}
            )

        event_type = event.get("event")
        logger.info(f"Processing Paystack webhook event: {event_type}")
        if event_type != "charge.success":
            return JSONResponse(status_code=200, content={"ok": True, "received": True, "event_type": event_type})

        data = event.get("data") or {}
        metadata = _payment_metadata(data)
        reference = data.get("reference")
        if not (metadata["shop_id"] and metadata["plan_id"] and reference):
            logger.warning(f"charge.success without shop/plan metadata (reference={reference})")
            return JSONResponse(
                status_code=200,
                content={"ok": False, "received": True, "error": "Missing payment metadata"}
            )

        try:
            subscription = await apply_payment(billing_service, trial_service, data, reference)
        except PaymentMismatchError as e:
            logger.warning(f"Ignoring charge.success {reference}: {e}")
            return JSONResponse(
                status_code=200,
                content={"ok": False, "received": True, "error": "Payment amount mismatch"}
            )
        return JSONResponse(
            status_code=200,
            content={
                "ok": True,
                "received": True,
                "event_type": event_type,
                "subscription_id": subscription.id,
            }
        )

    except Exception as e:
        logger.error(f"Webhook error: {e}", exc_info=True)
        await billing_service.db.rollback()
        # Return 200 to Paystack even on error to prevent retries
        return JSONResponse(
            status_code=200,
            content={"ok": False, "received": True, "error": str(e)}
        )


@billing_router.get("/status/{shop_id}")
async def get_subscription_status(
    shop_id: str,
    billing_service: BillingService = Depends(get_billing_service),
):
    """Effective subscription status and lock decision for a shop."""
    status = await billing_service.check_subscription_status(shop_id)
    subscription = await billing_service.get_shop_subscription(shop_id) if status.status != "ERROR" else None
    return success_response({
        **status.to_dict(),
        "subscription": serialize_subscription(subscription),
    })


@billing_router.get("/plans")
async def get_available_plans(
    shop_id: Optional[str] = None,
    billing_service: BillingService = Depends(get_billing_service),
):
    """Plans offered for upgrade; trial shops only see the monthly plan."""
    current = await billing_service.get_shop_subscription(shop_id) if shop_id else None
    plans = await billing_service.get_available_plans(current)
    return success_response([serialize_plan(plan) for plan in plans])


@billing_router.post("/initialize")
async def initialize_payment(
    body: InitializePaymentRequest,
    billing_service: BillingService = Depends(get_billing_service),
    paystack: PaystackService = Depends(get_paystack_service),
):
    """
    Start a Paystack payment for a plan.
    The shop and plan travel in the transaction metadata and come back on verify/webhook.
    """
    plan = await billing_service.plans.get_by_id(body.plan_id)
    if plan is None:
        return error_response("plan_not_found", status=404, message="Plan not found")

    reference = paystack.generate_reference("TFLOW")
    callback_url = body.callback_url or f"{settings.frontend_url}/payment/success"
    result = await paystack.initialize_payment(
        email=body.email,
        amount=plan.price,
        reference=reference,
        callback_url=callback_url,
        metadata={"shopId": body.shop_id, "planId": plan.id},
    )
    if result.get("is_error"):
        return error_response("payment_initialization_failed", message=result.get("error", "Unknown error"))
    return success_response({"reference": reference, **result["data"]})


@billing_router.post("/verify")
async def verify_payment(
    body: VerifyPaymentRequest,
    billing_service: BillingService = Depends(get_billing_service),
    trial_service: TrialService = Depends(get_trial_service),
    paystack: PaystackService = Depends(get_paystack_service),
):
    """Confirm a payment reference with Paystack and activate the purchased plan."""
    result = await paystack.verify_transaction(body.reference)
    if result.get("is_error"):
        return error_response("payment_verification_failed", message=result.get("error", "Unknown error"))

    data = result["data"]
    if data.get("status") != "success":
        return error_response(
            "payment_not_successful",
            status=402,
            message=f"Payment status is {data.get('status')}",
        )

    metadata = _payment_metadata(data)
    if not (metadata["shop_id"] and metadata["plan_id"]):
        return error_response("missing_payment_metadata", message="Payment is missing shop or plan metadata")

    try:
        subscription = await apply_payment(billing_service, trial_service, data, body.reference)
    except PlanNotFoundError as e:
        return error_response("plan_not_found", status=404, message=str(e))
    except PaymentMismatchError as e:
        logger.warning(f"Rejected payment {body.reference}: {e}")
        return error_response("payment_amount_mismatch", status=402, message=str(e))
    except BillingError as e:
        return error_response("billing_error", message=str(e))

    return success_response(serialize_subscription(subscription), message="Subscription activated")
