"""
HTTP routes for the VANGO backend API.
"""

from __future__ import annotations

import logging
from typing import Optional

import requests
from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile
from fastapi.responses import JSONResponse

from vango.config import Settings, get_settings
from vango.db import SavedPaymentMethod
from vango.dependencies import (
    get_geocoder,
    get_location_service,
    get_payment_method_service,
    get_payment_provider,
    get_photo_service,
)
from vango.geocoding import Geocoder, run_geocoding_validation
from vango.health import check_supabase, describe_environment
from vango.location import LocationService
from vango.payment_methods import SavedPaymentMethodService
from vango.payments import DEFAULT_CURRENCY, PaymentProvider
from vango.photos import PhotoFile, PhotoService
from vango.schemas import (
    Base64PhotoRequest,
    CreateIntentRequest,
    DefaultPaymentMethodResponse,
    DeleteResponse,
    LocationResponse,
    LocationUpdateRequest,
    MobilePayRequest,
    MobilePayResponse,
    PaymentIntentResponse,
    PaymentMethodCreate,
    PaymentMethodListResponse,
    PaymentMethodResponse,
    PhotoListResponse,
    RefundRequest,
    RefundResponse,
    SignUrlResponse,
    UploadResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter()

MISSING_FIELDS = "Missing required fields"


# Payments


@router.post("/payment/create-intent", response_model=PaymentIntentResponse)
def create_payment_intent(
    payload: Optional[CreateIntentRequest] = None,
    provider: PaymentProvider = Depends(get_payment_provider),
):
    if not payload or not payload.bookingId or not payload.amount:
        raise HTTPException(status_code=400, detail=MISSING_FIELDS)
    try:
        intent = provider.create_payment_intent(
            payload.bookingId, payload.amount, payload.currency or DEFAULT_CURRENCY
        )
    except Exception as exc:
        logger.exception("Error creating payment intent")
        raise HTTPException(
            status_code=500, detail=str(exc) or "Payment initialization failed"
        )
    return PaymentIntentResponse(
        id=intent.id,
        clientSecret=intent.client_secret,
        amount=intent.amount,
        currency=intent.currency,
        status=intent.status,
    )


@router.post("/payment/mobilepay", response_model=MobilePayResponse)
def create_mobilepay_payment(
    payload: Optional[MobilePayRequest] = None,
    provider: PaymentProvider = Depends(get_payment_provider),
):
    if not payload or not payload.bookingId or not payload.amount:
        raise HTTPException(status_code=400, detail=MISSING_FIELDS)
    try:
        payment = provider.create_mobilepay_payment(
            payload.bookingId, payload.amount, payload.currency or DEFAULT_CURRENCY
        )
    except Exception as exc:
        logger.exception("Error creating MobilePay payment")
        raise HTTPException(
            status_code=500, detail=str(exc) or "MobilePay initialization failed"
        )
    return MobilePayResponse(
        paymentId=payment.payment_id,
        redirectUrl=payment.redirect_url,
        amount=payment.amount,
    )


@router.post("/payment/refund", response_model=RefundResponse)
def refund_payment(
    payload: Optional[RefundRequest] = None,
    provider: PaymentProvider = Depends(get_payment_provider),
):
    if not payload or not payload.paymentIntentId or not payload.amount:
        raise HTTPException(status_code=400, detail=MISSING_FIELDS)
    try:
        refund = provider.refund(payload.paymentIntentId, payload.amount)
    except Exception as exc:
        logger.exception("Error processing refund")
        raise HTTPException(status_code=500, detail=str(exc) or "Refund failed")
    return RefundResponse(
        success=refund.success, refundId=refund.refund_id, amount=refund.amount
    )


# Diagnostics


@router.get("/test-geocoding")
def test_geocoding(
    geocoder: Geocoder = Depends(get_geocoder),
    settings: Settings = Depends(get_settings),
):
    return run_geocoding_validation(
        geocoder, delay_seconds=settings.geocoding_test_delay_seconds
    )


@router.get("/check-supabase")
def check_supabase_health(settings: Settings = Depends(get_settings)):
    try:
        return check_supabase(
            settings.supabase_url,
            settings.supabase_anon_key,
            timeout=settings.health_check_timeout_seconds,
        )
    except requests.RequestException as exc:
        logger.error("Supabase health check failed: %s", exc)
        return JSONResponse(
            status_code=500,
            content={
                "status": "error",
                "message": str(exc) or "Unknown error",
                "environment": describe_environment(
                    settings.supabase_url, settings.supabase_anon_key
                ),
            },
        )


# Location tracking


@router.post(
    "/bookings/{booking_id}/locations", response_model=LocationResponse, status_code=201
)
def post_location(
    booking_id: str,
    payload: LocationUpdateRequest,
    service: LocationService = Depends(get_location_service),
):
    result = service.update_location(
        booking_id,
        payload.transporter_id,
        payload.lat,
        payload.lng,
        heading=payload.heading,
        speed=payload.speed,
    )
    if not result.is_ok:
        raise HTTPException(status_code=500, detail=result.error)
    return LocationResponse(**result.data.as_dict())


@router.get("/bookings/{booking_id}/locations/latest", response_model=LocationResponse)
def latest_location(
    booking_id: str,
    service: LocationService = Depends(get_location_service),
):
    result = service.get_latest_location(booking_id)
    if result.is_not_found:
        raise HTTPException(status_code=404, detail="No location for this booking")
    if result.is_failed:
        raise HTTPException(status_code=500, detail=result.error)
    return LocationResponse(**result.data.as_dict())


# Photos


@router.post(
    "/bookings/{booking_id}/photos", response_model=UploadResponse, status_code=201
)
async def upload_booking_photo(
    booking_id: str,
    file: UploadFile = File(...),
    user_id: str = Form(...),
    compress: bool = Form(False),
    service: PhotoService = Depends(get_photo_service),
):
    photo = PhotoFile(
        name=file.filename or "photo.jpg",
        content_type=file.content_type or "",
        data=await file.read(),
    )
    if compress:
        photo = service.compress_image(photo)
    uploaded = service.upload_photo(photo, booking_id, user_id)
    if not uploaded:
        raise HTTPException(status_code=400, detail="Photo upload failed")
    return UploadResponse(**uploaded.as_dict())


@router.post(
    "/bookings/{booking_id}/photos/base64",
    response_model=UploadResponse,
    status_code=201,
)
def upload_booking_photo_base64(
    booking_id: str,
    payload: Base64PhotoRequest,
    service: PhotoService = Depends(get_photo_service),
):
    uploaded = service.upload_base64_photo(payload.data_url, booking_id, payload.user_id)
    if not uploaded:
        raise HTTPException(status_code=400, detail="Photo upload failed")
    return UploadResponse(**uploaded.as_dict())


@router.get("/bookings/{booking_id}/photos", response_model=PhotoListResponse)
def list_booking_photos(
    booking_id: str,
    service: PhotoService = Depends(get_photo_service),
):
    return PhotoListResponse(urls=service.list_booking_photos(booking_id))


@router.get("/photos/sign-url", response_model=SignUrlResponse)
def sign_photo_url(
    path: str = Query(..., description="Object path in the photo bucket"),
    expires_in: int = Query(3600, ge=60, le=86400),
    service: PhotoService = Depends(get_photo_service),
):
    url = service.get_signed_url(path, expires_in=expires_in)
    if not url:
        raise HTTPException(status_code=404, detail="Photo not found")
    return SignUrlResponse(url=url)


@router.delete("/photos", response_model=DeleteResponse)
def delete_photo(
    path: str = Query(..., description="Object path in the photo bucket"),
    service: PhotoService = Depends(get_photo_service),
):
    if not service.delete_photo(path):
        raise HTTPException(status_code=500, detail="Failed to delete photo")
    return DeleteResponse(success=True)


# Saved payment methods


@router.get(
    "/users/{user_id}/payment-methods", response_model=PaymentMethodListResponse
)
def list_payment_methods(
    user_id: str,
    service: SavedPaymentMethodService = Depends(get_payment_method_service),
):
    result = service.get_user_payment_methods(user_id)
    if result.is_failed:
        raise HTTPException(status_code=500, detail=result.error)
    return PaymentMethodListResponse(
        payment_methods=[PaymentMethodResponse(**m.as_dict()) for m in result.data]
    )


@router.get(
    "/users/{user_id}/payment-methods/default",
    response_model=DefaultPaymentMethodResponse,
)
def default_payment_method(
    user_id: str,
    service: SavedPaymentMethodService = Depends(get_payment_method_service),
):
    result = service.get_default_payment_method(user_id)
    if result.is_failed:
        raise HTTPException(status_code=500, detail=result.error)
    if result.is_not_found:
        return DefaultPaymentMethodResponse(payment_method=None)
    return DefaultPaymentMethodResponse(
        payment_method=PaymentMethodResponse(**result.data.as_dict())
    )


@router.post(
    "/users/{user_id}/payment-methods",
    response_model=PaymentMethodResponse,
    status_code=201,
)
def save_payment_method(
    user_id: str,
    payload: PaymentMethodCreate,
    service: SavedPaymentMethodService = Depends(get_payment_method_service),
):
    duplicate = service.check_duplicate_card(
        user_id, payload.card_last4, payload.card_exp_month, payload.card_exp_year
    )
    if duplicate.is_failed:
        raise HTTPException(status_code=500, detail=duplicate.error)
    if duplicate.data:
        raise HTTPException(status_code=409, detail="Card already saved")

    record = SavedPaymentMethod(user_id=user_id, **payload.model_dump())
    result = service.save_payment_method(record)
    if not result.is_ok:
        raise HTTPException(status_code=500, detail=result.error)
    return PaymentMethodResponse(**result.data.as_dict())


@router.put(
    "/users/{user_id}/payment-methods/{payment_method_id}/default",
    response_model=PaymentMethodResponse,
)
def set_default_payment_method(
    user_id: str,
    payment_method_id: str,
    service: SavedPaymentMethodService = Depends(get_payment_method_service),
):
    result = service.set_default_payment_method(payment_method_id, user_id)
    if result.is_not_found:
        raise HTTPException(status_code=404, detail="Payment method not found")
    if result.is_failed:
        raise HTTPException(status_code=500, detail=result.error)
    return PaymentMethodResponse(**result.data.as_dict())


@router.delete(
    "/users/{user_id}/payment-methods/{payment_method_id}",
    response_model=DeleteResponse,
)
def delete_payment_method(
    user_id: str,
    payment_method_id: str,
    service: SavedPaymentMethodService = Depends(get_payment_method_service),
):
    result = service.delete_payment_method(payment_method_id, user_id)
    if result.is_not_found:
        raise HTTPException(status_code=404, detail="Payment method not found")
    if result.is_failed:
        raise HTTPException(status_code=500, detail=result.error)
    return DeleteResponse(success=True)
