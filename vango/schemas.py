"""
Pydantic schemas for the VANGO FastAPI backend.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field


# Payments. Field names follow the web client's camelCase payloads.


class CreateIntentRequest(BaseModel):
    bookingId: Optional[str] = None
    amount: Optional[int] = None
    currency: Optional[str] = None


class PaymentIntentResponse(BaseModel):
    id: str
    clientSecret: str
    amount: int
    currency: str
    status: str


class MobilePayRequest(BaseModel):
    bookingId: Optional[str] = None
    amount: Optional[int] = None
    currency: Optional[str] = None


class MobilePayResponse(BaseModel):
    paymentId: str
    redirectUrl: str
    amount: int


class RefundRequest(BaseModel):
    paymentIntentId: Optional[str] = None
    amount: Optional[int] = None


class RefundResponse(BaseModel):
    success: bool
    refundId: str
    amount: int


# Location tracking


class LocationUpdateRequest(BaseModel):
    transporter_id: str
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)
    heading: Optional[float] = None
    speed: Optional[float] = None


class LocationResponse(BaseModel):
    id: str
    booking_id: str
    transporter_id: str
    lat: float
    lng: float
    heading: Optional[float] = None
    speed: Optional[float] = None
    created_at: float


# Photos


class Base64PhotoRequest(BaseModel):
    user_id: str
    data_url: str


class UploadResponse(BaseModel):
    url: str
    path: str


class PhotoListResponse(BaseModel):
    urls: list[str]


class SignUrlResponse(BaseModel):
    url: str


class DeleteResponse(BaseModel):
    success: bool


# Saved payment methods


class PaymentMethodCreate(BaseModel):
    card_last4: str = Field(..., pattern=r"^\d{4}$")
    card_exp_month: int = Field(..., ge=1, le=12)
    card_exp_year: int = Field(..., ge=2000, le=2100)
    is_default: bool = False
    card_brand: Optional[str] = None
    cardholder_name: Optional[str] = None
    stripe_payment_method_id: Optional[str] = None


class PaymentMethodResponse(BaseModel):
    id: str
    user_id: str
    card_last4: str
    card_exp_month: int
    card_exp_year: int
    is_default: bool
    card_brand: Optional[str] = None
    cardholder_name: Optional[str] = None
    stripe_payment_method_id: Optional[str] = None
    created_at: float
    updated_at: float


class PaymentMethodListResponse(BaseModel):
    payment_methods: list[PaymentMethodResponse]


class DefaultPaymentMethodResponse(BaseModel):
    payment_method: Optional[PaymentMethodResponse] = None
