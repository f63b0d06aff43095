"""
Dependency wiring for the FastAPI app.
"""

from __future__ import annotations

import logging

from vango.config import get_settings
from vango.db import DbClient, InMemoryDbClient, PostgresDbClient
from vango.geocoding import Geocoder, GoogleGeocodingClient, MockGeocodingClient
from vango.location import LocationService
from vango.payment_methods import SavedPaymentMethodService
from vango.payments import MockPaymentProvider, PaymentProvider, StripePaymentProvider
from vango.photos import PhotoService
from vango.realtime import ChangeFeed, InMemoryChangeFeed, RedisChangeFeed
from vango.storage import InMemoryStorageClient, S3StorageClient, StorageClient

logger = logging.getLogger(__name__)

_db_client: DbClient | None = None
_storage_client: StorageClient | None = None
_change_feed: ChangeFeed | None = None
_payment_provider: PaymentProvider | None = None
_geocoder: Geocoder | None = None
_location_service: LocationService | None = None


def get_db_client() -> DbClient:
    """
    Return a singleton DB client so rows persist across requests.
    """
    global _db_client
    if _db_client:
        return _db_client

    settings = get_settings()
    if settings.use_in_memory_backends or not settings.database_url:
        _db_client = InMemoryDbClient()
    else:
        _db_client = PostgresDbClient(settings.database_url)
    return _db_client


def get_storage_client() -> StorageClient:
    global _storage_client
    if _storage_client:
        return _storage_client

    settings = get_settings()
    if settings.use_in_memory_backends or not settings.storage_endpoint:
        _storage_client = InMemoryStorageClient(bucket=settings.photo_bucket)
    else:
        _storage_client = S3StorageClient(
            bucket=settings.photo_bucket,
            region=settings.storage_region or "",
            endpoint=settings.storage_endpoint,
            access_key_id=settings.storage_access_key_id or "",
            secret_access_key=settings.storage_secret_access_key or "",
            public_base_url=settings.storage_public_base_url,
        )
    return _storage_client


def get_change_feed() -> ChangeFeed:
    global _change_feed
    if _change_feed:
        return _change_feed

    settings = get_settings()
    if settings.use_in_memory_backends or not settings.redis_url:
        _change_feed = InMemoryChangeFeed()
    else:
        _change_feed = RedisChangeFeed(url=settings.redis_url)
    return _change_feed


def get_payment_provider() -> PaymentProvider:
    global _payment_provider
    if _payment_provider:
        return _payment_provider

    settings = get_settings()
    if settings.payment_provider == "stripe" and settings.stripe_secret_key:
        _payment_provider = StripePaymentProvider(
            api_key=settings.stripe_secret_key, site_url=settings.site_url
        )
    else:
        if settings.payment_provider == "stripe":
            logger.warning("STRIPE_SECRET_KEY is not set; using mock payments")
        _payment_provider = MockPaymentProvider()
    return _payment_provider


def get_geocoder() -> Geocoder:
    global _geocoder
    if _geocoder:
        return _geocoder

    settings = get_settings()
    if settings.geocoding_provider == "mock":
        _geocoder = MockGeocodingClient()
    else:
        _geocoder = GoogleGeocodingClient(api_key=settings.google_maps_api_key)
    return _geocoder


def get_location_service() -> LocationService:
    global _location_service
    if _location_service:
        return _location_service

    settings = get_settings()
    _location_service = LocationService(
        get_db_client(),
        get_change_feed(),
        poll_interval_seconds=settings.location_poll_interval_seconds,
        geolocation_timeout_seconds=settings.geolocation_timeout_seconds,
    )
    return _location_service


def get_photo_service() -> PhotoService:
    return PhotoService(get_storage_client())


def get_payment_method_service() -> SavedPaymentMethodService:
    settings = get_settings()
    return SavedPaymentMethodService(
        get_db_client(),
        exclusive_default=settings.exclusive_default_payment_method,
    )
