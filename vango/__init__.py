"""
VANGO backend package.

FastAPI service for booking logistics: transporter location tracking, booking
photos, saved payment methods and payment-provider endpoints, with in-memory
backends for development and SQLAlchemy/S3/Redis backends for production.
"""
