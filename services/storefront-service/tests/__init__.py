"""
Test suite for the storefront service.

Test categories:
- Service tests: cart, order, coupon, member and catalog services against SQLite
- Route tests: the FastAPI app through TestClient
- Concurrency tests: coupon redemption against PostgreSQL (opt-in)
"""
