"""Test fixture package for the address correction service.

Contains fixtures for:
- Fake USPS and Google Maps upstreams (httpx.MockTransport)
- FastAPI application and test clients
"""
