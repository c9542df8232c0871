"""
Relief Beds API - FastAPI application package.
"""
