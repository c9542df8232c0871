"""
API Routers - Organized endpoint handlers for the relief API.

Each router handles a specific domain:
- auth: registration, login and token verification
- camps: camp CRUD and bed selection
- selections: the caller's own selection
"""
