"""auth/ -- Identity core: credential checks, per-app tokens, user registration.

Layer rule: auth/ imports only stdlib + third-party libraries.
It does NOT import from api/ or core/. Settings values (token TTL, bcrypt
cost) are passed in by the bootstrap code, so the core never reads config.
api/ imports from auth/, not the other way around.
"""
