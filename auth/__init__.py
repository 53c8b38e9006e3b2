"""auth/ -- Credential verification, token issuance and account provisioning.

Layer rule: auth/ imports only stdlib + third-party libraries, plus
core/config in auth/signing.py. It does NOT import from api/.
api/ and main.py import from auth/, not the other way around.
"""
