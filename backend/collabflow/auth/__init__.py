"""Authentication module (bearer JWT verification).

Token issuance belongs to the credential subsystem; this module only
verifies tokens for the HTTP routes and the realtime connection gate.

Services:
    - CredentialVerifier: validates a token and returns the Principal.
    - get_current_principal: FastAPI dependency for bearer headers.
"""
