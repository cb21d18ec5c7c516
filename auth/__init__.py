"""auth/ -- Credential lookup, password verification and the login flow.

Layer rule: auth/ may import from events/ (the service publishes login
events) and core.bootstrap types. It does NOT import from api/.
api/ imports from auth/, not the other way around.
"""
