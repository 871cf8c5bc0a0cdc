"""handlers/ -- Per-ecosystem package handlers and the dispatcher that picks one.

Layer rule: handlers/ imports from core/ and third-party libraries only.
It does NOT import from api/. core/ never imports from handlers/; the
remediation loop receives a dispatcher from its caller.
"""
