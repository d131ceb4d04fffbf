"""
Backend package: the operations behind the Firebase functions, their storage,
identity, email and lock abstractions, and a FastAPI application exposing the
same operations as a long-running service.
"""
