"""
FastAPI RESTful API for the Book Management System.

This package provides:
- Login and logout with bearer session tokens
- Book create, read, update and soft-delete endpoints
- Scheduled cleanup of expired tokens
"""
