# webbridge/models/__init__.py
"""
Database models module initialization.
Exports all database models for convenient imports throughout the application.

Models exported:
- User: Chat user with authorization and admin flags
"""
from .user import User
