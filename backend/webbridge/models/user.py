# webbridge/models/user.py
"""
Database model for bridge users.
Represents a chat user in the bridge's authorization domain: who they are on
the chat platform, where pushes go, and whether they may use the bridge.
"""
from tortoise import fields, models

class User(models.Model):
    """
    User database model.

    State per user:
        Registered (is_authorized=False)
        Authorized (is_authorized=True, is_admin=False)
        Admin      (is_authorized=True, is_admin=True)

    Users are never deleted; deauthorizing returns them to Registered.
    """
    id = fields.IntField(pk=True)  # Internal row id
    user_id = fields.BigIntField(unique=True, index=True)  # Platform-stable user identifier
    chat_id = fields.BigIntField(index=True)  # Destination for pushes (may differ from user_id)
    first_name = fields.CharField(max_length=256, default="")
    last_name = fields.CharField(max_length=256, default="")
    username = fields.CharField(max_length=256, null=True)  # Optional platform handle
    is_authorized = fields.BooleanField(default=False)
    is_admin = fields.BooleanField(default=False)  # Implies is_authorized
    created_at = fields.DatetimeField(auto_now_add=True)

    class Meta:
        """Tortoise ORM metadata configuration."""
        table = "users"
        ordering = ["created_at", "id"]

    def __str__(self) -> str:
        return f"User({self.user_id})"
