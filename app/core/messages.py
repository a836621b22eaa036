"""User-facing error messages and response text."""

# Authentication messages
AUTH_INVALID_CREDENTIALS = "Invalid credentials"
AUTH_COULD_NOT_VALIDATE = "Could not validate credentials"
AUTH_TOKEN_PAYLOAD_INVALID = "Invalid token payload"
AUTH_REFRESH_TOKEN_INVALID = "Invalid or expired refresh token"
AUTH_REFRESH_TOKEN_REVOKED = "Refresh token has been rotated or revoked"
AUTH_USER_ID_INVALID = "Invalid user ID format"
AUTH_USER_NOT_FOUND_OR_INACTIVE = "User not found or inactive"
AUTH_USER_INACTIVE = "User is inactive"
AUTH_TOO_MANY_ATTEMPTS = "Too many login attempts. Try again in 15 minutes."

# Registration messages
REG_USER_EXISTS = "User already exists"

# User messages
USER_NOT_FOUND = "User not found"

# Chat messages
CHAT_NOT_FOUND = "Chat not found"
CHAT_ACCESS_DENIED = "You are not a member of this chat"
CHAT_SELF_NOT_ALLOWED = "Cannot create a chat with yourself"
CHAT_CREATOR_NOT_MEMBER = "You can only create chats you take part in"
CHAT_DELETED = "Chat deleted"

# Message messages
MESSAGE_NOT_FOUND = "Message not found"
MESSAGE_DELETE_FORBIDDEN = "Only the sender can delete this message"
MESSAGE_DELETED = "Message deleted"

# WebSocket close reasons
WS_USER_ID_REQUIRED = "Missing user_id"
WS_TOKEN_REQUIRED = "Missing token"
WS_TOKEN_INVALID = "Invalid token"
WS_TOKEN_USER_MISMATCH = "Token does not belong to user_id"
