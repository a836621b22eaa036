"""Domain errors raised by the chat managers."""


class ChatError(Exception):
    """Base class for chat domain errors."""


class UserNotFoundError(ChatError):
    pass


class ChatNotFoundError(ChatError):
    pass


class MessageNotFoundError(ChatError):
    pass


class NotChatMemberError(ChatError):
    """Raised when a user acts on a chat they do not belong to."""


class SelfChatError(ChatError):
    pass


class MessageDeleteForbiddenError(ChatError):
    pass
