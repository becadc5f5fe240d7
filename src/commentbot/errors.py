"""Exceptions raised by commentbot collaborators."""


class CommentBotError(Exception):
    """Base class for commentbot errors."""


class StorageUnavailable(CommentBotError):
    """The conversation store could not complete an operation."""


class ModelUnavailable(CommentBotError):
    """The language model call failed or returned a non-success response."""


class MessengerError(CommentBotError):
    """The chat platform rejected or failed an outbound request."""
