from typing import Dict, Optional, Union


class User:
    """A registered account. `token` is the single currently valid bearer token."""

    def __init__(self, id: int, username: str, password_hash: str, token: Optional[str], created_time: str):
        self.id = id
        self.username = username
        self.password_hash = password_hash
        self.token = token
        self.created_time = created_time


class TextItem:
    """Represents a single stored text owned by a user."""

    def __init__(self, id: int, user_id: int, content: str, created_time: str, updated_time: str):
        self.id = id
        self.user_id = user_id
        self.content = content
        self.created_time = created_time
        self.updated_time = updated_time

    def to_dict(self) -> Dict[str, Union[int, str]]:
        """Public representation; owner and timestamps stay internal."""
        return {"id": self.id, "content": self.content}


class RequestRecord:
    """One entry of a user's request history, e.g. endpoint="POST /encrypt"."""

    def __init__(self, id: int, user_id: int, endpoint: str, timestamp: str):
        self.id = id
        self.user_id = user_id
        self.endpoint = endpoint
        self.timestamp = timestamp

    def to_dict(self) -> Dict[str, Union[int, str]]:
        return {"id": self.id, "endpoint": self.endpoint, "timestamp": self.timestamp}


class NotesError(Exception):
    """Base class for errors the API turns into client responses."""
    pass


class AuthError(NotesError):
    """Custom exception for authentication errors."""
    pass


class ValidationError(NotesError):
    """Request data is missing or malformed."""
    pass


class NotFoundError(NotesError):
    """The requested text does not exist or belongs to another user."""
    pass
