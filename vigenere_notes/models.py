from typing import List

from pydantic import BaseModel


class UserCreds(BaseModel):
    username: str
    password: str


class PasswordChange(BaseModel):
    new_password: str


class TextData(BaseModel):
    content: str


class CipherRequest(BaseModel):
    text_id: int
    key: str


class MessageResponse(BaseModel):
    message: str


class RegisterResponse(BaseModel):
    message: str = "User registered successfully"
    user_id: int
    token: str


class LoginResponse(BaseModel):
    message: str = "Login successful"
    token: str


class PasswordChangeResponse(BaseModel):
    message: str = "Password changed successfully"
    new_token: str


class TextCreatedResponse(BaseModel):
    message: str = "Text added"
    text_id: int


class TextOut(BaseModel):
    id: int
    content: str


class TextsListResponse(BaseModel):
    texts: List[TextOut]
    count: int


class HistoryEntry(BaseModel):
    id: int
    endpoint: str
    timestamp: str


class HistoryResponse(BaseModel):
    history: List[HistoryEntry]


class EncryptResponse(BaseModel):
    encrypted_text: str


class DecryptResponse(BaseModel):
    decrypted_text: str
