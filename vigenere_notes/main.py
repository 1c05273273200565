import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import __version__
from .cipher import InvalidKeyError
from .config import Settings, setup_logging
from .domain import AuthError, NotFoundError, ValidationError
from .models import (
    CipherRequest,
    DecryptResponse,
    EncryptResponse,
    HistoryEntry,
    HistoryResponse,
    LoginResponse,
    MessageResponse,
    PasswordChange,
    PasswordChangeResponse,
    RegisterResponse,
    TextCreatedResponse,
    TextData,
    TextOut,
    TextsListResponse,
    UserCreds,
)
from .services import AuthService, PIM, Storage
from .utils import time_now

logger = logging.getLogger(__name__)

settings = Settings.from_env()
_pim: Optional[PIM] = None


def build_pim(db_path: str) -> PIM:
    store = Storage(db_path)
    return PIM(store, AuthService(store))


def get_pim() -> PIM:
    """Shared service instance, created on first use."""
    global _pim
    if _pim is None:
        _pim = build_pim(settings.db_path)
    return _pim


@asynccontextmanager
async def lifespan(app: FastAPI):
    pim = app.dependency_overrides.get(get_pim, get_pim)()
    counts = pim.store.counts()
    logger.info(
        "Vigenere Notes API starting: db=%s users=%d texts=%d",
        pim.store.db_path, counts["users_count"], counts["texts_count"],
    )
    yield
    logger.info("Vigenere Notes API shutting down")


app = FastAPI(
    title="Vigenere Notes API",
    description="Per-user text storage with Vigenère encryption and request history",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(AuthError)
async def auth_error_handler(request: Request, exc: AuthError):
    return JSONResponse(status_code=401, content={"detail": str(exc)})


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.exception_handler(InvalidKeyError)
async def invalid_key_handler(request: Request, exc: InvalidKeyError):
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


@app.post("/register", response_model=RegisterResponse, status_code=201)
def register(creds: UserCreds, pim: PIM = Depends(get_pim)):
    try:
        user_id, token = pim.register(creds.username, creds.password)
    except AuthError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return RegisterResponse(user_id=user_id, token=token)


@app.post("/login", response_model=LoginResponse)
def login(creds: UserCreds, pim: PIM = Depends(get_pim)):
    return LoginResponse(token=pim.login(creds.username, creds.password))


@app.post("/logout", response_model=MessageResponse)
def logout(authorization: Optional[str] = Header(None), pim: PIM = Depends(get_pim)):
    pim.logout(authorization)
    return MessageResponse(message="Logged out successfully")


@app.patch("/change_password", response_model=PasswordChangeResponse)
def change_password(
    body: PasswordChange,
    authorization: Optional[str] = Header(None),
    pim: PIM = Depends(get_pim),
):
    return PasswordChangeResponse(new_token=pim.change_password(authorization, body.new_password))


@app.get("/requests_history", response_model=HistoryResponse)
def requests_history(authorization: Optional[str] = Header(None), pim: PIM = Depends(get_pim)):
    records = pim.history(authorization)
    return HistoryResponse(history=[HistoryEntry(**r.to_dict()) for r in records])


@app.delete("/requests_history", response_model=MessageResponse)
def delete_requests_history(authorization: Optional[str] = Header(None), pim: PIM = Depends(get_pim)):
    pim.clear_history(authorization)
    return MessageResponse(message="Request history deleted")


@app.post("/text", response_model=TextCreatedResponse, status_code=201)
def add_text(body: TextData, authorization: Optional[str] = Header(None), pim: PIM = Depends(get_pim)):
    item = pim.add_text(authorization, body.content)
    return TextCreatedResponse(text_id=item.id)


@app.get("/text", response_model=TextsListResponse)
def list_texts(authorization: Optional[str] = Header(None), pim: PIM = Depends(get_pim)):
    texts = [TextOut(**t.to_dict()) for t in pim.list_texts(authorization)]
    return TextsListResponse(texts=texts, count=len(texts))


@app.get("/text/{text_id}", response_model=TextOut)
def get_text(text_id: int, authorization: Optional[str] = Header(None), pim: PIM = Depends(get_pim)):
    return TextOut(**pim.get_text(authorization, text_id).to_dict())


@app.patch("/text/{text_id}", response_model=MessageResponse)
def update_text(
    text_id: int,
    body: TextData,
    authorization: Optional[str] = Header(None),
    pim: PIM = Depends(get_pim),
):
    pim.update_text(authorization, text_id, body.content)
    return MessageResponse(message="Text updated")


@app.delete("/text/{text_id}", response_model=MessageResponse)
def delete_text(text_id: int, authorization: Optional[str] = Header(None), pim: PIM = Depends(get_pim)):
    pim.delete_text(authorization, text_id)
    return MessageResponse(message="Text deleted")


@app.post("/encrypt", response_model=EncryptResponse)
def encrypt_text(body: CipherRequest, authorization: Optional[str] = Header(None), pim: PIM = Depends(get_pim)):
    return EncryptResponse(encrypted_text=pim.encrypt_text(authorization, body.text_id, body.key))


@app.post("/decrypt", response_model=DecryptResponse)
def decrypt_text(body: CipherRequest, authorization: Optional[str] = Header(None), pim: PIM = Depends(get_pim)):
    return DecryptResponse(decrypted_text=pim.decrypt_text(authorization, body.text_id, body.key))


@app.get("/health")
def health_check(pim: PIM = Depends(get_pim)):
    return {"status": "healthy", "timestamp": time_now(), **pim.store.counts()}


def run():
    """Console entry point: serve the API with uvicorn."""
    import uvicorn

    setup_logging(settings.log_level)
    uvicorn.run(app, host=settings.host, port=settings.port, log_config=None)


if __name__ == "__main__":
    run()
