from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional, Type

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from bookshelf import __version__
from bookshelf.ai.gemini import GeminiError, generate_content
from bookshelf.auth import create_user, get_store, require_token, verify_user_credentials
from bookshelf.auth.security import create_access_token
from bookshelf.books.crud import create_book, delete_book, list_books, update_book
from bookshelf.config import Config, load_config
from bookshelf.db import DocumentStore, StoreError, open_store


def _debug(msg: str) -> None:
    print(f"[api] {msg}")


# -----------------------------
# Request / response bodies
# -----------------------------


class Credentials(BaseModel):
    username: str
    password: str


class BookIn(BaseModel):
    title: str
    author: str


class BookPatch(BaseModel):
    title: Optional[str] = None
    author: Optional[str] = None


class Book(BaseModel):
    id: str
    title: str
    author: str


class ChatRequest(BaseModel):
    message: str


class ChatResponse(BaseModel):
    response: str


# -----------------------------
# Errors
# -----------------------------


def _http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Render every HTTP error as {"message": ...}."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"message": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


def _validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"message": "invalid request"})


def _json_body(model: Type[BaseModel]) -> Callable[..., Any]:
    """Dependency that parses the request body into `model`.

    Declared after the route group's token gate, so the body is only read
    once the request is authenticated.
    """

    async def _parse(request: Request) -> BaseModel:
        try:
            raw = await request.json()
        except ValueError:
            raise HTTPException(status_code=400, detail="invalid request")
        try:
            return model.model_validate(raw)
        except ValidationError:
            raise HTTPException(status_code=400, detail="invalid request")

    return _parse


# -----------------------------
# Cookies
# -----------------------------


def _cookie_secure(cfg: Config) -> bool:
    """Return whether auth cookies should be marked Secure."""
    samesite = str(getattr(cfg, "AUTH_COOKIE_SAMESITE", "lax") or "lax").lower()
    # Browsers require Secure when SameSite=None
    if samesite == "none":
        return True
    return bool(getattr(cfg, "AUTH_COOKIE_SECURE", False))


def _set_auth_cookie(response: Response, *, token: str, cfg: Config) -> None:
    max_age = int(cfg.AUTH_TOKEN_EXPIRE_MINUTES) * 60
    response.set_cookie(
        key=cfg.AUTH_COOKIE_NAME,
        value=str(token),
        httponly=True,
        samesite=str(cfg.AUTH_COOKIE_SAMESITE or "lax").lower(),
        secure=_cookie_secure(cfg),
        max_age=max_age,
        expires=max_age,
        path=cfg.AUTH_COOKIE_PATH,
    )


def _clear_auth_cookie(response: Response, cfg: Config) -> None:
    # Empty value with an expiry in the past; the client drops the cookie.
    response.delete_cookie(
        key=cfg.AUTH_COOKIE_NAME,
        path=cfg.AUTH_COOKIE_PATH,
        httponly=True,
        samesite=str(cfg.AUTH_COOKIE_SAMESITE or "lax").lower(),
        secure=_cookie_secure(cfg),
    )


# -----------------------------
# App
# -----------------------------


def create_app(cfg: Config | None = None, store: DocumentStore | None = None) -> FastAPI:
    """Build the API.

    `store` is injected by tests and embedding callers; when omitted the app
    opens the store named by cfg.DB_DSN at startup and closes it on shutdown.
    """
    cfg = cfg or load_config()
    app = FastAPI(title="Bookshelf", version=__version__)
    app.state.cfg = cfg
    app.state.store = store

    app.add_exception_handler(StarletteHTTPException, _http_error_handler)
    app.add_exception_handler(RequestValidationError, _validation_error_handler)

    @app.on_event("startup")
    def _on_startup() -> None:
        if app.state.store is None:
            app.state.store = open_store(cfg.DB_DSN, cfg.DB_NAME)
            app.state.owns_store = True
        _debug(f"Ready (store={app.state.store.dialect})")

    @app.on_event("shutdown")
    def _on_shutdown() -> None:
        if getattr(app.state, "owns_store", False) and app.state.store is not None:
            app.state.store.close()
            app.state.store = None

    @app.get("/health")
    def health() -> Dict[str, Any]:
        return {"status": "ok"}

    # -----------------------------
    # Auth
    # -----------------------------

    @app.post("/register")
    def register(payload: Credentials, store: DocumentStore = Depends(get_store)) -> Dict[str, Any]:
        try:
            create_user(store, username=payload.username, password=payload.password)
        except ValueError:
            raise HTTPException(status_code=400, detail="invalid request")
        except StoreError as e:
            _debug(f"register failed username={payload.username}: {e}")
            raise HTTPException(status_code=500, detail="registration failed")
        _debug(f"Registered username={payload.username}")
        return {"message": "registered"}

    @app.post("/login")
    def login(
        payload: Credentials,
        response: Response,
        store: DocumentStore = Depends(get_store),
    ) -> Dict[str, Any]:
        try:
            user = verify_user_credentials(store, payload.username, payload.password)
        except StoreError as e:
            _debug(f"login lookup failed username={payload.username}: {e}")
            raise HTTPException(status_code=500, detail="login failed")
        if user is None:
            raise HTTPException(status_code=401, detail="invalid credentials")

        token = create_access_token(
            secret=cfg.AUTH_JWT_SECRET,
            username=str(user["username"]),
            expires_minutes=int(cfg.AUTH_TOKEN_EXPIRE_MINUTES),
        )
        _set_auth_cookie(response, token=token, cfg=cfg)
        return {"message": "logged in"}

    @app.get("/logout")
    def logout(response: Response) -> Dict[str, Any]:
        _clear_auth_cookie(response, cfg)
        return {"message": "logged out"}

    # -----------------------------
    # Books (token required)
    # -----------------------------

    books = APIRouter(prefix="/books", tags=["books"], dependencies=[Depends(require_token)])

    @books.post("")
    def books_create(
        payload: BookIn = Depends(_json_body(BookIn)),
        store: DocumentStore = Depends(get_store),
    ) -> Dict[str, Any]:
        try:
            book_id = create_book(store, title=payload.title, author=payload.author)
        except StoreError as e:
            _debug(f"create book failed: {e}")
            raise HTTPException(status_code=500, detail="error creating book")
        return {"message": "book created", "id": book_id}

    @books.get("", response_model=List[Book])
    def books_list(store: DocumentStore = Depends(get_store)) -> List[Dict[str, Any]]:
        try:
            return list_books(store)
        except StoreError as e:
            _debug(f"list books failed: {e}")
            raise HTTPException(status_code=500, detail="error fetching books")

    @books.put("/{book_id}")
    def books_update(
        book_id: str,
        payload: BookPatch = Depends(_json_body(BookPatch)),
        store: DocumentStore = Depends(get_store),
    ) -> Dict[str, Any]:
        fields = {k: v for k, v in payload.model_dump(exclude_unset=True).items() if v is not None}
        try:
            # Zero matches is still an ack: unknown ids are a no-op.
            update_book(store, book_id, fields)
        except StoreError as e:
            _debug(f"update book {book_id} failed: {e}")
            raise HTTPException(status_code=500, detail="error updating book")
        return {"message": "book updated"}

    @books.delete("/{book_id}")
    def books_delete(book_id: str, store: DocumentStore = Depends(get_store)) -> Dict[str, Any]:
        try:
            delete_book(store, book_id)
        except StoreError as e:
            _debug(f"delete book {book_id} failed: {e}")
            raise HTTPException(status_code=500, detail="error deleting book")
        return {"message": "book deleted"}

    app.include_router(books)

    # -----------------------------
    # Chat passthrough
    # -----------------------------

    @app.post("/chat", response_model=ChatResponse)
    def chat(payload: ChatRequest) -> Dict[str, Any]:
        if not payload.message.strip():
            raise HTTPException(status_code=400, detail="invalid request")
        if not cfg.GEMINI_API_KEY:
            raise HTTPException(status_code=503, detail="chat not configured")
        try:
            reply = generate_content(
                api_key=cfg.GEMINI_API_KEY,
                base_url=cfg.GEMINI_BASE_URL,
                model=cfg.GEMINI_MODEL,
                message=payload.message,
                timeout_seconds=int(cfg.GEMINI_TIMEOUT_SECONDS),
            )
        except GeminiError as e:
            _debug(f"chat upstream failed: {e.message}")
            raise HTTPException(status_code=502, detail=e.message)
        return {"response": reply}

    return app


app = create_app()
