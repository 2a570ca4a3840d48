import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request, Security
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.security import APIKeyHeader
from pydantic import BaseModel, Field
from starlette.exceptions import HTTPException as StarletteHTTPException

from config import settings
from database import db_session
from errors import INTERNAL_DETAIL, ErrorKind, LendingError
from library import Library
from utils.validators import validate_book_input, validate_member_input

logger = logging.getLogger(__name__)

# Bit-exact status mapping shared with every client of this API
STATUS_BY_KIND = {
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.CONFLICT: 409,
    ErrorKind.INVALID_STATE: 400,
    ErrorKind.VALIDATION_FAILED: 400,
    ErrorKind.UNAUTHORIZED: 401,
    ErrorKind.INTERNAL: 500,
}


# --- Models ---
class BookRequest(BaseModel):
    title: Optional[str] = Field(default=None, description="Book title")
    author: Optional[str] = Field(default=None, description="Book author")
    isbn: Optional[str] = Field(default=None, description="Unique ISBN")


class MemberRequest(BaseModel):
    name: Optional[str] = Field(default=None, description="Member name")
    email: Optional[str] = Field(default=None, description="Unique email address")


class BookModel(BaseModel):
    id: int
    title: str
    author: str
    isbn: str
    borrowed: bool


class MemberModel(BaseModel):
    id: int
    name: str
    email: str


class LoanModel(BaseModel):
    id: int
    book_id: int
    member_id: int
    borrowed_at: str
    returned_at: Optional[str] = None


class ApiResponse(BaseModel):
    success: bool = True
    message: str
    data: Any = None


# --- Helpers ---
def _ok(message: str, data: Any = None, status_code: int = 200) -> JSONResponse:
    body = ApiResponse(message=message, data=data)
    return JSONResponse(status_code=status_code, content=body.model_dump())


def _error_body(title: str, detail: str, kind: str, fields: Optional[Dict[str, str]] = None) -> dict:
    body = {"success": False, "message": title, "error": detail, "kind": kind}
    if fields:
        body["fields"] = fields
    return body


def get_library(request: Request) -> Library:
    return request.app.state.library


# --- Security ---
api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)


def get_api_key(api_key: Optional[str] = Security(api_key_header)) -> str:
    """Dependency to validate the API key."""
    if not api_key:
        raise LendingError.unauthorized("Missing X-API-Key header")
    if api_key != settings.api_key:
        raise HTTPException(status_code=403, detail="Could not validate credentials")
    return api_key


# --- Routes ---
router = APIRouter(prefix="/api", dependencies=[Depends(get_api_key)])


@router.post("/books", status_code=201)
def create_book(payload: BookRequest, library: Library = Depends(get_library)):
    title, author, isbn = validate_book_input(payload.title, payload.author, payload.isbn)
    book = library.create_book(title, author, isbn)
    return _ok("Book created successfully", BookModel(**book.to_dict()).model_dump(), 201)


@router.get("/books")
def list_books(library: Library = Depends(get_library)):
    books: List[dict] = [BookModel(**b.to_dict()).model_dump() for b in library.list_books()]
    return _ok("Books retrieved successfully", books)


@router.get("/books/{book_id}")
def get_book(book_id: int, library: Library = Depends(get_library)):
    book = library.get_book(book_id)
    return _ok("Book retrieved successfully", BookModel(**book.to_dict()).model_dump())


@router.put("/books/{book_id}")
def update_book(book_id: int, payload: BookRequest, library: Library = Depends(get_library)):
    title, author, isbn = validate_book_input(payload.title, payload.author, payload.isbn)
    book = library.update_book(book_id, title, author, isbn)
    return _ok("Book updated successfully", BookModel(**book.to_dict()).model_dump())


@router.delete("/books/{book_id}")
def delete_book(book_id: int, library: Library = Depends(get_library)):
    library.delete_book(book_id)
    return _ok("Book deleted successfully")


@router.post("/members", status_code=201)
def register_member(payload: MemberRequest, library: Library = Depends(get_library)):
    name, email = validate_member_input(payload.name, payload.email)
    member = library.register_member(name, email)
    return _ok("Member registered successfully", MemberModel(**member.to_dict()).model_dump(), 201)


@router.get("/members")
def list_members(library: Library = Depends(get_library)):
    members = [MemberModel(**m.to_dict()).model_dump() for m in library.list_members()]
    return _ok("Members retrieved successfully", members)


@router.get("/members/{member_id}")
def get_member(member_id: int, library: Library = Depends(get_library)):
    member = library.get_member(member_id)
    return _ok("Member retrieved successfully", MemberModel(**member.to_dict()).model_dump())


@router.put("/members/{member_id}")
def update_member(member_id: int, payload: MemberRequest, library: Library = Depends(get_library)):
    name, email = validate_member_input(payload.name, payload.email)
    member = library.update_member(member_id, name, email)
    return _ok("Member updated successfully", MemberModel(**member.to_dict()).model_dump())


@router.get("/members/{member_id}/loans")
def list_member_loans(member_id: int, library: Library = Depends(get_library)):
    loans = [LoanModel(**l.to_dict()).model_dump() for l in library.member_loans(member_id)]
    return _ok("Loans retrieved successfully", loans)


@router.post("/borrow/{book_id}/member/{member_id}")
def borrow_book(book_id: int, member_id: int, library: Library = Depends(get_library)):
    book = library.borrow(book_id, member_id)
    return _ok("Book borrowed successfully", BookModel(**book.to_dict()).model_dump())


@router.post("/return/{book_id}")
def return_book(book_id: int, library: Library = Depends(get_library)):
    book = library.return_book(book_id)
    return _ok("Book returned successfully", BookModel(**book.to_dict()).model_dump())


# --- Error handlers ---
async def lending_error_handler(request: Request, exc: LendingError) -> JSONResponse:
    status_code = STATUS_BY_KIND[exc.kind]
    if exc.kind is ErrorKind.INTERNAL:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.detail)
    else:
        logger.warning("%s %s rejected: %s", request.method, request.url.path, exc.detail)
    return JSONResponse(
        status_code=status_code,
        content=_error_body(exc.title, exc.detail, exc.kind.value, exc.fields),
    )


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    fields: Dict[str, str] = {}
    for error in exc.errors():
        loc = [str(part) for part in error.get("loc", ()) if part not in ("body", "path", "query")]
        fields[".".join(loc) or "body"] = error.get("msg", "invalid value")
    failure = LendingError.validation_failed(fields)
    return await lending_error_handler(request, failure)


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    kind = ErrorKind.UNAUTHORIZED.value if exc.status_code in (401, 403) else "http_error"
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body("Access denied" if exc.status_code == 403 else "Request failed",
                            str(exc.detail), kind),
        headers=getattr(exc, "headers", None),
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unexpected error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content=_error_body("Internal server error", INTERNAL_DETAIL, ErrorKind.INTERNAL.value),
    )


# --- Application ---
def create_app(library: Optional[Library] = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Build the default SQLite-backed library lazily so importing stays cheap
        if getattr(app.state, "library", None) is None:
            app.state.library = Library()
        yield

    app = FastAPI(title=settings.app_name, version=settings.app_version, lifespan=lifespan)
    app.state.library = library

    # --- CORS ---
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def add_security_headers(request: Request, call_next):
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        return response

    app.add_exception_handler(LendingError, lending_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    @app.get("/health")
    def health(request: Request):
        """Lightweight health check: pings the database when one is configured."""
        lib: Optional[Library] = request.app.state.library
        db_ok = True
        if lib is not None and lib.db_file:
            try:
                with db_session(lib.db_file) as conn:
                    conn.execute("SELECT 1")
            except LendingError:
                db_ok = False
        return {
            "status": "healthy" if db_ok else "degraded",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "db": db_ok,
            "version": settings.app_version,
        }

    app.include_router(router)
    return app


app = create_app()
