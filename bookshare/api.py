import logging
from contextlib import asynccontextmanager
from functools import cached_property
from typing import Any, Optional

import jwt
from fastapi import APIRouter, Depends, FastAPI, File, Form, Query, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel, Field
from starlette.exceptions import HTTPException as StarletteHTTPException

from bookshare import database
from bookshare.auth import AuthService, TokenService
from bookshare.config import Settings, settings
from bookshare.database import get_db_connection, initialize_database
from bookshare.errors import AppError, AuthenticationError, ValidationError
from bookshare.library import Library
from bookshare.profile import ImagePayload, ProfilePatchBuilder
from bookshare.services.images import is_image_type, prepare_profile_photo
from bookshare.services.media_host import CloudinaryMediaHost, MediaHost
from bookshare.user import User
from bookshare.users import UserStore

logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)


class Services:
    """Uygulamanın işbirlikçileri; ilk kullanımda oluşturulur."""

    def __init__(self, config: Settings, db_file: Optional[str] = None,
                 media_host: Optional[MediaHost] = None) -> None:
        self.config = config
        self.db_file = db_file or database.DATABASE_FILE
        self._media_host = media_host

    @cached_property
    def media_host(self) -> MediaHost:
        return self._media_host or CloudinaryMediaHost(self.config)

    @cached_property
    def users(self) -> UserStore:
        return UserStore(db_file=self.db_file, config=self.config)

    @cached_property
    def library(self) -> Library:
        return Library(media_host=self.media_host, db_file=self.db_file, config=self.config)

    @cached_property
    def auth(self) -> AuthService:
        return AuthService(self.users, TokenService(self.config), self.config)

    @cached_property
    def profiles(self) -> ProfilePatchBuilder:
        return ProfilePatchBuilder(self.users, self.media_host)


# --- Modeller ---
class RegisterModel(BaseModel):
    username: str | None = None
    email: str | None = None
    password: str | None = None


class LoginModel(BaseModel):
    email: str | None = None
    password: str | None = None


class BookCreateModel(BaseModel):
    title: str | None = None
    caption: str | None = None
    rating: Any = Field(default=None, description="1-5 arası tam sayı; dize olarak da gelebilir")
    image: str | None = Field(default=None, description="Data URL veya uzak URL")


class UpdatePasswordModel(BaseModel):
    passwordCurrent: str | None = None
    password: str | None = None
    passwordConfirm: str | None = None


def success(data: Any = None, status_code: int = 200, **extra: Any) -> JSONResponse:
    body = {"status": "success", **extra}
    if data is not None:
        body["data"] = data
    return JSONResponse(status_code=status_code, content=body)


def error(message: str, status_code: int) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"status": "error", "message": message})


# --- Bağımlılıklar ---
bearer_scheme = HTTPBearer(auto_error=False)


def get_services(request: Request) -> Services:
    return request.app.state.services


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    services: Services = Depends(get_services),
) -> User:
    """Taşıyıcı belirteci oturumdaki kullanıcıya çözümle."""
    if credentials is None or not credentials.credentials:
        raise AuthenticationError("You are not logged in! Please log in to get access.")
    return services.auth.resolve_user(credentials.credentials)


# --- Kimlik doğrulama ---
auth_router = APIRouter(prefix="/api/auth", tags=["auth"])


@auth_router.post("/register")
def register(payload: RegisterModel, services: Services = Depends(get_services)):
    token, user = services.auth.register(payload.username, payload.email, payload.password)
    return success(status_code=201, token=token, user=user.to_auth_dict())


@auth_router.post("/login")
def login(payload: LoginModel, services: Services = Depends(get_services)):
    token, user = services.auth.login(payload.email, payload.password)
    return success(token=token, user=user.to_auth_dict())


# --- Kitaplar ---
book_router = APIRouter(prefix="/api/books", tags=["books"])


@book_router.post("")
def create_book(payload: BookCreateModel, user: User = Depends(get_current_user),
                services: Services = Depends(get_services)):
    """Yeni bir kitap önerisi paylaş."""
    book = services.library.add_book(user, payload.title, payload.caption, payload.rating, payload.image)
    return success(book.to_dict(), status_code=201)


@book_router.get("")
def get_all_books(
    page: int = Query(1, ge=1, description="Sayfa numarası"),
    limit: Optional[int] = Query(None, ge=1, description="Sayfa başına öğe"),
    title: Optional[str] = Query(None, description="Başlıkta arama"),
    sort: Optional[str] = Query(None, description="-createdAt | createdAt | -rating | rating"),
    user: User = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    """Akışın sayfalandırılmış, filtrelenmiş ve sıralanmış listesini al."""
    feed_page = services.library.list_books(page=page, limit=limit, title=title, sort=sort)
    return success(feed_page.to_dict(), results=len(feed_page.books))


@book_router.get("/user")
def get_user_books(user: User = Depends(get_current_user), services: Services = Depends(get_services)):
    books = services.library.list_user_books(user.id)
    return success([b.to_dict() for b in books], results=len(books))


@book_router.delete("/{book_id}")
def delete_book(book_id: str, user: User = Depends(get_current_user),
                services: Services = Depends(get_services)):
    services.library.remove_book(book_id, user.id)
    return success(message="Book deleted successfully")


# --- Kullanıcılar ---
user_router = APIRouter(prefix="/api/users", tags=["users"])


@user_router.get("/profile")
def get_user_profile(user: User = Depends(get_current_user)):
    return success(user.to_dict())


@user_router.patch("/update-me")
def update_me(
    username: Optional[str] = Form(None),
    email: Optional[str] = Form(None),
    password: Optional[str] = Form(None),
    passwordConfirm: Optional[str] = Form(None),
    photo: Optional[UploadFile] = File(None),
    user: User = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    """Kullanıcı adı, e-posta ve/veya profil fotoğrafını güncelle."""
    config = services.config
    requested = {"username": username, "email": email,
                 "password": password, "password_confirm": passwordConfirm}

    # Parola alanları fotoğraf işlenmeden önce reddedilir
    if password or passwordConfirm:
        raise ValidationError("This route is not for password updates. Please use /updateMyPassword.")

    if photo is not None and photo.filename:
        if not is_image_type(photo.content_type):
            raise ValidationError("Not an image! Please upload an image.")
        raw = photo.file.read()
        if len(raw) > config.max_upload_size:
            raise ValidationError("Image is too large.")
        data, media_type = prepare_profile_photo(raw, config.profile_image_size, config.profile_image_quality)
        requested["image"] = ImagePayload(data=data, media_type=media_type)

    updated = services.profiles.build_and_apply_patch(user.id, requested, user)
    return success({"user": updated.to_dict()})


@user_router.patch("/updateMyPassword")
def update_my_password(payload: UpdatePasswordModel, user: User = Depends(get_current_user),
                       services: Services = Depends(get_services)):
    token, updated = services.auth.update_password(
        user.id, payload.passwordCurrent, payload.password, payload.passwordConfirm)
    return success(token=token, user=updated.to_auth_dict())


# --- Hata işleyicileri ---
def _register_error_handlers(app: FastAPI, config: Settings) -> None:
    @app.exception_handler(AppError)
    async def handle_app_error(request: Request, exc: AppError):
        if exc.status_code >= 500:
            logger.error("%s %s -> %s", request.method, request.url.path, exc.message)
        return error(exc.message, exc.status_code)

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError):
        messages = [e.get("msg", "Invalid input") for e in exc.errors()]
        return error(f"Invalid input data. {'. '.join(messages)}", 400)

    @app.exception_handler(jwt.ExpiredSignatureError)
    async def handle_expired_token(request: Request, exc: jwt.ExpiredSignatureError):
        return error("Your token has expired! Please log in again.", 401)

    @app.exception_handler(jwt.InvalidTokenError)
    async def handle_invalid_token(request: Request, exc: jwt.InvalidTokenError):
        return error("Invalid token. Please log in again!", 401)

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exception(request: Request, exc: StarletteHTTPException):
        return error(str(exc.detail), exc.status_code)

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception):
        logger.exception("Beklenmeyen hata: %s %s", request.method, request.url.path)
        message = "Something went very wrong!"
        if config.debug:
            message = f"{message} ({exc})"
        return error(message, 500)


def create_app(config: Optional[Settings] = None, db_file: Optional[str] = None,
               media_host: Optional[MediaHost] = None) -> FastAPI:
    config = config or settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Veritabanı şeması ilk istekten önce hazır olsun
        initialize_database(app.state.services.db_file)
        logger.info("%s başlatıldı (%s)", config.app_name, config.environment)
        yield
        logger.info("%s kapatılıyor", config.app_name)

    app = FastAPI(title=config.app_name, version=config.app_version, lifespan=lifespan)
    app.state.services = Services(config, db_file=db_file, media_host=media_host)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health")
    def health():
        """Hafif sağlık uç noktası: hızlı bir veritabanı bağlantı denemesi yapar."""
        services: Services = app.state.services
        db_ok = True
        try:
            conn = get_db_connection(services.db_file)
            try:
                conn.execute("SELECT 1")
            finally:
                conn.close()
        except Exception:
            logger.warning("Sağlık kontrolü: veritabanına ulaşılamadı", exc_info=True)
            db_ok = False
        return {"status": "ok" if db_ok else "degraded", "database": db_ok, "version": config.app_version,
                "environment": config.environment}

    @app.get("/")
    def read_root():
        return {"message": f"{config.app_name} API"}

    app.include_router(auth_router)
    app.include_router(book_router)
    app.include_router(user_router)
    _register_error_handlers(app, config)
    return app


app = create_app()
