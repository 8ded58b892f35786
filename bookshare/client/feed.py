"""Kitap akışının istemci tarafı uzlaştırması.

``reduce_page`` saf bir indirgeyicidir: önceki durum + gelen sayfa -> yeni durum.
``FeedReconciler`` bunu bir getirme yeteneğiyle birleştirir; ``FeedController``
ise ne zaman yükleneceğine karar verir (yenileme, sonsuz kaydırma, gecikmeli
arama, sıralama değişikliği) ve aynı anda yalnızca tek bir yüklemeye izin verir.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Iterable, Optional, Tuple

from bookshare.book import Book, FeedPage
from bookshare.config import settings

logger = logging.getLogger(__name__)

DEFAULT_SORT = "-createdAt"

# Arayüzdeki sıralama seçenekleri -> sunucunun sort parametresi
SORT_OPTIONS = {
    "newest": "-createdAt",
    "oldest": "createdAt",
    "rating-desc": "-rating",
    "rating-asc": "rating",
}

FetchPage = Callable[[int, int, Optional[str], Optional[str]], Awaitable[FeedPage]]


@dataclass(frozen=True)
class FeedState:
    books: Tuple[Book, ...] = ()
    page: int = 0
    has_more: bool = True
    search: str = ""
    sort: str = DEFAULT_SORT

    @property
    def is_empty(self) -> bool:
        return not self.books

    @property
    def ids(self) -> Tuple[str, ...]:
        return tuple(b.id for b in self.books)


@dataclass(frozen=True)
class FeedResult:
    """Etiketli sonuç: ok=False ise state yüklemeden önceki durumun aynısıdır."""
    ok: bool
    state: FeedState
    error: Optional[str] = None


def merge_books(existing: Iterable[Book], incoming: Iterable[Book]) -> Tuple[Book, ...]:
    """Kimliğe göre birleştir.

    Mevcut öğeler yerini korur ama çakışmada gelen kopya kazanır; ilk kez
    görülen kimlikler geliş sırasıyla sona eklenir.
    """
    merged = list(existing)
    position = {b.id: i for i, b in enumerate(merged)}
    for book in incoming:
        i = position.get(book.id)
        if i is None:
            position[book.id] = len(merged)
            merged.append(book)
        else:
            merged[i] = book
    return tuple(merged)


def reduce_page(state: FeedState, page: FeedPage, *, is_refresh: bool,
                search: str = "", sort: str = DEFAULT_SORT) -> FeedState:
    if is_refresh or state.is_empty:
        books = merge_books((), page.books)
    else:
        books = merge_books(state.books, page.books)
    return FeedState(
        books=books,
        page=page.page,
        has_more=page.page < page.total_pages,
        search=search,
        sort=sort,
    )


class FeedReconciler:
    """Getirilen sayfaları FeedState'e katar. Yeniden deneme yapmaz."""

    def __init__(self, fetch_page: FetchPage, page_size: int = 2,
                 state: Optional[FeedState] = None) -> None:
        self.fetch_page = fetch_page
        self.page_size = page_size
        self.state = state or FeedState()

    async def load_page(self, page_number: int, is_refresh: bool = False,
                        search_term: str = "", sort_key: str = DEFAULT_SORT) -> FeedResult:
        try:
            page = await self.fetch_page(page_number, self.page_size, search_term or None, sort_key)
        except Exception as exc:
            # Durum değişmeden kalır; hata çağırana etiketli sonuç olarak döner
            logger.warning("Kitaplar getirilemedi (sayfa %s): %s", page_number, exc)
            return FeedResult(ok=False, state=self.state, error=str(exc) or "Failed to fetch books")

        self.state = reduce_page(self.state, page, is_refresh=is_refresh,
                                 search=search_term, sort=sort_key)
        return FeedResult(ok=True, state=self.state)


class Debouncer:
    """Tek yuvalı zamanlayıcı: her çağrı bekleyeni iptal edip yeniden başlatır."""

    def __init__(self, delay: float = 0.5) -> None:
        self.delay = delay
        self._task: Optional[asyncio.Task] = None
        self._waiting = False

    def schedule(self, fn: Callable[[], Awaitable]) -> asyncio.Task:
        self.cancel()
        self._waiting = True
        self._task = asyncio.get_running_loop().create_task(self._fire(fn))
        return self._task

    async def _fire(self, fn: Callable[[], Awaitable]):
        await asyncio.sleep(self.delay)
        # Ateşlendikten sonra yeni bir tuş vuruşu yüklemeyi iptal etmez
        self._waiting = False
        logger.debug("Gecikmeli arama tetiklendi")
        return await fn()

    @property
    def pending(self) -> bool:
        return self._waiting

    def cancel(self) -> None:
        if self._task is not None and self._waiting:
            self._task.cancel()
        self._waiting = False

    async def wait(self):
        """Son zamanlanan çağrıyı bekle (iptal edildiyse None)."""
        task = self._task
        if task is None:
            return None
        try:
            return await task
        except asyncio.CancelledError:
            return None


@dataclass
class FeedController:
    """Yükleme tetikleme politikası ve tekli uçuş disiplini."""
    reconciler: FeedReconciler
    debounce_seconds: float = settings.search_debounce_seconds
    search: str = ""
    sort_option: str = "newest"
    _lock: asyncio.Lock = field(default_factory=asyncio.Lock, init=False, repr=False)
    _refresh_requests: int = field(default=0, init=False, repr=False)
    _debouncer: Debouncer = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._debouncer = Debouncer(self.debounce_seconds)

    @property
    def state(self) -> FeedState:
        return self.reconciler.state

    @property
    def sort_key(self) -> str:
        return SORT_OPTIONS.get(self.sort_option, DEFAULT_SORT)

    @property
    def loading(self) -> bool:
        return self._lock.locked()

    @property
    def search_pending(self) -> bool:
        return self._debouncer.pending

    async def _reset(self) -> FeedResult:
        """Sayfa 1'i yükle ve durumu değiştir. Uçuştaki yüklemenin bitmesini bekler."""
        self._refresh_requests += 1
        try:
            async with self._lock:
                return await self.reconciler.load_page(1, True, self.search, self.sort_key)
        finally:
            self._refresh_requests -= 1

    async def start(self) -> FeedResult:
        return await self._reset()

    async def refresh(self) -> FeedResult:
        return await self._reset()

    async def load_more(self) -> Optional[FeedResult]:
        """Sonraki sayfa. Başka bir yükleme sürüyorsa, yenileme ya da gecikmeli arama
        bekliyorsa atlanır (None).

        Sayfa, listedeki sonuçları üreten sorguyla istenir (state.search / state.sort).
        """
        if (not self.state.has_more or self._lock.locked() or self._refresh_requests
                or self._debouncer.pending):
            return None
        async with self._lock:
            state = self.state
            return await self.reconciler.load_page(state.page + 1, False, state.search, state.sort)

    async def set_sort(self, option: str) -> Optional[FeedResult]:
        """Sıralama değişikliği hemen tetiklenir."""
        if option == self.sort_option:
            return None
        self.sort_option = option
        return await self._reset()

    def set_search(self, text: str) -> asyncio.Task:
        """Arama değişikliği sessiz süre dolunca tetiklenir."""
        self.search = text
        return self._debouncer.schedule(self._reset)

    async def wait_for_search(self) -> Optional[FeedResult]:
        return await self._debouncer.wait()
