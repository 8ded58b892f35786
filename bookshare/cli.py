import asyncio
import subprocess
import sys
from pathlib import Path
from typing import Iterable, Optional

import typer
from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from bookshare.book import Book
from bookshare.cli_config import CLIConfig
from bookshare.client.api_client import BookshareClient, ClientError, format_image_data
from bookshare.client.feed import SORT_OPTIONS, FeedController, FeedReconciler
from bookshare.config import settings
from bookshare.user import User

APP_NAME = "Bookshare CLI"

console = Console()
config_manager = CLIConfig()

app = typer.Typer(help=APP_NAME)


def _client() -> BookshareClient:
    return BookshareClient(base_url=config_manager.api_url, token=config_manager.token)


def _run(coro):
    """Asenkron istemci çağrısını çalıştır; API hatalarını kullanıcıya göster."""
    try:
        return asyncio.run(coro)
    except ClientError as e:
        console.print(f"[bold red]Hata:[/] {e.message}")
        raise typer.Exit(code=1)


def _require_login() -> None:
    if not config_manager.token:
        console.print("[yellow]Önce giriş yapın: bookshare login[/]")
        raise typer.Exit(code=1)


def _stars(rating: int) -> str:
    return "★" * rating + "☆" * (5 - rating)


def _print_books(books: Iterable[Book], title: str) -> None:
    books = list(books)
    if not books:
        console.print("[yellow]Henüz kitap yok.[/]")
        return
    table = Table(title=title, box=box.SIMPLE_HEAVY, show_lines=False)
    table.add_column("ID", style="dim", no_wrap=True)
    table.add_column("Başlık", style="bold")
    table.add_column("Puan", style="yellow")
    table.add_column("Paylaşan")
    table.add_column("Not")
    for b in books:
        table.add_row(b.id, b.title, _stars(b.rating), b.username or "-", b.caption)
    console.print(table)


def _print_user(user: User) -> None:
    console.print(Panel.fit(
        f"Kullanıcı adı: {user.username}\nE-posta: {user.email}\n"
        f"Profil görseli: {user.profile_image}\nKatılma: {user.created_at}",
        title="Profil",
    ))


# --- Sunucu ---
@app.command()
def serve(host: Optional[str] = typer.Option(None, help="Dinlenecek adres"),
          port: Optional[int] = typer.Option(None, help="Dinlenecek port"),
          reload: bool = typer.Option(True, help="Kod değişince yeniden yükle")):
    """API için Uvicorn sunucusunu başlatır."""
    host = host or settings.api_host
    port = int(port or settings.api_port)
    console.print(f"[green]API başlatılıyor: http://{host}:{port}/api[/]")
    args = [sys.executable, "-m", "uvicorn", "bookshare.api:app", "--host", host, "--port", str(port)]
    if reload:
        args.append("--reload")
    try:
        subprocess.run(args)
    except FileNotFoundError:
        console.print("[bold red]Hata:[/] `uvicorn` bulunamadı. Lütfen ortamınızda yüklü olduğundan emin olun.")
        raise typer.Exit(code=1)


# --- Oturum ---
@app.command()
def register(username: str = typer.Option(..., prompt=True),
             email: str = typer.Option(..., prompt=True),
             password: str = typer.Option(..., prompt=True, hide_input=True, confirmation_prompt=True)):
    """Yeni hesap oluştur ve oturum aç."""
    async def _go():
        async with _client() as client:
            return await client.register(username, email, password)

    token, user = _run(_go())
    config_manager.set_session(token, user.to_auth_dict())
    console.print(f"[green]✅ Hoş geldin, {user.username}![/]")


@app.command()
def login(email: str = typer.Option(..., prompt=True),
          password: str = typer.Option(..., prompt=True, hide_input=True)):
    """Oturum aç ve belirteci sakla."""
    async def _go():
        async with _client() as client:
            return await client.login(email, password)

    token, user = _run(_go())
    config_manager.set_session(token, user.to_auth_dict())
    console.print(f"[green]✅ Giriş yapıldı: {user.username}[/]")


@app.command()
def logout():
    """Saklanan oturumu sil."""
    config_manager.clear_session()
    console.print("[green]Çıkış yapıldı.[/]")


# --- Akış ---
@app.command()
def feed(search: str = typer.Option("", "--search", "-s", help="Başlıkta ara"),
         sort: str = typer.Option("newest", "--sort", help=f"Sıralama: {' | '.join(SORT_OPTIONS)}"),
         pages: int = typer.Option(1, "--pages", "-p", min=1, help="Yüklenecek sayfa sayısı"),
         page_size: Optional[int] = typer.Option(None, "--page-size", min=1, help="Sayfa başına kitap")):
    """Kitap önerileri akışını göster."""
    _require_login()
    if sort not in SORT_OPTIONS:
        console.print(f"[yellow]Bilinmeyen sıralama '{sort}', 'newest' kullanılıyor.[/]")
        sort = "newest"
    size = page_size or config_manager.get_preference("page_size", settings.feed_page_size)

    async def _go():
        async with _client() as client:
            controller = FeedController(FeedReconciler(client.fetch_page, page_size=size),
                                        search=search, sort_option=sort)
            result = await controller.start()
            while result is not None and result.ok and controller.state.has_more and controller.state.page < pages:
                result = await controller.load_more()
            return controller.state, result

    state, result = _run(_go())
    if result is not None and not result.ok:
        console.print(f"[bold red]Kitaplar getirilemedi:[/] {result.error}")
        raise typer.Exit(code=1)
    _print_books(state.books, f"Akış (sayfa {state.page})")
    if state.has_more:
        console.print("[dim]Daha fazlası için --pages değerini artırın.[/]")


@app.command()
def post(title: str, caption: str, rating: int = typer.Argument(..., min=1, max=5),
         image: Path = typer.Argument(..., exists=True, dir_okay=False, help="Görsel dosyası")):
    """Yeni bir kitap önerisi paylaş."""
    _require_login()
    image_data = format_image_data(str(image), image.read_bytes())
    if image_data is None:
        console.print("[bold red]Hata:[/] Görsel dosyası boş.")
        raise typer.Exit(code=1)

    async def _go():
        async with _client() as client:
            return await client.create_book(title, caption, rating, image_data["dataUrl"])

    book = _run(_go())
    console.print(f"[green]✅ Paylaşıldı: {book.title}[/]")


@app.command("my-books")
def my_books():
    """Kendi paylaştığın kitaplar."""
    _require_login()

    async def _go():
        async with _client() as client:
            return await client.fetch_user_books()

    _print_books(_run(_go()), "Kitaplarım")


@app.command()
def delete(book_id: str, yes: bool = typer.Option(False, "--yes", "-y", help="Onay sorma")):
    """Paylaştığın bir kitabı sil."""
    _require_login()
    if not yes and not typer.confirm(f"{book_id} silinsin mi?"):
        raise typer.Exit()

    async def _go():
        async with _client() as client:
            await client.delete_book(book_id)

    _run(_go())
    console.print(f"[green]Kitap silindi: {book_id}[/]")


# --- Profil ---
@app.command()
def profile():
    """Profilini göster."""
    _require_login()

    async def _go():
        async with _client() as client:
            return await client.get_profile()

    _print_user(_run(_go()))


@app.command("update-profile")
def update_profile(username: Optional[str] = typer.Option(None, help="Yeni kullanıcı adı"),
                   email: Optional[str] = typer.Option(None, help="Yeni e-posta"),
                   photo: Optional[Path] = typer.Option(None, exists=True, dir_okay=False, help="Profil fotoğrafı")):
    """Kullanıcı adı, e-posta ve/veya profil fotoğrafını güncelle."""
    _require_login()
    if not (username or email or photo):
        console.print("[yellow]Güncellenecek bir şey yok.[/]")
        raise typer.Exit()

    async def _go():
        async with _client() as client:
            current = await client.get_profile()
            return await client.update_profile(current, username=username, email=email,
                                               photo_path=str(photo) if photo else None)

    user = _run(_go())
    config_manager.set_session(config_manager.token, user.to_auth_dict())
    console.print("[green]✅ Profil güncellendi.[/]")
    _print_user(user)


@app.command("update-password")
def update_password(current: str = typer.Option(..., prompt="Mevcut parola", hide_input=True),
                    new: str = typer.Option(..., prompt="Yeni parola", hide_input=True),
                    confirm: str = typer.Option(..., prompt="Yeni parola (tekrar)", hide_input=True)):
    """Parolanı değiştir; yeni belirteç saklanır."""
    _require_login()

    async def _go():
        async with _client() as client:
            return await client.update_password(current, new, confirm)

    token, user = _run(_go())
    config_manager.set_session(token, user.to_auth_dict())
    console.print("[green]✅ Parola güncellendi.[/]")


def main():  # pragma: no cover
    app()


if __name__ == "__main__":  # pragma: no cover
    main()
