import os
import sqlite3
from typing import Optional

from dotenv import load_dotenv

from bookshare.config import settings

# .env'nin, DATABASE_FILE okunmadan önce yüklendiğinden emin olun.
load_dotenv()

# Varsayılan veritabanı dosyası. Library / UserStore örnekleri kendi dosyalarını alabilir.
DATABASE_FILE = os.environ.get("BOOKSHARE_DB_FILE") or settings.database_file


def get_db_connection(db_file: Optional[str] = None) -> sqlite3.Connection:
    """SQLite veritabanına bir bağlantı kurar."""
    conn = sqlite3.connect(db_file or DATABASE_FILE)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON;")
    return conn


def create_tables(db_file: Optional[str] = None) -> None:
    """Veritabanında mevcut değilse gerekli tabloları oluşturur."""
    conn = get_db_connection(db_file)
    try:
        cursor = conn.cursor()
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS users (
                id TEXT PRIMARY KEY,
                username TEXT UNIQUE NOT NULL,
                email TEXT UNIQUE NOT NULL,
                password TEXT NOT NULL,
                profile_image TEXT DEFAULT '',
                created_at TEXT NOT NULL
            )
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS books (
                id TEXT PRIMARY KEY,
                title TEXT NOT NULL,
                caption TEXT NOT NULL,
                rating INTEGER NOT NULL CHECK(rating >= 1 AND rating <= 5),
                image TEXT NOT NULL,
                user_id TEXT NOT NULL,
                created_at TEXT NOT NULL,
                FOREIGN KEY (user_id) REFERENCES users(id) ON DELETE CASCADE
            )
        """)

        # Akış sorguları için dizinler
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_books_created_at ON books(created_at)")
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_books_rating ON books(rating)")
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_books_user_id ON books(user_id)")
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_books_title ON books(title)")
        conn.commit()
    finally:
        conn.close()


def initialize_database(db_file: Optional[str] = None) -> None:
    """Veritabanını başlatır, gerekirse tabloları oluşturur."""
    create_tables(db_file)
