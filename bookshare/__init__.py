"""Bookshare - Core Application Package

This package contains the core application modules including:
- API endpoints (api.py)
- Book recommendation storage (library.py)
- User store and authentication (users.py, auth.py)
- Profile update logic (profile.py)
- CLI interface (cli.py)
- Data models (book.py, user.py)
- Database layer (database.py)
"""

__version__ = "1.0.0"
