import os
import tempfile

# до импорта catalog.config: все пути приложения уходят во временную папку
_ROOT = tempfile.mkdtemp(prefix="catalog-tests-")
os.environ.setdefault("DB_PATH", os.path.join(_ROOT, "default.db"))
os.environ.setdefault("UPLOADS_DIR", os.path.join(_ROOT, "uploads"))
os.environ.setdefault("EXPORT_DIR", os.path.join(_ROOT, "exports"))
os.environ["SHEETS_AUTO_SYNC_THREAD"] = "0"
os.environ["ADMIN_PASSCODE"] = "admin123"
os.environ["USER_PASSWORD"] = ""
