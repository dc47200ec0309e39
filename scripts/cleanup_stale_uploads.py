from __future__ import annotations

from app.core.config import get_settings
from app.services.storage_service import remove_stale_uploads


def main() -> None:
    settings = get_settings()
    removed = remove_stale_uploads(
        settings.upload_dir,
        older_than_seconds=settings.upload_ttl_minutes * 60,
    )
    print(f"Stale uploads removed: {removed}")


if __name__ == "__main__":
    main()
