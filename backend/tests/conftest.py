import io
import os

import pytest

# Keep the mock classifier instant and never inherit a developer's live services.
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("CLASSIFIER_MOCK_DELAY_SECONDS", "0")
os.environ.setdefault("CLASSIFIER_URL", "")
os.environ.setdefault("IPINFO_TOKEN", "")

from cattlescan.core.config import get_settings  # noqa: E402
from cattlescan.utils.rate_limit import rate_limiter  # noqa: E402


@pytest.fixture(autouse=True)
def _reset_settings_cache():
    # Some tests mutate env vars and clear the settings cache. Ensure we don't leak
    # a cached Settings instance across tests.
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture(autouse=True)
def _reset_rate_limiter():
    rate_limiter.reset()
    yield
    rate_limiter.reset()


def make_image_bytes(fmt: str = "JPEG", size: tuple[int, int] = (64, 48), color=(120, 80, 40)) -> bytes:
    """Encode a solid-colour test image with Pillow."""
    from PIL import Image

    buf = io.BytesIO()
    Image.new("RGB", size, color).save(buf, format=fmt)
    return buf.getvalue()


@pytest.fixture
def jpeg_bytes() -> bytes:
    return make_image_bytes("JPEG")


@pytest.fixture
def image_factory():
    return make_image_bytes


@pytest.fixture
def db_session():
    """In-memory SQLite session with the scan schema created."""
    from sqlalchemy import create_engine
    from sqlalchemy.orm import sessionmaker
    from sqlalchemy.pool import StaticPool

    from cattlescan.models.scan import Base

    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    session = sessionmaker(bind=engine, autoflush=False)()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(engine)
        engine.dispose()
