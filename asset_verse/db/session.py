import os

from .engine import build_engine, build_sessionmaker


def _require_env(name: str) -> str:
    value = os.environ.get(name)
    if not value:
        raise RuntimeError(f"Missing required environment variable: {name}")
    return value


ASSET_VERSE_DB_URL = _require_env("ASSET_VERSE_DB_URL")

engine_asset = build_engine(ASSET_VERSE_DB_URL)

SessionLocalAsset = build_sessionmaker(engine_asset)
