import json
from pathlib import Path

import pytest

from quill.config import Config


class SiteFactory:
    """Writes a throwaway site source tree under a temporary directory."""

    def __init__(self, root: Path):
        self.root = root
        self.src = root / "src"
        self.dst = root / "build"
        for name in ("pages", "templates", "static"):
            (self.src / name).mkdir(parents=True)

    def _write(self, path: Path, data) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(data, bytes):
            path.write_bytes(data)
        else:
            path.write_text(data, encoding="utf-8")
        return path

    def template(self, name: str, text: str) -> Path:
        return self._write(self.src / "templates" / f"{name}.html", text)

    def page(self, rel: str, body: str = "", **front) -> Path:
        return self._write(self.src / "pages" / rel, json.dumps(front, indent=2) + "\n" + body)

    def static(self, rel: str, data) -> Path:
        return self._write(self.src / "static" / rel, data)

    def config(self, **overrides) -> Config:
        return Config(src=self.src, dst=self.dst, **overrides)


@pytest.fixture
def site(tmp_path):
    return SiteFactory(tmp_path)
