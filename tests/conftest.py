from __future__ import annotations

from pathlib import Path
from typing import Callable, List, Optional, Union

import pytest

from diaryx.models import DiaryxMetadata, DiaryxNote

SETTINGS_VARIABLES = (
    "LOG_LEVEL",
    "DIARYX_NOTES_PATH",
    "IMPORT_CONCURRENCY",
    "INCLUDE_HIDDEN",
    "REPORT_DIR",
)

RefList = Optional[Union[str, List[str]]]


@pytest.fixture()
def make_note() -> Callable[..., DiaryxNote]:
    def factory(
        note_id: str,
        *,
        source_name: Optional[str] = None,
        title: str = "",
        contents: RefList = None,
        part_of: RefList = None,
        aliases: Optional[List[str]] = None,
    ) -> DiaryxNote:
        metadata = DiaryxMetadata(
            title=title,
            contents=contents,
            part_of=part_of,
            aliases=aliases,
        )
        return DiaryxNote(id=note_id, metadata=metadata, source_name=source_name)

    return factory


@pytest.fixture()
def clean_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Path:
    for name in SETTINGS_VARIABLES:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    return tmp_path


@pytest.fixture()
def sample_folder(tmp_path: Path) -> Path:
    folder = tmp_path / "journal"
    (folder / "projects").mkdir(parents=True)
    (folder / ".trash").mkdir()

    (folder / "index.md").write_text(
        """---
title: Journal
author: Jane Doe
created: 2024-01-01T09:00:00Z
updated: 2024-01-02T09:00:00Z
visibility: private
format: "[CommonMark](https://spec.commonmark.org/0.31.2/)"
reachable: "[Journal](index.md)"
contents:
  - "[Projects](projects/index.md)"
  - "[Ideas](ideas.md)"
  - "[Missing](missing.md)"
---

# Journal
""",
        encoding="utf-8",
    )
    (folder / "ideas.md").write_text(
        """---
title: Ideas
part_of: "[Journal](index.md)"
---

Loose thoughts.
""",
        encoding="utf-8",
    )
    (folder / "projects" / "index.md").write_text(
        """---
title: Projects
part_of: "[Journal](../index.md)"
contents:
  - "[Garden](garden)"
---
""",
        encoding="utf-8",
    )
    (folder / "projects" / "garden.md").write_text(
        """---
title: Garden
part_of: "[Projects](index.md)"
---
""",
        encoding="utf-8",
    )
    (folder / "cover.png").write_bytes(b"\x89PNG\r\n")
    (folder / ".trash" / "workspace.md").write_text("hidden", encoding="utf-8")

    return folder
