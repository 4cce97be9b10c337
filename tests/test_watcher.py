"""File-save trigger tests."""

import asyncio

import pytest
from watchdog.events import (
    DirModifiedEvent,
    FileCreatedEvent,
    FileDeletedEvent,
    FileModifiedEvent,
    FileMovedEvent,
)

from restart_hub.events.watcher import DEFAULT_EXTENSIONS, SaveDebouncer, SaveWatcher, is_save_candidate


@pytest.mark.parametrize(
    "path",
    ["/proj/src/main.lua", "/proj/src/App.TSX", "/proj/default.project.json", "/proj/init.luau"],
)
def test_source_files_are_candidates(path: str) -> None:
    assert is_save_candidate(path, DEFAULT_EXTENSIONS)


@pytest.mark.parametrize(
    "path",
    [
        "/proj/README.md",
        "/proj/src/main.lua.swp",
        "/proj/src/.#main.lua",
        "/proj/.git/config.json",
        "/proj/node_modules/pkg/index.js",
    ],
)
def test_other_files_are_ignored(path: str) -> None:
    assert not is_save_candidate(path, DEFAULT_EXTENSIONS)


@pytest.mark.asyncio
async def test_burst_of_writes_emits_one_save() -> None:
    """Repeated writes to one file inside the window fire once."""
    saved: list[str] = []

    async def on_save(path: str) -> None:
        saved.append(path)

    handler = SaveDebouncer(asyncio.get_running_loop(), on_save, debounce_ms=20)
    handler.on_any_event(FileModifiedEvent("/proj/src/main.lua"))
    handler.on_any_event(FileModifiedEvent("/proj/src/main.lua"))
    handler.on_any_event(FileMovedEvent("/proj/src/.main.lua.tmp", "/proj/src/main.lua"))

    for _ in range(200):
        if saved:
            break
        await asyncio.sleep(0.01)
    await asyncio.sleep(0.05)

    assert saved == ["/proj/src/main.lua"]
    assert handler.coalesced_events == 2


@pytest.mark.asyncio
async def test_ignored_events_do_not_schedule() -> None:
    """Creates, deletes, directories and unwatched files never fire."""
    saved: list[str] = []

    async def on_save(path: str) -> None:
        saved.append(path)

    handler = SaveDebouncer(asyncio.get_running_loop(), on_save, debounce_ms=10)
    handler.on_any_event(FileDeletedEvent("/proj/src/main.lua"))
    handler.on_any_event(FileCreatedEvent("/proj/build/out.json"))
    handler.on_any_event(DirModifiedEvent("/proj/src"))
    handler.on_any_event(FileModifiedEvent("/proj/notes.txt"))
    await asyncio.sleep(0.1)

    assert saved == []
    handler.cancel_all()


@pytest.mark.asyncio
async def test_watcher_rejects_missing_directory(tmp_path) -> None:
    async def on_save(path: str) -> None:
        return None

    watcher = SaveWatcher(
        paths=[str(tmp_path / "missing")],
        loop=asyncio.get_running_loop(),
        on_save=on_save,
    )
    with pytest.raises(ValueError, match="does not exist"):
        watcher.start()
