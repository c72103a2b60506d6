import asyncio
import json
import logging
import pathlib
import typing

import pytest
import websockets.asyncio.client

import retake.viewer


def _make_sheets (directory: pathlib.Path, *names: str) -> pathlib.Path:

	directory.mkdir(exist_ok=True)

	for name in names:
		(directory / name).write_bytes(b"%PDF-1.4\n")

	return directory


@pytest.fixture
def viewer (tmp_path: pathlib.Path, monkeypatch: pytest.MonkeyPatch) -> retake.viewer.SheetViewer:

	"""A viewer over three PDFs whose servers are never started."""

	sheets = _make_sheets(tmp_path / "sheet", "b-minuet.pdf", "A-etude.PDF", "c-waltz.pdf")
	viewer = retake.viewer.SheetViewer(sheets, open_browser=False)

	async def no_servers () -> None:
		pass

	monkeypatch.setattr(viewer, "_start_servers", no_servers)

	return viewer


def _loaded (viewer: retake.viewer.SheetViewer, pages: int) -> None:

	"""Simulate the page reporting the current document's page count."""

	viewer.handle_page_message(json.dumps({"event": "loaded", "url": viewer._document_url(), "pages": pages}))


def test_discover_documents_sorted_case_insensitively (tmp_path: pathlib.Path) -> None:

	sheets = _make_sheets(tmp_path, "b.pdf", "A.PDF", "c.pdf", "notes.txt")

	names = [path.name for path in retake.viewer.discover_documents(sheets)]

	assert names == ["A.PDF", "b.pdf", "c.pdf"]


def test_discover_documents_missing_directory (tmp_path: pathlib.Path) -> None:

	assert retake.viewer.discover_documents(tmp_path / "nothing") == []


@pytest.mark.asyncio
async def test_first_command_initializes (viewer: retake.viewer.SheetViewer) -> None:

	assert not viewer.initialized

	await viewer.next_page()

	assert viewer.initialized
	assert viewer.current_document is not None
	assert viewer.current_document.name == "A-etude.PDF"
	assert viewer.page == 1


@pytest.mark.asyncio
async def test_page_turns_wait_for_page_count (viewer: retake.viewer.SheetViewer) -> None:

	await viewer.next_page()
	await viewer.next_page()

	assert viewer.page == 1


@pytest.mark.asyncio
async def test_next_page_wraps (viewer: retake.viewer.SheetViewer) -> None:

	await viewer.next_page()
	_loaded(viewer, 3)

	pages = []
	for _ in range(4):
		await viewer.next_page()
		pages.append(viewer.page)

	assert pages == [2, 3, 1, 2]


@pytest.mark.asyncio
async def test_prev_page_wraps_to_last (viewer: retake.viewer.SheetViewer) -> None:

	await viewer.prev_page()
	_loaded(viewer, 4)

	await viewer.prev_page()
	assert viewer.page == 4

	await viewer.prev_page()
	assert viewer.page == 3


@pytest.mark.asyncio
async def test_next_document_wraps_and_resets_page (viewer: retake.viewer.SheetViewer) -> None:

	await viewer.next_page()
	_loaded(viewer, 5)
	await viewer.next_page()
	assert viewer.page == 2

	names = []
	for _ in range(3):
		await viewer.next_document()
		assert viewer.current_document is not None
		names.append(viewer.current_document.name)
		assert viewer.page == 1
		assert viewer.page_count is None

	assert names == ["b-minuet.pdf", "c-waltz.pdf", "A-etude.PDF"]


@pytest.mark.asyncio
async def test_stale_page_report_ignored (viewer: retake.viewer.SheetViewer) -> None:

	await viewer.next_page()
	old_url = viewer._document_url()
	await viewer.next_document()

	viewer.handle_page_message(json.dumps({"event": "loaded", "url": old_url, "pages": 9}))

	assert viewer.page_count is None


@pytest.mark.asyncio
async def test_malformed_page_report_ignored (viewer: retake.viewer.SheetViewer) -> None:

	await viewer.next_page()

	viewer.handle_page_message("not json")
	viewer.handle_page_message(json.dumps({"event": "loaded", "url": viewer._document_url(), "pages": "many"}))
	viewer.handle_page_message(json.dumps(["loaded"]))

	assert viewer.page_count is None


@pytest.mark.asyncio
async def test_no_pdfs_makes_viewer_inert (tmp_path: pathlib.Path, caplog: pytest.LogCaptureFixture) -> None:

	viewer = retake.viewer.SheetViewer(tmp_path, open_browser=False)

	with caplog.at_level(logging.WARNING, logger="retake.viewer"):
		await viewer.next_page()
		await viewer.next_document()
		await viewer.prev_page()

	assert viewer.failed
	assert not viewer.initialized
	assert caplog.text.count("no PDF files found") == 1


@pytest.mark.asyncio
async def test_server_failure_makes_viewer_inert (tmp_path: pathlib.Path, monkeypatch: pytest.MonkeyPatch, caplog: pytest.LogCaptureFixture) -> None:

	viewer = retake.viewer.SheetViewer(_make_sheets(tmp_path / "sheet", "a.pdf"), open_browser=False)

	async def broken () -> None:
		raise OSError("address already in use")

	monkeypatch.setattr(viewer, "_start_servers", broken)

	with caplog.at_level(logging.ERROR, logger="retake.viewer"):
		await viewer.next_document()
		await viewer.next_document()

	assert viewer.failed
	assert "Failed to initialize sheet viewer" in caplog.text
	assert caplog.text.count("Failed to initialize") == 1


@pytest.mark.asyncio
async def test_page_channel_end_to_end (tmp_path: pathlib.Path) -> None:

	"""A connected page is told what to load and then which page to show."""

	sheets = _make_sheets(tmp_path / "sheet", "Song One.pdf")
	viewer = retake.viewer.SheetViewer(sheets, http_port=0, ws_port=0, open_browser=False)

	await viewer.next_page()
	assert viewer.initialized
	assert viewer._ws_server is not None

	host, port = viewer._ws_server.sockets[0].getsockname()[:2]
	if ":" in host:
		host = f"[{host}]"

	try:
		async with websockets.asyncio.client.connect(f"ws://{host}:{port}") as page:

			load: typing.Dict[str, typing.Any] = json.loads(await asyncio.wait_for(page.recv(), timeout=5.0))
			assert load == {"action": "load", "url": "/sheets/Song%20One.pdf", "page": 1}

			await page.send(json.dumps({"event": "loaded", "url": load["url"], "pages": 2}))

			for _ in range(100):
				if viewer.page_count is not None:
					break
				await asyncio.sleep(0.01)

			await viewer.next_page()

			show = json.loads(await asyncio.wait_for(page.recv(), timeout=5.0))
			assert show == {"action": "show", "page": 2}

	finally:
		await viewer.stop()

	assert not viewer.initialized


@pytest.mark.asyncio
async def test_concurrent_first_commands_start_servers_once (tmp_path: pathlib.Path, monkeypatch: pytest.MonkeyPatch) -> None:

	"""Page-turn keys pressed while the viewer starts wait for that one start-up."""

	viewer = retake.viewer.SheetViewer(_make_sheets(tmp_path / "sheet", "a.pdf", "b.pdf"), open_browser=False)
	starts: typing.List[int] = []

	async def slow_servers () -> None:
		starts.append(1)
		await asyncio.sleep(0.05)

	monkeypatch.setattr(viewer, "_start_servers", slow_servers)

	await asyncio.gather(viewer.next_document(), viewer.next_document(), viewer.next_page())

	assert len(starts) == 1
	assert viewer.initialized
	assert not viewer.failed
	# Both document switches applied after the single start-up.
	assert viewer.document_index == 0


@pytest.mark.asyncio
async def test_concurrent_first_commands_with_real_servers (tmp_path: pathlib.Path) -> None:

	viewer = retake.viewer.SheetViewer(_make_sheets(tmp_path / "sheet", "a.pdf"), http_port=0, ws_port=0, open_browser=False)

	try:
		await asyncio.gather(viewer.next_document(), viewer.next_document())

		assert viewer.initialized
		assert not viewer.failed
		assert viewer._http_server is not None

	finally:
		await viewer.stop()
