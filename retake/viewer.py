"""Full-screen sheet music viewer driven by page-turn commands.

The viewer is a small web page (``assets/viewer.html``, rendering PDFs with
pdf.js) served over HTTP, plus a WebSocket channel through which this driver
tells the page which document and page to show.  The page reports each
document's page count back after loading it, so page wrapping is decided
here.

Nothing starts until the first command.  Initialisation looks for ``*.pdf``
files in the sheet directory (sorted case-insensitively), starts both
servers and optionally opens the page in a browser.  If any of that fails the
viewer logs the problem and becomes inert: every later command is a silent
no-op, and the rest of the program carries on.
"""

import asyncio
import http.server
import json
import logging
import pathlib
import socketserver
import threading
import typing
import urllib.parse
import webbrowser

import websockets.asyncio.server
import websockets.exceptions


logger = logging.getLogger(__name__)

_VIEWER_PAGE = pathlib.Path(__file__).parent / "assets" / "viewer.html"
_SHEET_ROUTE = "/sheets/"


def discover_documents (sheet_dir: typing.Union[str, pathlib.Path]) -> typing.List[pathlib.Path]:

	"""PDF files directly inside *sheet_dir*, sorted case-insensitively by name."""

	directory = pathlib.Path(sheet_dir)

	if not directory.is_dir():
		return []

	pdfs = [entry for entry in directory.iterdir() if entry.is_file() and entry.suffix.lower() == ".pdf"]

	return sorted(pdfs, key=lambda path: path.name.casefold())


def _make_handler (sheet_dir: pathlib.Path) -> typing.Type[http.server.SimpleHTTPRequestHandler]:

	class Handler (http.server.SimpleHTTPRequestHandler):

		def __init__ (self, *args: typing.Any, **kwargs: typing.Any) -> None:
			super().__init__(*args, directory=str(sheet_dir), **kwargs)

		def translate_path (self, path: str) -> str:

			route = urllib.parse.urlparse(path).path

			if route in ("/", "/index.html"):
				return str(_VIEWER_PAGE)

			if route.startswith(_SHEET_ROUTE):
				return super().translate_path("/" + route[len(_SHEET_ROUTE):])

			return str(sheet_dir / "__not_found__")

		def log_message (self, format: str, *args: typing.Any) -> None:
			pass  # Keep the console clean.

	return Handler


class SheetViewer:

	"""
	Lazily started document viewer with wrap-around page and document navigation.

	Parameters:
		sheet_dir: Directory holding the PDF files.
		http_port: Port serving the viewer page and the PDFs.
		ws_port: Port of the WebSocket command channel.
		open_browser: Open the viewer page in the default browser on start.
	"""

	def __init__ (
		self,
		sheet_dir: typing.Union[str, pathlib.Path] = "sheet",
		http_port: int = 8080,
		ws_port: int = 8765,
		open_browser: bool = True
	) -> None:

		self.sheet_dir = pathlib.Path(sheet_dir).resolve()
		self.http_port = http_port
		self.ws_port = ws_port
		self.open_browser = open_browser

		self.documents: typing.List[pathlib.Path] = []
		self.document_index: int = 0
		self.page: int = 1
		self.page_count: typing.Optional[int] = None

		self.initialized: bool = False
		self.failed: bool = False

		self._clients: typing.Set[websockets.asyncio.server.ServerConnection] = set()
		self._ws_server: typing.Optional[websockets.asyncio.server.Server] = None
		self._http_server: typing.Optional[socketserver.TCPServer] = None
		self._http_thread: typing.Optional[threading.Thread] = None
		self._start_lock = asyncio.Lock()

	@property
	def current_document (self) -> typing.Optional[pathlib.Path]:

		if not self.documents:
			return None

		return self.documents[self.document_index]

	@property
	def url (self) -> str:
		return f"http://localhost:{self.http_port}/?ws={self.ws_port}"

	# ------------------------------------------------------------------
	# Commands
	# ------------------------------------------------------------------

	async def next_page (self) -> None:

		"""Show the next page, wrapping to the first page after the last."""

		if not await self._ensure_started() or not self._page_count_known():
			return

		assert self.page_count is not None
		self.page = self.page % self.page_count + 1
		self._broadcast(self._show_message())

	async def prev_page (self) -> None:

		"""Show the previous page, wrapping to the last page before the first."""

		if not await self._ensure_started() or not self._page_count_known():
			return

		assert self.page_count is not None
		self.page = self.page_count if self.page <= 1 else self.page - 1
		self._broadcast(self._show_message())

	async def next_document (self) -> None:

		"""Load the next document (wrapping after the last) at its first page."""

		if not await self._ensure_started():
			return

		self.document_index = (self.document_index + 1) % len(self.documents)
		self.page = 1
		self.page_count = None
		self._broadcast(self._load_message())

		logger.info(f"Switched to sheet file: {self.documents[self.document_index].name}")

	# ------------------------------------------------------------------
	# Lifecycle
	# ------------------------------------------------------------------

	async def _ensure_started (self) -> bool:

		if self.initialized:
			return True

		if self.failed:
			return False

		# Commands arriving while the servers start wait for the first attempt.
		async with self._start_lock:

			if self.initialized or self.failed:
				return self.initialized

			return await self._start()

	async def _start (self) -> bool:

		self.documents = discover_documents(self.sheet_dir)

		if not self.documents:
			logger.warning(f"Cannot open sheet viewer: no PDF files found in {self.sheet_dir}")
			self.failed = True
			return False

		self.document_index = 0
		self.page = 1
		self.page_count = None

		try:
			await self._start_servers()

			if self.open_browser:
				webbrowser.open(self.url)

		except Exception as e:
			logger.error(f"Failed to initialize sheet viewer: {e}")
			self.failed = True
			await self.stop()
			return False

		self.initialized = True
		logger.info(f"Sheet viewer initialized at {self.url}")

		return True

	async def _start_servers (self) -> None:

		socketserver.TCPServer.allow_reuse_address = True
		self._http_server = socketserver.TCPServer(("", self.http_port), _make_handler(self.sheet_dir))

		self._http_thread = threading.Thread(target=self._http_server.serve_forever, name="retake-viewer-http", daemon=True)
		self._http_thread.start()

		self._ws_server = await websockets.asyncio.server.serve(self._handle_client, "localhost", self.ws_port)

	async def stop (self) -> None:

		"""Shut both servers down.  Safe to call at any time."""

		if self._ws_server is not None:
			self._ws_server.close()
			await self._ws_server.wait_closed()
			self._ws_server = None

		if self._http_server is not None:
			http_server = self._http_server
			self._http_server = None
			await asyncio.to_thread(http_server.shutdown)
			http_server.server_close()

		self._http_thread = None
		self.initialized = False

	# ------------------------------------------------------------------
	# Page channel
	# ------------------------------------------------------------------

	async def _handle_client (self, websocket: websockets.asyncio.server.ServerConnection) -> None:

		self._clients.add(websocket)

		try:
			await websocket.send(json.dumps(self._load_message()))

			async for message in websocket:
				self.handle_page_message(message)

		except websockets.exceptions.ConnectionClosed:
			pass

		finally:
			self._clients.discard(websocket)

	def handle_page_message (self, raw: typing.Union[str, bytes]) -> None:

		"""Process a report from the page, e.g. ``{"event": "loaded", "url": ..., "pages": 3}``."""

		try:
			data = json.loads(raw)
		except ValueError:
			logger.warning(f"Ignoring malformed message from sheet viewer: {raw!r}")
			return

		if not isinstance(data, dict) or data.get("event") != "loaded":
			return

		# A report for a document we have since moved away from.
		if data.get("url") != self._document_url():
			return

		try:
			pages = int(data["pages"])
		except (KeyError, TypeError, ValueError):
			logger.warning(f"Sheet viewer reported no page count: {data!r}")
			return

		if pages < 1:
			return

		self.page_count = pages
		self.page = min(self.page, pages)

	def _page_count_known (self) -> bool:

		if self.page_count is None:
			logger.debug("Sheet page ignored: document has not finished loading")
			return False

		return True

	def _document_url (self) -> typing.Optional[str]:

		document = self.current_document

		if document is None:
			return None

		return _SHEET_ROUTE + urllib.parse.quote(document.name)

	def _load_message (self) -> typing.Dict[str, typing.Any]:
		return {"action": "load", "url": self._document_url(), "page": self.page}

	def _show_message (self) -> typing.Dict[str, typing.Any]:
		return {"action": "show", "page": self.page}

	def _broadcast (self, message: typing.Dict[str, typing.Any]) -> None:

		if not self._clients:
			return

		websockets.asyncio.server.broadcast(self._clients, json.dumps(message))
