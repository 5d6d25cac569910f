# serve.py
from __future__ import annotations

import asyncio
import logging
import threading
from pathlib import Path

from livereload import Server
from tornado.ioloop import IOLoop

logger = logging.getLogger(__name__)


class LiveServer:
    """Static file server over `root` that reloads connected browsers on change."""

    def __init__(
        self,
        root: str | Path,
        *,
        host: str = "127.0.0.1",
        port: int = 3000,
        livereload_port: int = 35729,
    ):
        self.root = Path(root).resolve()
        self.host = host
        self.port = port
        self.livereload_port = livereload_port

    @property
    def url(self) -> str:
        return f"http://{self.host}:{self.port}/"

    def build(self) -> Server:
        server = Server()
        # a folder watch covers every file below it
        server.watch(str(self.root))
        return server

    def serve(self, stop_event: threading.Event) -> None:
        """Serve until stop_event is set. Runs its own event loop on this thread."""
        self.root.mkdir(parents=True, exist_ok=True)

        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        try:
            server = self.build()
            ioloop = IOLoop.current()

            def _stop_when_asked() -> None:
                stop_event.wait()
                ioloop.add_callback(ioloop.stop)

            threading.Thread(target=_stop_when_asked, name="assetflow-serve-stop", daemon=True).start()

            logger.info("serving %s at %s", self.root, self.url)
            server.serve(
                root=str(self.root),
                host=self.host,
                port=self.port,
                liveport=self.livereload_port,
                open_url_delay=None,
                restart_delay=0,
            )
        finally:
            asyncio.set_event_loop(None)
            loop.close()
