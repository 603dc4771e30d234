"""Map surface capability and its live Leaflet implementation."""

import asyncio
import http.server
import itertools
import json
import socketserver
import threading
import webbrowser
from dataclasses import dataclass, asdict
from functools import partial
from typing import Callable, Optional

from .config import CONFIG
from .models import Coordinate


@dataclass(frozen=True)
class MarkerIcon:
    color: str
    emoji: Optional[str] = None
    size: int = 35
    kind: str = "whisper"  # "whisper" or "user"


@dataclass(frozen=True)
class Popup:
    html: str
    action_label: Optional[str] = None
    action_value: Optional[int] = None  # passed to the activation handler


class MapSurface:
    """Retained-object map: markers are created and removed by handle.

    The activation handler is given at construction; it is invoked with a
    popup's `action_value` when the user triggers that popup's action.
    """

    def __init__(self, on_activate: Callable[[int], None]):
        self.on_activate = on_activate

    def open(self, anchor: Coordinate, zoom: int):
        """Create the surface, set the initial view and bind the tile layer"""
        raise NotImplementedError

    def create_marker(self, position: Coordinate, icon: MarkerIcon, interactive: bool = True):
        raise NotImplementedError

    def remove_marker(self, handle):
        raise NotImplementedError

    def set_popup(self, handle, popup: Popup):
        raise NotImplementedError

    def close(self):
        raise NotImplementedError


# Browser side of the live map. Markers arrive as deltas over the WebSocket;
# popup actions are reported back by marker handle.
LIVE_MAP_HTML = '''<!DOCTYPE html>
<html>
<head>
    <title>Whispers Near Me</title>
    <meta charset="utf-8" />
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <link rel="stylesheet" href="https://unpkg.com/leaflet@1.9.4/dist/leaflet.css" />
    <script src="https://unpkg.com/leaflet@1.9.4/dist/leaflet.js"></script>
    <style>
        * { margin: 0; padding: 0; box-sizing: border-box; }
        body { font-family: "Inter", -apple-system, BlinkMacSystemFont, "Segoe UI", Roboto, sans-serif; height: 100vh; }
        #map { height: 100%; width: 100%; background: #000; }
        .status-badge { position: absolute; top: 12px; left: 50px; z-index: 1000; background: #22c55e; color: white; padding: 4px 12px; border-radius: 12px; font-size: 12px; }
        .status-badge.disconnected { background: #ef4444; }
        .whisper-marker div { width: 100%; height: 100%; border-radius: 50%; border: 3px solid #ffffff; display: flex; align-items: center; justify-content: center; font-size: 16px; box-shadow: 0 4px 12px rgba(0,0,0,0.4); cursor: pointer; }
        .user-marker { background: #3b82f6; border: 3px solid white; border-radius: 50%; box-shadow: 0 2px 6px rgba(0,0,0,0.3); }
        .popup-action { border: none; padding: 6px 12px; border-radius: 4px; font-size: 0.8rem; cursor: pointer; width: 100%; font-weight: 500; color: #fff; }
    </style>
</head>
<body>
    <div id="map"></div>
    <span id="connection-status" class="status-badge disconnected">Disconnected</span>
    <script>
        var map = null;
        var markers = {};
        var ws = null;

        function ensureMap(view) {
            if (map) return;
            map = L.map('map').setView([view.lat, view.lon], view.zoom);
            L.tileLayer(view.tile_url, {attribution: view.attribution}).addTo(map);
            map.on('popupopen', function(e) {
                var button = e.popup.getElement().querySelector('.popup-action');
                if (!button) return;
                button.addEventListener('click', function() {
                    send({type: 'marker_activated', data: {handle: Number(button.dataset.handle)}});
                });
            });
        }

        function buildIcon(icon) {
            if (icon.kind === 'user') {
                return L.divIcon({className: 'user-marker', iconSize: [icon.size, icon.size], iconAnchor: [icon.size / 2, icon.size / 2]});
            }
            var inner = document.createElement('div');
            inner.style.background = icon.color;
            inner.textContent = icon.emoji || '';
            return L.divIcon({
                html: inner.outerHTML,
                className: 'whisper-marker',
                iconSize: [icon.size, icon.size],
                iconAnchor: [Math.floor(icon.size / 2), Math.floor(icon.size / 2)]
            });
        }

        function popupHtml(handle, popup) {
            var html = popup.html;
            if (popup.action_label) {
                var button = document.createElement('button');
                button.className = 'popup-action';
                button.dataset.handle = handle;
                button.textContent = popup.action_label;
                html += button.outerHTML;
            }
            return html;
        }

        function addMarker(m) {
            if (markers[m.handle]) return;
            var marker = L.marker([m.lat, m.lon], {icon: buildIcon(m.icon), interactive: m.interactive}).addTo(map);
            markers[m.handle] = marker;
            if (m.popup) setPopup(m.handle, m.popup);
        }

        function removeMarker(handle) {
            var marker = markers[handle];
            if (!marker) return;
            map.removeLayer(marker);
            delete markers[handle];
        }

        function setPopup(handle, popup) {
            var marker = markers[handle];
            if (!marker) return;
            marker.bindPopup(popupHtml(handle, popup), {maxWidth: 250});
        }

        function send(msg) {
            if (ws && ws.readyState === WebSocket.OPEN) ws.send(JSON.stringify(msg));
        }

        function connect() {
            ws = new WebSocket('ws://localhost:{{WS_PORT}}');
            ws.onopen = function() {
                document.getElementById('connection-status').textContent = 'Connected';
                document.getElementById('connection-status').classList.remove('disconnected');
            };
            ws.onclose = function() {
                document.getElementById('connection-status').textContent = 'Disconnected';
                document.getElementById('connection-status').classList.add('disconnected');
                setTimeout(connect, 2000);
            };
            ws.onmessage = function(event) {
                var msg = JSON.parse(event.data);
                if (msg.type === 'snapshot') {
                    ensureMap(msg.data.view);
                    Object.keys(markers).forEach(removeMarker);
                    msg.data.markers.forEach(addMarker);
                } else if (msg.type === 'marker_added') {
                    addMarker(msg.data);
                } else if (msg.type === 'marker_removed') {
                    removeMarker(msg.data.handle);
                } else if (msg.type === 'popup_set') {
                    setPopup(msg.data.handle, msg.data.popup);
                } else if (msg.type === 'closed') {
                    ws.onclose = null;
                    ws.close();
                    document.getElementById('connection-status').textContent = 'Closed';
                }
            };
        }

        connect();
    </script>
</body>
</html>'''


class LeafletMapSurface(MapSurface):
    """Live Leaflet map in the browser, driven over a WebSocket.

    The surface keeps the retained marker state itself so a browser that
    connects late receives a full snapshot. Activation messages arrive on
    the WebSocket thread and are handed back to `loop` so the handler runs
    on the application's event loop.
    """

    def __init__(self, on_activate: Callable[[int], None],
                 loop: Optional[asyncio.AbstractEventLoop] = None,
                 http_port: Optional[int] = None, ws_port: Optional[int] = None,
                 open_browser: bool = True):
        super().__init__(on_activate)
        self.loop = loop
        self.http_port = http_port if http_port is not None else CONFIG["http_port"]
        self.ws_port = ws_port if ws_port is not None else CONFIG["ws_port"]
        self.open_browser = open_browser
        self.view: Optional[dict] = None
        self.markers: dict[int, dict] = {}
        self._handles = itertools.count(1)
        self._lock = threading.Lock()
        self.http_thread = None
        self.ws_thread = None
        self.ws_loop = None
        self.connected_clients: set = set()
        self._running = False
        self.startup_timeout = 5.0
        self._http_ready = threading.Event()
        self._ws_ready = threading.Event()

    def open(self, anchor: Coordinate, zoom: int):
        """Start HTTP and WebSocket servers in background threads"""
        self.view = {
            "lat": anchor.latitude,
            "lon": anchor.longitude,
            "zoom": zoom,
            "tile_url": CONFIG["tile_url"],
            "attribution": CONFIG["tile_attribution"],
        }
        self._running = True

        self.http_thread = threading.Thread(target=self._run_http_server, daemon=True)
        self.http_thread.start()
        self.ws_thread = threading.Thread(target=self._run_ws_server, daemon=True)
        self.ws_thread.start()

        # Wait until both servers are listening (or have failed to bind)
        self._http_ready.wait(timeout=self.startup_timeout)
        self._ws_ready.wait(timeout=self.startup_timeout)

        url = f"http://localhost:{self.http_port}"
        print(f"Live map available at: {url}")
        if self.open_browser:
            webbrowser.open(url)

    def create_marker(self, position: Coordinate, icon: MarkerIcon, interactive: bool = True) -> int:
        handle = next(self._handles)
        marker = {
            "handle": handle,
            "lat": position.latitude,
            "lon": position.longitude,
            "icon": asdict(icon),
            "interactive": interactive,
            "popup": None,
        }
        with self._lock:
            self.markers[handle] = marker
        self._send_message("marker_added", marker)
        return handle

    def remove_marker(self, handle: int):
        with self._lock:
            removed = self.markers.pop(handle, None)
        if removed is not None:
            self._send_message("marker_removed", {"handle": handle})

    def set_popup(self, handle: int, popup: Popup):
        with self._lock:
            marker = self.markers.get(handle)
            if marker is None:
                return
            marker["popup"] = asdict(popup)
        self._send_message("popup_set", {"handle": handle, "popup": asdict(popup)})

    def close(self):
        self._send_message("closed", {})
        with self._lock:
            self.markers.clear()
        self._running = False

    def snapshot(self) -> dict:
        with self._lock:
            return {"view": self.view, "markers": list(self.markers.values())}

    def _activate(self, handle: int):
        """Resolve a popup action by handle and dispatch it to the handler"""
        with self._lock:
            marker = self.markers.get(handle)
            popup = marker.get("popup") if marker else None
        if not popup or popup.get("action_value") is None:
            return
        value = popup["action_value"]
        if self.loop is not None:
            self.loop.call_soon_threadsafe(self.on_activate, value)
        else:
            self.on_activate(value)

    def _run_http_server(self):
        """Run the HTTP server for serving the map page"""
        handler = partial(_LiveMapHTTPHandler, self.ws_port)
        try:
            httpd = _ReusableTCPServer(("", self.http_port), handler)
        except OSError as e:
            print(f"HTTP server error: {e}")
            return
        finally:
            self._http_ready.set()
        with httpd:
            httpd.timeout = 0.5
            while self._running:
                httpd.handle_request()

    def _run_ws_server(self):
        """Run the WebSocket server"""
        self.ws_loop = asyncio.new_event_loop()
        asyncio.set_event_loop(self.ws_loop)

        async def handler(websocket):
            self.connected_clients.add(websocket)
            try:
                await websocket.send(json.dumps({"type": "snapshot", "data": self.snapshot()}))
                async for message in websocket:
                    try:
                        data = json.loads(message)
                    except json.JSONDecodeError:
                        continue
                    if data.get("type") == "marker_activated":
                        handle = data.get("data", {}).get("handle")
                        if isinstance(handle, int):
                            self._activate(handle)
            finally:
                self.connected_clients.discard(websocket)

        async def main():
            try:
                import websockets
                async with websockets.serve(handler, "localhost", self.ws_port):
                    self._ws_ready.set()
                    while self._running:
                        await asyncio.sleep(0.1)
            except OSError as e:
                print(f"WebSocket server error: {e}")
            finally:
                self._ws_ready.set()

        self.ws_loop.run_until_complete(main())

    def _send_message(self, msg_type: str, data: dict):
        """Send a message to all connected WebSocket clients"""
        if not self.connected_clients or not self.ws_loop:
            return

        message = json.dumps({"type": msg_type, "data": data})

        async def send_to_all():
            for client in list(self.connected_clients):
                try:
                    await client.send(message)
                except Exception:
                    self.connected_clients.discard(client)

        asyncio.run_coroutine_threadsafe(send_to_all(), self.ws_loop)


class _ReusableTCPServer(socketserver.TCPServer):
    allow_reuse_address = True


class _LiveMapHTTPHandler(http.server.SimpleHTTPRequestHandler):
    """HTTP handler that serves the live map page"""

    def __init__(self, ws_port: int, *args, **kwargs):
        self.ws_port = ws_port
        super().__init__(*args, **kwargs)

    def do_GET(self):
        if self.path == '/' or self.path == '/index.html':
            self.send_response(200)
            self.send_header('Content-type', 'text/html; charset=utf-8')
            self.end_headers()
            html = LIVE_MAP_HTML.replace('{{WS_PORT}}', str(self.ws_port))
            self.wfile.write(html.encode())
        else:
            self.send_error(404)

    def log_message(self, format, *args):
        pass  # Suppress HTTP log messages
