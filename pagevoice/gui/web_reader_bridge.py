"""Bridge between the read-aloud engine and a live QtWebEngine reader page.

The page is never walked from Python directly.  ``SNAPSHOT_SCRIPT`` runs in
the page, annotates every element with its layout rectangle and returns the
top document plus each same-origin reader iframe as a snapshot payload (see
``pagevoice.core.snapshot``).  Navigation actions go back to the page as
``runJavaScript`` calls.  Pages can also push fresh snapshots through the
``pagevoiceBridge`` QWebChannel object whenever the reader relocates.
"""

from __future__ import annotations

import json
from typing import Any, Callable, Dict, Optional, Union

from qtpy import QtCore

from pagevoice.core.errors import extract_error_message
from pagevoice.core.snapshot import Payload, SnapshotControl, SnapshotDocument, SnapshotFrame
from pagevoice.utils.logger import logger

BRIDGE_OBJECT_NAME = "pagevoiceBridge"

SNAPSHOT_FUNCTION = r"""
() => {
  const annotate = (doc) => {
    const win = doc.defaultView || window;
    for (const el of doc.querySelectorAll("body, body *")) {
      const r = el.getBoundingClientRect();
      el.setAttribute("data-pv-rect", [r.left, r.top, r.width, r.height].join(","));
    }
    return win;
  };
  const frames = {};
  const hooks = [];
  try {
    if (window.thorium && window.thorium.reader &&
        typeof window.thorium.reader.nextPage === "function") {
      hooks.push("thorium.reader.nextPage");
    }
    if (window.readium && window.readium.navigator &&
        typeof window.readium.navigator.next === "function") {
      hooks.push("readium.navigator.next");
    }
  } catch (e) {}
  document.querySelectorAll("iframe").forEach((frame, index) => {
    const key = frame.id || ("frame-" + index);
    frame.setAttribute("data-pv-frame", key);
    const cs = window.getComputedStyle(frame);
    frame.setAttribute("data-pv-style",
      "display:" + cs.display + ";visibility:" + cs.visibility + ";opacity:" + cs.opacity);
    try {
      const doc = frame.contentDocument;
      if (!doc || !doc.body) {
        frames[key] = {accessible: false};
        return;
      }
      const win = annotate(doc);
      frames[key] = {
        html: doc.body.outerHTML,
        viewport: {width: win.innerWidth, height: win.innerHeight},
        accessible: true
      };
    } catch (e) {
      frames[key] = {accessible: false};
    }
  });
  annotate(document);
  return JSON.stringify({
    url: String(window.location.href),
    viewport: {width: window.innerWidth, height: window.innerHeight},
    selection: String(window.getSelection ? window.getSelection() : ""),
    html: document.body ? document.body.outerHTML : "",
    frames: frames,
    hooks: hooks,
    keyboard_target: "document"
  });
}
""".strip()

SNAPSHOT_SCRIPT = "(%s)()" % SNAPSHOT_FUNCTION

# Pushes a snapshot through ``pagevoiceBridge`` whenever the reader relocates.
PUSH_SCRIPT = r"""
(() => {
  if (window.__pagevoicePush || window.top !== window) return;
  window.__pagevoicePush = true;
  const take = %s;
  let bridge = null;
  let timer = null;
  const push = () => {
    if (!bridge) return;
    clearTimeout(timer);
    timer = setTimeout(() => {
      try { bridge.onSnapshot(take()); } catch (e) {}
    }, 150);
  };
  const connect = () => {
    if (bridge || !(window.qt && window.qt.webChannelTransport) ||
        typeof QWebChannel === "undefined") return;
    try {
      new QWebChannel(window.qt.webChannelTransport, (channel) => {
        bridge = channel.objects.%s || null;
        push();
      });
    } catch (e) {
      bridge = null;
    }
  };
  window.addEventListener("hashchange", push);
  window.addEventListener("popstate", push);
  // Iframe loads do not bubble; capture them on the way down.
  document.addEventListener("load", push, true);
  const observe = () => {
    try {
      new MutationObserver(push).observe(document.documentElement, {
        childList: true, subtree: true, attributes: true, attributeFilter: ["src"]
      });
    } catch (e) {}
  };
  if (document.readyState === "loading") {
    document.addEventListener("DOMContentLoaded", () => { connect(); observe(); });
  } else {
    connect();
    observe();
  }
})()
""" % (SNAPSHOT_FUNCTION, BRIDGE_OBJECT_NAME)


def _js_string(value: str) -> str:
    return json.dumps(str(value))


def parse_snapshot(result: Union[str, Dict[str, Any], None]) -> Optional[Payload]:
    """Decode what ``runJavaScript`` or the web channel handed back."""
    if isinstance(result, dict):
        return dict(result)
    if not isinstance(result, str) or not result.strip():
        return None
    try:
        payload = json.loads(result)
    except json.JSONDecodeError as exc:
        logger.warning("Discarding malformed reader snapshot: %s", exc)
        return None
    return payload if isinstance(payload, dict) else None


class WebEngineDocument(SnapshotDocument):
    """A ``SnapshotDocument`` kept current from a QWebEnginePage.

    ``page`` is anything with ``runJavaScript(script, callback)``; the
    QtWebEngine page object in production.  Every navigation action is
    followed by a snapshot request, and ``sync`` (called while the navigator
    waits for a page turn) requests another one unless a request is still
    outstanding.
    """

    def __init__(self, page: Any, payload: Optional[Payload] = None) -> None:
        super().__init__([payload or {"html": ""}])
        self.page = page
        self.snapshots_received = 0
        self._refresh_pending = False

    def refresh(self, callback: Optional[Callable[[bool], None]] = None) -> None:
        def _done(result: Any) -> None:
            self._refresh_pending = False
            updated = self.apply_snapshot(result)
            if callback is not None:
                callback(updated)

        self._refresh_pending = True
        try:
            self.page.runJavaScript(SNAPSHOT_SCRIPT, _done)
        except Exception as exc:
            self._refresh_pending = False
            logger.warning("Reader snapshot request failed: %s", extract_error_message(exc))

    def sync(self) -> None:
        if not self._refresh_pending:
            self.refresh()

    def apply_snapshot(self, result: Union[str, Dict[str, Any], None]) -> bool:
        payload = parse_snapshot(result)
        if payload is None:
            return False
        self.load_payload(payload)
        self.snapshots_received += 1
        return True

    def _run(self, script: str) -> None:
        try:
            self.page.runJavaScript(script)
        except Exception as exc:
            logger.warning("Reader script failed: %s", extract_error_message(exc))
            return
        self.refresh()

    # Live pages move on their own; the snapshots requested after each
    # action show where they went.
    def click_control(self, control: SnapshotControl) -> None:
        self.record("click", control.selector)
        self._run(
            f"(() => {{ const el = document.querySelector({_js_string(control.selector)});"
            " if (el) { el.click(); } })()"
        )

    def dispatch_key(self, key: str, target: Any = None) -> None:
        where = "reader" if target is not None else "document"
        self.record("key", key, where)
        init = f"{{key: {_js_string(key)}, bubbles: true}}"
        frame = target.owner_frame() if target is not None else None
        if isinstance(frame, SnapshotFrame):
            selector = _js_string('iframe[data-pv-frame="%s"]' % frame.key)
            self._run(
                f"(() => {{ const f = document.querySelector({selector});"
                " if (f && f.contentDocument) {"
                f" f.contentDocument.dispatchEvent(new KeyboardEvent('keydown', {init}));"
                " } })()"
            )
        else:
            self._run(f"document.dispatchEvent(new KeyboardEvent('keydown', {init}))")

    def invoke_hook(self, path: str) -> bool:
        self.record("hook", path)
        self._run(f"(() => {{ {path}(); }})()")
        return True

    def post_frame_message(self, frame: SnapshotFrame, message: Dict[str, Any]) -> None:
        self.record("post_message", frame.key, json.dumps(message, sort_keys=True))
        selector = f'iframe[data-pv-frame="{frame.key}"]'
        self._run(
            f"(() => {{ const f = document.querySelector({_js_string(selector)});"
            f" if (f && f.contentWindow) {{ f.contentWindow.postMessage({json.dumps(message)}, '*'); }} }})()"
        )


class ReaderSnapshotBridge(QtCore.QObject):
    snapshotReceived = QtCore.Signal()

    def __init__(self, document: WebEngineDocument, parent: Optional[QtCore.QObject] = None) -> None:
        super().__init__(parent)
        self._document = document

    @QtCore.Slot("QVariant")
    def onSnapshot(self, payload: object) -> None:  # noqa: N802 - Qt slot name
        if self._document.apply_snapshot(payload):
            self.snapshotReceived.emit()

    @QtCore.Slot("QVariant")
    def logEvent(self, payload: object) -> None:  # noqa: N802 - Qt slot name
        if isinstance(payload, dict):
            message = str(payload.get("message") or payload)
        else:
            message = str(payload)
        logger.info("Reader page: %s", message)


def _web_engine_script_class() -> Any:
    try:
        from qtpy import QtWebEngineCore

        return QtWebEngineCore.QWebEngineScript
    except (ImportError, AttributeError):
        from qtpy import QtWebEngineWidgets

        return QtWebEngineWidgets.QWebEngineScript


def _read_qwebchannel_js() -> str:
    handle = QtCore.QFile(":/qtwebchannel/qwebchannel.js")
    if not handle.open(QtCore.QIODevice.ReadOnly):
        return ""
    try:
        return bytes(handle.readAll()).decode("utf-8")
    finally:
        handle.close()


def install_push_script(page: Any) -> bool:
    """Inject ``PUSH_SCRIPT`` (with the QWebChannel client) into ``page``."""
    try:
        source = _read_qwebchannel_js() + "\n" + PUSH_SCRIPT
        script_cls = _web_engine_script_class()
        script = script_cls()
        script.setName("pagevoice_push")
        script.setSourceCode(source)
        script.setInjectionPoint(script_cls.DocumentReady)
        script.setWorldId(script_cls.MainWorld)
        script.setRunsOnSubFrames(False)
        page.scripts().insert(script)
        # Cover the document that is already loaded.
        page.runJavaScript(source)
    except Exception as exc:
        logger.info("Reader push script not installed: %s", exc)
        return False
    return True


def install_bridge(web_view: Any, document: WebEngineDocument) -> Optional[ReaderSnapshotBridge]:
    """Register a ``ReaderSnapshotBridge`` on ``web_view``'s page, if possible.

    Also installs the page-side push script and requests a first snapshot.
    """
    try:
        from qtpy import QtWebChannel
    except Exception as exc:
        logger.info("QtWebChannel unavailable: %s", exc)
        return None
    page = web_view.page()
    channel = QtWebChannel.QWebChannel(page)
    bridge = ReaderSnapshotBridge(document, web_view)
    channel.registerObject(BRIDGE_OBJECT_NAME, bridge)
    page.setWebChannel(channel)
    install_push_script(page)
    document.refresh()
    return bridge


__all__ = [
    "BRIDGE_OBJECT_NAME",
    "PUSH_SCRIPT",
    "SNAPSHOT_SCRIPT",
    "ReaderSnapshotBridge",
    "WebEngineDocument",
    "install_bridge",
    "install_push_script",
    "parse_snapshot",
]
