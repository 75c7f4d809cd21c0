from __future__ import annotations

import base64
import json
from contextlib import suppress
from typing import Any

from .errors import CdpError, CommandError, HttpClientError
from .polling import RetryPolicy, poll_until
from .session_cdp import CdpConnection

_ELEMENT_CENTER_JS = """(() => {
  const el = document.querySelector(%s);
  if (!el) return null;
  el.scrollIntoView({block: 'center', inline: 'center'});
  const rect = el.getBoundingClientRect();
  const style = getComputedStyle(el);
  const visible = rect.width > 0 && rect.height > 0 && style.visibility !== 'hidden' && style.display !== 'none';
  if (!visible) return null;
  return {x: rect.left + rect.width / 2, y: rect.top + rect.height / 2};
})()"""

_SELECT_CONTENTS_JS = """(() => {
  const el = document.querySelector(%s);
  if (!el) return false;
  el.focus();
  if (typeof el.select === 'function') {
    el.select();
  } else if (el.isContentEditable) {
    const range = document.createRange();
    range.selectNodeContents(el);
    const sel = window.getSelection();
    sel.removeAllRanges();
    sel.addRange(range);
  }
  return true;
})()"""

_FOCUS_END_JS = """(() => {
  const el = document.querySelector(%s);
  if (!el) return false;
  el.focus();
  if (typeof el.setSelectionRange === 'function' && typeof el.value === 'string') {
    try { el.setSelectionRange(el.value.length, el.value.length); } catch (e) {}
  }
  return true;
})()"""

DEFAULT_CLICKABLE = "button, a, [role='button']"

_CLICK_TEXT_JS = """(() => {
  const nodes = Array.from(document.querySelectorAll(%s));
  const want = %s;
  const matches = nodes.filter(n => (n.textContent || '').trim() === want);
  const el = matches[%d];
  if (!el) return {ok: false, count: matches.length};
  el.scrollIntoView({block: 'center', inline: 'center'});
  el.click();
  return {ok: true, count: matches.length};
})()"""

# React-controlled inputs only notice values set through the prototype setter.
_FILL_JS = """(() => {
  const el = document.querySelector(%s);
  const val = %s;
  if (!el) return {ok: false, error: 'element not found'};
  if (el.tagName === 'SELECT') {
    el.focus();
    el.value = val;
    el.dispatchEvent(new Event('change', {bubbles: true}));
    return {ok: true, value: el.value};
  }
  if (el.isContentEditable) {
    el.focus();
    el.textContent = val;
    el.dispatchEvent(new InputEvent('input', {bubbles: true, cancelable: true, inputType: 'insertText', data: val}));
    el.dispatchEvent(new Event('change', {bubbles: true}));
    return {ok: true, value: el.textContent};
  }
  if (el.tagName !== 'INPUT' && el.tagName !== 'TEXTAREA') {
    return {ok: false, error: 'fill only supports INPUT, TEXTAREA, SELECT, and contenteditable elements'};
  }
  el.focus();
  const proto = el.tagName === 'TEXTAREA' ? HTMLTextAreaElement.prototype : HTMLInputElement.prototype;
  Object.getOwnPropertyDescriptor(proto, 'value').set.call(el, val);
  el.dispatchEvent(new InputEvent('input', {bubbles: true, cancelable: true, inputType: 'insertText', data: val}));
  el.dispatchEvent(new Event('change', {bubbles: true}));
  return {ok: true, value: el.value};
})()"""


class BrowserSession:
    """
    High-level browser session for one tab.

    Wraps CdpConnection with the operations the commands need.
    """

    def __init__(self, connection: CdpConnection, tab_id: str, tab_url: str = ""):
        self.conn = connection
        self.tab_id = tab_id
        self.tab_url = tab_url
        self._enabled: set[str] = set()

    def __enter__(self) -> BrowserSession:
        return self

    def __exit__(self, *args):
        self.close()

    def close(self):
        self.conn.close()

    def send(self, method: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        return self.conn.send(method, params)

    def enable(self, *domains: str) -> None:
        """Enable CDP domains once per session (Page, Runtime, Log, Network...)."""
        for domain in domains:
            if domain in self._enabled:
                continue
            self.conn.send(f"{domain}.enable")
            self._enabled.add(domain)

    def bring_to_front(self) -> None:
        with suppress(HttpClientError):
            self.conn.send("Page.bringToFront")

    # ─────────────────────────────────────────────────────────────────────────
    # Navigation
    # ─────────────────────────────────────────────────────────────────────────

    def navigate(self, url: str, wait_load: bool = True, timeout: float = 10.0) -> str:
        """Navigate to URL, optionally waiting for the load event."""
        self.enable("Page")
        result = self.conn.send("Page.navigate", {"url": url})
        error_text = result.get("errorText")
        if error_text:
            raise CommandError(f"navigation to {url} failed: {error_text}")
        if wait_load and self.conn.wait_for_event("Page.loadEventFired", timeout) is None:
            raise CommandError(f"timeout waiting for page load: {url}")
        self.tab_url = url
        return url

    # ─────────────────────────────────────────────────────────────────────────
    # JavaScript
    # ─────────────────────────────────────────────────────────────────────────

    def eval_js(self, expression: str) -> Any:
        """Evaluate JavaScript and return its JSON value (None for undefined/null)."""
        result = self.conn.send(
            "Runtime.evaluate",
            {"expression": expression, "returnByValue": True, "awaitPromise": True},
        )
        details = result.get("exceptionDetails")
        if isinstance(details, dict):
            exception = details.get("exception") if isinstance(details.get("exception"), dict) else {}
            text = exception.get("description") or details.get("text") or "script error"
            raise CommandError(f"javascript exception: {text}")
        value = result.get("result")
        if not isinstance(value, dict):
            return None
        if value.get("type") == "undefined":
            return None
        if value.get("type") == "object" and value.get("subtype") == "null":
            return None
        return value.get("value")

    def get_title(self) -> str:
        return self.eval_js("document.title") or ""

    def get_html(self, outer: bool = False) -> str:
        prop = "outerHTML" if outer else "innerHTML"
        return self.eval_js(f"document.documentElement.{prop}") or ""

    def body_contains(self, text: str) -> bool:
        return bool(self.eval_js(f"document.body ? document.body.innerText.includes({json.dumps(text)}) : false"))

    def element_rect(self, selector: str) -> dict[str, float] | None:
        script = f"""(() => {{
  const el = document.querySelector({json.dumps(selector)});
  if (!el) return null;
  const r = el.getBoundingClientRect();
  return {{x: r.x, y: r.y, width: r.width, height: r.height, top: r.top, right: r.right, bottom: r.bottom, left: r.left}};
}})()"""
        return self.eval_js(script)

    def is_visible(self, selector: str) -> bool:
        script = f"""(() => {{
  const el = document.querySelector({json.dumps(selector)});
  if (!el) return false;
  const rect = el.getBoundingClientRect();
  const style = getComputedStyle(el);
  return rect.width > 0 && rect.height > 0 && style.display !== 'none' && style.visibility !== 'hidden' && parseFloat(style.opacity || '1') > 0;
}})()"""
        return bool(self.eval_js(script))

    # ─────────────────────────────────────────────────────────────────────────
    # Mouse Input
    # ─────────────────────────────────────────────────────────────────────────

    def click(self, x: float, y: float, button: str = "left", click_count: int = 1) -> None:
        """Click at viewport coordinates."""
        self._mouse_event("mouseMoved", x, y, "none", 0)
        self._mouse_event("mousePressed", x, y, button, click_count)
        self._mouse_event("mouseReleased", x, y, button, click_count)

    def click_selector(self, selector: str, timeout: float = 10.0) -> None:
        """Wait for the element to be visible, then send a real mouse click at its centre."""
        script = _ELEMENT_CENTER_JS % json.dumps(selector)
        point = poll_until(
            lambda: self.eval_js(script),
            RetryPolicy(interval=0.1, timeout=timeout),
            message=f"timeout waiting for clickable element: {selector}",
        )
        self.click(float(point["x"]), float(point["y"]))

    def click_text(self, text: str, selector: str = DEFAULT_CLICKABLE, index: int = 0) -> int:
        """Click the index-th element under selector whose trimmed text equals text.

        Returns the number of matching elements.
        """
        script = _CLICK_TEXT_JS % (json.dumps(selector), json.dumps(text), int(index))
        result = self.eval_js(script) or {}
        count = int(result.get("count") or 0)
        if not result.get("ok"):
            raise CommandError(f"no element with text {json.dumps(text)} (selector {json.dumps(selector)}), matches={count}")
        return count

    def _mouse_event(self, event_type: str, x: float, y: float, button: str, click_count: int) -> None:
        self.conn.send(
            "Input.dispatchMouseEvent",
            {"type": event_type, "x": x, "y": y, "button": button, "clickCount": click_count},
        )

    # ─────────────────────────────────────────────────────────────────────────
    # Keyboard Input
    # ─────────────────────────────────────────────────────────────────────────

    def type_text(self, text: str) -> None:
        """Insert text at the focused element."""
        if not text:
            return
        try:
            self.conn.send("Input.insertText", {"text": str(text)})
            return
        except CdpError:
            pass
        # Older builds lack Input.insertText; fall back to char events.
        for ch in text:
            self.conn.send("Input.dispatchKeyEvent", {"type": "char", "text": ch})

    def type_into(self, selector: str, text: str, append: bool = False) -> None:
        """Focus selector, replace (or append to) its text by typing."""
        script = (_FOCUS_END_JS if append else _SELECT_CONTENTS_JS) % json.dumps(selector)
        if not self.eval_js(script):
            raise CommandError(f"element not found: {selector}")
        self.type_text(text)

    def fill(self, selector: str, value: str) -> str:
        """Set a form value through the native setter and fire input/change.

        Returns the value the element reports afterwards.
        """
        result = self.eval_js(_FILL_JS % (json.dumps(selector), json.dumps(value))) or {}
        if not result.get("ok"):
            raise CommandError(f"{result.get('error') or 'fill failed'} (selector {json.dumps(selector)})")
        return str(result.get("value") or "")

    # ─────────────────────────────────────────────────────────────────────────
    # Screenshots
    # ─────────────────────────────────────────────────────────────────────────

    def screenshot(self, format: str = "png") -> bytes:
        """Capture the viewport and return the decoded image bytes."""
        self.enable("Page")
        result = self.conn.send("Page.captureScreenshot", {"format": format, "fromSurface": True})
        data = result.get("data")
        if not data:
            raise CommandError("empty screenshot data")
        return base64.b64decode(data)


__all__ = ["BrowserSession"]
