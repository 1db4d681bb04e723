"""Playwright adapter exposing a live browser page as a ``Document``.

An injected script enumerates forms, inputs and submit-like controls, tags each
with an id scoped to the current document, and relays their events plus
structural mutations through an exposed binding. Python keeps one proxy per
live element; proxies of removed elements are dropped so nothing outside the
page keeps them alive.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Iterable, Optional

from playwright.async_api import Frame, Page

from .models import FieldDescriptor, NodeInfo, PageSnapshot
from .page import Listener

logger = logging.getLogger(__name__)

BINDING_NAME = "__loginwatchEmit"

BRIDGE_SCRIPT = """
(() => {
  if (window.__loginwatch) return;
  const doc = Math.random().toString(36).slice(2, 10);
  let nextId = 1;
  const ids = new WeakMap();
  const idOf = (el) => {
    if (!ids.has(el)) ids.set(el, doc + ':' + (nextId++));
    return ids.get(el);
  };
  const emit = (id, kind, value) => {
    try { window.__loginwatchEmit(id, kind, value); } catch (e) {}
  };
  const hooked = new WeakSet();
  const hook = (el, events) => {
    if (hooked.has(el)) return;
    hooked.add(el);
    events.forEach(name => el.addEventListener(name, () => {
      emit(idOf(el), name, typeof el.value === 'string' ? el.value : null);
    }, true));
  };
  const describe = (el) => ({
    id: idOf(el),
    controlType: (el.type || '').toLowerCase(),
    name: el.name || '',
    elementId: el.id || '',
    placeholder: el.placeholder || '',
    className: typeof el.className === 'string' ? el.className : '',
    maxLength: el.maxLength,
    autocomplete: el.autocomplete || '',
    inputMode: el.inputMode || '',
    value: el.value || '',
  });
  const enumerate = () => {
    const inputs = Array.from(document.querySelectorAll('input'));
    inputs.forEach(i => hook(i, ['input', 'change']));
    const forms = Array.from(document.querySelectorAll('form')).map(form => {
      hook(form, ['submit']);
      return { id: idOf(form), fields: Array.from(form.querySelectorAll('input')).map(idOf) };
    });
    const controls = Array.from(
      document.querySelectorAll('button, input[type="submit"], input[type="button"]')
    ).map(b => { hook(b, ['click']); return idOf(b); });
    return { location: window.location.href, forms, fields: inputs.map(describe), controls };
  };
  const snapshot = () => {
    const nodes = [];
    const all = document.querySelectorAll('body *');
    for (const el of all) {
      if (nodes.length >= 2000) break;
      const tag = el.tagName.toLowerCase();
      const cls = typeof el.className === 'string' ? el.className : '';
      const interesting = el.id || cls || ['a', 'button', 'input'].includes(tag) || el.getAttribute('role');
      if (!interesting) continue;
      nodes.push({
        tag,
        id: el.id || '',
        className: cls,
        type: (el.type || '').toString(),
        text: (el.innerText || el.textContent || '').trim().slice(0, 300),
        href: el.getAttribute('href') || '',
        role: el.getAttribute('role') || '',
        invalid: el.getAttribute('aria-invalid') === 'true',
      });
    }
    return { location: window.location.href, nodes };
  };
  window.__loginwatch = { enumerate, snapshot };
  const observe = () => {
    new MutationObserver(mutations => {
      if (mutations.some(m => m.addedNodes.length > 0)) emit(null, 'mutation', null);
    }).observe(document.documentElement, { childList: true, subtree: true });
    emit(null, 'ready', null);
  };
  if (document.readyState === 'loading') {
    document.addEventListener('DOMContentLoaded', observe);
  } else {
    observe();
  }
})();
"""


class _ElementProxy:
    def __init__(self, element_id: str):
        self.element_id = element_id
        self._listeners: dict[str, list[Listener]] = {}

    def add_listener(self, event: str, callback: Listener) -> None:
        self._listeners.setdefault(event, []).append(callback)

    def dispatch(self, event: str) -> None:
        for callback in list(self._listeners.get(event, [])):
            try:
                callback()
            except Exception as exc:
                logger.debug("Listener for %s failed: %s", event, exc)


class _FieldProxy(_ElementProxy):
    def __init__(self, element_id: str, attrs: dict):
        super().__init__(element_id)
        self._descriptor = FieldDescriptor.from_attributes(attrs)
        self.value = str(attrs.get("value") or "")

    def descriptor(self) -> FieldDescriptor:
        return self._descriptor


class _FormProxy(_ElementProxy):
    def __init__(self, element_id: str):
        super().__init__(element_id)
        self._fields: list[_FieldProxy] = []

    def fields(self) -> list[_FieldProxy]:
        return list(self._fields)


class PlaywrightDocument:
    """``Document`` implementation over a Playwright page's main frame."""

    def __init__(self, page: Page):
        self.page = page
        self._location = page.url
        self._fields: dict[str, _FieldProxy] = {}
        self._forms: dict[str, _FormProxy] = {}
        self._controls: dict[str, _ElementProxy] = {}
        self._structure_listeners: list[Listener] = []
        self._refresh_lock = asyncio.Lock()
        self._tasks: set[asyncio.Task] = set()

    async def install(self) -> None:
        """Expose the event binding and inject the bridge into current and future documents."""
        await self.page.expose_binding(BINDING_NAME, self._on_emit)
        await self.page.add_init_script(BRIDGE_SCRIPT)
        self.page.on("framenavigated", self._on_navigated)
        await self.page.evaluate(BRIDGE_SCRIPT)
        await self.refresh()

    @property
    def location(self) -> str:
        return self._location

    def forms(self) -> Iterable[_FormProxy]:
        return list(self._forms.values())

    def fields(self) -> Iterable[_FieldProxy]:
        return list(self._fields.values())

    def submit_controls(self) -> Iterable[_ElementProxy]:
        return list(self._controls.values())

    def on_structure_change(self, callback: Listener) -> None:
        self._structure_listeners.append(callback)

    async def snapshot(self) -> PageSnapshot:
        data = await self.page.evaluate("() => window.__loginwatch ? window.__loginwatch.snapshot() : null")
        if not data:
            return PageSnapshot(location=self.page.url)
        self._location = data.get("location") or self.page.url
        return PageSnapshot(
            location=self._location,
            nodes=[NodeInfo.from_dict(node) for node in data.get("nodes") or []],
        )

    async def refresh(self) -> None:
        """Re-enumerate the page and rebuild the proxy maps."""
        async with self._refresh_lock:
            try:
                data = await self.page.evaluate(
                    "() => window.__loginwatch ? window.__loginwatch.enumerate() : null"
                )
            except Exception as exc:
                logger.debug("Page enumeration failed: %s", exc)
                return
            if not data:
                return
            self._apply(data)

        for callback in list(self._structure_listeners):
            try:
                callback()
            except Exception:
                logger.exception("Structure change handler failed")

    def _apply(self, data: dict) -> None:
        self._location = data.get("location") or self._location

        fields: dict[str, _FieldProxy] = {}
        for attrs in data.get("fields") or []:
            element_id = attrs.get("id")
            if not element_id:
                continue
            fields[element_id] = self._fields.get(element_id) or _FieldProxy(element_id, attrs)

        forms: dict[str, _FormProxy] = {}
        for entry in data.get("forms") or []:
            form = self._forms.get(entry["id"]) or _FormProxy(entry["id"])
            form._fields = [fields[fid] for fid in entry.get("fields") or [] if fid in fields]
            forms[entry["id"]] = form

        controls = {cid: self._controls.get(cid) or _ElementProxy(cid) for cid in data.get("controls") or []}

        # Replacing the maps drops proxies of elements that left the page
        self._fields, self._forms, self._controls = fields, forms, controls

    def _lookup(self, element_id: str) -> Optional[_ElementProxy]:
        return self._fields.get(element_id) or self._forms.get(element_id) or self._controls.get(element_id)

    def _on_emit(self, source: Any, element_id: Optional[str], kind: str, value: Optional[str]) -> None:
        if kind in ("mutation", "ready"):
            self._schedule_refresh()
            return
        proxy = self._lookup(element_id or "")
        if proxy is None:
            return
        if isinstance(proxy, _FieldProxy) and value is not None:
            proxy.value = value
        proxy.dispatch(kind)

    def _on_navigated(self, frame: Frame) -> None:
        if frame != self.page.main_frame:
            return
        self._location = frame.url
        self._fields, self._forms, self._controls = {}, {}, {}

    def _schedule_refresh(self) -> None:
        task = asyncio.get_running_loop().create_task(self.refresh())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def close(self) -> None:
        for task in list(self._tasks):
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
