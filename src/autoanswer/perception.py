"""Live page bridge: snapshot a Playwright page into a Document and replay edits."""

from __future__ import annotations

import base64
import logging
from typing import Any, Dict, List, Optional

from playwright.async_api import Error as PlaywrightError, Page

from .dom import NODE_ATTR, Document

logger = logging.getLogger(__name__)


_SNAPSHOT_SCRIPT = r"""
(nodeAttr) => {
  const elements = Array.from(document.querySelectorAll('*'));
  const nodes = {};
  // Stamps from an earlier capture survive, so new keys skip them.
  const used = new Set();
  elements.forEach((el) => {
    const existing = el.getAttribute(nodeAttr);
    if (existing) used.add(existing);
  });
  let counter = 0;
  elements.forEach((el) => {
    let key = el.getAttribute(nodeAttr);
    if (!key) {
      while (used.has(`n${counter}`)) counter += 1;
      key = `n${counter}`;
      used.add(key);
      el.setAttribute(nodeAttr, key);
    }
    const style = window.getComputedStyle(el);
    const rect = el.getBoundingClientRect();
    const entry = {
      display: style ? style.display : 'inline',
      visibility: style ? style.visibility : 'visible',
      opacity: style ? parseFloat(style.opacity || '1') : 1,
      rect: { x: rect.x, y: rect.y, width: rect.width, height: rect.height },
    };
    const tag = el.tagName.toLowerCase();
    if (tag === 'input' || tag === 'textarea') {
      entry.value = el.value;
      if (tag === 'input') entry.checked = !!el.checked;
    }
    nodes[key] = entry;
  });

  const active = document.activeElement;
  const focused = active && active !== document.body ? active.getAttribute(nodeAttr) : null;

  let selection = null;
  const sel = window.getSelection();
  if (sel && sel.rangeCount > 0 && !sel.isCollapsed) {
    let container = sel.getRangeAt(0).commonAncestorContainer;
    if (container && container.nodeType === Node.TEXT_NODE) container = container.parentElement;
    if (container && container instanceof Element) selection = container.getAttribute(nodeAttr);
  }

  return {
    html: document.documentElement.outerHTML,
    nodes,
    focused,
    selection,
    viewportHeight: window.innerHeight,
    url: window.location.href,
  };
}
"""


_REPLAY_SCRIPT = r"""
({ nodeAttr, operations }) => {
  let applied = 0;
  for (const op of operations) {
    const el = document.querySelector(`[${nodeAttr}="${op.node}"]`);
    if (!el) continue;
    switch (op.op) {
      case 'set_attr':
        el.setAttribute(op.name, op.value);
        break;
      case 'remove_attr':
        el.removeAttribute(op.name);
        break;
      case 'value':
        el.value = op.value;
        break;
      case 'text':
        el.textContent = op.value;
        break;
      case 'checked':
        el.checked = !!op.value;
        break;
      case 'dispatch':
        el.dispatchEvent(new Event(op.name, { bubbles: true }));
        break;
      case 'click':
        el.click();
        break;
      case 'submit':
        if (typeof el.requestSubmit === 'function') el.requestSubmit();
        else if (typeof el.submit === 'function') el.submit();
        break;
      default:
        continue;
    }
    applied += 1;
  }
  return applied;
}
"""


async def capture_document(page: Page) -> Document:
    """Snapshot the page; Playwright errors propagate to the caller."""
    payload: Dict[str, Any] = await page.evaluate(_SNAPSHOT_SCRIPT, NODE_ATTR)
    logger.debug("Captured %d nodes from %s", len(payload.get("nodes") or {}), payload.get("url"))
    return Document.from_snapshot(payload)


async def apply_operations(page: Page, document: Document) -> int:
    operations: List[Dict[str, Any]] = [
        operation.to_payload() for operation in document.drain_operations() if operation.node is not None
    ]
    if not operations:
        return 0
    applied = await page.evaluate(_REPLAY_SCRIPT, {"nodeAttr": NODE_ATTR, "operations": operations})
    logger.info("Replayed %s of %d operations", applied, len(operations))
    return int(applied or 0)


async def capture_screenshot(page: Page) -> Optional[str]:
    try:
        image = await page.screenshot(type="png")
    except PlaywrightError as exc:
        logger.warning("Screenshot capture failed: %s", exc)
        return None
    return base64.b64encode(image).decode("ascii")
