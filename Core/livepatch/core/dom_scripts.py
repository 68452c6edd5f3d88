from __future__ import annotations

import json
import re
import uuid

from livepatch.config.schema import SrcChange, TextChange

APPLY_PREVIEW_SCRIPT = r"""
(() => {
  const store = (window.__livepatch_snapshots__ = window.__livepatch_snapshots__ || {});
  const node = document.evaluate(%(xpath)s, document, null, XPathResult.FIRST_ORDERED_NODE_TYPE, null).singleNodeValue;
  if (!node) {
    return false;
  }
  const styles = %(styles)s;
  const snapshot = { styles: {}, text: null, src: null };
  for (const prop of Object.keys(styles)) {
    snapshot.styles[prop] = node.style.getPropertyValue(prop);
    node.style.setProperty(prop, styles[prop]);
  }
  const text = %(text)s;
  if (text !== null) {
    snapshot.text = node.textContent;
    node.textContent = text;
  }
  const src = %(src)s;
  if (src !== null) {
    snapshot.src = node.getAttribute("src");
    node.setAttribute("src", src);
  }
  store[%(key)s] = snapshot;
  return true;
})();
"""

UNDO_PREVIEW_SCRIPT = r"""
(() => {
  const store = window.__livepatch_snapshots__ || {};
  const snapshot = store[%(key)s];
  const node = document.evaluate(%(xpath)s, document, null, XPathResult.FIRST_ORDERED_NODE_TYPE, null).singleNodeValue;
  if (!snapshot || !node) {
    return false;
  }
  for (const prop of Object.keys(snapshot.styles)) {
    if (snapshot.styles[prop]) {
      node.style.setProperty(prop, snapshot.styles[prop]);
    } else {
      node.style.removeProperty(prop);
    }
  }
  if (snapshot.text !== null) {
    node.textContent = snapshot.text;
  }
  if (snapshot.src !== null) {
    node.setAttribute("src", snapshot.src);
  }
  delete store[%(key)s];
  return true;
})();
"""


def _kebab_case(prop: str) -> str:
    if prop.startswith("--"):
        return prop
    return re.sub(r"([A-Z])", r"-\1", prop).lower()


def build_preview_scripts(
    xpath: str,
    css_changes: dict[str, str] | None = None,
    text_change: TextChange | None = None,
    src_change: SrcChange | None = None,
) -> tuple[str, str]:
    """Returns (apply_code, undo_code) for a reversible live DOM mutation."""

    key = json.dumps(uuid.uuid4().hex)
    values = {
        "key": key,
        "xpath": json.dumps(xpath),
        "styles": json.dumps({_kebab_case(prop): value for prop, value in (css_changes or {}).items()}),
        "text": json.dumps(text_change.new_text if text_change else None),
        "src": json.dumps(src_change.new_src if src_change else None),
    }
    return APPLY_PREVIEW_SCRIPT % values, UNDO_PREVIEW_SCRIPT % values
