# annotator/scripts.py
import json

from .dom import CHROME_ATTR, CLICK_CAPTURE_CLASS
from .models import KEY_COMPUTED_STYLES

BRIDGE_NAME = "__agentationBridge"

OVERLAY_JS = r"""
(() => {
  if (window.__agentation) return;

  const CHROME_ATTR = "%CHROME_ATTR%";
  const CAPTURE_CLASS = "%CAPTURE_CLASS%";
  const STYLE_PROPS = %STYLE_PROPS%;
  const MAX_STRING = 65536, MAX_ITEMS = 20, MAX_KEYS = 50, MAX_DEPTH = 5;
  const MAX_CHILDREN = 50, MAX_TEXT = 1000, SUMMARY_TEXT = 40;

  // Stable keys for elements and component instances across snapshots
  const byKey = new Map();
  const keyOf = (() => {
    const keys = new WeakMap();
    let next = 1;
    return (obj) => {
      if (!keys.has(obj)) {
        keys.set(obj, next);
        byKey.set(next++, new WeakRef(obj));
      }
      return keys.get(obj);
    };
  })();
  const find = (key) => {
    const ref = byKey.get(key);
    const obj = ref ? ref.deref() : undefined;
    if (obj === undefined) byKey.delete(key);
    return obj instanceof Element && obj.isConnected ? obj : null;
  };

  const safe = (fn, fallback = null) => { try { return fn(); } catch { return fallback; } };
  const ngAvailable = () => safe(() => typeof window.ng.getComponent === "function", false);

  // ---- value encoding (Python decodes these tags in snapshot.py) ----
  function encode(v, depth, seen) {
    if (v === null) return null;
    const t = typeof v;
    if (t === "undefined") return { $t: "undefined" };
    if (t === "boolean") return v;
    if (t === "number") return Number.isFinite(v) ? v : String(v);
    if (t === "string") return v.length > MAX_STRING ? v.slice(0, MAX_STRING) : v;
    if (t === "function") return { $t: "function", name: v.name || "", source: safe(() => String(v).slice(0, 300), "") };
    if (t === "symbol") return { $t: "symbol", description: v.description || "" };
    if (t === "bigint") return { $t: "bigint", value: v.toString() };
    if (depth > MAX_DEPTH) return { $t: "deep" };
    if (seen.has(v)) return { $t: "cycle" };
    try {
      if (typeof v.subscribe === "function") {
        const sink = typeof v.next === "function" || typeof v.emit === "function";
        return { $t: sink ? "subject" : "observable" };
      }
      if (typeof v.then === "function") return { $t: "promise" };
    } catch { return { $t: "denied" }; }
    if (v instanceof Date) return { $t: "date", iso: isNaN(v) ? null : v.toISOString() };
    if (v instanceof RegExp) return { $t: "regexp", source: v.source, flags: v.flags };
    if (v instanceof Error) return { $t: "error", name: v.name, message: v.message };
    if (v instanceof Element) return { $t: "element", tag: v.tagName.toLowerCase() };
    if (v instanceof Event) return { $t: "event", type: v.type };
    seen.add(v);
    try {
      if (Array.isArray(v)) {
        if (v.length > MAX_ITEMS) {
          return { $t: "array", length: v.length, items: v.slice(0, 5).map((x) => encode(x, depth + 1, seen)) };
        }
        return v.map((x) => encode(x, depth + 1, seen));
      }
      const entries = {};
      const denied = [];
      for (const k of Object.keys(v).slice(0, MAX_KEYS)) {
        try { entries[k] = encode(v[k], depth + 1, seen); } catch { denied.push(k); }
      }
      const name = safe(() => (v.constructor && v.constructor.name) || "Object", "Object");
      return { $t: "object", name, entries, denied };
    } finally {
      seen.delete(v);
    }
  }

  // ---- component metadata ----
  function bindingNames(map) {
    const out = {};
    for (const [pub, prop] of Object.entries(map || {})) out[pub] = Array.isArray(prop) ? prop[0] : prop;
    return out;
  }

  function describeComponent(c) {
    const ctor = safe(() => c.constructor, null);
    const def = ctor ? (ctor["ɵcmp"] || ctor["ɵdir"] || null) : null;
    const fields = {};
    for (const k of Object.keys(c).slice(0, MAX_KEYS)) {
      try { fields[k] = encode(c[k], 1, new Set([c])); } catch { fields[k] = { $t: "denied" }; }
    }
    return {
      name: (ctor && ctor.name) || "Object",
      selectors: (def && def.selectors) || [],
      inputs: bindingNames(def && def.inputs),
      outputs: bindingNames(def && def.outputs),
      fields,
    };
  }

  // ---- element snapshots ----
  function classesOf(el) {
    if (typeof el.className === "string") return el.className.split(/\s+/).filter(Boolean);
    return Array.from(el.classList || []);
  }

  function attrsOf(el) {
    const out = {};
    for (const name of ["role", "aria-label", "type", "tabindex", "name", "title", CHROME_ATTR]) {
      const v = el.getAttribute(name);
      if (v !== null) out[name] = v;
    }
    return out;
  }

  const textOf = (el, limit) => safe(() => (el.textContent || "").trim().slice(0, limit), "");

  function summary(el) {
    return {
      key: keyOf(el),
      tag: el.tagName.toLowerCase(),
      id: el.id || "",
      classes: classesOf(el),
      attrs: attrsOf(el),
      text: textOf(el, SUMMARY_TEXT),
    };
  }

  function describeElement(el, components) {
    const r = el.getBoundingClientRect();
    const cs = getComputedStyle(el);
    const styles = {};
    for (const p of STYLE_PROPS) styles[p] = cs.getPropertyValue(p);
    const d = {
      ...summary(el),
      text: textOf(el, MAX_TEXT),
      rect: { x: r.x, y: r.y, width: r.width, height: r.height },
      styles,
      children: Array.from(el.children).slice(0, MAX_CHILDREN).map(summary),
      childCount: el.childElementCount,
    };
    if (ngAvailable()) {
      const ng = window.ng;
      const register = (c) => {
        if (!c) return null;
        const id = keyOf(c);
        if (!(id in components)) components[id] = describeComponent(c);
        return id;
      };
      d.ng = {
        cmp: register(safe(() => ng.getComponent(el))),
        owner: register(safe(() => ng.getOwningComponent(el))),
        dirs: safe(() => ng.getDirectives(el), []).map(register).filter((x) => x !== null),
      };
    }
    return d;
  }

  function envelope(extra, target) {
    const payload = {
      url: location.href,
      viewport: { width: window.innerWidth, height: window.innerHeight },
      userAgent: navigator.userAgent,
      ngAvailable: ngAvailable(),
      ...extra,
    };
    if (target) {
      const components = {};
      const chain = [];
      for (let el = target; el && el.nodeType === 1; el = el.parentElement) chain.unshift(describeElement(el, components));
      payload.chain = chain;
      payload.components = components;
      payload.targetKey = keyOf(target);
    }
    return payload;
  }

  // Look through the click-capture layer: hide, point-test, restore
  function underlying(e) {
    let target = e.target;
    if (target instanceof Element && target.classList.contains(CAPTURE_CLASS)) {
      target.style.display = "none";
      const below = document.elementFromPoint(e.clientX, e.clientY);
      target.style.display = "block";
      if (below) target = below;
    }
    return target instanceof Element ? target : null;
  }

  const isChrome = (el) => !!(el && el.closest && el.closest(`[${CHROME_ATTR}]`));

  const send = (payload) => {
    try {
      window.%BRIDGE%(payload);
    } catch (err) {
      console.warn("[agentation] bridge error", err);
    }
  };

  const stopAll = (e) => {
    e.preventDefault();
    e.stopPropagation();
    e.stopImmediatePropagation();
  };

  const state = { recording: false, block: false, moveQueued: false, lastMove: null };

  // ---- page listeners (capture phase, registered on window so they run first) ----
  window.addEventListener("mousemove", (e) => {
    if (!state.recording) return;
    const target = underlying(e);
    if (!target || isChrome(target)) return;
    state.lastMove = { x: e.clientX, y: e.clientY, target };
    if (state.moveQueued) return;
    state.moveQueued = true;
    requestAnimationFrame(() => {
      state.moveQueued = false;
      const m = state.lastMove;
      if (m && state.recording) send(envelope({ etype: "pointermove", x: m.x, y: m.y }, m.target));
    });
  }, true);

  window.addEventListener("click", (e) => {
    if (!state.recording) return;
    const target = underlying(e);
    if (!target || isChrome(target)) return;
    stopAll(e);
    const button = e.button === 1 ? "middle" : (e.button === 2 ? "right" : "left");
    send(envelope({ etype: "click", x: e.clientX, y: e.clientY, button, suppressed: true }, target));
  }, true);

  for (const type of ["dblclick", "mousedown", "mouseup", "pointerdown", "pointerup", "submit"]) {
    window.addEventListener(type, (e) => {
      if (!state.recording || isChrome(underlying(e))) return;
      if (type === "dblclick" || state.block) stopAll(e);
    }, true);
  }

  window.addEventListener("keydown", (e) => {
    const toggle = e.ctrlKey && e.shiftKey && (e.key === "I" || e.key === "i");
    if (toggle) {
      e.preventDefault();
      e.stopPropagation();
    } else if (!state.recording || isChrome(e.target)) {
      return;
    } else if (state.block && e.key !== "Escape") {
      stopAll(e);
    }
    send(envelope({
      etype: "keydown", key: e.key, code: e.code,
      ctrl: e.ctrlKey, alt: e.altKey, shift: e.shiftKey, meta_key: e.metaKey,
      suppressed: e.defaultPrevented,
    }, null));
  }, true);

  // ---- chrome rendering ----
  const px = (v) => `${Math.round(v)}px`;

  function el(tag, style, text) {
    const node = document.createElement(tag);
    node.setAttribute(CHROME_ATTR, "");
    if (style) Object.assign(node.style, style);
    if (text !== undefined) node.textContent = text;
    return node;
  }

  function button(label, onClick) {
    const b = el("button", { margin: "0 2px", font: "12px sans-serif", cursor: "pointer" }, label);
    b.addEventListener("click", (e) => { e.preventDefault(); e.stopPropagation(); onClick(e); });
    return b;
  }

  function render(view) {
    state.recording = !!view.recording;
    state.block = !!view.block_page_interactions;
    const old = document.getElementById("ag-root");
    // keep an unsaved draft across re-renders of the same editor
    const prev = old ? old.querySelector("textarea[data-ag-editor]") : null;
    const draft = prev ? { index: Number(prev.dataset.agEditor), value: prev.value } : null;
    if (old) old.remove();
    if (document.body) document.body.style.cursor = view.cursor || "";
    if (!document.body) return;

    const dark = !!view.dark;
    const fg = dark ? "#f4f4f5" : "#18181b";
    const bg = dark ? "#18181b" : "#ffffff";
    const root = el("div", { position: "fixed", inset: "0", pointerEvents: "none", zIndex: "999990" });
    root.id = "ag-root";

    if (view.recording && view.block_page_interactions) {
      const capture = document.createElement("div");
      capture.className = CAPTURE_CLASS;
      Object.assign(capture.style, { position: "fixed", inset: "0", pointerEvents: "auto", background: "transparent", display: "block" });
      root.appendChild(capture);
    }

    if (view.highlight) {
      const r = view.highlight.rect;
      const c = view.highlight.color;
      root.appendChild(el("div", {
        position: "fixed", top: px(r.y), left: px(r.x), width: px(r.width), height: px(r.height),
        background: `${c}33`, border: `${view.highlight.locked ? 3 : 2}px solid ${c}`,
        pointerEvents: "none", zIndex: "999998",
      }));
    }

    if (view.tooltip) {
      root.appendChild(el("div", {
        position: "fixed", top: px(view.tooltip.y), left: px(view.tooltip.x), padding: "2px 6px",
        background: bg, color: fg, font: "12px monospace", borderRadius: "4px", zIndex: "999999",
      }, view.tooltip.text));
    }

    if (view.breadcrumbs && view.breadcrumbs.length > 1) {
      const bar = el("div", {
        position: "fixed", bottom: "56px", left: "16px", padding: "4px", background: bg, color: fg,
        borderRadius: "6px", pointerEvents: "auto", zIndex: "999999",
      });
      view.breadcrumbs.forEach((label, index) => {
        const b = button(label, () => send(envelope({ etype: "breadcrumb", index, double: false }, null)));
        if (index === view.breadcrumb_index) b.style.fontWeight = "bold";
        b.addEventListener("dblclick", (e) => { e.preventDefault(); e.stopPropagation(); send(envelope({ etype: "breadcrumb", index, double: true }, null)); });
        bar.appendChild(b);
      });
      root.appendChild(bar);
    }

    for (const m of view.markers || []) {
      const badge = el("div", {
        position: "fixed", top: px(m.rect.y + m.rect.height / 2 - 14), left: px(m.rect.x + m.rect.width - 14),
        width: "28px", height: "28px", borderRadius: "14px", background: m.color, color: "#fff",
        font: "bold 13px sans-serif", display: "flex", alignItems: "center", justifyContent: "center",
        pointerEvents: "auto", zIndex: "999999",
      }, String(m.index));
      badge.title = m.intent || "";
      root.appendChild(badge);
    }

    if (view.editor) {
      const ed = view.editor;
      const box = el("div", {
        position: "fixed", top: px(ed.top), left: px(ed.left), padding: "8px", background: bg, color: fg,
        borderRadius: "6px", boxShadow: "0 2px 8px rgba(0,0,0,.3)", pointerEvents: "auto", zIndex: "1000000",
      });
      box.appendChild(el("div", { font: "12px monospace", marginBottom: "4px" }, `#${ed.index} ${ed.label}`));
      const area = el("textarea", { width: "280px", height: "64px" });
      area.dataset.agEditor = String(ed.index);
      const reopened = !!draft && draft.index === ed.index;
      area.value = reopened ? draft.value : (ed.intent || "");
      area.addEventListener("keydown", (e) => {
        if (e.key === "Enter" && !e.shiftKey) {
          e.preventDefault();
          send(envelope({ etype: "editor", action: "save", index: ed.index, intent: area.value }, null));
        } else if (e.key === "Escape") {
          send(envelope({ etype: "editor", action: "cancel", index: ed.index }, null));
        }
      });
      box.appendChild(area);
      const row = el("div", { marginTop: "4px" });
      row.appendChild(button("Save", () => send(envelope({ etype: "editor", action: "save", index: ed.index, intent: area.value }, null))));
      row.appendChild(button("Delete", () => send(envelope({ etype: "editor", action: "delete", index: ed.index }, null))));
      row.appendChild(button("Cancel", () => send(envelope({ etype: "editor", action: "cancel", index: ed.index }, null))));
      box.appendChild(row);
      root.appendChild(box);
      setTimeout(() => { area.focus(); if (reopened) area.setSelectionRange(area.value.length, area.value.length); }, 0);
    }

    if (view.markers_panel) {
      const panel = el("div", {
        position: "fixed", bottom: "56px", right: "16px", width: "320px", maxHeight: "40vh", overflowY: "auto",
        padding: "6px", background: bg, color: fg, font: "12px sans-serif", borderRadius: "6px",
        boxShadow: "0 2px 8px rgba(0,0,0,.3)", pointerEvents: "auto", zIndex: "999999",
      });
      const markers = view.markers || [];
      if (!markers.length) panel.appendChild(el("div", { opacity: "0.7" }, "No markers yet"));
      for (const m of markers) {
        const row = el("div", { display: "flex", alignItems: "center", gap: "4px", margin: "2px 0" });
        row.appendChild(el("span", { color: m.color, fontWeight: "bold" }, `#${m.index}`));
        row.appendChild(el("span", { flex: "1", overflow: "hidden", textOverflow: "ellipsis", whiteSpace: "nowrap" },
          m.intent ? `${m.label}: ${m.intent}` : m.label));
        for (const [label, action] of [["Go", "scroll"], ["Edit", "edit"], ["Delete", "delete"]]) {
          row.appendChild(button(label, () => send(envelope({ etype: "marker", action, index: m.index }, null))));
        }
        panel.appendChild(row);
      }
      root.appendChild(panel);
    }

    const toolbar = el("div", {
      position: "fixed", bottom: "16px", right: "16px", padding: "4px", background: bg, color: fg,
      borderRadius: "6px", boxShadow: "0 2px 8px rgba(0,0,0,.3)", pointerEvents: "auto", zIndex: "999999",
    });
    toolbar.appendChild(button(view.recording ? "Stop" : "Record", () => send(envelope({ etype: "toolbar", action: "record" }, null))));
    toolbar.appendChild(button(`Copy (${(view.markers || []).length})`, () => send(envelope({ etype: "toolbar", action: "copy" }, null))));
    toolbar.appendChild(button(`Markers (${(view.markers || []).length})`, () => send(envelope({ etype: "toolbar", action: "markers" }, null))));
    toolbar.appendChild(button("Copy node", () => send(envelope({ etype: "toolbar", action: "copy_node" }, null))));
    toolbar.appendChild(button("Clear", () => send(envelope({ etype: "toolbar", action: "clear" }, null))));
    toolbar.appendChild(button(view.output_detail, () => send(envelope({ etype: "toolbar", action: "detail" }, null))));
    toolbar.appendChild(button(view.marker_color, () => send(envelope({ etype: "toolbar", action: "color" }, null))));
    toolbar.appendChild(button(dark ? "Light" : "Dark", () => send(envelope({ etype: "toolbar", action: "theme" }, null))));
    root.appendChild(toolbar);

    document.body.appendChild(root);
  }

  window.__agentation = { render, state, find };
})();
""".replace("%CHROME_ATTR%", CHROME_ATTR) \
    .replace("%CAPTURE_CLASS%", CLICK_CAPTURE_CLASS) \
    .replace("%STYLE_PROPS%", json.dumps(list(KEY_COMPUTED_STYLES))) \
    .replace("%BRIDGE%", BRIDGE_NAME)

RENDER_JS = "view => { if (window.__agentation) window.__agentation.render(view); return !!window.__agentation; }"

SCROLL_TO_JS = """
key => {
  const el = window.__agentation ? window.__agentation.find(key) : null;
  if (!el) return false;
  el.scrollIntoView({ behavior: "smooth", block: "center" });
  return true;
}
"""

CLIPBOARD_JS = "text => navigator.clipboard.writeText(text).then(() => true)"

# Synchronous fallback: select a hidden textarea and copy
FALLBACK_COPY_JS = """
text => {
  const area = document.createElement("textarea");
  area.value = text;
  area.setAttribute("data-agentation", "");
  area.style.position = "fixed";
  area.style.opacity = "0";
  document.body.appendChild(area);
  area.select();
  let ok = false;
  try { ok = document.execCommand("copy"); } finally { document.body.removeChild(area); }
  return ok;
}
"""
