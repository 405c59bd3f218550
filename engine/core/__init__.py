"""
Markstyle Core: the live-preview synchronization engine.

Components:
  styles / units / css: style model, px -> vw conversion, stylesheet generation
  render / inspector  : tagged Markdown rendering, click -> ElementKey
  protocol / scroll   : envelopes and channels, scroll mirroring with echo guards
  host / preview      : the two participants
  store / autosave    : project persistence and debounced saving
  exporters           : project JSON, Markdown + frontmatter, standalone HTML
"""

from engine.core.css import generate_css, selector_for
from engine.core.document import Document
from engine.core.exporters import (
    ImportedDocument,
    InvalidProjectFile,
    export_html,
    export_markdown,
    export_project_file,
    import_file,
    import_markdown,
    import_project_file,
)
from engine.core.host import HostSession
from engine.core.preview import PreviewSession, PreviewState
from engine.core.protocol import Channel, Envelope, MemoryChannel, ProtocolError, decode, encode
from engine.core.render import render_markdown
from engine.core.scroll import ScrollState, ScrollSync
from engine.core.store import MemoryProjectStore, ProjectStore, StoreError
from engine.core.styles import StyleMap, UnknownElementKey
from engine.core.units import convert_property_set, px_to_vw

__all__ = [
    "StyleMap",
    "UnknownElementKey",
    "Document",
    "px_to_vw",
    "convert_property_set",
    "generate_css",
    "selector_for",
    "render_markdown",
    "Envelope",
    "Channel",
    "MemoryChannel",
    "ProtocolError",
    "encode",
    "decode",
    "ScrollState",
    "ScrollSync",
    "HostSession",
    "PreviewSession",
    "PreviewState",
    "ProjectStore",
    "MemoryProjectStore",
    "StoreError",
    "ImportedDocument",
    "InvalidProjectFile",
    "export_project_file",
    "import_project_file",
    "export_markdown",
    "import_markdown",
    "export_html",
    "import_file",
]
