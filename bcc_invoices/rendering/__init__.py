from .document import DocumentRenderer, render_invoice_html
from .engine import ChromiumEngine, RenderEngine, build_engine

__all__ = ["DocumentRenderer", "render_invoice_html", "ChromiumEngine", "RenderEngine", "build_engine"]
