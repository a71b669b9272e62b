"""External link checking."""

from guidelint.links.checker import LinkStatus, Verdict, check_links, check_links_async, link_diagnostics

__all__ = ["LinkStatus", "Verdict", "check_links", "check_links_async", "link_diagnostics"]
