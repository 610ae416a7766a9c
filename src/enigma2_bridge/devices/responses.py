"""Parsers for the small XML documents returned by OpenWebif ``/web/*`` endpoints."""

from __future__ import annotations

import xml.etree.ElementTree as ET

__all__ = ["get_content_of_element", "get_services"]


def get_content_of_element(content: str, element: str) -> str | None:
    """Return the stripped text of the first ``<element>`` in ``content``.

    Returns None when the element is not present. Raises
    :class:`xml.etree.ElementTree.ParseError` on malformed XML.
    """
    root = ET.fromstring(content)
    node = next(root.iter(element), None)
    if node is None:
        return None
    return (node.text or "").strip()


def get_services(content: str) -> list[tuple[str, str]]:
    """Return ``(service name, service reference)`` pairs from a services listing.

    Markers and entries without a reference are skipped.
    """
    root = ET.fromstring(content)
    services: list[tuple[str, str]] = []
    for service in root.iter("e2service"):
        ref = (service.findtext("e2servicereference") or "").strip()
        name = (service.findtext("e2servicename") or "").strip()
        # 1:64: references are bouquet markers, not tunable services
        if not ref or ref.startswith("1:64:"):
            continue
        services.append((name, ref))
    return services
