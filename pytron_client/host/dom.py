"""
In-memory document model.

A small element tree with the parts of the DOM contract the bridge relies on:
attributes, child lists, expando properties, element events and a mutation
observer that batches records and delivers them asynchronously.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Iterator, Optional

logger = logging.getLogger(__name__)


@dataclass
class Event:
    """A named event carrying an optional ``detail`` payload."""

    type: str
    detail: Any = None
    target: Any = None


Listener = Callable[[Event], Any]


class EventTarget:
    """Ordered listener registry shared by elements and host windows."""

    def __init__(self) -> None:
        self._listeners: dict[str, list[Listener]] = {}

    def add_event_listener(self, event_type: str, listener: Listener) -> None:
        listeners = self._listeners.setdefault(event_type, [])
        if listener not in listeners:
            listeners.append(listener)

    def remove_event_listener(self, event_type: str, listener: Listener) -> None:
        listeners = self._listeners.get(event_type)
        if listeners and listener in listeners:
            listeners.remove(listener)

    def listener_count(self, event_type: str) -> int:
        return len(self._listeners.get(event_type, []))

    def dispatch_event(self, event_type: str, detail: Any = None) -> Event:
        """Deliver an event to every listener registered for its type.

        A failing listener is logged and does not stop delivery to the rest.
        """
        event = Event(type=event_type, detail=detail, target=self)
        for listener in list(self._listeners.get(event_type, [])):
            try:
                listener(event)
            except Exception:
                logger.exception(f"Listener for '{event_type}' failed")
        return event


@dataclass
class MutationRecord:
    """A single observed change."""

    type: str  # "attributes" or "childList"
    target: "Element"
    attribute_name: Optional[str] = None
    old_value: Optional[str] = None
    added_nodes: list["Element"] = field(default_factory=list)
    removed_nodes: list["Element"] = field(default_factory=list)


class Element(EventTarget):
    """A document element.

    ``properties`` holds expando state that is not reflected as attributes,
    like arbitrary properties set on a DOM node.
    """

    def __init__(self, tag_name: str, document: Optional["Document"] = None) -> None:
        super().__init__()
        self.tag_name = tag_name.lower()
        self.owner_document = document
        self.parent: Optional[Element] = None
        self.children: list[Element] = []
        self.properties: dict[str, Any] = {}
        self.text = ""
        self._attributes: dict[str, str] = {}

    def __repr__(self) -> str:
        attrs = " ".join(f'{k}="{v}"' for k, v in self._attributes.items())
        return f"<{self.tag_name}{' ' + attrs if attrs else ''}>"

    # Attributes

    @property
    def attributes(self) -> dict[str, str]:
        return dict(self._attributes)

    def get_attribute(self, name: str) -> Optional[str]:
        return self._attributes.get(name)

    def has_attribute(self, name: str) -> bool:
        return name in self._attributes

    def set_attribute(self, name: str, value: Any) -> None:
        old_value = self._attributes.get(name)
        self._attributes[name] = str(value)
        self._record(MutationRecord("attributes", self, attribute_name=name, old_value=old_value))

    def remove_attribute(self, name: str) -> None:
        if name not in self._attributes:
            return
        old_value = self._attributes.pop(name)
        self._record(MutationRecord("attributes", self, attribute_name=name, old_value=old_value))

    # Tree

    @property
    def is_connected(self) -> bool:
        if self.owner_document is None:
            return False
        node: Optional[Element] = self
        while node.parent is not None:
            node = node.parent
        return node is self.owner_document.document_element

    def append_child(self, child: "Element") -> "Element":
        if child.parent is not None:
            child.parent.remove_child(child)
        child.parent = self
        self.children.append(child)
        self._record(MutationRecord("childList", self, added_nodes=[child]))
        if self.is_connected and self.owner_document is not None:
            self.owner_document._connected(child)
        return child

    def remove_child(self, child: "Element") -> "Element":
        self.children.remove(child)
        child.parent = None
        self._record(MutationRecord("childList", self, removed_nodes=[child]))
        return child

    def replace_child(self, new_child: "Element", old_child: "Element") -> "Element":
        if new_child.parent is not None:
            new_child.parent.remove_child(new_child)
        index = self.children.index(old_child)
        self.children[index] = new_child
        old_child.parent = None
        new_child.parent = self
        self._record(MutationRecord(
            "childList", self, added_nodes=[new_child], removed_nodes=[old_child]
        ))
        if self.is_connected and self.owner_document is not None:
            self.owner_document._connected(new_child)
        return old_child

    def replace_with(self, new_element: "Element") -> None:
        if self.parent is None:
            raise ValueError("Cannot replace an element without a parent")
        self.parent.replace_child(new_element, self)

    def iter_descendants(self) -> Iterator["Element"]:
        """Depth-first iteration over descendants (excluding self)."""
        for child in list(self.children):
            yield child
            yield from child.iter_descendants()

    def contains(self, other: "Element") -> bool:
        node: Optional[Element] = other
        while node is not None:
            if node is self:
                return True
            node = node.parent
        return False

    def _record(self, record: MutationRecord) -> None:
        if self.owner_document is not None:
            self.owner_document._queue_mutation(record)


class MutationObserver:
    """Observes a subtree and delivers batched mutation records.

    Records are delivered on the next event-loop iteration (or immediately
    when no loop is running), mirroring microtask delivery in a browser.
    """

    def __init__(self, callback: Callable[[list[MutationRecord], "MutationObserver"], Any]) -> None:
        self._callback = callback
        self._targets: list[tuple[Element, dict[str, Any]]] = []
        self._queue: list[MutationRecord] = []
        self._scheduled = False
        self._document: Optional[Document] = None

    def observe(
        self,
        target: Element,
        *,
        child_list: bool = False,
        attributes: bool = False,
        subtree: bool = False,
        attribute_filter: Optional[list[str]] = None,
    ) -> None:
        if target.owner_document is None:
            raise ValueError("Target element does not belong to a document")
        options = {
            "child_list": child_list,
            "attributes": attributes or attribute_filter is not None,
            "subtree": subtree,
            "attribute_filter": set(attribute_filter) if attribute_filter else None,
        }
        self._targets.append((target, options))
        self._document = target.owner_document
        self._document._register_observer(self)

    def disconnect(self) -> None:
        if self._document is not None:
            self._document._unregister_observer(self)
        self._targets.clear()
        self._queue.clear()
        self._document = None

    def take_records(self) -> list[MutationRecord]:
        records, self._queue = self._queue, []
        return records

    @property
    def is_observing(self) -> bool:
        return bool(self._targets)

    def _matches(self, record: MutationRecord) -> bool:
        for target, options in self._targets:
            in_scope = record.target is target or (
                options["subtree"] and target.contains(record.target)
            )
            if not in_scope:
                continue
            if record.type == "childList" and options["child_list"]:
                return True
            if record.type == "attributes" and options["attributes"]:
                allowed = options["attribute_filter"]
                if allowed is None or record.attribute_name in allowed:
                    return True
        return False

    def _enqueue(self, record: MutationRecord) -> None:
        if not self._matches(record):
            return
        self._queue.append(record)
        if self._scheduled:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self._deliver()
            return
        self._scheduled = True
        loop.call_soon(self._deliver)

    def _deliver(self) -> None:
        self._scheduled = False
        records = self.take_records()
        if not records or not self._targets:
            return
        try:
            self._callback(records, self)
        except Exception:
            logger.exception("Mutation observer callback failed")


class Document:
    """A document with ``<html>``, ``<head>`` and ``<body>``."""

    def __init__(self) -> None:
        self._observers: list[MutationObserver] = []

        # Called for every element that becomes connected to the document
        self.on_connected: Optional[Callable[[Element], None]] = None

        self.document_element = Element("html", self)
        self.head = Element("head", self)
        self.body = Element("body", self)
        self.document_element.append_child(self.head)
        self.document_element.append_child(self.body)

    def create_element(self, tag_name: str) -> Element:
        return Element(tag_name, self)

    def iter_elements(self) -> Iterator[Element]:
        yield self.document_element
        yield from self.document_element.iter_descendants()

    def get_elements_by_tag_name(self, tag_name: str) -> list[Element]:
        tag_name = tag_name.lower()
        return [el for el in self.iter_elements() if el.tag_name == tag_name]

    def query_all(self, predicate: Callable[[Element], bool]) -> list[Element]:
        return [el for el in self.iter_elements() if predicate(el)]

    def elements_with_attribute(self, name: str, value: Optional[str] = None) -> list[Element]:
        return self.query_all(
            lambda el: el.has_attribute(name) and (value is None or el.get_attribute(name) == value)
        )

    def _register_observer(self, observer: MutationObserver) -> None:
        if observer not in self._observers:
            self._observers.append(observer)

    def _unregister_observer(self, observer: MutationObserver) -> None:
        if observer in self._observers:
            self._observers.remove(observer)

    def _queue_mutation(self, record: MutationRecord) -> None:
        for observer in list(self._observers):
            observer._enqueue(record)

    def _connected(self, element: Element) -> None:
        if self.on_connected is None:
            return
        self.on_connected(element)
        for descendant in element.iter_descendants():
            self.on_connected(descendant)
