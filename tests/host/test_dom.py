"""Tests for the in-memory document model."""

import asyncio
from unittest.mock import MagicMock

import pytest

from pytron_client.host.dom import Document, EventTarget, MutationObserver


class TestEventTarget:
    """Test listener registration and delivery."""

    def test_dispatch(self) -> None:
        target = EventTarget()
        listener = MagicMock()
        target.add_event_listener("ping", listener)

        event = target.dispatch_event("ping", {"n": 1})

        listener.assert_called_once_with(event)
        assert event.detail == {"n": 1}
        assert event.target is target

    def test_listener_added_once(self) -> None:
        target = EventTarget()
        listener = MagicMock()
        target.add_event_listener("ping", listener)
        target.add_event_listener("ping", listener)

        target.dispatch_event("ping")

        assert listener.call_count == 1

    def test_failing_listener_isolated(self) -> None:
        target = EventTarget()
        after = MagicMock()
        target.add_event_listener("ping", MagicMock(side_effect=RuntimeError("boom")))
        target.add_event_listener("ping", after)

        target.dispatch_event("ping")

        after.assert_called_once()

    def test_remove(self) -> None:
        target = EventTarget()
        listener = MagicMock()
        target.add_event_listener("ping", listener)
        target.remove_event_listener("ping", listener)

        target.dispatch_event("ping")

        listener.assert_not_called()
        assert target.listener_count("ping") == 0


class TestDocument:
    """Test the element tree."""

    def test_structure(self) -> None:
        document = Document()
        assert document.head.parent is document.document_element
        assert document.body.is_connected is True

    def test_fresh_document_state(self) -> None:
        """A new document builds its tree without observers or hooks."""
        document = Document()

        assert document.document_element.children == [document.head, document.body]
        assert document.on_connected is None
        assert document.get_elements_by_tag_name("body") == [document.body]

    def test_detached_element(self) -> None:
        document = Document()
        div = document.create_element("DIV")
        assert div.tag_name == "div"
        assert div.is_connected is False

    def test_elements_with_attribute(self) -> None:
        document = Document()
        for slot in ("a", "b", "a"):
            div = document.create_element("div")
            div.set_attribute("data-slot", slot)
            document.body.append_child(div)

        assert len(document.elements_with_attribute("data-slot")) == 3
        assert len(document.elements_with_attribute("data-slot", "a")) == 2

    def test_replace_with(self) -> None:
        document = Document()
        old = document.body.append_child(document.create_element("script"))
        new = document.create_element("script")

        old.replace_with(new)

        assert document.body.children == [new]
        assert old.parent is None
        assert new.parent is document.body

    def test_replace_without_parent(self) -> None:
        document = Document()
        with pytest.raises(ValueError):
            document.create_element("div").replace_with(document.create_element("div"))

    def test_on_connected_covers_descendants(self) -> None:
        document = Document()
        connected: list[str] = []
        document.on_connected = lambda el: connected.append(el.tag_name)

        panel = document.create_element("div")
        panel.append_child(document.create_element("img"))
        document.body.append_child(panel)

        assert connected == ["div", "img"]


class TestMutationObserver:
    """Test batched mutation delivery."""

    @pytest.mark.asyncio
    async def test_batched_delivery(self) -> None:
        document = Document()
        callback = MagicMock()
        observer = MutationObserver(callback)
        observer.observe(document.document_element, child_list=True, subtree=True)

        document.body.append_child(document.create_element("img"))
        document.body.append_child(document.create_element("img"))
        callback.assert_not_called()

        await asyncio.sleep(0)

        callback.assert_called_once()
        records = callback.call_args.args[0]
        assert [r.type for r in records] == ["childList", "childList"]

    @pytest.mark.asyncio
    async def test_attribute_filter(self) -> None:
        document = Document()
        img = document.body.append_child(document.create_element("img"))
        callback = MagicMock()
        observer = MutationObserver(callback)
        observer.observe(document.document_element, subtree=True, attribute_filter=["src"])

        img.set_attribute("alt", "logo")
        img.set_attribute("src", "logo.png")
        await asyncio.sleep(0)

        records = callback.call_args.args[0]
        assert [r.attribute_name for r in records] == ["src"]

    @pytest.mark.asyncio
    async def test_disconnect(self) -> None:
        document = Document()
        callback = MagicMock()
        observer = MutationObserver(callback)
        observer.observe(document.document_element, child_list=True, subtree=True)
        observer.disconnect()

        document.body.append_child(document.create_element("img"))
        await asyncio.sleep(0)

        callback.assert_not_called()
        assert observer.is_observing is False

    def test_delivers_immediately_without_loop(self) -> None:
        document = Document()
        callback = MagicMock()
        observer = MutationObserver(callback)
        observer.observe(document.body, child_list=True)

        document.body.append_child(document.create_element("p"))

        callback.assert_called_once()
