"""Minimal live document model with mutation observation.

Just enough DOM for the page translator: elements, text nodes, attributes,
and a MutationObserver that receives structured change records. Records
are delivered in a batch on the next event-loop turn when a loop is
running, or when ``Document.flush_mutations()`` is called.
"""

import asyncio
import html
import itertools
import logging
from dataclasses import dataclass, field

from bs4 import BeautifulSoup, NavigableString, Tag
from bs4.element import PreformattedString

logger = logging.getLogger(__name__)

_node_ids = itertools.count(1)

VOID_ELEMENTS = frozenset({
    'AREA', 'BASE', 'BR', 'COL', 'EMBED', 'HR', 'IMG', 'INPUT',
    'LINK', 'META', 'SOURCE', 'TRACK', 'WBR',
})

CHILD_LIST = 'childList'
CHARACTER_DATA = 'characterData'
ATTRIBUTES = 'attributes'


class Node:
    """Base node. ``node_id`` is stable for the node's lifetime."""

    def __init__(self, document):
        self.node_id = next(_node_ids)
        self.owner_document = document
        self.parent = None

    @property
    def is_connected(self):
        node = self
        while node.parent is not None:
            node = node.parent
        return node is self.owner_document.body

    def is_descendant_of(self, other):
        node = self.parent
        while node is not None:
            if node is other:
                return True
            node = node.parent
        return False

    def ancestors(self):
        node = self.parent
        while node is not None:
            yield node
            node = node.parent

    def iter_nodes(self):
        """Pre-order walk of this node and its descendants."""
        yield self


class Text(Node):

    def __init__(self, document, data=''):
        super().__init__(document)
        self._data = data

    @property
    def data(self):
        return self._data

    @data.setter
    def data(self, value):
        old_value = self._data
        self._data = value
        self.owner_document.queue_record(
            MutationRecord(type=CHARACTER_DATA, target=self, old_value=old_value)
        )

    text_content = data

    def __repr__(self):
        return f'<Text #{self.node_id} {self._data[:30]!r}>'


class Element(Node):

    def __init__(self, document, tag_name, attributes=None):
        super().__init__(document)
        self.tag_name = tag_name.upper()
        self.attributes = dict(attributes or {})
        self.children = []

    def __repr__(self):
        return f'<Element #{self.node_id} {self.tag_name.lower()}>'

    # Attributes

    def get_attribute(self, name):
        return self.attributes.get(name)

    def has_attribute(self, name):
        return name in self.attributes

    def set_attribute(self, name, value):
        old_value = self.attributes.get(name)
        self.attributes[name] = value
        self.owner_document.queue_record(
            MutationRecord(type=ATTRIBUTES, target=self, attribute_name=name, old_value=old_value)
        )

    def remove_attribute(self, name):
        if name not in self.attributes:
            return
        old_value = self.attributes.pop(name)
        self.owner_document.queue_record(
            MutationRecord(type=ATTRIBUTES, target=self, attribute_name=name, old_value=old_value)
        )

    @property
    def class_list(self):
        return (self.attributes.get('class') or '').split()

    def has_class(self, name):
        return name in self.class_list

    def add_class(self, name):
        classes = self.class_list
        if name not in classes:
            self.set_attribute('class', ' '.join(classes + [name]))

    def remove_class(self, name):
        classes = self.class_list
        if name in classes:
            remaining = [c for c in classes if c != name]
            if remaining:
                self.set_attribute('class', ' '.join(remaining))
            else:
                self.remove_attribute('class')

    # Tree

    @property
    def first_child(self):
        return self.children[0] if self.children else None

    def _detach(self, node):
        if node.parent is not None:
            node.parent.remove_child(node)

    def append_child(self, node):
        return self.insert_before(node, None)

    def insert_before(self, node, reference):
        if node is self or self.is_descendant_of(node):
            raise ValueError('Cannot insert a node into its own subtree')
        self._detach(node)
        index = len(self.children) if reference is None else self.children.index(reference)
        self.children.insert(index, node)
        node.parent = self
        self.owner_document.queue_record(
            MutationRecord(type=CHILD_LIST, target=self, added_nodes=[node])
        )
        return node

    def remove_child(self, node):
        self.children.remove(node)
        node.parent = None
        self.owner_document.queue_record(
            MutationRecord(type=CHILD_LIST, target=self, removed_nodes=[node])
        )
        return node

    def replace_children(self, *nodes):
        removed = list(self.children)
        for child in removed:
            child.parent = None
        self.children = []
        for node in nodes:
            if node.parent is not None:
                node.parent.remove_child(node)
            node.parent = self
            self.children.append(node)
        self.owner_document.queue_record(
            MutationRecord(type=CHILD_LIST, target=self, added_nodes=list(nodes), removed_nodes=removed)
        )

    @property
    def text_content(self):
        return ''.join(node.data for node in self.iter_nodes() if isinstance(node, Text))

    @text_content.setter
    def text_content(self, value):
        if value:
            self.replace_children(self.owner_document.create_text_node(value))
        else:
            self.replace_children()

    def iter_nodes(self):
        stack = [self]
        while stack:
            node = stack.pop()
            yield node
            if isinstance(node, Element):
                stack.extend(reversed(node.children))

    def iter_elements(self):
        return (node for node in self.iter_nodes() if isinstance(node, Element))

    def elements_with_attribute(self, name):
        """This element and its descendants carrying ``name``."""
        return [element for element in self.iter_elements() if element.has_attribute(name)]

    def query_selector(self, tag_name):
        tag_name = tag_name.upper()
        for element in self.iter_elements():
            if element is not self and element.tag_name == tag_name:
                return element
        return None

    def to_html(self):
        attrs = ''.join(
            f' {name}="{html.escape(str(value))}"' for name, value in self.attributes.items()
        )
        tag = self.tag_name.lower()
        if self.tag_name in VOID_ELEMENTS:
            return f'<{tag}{attrs}>'
        inner = ''.join(_serialize(child) for child in self.children)
        return f'<{tag}{attrs}>{inner}</{tag}>'


def _serialize(node):
    if isinstance(node, Text):
        return html.escape(node.data, quote=False)
    return node.to_html()


@dataclass
class MutationRecord:
    type: str
    target: Node
    added_nodes: list = field(default_factory=list)
    removed_nodes: list = field(default_factory=list)
    attribute_name: str = None
    old_value: str = None


class MutationObserver:
    """Collects records for the nodes it observes and hands them to ``callback``."""

    def __init__(self, callback):
        self.callback = callback
        self._targets = []
        self._records = []
        self._documents = set()

    def observe(self, target, child_list=False, character_data=False, attributes=False,
                attribute_filter=None, subtree=False):
        options = {
            CHILD_LIST: child_list,
            CHARACTER_DATA: character_data,
            ATTRIBUTES: attributes or attribute_filter is not None,
            'attribute_filter': set(attribute_filter) if attribute_filter is not None else None,
            'subtree': subtree,
        }
        self._targets.append((target, options))
        target.owner_document.register_observer(self)

    def disconnect(self):
        for document in list(self._documents):
            document.unregister_observer(self)
        self._targets = []
        self._records = []

    def take_records(self):
        records, self._records = self._records, []
        return records

    def _interested(self, record):
        for target, options in self._targets:
            if not options[record.type]:
                continue
            if record.type == ATTRIBUTES and options['attribute_filter'] is not None:
                if record.attribute_name not in options['attribute_filter']:
                    continue
            if record.target is target or (options['subtree'] and record.target.is_descendant_of(target)):
                return True
        return False

    def _enqueue(self, record):
        if self._interested(record):
            self._records.append(record)
            return True
        return False


class Document:
    """Owns the ``body`` tree and schedules mutation delivery."""

    def __init__(self):
        self._observers = []
        self._delivery_scheduled = False
        self.body = Element(self, 'body')

    @classmethod
    def from_html(cls, markup):
        """Build a document from HTML; the body's children become ours."""
        document = cls()
        for node in document.parse_fragment(markup):
            document.body.children.append(node)
            node.parent = document.body
        return document

    def parse_fragment(self, markup):
        """Parse HTML into detached nodes owned by this document."""
        soup = BeautifulSoup(markup, 'html.parser')
        root = soup.body or soup
        return [node for node in (self._convert(child) for child in root.children) if node is not None]

    def _convert(self, source):
        if isinstance(source, PreformattedString):
            return None  # comments, doctypes, CDATA
        if isinstance(source, NavigableString):
            return Text(self, str(source))
        if isinstance(source, Tag):
            attributes = {
                name: ' '.join(value) if isinstance(value, list) else value
                for name, value in source.attrs.items()
            }
            element = Element(self, source.name, attributes)
            for child in source.children:
                node = self._convert(child)
                if node is not None:
                    element.children.append(node)
                    node.parent = element
            return element
        return None

    def create_element(self, tag_name, attributes=None, text=None):
        element = Element(self, tag_name, attributes)
        if text:
            node = Text(self, text)
            element.children.append(node)
            node.parent = element
        return element

    def create_text_node(self, data):
        return Text(self, data)

    def to_html(self):
        return ''.join(_serialize(child) for child in self.body.children)

    # Mutation delivery

    def register_observer(self, observer):
        if observer not in self._observers:
            self._observers.append(observer)
        observer._documents.add(self)

    def unregister_observer(self, observer):
        if observer in self._observers:
            self._observers.remove(observer)
        observer._documents.discard(self)

    def queue_record(self, record):
        queued = False
        for observer in self._observers:
            queued = observer._enqueue(record) or queued
        if queued:
            self._schedule_delivery()

    def _schedule_delivery(self):
        if self._delivery_scheduled:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return  # Delivered by an explicit flush_mutations()
        self._delivery_scheduled = True
        loop.call_soon(self.flush_mutations)

    @property
    def has_pending_mutations(self):
        return any(observer._records for observer in self._observers)

    def flush_mutations(self):
        """Deliver queued records, repeating while callbacks queue more."""
        self._delivery_scheduled = False
        while True:
            delivered = False
            for observer in list(self._observers):
                records = observer.take_records()
                if records:
                    delivered = True
                    try:
                        observer.callback(records, observer)
                    except Exception as e:
                        logger.error(f"Mutation observer callback failed: {e}")
            if not delivered:
                break
