"""
Tests for the document model and mutation observer.
"""

import asyncio

import pytest

from community.client.dom import ATTRIBUTES, CHARACTER_DATA, CHILD_LIST, Document, MutationObserver, Text


def _observe(document, **options):
    batches = []
    observer = MutationObserver(lambda records, obs: batches.append(records))
    observer.observe(document.body, **options)
    return observer, batches


class TestParsing:
    """Tests for Document.from_html / to_html"""

    def test_round_trip(self):
        markup = '<div class="card big"><p>Hi &amp; bye</p><img alt="Logo"></div>'
        document = Document.from_html(markup)

        assert document.to_html() == markup
        card = document.body.query_selector('div')
        assert card.class_list == ['card', 'big']
        assert card.query_selector('p').text_content == 'Hi & bye'

    def test_comments_are_dropped(self):
        document = Document.from_html('<!-- note --><p>Text</p>')
        assert document.to_html() == '<p>Text</p>'

    def test_parse_fragment_is_detached(self):
        document = Document()
        nodes = document.parse_fragment('<li>One</li><li>Two</li>')

        assert [node.text_content for node in nodes] == ['One', 'Two']
        assert all(node.parent is None and not node.is_connected for node in nodes)

    def test_create_element(self):
        document = Document()
        button = document.create_element('button', {'title': 'Close'}, text='OK')
        document.body.append_child(button)

        assert button.is_connected
        assert document.to_html() == '<button title="Close">OK</button>'


class TestTree:
    """Tests for element tree operations"""

    def test_insert_into_own_subtree_fails(self):
        document = Document.from_html('<div><p>Text</p></div>')
        div = document.body.query_selector('div')
        paragraph = div.query_selector('p')

        with pytest.raises(ValueError):
            paragraph.append_child(div)

    def test_append_moves_node(self):
        document = Document.from_html('<ul></ul><ol><li>Item</li></ol>')
        ul = document.body.query_selector('ul')
        item = document.body.query_selector('li')

        ul.append_child(item)

        assert document.to_html() == '<ul><li>Item</li></ul><ol></ol>'

    def test_classes(self):
        document = Document.from_html('<p class="lead">Text</p>')
        paragraph = document.body.query_selector('p')

        paragraph.add_class('translated')
        assert paragraph.get_attribute('class') == 'lead translated'
        paragraph.remove_class('lead')
        paragraph.remove_class('translated')
        assert not paragraph.has_attribute('class')

    def test_elements_with_attribute_includes_self(self):
        document = Document.from_html('<div title="a"><span title="b">x</span><span>y</span></div>')
        div = document.body.query_selector('div')
        assert [el.get_attribute('title') for el in div.elements_with_attribute('title')] == ['a', 'b']


class TestMutationObserver:
    """Tests for mutation records and delivery"""

    def test_records_are_batched_until_flush(self):
        document = Document.from_html('<p>Hello</p>')
        observer, batches = _observe(document, child_list=True, character_data=True, subtree=True)
        text = document.body.query_selector('p').first_child

        text.data = 'Hola'
        document.body.append_child(document.create_element('hr'))
        assert batches == []
        assert document.has_pending_mutations

        document.flush_mutations()

        assert len(batches) == 1
        first, second = batches[0]
        assert first.type == CHARACTER_DATA and first.target is text and first.old_value == 'Hello'
        assert second.type == CHILD_LIST and second.added_nodes[0].tag_name == 'HR'

    def test_attribute_filter(self):
        document = Document.from_html('<a title="Open">Link</a>')
        observer, batches = _observe(document, attribute_filter=['title'], subtree=True)
        link = document.body.query_selector('a')

        link.set_attribute('href', '/x')
        link.set_attribute('title', 'Close')
        document.flush_mutations()

        assert [(r.type, r.attribute_name, r.old_value) for r in batches[0]] == [(ATTRIBUTES, 'title', 'Open')]

    def test_without_subtree_only_target_counts(self):
        document = Document.from_html('<p>Hello</p>')
        observer, batches = _observe(document, character_data=True)

        document.body.query_selector('p').first_child.data = 'Changed'

        assert not document.has_pending_mutations

    def test_text_content_replaces_children_in_one_record(self):
        document = Document.from_html('<p>One <b>two</b></p>')
        observer, batches = _observe(document, child_list=True, subtree=True)
        paragraph = document.body.query_selector('p')

        paragraph.text_content = 'Three'
        document.flush_mutations()

        [record] = batches[0]
        assert len(record.removed_nodes) == 2
        assert isinstance(record.added_nodes[0], Text)
        assert paragraph.to_html() == '<p>Three</p>'

    def test_disconnect_drops_records(self):
        document = Document.from_html('<p>Hello</p>')
        observer, batches = _observe(document, character_data=True, subtree=True)

        document.body.query_selector('p').first_child.data = 'Bye'
        observer.disconnect()
        document.flush_mutations()

        assert batches == []

    def test_records_queued_by_callback_are_delivered(self):
        document = Document.from_html('<p>Hello</p>')
        text = document.body.query_selector('p').first_child
        seen = []

        def callback(records, observer):
            seen.extend(record.target.data for record in records)
            if text.data == 'One':
                text.data = 'Two'

        MutationObserver(callback).observe(document.body, character_data=True, subtree=True)
        text.data = 'One'
        document.flush_mutations()

        assert seen == ['One', 'Two']

    def test_delivery_on_next_loop_turn(self):
        document = Document.from_html('<p>Hello</p>')
        observer, batches = _observe(document, character_data=True, subtree=True)

        async def scenario():
            document.body.query_selector('p').first_child.data = 'Hola'
            before = len(batches)
            await asyncio.sleep(0)
            return before, len(batches)

        assert asyncio.run(scenario()) == (0, 1)

    def test_callback_errors_do_not_stop_delivery(self):
        document = Document.from_html('<p>Hello</p>')

        def broken(records, observer):
            raise RuntimeError('boom')

        MutationObserver(broken).observe(document.body, character_data=True, subtree=True)
        observer, batches = _observe(document, character_data=True, subtree=True)

        document.body.query_selector('p').first_child.data = 'Hola'
        document.flush_mutations()

        assert len(batches) == 1
