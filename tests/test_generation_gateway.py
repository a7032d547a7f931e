"""
Tests for the generation gateway and its prompt/response helpers.
Run: python -m pytest tests/test_generation_gateway.py -v
"""

import asyncio
import json

import pytest

from lexigraph_app.core.error_handlers import NetworkError
from lexigraph_app.modules.generation import GenerationGateway
from lexigraph_app.modules.generation.logics.prompts import PromptManager
from lexigraph_app.modules.generation.logics.response_parser import ResponseParser


class ScriptedClient:
    """Sync provider client returning canned responses in order."""

    def __init__(self, responses):
        self.responses = list(responses)
        self.prompts = []

    def generate_content(self, prompt, item_info=None):
        self.prompts.append(prompt)
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


class AsyncClient(ScriptedClient):
    async def generate_content(self, prompt, item_info=None):
        return ScriptedClient.generate_content(self, prompt, item_info)


def labels_response(*labels):
    return True, json.dumps({'items': [{'label': label} for label in labels]})


class TestLabelEdges:
    def test_batches_and_aligns_labels(self):
        client = ScriptedClient([labels_response('synonym', 'antonym'), labels_response('hypernym')])
        gateway = GenerationGateway(client, batch_size=2)

        result = asyncio.run(gateway.label_edges([('big', 'large'), ('hot', 'cold'), ('dog', 'animal')]))

        assert len(client.prompts) == 2
        assert result == [
            {'source': 'big', 'target': 'large', 'label': 'synonym'},
            {'source': 'hot', 'target': 'cold', 'label': 'antonym'},
            {'source': 'dog', 'target': 'animal', 'label': 'hypernym'},
        ]

    def test_failed_batch_is_skipped(self):
        client = ScriptedClient([RuntimeError('timeout'), labels_response('hypernym')])
        gateway = GenerationGateway(client, batch_size=1)

        result = asyncio.run(gateway.label_edges([('hot', 'cold'), ('dog', 'animal')]))
        assert [r['label'] for r in result] == ['hypernym']

    def test_all_batches_failing_raises(self):
        client = ScriptedClient([(False, 'quota exceeded')])
        gateway = GenerationGateway(client)
        with pytest.raises(NetworkError):
            asyncio.run(gateway.label_edges([('hot', 'cold')]))

    def test_empty_pairs(self):
        assert asyncio.run(GenerationGateway(ScriptedClient([])).label_edges([])) == []


class TestExampleAndRelated:
    def test_example_from_json_or_plain_text(self):
        client = AsyncClient([
            (True, '```json\n{"example": "Rain turned into a storm.", "example_meaning": "..."}\n```'),
            (True, 'A plain sentence.'),
        ])
        gateway = GenerationGateway(client)
        assert asyncio.run(gateway.example('rain', 'storm', 'cause-effect')) == 'Rain turned into a storm.'
        assert asyncio.run(gateway.example('rain', 'cloud')) == 'A plain sentence.'
        assert 'cause-effect' in client.prompts[0]

    def test_related_words_drop_target_and_blanks(self):
        payload = {'items': [
            {'word': 'Ubiquitous', 'meaning': 'x', 'relation': 'Self'},
            {'word': 'everywhere', 'meaning': 'all places', 'relation': 'Synonym'},
            {'word': '', 'meaning': 'blank'},
            'not a dict',
        ]}
        gateway = GenerationGateway(ScriptedClient([(True, json.dumps(payload))]))

        result = asyncio.run(gateway.related_words('ubiquitous'))
        assert result == [{'word': 'everywhere', 'meaning': 'all places', 'relation': 'Synonym'}]

    def test_unparseable_related_words_raise(self):
        gateway = GenerationGateway(ScriptedClient([
            (True, 'Sorry, I cannot help with that.'),
            (True, json.dumps({'items': [{'word': 'rain'}]})),
        ]))
        with pytest.raises(NetworkError):
            asyncio.run(gateway.related_words('rain'))
        with pytest.raises(NetworkError):
            asyncio.run(gateway.related_words('rain'))

    def test_empty_example_raises(self):
        gateway = GenerationGateway(ScriptedClient([(True, '```json\n{"example": "  "}\n```')]))
        with pytest.raises(NetworkError):
            asyncio.run(gateway.example('rain', 'storm'))

    def test_client_error_becomes_network_error(self):
        gateway = GenerationGateway(ScriptedClient([ConnectionError('offline')]))
        with pytest.raises(NetworkError) as exc:
            asyncio.run(gateway.related_words('rain'))
        assert exc.value.details == {'service': 'generation'}


class TestParsingHelpers:
    def test_extract_json_from_prose(self):
        assert ResponseParser.extract_json('Sure! {"a": 1} Hope that helps.') == {'a': 1}
        assert ResponseParser.extract_json('[1, 2]') is None
        assert ResponseParser.extract_items('nonsense') == []

    def test_prompt_lists_pairs_in_order(self):
        prompt = PromptManager.build_edge_label_prompt([('big', 'large'), ('say "hi"', 'greet')])
        assert "1. big - large" in prompt
        assert "2. say 'hi' - greet" in prompt
