# File: lexigraph_app/modules/generation/services/generation_gateway.py
"""
Generation Gateway
==================
``GenerationService`` implementation over an injected text client.

The client follows the provider-client protocol::

    client.generate_content(prompt, item_info=...) -> (success: bool, text: str)

``generate_content`` may be a plain or a coroutine function; plain calls run
in a worker thread so they never block the event loop. Transport (HTTP, API
keys, model choice) belongs to the client, not to this module.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Dict, List, Sequence, Tuple

from lexigraph_app.core.defaults import EngineSettings
from lexigraph_app.core.error_handlers import NetworkError
from lexigraph_app.models.contracts import GenerationService

from ..logics.prompts import PromptManager
from ..logics.response_parser import ResponseParser

logger = logging.getLogger(__name__)


class GenerationGateway(GenerationService):
    def __init__(self, client, batch_size: int = None):
        self.client = client
        self.batch_size = batch_size or EngineSettings().label_batch_size

    async def _call(self, prompt: str, item_info: str) -> str:
        generate = self.client.generate_content
        try:
            if inspect.iscoroutinefunction(generate):
                success, text = await generate(prompt, item_info=item_info)
            else:
                success, text = await asyncio.to_thread(generate, prompt, item_info=item_info)
        except Exception as e:
            raise NetworkError(f"Generation call failed: {e}", service='generation') from e

        if not success:
            raise NetworkError(f"Generation rejected: {text}", service='generation')
        return text or ''

    async def label_edges(self, pairs: Sequence[Tuple[str, str]]) -> List[Dict[str, str]]:
        """
        Label word pairs in batches of ``batch_size``.

        A failed batch is logged and skipped; its pairs are simply absent from
        the result. Raises ``NetworkError`` only when every batch failed.
        """
        pairs = list(pairs)
        if not pairs:
            return []

        results: List[Dict[str, str]] = []
        failed_batches = 0
        batches = [pairs[i:i + self.batch_size] for i in range(0, len(pairs), self.batch_size)]
        for batch in batches:
            prompt = PromptManager.build_edge_label_prompt(batch)
            try:
                text = await self._call(prompt, item_info=f"edge-labels:{len(batch)}")
            except NetworkError as e:
                failed_batches += 1
                logger.warning(f"Edge label batch of {len(batch)} failed: {e.message}")
                continue

            items = ResponseParser.extract_items(text)
            for (source, target), item in zip(batch, items):
                label = item.get('label') if isinstance(item, dict) else item
                if isinstance(label, str) and label.strip():
                    results.append({'source': source, 'target': target, 'label': label.strip()})

        if failed_batches and failed_batches == len(batches):
            raise NetworkError("Every edge label batch failed", service='generation')
        return results

    async def example(self, word_a: str, word_b: str, relation: str = '') -> str:
        prompt = PromptManager.build_example_prompt(word_a, word_b, relation)
        text = await self._call(prompt, item_info=f"example:{word_a}|{word_b}")
        data = ResponseParser.extract_json(text)
        if data and isinstance(data.get('example'), str):
            example = data['example'].strip()
        else:
            example = ResponseParser.clean_markdown(text)
        if not example:
            raise NetworkError(f"Empty example for {word_a} and {word_b}", service='generation')
        return example

    async def related_words(self, word: str) -> List[Dict[str, str]]:
        prompt = PromptManager.build_related_words_prompt(word)
        text = await self._call(prompt, item_info=f"related:{word}")
        related = []
        target = (word or '').strip().lower()
        for item in ResponseParser.extract_items(text):
            if not isinstance(item, dict):
                continue
            candidate = str(item.get('word') or '').strip()
            if not candidate or candidate.lower() == target:
                continue
            related.append({
                'word': candidate,
                'meaning': str(item.get('meaning') or '').strip(),
                'relation': str(item.get('relation') or '').strip(),
            })
        if not related:
            raise NetworkError(f"No related words could be parsed for {word}", service='generation')
        return related
