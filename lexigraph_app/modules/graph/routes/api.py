# File: lexigraph_app/modules/graph/routes/api.py
import asyncio

from flask import request, jsonify, current_app

from lexigraph_app.core.error_handlers import ValidationError, success_response
from lexigraph_app.core.extensions import get_services
from lexigraph_app.modules.cache import CacheManager

from .. import blueprint
from ..services.deck_clusterer import DeckClusterer


@blueprint.route('/api/clusters', methods=['POST'])
def api_cluster_cards():
    """Split the posted card ids into study groups of related words."""
    data = request.get_json(silent=True) or {}
    card_ids = data.get('card_ids')
    if not isinstance(card_ids, list) or not card_ids:
        raise ValidationError('card_ids must be a non-empty list')

    services = get_services()
    repository = services.require('repository')
    embeddings = services.require('embeddings')

    cards = repository.get_cards_by_ids([str(cid) for cid in card_ids])
    cache = CacheManager.from_settings(repository, services.settings)
    clusterer = DeckClusterer(embeddings, cache, services.settings)
    groups = asyncio.run(clusterer.cluster(cards, force_refresh=bool(data.get('force_refresh'))))

    current_app.logger.info(f"Clustered {len(cards)} cards into {len(groups)} groups")
    return jsonify(success_response({
        'groups': [
            {'label': g['label'], 'card_ids': [c.id for c in g['items']]}
            for g in groups
        ]
    }))
